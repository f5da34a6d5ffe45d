import logging


class NodeNameFilter(logging.Filter):
    def __init__(self, node_name: str):
        super().__init__()
        self.node_name = node_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.node = self.node_name
        return True


FORMAT = "%(asctime)s %(levelname)s [%(node)s] %(name)s: %(message)s"


def setup_logger(node_name: str, level: int = logging.INFO) -> logging.Logger:
    """Node logger; also routes the marker_nav library loggers to the same handler."""
    logger = logging.getLogger(f"marker_nav.{node_name}")
    logger.setLevel(level)

    root = logging.getLogger("marker_nav")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FORMAT))
        handler.addFilter(NodeNameFilter(node_name))
        root.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, node_name: str, log_path: str) -> logging.Handler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler.addFilter(NodeNameFilter(node_name))
    logger.addHandler(handler)
    return handler
