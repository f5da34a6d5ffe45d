from typing import Optional


class ThresholdController:
    """
    Cycles the adaptive threshold block size while no marker is detected.

    Each empty frame moves the block size up by `step`; past `maximum` it
    wraps back to `minimum`. Frames with detections leave it untouched.
    """

    step = 2

    def __init__(self, minimum: int = 3, maximum: int = 21, initial: Optional[int] = None):
        if minimum < 3 or minimum % 2 == 0:
            raise ValueError(f"threshold block size min must be odd and >= 3, got {minimum}")
        if maximum < minimum:
            raise ValueError(f"threshold block size max {maximum} is below min {minimum}")
        self.minimum = minimum
        self.maximum = maximum

        if initial is None:
            initial = (minimum + maximum) // 2
            if initial % 2 == 0:
                initial += 1
        elif not (minimum <= initial <= maximum) or initial % 2 == 0:
            raise ValueError(
                f"initial block size must be odd and within [{minimum}, {maximum}], got {initial}"
            )
        self.block_size = initial

    def update(self, detections: int) -> int:
        if detections == 0:
            size = self.block_size + self.step
            if size > self.maximum:
                size = self.minimum
            self.block_size = size
        return self.block_size
