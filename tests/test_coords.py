import numpy as np

from marker_nav.coords import FrameConverter, consumer_to_opencv, opencv_to_consumer


def test_consumer_mapping_of_known_vector():
    assert opencv_to_consumer([1.0, 2.0, 3.0]).tolist() == [3.0, -1.0, -2.0]


def test_native_mode_is_identity():
    conv = FrameConverter(use_native_coords=True)
    assert conv.to_output([1.0, 2.0, 3.0]).tolist() == [1.0, 2.0, 3.0]
    assert conv.to_native([1.0, 2.0, 3.0]).tolist() == [1.0, 2.0, 3.0]


def test_consumer_mode_roundtrip_is_identity():
    conv = FrameConverter(use_native_coords=False)
    rng = np.random.default_rng(3)
    for v in rng.normal(size=(50, 3)):
        assert np.allclose(conv.to_native(conv.to_output(v)), v)
        assert np.allclose(opencv_to_consumer(consumer_to_opencv(v)), v)


def test_position_and_rotation_converted_independently():
    conv = FrameConverter()
    pos, rot = conv.convert_pose(np.array([1.0, 2.0, 3.0]), np.array([0.1, 0.2, 0.3]))

    assert pos.tolist() == [3.0, -1.0, -2.0]
    assert np.allclose(rot, [0.3, -0.1, -0.2])


def test_native_output_is_a_copy():
    conv = FrameConverter(use_native_coords=True)
    v = np.array([1.0, 2.0, 3.0])
    out = conv.to_output(v)
    out[0] = 9.0
    assert v[0] == 1.0
