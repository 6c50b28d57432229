import numpy as np

from facematch.recognition.descriptor import normalize_descriptor


def test_list_of_numbers_becomes_float_vector():
    raw = list(range(128))
    vec = normalize_descriptor(raw)
    assert vec is not None
    assert vec.dtype == np.float64
    assert vec.shape == (128,)
    assert vec[5] == 5.0


def test_non_numeric_elements_become_zero():
    raw = [0.5] * 128
    raw[3] = "not-a-number"
    raw[4] = None
    raw[5] = "0.25"
    vec = normalize_descriptor(raw)
    assert vec is not None
    assert vec[3] == 0.0
    assert vec[4] == 0.0
    assert vec[5] == 0.25
    assert vec[0] == 0.5


def test_wrong_length_is_rejected():
    assert normalize_descriptor([0.1] * 127) is None
    assert normalize_descriptor([0.1] * 129) is None
    assert normalize_descriptor(np.zeros((64,), dtype=np.float32)) is None


def test_float32_buffer_is_read_as_typed_array():
    source = np.linspace(-1.0, 1.0, 128, dtype=np.float32)
    vec = normalize_descriptor(source.tobytes())
    assert vec is not None
    np.testing.assert_allclose(vec, source.astype(np.float64))


def test_misaligned_buffer_is_rejected():
    assert normalize_descriptor(b"\x00" * 511) is None


def test_integer_keyed_mapping_is_ordered_by_key():
    raw = {str(i): float(i) for i in reversed(range(128))}
    vec = normalize_descriptor(raw)
    assert vec is not None
    assert vec[0] == 0.0
    assert vec[127] == 127.0


def test_numpy_array_is_flattened():
    vec = normalize_descriptor(np.ones((2, 64), dtype=np.float32))
    assert vec is not None
    assert vec.shape == (128,)


def test_absent_and_unsupported_inputs_return_none():
    assert normalize_descriptor(None) is None
    assert normalize_descriptor("0.1,0.2") is None
    assert normalize_descriptor(42) is None
    assert normalize_descriptor({"a": 1.0}) is None


def test_generator_input_is_accepted():
    vec = normalize_descriptor(float(i) / 128 for i in range(128))
    assert vec is not None
    assert vec.shape == (128,)


def test_nan_values_pass_through():
    raw = [0.0] * 128
    raw[0] = float("nan")
    vec = normalize_descriptor(raw)
    assert vec is not None
    assert np.isnan(vec[0])


def test_custom_length():
    assert normalize_descriptor([1.0, 2.0, 3.0], length=3) is not None
