"""Descriptor normalization into fixed-length float vectors."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, List, Optional

import numpy as np

from facematch.types import DESCRIPTOR_LENGTH

LOGGER = logging.getLogger("facematch.recognition.descriptor")


def _coerce_float(value: Any) -> float:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _from_array(raw: np.ndarray) -> np.ndarray:
    if raw.dtype.kind not in {"b", "i", "u", "f"}:
        return np.array([_coerce_float(v) for v in raw.ravel()], dtype=np.float64)
    return raw.astype(np.float64).reshape(-1)


def _from_buffer(raw: Any) -> Optional[np.ndarray]:
    data = bytes(raw)
    if len(data) % 4:
        LOGGER.warning("Descriptor buffer of %d bytes is not float32-aligned", len(data))
        return None
    return np.frombuffer(data, dtype=np.float32).astype(np.float64)


def _from_mapping(raw: Mapping) -> Optional[np.ndarray]:
    # Typed arrays serialized as {"0": v0, "1": v1, ...}
    try:
        keys = sorted(raw, key=lambda k: int(k))
    except (TypeError, ValueError):
        return None
    return np.array([_coerce_float(raw[k]) for k in keys], dtype=np.float64)


def _from_iterable(raw: Iterable) -> np.ndarray:
    values: List[float] = [_coerce_float(v) for v in raw]
    return np.array(values, dtype=np.float64)


def normalize_descriptor(raw: Any, length: int = DESCRIPTOR_LENGTH) -> Optional[np.ndarray]:
    """Coerce a stored or submitted descriptor into a 1D float64 vector.

    Accepted variants: numpy arrays, float32 byte buffers, integer-keyed
    mappings, and ordered sequences or other iterables of numbers. Elements
    that cannot be read as numbers become ``0.0``. Returns ``None`` when the
    input is absent, unreadable, or does not have exactly ``length`` values.
    NaN and infinite values are passed through unchanged.
    """
    if raw is None:
        return None
    if isinstance(raw, np.ndarray):
        vec = _from_array(raw)
    elif isinstance(raw, (bytes, bytearray, memoryview)):
        vec = _from_buffer(raw)
    elif isinstance(raw, Mapping):
        vec = _from_mapping(raw)
    elif isinstance(raw, str):
        vec = None
    elif isinstance(raw, Iterable):
        vec = _from_iterable(raw)
    else:
        vec = None

    if vec is None:
        LOGGER.warning("Unsupported descriptor representation: %s", type(raw).__name__)
        return None
    if vec.shape[0] != length:
        LOGGER.warning("Descriptor has incorrect length: %d, expected %d", vec.shape[0], length)
        return None
    return vec
