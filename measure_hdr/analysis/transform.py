from __future__ import annotations

import math

import numpy as np

# SMPTE ST 2084 constants
M1 = 2610.0 / 16384.0
M2 = (2523.0 / 4096.0) * 128.0
C1 = 3424.0 / 4096.0
C2 = (2413.0 / 4096.0) * 32.0
C3 = (2392.0 / 4096.0) * 32.0

MAX_CODE = 1023
MAX_NITS = 10000.0


def pq_to_nits(pq: float) -> float:
    """Inverse EOTF: normalized PQ signal in [0, 1] to absolute luminance in nits.

    Out-of-domain input is clamped to [0, 1]; NaN is treated as 0.
    """

    value = _clamp(float(pq), 0.0, 1.0)
    v = value ** (1.0 / M2)
    n = max(v - C1, 0.0) / (C2 - C3 * v)
    return _clamp((n ** (1.0 / M1)) * MAX_NITS, 0.0, MAX_NITS)


def nits_to_pq(nits: float) -> float:
    """Forward OETF: absolute luminance in nits to normalized PQ signal in [0, 1]."""

    y = _clamp(float(nits), 0.0, MAX_NITS) / MAX_NITS
    y_m1 = y**M1
    return _clamp(((C1 + C2 * y_m1) / (1.0 + C3 * y_m1)) ** M2, 0.0, 1.0)


def code_to_pq(code: int) -> float:
    """Normalize a 10-bit code value to the PQ domain, clamping to [0, 1023]."""

    return _clamp(float(code), 0.0, float(MAX_CODE)) / MAX_CODE


def code_to_nits(code: int) -> float:
    return pq_to_nits(code_to_pq(code))


def pq_to_nits_array(values: np.ndarray | list[float]) -> np.ndarray:
    """Vectorized pq_to_nits with the same clamping rules."""

    v = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    v = np.power(np.clip(v, 0.0, 1.0), 1.0 / M2)
    n = np.maximum(v - C1, 0.0) / (C2 - C3 * v)
    return np.clip(np.power(n, 1.0 / M1) * MAX_NITS, 0.0, MAX_NITS)


def nits_to_pq_array(values: np.ndarray | list[float]) -> np.ndarray:
    y = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0)
    y_m1 = np.power(np.clip(y, 0.0, MAX_NITS) / MAX_NITS, M1)
    return np.clip(np.power((C1 + C2 * y_m1) / (1.0 + C3 * y_m1), M2), 0.0, 1.0)


def codes_to_nits_array(codes: np.ndarray | list[int]) -> np.ndarray:
    c = np.clip(np.asarray(codes, dtype=np.float64), 0.0, float(MAX_CODE))
    return pq_to_nits_array(c / MAX_CODE)


def _clamp(value: float, lower: float, upper: float) -> float:
    if math.isnan(value):
        return lower
    return min(max(value, lower), upper)
