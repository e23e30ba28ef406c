"""Biquad filter sections built on SciPy.

A single second-order IIR section is described by five coefficients
(``a0`` is normalised to 1). Filtering uses ``scipy.signal.lfilter``,
whose recursion is the Direct-Form II Transposed structure:

    y  = b0*x + z1
    z1 = b1*x - a1*y + z2
    z2 = b2*x - a2*y

The filter state is returned so long signals can be processed in
consecutive chunks with the same result as a single pass.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal import lfilter


@dataclass(frozen=True)
class BiquadCoeffs:
    """Coefficients of one biquad section (a0 == 1)."""

    b0: float
    b1: float
    b2: float
    a1: float
    a2: float

    @property
    def b(self) -> np.ndarray:
        return np.array([self.b0, self.b1, self.b2], dtype=np.float64)

    @property
    def a(self) -> np.ndarray:
        return np.array([1.0, self.a1, self.a2], dtype=np.float64)

    def as_tuple(self) -> tuple[float, float, float, float, float]:
        return (self.b0, self.b1, self.b2, self.a1, self.a2)


def initial_state() -> np.ndarray:
    """Zeroed (z1, z2) state for a fresh filter run."""
    return np.zeros(2, dtype=np.float64)


def apply_biquad(
    samples: np.ndarray,
    coeffs: BiquadCoeffs,
    state: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Filter ``samples`` in place and return the final (z1, z2) state.

    Args:
        samples: writable 1-D float array. Views are fine, which is how
            the loudness meter filters a channel chunk by chunk.
        coeffs: the section to apply.
        state: (z1, z2) carried over from the previous chunk, zeros when
            omitted.
    """

    zi = initial_state() if state is None else np.asarray(state, dtype=np.float64)
    if samples.size == 0:
        return zi.copy()

    y, zf = lfilter(coeffs.b, coeffs.a, samples, zi=zi)
    samples[...] = y
    return zf
