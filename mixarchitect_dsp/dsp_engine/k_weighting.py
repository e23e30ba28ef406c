"""K-weighting filter design (ITU-R BS.1770-4).

Stage 1 is a high-shelf pre-filter (about +4 dB above ~1.7 kHz) modelling
the acoustic effect of the head; stage 2 is the revised low-frequency
B-curve, a high-pass at ~38 Hz.

48 kHz and 44.1 kHz use the published coefficient tables verbatim. Every
other rate is designed from the analog prototype with a bilinear
transform, using prototype parameters recovered from the 48 kHz table.
"""
from __future__ import annotations

import math
from typing import Tuple

from .biquad import BiquadCoeffs

KWeighting = Tuple[BiquadCoeffs, BiquadCoeffs]

_PUBLISHED_TABLES: dict[int, KWeighting] = {
    48000: (
        BiquadCoeffs(
            b0=1.53512485958697,
            b1=-2.69169618940638,
            b2=1.19839281085285,
            a1=-1.69065929318241,
            a2=0.73248077421585,
        ),
        BiquadCoeffs(
            b0=1.0,
            b1=-2.0,
            b2=1.0,
            a1=-1.99004745483398,
            a2=0.99007225036621,
        ),
    ),
    44100: (
        BiquadCoeffs(
            b0=1.53091059260624,
            b1=-2.65116903469206,
            b2=1.16907559410890,
            a1=-1.66375011815546,
            a2=0.71249664568240,
        ),
        BiquadCoeffs(
            b0=1.0,
            b1=-2.0,
            b2=1.0,
            a1=-1.98916967290658,
            a2=0.98919924682498,
        ),
    ),
}

# Stage 1 prototype: high shelf
SHELF_F0_HZ = 1681.974450955533
SHELF_GAIN_DB = 3.999843853973347
SHELF_Q = 0.7071752369554196
SHELF_VB_EXPONENT = 0.4996667741545416

# Stage 2 prototype: high pass
HIGHPASS_F0_HZ = 38.13547087602444
HIGHPASS_Q = 0.5003270373238773


def design_k_weighting(sample_rate: int) -> KWeighting:
    """Return (pre-filter, high-pass) coefficients for ``sample_rate``."""

    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    table = _PUBLISHED_TABLES.get(sample_rate)
    if table is not None:
        return table
    return bilinear_k_weighting(sample_rate)


def bilinear_k_weighting(sample_rate: float) -> KWeighting:
    """Design both K-weighting stages from the analog prototype.

    Also valid at 48 kHz / 44.1 kHz, which is how the formula is checked
    against the published tables.
    """

    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    return _high_shelf_stage(float(sample_rate)), _high_pass_stage(float(sample_rate))


def _high_shelf_stage(sr: float) -> BiquadCoeffs:
    k = math.tan(math.pi * SHELF_F0_HZ / sr)
    k2 = k * k
    vh = 10.0 ** (SHELF_GAIN_DB / 20.0)
    vb = vh ** SHELF_VB_EXPONENT
    a0 = 1.0 + k / SHELF_Q + k2

    return BiquadCoeffs(
        b0=(vh + vb * k / SHELF_Q + k2) / a0,
        b1=2.0 * (k2 - vh) / a0,
        b2=(vh - vb * k / SHELF_Q + k2) / a0,
        a1=2.0 * (k2 - 1.0) / a0,
        a2=(1.0 - k / SHELF_Q + k2) / a0,
    )


def _high_pass_stage(sr: float) -> BiquadCoeffs:
    k = math.tan(math.pi * HIGHPASS_F0_HZ / sr)
    k2 = k * k
    a0 = 1.0 + k / HIGHPASS_Q + k2

    # Numerator left un-normalised, as in the published table.
    return BiquadCoeffs(
        b0=1.0,
        b1=-2.0,
        b2=1.0,
        a1=2.0 * (k2 - 1.0) / a0,
        a2=(1.0 - k / HIGHPASS_Q + k2) / a0,
    )
