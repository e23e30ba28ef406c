"""Loudness DSP engine for Mix Architect.

Building blocks for ITU-R BS.1770-4 integrated loudness: biquad
sections, K-weighting design, block gating, and the normalisation
targets measured loudness is compared against.
"""
from .biquad import BiquadCoeffs, apply_biquad
from .k_weighting import bilinear_k_weighting, design_k_weighting
from .loudness import channel_weight, measure_integrated_loudness
from .targets import LOUDNESS_TARGETS, LUFS_REFERENCE, normalization_offsets, reference_delta

__all__ = [
  "BiquadCoeffs",
  "apply_biquad",
  "bilinear_k_weighting",
  "design_k_weighting",
  "channel_weight",
  "measure_integrated_loudness",
  "LOUDNESS_TARGETS",
  "LUFS_REFERENCE",
  "normalization_offsets",
  "reference_delta",
]
