"""Integrated loudness (ITU-R BS.1770-4) measured from first principles.

K-weighting, 400 ms blocks with 75 % overlap, an absolute gate at
-70 LUFS and a relative gate 10 dB below the absolute-gated mean.

Channel weighting assumes L, R, C, Ls, Rs ordering: when a buffer has
more than three channels, indices 3 and 4 get the surround weight. The
actual channel layout of the input is not checked, so 5.1 material laid
out as L, R, C, LFE, Ls, Rs will weight LFE and Ls as surrounds.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np

from ..buffers import SampleBuffer
from ..cancellation import CancellationToken, check_cancelled
from .biquad import apply_biquad, initial_state
from .k_weighting import design_k_weighting

logger = logging.getLogger("mixarchitect_dsp.dsp_engine.loudness")

BLOCK_SECONDS = 0.4
HOP_SECONDS = 0.1
LOUDNESS_OFFSET = -0.691
ABSOLUTE_GATE_LUFS = -70.0
RELATIVE_GATE_FACTOR = 0.1  # -10 dB
SURROUND_WEIGHT = 1.41

ABSOLUTE_GATE_POWER = 10.0 ** ((ABSOLUTE_GATE_LUFS - LOUDNESS_OFFSET) / 10.0)


def samples_for(seconds: float, sample_rate: int) -> int:
  """Duration in whole samples, halves rounded up."""
  return int(math.floor(sample_rate * seconds + 0.5))


def channel_weight(index: int, num_channels: int) -> float:
  if num_channels <= 3:
    return 1.0
  return SURROUND_WEIGHT if index in (3, 4) else 1.0


def k_weight_channels(
  buf: SampleBuffer,
  cancel_token: Optional[CancellationToken] = None,
) -> List[np.ndarray]:
  """Return K-weighted float64 copies of every channel in ``buf``.

  Channels are filtered hop by hop with the filter state carried across
  chunks so a cancelled run stops within ~100 ms of audio.
  """

  stage1, stage2 = design_k_weighting(buf.sample_rate)
  chunk = max(1, samples_for(HOP_SECONDS, buf.sample_rate))

  weighted: List[np.ndarray] = []
  for ch in range(buf.num_channels):
    data = np.array(buf.channels[ch], dtype=np.float64)
    z1 = initial_state()
    z2 = initial_state()
    for start in range(0, data.shape[0], chunk):
      check_cancelled(cancel_token)
      segment = data[start:start + chunk]
      z1 = apply_biquad(segment, stage1, z1)
      z2 = apply_biquad(segment, stage2, z2)
    weighted.append(data)
  return weighted


def block_powers(
  weighted: List[np.ndarray],
  sample_rate: int,
  cancel_token: Optional[CancellationToken] = None,
) -> np.ndarray:
  """Channel-weighted mean-square power of every gating block."""

  if not weighted:
    return np.zeros(0, dtype=np.float64)

  block_size = samples_for(BLOCK_SECONDS, sample_rate)
  hop_size = samples_for(HOP_SECONDS, sample_rate)
  if block_size <= 0 or hop_size <= 0:
    return np.zeros(0, dtype=np.float64)

  length = weighted[0].shape[0]
  num_blocks = (length - block_size) // hop_size + 1
  if num_blocks <= 0:
    return np.zeros(0, dtype=np.float64)

  num_channels = len(weighted)
  weights = [channel_weight(ch, num_channels) for ch in range(num_channels)]

  powers = np.empty(num_blocks, dtype=np.float64)
  for b in range(num_blocks):
    check_cancelled(cancel_token)
    start = b * hop_size
    total = 0.0
    for ch, data in enumerate(weighted):
      segment = data[start:start + block_size]
      total += weights[ch] * (float(np.dot(segment, segment)) / block_size)
    powers[b] = total
  return powers


def gated_loudness(powers: np.ndarray) -> float:
  """Apply absolute and relative gating to block powers."""

  if powers.size == 0:
    return float("-inf")

  above_absolute = powers[powers > ABSOLUTE_GATE_POWER]
  if above_absolute.size == 0:
    return float("-inf")

  relative_gate = float(np.mean(above_absolute)) * RELATIVE_GATE_FACTOR
  passed = above_absolute[above_absolute >= relative_gate]
  if passed.size == 0:
    return float("-inf")

  return LOUDNESS_OFFSET + 10.0 * math.log10(float(np.mean(passed)))


def measure_integrated_loudness(
  buf: SampleBuffer,
  cancel_token: Optional[CancellationToken] = None,
) -> float:
  """Integrated loudness of ``buf`` in LUFS.

  Returns ``-inf`` for silence, near-silence, or audio shorter than one
  400 ms block. The input buffer is never modified.
  """

  weighted = k_weight_channels(buf, cancel_token)
  powers = block_powers(weighted, buf.sample_rate, cancel_token)
  lufs = gated_loudness(powers)

  logger.debug(
    "[LUFS] sr=%d channels=%d blocks=%d -> %.2f LUFS",
    buf.sample_rate,
    buf.num_channels,
    powers.size,
    lufs,
  )
  return lufs
