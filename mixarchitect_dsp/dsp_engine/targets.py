"""Loudness normalisation targets for streaming, broadcast and social.

Platforms normalise playback to a target loudness; the offset tells the
engineer how much gain a platform will apply to a master.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

TargetGroup = Literal["Streaming", "Broadcast", "Social"]

LUFS_REFERENCE = -14.0


@dataclass(frozen=True)
class LoudnessTarget:
  name: str
  lufs: float
  group: TargetGroup


LOUDNESS_TARGETS: tuple[LoudnessTarget, ...] = (
  LoudnessTarget("Spotify", -14.0, "Streaming"),
  LoudnessTarget("Apple Music", -16.0, "Streaming"),
  LoudnessTarget("YouTube", -14.0, "Streaming"),
  LoudnessTarget("Tidal", -14.0, "Streaming"),
  LoudnessTarget("Amazon Music", -14.0, "Streaming"),
  LoudnessTarget("Deezer", -15.0, "Streaming"),
  LoudnessTarget("Qobuz", -14.0, "Streaming"),
  LoudnessTarget("Pandora", -14.0, "Streaming"),
  LoudnessTarget("EBU R128", -23.0, "Broadcast"),
  LoudnessTarget("ATSC A/85", -24.0, "Broadcast"),
  LoudnessTarget("ITU-R BS.1770", -24.0, "Broadcast"),
  LoudnessTarget("Instagram/Reels", -14.0, "Social"),
  LoudnessTarget("TikTok", -14.0, "Social"),
  LoudnessTarget("Facebook", -16.0, "Social"),
)


def reference_delta(lufs: Optional[float]) -> Optional[float]:
  """Measured loudness relative to the -14 LUFS reference."""
  if lufs is None or not math.isfinite(lufs):
    return None
  return float(lufs - LUFS_REFERENCE)


def normalization_offsets(lufs: Optional[float]) -> List[Dict[str, object]]:
  """Gain each platform applies on playback (target - measured, dB).

  Silence or an unmeasured track has no meaningful offset, so the
  result is empty.
  """

  if lufs is None or not math.isfinite(lufs):
    return []

  return [
    {
      "name": target.name,
      "group": target.group,
      "target_lufs": target.lufs,
      "gain_db": round(target.lufs - lufs, 2),
    }
    for target in LOUDNESS_TARGETS
  ]
