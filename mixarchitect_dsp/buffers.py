"""Decoded audio container shared by the analysis paths."""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class SampleBuffer:
    """Read-only decoded audio, shaped [channels, samples].

    A 1-D array is treated as mono. The stored array is a non-writeable
    view, so callers keep ownership of their data and analysis code has
    to copy before filtering.
    """

    channels: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        try:
            data = np.asarray(self.channels)
            if data.dtype.kind != "f":
                data = data.astype(np.float64)
        except ValueError as exc:
            raise ValueError("All channels must have the same length") from exc

        if data.ndim == 1:
            data = data[np.newaxis, :]
        if data.ndim != 2:
            raise ValueError("Expected mono [N] or multi-channel [C, N] audio")
        if int(self.sample_rate) <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

        view = data.view()
        view.flags.writeable = False
        object.__setattr__(self, "channels", view)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @property
    def num_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def length(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.length / float(self.sample_rate)
