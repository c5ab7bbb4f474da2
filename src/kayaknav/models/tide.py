"""High/low tide table for display alongside current predictions."""

from dataclasses import dataclass
from typing import Self

import numpy as np

from kayaknav.core.types import ArrayLike, TimeArray
from kayaknav.models.prediction import COARSE_RESOLUTION_MINUTES, snap_to_grid


@dataclass
class TideTable:
    """Tide phase labels on a uniform grid.

    Rows at a high or low tide carry the published label ("H" or "L").
    Rows in between are labelled by the last event and the hours since it,
    e.g. "H + 1.5".
    """

    time: TimeArray
    high_low: np.ndarray  # str labels

    @property
    def height(self) -> int:
        return int(self.time.shape[0])

    def label_at(self, t: np.datetime64) -> str | None:
        """Label of the row at a timestamp, if the table covers it."""
        idx = int(np.searchsorted(self.time, np.datetime64(t, "s")))
        if idx < self.height and self.time[idx] == np.datetime64(t, "s"):
            return str(self.high_low[idx])
        return None

    @classmethod
    def from_hilo(
        cls,
        times: ArrayLike,
        labels: ArrayLike,
        resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
    ) -> Self:
        """Build a table from published high/low events.

        Raises:
            InsufficientDataError: If there are no events.
        """
        labels = np.asarray(labels, dtype=object)
        grid_times, source = snap_to_grid(times, resolution_minutes)
        step_hours = resolution_minutes / 60

        filled = []
        last_label = ""
        hours_since = 0.0
        for src in source:
            if src >= 0:
                last_label = str(labels[src])
                hours_since = 0.0
                filled.append(last_label)
            else:
                hours_since += step_hours
                filled.append(f"{last_label} + {hours_since:g}")

        return cls(time=grid_times, high_low=np.asarray(filled, dtype=object))
