"""Analysis modes: decision threshold plus minimum-sample and minimum-duration gates.

The table is configuration.  ``DEFAULT_MODE_TABLE`` is what ships; operators
override it through the ``ANALYSIS_MODES`` setting, which is validated with
``load_mode_table`` when settings load.
"""

from __future__ import annotations

import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from aboptimizer.stats.errors import InvalidModeConfigError, UnknownModeError

# The per-arm minimums are permissive (1 visit, 0 days) in the shipped
# configuration, which leaves the mature-data gate close to vacuous.
DEFAULT_MODE_TABLE: dict[str, dict[str, float | int]] = {
    "fast": {"threshold": 0.70, "min_sample_size": 1, "min_days_running": 0},
    "standard": {"threshold": 0.75, "min_sample_size": 1, "min_days_running": 0},
    "careful": {"threshold": 0.80, "min_sample_size": 1, "min_days_running": 0},
}


@dataclass(frozen=True)
class AnalysisMode:
    """One row of the mode table.

    Parameters
    ----------
    name : str
        Mode key, e.g. ``"standard"``.
    threshold : float
        Posterior win probability required to declare a winner, in (0, 1].
    min_sample_size : int
        Visits each arm needs before the mature-data branch applies.
    min_days_running : int
        Whole days the test must have run before the mature-data branch
        applies.
    """

    name: str
    threshold: float
    min_sample_size: int
    min_days_running: int

    @property
    def lower_threshold(self) -> float:
        """Purchase threshold used before the gates are met."""
        return max(0.80, self.threshold - 0.05)


def _require_non_negative_int(mode: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 0:
        raise InvalidModeConfigError(
            f"mode {mode!r}: {key} must be a non-negative integer, got {value!r}"
        )
    return int(value)


def build_mode(name: str, row: Mapping[str, Any]) -> AnalysisMode:
    """Validate one raw table row and return an ``AnalysisMode``."""
    if not isinstance(row, Mapping):
        raise InvalidModeConfigError(f"mode {name!r} must be a mapping, got {type(row).__name__}")
    missing = {"threshold", "min_sample_size", "min_days_running"} - set(row)
    if missing:
        raise InvalidModeConfigError(f"mode {name!r} is missing {', '.join(sorted(missing))}")

    threshold = row["threshold"]
    if isinstance(threshold, bool) or not isinstance(threshold, numbers.Real):
        raise InvalidModeConfigError(f"mode {name!r}: threshold must be a number, got {threshold!r}")
    threshold = float(threshold)
    if not math.isfinite(threshold) or not 0.0 < threshold <= 1.0:
        raise InvalidModeConfigError(f"mode {name!r}: threshold must lie in (0, 1], got {threshold}")

    return AnalysisMode(
        name=name,
        threshold=threshold,
        min_sample_size=_require_non_negative_int(name, "min_sample_size", row["min_sample_size"]),
        min_days_running=_require_non_negative_int(name, "min_days_running", row["min_days_running"]),
    )


def load_mode_table(raw: Mapping[str, Mapping[str, Any]] | None = None) -> dict[str, AnalysisMode]:
    """Validate a raw mode table.

    Parameters
    ----------
    raw : Mapping | None
        ``{name: {"threshold", "min_sample_size", "min_days_running"}}``.
        ``DEFAULT_MODE_TABLE`` when omitted.

    Returns
    -------
    dict[str, AnalysisMode]
    """
    if raw is None:
        raw = DEFAULT_MODE_TABLE
    if not raw:
        raise InvalidModeConfigError("mode table must define at least one mode")
    return {name: build_mode(name, row) for name, row in raw.items()}


def resolve_mode(
    mode: str | AnalysisMode,
    table: Mapping[str, AnalysisMode] | None = None,
) -> AnalysisMode:
    """Look up ``mode`` by name; ``AnalysisMode`` instances pass through."""
    if isinstance(mode, AnalysisMode):
        return mode
    if table is None:
        table = load_mode_table()
    try:
        return table[mode]
    except (KeyError, TypeError):
        raise UnknownModeError(
            f"unknown analysis mode {mode!r}; expected one of {', '.join(sorted(table))}"
        ) from None
