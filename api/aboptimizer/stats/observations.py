"""Per-arm observation counts fed into the decision policy."""

from __future__ import annotations

import numbers
from dataclasses import dataclass

from aboptimizer.stats.errors import InvalidObservationError


def validate_counts(successes: int, trials: int, label: str = "arm") -> None:
    """Raise ``InvalidObservationError`` unless ``0 <= successes <= trials``."""
    for name, value in (("successes", successes), ("trials", trials)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidObservationError(f"{label} {name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidObservationError(f"{label} {name} must be non-negative, got {value}")
    if successes > trials:
        raise InvalidObservationError(
            f"{label} successes cannot exceed trials ({successes} > {trials})"
        )


@dataclass(frozen=True)
class ArmObservation:
    """Raw counts for one arm (control or variant) over the test window.

    Parameters
    ----------
    visits : int
        Number of ``impression`` events; the trial count for both metrics.
    atc_successes : int
        Number of ``add_to_cart`` events.
    purchase_successes : int
        Number of ``purchase`` events.
    """

    visits: int
    atc_successes: int
    purchase_successes: int

    def __post_init__(self) -> None:
        validate_counts(self.atc_successes, self.visits, label="add-to-cart")
        validate_counts(self.purchase_successes, self.visits, label="purchase")

    def to_dict(self) -> dict[str, int]:
        return {
            "visits": int(self.visits),
            "atc_successes": int(self.atc_successes),
            "purchase_successes": int(self.purchase_successes),
        }
