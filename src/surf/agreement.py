"""Multi-source agreement scoring.

Given parallel readings of the same physical quantity from different forecast
models, measure how closely they agree.  The score is the inverted
coefficient of variation (population standard deviation over mean), scaled
to 0–100:

    score = clamp(round((1 - stdev / mean) * 100), 0, 100)

A mean of zero or below is treated as perfect agreement (CV = 0) so calm
readings never divide by zero.  Fewer than two usable readings yields no
score at all.
"""

from __future__ import annotations

import logging
import math
import statistics
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Sequence

from src.surf.config_loader import AgreementConfig, get_surf_config
from src.surf.units import round_half_up

if TYPE_CHECKING:
    from src.surf.providers.base import Reading

logger = logging.getLogger("swellsync.surf.agreement")

HIGH_AGREEMENT = "High Agreement"
MODERATE_AGREEMENT = "Moderate Agreement"
LOW_AGREEMENT = "Low Agreement"
INSUFFICIENT_DATA = "Insufficient Data"


@dataclass(frozen=True)
class AgreementResult:
    """Consensus across sources for one quantity.

    Attributes:
        score:        0–100, or None with fewer than two readings.
        label:        Agreement class for the score.
        color:        Hex display colour for the class.
        source_count: Number of non-null readings that were scored.
    """

    score: int | None
    label: str
    color: str
    source_count: int

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "label": self.label,
            "color": self.color,
            "source_count": self.source_count,
        }


def _usable(readings: Iterable[float | None]) -> list[float]:
    values: list[float] = []
    for value in readings:
        if value is None:
            continue
        value = float(value)
        if math.isnan(value):
            continue
        values.append(value)
    return values


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population CV of ``values``; 0.0 when the mean is not positive."""
    mean = statistics.fmean(values)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(values, mu=mean) / mean


def classify(score: int, config: AgreementConfig) -> tuple[str, str]:
    """Return (label, colour) for a 0–100 score."""
    if score >= config.high_threshold:
        return HIGH_AGREEMENT, config.colors["high"]
    if score >= config.moderate_threshold:
        return MODERATE_AGREEMENT, config.colors["moderate"]
    return LOW_AGREEMENT, config.colors["low"]


def score(
    readings: Iterable[float | None], config: AgreementConfig | None = None
) -> AgreementResult:
    """Score agreement among parallel readings.

    Args:
        readings: One value per source; None entries are ignored.
        config:   AgreementConfig (loaded from singleton if None).

    Returns:
        AgreementResult.  ``score`` is None with fewer than two readings.
    """
    cfg = config or get_surf_config().agreement
    values = _usable(readings)

    if len(values) < cfg.min_sources:
        return AgreementResult(
            score=None,
            label=INSUFFICIENT_DATA,
            color=cfg.colors["none"],
            source_count=len(values),
        )

    cv = coefficient_of_variation(values)
    value = max(0, min(100, round_half_up((1 - cv) * 100)))
    label, color = classify(value, cfg)
    return AgreementResult(score=value, label=label, color=color, source_count=len(values))


class AgreementScorer:
    """Config-bound scorer, with a helper for provider readings.

    Usage::

        scorer = AgreementScorer()
        scorer.score([1.2, 1.3, 1.25]).label           # "High Agreement"
        scorer.score_readings(report.readings, "wave_height", at=hour)
    """

    def __init__(self, config: AgreementConfig | None = None) -> None:
        self._config = config or get_surf_config().agreement

    def score(self, readings: Iterable[float | None]) -> AgreementResult:
        return score(readings, self._config)

    def score_readings(
        self,
        readings: Iterable[Reading],
        quantity: str,
        at: datetime | None = None,
    ) -> AgreementResult:
        """Score every model's reading of ``quantity`` at one timestamp.

        Args:
            readings: Provider readings (any mix of quantities and times).
            quantity: Quantity name, e.g. ``"wave_height"``.
            at:       Timestamp to compare; the earliest available when None.

        Returns:
            AgreementResult across the distinct model sources at that time.
        """
        matching = [r for r in readings if r.quantity == quantity]
        if at is None and matching:
            at = min(r.time for r in matching)
        per_model: dict[str, float] = {}
        for r in matching:
            if r.time == at and r.model not in per_model:
                per_model[r.model] = r.value
        result = self.score(per_model.values())
        logger.debug(
            "Agreement for %s at %s: %s from %d models",
            quantity, at, result.score, result.source_count,
        )
        return result
