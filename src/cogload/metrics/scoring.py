"""
Load Scoring Model - maps raw measurements to a weighted score and a label.

Weights follow Cognitive Load Theory:
- interaction density, extraneous load: 45%
- layout fragmentation, split attention: 30%
- DOM depth, intrinsic load: 25%
"""

from __future__ import annotations

from typing import Optional

from cogload.config.config import MetricsConfig
from cogload.protocols import LoadLabel, RawMeasurements, ScoreResult


def saturate(value: float, cap: float) -> float:
    """Scale ``value`` by ``cap`` and clamp to 1.0."""
    return min(value / cap, 1.0)


class LoadScoringModel:
    """
    Pure, deterministic scorer.

    The density term is driven by the in-view interactive *count*; the
    normalized ``density`` measurement is carried for display only.
    """

    def __init__(self, config: Optional[MetricsConfig] = None) -> None:
        self.config = config or MetricsConfig()

    def classify(self, raw_score: float) -> LoadLabel:
        """Label a score; thresholds are strict, so boundary values fall to the lower band."""
        if raw_score > self.config.high_threshold:
            return LoadLabel.HIGH
        if raw_score > self.config.medium_threshold:
            return LoadLabel.MEDIUM
        return LoadLabel.LOW

    def score(self, measurements: RawMeasurements) -> ScoreResult:
        cfg = self.config
        depth_term = saturate(measurements.max_depth, cfg.depth_cap)
        density_term = saturate(measurements.interactive_in_view, cfg.interactive_cap)
        fragment_term = saturate(measurements.fragmentation, cfg.fragment_cap)

        raw_score = (
            cfg.weights["depth"] * depth_term
            + cfg.weights["density"] * density_term
            + cfg.weights["fragmentation"] * fragment_term
        )

        return ScoreResult(
            raw_score=raw_score,
            label=self.classify(raw_score),
            depth_term=depth_term,
            density_term=density_term,
            fragment_term=fragment_term,
        )
