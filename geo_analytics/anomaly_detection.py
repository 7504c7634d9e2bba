"""
Anomaly Detection over value, space and time

Three independent detectors run over the same snapshot; the results are
merged so that each observation keeps only its highest-scoring anomaly.
"""

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from .config import AnalyticsConfig
from .geo import NeighborIndex
from .models import Anomaly, AnomalyFactor, AnomalyKind, Observation
from .scoring import anomaly_confidence, logistic, population_zscores, safe_divide
from .validation import validate_observations

logger = logging.getLogger(__name__)


def value_anomaly_score(value: float, mean: float, std: float) -> float:
    """|value - mean| in standard deviations; 0 when the spread is zero"""
    return abs(safe_divide(value - mean, std))


def isolation_score(mean_distance_km: float, scale_km: float = AnalyticsConfig.ISOLATION_SCALE_KM) -> float:
    """Logistic transform of the mean neighbor distance"""
    return logistic(safe_divide(mean_distance_km, scale_km))


def linear_projection(window: np.ndarray) -> float:
    """Least-squares line through the window, evaluated one step past its end"""
    x = np.arange(len(window), dtype=float)
    slope, intercept = np.polyfit(x, window, 1)
    return float(slope * len(window) + intercept)


class AnomalyDetector:
    """
    Detects value, spatial and temporal anomalies in an observation snapshot

    Value anomalies use the population z-score of ``value``. Spatial anomalies
    score how isolated an observation is from its neighbors. Temporal anomalies
    compare each value with the window of observations preceding it in time.
    """

    def __init__(
        self,
        value_threshold: float = AnalyticsConfig.VALUE_ZSCORE_THRESHOLD,
        isolation_threshold: float = AnalyticsConfig.ISOLATION_THRESHOLD,
        isolation_radius_km: float = AnalyticsConfig.ISOLATION_RADIUS_KM,
        isolation_scale_km: float = AnalyticsConfig.ISOLATION_SCALE_KM,
        temporal_window: int = AnalyticsConfig.TEMPORAL_WINDOW_SIZE,
        temporal_threshold: float = AnalyticsConfig.TEMPORAL_THRESHOLD,
        confidence_pivot: float = AnalyticsConfig.CONFIDENCE_PIVOT
    ):
        """
        Initialize anomaly detector

        Args:
            value_threshold: |z| above which a value is anomalous
            isolation_threshold: Isolation score above which a location is anomalous
            isolation_radius_km: Neighbor search radius for isolation
            isolation_scale_km: Distance scale of the isolation logistic
            temporal_window: Number of preceding observations compared against
            temporal_threshold: Window z-score above which a value is anomalous
            confidence_pivot: Score at which confidence equals 0.5
        """
        if temporal_window < 2:
            raise ValueError(f"temporal_window must be at least 2, got {temporal_window}")
        if isolation_radius_km < 0:
            raise ValueError(f"isolation_radius_km must be non-negative, got {isolation_radius_km}")
        if isolation_scale_km <= 0:
            raise ValueError(f"isolation_scale_km must be positive, got {isolation_scale_km}")

        self.value_threshold = value_threshold
        self.isolation_threshold = isolation_threshold
        self.isolation_radius_km = isolation_radius_km
        self.isolation_scale_km = isolation_scale_km
        self.temporal_window = temporal_window
        self.temporal_threshold = temporal_threshold
        self.confidence_pivot = confidence_pivot

    def _confidence(self, score: float) -> float:
        return anomaly_confidence(score, pivot=self.confidence_pivot)

    def detect(
        self,
        observations: Iterable[Observation],
        index: Optional[NeighborIndex] = None
    ) -> List[Anomaly]:
        """
        Run all detectors and keep the strongest anomaly per observation

        Returns:
            Anomalies sorted by descending score
        """
        observations = validate_observations(observations)

        value_anomalies = self.detect_value_anomalies(observations)
        spatial_anomalies = self.detect_spatial_anomalies(observations, index=index)
        temporal_anomalies = self.detect_temporal_anomalies(observations)

        logger.info(
            f"Anomalies detected: value={len(value_anomalies)}, "
            f"spatial={len(spatial_anomalies)}, temporal={len(temporal_anomalies)}"
        )

        return self.deduplicate(value_anomalies + spatial_anomalies + temporal_anomalies)

    def detect_value_anomalies(self, observations: Iterable[Observation]) -> List[Anomaly]:
        observations = validate_observations(observations)
        values = np.array([o.value for o in observations], dtype=float)
        z_scores, mean, std = population_zscores(values)

        anomalies = []
        for observation, z in zip(observations, z_scores):
            score = abs(float(z))
            if score <= self.value_threshold:
                continue

            anomalies.append(
                Anomaly(
                    observation_id=observation.id,
                    score=score,
                    kind=AnomalyKind.VALUE,
                    confidence=self._confidence(score),
                    factors=(
                        AnomalyFactor("absolute_deviation", value_anomaly_score(observation.value, mean, std)),
                        AnomalyFactor("relative_size", safe_divide(observation.value, mean))
                    )
                )
            )

        return anomalies

    def detect_spatial_anomalies(
        self,
        observations: Iterable[Observation],
        index: Optional[NeighborIndex] = None
    ) -> List[Anomaly]:
        """
        Flag observations far from their neighbors

        An observation with no neighbor inside ``isolation_radius_km`` has
        isolation 1 and is flagged. A snapshot of fewer than two observations
        has no peers to be isolated from, so it yields no spatial anomalies
        and a lone observation stays neutral.
        """
        observations = validate_observations(observations)
        if len(observations) < 2:
            return []

        index = index or NeighborIndex(observations)

        anomalies = []
        for i, observation in enumerate(observations):
            hood = index.neighborhood(i, self.isolation_radius_km)
            if hood.is_empty:
                isolation = 1.0
            else:
                isolation = isolation_score(hood.mean_distance_km(), self.isolation_scale_km)

            if isolation <= self.isolation_threshold:
                continue

            neighbor_mean = hood.mean_value(default=observation.value)
            anomalies.append(
                Anomaly(
                    observation_id=observation.id,
                    score=isolation,
                    kind=AnomalyKind.SPATIAL,
                    confidence=self._confidence(isolation),
                    factors=(
                        AnomalyFactor(
                            "value_difference",
                            abs(safe_divide(observation.value - neighbor_mean, neighbor_mean))
                        ),
                        AnomalyFactor("spatial_isolation", isolation)
                    )
                )
            )

        return anomalies

    def detect_temporal_anomalies(self, observations: Iterable[Observation]) -> List[Anomaly]:
        observations = validate_observations(observations)
        timed = sorted(
            (o for o in observations if o.timestamp is not None),
            key=lambda o: o.timestamp
        )
        if len(timed) <= self.temporal_window:
            logger.debug(
                f"Temporal detection skipped: {len(timed)} timestamped observations, "
                f"window is {self.temporal_window}"
            )
            return []

        values = np.array([o.value for o in timed], dtype=float)

        anomalies = []
        for i in range(self.temporal_window, len(timed)):
            window = values[i - self.temporal_window:i]
            current = timed[i]
            score = value_anomaly_score(current.value, float(window.mean()), float(window.std(ddof=0)))

            if score <= self.temporal_threshold:
                continue

            previous = window[-1]
            anomalies.append(
                Anomaly(
                    observation_id=current.id,
                    score=score,
                    kind=AnomalyKind.TEMPORAL,
                    confidence=self._confidence(score),
                    factors=(
                        AnomalyFactor("trend_deviation", abs(current.value - linear_projection(window))),
                        AnomalyFactor("velocity", abs(safe_divide(current.value - previous, previous)))
                    )
                )
            )

        return anomalies

    @staticmethod
    def deduplicate(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
        """Keep the highest-scoring anomaly per observation id"""
        strongest: Dict[str, Anomaly] = {}
        for anomaly in anomalies:
            existing = strongest.get(anomaly.observation_id)
            if existing is None or anomaly.score > existing.score:
                strongest[anomaly.observation_id] = anomaly

        return sorted(strongest.values(), key=lambda a: a.score, reverse=True)
