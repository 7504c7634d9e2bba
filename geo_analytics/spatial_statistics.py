"""
Spatial Statistics
Local hotspot scoring, local and global spatial autocorrelation, and
population outlier scoring
"""

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from .config import AnalyticsConfig
from .geo import NeighborIndex, haversine_distance, neighbors_within
from .models import (
    AutocorrelationResult,
    HotspotResult,
    Observation,
    OutlierResult,
    SpatialPattern
)
from .scoring import population_zscores, safe_divide, two_sided_confidence
from .validation import validate_observations

logger = logging.getLogger(__name__)

# Co-located points would otherwise get an infinite inverse-distance weight
MIN_WEIGHT_DISTANCE_KM = 0.001


def _hotspot(observation: Observation, neighbor_values: np.ndarray) -> HotspotResult:
    local_mean = float(neighbor_values.mean()) if neighbor_values.size else observation.value
    z_score = safe_divide(observation.value - local_mean, local_mean)
    return HotspotResult(
        observation_id=observation.id,
        local_mean=local_mean,
        z_score=z_score,
        confidence=two_sided_confidence(z_score),
        neighbor_count=int(neighbor_values.size)
    )


def hotspot_score(
    observation: Observation,
    observations: Sequence[Observation],
    radius_km: float = AnalyticsConfig.SPATIAL_RADIUS_KM
) -> HotspotResult:
    """
    Getis-Ord style local score of one observation

    z = (value - local_mean) / local_mean where local_mean is the mean value of
    the neighbors within ``radius_km``. An isolated observation is its own local
    mean and scores zero. Confidence is 2 * Phi(|z|) - 1.
    """
    neighbors = neighbors_within(observation, observations, radius_km)
    return _hotspot(observation, np.array([n.value for n in neighbors], dtype=float))


def classify_pattern(
    correlation: float,
    threshold: float = AnalyticsConfig.AUTOCORRELATION_CLUSTER_THRESHOLD
) -> SpatialPattern:
    if correlation > threshold:
        return SpatialPattern.CLUSTER
    if correlation < -threshold:
        return SpatialPattern.DISPERSED
    return SpatialPattern.RANDOM


def _inverse_distance_correlation(
    value: float,
    neighbor_values: np.ndarray,
    distances_km: np.ndarray
) -> float:
    if neighbor_values.size == 0:
        return 0.0
    weights = 1.0 / np.maximum(distances_km, MIN_WEIGHT_DISTANCE_KM)
    weighted_mean = float(np.sum(weights * neighbor_values) / weights.sum())
    return safe_divide(weighted_mean, value)


def local_autocorrelation(
    observation: Observation,
    neighbors: Sequence[Observation]
) -> AutocorrelationResult:
    """
    Inverse-distance-weighted neighbor mean relative to the observation's value

    Classified as cluster (> 0.5), dispersed (< -0.5) or random.
    """
    others = [n for n in neighbors if n.id != observation.id]
    if others:
        distances = haversine_distance(
            observation.latitude,
            observation.longitude,
            np.array([n.latitude for n in others]),
            np.array([n.longitude for n in others])
        )
    else:
        distances = np.empty(0)

    correlation = _inverse_distance_correlation(
        observation.value,
        np.array([n.value for n in others], dtype=float),
        np.asarray(distances, dtype=float)
    )
    return AutocorrelationResult(
        observation_id=observation.id,
        correlation=correlation,
        pattern=classify_pattern(correlation)
    )


def global_outliers(
    observations: Iterable[Observation],
    threshold: float = AnalyticsConfig.OUTLIER_ZSCORE_THRESHOLD
) -> List[OutlierResult]:
    """Population z-score of every observation; |z| > threshold flags an outlier"""
    observations = validate_observations(observations)
    z_scores, _, _ = population_zscores(np.array([o.value for o in observations], dtype=float))
    return [
        OutlierResult(
            observation_id=o.id,
            z_score=float(z),
            is_outlier=bool(abs(z) > threshold)
        )
        for o, z in zip(observations, z_scores)
    ]


def global_spatial_autocorrelation(observations: Iterable[Observation]) -> float:
    """
    Inverse-distance weighted, Moran-style autocorrelation over all pairs

    Returns 0 for fewer than two observations or a constant value field.
    """
    observations = validate_observations(observations)
    n = len(observations)
    if n < 2:
        return 0.0

    values = np.array([o.value for o in observations], dtype=float)
    deviations = values - values.mean()
    variance = float(np.mean(deviations ** 2))
    if variance == 0:
        return 0.0

    lats = np.array([o.latitude for o in observations])
    lons = np.array([o.longitude for o in observations])
    distances = haversine_distance(lats[:, None], lons[:, None], lats[None, :], lons[None, :])

    upper = np.triu_indices(n, k=1)
    weights = 1.0 / np.maximum(distances[upper], MIN_WEIGHT_DISTANCE_KM)
    weighted = np.sum(weights * deviations[upper[0]] * deviations[upper[1]])

    return safe_divide(float(weighted), float(weights.sum()) * variance)


class SpatialStatistics:
    """
    Batch spatial statistics over one snapshot

    Builds a single NeighborIndex per call and reuses it for every observation.
    """

    def __init__(
        self,
        radius_km: float = AnalyticsConfig.SPATIAL_RADIUS_KM,
        outlier_threshold: float = AnalyticsConfig.OUTLIER_ZSCORE_THRESHOLD
    ):
        """
        Initialize spatial statistics

        Args:
            radius_km: Neighborhood radius for local statistics
            outlier_threshold: |z| above which a value is a global outlier
        """
        if radius_km < 0:
            raise ValueError(f"radius_km must be non-negative, got {radius_km}")
        self.radius_km = radius_km
        self.outlier_threshold = outlier_threshold

    def hotspots(
        self,
        observations: Iterable[Observation],
        index: Optional[NeighborIndex] = None
    ) -> List[HotspotResult]:
        observations = validate_observations(observations)
        index = index or NeighborIndex(observations)
        results = [
            _hotspot(o, index.neighborhood(i, self.radius_km).neighbor_values)
            for i, o in enumerate(observations)
        ]
        logger.info(
            f"Hotspots: {sum(1 for r in results if r.z_score > 0)} of {len(results)} "
            f"observations above their local mean (radius={self.radius_km} km)"
        )
        return results

    def autocorrelation(
        self,
        observations: Iterable[Observation],
        index: Optional[NeighborIndex] = None
    ) -> List[AutocorrelationResult]:
        observations = validate_observations(observations)
        index = index or NeighborIndex(observations)
        results = []
        for i, o in enumerate(observations):
            hood = index.neighborhood(i, self.radius_km)
            correlation = _inverse_distance_correlation(o.value, hood.neighbor_values, hood.distances_km)
            results.append(
                AutocorrelationResult(
                    observation_id=o.id,
                    correlation=correlation,
                    pattern=classify_pattern(correlation)
                )
            )
        return results

    def outliers(self, observations: Iterable[Observation]) -> List[OutlierResult]:
        results = global_outliers(observations, threshold=self.outlier_threshold)
        logger.info(f"Global outliers: {sum(r.is_outlier for r in results)} of {len(results)}")
        return results

    def global_autocorrelation(self, observations: Iterable[Observation]) -> float:
        return global_spatial_autocorrelation(observations)
