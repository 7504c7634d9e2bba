"""
Great-circle distance and radius neighbor lookup
Shared by clustering, spatial statistics and spatial anomaly detection
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from sklearn.neighbors import BallTree

from .models import Observation

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1, lon1, lat2, lon2):
    """
    Calculate great circle distance between two points in km

    Accepts scalars or numpy arrays (broadcast elementwise).

    Args:
        lat1, lon1: First point coordinates
        lat2, lon2: Second point coordinates

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))

    return EARTH_RADIUS_KM * c


def distance(a: Observation, b: Observation) -> float:
    """Great-circle distance between two observations in km"""
    return float(haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude))


def value_penalty(value_a, value_b):
    """Value difference relative to the larger of the two values"""
    larger = np.maximum(value_a, value_b)
    diff = np.abs(np.asarray(value_a, dtype=float) - np.asarray(value_b, dtype=float))
    return np.divide(diff, larger, out=np.zeros_like(diff, dtype=float), where=larger > 0)


def combined_distance(a: Observation, b: Observation) -> float:
    """Geographic distance inflated by the relative value difference"""
    return float(distance(a, b) * (1.0 + value_penalty(a.value, b.value)))


def combined_distance_matrix(
    latitudes_a: np.ndarray,
    longitudes_a: np.ndarray,
    values_a: np.ndarray,
    latitudes_b: np.ndarray,
    longitudes_b: np.ndarray,
    values_b: np.ndarray
) -> np.ndarray:
    """Pairwise combined distances, shape (len(a), len(b))"""
    geo = haversine_distance(
        np.asarray(latitudes_a, dtype=float)[:, None],
        np.asarray(longitudes_a, dtype=float)[:, None],
        np.asarray(latitudes_b, dtype=float)[None, :],
        np.asarray(longitudes_b, dtype=float)[None, :]
    )
    penalty = value_penalty(
        np.asarray(values_a, dtype=float)[:, None],
        np.asarray(values_b, dtype=float)[None, :]
    )
    return geo * (1.0 + penalty)


def neighbors_within(
    observation: Observation,
    observations: Sequence[Observation],
    radius_km: float
) -> List[Observation]:
    """All other observations within ``radius_km`` of ``observation``"""
    if radius_km < 0:
        raise ValueError(f"radius_km must be non-negative, got {radius_km}")
    others = [o for o in observations if o.id != observation.id]
    if not others:
        return []
    distances = haversine_distance(
        observation.latitude,
        observation.longitude,
        np.array([o.latitude for o in others]),
        np.array([o.longitude for o in others])
    )
    return [o for o, d in zip(others, distances) if d <= radius_km]


@dataclass(frozen=True)
class Neighborhood:
    """Neighbors of one observation within a search radius"""
    index: int
    neighbor_indices: np.ndarray
    distances_km: np.ndarray
    neighbor_values: np.ndarray

    @property
    def size(self) -> int:
        return int(self.neighbor_indices.size)

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    def mean_value(self, default: float) -> float:
        return float(self.neighbor_values.mean()) if self.size else default

    def mean_distance_km(self) -> float:
        return float(self.distances_km.mean()) if self.size else 0.0


class NeighborIndex:
    """
    Radius lookup over a fixed snapshot

    Backed by a haversine ``BallTree`` so queries stay sub-quadratic as the
    snapshot grows. Neighbor sets never include the queried observation.
    """

    def __init__(self, observations: Sequence[Observation]):
        self.observations: Tuple[Observation, ...] = tuple(observations)
        self._positions = {o.id: i for i, o in enumerate(self.observations)}
        self.values = np.array([o.value for o in self.observations], dtype=float)
        self._coords = np.radians(
            np.array([[o.latitude, o.longitude] for o in self.observations], dtype=float).reshape(-1, 2)
        )
        self._tree = BallTree(self._coords, metric="haversine") if self.observations else None

    def __len__(self) -> int:
        return len(self.observations)

    def position(self, observation: Observation) -> int:
        try:
            return self._positions[observation.id]
        except KeyError:
            raise ValueError(f"Observation {observation.id!r} is not part of this index") from None

    def neighborhood(self, index: int, radius_km: float) -> Neighborhood:
        """Neighbors of the observation at ``index`` within ``radius_km``"""
        if radius_km < 0:
            raise ValueError(f"radius_km must be non-negative, got {radius_km}")

        indices, distances = self._tree.query_radius(
            self._coords[index:index + 1],
            r=radius_km / EARTH_RADIUS_KM,
            return_distance=True
        )
        indices, distances = indices[0], distances[0] * EARTH_RADIUS_KM

        keep = indices != index
        indices, distances = indices[keep], distances[keep]
        order = np.argsort(indices, kind="stable")
        indices, distances = indices[order], distances[order]

        return Neighborhood(
            index=index,
            neighbor_indices=indices,
            distances_km=distances,
            neighbor_values=self.values[indices]
        )

    def neighbors_within(self, observation: Observation, radius_km: float) -> List[Observation]:
        hood = self.neighborhood(self.position(observation), radius_km)
        return [self.observations[i] for i in hood.neighbor_indices]
