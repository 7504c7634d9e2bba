"""
Geography-aware clustering of valued observations
k-means and density-based clustering over a combined distance:
great-circle km inflated by the relative value difference
"""

import logging
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
from sklearn.cluster import DBSCAN

from .config import AnalyticsConfig
from .geo import combined_distance_matrix, haversine_distance
from .models import (
    Centroid,
    Cluster,
    DensityClusteringResult,
    KMeansResult,
    Observation
)
from .validation import validate_observations

logger = logging.getLogger(__name__)

RandomSource = Union[None, int, np.random.Generator]


def _features(observations: Sequence[Observation]) -> np.ndarray:
    """(value, latitude, longitude) matrix"""
    return np.array(
        [[o.value, o.latitude, o.longitude] for o in observations],
        dtype=float
    ).reshape(-1, 3)


def _distances(points: np.ndarray, centres: np.ndarray) -> np.ndarray:
    return combined_distance_matrix(
        points[:, 1], points[:, 2], points[:, 0],
        centres[:, 1], centres[:, 2], centres[:, 0]
    )


def _build_cluster(
    cluster_id: str,
    observations: Sequence[Observation],
    features: np.ndarray,
    member_mask: np.ndarray
) -> Cluster:
    """Create a Cluster from a boolean member mask"""
    members = features[member_mask]
    centre = members.mean(axis=0)
    radius = haversine_distance(centre[1], centre[2], members[:, 1], members[:, 2])

    return Cluster(
        cluster_id=cluster_id,
        members=frozenset(o.id for o, keep in zip(observations, member_mask) if keep),
        centroid=Centroid(
            value=float(centre[0]),
            latitude=float(centre[1]),
            longitude=float(centre[2])
        ),
        radius_km=float(np.max(radius)) if radius.size else 0.0
    )


def seed_centroids(features: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Pick up to k seed centroids (k-means++ over the combined distance)

    Seeds are drawn without replacement. A candidate's probability is
    proportional to its squared distance from the nearest seed so far, which
    means an exact duplicate of a chosen seed can never be chosen again. When
    the snapshot has fewer than k distinct positions, fewer seeds are returned.
    """
    n = len(features)
    first = int(rng.integers(n))
    chosen = [first]
    nearest = _distances(features, features[[first]])[:, 0] ** 2

    while len(chosen) < k:
        total = nearest.sum()
        if total <= 0:
            logger.debug(f"Only {len(chosen)} distinct positions available for k={k}")
            break
        candidate = int(rng.choice(n, p=nearest / total))
        chosen.append(candidate)
        nearest = np.minimum(nearest, _distances(features, features[[candidate]])[:, 0] ** 2)

    return features[chosen].copy()


def kmeans(
    observations: Iterable[Observation],
    k: Optional[int] = None,
    max_iterations: Optional[int] = None,
    rng: RandomSource = None
) -> KMeansResult:
    """
    k-means clustering over the combined geo+value distance

    Args:
        observations: Observation snapshot
        k: Number of clusters (clamped to the number of observations)
        max_iterations: Iteration cap (default 100)
        rng: Seed or numpy Generator used for centroid seeding

    Returns:
        KMeansResult whose clusters partition the input
    """
    observations = validate_observations(observations)
    k = AnalyticsConfig.KMEANS_CLUSTERS if k is None else k
    max_iterations = AnalyticsConfig.KMEANS_MAX_ITERATIONS if max_iterations is None else max_iterations

    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")

    n = len(observations)
    if n == 0:
        return KMeansResult(clusters=(), iterations=0, converged=True)

    generator = np.random.default_rng(rng)
    features = _features(observations)
    centroids = seed_centroids(features, min(k, n), generator)

    labels: Optional[np.ndarray] = None
    converged = False
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        assignment = np.argmin(_distances(features, centroids), axis=1)

        if labels is not None and np.array_equal(assignment, labels):
            converged = True
            break

        labels = assignment
        for j in range(len(centroids)):
            members = labels == j
            # An emptied cluster keeps its previous centroid
            if members.any():
                centroids[j] = features[members].mean(axis=0)

    clusters: List[Cluster] = []
    for j in range(len(centroids)):
        members = labels == j
        if members.any():
            clusters.append(
                _build_cluster(f"kmeans_{len(clusters)}", observations, features, members)
            )

    logger.info(
        f"k-means: {len(clusters)} cluster(s) from {n} observations "
        f"in {iterations} iteration(s), converged={converged}"
    )

    return KMeansResult(clusters=tuple(clusters), iterations=iterations, converged=converged)


def density_clustering(
    observations: Iterable[Observation],
    eps: Optional[float] = None,
    min_points: Optional[int] = None
) -> DensityClusteringResult:
    """
    Density-based clustering over the combined geo+value distance

    A point is a core point when at least ``min_points`` other points lie
    within ``eps``. Clusters are the density-connected groups of core points.
    Every other point, including border points of a cluster, is reported in
    ``noise`` (the DBSCAN* convention), so each clustered point is itself
    dense.

    Args:
        observations: Observation snapshot
        eps: Neighborhood radius in combined-distance units (km)
        min_points: Minimum number of neighbors, excluding the point itself

    Returns:
        DensityClusteringResult with clusters and noise ids kept apart
    """
    observations = validate_observations(observations)
    eps = AnalyticsConfig.DBSCAN_EPS_KM if eps is None else eps
    min_points = AnalyticsConfig.DBSCAN_MIN_POINTS if min_points is None else min_points

    if eps <= 0:
        raise ValueError(f"eps must be positive, got {eps}")
    if min_points < 1:
        raise ValueError(f"min_points must be at least 1, got {min_points}")

    if not observations:
        return DensityClusteringResult(clusters=(), noise=())

    features = _features(observations)
    distances = _distances(features, features)

    # scikit-learn counts the point itself towards min_samples
    model = DBSCAN(eps=eps, min_samples=min_points + 1, metric="precomputed")
    model.fit(distances)

    labels = model.labels_.copy()
    is_core = np.zeros(len(observations), dtype=bool)
    is_core[model.core_sample_indices_] = True
    labels[~is_core] = -1

    clusters: List[Cluster] = []
    seen_labels: List[int] = []
    for label in labels:
        if label != -1 and label not in seen_labels:
            seen_labels.append(label)

    for label in seen_labels:
        clusters.append(
            _build_cluster(f"density_{len(clusters)}", observations, features, labels == label)
        )

    noise = tuple(o.id for o, label in zip(observations, labels) if label == -1)

    logger.info(
        f"Density clustering: {len(clusters)} cluster(s), {len(noise)} noise point(s) "
        f"(eps={eps}, min_points={min_points})"
    )

    return DensityClusteringResult(clusters=tuple(clusters), noise=noise)


class ClusteringEngine:
    """
    Clustering with configured defaults

    Holds only parameters; every call recomputes from the snapshot it is given.
    """

    def __init__(
        self,
        k: int = AnalyticsConfig.KMEANS_CLUSTERS,
        max_iterations: int = AnalyticsConfig.KMEANS_MAX_ITERATIONS,
        eps_km: float = AnalyticsConfig.DBSCAN_EPS_KM,
        min_points: int = AnalyticsConfig.DBSCAN_MIN_POINTS,
        random_seed: Optional[int] = AnalyticsConfig.RANDOM_SEED
    ):
        """
        Initialize clustering engine

        Args:
            k: Number of k-means clusters
            max_iterations: k-means iteration cap
            eps_km: Density neighborhood radius
            min_points: Density core threshold (neighbors, excluding self)
            random_seed: Default seed for k-means seeding (None for entropy)
        """
        self.k = k
        self.max_iterations = max_iterations
        self.eps_km = eps_km
        self.min_points = min_points
        self.random_seed = random_seed

    def kmeans(
        self,
        observations: Iterable[Observation],
        k: Optional[int] = None,
        rng: RandomSource = None
    ) -> KMeansResult:
        observations = validate_observations(observations)
        k = self.k if k is None else k
        return kmeans(
            observations,
            k=min(k, max(len(observations), 1)),
            max_iterations=self.max_iterations,
            rng=self.random_seed if rng is None else rng
        )

    def density(self, observations: Iterable[Observation]) -> DensityClusteringResult:
        return density_clustering(observations, eps=self.eps_km, min_points=self.min_points)
