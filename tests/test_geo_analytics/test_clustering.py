"""
Tests for k-means and density clustering
"""

import numpy as np
import pytest

from geo_analytics.clustering import ClusteringEngine, density_clustering, kmeans
from geo_analytics.geo import combined_distance


def _groupings(result):
    return {frozenset(cluster.members) for cluster in result.clusters}


class TestKMeans:
    """Test k-means over the combined distance"""

    @pytest.mark.parametrize("seed", range(10))
    def test_recovers_natural_groups(self, two_groups, seed):
        """Test two tight groups are recovered for any seed"""
        result = kmeans(two_groups, k=2, rng=seed)

        assert _groupings(result) == {frozenset({"a1", "a2"}), frozenset({"b1", "b2"})}
        assert result.converged is True

    def test_input_order_does_not_matter(self, two_groups):
        """Test reversing the input gives the same groups"""
        forward = kmeans(two_groups, k=2, rng=3)
        backward = kmeans(list(reversed(two_groups)), k=2, rng=3)

        assert _groupings(forward) == _groupings(backward)

    @pytest.mark.parametrize("k", [1, 2, 3, 5, 8])
    def test_partition(self, random_snapshot, k):
        """Test clusters partition the input and never exceed k"""
        result = kmeans(random_snapshot, k=k, rng=11)

        members = [m for cluster in result.clusters for m in cluster.members]
        assert sorted(members) == sorted(o.id for o in random_snapshot)
        assert len(members) == len(set(members))
        assert len(result.clusters) <= k

    def test_same_seed_is_deterministic(self, random_snapshot):
        """Test a seeded generator gives identical assignments"""
        first = kmeans(random_snapshot, k=4, rng=np.random.default_rng(5))
        second = kmeans(random_snapshot, k=4, rng=np.random.default_rng(5))

        assert _groupings(first) == _groupings(second)

    def test_duplicate_positions(self, make_observation):
        """Test identical observations collapse into fewer clusters"""
        observations = [make_observation(f"d{i}") for i in range(3)]

        result = kmeans(observations, k=3, rng=0)

        assert len(result.clusters) == 1
        assert result.clusters[0].members == frozenset({"d0", "d1", "d2"})

    def test_centroid_and_radius(self, two_groups):
        """Test centroid is the member mean and radius covers all members"""
        result = kmeans(two_groups, k=2, rng=0)
        cluster = next(c for c in result.clusters if "a1" in c.members)

        assert cluster.centroid.value == pytest.approx(101.0)
        assert cluster.centroid.latitude == pytest.approx(40.00025)
        assert 0 < cluster.radius_km < 0.1

    def test_cluster_ids(self, two_groups):
        """Test ids are sequential"""
        result = kmeans(two_groups, k=2, rng=0)

        assert sorted(c.cluster_id for c in result.clusters) == ["kmeans_0", "kmeans_1"]

    def test_empty_input(self):
        """Test no observations give no clusters"""
        result = kmeans([], k=3)

        assert result.clusters == ()
        assert result.iterations == 0

    @pytest.mark.parametrize("k", [0, -2])
    def test_invalid_k(self, two_groups, k):
        """Test non-positive k raises"""
        with pytest.raises(ValueError):
            kmeans(two_groups, k=k)

    def test_invalid_max_iterations(self, two_groups):
        """Test max_iterations must be at least one"""
        with pytest.raises(ValueError):
            kmeans(two_groups, k=2, max_iterations=0)

    def test_iteration_cap(self, random_snapshot):
        """Test the iteration cap bounds the run"""
        result = kmeans(random_snapshot, k=5, max_iterations=1, rng=0)

        assert result.iterations == 1


class TestDensityClustering:
    """Test density-based clustering"""

    @pytest.fixture
    def dense_and_sparse(self, make_observation):
        """Two dense blocks plus scattered singletons."""
        observations = []
        for block, (lat, lon) in enumerate([(40.0, -74.0), (40.2, -74.2)]):
            for i in range(6):
                observations.append(
                    make_observation(
                        f"b{block}_{i}",
                        value=100.0 + i,
                        latitude=lat + 0.0005 * i,
                        longitude=lon
                    )
                )
        for i in range(3):
            observations.append(
                make_observation(f"lone{i}", value=100.0, latitude=41.0 + i, longitude=-75.0)
            )
        return observations

    def test_finds_dense_blocks(self, dense_and_sparse):
        """Test each dense block forms one cluster"""
        result = density_clustering(dense_and_sparse, eps=0.5, min_points=3)

        assert len(result.clusters) == 2
        assert set(result.noise) == {"lone0", "lone1", "lone2"}

    def test_members_are_dense(self, dense_and_sparse):
        """Test every clustered point has at least min_points - 1 neighbors within eps"""
        eps, min_points = 0.5, 3
        result = density_clustering(dense_and_sparse, eps=eps, min_points=min_points)
        by_id = {o.id: o for o in dense_and_sparse}

        for cluster in result.clusters:
            for member in cluster.members:
                neighbors = [
                    o for o in dense_and_sparse
                    if o.id != member and combined_distance(by_id[member], o) <= eps
                ]
                assert len(neighbors) >= min_points - 1

    def test_noise_and_clusters_are_disjoint(self, dense_and_sparse):
        """Test every observation is either clustered or noise, never both"""
        result = density_clustering(dense_and_sparse, eps=0.5, min_points=3)

        clustered = [m for c in result.clusters for m in c.members]
        assert len(clustered) + len(result.noise) == len(dense_and_sparse)
        assert not set(clustered) & set(result.noise)

    def test_single_observation_is_noise(self, make_observation):
        """Test a lone observation cannot form a cluster"""
        result = density_clustering([make_observation("solo")], eps=0.5, min_points=1)

        assert result.clusters == ()
        assert result.noise == ("solo",)

    def test_invalid_parameters(self, dense_and_sparse):
        """Test eps and min_points are validated"""
        with pytest.raises(ValueError):
            density_clustering(dense_and_sparse, eps=0.0)
        with pytest.raises(ValueError):
            density_clustering(dense_and_sparse, min_points=0)


class TestClusteringEngine:
    """Test the configured clustering front end"""

    def test_k_is_clamped_to_snapshot_size(self, two_groups):
        """Test k larger than n still partitions the input"""
        engine = ClusteringEngine(k=10, random_seed=1)

        result = engine.kmeans(two_groups)

        assert 1 <= len(result.clusters) <= len(two_groups)

    def test_seed_is_reused(self, random_snapshot):
        """Test the configured seed makes runs repeatable"""
        engine = ClusteringEngine(k=4, random_seed=21)

        assert _groupings(engine.kmeans(random_snapshot)) == _groupings(engine.kmeans(random_snapshot))

    def test_density_uses_configured_parameters(self, two_groups):
        """Test density clustering with engine defaults"""
        engine = ClusteringEngine(eps_km=1.0, min_points=1)

        result = engine.density(two_groups)

        assert {frozenset(c.members) for c in result.clusters} == {
            frozenset({"a1", "a2"}),
            frozenset({"b1", "b2"})
        }
