"""
Tests for the end-to-end Geo Analytics Engine
"""

import json
from dataclasses import replace
from datetime import datetime

import pytest

from geo_analytics import (
    AnomalyDetector,
    ClusteringEngine,
    DensityClusteringResult,
    GeoAnalyticsEngine,
    KMeansResult,
    ObservationValidationError,
    SpatialStatistics,
    TemporalTrendEngine,
    distribution_metrics,
    hotspot_score,
    local_autocorrelation,
)


class TestSingleObservation:
    """Test every operation on a one-observation snapshot"""

    @pytest.fixture
    def solo(self, make_observation):
        return [make_observation("solo", value=300000.0, timestamp=datetime(2024, 5, 17))]

    def test_clustering(self, solo):
        """Test clustering degrades to one cluster and pure noise"""
        engine = ClusteringEngine(k=3, random_seed=0)

        kmeans_result = engine.kmeans(solo)
        density_result = engine.density(solo)

        assert len(kmeans_result.clusters) == 1
        assert kmeans_result.clusters[0].members == frozenset({"solo"})
        assert kmeans_result.clusters[0].radius_km == 0.0
        assert density_result.clusters == ()
        assert density_result.noise == ("solo",)

    def test_spatial_statistics(self, solo):
        """Test spatial statistics are neutral"""
        stats = SpatialStatistics()

        assert hotspot_score(solo[0], solo).z_score == 0.0
        assert local_autocorrelation(solo[0], solo).correlation == 0.0
        assert stats.hotspots(solo)[0].confidence == 0.0
        assert stats.outliers(solo)[0].is_outlier is False
        assert stats.global_autocorrelation(solo) == 0.0

    def test_anomalies(self, solo):
        """Test no anomalies are reported"""
        assert AnomalyDetector().detect(solo) == []

    def test_trends(self, solo):
        """Test a single bucket yields a flat forecast"""
        analysis = TemporalTrendEngine(bucket_width="month").analyze(solo)

        assert len(analysis.points) == 1
        assert analysis.points[0].trend_pct == 0.0
        assert analysis.seasonality == 0.0
        assert analysis.breakpoints == ()
        assert analysis.overall_trend == 0.0
        assert all(p.mean_value == pytest.approx(300000.0) for p in analysis.forecast)
        assert analysis.decomposition.trend == (300000.0,)

    def test_distribution(self, solo):
        """Test distribution metrics of one value"""
        metrics = distribution_metrics(solo)

        assert metrics.count == 1
        assert metrics.std == 0.0
        assert metrics.value_at_risk == 300000.0

    def test_engine(self, solo):
        """Test the full engine returns a well-formed report"""
        report = GeoAnalyticsEngine(random_seed=0).analyze(solo)

        assert report.observation_count == 1
        assert len(report.kmeans.clusters) == 1
        assert report.anomalies == ()
        assert len(report.hotspots) == 1
        assert report.trends.points[0].count == 1


class TestGeoAnalyticsEngine:
    """Test the orchestrated engine"""

    def test_report_contents(self, value_outlier_snapshot):
        """Test every component contributes to the report"""
        engine = GeoAnalyticsEngine(k=2, random_seed=1)

        report = engine.analyze(value_outlier_snapshot)

        assert report.report_id.startswith("geo_report_")
        assert report.observation_count == 21
        assert len(report.hotspots) == 21
        assert len(report.autocorrelation) == 21
        assert [o.observation_id for o in report.outliers if o.is_outlier] == ["spike"]
        assert report.anomalies[0].observation_id == "spike"
        assert report.distribution.count == 21
        assert report.metadata["parameters"]["k"] == 2

    def test_kmeans_partition_in_report(self, random_snapshot):
        """Test the report's k-means clusters partition the snapshot"""
        report = GeoAnalyticsEngine(k=4, random_seed=3).analyze(random_snapshot)

        members = sorted(m for c in report.kmeans.clusters for m in c.members)
        assert members == sorted(o.id for o in random_snapshot)

    def test_engine_keeps_no_history(self, two_groups):
        """Test each run returns an independent report"""
        engine = GeoAnalyticsEngine(random_seed=0)

        first = engine.analyze(two_groups)
        second = engine.analyze(two_groups)

        assert first.report_id != second.report_id
        assert not hasattr(engine, "history")

    def test_accepts_mappings(self):
        """Test plain records are validated into observations"""
        records = [
            {"id": 1, "value": 100.0, "latitude": 40.0, "longitude": -74.0},
            {"id": 2, "value": 110.0, "latitude": 40.001, "longitude": -74.0},
        ]

        report = GeoAnalyticsEngine(random_seed=0).analyze(records)

        assert {h.observation_id for h in report.hotspots} == {"1", "2"}

    def test_invalid_records_rejected_before_analysis(self):
        """Test malformed input raises a typed error"""
        records = [{"id": "bad", "value": 100.0, "latitude": 123.0, "longitude": 0.0}]

        with pytest.raises(ObservationValidationError):
            GeoAnalyticsEngine().analyze(records)

    def test_rng_override(self, random_snapshot):
        """Test an explicit rng makes runs repeatable"""
        engine = GeoAnalyticsEngine(k=3)

        first = engine.analyze(random_snapshot, rng=9)
        second = engine.analyze(random_snapshot, rng=9)

        assert {c.members for c in first.kmeans.clusters} == {c.members for c in second.kmeans.clusters}


class TestReportRendering:
    """Test report serialization"""

    def test_to_json(self, monthly_snapshot):
        """Test reports serialize to valid JSON"""
        report = GeoAnalyticsEngine(random_seed=0).analyze(monthly_snapshot)

        data = json.loads(report.to_json())

        assert data["report_id"] == report.report_id
        assert data["trends"]["bucket_width"] == "month"
        assert len(data["trends"]["points"]) == 24
        assert isinstance(data["kmeans"]["clusters"][0]["members"], list)

    def test_to_markdown(self, value_outlier_snapshot):
        """Test the markdown summary lists the key sections"""
        report = GeoAnalyticsEngine(random_seed=0).analyze(value_outlier_snapshot)

        md = report.to_markdown()

        assert md.startswith("# Geo Analytics Report")
        assert report.report_id in md
        assert "## Anomalies" in md
        assert "spike" in md
        assert "No timestamped observations." in md

    def test_markdown_lists_density_clusters_without_kmeans(self, two_groups):
        """Test density clusters are rendered even when k-means found none"""
        report = GeoAnalyticsEngine(k=2, random_seed=0).analyze(two_groups)
        density_only = replace(
            report,
            kmeans=KMeansResult(clusters=(), iterations=0, converged=True),
            density=DensityClusteringResult(clusters=report.kmeans.clusters, noise=())
        )

        md = density_only.to_markdown()

        assert "No clusters." not in md
        assert report.kmeans.clusters[0].cluster_id in md
