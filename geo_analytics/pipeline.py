"""
Main Geo Analytics Engine
Orchestrates validation, clustering, spatial statistics, anomaly detection,
distribution metrics and trend analysis over one observation snapshot
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from .anomaly_detection import AnomalyDetector
from .clustering import ClusteringEngine, RandomSource
from .config import AnalyticsConfig
from .distribution import distribution_metrics
from .geo import NeighborIndex
from .models import AnalysisReport, BucketWidth, Observation
from .spatial_statistics import SpatialStatistics
from .temporal_trends import TemporalTrendEngine
from .validation import validate_observations

logger = logging.getLogger(__name__)


class GeoAnalyticsEngine:
    """
    End-to-end analysis of a geolocated value snapshot

    Workflow:
    1. Validate observations at the boundary
    2. k-means and density clustering over geo+value distance
    3. Local hotspots, local/global autocorrelation and global outliers
    4. Value distribution metrics
    5. Value, spatial and temporal anomaly detection
    6. Time-bucketed trend analysis with forecast

    The engine keeps no results between calls; every run returns a new
    AnalysisReport owned by the caller.
    """

    def __init__(
        self,
        # Clustering parameters
        k: int = AnalyticsConfig.KMEANS_CLUSTERS,
        max_iterations: int = AnalyticsConfig.KMEANS_MAX_ITERATIONS,
        eps_km: float = AnalyticsConfig.DBSCAN_EPS_KM,
        min_points: int = AnalyticsConfig.DBSCAN_MIN_POINTS,
        random_seed: Optional[int] = AnalyticsConfig.RANDOM_SEED,

        # Spatial statistics parameters
        spatial_radius_km: float = AnalyticsConfig.SPATIAL_RADIUS_KM,
        outlier_threshold: float = AnalyticsConfig.OUTLIER_ZSCORE_THRESHOLD,

        # Anomaly detection parameters
        value_threshold: float = AnalyticsConfig.VALUE_ZSCORE_THRESHOLD,
        isolation_threshold: float = AnalyticsConfig.ISOLATION_THRESHOLD,
        isolation_radius_km: float = AnalyticsConfig.ISOLATION_RADIUS_KM,
        temporal_window: int = AnalyticsConfig.TEMPORAL_WINDOW_SIZE,
        temporal_threshold: float = AnalyticsConfig.TEMPORAL_THRESHOLD,

        # Trend parameters
        bucket_width: Union[str, BucketWidth] = AnalyticsConfig.BUCKET_WIDTH,
        forecast_horizon: int = AnalyticsConfig.FORECAST_HORIZON
    ):
        """
        Initialize engine

        Args:
            k: Number of k-means clusters
            max_iterations: k-means iteration cap
            eps_km: Density clustering radius
            min_points: Density clustering core threshold
            random_seed: Default seed for k-means seeding
            spatial_radius_km: Neighborhood radius for local statistics
            outlier_threshold: |z| above which a value is a global outlier
            value_threshold: |z| above which a value is anomalous
            isolation_threshold: Isolation score above which a location is anomalous
            isolation_radius_km: Neighbor search radius for isolation
            temporal_window: Preceding observations used by temporal detection
            temporal_threshold: Window z-score above which a value is anomalous
            bucket_width: Trend bucket width (day, week, month, year)
            forecast_horizon: Number of forecast buckets
        """
        self.clustering = ClusteringEngine(
            k=k,
            max_iterations=max_iterations,
            eps_km=eps_km,
            min_points=min_points,
            random_seed=random_seed
        )
        self.spatial_statistics = SpatialStatistics(
            radius_km=spatial_radius_km,
            outlier_threshold=outlier_threshold
        )
        self.anomaly_detector = AnomalyDetector(
            value_threshold=value_threshold,
            isolation_threshold=isolation_threshold,
            isolation_radius_km=isolation_radius_km,
            temporal_window=temporal_window,
            temporal_threshold=temporal_threshold
        )
        self.trend_engine = TemporalTrendEngine(
            bucket_width=bucket_width,
            forecast_horizon=forecast_horizon
        )

    def parameters(self) -> Dict[str, Any]:
        """Parameters used by this engine, recorded in each report"""
        return {
            "k": self.clustering.k,
            "max_iterations": self.clustering.max_iterations,
            "eps_km": self.clustering.eps_km,
            "min_points": self.clustering.min_points,
            "random_seed": self.clustering.random_seed,
            "spatial_radius_km": self.spatial_statistics.radius_km,
            "outlier_threshold": self.spatial_statistics.outlier_threshold,
            "value_threshold": self.anomaly_detector.value_threshold,
            "isolation_threshold": self.anomaly_detector.isolation_threshold,
            "isolation_radius_km": self.anomaly_detector.isolation_radius_km,
            "temporal_window": self.anomaly_detector.temporal_window,
            "temporal_threshold": self.anomaly_detector.temporal_threshold,
            "bucket_width": self.trend_engine.bucket_width.value,
            "forecast_horizon": self.trend_engine.forecast_horizon
        }

    def analyze(
        self,
        observations: Iterable[Observation],
        rng: RandomSource = None
    ) -> AnalysisReport:
        """
        Run every analysis over one snapshot

        Args:
            observations: Observation instances or mappings with the same fields
            rng: Seed or numpy Generator for k-means seeding (overrides random_seed)

        Returns:
            AnalysisReport

        Raises:
            ObservationValidationError: If any record is malformed
        """
        logger.info("=" * 60)
        logger.info("GEO ANALYTICS RUN")
        logger.info("=" * 60)

        logger.info("[Step 1/6] Validating observations...")
        observations = validate_observations(observations)
        logger.info(f"  {len(observations)} valid observations")

        logger.info("[Step 2/6] Clustering...")
        kmeans_result = self.clustering.kmeans(observations, rng=rng)
        density_result = self.clustering.density(observations)

        logger.info("[Step 3/6] Computing spatial statistics...")
        index = NeighborIndex(observations)
        hotspots = self.spatial_statistics.hotspots(observations, index=index)
        autocorrelation = self.spatial_statistics.autocorrelation(observations, index=index)
        outliers = self.spatial_statistics.outliers(observations)
        global_autocorrelation = self.spatial_statistics.global_autocorrelation(observations)

        logger.info("[Step 4/6] Computing distribution metrics...")
        distribution = distribution_metrics(observations)

        logger.info("[Step 5/6] Detecting anomalies...")
        anomalies = self.anomaly_detector.detect(observations, index=index)

        logger.info("[Step 6/6] Analyzing temporal trends...")
        trends = self.trend_engine.analyze(observations)

        generated_at = datetime.now(timezone.utc)
        report = AnalysisReport(
            report_id=f"geo_report_{generated_at.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}",
            generated_at=generated_at,
            observation_count=len(observations),
            kmeans=kmeans_result,
            density=density_result,
            hotspots=tuple(hotspots),
            autocorrelation=tuple(autocorrelation),
            outliers=tuple(outliers),
            global_autocorrelation=global_autocorrelation,
            distribution=distribution,
            anomalies=tuple(anomalies),
            trends=trends,
            metadata={"parameters": self.parameters()}
        )

        logger.info(f"Run complete: {report.report_id} ({len(report.anomalies)} anomalies)")
        return report
