"""
Configuration for the Geospatial Value Analytics Engine
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class AnalyticsConfig:
    """Default parameters for every analysis; engines accept per-call overrides"""

    # ═══════════════════════════════════════════════════════════
    # Clustering Parameters
    # ═══════════════════════════════════════════════════════════
    KMEANS_CLUSTERS = int(os.getenv("KMEANS_CLUSTERS", "3"))
    KMEANS_MAX_ITERATIONS = int(os.getenv("KMEANS_MAX_ITERATIONS", "100"))
    RANDOM_SEED: Optional[int] = _optional_int("RANDOM_SEED")

    DBSCAN_EPS_KM = float(os.getenv("DBSCAN_EPS_KM", "0.5"))
    DBSCAN_MIN_POINTS = int(os.getenv("DBSCAN_MIN_POINTS", "3"))

    # ═══════════════════════════════════════════════════════════
    # Spatial Statistics Parameters
    # ═══════════════════════════════════════════════════════════
    SPATIAL_RADIUS_KM = float(os.getenv("SPATIAL_RADIUS_KM", "1.0"))
    OUTLIER_ZSCORE_THRESHOLD = float(os.getenv("OUTLIER_ZSCORE_THRESHOLD", "2.0"))
    AUTOCORRELATION_CLUSTER_THRESHOLD = float(os.getenv("AUTOCORRELATION_CLUSTER_THRESHOLD", "0.5"))

    # ═══════════════════════════════════════════════════════════
    # Anomaly Detection Parameters
    # ═══════════════════════════════════════════════════════════
    VALUE_ZSCORE_THRESHOLD = float(os.getenv("VALUE_ZSCORE_THRESHOLD", "3.0"))
    ISOLATION_THRESHOLD = float(os.getenv("ISOLATION_THRESHOLD", "0.95"))
    ISOLATION_RADIUS_KM = float(os.getenv("ISOLATION_RADIUS_KM", "1.0"))
    ISOLATION_SCALE_KM = float(os.getenv("ISOLATION_SCALE_KM", "1.0"))
    TEMPORAL_WINDOW_SIZE = int(os.getenv("TEMPORAL_WINDOW_SIZE", "5"))
    TEMPORAL_THRESHOLD = float(os.getenv("TEMPORAL_THRESHOLD", "0.9"))
    CONFIDENCE_PIVOT = float(os.getenv("CONFIDENCE_PIVOT", "3.0"))

    # ═══════════════════════════════════════════════════════════
    # Temporal Trend Parameters
    # ═══════════════════════════════════════════════════════════
    BUCKET_WIDTH = os.getenv("BUCKET_WIDTH", "month").lower()
    FORECAST_HORIZON = int(os.getenv("FORECAST_HORIZON", "6"))
    FORECAST_CONFIDENCE_DECAY = float(os.getenv("FORECAST_CONFIDENCE_DECAY", "0.1"))
    FORECAST_CONFIDENCE_FLOOR = float(os.getenv("FORECAST_CONFIDENCE_FLOOR", "0.5"))
    SEASONAL_PERIOD = int(os.getenv("SEASONAL_PERIOD", "12"))
    MIN_SEASONALITY_BUCKETS = int(os.getenv("MIN_SEASONALITY_BUCKETS", "12"))
    MAX_TREND_WINDOW = int(os.getenv("MAX_TREND_WINDOW", "7"))

    # ═══════════════════════════════════════════════════════════
    # Logging
    # ═══════════════════════════════════════════════════════════
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s %(levelname)s %(name)s: %(message)s")

    @classmethod
    def configure_logging(cls, level: Optional[str] = None):
        """Configure stdlib logging for scripts and notebooks using the engine"""
        logging.basicConfig(level=(level or cls.LOG_LEVEL).upper(), format=cls.LOG_FORMAT)

    @classmethod
    def validate(cls) -> bool:
        """Validate configuration"""
        errors = []

        if cls.KMEANS_CLUSTERS < 1:
            errors.append("KMEANS_CLUSTERS must be at least 1")

        if cls.KMEANS_MAX_ITERATIONS < 1:
            errors.append("KMEANS_MAX_ITERATIONS must be at least 1")

        if cls.DBSCAN_EPS_KM <= 0:
            errors.append("DBSCAN_EPS_KM must be positive")

        if cls.DBSCAN_MIN_POINTS < 1:
            errors.append("DBSCAN_MIN_POINTS must be at least 1")

        if cls.SPATIAL_RADIUS_KM < 0 or cls.ISOLATION_RADIUS_KM < 0:
            errors.append("Search radii cannot be negative")

        if cls.ISOLATION_SCALE_KM <= 0:
            errors.append("ISOLATION_SCALE_KM must be positive")

        if not 0 < cls.ISOLATION_THRESHOLD < 1:
            errors.append("ISOLATION_THRESHOLD must lie strictly between 0 and 1")

        if cls.TEMPORAL_WINDOW_SIZE < 2:
            errors.append("TEMPORAL_WINDOW_SIZE must be at least 2")

        if cls.BUCKET_WIDTH not in ("day", "week", "month", "year"):
            errors.append(f"Unknown BUCKET_WIDTH: {cls.BUCKET_WIDTH}")

        if cls.FORECAST_HORIZON < 0:
            errors.append("FORECAST_HORIZON cannot be negative")

        if not 0 <= cls.FORECAST_CONFIDENCE_FLOOR <= 1:
            errors.append("FORECAST_CONFIDENCE_FLOOR must lie in [0, 1]")

        if cls.FORECAST_CONFIDENCE_DECAY <= 0:
            errors.append("FORECAST_CONFIDENCE_DECAY must be positive")

        if errors:
            for error in errors:
                logger.warning(f"Configuration Error: {error}")
            return False

        return True

    @classmethod
    def summary(cls) -> dict:
        """Return configuration summary"""
        return {
            "clustering": {
                "k": cls.KMEANS_CLUSTERS,
                "max_iterations": cls.KMEANS_MAX_ITERATIONS,
                "random_seed": cls.RANDOM_SEED,
                "dbscan_eps_km": cls.DBSCAN_EPS_KM,
                "dbscan_min_points": cls.DBSCAN_MIN_POINTS
            },
            "spatial_statistics": {
                "radius_km": cls.SPATIAL_RADIUS_KM,
                "outlier_zscore_threshold": cls.OUTLIER_ZSCORE_THRESHOLD
            },
            "anomaly_detection": {
                "value_zscore_threshold": cls.VALUE_ZSCORE_THRESHOLD,
                "isolation_threshold": cls.ISOLATION_THRESHOLD,
                "isolation_radius_km": cls.ISOLATION_RADIUS_KM,
                "temporal_window_size": cls.TEMPORAL_WINDOW_SIZE,
                "temporal_threshold": cls.TEMPORAL_THRESHOLD
            },
            "temporal_trends": {
                "bucket_width": cls.BUCKET_WIDTH,
                "forecast_horizon": cls.FORECAST_HORIZON,
                "forecast_confidence_decay": cls.FORECAST_CONFIDENCE_DECAY,
                "forecast_confidence_floor": cls.FORECAST_CONFIDENCE_FLOOR
            }
        }


if __name__ == "__main__":
    import json
    print("Geo Analytics Configuration")
    print("=" * 60)
    print(json.dumps(AnalyticsConfig.summary(), indent=2))
    print("\nValidation:", "✓ PASSED" if AnalyticsConfig.validate() else "✗ FAILED")
