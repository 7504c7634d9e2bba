"""
Geospatial Value Analytics Engine
Clustering, spatial statistics, anomaly detection and trend analysis for
geolocated, valued observations
"""

from .models import (
    AnomalyKind,
    SpatialPattern,
    BucketWidth,
    Observation,
    Centroid,
    Cluster,
    KMeansResult,
    DensityClusteringResult,
    HotspotResult,
    AutocorrelationResult,
    OutlierResult,
    AnomalyFactor,
    Anomaly,
    TrendPoint,
    Decomposition,
    AdvancedMetrics,
    TrendAnalysis,
    DistributionMetrics,
    AnalysisReport
)

from .config import AnalyticsConfig

from .validation import (
    ObservationValidationError,
    ObservationValidator,
    validate_observations,
    observations_from_frame,
    observations_to_frame
)

from .geo import (
    haversine_distance,
    distance,
    combined_distance,
    neighbors_within,
    NeighborIndex
)

from .clustering import (
    kmeans,
    density_clustering,
    ClusteringEngine
)

from .spatial_statistics import (
    hotspot_score,
    local_autocorrelation,
    global_outliers,
    global_spatial_autocorrelation,
    SpatialStatistics
)

from .distribution import distribution_metrics

from .anomaly_detection import (
    value_anomaly_score,
    AnomalyDetector
)

from .temporal_trends import (
    detect_seasonality,
    detect_breakpoints,
    generate_forecast,
    decompose,
    compute_advanced_metrics,
    TemporalTrendEngine
)

from .pipeline import GeoAnalyticsEngine

__version__ = "1.0.0"

__all__ = [
    # Models
    "AnomalyKind",
    "SpatialPattern",
    "BucketWidth",
    "Observation",
    "Centroid",
    "Cluster",
    "KMeansResult",
    "DensityClusteringResult",
    "HotspotResult",
    "AutocorrelationResult",
    "OutlierResult",
    "AnomalyFactor",
    "Anomaly",
    "TrendPoint",
    "Decomposition",
    "AdvancedMetrics",
    "TrendAnalysis",
    "DistributionMetrics",
    "AnalysisReport",

    # Configuration
    "AnalyticsConfig",

    # Validation
    "ObservationValidationError",
    "ObservationValidator",
    "validate_observations",
    "observations_from_frame",
    "observations_to_frame",

    # Geo
    "haversine_distance",
    "distance",
    "combined_distance",
    "neighbors_within",
    "NeighborIndex",

    # Clustering
    "kmeans",
    "density_clustering",
    "ClusteringEngine",

    # Spatial Statistics
    "hotspot_score",
    "local_autocorrelation",
    "global_outliers",
    "global_spatial_autocorrelation",
    "SpatialStatistics",

    # Distribution
    "distribution_metrics",

    # Anomaly Detection
    "value_anomaly_score",
    "AnomalyDetector",

    # Temporal Trends
    "detect_seasonality",
    "detect_breakpoints",
    "generate_forecast",
    "decompose",
    "compute_advanced_metrics",
    "TemporalTrendEngine",

    # Pipeline
    "GeoAnalyticsEngine"
]
