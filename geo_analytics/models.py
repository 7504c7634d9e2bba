"""
Data Models for the Geospatial Value Analytics Engine
Input observation model and the immutable result values produced by each engine
"""

import json
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class AnomalyKind(Enum):
    """Detector that produced an anomaly"""
    VALUE = "value"
    SPATIAL = "spatial"
    TEMPORAL = "temporal"


class SpatialPattern(Enum):
    """Local autocorrelation classification"""
    CLUSTER = "cluster"
    DISPERSED = "dispersed"
    RANDOM = "random"


class BucketWidth(Enum):
    """Time bucket widths for trend analysis"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class Observation(BaseModel):
    """Geolocated, valued record (e.g. a parcel with a market value)"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque identifier, unique per snapshot")
    value: float = Field(..., gt=0, allow_inf_nan=False, description="Positive value")
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False, description="Longitude in degrees")
    timestamp: Optional[datetime] = Field(None, description="Observation instant")
    cluster_label: Optional[str] = Field(None, description="Label assigned by an upstream system")
    attributes: Mapping[str, Any] = Field(
        default_factory=dict,
        validate_default=True,
        description="Free-form attributes (read-only)"
    )

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value):
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("attributes", mode="after")
    @classmethod
    def _freeze_attributes(cls, value):
        # Read-only private copy
        return MappingProxyType(dict(value))

    @field_serializer("attributes")
    def _dump_attributes(self, value):
        return dict(value)


def _to_serialisable(value: Any) -> Any:
    """Recursively convert result values into JSON-friendly primitives"""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_serialisable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return _to_serialisable(value.model_dump())
    if isinstance(value, dict):
        return {str(k): _to_serialisable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_to_serialisable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_to_serialisable(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


class SerializableResult:
    """Mixin providing ``to_dict`` for result dataclasses"""

    def to_dict(self) -> Dict[str, Any]:
        return _to_serialisable(self)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass(frozen=True)
class Centroid(SerializableResult):
    """Cluster centroid in (value, latitude, longitude) space"""
    value: float
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Cluster(SerializableResult):
    """Group of observations produced by a clustering call"""
    cluster_id: str
    members: FrozenSet[str]
    centroid: Centroid
    radius_km: float = 0.0

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def mean_value(self) -> float:
        return self.centroid.value


@dataclass(frozen=True)
class KMeansResult(SerializableResult):
    """k-means output: at most k non-empty clusters partitioning the input"""
    clusters: Tuple[Cluster, ...]
    iterations: int
    converged: bool


@dataclass(frozen=True)
class DensityClusteringResult(SerializableResult):
    """Density clustering output; noise ids are kept apart from the clusters"""
    clusters: Tuple[Cluster, ...]
    noise: Tuple[str, ...]


@dataclass(frozen=True)
class HotspotResult(SerializableResult):
    """Local hotspot score for one observation"""
    observation_id: str
    local_mean: float
    z_score: float
    confidence: float
    neighbor_count: int


@dataclass(frozen=True)
class AutocorrelationResult(SerializableResult):
    """Local spatial autocorrelation for one observation"""
    observation_id: str
    correlation: float
    pattern: SpatialPattern


@dataclass(frozen=True)
class OutlierResult(SerializableResult):
    """Population z-score outlier flag for one observation"""
    observation_id: str
    z_score: float
    is_outlier: bool


@dataclass(frozen=True)
class AnomalyFactor(SerializableResult):
    """Named contribution explaining an anomaly"""
    name: str
    contribution: float


@dataclass(frozen=True)
class Anomaly(SerializableResult):
    """Detected anomaly; at most one per observation per detection call"""
    observation_id: str
    score: float
    kind: AnomalyKind
    confidence: float
    factors: Tuple[AnomalyFactor, ...] = ()


@dataclass(frozen=True)
class TrendPoint(SerializableResult):
    """Aggregate of one time bucket (or one forecast step)"""
    bucket_start: datetime
    mean_value: float
    trend_pct: float
    volatility: float
    confidence: float
    count: int = 0


@dataclass(frozen=True)
class Decomposition(SerializableResult):
    """Additive decomposition: original = trend + seasonal + residual"""
    trend: Tuple[float, ...]
    seasonal: Tuple[float, ...]
    residual: Tuple[float, ...]


@dataclass(frozen=True)
class AdvancedMetrics(SerializableResult):
    """Supplementary time-series statistics over bucket means"""
    momentum: float = 0.0
    acceleration: float = 0.0
    mean_reversion: float = 0.0
    trend_strength: float = 0.0
    autocorrelation: float = 0.0
    cyclicality: float = 0.0
    r_squared: float = 0.0
    velocity_of_change: float = 0.0
    sharpe_ratio: float = 0.0
    cross_correlation: Tuple[float, ...] = ()
    coherence: float = 0.0


@dataclass(frozen=True)
class TrendAnalysis(SerializableResult):
    """Complete trend analysis of one snapshot at one bucket width"""
    bucket_width: BucketWidth
    points: Tuple[TrendPoint, ...]
    overall_trend: float
    confidence: float
    seasonality: float
    breakpoints: Tuple[datetime, ...]
    forecast: Tuple[TrendPoint, ...]
    decomposition: Decomposition
    advanced_metrics: AdvancedMetrics


@dataclass(frozen=True)
class DistributionMetrics(SerializableResult):
    """Shape and tail statistics of the value distribution"""
    count: int = 0
    mean: float = 0.0
    std: float = 0.0
    skewness: float = 0.0
    kurtosis: float = 0.0
    entropy: float = 0.0
    gini: float = 0.0
    value_at_risk: float = 0.0
    conditional_value_at_risk: float = 0.0


@dataclass(frozen=True)
class AnalysisReport(SerializableResult):
    """Everything one engine run produced; owned by the caller"""
    report_id: str
    generated_at: datetime
    observation_count: int
    kmeans: KMeansResult
    density: DensityClusteringResult
    hotspots: Tuple[HotspotResult, ...]
    autocorrelation: Tuple[AutocorrelationResult, ...]
    outliers: Tuple[OutlierResult, ...]
    global_autocorrelation: float
    distribution: DistributionMetrics
    anomalies: Tuple[Anomaly, ...]
    trends: TrendAnalysis
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_markdown(self, max_rows: int = 10) -> str:
        """Generate markdown summary"""
        md = f"""# Geo Analytics Report

**Report ID**: {self.report_id}
**Generated**: {self.generated_at.strftime('%Y-%m-%d %H:%M:%S')}
**Observations**: {self.observation_count}

## Executive Summary

- **k-means Clusters**: {len(self.kmeans.clusters)} ({self.kmeans.iterations} iterations, converged={self.kmeans.converged})
- **Density Clusters**: {len(self.density.clusters)} ({len(self.density.noise)} noise points)
- **Global Outliers**: {sum(1 for o in self.outliers if o.is_outlier)}
- **Global Spatial Autocorrelation**: {self.global_autocorrelation:.3f}
- **Anomalies**: {len(self.anomalies)}
- **Trend Buckets**: {len(self.trends.points)} ({self.trends.bucket_width.value})

## Value Distribution

- **Mean**: {self.distribution.mean:,.2f}
- **Std**: {self.distribution.std:,.2f}
- **Skewness**: {self.distribution.skewness:.3f}
- **Gini**: {self.distribution.gini:.3f}
- **95% VaR**: {self.distribution.value_at_risk:,.2f}

## Clusters

"""
        clusters = self.kmeans.clusters + self.density.clusters
        if clusters:
            md += "| Cluster | Size | Mean Value | Latitude | Longitude | Radius (km) |\n"
            md += "|---|---|---|---|---|---|\n"
            for cluster in clusters:
                md += (
                    f"| {cluster.cluster_id} | {cluster.size} | {cluster.mean_value:,.2f} | "
                    f"{cluster.centroid.latitude:.5f} | {cluster.centroid.longitude:.5f} | "
                    f"{cluster.radius_km:.3f} |\n"
                )
        else:
            md += "No clusters.\n"

        md += "\n## Anomalies\n\n"

        if self.anomalies:
            md += "| Observation | Kind | Score | Confidence |\n|---|---|---|---|\n"
            for anomaly in self.anomalies[:max_rows]:
                md += (
                    f"| {anomaly.observation_id} | {anomaly.kind.value} | "
                    f"{anomaly.score:.3f} | {anomaly.confidence:.2%} |\n"
                )
            if len(self.anomalies) > max_rows:
                md += f"\n_{len(self.anomalies) - max_rows} more not shown._\n"
        else:
            md += "No anomalies detected.\n"

        md += "\n## Trends\n\n"

        if self.trends.points:
            md += f"""- **Overall Trend**: {self.trends.overall_trend:.2%}
- **Confidence**: {self.trends.confidence:.2%}
- **Seasonality**: {self.trends.seasonality:.3f}
- **Breakpoints**: {len(self.trends.breakpoints)}
- **Momentum**: {self.trends.advanced_metrics.momentum:.2%}
- **Velocity of Change**: {self.trends.advanced_metrics.velocity_of_change:.2%}
- **Sharpe Ratio**: {self.trends.advanced_metrics.sharpe_ratio:.3f}
"""
            if self.trends.forecast:
                md += "\n| Forecast Bucket | Value | Confidence |\n|---|---|---|\n"
                for point in self.trends.forecast:
                    md += (
                        f"| {point.bucket_start.date()} | {point.mean_value:,.2f} | "
                        f"{point.confidence:.2%} |\n"
                    )
        else:
            md += "No timestamped observations.\n"

        return md
