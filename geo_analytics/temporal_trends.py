"""
Temporal Trend Analysis
Buckets timestamped observations, computes per-bucket trend and volatility,
detects seasonality and breakpoints, decomposes the series additively and
extrapolates a short forecast
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .config import AnalyticsConfig
from .models import (
    AdvancedMetrics,
    BucketWidth,
    Decomposition,
    Observation,
    TrendAnalysis,
    TrendPoint
)
from .scoring import safe_divide
from .validation import validate_observations

logger = logging.getLogger(__name__)

# Forecast volatility grows by this fraction per step
FORECAST_VOLATILITY_GROWTH = 0.1


def parse_bucket_width(width: Union[str, BucketWidth]) -> BucketWidth:
    if isinstance(width, BucketWidth):
        return width
    try:
        return BucketWidth(str(width).lower())
    except ValueError:
        valid = ", ".join(w.value for w in BucketWidth)
        raise ValueError(f"Unknown bucket width {width!r}; expected one of: {valid}") from None


def truncate_timestamps(timestamps: pd.Series, width: Union[str, BucketWidth]) -> pd.Series:
    """
    Truncate timestamps to the start of their bucket

    day -> midnight, week -> preceding Sunday, month -> first of the month,
    year -> January 1. Time zone information is preserved.
    """
    width = parse_bucket_width(width)
    midnight = timestamps.dt.normalize()

    if width is BucketWidth.DAY:
        return midnight
    if width is BucketWidth.WEEK:
        # dayofweek is 0 on Monday, so Sunday maps to 0 days back
        return midnight - pd.to_timedelta((timestamps.dt.dayofweek + 1) % 7, unit="D")
    if width is BucketWidth.MONTH:
        return midnight - pd.to_timedelta(timestamps.dt.day - 1, unit="D")
    return midnight - pd.to_timedelta(timestamps.dt.dayofyear - 1, unit="D")


def bucket_observations(
    observations: Sequence[Observation],
    width: Union[str, BucketWidth]
) -> pd.DataFrame:
    """
    Frame of (bucket_start, value) for every timestamped observation

    Time-zone-aware timestamps are converted to UTC before truncation.
    """
    timed = [o for o in observations if o.timestamp is not None]
    skipped = len(observations) - len(timed)
    if skipped:
        logger.debug(f"Skipping {skipped} observation(s) without a timestamp")

    if not timed:
        return pd.DataFrame({"bucket_start": pd.Series([], dtype="datetime64[ns]"), "value": []})

    aware = timed[0].timestamp.tzinfo is not None
    timestamps = pd.Series(pd.to_datetime([o.timestamp for o in timed], utc=aware))

    return pd.DataFrame({
        "bucket_start": truncate_timestamps(timestamps, width),
        "value": [o.value for o in timed]
    })


def compute_trend_points(buckets: pd.DataFrame) -> Tuple[TrendPoint, ...]:
    """
    Aggregate bucketed values into ordered trend points

    trend_pct is the relative change from the previous bucket mean (0 for the
    first bucket), volatility the population coefficient of variation and
    confidence 1 - volatility / max(volatility).
    """
    if buckets.empty:
        return ()

    grouped = buckets.groupby("bucket_start", sort=True)["value"]
    stats = grouped.agg(["mean", "count"])
    stats["std"] = grouped.std(ddof=0).fillna(0.0)

    stats["trend_pct"] = stats["mean"].pct_change().fillna(0.0)
    stats["volatility"] = stats["std"] / stats["mean"]

    max_volatility = float(stats["volatility"].max())
    if max_volatility > 0:
        stats["confidence"] = 1.0 - stats["volatility"] / max_volatility
    else:
        stats["confidence"] = 1.0

    return tuple(
        TrendPoint(
            bucket_start=bucket_start.to_pydatetime(),
            mean_value=float(row["mean"]),
            trend_pct=float(row["trend_pct"]),
            volatility=float(row["volatility"]),
            confidence=float(row["confidence"]),
            count=int(row["count"])
        )
        for bucket_start, row in stats.iterrows()
    )


def detect_seasonality(
    values: Sequence[float],
    max_lag: int = AnalyticsConfig.SEASONAL_PERIOD,
    min_buckets: int = AnalyticsConfig.MIN_SEASONALITY_BUCKETS
) -> float:
    """
    Seasonality index in [0, 1]

    For lags 1..min(max_lag, n // 2) the mean squared difference between the
    series and its lagged copy is computed; the index is 1 - min / max. A
    series that repeats exactly at some lag scores 1.
    """
    values = np.asarray(values, dtype=float)
    n = len(values)
    if n < min_buckets:
        return 0.0

    lags = range(1, min(max_lag, n // 2) + 1)
    differences = np.array([np.mean((values[:-lag] - values[lag:]) ** 2) for lag in lags])
    if differences.size == 0 or differences.max() == 0:
        return 0.0

    return float(1.0 - differences.min() / differences.max())


def detect_breakpoints(points: Sequence[TrendPoint]) -> Tuple:
    """
    Bucket starts where the trend changes abruptly

    Bucket i is a breakpoint when the relative change into the next bucket
    differs from the relative change into bucket i by more than twice the
    mean volatility of the series.
    """
    if len(points) < 3:
        return ()

    trend = np.array([p.trend_pct for p in points])
    threshold = 2.0 * float(np.mean([p.volatility for p in points]))

    return tuple(
        points[i].bucket_start
        for i in range(1, len(points) - 1)
        if abs(trend[i + 1] - trend[i]) > threshold
    )


def _bucket_offset(width: BucketWidth, steps: int) -> pd.DateOffset:
    if width is BucketWidth.DAY:
        return pd.DateOffset(days=steps)
    if width is BucketWidth.WEEK:
        return pd.DateOffset(weeks=steps)
    if width is BucketWidth.MONTH:
        return pd.DateOffset(months=steps)
    return pd.DateOffset(years=steps)


def generate_forecast(
    points: Sequence[TrendPoint],
    seasonality: float,
    width: Union[str, BucketWidth] = AnalyticsConfig.BUCKET_WIDTH,
    horizon: int = AnalyticsConfig.FORECAST_HORIZON,
    confidence_decay: float = AnalyticsConfig.FORECAST_CONFIDENCE_DECAY,
    confidence_floor: float = AnalyticsConfig.FORECAST_CONFIDENCE_FLOOR,
    seasonal_period: int = AnalyticsConfig.SEASONAL_PERIOD
) -> Tuple[TrendPoint, ...]:
    """
    Extrapolate ``horizon`` buckets past the last observed bucket

    Each step applies the average trend modulated by a sinusoid of period
    ``seasonal_period`` scaled by ``seasonality``, compounding from the last
    bucket mean. Confidence decreases by ``confidence_decay`` per step and
    never drops below ``confidence_floor``.

    Args:
        points: Observed trend points, ordered by bucket start
        seasonality: Seasonality index in [0, 1]
        width: Bucket width used to step the forecast dates
        horizon: Number of forecast buckets
        confidence_decay: Confidence decrement per step
        confidence_floor: Lower bound of forecast confidence
        seasonal_period: Period of the seasonal modulation in buckets

    Returns:
        Forecast trend points
    """
    if not points or horizon <= 0:
        return ()

    width = parse_bucket_width(width)
    last = points[-1]
    average_trend = float(np.mean([p.trend_pct for p in points]))
    start = pd.Timestamp(last.bucket_start)

    forecast = []
    value = last.mean_value
    for step in range(1, horizon + 1):
        seasonal_factor = seasonality * math.sin(2 * math.pi * step / seasonal_period)
        trend = average_trend * (1 + seasonal_factor)
        value = value * (1 + trend)

        forecast.append(
            TrendPoint(
                bucket_start=(start + _bucket_offset(width, step)).to_pydatetime(),
                mean_value=float(value),
                trend_pct=float(trend),
                volatility=last.volatility * (1 + FORECAST_VOLATILITY_GROWTH * step),
                confidence=max(confidence_floor, last.confidence - confidence_decay * step)
            )
        )

    return tuple(forecast)


def decompose(
    values: Sequence[float],
    max_window: int = AnalyticsConfig.MAX_TREND_WINDOW,
    max_period: int = AnalyticsConfig.SEASONAL_PERIOD
) -> Decomposition:
    """
    Additive trend / seasonal / residual decomposition

    The trend is a centered moving average of width min(max_window, n // 2),
    truncated at the series edges. The seasonal component averages the
    de-trended series per phase of period min(max_period, n // 2) and is
    mean-centered. The residual is whatever remains, so the three components
    always add back up to the original series.
    """
    series = pd.Series(np.asarray(values, dtype=float))
    n = len(series)

    if n < 4:
        return Decomposition(
            trend=tuple(series.tolist()),
            seasonal=(0.0,) * n,
            residual=(0.0,) * n
        )

    half_window = min(max_window, n // 2) // 2
    trend = series.rolling(2 * half_window + 1, center=True, min_periods=1).mean()

    period = min(max_period, n // 2)
    detrended = series - trend
    phase = np.arange(n) % period
    pattern = detrended.groupby(phase).mean()
    pattern = pattern - pattern.mean()
    seasonal = pd.Series(pattern.to_numpy()[phase])

    residual = series - trend - seasonal

    return Decomposition(
        trend=tuple(trend.tolist()),
        seasonal=tuple(seasonal.tolist()),
        residual=tuple(residual.tolist())
    )


def autocorrelation(values: Sequence[float], lag: int = 1) -> float:
    """Sample autocorrelation at ``lag``; 0 when fewer than two pairs exist"""
    values = np.asarray(values, dtype=float)
    pairs = len(values) - lag
    if lag < 1 or pairs < 2:
        return 0.0

    deviations = values - values.mean()
    numerator = float(np.sum(deviations[:pairs] * deviations[lag:]))
    denominator = float(np.sum(deviations[:pairs] ** 2))
    return safe_divide(numerator, denominator)


def trend_strength(values: Sequence[float]) -> float:
    """R-squared of an OLS fit of value against bucket index"""
    values = np.asarray(values, dtype=float)
    if len(values) < 2 or np.ptp(values) == 0:
        return 0.0

    model = sm.OLS(values, sm.add_constant(np.arange(len(values), dtype=float))).fit()
    r_squared = float(model.rsquared)
    return r_squared if np.isfinite(r_squared) else 0.0


def _relative_changes(values: np.ndarray) -> np.ndarray:
    previous = values[:-1]
    return np.divide(np.diff(values), previous, out=np.zeros(len(previous)), where=previous != 0)


def velocity_of_change(values: Sequence[float]) -> float:
    """Mean absolute bucket-to-bucket relative change"""
    changes = _relative_changes(np.asarray(values, dtype=float))
    return float(np.abs(changes).mean()) if changes.size else 0.0


def sharpe_ratio(values: Sequence[float]) -> float:
    """Mean bucket-to-bucket return over its population standard deviation"""
    changes = _relative_changes(np.asarray(values, dtype=float))
    if changes.size == 0:
        return 0.0
    spread = float(changes.std(ddof=0))
    if np.isclose(spread, 0.0, atol=1e-12):
        return 0.0
    return safe_divide(float(changes.mean()), spread)


def cross_correlation(values: Sequence[float], max_lag: int = 10) -> Tuple[float, ...]:
    """Mean lagged product of the series with itself for lags 0..min(max_lag, n // 2)"""
    values = np.asarray(values, dtype=float)
    n = len(values)
    if n == 0:
        return ()
    return tuple(
        float(np.mean(values[:n - lag] * values[lag:]))
        for lag in range(min(max_lag, n // 2) + 1)
    )


def coherence(correlations: Sequence[float]) -> float:
    """Strongest lagged product relative to the zero-lag product"""
    if len(correlations) < 2:
        return 0.0
    return safe_divide(max(correlations[1:]), correlations[0])


def compute_advanced_metrics(values: Sequence[float]) -> AdvancedMetrics:
    """
    Supplementary statistics over ordered bucket means

    Args:
        values: Bucket means ordered by bucket start

    Returns:
        AdvancedMetrics (all zero for fewer than two buckets)
    """
    values = np.asarray(values, dtype=float)
    n = len(values)
    if n < 2:
        return AdvancedMetrics()

    momentum = safe_divide(values[-1] - values[-2], values[-2])
    acceleration = momentum - safe_divide(values[-2] - values[-3], values[-3]) if n > 2 else 0.0
    mean_reversion = safe_divide(values.mean() - values[-1], values[-1])

    cyclicality = 0.0
    if n >= 4:
        cyclicality = max(abs(autocorrelation(values, lag)) for lag in range(1, n // 2 + 1))

    # Naive R-squared against a "no change since last bucket" predictor
    total = float(np.sum((values - values.mean()) ** 2))
    naive_residual = float(np.sum(np.diff(values) ** 2))
    r_squared = 1.0 - naive_residual / total if total > 0 else 0.0

    correlations = cross_correlation(values)

    return AdvancedMetrics(
        momentum=float(momentum),
        acceleration=float(acceleration),
        mean_reversion=float(mean_reversion),
        trend_strength=trend_strength(values),
        autocorrelation=autocorrelation(values, 1),
        cyclicality=float(cyclicality),
        r_squared=float(r_squared),
        velocity_of_change=velocity_of_change(values),
        sharpe_ratio=sharpe_ratio(values),
        cross_correlation=correlations,
        coherence=coherence(correlations)
    )


class TemporalTrendEngine:
    """
    Time-bucketed trend analysis of observation values

    Observations without a timestamp are ignored. Every degraded case (no
    timestamps, a single bucket, too few buckets for seasonality) yields
    neutral values rather than an error.
    """

    def __init__(
        self,
        bucket_width: Union[str, BucketWidth] = AnalyticsConfig.BUCKET_WIDTH,
        forecast_horizon: int = AnalyticsConfig.FORECAST_HORIZON,
        forecast_confidence_decay: float = AnalyticsConfig.FORECAST_CONFIDENCE_DECAY,
        forecast_confidence_floor: float = AnalyticsConfig.FORECAST_CONFIDENCE_FLOOR,
        seasonal_period: int = AnalyticsConfig.SEASONAL_PERIOD,
        min_seasonality_buckets: int = AnalyticsConfig.MIN_SEASONALITY_BUCKETS,
        max_trend_window: int = AnalyticsConfig.MAX_TREND_WINDOW
    ):
        """
        Initialize trend engine

        Args:
            bucket_width: day, week, month or year
            forecast_horizon: Number of forecast buckets
            forecast_confidence_decay: Forecast confidence decrement per step
            forecast_confidence_floor: Lower bound of forecast confidence
            seasonal_period: Seasonal period in buckets
            min_seasonality_buckets: Buckets required before seasonality is scored
            max_trend_window: Largest moving-average window of the trend component
        """
        if forecast_horizon < 0:
            raise ValueError(f"forecast_horizon cannot be negative, got {forecast_horizon}")
        if seasonal_period < 1:
            raise ValueError(f"seasonal_period must be at least 1, got {seasonal_period}")

        self.bucket_width = parse_bucket_width(bucket_width)
        self.forecast_horizon = forecast_horizon
        self.forecast_confidence_decay = forecast_confidence_decay
        self.forecast_confidence_floor = forecast_confidence_floor
        self.seasonal_period = seasonal_period
        self.min_seasonality_buckets = min_seasonality_buckets
        self.max_trend_window = max_trend_window

    def trend_points(
        self,
        observations: Iterable[Observation],
        bucket_width: Optional[Union[str, BucketWidth]] = None
    ) -> Tuple[TrendPoint, ...]:
        observations = validate_observations(observations)
        width = self.bucket_width if bucket_width is None else parse_bucket_width(bucket_width)
        return compute_trend_points(bucket_observations(observations, width))

    def analyze(
        self,
        observations: Iterable[Observation],
        bucket_width: Optional[Union[str, BucketWidth]] = None
    ) -> TrendAnalysis:
        """
        Full trend analysis of one snapshot

        Args:
            observations: Observation snapshot
            bucket_width: Override of the engine's bucket width

        Returns:
            TrendAnalysis with points, seasonality, breakpoints, forecast,
            decomposition and advanced metrics
        """
        width = self.bucket_width if bucket_width is None else parse_bucket_width(bucket_width)
        points = self.trend_points(observations, width)
        values: List[float] = [p.mean_value for p in points]

        seasonality = detect_seasonality(
            values,
            max_lag=self.seasonal_period,
            min_buckets=self.min_seasonality_buckets
        )
        breakpoints = detect_breakpoints(points)
        forecast = generate_forecast(
            points,
            seasonality,
            width=width,
            horizon=self.forecast_horizon,
            confidence_decay=self.forecast_confidence_decay,
            confidence_floor=self.forecast_confidence_floor,
            seasonal_period=self.seasonal_period
        )

        overall_trend = safe_divide(values[-1] - values[0], values[0]) if len(values) > 1 else 0.0
        confidence = float(np.mean([p.confidence for p in points])) if points else 0.0

        logger.info(
            f"Trend analysis ({width.value}): {len(points)} bucket(s), "
            f"seasonality={seasonality:.3f}, {len(breakpoints)} breakpoint(s), "
            f"{len(forecast)} forecast step(s)"
        )

        return TrendAnalysis(
            bucket_width=width,
            points=points,
            overall_trend=float(overall_trend),
            confidence=confidence,
            seasonality=seasonality,
            breakpoints=breakpoints,
            forecast=forecast,
            decomposition=decompose(
                values,
                max_window=self.max_trend_window,
                max_period=self.seasonal_period
            ),
            advanced_metrics=compute_advanced_metrics(values)
        )
