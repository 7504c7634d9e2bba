"""
Distribution and tail-risk metrics of observation values
"""

import logging
from typing import Iterable

import numpy as np
from scipy import stats

from .models import DistributionMetrics, Observation
from .scoring import population_statistics, safe_divide
from .validation import validate_observations

logger = logging.getLogger(__name__)

VALUE_AT_RISK_LEVEL = 0.95


def gini_coefficient(values: np.ndarray) -> float:
    """Gini coefficient of positive values (0 = perfectly equal)"""
    values = np.sort(np.asarray(values, dtype=float))
    n = values.size
    if n == 0:
        return 0.0
    ranks = 2 * np.arange(n) - n + 1
    return safe_divide(float(np.sum(ranks * values)), n * n * float(values.mean()))


def value_at_risk(values: np.ndarray, level: float = VALUE_AT_RISK_LEVEL) -> float:
    """Value at the (1 - level) quantile of the sorted values"""
    values = np.sort(np.asarray(values, dtype=float))
    if values.size == 0:
        return 0.0
    index = min(int(np.floor((1 - level) * values.size)), values.size - 1)
    return float(values[index])


def conditional_value_at_risk(values: np.ndarray, level: float = VALUE_AT_RISK_LEVEL) -> float:
    """Mean of the values at or below the value at risk"""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    threshold = value_at_risk(values, level)
    return float(values[values <= threshold].mean())


def distribution_metrics(observations: Iterable[Observation]) -> DistributionMetrics:
    """
    Shape and tail statistics of the value distribution

    Skewness and excess kurtosis are population (biased) estimates and zero
    for a constant field. Entropy is the Shannon entropy, in bits, of the
    exact-value histogram.
    """
    observations = validate_observations(observations)
    values = np.array([o.value for o in observations], dtype=float)
    if values.size == 0:
        return DistributionMetrics()

    mean, std = population_statistics(values)
    if std > 0:
        skewness = float(stats.skew(values))
        kurtosis = float(stats.kurtosis(values))
    else:
        skewness = kurtosis = 0.0

    _, counts = np.unique(values, return_counts=True)
    entropy = float(stats.entropy(counts, base=2))

    metrics = DistributionMetrics(
        count=int(values.size),
        mean=mean,
        std=std,
        skewness=skewness,
        kurtosis=kurtosis,
        entropy=entropy,
        gini=gini_coefficient(values),
        value_at_risk=value_at_risk(values),
        conditional_value_at_risk=conditional_value_at_risk(values)
    )
    logger.debug(f"Distribution metrics over {metrics.count} values: gini={metrics.gini:.3f}")
    return metrics
