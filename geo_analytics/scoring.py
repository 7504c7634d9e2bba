"""
Shared numeric primitives

Every z-score, confidence and guarded ratio in the engine goes through these
helpers so that spatial statistics and anomaly detection cannot drift apart.
"""

from typing import Tuple

import numpy as np
from scipy.special import erf, expit


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning ``default`` when the result would not be finite"""
    if denominator == 0 or not np.isfinite(denominator):
        return default
    result = numerator / denominator
    return float(result) if np.isfinite(result) else default


def population_statistics(values: np.ndarray) -> Tuple[float, float]:
    """Population mean and standard deviation (ddof=0); zeros for empty input"""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0, 0.0
    return float(values.mean()), float(values.std(ddof=0))


def population_zscores(values: np.ndarray) -> Tuple[np.ndarray, float, float]:
    """
    Signed z-scores against the population mean and standard deviation

    Zero standard deviation yields all-zero scores.

    Returns:
        Tuple of (z_scores, mean, std)
    """
    values = np.asarray(values, dtype=float)
    mean, std = population_statistics(values)
    if std == 0:
        return np.zeros_like(values), mean, std
    return (values - mean) / std, mean, std


def logistic(x):
    """Standard logistic function, overflow-safe"""
    result = expit(x)
    return float(result) if np.ndim(result) == 0 else result


def normal_cdf(x):
    """Standard normal CDF via the error function"""
    result = 0.5 * (1.0 + erf(np.asarray(x, dtype=float) / np.sqrt(2.0)))
    return float(result) if np.ndim(result) == 0 else result


def two_sided_confidence(z_score: float) -> float:
    """Probability mass within |z| of the mean: 2 * Phi(|z|) - 1"""
    return float(np.clip(2.0 * normal_cdf(abs(z_score)) - 1.0, 0.0, 1.0))


def anomaly_confidence(score: float, pivot: float = 3.0) -> float:
    """Logistic confidence centred on ``pivot`` (0.5 at the pivot, ->1 above it)"""
    return logistic(score - pivot)
