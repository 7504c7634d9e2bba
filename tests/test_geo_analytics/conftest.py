"""
Pytest configuration and fixtures for geo analytics tests
"""

from datetime import datetime

import numpy as np
import pytest

from geo_analytics.models import Observation


@pytest.fixture
def make_observation():
    """Factory for observations with sensible defaults."""
    def _make(id, value=100.0, latitude=40.0, longitude=-74.0, timestamp=None, **kwargs):
        return Observation(
            id=id,
            value=value,
            latitude=latitude,
            longitude=longitude,
            timestamp=timestamp,
            **kwargs
        )
    return _make


@pytest.fixture
def two_groups(make_observation):
    """Four observations around two distant centers with similar values per group."""
    return [
        make_observation("a1", value=100.0, latitude=40.0000, longitude=-74.0000),
        make_observation("a2", value=102.0, latitude=40.0005, longitude=-74.0005),
        make_observation("b1", value=200.0, latitude=41.0000, longitude=-73.0000),
        make_observation("b2", value=205.0, latitude=41.0005, longitude=-73.0005),
    ]


@pytest.fixture
def value_outlier_snapshot(make_observation):
    """Twenty observations valued 100 +/- 5 plus one observation valued 1000."""
    observations = [
        make_observation(
            f"p{i}",
            value=95.0 + (i % 11),
            latitude=40.0 + 0.001 * i,
            longitude=-74.0 + 0.001 * i
        )
        for i in range(20)
    ]
    observations.append(make_observation("spike", value=1000.0, latitude=40.01, longitude=-74.01))
    return observations


@pytest.fixture
def random_snapshot(make_observation):
    """Thirty observations scattered over a small metro area."""
    rng = np.random.default_rng(7)
    return [
        make_observation(
            f"r{i}",
            value=float(rng.uniform(50, 500)),
            latitude=float(40.0 + rng.uniform(-0.2, 0.2)),
            longitude=float(-74.0 + rng.uniform(-0.2, 0.2))
        )
        for i in range(30)
    ]


@pytest.fixture
def seasonal_pattern():
    """Twelve-bucket pattern with a summer peak."""
    return [100.0, 104.0, 110.0, 118.0, 127.0, 135.0, 138.0, 133.0, 124.0, 115.0, 107.0, 102.0]


@pytest.fixture
def monthly_snapshot(make_observation, seasonal_pattern):
    """Two observations per month over two years repeating the seasonal pattern."""
    observations = []
    for month_index in range(24):
        year, month = 2022 + month_index // 12, month_index % 12 + 1
        base = seasonal_pattern[month_index % 12]
        for day, offset in ((5, -1.0), (20, 1.0)):
            observations.append(
                make_observation(
                    f"m{month_index}_{day}",
                    value=base + offset,
                    latitude=40.0 + 0.0001 * month_index,
                    timestamp=datetime(year, month, day, 12, 0)
                )
            )
    return observations
