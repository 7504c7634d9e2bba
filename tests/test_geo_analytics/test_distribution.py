"""
Tests for value distribution metrics
"""

import numpy as np
import pytest

from geo_analytics.distribution import (
    conditional_value_at_risk,
    distribution_metrics,
    gini_coefficient,
    value_at_risk,
)


class TestDistributionMetrics:
    """Test distribution shape and tail metrics"""

    def test_empty_snapshot(self):
        """Test no observations give all-zero metrics"""
        metrics = distribution_metrics([])

        assert metrics.count == 0
        assert metrics.mean == 0.0
        assert metrics.gini == 0.0

    def test_constant_values(self, make_observation):
        """Test a constant field is perfectly equal and has no spread"""
        observations = [make_observation(f"c{i}", value=250.0) for i in range(6)]

        metrics = distribution_metrics(observations)

        assert metrics.std == 0.0
        assert metrics.skewness == 0.0
        assert metrics.kurtosis == 0.0
        assert metrics.entropy == 0.0
        assert metrics.gini == pytest.approx(0.0)

    def test_entropy_in_bits(self, make_observation):
        """Test four distinct equally likely values carry two bits"""
        observations = [make_observation(f"e{i}", value=float(i + 1)) for i in range(4)]

        assert distribution_metrics(observations).entropy == pytest.approx(2.0)

    def test_right_skewed_values(self, value_outlier_snapshot):
        """Test a single large value skews the distribution right"""
        metrics = distribution_metrics(value_outlier_snapshot)

        assert metrics.count == 21
        assert metrics.skewness > 3.0
        assert metrics.kurtosis > 0.0
        assert 0.0 < metrics.gini < 1.0


class TestInequalityAndRisk:
    """Test Gini and value-at-risk helpers"""

    def test_gini_two_values(self):
        """Test the Gini coefficient of a simple pair"""
        assert gini_coefficient(np.array([1.0, 3.0])) == pytest.approx(0.25)

    def test_value_at_risk(self):
        """Test the 95% value at risk is the 5th percentile value"""
        values = np.arange(1.0, 21.0)

        assert value_at_risk(values) == 2.0
        assert conditional_value_at_risk(values) == pytest.approx(1.5)

    def test_small_sample(self):
        """Test tiny samples use the smallest value"""
        values = np.array([7.0, 3.0, 5.0])

        assert value_at_risk(values) == 3.0
        assert conditional_value_at_risk(values) == 3.0
