"""
Tests for Configuration Management
"""

import logging

from geo_analytics.config import AnalyticsConfig


class TestAnalyticsConfig:
    """Test AnalyticsConfig class"""

    def test_defaults_validate(self):
        """Test the default configuration is valid"""
        assert AnalyticsConfig.validate() is True

    def test_summary_sections(self):
        """Test summary groups parameters by component"""
        summary = AnalyticsConfig.summary()

        assert set(summary) == {"clustering", "spatial_statistics", "anomaly_detection", "temporal_trends"}
        assert summary["clustering"]["k"] == AnalyticsConfig.KMEANS_CLUSTERS
        assert summary["temporal_trends"]["bucket_width"] == AnalyticsConfig.BUCKET_WIDTH

    def test_invalid_values_fail_validation(self, monkeypatch, caplog):
        """Test invalid settings are reported and fail validation"""
        monkeypatch.setattr(AnalyticsConfig, "KMEANS_CLUSTERS", 0)
        monkeypatch.setattr(AnalyticsConfig, "BUCKET_WIDTH", "fortnight")

        with caplog.at_level(logging.WARNING, logger="geo_analytics.config"):
            assert AnalyticsConfig.validate() is False

        assert "KMEANS_CLUSTERS" in caplog.text
        assert "fortnight" in caplog.text

    def test_isolation_threshold_range(self, monkeypatch):
        """Test the isolation threshold must be a probability"""
        monkeypatch.setattr(AnalyticsConfig, "ISOLATION_THRESHOLD", 1.5)

        assert AnalyticsConfig.validate() is False

    def test_configure_logging(self, monkeypatch):
        """Test logging setup honours an explicit level"""
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        AnalyticsConfig.configure_logging("debug")

        assert calls["level"] == "DEBUG"
        assert calls["format"] == AnalyticsConfig.LOG_FORMAT
