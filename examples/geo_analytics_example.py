"""
Example Usage of the Geospatial Value Analytics Engine
Demonstrates clustering, hotspots, anomalies and trends on synthetic parcel data
"""

from datetime import datetime, timedelta
from pathlib import Path
import sys

import numpy as np
import pandas as pd

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from geo_analytics import GeoAnalyticsEngine, observations_from_frame
from geo_analytics.config import AnalyticsConfig


def generate_synthetic_parcels(
    n_parcels: int = 300,
    n_months: int = 24,
    seed: int = 42
) -> pd.DataFrame:
    """
    Generate synthetic parcel sales around three neighborhoods

    Args:
        n_parcels: Number of parcels
        n_months: Number of months the sales span
        seed: Random seed

    Returns:
        DataFrame with parcel_id, price, lat, lng and date columns
    """
    print("Generating synthetic parcel data...")

    rng = np.random.default_rng(seed)
    neighborhoods = [
        ("Downtown", 40.7128, -74.0060, 850000),
        ("Riverside", 40.7831, -73.9712, 620000),
        ("Harbor", 40.6782, -73.9442, 410000),
    ]
    base_date = datetime(2023, 1, 1)

    rows = []
    for i in range(n_parcels):
        name, lat, lng, base_price = neighborhoods[i % len(neighborhoods)]
        month = int(rng.integers(n_months))

        # Summer premium on top of steady appreciation
        seasonal = 1 + 0.05 * np.sin(2 * np.pi * month / 12)
        growth = 1 + 0.004 * month
        price = base_price * seasonal * growth * rng.normal(1.0, 0.08)

        rows.append({
            "parcel_id": f"P{i:04d}",
            "price": round(max(price, 1000.0), 2),
            "lat": lat + rng.normal(0, 0.004),
            "lng": lng + rng.normal(0, 0.004),
            "date": base_date + timedelta(days=30 * month + int(rng.integers(28))),
            "neighborhood": name,
        })

    # A mispriced parcel and a remote one
    rows.append({
        "parcel_id": "P_OUTLIER", "price": 9_500_000.0, "lat": 40.7130, "lng": -74.0050,
        "date": base_date + timedelta(days=400), "neighborhood": "Downtown",
    })
    rows.append({
        "parcel_id": "P_REMOTE", "price": 500_000.0, "lat": 41.2000, "lng": -74.5000,
        "date": base_date + timedelta(days=500), "neighborhood": "Upstate",
    })

    return pd.DataFrame(rows)


def main():
    """Run example analysis"""
    print("=" * 80)
    print("GEOSPATIAL VALUE ANALYTICS - EXAMPLE")
    print("=" * 80)
    print()

    AnalyticsConfig.configure_logging()

    df = generate_synthetic_parcels()
    observations = observations_from_frame(df)
    print(f"  ✓ {len(observations)} observations validated")

    engine = GeoAnalyticsEngine(k=3, random_seed=7, bucket_width="month")
    report = engine.analyze(observations)

    print("\n" + "=" * 80)
    print("RESULTS SUMMARY")
    print("=" * 80)
    print()
    print(f"Report ID: {report.report_id}")
    print(f"k-means clusters: {len(report.kmeans.clusters)}")
    for cluster in report.kmeans.clusters:
        print(
            f"  - {cluster.cluster_id}: {cluster.size} parcels, "
            f"mean ${cluster.mean_value:,.0f}, radius {cluster.radius_km:.2f} km"
        )
    print(f"Density clusters: {len(report.density.clusters)} ({len(report.density.noise)} noise)")
    print(f"Global spatial autocorrelation: {report.global_autocorrelation:.3f}")
    print()

    print("TOP ANOMALIES:")
    print("-" * 80)
    for anomaly in report.anomalies[:5]:
        print(
            f"  {anomaly.observation_id:<12} {anomaly.kind.value:<9} "
            f"score={anomaly.score:.2f} confidence={anomaly.confidence:.2%}"
        )
    print()

    trends = report.trends
    print("TRENDS:")
    print("-" * 80)
    print(f"  Buckets: {len(trends.points)}  Overall trend: {trends.overall_trend:.2%}")
    print(f"  Seasonality: {trends.seasonality:.3f}  Breakpoints: {len(trends.breakpoints)}")
    for point in trends.forecast:
        print(f"  Forecast {point.bucket_start.date()}: ${point.mean_value:,.0f} ({point.confidence:.0%})")

    print("\n" + "=" * 80)
    print(report.to_markdown())


if __name__ == "__main__":
    main()
