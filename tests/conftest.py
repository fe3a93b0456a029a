import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def sites_geojson():
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [151.2881, -33.7997]},
                "properties": {
                    "id": 1, "name": "Shelly Beach", "region": "Northern Beaches",
                    "subregion": "Manly",
                    "reports": [
                        {"timestamp": "2023-01-10T00:30:00Z", "visibility": 8,
                         "conditions": "Calm", "comment": "Wobbegongs everywhere"},
                        {"timestamp": "2023-01-11T01:00:00Z", "visibility": 0,
                         "conditions": "surge", "comment": ""},
                    ],
                },
            },
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [151.2686, -33.9142]},
                "properties": {"id": 2, "name": "Clovelly", "region": "Eastern Suburbs",
                               "subregion": "Clovelly"},
            },
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [151.2263, -34.0045]},
                "properties": {"id": 3, "name": "Kurnell", "region": "Southern Sydney",
                               "subregion": "Botany Bay"},
            },
        ],
    }


@pytest.fixture
def marine():
    ts = pd.date_range("2023-01-01", periods=24 * 20, freq="h")
    return pd.DataFrame({
        "timestamp": ts,
        "swell_height_m": np.arange(len(ts), dtype=float) % 10 / 4,
        "wind_speed_kmh": 15.0,
        "wind_direction_deg": 45.0,
        "air_temperature_c": 24.0,
    })


@pytest.fixture
def land():
    dates = pd.date_range("2023-01-01", periods=20, freq="D")
    return pd.DataFrame({
        "date": dates,
        "wind_speed_kmh": np.arange(20, dtype=float),
        "rainfall_mm": np.where(np.arange(20) % 3 == 0, 6.0, 0.0),
    })


@pytest.fixture
def feature_rows():
    """Synthetic reports where swell lowers visibility and sites differ in baseline."""
    rng = np.random.default_rng(0)
    offsets = {"1": 0.4, "2": 0.0, "3": -0.3, "4": 0.1}
    frames = []
    for site_id, offset in offsets.items():
        n = 40
        swell = rng.uniform(0.5, 3.0, n)
        rain = rng.exponential(3.0, n)
        wind = rng.uniform(5, 30, n)
        log_vis = 2.3 + offset - 0.3 * (swell - 1.75) - 0.02 * rain + rng.normal(0, 0.2, n)
        frames.append(pd.DataFrame({
            "site_id": site_id,
            "name": f"Site {site_id}",
            "region": "Northern Beaches",
            "timestamp": pd.date_range("2023-01-01 09:00", periods=n, freq="D"),
            "visibility": np.exp(log_vis),
            "swell_5": swell,
            "rain_5": rain,
            "wind_5": wind,
        }))
    return pd.concat(frames, ignore_index=True)
