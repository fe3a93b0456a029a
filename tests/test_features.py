"""Rolling aggregate and feature row tests."""
import pandas as pd
import pytest

from divevis.features import (
    build_feature_rows, daily_weather, rolling_land, rolling_swell, site_report_counts,
    visibility_quality,
)


def _reports(*timestamps):
    return pd.DataFrame({
        "site_id": "1",
        "name": "Shelly Beach",
        "region": "Northern Beaches",
        "timestamp": pd.to_datetime(list(timestamps)),
        "visibility": 10.0,
    })


def test_rolling_swell_is_trailing_mean(marine):
    swell = rolling_swell(marine)

    # The first four hours have no complete window
    assert len(swell) == len(marine) - 4
    assert swell.index[0] == pd.Timestamp("2023-01-01 04:00")
    assert swell["swell_5"].iloc[0] == pytest.approx((0 + 0.25 + 0.5 + 0.75 + 1.0) / 5)


def test_rolling_swell_gap_empties_windows(marine):
    gappy = marine.drop(index=10)
    swell = rolling_swell(gappy)

    for hour in range(10, 15):
        assert pd.Timestamp("2023-01-01") + pd.Timedelta(hours=hour) not in swell.index
    assert pd.Timestamp("2023-01-01 15:00") in swell.index


def test_rolling_land(land):
    rolled = rolling_land(land)

    assert rolled.index[0] == pd.Timestamp("2023-01-05")
    first = rolled.iloc[0]
    assert first["wind_5"] == pytest.approx(2.0)
    assert first["rain_5"] == pytest.approx(12.0 / 5)


def test_build_feature_rows_joins_as_of_report(marine, land):
    reports = _reports("2023-01-05 10:30", "2023-01-02 10:00")
    rows = build_feature_rows(reports, marine, land)

    # The second report falls before the land window is complete
    assert len(rows) == 1
    row = rows.iloc[0]
    # Hours 102..106 of the fixture: (2 + 3 + 4 + 5 + 6) / 4 / 5
    assert row["swell_5"] == pytest.approx(1.0)
    assert row["rain_5"] == pytest.approx(2.4)
    assert row["wind_5"] == pytest.approx(2.0)
    assert row["quality"] == "good"
    assert "hour" not in rows.columns


def test_build_feature_rows_drops_reports_in_weather_gaps(marine, land):
    reports = _reports("2023-01-10 09:15", "2023-01-14 09:15")
    land_gap = land[land["date"] != pd.Timestamp("2023-01-09")]
    rows = build_feature_rows(reports, marine, land_gap)

    assert rows["timestamp"].tolist() == [pd.Timestamp("2023-01-14 09:15")]


def test_build_feature_rows_outside_weather_record(marine, land):
    rows = build_feature_rows(_reports("2024-06-01 09:00"), marine, land)
    assert rows.empty


@pytest.mark.parametrize("visibility,band", [
    (0.5, "poor"),
    (4.99, "poor"),
    (5.0, "fair"),
    (12.0, "good"),
    (15.0, "excellent"),
    (40.0, "excellent"),
])
def test_visibility_quality_bands(visibility, band):
    assert visibility_quality([visibility])[0] == band


def test_daily_weather_combines_sources(marine, land):
    daily = daily_weather(marine, land)

    assert list(daily.columns) == ["date", "swell_height_m", "wind_speed_kmh", "rainfall_mm"]
    assert len(daily) == 20


def test_site_report_counts():
    reports = pd.concat([
        _reports("2023-01-05", "2023-01-06"),
        _reports("2023-01-07").assign(site_id="2", name="Clovelly", visibility=6.0),
    ])
    counts = site_report_counts(reports)

    assert counts["name"].tolist() == ["Shelly Beach", "Clovelly"]
    assert counts["reports"].tolist() == [2, 1]
