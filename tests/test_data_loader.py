"""Report, site and weather parsing tests."""
from datetime import date
from io import StringIO

import pandas as pd
import pytest
from streamlit.testing.v1 import AppTest

from divevis import data_loader
from divevis.data_loader import (
    load_or_stop, merge_reports, normalize_reports, parse_embedded_reports,
    parse_land_weather, parse_marine_weather, parse_reports_csv, parse_sites,
)


def test_parse_sites_flattens_features(sites_geojson):
    sites = parse_sites(sites_geojson)

    assert list(sites["site_id"]) == ["1", "2", "3"]
    shelly = sites.iloc[0]
    assert shelly["name"] == "Shelly Beach"
    assert shelly["region"] == "Northern Beaches"
    # GeoJSON stores longitude first
    assert shelly["latitude"] == pytest.approx(-33.7997)
    assert shelly["longitude"] == pytest.approx(151.2881)


def test_embedded_reports_keep_utc_times(sites_geojson):
    reports = parse_embedded_reports(sites_geojson)

    # The zero-visibility report is dropped
    assert len(reports) == 1
    assert reports["timestamp"].iloc[0] == pd.Timestamp("2023-01-10 00:30", tz="UTC")
    assert reports["conditions"].iloc[0] == "calm"
    assert reports["site_id"].iloc[0] == "1"


def test_normalize_reports_drops_unusable_rows():
    raw = pd.DataFrame({
        "site_id": [1, 1, 2, 2],
        "timestamp": ["2023-03-01T00:00:00Z", "not a date",
                      "2023-03-02T00:00:00Z", "2023-03-03T00:00:00Z"],
        "visibility": [10, 8, -1, "abc"],
        "conditions": ["Choppy", "calm", "calm", "calm"],
    })
    reports = normalize_reports(raw)

    assert len(reports) == 1
    assert reports["visibility"].iloc[0] == 10
    assert reports["comment"].iloc[0] == ""


def test_unknown_conditions_are_labelled():
    raw = pd.DataFrame({
        "site_id": ["1", "1"],
        "timestamp": ["2023-03-01T00:00:00Z", "2023-03-02T00:00:00Z"],
        "visibility": [10, 12],
        "conditions": ["washing machine", None],
        "comment": [None, "great"],
    })
    reports = normalize_reports(raw)

    assert list(reports["conditions"]) == ["unknown", "unknown"]


def test_parse_reports_csv():
    csv = StringIO(
        "site_id,timestamp,visibility,conditions,comment\n"
        "2,2023-06-01T22:00:00Z,12,calm,Blue water\n"
        "3,2023-06-02T22:00:00Z,5,current,\n"
    )
    reports = parse_reports_csv(csv)

    assert len(reports) == 2
    assert reports["timestamp"].iloc[0] == pd.Timestamp("2023-06-01 22:00", tz="UTC")
    assert reports["site_id"].tolist() == ["2", "3"]


def test_parse_reports_csv_missing_column():
    csv = StringIO("site_id,timestamp\n1,2023-06-01T22:00:00Z\n")
    with pytest.raises(ValueError, match="visibility"):
        parse_reports_csv(csv)


def test_merge_reports_dedups_and_attaches_sites(sites_geojson):
    sites = parse_sites(sites_geojson)
    embedded = parse_embedded_reports(sites_geojson)
    flat = parse_reports_csv(StringIO(
        "site_id,timestamp,visibility,conditions,comment\n"
        "1,2023-01-10T00:30:00Z,9,calm,duplicate of embedded\n"
        "2,2023-01-12T00:00:00Z,6,surge,\n"
        "99,2023-01-12T00:00:00Z,6,surge,unknown site\n"
    ))
    merged = merge_reports(sites, embedded, flat)

    assert len(merged) == 2
    # First occurrence wins
    assert merged["visibility"].iloc[0] == 8
    assert list(merged["name"]) == ["Shelly Beach", "Clovelly"]
    # Sydney is UTC+11 in January
    assert merged["timestamp"].iloc[0] == pd.Timestamp("2023-01-10 11:30")
    assert merged["date"].iloc[1] == pd.Timestamp("2023-01-12")


def test_merge_reports_with_no_reports(sites_geojson):
    sites = parse_sites(sites_geojson)
    merged = merge_reports(sites, pd.DataFrame(columns=["site_id", "timestamp", "visibility",
                                                        "conditions", "comment"]))
    assert len(merged) == 0


def test_parse_land_weather_averages_wind():
    csv = StringIO(
        "date,wind_speed_9am_kmh,wind_speed_3pm_kmh,rainfall_mm\n"
        "2023-01-02,10,20,0\n"
        "2023-01-01,,30,4.2\n"
    )
    land = parse_land_weather(csv)

    assert list(land["date"]) == [pd.Timestamp("2023-01-01"), pd.Timestamp("2023-01-02")]
    assert land["wind_speed_kmh"].tolist() == [30.0, 15.0]
    assert land["rainfall_mm"].tolist() == [4.2, 0.0]


def test_parse_marine_weather_sorts_and_dedups():
    csv = StringIO(
        "timestamp,swell_height_m,wind_speed_kmh,wind_direction_deg,air_temperature_c\n"
        "2023-01-01T01:00,1.5,10,90,22\n"
        "2023-01-01T00:00,1.2,12,80,21\n"
        "2023-01-01T01:00,1.6,10,90,22\n"
    )
    marine = parse_marine_weather(csv)

    assert len(marine) == 2
    assert marine["swell_height_m"].tolist() == [1.2, 1.6]


def test_parse_marine_weather_missing_column():
    with pytest.raises(ValueError, match="swell_height_m"):
        parse_marine_weather(StringIO("timestamp,wind_speed_kmh\n2023-01-01,10\n"))


def test_parse_reports_csv_accepts_mixed_iso_timestamps():
    csv = StringIO(
        "site_id,timestamp,visibility,conditions,comment\n"
        "1,2023-06-01T22:00:00Z,12,calm,\n"
        "1,2023-06-02T22:00:00.123Z,10,calm,from the web form\n"
        "2,2023-06-03 22:00:00+00:00,8,surge,\n"
        "2,2023-06-04T08:00:00+10:00,7,surge,\n"
    )
    reports = parse_reports_csv(csv)

    assert len(reports) == 4
    assert reports["timestamp"].iloc[1] == pd.Timestamp("2023-06-02 22:00:00.123", tz="UTC")
    assert reports["timestamp"].iloc[3] == pd.Timestamp("2023-06-03 22:00", tz="UTC")


def test_merge_reports_keeps_repeated_local_hour_at_end_of_daylight_saving(sites_geojson):
    sites = parse_sites(sites_geojson)
    # Both are 02:30 on 2 April 2023 in Sydney, once in AEDT and once in AEST
    flat = parse_reports_csv(StringIO(
        "site_id,timestamp,visibility,conditions,comment\n"
        "2,2023-04-01T15:30:00Z,6,calm,\n"
        "2,2023-04-01T16:30:00Z,9,calm,\n"
    ))
    merged = merge_reports(sites, flat)

    assert len(merged) == 2
    assert (merged["timestamp"] == pd.Timestamp("2023-04-02 02:30")).all()
    assert sorted(merged["visibility"]) == [6, 9]


# ---------------------------------------------------------------------------
# Streamlit helpers
# ---------------------------------------------------------------------------

class PageStopped(Exception):
    pass


def test_load_or_stop_warns_on_missing_file(monkeypatch, tmp_path):
    warnings = []

    def stop():
        raise PageStopped

    monkeypatch.setattr(data_loader.st, "warning", warnings.append)
    monkeypatch.setattr(data_loader.st, "stop", stop)

    with pytest.raises(PageStopped):
        load_or_stop(lambda: parse_land_weather(str(tmp_path / "land_weather.csv")))
    assert "land_weather.csv" in warnings[0]


def test_load_or_stop_returns_loaded_data():
    assert load_or_stop(lambda: 42) == 42


def test_sidebar_filters_by_region_and_date():
    def app():
        import pandas as pd
        import streamlit as st
        from divevis.data_loader import sidebar_filters

        df = pd.DataFrame({
            "region": ["Northern Beaches", "Eastern Suburbs", "Eastern Suburbs"],
            "timestamp": pd.to_datetime(["2023-01-01 09:00", "2023-01-02 09:00",
                                         "2023-01-03 09:00"]),
            "visibility": [8.0, 12.0, 5.0],
        })
        st.text(str(len(sidebar_filters(df))))

    at = AppTest.from_function(app).run()
    assert not at.exception
    assert at.text[0].value == "3"

    at.sidebar.multiselect[0].set_value(["Eastern Suburbs"]).run()
    assert at.text[0].value == "2"

    at.sidebar.date_input[0].set_value((date(2023, 1, 1), date(2023, 1, 2))).run()
    assert at.text[0].value == "1"
