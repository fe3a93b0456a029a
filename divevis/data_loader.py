"""Parsing, cached loading and filtering of reports, sites and weather."""
import json
import os

import numpy as np
import pandas as pd
import streamlit as st

from divevis.constants import CONDITIONS, LOCAL_TZ

DATA_DIR = os.environ.get(
    "DIVEVIS_DATA_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "data"),
)

SITES_FILE = "sites.json"
REPORTS_FILE = "reports.csv"
MARINE_FILE = "marine_weather.csv"
LAND_FILE = "land_weather.csv"

SITE_COLUMNS = ["site_id", "name", "region", "subregion", "latitude", "longitude"]
REPORT_COLUMNS = ["site_id", "timestamp", "visibility", "conditions", "comment"]
MARINE_COLUMNS = ["timestamp", "swell_height_m", "wind_speed_kmh",
                  "wind_direction_deg", "air_temperature_c"]
LAND_COLUMNS = ["date", "wind_speed_9am_kmh", "wind_speed_3pm_kmh", "rainfall_mm"]


def _require(df, columns, source):
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{source} is missing columns: {', '.join(missing)}")


def _report_times(values):
    """Parse ISO 8601 report timestamps of any shape as UTC."""
    return pd.to_datetime(values, errors="coerce", utc=True, format="ISO8601")


def parse_sites(geojson):
    """Flatten a GeoJSON FeatureCollection of dive sites into a DataFrame."""
    rows = []
    for feature in geojson.get("features", []):
        props = feature.get("properties") or {}
        lon, lat = (feature.get("geometry") or {}).get("coordinates", [np.nan, np.nan])[:2]
        rows.append({
            "site_id": props.get("id"),
            "name": props.get("name"),
            "region": props.get("region"),
            "subregion": props.get("subregion"),
            "latitude": lat,
            "longitude": lon,
        })
    sites = pd.DataFrame(rows, columns=SITE_COLUMNS)
    sites = sites.dropna(subset=["site_id", "name"])
    sites["site_id"] = sites["site_id"].astype(str)
    return sites.drop_duplicates("site_id").reset_index(drop=True)


def parse_embedded_reports(geojson):
    """Collect the reports nested inside each site feature."""
    rows = []
    for feature in geojson.get("features", []):
        props = feature.get("properties") or {}
        for report in props.get("reports") or []:
            rows.append({"site_id": props.get("id"), **report})
    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return normalize_reports(pd.DataFrame(rows))


def parse_reports_csv(source):
    """Read the flat report export (path or buffer)."""
    return normalize_reports(pd.read_csv(source, dtype={"site_id": str}))


def normalize_reports(raw):
    """Coerce report columns and drop rows the lognormal model cannot use."""
    df = raw.copy()
    for col in ["conditions", "comment"]:
        if col not in df.columns:
            df[col] = None
    _require(df, REPORT_COLUMNS, "reports")

    df["site_id"] = df["site_id"].astype(str)
    df["timestamp"] = _report_times(df["timestamp"])
    df["visibility"] = pd.to_numeric(df["visibility"], errors="coerce")
    cond = df["conditions"].fillna("").astype(str).str.strip().str.lower()
    df["conditions"] = cond.where(cond.isin(CONDITIONS), "unknown")
    df["comment"] = df["comment"].fillna("").astype(str).str.strip()

    df = df.dropna(subset=["timestamp", "visibility"])
    df = df[df["visibility"] > 0]
    return df[REPORT_COLUMNS].reset_index(drop=True)


def merge_reports(sites, *frames):
    """Combine report sources, keep known sites only, attach site metadata.

    Timestamps come in as UTC and leave as naive local time.
    """
    frames = [f for f in frames if len(f)]
    if frames:
        reports = pd.concat(frames, ignore_index=True)
    else:
        reports = pd.DataFrame(columns=REPORT_COLUMNS)
    # Dedup on UTC: local times repeat when daylight saving ends
    reports["timestamp"] = pd.to_datetime(reports["timestamp"], utc=True)
    reports = reports.drop_duplicates(subset=["site_id", "timestamp"], keep="first")
    reports["timestamp"] = reports["timestamp"].dt.tz_convert(LOCAL_TZ).dt.tz_localize(None)
    reports = reports[reports["site_id"].isin(sites["site_id"])]
    merged = reports.merge(sites, on="site_id", how="left")
    merged["date"] = merged["timestamp"].dt.normalize()
    return merged.sort_values("timestamp").reset_index(drop=True)


def parse_marine_weather(source):
    """Read hourly marine observations."""
    df = pd.read_csv(source)
    _require(df, MARINE_COLUMNS, "marine weather")
    df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce")
    for col in MARINE_COLUMNS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df = df.dropna(subset=["timestamp"])
    df = df.drop_duplicates("timestamp", keep="last").sort_values("timestamp")
    return df[MARINE_COLUMNS].reset_index(drop=True)


def parse_land_weather(source):
    """Read daily land observations; wind is the mean of the 9am and 3pm readings."""
    df = pd.read_csv(source)
    _require(df, LAND_COLUMNS, "land weather")
    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.normalize()
    for col in LAND_COLUMNS[1:]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["wind_speed_kmh"] = df[["wind_speed_9am_kmh", "wind_speed_3pm_kmh"]].mean(axis=1)
    df = df.dropna(subset=["date"])
    df = df.drop_duplicates("date", keep="last").sort_values("date")
    return df[["date", "wind_speed_kmh", "rainfall_mm"]].reset_index(drop=True)


def _path(name):
    return os.path.join(DATA_DIR, name)


@st.cache_data
def load_sites():
    """Load the dive site reference table."""
    with open(_path(SITES_FILE)) as f:
        return parse_sites(json.load(f))


@st.cache_data
def load_reports():
    """Load reports from both endpoints, joined to site metadata."""
    with open(_path(SITES_FILE)) as f:
        geojson = json.load(f)
    sites = parse_sites(geojson)
    frames = [parse_embedded_reports(geojson)]
    if os.path.exists(_path(REPORTS_FILE)):
        frames.append(parse_reports_csv(_path(REPORTS_FILE)))
    return merge_reports(sites, *frames)


@st.cache_data
def load_marine():
    """Load hourly marine weather."""
    return parse_marine_weather(_path(MARINE_FILE))


@st.cache_data
def load_land():
    """Load daily land weather."""
    return parse_land_weather(_path(LAND_FILE))


@st.cache_data
def load_feature_rows():
    """Reports joined to their trailing weather aggregates."""
    from divevis.features import build_feature_rows
    return build_feature_rows(load_reports(), load_marine(), load_land())


def load_or_stop(loader):
    """Call a loader; on a missing data file, warn and stop the page."""
    try:
        return loader()
    except FileNotFoundError as e:
        missing = os.path.basename(e.filename) if e.filename else "a data file"
        st.warning(
            f"Missing `{missing}` in `{DATA_DIR}`. Run `python fetch_data.py --marine` "
            f"and add `{LAND_FILE}` (date, wind_speed_9am_kmh, wind_speed_3pm_kmh, "
            "rainfall_mm)."
        )
        st.stop()


def sidebar_filters(df):
    """Render sidebar region and date filters; return filtered DataFrame."""
    st.sidebar.header("Filters")
    regions = sorted(df["region"].dropna().unique().tolist())
    if "selected_regions" not in st.session_state:
        st.session_state.selected_regions = regions.copy()
    selected = st.sidebar.multiselect(
        "Regions", regions,
        default=[r for r in st.session_state.selected_regions if r in regions],
        key="region_filter"
    )
    st.session_state.selected_regions = selected

    min_date = df["timestamp"].min().date()
    max_date = df["timestamp"].max().date()
    date_range = st.sidebar.date_input(
        "Date range", value=(min_date, max_date),
        min_value=min_date, max_value=max_date,
        key="date_filter"
    )
    if len(date_range) == 2:
        start, end = date_range
    else:
        start, end = min_date, max_date

    mask = (
        df["region"].isin(selected) &
        (df["timestamp"].dt.date >= start) &
        (df["timestamp"].dt.date <= end)
    )
    return df[mask].copy()
