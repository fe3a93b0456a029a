"""Time alignment and rolling weather aggregates for visibility reports."""
import numpy as np
import pandas as pd

from divevis.constants import (
    FEATURE_COLS, LAND_WINDOW, QUALITY_BANDS, QUALITY_ORDER, SWELL_WINDOW,
)


def rolling_swell(marine, window=SWELL_WINDOW):
    """Trailing mean swell height over `window` hours.

    Observations are first put on a complete hourly grid, so a gap in the
    record leaves the affected windows empty instead of silently stretching
    them over a longer period.
    """
    hourly = (
        marine.set_index("timestamp")["swell_height_m"]
        .resample("h")
        .mean()
    )
    swell = hourly.rolling(window, min_periods=window).mean()
    return swell.rename("swell_5").dropna().to_frame()


def rolling_land(land, window=LAND_WINDOW):
    """Trailing mean rainfall and wind over `window` days, on a complete daily grid."""
    daily = (
        land.set_index("date")[["rainfall_mm", "wind_speed_kmh"]]
        .resample("D")
        .mean()
    )
    rolled = daily.rolling(window, min_periods=window).mean()
    rolled = rolled.rename(columns={"rainfall_mm": "rain_5", "wind_speed_kmh": "wind_5"})
    return rolled.dropna()


def build_feature_rows(reports, marine, land, swell_window=SWELL_WINDOW, land_window=LAND_WINDOW):
    """Join each report to the weather aggregates as of its hour and date.

    Reports whose rolling windows are incomplete are dropped.
    """
    rows = reports.copy()
    rows["hour"] = rows["timestamp"].dt.floor("h")
    if "date" not in rows.columns:
        rows["date"] = rows["timestamp"].dt.normalize()

    swell = rolling_swell(marine, swell_window).rename_axis("hour").reset_index()
    land_roll = rolling_land(land, land_window).rename_axis("date").reset_index()

    rows = rows.merge(swell, on="hour", how="left")
    rows = rows.merge(land_roll, on="date", how="left")
    rows = rows.dropna(subset=FEATURE_COLS).drop(columns="hour")
    rows["quality"] = visibility_quality(rows["visibility"])
    return rows.sort_values("timestamp").reset_index(drop=True)


def visibility_quality(values):
    """Map visibility in meters to ordered quality bands."""
    edges = [0.0] + [upper for upper, _ in QUALITY_BANDS]
    return pd.cut(
        np.asarray(values, dtype=float), bins=edges, labels=QUALITY_ORDER,
        right=False, ordered=True,
    )


def daily_weather(marine, land):
    """Daily swell, wind and rain on one frame for time series charts."""
    swell = (
        marine.set_index("timestamp")[["swell_height_m"]]
        .resample("D")
        .mean()
    )
    daily = land.set_index("date")[["wind_speed_kmh", "rainfall_mm"]]
    out = swell.join(daily, how="outer")
    out.index.name = "date"
    return out.reset_index()


def site_report_counts(rows):
    """Number of usable reports per site, most reported first."""
    return (
        rows.groupby(["site_id", "name", "region"], as_index=False, dropna=False)
        .agg(reports=("visibility", "size"), mean_visibility=("visibility", "mean"))
        .sort_values("reports", ascending=False)
        .reset_index(drop=True)
    )
