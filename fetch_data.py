"""Download visibility reports and, optionally, hourly marine weather.

The two report endpoints are saved as-is to the data directory. Marine
weather comes from the Open-Meteo marine and archive APIs and is written in
the column layout the report expects. Land weather (daily 9am/3pm wind and
rainfall) is supplied as a file.

Usage:
    python fetch_data.py
    python fetch_data.py --marine --start 2022-01-01 --end 2024-12-31
"""
import argparse
import csv
import io
import json
import os
import time
from datetime import datetime, timedelta

import requests

from divevis.constants import LOCAL_TZ, REPORTS_URL, SITES_URL
from divevis.data_loader import (
    DATA_DIR, MARINE_COLUMNS, MARINE_FILE, REPORTS_FILE, SITES_FILE,
    merge_reports, parse_embedded_reports, parse_reports_csv, parse_sites,
)

MARINE_URL = "https://marine-api.open-meteo.com/v1/marine"
ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"

# Offshore point east of Sydney Heads
MARINE_POINT = (-33.85, 151.35)


def fetch_reports(sites_url, reports_url, out_dir):
    """Download both report endpoints and print what they contain."""
    print(f"  Fetching sites from {sites_url}...")
    resp = requests.get(sites_url, timeout=60)
    resp.raise_for_status()
    geojson = resp.json()
    with open(os.path.join(out_dir, SITES_FILE), "w") as f:
        json.dump(geojson, f)

    print(f"  Fetching reports from {reports_url}...")
    resp2 = requests.get(reports_url, timeout=60)
    resp2.raise_for_status()
    with open(os.path.join(out_dir, REPORTS_FILE), "w", newline="") as f:
        f.write(resp2.text)

    sites = parse_sites(geojson)
    reports = merge_reports(
        sites,
        parse_embedded_reports(geojson),
        parse_reports_csv(io.StringIO(resp2.text)),
    )
    print(f"  -> {len(sites):,} sites, {len(reports):,} usable reports")


def fetch_marine(start, end, lat, lon, out_dir):
    """Fetch hourly swell, wind and air temperature for one offshore point."""
    common = {
        "latitude": lat,
        "longitude": lon,
        "start_date": start,
        "end_date": end,
        "timezone": LOCAL_TZ,
    }
    print(f"  Fetching swell ({start} to {end})...")
    resp = requests.get(MARINE_URL, params={**common, "hourly": "swell_wave_height"},
                        timeout=120)
    resp.raise_for_status()
    swell = resp.json()["hourly"]

    time.sleep(1)  # be polite to the free API
    print(f"  Fetching wind and air temperature ({start} to {end})...")
    resp2 = requests.get(
        ARCHIVE_URL,
        params={**common, "hourly": "wind_speed_10m,wind_direction_10m,temperature_2m"},
        timeout=120,
    )
    resp2.raise_for_status()
    weather = resp2.json()["hourly"]
    by_time = {ts: i for i, ts in enumerate(weather["time"])}

    rows = []
    for i, ts in enumerate(swell["time"]):
        j = by_time.get(ts)
        rows.append({
            "timestamp": ts,
            "swell_height_m": swell["swell_wave_height"][i],
            "wind_speed_kmh": weather["wind_speed_10m"][j] if j is not None else None,
            "wind_direction_deg": weather["wind_direction_10m"][j] if j is not None else None,
            "air_temperature_c": weather["temperature_2m"][j] if j is not None else None,
        })

    out_path = os.path.join(out_dir, MARINE_FILE)
    with open(out_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=MARINE_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    print(f"  -> {len(rows):,} hourly records")


def main(argv=None):
    today = datetime.now().date()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--sites-url", default=SITES_URL)
    parser.add_argument("--reports-url", default=REPORTS_URL)
    parser.add_argument("--out-dir", default=DATA_DIR)
    parser.add_argument("--marine", action="store_true", help="also fetch hourly marine weather")
    parser.add_argument("--start", default=(today - timedelta(days=730)).isoformat())
    # Archive data typically lags ~5 days behind present
    parser.add_argument("--end", default=(today - timedelta(days=6)).isoformat())
    parser.add_argument("--lat", type=float, default=MARINE_POINT[0])
    parser.add_argument("--lon", type=float, default=MARINE_POINT[1])
    args = parser.parse_args(argv)

    os.makedirs(args.out_dir, exist_ok=True)
    print("\n[reports]")
    fetch_reports(args.sites_url, args.reports_url, args.out_dir)
    if args.marine:
        print("\n[marine weather]")
        fetch_marine(args.start, args.end, args.lat, args.lon, args.out_dir)
    print(f"\nDone! Files written to {args.out_dir}")


if __name__ == "__main__":
    main()
