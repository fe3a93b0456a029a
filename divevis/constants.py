"""Shared constants: colors, labels, windows, tolerances, model formulas."""

REGION_COLORS = {
    "Northern Beaches": "#E63946",
    "Sydney Harbour": "#F4A261",
    "Eastern Suburbs": "#2A9D8F",
    "Southern Sydney": "#264653",
    "Central Coast": "#7209B7",
    "Illawarra": "#FB8500",
}

# Trailing window sizes: hours for marine data, days for land data
SWELL_WINDOW = 5
LAND_WINDOW = 5

# A prediction within this many meters of the report is acceptable for dive planning
TOLERANCE_M = 3.0

MIN_SITE_REPORTS = 3

FEATURE_COLS = ["swell_5", "rain_5", "wind_5"]

FEATURE_LABELS = {
    "swell_5": "Swell, 5-hour mean (m)",
    "rain_5": "Rainfall, 5-day mean (mm)",
    "wind_5": "Wind, 5-day mean (km/h)",
    "visibility": "Visibility (m)",
    "swell_height_m": "Swell height (m)",
    "wind_speed_kmh": "Wind speed (km/h)",
    "rainfall_mm": "Rainfall (mm)",
}

CONDITIONS = ["calm", "surge", "current", "choppy", "rough"]

# (upper bound in meters, label); the last band is open-ended
QUALITY_BANDS = [
    (5.0, "poor"),
    (10.0, "fair"),
    (15.0, "good"),
    (float("inf"), "excellent"),
]

QUALITY_ORDER = [label for _, label in QUALITY_BANDS]

MODEL_FORMULAS = {
    "intercept": "visibility ~ 1 + (1 | site_id)",
    "swell": "visibility ~ swell_5 + (1 + swell_5 | site_id)",
    "swell_rain": "visibility ~ swell_5 + rain_5 + (1 + swell_5 + rain_5 | site_id)",
    "full": "visibility ~ swell_5 + rain_5 + wind_5 + (1 + swell_5 + rain_5 + wind_5 | site_id)",
}

MODEL_LABELS = {
    "intercept": "Intercept only",
    "swell": "+ swell",
    "swell_rain": "+ swell + rain",
    "full": "+ swell + rain + wind",
}

# Priors on the log-visibility scale with standardized predictors
PRIORS = {
    "intercept_sigma": 1.0,
    "beta_sigma": 0.5,
    "sigma_rate": 1.0,
    "site_sd_rate": 2.0,
    "lkj_eta": 2.0,
}

SAMPLER = {
    "draws": 1000,
    "tune": 1000,
    "chains": 4,
    "cores": 4,
    "target_accept": 0.95,
    "random_seed": 42,
}

# Report timestamps arrive in UTC; weather files are recorded in local time
LOCAL_TZ = "Australia/Sydney"

SITES_URL = "https://vis.example.org/api/sites.json"
REPORTS_URL = "https://vis.example.org/api/reports.csv"

PART_TITLES = {
    "I": "The Data",
    "II": "Weather and Visibility",
    "III": "Baselines",
    "IV": "Hierarchical Model",
    "V": "Model Comparison",
    "VI": "Predictions",
}
