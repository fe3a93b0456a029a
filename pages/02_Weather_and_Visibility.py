"""Section 2: Weather and Visibility -- rolling averages and correlations."""
import streamlit as st
import pandas as pd

from divevis.data_loader import (
    load_feature_rows, load_land, load_marine, load_or_stop, load_reports, sidebar_filters,
)
from divevis.features import daily_weather
from divevis.plotting import heatmap_chart, scatter_chart, weather_timeline
from divevis.stats_helpers import correlation_matrix, correlation_tests
from divevis.ui_components import (
    section_header, concept_box, formula_box, insight_box, warning_box,
    code_example, navigation,
)
from divevis.constants import FEATURE_COLS, FEATURE_LABELS, LAND_WINDOW, SWELL_WINDOW

# ---------------------------------------------------------------------------
st.set_page_config(page_title="2: Weather and Visibility", layout="wide")
reports = load_or_stop(load_reports)
rows = load_or_stop(load_feature_rows)
frows = sidebar_filters(rows)

section_header(2, "Weather and Visibility", part="II")

# ---------------------------------------------------------------------------
# 1. Weather record
# ---------------------------------------------------------------------------
st.subheader("The Weather Record")
daily = daily_weather(load_or_stop(load_marine), load_or_stop(load_land))
st.plotly_chart(weather_timeline(daily, reports), use_container_width=True)

st.markdown(
    "Swell comes from an offshore model point at hourly resolution. Wind and rain come "
    "from a land station, once a day. The red ticks on the swell panel mark report "
    "times, which is a quick way to see that nobody goes diving in the biggest swells."
)

st.divider()

# ---------------------------------------------------------------------------
# 2. Rolling windows
# ---------------------------------------------------------------------------
concept_box(
    "Why Rolling Averages?",
    "Visibility does not respond to the weather at the moment you roll off the boat. "
    "Sediment takes time to settle after a swell, and rain has to make its way through "
    "the catchment before it shows up as brown water at the site. A trailing average "
    f"summarises 'what has the weather been doing lately': the last {SWELL_WINDOW} hours "
    f"of swell, and the last {LAND_WINDOW} days of wind and rain.",
)

formula_box(
    "Trailing Rolling Mean",
    r"x^{(5)}_t = \frac{1}{5}\sum_{i=0}^{4} x_{t-i}",
    "Each report is matched to the window ending at its hour (swell) or its date (wind and "
    "rain). If any observation inside a window is missing, the report is dropped rather "
    "than averaged over a shorter window.",
)

dropped = len(reports) - len(rows)
st.markdown(
    f"**{len(rows):,}** of **{len(reports):,}** reports have complete weather windows; "
    f"{dropped:,} were dropped."
)

code_example("""
hourly = marine.set_index("timestamp")["swell_height_m"].resample("h").mean()
swell_5 = hourly.rolling(5, min_periods=5).mean()

daily = land.set_index("date")[["rainfall_mm", "wind_speed_kmh"]].resample("D").mean()
rolled = daily.rolling(5, min_periods=5).mean()

rows = reports.merge(swell_5, left_on=reports["timestamp"].dt.floor("h"), ...)
rows = rows.merge(rolled, on="date").dropna(subset=["swell_5", "rain_5", "wind_5"])
""")

if len(frows) < 10:
    st.warning("Not enough reports after filtering. Adjust the sidebar filters.")
    st.stop()

st.divider()

# ---------------------------------------------------------------------------
# 3. Relationships
# ---------------------------------------------------------------------------
st.subheader("Visibility Against Each Weather Feature")
feat = st.selectbox("Feature", FEATURE_COLS, format_func=lambda c: FEATURE_LABELS[c],
                    key="wv_feature")
log_y = st.checkbox("Log visibility axis", value=True, key="wv_log")
fig = scatter_chart(frows, x=feat, y="visibility", trendline="ols",
                    title=f"Visibility vs {FEATURE_LABELS[feat]}")
if log_y:
    fig.update_yaxes(type="log")
st.plotly_chart(fig, use_container_width=True)

tests = correlation_tests(frows, "visibility", FEATURE_COLS)
st.dataframe(tests.round(4), use_container_width=True, hide_index=True)

method = st.radio("Correlation method", ["spearman", "pearson"], horizontal=True, key="wv_method")
corr = correlation_matrix(frows[FEATURE_COLS + ["visibility"]], method=method)
st.plotly_chart(heatmap_chart(corr, title=f"{method.title()} Correlations"),
                use_container_width=True)

if len(tests):
    strongest = tests.loc[tests["spearman_rho"].abs().idxmax()]
    insight_box(
        f"The strongest single relationship is with **{FEATURE_LABELS[strongest['feature']]}** "
        f"(Spearman rho = {strongest['spearman_rho']:.2f}). None of these correlations is "
        "large, and that is normal: they pool every site together, and a swell that wrecks "
        "an exposed ocean reef barely touches a sheltered harbour site."
    )

st.subheader("The Same Relationship, Site by Site")
site_counts = frows["name"].value_counts()
busy = site_counts[site_counts >= 10].index.tolist()
if busy:
    chosen = st.multiselect("Sites", busy, default=busy[:4], key="wv_sites")
    sub = frows[frows["name"].isin(chosen)]
    fig_sites = scatter_chart(sub, x=feat, y="visibility", color="name", trendline="ols",
                              title=f"Visibility vs {FEATURE_LABELS[feat]} by Site")
    st.plotly_chart(fig_sites, use_container_width=True)

    per_site = pd.concat(
        [correlation_tests(g, "visibility", [feat]).assign(site=name)
         for name, g in frows[frows["name"].isin(busy)].groupby("name")],
        ignore_index=True,
    )
    st.dataframe(per_site[["site", "n", "spearman_rho", "spearman_p"]].round(3),
                 use_container_width=True, hide_index=True)

warning_box(
    "Swell, wind and rain arrive together with the same weather systems, so these features "
    "are correlated with each other. Individual coefficients in a model that includes all "
    "three should be read with that in mind."
)

navigation(
    prev_label="1: The Data",
    prev_page="01_The_Data.py",
    next_label="3: Baselines",
    next_page="03_Baselines.py",
)
