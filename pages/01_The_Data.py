"""Section 1: The Data -- sites, reports, and the shape of visibility."""
import streamlit as st
import numpy as np
import pandas as pd
import plotly.express as px

from divevis.data_loader import load_or_stop, load_reports, load_sites, sidebar_filters
from divevis.features import site_report_counts, visibility_quality
from divevis.plotting import apply_common_layout, box_chart, histogram_chart, site_map
from divevis.stats_helpers import bootstrap_ci, descriptive_stats, skew_comparison
from divevis.ui_components import (
    section_header, concept_box, insight_box, warning_box, metric_row, navigation,
)
from divevis.constants import QUALITY_ORDER, REGION_COLORS

# ---------------------------------------------------------------------------
st.set_page_config(page_title="1: The Data", layout="wide")
df = load_or_stop(load_reports)
sites = load_or_stop(load_sites)
fdf = sidebar_filters(df)

section_header(1, "The Data", part="I")

st.markdown(
    "Before any modelling, it is worth knowing who is reporting, where, and how often. "
    "Crowd-sourced data has a personality, and the personality of this dataset is "
    "'enthusiastic on sunny weekends, silent when it is blowing a gale'. That matters, "
    "because it means the data we have is not a random sample of days."
)

if len(fdf) == 0:
    st.warning("No reports match the filters. Adjust them in the sidebar.")
    st.stop()

metric_row([
    ("Reports", f"{len(fdf):,}"),
    ("Sites with reports", fdf["site_id"].nunique()),
    ("Sites listed", len(sites)),
    ("Median visibility", f"{fdf['visibility'].median():.1f} m"),
])

# ---------------------------------------------------------------------------
# 1. Where
# ---------------------------------------------------------------------------
st.subheader("Where the Reports Come From")
counts = site_report_counts(fdf)[["site_id", "reports", "mean_visibility"]]
site_counts = sites.merge(counts, on="site_id", how="inner")
st.plotly_chart(
    site_map(site_counts, size="reports", title="Dive Sites, Sized by Number of Reports"),
    use_container_width=True,
)

top = site_counts.sort_values("reports", ascending=False).head(15)
fig_top = px.bar(top, x="reports", y="name", color="region", orientation="h",
                 color_discrete_map=REGION_COLORS)
fig_top.update_layout(yaxis=dict(autorange="reversed"), yaxis_title=None)
apply_common_layout(fig_top, title="Most Reported Sites", height=450)
st.plotly_chart(fig_top, use_container_width=True)

insight_box(
    f"The top five sites account for {top['reports'].head(5).sum() / len(fdf):.0%} of all "
    "reports. A handful of sites carry the dataset, and a long tail of sites have one or two "
    "reports each. Keep that in mind: it is exactly the situation partial pooling was "
    "invented for."
)

# ---------------------------------------------------------------------------
# 2. When
# ---------------------------------------------------------------------------
st.subheader("When People Report")
by_month = (
    fdf.set_index("timestamp")
    .resample("MS")["visibility"]
    .agg(["size", "median"])
    .rename(columns={"size": "reports", "median": "median_visibility"})
    .reset_index()
)
fig_month = px.bar(by_month, x="timestamp", y="reports",
                   color="median_visibility", color_continuous_scale="Blues",
                   labels={"timestamp": "Month", "median_visibility": "Median vis (m)"})
apply_common_layout(fig_month, title="Reports per Month", height=400)
st.plotly_chart(fig_month, use_container_width=True)

weekday = fdf["timestamp"].dt.day_name().value_counts().reindex(
    ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    fill_value=0,
)
col1, col2 = st.columns(2)
with col1:
    fig_wd = px.bar(x=weekday.index, y=weekday.values, labels={"x": "", "y": "Reports"})
    apply_common_layout(fig_wd, title="Reports by Day of Week", height=350)
    st.plotly_chart(fig_wd, use_container_width=True)
with col2:
    cond = fdf["conditions"].value_counts()
    fig_cond = px.bar(x=cond.index, y=cond.values, labels={"x": "", "y": "Reports"})
    apply_common_layout(fig_cond, title="Reported Conditions", height=350)
    st.plotly_chart(fig_cond, use_container_width=True)

st.divider()

# ---------------------------------------------------------------------------
# 3. What
# ---------------------------------------------------------------------------
st.subheader("The Shape of Visibility")
concept_box(
    "Why the Distribution Matters",
    "Visibility cannot be negative, and it has a long right tail: most dives are in the "
    "5 to 12 meter range, but every so often the blue water comes in and someone reports "
    "25 meters with great excitement. A normal distribution would happily predict "
    "-2 meters for a murky day. Taking logs usually tames this kind of skew, which is why "
    "the model later uses a <b>lognormal</b> outcome.",
)

col1, col2 = st.columns(2)
with col1:
    st.plotly_chart(histogram_chart(fdf, x="visibility", title="Visibility (m)"),
                    use_container_width=True)
with col2:
    logged = fdf.assign(log_visibility=np.log(fdf["visibility"]))
    st.plotly_chart(histogram_chart(logged, x="log_visibility", title="log(Visibility)"),
                    use_container_width=True)

stats_df = pd.DataFrame([descriptive_stats(fdf["visibility"])]).round(2)
st.dataframe(stats_df, use_container_width=True, hide_index=True)

if len(fdf) >= 2:
    lower, upper = bootstrap_ci(fdf["visibility"].to_numpy(), stat_func=np.median)
    st.caption(f"Median visibility {fdf['visibility'].median():.1f} m "
               f"(95% bootstrap CI {lower:.1f} to {upper:.1f} m).")

if len(fdf) >= 3:
    st.markdown("**Normality, before and after taking logs (Shapiro-Wilk)**")
    st.dataframe(skew_comparison(fdf["visibility"]).round(4), use_container_width=True,
                 hide_index=True)

st.plotly_chart(box_chart(fdf, x="region", y="visibility", title="Visibility by Region"),
                use_container_width=True)

quality = pd.Series(visibility_quality(fdf["visibility"])).value_counts().reindex(QUALITY_ORDER)
st.markdown(
    "For planning, divers think in bands rather than meters: "
    + ", ".join(f"**{q}** {n:,}" for q, n in quality.items())
    + "."
)

warning_box(
    "Visibility is estimated by eye, usually rounded to the nearest meter or five, and "
    "different divers have different eyes. Some of the variation the model cannot explain "
    "is not in the water at all."
)

navigation(
    next_label="2: Weather and Visibility",
    next_page="02_Weather_and_Visibility.py",
)
