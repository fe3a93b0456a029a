"""Dive Visibility Report -- Main Entry Point."""
import streamlit as st

st.set_page_config(
    page_title="Dive Visibility Report",
    page_icon="🤿",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.title("Can the Weather Tell Us How Far We'll See Underwater?")
st.subheader("A statistical look at crowd-sourced dive visibility reports")

st.markdown("""
Every diver has a theory about visibility. Big swell stirs up the bottom. Rain washes
the catchment into the bays. A week of northeasterlies brings the clear blue water in,
or pushes it out, depending on who you ask. Most of these theories are held with a
confidence that is inversely proportional to the amount of data behind them.

So here is some data. Divers have been logging how far they could see at their local
sites, along with a rough description of the conditions and usually a comment about
the sea life. This report joins those reports to the weather leading up to each dive
and asks a simple question: **how much of the visibility can the weather explain,
and is that enough to plan a dive around?**

### The Data

- **Visibility reports**: site, time, estimated visibility in meters, conditions, comment
- **Dive sites**: name, region and location of every site with reports
- **Marine weather**: hourly swell height, wind and air temperature offshore
- **Land weather**: daily wind (the 9am and 3pm readings averaged) and rainfall

### How This Report Is Organised
""")

parts = {
    "Part I: The Data": "Where the reports come from and what they look like",
    "Part II: Weather and Visibility": "Rolling averages of swell, rain and wind, and how they correlate with visibility",
    "Part III: Baselines": "Linear regression and per-site means, the numbers to beat",
    "Part IV: Hierarchical Model": "A lognormal regression with per-site intercepts and slopes, partially pooled",
    "Part V: Model Comparison": "Leave-one-out cross-validation across nested models",
    "Part VI: Predictions": "How often the model gets within 3 meters, and what it says about tomorrow",
}

for part, desc in parts.items():
    st.markdown(f"**{part}** -- {desc}")

st.divider()

from divevis.data_loader import load_or_stop, load_reports
from divevis.ui_components import metric_row

df = load_or_stop(load_reports)

st.subheader("Latest Reports")
st.dataframe(
    df.sort_values("timestamp", ascending=False)
    [["timestamp", "name", "region", "visibility", "conditions", "comment"]].head(20),
    use_container_width=True, hide_index=True,
)

metric_row([
    ("Reports", f"{len(df):,}"),
    ("Sites", df["site_id"].nunique()),
    ("Date Range", f"{df['timestamp'].min():%Y-%m-%d} to {df['timestamp'].max():%Y-%m-%d}"),
    ("Median Visibility", f"{df['visibility'].median():.1f} m"),
])
