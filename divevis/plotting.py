"""Shared Plotly plotting helpers."""
import numpy as np
import plotly.express as px
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from divevis.constants import FEATURE_LABELS, QUALITY_ORDER, REGION_COLORS, TOLERANCE_M

QUALITY_COLORS = dict(zip(QUALITY_ORDER, ["#E63946", "#F4A261", "#2A9D8F", "#264653"]))


def apply_common_layout(fig, title=None, height=500):
    """Apply common layout settings to a Plotly figure."""
    fig.update_layout(
        template="plotly_white",
        height=height,
        title=title,
        title_x=0.5,
        margin=dict(t=60, b=40, l=60, r=40),
    )
    return fig


def _labels(labels):
    lab = {**(labels or {})}
    for k, v in FEATURE_LABELS.items():
        lab.setdefault(k, v)
    return lab


def site_map(sites, size=None, color="region", title=None, height=550):
    """Dive sites on a map, sized by an optional column such as report count."""
    fig = px.scatter_map(
        sites, lat="latitude", lon="longitude", color=color, size=size,
        hover_name="name", color_discrete_map=REGION_COLORS,
        zoom=9, map_style="carto-positron",
    )
    return apply_common_layout(fig, title, height)


def scatter_chart(df, x, y, color="region", title=None, labels=None, height=500,
                  opacity=0.6, trendline=None):
    """Create a scatter plot with region colors."""
    fig = px.scatter(df, x=x, y=y, color=color, color_discrete_map=REGION_COLORS,
                     labels=_labels(labels), title=title, opacity=opacity,
                     trendline=trendline, hover_data=["name"] if "name" in df else None)
    return apply_common_layout(fig, title, height)


def histogram_chart(df, x, color=None, title=None, nbins=40, labels=None, height=500):
    """Create a histogram."""
    fig = px.histogram(df, x=x, color=color, color_discrete_map=REGION_COLORS,
                       nbins=nbins, labels=_labels(labels), title=title,
                       barmode="overlay", opacity=0.7)
    return apply_common_layout(fig, title, height)


def box_chart(df, x, y, color=None, title=None, labels=None, height=500):
    """Create a box plot."""
    fig = px.box(df, x=x, y=y, color=color or x,
                 color_discrete_map=REGION_COLORS, labels=_labels(labels), title=title)
    return apply_common_layout(fig, title, height)


def heatmap_chart(data, title=None, height=500, color_scale="RdBu_r"):
    """Create an annotated heatmap from a DataFrame."""
    fig = go.Figure(data=go.Heatmap(
        z=data.values, x=data.columns.tolist(), y=data.index.tolist(),
        colorscale=color_scale, zmin=-1, zmax=1,
        text=np.round(data.values, 2), texttemplate="%{text}",
    ))
    return apply_common_layout(fig, title, height)


def weather_timeline(daily, reports=None, height=650):
    """Stacked daily swell, wind and rain, with report dates marked on the swell panel."""
    fig = make_subplots(rows=3, cols=1, shared_xaxes=True,
                        subplot_titles=["Swell (m)", "Wind (km/h)", "Rain (mm)"])
    fig.add_trace(go.Scatter(x=daily["date"], y=daily["swell_height_m"], mode="lines",
                             line=dict(color="#2A9D8F"), name="Swell"), row=1, col=1)
    fig.add_trace(go.Scatter(x=daily["date"], y=daily["wind_speed_kmh"], mode="lines",
                             line=dict(color="#264653"), name="Wind"), row=2, col=1)
    fig.add_trace(go.Bar(x=daily["date"], y=daily["rainfall_mm"],
                         marker_color="#457B9D", name="Rain"), row=3, col=1)
    if reports is not None and len(reports):
        fig.add_trace(go.Scatter(
            x=reports["timestamp"], y=np.zeros(len(reports)), mode="markers",
            marker=dict(symbol="line-ns-open", size=10, color="#E63946"),
            name="Reports",
        ), row=1, col=1)
    return apply_common_layout(fig, height=height)


def ppc_overlay(observed, draws, n_lines=50, seed=42, title=None, height=450):
    """Observed visibility histogram against posterior predictive replicates."""
    rng = np.random.default_rng(seed)
    upper = np.percentile(observed, 99) * 1.5
    bins = np.linspace(0, upper, 40)
    centers = (bins[:-1] + bins[1:]) / 2

    fig = go.Figure()
    pick = rng.choice(len(draws), size=min(n_lines, len(draws)), replace=False)
    for i in pick:
        dens, _ = np.histogram(draws[i], bins=bins, density=True)
        fig.add_trace(go.Scatter(x=centers, y=dens, mode="lines",
                                 line=dict(color="#8ECAE6", width=1), opacity=0.4,
                                 showlegend=False))
    dens, _ = np.histogram(observed, bins=bins, density=True)
    fig.add_trace(go.Scatter(x=centers, y=dens, mode="lines",
                             line=dict(color="#264653", width=3), name="Observed"))
    fig.update_layout(xaxis_title="Visibility (m)", yaxis_title="Density")
    return apply_common_layout(fig, title, height)


def coefficient_forest(table, coef, names=None, title=None, height=None):
    """Per-site coefficient means with intervals, sorted by mean."""
    sub = table[table["coef"] == coef].sort_values("mean")
    labels = sub["site"].map(names).fillna(sub["site"]) if names is not None else sub["site"]
    fig = go.Figure(go.Scatter(
        x=sub["mean"], y=labels, mode="markers",
        marker=dict(color="#264653", size=8),
        error_x=dict(type="data", symmetric=False,
                     array=sub["upper"] - sub["mean"],
                     arrayminus=sub["mean"] - sub["lower"]),
    ))
    fig.update_layout(xaxis_title=f"{coef} (log visibility scale)")
    return apply_common_layout(fig, title, height or max(300, 22 * len(sub)))


def prediction_scatter(frame, tolerance=TOLERANCE_M, title=None, height=500):
    """Predicted against observed visibility, with the tolerance band shaded."""
    top = float(max(frame["visibility"].max(), frame["predicted"].max())) * 1.05
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=[0, top, top, 0], y=[-tolerance, top - tolerance,
                                                     top + tolerance, tolerance],
                             fill="toself", fillcolor="rgba(42,157,143,0.15)",
                             line=dict(width=0), name=f"Within {tolerance:g} m"))
    colors = np.where(frame["acceptable"], "#2A9D8F", "#E63946")
    fig.add_trace(go.Scatter(
        x=frame["visibility"], y=frame["predicted"], mode="markers",
        marker=dict(color=colors, size=6, opacity=0.7),
        error_y=dict(type="data", symmetric=False,
                     array=frame["upper_80"] - frame["predicted"],
                     arrayminus=frame["predicted"] - frame["lower_80"],
                     thickness=0.5, color="#AAAAAA"),
        text=frame["name"] if "name" in frame else None,
        name="Reports",
    ))
    fig.update_layout(xaxis_title="Observed visibility (m)",
                      yaxis_title="Predicted visibility (m)",
                      xaxis_range=[0, top], yaxis_range=[0, top])
    return apply_common_layout(fig, title, height)
