"""Section 6: Predictions -- held-out accuracy and a dive-planning calculator."""
import streamlit as st
import numpy as np
import pandas as pd
import plotly.graph_objects as go

from divevis.bayes_helpers import (
    cached_fit, evaluate_predictions, exceedance_probability, posterior_predict,
    prediction_frame, site_accuracy,
)
from divevis.data_loader import load_feature_rows, load_or_stop
from divevis.features import visibility_quality
from divevis.ml_helpers import evaluate_baselines, prepare_regression_data
from divevis.plotting import apply_common_layout, prediction_scatter
from divevis.ui_components import (
    section_header, concept_box, insight_box, warning_box, metric_row, takeaways,
    navigation, feature_sliders,
)
from divevis.constants import (
    FEATURE_COLS, FEATURE_LABELS, MIN_SITE_REPORTS, QUALITY_ORDER, TOLERANCE_M,
)

# ---------------------------------------------------------------------------
st.set_page_config(page_title="6: Predictions", layout="wide")
rows = load_or_stop(load_feature_rows)

section_header(6, "Predictions", part="VI")

counts = rows["site_id"].value_counts()
model_rows = rows[rows["site_id"].isin(counts[counts >= MIN_SITE_REPORTS].index)]
if len(model_rows) < 50 or model_rows["site_id"].nunique() < 2:
    st.warning("Not enough reports for a held-out evaluation.")
    st.stop()

concept_box(
    "From Posterior to Prediction",
    "For each held-out report the model produces thousands of plausible visibilities, one "
    "per posterior draw, each including the day-to-day noise the model cannot explain. "
    "We summarise them with the median as the point prediction and the 10th to 90th "
    "percentiles as an 80% interval. A prediction is <b>acceptable</b> if the median is "
    f"within {TOLERANCE_M:g} meters of what the diver reported.",
)

# ---------------------------------------------------------------------------
# 1. Held-out evaluation
# ---------------------------------------------------------------------------
st.subheader("Held-Out Accuracy")
train, test = prepare_regression_data(model_rows, test_size=0.2)
fit = cached_fit(train, "full")
draws = posterior_predict(fit, test)
metrics = evaluate_predictions(test["visibility"], draws)

metric_row([
    (f"Within {TOLERANCE_M:g} m", f"{metrics['accuracy']:.0%}"),
    ("MAE", f"{metrics['mae']:.2f} m"),
    ("80% interval coverage", f"{metrics['coverage_80']:.0%}"),
    ("95% interval coverage", f"{metrics['coverage_95']:.0%}"),
])

scores = evaluate_baselines(train, test)
scores = pd.concat([
    scores[["model", "rmse", "mae", "accuracy"]],
    pd.DataFrame([{"model": "Hierarchical (full)", "rmse": metrics["rmse"],
                   "mae": metrics["mae"], "accuracy": metrics["accuracy"]}]),
], ignore_index=True)
st.dataframe(scores.round(3), use_container_width=True, hide_index=True)

frame = prediction_frame(test, draws)
st.plotly_chart(prediction_scatter(frame, title="Predicted vs Observed (held-out reports)"),
                use_container_width=True)

insight_box(
    f"An 80% interval should contain about 80% of the held-out reports; here it contains "
    f"{metrics['coverage_80']:.0%}. Intervals average {metrics['interval_width_80']:.1f} m wide, "
    "which is an honest statement of how much of visibility the weather does not explain."
)

st.markdown("**Accuracy by site**")
st.dataframe(site_accuracy(frame).round(2), use_container_width=True, hide_index=True)

bands = pd.crosstab(
    pd.Series(visibility_quality(frame["visibility"]), name="observed"),
    frame["predicted_quality"].rename("predicted"),
    dropna=False,
).reindex(index=QUALITY_ORDER, columns=QUALITY_ORDER, fill_value=0)
st.markdown("**Quality band: observed (rows) vs predicted (columns)**")
st.dataframe(bands, use_container_width=True)

st.divider()

# ---------------------------------------------------------------------------
# 2. Dive planning calculator
# ---------------------------------------------------------------------------
st.subheader("Should I Go Diving?")
st.markdown(
    "Pick a site and describe the recent weather. The model below is refit on all "
    "reports, not just the training split."
)
full_fit = cached_fit(model_rows, "full")
site_names = (
    model_rows.drop_duplicates("site_id").set_index("name")["site_id"].sort_index()
)

col_ctrl, col_plot = st.columns([1, 2])
with col_ctrl:
    site = st.selectbox("Site", site_names.index.tolist(), key="pr_site")
    values = feature_sliders(model_rows, FEATURE_COLS, FEATURE_LABELS, key_prefix="pr")
    threshold = st.slider("I want at least (m)", 2, 25, 10, key="pr_threshold")

scenario = pd.DataFrame([{"site_id": site_names[site], **values}])
pred = posterior_predict(full_fit, scenario)[:, 0]

with col_plot:
    fig = go.Figure(go.Histogram(x=pred, nbinsx=60, marker_color="#2A9D8F", opacity=0.8,
                                 histnorm="probability"))
    fig.add_vline(x=threshold, line_dash="dash", line_color="#E63946",
                  annotation_text=f"{threshold} m")
    fig.add_vline(x=np.median(pred), line_color="#264653",
                  annotation_text=f"median {np.median(pred):.1f} m")
    fig.update_layout(xaxis_title="Visibility (m)", yaxis_title="Probability",
                      xaxis_range=[0, np.percentile(pred, 99)])
    apply_common_layout(fig, title=f"Predicted Visibility at {site}", height=400)
    st.plotly_chart(fig, use_container_width=True)

p_ok = exceedance_probability(pred[:, None], threshold)[0]
band_probs = pd.Series(visibility_quality(pred)).value_counts(normalize=True).reindex(
    QUALITY_ORDER, fill_value=0)
metric_row([(f"P(at least {threshold} m)", f"{p_ok:.0%}")] +
           [(q.title(), f"{p:.0%}") for q, p in band_probs.items()])

warning_box(
    "The model only knows about swell, rain and wind. Tides, currents, plankton blooms and "
    "the diver's optimism are all in the noise term."
)

takeaways([
    f"The hierarchical model is judged by the same rule as the baselines: within "
    f"{TOLERANCE_M:g} meters or not.",
    "Posterior predictive intervals are wide because visibility is noisy, not because the "
    "model is broken; check their coverage rather than their width.",
    "For planning, the probability of clearing a threshold is more useful than a single "
    "predicted number.",
])

navigation(
    prev_label="5: Model Comparison",
    prev_page="05_Model_Comparison.py",
)
