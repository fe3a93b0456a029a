"""Section 5: Model Comparison -- approximate leave-one-out cross-validation."""
import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from divevis.bayes_helpers import cached_fit, compare_models, pareto_k_counts
from divevis.data_loader import load_feature_rows, load_or_stop
from divevis.plotting import apply_common_layout
from divevis.ui_components import (
    section_header, concept_box, formula_box, insight_box, warning_box, navigation,
)
from divevis.constants import MIN_SITE_REPORTS, MODEL_FORMULAS, MODEL_LABELS

# ---------------------------------------------------------------------------
st.set_page_config(page_title="5: Model Comparison", layout="wide")
rows = load_or_stop(load_feature_rows)

section_header(5, "Model Comparison", part="V")

concept_box(
    "Does Each Weather Feature Earn Its Place?",
    "Adding a predictor always improves the fit to the data we already have. The question "
    "is whether it improves predictions for reports the model has not seen. "
    "<b>Leave-one-out cross-validation</b> answers that by refitting the model once per "
    "report with that report held out, which would mean thousands of MCMC runs. "
    "<b>PSIS-LOO</b> approximates the same quantity from a single fit by reweighting the "
    "posterior draws, and tells us (via the Pareto k diagnostic) when the approximation "
    "cannot be trusted.",
)

formula_box(
    "Expected Log Predictive Density",
    r"\text{elpd}_{\text{loo}} = \sum_{i=1}^{n} \log p(y_i \mid y_{-i})",
    "Higher is better. Differences smaller than about two standard errors are not worth "
    "getting excited about.",
)

st.markdown("**The nested models**")
st.dataframe(
    pd.DataFrame({"model": list(MODEL_LABELS.values()),
                  "formula": [MODEL_FORMULAS[k] for k in MODEL_LABELS]}),
    use_container_width=True, hide_index=True,
)

counts = rows["site_id"].value_counts()
model_rows = rows[rows["site_id"].isin(counts[counts >= MIN_SITE_REPORTS].index)]
if len(model_rows) < 30 or model_rows["site_id"].nunique() < 2:
    st.warning("Not enough reports to fit the models.")
    st.stop()

draws = st.select_slider("Posterior draws per chain", [250, 500, 1000, 2000], value=1000,
                         key="mc_draws")
fits = [cached_fit(model_rows, name, draws=draws) for name in MODEL_FORMULAS]
comparison = compare_models(fits, labels=MODEL_LABELS)
st.dataframe(comparison.round(2), use_container_width=True)

fig = go.Figure(go.Scatter(
    x=comparison["elpd_loo"], y=comparison.index, mode="markers",
    marker=dict(size=12, color="#264653"),
    error_x=dict(type="data", array=comparison["se"]),
))
fig.update_layout(xaxis_title="elpd_loo (higher is better)", yaxis=dict(autorange="reversed"))
apply_common_layout(fig, title="Estimated Out-of-Sample Predictive Accuracy", height=350)
st.plotly_chart(fig, use_container_width=True)

best = comparison.index[0]
runner_up = comparison.iloc[1] if len(comparison) > 1 else None
if runner_up is not None and runner_up["elpd_diff"] < 2 * runner_up["dse"]:
    insight_box(
        f"**{best}** comes out on top, but **{comparison.index[1]}** is within two standard "
        "errors of it. The extra terms are not clearly buying better predictions."
    )
else:
    insight_box(f"**{best}** is clearly the best of the four on out-of-sample accuracy.")

st.subheader("Pareto k Diagnostics")
k_table = pd.DataFrame({MODEL_LABELS[fit.name]: pareto_k_counts(fit) for fit in fits}).T
st.dataframe(k_table, use_container_width=True)
if (k_table[["bad", "very bad"]].sum(axis=1) > 0).any():
    warning_box(
        "Some reports have Pareto k above 0.7, usually unusually clear or murky days at sites "
        "with few reports. LOO estimates for those points are unreliable, so treat small "
        "elpd differences with extra caution."
    )

navigation(
    prev_label="4: Hierarchical Model",
    prev_page="04_Hierarchical_Model.py",
    next_label="6: Predictions",
    next_page="06_Predictions.py",
)
