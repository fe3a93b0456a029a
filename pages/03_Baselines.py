"""Section 3: Baselines -- pooled linear regression and per-site means."""
import streamlit as st
import plotly.express as px

from divevis.data_loader import load_feature_rows, load_or_stop, sidebar_filters
from divevis.ml_helpers import (
    baseline_cv, coefficient_table, evaluate_baselines, fit_ols, ols_formula,
    prepare_regression_data,
)
from divevis.plotting import apply_common_layout
from divevis.ui_components import (
    section_header, concept_box, formula_box, insight_box, warning_box, navigation,
)
from divevis.constants import TOLERANCE_M

# ---------------------------------------------------------------------------
st.set_page_config(page_title="3: Baselines", layout="wide")
rows = load_or_stop(load_feature_rows)
frows = sidebar_filters(rows)

section_header(3, "Baselines", part="III")

st.markdown(
    "A fancy model is only interesting if it beats a boring one. Before touching anything "
    "Bayesian, we set up the boring ones and write down their scores."
)

if len(frows) < 30:
    st.warning("Not enough reports for a train/test split. Adjust the sidebar filters.")
    st.stop()

concept_box(
    "Two Baselines, Two Extremes",
    "<b>Pooled linear regression</b> treats every site as the same site: one intercept, one "
    "slope per weather feature. It uses the weather but ignores geography.<br><br>"
    "<b>Per-site mean</b> does the opposite. It ignores the weather completely and predicts "
    "each site's historical average. For a site it has never seen, it falls back on the "
    "overall average.<br><br>"
    "The hierarchical model in the next section sits between the two.",
)

formula_box(
    "Acceptable Prediction",
    r"|\hat{y} - y| \le 3\ \text{m}",
    "Three meters is a planning tolerance: the difference between 'worth the drive' and "
    "'maybe not'. It is a choice, not something derived from the data.",
)

st.divider()

# ---------------------------------------------------------------------------
# 1. Pooled OLS
# ---------------------------------------------------------------------------
st.subheader("Pooled Linear Regression")
ols = fit_ols(frows)
st.code(ols_formula(), language="text")
st.dataframe(coefficient_table(ols).round(4), use_container_width=True, hide_index=True)
st.markdown(f"R-squared: **{ols.rsquared:.3f}** (adjusted {ols.rsquared_adj:.3f}), "
            f"n = {int(ols.nobs):,}")

resid = frows.assign(fitted=ols.fittedvalues, residual=ols.resid)
fig_res = px.scatter(resid, x="fitted", y="residual", opacity=0.5,
                     labels={"fitted": "Fitted visibility (m)", "residual": "Residual (m)"})
fig_res.add_hline(y=0, line_dash="dash", line_color="black")
apply_common_layout(fig_res, title="Residuals vs Fitted", height=400)
st.plotly_chart(fig_res, use_container_width=True)

warning_box(
    "The residual fan widens as fitted values grow, and some fitted values are close to "
    "zero or below. Both are symptoms of modelling a positive, right-skewed quantity "
    "with a normal error."
)

st.divider()

# ---------------------------------------------------------------------------
# 2. Held-out scores
# ---------------------------------------------------------------------------
st.subheader("Held-Out Performance")
test_size = st.slider("Test share", 0.1, 0.4, 0.2, 0.05, key="bl_test_size")
train, test = prepare_regression_data(frows, test_size=test_size)
scores = evaluate_baselines(train, test)
st.dataframe(scores.round(3), use_container_width=True, hide_index=True)

fig_acc = px.bar(scores, x="model", y="accuracy", text=scores["accuracy"].map("{:.0%}".format),
                 labels={"accuracy": f"Within {TOLERANCE_M:g} m", "model": ""})
fig_acc.update_yaxes(range=[0, 1], tickformat=".0%")
apply_common_layout(fig_acc, title="Share of Acceptable Predictions", height=400)
st.plotly_chart(fig_acc, use_container_width=True)

st.subheader("5-Fold Cross-Validation")
cv = baseline_cv(frows)
summary = cv.groupby("model")[["rmse", "accuracy"]].agg(["mean", "std"]).round(3)
st.dataframe(summary, use_container_width=True)

best = scores.loc[scores["accuracy"].idxmax()]
insight_box(
    f"The best baseline gets **{best['accuracy']:.0%}** of held-out reports within "
    f"{TOLERANCE_M:g} meters ({best['model']}). Site matters a lot, and so does weather; "
    "neither baseline gets to use both in a sensible way."
)

navigation(
    prev_label="2: Weather and Visibility",
    prev_page="02_Weather_and_Visibility.py",
    next_label="4: Hierarchical Model",
    next_page="04_Hierarchical_Model.py",
)
