"""Section 4: Hierarchical Model -- partial pooling across dive sites."""
import streamlit as st
import numpy as np
import pandas as pd
import plotly.graph_objects as go

from divevis.bayes_helpers import (
    cached_fit, in_sample_ppc, parse_formula, site_effects_table, summarize_fit,
)
from divevis.data_loader import load_feature_rows, load_or_stop, load_sites
from divevis.plotting import apply_common_layout, coefficient_forest, ppc_overlay
from divevis.ui_components import (
    section_header, concept_box, formula_box, insight_box, warning_box,
    code_example, takeaways, navigation,
)
from divevis.constants import MIN_SITE_REPORTS, MODEL_FORMULAS, SAMPLER

# ---------------------------------------------------------------------------
st.set_page_config(page_title="4: Hierarchical Model", layout="wide")
rows = load_or_stop(load_feature_rows)
names = load_or_stop(load_sites).set_index("site_id")["name"]

section_header(4, "Hierarchical Model", part="IV")

# ---------------------------------------------------------------------------
# 1. Theory
# ---------------------------------------------------------------------------
concept_box(
    "Partial Pooling, for Dive Sites",
    "Some sites have hundreds of reports. Some have three. Fitting a separate regression "
    "to each site (no pooling) gives wild estimates for the quiet sites; fitting one "
    "regression for all of them (complete pooling) pretends a sheltered bay and an exposed "
    "headland respond the same way to a 2 meter swell.<br><br>"
    "A <b>hierarchical model</b> gives each site its own intercept and its own slopes for "
    "swell, rain and wind, but draws them all from a shared population distribution whose "
    "spread is estimated from the data. Sites with plenty of reports can go their own way. "
    "Sites with a handful get pulled toward the population average.",
)

formula_box(
    "The Model",
    r"\begin{aligned}"
    r"y_i &\sim \text{LogNormal}(\mu_i, \sigma) \\"
    r"\mu_i &= (\alpha + a_{s[i]}) + \sum_k (\beta_k + b_{s[i],k})\, x_{ik} \\"
    r"(a_s, b_{s,1}, \dots, b_{s,K}) &\sim \text{MVN}(0, \Sigma), \quad "
    r"\Sigma = \text{diag}(\tau)\, R\, \text{diag}(\tau) \\"
    r"R &\sim \text{LKJ}(2), \quad \tau_j \sim \text{Exponential}(2)"
    r"\end{aligned}",
    "The predictors x are standardized rolling averages; mu is on the log scale, so exp(mu) "
    "is the median predicted visibility. R lets a site's intercept and slopes be correlated: "
    "sites with high baseline visibility might also be the ones most hurt by swell.",
)

formula = MODEL_FORMULAS["full"]
f = parse_formula(formula)
st.code(formula, language="text")

code_example("""
with pm.Model(coords=coords) as model:
    intercept = pm.Normal("intercept", mu=np.log(np.median(y)), sigma=1.0)
    beta = pm.Normal("beta", mu=0.0, sigma=0.5, dims="predictor")

    z = pm.Normal("site_z", mu=0.0, sigma=1.0, dims=("site", "coef"))
    chol, corr, sds = pm.LKJCholeskyCov(
        "site_chol", n=4, eta=2.0,
        sd_dist=pm.Exponential.dist(2.0, shape=4),
    )
    effects = pm.Deterministic("site_effects", pt.dot(z, chol.T), dims=("site", "coef"))

    mu = intercept + effects[site_idx, 0] + pt.dot(X, beta)
    for j in range(3):
        mu += effects[site_idx, j + 1] * X[:, j]

    sigma = pm.Exponential("sigma", 1.0)
    pm.LogNormal("visibility", mu=mu, sigma=sigma, observed=y)
    idata = pm.sample(1000, tune=1000, chains=4, target_accept=0.95)
""")

st.divider()

# ---------------------------------------------------------------------------
# 2. Fit
# ---------------------------------------------------------------------------
st.subheader("Fitting the Model")
counts = rows["site_id"].value_counts()
model_rows = rows[rows["site_id"].isin(counts[counts >= MIN_SITE_REPORTS].index)]
if len(model_rows) < 30 or model_rows["site_id"].nunique() < 2:
    st.warning("Not enough reports to fit a hierarchical model.")
    st.stop()

draws = st.select_slider("Posterior draws per chain", [250, 500, 1000, 2000],
                         value=SAMPLER["draws"], key="hm_draws")
st.caption(
    f"{len(model_rows):,} reports from {model_rows['site_id'].nunique()} sites with at least "
    f"{MIN_SITE_REPORTS} reports; {SAMPLER['chains']} chains sampled in parallel."
)
fit = cached_fit(model_rows, "full", draws=draws)

summary = summarize_fit(fit)
st.dataframe(summary.round(3), use_container_width=True)

divergences = int(fit.idata.sample_stats["diverging"].sum())
max_rhat = float(summary["r_hat"].max())
if divergences or max_rhat > 1.01:
    warning_box(
        f"{divergences} divergent transitions, max R-hat {max_rhat:.3f}. Treat the "
        "estimates with suspicion, or raise the number of draws."
    )
else:
    st.success(f"No divergences, max R-hat {max_rhat:.3f}. The chains agree with each other.")

# ---------------------------------------------------------------------------
# 3. Population effects
# ---------------------------------------------------------------------------
st.subheader("Population-Level Effects")
beta = fit.idata.posterior["beta"]
fig_beta = go.Figure()
for term in f.terms:
    vals = beta.sel(predictor=term).values.ravel()
    mult = np.exp(vals)
    fig_beta.add_trace(go.Violin(x=mult, name=term, orientation="h", box_visible=True,
                                 meanline_visible=True, points=False))
fig_beta.add_vline(x=1.0, line_dash="dash", line_color="black")
fig_beta.update_layout(xaxis_title="Multiplicative change in visibility per 1 SD", showlegend=False)
apply_common_layout(fig_beta, title="Posterior of exp(beta)", height=400)
st.plotly_chart(fig_beta, use_container_width=True)

effects = []
for term in f.terms:
    vals = np.exp(beta.sel(predictor=term).values.ravel())
    lo, hi = np.percentile(vals, [5, 95])
    sd = fit.scaling[term][1]
    effects.append({
        "feature": term,
        "1 SD of feature": f"{sd:.2f}",
        "median multiplier": f"{np.median(vals):.2f}",
        "90% interval": f"{lo:.2f} to {hi:.2f}",
        "P(reduces visibility)": f"{np.mean(vals < 1):.0%}",
    })
st.dataframe(pd.DataFrame(effects), use_container_width=True, hide_index=True)

# ---------------------------------------------------------------------------
# 4. Site effects
# ---------------------------------------------------------------------------
st.subheader("Site-Level Coefficients")
table = site_effects_table(fit)
coef = st.selectbox("Coefficient", f.coefs, key="hm_coef")
st.plotly_chart(
    coefficient_forest(table, coef, names=names,
                       title=f"{coef} by Site (population + site deviation)"),
    use_container_width=True,
)

shrink = (
    model_rows.groupby("site_id")["visibility"]
    .agg(reports="size", raw_log_mean=lambda v: np.log(v).mean())
    .join(table[table["coef"] == "Intercept"].set_index("site")["mean"].rename("pooled"))
    .reset_index()
)
shrink["name"] = shrink["site_id"].map(names)
fig_shrink = go.Figure()
fig_shrink.add_trace(go.Scatter(x=shrink["raw_log_mean"], y=shrink["name"], mode="markers",
                                marker=dict(size=10, color="#E63946"),
                                name="No pooling (site log-mean)"))
fig_shrink.add_trace(go.Scatter(x=shrink["pooled"], y=shrink["name"], mode="markers",
                                marker=dict(size=10, color="#264653", symbol="diamond"),
                                name="Partial pooling (intercept)"))
apply_common_layout(fig_shrink, title="Shrinkage of Site Intercepts",
                    height=max(350, 22 * len(shrink)))
st.plotly_chart(fig_shrink, use_container_width=True)

insight_box(
    "Sites with few reports move furthest toward the population intercept. The raw "
    "log-means also ignore the weather on the days people dived, which is another reason "
    "the two do not line up exactly."
)

if "site_corr" in fit.idata.posterior:
    corr = fit.idata.posterior["site_corr"].mean(dim=("chain", "draw")).to_pandas()
    st.markdown("**Posterior mean correlation between site-level coefficients**")
    st.dataframe(corr.round(2), use_container_width=True)

# ---------------------------------------------------------------------------
# 5. Posterior predictive check
# ---------------------------------------------------------------------------
st.subheader("Posterior Predictive Check")
ppc = in_sample_ppc(fit)
st.plotly_chart(
    ppc_overlay(model_rows["visibility"].to_numpy(), ppc,
                title="Observed Visibility vs Replicated Datasets"),
    use_container_width=True,
)
st.markdown(
    "Each light line is a complete fake dataset drawn from the fitted model. If the model "
    "is any good, the real data (dark line) should look like one of them."
)

takeaways([
    "Visibility is modelled on the log scale, so weather effects are multiplicative: a "
    "coefficient of 0.85 means 15% less visibility per standard deviation.",
    "Every site gets its own intercept and slopes, but they are shrunk toward the population "
    "in proportion to how little data the site has.",
    "Check divergences and R-hat before reading any coefficient.",
])

navigation(
    prev_label="3: Baselines",
    prev_page="03_Baselines.py",
    next_label="5: Model Comparison",
    next_page="05_Model_Comparison.py",
)
