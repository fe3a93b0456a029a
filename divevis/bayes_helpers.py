"""Hierarchical lognormal regression of visibility on rolling weather.

Each site gets its own intercept and slopes, drawn from a shared
multivariate normal whose scales and correlations are estimated (an LKJ
prior on the correlation matrix). The varying effects are written in
non-centered form.

Models are described with a small formula language::

    visibility ~ swell_5 + rain_5 + (1 + swell_5 + rain_5 | site_id)

The population terms come first; the bracketed term lists the coefficients
that vary by the grouping column. A varying intercept is always included.
"""
import re
from dataclasses import dataclass, field

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm
import pytensor.tensor as pt
import streamlit as st

from divevis.constants import MODEL_FORMULAS, PRIORS, SAMPLER, TOLERANCE_M
from divevis.features import visibility_quality
from divevis.ml_helpers import accuracy_within

FORMULA_RE = re.compile(r"^\s*(\w+)\s*~\s*(.+?)\s*$")
GROUP_RE = re.compile(r"\(([^()|]*)\|\s*(\w+)\s*\)")
TERM_RE = re.compile(r"^[A-Za-z_]\w*$")


@dataclass
class Formula:
    response: str
    terms: list
    varying: list = field(default_factory=list)
    group: str | None = None

    @property
    def coefs(self):
        """Names of the per-group coefficients, intercept first."""
        return ["Intercept"] + list(self.varying)


@dataclass
class Design:
    y: np.ndarray
    X: np.ndarray
    site_idx: np.ndarray
    sites: list
    scaling: dict


@dataclass
class HierarchicalFit:
    name: str
    formula: Formula
    scaling: dict
    sites: list
    model: object
    idata: object


def _split_terms(text):
    terms = [t.strip() for t in text.split("+") if t.strip()]
    if "0" in terms or "-1" in terms:
        raise ValueError("models without an intercept are not supported")
    terms = [t for t in terms if t != "1"]
    bad = [t for t in terms if not TERM_RE.match(t)]
    if bad:
        raise ValueError(f"unsupported formula terms: {', '.join(bad)}")
    return terms


def parse_formula(text):
    """Parse ``response ~ terms + (1 + terms | group)`` into a Formula."""
    m = FORMULA_RE.match(text)
    if not m:
        raise ValueError(f"not a formula: {text!r}")
    response, rhs = m.groups()

    groups = GROUP_RE.findall(rhs)
    if len(groups) > 1:
        raise ValueError("only one grouping term is supported")
    fixed = GROUP_RE.sub("", rhs)
    if any(ch in fixed for ch in "()|"):
        raise ValueError(f"malformed grouping term in {text!r}")

    terms = _split_terms(fixed)
    if len(set(terms)) != len(terms):
        raise ValueError("duplicate population terms")
    if not groups:
        return Formula(response, terms)

    varying_text, group = groups[0]
    varying = _split_terms(varying_text)
    missing = [t for t in varying if t not in terms]
    if missing:
        raise ValueError(
            f"varying terms must also be population terms: {', '.join(missing)}"
        )
    return Formula(response, terms, varying, group)


def _as_formula(formula):
    return parse_formula(formula) if isinstance(formula, str) else formula


def standardize(df, terms, scaling):
    """Center and scale predictor columns with stored means and stds."""
    if not terms:
        return np.empty((len(df), 0))
    cols = []
    for term in terms:
        mean, std = scaling[term]
        cols.append((df[term].to_numpy(dtype=float) - mean) / std)
    return np.column_stack(cols)


def design(rows, formula):
    """Response, standardized predictors and site codes for a formula."""
    f = _as_formula(formula)
    y = rows[f.response].to_numpy(dtype=float)
    if len(y) == 0:
        raise ValueError("no rows to fit")
    if np.any(~np.isfinite(y)) or np.any(y <= 0):
        raise ValueError("a lognormal outcome needs finite positive values")

    scaling = {}
    for term in f.terms:
        values = rows[term].to_numpy(dtype=float)
        std = values.std()
        scaling[term] = (values.mean(), std if std > 0 else 1.0)
    X = standardize(rows, f.terms, scaling)

    if f.group:
        groups = rows[f.group].astype(str)
        sites = sorted(groups.unique().tolist())
        site_idx = pd.Categorical(groups, categories=sites).codes.astype(int)
    else:
        sites, site_idx = [], np.zeros(len(rows), dtype=int)
    return Design(y, X, site_idx, sites, scaling)


def build_model(d, formula, priors=None):
    """PyMC model for a design; the observed variable is named after the response."""
    f = _as_formula(formula)
    priors = {**PRIORS, **(priors or {})}
    coords = {"obs": np.arange(len(d.y))}
    if f.terms:
        coords["predictor"] = f.terms
    if f.group:
        coords.update(site=d.sites, coef=f.coefs, coef2=f.coefs)
    with pm.Model(coords=coords) as model:
        intercept = pm.Normal("intercept", mu=np.log(np.median(d.y)),
                              sigma=priors["intercept_sigma"])
        mu = intercept + pt.zeros(len(d.y))
        if f.terms:
            beta = pm.Normal("beta", mu=0.0, sigma=priors["beta_sigma"], dims="predictor")
            mu = mu + pt.dot(d.X, beta)

        if f.group:
            k = len(f.coefs)
            z = pm.Normal("site_z", mu=0.0, sigma=1.0, dims=("site", "coef"))
            if k > 1:
                chol, corr, sds = pm.LKJCholeskyCov(
                    "site_chol", n=k, eta=priors["lkj_eta"],
                    sd_dist=pm.Exponential.dist(priors["site_sd_rate"], shape=k),
                    compute_corr=True, store_in_trace=False,
                )
                pm.Deterministic("site_sd", sds, dims="coef")
                pm.Deterministic("site_corr", corr, dims=("coef", "coef2"))
                effects = pm.Deterministic("site_effects", pt.dot(z, chol.T),
                                           dims=("site", "coef"))
            else:
                sd = pm.Exponential("site_sd", priors["site_sd_rate"], dims="coef")
                effects = pm.Deterministic("site_effects", z * sd, dims=("site", "coef"))

            mu = mu + effects[d.site_idx, 0]
            for j, term in enumerate(f.varying):
                col = f.terms.index(term)
                mu = mu + effects[d.site_idx, j + 1] * d.X[:, col]

        sigma = pm.Exponential("sigma", priors["sigma_rate"])
        pm.LogNormal(f.response, mu=mu, sigma=sigma, observed=d.y, dims="obs")
    return model


def fit_model(rows, formula, name=None, priors=None, sampler=None, progressbar=False):
    """Sample the posterior with NUTS; pointwise log-likelihood is kept for LOO.

    Chains run in parallel and are combined once they have all finished.
    """
    f = _as_formula(formula)
    d = design(rows, f)
    model = build_model(d, f, priors)
    settings = {**SAMPLER, **(sampler or {})}
    with model:
        idata = pm.sample(
            draws=settings["draws"],
            tune=settings["tune"],
            chains=settings["chains"],
            cores=settings["cores"],
            target_accept=settings["target_accept"],
            random_seed=settings["random_seed"],
            progressbar=progressbar,
            idata_kwargs={"log_likelihood": True},
        )
    return HierarchicalFit(name or formula_name(f), f, d.scaling, d.sites, model, idata)


def formula_name(formula):
    f = _as_formula(formula)
    return " + ".join(f.terms) if f.terms else "intercept"


def compare_models(fits, labels=None):
    """PSIS-LOO comparison table, best model first."""
    labels = labels or {}
    return az.compare({labels.get(fit.name, fit.name): fit.idata for fit in fits}, ic="loo")


def pareto_k_counts(fit):
    """Observations per Pareto-k band; values above 0.7 make LOO unreliable."""
    loo = az.loo(fit.idata, pointwise=True)
    k = np.asarray(loo.pareto_k).ravel()
    bands = pd.cut(k, bins=[-np.inf, 0.5, 0.7, 1.0, np.inf],
                   labels=["good", "ok", "bad", "very bad"])
    return pd.Series(bands).value_counts().reindex(["good", "ok", "bad", "very bad"],
                                                   fill_value=0)


def summarize_fit(fit, hdi_prob=0.9):
    """ArviZ summary of the population-level and covariance parameters."""
    names = [v for v in ["intercept", "beta", "site_sd", "site_corr", "sigma"]
             if v in fit.idata.posterior]
    return az.summary(fit.idata, var_names=names, hdi_prob=hdi_prob)


def _posterior(fit):
    return az.extract(fit.idata, group="posterior")


def site_effects_table(fit, interval=0.9):
    """Per-site coefficients (population plus site deviation) on the log scale."""
    f = fit.formula
    if not f.group:
        return pd.DataFrame(columns=["site", "coef", "mean", "lower", "upper"])
    post = _posterior(fit)
    effects = post["site_effects"].transpose("sample", "site", "coef").values
    base = [post["intercept"].values]
    for term in f.varying:
        base.append(post["beta"].sel(predictor=term).values)
    base = np.stack(base, axis=-1)

    total = effects + base[:, None, :]
    lo, hi = (1 - interval) / 2 * 100, (1 + interval) / 2 * 100
    rows = []
    for i, site in enumerate(fit.sites):
        for j, coef in enumerate(f.coefs):
            draws = total[:, i, j]
            rows.append({
                "site": site,
                "coef": coef,
                "mean": draws.mean(),
                "lower": np.percentile(draws, lo),
                "upper": np.percentile(draws, hi),
            })
    return pd.DataFrame(rows)


def posterior_predict(fit, rows, include_noise=True, seed=42):
    """Predictive visibility draws, shaped (samples, rows).

    Sites the model has not seen get the population coefficients only.
    Without noise the draws are the lognormal medians, exp(mu).
    """
    f = fit.formula
    post = _posterior(fit)
    intercept = post["intercept"].values
    mu = np.repeat(intercept[:, None], len(rows), axis=1)

    X = standardize(rows, f.terms, fit.scaling)
    if f.terms:
        beta = post["beta"].transpose("sample", "predictor").values
        mu = mu + beta @ X.T

    if f.group:
        effects = post["site_effects"].transpose("sample", "site", "coef").values
        lookup = {site: i for i, site in enumerate(fit.sites)}
        idx = rows[f.group].astype(str).map(lookup)
        known = idx.notna().to_numpy()
        idx = idx[known].astype(int).to_numpy()
        mu[:, known] += effects[:, idx, 0]
        for j, term in enumerate(f.varying):
            col = f.terms.index(term)
            mu[:, known] += effects[:, idx, j + 1] * X[known, col]

    if not include_noise:
        return np.exp(mu)
    sigma = post["sigma"].values
    rng = np.random.default_rng(seed)
    return rng.lognormal(mean=mu, sigma=sigma[:, None])


def in_sample_ppc(fit, seed=42):
    """Posterior predictive draws for the fitted rows, via PyMC."""
    with fit.model:
        ppc = pm.sample_posterior_predictive(fit.idata, random_seed=seed, progressbar=False)
    draws = az.extract(ppc, group="posterior_predictive")[fit.formula.response]
    return draws.transpose("sample", "obs").values


def prediction_frame(rows, draws, tolerance=TOLERANCE_M):
    """Observed visibility next to the posterior median and 80% interval."""
    keep = [c for c in ["site_id", "name", "timestamp", "visibility"] if c in rows.columns]
    out = rows[keep].copy()
    out["predicted"] = np.median(draws, axis=0)
    out["lower_80"] = np.percentile(draws, 10, axis=0)
    out["upper_80"] = np.percentile(draws, 90, axis=0)
    out["error"] = out["predicted"] - out["visibility"]
    out["acceptable"] = out["error"].abs() <= tolerance
    out["predicted_quality"] = visibility_quality(out["predicted"])
    return out.reset_index(drop=True)


def evaluate_predictions(y_true, draws, tolerance=TOLERANCE_M):
    """Accuracy and calibration of posterior predictive draws."""
    y = np.asarray(y_true, dtype=float)
    point = np.median(draws, axis=0)
    lo80, hi80 = np.percentile(draws, [10, 90], axis=0)
    lo95, hi95 = np.percentile(draws, [2.5, 97.5], axis=0)
    return {
        "mae": float(np.mean(np.abs(point - y))),
        "rmse": float(np.sqrt(np.mean((point - y) ** 2))),
        "accuracy": accuracy_within(y, point, tolerance),
        "coverage_80": float(np.mean((y >= lo80) & (y <= hi80))),
        "coverage_95": float(np.mean((y >= lo95) & (y <= hi95))),
        "interval_width_80": float(np.mean(hi80 - lo80)),
    }


def site_accuracy(frame):
    """Share of acceptable predictions per site."""
    return (
        frame.groupby("name", as_index=False)
        .agg(reports=("visibility", "size"),
             accuracy=("acceptable", "mean"),
             mae=("error", lambda e: e.abs().mean()))
        .sort_values("reports", ascending=False)
        .reset_index(drop=True)
    )


def exceedance_probability(draws, threshold):
    """Probability that visibility reaches `threshold` meters, per row."""
    return np.mean(np.asarray(draws) >= threshold, axis=0)


@st.cache_resource(show_spinner="Sampling the posterior...")
def cached_fit(rows, name, draws=SAMPLER["draws"], tune=SAMPLER["tune"]):
    """Fit and cache one of the named nested models."""
    return fit_model(rows, MODEL_FORMULAS[name], name=name,
                     sampler={"draws": draws, "tune": tune})
