"""Baseline visibility models and evaluation wrappers."""
import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import KFold, train_test_split

from divevis.constants import FEATURE_COLS, TOLERANCE_M


def prepare_regression_data(df, features=None, target="visibility", test_size=0.2, seed=42):
    """Split feature rows into train and test frames, keeping site columns."""
    features = features or FEATURE_COLS
    clean = df.dropna(subset=features + [target])
    train, test = train_test_split(clean, test_size=test_size, random_state=seed)
    return train.copy(), test.copy()


def accuracy_within(y_true, y_pred, tolerance=TOLERANCE_M):
    """Share of predictions within `tolerance` meters of the observed value."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if len(y_true) == 0:
        return np.nan
    return float(np.mean(np.abs(y_true - y_pred) <= tolerance))


def regression_metrics(y_true, y_pred, tolerance=TOLERANCE_M):
    """Compute regression metrics plus the planning accuracy."""
    return {
        "mse": mean_squared_error(y_true, y_pred),
        "rmse": np.sqrt(mean_squared_error(y_true, y_pred)),
        "mae": mean_absolute_error(y_true, y_pred),
        "r2": r2_score(y_true, y_pred),
        "accuracy": accuracy_within(y_true, y_pred, tolerance),
    }


def ols_formula(features=None, target="visibility"):
    features = features or FEATURE_COLS
    return f"{target} ~ " + " + ".join(features)


def fit_ols(train, features=None, target="visibility"):
    """Ordinary least squares on the pooled data, ignoring sites."""
    return smf.ols(ols_formula(features, target), data=train).fit()


def fit_site_means(train, target="visibility"):
    """Per-site mean visibility, with the pooled mean as fallback."""
    return train.groupby("site_id")[target].mean(), float(train[target].mean())


def predict_site_means(site_means, df):
    means, global_mean = site_means
    return df["site_id"].map(means).fillna(global_mean).to_numpy()


def evaluate_baselines(train, test, features=None, tolerance=TOLERANCE_M):
    """Held-out metrics for the global mean, site mean and OLS baselines."""
    y = test["visibility"].to_numpy()
    preds = {
        "Global mean": np.full(len(test), train["visibility"].mean()),
        "Site mean": predict_site_means(fit_site_means(train), test),
        "Linear regression": fit_ols(train, features).predict(test).to_numpy(),
    }
    rows = []
    for name, pred in preds.items():
        m = regression_metrics(y, pred, tolerance)
        rows.append({"model": name, **m})
    return pd.DataFrame(rows)


def baseline_cv(df, features=None, n_splits=5, seed=42, tolerance=TOLERANCE_M):
    """K-fold RMSE and accuracy for the site-mean and linear baselines."""
    features = features or FEATURE_COLS
    data = df.dropna(subset=features + ["visibility"]).reset_index(drop=True)
    kf = KFold(n_splits=n_splits, shuffle=True, random_state=seed)
    rows = []
    for fold, (tr_idx, te_idx) in enumerate(kf.split(data)):
        tr, te = data.iloc[tr_idx], data.iloc[te_idx]
        y = te["visibility"].to_numpy()

        lr = LinearRegression().fit(tr[features], tr["visibility"])
        site_pred = predict_site_means(fit_site_means(tr), te)
        for name, pred in [("Linear regression", lr.predict(te[features])),
                           ("Site mean", site_pred)]:
            rows.append({
                "fold": fold + 1,
                "model": name,
                "rmse": np.sqrt(mean_squared_error(y, pred)),
                "accuracy": accuracy_within(y, pred, tolerance),
            })
    return pd.DataFrame(rows)


def coefficient_table(ols_result):
    """OLS coefficients with 95% confidence intervals."""
    ci = ols_result.conf_int()
    return pd.DataFrame({
        "term": ols_result.params.index,
        "estimate": ols_result.params.values,
        "lower": ci[0].values,
        "upper": ci[1].values,
        "p_value": ols_result.pvalues.values,
    })
