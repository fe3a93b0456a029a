"""Reusable statistics computation helpers."""
import numpy as np
import pandas as pd
from scipy import stats


def descriptive_stats(series):
    """Compute descriptive statistics for a numeric series."""
    return {
        "count": len(series),
        "mean": series.mean(),
        "median": series.median(),
        "std": series.std(),
        "min": series.min(),
        "max": series.max(),
        "q25": series.quantile(0.25),
        "q75": series.quantile(0.75),
        "skewness": series.skew(),
    }


def bootstrap_ci(data, stat_func=np.mean, n_boot=1000, ci=95, seed=42):
    """Compute bootstrap confidence interval."""
    rng = np.random.RandomState(seed)
    data = np.asarray(data)
    boot_stats = [stat_func(rng.choice(data, size=len(data), replace=True)) for _ in range(n_boot)]
    lower = np.percentile(boot_stats, (100 - ci) / 2)
    upper = np.percentile(boot_stats, 100 - (100 - ci) / 2)
    return lower, upper


def normality_test(data):
    """Run Shapiro-Wilk test (on sample if too large) and return stat, p-value."""
    data = np.asarray(data)
    if len(data) > 5000:
        data = np.random.RandomState(42).choice(data, 5000, replace=False)
    stat, p = stats.shapiro(data)
    return stat, p


def skew_comparison(visibility):
    """Shapiro-Wilk on raw and log visibility, to motivate the lognormal outcome."""
    v = np.asarray(visibility, dtype=float)
    v = v[v > 0]
    raw_stat, raw_p = normality_test(v)
    log_stat, log_p = normality_test(np.log(v))
    return pd.DataFrame({
        "scale": ["raw", "log"],
        "skewness": [stats.skew(v), stats.skew(np.log(v))],
        "shapiro_w": [raw_stat, log_stat],
        "p_value": [raw_p, log_p],
    })


def correlation_matrix(df, method="pearson"):
    """Compute correlation matrix for numeric columns."""
    numeric = df.select_dtypes(include=[np.number])
    return numeric.corr(method=method)


def correlation_tests(df, target, features):
    """Pearson and Spearman correlation of each feature with the target."""
    rows = []
    for feat in features:
        pair = df[[feat, target]].dropna()
        if len(pair) < 3:
            continue
        r, p = stats.pearsonr(pair[feat], pair[target])
        rho, p_s = stats.spearmanr(pair[feat], pair[target])
        rows.append({
            "feature": feat,
            "n": len(pair),
            "pearson_r": r,
            "pearson_p": p,
            "spearman_rho": rho,
            "spearman_p": p_s,
        })
    return pd.DataFrame(rows)
