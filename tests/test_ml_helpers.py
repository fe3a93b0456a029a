"""Baseline model and metric tests."""
import numpy as np
import pandas as pd
import pytest

from divevis.ml_helpers import (
    accuracy_within, baseline_cv, coefficient_table, evaluate_baselines, fit_ols,
    fit_site_means, ols_formula, predict_site_means, prepare_regression_data,
    regression_metrics,
)


def test_accuracy_within_tolerance_is_inclusive():
    y_true = [10.0, 10.0, 10.0, 10.0]
    y_pred = [13.0, 7.0, 13.5, 6.0]

    assert accuracy_within(y_true, y_pred) == pytest.approx(0.5)
    assert accuracy_within(y_true, y_pred, tolerance=4.0) == pytest.approx(1.0)


def test_accuracy_within_empty():
    assert np.isnan(accuracy_within([], []))


def test_regression_metrics():
    m = regression_metrics([5.0, 10.0, 15.0], [6.0, 10.0, 11.0])

    assert m["mae"] == pytest.approx(5.0 / 3)
    assert m["rmse"] == pytest.approx(np.sqrt(17.0 / 3))
    assert m["accuracy"] == pytest.approx(2.0 / 3)


def test_site_means_fall_back_to_global_mean():
    train = pd.DataFrame({"site_id": ["a", "a", "b"], "visibility": [4.0, 6.0, 11.0]})
    test = pd.DataFrame({"site_id": ["a", "b", "zzz"]})

    pred = predict_site_means(fit_site_means(train), test)

    assert pred.tolist() == pytest.approx([5.0, 11.0, 7.0])


def test_ols_formula_default():
    assert ols_formula() == "visibility ~ swell_5 + rain_5 + wind_5"


def test_fit_ols_recovers_linear_relationship():
    rng = np.random.default_rng(1)
    df = pd.DataFrame({
        "swell_5": rng.uniform(0, 3, 200),
        "rain_5": rng.uniform(0, 10, 200),
        "wind_5": rng.uniform(0, 30, 200),
    })
    df["visibility"] = 15 - 2.0 * df["swell_5"] - 0.3 * df["rain_5"] + rng.normal(0, 0.1, 200)

    result = fit_ols(df)
    table = coefficient_table(result).set_index("term")

    assert table.loc["swell_5", "estimate"] == pytest.approx(-2.0, abs=0.05)
    assert table.loc["rain_5", "estimate"] == pytest.approx(-0.3, abs=0.02)
    assert abs(table.loc["wind_5", "estimate"]) < 0.01


def test_prepare_regression_data_keeps_site_columns(feature_rows):
    train, test = prepare_regression_data(feature_rows, test_size=0.25)

    assert len(train) + len(test) == len(feature_rows)
    assert len(test) == 40
    assert {"site_id", "name"} <= set(test.columns)


def test_evaluate_baselines(feature_rows):
    train, test = prepare_regression_data(feature_rows)
    scores = evaluate_baselines(train, test)

    assert scores["model"].tolist() == ["Global mean", "Site mean", "Linear regression"]
    assert {"rmse", "mae", "r2", "accuracy"} <= set(scores.columns)
    assert scores["accuracy"].between(0, 1).all()
    rmse = scores.set_index("model")["rmse"]
    assert rmse["Site mean"] < rmse["Global mean"]


def test_baseline_cv_folds(feature_rows):
    cv = baseline_cv(feature_rows, n_splits=4)

    assert len(cv) == 8
    assert sorted(cv["fold"].unique()) == [1, 2, 3, 4]
    assert set(cv["model"]) == {"Linear regression", "Site mean"}
