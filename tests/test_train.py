"""Unit tests for the model spec, grid, resampling and tuning."""
from __future__ import annotations

import joblib
import numpy as np
import pytest

from personal_loan.features import (
    build_preprocessor,
    count_model_features,
    nominal_categories,
    split_xy,
)
from personal_loan.train import (
    TUNABLE_PARAMS,
    BootstrapSplit,
    build_model_spec,
    latin_hypercube_grid,
    select_best,
    show_best,
    train_final_model,
    tune_model,
)


@pytest.fixture
def xy(train_test):
    train, _ = train_test
    return split_xy(train)


def test_grid_shape_and_columns():
    grid = latin_hypercube_grid(size=30, n_features=16, seed=1)
    assert grid.shape == (30, 6)
    assert list(grid.columns) == TUNABLE_PARAMS


def test_grid_within_ranges():
    grid = latin_hypercube_grid(size=50, n_features=16, seed=1)
    assert grid["tree_depth"].between(1, 15).all()
    assert grid["min_n"].between(2, 40).all()
    assert grid["mtry"].between(1, 16).all()
    assert grid["sample_size"].between(0.1, 1.0).all()
    assert grid["loss_reduction"].between(1e-10, 10**1.5).all()
    assert grid["learn_rate"].between(1e-10, 1e-1).all()
    for col in ["tree_depth", "min_n", "mtry"]:
        assert np.issubdtype(grid[col].dtype, np.integer)


def test_grid_is_space_filling():
    # one draw per stratum: each tenth of the unit interval holds exactly one point
    grid = latin_hypercube_grid(size=10, n_features=16, seed=3)
    strata = np.floor((grid["sample_size"] - 0.1) / 0.9 * 10).astype(int)
    assert sorted(strata) == list(range(10))


def test_grid_reproducible():
    a = latin_hypercube_grid(size=5, n_features=10, seed=9)
    b = latin_hypercube_grid(size=5, n_features=10, seed=9)
    assert a.equals(b)


def test_empty_grid_rejected():
    with pytest.raises(ValueError):
        latin_hypercube_grid(size=0, n_features=10)


def test_model_spec_maps_params():
    params = {
        "tree_depth": 4,
        "min_n": 10,
        "loss_reduction": 0.01,
        "sample_size": 0.5,
        "mtry": 4,
        "learn_rate": 0.05,
    }
    clf = build_model_spec(params, n_features=16, n_trees=100)
    p = clf.get_params()
    assert p["n_estimators"] == 100
    assert p["max_depth"] == 4
    assert p["min_child_weight"] == 10
    assert p["gamma"] == pytest.approx(0.01)
    assert p["subsample"] == pytest.approx(0.5)
    assert p["colsample_bynode"] == pytest.approx(0.25)
    assert p["learning_rate"] == pytest.approx(0.05)


def test_bootstrap_split_sizes(xy):
    X, y = xy
    cv = BootstrapSplit(n_bootstraps=5, random_state=0)
    splits = list(cv.split(X, y))
    assert len(splits) == cv.get_n_splits() == 5
    for in_bag, oob in splits:
        assert len(in_bag) == len(X)
        assert len(oob) > 0
        assert set(oob).isdisjoint(in_bag)
        assert set(oob) | set(in_bag) == set(range(len(X)))


def test_bootstrap_split_stratified(xy):
    X, y = xy
    cv = BootstrapSplit(n_bootstraps=3, stratify=True, random_state=0)
    for in_bag, _ in cv.split(X, y):
        assert y.iloc[in_bag].sum() == y.sum()


def test_bootstrap_split_reproducible(xy):
    X, y = xy
    cv = BootstrapSplit(n_bootstraps=2, random_state=5)
    first = [tuple(a) for a, _ in cv.split(X, y)]
    second = [tuple(a) for a, _ in cv.split(X, y)]
    assert first == second


@pytest.fixture
def tuned(xy):
    X, y = xy
    n_features = count_model_features(X)
    grid = latin_hypercube_grid(size=3, n_features=n_features, seed=11)
    cv = BootstrapSplit(n_bootstraps=3, random_state=11)
    result = tune_model(
        X, y, grid, cv, n_features, n_trees=10, seed=11, show_progress_bar=False
    )
    return grid, result


def test_tune_evaluates_every_candidate(tuned):
    grid, result = tuned
    metrics = result["metrics"]
    assert len(metrics) == 2 * len(grid)
    assert set(metrics["metric"]) == {"roc_auc", "accuracy"}
    assert (metrics["n"] <= 3).all()
    auc = metrics[metrics["metric"] == "roc_auc"]
    assert sorted(auc["tree_depth"]) == sorted(grid["tree_depth"])


def test_tune_best_matches_metrics(tuned):
    _, result = tuned
    best = show_best(result["metrics"], "roc_auc", n=1).iloc[0]
    assert result["best_auc"] == pytest.approx(best["mean"])
    assert result["best_params"] == select_best(result["metrics"])
    assert set(result["best_params"]) == set(TUNABLE_PARAMS)
    assert 0.0 <= result["best_auc"] <= 1.0


def test_show_best_orders_descending(tuned):
    _, result = tuned
    top = show_best(result["metrics"], "roc_auc", n=3)
    assert list(top["mean"]) == sorted(top["mean"], reverse=True)


def test_unknown_metric_rejected(tuned):
    _, result = tuned
    with pytest.raises(ValueError):
        select_best(result["metrics"], metric="kappa")


def test_empty_grid_tuning_rejected(xy):
    X, y = xy
    grid = latin_hypercube_grid(size=1, n_features=16).iloc[0:0]
    with pytest.raises(ValueError):
        tune_model(X, y, grid, BootstrapSplit(2), 16, n_trees=5)


@pytest.fixture
def sparse_zip_xy(synthetic_data):
    """Training predictors with 150 ZIP codes, most of them rare."""
    from personal_loan.clean import recode_data
    from personal_loan.ingest import normalise_columns
    from personal_loan.split import stratified_split

    df = synthetic_data.copy()
    rng = np.random.RandomState(7)
    df["ZIP Code"] = rng.choice(np.arange(90000, 90150), len(df))
    train, _ = stratified_split(recode_data(normalise_columns(df)), 0.75, seed=123)
    return split_xy(train)


def test_encoded_width_constant_across_bootstrap_folds(sparse_zip_xy):
    X, y = sparse_zip_xy
    n_features = count_model_features(X)
    categories = nominal_categories(X)
    widths = [
        build_preprocessor(categories).fit_transform(X.iloc[in_bag]).shape[1]
        for in_bag, _ in BootstrapSplit(n_bootstraps=5, random_state=0).split(X, y)
    ]
    assert widths == [n_features] * 5


def test_in_bag_refit_sees_every_encoded_column(sparse_zip_xy):
    X, y = sparse_zip_xy
    n_features = count_model_features(X)
    in_bag, _ = next(BootstrapSplit(n_bootstraps=1, random_state=0).split(X, y))
    params = {
        "tree_depth": 3,
        "min_n": 2,
        "loss_reduction": 1e-3,
        "sample_size": 0.8,
        "mtry": n_features // 2,
        "learn_rate": 0.1,
    }
    pipeline = train_final_model(
        params, X.iloc[in_bag], y.iloc[in_bag], n_features, n_trees=5
    )
    clf = pipeline.named_steps["classifier"]
    assert clf.n_features_in_ == n_features
    assert clf.get_params()["colsample_bynode"] == pytest.approx((n_features // 2) / n_features)


def test_tune_under_parallel_backend(xy):
    X, y = xy
    n_features = count_model_features(X)
    grid = latin_hypercube_grid(size=2, n_features=n_features, seed=11)
    cv = BootstrapSplit(n_bootstraps=2, random_state=11)
    with joblib.parallel_backend("loky", n_jobs=2):
        result = tune_model(
            X, y, grid, cv, n_features, n_trees=5, seed=11, show_progress_bar=False
        )
    serial = tune_model(
        X, y, grid, cv, n_features, n_trees=5, seed=11, show_progress_bar=False
    )
    assert len(result["metrics"]) == 2 * len(grid)
    assert result["metrics"]["n"].between(1, 2).all()
    assert result["best_params"] == serial["best_params"]
    assert result["best_auc"] == pytest.approx(serial["best_auc"])
