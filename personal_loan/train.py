"""
Model tuning — boosted-tree spec, latin-hypercube grid, bootstrap resamples.

Six hyperparameters are tuned; the tree count is fixed:

  tree_depth      int [1, 15]           → max_depth
  min_n           int [2, 40]           → min_child_weight
  loss_reduction  10^[-10, 1.5]         → gamma
  sample_size     [0.1, 1.0]            → subsample
  mtry            int [1, n_features]   → colsample_bynode = mtry / n_features
  learn_rate      10^[-10, -1]          → learning_rate

The grid is drawn once with SciPy's Latin hypercube sampler and every point is
enqueued into a single Optuna study, so the study evaluates exactly the grid.
Each candidate is scored on bootstrap resamples of the training set (in-bag
rows fit, out-of-bag rows assess). The one-hot levels are taken from the
recoded categoricals, so every resample and the refit see the same n_features.
cross_validate dispatches the resamples to whatever joblib backend is active.
"""

from __future__ import annotations

import logging

import numpy as np
import optuna
import pandas as pd
from scipy.stats import qmc
from sklearn.model_selection import BaseCrossValidator, cross_validate
from sklearn.utils import check_random_state, resample
from xgboost import XGBClassifier

from personal_loan.config import N_BOOTSTRAPS, N_TREES, SEED
from personal_loan.features import build_pipeline, nominal_categories

logger = logging.getLogger(__name__)

SCORING = {"roc_auc": "roc_auc", "accuracy": "accuracy"}

# (low, high, kind); "log" bounds are base-10 exponents, mtry's upper bound is
# the number of encoded predictors
PARAM_SPACE = {
    "tree_depth": (1, 15, "int"),
    "min_n": (2, 40, "int"),
    "loss_reduction": (-10.0, 1.5, "log"),
    "sample_size": (0.1, 1.0, "float"),
    "mtry": (1, None, "int"),
    "learn_rate": (-10.0, -1.0, "log"),
}
TUNABLE_PARAMS = list(PARAM_SPACE)
INT_PARAMS = [name for name, (_, _, kind) in PARAM_SPACE.items() if kind == "int"]

# Fixed params that the grid doesn't search over
FIXED_PARAMS = {
    "tree_method": "hist",
    "eval_metric": "logloss",
    "n_jobs": 1,
}


def param_space(n_features: int) -> dict[str, tuple]:
    """Search ranges on the natural scale, with mtry bounded by n_features."""
    if n_features < 1:
        raise ValueError(f"n_features must be >= 1, got {n_features}")
    space = {}
    for name, (low, high, kind) in PARAM_SPACE.items():
        if name == "mtry":
            high = n_features
        if kind == "log":
            low, high = 10.0**low, 10.0**high
        space[name] = (low, high, kind)
    return space


def build_model_spec(
    params: dict, n_features: int, n_trees: int = N_TREES, seed: int = SEED
) -> XGBClassifier:
    """Boosted-tree classifier for one hyperparameter combination."""
    mtry = min(max(int(params["mtry"]), 1), n_features)
    return XGBClassifier(
        n_estimators=n_trees,
        max_depth=int(params["tree_depth"]),
        min_child_weight=float(params["min_n"]),
        gamma=float(params["loss_reduction"]),
        subsample=float(params["sample_size"]),
        colsample_bynode=mtry / n_features,
        learning_rate=float(params["learn_rate"]),
        random_state=seed,
        **FIXED_PARAMS,
    )


def latin_hypercube_grid(
    size: int, n_features: int, seed: int = SEED
) -> pd.DataFrame:
    """
    Space-filling grid of `size` candidates.

    Log-scaled parameters are sampled uniformly in log10 space, integer
    parameters are spread evenly over their integer levels.
    """
    if size < 1:
        raise ValueError(f"Grid size must be >= 1, got {size}")

    space = param_space(n_features)
    sampler = qmc.LatinHypercube(d=len(space), rng=np.random.default_rng(seed))
    unit = sampler.random(n=size)

    grid = {}
    for j, (name, (low, high, kind)) in enumerate(space.items()):
        u = unit[:, j]
        if kind == "int":
            values = np.clip(np.floor(low + u * (high - low + 1)), low, high)
            grid[name] = values.astype(int)
        elif kind == "log":
            exponent = np.log10(low) + u * (np.log10(high) - np.log10(low))
            grid[name] = np.clip(10.0**exponent, low, high)
        else:
            grid[name] = np.clip(low + u * (high - low), low, high)

    return pd.DataFrame(grid, columns=TUNABLE_PARAMS)


class BootstrapSplit(BaseCrossValidator):
    """
    Bootstrap resampling as a scikit-learn cross-validator.

    Each split draws n rows with replacement (stratified by y when asked) as
    the analysis set; rows never drawn form the out-of-bag assessment set.
    """

    def __init__(self, n_bootstraps=N_BOOTSTRAPS, stratify=True, random_state=None):
        self.n_bootstraps = n_bootstraps
        self.stratify = stratify
        self.random_state = random_state

    def get_n_splits(self, X=None, y=None, groups=None):
        return self.n_bootstraps

    def split(self, X, y=None, groups=None):
        n_samples = len(X)
        indices = np.arange(n_samples)
        rng = check_random_state(self.random_state)
        strata = np.asarray(y) if self.stratify and y is not None else None

        for _ in range(self.n_bootstraps):
            in_bag = resample(
                indices,
                replace=True,
                n_samples=n_samples,
                stratify=strata,
                random_state=rng,
            )
            out_of_bag = np.setdiff1d(indices, in_bag)
            yield in_bag, out_of_bag


def _suggest(trial: optuna.Trial, space: dict[str, tuple]) -> dict:
    params = {}
    for name, (low, high, kind) in space.items():
        if kind == "int":
            params[name] = trial.suggest_int(name, int(low), int(high))
        else:
            params[name] = trial.suggest_float(name, low, high, log=kind == "log")
    return params


def _as_python(params: dict) -> dict:
    return {
        k: int(v) if k in INT_PARAMS else float(v)
        for k, v in params.items()
        if k in TUNABLE_PARAMS
    }


def tune_model(
    X,
    y,
    grid: pd.DataFrame,
    cv: BaseCrossValidator,
    n_features: int,
    n_trees: int = N_TREES,
    seed: int = SEED,
    show_progress_bar: bool = True,
) -> dict:
    """
    Evaluate every grid candidate on the resamples.

    Returns dict with best_params, best_auc, study, metrics.
    """
    if grid.empty:
        raise ValueError("Tuning grid is empty")

    optuna.logging.set_verbosity(optuna.logging.WARNING)
    space = param_space(n_features)
    categories = nominal_categories(X)

    def objective(trial):
        params = _suggest(trial, space)
        model = build_model_spec(params, n_features, n_trees, seed)
        pipeline = build_pipeline(model, categories)
        scores = cross_validate(pipeline, X, y, cv=cv, scoring=SCORING)

        trial.set_user_attr("config", f"Model{trial.number + 1:02d}")
        for metric in SCORING:
            values = scores[f"test_{metric}"]
            values = values[~np.isnan(values)]
            n = len(values)
            trial.set_user_attr(f"{metric}_mean", float(values.mean()) if n else np.nan)
            trial.set_user_attr(
                f"{metric}_std_err",
                float(values.std(ddof=1) / np.sqrt(n)) if n > 1 else np.nan,
            )
            trial.set_user_attr(f"{metric}_n", n)
        return trial.user_attrs["roc_auc_mean"]

    study = optuna.create_study(
        direction="maximize",
        study_name="xgboost",
        sampler=optuna.samplers.TPESampler(seed=seed),
    )
    for row in grid.to_dict(orient="records"):
        study.enqueue_trial(_as_python(row))

    logger.info(
        "Tuning %d candidates × %d resamples (%d trees each)",
        len(grid),
        cv.get_n_splits(),
        n_trees,
    )
    study.optimize(objective, n_trials=len(grid), show_progress_bar=show_progress_bar)

    metrics = collect_metrics(study)
    best_params = select_best(metrics, metric="roc_auc")
    best_auc = float(show_best(metrics, "roc_auc", n=1)["mean"].iloc[0])
    logger.info("xgboost → best AUC: %.4f | params: %s", best_auc, best_params)

    return {
        "best_params": best_params,
        "best_auc": best_auc,
        "study": study,
        "metrics": metrics,
    }


def collect_metrics(study: optuna.Study) -> pd.DataFrame:
    """Long-form resampling summary: one row per candidate × metric."""
    rows = []
    for trial in study.get_trials(deepcopy=False):
        if trial.state != optuna.trial.TrialState.COMPLETE:
            continue
        for metric in SCORING:
            rows.append(
                {
                    **_as_python(trial.params),
                    "metric": metric,
                    "mean": trial.user_attrs[f"{metric}_mean"],
                    "n": trial.user_attrs[f"{metric}_n"],
                    "std_err": trial.user_attrs[f"{metric}_std_err"],
                    "config": trial.user_attrs["config"],
                }
            )
    columns = TUNABLE_PARAMS + ["metric", "mean", "n", "std_err", "config"]
    return pd.DataFrame(rows, columns=columns)


def show_best(metrics: pd.DataFrame, metric: str = "roc_auc", n: int = 5) -> pd.DataFrame:
    """Top-n candidates by mean resampled `metric`."""
    if metric not in set(metrics["metric"]):
        raise ValueError(f"Metric '{metric}' not in tuning results")
    ranked = metrics[metrics["metric"] == metric].sort_values("mean", ascending=False)
    return ranked.head(n).reset_index(drop=True)


def select_best(metrics: pd.DataFrame, metric: str = "roc_auc") -> dict:
    """Hyperparameters of the candidate with the highest mean `metric`."""
    best = show_best(metrics, metric, n=1)
    if best.empty:
        raise ValueError("No completed candidates to select from")
    return _as_python(best.iloc[0].to_dict())


def train_final_model(
    params: dict,
    X_train,
    y_train,
    n_features: int,
    n_trees: int = N_TREES,
    seed: int = SEED,
):
    """Train the finalized pipeline on the full training set. Returns fitted pipeline."""
    model = build_model_spec(params, n_features, n_trees, seed)
    pipeline = build_pipeline(model, nominal_categories(X_train))
    pipeline.fit(X_train, y_train)
    return pipeline
