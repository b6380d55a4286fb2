"""Diagnostic figures: variable importance, confusion matrix, ROC curve, tuning results."""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.figure import Figure
from sklearn.metrics import roc_auc_score, roc_curve

from personal_loan.features import feature_names
from personal_loan.train import PARAM_SPACE, TUNABLE_PARAMS

logger = logging.getLogger(__name__)


def importance_table(pipeline) -> pd.DataFrame:
    """Gain importance of every encoded feature, highest first."""
    clf = pipeline.named_steps["classifier"]
    names = [str(f).split("__", 1)[-1] for f in feature_names(pipeline)]
    return (
        pd.DataFrame({"feature": names, "importance": clf.feature_importances_})
        .sort_values("importance", ascending=False)
        .reset_index(drop=True)
    )


def plot_variable_importance(pipeline, top_n: int = 10) -> Figure:
    top = importance_table(pipeline).head(top_n)

    fig, ax = plt.subplots(figsize=(9, 0.45 * len(top) + 1.5))
    ax.barh(top["feature"], top["importance"], color="#2980b9", edgecolor="black")
    ax.invert_yaxis()
    ax.set_xlabel("Importance (gain)")
    ax.set_title(f"Top {len(top)} Features — XGBoost", fontsize=14, fontweight="bold")
    fig.tight_layout()
    return fig


def plot_confusion_matrix(table: pd.DataFrame, threshold: float | None = None) -> Figure:
    """Heatmap of a Truth × Prediction count table."""
    fig, ax = plt.subplots(figsize=(6, 5))
    sns.heatmap(
        table,
        annot=True,
        fmt="d",
        cmap="Blues",
        cbar=False,
        ax=ax,
    )
    ax.set_xlabel("Predicted")
    ax.set_ylabel("Actual")
    title = "Confusion Matrix — Test Set"
    if threshold is not None:
        title += f"\n(t={threshold:.3f})"
    ax.set_title(title, fontsize=13, fontweight="bold")
    fig.tight_layout()
    return fig


def plot_roc_curve(y_true, y_prob) -> Figure:
    """ROC curve with AUC in the legend; y_true as 0/1 codes."""
    fpr, tpr, _ = roc_curve(y_true, y_prob)
    auc = roc_auc_score(y_true, y_prob)

    fig, ax = plt.subplots(figsize=(7, 6))
    ax.plot(fpr, tpr, linewidth=2, color="#e74c3c", label=f"XGBoost ({auc:.3f})")
    ax.plot([0, 1], [0, 1], "k--", alpha=0.4)
    ax.set_xlabel("1 − Specificity (FPR)")
    ax.set_ylabel("Sensitivity (TPR)")
    ax.set_title("ROC Curve — Test Set", fontsize=13, fontweight="bold")
    ax.set_aspect("equal")
    ax.legend(loc="lower right")
    ax.grid(alpha=0.3)
    fig.tight_layout()
    return fig


def plot_tuning_results(metrics: pd.DataFrame, metric: str = "roc_auc") -> Figure:
    """Mean resampled metric against each tuned hyperparameter."""
    subset = metrics[metrics["metric"] == metric]
    if subset.empty:
        raise ValueError(f"Metric '{metric}' not in tuning results")

    ncols = 3
    nrows = int(np.ceil(len(TUNABLE_PARAMS) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 4 * nrows), sharey=True)
    for ax, param in zip(np.ravel(axes), TUNABLE_PARAMS):
        ax.scatter(subset[param], subset["mean"], color="#2c3e50", alpha=0.8)
        if PARAM_SPACE[param][2] == "log":
            ax.set_xscale("log")
        ax.set_xlabel(param)
        ax.grid(alpha=0.3)
    for ax in np.ravel(axes)[::ncols]:
        ax.set_ylabel(metric)
    fig.suptitle("Hyperparameter Tuning — Bootstrap Means", fontsize=15, fontweight="bold")
    fig.tight_layout()
    return fig


def save_figure(fig: Figure, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved %s", path)
    return path
