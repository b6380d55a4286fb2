"""
Evaluation — last fit on the held-out test split, thresholding, metric suite.

Class labels are derived from P(Yes) with a fixed cut (0.866 by default).
The cut is an analysis choice fitted to one test split, not a decision rule;
youden_threshold() is provided as the documented alternative.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    brier_score_loss,
    confusion_matrix,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
    roc_curve,
)

from personal_loan.config import (
    DECISION_THRESHOLD,
    LABEL_LEVELS,
    N_TREES,
    POSITIVE,
    SEED,
    TARGET,
)
from personal_loan.features import encode_target, split_xy
from personal_loan.train import train_final_model

logger = logging.getLogger(__name__)


def apply_threshold(prob_yes, threshold: float = DECISION_THRESHOLD) -> pd.Categorical:
    """Yes where P(Yes) >= threshold, else No."""
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Threshold must be in [0, 1], got {threshold}")
    labels = np.where(np.asarray(prob_yes) >= threshold, POSITIVE, LABEL_LEVELS[0])
    return pd.Categorical(labels, categories=LABEL_LEVELS)


def _as_binary(y) -> np.ndarray:
    """Accept No/Yes labels or 0/1 codes."""
    y = pd.Series(np.asarray(y))
    if pd.api.types.is_numeric_dtype(y) or pd.api.types.is_bool_dtype(y):
        return y.astype(int).to_numpy()
    return encode_target(y).to_numpy()


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════════
def compute_metrics(y_true, y_pred, y_prob) -> dict[str, float]:
    """Compute full classification metric suite including calibration."""
    y_true, y_pred = _as_binary(y_true), _as_binary(y_pred)
    return {
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "precision": float(precision_score(y_true, y_pred, zero_division=0)),
        "recall": float(recall_score(y_true, y_pred, zero_division=0)),
        "f1": float(f1_score(y_true, y_pred, zero_division=0)),
        "roc_auc": float(roc_auc_score(y_true, y_prob)),
        "pr_auc": float(average_precision_score(y_true, y_prob)),
        "brier_score": float(brier_score_loss(y_true, y_prob)),
    }


def confusion_table(y_true, y_pred) -> pd.DataFrame:
    """2×2 counts, Truth (rows) × Prediction (columns), levels No/Yes."""
    cm = confusion_matrix(_as_binary(y_true), _as_binary(y_pred), labels=[0, 1])
    return pd.DataFrame(
        cm,
        index=pd.Index(LABEL_LEVELS, name="Truth"),
        columns=pd.Index(LABEL_LEVELS, name="Prediction"),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# LAST FIT
# ═══════════════════════════════════════════════════════════════════════════════
def last_fit(
    params: dict,
    train: pd.DataFrame,
    test: pd.DataFrame,
    n_features: int,
    n_trees: int = N_TREES,
    seed: int = SEED,
) -> dict:
    """
    Refit the finalized model on the full training set and score the test set.

    Returns dict with the fitted pipeline, a metrics table (accuracy at the
    0.5 cut + ROC-AUC) and the test frame with prediction columns added.
    """
    X_tr, y_tr = split_xy(train)
    X_te, y_te = split_xy(test)

    pipeline = train_final_model(params, X_tr, y_tr, n_features, n_trees, seed)
    prob_yes = pipeline.predict_proba(X_te)[:, 1]

    predictions = test.copy()
    predictions["pred_prob_yes"] = prob_yes
    predictions["pred_prob_no"] = 1.0 - prob_yes
    predictions["pred_class"] = apply_threshold(prob_yes, 0.5)

    metrics = pd.DataFrame(
        {
            "metric": ["accuracy", "roc_auc"],
            "estimate": [
                float(accuracy_score(y_te, encode_target(predictions["pred_class"]))),
                float(roc_auc_score(y_te, prob_yes)),
            ],
        }
    )
    logger.info(
        "Test set → accuracy: %.4f | ROC-AUC: %.4f",
        metrics["estimate"].iloc[0],
        metrics["estimate"].iloc[1],
    )
    return {"pipeline": pipeline, "metrics": metrics, "predictions": predictions}


def score_at_threshold(
    predictions: pd.DataFrame, threshold: float = DECISION_THRESHOLD
) -> tuple[pd.DataFrame, dict[str, float], pd.DataFrame]:
    """Re-label predictions at `threshold`; return them with metrics and confusion table."""
    predictions = predictions.copy()
    predictions["pred_class"] = apply_threshold(predictions["pred_prob_yes"], threshold)
    metrics = compute_metrics(
        predictions[TARGET], predictions["pred_class"], predictions["pred_prob_yes"]
    )
    table = confusion_table(predictions[TARGET], predictions["pred_class"])
    logger.info(
        "Threshold %.3f → accuracy: %.4f | precision: %.4f | recall: %.4f",
        threshold,
        metrics["accuracy"],
        metrics["precision"],
        metrics["recall"],
    )
    return predictions, metrics, table


# ═══════════════════════════════════════════════════════════════════════════════
# THRESHOLD SELECTION
# ═══════════════════════════════════════════════════════════════════════════════
def youden_threshold(y_true, y_prob) -> tuple[float, float]:
    """Threshold maximizing Youden's J = TPR − FPR on the ROC curve."""
    fpr, tpr, thresholds = roc_curve(_as_binary(y_true), y_prob)
    j = tpr - fpr
    # roc_curve prepends an infinite threshold for the (0, 0) point
    j[~np.isfinite(thresholds)] = -np.inf
    idx = int(np.argmax(j))
    best_t = float(thresholds[idx])
    logger.info("Youden threshold: %.3f (J = %.3f)", best_t, j[idx])
    return best_t, float(j[idx])


def threshold_analysis(y_true, y_prob, thresholds=None) -> pd.DataFrame:
    """Show recall vs precision trade-off at different thresholds."""
    if thresholds is None:
        thresholds = np.arange(0.05, 1.0, 0.05)

    y_true = _as_binary(y_true)
    y_prob = np.asarray(y_prob)
    rows = []
    for t in thresholds:
        y_pred = (y_prob >= t).astype(int)
        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
        recall = tp / (tp + fn) if (tp + fn) > 0 else 0
        precision = tp / (tp + fp) if (tp + fp) > 0 else 0

        rows.append(
            {
                "threshold": round(float(t), 3),
                "recall": round(recall, 3),
                "precision": round(precision, 3),
                "accuracy": round((tp + tn) / len(y_true), 3),
                "tp": int(tp),
                "fp": int(fp),
                "fn": int(fn),
                "tn": int(tn),
            }
        )

    return pd.DataFrame(rows)
