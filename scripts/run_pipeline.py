#!/usr/bin/env python3
"""
PERSONAL LOAN UPTAKE — XGBoost tuning pipeline
================================================
  📦  Ingest UniversalBank.csv → recode → stratified train/test split
  🎲  Latin-hypercube grid over six XGBoost hyperparameters
  🔁  Bootstrap resamples of the training set, scored by ROC-AUC
  🏆  Best candidate refit on the full training set, scored on test
  📈  Variable importance · confusion matrix · ROC curve · tuning plot

Usage:  python scripts/run_pipeline.py
        python scripts/run_pipeline.py --data data/raw/UniversalBank.csv --n-jobs 8
        python scripts/run_pipeline.py --grid-size 10 --n-bootstraps 5 --n-trees 200
        python scripts/run_pipeline.py --youden   (derive the cut from the ROC curve)
"""
from __future__ import annotations

import warnings

warnings.filterwarnings("ignore", category=FutureWarning)
warnings.filterwarnings("ignore", category=UserWarning)

import argparse, json, logging, time, sys
from pathlib import Path

import joblib
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from personal_loan.config import (
    DECISION_THRESHOLD,
    GRID_SIZE,
    N_BOOTSTRAPS,
    N_TREES,
    POSITIVE,
    RAW_DIR,
    DATA_CSV,
    REPORTS_DIR,
    SEED,
    TARGET,
    TRAIN_PROP,
)
from personal_loan.ingest import load_raw_data
from personal_loan.clean import recode_data
from personal_loan.split import stratified_split
from personal_loan.features import count_model_features, encode_target, split_xy
from personal_loan.train import BootstrapSplit, latin_hypercube_grid, show_best, tune_model
from personal_loan.evaluate import last_fit, score_at_threshold, threshold_analysis, youden_threshold
from personal_loan.plots import (
    importance_table,
    plot_confusion_matrix,
    plot_roc_curve,
    plot_tuning_results,
    plot_variable_importance,
    save_figure,
)

sns.set_theme(style="whitegrid", palette="muted")
plt.rcParams["figure.dpi"] = 130


# ═══════════════════════════════════════════════════════════════════════════════
# LOGGING
# ═══════════════════════════════════════════════════════════════════════════════
class PrettyFormatter(logging.Formatter):
    GREY = "\033[90m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"
    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: RED + BOLD,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, self.GREY)
        ts = self.formatTime(record, "%H:%M:%S")
        return f"{self.GREY}{ts}{self.RESET} {color}│{self.RESET} {record.getMessage()}"


handler = logging.StreamHandler()
handler.setFormatter(PrettyFormatter())
logging.basicConfig(level=logging.INFO, handlers=[handler])
log = logging.getLogger("pipeline")


def banner(title, emoji="═"):
    w = 65
    log.info("")
    log.info(f"\033[1m\033[96m{'═' * w}\033[0m")
    log.info(f"\033[1m\033[96m  {emoji}  {title}\033[0m")
    log.info(f"\033[1m\033[96m{'═' * w}\033[0m")


def step_done(msg):
    log.info(f"  \033[92m✅ {msg}\033[0m")


def metric_log(label, value):
    log.info(f"     \033[93m▸ {label}: {value}\033[0m")


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 1–2 : DATA
# ═══════════════════════════════════════════════════════════════════════════════
def step_data(data_path, train_prop, seed):
    banner("STEP 1–2  ·  INGEST → RECODE → SPLIT", "📦")
    df_raw = load_raw_data(data_path)
    df = recode_data(df_raw)
    train, test = stratified_split(df, train_prop=train_prop, seed=seed)
    log.info(
        f"  📊 Raw: {len(df_raw):,}  |  Train: {len(train):,}  Test: {len(test):,}"
    )
    log.info(f"  📊 Positive rate: {(df[TARGET] == POSITIVE).mean():.1%}")
    return df, train, test


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 3–4 : GRID + TUNING
# ═══════════════════════════════════════════════════════════════════════════════
def step_tune(train, args, met_dir, fig_dir):
    banner("STEP 3–4  ·  LATIN HYPERCUBE GRID × BOOTSTRAP TUNING", "🎲")
    X_tr, y_tr = split_xy(train)
    n_features = count_model_features(X_tr)
    grid = latin_hypercube_grid(args.grid_size, n_features, seed=args.seed)
    resamples = BootstrapSplit(args.n_bootstraps, stratify=True, random_state=args.seed)
    metric_log("Encoded predictors (mtry upper bound)", n_features)
    metric_log("Candidates", len(grid))
    metric_log("Bootstrap resamples", args.n_bootstraps)

    start = time.time()
    with joblib.parallel_backend("loky", n_jobs=args.n_jobs):
        result = tune_model(
            X_tr, y_tr, grid, resamples, n_features, n_trees=args.n_trees, seed=args.seed
        )
    step_done(f"Tuning finished in {(time.time() - start) / 60:.1f} minutes")

    metrics = result["metrics"]
    metrics.to_csv(met_dir / "tuning_metrics.csv", index=False)
    with open(met_dir / "best_params.json", "w") as f:
        json.dump(result["best_params"], f, indent=2)

    log.info("  🏆 Top candidates by ROC-AUC:")
    for _, row in show_best(metrics, "roc_auc", n=5).iterrows():
        log.info(
            "     %s  auc=%.4f ± %.4f  depth=%d  min_n=%d  mtry=%d  lr=%.2e",
            row["config"],
            row["mean"],
            row["std_err"],
            row["tree_depth"],
            row["min_n"],
            row["mtry"],
            row["learn_rate"],
        )

    save_figure(plot_tuning_results(metrics), fig_dir / "01_tuning_results.png")
    step_done("01_tuning_results.png")
    return result, n_features


# ═══════════════════════════════════════════════════════════════════════════════
# STEP 5 : FINAL FIT + EVALUATION
# ═══════════════════════════════════════════════════════════════════════════════
def step_evaluate(best_params, train, test, n_features, args, met_dir, fig_dir):
    banner("STEP 5  ·  LAST FIT → TEST SET", "🏆")
    fit = last_fit(best_params, train, test, n_features, n_trees=args.n_trees, seed=args.seed)
    for _, row in fit["metrics"].iterrows():
        metric_log(f"{row['metric']} (t=0.5)", f"{row['estimate']:.4f}")

    y_true = encode_target(test[TARGET])
    prob_yes = fit["predictions"]["pred_prob_yes"]

    threshold = args.threshold
    if args.youden:
        threshold, _ = youden_threshold(y_true, prob_yes)
    predictions, metrics, table = score_at_threshold(fit["predictions"], threshold)
    for name, value in metrics.items():
        metric_log(f"{name} (t={threshold:.3f})", f"{value:.4f}")

    predictions.to_csv(met_dir / "predictions.csv", index=False)
    threshold_analysis(y_true, prob_yes).to_csv(
        met_dir / "threshold_analysis.csv", index=False
    )
    importance_table(fit["pipeline"]).to_csv(
        met_dir / "variable_importance.csv", index=False
    )
    with open(met_dir / "test_metrics.json", "w") as f:
        json.dump(
            {
                "default_cut": dict(zip(fit["metrics"]["metric"], fit["metrics"]["estimate"])),
                "threshold": threshold,
                "at_threshold": metrics,
                "confusion_matrix": table.to_numpy().tolist(),
            },
            f,
            indent=2,
        )

    banner("STEP 6  ·  DIAGNOSTIC FIGURES", "📈")
    save_figure(plot_variable_importance(fit["pipeline"]), fig_dir / "02_variable_importance.png")
    step_done("02_variable_importance.png")
    save_figure(plot_confusion_matrix(table, threshold), fig_dir / "03_confusion_matrix.png")
    step_done("03_confusion_matrix.png")
    save_figure(plot_roc_curve(y_true, prob_yes), fig_dir / "04_roc_curve.png")
    step_done("04_roc_curve.png")
    return fit, metrics, table, threshold


def main(argv=None):
    parser = argparse.ArgumentParser(description="Personal loan XGBoost pipeline")
    parser.add_argument("--data", type=Path, default=RAW_DIR / DATA_CSV)
    parser.add_argument("--seed", type=int, default=SEED)
    parser.add_argument("--train-prop", type=float, default=TRAIN_PROP)
    parser.add_argument("--grid-size", type=int, default=GRID_SIZE)
    parser.add_argument("--n-bootstraps", type=int, default=N_BOOTSTRAPS)
    parser.add_argument("--n-trees", type=int, default=N_TREES)
    parser.add_argument("--threshold", type=float, default=DECISION_THRESHOLD)
    parser.add_argument(
        "--youden",
        action="store_true",
        help="Use the Youden-J cut from the test ROC curve instead of --threshold",
    )
    parser.add_argument("--n-jobs", type=int, default=-1)
    parser.add_argument("--out-dir", type=Path, default=REPORTS_DIR)
    args = parser.parse_args(argv)

    fig_dir = args.out_dir / "figures"
    met_dir = args.out_dir / "metrics"
    for d in [fig_dir, met_dir]:
        d.mkdir(parents=True, exist_ok=True)

    start = time.time()
    log.info(
        f"  ⚙️  Grid: {args.grid_size}  |  Bootstraps: {args.n_bootstraps}  |  "
        f"Trees: {args.n_trees}  |  Jobs: {args.n_jobs}  |  Seed: {args.seed}"
    )

    _, train, test = step_data(args.data, args.train_prop, args.seed)
    result, n_features = step_tune(train, args, met_dir, fig_dir)
    _, metrics, table, threshold = step_evaluate(
        result["best_params"], train, test, n_features, args, met_dir, fig_dir
    )

    elapsed = time.time() - start
    print("\n" + "=" * 65)
    print("📊 RESULTS SUMMARY")
    print("=" * 65)
    print(f"Best params: {result['best_params']}")
    print(f"Resampled ROC-AUC: {result['best_auc']:.4f}")
    print(f"\nConfusion matrix (t={threshold:.3f}):")
    print(table.to_string())
    print(
        f"\nAccuracy: {metrics['accuracy']:.4f} | Precision: {metrics['precision']:.4f} | "
        f"Recall: {metrics['recall']:.4f} | ROC-AUC: {metrics['roc_auc']:.4f}"
    )
    print(f"\n📊 Figures: {fig_dir}")
    print(f"📋 Metrics: {met_dir}")
    print(f"⏱️  Total time: {elapsed / 60:.1f} minutes")


if __name__ == "__main__":
    main()
