"""Shared constants: dataset schema, recoding maps, modelling defaults, paths."""

from __future__ import annotations

from pathlib import Path

RAW_DIR = Path("data/raw")
DATA_CSV = "UniversalBank.csv"
REPORTS_DIR = Path("reports")
FIG_DIR = REPORTS_DIR / "figures"
MET_DIR = REPORTS_DIR / "metrics"

TARGET = "Personal.Loan"
ID_COL = "ID"
SEED = 123

NUMERIC_FEATURES = ["Age", "Experience", "Income", "Family", "CCAvg", "Mortgage"]
INDICATOR_FEATURES = ["Securities.Account", "CD.Account", "Online", "CreditCard"]
EDUCATION = "Education"
ZIP_CODE = "ZIP.Code"

EXPECTED_COLUMNS = [
    "ID",
    "Age",
    "Experience",
    "Income",
    "ZIP.Code",
    "Family",
    "CCAvg",
    "Education",
    "Mortgage",
    "Personal.Loan",
    "Securities.Account",
    "CD.Account",
    "Online",
    "CreditCard",
]

# Label levels: first is the reference, second the event.
LABEL_LEVELS = ["No", "Yes"]
POSITIVE = "Yes"
BINARY_MAP = {0: "No", 1: "Yes"}

EDUCATION_MAP = {1: "Undergrad", 2: "Graduate", 3: "Phd"}
EDUCATION_ORDER = ["Undergrad", "Graduate", "Phd"]

# Modelling defaults
TRAIN_PROP = 0.75
N_BOOTSTRAPS = 25
GRID_SIZE = 30
N_TREES = 1000
DECISION_THRESHOLD = 0.866
