"""
Load and validate the bank-customer CSV (the "Universal Bank" personal-loan data).

Header names are normalised by collapsing every run of characters other than
letters, digits, ``.`` and ``_`` into a single dot, so both the original
spreadsheet export (``ZIP Code``, ``Personal Loan``) and the
dotted variant (``ZIP.Code``, ``Personal.Loan``) load into the same schema.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import pandas as pd

from personal_loan.config import DATA_CSV, EXPECTED_COLUMNS, RAW_DIR, TARGET

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^0-9A-Za-z._]+")


def normalise_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Strip headers and collapse each run of other characters into one dot; no prefixing."""
    df = df.copy()
    df.columns = [_INVALID_NAME_CHARS.sub(".", str(c).strip()) for c in df.columns]
    return df


def validate_columns(df: pd.DataFrame) -> None:
    missing = [c for c in EXPECTED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing expected columns: {missing}")


def load_raw_data(filepath: Path | str | None = None) -> pd.DataFrame:
    """Load and validate the raw dataset."""
    filepath = Path(filepath) if filepath is not None else RAW_DIR / DATA_CSV
    if not filepath.exists():
        raise FileNotFoundError(
            f"Dataset not found at '{filepath}'. "
            f"Place {DATA_CSV} under {RAW_DIR}/ or pass --data."
        )

    df = normalise_columns(pd.read_csv(filepath))
    validate_columns(df)

    labels = set(df[TARGET].dropna().unique())
    if df[TARGET].isnull().any() or not labels <= {0, 1}:
        raise ValueError(f"Label '{TARGET}' must hold only 0/1, got {sorted(labels)}")

    logger.info(
        "Loaded %d records | Positive rate: %.1f%%",
        len(df),
        df[TARGET].mean() * 100,
    )
    return df


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    df = load_raw_data()
    print(f"✅ {df.shape[0]} records, {df.shape[1]} columns")
    print(f"Target: {df[TARGET].value_counts().to_dict()}")
