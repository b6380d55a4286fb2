"""
Data recoding — turn integer codes into categories with fixed level sets.

Strategy:
  Label:       Personal.Loan 0/1 → No/Yes (two fixed levels, Yes = event)
  Education:   1/2/3 → Undergrad < Graduate < Phd (ordered)
  Indicators:  Securities.Account, CD.Account, Online, CreditCard 0/1 → No/Yes
  ZIP.Code:    integer → unordered category, levels fixed on the full dataset
               so train and test share them after the split
  ID:          dropped (row identifier, no signal)
  Reports:     missing values, cardinality, negative numerics (log only)

Any code outside a fixed mapping raises ValueError instead of becoming NaN.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from personal_loan.config import (
    BINARY_MAP,
    EDUCATION,
    EDUCATION_MAP,
    EDUCATION_ORDER,
    ID_COL,
    INDICATOR_FEATURES,
    LABEL_LEVELS,
    NUMERIC_FEATURES,
    TARGET,
    ZIP_CODE,
)

logger = logging.getLogger(__name__)


def _map_codes(
    series: pd.Series, mapping: dict, levels: list[str], ordered: bool = False
) -> pd.Series:
    mapped = series.map(mapping)
    unmapped = series[mapped.isnull() & series.notnull()]
    if not unmapped.empty:
        raise ValueError(
            f"Unmapped values in '{series.name}': {sorted(unmapped.unique().tolist())}"
        )
    return pd.Series(
        pd.Categorical(mapped, categories=levels, ordered=ordered),
        index=series.index,
        name=series.name,
    )


def recode_label(df: pd.DataFrame) -> pd.DataFrame:
    """Personal.Loan 0/1 → categorical No/Yes."""
    df = df.copy()
    df[TARGET] = _map_codes(df[TARGET], BINARY_MAP, LABEL_LEVELS)
    return df


def recode_education(df: pd.DataFrame) -> pd.DataFrame:
    """Education 1/2/3 → ordered Undergrad/Graduate/Phd."""
    df = df.copy()
    df[EDUCATION] = _map_codes(df[EDUCATION], EDUCATION_MAP, EDUCATION_ORDER, True)
    return df


def recode_indicators(df: pd.DataFrame) -> pd.DataFrame:
    """Binary account/usage flags → categorical No/Yes."""
    df = df.copy()
    for col in INDICATOR_FEATURES:
        if col in df.columns:
            df[col] = _map_codes(df[col], BINARY_MAP, LABEL_LEVELS)
    return df


def recode_zip(df: pd.DataFrame) -> pd.DataFrame:
    """ZIP.Code → unordered category, one level per distinct code."""
    if ZIP_CODE not in df.columns:
        return df
    df = df.copy()
    codes = df[ZIP_CODE].astype(str)
    df[ZIP_CODE] = pd.Categorical(codes, categories=sorted(codes.unique()))
    return df


def drop_id(df: pd.DataFrame) -> pd.DataFrame:
    if ID_COL in df.columns:
        df = df.drop(columns=[ID_COL])
        logger.info("Dropped '%s' (row identifier)", ID_COL)
    return df


def check_missing_values(df: pd.DataFrame) -> pd.DataFrame:
    """Log missing value counts across all columns."""
    null_counts = df.isnull().sum()
    cols_with_nulls = null_counts[null_counts > 0]

    if len(cols_with_nulls) > 0:
        logger.info("Missing values found in %d columns:", len(cols_with_nulls))
        for col, count in cols_with_nulls.items():
            logger.info("  %s: %d (%.1f%%)", col, count, count / len(df) * 100)
    else:
        logger.info("No missing values found")

    return df


def check_cardinality(df: pd.DataFrame) -> pd.DataFrame:
    """
    Log the level count of every coded column and flag rare levels.
    Rare ZIP codes are expected; they are kept and one-hot encoded downstream.
    """
    coded = [c for c in [EDUCATION, ZIP_CODE, *INDICATOR_FEATURES] if c in df.columns]
    for col in coded:
        value_counts = df[col].value_counts()
        if value_counts.empty:
            continue
        flag = ""
        if value_counts.min() < 5:
            n_rare = int((value_counts < 5).sum())
            flag = f" ⚠️ {n_rare} levels with <5 rows"
        logger.info(
            "  %s: %d levels, min=%d%s", col, len(value_counts), value_counts.min(), flag
        )
    return df


def check_negative_values(df: pd.DataFrame) -> pd.DataFrame:
    """Report negative values in numeric columns (Experience has a few)."""
    for col in NUMERIC_FEATURES:
        if col not in df.columns or not np.issubdtype(df[col].dtype, np.number):
            continue
        n_neg = int((df[col] < 0).sum())
        if n_neg > 0:
            logger.info("  %s: %d negative values (kept as-is)", col, n_neg)
    return df


def recode_data(df: pd.DataFrame) -> pd.DataFrame:
    """
    Full recoding pipeline:
      1. Report missing values
      2. Report negative numerics
      3. Recode label, education, indicators, ZIP code
      4. Report cardinality of the coded columns
      5. Drop the ID column
    """
    if df.empty:
        return df
    logger.info("Starting recoding pipeline...")
    df = check_missing_values(df)
    df = check_negative_values(df)
    df = recode_label(df)
    df = recode_education(df)
    df = recode_indicators(df)
    df = recode_zip(df)
    df = check_cardinality(df)
    df = drop_id(df)
    logger.info("Recoding complete: %d rows, %d columns", len(df), len(df.columns))
    return df
