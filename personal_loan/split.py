"""Stratified train/test splitting preserving class ratio."""

from __future__ import annotations

import logging

import pandas as pd
from sklearn.model_selection import train_test_split

from personal_loan.config import POSITIVE, SEED, TARGET, TRAIN_PROP

logger = logging.getLogger(__name__)


def stratified_split(
    df: pd.DataFrame,
    train_prop: float = TRAIN_PROP,
    seed: int = SEED,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Single stratified split into disjoint train/test partitions."""
    if not 0.0 < train_prop < 1.0:
        raise ValueError(f"train_prop must be in (0, 1), got {train_prop}")

    df_train, df_test = train_test_split(
        df, train_size=train_prop, stratify=df[TARGET], random_state=seed
    )

    for name, split in [("Train", df_train), ("Test", df_test)]:
        logger.info(
            "%s: %d records, positive rate: %.3f",
            name,
            len(split),
            (split[TARGET] == POSITIVE).mean(),
        )

    return df_train, df_test
