"""
Feature preprocessing — target encoding, ordinal education, one-hot indicators.

Design decisions:
  - numerics → passthrough (tree ensembles are scale-invariant)
  - Education → ordinal (natural order Undergrad < Graduate < Phd)
  - indicator flags + ZIP.Code → one-hot; binary flags collapse to one column
  - one-hot levels come from the recoded categoricals, not the rows fitted on
  - unseen ZIP codes at predict time → all-zero row (handle_unknown="ignore")
  - the number of encoded columns is the upper bound of the mtry search range
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.compose import ColumnTransformer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder

from personal_loan.config import (
    EDUCATION,
    EDUCATION_ORDER,
    INDICATOR_FEATURES,
    NUMERIC_FEATURES,
    POSITIVE,
    TARGET,
    ZIP_CODE,
)

NOMINAL_FEATURES = INDICATOR_FEATURES + [ZIP_CODE]


def encode_target(y: pd.Series) -> pd.Series:
    """Yes → 1, No → 0."""
    return (y.astype(str) == POSITIVE).astype(int)


def split_xy(df: pd.DataFrame) -> tuple[pd.DataFrame, pd.Series]:
    """Predictors and the 0/1-encoded label."""
    return df.drop(columns=[TARGET]), encode_target(df[TARGET])


def nominal_categories(X: pd.DataFrame) -> list[list]:
    """
    Level sets for the one-hot columns, read from the pandas categoricals.

    Recoding fixes each categorical's levels on the full data, so every
    subset of rows (bootstrap fold, refit, test) encodes to the same width.
    """
    levels = []
    for col in NOMINAL_FEATURES:
        values = X[col]
        if isinstance(values.dtype, pd.CategoricalDtype):
            levels.append(list(values.cat.categories))
        else:
            levels.append(sorted(values.dropna().unique()))
    return levels


def build_preprocessor(categories: list[list] | None = None) -> ColumnTransformer:
    """Build ColumnTransformer for numeric, ordinal, and nominal features."""
    return ColumnTransformer(
        transformers=[
            ("num", "passthrough", NUMERIC_FEATURES),
            (
                "ord",
                OrdinalEncoder(
                    categories=[EDUCATION_ORDER],
                    handle_unknown="use_encoded_value",
                    unknown_value=-1,
                ),
                [EDUCATION],
            ),
            (
                "nom",
                OneHotEncoder(
                    categories=categories if categories is not None else "auto",
                    drop="if_binary",
                    handle_unknown="ignore",
                    sparse_output=False,
                ),
                NOMINAL_FEATURES,
            ),
        ],
        remainder="drop",
        verbose_feature_names_out=True,
    )


def build_pipeline(model: BaseEstimator, categories: list[list] | None = None) -> Pipeline:
    """Full pipeline: Preprocessing → Classifier."""
    return Pipeline(
        [
            ("preprocessor", build_preprocessor(categories)),
            ("classifier", model),
        ]
    )


def count_model_features(X: pd.DataFrame) -> int:
    """Number of encoded predictor columns the preprocessor produces on X."""
    return int(build_preprocessor(nominal_categories(X)).fit_transform(X).shape[1])


def feature_names(pipeline: Pipeline) -> np.ndarray:
    """Encoded feature names of a fitted pipeline."""
    return pipeline.named_steps["preprocessor"].get_feature_names_out()
