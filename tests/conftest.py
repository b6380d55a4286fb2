"""
Shared test fixtures — synthetic data so tests never depend on the real CSV.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def synthetic_data():
    """300-row synthetic dataset matching the UniversalBank schema."""
    rng = np.random.RandomState(42)
    n = 300
    income = rng.randint(8, 225, n)
    cd_account = rng.choice([0, 1], n, p=[0.9, 0.1])
    # Loan uptake driven by income and CD account so the models have signal
    logit = -6.0 + 0.04 * income + 1.5 * cd_account
    loan = (rng.uniform(size=n) < 1 / (1 + np.exp(-logit))).astype(int)
    age = rng.randint(23, 68, n)
    return pd.DataFrame(
        {
            "ID": np.arange(1, n + 1),
            "Age": age,
            "Experience": age - 25 + rng.randint(-2, 3, n),
            "Income": income,
            "ZIP Code": rng.choice([94720, 90089, 95616, 94112, 92037], n),
            "Family": rng.randint(1, 5, n),
            "CCAvg": rng.uniform(0.0, 10.0, n).round(1),
            "Education": rng.choice([1, 2, 3], n),
            "Mortgage": np.where(rng.uniform(size=n) < 0.7, 0, rng.randint(75, 600, n)),
            "Personal Loan": loan,
            "Securities Account": rng.choice([0, 1], n, p=[0.9, 0.1]),
            "CD Account": cd_account,
            "Online": rng.choice([0, 1], n, p=[0.4, 0.6]),
            "CreditCard": rng.choice([0, 1], n, p=[0.7, 0.3]),
        }
    )


@pytest.fixture
def synthetic_csv(synthetic_data, tmp_path):
    path = tmp_path / "UniversalBank.csv"
    synthetic_data.to_csv(path, index=False)
    return path


@pytest.fixture
def recoded_data(synthetic_data):
    from personal_loan.clean import recode_data
    from personal_loan.ingest import normalise_columns

    return recode_data(normalise_columns(synthetic_data))


@pytest.fixture
def train_test(recoded_data):
    from personal_loan.split import stratified_split

    return stratified_split(recoded_data, train_prop=0.75, seed=123)
