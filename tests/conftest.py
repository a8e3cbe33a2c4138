"""Shared synthetic data for the predint test suite."""

import numpy as np
import pytest


def linear_data(n, rng, noise_sd=0.25):
    """y = 1 + x/2 + N(0, noise_sd^2), x ~ U(0, 10)."""
    x = rng.uniform(0, 10, size=n)
    y = 1 + x / 2 + rng.normal(0, noise_sd, size=n)
    return x.reshape(-1, 1), y


def heteroscedastic_data(n, rng):
    """y = 1 + x/2 + N(0, (0.1 + 0.3 x)^2), x ~ U(0, 5)."""
    x = rng.uniform(0, 5, size=n)
    y = 1 + x / 2 + rng.normal(0, 1, size=n) * (0.1 + 0.3 * x)
    return x.reshape(-1, 1), y


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def linear_split(rng):
    """250 train / 250 calibration / 2000 test records of the linear model."""
    X_train, y_train = linear_data(250, rng)
    X_cal, y_cal = linear_data(250, rng)
    X_test, y_test = linear_data(2000, rng)
    return (X_train, y_train), (X_cal, y_cal), (X_test, y_test)


@pytest.fixture
def hetero_split(rng):
    """1000 train / 1000 calibration / 2000 test heteroscedastic records."""
    X_train, y_train = heteroscedastic_data(1000, rng)
    X_cal, y_cal = heteroscedastic_data(1000, rng)
    X_test, y_test = heteroscedastic_data(2000, rng)
    return (X_train, y_train), (X_cal, y_cal), (X_test, y_test)
