"""
Bayesian Linear Regression via PyMC

A point- and quantile-capable regression model fit with NUTS. The
posterior predictive distribution gives the quantile predictions used by
conformalized quantile regression; the posterior mean of the linear
predictor is the point prediction.

Optionally the noise scale is log-linear in the features
(``heteroscedastic=True``), which lets the predictive quantiles widen and
narrow with the inputs.

"""

from pathlib import Path
from typing import Dict, Optional, Sequence

import arviz as az
import numpy as np
import pymc as pm
from sklearn.base import BaseEstimator, RegressorMixin, clone

from ..exceptions import InvalidArgument
from .base import level_key


class BayesianLinearRegression(BaseEstimator, RegressorMixin):
    """
    Linear regression with Gaussian noise, sampled with NUTS.

    Model (on standardized features and outcome):

        intercept ~ Normal(0, prior_sigma)
        beta      ~ Normal(0, prior_sigma)            shape (p,)
        sigma     ~ HalfNormal(noise_prior)           homoscedastic
        log sigma = s0 + X gamma                      heteroscedastic
        y         ~ Normal(intercept + X beta, sigma)

    Parameters
    ----------
    prior_sigma : float, optional (default=5.0)
        Prior standard deviation of the regression coefficients
    noise_prior : float, optional (default=2.0)
        Scale of the HalfNormal prior on the noise standard deviation
    heteroscedastic : bool, optional (default=False)
        Model log noise scale as linear in the features
    chains : int, optional (default=2)
        Number of MCMC chains
    draws : int, optional (default=1000)
        Posterior samples per chain
    tune : int, optional (default=1000)
        Warmup iterations per chain
    target_accept : float, optional (default=0.90)
        NUTS target acceptance rate
    cores : int, optional (default=1)
        CPU cores used for sampling chains
    random_seed : int, optional (default=42)
        Seed for MCMC and posterior predictive sampling
    verbose : bool, optional (default=False)
        Print sampling progress

    Attributes
    ----------
    trace_ : az.InferenceData
        Posterior samples
    convergence_ : dict
        Output of ``check_convergence``
    n_features_in_ : int

    Examples
    --------
    >>> model = BayesianLinearRegression(draws=500, tune=500)
    >>> model.fit(X_train, y_train)
    >>> model.check_convergence()
    >>> y_hat = model.predict(X_new)
    >>> bands = model.predict_quantiles(X_new, [0.05, 0.95])
    """

    def __init__(
        self,
        prior_sigma: float = 5.0,
        noise_prior: float = 2.0,
        heteroscedastic: bool = False,
        chains: int = 2,
        draws: int = 1000,
        tune: int = 1000,
        target_accept: float = 0.90,
        cores: int = 1,
        random_seed: int = 42,
        verbose: bool = False
    ):
        self.prior_sigma = prior_sigma
        self.noise_prior = noise_prior
        self.heteroscedastic = heteroscedastic
        self.chains = chains
        self.draws = draws
        self.tune = tune
        self.target_accept = target_accept
        self.cores = cores
        self.random_seed = random_seed
        self.verbose = verbose

    def fit(self, X, y) -> "BayesianLinearRegression":
        """
        Sample the posterior with NUTS.

        Parameters
        ----------
        X : array-like, shape (n, p)
        y : array-like, shape (n,)

        Returns
        -------
        self : BayesianLinearRegression
        """
        if self.prior_sigma <= 0:
            raise InvalidArgument(f"prior_sigma must be positive. Got: {self.prior_sigma}")
        if self.noise_prior <= 0:
            raise InvalidArgument(f"noise_prior must be positive. Got: {self.noise_prior}")

        X = self._as_matrix(X)
        y = np.asarray(y, dtype=np.float64).ravel()
        if len(X) != len(y):
            raise InvalidArgument(
                f"Length mismatch: X ({len(X)}) vs y ({len(y)})"
            )
        if np.any(np.isnan(y)):
            raise InvalidArgument("NaN values found in target variable y")

        self.n_features_in_ = X.shape[1]

        # Standardize for sampler geometry; undone at prediction time
        self.x_mean_ = X.mean(axis=0)
        x_scale = X.std(axis=0)
        self.x_scale_ = np.where(x_scale > 0, x_scale, 1.0)
        self.y_mean_ = float(y.mean())
        y_scale = float(y.std())
        self.y_scale_ = y_scale if y_scale > 0 else 1.0

        Z = (X - self.x_mean_) / self.x_scale_
        t = (y - self.y_mean_) / self.y_scale_

        if self.verbose:
            print(f"\n{'=' * 60}")
            print("BAYESIAN LINEAR REGRESSION: MCMC SAMPLING")
            print(f"{'=' * 60}")
            print(f"Observations: {len(y)}")
            print(f"Features (p): {self.n_features_in_}")
            print(f"Noise model: {'heteroscedastic' if self.heteroscedastic else 'homoscedastic'}")
            print(f"Chains: {self.chains}, draws: {self.draws}, tune: {self.tune}")

        with self._specify_model(Z, t):
            self.trace_ = pm.sample(
                draws=self.draws,
                tune=self.tune,
                chains=self.chains,
                cores=self.cores,
                target_accept=self.target_accept,
                return_inferencedata=True,
                random_seed=self.random_seed,
                progressbar=self.verbose
            )

        self.convergence_ = None

        if self.verbose:
            print(f"\n✓ MCMC sampling completed")
            print(f"  Total samples: {self.chains * self.draws}")

        return self

    def _specify_model(self, Z: np.ndarray, t: np.ndarray) -> pm.Model:
        p = Z.shape[1]
        with pm.Model() as model:
            intercept = pm.Normal('intercept', mu=0.0, sigma=self.prior_sigma)
            beta = pm.Normal('beta', mu=0.0, sigma=self.prior_sigma, shape=p)
            mu = intercept + pm.math.dot(Z, beta)

            if self.heteroscedastic:
                log_sigma_0 = pm.Normal('log_sigma_0', mu=0.0, sigma=1.0)
                gamma = pm.Normal('gamma', mu=0.0, sigma=1.0, shape=p)
                sigma = pm.math.exp(log_sigma_0 + pm.math.dot(Z, gamma))
            else:
                sigma = pm.HalfNormal('sigma', sigma=self.noise_prior)

            pm.Normal('y_obs', mu=mu, sigma=sigma, observed=t)
        return model

    def _as_matrix(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if np.any(np.isnan(X)):
            raise InvalidArgument("NaN values found in features X")
        return X

    def _check_fitted(self):
        if getattr(self, 'trace_', None) is None:
            raise RuntimeError("Model not fitted. Call fit() first.")

    def _posterior(self, name: str) -> np.ndarray:
        """Posterior samples with chains and draws flattened."""
        values = self.trace_.posterior[name].values
        return values.reshape(values.shape[0] * values.shape[1], *values.shape[2:])

    def _standardize(self, X) -> np.ndarray:
        X = self._as_matrix(X)
        if X.shape[1] != self.n_features_in_:
            raise InvalidArgument(
                f"X has {X.shape[1]} features, model was fit with {self.n_features_in_}"
            )
        return (X - self.x_mean_) / self.x_scale_

    def predict(self, X) -> np.ndarray:
        """Posterior mean of the regression function."""
        self._check_fitted()
        Z = self._standardize(X)
        intercept = self._posterior('intercept')
        beta = self._posterior('beta')
        mu = intercept.mean() + Z @ beta.mean(axis=0)
        return self.y_mean_ + self.y_scale_ * mu

    def posterior_predictive(
        self,
        X,
        n_samples: int = 1000
    ) -> np.ndarray:
        """
        Draw from the posterior predictive distribution.

        Sampling is seeded with ``random_seed`` so repeated calls return
        identical draws.

        Returns
        -------
        samples : np.ndarray, shape (n_new, n_samples)
        """
        self._check_fitted()
        Z = self._standardize(X)
        rng = np.random.default_rng(self.random_seed)

        intercept = self._posterior('intercept')
        beta = self._posterior('beta')
        idx = np.arange(len(intercept))
        if n_samples < len(idx):
            idx = rng.choice(len(idx), size=n_samples, replace=False)

        mu = intercept[idx][None, :] + Z @ beta[idx].T  # (n_new, S)

        if self.heteroscedastic:
            log_sigma_0 = self._posterior('log_sigma_0')[idx]
            gamma = self._posterior('gamma')[idx]
            sigma = np.exp(log_sigma_0[None, :] + Z @ gamma.T)
        else:
            sigma = np.broadcast_to(self._posterior('sigma')[idx][None, :], mu.shape)

        draws = mu + sigma * rng.standard_normal(mu.shape)
        return self.y_mean_ + self.y_scale_ * draws

    def predict_quantiles(
        self,
        X,
        quantiles: Sequence[float],
        n_samples: int = 1000
    ) -> Dict[float, np.ndarray]:
        """Posterior predictive quantiles, keyed by level."""
        samples = self.posterior_predictive(X, n_samples=n_samples)
        return {
            level_key(q): np.quantile(samples, q, axis=1)
            for q in quantiles
        }

    def check_convergence(
        self,
        rhat_threshold: float = 1.01,
        ess_threshold: float = 400,
        verbose: bool = True
    ) -> Dict[str, float]:
        """
        Check MCMC convergence using R̂ and ESS diagnostics.

        Parameters
        ----------
        rhat_threshold : float, optional (default=1.01)
        ess_threshold : float, optional (default=400)
        verbose : bool, optional (default=True)
            If True, print convergence summary

        Returns
        -------
        convergence : dict
            'rhat_ok', 'rhat_max', 'ess_ok', 'ess_min', 'all_ok'
        """
        self._check_fitted()

        rhat = az.rhat(self.trace_)
        rhat_max = max(float(np.max(rhat[var].values)) for var in rhat.data_vars)
        rhat_ok = rhat_max < rhat_threshold

        ess = az.ess(self.trace_)
        ess_min = min(float(np.min(ess[var].values)) for var in ess.data_vars)
        ess_ok = ess_min > ess_threshold

        all_ok = rhat_ok and ess_ok

        if verbose:
            print(f"\n{'=' * 60}")
            print("CONVERGENCE DIAGNOSTICS")
            print(f"{'=' * 60}")
            print(f"  Max R̂:   {rhat_max:.4f} ({'✓ PASS' if rhat_ok else '✗ FAIL'})")
            print(f"  Min ESS: {ess_min:.0f} ({'✓ PASS' if ess_ok else '✗ FAIL'})")
            if not all_ok:
                print("  → Increase draws or tune iterations")

        self.convergence_ = {
            'rhat_ok': bool(rhat_ok),
            'rhat_max': rhat_max,
            'ess_ok': bool(ess_ok),
            'ess_min': ess_min,
            'all_ok': bool(all_ok)
        }

        return self.convergence_

    def summary(self):
        """ArviZ summary table (mean, sd, hdi, r_hat, ess) of the posterior."""
        self._check_fitted()
        return az.summary(self.trace_)

    def save_trace(self, filepath, verbose: bool = True) -> None:
        """Save the MCMC trace to NetCDF."""
        self._check_fitted()

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        self.trace_.to_netcdf(filepath)

        if verbose:
            print(f"✓ Trace saved to {filepath}")

    @staticmethod
    def load_trace(filepath, verbose: bool = True) -> az.InferenceData:
        """Load an MCMC trace saved with ``save_trace``."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Trace file not found: {filepath}")

        trace = az.from_netcdf(filepath)

        if verbose:
            print(f"✓ Trace loaded from {filepath}")

        return trace


class PosteriorQuantileModel:
    """Adapter exposing ``predict(X) -> {level: array}`` for a fitted model."""

    def __init__(self, model: BayesianLinearRegression, quantiles: Sequence[float], n_samples: int = 1000):
        self.model = model
        self.quantiles = [level_key(q) for q in quantiles]
        self.n_samples = n_samples

    def predict(self, X) -> Dict[float, np.ndarray]:
        return self.model.predict_quantiles(X, self.quantiles, n_samples=self.n_samples)


class BayesianQuantileFitter:
    """
    Quantile fitter backed by ``BayesianLinearRegression``.

    Keyword arguments are forwarded to the model constructor.
    """

    def __init__(self, n_samples: int = 1000, **params):
        self.n_samples = n_samples
        self.estimator = BayesianLinearRegression(**params)

    def __call__(self, X, y, quantiles: Sequence[float]) -> PosteriorQuantileModel:
        model = clone(self.estimator).fit(X, y)
        return PosteriorQuantileModel(model, quantiles, n_samples=self.n_samples)
