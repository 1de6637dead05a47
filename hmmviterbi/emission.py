"""Per-state emission models for hidden Markov models.

Each model evaluates ``log p(x | state)`` for observation vectors of a fixed
dimensionality D. The decoder is written against :class:`EmissionModel` only,
so any distribution family can be plugged in by implementing
``_state_log_densities``.

All models are immutable once constructed and never raise for well-formed,
finite observations; zero-density observations yield ``-inf``.
"""

import numpy as np
import numpy.typing as npt
from abc import ABC, abstractmethod
from scipy.special import logsumexp
from scipy.stats import multivariate_normal, norm
from hmmviterbi.errors import DimensionMismatchError
from hmmviterbi.logspace import safe_log_probabilities


def _check_mixture_weights(state: int, weights: np.ndarray) -> None:
    if np.any(np.isnan(weights)) or np.any(weights < 0):
        raise ValueError(f"Mixture weights for state {state} must be non-negative, got {weights.tolist()}")


class EmissionModel(ABC):
    """Abstract base class for per-state emission densities."""

    @property
    @abstractmethod
    def n_states(self) -> int:
        """Number of hidden states N."""
        pass

    @property
    @abstractmethod
    def dimensionality(self) -> int:
        """Observation dimensionality D shared by all states."""
        pass

    @abstractmethod
    def _state_log_densities(self, state: int, observations: np.ndarray) -> np.ndarray:
        """Log densities of a (T, D) observation array under one state as a (T,) array."""
        pass

    def log_density(self, state: int, observation: npt.ArrayLike) -> float:
        """Log density of a single observation vector under the given state.

        Parameters
        ----------
        state : int
            State index in [0, N)
        observation : npt.ArrayLike
            Observation vector of length D (a scalar is accepted when D is 1)

        Returns
        -------
        float
            log p(observation | state), possibly -inf
        """
        if not 0 <= state < self.n_states:
            raise IndexError(f"State {state} out of range for model with {self.n_states} states")
        x = np.asarray(observation, dtype=float)
        if x.size != self.dimensionality or x.ndim > 1:
            raise DimensionMismatchError(self.dimensionality, x.shape)
        return float(self._state_log_densities(state, x.reshape(1, self.dimensionality))[0])

    def log_density_matrix(self, observations: npt.ArrayLike) -> np.ndarray:
        """Evaluate every state's log density on every observation exactly once.

        Parameters
        ----------
        observations : npt.ArrayLike
            Time-major array of shape (T, D)

        Returns
        -------
        np.ndarray
            Matrix of shape (T, N) where element (t, s) is log p(observations[t] | s)
        """
        observations = np.asarray(observations, dtype=float)
        if observations.ndim != 2 or observations.shape[1] != self.dimensionality:
            raise DimensionMismatchError(self.dimensionality, observations.shape)
        return np.column_stack([
            self._state_log_densities(state, observations) for state in range(self.n_states)
        ]).reshape(observations.shape[0], self.n_states)


class DiscreteEmission(EmissionModel):
    """Categorical emissions over symbols 0..K-1 with one-dimensional observations.

    Parameters
    ----------
    probabilities : npt.ArrayLike
        Matrix of shape (N, K) where element (s, k) is P(symbol k | state s)
    """

    def __init__(self, probabilities: npt.ArrayLike):
        probabilities = np.asarray(probabilities, dtype=float)
        if probabilities.ndim != 2:
            raise ValueError(f"Discrete emission probabilities must be 2D (N, K), got shape {probabilities.shape}")
        self.probabilities = probabilities
        self.log_probabilities = safe_log_probabilities(probabilities)

    @property
    def n_states(self) -> int:
        return self.probabilities.shape[0]

    @property
    def dimensionality(self) -> int:
        return 1

    @property
    def n_symbols(self) -> int:
        return self.probabilities.shape[1]

    def _state_log_densities(self, state: int, observations: np.ndarray) -> np.ndarray:
        symbols = observations[:, 0]
        valid = np.isfinite(symbols) & (symbols == np.round(symbols)) & (symbols >= 0) & (symbols < self.n_symbols)
        result = np.full(len(symbols), -np.inf)
        result[valid] = self.log_probabilities[state, symbols[valid].astype(np.int64)]
        return result


class GaussianEmission(EmissionModel):
    """One multivariate normal distribution per state.

    Parameters
    ----------
    means : npt.ArrayLike
        Array of shape (N, D) with the mean of each state
    covariances : npt.ArrayLike
        Array of shape (N, D, D) with the full covariance of each state
    """

    def __init__(self, means: npt.ArrayLike, covariances: npt.ArrayLike):
        means = np.asarray(means, dtype=float)
        covariances = np.asarray(covariances, dtype=float)
        if means.ndim != 2:
            raise ValueError(f"Gaussian means must be 2D (N, D), got shape {means.shape}")
        N, D = means.shape
        if covariances.shape != (N, D, D):
            raise ValueError(f"Gaussian covariances shape {covariances.shape} doesn't match expected {(N, D, D)}")
        self.means = means
        self.covariances = covariances
        self._distributions = [
            multivariate_normal(mean=means[s], cov=covariances[s]) for s in range(N)
        ]

    @property
    def n_states(self) -> int:
        return self.means.shape[0]

    @property
    def dimensionality(self) -> int:
        return self.means.shape[1]

    def _state_log_densities(self, state: int, observations: np.ndarray) -> np.ndarray:
        # scipy squeezes single observations to a scalar
        return np.atleast_1d(self._distributions[state].logpdf(observations))


class GaussianMixtureEmission(EmissionModel):
    """Mixture of full-covariance normals per state.

    States may use different numbers of components.

    Parameters
    ----------
    weights : list[npt.ArrayLike]
        Per-state mixture weights, each of shape (M_s,) and summing to 1
    means : list[npt.ArrayLike]
        Per-state component means, each of shape (M_s, D)
    covariances : list[npt.ArrayLike]
        Per-state component covariances, each of shape (M_s, D, D)
    """

    def __init__(self, weights: list[npt.ArrayLike], means: list[npt.ArrayLike], covariances: list[npt.ArrayLike]):
        if not (len(weights) == len(means) == len(covariances)) or len(weights) == 0:
            raise ValueError("Mixture weights, means and covariances must be non-empty and have one entry per state")
        self.weights = [np.asarray(w, dtype=float) for w in weights]
        self.means = [np.asarray(m, dtype=float) for m in means]
        self.covariances = [np.asarray(c, dtype=float) for c in covariances]
        D = self.means[0].shape[-1]
        for state, (w, m, c) in enumerate(zip(self.weights, self.means, self.covariances)):
            M = len(w)
            if m.shape != (M, D) or c.shape != (M, D, D):
                raise ValueError(
                    f"Mixture for state {state} has inconsistent shapes: "
                    f"weights {w.shape}, means {m.shape}, covariances {c.shape} (D={D})"
                )
            _check_mixture_weights(state, w)
        self._dimensionality = D
        self._log_weights = [safe_log_probabilities(w) for w in self.weights]
        self._components = [
            [multivariate_normal(mean=m[k], cov=c[k]) for k in range(len(m))]
            for m, c in zip(self.means, self.covariances)
        ]

    @property
    def n_states(self) -> int:
        return len(self.weights)

    @property
    def dimensionality(self) -> int:
        return self._dimensionality

    def _state_log_densities(self, state: int, observations: np.ndarray) -> np.ndarray:
        component_scores = np.column_stack([
            np.atleast_1d(component.logpdf(observations)) for component in self._components[state]
        ])
        with np.errstate(divide="ignore", invalid="ignore"):
            return logsumexp(component_scores + self._log_weights[state], axis=1)


class DiagonalGaussianMixtureEmission(EmissionModel):
    """Mixture of diagonal-covariance normals per state.

    Parameters
    ----------
    weights : list[npt.ArrayLike]
        Per-state mixture weights, each of shape (M_s,)
    means : list[npt.ArrayLike]
        Per-state component means, each of shape (M_s, D)
    variances : list[npt.ArrayLike]
        Per-state component variances (covariance diagonals), each of shape (M_s, D)
    """

    def __init__(self, weights: list[npt.ArrayLike], means: list[npt.ArrayLike], variances: list[npt.ArrayLike]):
        if not (len(weights) == len(means) == len(variances)) or len(weights) == 0:
            raise ValueError("Mixture weights, means and variances must be non-empty and have one entry per state")
        self.weights = [np.asarray(w, dtype=float) for w in weights]
        self.means = [np.asarray(m, dtype=float) for m in means]
        self.variances = [np.asarray(v, dtype=float) for v in variances]
        D = self.means[0].shape[-1]
        for state, (w, m, v) in enumerate(zip(self.weights, self.means, self.variances)):
            if m.shape != (len(w), D) or v.shape != (len(w), D):
                raise ValueError(
                    f"Mixture for state {state} has inconsistent shapes: "
                    f"weights {w.shape}, means {m.shape}, variances {v.shape} (D={D})"
                )
            if np.any(v <= 0):
                raise ValueError(f"Variances for state {state} must be strictly positive")
            _check_mixture_weights(state, w)
        self._dimensionality = D
        self._log_weights = [safe_log_probabilities(w) for w in self.weights]

    @property
    def n_states(self) -> int:
        return len(self.weights)

    @property
    def dimensionality(self) -> int:
        return self._dimensionality

    def _state_log_densities(self, state: int, observations: np.ndarray) -> np.ndarray:
        # (T, 1, D) against (M, D) -> (T, M)
        component_scores = norm.logpdf(
            observations[:, None, :],
            loc=self.means[state][None, :, :],
            scale=np.sqrt(self.variances[state])[None, :, :],
        ).sum(axis=-1)
        with np.errstate(divide="ignore", invalid="ignore"):
            return logsumexp(component_scores + self._log_weights[state], axis=1)
