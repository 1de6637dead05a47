import itertools
import logging
import numpy as np
import numpy.typing as npt
from dataclasses import dataclass
from numba import njit
from hmmviterbi.errors import DimensionMismatchError, EmptyInputError, InvalidObservationError
from hmmviterbi.model import HiddenMarkovModel
from hmmviterbi.tracing import DecodeTracer

logger = logging.getLogger(__name__)

BRUTE_FORCE_MAX_PATHS = 100_000


@dataclass(frozen=True, eq=False)
class ViterbiResult:
    """Most likely state path and its joint log-likelihood."""

    path: npt.NDArray[np.int64]
    log_likelihood: float


def validate_observations(observations: npt.ArrayLike, dimensionality: int) -> np.ndarray:
    """Validate an observation sequence against the model dimensionality.

    Observations are time-major: a 2D array of shape (T, D) holds one observation
    per row. A 1D array is read as T scalar observations and is only accepted
    when D is 1. No other layout is accepted, and in particular a (D, T) array is
    never transposed on the caller's behalf.

    Parameters
    ----------
    observations : npt.ArrayLike
        Observation sequence
    dimensionality : int
        Observation dimensionality D of the model

    Returns
    -------
    np.ndarray
        Float array of shape (T, D)

    Raises
    ------
    EmptyInputError
        If the sequence has no observations
    DimensionMismatchError
        If the array layout or observation dimensionality is not (T, D)
    InvalidObservationError
        If any observation value is NaN or infinite
    """
    observations = np.asarray(observations, dtype=float)

    if observations.ndim >= 1 and observations.shape[0] == 0:
        raise EmptyInputError("Observation sequence is empty; at least one observation is required")

    if observations.ndim == 1:
        if dimensionality != 1:
            raise DimensionMismatchError(
                dimensionality, 1,
                f"1D observation sequences hold scalar observations, which does not match HMM emission "
                f"dimensionality ({dimensionality}); supply a (T, D) array instead",
            )
        observations = observations.reshape(-1, 1)
    elif observations.ndim != 2:
        raise DimensionMismatchError(
            dimensionality, observations.shape,
            f"Observations must be a time-major (T, D) array, got shape {observations.shape}",
        )

    if observations.shape[1] != dimensionality:
        raise DimensionMismatchError(dimensionality, observations.shape[1])

    if not np.all(np.isfinite(observations)):
        bad = np.argwhere(~np.isfinite(observations))[0]
        raise InvalidObservationError(
            f"Observations must be finite; found {observations[tuple(bad)]} at time step {bad[0]}, dimension {bad[1]}"
        )
    return observations


def _prepare_log_emission(hmm: HiddenMarkovModel, observations: np.ndarray) -> np.ndarray:
    log_emission = np.asarray(hmm.emission.log_density_matrix(observations), dtype=float)
    nan_mask = np.isnan(log_emission)
    if np.any(nan_mask):
        logger.warning(f"Emission model returned NaN for {int(nan_mask.sum())} (time step, state) pairs; treating as zero density")
        log_emission = np.where(nan_mask, -np.inf, log_emission)
    return log_emission


def viterbi(
    hmm: HiddenMarkovModel,
    observations: npt.ArrayLike,
    strict: bool = False,
    tracer: DecodeTracer | None = None,
) -> ViterbiResult:
    """Find the most likely state sequence and its joint log-likelihood.

    Parameters
    ----------
    hmm : HiddenMarkovModel
        Trained model; trusted as-is unless `strict` is set
    observations : npt.ArrayLike
        Time-major observation sequence of shape (T, D), or (T,) when D is 1
    strict : bool, optional
        Validate that the initial and transition distributions are stochastic
        before decoding; default is False
    tracer : DecodeTracer, optional
        Receives the trellis at initialization, every step and termination

    Returns
    -------
    ViterbiResult
        Path of length T with state indices in [0, N) and its log-likelihood
    """
    if strict:
        hmm.validate()
    observations = validate_observations(observations, hmm.dimensionality)

    T, N = observations.shape[0], hmm.n_states
    logger.info(f"Starting Viterbi decode: T={T:,} observations, N={N} states, D={hmm.dimensionality}")

    log_emission = _prepare_log_emission(hmm, observations)
    path, delta, backpointer = _viterbi_decode(
        log_emission,
        hmm.log_transition.copy(),
        hmm.log_initial.copy(),
    )
    log_likelihood = float(delta[T - 1, path[T - 1]])

    if tracer is not None:
        tracer.on_initialize(delta[0])
        for t in range(1, T):
            tracer.on_step(t, delta[t], backpointer[t])
        tracer.on_terminate(int(path[T - 1]), log_likelihood)

    logger.info(f"Viterbi decode completed (log-likelihood={log_likelihood:.6g})")
    return ViterbiResult(path=path, log_likelihood=log_likelihood)


def viterbi_decode(
    hmm: HiddenMarkovModel,
    observations: npt.ArrayLike,
    strict: bool = False,
    tracer: DecodeTracer | None = None,
) -> npt.NDArray[np.int64]:
    """Find most likely sequence of states using the Viterbi algorithm.

    See `viterbi` for parameters.

    Returns
    -------
    npt.NDArray[np.int64]
        Vector of length T with most likely state indices at each position
    """
    return viterbi(hmm, observations, strict=strict, tracer=tracer).path


@njit
def _viterbi_decode(
    log_emission: np.ndarray,
    log_transition: np.ndarray,
    log_initial: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Numba-accelerated Viterbi recursion and backtrace.

    Ties are resolved toward the lowest predecessor and final state index.

    Parameters
    ----------
    log_emission : np.ndarray
        Log emission densities of shape (T, N)
    log_transition : np.ndarray
        Log transition probabilities of shape (N, N)
    log_initial : np.ndarray
        Log initial state probabilities of shape (N,)

    Returns
    -------
    tuple[np.ndarray, np.ndarray, np.ndarray]
        Path of length T, scores (T, N) and backpointers (T, N)
    """
    T, N = log_emission.shape

    delta = np.full((T, N), -np.inf)
    backpointer = np.zeros((T, N), dtype=np.int64)

    # Base case
    for j in range(N):
        delta[0, j] = log_initial[j] + log_emission[0, j]

    # Recursive case; each state only reads the previous column
    for t in range(1, T):
        for j in range(N):
            best_score = -np.inf
            best_prev = 0
            for i in range(N):
                score = delta[t - 1, i] + log_transition[i, j]
                if score > best_score:
                    best_score = score
                    best_prev = i
            backpointer[t, j] = best_prev
            delta[t, j] = best_score + log_emission[t, j]

    # Find best final state
    best_final_score = -np.inf
    best_final_state = 0
    for j in range(N):
        if delta[T - 1, j] > best_final_score:
            best_final_score = delta[T - 1, j]
            best_final_state = j

    # Backtrack to find optimal path
    path = np.zeros(T, dtype=np.int64)
    path[T - 1] = best_final_state
    for t in range(T - 2, -1, -1):
        path[t] = backpointer[t + 1, path[t + 1]]

    return path, delta, backpointer


def _score_path(
    path: np.ndarray,
    log_emission: np.ndarray,
    log_transition: np.ndarray,
    log_initial: np.ndarray
) -> float:
    """Joint log-probability of a state path given precomputed log emissions."""
    score = log_initial[path[0]] + log_emission[np.arange(len(path)), path].sum()
    if len(path) > 1:
        score += log_transition[path[:-1], path[1:]].sum()
    return float(score)


def path_log_likelihood(
    hmm: HiddenMarkovModel,
    observations: npt.ArrayLike,
    path: npt.ArrayLike
) -> float:
    """Compute the joint log-probability of observations and a given state path.

    Returns
    -------
    float
        log P(path[0]) + sum log P(path[t] | path[t-1]) + sum log p(observations[t] | path[t])
    """
    observations = validate_observations(observations, hmm.dimensionality)
    path = np.asarray(path)
    if path.size and not np.issubdtype(path.dtype, np.integer):
        if not np.issubdtype(path.dtype, np.number) or not np.all(path == np.round(path)):
            raise ValueError(f"Path must contain integer state indices, got {path.tolist()}")
    path = path.astype(np.int64)
    if path.shape != (observations.shape[0],):
        raise ValueError(f"Path shape {path.shape} doesn't match number of observations {observations.shape[0]}")
    if np.any(path < 0) or np.any(path >= hmm.n_states):
        raise ValueError(f"Path contains state indices outside [0, {hmm.n_states})")
    log_emission = _prepare_log_emission(hmm, observations)
    return _score_path(path, log_emission, hmm.log_transition, hmm.log_initial)


def brute_force_decode(
    hmm: HiddenMarkovModel,
    observations: npt.ArrayLike
) -> npt.NDArray[np.int64]:
    """Find most likely sequence of states using brute force computation.

    This function examines all possible state sequences to find the most likely path.
    Only suitable for small examples and unit testing due to exponential complexity.
    """
    observations = validate_observations(observations, hmm.dimensionality)
    T, N = observations.shape[0], hmm.n_states

    # Safety check to prevent runaway enumeration
    if N ** T > BRUTE_FORCE_MAX_PATHS:
        raise ValueError(
            f"Brute force method is only suitable for small problems. "
            f"Got T={T}, N={N} ({N ** T:,} paths). "
            f"Use viterbi_decode for larger problems."
        )

    log_emission = _prepare_log_emission(hmm, observations)

    best_score = -np.inf
    best_path = np.zeros(T, dtype=np.int64)
    for path in itertools.product(range(N), repeat=T):
        path_array = np.array(path, dtype=np.int64)
        score = _score_path(path_array, log_emission, hmm.log_transition, hmm.log_initial)
        if score > best_score:
            best_score = score
            best_path = path_array

    return best_path
