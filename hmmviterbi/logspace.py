import numpy as np
import numpy.typing as npt
from scipy.special import logsumexp


def safe_log_probabilities(probs: npt.ArrayLike, epsilon: float = 0.0) -> np.ndarray:
    """Take the elementwise log of a probability array without divide-by-zero warnings.

    Parameters
    ----------
    probs : npt.ArrayLike
        Values in [0, 1] of any shape
    epsilon : float
        Smoothing constant added to every entry before the log. The default of 0
        keeps impossible events impossible: their log is exactly -inf.

    Returns
    -------
    np.ndarray
        Array of the same shape as `probs`
    """
    if epsilon < 0:
        raise ValueError(f"epsilon must be >= 0, got {epsilon}")
    probs = np.asarray(probs, dtype=float)

    if epsilon == 0:
        # Set zero probabilities to -inf (forbidden)
        log_probs = np.full_like(probs, -np.inf)
        valid_mask = probs > 0
        if np.any(valid_mask):
            log_probs[valid_mask] = np.log(probs[valid_mask])
        return log_probs
    else:
        return np.log(probs + epsilon)


def log_row_sums(log_probs: npt.ArrayLike) -> np.ndarray:
    """Sum probabilities along the last axis in log space.

    Rows made entirely of -inf sum to -inf without warnings.
    """
    log_probs = np.asarray(log_probs, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return logsumexp(log_probs, axis=-1)


def is_log_stochastic(log_probs: npt.ArrayLike, atol: float = 1e-6) -> np.ndarray:
    """Check which rows of a log-probability array sum to 1 in probability space.

    Returns
    -------
    np.ndarray
        Boolean array with one entry per row (a scalar for 1-D input)
    """
    return np.isclose(np.exp(log_row_sums(log_probs)), 1.0, rtol=0.0, atol=atol)
