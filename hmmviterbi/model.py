import logging
import numpy as np
import numpy.typing as npt
from dataclasses import dataclass
from hmmviterbi.emission import DiagonalGaussianMixtureEmission, EmissionModel, GaussianMixtureEmission
from hmmviterbi.errors import InvalidModelError
from hmmviterbi.logspace import safe_log_probabilities, log_row_sums, is_log_stochastic

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class HiddenMarkovModel:
    """Trained HMM parameters in log space.

    Parameters
    ----------
    log_initial : np.ndarray
        Vector of length N with log initial state probabilities
    log_transition : np.ndarray
        Matrix of shape (N, N) where element (i, j) is log P(state j | state i);
        -inf marks a forbidden transition
    emission : EmissionModel
        Emission densities for all N states
    """

    log_initial: np.ndarray
    log_transition: np.ndarray
    emission: EmissionModel

    def __post_init__(self):
        # Freeze copies so the model stays read-only for decoders sharing it
        log_initial = np.array(self.log_initial, dtype=float)
        log_transition = np.array(self.log_transition, dtype=float)
        log_initial.flags.writeable = False
        log_transition.flags.writeable = False
        object.__setattr__(self, "log_initial", log_initial)
        object.__setattr__(self, "log_transition", log_transition)

        if log_initial.ndim != 1 or len(log_initial) < 1:
            raise InvalidModelError(f"HMM must have at least one state; initial probabilities have shape {log_initial.shape}")
        N = self.n_states
        if log_transition.shape != (N, N):
            raise InvalidModelError(f"Transition matrix shape {log_transition.shape} doesn't match number of states {N}")
        if self.emission.n_states != N:
            raise InvalidModelError(f"Emission model has {self.emission.n_states} states but HMM has {N}")

    @classmethod
    def from_probabilities(
        cls,
        initial_probs: npt.ArrayLike,
        transition_matrix: npt.ArrayLike,
        emission: EmissionModel,
        epsilon: float = 0.0,
    ) -> "HiddenMarkovModel":
        """Build a model from probability-space parameters.

        Parameters
        ----------
        initial_probs : npt.ArrayLike
            Vector of length N with initial state probabilities
        transition_matrix : npt.ArrayLike
            Matrix of shape (N, N) where element (i, j) represents P(state j | state i)
        emission : EmissionModel
            Emission densities for all N states
        epsilon : float, optional
            Epsilon added to probabilities before taking logs; with the default
            of 0, zero probabilities become -inf
        """
        return cls(
            log_initial=safe_log_probabilities(initial_probs, epsilon),
            log_transition=safe_log_probabilities(transition_matrix, epsilon),
            emission=emission,
        )

    @property
    def n_states(self) -> int:
        return len(self.log_initial)

    @property
    def dimensionality(self) -> int:
        return self.emission.dimensionality

    @property
    def initial_probs(self) -> np.ndarray:
        return np.exp(self.log_initial)

    @property
    def transition_matrix(self) -> np.ndarray:
        return np.exp(self.log_transition)

    def validate(self, atol: float = 1e-6) -> None:
        """Check that initial, transition and mixture-weight parameters are proper distributions.

        Raises
        ------
        InvalidModelError
            If any parameter is NaN or positive in log space, or if the initial
            vector, a transition row or a state's mixture weights do not sum to 1
        """
        for name, values in [("Initial", self.log_initial), ("Transition", self.log_transition)]:
            if np.any(np.isnan(values)):
                raise InvalidModelError(f"{name} log probabilities contain NaN")
            if np.any(values > 0):
                raise InvalidModelError(f"{name} probabilities must be between 0 and 1")

        if not is_log_stochastic(self.log_initial, atol=atol):
            total = float(np.exp(log_row_sums(self.log_initial)))
            raise InvalidModelError(f"Initial probabilities must sum to 1, got {total:.6g}")

        row_ok = is_log_stochastic(self.log_transition, atol=atol)
        if not np.all(row_ok):
            row = int(np.flatnonzero(~row_ok)[0])
            total = float(np.exp(log_row_sums(self.log_transition[row])))
            raise InvalidModelError(
                f"Transition matrix rows must sum to 1; row {row} sums to {total:.6g} "
                f"(probabilities: {np.round(self.transition_matrix[row], 6).tolist()})"
            )

        if isinstance(self.emission, (GaussianMixtureEmission, DiagonalGaussianMixtureEmission)):
            for state, weights in enumerate(self.emission.weights):
                if not np.isclose(weights.sum(), 1.0, rtol=0.0, atol=atol):
                    raise InvalidModelError(f"Mixture weights for state {state} must sum to 1, got {weights.sum():.6g}")
        logger.debug(f"Validated HMM with N={self.n_states} states, D={self.dimensionality}")
