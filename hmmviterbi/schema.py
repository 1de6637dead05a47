from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from hmmviterbi.emission import (
    DiagonalGaussianMixtureEmission,
    DiscreteEmission,
    EmissionModel,
    GaussianEmission,
    GaussianMixtureEmission,
)
from hmmviterbi.model import HiddenMarkovModel


# -------------------------------------------------------------------------------------------------
# Schema definitions
# -------------------------------------------------------------------------------------------------


def required_field(description: str = "", **kwargs: Any) -> Any:
    """Create a required field with description."""
    return Field(..., description=description, **kwargs)


def optional_field(description: str = "", default: Any = None, **kwargs: Any) -> Any:
    """Create an optional field with default value and description."""
    return Field(default, description=description, **kwargs)


def _check_matrix(name: str, rows: list[list[float]], n_cols: int | None = None) -> int:
    if not rows:
        raise ValueError(f"{name} must not be empty")
    width = len(rows[0])
    if any(len(row) != width for row in rows):
        raise ValueError(f"{name} rows must all have the same length")
    if n_cols is not None and width != n_cols:
        raise ValueError(f"{name} rows must have length {n_cols}, got {width}")
    return width


# fmt: off

class DiscreteEmissionSpec(BaseModel):
    type:          Literal["discrete"] = "discrete"
    probabilities: list[list[float]]   = required_field("Per-state symbol probabilities, shape (N, K)")

    @field_validator('probabilities', mode='after')
    def validate_probabilities(cls, v):
        _check_matrix("Discrete emission probabilities", v)
        return v

    @property
    def n_states(self) -> int:
        return len(self.probabilities)

    def to_emission(self) -> EmissionModel:
        return DiscreteEmission(self.probabilities)


class GaussianEmissionSpec(BaseModel):
    type:        Literal["gaussian"]     = "gaussian"
    means:       list[list[float]]       = required_field("Per-state means, shape (N, D)")
    covariances: list[list[list[float]]] = required_field("Per-state full covariances, shape (N, D, D)")

    @field_validator('means', mode='after')
    def validate_means(cls, v):
        _check_matrix("Gaussian means", v)
        return v

    @field_validator('covariances', mode='after')
    def validate_covariances(cls, v, info: ValidationInfo):
        if (means := info.data.get('means')) is None:
            return v
        if len(v) != len(means):
            raise ValueError(f"Expected {len(means)} covariance matrices, got {len(v)}")
        D = len(means[0])
        for state, cov in enumerate(v):
            if len(cov) != D:
                raise ValueError(f"Covariance for state {state} must be {D}x{D}")
            _check_matrix(f"Covariance for state {state}", cov, n_cols=D)
        return v

    @property
    def n_states(self) -> int:
        return len(self.means)

    def to_emission(self) -> EmissionModel:
        return GaussianEmission(self.means, self.covariances)


class MixtureStateSpec(BaseModel):
    weights:     list[float]                    = required_field("Mixture weights, shape (M,)")
    means:       list[list[float]]              = required_field("Component means, shape (M, D)")
    covariances: list[list[list[float]]] | None = optional_field("Full component covariances, shape (M, D, D)")
    variances:   list[list[float]] | None       = optional_field("Diagonal component variances, shape (M, D)")

    @field_validator('means', mode='after')
    def validate_means(cls, v, info: ValidationInfo):
        if (weights := info.data.get('weights')) is not None and len(v) != len(weights):
            raise ValueError(f"Expected {len(weights)} component means, got {len(v)}")
        _check_matrix("Component means", v)
        return v


class GaussianMixtureEmissionSpec(BaseModel):
    type:   Literal["gmm"]          = "gmm"
    states: list[MixtureStateSpec] = required_field("One full-covariance mixture per state", min_length=1)

    @field_validator('states', mode='after')
    def validate_states(cls, v):
        for state, spec in enumerate(v):
            if spec.covariances is None:
                raise ValueError(f"Mixture for state {state} requires 'covariances'")
        return v

    @property
    def n_states(self) -> int:
        return len(self.states)

    def to_emission(self) -> EmissionModel:
        return GaussianMixtureEmission(
            weights=[s.weights for s in self.states],
            means=[s.means for s in self.states],
            covariances=[s.covariances for s in self.states],
        )


class DiagonalGaussianMixtureEmissionSpec(BaseModel):
    type:   Literal["diag_gmm"]     = "diag_gmm"
    states: list[MixtureStateSpec] = required_field("One diagonal-covariance mixture per state", min_length=1)

    @field_validator('states', mode='after')
    def validate_states(cls, v):
        for state, spec in enumerate(v):
            if spec.variances is None:
                raise ValueError(f"Mixture for state {state} requires 'variances'")
        return v

    @property
    def n_states(self) -> int:
        return len(self.states)

    def to_emission(self) -> EmissionModel:
        return DiagonalGaussianMixtureEmission(
            weights=[s.weights for s in self.states],
            means=[s.means for s in self.states],
            variances=[s.variances for s in self.states],
        )


EmissionSpec = Annotated[
    Union[DiscreteEmissionSpec, GaussianEmissionSpec, GaussianMixtureEmissionSpec, DiagonalGaussianMixtureEmissionSpec],
    Field(discriminator="type"),
]


class HmmModelFile(BaseModel):
    """Serialized form of a trained HMM with probability-space parameters."""

    initial_probs:    list[float]       = required_field("Initial state probabilities, shape (N,)", min_length=1)
    transition_probs: list[list[float]] = required_field("Transition probabilities P(j | i), shape (N, N)")
    emission:         EmissionSpec      = required_field("Emission distribution family and parameters")

    @field_validator('transition_probs', mode='after')
    def transition_matches_initial(cls, v, info: ValidationInfo):
        if (initial := info.data.get('initial_probs')) is None:
            return v
        N = len(initial)
        if len(v) != N:
            raise ValueError(f"Transition matrix must have {N} rows to match initial probabilities, got {len(v)}")
        _check_matrix("Transition matrix", v, n_cols=N)
        return v

    @field_validator('emission', mode='after')
    def emission_matches_initial(cls, v, info: ValidationInfo):
        if (initial := info.data.get('initial_probs')) is not None and v.n_states != len(initial):
            raise ValueError(f"Emission model has {v.n_states} states but initial probabilities have {len(initial)}")
        return v

    def to_model(self) -> HiddenMarkovModel:
        return HiddenMarkovModel.from_probabilities(
            initial_probs=self.initial_probs,
            transition_matrix=self.transition_probs,
            emission=self.emission.to_emission(),
        )

# fmt: on
