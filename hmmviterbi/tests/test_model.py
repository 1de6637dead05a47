import numpy as np
import pytest
from hmmviterbi.emission import DiagonalGaussianMixtureEmission, DiscreteEmission, GaussianMixtureEmission
from hmmviterbi.errors import InvalidModelError
from hmmviterbi.logspace import is_log_stochastic, log_row_sums, safe_log_probabilities
from hmmviterbi.model import HiddenMarkovModel


@pytest.fixture
def emission():
    return DiscreteEmission([[0.9, 0.1], [0.2, 0.8]])


def test_safe_log_probabilities_zero_handling():
    np.testing.assert_array_equal(safe_log_probabilities([0.0, 1.0]), [-np.inf, 0.0])
    np.testing.assert_allclose(safe_log_probabilities([0.0, 1.0], epsilon=1e-10), np.log([1e-10, 1.0 + 1e-10]))
    with pytest.raises(ValueError, match="epsilon must be >= 0"):
        safe_log_probabilities([0.5], epsilon=-1)


def test_log_row_sums():
    log_probs = np.log([[0.25, 0.75], [0.5, 0.5]])
    np.testing.assert_allclose(log_row_sums(log_probs), [0.0, 0.0], atol=1e-12)
    assert log_row_sums([-np.inf, -np.inf]) == -np.inf


def test_is_log_stochastic():
    log_probs = safe_log_probabilities([[1.0, 0.0], [0.5, 0.4]])
    np.testing.assert_array_equal(is_log_stochastic(log_probs), [True, False])


def test_from_probabilities(emission):
    hmm = HiddenMarkovModel.from_probabilities([1.0, 0.0], [[0.7, 0.3], [0.0, 1.0]], emission)
    assert hmm.n_states == 2
    assert hmm.dimensionality == 1
    np.testing.assert_array_equal(hmm.log_initial, [0.0, -np.inf])
    assert hmm.log_transition[1, 0] == -np.inf
    np.testing.assert_allclose(hmm.transition_matrix, [[0.7, 0.3], [0.0, 1.0]])
    np.testing.assert_allclose(hmm.initial_probs, [1.0, 0.0])
    hmm.validate()


def test_parameters_are_read_only(emission):
    transition = np.array([[0.7, 0.3], [0.4, 0.6]])
    hmm = HiddenMarkovModel.from_probabilities([0.5, 0.5], transition, emission)
    with pytest.raises(ValueError):
        hmm.log_transition[0, 0] = 0.0
    transition[0, 0] = 0.0
    assert hmm.transition_matrix[0, 0] == pytest.approx(0.7)


@pytest.mark.parametrize("initial, transition, match", [
    ([], [[1.0]], "at least one state"),
    ([0.5, 0.5], [[1.0]], "Transition matrix shape"),
    ([1.0], [[1.0]], "Emission model has 2 states"),
])
def test_construction_errors(emission, initial, transition, match):
    with pytest.raises(InvalidModelError, match=match):
        HiddenMarkovModel.from_probabilities(initial, transition, emission)


@pytest.mark.parametrize("initial, transition, match", [
    ([0.5, 0.4], [[0.7, 0.3], [0.4, 0.6]], "Initial probabilities must sum to 1"),
    ([0.5, 0.5], [[0.7, 0.3], [0.4, 0.7]], "row 1 sums to 1.1"),
    ([0.5, 0.5], [[0.0, 0.0], [0.4, 0.6]], "row 0 sums to 0"),
    ([0.5, 0.5], [[1.5, -0.5], [0.4, 0.6]], "between 0 and 1"),
])
def test_validate_rejects_malformed_distributions(emission, initial, transition, match):
    hmm = HiddenMarkovModel.from_probabilities(initial, transition, emission)
    with pytest.raises(InvalidModelError, match=match):
        hmm.validate()


def test_validate_rejects_nan(emission):
    hmm = HiddenMarkovModel(
        log_initial=np.log([0.5, 0.5]),
        log_transition=np.array([[np.nan, 0.0], [np.log(0.5), np.log(0.5)]]),
        emission=emission,
    )
    with pytest.raises(InvalidModelError, match="NaN"):
        hmm.validate()


@pytest.mark.parametrize("emission_cls, params", [
    (GaussianMixtureEmission, {"means": [[[0.0], [1.0]]], "covariances": [[[[1.0]], [[1.0]]]]}),
    (DiagonalGaussianMixtureEmission, {"means": [[[0.0], [1.0]]], "variances": [[[1.0], [1.0]]]}),
])
def test_validate_rejects_unnormalized_mixture_weights(emission_cls, params):
    hmm = HiddenMarkovModel.from_probabilities([1.0], [[1.0]], emission_cls(weights=[[0.8, 0.7]], **params))
    with pytest.raises(InvalidModelError, match="Mixture weights for state 0 must sum to 1, got 1.5"):
        hmm.validate()

    normalized = HiddenMarkovModel.from_probabilities([1.0], [[1.0]], emission_cls(weights=[[0.3, 0.7]], **params))
    normalized.validate()
