import json
import numpy as np
import pytest
from pydantic import ValidationError
from hmmviterbi.emission import (
    DiagonalGaussianMixtureEmission,
    DiscreteEmission,
    GaussianEmission,
    GaussianMixtureEmission,
)
from hmmviterbi.schema import HmmModelFile
from hmmviterbi.storage import (
    load_model,
    load_model_file,
    load_observations,
    save_model,
    save_states,
)

TWO_STATE_GAUSSIAN = {
    "initial_probs": [0.6, 0.4],
    "transition_probs": [[0.7, 0.3], [0.4, 0.6]],
    "emission": {"type": "gaussian", "means": [[0.0], [3.0]], "covariances": [[[1.0]], [[1.0]]]},
}


@pytest.fixture
def model_path(tmp_path):
    path = tmp_path / "model.json"
    path.write_text(json.dumps(TWO_STATE_GAUSSIAN))
    return path


@pytest.mark.parametrize("emission, expected_type", [
    ({"type": "discrete", "probabilities": [[0.9, 0.1], [0.2, 0.8]]}, DiscreteEmission),
    ({"type": "gaussian", "means": [[0.0], [3.0]], "covariances": [[[1.0]], [[1.0]]]}, GaussianEmission),
    (
        {"type": "gmm", "states": [
            {"weights": [1.0], "means": [[0.0]], "covariances": [[[1.0]]]},
            {"weights": [0.5, 0.5], "means": [[2.0], [4.0]], "covariances": [[[1.0]], [[1.0]]]},
        ]},
        GaussianMixtureEmission,
    ),
    (
        {"type": "diag_gmm", "states": [
            {"weights": [1.0], "means": [[0.0]], "variances": [[1.0]]},
            {"weights": [0.5, 0.5], "means": [[2.0], [4.0]], "variances": [[1.0], [2.0]]},
        ]},
        DiagonalGaussianMixtureEmission,
    ),
])
def test_model_file_emission_types(emission, expected_type):
    model_file = HmmModelFile.model_validate({**TWO_STATE_GAUSSIAN, "emission": emission})
    model = model_file.to_model()
    assert isinstance(model.emission, expected_type)
    assert model.n_states == 2
    assert model.dimensionality == 1
    model.validate()


@pytest.mark.parametrize("overrides, match", [
    ({"transition_probs": [[0.7, 0.3]]}, "must have 2 rows"),
    ({"transition_probs": [[0.7, 0.3], [1.0]]}, "same length"),
    ({"initial_probs": []}, "at least 1"),
    ({"emission": {"type": "gaussian", "means": [[0.0]], "covariances": [[[1.0]]]}}, "Emission model has 1 states"),
    ({"emission": {"type": "gaussian", "means": [[0.0], [1.0]], "covariances": [[[1.0]]]}}, "Expected 2 covariance"),
    ({"emission": {"type": "poisson", "rates": [1.0, 2.0]}}, "poisson"),
    ({"emission": {"type": "gmm", "states": [
        {"weights": [1.0], "means": [[0.0]], "variances": [[1.0]]},
        {"weights": [1.0], "means": [[0.0]], "variances": [[1.0]]},
    ]}}, "requires 'covariances'"),
])
def test_model_file_validation_errors(overrides, match):
    with pytest.raises(ValidationError, match=match):
        HmmModelFile.model_validate({**TWO_STATE_GAUSSIAN, **overrides})


def test_load_model(model_path):
    model = load_model(model_path)
    assert model.n_states == 2
    np.testing.assert_allclose(model.initial_probs, [0.6, 0.4])
    np.testing.assert_allclose(model.transition_matrix, [[0.7, 0.3], [0.4, 0.6]])


def test_save_and_reload_model_file(model_path, tmp_path):
    model_file = load_model_file(model_path)
    path = tmp_path / "copy.json"
    save_model(path, model_file)
    assert load_model_file(path) == model_file


@pytest.mark.parametrize("filename, content", [
    ("obs.csv", "0.2,1.0\n2.9,1.5\n-0.1,2.0\n"),
    ("obs.tsv", "0.2\t1.0\n2.9\t1.5\n-0.1\t2.0\n"),
    ("obs.txt", "0.2  1.0\n2.9 1.5\n# comment\n-0.1\t2.0\n"),
])
def test_load_observations_text(tmp_path, filename, content):
    path = tmp_path / filename
    path.write_text(content)
    observations = load_observations(path)
    np.testing.assert_allclose(observations, [[0.2, 1.0], [2.9, 1.5], [-0.1, 2.0]])


def test_load_observations_npy(tmp_path):
    path = tmp_path / "obs.npy"
    np.save(path, np.arange(6).reshape(3, 2))
    observations = load_observations(path)
    assert observations.dtype == float
    np.testing.assert_array_equal(observations, [[0, 1], [2, 3], [4, 5]])


def test_load_observations_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    assert load_observations(path).size == 0


def test_load_observations_unsupported_format(tmp_path):
    path = tmp_path / "obs.parquet"
    path.write_bytes(b"")
    with pytest.raises(ValueError, match="Unsupported observation file format"):
        load_observations(path)


def test_save_states_text(tmp_path):
    path = tmp_path / "states.csv"
    save_states(path, np.array([0, 1, 0]))
    assert path.read_text().split() == ["0", "1", "0"]


def test_save_states_npy(tmp_path):
    path = tmp_path / "states.npy"
    save_states(path, [2, 0, 1])
    loaded = np.load(path)
    assert loaded.dtype == np.int64
    np.testing.assert_array_equal(loaded, [2, 0, 1])
