"""Loading observations and models, and saving decoded state sequences.

Observation files hold one observation per row and one dimension per column
(time-major), either as headerless delimited text or as a ``.npy`` array.
Models are JSON documents following :class:`hmmviterbi.schema.HmmModelFile`.
"""

import logging
import numpy as np
import numpy.typing as npt
import pandas as pd
from pathlib import Path
from hmmviterbi.model import HiddenMarkovModel
from hmmviterbi.schema import HmmModelFile

PathLike = str | Path

logger = logging.getLogger(__name__)

TEXT_SEPARATORS = {
    ".csv": ",",
    ".tsv": "\t",
    ".txt": r"\s+",
}


def load_observations(path: PathLike) -> np.ndarray:
    """Load a time-major observation matrix.

    Parameters
    ----------
    path : PathLike
        Path to a ``.npy``, ``.csv``, ``.tsv`` or whitespace-delimited ``.txt`` file

    Returns
    -------
    np.ndarray
        Float array with one row per observation; an empty file yields an empty array
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".npy":
        observations = np.load(path).astype(float)
    elif suffix in TEXT_SEPARATORS:
        try:
            df = pd.read_csv(path, sep=TEXT_SEPARATORS[suffix], header=None, comment="#", dtype=float)
        except pd.errors.EmptyDataError:
            logger.warning(f"Observation file {path} is empty")
            return np.empty((0, 0))
        observations = df.to_numpy(dtype=float)
    else:
        raise ValueError(f"Unsupported observation file format {suffix!r} for {path}; expected one of .npy, {', '.join(TEXT_SEPARATORS)}")
    logger.info(f"Loaded observations from {path} with shape {observations.shape}")
    return observations


def save_states(path: PathLike, states: npt.ArrayLike) -> None:
    """Write a decoded state sequence, one state index per line (or as ``.npy``)."""
    path = Path(path)
    states = np.asarray(states, dtype=np.int64)
    if path.suffix.lower() == ".npy":
        np.save(path, states)
    else:
        pd.Series(states).to_csv(path, index=False, header=False)
    logger.info(f"Saved {len(states):,} states to {path}")


def load_model_file(path: PathLike) -> HmmModelFile:
    return HmmModelFile.model_validate_json(Path(path).read_text())


def load_model(path: PathLike) -> HiddenMarkovModel:
    """Load a trained HMM from a JSON model file."""
    model = load_model_file(path).to_model()
    logger.info(f"Loaded HMM from {path} with N={model.n_states} states, D={model.dimensionality}")
    return model


def save_model(path: PathLike, model_file: HmmModelFile) -> None:
    Path(path).write_text(model_file.model_dump_json(indent=2))
