import logging
import numpy as np
from typing import Protocol


class DecodeTracer(Protocol):
    """Observation points a decoder reports to; tracers never influence results."""

    def on_initialize(self, delta: np.ndarray) -> None:
        ...

    def on_step(self, t: int, delta: np.ndarray, psi: np.ndarray) -> None:
        ...

    def on_terminate(self, best_state: int, best_score: float) -> None:
        ...


class LoggingTracer:
    """Forward trellis events to a logger at DEBUG level."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def on_initialize(self, delta):
        self._logger.debug(f"Viterbi init: delta[0]={np.array2string(delta, precision=4)}")

    def on_step(self, t, delta, psi):
        self._logger.debug(
            f"Viterbi step t={t}: delta={np.array2string(delta, precision=4)}, psi={psi.tolist()}"
        )

    def on_terminate(self, best_state, best_score):
        self._logger.debug(f"Viterbi termination: best final state={best_state}, score={best_score:.6g}")


class RecordingTracer:
    """Keep copies of every trellis event, mostly useful for tests and debugging."""

    def __init__(self):
        self.initial: np.ndarray | None = None
        self.steps: list[tuple[int, np.ndarray, np.ndarray]] = []
        self.termination: tuple[int, float] | None = None

    def on_initialize(self, delta):
        self.initial = np.array(delta)

    def on_step(self, t, delta, psi):
        self.steps.append((t, np.array(delta), np.array(psi)))

    def on_terminate(self, best_state, best_score):
        self.termination = (best_state, best_score)
