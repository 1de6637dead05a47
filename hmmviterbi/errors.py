class DecodingError(ValueError):
    """Base class for errors raised while validating decoder inputs."""


class EmptyInputError(DecodingError):
    """Raised when an observation sequence contains no observations."""


class DimensionMismatchError(DecodingError):
    """Raised when observations do not match the dimensionality of the model.

    Parameters
    ----------
    expected : int
        Observation dimensionality of the model
    actual : int | tuple[int, ...]
        Dimensionality (or full array shape) that was supplied
    message : str, optional
        Override for the default message
    """

    def __init__(self, expected: int, actual: int | tuple[int, ...], message: str | None = None):
        self.expected = expected
        self.actual = actual
        if message is None:
            message = f"Observation dimensionality ({actual}) does not match HMM emission dimensionality ({expected})"
        super().__init__(message)


class InvalidModelError(DecodingError):
    """Raised when HMM parameters are malformed (e.g. non-stochastic transition rows)."""


class InvalidObservationError(DecodingError):
    """Raised when observations contain non-finite values."""
