import os
from argparse import Namespace as Args
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ViterbiConfig:
    """Configuration for a single decode run.

    Parameters
    ----------
    input : Path
        Observation matrix file, one observation per row
    input_model : Path
        Trained HMM model file (JSON)
    output : Path | None
        Destination for the decoded state sequence; None if results are not saved
    strict : bool
        Validate that model distributions are stochastic before decoding
    trace : bool
        Emit per-step trellis details at DEBUG level
    """

    input: Path
    input_model: Path
    output: Path | None = None
    strict: bool = False
    trace: bool = False

    @classmethod
    def from_args(cls, args: Args) -> "ViterbiConfig":
        return cls(
            input=Path(args.input),
            input_model=Path(args.input_model),
            output=Path(args.output) if args.output else None,
            strict=args.strict,
            trace=args.trace,
        )

    def check_output(self) -> None:
        """Raise ValueError if the output destination cannot be written."""
        if self.output is None:
            return
        parent = self.output.parent
        if self.output.is_dir():
            raise ValueError(f"Output path {self.output} is a directory")
        if not parent.is_dir():
            raise ValueError(f"Output directory {parent} does not exist")
        if not os.access(parent, os.W_OK):
            raise ValueError(f"Output directory {parent} is not writable")
