import argparse
import logging
import sys
from argparse import Namespace as Args
from hmmviterbi.config import ViterbiConfig
from hmmviterbi.decoding import viterbi
from hmmviterbi.storage import load_model, load_observations, save_states
from hmmviterbi.tracing import LoggingTracer

logger = logging.getLogger(__name__)


def decode(config: ViterbiConfig) -> None:
    """Decode the most probable state sequence for one observation file.

    Parameters
    ----------
    config : ViterbiConfig
        Inputs, output destination and decoding options
    """
    config.check_output()

    model = load_model(config.input_model)
    observations = load_observations(config.input)

    tracer = LoggingTracer(logging.getLogger("hmmviterbi.trace")) if config.trace else None
    result = viterbi(model, observations, strict=config.strict, tracer=tracer)

    if config.output is None:
        logger.warning("No output path given; no results will be saved")
        print("\n".join(str(state) for state in result.path))
    else:
        save_states(config.output, result.path)
    logger.info(f"Decoded {len(result.path):,} states (log-likelihood={result.log_likelihood:.6g})")


def validate_model(args: Args) -> None:
    """Load a model file and check that its distributions are stochastic."""
    model = load_model(args.input_model)
    model.validate()
    logger.info(f"Model {args.input_model} is valid (N={model.n_states}, D={model.dimensionality})")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for HMM Viterbi state prediction."""
    # Set up logging
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    parser = argparse.ArgumentParser(
        description="Hidden Markov Model (HMM) Viterbi state prediction: compute the most probable "
        "hidden state sequence of a sequence of observations under an already-trained HMM"
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to execute")

    # Decode command
    decode_parser = subparsers.add_parser("decode", help="Predict the most probable hidden state sequence")
    decode_parser.add_argument("-i", "--input", required=True, help="Observation matrix (.csv, .tsv, .txt or .npy) with one observation per row")
    decode_parser.add_argument("-m", "--input-model", required=True, help="Trained HMM model file (JSON)")
    decode_parser.add_argument("-o", "--output", default=None, help="File to save predicted state sequence to (default: print to stdout)")
    decode_parser.add_argument("--strict", action="store_true", help="Reject models whose initial or transition probabilities do not sum to 1")
    decode_parser.add_argument("--trace", action="store_true", help="Log the Viterbi trellis at every step (DEBUG level)")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Check a trained HMM model file")
    validate_parser.add_argument("-m", "--input-model", required=True, help="Trained HMM model file (JSON)")

    args = parser.parse_args(argv)

    try:
        if args.command == "decode":
            if args.trace:
                logging.getLogger("hmmviterbi").setLevel(logging.DEBUG)
            decode(ViterbiConfig.from_args(args))
        elif args.command == "validate":
            validate_model(args)
        else:
            parser.print_help()
            return 1
    except (ValueError, OSError) as e:
        # DecodingError and pydantic's ValidationError are both ValueErrors
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
