"""Stacked RBM training and inference CLI."""
import argparse
import logging
import os
import sys
from typing import List, Optional

import mlflow
import numpy as np
import yaml

from rbmstack.constants import (
    CONFIG_FILE, DEFAULT_HIDDEN, DEFAULT_RATE, DEFAULT_ROUNDS, DEFAULT_SAMPLES,
    DEFAULT_STDDEV, LOG_DATE_FORMAT, LOG_FORMAT, SEED, TEXT_FLOAT_FORMAT,
    TEXT_SIGN_FORMAT, ZERO
)
from rbmstack.src.data_loader import (
    ArrayFormatError, load_vectors, write_array, write_array_file
)
from rbmstack.src.evaluate import evaluate_reconstruction
from rbmstack.src.matrix import ShapeError
from rbmstack.src.model import BiasError
from rbmstack.src.monitor import StepMonitor
from rbmstack.src.stack import StackedRBM
from rbmstack.src.train import train_stack
from rbmstack.src.utils import make_generator, render_matrix

logger = logging.getLogger(__name__)

MLFLOW_EXPERIMENT_NAME = "rbmstack-training"
_mlruns_path = os.path.abspath("mlruns")
MLFLOW_TRACKING_URI = f"file:///{_mlruns_path.replace(os.sep, '/')}"


def load_config():
    """Load YAML configuration file."""
    config_path = os.path.join(os.path.dirname(__file__), CONFIG_FILE)
    with open(config_path, 'r') as f:
        return yaml.safe_load(f)


def parse_widths(text: str) -> List[int]:
    """Parse comma-separated hidden layer widths such as ``64,32``."""
    try:
        widths = [int(w) for w in text.split(",") if w.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid hidden widths: {text!r}") from None
    if not widths or any(w < 1 for w in widths):
        raise argparse.ArgumentTypeError(f"invalid hidden widths: {text!r}")
    return widths


def emit(rows, fmt: str = TEXT_SIGN_FORMAT) -> None:
    """Write rows to standard output."""
    sys.stdout.flush()
    write_array(sys.stdout.buffer, fmt, rows)
    sys.stdout.buffer.flush()


def write_weights(weights, path: Optional[str]) -> None:
    if path:
        logger.info(f"Writing {len(weights)} weight matrices to \"{path}\"")
        write_array_file(path, weights)
    else:
        logger.info("No output file specified, printing weights to stdout")
        emit(weights, TEXT_FLOAT_FORMAT)


def load_stack(args, path: str, visible: int) -> StackedRBM:
    if visible == 0:
        raise ShapeError("Unknown number of visible units, pass --visible")
    stack = StackedRBM.load(visible, path, make_generator(args.seed))
    logger.info(f"Loaded stack from {path}: {visible} visible, hidden widths {stack.hidden_widths}")
    return stack


def run_train(args) -> None:
    """Train a stack and persist its weights, optionally tracked in MLflow."""
    vectors, visible = load_vectors(args.vectors, args.visible, "visible")
    params = {
        "visible": visible,
        "hidden": ",".join(str(w) for w in args.hidden),
        "rate": args.rate,
        "decay": args.decay,
        "rounds": args.rounds,
        "stddev": args.stddev,
        "seed": args.seed,
        "n_vectors": len(vectors),
    }
    logger.info(f"Training with {params}")

    def fit():
        with StepMonitor() as monitor:
            return train_stack(
                visible, args.hidden, vectors,
                rate=args.rate,
                decay=args.decay,
                rounds=args.rounds,
                progress=monitor,
                stddev=args.stddev,
                generator=make_generator(args.seed),
            )

    if not args.mlflow:
        weights, average = fit()
        write_weights(weights, args.weights)
        return

    mlflow.set_tracking_uri(MLFLOW_TRACKING_URI)
    mlflow.set_experiment(args.experiment)
    run_name = f"rbm_v{visible}_h{params['hidden'].replace(',', '-')}_lr{args.rate}"
    with mlflow.start_run(run_name=run_name):
        mlflow.log_params(params)
        weights, average = fit()
        mlflow.log_metric("average_error", average)
        write_weights(weights, args.weights)
        if args.weights and os.path.exists(args.weights):
            mlflow.log_artifact(args.weights, artifact_path="weights")
        logger.info(f"MLflow run ID: {mlflow.active_run().info.run_id}")


def run_error(args) -> None:
    vectors, visible = load_vectors(args.vectors, args.visible, "visible")
    stack = load_stack(args, args.weights, visible)
    errors = []
    for i, vector in enumerate(vectors):
        err = stack.error(vector)
        errors.append(err)
        print(f"Average error of example {i}: {err:f}")
    metrics = evaluate_reconstruction(stack, vectors, errors)
    print(f"Average error: {metrics['error']:f}")
    print(f"Hamming: {metrics['hamming']:f}, RMS: {metrics['rms']:f}")


def run_reconstruct(args) -> None:
    vectors, visible = load_vectors(args.vectors, args.visible, "visible")
    stack = load_stack(args, args.weights, visible)
    rows = [stack.reconstruct(v).numpy() for v in vectors]
    if args.output:
        logger.info(f"Writing {len(rows)} reconstructions to \"{args.output}\"")
        write_array_file(args.output, rows)
    else:
        emit(rows)


def run_sampleup(args) -> None:
    vectors, visible = load_vectors(args.vectors, args.visible, "visible")
    stack = load_stack(args, args.weights, visible)
    for i, vector in enumerate(vectors):
        logger.info(f"Hidden unit samples from training vector {i:2d}")
        emit([stack.sample_up(vector).numpy() for _ in range(args.samples)])


def run_sampledown(args) -> None:
    stack = load_stack(args, args.weights, args.visible)
    width = stack.hidden_widths[-1]
    for i in range(width):
        logger.info(f"Samples via hidden unit {i:2d}")
        hidden = np.full(width, ZERO)
        hidden[i] = -ZERO
        emit([stack.sample_down(hidden, args.gibbs).numpy() for _ in range(args.samples)])


def run_show(args) -> None:
    stack = load_stack(args, args.weights, args.visible)
    for i, rbm in enumerate(stack.layers):
        print(f"Layer {i}: {rbm.n_visible - 1} visible, {rbm.n_hidden - 1} hidden, norm = {rbm.norm():f}")
        print(render_matrix(rbm.weights(), rbm.n_visible))


ACTIONS = {
    "train": run_train,
    "error": run_error,
    "reconstruct": run_reconstruct,
    "sampleup": run_sampleup,
    "sampledown": run_sampledown,
    "show": run_show,
}


def build_parser(config) -> argparse.ArgumentParser:
    training_cfg = config.get('training', {})
    inference_cfg = config.get('inference', {})
    tracking_cfg = config.get('tracking', {})

    options = argparse.ArgumentParser(add_help=False)
    options.add_argument('--visible', type=int, default=0,
                         help='number of visible units (inferred from vectors when 0)')
    options.add_argument('--hidden', type=parse_widths,
                         default=training_cfg.get('hidden', DEFAULT_HIDDEN),
                         help='comma-separated hidden layer widths')
    options.add_argument('--rounds', type=int, default=training_cfg.get('rounds', DEFAULT_ROUNDS),
                         help='rounds of learning per layer')
    options.add_argument('--rate', type=float, default=training_cfg.get('rate', DEFAULT_RATE),
                         help='learning rate')
    options.add_argument('--decay', type=float, default=training_cfg.get('decay', 0.0),
                         help='weight decay applied every 16 rounds')
    options.add_argument('--stddev', type=float, default=training_cfg.get('stddev', DEFAULT_STDDEV),
                         help='standard deviation of the initial weights')
    options.add_argument('--seed', type=int, default=config.get('seed', SEED),
                         help='random seed to use')
    options.add_argument('--samples', type=int, default=inference_cfg.get('samples', DEFAULT_SAMPLES),
                         help='samples drawn per vector or hidden unit')
    options.add_argument('--gibbs', type=int, default=inference_cfg.get('gibbs', 0),
                         help='Gibbs cycles before each generated sample')
    options.add_argument('--mlflow', action='store_true', help='track the training run in MLflow')
    options.add_argument('--experiment', default=tracking_cfg.get('experiment', MLFLOW_EXPERIMENT_NAME),
                         help='MLflow experiment name')
    options.add_argument('-v', '--verbose', action='store_true')

    parser = argparse.ArgumentParser(description="Stacked RBM training and inference")
    actions = parser.add_subparsers(dest='action', required=True)

    p = actions.add_parser('train', parents=[options], help='train a stack on visible vectors')
    p.add_argument('vectors')
    p.add_argument('weights', nargs='?')

    p = actions.add_parser('error', parents=[options], help='reconstruction error of vectors')
    p.add_argument('vectors')
    p.add_argument('weights')

    p = actions.add_parser('reconstruct', parents=[options], help='reconstruct vectors')
    p.add_argument('weights')
    p.add_argument('vectors')
    p.add_argument('output', nargs='?')

    p = actions.add_parser('sampleup', parents=[options], help='sample top hidden units from vectors')
    p.add_argument('weights')
    p.add_argument('vectors')

    p = actions.add_parser('sampledown', parents=[options], help='sample visible units from each top hidden unit')
    p.add_argument('weights')

    p = actions.add_parser('show', parents=[options], help='render weight matrices')
    p.add_argument('weights')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit status."""
    args = build_parser(load_config()).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    try:
        ACTIONS[args.action](args)
    except (ShapeError, ArrayFormatError, BiasError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
