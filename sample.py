"""
Run an ONNX image-classification model on synthetic input and print scores.

Builds an environment and a session, fills the input with values linearly
spaced in [0, 1], executes through a Runner with pre-allocated outputs,
scales the input in place and executes again.

Usage:
    $ python sample.py --model squeezenet1.0-8.onnx
    $ python sample.py --config sample.yml --optimization_level all --num_threads 4

The example expects SqueezeNet 1.0 (opset 8), obtainable with:
    curl -LO "https://github.com/onnx/models/raw/master/vision/classification/squeezenet/model/squeezenet1.0-8.onnx"
"""

import argparse
import sys

import numpy as np
from easydict import EasyDict as edict

from ortrunner import Environment, LoggingLevel
from ortrunner.config import load_config, pick
from ortrunner.general import Profiler, determine_device, providers_for_device
from ortrunner.utils import get_logger, merge_config, setup_logging

DEFAULTS = {
    "model": "squeezenet1.0-8.onnx",
    "optimization_level": "basic",
    "num_threads": 1,
    "ort_log_level": "warning",
    "log_level": "INFO",
    "env_name": "sample",
    "device": "cpu",
    "top": 5,
    "scale": 2.0,
    "log_to_file": False,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Run an ONNX classification model through a pre-allocated Runner."
    )

    parser.add_argument(
        "--config", type=str, default=None, help="Path to config.yml/.json"
    )
    parser.add_argument("--model", type=str, default=None, help="Path to the .onnx model")

    # Session parameters
    parser.add_argument(
        "--optimization_level",
        type=str,
        default=None,
        choices=["none", "basic", "extended", "all"],
        help="Graph optimization level applied by ONNX Runtime.",
    )
    parser.add_argument(
        "--num_threads", type=int, default=None, help="Intra-op thread count."
    )
    parser.add_argument(
        "--device",
        type=str,
        default=None,
        choices=["auto", "cpu", "cuda"],
        help="Device to run inference on (auto will choose cuda if available)",
    )
    parser.add_argument(
        "--env_name", type=str, default=None, help="Name of the ONNX Runtime environment."
    )

    # Output parameters
    parser.add_argument(
        "--top", type=int, default=None, help="Number of class scores to print."
    )
    parser.add_argument(
        "--scale",
        type=float,
        default=None,
        help="Factor applied to the input before the second execution.",
    )

    # Logging parameters
    parser.add_argument(
        "--ort_log_level",
        type=str,
        default=None,
        choices=["verbose", "info", "warning", "error", "fatal"],
        help="ONNX Runtime log level (independent of --log_level).",
    )
    parser.add_argument(
        "--log_level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    parser.add_argument(
        "--log_to_file",
        action="store_true",
        default=None,
        help="Also write logs under ./logs.",
    )

    return parser.parse_args(argv)


def print_runner_outputs(runner, top):
    output = runner.outputs()[0]
    # scores along the class axis, whatever trailing singleton dims follow
    scores = output.reshape(output.shape[0], -1)[0] if output.ndim > 1 else output
    for i in range(min(top, scores.shape[0])):
        print(f"Score for class [{i}] =  {scores[i]}")


def run(config) -> None:
    logger = get_logger("ortrunner.sample")
    logger.info(f"Final config: {dict(config)}")

    environment = Environment(
        name=config.env_name, log_level=LoggingLevel.parse(config.ort_log_level)
    )
    try:
        device = determine_device(config.device)
        session = (
            environment.new_session_builder()
            .with_optimization_level(config.optimization_level)
            .with_number_threads(pick(config.num_threads, 1))
            .with_providers(providers_for_device(device))
            .with_model_from_file(config.model)
        )
        with session:
            execute_twice(session, config, logger)
    finally:
        environment.close()


def execute_twice(session, config, logger) -> None:
    """Run the model, scale the bound input in place, run again."""
    input0 = session.inputs[0]
    input0_shape = input0.concrete_shape()
    logger.info(
        "Input '%s' shape %s, output '%s' shape %s",
        input0.name,
        list(input0_shape),
        session.outputs[0].name,
        list(session.outputs[0].dimensions),
    )

    # initialize input data with values in [0.0, 1.0]
    n = input0.num_elements()
    array = np.linspace(0.0, 1.0, n, dtype=np.float32).reshape(input0_shape)

    # session.run([array]) would allocate new outputs on every call;
    # the runner allocates them once.
    runner = session.make_runner([array], output_type=np.float32)

    profiler = Profiler()
    with profiler:
        runner.execute()
    logger.info("Execution 1 took %.2f ms", profiler.elapsed_time * 1000)
    print_runner_outputs(runner, config.top)

    # The runner owns the input buffer; modify it in place and re-run.
    runner.inputs()[0] *= np.float32(config.scale)
    with profiler:
        runner.execute()
    logger.info("Execution 2 took %.2f ms", profiler.elapsed_time * 1000)
    print_runner_outputs(runner, config.top)

    logger.info(
        "Average latency over %d runs: %.2f ms", profiler.count, profiler.get_avg_time_ms()
    )


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        cfg = load_config(args.config)
        config = edict(merge_config(args, {**DEFAULTS, **cfg}))

        setup_logging(
            enabled=True, log_level=config.log_level, log_to_file=bool(config.log_to_file)
        )
        run(config)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
