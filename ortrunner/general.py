import contextlib
import time
from typing import List

import onnxruntime as ort
import torch

from .utils import get_logger

logger = get_logger(__name__)

_DEVICE_PROVIDERS = {
    "cpu": ["CPUExecutionProvider"],
    "cuda": ["CUDAExecutionProvider", "CPUExecutionProvider"],
}


def determine_device(device_arg):
    """Determine the best device to use for inference"""
    if device_arg is None or device_arg == "auto":
        if torch.cuda.is_available():
            return "cuda"
        else:
            return "cpu"
    return device_arg


def providers_for_device(device: str) -> List[str]:
    """Execution providers for ``device``, limited to what ONNX Runtime offers."""
    try:
        wanted = _DEVICE_PROVIDERS[device.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported device: {device}. Supported: {list(_DEVICE_PROVIDERS)}"
        ) from None

    available = ort.get_available_providers()
    providers = [p for p in wanted if p in available]
    if providers != wanted:
        logger.warning(
            "Requested providers %s, ONNX Runtime offers %s; using %s",
            wanted,
            available,
            providers or ["CPUExecutionProvider"],
        )
    return providers or ["CPUExecutionProvider"]


class Profiler(contextlib.ContextDecorator):
    """
    Timing helper for inference runs.

    Synchronizes CUDA before reading the clock when a GPU is present, so GPU
    work is included in the measurement.

    Example:
        profiler = Profiler()
        with profiler:
            runner.execute()
        print(f"Inference time: {profiler.elapsed_time * 1000:.2f} ms")

        @Profiler()
        def step():
            runner.execute()
    """

    def __init__(self, accumulated_time=0.0):
        self.accumulated_time = accumulated_time  # total over all runs
        self.elapsed_time = 0.0  # last run
        self.count = 0
        self.cuda_available = torch.cuda.is_available()
        self._start_time = 0.0

    def __enter__(self):
        self._start_time = self._get_precise_time()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.elapsed_time = self._get_precise_time() - self._start_time
        self.accumulated_time += self.elapsed_time
        self.count += 1

    def _get_precise_time(self):
        if self.cuda_available:
            torch.cuda.synchronize()
        return time.perf_counter()

    def reset(self):
        self.accumulated_time = 0.0
        self.elapsed_time = 0.0
        self.count = 0

    def get_fps(self, num_samples):
        """Samples per second over the accumulated time (0.0 if nothing was timed)."""
        if self.accumulated_time > 0:
            return num_samples / self.accumulated_time
        return 0.0

    def get_avg_time_ms(self, num_batches=None):
        num_batches = self.count if num_batches is None else num_batches
        if num_batches > 0:
            return (self.accumulated_time / num_batches) * 1000
        return 0.0
