"""Reconstruction error measures for trained stacks."""
from typing import Dict, Optional, Sequence

import numpy as np
import torch

from .matrix import hamming_error, rms_error
from .stack import StackedRBM


def mean_error(stack: StackedRBM, vectors: Sequence) -> float:
    """Average over ``vectors`` of the stack's Monte-Carlo reconstruction error."""
    if not vectors:
        return 0.0
    return float(sum(stack.error(v) for v in vectors) / len(vectors))


def evaluate_reconstruction(stack: StackedRBM, vectors: Sequence,
                            errors: Optional[Sequence[float]] = None) -> Dict[str, float]:
    """Average error, Hamming distance and RMS distance of single reconstructions.

    Per-vector errors already computed with ``stack.error`` can be passed as
    ``errors`` to skip estimating them again.
    """
    if errors is None or len(errors) == 0:
        average = mean_error(stack, vectors)
    else:
        average = float(np.mean(errors))
    hamming, rms = [], []
    for vector in vectors:
        rebuilt = stack.reconstruct(vector)
        hamming.append(hamming_error(vector, rebuilt))
        rms.append(rms_error(vector, rebuilt))
    return {
        'error': average,
        'hamming': float(np.mean(hamming)) if hamming else 0.0,
        'rms': float(np.mean(rms)) if rms else 0.0,
    }


def reconstruct(weights: Sequence, visible: int, vector,
                generator: Optional[torch.Generator] = None) -> np.ndarray:
    """Reconstruct ``vector`` through the stack described by ``weights``."""
    stack = StackedRBM.from_weights(visible, weights, generator)
    return stack.reconstruct(vector).numpy()


def error(weights: Sequence, visible: int, vectors: Sequence,
          generator: Optional[torch.Generator] = None) -> float:
    """Average reconstruction error of ``vectors`` through the stack described by ``weights``."""
    stack = StackedRBM.from_weights(visible, weights, generator)
    return mean_error(stack, vectors)
