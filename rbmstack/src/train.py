"""Training entry point: random stack, greedy training, final error."""
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch

from ..constants import DEFAULT_RATE, DEFAULT_ROUNDS, DEFAULT_STDDEV
from .evaluate import mean_error
from .stack import Progress, StackedRBM

logger = logging.getLogger(__name__)


def train_stack(visible: int, hidden: Sequence[int], vectors: Sequence,
                rate: float = DEFAULT_RATE, decay: float = 0.0,
                rounds: int = DEFAULT_ROUNDS, progress: Optional[Progress] = None,
                stddev: float = DEFAULT_STDDEV,
                generator: Optional[torch.Generator] = None) -> Tuple[List[np.ndarray], float]:
    """Train a fresh stack on ``vectors`` and return its weights and average error."""
    stack = StackedRBM.random(visible, hidden, stddev=stddev, generator=generator)
    logger.info(
        f"Generated random stack: {visible} visible, hidden widths {list(hidden)}"
    )
    logger.info(f"Commencing {rounds} rounds of training per layer")
    stack.fit(vectors, rate, decay=decay, rounds=rounds, progress=progress)

    average = mean_error(stack, vectors)
    logger.info(f"Training finished, average reconstruction error {average:.4f}")
    return stack.weights(), average
