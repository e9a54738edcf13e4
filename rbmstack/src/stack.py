"""Stack of RBM layers trained greedily, one layer at a time."""
import logging
from typing import Callable, List, Optional, Sequence

import numpy as np
import torch
import torch.nn as nn

from ..constants import (
    BIAS, DECAY_INTERVAL, DEFAULT_ROUNDS, DEFAULT_STDDEV, ERROR_TRIALS, REPORT_INTERVAL
)
from .data_loader import read_array_file, write_array_file
from .matrix import (
    ShapeError, add_bias, clamp_bias, del_bias, sample, transfer, transfer_t
)
from .model import RBM

logger = logging.getLogger(__name__)

Progress = Callable[[int, int], bool]


class StackedRBM(nn.Module):
    """Layers ordered from the input upward; each layer's hidden units feed the next."""

    def __init__(self, layers: Sequence[RBM], generator: Optional[torch.Generator] = None):
        super().__init__()
        if not layers:
            raise ShapeError("A stacked RBM needs at least one layer")
        for i in range(1, len(layers)):
            if layers[i].n_visible != layers[i - 1].n_hidden:
                raise ShapeError(
                    f"Layer {i} has {layers[i].n_visible} visible units but layer "
                    f"{i - 1} has {layers[i - 1].n_hidden} hidden units"
                )
        self.layers = nn.ModuleList(layers)
        self.generator = generator

    @classmethod
    def random(cls, n_visible: int, widths: Sequence[int], stddev: float = DEFAULT_STDDEV,
               generator: Optional[torch.Generator] = None) -> "StackedRBM":
        """Fresh Gaussian weights for ``n_visible`` inputs and the given hidden widths."""
        layers = []
        numv = n_visible + 1
        for width in widths:
            if width < 1:
                raise ShapeError(f"Hidden layer width must be positive, got {width}")
            layers.append(RBM(numv, width + 1, stddev=stddev, generator=generator))
            numv = width + 1
        return cls(layers, generator)

    @classmethod
    def from_weights(cls, n_visible: int, matrices: Sequence,
                     generator: Optional[torch.Generator] = None) -> "StackedRBM":
        """Rebuild the layer shapes from flattened weight matrices."""
        if not matrices:
            raise ShapeError("No weight matrices to build a stacked RBM from")
        layers = []
        numv = n_visible + 1
        for i, weights in enumerate(matrices):
            if len(weights) % numv != 0 or len(weights) // numv < 2:
                raise ShapeError(
                    f"Shape of weight matrix {i} ({len(weights)} entries) is inconsistent "
                    f"with {numv - 1} visible units on the previous layer"
                )
            layers.append(RBM.from_weights(weights, numv, generator=generator))
            numv = len(weights) // numv
        return cls(layers, generator)

    @classmethod
    def load(cls, n_visible: int, path: str,
             generator: Optional[torch.Generator] = None) -> "StackedRBM":
        matrices = read_array_file(path)
        if not matrices:
            raise FileNotFoundError(f"Cannot read weights from file \"{path}\"")
        return cls.from_weights(n_visible, matrices, generator)

    def save(self, path: str) -> None:
        write_array_file(path, self.weights())

    def __len__(self) -> int:
        return len(self.layers)

    @property
    def visible_width(self) -> int:
        return self.layers[0].n_visible - 1

    @property
    def hidden_widths(self) -> List[int]:
        return [rbm.n_hidden - 1 for rbm in self.layers]

    def weights(self) -> List[np.ndarray]:
        return [rbm.weights() for rbm in self.layers]

    def norm(self) -> List[float]:
        return [rbm.norm() for rbm in self.layers]

    def _input(self, vector, index: int = 0) -> torch.Tensor:
        vector = torch.as_tensor(vector, dtype=torch.float64).reshape(-1)
        if vector.numel() != self.visible_width:
            raise ShapeError(
                f"Vector {index} has {vector.numel()} elements, "
                f"stack expects {self.visible_width}"
            )
        return vector

    def _next_layer_input(self, rbm: RBM, vector: torch.Tensor) -> torch.Tensor:
        rbm.up(1, vector)
        image = 2.0 * rbm.Q - 1.0
        image[-1] = BIAS
        return image

    def fit(self, vectors: Sequence, rate: float, decay: float = 0.0,
            rounds: int = DEFAULT_ROUNDS, progress: Optional[Progress] = None,
            report_every: int = REPORT_INTERVAL) -> None:
        """Greedy layer-wise contrastive-divergence training.

        Each layer runs ``rounds`` updates on vectors drawn with replacement
        from its training set. The next layer's training set is the current
        layer's settled hidden expectation (``2 * Q - 1``) for every vector.
        Weights shrink by ``1 - decay`` every ``DECAY_INTERVAL`` rounds.
        """
        training = [add_bias(self._input(v, i)) for i, v in enumerate(vectors)]
        if not training:
            raise ShapeError("No training vectors")

        total = rounds * len(self.layers)
        for i, rbm in enumerate(self.layers):
            logger.info(
                f"Training layer {i}: {rbm.n_visible - 1} visible, "
                f"{rbm.n_hidden - 1} hidden, {len(training)} vectors"
            )
            for r in range(rounds):
                n = int(torch.randint(len(training), (1,), generator=self.generator).item())
                rbm.learn_vector(training[n], rate)

                if progress is not None and r % report_every == 0:
                    if progress(i * rounds + r, total):
                        logger.info(f"{progress}, norm = {rbm.norm():f}")

                if decay > 0 and r % DECAY_INTERVAL == 0:
                    rbm.decay(decay)

            if i < len(self.layers) - 1:
                training = [self._next_layer_input(rbm, vec) for vec in training]

    def _encode(self, vector: torch.Tensor) -> None:
        x = add_bias(vector)
        for rbm in self.layers:
            transfer(rbm.W, x, rbm.P)
            sample(rbm.P, rbm.H, self.generator)
            clamp_bias(rbm.H)
            x = rbm.H

    def _decode(self, top: int) -> torch.Tensor:
        for i in range(top, -1, -1):
            rbm = self.layers[i]
            transfer_t(rbm.W, rbm.H, rbm.V)
            sample(rbm.V, rbm.V, self.generator)
            clamp_bias(rbm.V)
            if i > 0:
                self.layers[i - 1].H.copy_(rbm.V)
        return del_bias(self.layers[0].V).clone()

    def reconstruct(self, vector) -> torch.Tensor:
        """Encode ``vector`` to the top of the stack and decode it back down."""
        self._encode(self._input(vector))
        return self._decode(len(self.layers) - 1)

    def sample_up(self, vector) -> torch.Tensor:
        """Top-layer hidden sample for ``vector``, bias unit removed."""
        self._encode(self._input(vector))
        return del_bias(self.layers[-1].H).clone()

    def sample_down(self, hidden, n: int = 0) -> torch.Tensor:
        """Generate a visible vector from a clamped top-layer hidden pattern."""
        top = self.layers[-1]
        hidden = add_bias(hidden)
        if hidden.numel() != top.n_hidden:
            raise ShapeError(
                f"Hidden pattern has {hidden.numel() - 1} units, top layer has {top.n_hidden - 1}"
            )
        top.H.copy_(hidden)
        top.down(n)
        if len(self.layers) == 1:
            return del_bias(top.V).clone()
        self.layers[-2].H.copy_(top.V)
        return self._decode(len(self.layers) - 2)

    def error(self, vector) -> float:
        """Average number of signs flipped by a full reconstruction."""
        vector = self._input(vector)
        err = 0
        for _ in range(ERROR_TRIALS):
            err += int((self.reconstruct(vector) * vector < 0).sum().item())
        return err / ERROR_TRIALS
