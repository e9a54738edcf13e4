"""Restricted Boltzmann Machine layer over bipolar units."""
import numpy as np
import torch
import torch.nn as nn
from typing import Optional

from ..constants import (
    BIAS, CD_ROUNDS, DEFAULT_STDDEV, ERROR_TRIALS, GIBBS_STEPS
)
from .matrix import (
    ShapeError, clamp_bias, random_matrix, sample, transfer, transfer_t
)


class BiasError(ValueError):
    """A vector handed to the learning rule does not carry +1 in its bias slot."""


class RBM(nn.Module):
    """One RBM layer trained with contrastive divergence.

    Both widths include the bias unit, so the weight matrix is
    ``n_hidden x n_visible`` and the last row/column belong to the biases.
    Activation buffers are allocated once and reused by every pass:

    - ``H``: current hidden sample
    - ``V``: current visible sample
    - ``P``: hidden probabilities driven by the data (positive phase)
    - ``Q``: hidden probabilities after the Gibbs chain (negative phase)
    """

    def __init__(self, n_visible: int, n_hidden: int, weights=None,
                 stddev: float = DEFAULT_STDDEV,
                 generator: Optional[torch.Generator] = None):
        """Initialize from ``weights`` or with zero-mean Gaussian weights of ``stddev``."""
        super().__init__()
        if n_visible < 1 or n_hidden < 1:
            raise ShapeError(f"Invalid layer shape {n_hidden}x{n_visible}")
        self.n_visible = n_visible
        self.n_hidden = n_hidden
        self.generator = generator

        if weights is None:
            weights = random_matrix(n_hidden * n_visible, stddev, generator)
        weights = torch.as_tensor(weights, dtype=torch.float64).reshape(-1)
        if weights.numel() != n_hidden * n_visible:
            raise ShapeError(
                f"Weight matrix of {weights.numel()} entries doesn't fit "
                f"{n_hidden} hidden x {n_visible} visible units"
            )
        self.W = nn.Parameter(weights.reshape(n_hidden, n_visible).clone(), requires_grad=False)

        self.register_buffer("H", torch.full((n_hidden,), BIAS, dtype=torch.float64))
        self.register_buffer("V", torch.full((n_visible,), BIAS, dtype=torch.float64))
        self.register_buffer("P", torch.zeros(n_hidden, dtype=torch.float64))
        self.register_buffer("Q", torch.zeros(n_hidden, dtype=torch.float64))

    @classmethod
    def from_weights(cls, weights, n_visible: int,
                     generator: Optional[torch.Generator] = None) -> "RBM":
        """Recover the hidden width from a flattened matrix and the visible width."""
        size = len(weights)
        if size == 0 or size % n_visible != 0:
            raise ShapeError(
                f"Weight matrix of {size} entries is inconsistent with {n_visible} visible units"
            )
        return cls(n_visible, size // n_visible, weights=weights, generator=generator)

    def extra_repr(self) -> str:
        return f"n_visible={self.n_visible}, n_hidden={self.n_hidden}"

    def _visible(self, visible) -> torch.Tensor:
        visible = torch.as_tensor(visible, dtype=torch.float64)
        if visible.numel() != self.n_visible:
            raise ShapeError(
                f"Visible vector has {visible.numel()} units, layer expects {self.n_visible}"
            )
        return visible.reshape(-1)

    def _hidden_to_visible(self) -> None:
        transfer_t(self.W, self.H, self.V)
        sample(self.V, self.V, self.generator)
        clamp_bias(self.V)

    def _visible_to_hidden(self, probabilities: torch.Tensor) -> None:
        transfer(self.W, self.V, probabilities)
        sample(probabilities, self.H, self.generator)
        clamp_bias(self.H)

    def up(self, n: int, visible) -> torch.Tensor:
        """Sample hidden units from ``visible``, then run ``n`` Gibbs cycles."""
        visible = self._visible(visible)
        transfer(self.W, visible, self.P)
        sample(self.P, self.H, self.generator)
        clamp_bias(self.H)
        if n == 0:
            self.Q.copy_(self.P)
        for _ in range(n):
            self._hidden_to_visible()
            self._visible_to_hidden(self.Q)
        return self.H

    def down(self, n: int) -> torch.Tensor:
        """Generate visible units from the current hidden sample in ``H``."""
        for _ in range(n):
            self._hidden_to_visible()
            self._visible_to_hidden(self.Q)
        self._hidden_to_visible()
        return self.V

    def learn_vector(self, visible, rate: float) -> None:
        """Contrastive-divergence update from one bias-augmented training vector."""
        visible = self._visible(visible)
        if visible[-1].item() != BIAS:
            raise BiasError(
                f"Training vector bias unit is {visible[-1].item()}, expected {BIAS}"
            )
        for _ in range(CD_ROUNDS):
            self.up(GIBBS_STEPS, visible)
            self.W.add_(torch.outer(self.P - self.Q, visible), alpha=rate)

    def error(self, visible) -> float:
        """Average number of visible signs flipped by one Gibbs cycle."""
        visible = self._visible(visible)
        data = visible[:-1]
        err = 0
        for _ in range(ERROR_TRIALS):
            self.up(1, visible)
            err += int((data * self.V[:-1] < 0).sum().item())
        return err / ERROR_TRIALS

    def norm(self) -> float:
        return float((self.W ** 2).sum().item())

    def decay(self, factor: float) -> None:
        self.W.mul_(1.0 - factor)

    def weights(self) -> np.ndarray:
        """Row-major flattened copy of the weight matrix."""
        return self.W.detach().reshape(-1).numpy().copy()
