"""Numeric primitives for bipolar RBM layers: transfers, sampling and bias handling."""
import torch
from typing import Optional

from ..constants import BIAS, ZERO


class ShapeError(ValueError):
    """Matrix or vector length disagrees with the declared layer widths."""


def check_shape(matrix: torch.Tensor, src: torch.Tensor, dst: torch.Tensor) -> None:
    if matrix.numel() != src.numel() * dst.numel():
        raise ShapeError(
            f"Shape mismatch: matrix {matrix.numel()} can't multiply "
            f"{src.numel()} into {dst.numel()}"
        )


def logistic(x: torch.Tensor) -> torch.Tensor:
    return torch.sigmoid(x)


def transfer(matrix: torch.Tensor, src: torch.Tensor, dst: torch.Tensor) -> torch.Tensor:
    """Visible to hidden probabilities, written into ``dst``.

    ``dst[h] = logistic(sum_v M[h, v] * src[v])`` for every unit but the last,
    which is the bias unit and is given probability 1.
    """
    check_shape(matrix, src, dst)
    torch.mv(matrix.reshape(dst.numel(), src.numel()), src, out=dst)
    torch.sigmoid(dst, out=dst)
    dst[-1] = BIAS
    return dst


def transfer_t(matrix: torch.Tensor, src: torch.Tensor, dst: torch.Tensor) -> torch.Tensor:
    """Hidden to visible probabilities, written into ``dst``.

    The hidden bias unit does not feed the visible side: its weight row
    is never trained, so it is left out of the sum.
    """
    check_shape(matrix, src, dst)
    rows = matrix.reshape(src.numel(), dst.numel())
    torch.mv(rows[:-1].t(), src[:-1], out=dst)
    torch.sigmoid(dst, out=dst)
    dst[-1] = BIAS
    return dst


def sample(probabilities: torch.Tensor, out: torch.Tensor,
           generator: Optional[torch.Generator] = None) -> torch.Tensor:
    """Draw +1/-1 units from their on-probabilities. ``out`` may alias ``probabilities``."""
    draws = torch.rand(probabilities.shape, generator=generator, dtype=probabilities.dtype)
    on = draws < probabilities
    out.fill_(ZERO)
    out.masked_fill_(on, BIAS)
    return out


def random_matrix(size: int, stddev: float,
                  generator: Optional[torch.Generator] = None) -> torch.Tensor:
    return torch.randn(size, generator=generator, dtype=torch.float64) * stddev


def clamp_bias(vector: torch.Tensor) -> torch.Tensor:
    vector[-1] = BIAS
    return vector


def add_bias(vector) -> torch.Tensor:
    """Copy of ``vector`` as float64 with a +1 bias unit appended."""
    vector = torch.as_tensor(vector, dtype=torch.float64).reshape(-1)
    return torch.cat([vector, vector.new_full((1,), BIAS)])


def del_bias(vector: torch.Tensor) -> torch.Tensor:
    return vector[:-1]


def _paired(a, b):
    a = torch.as_tensor(a, dtype=torch.float64).reshape(-1)
    b = torch.as_tensor(b, dtype=torch.float64).reshape(-1)
    if a.numel() != b.numel():
        raise ShapeError(f"Different length vectors: {a.numel()} and {b.numel()}")
    return a, b


def hamming_error(a, b) -> float:
    """Number of positions whose signs disagree; a zero on either side counts as a disagreement."""
    a, b = _paired(a, b)
    return float((a * b <= 0).sum().item())


def rms_error(a, b) -> float:
    """Summed squared difference, scaled so two opposite signs contribute 1."""
    a, b = _paired(a, b)
    return float((((a - b) / (BIAS - ZERO)) ** 2).sum().item())
