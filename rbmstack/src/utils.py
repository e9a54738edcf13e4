import torch
from typing import Optional

from ..constants import SEED

_NEGATIVE = ["⠁", "⠙", "⠹", "⢹", "-"]
_POSITIVE = ["⢀", "⣠", "⣰", "⣸", "+"]


def make_generator(seed: Optional[int] = SEED) -> torch.Generator:
    """Random source for weight initialization, sampling and vector selection."""
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    return generator


def braille_pattern(n: int) -> str:
    """One character for a value scaled to -4..4; larger magnitudes saturate."""
    if n == 0:
        return "▫"
    if n > 0:
        return _POSITIVE[min(n, 4)]
    return _NEGATIVE[min(-n, 4)]


def render_vector(vector) -> str:
    return "".join(braille_pattern(int(5 * float(v))) for v in vector)


def render_matrix(vector, width: int) -> str:
    """Render a flattened matrix as one line of braille per row of ``width``."""
    lines = []
    for i in range(0, len(vector), width):
        lines.append(render_vector(vector[i:i + width]))
    return "\n".join(lines)
