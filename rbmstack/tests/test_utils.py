"""Tests for random sources and vector rendering."""
import torch

from rbmstack.src.utils import braille_pattern, make_generator, render_matrix, render_vector


class TestMakeGenerator:
    """Tests for random source construction."""

    def test_seeded_generators_agree(self):
        """Two generators with the same seed produce the same stream."""
        a = torch.rand(5, generator=make_generator(42))
        b = torch.rand(5, generator=make_generator(42))
        assert torch.equal(a, b)

    def test_different_seeds_differ(self):
        """Different seeds produce different streams."""
        a = torch.rand(5, generator=make_generator(42))
        b = torch.rand(5, generator=make_generator(123))
        assert not torch.equal(a, b)


class TestBraille:
    """Tests for the braille rendering of weights."""

    def test_zero(self):
        assert braille_pattern(0) == "▫"

    def test_saturates(self):
        """Magnitudes above four share the last glyph."""
        assert braille_pattern(9) == braille_pattern(4) == "+"
        assert braille_pattern(-9) == braille_pattern(-4) == "-"

    def test_render_vector_scales_by_five(self):
        """Values are scaled by five and truncated."""
        assert render_vector([0.0, 0.2, -0.2, 1.0]) == "▫⣠⠙+"

    def test_render_matrix_rows(self):
        """A flattened matrix is split into rows of the given width."""
        assert render_matrix([0.0, 1.0, -1.0, 0.0], 2) == "▫+\n-▫"
