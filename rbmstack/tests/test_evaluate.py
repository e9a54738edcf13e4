"""Tests for the training and inference entry points."""
from unittest.mock import patch

import numpy as np
import pytest
import torch

from rbmstack.src.evaluate import error, evaluate_reconstruction, mean_error, reconstruct
from rbmstack.src.matrix import ShapeError
from rbmstack.src.stack import StackedRBM
from rbmstack.src.train import train_stack

VECTORS = [
    np.array([1., 1., -1., -1.]),
    np.array([-1., -1., 1., 1.]),
]


class TestTrainStack:
    """Tests for the training entry point."""

    def test_returns_weights_and_error(self):
        """Training returns one matrix per layer and a scalar error."""
        weights, average = train_stack(
            4, [3, 2], VECTORS, rate=0.01, rounds=64,
            generator=torch.Generator().manual_seed(1)
        )
        assert [len(w) for w in weights] == [4 * 5, 3 * 4]
        assert isinstance(average, float)
        assert 0.0 <= average <= 4.0

    def test_progress_is_called(self):
        """The progress collaborator receives step updates."""
        calls = []
        train_stack(
            4, [3], VECTORS, rate=0.01, rounds=600,
            progress=lambda step, total: calls.append((step, total)) or False,
            generator=torch.Generator().manual_seed(1)
        )
        assert calls == [(0, 600), (512, 600)]


class TestInferenceEntryPoints:
    """Tests for reconstruct and error on persisted weights."""

    @pytest.fixture
    def weights(self):
        return StackedRBM.random(4, [3], generator=torch.Generator().manual_seed(2)).weights()

    def test_reconstruct(self, weights):
        """Reconstruction returns a sign vector of the visible width."""
        out = reconstruct(weights, 4, VECTORS[0], generator=torch.Generator().manual_seed(3))
        assert out.shape == (4,)
        assert set(out.tolist()) <= {1.0, -1.0}

    def test_error(self, weights):
        """Error averages over the vectors."""
        value = error(weights, 4, VECTORS, generator=torch.Generator().manual_seed(3))
        assert 0.0 <= value <= 4.0

    def test_error_wrong_visible_width(self, weights):
        """Weights that don't fit the visible width fail."""
        with pytest.raises(ShapeError):
            error(weights, 5, VECTORS)

    def test_mean_error_of_nothing(self, weights):
        """No vectors means no error."""
        assert mean_error(StackedRBM.from_weights(4, weights), []) == 0.0

    def test_evaluate_reconstruction_keys(self, weights):
        """The report carries error, Hamming and RMS measures."""
        stack = StackedRBM.from_weights(4, weights, torch.Generator().manual_seed(4))
        report = evaluate_reconstruction(stack, VECTORS)
        assert set(report) == {'error', 'hamming', 'rms'}
        assert 0.0 <= report['hamming'] <= 4.0

    def test_evaluate_reconstruction_reuses_errors(self, weights):
        """Errors already computed are averaged instead of estimated again."""
        stack = StackedRBM.from_weights(4, weights, torch.Generator().manual_seed(4))
        with patch.object(StackedRBM, "error", side_effect=AssertionError("estimated again")):
            report = evaluate_reconstruction(stack, VECTORS, errors=[1.0, 2.0])
        assert report['error'] == pytest.approx(1.5)
