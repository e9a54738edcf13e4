"""Tests for the command line actions."""
import numpy as np
import pytest

from rbmstack.main import build_parser, load_config, main, parse_widths
from rbmstack.src.data_loader import read_array_file, write_array_file

VECTORS = [
    np.array([1., 1., -1., -1.]),
    np.array([-1., -1., 1., 1.]),
    np.array([1., -1., 1., -1.]),
]


@pytest.fixture
def vectors_path(tmp_path):
    path = str(tmp_path / "vectors.txt")
    write_array_file(path, VECTORS)
    return path


@pytest.fixture
def weights_path(tmp_path, vectors_path):
    path = str(tmp_path / "weights.flt")
    assert main(["train", vectors_path, path, "--hidden", "3,2", "--rounds", "50"]) == 0
    return path


class TestParser:
    """Tests for argument parsing and configuration."""

    def test_config_has_training_defaults(self):
        """The packaged config provides training defaults."""
        config = load_config()
        assert config['training']['hidden'] == [2]
        assert config['seed'] == 1

    def test_defaults_come_from_config(self):
        """Options not given on the command line fall back to the config."""
        args = build_parser({'training': {'rounds': 7, 'rate': 0.5}}).parse_args(["train", "v.txt"])
        assert args.rounds == 7
        assert args.rate == 0.5
        assert args.weights is None

    def test_parse_widths(self):
        """Hidden widths are comma separated."""
        assert parse_widths("64,32") == [64, 32]

    @pytest.mark.parametrize("text", ["", "a,b", "3,0"])
    def test_parse_widths_rejects_bad_input(self, text):
        """Empty, non-numeric and non-positive widths are rejected."""
        import argparse
        with pytest.raises(argparse.ArgumentTypeError):
            parse_widths(text)

    def test_action_is_required(self):
        """Running without an action is a usage error."""
        with pytest.raises(SystemExit):
            build_parser({}).parse_args([])


class TestTrain:
    """Tests for the train action."""

    def test_writes_weights(self, weights_path):
        """Trained weights are written with one matrix per layer."""
        weights = read_array_file(weights_path)
        assert [len(w) for w in weights] == [4 * 5, 3 * 4]

    def test_same_seed_same_weights(self, tmp_path, vectors_path):
        """Training is reproducible for a fixed seed."""
        paths = [str(tmp_path / f"w{i}.flt") for i in range(2)]
        for path in paths:
            assert main(["train", vectors_path, path, "--hidden", "3", "--rounds", "30", "--seed", "9"]) == 0
        a, b = (read_array_file(p) for p in paths)
        assert np.array_equal(a[0], b[0])

    def test_without_output_prints_tsv(self, capsys, vectors_path):
        """Without an output path the weights go to stdout as text."""
        assert main(["train", vectors_path, "--hidden", "2", "--rounds", "10"]) == 0
        lines = capsys.readouterr().out.strip().split("\n")
        assert len(lines) == 1
        assert len(lines[0].split("\t")) == 3 * 5

    def test_multi_layer_text_weights_fail(self, tmp_path, vectors_path):
        """A multi-layer stack can't be saved as text and nothing is written."""
        path = tmp_path / "weights.tsv"
        assert main(["train", vectors_path, str(path), "--hidden", "3,2", "--rounds", "10"]) == 1
        assert not path.exists()

    def test_missing_vectors_fails(self, tmp_path):
        """A missing vector file is reported with a nonzero status."""
        assert main(["train", str(tmp_path / "none.txt"), "--rounds", "1"]) == 1

    def test_width_mismatch_fails(self, vectors_path):
        """A --visible that disagrees with the vectors is an error."""
        assert main(["train", vectors_path, "--visible", "5", "--rounds", "1"]) == 1


class TestInferenceActions:
    """Tests for actions that use persisted weights."""

    def test_error(self, capsys, vectors_path, weights_path):
        """error prints one line per vector and the averages."""
        assert main(["error", vectors_path, weights_path]) == 0
        out = capsys.readouterr().out
        assert out.count("Average error of example") == 3
        assert "Hamming:" in out

    def test_reconstruct_to_stdout(self, capsys, vectors_path, weights_path):
        """Reconstructions are printed as sign rows."""
        assert main(["reconstruct", weights_path, vectors_path]) == 0
        lines = capsys.readouterr().out.strip().split("\n")
        assert len(lines) == 3
        assert all(len(line) == 4 and set(line) <= {"0", "1"} for line in lines)

    def test_reconstruct_to_file(self, tmp_path, vectors_path, weights_path):
        """Reconstructions can be written in any array format."""
        output = str(tmp_path / "out.sgn")
        assert main(["reconstruct", weights_path, vectors_path, output]) == 0
        assert len(read_array_file(output)) == 3

    def test_sampleup(self, capsys, vectors_path, weights_path):
        """sampleup prints the requested number of top samples per vector."""
        assert main(["sampleup", weights_path, vectors_path, "--samples", "4"]) == 0
        lines = capsys.readouterr().out.strip().split("\n")
        assert len(lines) == 3 * 4
        assert all(len(line) == 2 for line in lines)

    def test_sampledown(self, capsys, weights_path):
        """sampledown prints samples for every top hidden unit."""
        assert main(["sampledown", weights_path, "--visible", "4", "--samples", "3", "--gibbs", "1"]) == 0
        lines = capsys.readouterr().out.strip().split("\n")
        assert len(lines) == 2 * 3
        assert all(len(line) == 4 for line in lines)

    def test_sampledown_needs_visible(self, weights_path):
        """Without --visible the weights can't be interpreted."""
        assert main(["sampledown", weights_path]) == 1

    def test_show(self, capsys, weights_path):
        """show renders every layer with its norm."""
        assert main(["show", weights_path, "--visible", "4"]) == 0
        out = capsys.readouterr().out
        assert "Layer 0: 4 visible, 3 hidden" in out
        assert "Layer 1: 3 visible, 2 hidden" in out

    def test_missing_weights_fails(self, tmp_path, vectors_path):
        """A missing weights file gives a nonzero status."""
        assert main(["error", vectors_path, str(tmp_path / "none.flt")]) == 1

    def test_corrupt_weights_fail(self, tmp_path, vectors_path):
        """A malformed weights file gives a nonzero status."""
        path = tmp_path / "bad.tsv"
        path.write_bytes(b"1\t2\nx\t3\n")
        assert main(["error", vectors_path, str(path)]) == 1
