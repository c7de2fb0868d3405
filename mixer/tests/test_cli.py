"""
Tests for the cj-mixer command line.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mixer.cli import app, load_grouped_inputs

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run from an empty directory so no .env file is picked up."""
    monkeypatch.chdir(tmp_path)


def write_inputs(path: Path, data: object) -> str:
    path.write_text(json.dumps(data))
    return str(path)


class TestLoadGroupedInputs:
    """Tests for reading participants' inputs."""

    def test_valid(self, tmp_path: Path) -> None:
        source = write_inputs(tmp_path / "round.json", [[100_062], [50_000, 60_000]])

        assert load_grouped_inputs(source) == [[100_062], [50_000, 60_000]]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="not found"):
            load_grouped_inputs(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "round.json"
        path.write_text("[[1, 2")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_grouped_inputs(str(path))

    @pytest.mark.parametrize(
        "data",
        [
            {"inputs": [1]},
            [1, 2],
            [[1.5]],
            [[-1]],
            [[True]],
            [["100"]],
        ],
    )
    def test_invalid_structure(self, tmp_path: Path, data: object) -> None:
        source = write_inputs(tmp_path / "round.json", data)

        with pytest.raises(ValueError):
            load_grouped_inputs(source)


class TestMixCommand:
    """Tests for the mix command."""

    def test_mix(self, tmp_path: Path) -> None:
        source = write_inputs(tmp_path / "round.json", [[100_062], [100_062]])

        result = runner.invoke(
            app,
            ["mix", source, "--no-taproot", "--seed", "1", "--log-level", "ERROR"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["outputs"] == [[100_000], [100_000]]
        assert payload["leftovers"] == [0, 0]
        assert payload["summary"]["shared_output_count"] == 2

    def test_mix_from_stdin(self) -> None:
        result = runner.invoke(
            app,
            ["mix", "-", "--no-taproot", "--seed", "1", "--log-level", "ERROR"],
            input="[[100062], [100062]]",
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["outputs"] == [[100_000], [100_000]]

    def test_invalid_input_file(self, tmp_path: Path) -> None:
        path = tmp_path / "round.json"
        path.write_text("not json")

        result = runner.invoke(app, ["mix", str(path), "--log-level", "CRITICAL"])

        assert result.exit_code == 1

    def test_invalid_bounds(self, tmp_path: Path) -> None:
        source = write_inputs(tmp_path / "round.json", [[100_062]])

        result = runner.invoke(
            app,
            [
                "mix",
                source,
                "--min-output",
                "10000",
                "--max-output",
                "5000",
                "--log-level",
                "CRITICAL",
            ],
        )

        assert result.exit_code == 1

    def test_insufficient_funds(self, tmp_path: Path) -> None:
        source = write_inputs(tmp_path / "round.json", [[10]])

        result = runner.invoke(app, ["mix", source, "--log-level", "CRITICAL"])

        assert result.exit_code == 1

    def test_invalid_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """A malformed setting in the environment exits cleanly instead of crashing."""
        monkeypatch.setenv("MIXER_FEE_RATE", "not-a-number")
        source = write_inputs(tmp_path / "round.json", [[100_062], [100_062]])

        result = runner.invoke(app, ["mix", source, "--log-level", "CRITICAL"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)


class TestDenominationsCommand:
    """Tests for the denominations command."""

    def test_lists_catalog(self) -> None:
        result = runner.invoke(
            app,
            [
                "denominations",
                "--min-output",
                "5000",
                "--max-output",
                "10000",
                "--no-taproot",
                "--log-level",
                "ERROR",
            ],
        )

        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        # 10000, 8192, 6561, 5000
        assert len(lines) == 4
        assert lines[0].split()[0] == "10,000"
        assert all("p2wpkh" in line for line in lines)

    def test_invalid_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MIXER_MAX_SEARCH_NODES", "many")

        result = runner.invoke(app, ["denominations", "--log-level", "CRITICAL"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
