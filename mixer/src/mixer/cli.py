"""
Command-line interface for the coinjoin output mixer.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger
from pydantic import ValidationError

from mixer.config import MixerConfig, Settings, get_settings
from mixer.decomposer import DecompositionError
from mixer.mixer import Mixer, summarize_round

app = typer.Typer(
    name="cj-mixer",
    help="Coinjoin output decomposition - Split participants' inputs into denominations",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_grouped_inputs(source: str) -> list[list[int]]:
    """
    Load participants' input values from a JSON file, or stdin when source is "-".

    The document must be a list with one list of satoshi amounts per participant.

    Raises:
        ValueError: If the document is missing or malformed
    """
    if source == "-":
        raw = sys.stdin.read()
    else:
        path = Path(source)
        if not path.exists():
            raise ValueError(f"Input file not found: {path}")
        raw = path.read_text()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON input: {e}") from e

    if not isinstance(data, list) or not all(isinstance(group, list) for group in data):
        raise ValueError("Input must be a JSON list of lists of satoshi amounts")

    groups: list[list[int]] = []
    for group in data:
        for value in group:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"Invalid input amount: {value!r}")
        groups.append(list(group))
    return groups


def load_settings(log_level: str | None) -> Settings:
    """Load environment settings and configure logging, exiting on invalid settings."""
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging(log_level or "INFO")
        logger.error(f"Invalid settings: {e}")
        raise typer.Exit(1)

    setup_logging(log_level or settings.log_level)
    return settings


def build_config(
    settings: Settings,
    fee_rate: float | None,
    min_output: int | None,
    max_output: int | None,
    no_taproot: bool,
    seed: int | None,
) -> MixerConfig:
    """Merge command-line options over environment settings."""
    return settings.to_config(
        fee_rate=fee_rate,
        min_allowed_output_amount=min_output,
        max_allowed_output_amount=max_output,
        is_taproot_allowed=False if no_taproot else None,
        seed=seed,
    )


@app.command()
def mix(
    input_file: Annotated[
        str, typer.Argument(help="JSON file with input amounts per participant ('-' for stdin)")
    ],
    fee_rate: Annotated[
        float | None, typer.Option("--fee-rate", "-r", help="Fee rate in sat/vB")
    ] = None,
    min_output: Annotated[
        int | None, typer.Option("--min-output", help="Minimum output amount in sats")
    ] = None,
    max_output: Annotated[
        int | None, typer.Option("--max-output", help="Maximum output amount in sats")
    ] = None,
    no_taproot: Annotated[
        bool, typer.Option("--no-taproot", help="Only produce P2WPKH outputs")
    ] = False,
    seed: Annotated[
        int | None, typer.Option("--seed", "-s", help="Random seed for a reproducible round")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", "-l", help="Log level")
    ] = None,
) -> None:
    """Decompose every participant's inputs and print the outputs as JSON."""
    settings = load_settings(log_level)

    try:
        grouped_inputs = load_grouped_inputs(input_file)
        config = build_config(settings, fee_rate, min_output, max_output, no_taproot, seed)
    except (ValueError, ValidationError) as e:
        logger.error(str(e))
        raise typer.Exit(1)

    mixer = Mixer.from_config(config)
    try:
        outputs = list(mixer.complete_mix(grouped_inputs))
    except DecompositionError as e:
        logger.error(f"Decomposition failed: {e}")
        raise typer.Exit(1)

    summary = summarize_round(grouped_inputs, outputs, mixer.leftovers)
    logger.info(
        f"Round complete: {summary.output_count} outputs, "
        f"{summary.distinct_output_values} distinct values, "
        f"{summary.shared_output_ratio:.0%} shared, leftover {summary.total_leftover} sats"
    )

    result: dict[str, Any] = {
        "outputs": outputs,
        "leftovers": list(mixer.leftovers),
        "summary": summary.model_dump(),
    }
    typer.echo(json.dumps(result, indent=2))


@app.command()
def denominations(
    fee_rate: Annotated[
        float | None, typer.Option("--fee-rate", "-r", help="Fee rate in sat/vB")
    ] = None,
    min_output: Annotated[
        int | None, typer.Option("--min-output", help="Minimum output amount in sats")
    ] = None,
    max_output: Annotated[
        int | None, typer.Option("--max-output", help="Maximum output amount in sats")
    ] = None,
    no_taproot: Annotated[
        bool, typer.Option("--no-taproot", help="Only produce P2WPKH outputs")
    ] = False,
    seed: Annotated[
        int | None, typer.Option("--seed", "-s", help="Random seed for script kinds")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", "-l", help="Log level")
    ] = None,
) -> None:
    """Print the round's denomination catalog."""
    settings = load_settings(log_level)

    try:
        config = build_config(settings, fee_rate, min_output, max_output, no_taproot, seed)
    except ValidationError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    mixer = Mixer.from_config(config)
    for denom in mixer.denominations:
        typer.echo(
            f"{denom.amount:>15,} sats  {denom.script_type.value:<8} "
            f"fee={denom.fee:<6} effective_cost={denom.effective_cost:,}"
        )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
