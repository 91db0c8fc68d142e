"""Command line interface entry points."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer

from ..config import configure_logging
from ..errors import EngineError

app = typer.Typer()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides WRE_LOG_LEVEL")
) -> None:
    """Win-rate analytics engine."""

    configure_logging(log_level)


@app.command("run")
def run(
    request_file: Path = typer.Option(..., "--request", exists=True, file_okay=True, dir_okay=False),
    out: Optional[Path] = typer.Option(None, "--out"),
) -> None:
    """Execute one ``{action, id, data}`` request file and print the response."""

    from ..api import dispatch
    from ..io import artifacts

    try:
        message = artifacts.load_request(request_file)
    except (OSError, EngineError) as exc:
        typer.echo(f"Cannot read request: {exc}")
        raise typer.Exit(2)
    response = dispatch.handle(message).to_message()
    if out is not None:
        artifacts.write_json(out, response)
    typer.echo(json.dumps(response, separators=(",", ":")))
    if not response["success"]:
        raise typer.Exit(1)


@app.command("actions")
def actions() -> None:
    """List the actions understood by the engine."""

    from ..api.dispatch import available_actions

    for name in available_actions():
        typer.echo(name)


@app.command("lookup")
def lookup(
    records: Path = typer.Option(..., "--records", exists=True, file_okay=True, dir_okay=False),
    dimension: List[str] = typer.Option(..., "--dimension"),
    max_combinations: Optional[int] = typer.Option(None, "--max-combinations"),
    min_sample_size: Optional[int] = typer.Option(None, "--min-sample-size"),
    outcome_field: str = typer.Option("won", "--outcome-field"),
    limit: int = typer.Option(20, "--limit"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write every cell to a CSV file"),
) -> None:
    """Build a win-rate lookup table from a JSON or CSV records file."""

    from ..core.dataset import load_records
    from ..io import artifacts
    from ..stats.lookup import generate

    rows = load_records(records)
    table = generate(
        rows,
        dimension,
        max_combinations=max_combinations,
        min_sample_size=min_sample_size,
        outcome_field=outcome_field,
    )
    if out is not None:
        artifacts.write_lookup_csv(out, table)
    df = artifacts.lookup_frame(table)
    top = df.sort_values("sample_size", ascending=False, kind="stable").head(limit)
    if table.pruned:
        typer.echo(f"pruned to {table.value_limit} values per dimension")
    if top.empty:
        typer.echo("No combinations available")
    else:
        typer.echo(top.to_string(index=False))


@app.command("train")
def train(
    records: Path = typer.Option(..., "--records", exists=True, file_okay=True, dir_okay=False),
    dimension: List[str] = typer.Option(..., "--dimension"),
    out: Path = typer.Option(..., "--out"),
    target_field: str = typer.Option("won", "--target-field"),
    max_iterations: int = typer.Option(500, "--max-iterations"),
    balance: Optional[str] = typer.Option(None, "--balance", help="undersample or oversample"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    rules: Optional[Path] = typer.Option(
        None, "--rules", exists=True, file_okay=True, dir_okay=False, help="JSON validation rules"
    ),
) -> None:
    """Train a win-probability model from a records file and save it as JSON."""

    from ..core.dataset import load_records
    from ..core.options import TrainingOptions
    from ..io import artifacts
    from ..stats.logistic import build_prediction_model
    from ..validate import ensure_valid

    rows = load_records(records)
    if rules is not None:
        try:
            ensure_valid(rows, artifacts.read_json(rules))
        except EngineError as exc:
            for problem in exc.context.get("errors", [str(exc)]):
                typer.echo(problem)
            raise typer.Exit(1)

    model = build_prediction_model(
        rows,
        dimension,
        target_field=target_field,
        training_options=TrainingOptions(max_iterations=max_iterations, seed=seed),
        balance=balance,
        rng=seed,
    )
    artifacts.write_json(out, model.to_dict())
    summary = {
        "converged": model.converged,
        "iterations": model.iterations,
        "split": model.performance_split,
        "accuracy": model.performance.get("accuracy"),
    }
    typer.echo(json.dumps(summary, separators=(",", ":")))


@app.command("score")
def score(
    model_file: Path = typer.Option(..., "--model", exists=True, file_okay=True, dir_okay=False),
    records: Path = typer.Option(..., "--records", exists=True, file_okay=True, dir_okay=False),
) -> None:
    """Score every record in a file against a saved model."""

    from ..core.dataset import load_records
    from ..io import artifacts
    from ..predict.service import batch_score

    model = artifacts.load_model(model_file)
    rows = load_records(records)
    result = batch_score(model, rows)
    for row, prediction in zip(rows, result["predictions"]):
        typer.echo(f"{row.get('id', '-')}\t{prediction.probability:.4f}\t{prediction.category}")
    typer.echo(json.dumps(result["summary"], separators=(",", ":")))


if __name__ == "__main__":
    app()
