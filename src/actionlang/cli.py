"""CLI entry point: show, check, explain, run, trace."""

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from actionlang import __version__
from actionlang.checker import check
from actionlang.config import load_config
from actionlang.errors import ActionLangError, ExecutionFailure
from actionlang.ir import ActionTree
from actionlang.runtime.builtins.console import display
from actionlang.runtime.engine import ExecutionEngine

app = typer.Typer(
    name="actionlang",
    help="actionlang: validate and execute Action trees (show, check, run).",
)


def _trace_path(path: Path) -> Path:
    return path.with_suffix(path.suffix + ".trace.jsonl")


def _load_tree(path: Path) -> ActionTree:
    if not path.exists():
        typer.echo(f"Error: file not found: {path}", err=True)
        raise typer.Exit(1)
    try:
        return ActionTree.from_json(path.read_text())
    except (ValueError, KeyError, ActionLangError) as e:
        typer.echo(f"Error: cannot load {path}: {e}", err=True)
        raise typer.Exit(1)


@app.command("show")
def show_cmd(file: Path = typer.Argument(..., help="Action tree JSON file")):
    """Load a tree and print its size."""
    tree = _load_tree(file)
    typer.echo(f"Loaded {tree.count_actions()} actions.")
    typer.echo(f"  max depth: {tree.max_depth()}")
    for action_type in sorted(tree.used_action_types()):
        typer.echo(f"  - {action_type}")


@app.command("check")
def check_cmd(file: Path = typer.Argument(..., help="Action tree JSON file")):
    """Validate the tree and check that the engine can execute every node."""
    tree = _load_tree(file)
    try:
        check(tree)
        typer.echo("OK")
    except ActionLangError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)


@app.command("explain")
def explain_cmd(file: Path = typer.Argument(..., help="Action tree JSON file")):
    """Print the tree as an indented outline."""
    tree = _load_tree(file)
    typer.echo(tree.print_tree())


@app.command("run")
def run_cmd(
    file: Path = typer.Argument(..., help="Action tree JSON file"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML engine configuration"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr"),
):
    """Check and execute the tree, printing captured output and the result."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    tree = _load_tree(file)
    try:
        engine_config = load_config(config)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: bad config: {e}", err=True)
        raise typer.Exit(1)
    try:
        check(tree)
    except ActionLangError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)

    engine = ExecutionEngine(config=engine_config)
    failure: Optional[ExecutionFailure] = None
    value = None
    try:
        value = engine.execute(tree)
    except ExecutionFailure as e:
        failure = e
    finally:
        with open(_trace_path(file), "w") as f:
            for record in engine.get_output():
                f.write(json.dumps(record.to_dict()) + "\n")

    for record in engine.get_output():
        typer.echo(record.text)
    if failure is not None:
        typer.echo(f"Runtime error [{failure.kind}] at {failure.node_id or '?'}: {failure.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Result: {display(value)}")


@app.command("trace")
def trace_cmd(file: Path = typer.Argument(..., help="Action tree JSON file")):
    """Show the output log of the last run of this tree."""
    trace_path = _trace_path(file)
    if not trace_path.exists():
        typer.echo(f"No trace found: {trace_path}", err=True)
        raise typer.Exit(1)
    for line in trace_path.read_text().strip().split("\n"):
        if line:
            record = json.loads(line)
            typer.echo(f"[{record['kind']}] {record['text']}")


@app.command("version")
def version_cmd():
    """Print the package version."""
    typer.echo(__version__)


@app.callback()
def main():
    """actionlang: tree-walking execution of UI-behaviour Action trees."""
    pass


if __name__ == "__main__":
    app()
