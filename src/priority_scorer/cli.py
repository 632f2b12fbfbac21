"""CLI for the Test Priority Scorer.

Provides command-line interface for scoring scanned functions and
components and bucketing them into test priorities P0-P3.
"""

import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .combiner import CombinedScore
from .config import ScoringConfig, load_config, validate_config
from .dependency_graph import build_dependency_graph
from .engine import (
    ScoringEngine,
    load_coverage_summary,
    load_git_signals,
    load_imports,
    load_metrics,
    load_targets,
    read_json,
)
from .errors import ConfigError, InputError
from .logging_config import setup_logging
from .report import read_existing_status, render_csv, render_markdown, sort_by_score, summarize
from .schema import Priority, ScoredTarget, ScoringResult
from .utils import normalize_path

console = Console()

PRIORITY_COLORS = {
    "P0": "bold red",
    "P1": "yellow",
    "P2": "cyan",
    "P3": "dim",
}


@click.group()
@click.version_option(version="1.0.0", prog_name="priority-scorer")
def main():
    """Test Priority Scorer.

    Scores every scanned function and component from complexity, git
    history, dependency graph, coverage and business hints, and buckets
    them into test priorities P0 (must test) to P3 (low priority).
    """
    pass


def input_options(func):
    """Options shared by the commands that score targets."""
    options = [
        click.option("--targets", "-t", required=True, type=click.Path(exists=True),
                     help="Path to the scanner's targets JSON"),
        click.option("--metrics", "-m", required=True, type=click.Path(exists=True),
                     help="Path to complexity metrics JSON keyed by path#name"),
        click.option("--cognitive", type=click.Path(exists=True),
                     help="Path to cognitive complexity JSON keyed by path#name"),
        click.option("--git", "-g", "git_path", type=click.Path(exists=True),
                     help="Path to git signals JSON keyed by file path"),
        click.option("--coverage", type=click.Path(exists=True),
                     help="Path to a coverage summary JSON"),
        click.option("--imports", type=click.Path(exists=True),
                     help="Path to import specifiers JSON keyed by file path"),
        click.option("--config", "-c", "config_path", type=click.Path(exists=True),
                     help="Path to the scoring config (default: discovered)"),
        click.option("--verbose", "-v", is_flag=True, help="Show detailed output and debug logs"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_engine(
    config_path: Optional[str],
    imports: Optional[str],
) -> ScoringEngine:
    """Load the config and dependency graph and create the engine."""
    config = load_config(config_path)
    graph = build_dependency_graph(load_imports(imports), config.dep_graph) if imports else None
    return ScoringEngine(config, graph)


def load_inputs(
    targets: str,
    metrics: str,
    cognitive: Optional[str],
    git_path: Optional[str],
    coverage: Optional[str],
) -> dict[str, Any]:
    return {
        "targets": load_targets(targets),
        "metrics": load_metrics(metrics, cognitive),
        "git_signals": load_git_signals(git_path) if git_path else {},
        "coverage_summary": load_coverage_summary(coverage) if coverage else None,
    }


def print_error(e: Exception):
    console.print(f"[red]Error: {escape(str(e))}[/red]")
    if isinstance(e, ConfigError):
        for issue in e.issues:
            console.print(f"  - {escape(issue)}")


@main.command("score")
@input_options
@click.option("--out-md", type=click.Path(), help="Write the Markdown report here (keeps DONE/SKIP marks)")
@click.option("--out-csv", type=click.Path(), help="Write the CSV report here")
@click.option("--out", "-o", type=click.Path(), help="Output file for JSON results")
@click.option("--json-output", "-j", is_flag=True, help="Output raw JSON instead of formatted text")
@click.option("--strict", is_flag=True, help="Fail on the first target that cannot be scored")
@click.option("--top", "-n", default=10, type=int, help="Number of top targets to display")
def score_cmd(
    targets: str,
    metrics: str,
    cognitive: Optional[str],
    git_path: Optional[str],
    coverage: Optional[str],
    imports: Optional[str],
    config_path: Optional[str],
    verbose: bool,
    out_md: Optional[str],
    out_csv: Optional[str],
    out: Optional[str],
    json_output: bool,
    strict: bool,
    top: int,
):
    """Score targets and write the priority reports.

    Examples:
        priority-scorer score -t targets.json -m metrics.json --out-md reports/ut_scores.md
        priority-scorer score -t targets.json -m metrics.json -g git.json --coverage coverage-summary.json
        priority-scorer score -t targets.json -m metrics.json -j
    """
    setup_logging("DEBUG" if verbose else "WARNING", dev_mode=verbose)

    try:
        engine = build_engine(config_path, imports)
        inputs = load_inputs(targets, metrics, cognitive, git_path, coverage)

        if json_output:
            result = engine.score(**inputs, strict=strict)
        else:
            console.print(f"\n[bold blue]Test Priority Scorer[/bold blue]")
            console.print(f"Targets: {targets} ({len(inputs['targets'])} targets)")
            console.print(f"Mode: {engine.config.scoring_mode}")
            console.print()
            with console.status("Scoring targets..."):
                result = engine.score(**inputs, strict=strict)

        status_map = read_existing_status(out_md)
        if out_md:
            write_text(out_md, render_markdown(result.scored, status_map))
        if out_csv:
            write_text(out_csv, render_csv(result.scored, status_map))

        if json_output:
            output_json(result, out)
        else:
            display_result(result, top, verbose)
            if out:
                output_json(result, out)
            for path in (out_md, out_csv, out):
                if path:
                    console.print(f"[green]Results saved to {path}[/green]")

    except Exception as e:
        print_error(e)
        sys.exit(1)


@main.command("explain")
@input_options
@click.option("--key", "-k", required=True, help="Target to explain, as path#name")
def explain_cmd(
    targets: str,
    metrics: str,
    cognitive: Optional[str],
    git_path: Optional[str],
    coverage: Optional[str],
    imports: Optional[str],
    config_path: Optional[str],
    verbose: bool,
    key: str,
):
    """Show how one target's score was built.

    Example:
        priority-scorer explain -t targets.json -m metrics.json -k "src/pay/calc.ts#calculateTotal"
    """
    setup_logging("DEBUG" if verbose else "WARNING", dev_mode=verbose)

    try:
        engine = build_engine(config_path, imports)
        inputs = load_inputs(targets, metrics, cognitive, git_path, coverage)

        target = next((t for t in inputs["targets"] if t.key == key), None)
        if target is None:
            raise InputError(f"Target not found: {key}")

        scored, combined = engine.explain(
            target,
            inputs["metrics"].get(target.key),
            inputs["git_signals"].get(normalize_path(target.path)),
            inputs["coverage_summary"],
        )
        display_breakdown(scored, combined, engine.config)

    except Exception as e:
        print_error(e)
        sys.exit(1)


@main.command("validate")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(),
    help="Path to the scoring config (default: discovered)"
)
def validate_cmd(config_path: Optional[str]):
    """Validate a scoring config file.

    Examples:
        priority-scorer validate
        priority-scorer validate -c ai-test.config.jsonc
    """
    label = config_path or "discovered config"
    try:
        config = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]✗ Config invalid: {label}[/red]")
        console.print(f"  - {escape(e.message)}")
        for issue in e.issues:
            console.print(f"  - {escape(issue)}")
        sys.exit(1)

    issues = validate_config(config)
    if issues:
        console.print(f"[red]✗ Config invalid: {label}[/red]")
        for issue in issues:
            console.print(f"  - {escape(issue)}")
        sys.exit(1)

    console.print(f"[green]✓ Config valid: {label}[/green]")
    console.print(f"  Mode: {config.scoring_mode}")
    if config.layers:
        console.print(f"  Layers: {', '.join(config.layers)}")
    sys.exit(0)


@main.command("init-config")
@click.option(
    "--out", "-o",
    type=click.Path(),
    default="ai-test.config.jsonc",
    help="Output path for the configuration file (.jsonc, .json or .yaml)"
)
@click.option(
    "--force", "-f",
    is_flag=True,
    help="Overwrite existing config file"
)
def init_config_cmd(out: str, force: bool):
    """Generate a default scoring configuration file.

    Example:
        priority-scorer init-config --out ai-test.config.jsonc
    """
    from .config import CONFIG_ENV_VAR, DEFAULT_CONFIG_NAMES, save_default_config

    out_path = Path(out)
    if out_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists: {out}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        save_default_config(out_path)
        console.print(f"[green]✓[/green] Config file created: {out}")
        console.print("\nThis file configures:")
        console.print("  • weights / thresholds - Legacy scoring and P0-P2 cut points")
        console.print("  • layers - Per-layer weights, thresholds and path patterns")
        console.print("  • bcKeywords / impactKeywords / likelihoodRules / erMatrix - Signal tables")
        console.print("  • overrides - Per-function overrides keyed by path#name")
        console.print("\nThe scorer will look for config in this order:")
        console.print(f"  1. {CONFIG_ENV_VAR} environment variable")
        for i, name in enumerate(DEFAULT_CONFIG_NAMES, 2):
            console.print(f"  {i}. ./{name}")
        console.print(f"  {len(DEFAULT_CONFIG_NAMES) + 2}. ~/.config/priority-scorer/config.yaml")
    except Exception as e:
        console.print(f"[red]Error creating config:[/red] {e}")
        sys.exit(1)


@main.command("apply-suggestions")
@click.option(
    "--response", "-r",
    required=True,
    type=click.Path(exists=True),
    help="Path to the AI analysis response JSON"
)
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(),
    default="ai-test.config.jsonc",
    help="Config file to write the suggestions into"
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Validate and show the suggestions without writing"
)
def apply_suggestions_cmd(response: str, config_path: str, dry_run: bool):
    """Validate AI suggestions and store them in the config.

    Only suggestions that pass the confidence and format checks are kept.
    Other config values are left as they were, but the file is rewritten
    as plain JSON or YAML, so its comments are dropped.

    Example:
        priority-scorer apply-suggestions -r reports/ai_response.json -c ai-test.config.jsonc
    """
    from .config import write_suggestions
    from .overlay import validate_suggestions

    try:
        suggestions = validate_suggestions(read_json(response))

        table = Table(show_header=True, header_style="bold")
        table.add_column("Category", style="cyan")
        table.add_column("Pattern")
        table.add_column("Value", justify="right")
        table.add_column("Confidence", justify="right")
        for category, items, field in (
            ("Business critical", suggestions.business_critical_paths, "suggested_bc"),
            ("High risk", suggestions.high_risk_modules, "suggested_er"),
            ("Testability", suggestions.testability_adjustments, "adjustment"),
        ):
            for item in items:
                table.add_row(category, item.pattern, str(getattr(item, field)), f"{item.confidence:.2f}")

        console.print(f"\n[bold]Accepted Suggestions ({suggestions.total()}):[/bold]\n")
        console.print(table)

        if dry_run:
            console.print("\n[dim]Dry run, config not modified[/dim]")
            return

        write_suggestions(Path(config_path), suggestions)
        console.print(f"\n[green]✓[/green] Suggestions written to {config_path}")

    except Exception as e:
        print_error(e)
        sys.exit(1)


def write_text(path: str, content: str):
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(content)


def display_result(result: ScoringResult, top: int, verbose: bool):
    """Display scoring result in formatted text."""
    counts = summarize(result.scored)
    console.print(Panel(
        f"Scored: [bold]{len(result.scored)}[/bold] | Failed: {len(result.failures)}\n\n"
        + "\n".join(
            f"[{PRIORITY_COLORS[p.value]}]{p.value}[/{PRIORITY_COLORS[p.value]}] "
            f"({p.label}): {counts[p.value]}"
            for p in Priority
        ),
        title="Scoring Summary",
    ))

    ranked = sort_by_score(result.scored)
    if ranked:
        console.print(f"\n[bold]Top {min(top, len(ranked))} Targets:[/bold]\n")

        table = Table(show_header=True, header_style="bold")
        table.add_column("Priority", no_wrap=True)
        table.add_column("Score", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Layer")
        table.add_column("Path")
        if verbose:
            for column in ("BC", "CC", "ER", "Test", "Deps", "Cov"):
                table.add_column(column, justify="right")

        for r in ranked[:top]:
            color = PRIORITY_COLORS[r.priority]
            row = [f"[{color}]{r.priority}[/{color}]", f"{r.score:.2f}", r.name, r.layer_name or r.layer, r.path]
            if verbose:
                row += [
                    str(r.bc), str(r.cc), str(r.er), str(r.testability), str(r.dependency_count),
                    "N/A" if r.coverage_score is None else str(r.coverage_score),
                ]
            table.add_row(*row)

        console.print(table)

        if len(ranked) > top:
            console.print(f"\n[dim]... and {len(ranked) - top} more[/dim]")

    if result.failures:
        console.print(f"\n[yellow]⚠ {len(result.failures)} targets could not be scored[/yellow]")
        for failure in result.failures:
            console.print(f"  [dim]• {failure.key}: {failure.error}[/dim]")


def display_breakdown(scored: ScoredTarget, combined: CombinedScore, config: ScoringConfig):
    """Display the per-signal breakdown of one target."""
    color = PRIORITY_COLORS[scored.priority]
    tree = Tree(
        f"[bold cyan]{scored.name}[/bold cyan] "
        f"[{color}]{scored.priority}[/{color}] [bold]{scored.score:.2f}[/bold]"
    )

    identity = tree.add("[bold]Target[/bold]")
    identity.add(f"Path: {scored.path}")
    identity.add(f"Type: {scored.type}")
    identity.add(f"Layer: {scored.layer}" + (f" ({scored.layer_name})" if scored.layer_name else ""))

    signals = tree.add("[bold]Signals[/bold]")
    signals.add(f"BC: {scored.bc}")
    signals.add(f"CC: {scored.cc}")
    signals.add(f"ER: {scored.er} (likelihood {scored.likelihood}, impact {scored.impact})")
    signals.add(f"ROI: {scored.roi}")
    signals.add(f"Testability: {scored.testability}")
    signals.add(f"Dependency count: {scored.dependency_count}")
    if scored.coverage_pct is not None:
        signals.add(f"Coverage: {scored.coverage_pct:.1f}% (score {scored.coverage_score})")
    elif scored.coverage_score is not None:
        signals.add(f"Coverage: N/A (score {scored.coverage_score})")

    mode = "layered" if combined.layered else "legacy"
    terms = tree.add(f"[bold]Weighted terms ({mode})[/bold]")
    for name, value in combined.terms.items():
        terms.add(f"{name}: {value:.2f}")
    if scored.coverage_boost:
        terms.add(f"coverage boost: +{scored.coverage_boost:.2f}")

    thresholds = combined.thresholds
    tree.add(
        f"[bold]Thresholds[/bold] P0 ≥ {thresholds.p0}, P1 ≥ {thresholds.p1}, P2 ≥ {thresholds.p2}"
    )

    overridden = [
        signal for signal, overrides in (
            ("BC", config.overrides.bc),
            ("CC", config.overrides.cc),
            ("ER", config.overrides.er),
            ("ROI", config.overrides.roi),
            ("testability", config.overrides.testability),
        )
        if scored.key in overrides
    ]
    if overridden:
        tree.add(f"[yellow]Overridden: {', '.join(overridden)}[/yellow]")

    console.print(tree)


def output_json(result: ScoringResult, out_path: Optional[str]):
    """Output result as JSON."""
    json_str = result.model_dump_json(indent=2, by_alias=True)

    if out_path:
        with open(out_path, "w", encoding="utf-8") as f:
            f.write(json_str)
    else:
        print(json_str)


if __name__ == "__main__":
    main()
