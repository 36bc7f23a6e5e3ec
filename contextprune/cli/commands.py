"""CLI commands for contextprune."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from contextprune import __logo__, __version__
from contextprune.errors import ContextPruneError

app = typer.Typer(
    name="contextprune",
    help=f"{__logo__} contextprune - Importance-driven context pruning",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} contextprune v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """contextprune - Importance-driven context pruning."""
    pass


# ============================================================================
# Shared helpers
# ============================================================================


def _fail(message: str):
    console.print(f"[red]Error: {escape(message)}[/red]")
    raise typer.Exit(1)


def _load_context(path: Path):
    """Read a conversation file and normalize it. Exits with a rich error on bad input."""
    from contextprune.normalize import context_from_payload

    try:
        payload = json.loads(path.read_text())
    except OSError as e:
        _fail(f"Cannot read {path}: {e}")
    except json.JSONDecodeError as e:
        _fail(f"{path} is not valid JSON: {e}")

    try:
        return context_from_payload(payload)
    except ContextPruneError as e:
        _fail(str(e))


def _build_scorer(config):
    from contextprune.scoring import ImportanceScorer

    return ImportanceScorer(
        profile=config.build_profile(),
        recency_decay=config.scoring.recency_decay,
        coherence_window=config.scoring.coherence_window,
    )


def _setup(verbose: bool):
    from contextprune.config import load_config
    from contextprune.logging_config import setup_logging

    setup_logging("DEBUG" if verbose else None)
    try:
        config = load_config()
        config.build_profile()
    except ContextPruneError as e:
        _fail(str(e))
    return config


# ============================================================================
# Analysis
# ============================================================================


@app.command()
def analyze(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    enhanced: bool = typer.Option(False, "--enhanced", "-e", help="Include conversation flow and profile"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Analyze a conversation's size, importance and redundancy."""
    from contextprune.analyzer import ContextAnalyzer
    from contextprune.report import analysis_report

    config = _setup(verbose)
    context = _load_context(file)
    analyzer = ContextAnalyzer(_build_scorer(config))

    result = analyzer.analyze(context)
    breakdown = analyzer.token_breakdown(context)
    extra = analyzer.analyze_enhanced(context) if enhanced else None
    console.print(analysis_report(result, breakdown, extra), markup=False)

    if result.total_tokens > config.pruning.auto_trigger_threshold:
        console.print(
            f"\n[yellow]Context exceeds {config.pruning.auto_trigger_threshold} tokens, "
            f"consider: contextprune prune {file} --strategy {result.recommended_strategy}[/yellow]"
        )


@app.command()
def score(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Show the importance score of every message."""
    config = _setup(verbose)
    context = _load_context(file)
    scored = _build_scorer(config).score_messages(context)

    if not scored:
        console.print("No messages.")
        return

    table = Table(title=f"Importance ({config.scoring.profile})")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Tokens", justify="right")
    table.add_column("Total", style="green", justify="right")
    table.add_column("Rec", justify="right")
    table.add_column("Sem", justify="right")
    table.add_column("Ref", justify="right")
    table.add_column("File", justify="right")
    table.add_column("Coh", justify="right")

    for m in scored:
        s = m.importance
        table.add_row(
            m.id,
            m.type.value,
            str(m.token_count),
            f"{s.total:.3f}",
            f"{s.recency:.2f}",
            f"{s.semantic:.2f}",
            f"{s.references:.2f}",
            f"{s.file_relevance:.2f}",
            f"{s.coherence:.2f}",
        )

    console.print(table)


# ============================================================================
# Pruning / Summaries
# ============================================================================


@app.command()
def prune(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    strategy: str = typer.Option(None, "--strategy", "-s", help="aggressive, balanced or conservative"),
    max_tokens: int = typer.Option(None, "--max-tokens", "-m", min=1, help="Override the token budget"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report, then roll the pass back"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Prune a conversation and report what was kept, summarized and dropped."""
    from contextprune.pruning import PruningEngine
    from contextprune.profiles import get_strategy
    from contextprune.report import pruning_report, undo_report

    config = _setup(verbose)
    context = _load_context(file)

    try:
        chosen = config.build_strategy(strategy)
        if max_tokens is not None:
            chosen = get_strategy(chosen.name, max_tokens)
    except ContextPruneError as e:
        _fail(str(e))

    engine = PruningEngine(
        scorer=_build_scorer(config),
        max_undo_history=config.pruning.max_undo_history,
        summary_level=config.pruning.summary_level,
        enable_undo=config.pruning.enable_undo,
    )
    result = engine.prune(context, chosen)
    console.print(pruning_report(result), markup=False)

    for summary in result.summaries:
        console.print(f"\n[dim]{summary.id}[/dim] ({len(summary.original_message_ids)} messages)")
        console.print(summary.content, markup=False)

    if dry_run:
        rolled_back = engine.undo(result.pruning_id)
        console.print(f"\n{undo_report(result.pruning_id, rolled_back)}", markup=False)


@app.command()
def summarize(
    file: Path = typer.Argument(..., help="Conversation JSON file"),
    level: str = typer.Option("session", "--level", "-l", help="immediate, session or project"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Summarize a conversation at the given level."""
    from contextprune.report import summarization_report
    from contextprune.summarizer import HierarchicalSummarizer, parse_level

    _setup(verbose)
    context = _load_context(file)

    try:
        parsed = parse_level(level)
    except ContextPruneError as e:
        _fail(str(e))

    summaries = HierarchicalSummarizer().create_summaries(context.messages, parsed)
    console.print(summarization_report(summaries, parsed), markup=False)
    for summary in summaries:
        console.print(f"\n[cyan]{summary.id}[/cyan]")
        console.print(summary.content, markup=False)


@app.command()
def profiles():
    """List built-in scoring profiles and pruning strategies."""
    from contextprune.profiles import DEFAULT_SCORING_PROFILES, DEFAULT_STRATEGIES

    table = Table(title="Scoring Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Weights (rec/sem/ref/file/coh)")
    table.add_column("Hybrid (lex/vec/ctx)")
    table.add_column("BM25 k1/b")
    for name, p in DEFAULT_SCORING_PROFILES.items():
        w, h = p.weights, p.hybrid
        table.add_row(
            name,
            f"{w.recency}/{w.semantic}/{w.references}/{w.file_relevance}/{w.coherence}",
            f"{h.lexical}/{h.vector}/{h.contextual}",
            f"{p.bm25.k1}/{p.bm25.b}",
        )
    console.print(table)

    table = Table(title="Pruning Strategies")
    table.add_column("Name", style="cyan")
    table.add_column("Max Tokens", justify="right")
    table.add_column("Preserve", justify="right")
    table.add_column("Summary", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Always Preserve")
    for name, s in DEFAULT_STRATEGIES.items():
        table.add_row(
            name,
            str(s.max_tokens),
            str(s.preserve_ratio),
            str(s.summary_ratio),
            str(s.importance_threshold),
            ", ".join(sorted(t.value for t in s.always_preserve)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
