"""CLI entry point for ksynth."""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config
from .errors import KsynthError
from .models import SYNTHESIS_TYPES, Cluster, Suggestion

logger = logging.getLogger(__name__)
console = Console()

NOISY_LOGGERS = ("httpx", "chromadb", "sentence_transformers")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """ksynth - cluster related notes and synthesize them into new ones."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    _setup_logging(verbose)


def _get_config(ctx) -> dict:
    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(ctx.obj.get("config_path"))
    return ctx.obj["config"]


def _get_services(ctx):
    if "services" not in ctx.obj:
        from .services import build_services
        ctx.obj["services"] = build_services(_get_config(ctx))
    return ctx.obj["services"]


def _fail(ctx, message: str) -> None:
    console.print(f"[red]{message}[/]")
    ctx.exit(1)


def _print_cluster(cluster: Cluster) -> None:
    if cluster.is_empty:
        console.print(f"[yellow]Cluster '{cluster.name}' is empty.[/]")
        return

    table = Table(title=f"{cluster.name} ({cluster.source}, coherence {cluster.coherence_score:.2f})")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Path")
    table.add_column("Similarity", justify="right", style="green")
    for i, m in enumerate(cluster.members, 1):
        table.add_row(str(i), m.title, m.path, f"{m.similarity:.3f}")
    console.print(table)


def _print_suggestions(suggestions: list[Suggestion]) -> None:
    table = Table(title="Synthesis Suggestions")
    table.add_column("#", style="dim", width=3)
    table.add_column("Cluster", style="cyan")
    table.add_column("Priority")
    table.add_column("Type")
    table.add_column("Reason", max_width=60)
    colors = {"high": "green", "medium": "yellow", "low": "dim"}
    for i, s in enumerate(suggestions, 1):
        table.add_row(
            str(i),
            s.cluster.name,
            f"[{colors[s.priority]}]{s.priority}[/]",
            s.suggested_type,
            s.reason,
        )
    console.print(table)


@cli.command()
@click.option("--path", default=None, help="Vault path")
@click.pass_context
def init(ctx, path):
    """Create a config file pointing at a vault."""
    import copy

    import yaml

    vault_path = Path(path or DEFAULT_CONFIG["vault_path"]).expanduser().resolve()
    config_file = Path(ctx.obj.get("config_path") or "~/.ksynth/config.yaml").expanduser()

    console.print(f"[bold green]Initializing ksynth for {vault_path}[/]")
    vault_path.mkdir(parents=True, exist_ok=True)
    (vault_path / DEFAULT_CONFIG["output_folder"]).mkdir(exist_ok=True)

    if config_file.exists():
        console.print(f"  Config already exists: {config_file}")
        return

    config_file.parent.mkdir(parents=True, exist_ok=True)
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["vault_path"] = str(vault_path)
    header = (
        "# API keys can also come from OPENAI_API_KEY, ANTHROPIC_API_KEY,\n"
        "# GEMINI_API_KEY and XAI_API_KEY\n\n"
    )
    config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
    console.print(f"  Created config: {config_file}")
    console.print("[bold green]✓ ksynth initialized![/]")


@cli.command()
@click.pass_context
def embed(ctx):
    """Embed every vault note that has no vector yet."""
    services = _get_services(ctx)
    if services.embeddings is None:
        _fail(ctx, "No embedding provider configured. Set an OpenAI key or use sentence-transformers.")

    async def run():
        docs = await services.store.get_all()
        if not docs:
            return None
        console.print(f"[blue]Checking {len(docs)} document(s)...[/]")
        return await services.embeddings.ensure_embedded(docs)

    try:
        count = asyncio.run(run())
    except KsynthError as e:
        _fail(ctx, f"Embedding failed: {e}")
        return
    if count is None:
        console.print("[yellow]No documents to embed.[/]")
        return
    console.print(f"[green]✓ Embedded {count} new document(s)[/]")


@cli.command()
@click.argument("query")
@click.option("--n", "-n", default=5, help="Number of results")
@click.option("--threshold", default=0.3, help="Minimum similarity")
@click.pass_context
def search(ctx, query, n, threshold):
    """Semantic search over embedded notes."""
    services = _get_services(ctx)
    if services.embeddings is None:
        _fail(ctx, "Search needs an embedding provider.")

    console.print(f"[blue]Searching for: '{query}'[/]\n")
    results = asyncio.run(services.embeddings.find_similar_by_text(query, limit=n, threshold=threshold))
    if not results:
        console.print("[yellow]No results found. Have you run 'ksynth embed'?[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Id", style="cyan")
    table.add_column("Path")
    table.add_column("Score", justify="right", style="green")
    for i, r in enumerate(results, 1):
        table.add_row(str(i), r.id, r.path, f"{r.similarity:.3f}")
    console.print(table)


@cli.group()
def cluster():
    """Build a cluster and show its members."""


@cluster.command("tag")
@click.argument("tag")
@click.pass_context
def cluster_tag(ctx, tag):
    """Notes carrying TAG (or one of its sub-tags)."""
    services = _get_services(ctx)
    _print_cluster(asyncio.run(services.engine.by_tag(tag)))


@cluster.command("folder")
@click.argument("folder")
@click.pass_context
def cluster_folder(ctx, folder):
    """Notes inside FOLDER and its sub-folders."""
    services = _get_services(ctx)
    _print_cluster(asyncio.run(services.engine.by_folder(folder)))


@cluster.command("similar")
@click.argument("seed_id")
@click.option("--threshold", default=None, type=float, help="Minimum similarity")
@click.option("--max-size", default=None, type=click.IntRange(min=1), help="Maximum members, seed included")
@click.pass_context
def cluster_similar(ctx, seed_id, threshold, max_size):
    """The seed note and its nearest neighbours."""
    services = _get_services(ctx)
    clus_cfg = _get_config(ctx).get("clustering", {})
    result = asyncio.run(services.engine.by_similarity(
        seed_id,
        threshold=clus_cfg.get("threshold", 0.5) if threshold is None else threshold,
        max_size=clus_cfg.get("max_size", 15) if max_size is None else max_size,
    ))
    _print_cluster(result)


@cluster.command("manual")
@click.argument("doc_ids", nargs=-1, required=True)
@click.option("--name", default="Manual selection", help="Cluster name")
@click.pass_context
def cluster_manual(ctx, doc_ids, name):
    """Hand-picked notes by id."""
    services = _get_services(ctx)
    _print_cluster(asyncio.run(services.engine.manual(list(doc_ids), name)))


@cli.command()
@click.option("--seed", "seeds", multiple=True, help="Seed note id for similarity suggestions (default: first vault notes)")
@click.option(
    "--source", "sources", multiple=True,
    type=click.Choice(["similarity", "tag", "folder"]),
    help="Suggestion source (repeatable)",
)
@click.pass_context
def suggest(ctx, seeds, sources):
    """Suggest clusters worth synthesizing."""
    services = _get_services(ctx)
    sources = list(sources) or _get_config(ctx).get("suggestions", {}).get("sources", ["similarity"])

    suggestions = asyncio.run(services.suggestions.suggest_all(list(seeds), sources))
    if not suggestions:
        console.print("[yellow]No suggestions. Try other sources or lower the thresholds.[/]")
        return
    _print_suggestions(suggestions)


async def _resolve_cluster(services, tag, folder, seed, doc_ids, config) -> Cluster | None:
    if tag:
        return await services.engine.by_tag(tag)
    if folder:
        return await services.engine.by_folder(folder)
    if seed:
        clus_cfg = config.get("clustering", {})
        return await services.engine.by_similarity(
            seed, clus_cfg.get("threshold", 0.5), clus_cfg.get("max_size", 15)
        )
    if doc_ids:
        return await services.engine.manual(list(doc_ids), "Manual selection")
    return None


@cli.command()
@click.option("--tag", default=None, help="Synthesize notes with this tag")
@click.option("--folder", default=None, help="Synthesize notes in this folder")
@click.option("--seed", default=None, help="Synthesize a note and its nearest neighbours")
@click.option("--id", "doc_ids", multiple=True, help="Synthesize these note ids (repeatable)")
@click.option("--type", "synthesis_type", type=click.Choice(SYNTHESIS_TYPES), default=None,
              help="Synthesis type (default: suggested by the model)")
@click.option("--title", default=None, help="Title of the new note")
@click.option("--dry-run", is_flag=True, help="Show the result without saving it")
@click.pass_context
def synthesize(ctx, tag, folder, seed, doc_ids, synthesis_type, title, dry_run):
    """Generate a synthesis note from a cluster of notes."""
    from rich.markdown import Markdown
    from rich.panel import Panel

    config = _get_config(ctx)
    services = _get_services(ctx)

    async def run():
        target = await _resolve_cluster(services, tag, folder, seed, doc_ids, config)
        if target is None:
            raise click.UsageError("Pass one of --tag, --folder, --seed or --id")

        chosen = synthesis_type
        if chosen is None:
            docs = [d for d in [await services.store.get(i) for i in target.member_ids] if d]
            try:
                chosen = await services.generator.suggest_type(docs) if docs else "framework"
            except KsynthError as e:
                logger.warning(f"Type suggestion failed, using framework: {e}")
                chosen = "framework"

        console.print(f"[blue]Synthesizing {len(target.members)} note(s) from '{target.name}' as {chosen}...[/]")
        if dry_run:
            return await services.orchestrator.synthesize(target, chosen, target_title=title)
        return await services.orchestrator.run(target, chosen, target_title=title)

    try:
        outcome = asyncio.run(run())
    except KsynthError as e:
        stage = getattr(e, "stage", "")
        _fail(ctx, f"Synthesis failed{f' at {stage}' if stage else ''}: {e}")
        return

    result = outcome.result
    console.print(Panel(Markdown(result.content), title=result.title, border_style="green"))
    if result.suggested_tags:
        console.print(f"  Tags: {', '.join('#' + t for t in result.suggested_tags)}")
    console.print(f"  Sources: {', '.join(result.source_links)}")
    if dry_run:
        console.print("[dim]Dry run: nothing was saved.[/]")
    else:
        console.print(f"[green]✓ Saved to {outcome.path}[/]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show vault and embedding statistics."""
    services = _get_services(ctx)

    async def collect():
        return (
            await services.store.get_all(),
            await services.store.list_tags(),
            await services.store.list_folders(),
        )

    docs, tags, folders = asyncio.run(collect())

    console.print("\n[bold]Vault Statistics[/]")
    console.print(f"  Documents: {len(docs)}")
    console.print(f"  Tags: {len(tags)}")
    console.print(f"  Folders: {len(folders)}")
    if services.embeddings is None:
        console.print("  Embeddings: [yellow]disabled (no provider)[/]")
        return
    s = services.embeddings.stats()
    console.print(f"  Embeddings: {s['total_embeddings']}")
    console.print(f"  Provider available: {s['provider_available']}")
    console.print(f"  Read-only index: {s['read_only_index']}")


if __name__ == "__main__":
    cli()
