"""Command-line inspection of a Citadel knowledge graph using Typer and Rich.

Operates on JSON snapshots written by the in-memory stores. Paths default
to GRAPH_PERSISTENCE_PATH and IDENTITY_PERSISTENCE_PATH.
"""

import asyncio
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from citadel_engine.config.logging import configure_logging, get_logger
from citadel_engine.config.settings import settings
from citadel_engine.data_management.graph_store import InMemoryGraphStore
from citadel_engine.data_management.identity_store import InMemoryIdentityStore
from citadel_engine.data_management.schemas import Relation, SearchHit
from citadel_engine.errors import CitadelError
from citadel_engine.pipeline.citadel_service import CitadelService
from citadel_engine.utils.logging import configure_structured_logging

app = typer.Typer(
    help="Citadel knowledge graph engine - scores, traversal and search",
    add_completion=False,
)

console = Console()

logger = get_logger("cli")

GraphFileOption = typer.Option(None, "--graph-file", "-g", help="Graph store JSON snapshot")
IdentityFileOption = typer.Option(None, "--identity-file", "-i", help="Identity store JSON snapshot")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug-level logging"),
) -> None:
    """Inspect a persisted Citadel graph."""
    if verbose:
        configure_logging(level="DEBUG")
        configure_structured_logging(level="DEBUG")


def _service(graph_file: Optional[str], identity_file: Optional[str]) -> CitadelService:
    graph_path = graph_file or settings.graph_persistence_path
    identity_path = identity_file or settings.identity_persistence_path
    return CitadelService(
        graph_store=InMemoryGraphStore(graph_path),
        identity_store=InMemoryIdentityStore(identity_path),
    )


def _fail(error: Exception) -> None:
    console.print(f"[red]✗[/red] {error}")
    logger.error(f"CLI command failed: {error}")
    raise typer.Exit(1)


def _parse_relations(relations: Optional[List[str]]) -> Optional[List[Relation]]:
    if not relations:
        return None
    try:
        return [Relation(r.lower()) for r in relations]
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _hits_table(title: str, hits: List[SearchHit]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Tier", style="cyan", width=4)
    table.add_column("Kind", style="green", width=10)
    table.add_column("Title", style="yellow")
    table.add_column("Id", style="dim")
    for hit in hits:
        table.add_row(str(hit.tier), hit.node.kind.value, hit.node.title, hit.node.id)
    return table


@app.command()
def status(
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """Display store statistics and configuration."""
    logger.info("Displaying system status")
    service = _service(graph_file, identity_file)
    stats = asyncio.run(service.stats())

    table = Table(title="Citadel Status", show_header=True, header_style="bold magenta")
    table.add_column("Component", style="cyan", width=20)
    table.add_column("Status", style="green", width=15)
    table.add_column("Details", style="yellow")

    python_version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    table.add_row("Environment", "✓ Ready", python_version)

    persisted = "✓ Persisted" if stats["persistence_enabled"] else "⚠ Memory only"
    table.add_row(
        "Graph",
        persisted,
        f"{stats['total_nodes']} nodes ({stats['retracted_nodes']} retracted), "
        f"{stats['total_edges']} edges ({stats['retracted_edges']} retracted)",
    )
    table.add_row(
        "Identities",
        "✓ Loaded",
        f"{stats['total_identities']} identities, {stats['flagged_duplicates']} flagged duplicates",
    )
    table.add_row("Logging", "✓ Active", f"Level: {settings.log_level}, Format: {settings.log_format}")
    rate_status = "✓ Enforced" if settings.enforce_rate_limits else "✗ Disabled"
    table.add_row("Rate Limits", rate_status, "Per trust tier")

    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query"),
    limit: int = typer.Option(10, "--limit", "-n", min=1),
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """Search claims and evidence nodes."""
    service = _service(graph_file, identity_file)
    results = asyncio.run(service.search(query, limit))

    if not results.claims and not results.evidence_nodes:
        console.print(f"[dim]No matches for '{query}'[/dim]")
        return
    console.print(_hits_table("Claims", results.claims))
    console.print(_hits_table("Evidence", results.evidence_nodes))


@app.command()
def score(
    node_id: str = typer.Argument(..., help="Node to score"),
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """Show the Citadel Score breakdown for a node."""
    service = _service(graph_file, identity_file)
    try:
        breakdown = asyncio.run(service.score(node_id))
    except CitadelError as e:
        _fail(e)

    console.print(Panel(
        f"Score: [bold]{breakdown.trust_weighted_score:.3f}[/bold]\n"
        f"Controversy: {breakdown.controversy.value}\n"
        f"Supports: {breakdown.verified_count} ({breakdown.supporting_weight:.3f})  "
        f"Disputes: {breakdown.disputed_count} ({breakdown.disputing_weight:.3f})\n"
        f"Pending consensus: {breakdown.pending_count}  Context: {breakdown.context_count}",
        title=f"Citadel Score {node_id}",
        border_style="green",
    ))

    if breakdown.contributions:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Edge", style="dim")
        table.add_column("Relation", style="cyan")
        table.add_column("Raw", justify="right")
        table.add_column("Trust", justify="right")
        table.add_column("Verif.", justify="right")
        table.add_column("Dup.", justify="right")
        table.add_column("Effective", style="green", justify="right")
        for c in breakdown.contributions:
            table.add_row(
                c.edge_id[:8],
                c.relation.value,
                f"{c.raw_weight:.2f}",
                f"{c.trust_factor:.2f}",
                f"{c.verification_multiplier:.1f}",
                f"{c.duplicate_discount:.1f}",
                f"{c.effective_weight:.3f}",
            )
        console.print(table)


@app.command()
def traverse(
    node_id: str = typer.Argument(..., help="Root node"),
    depth: int = typer.Option(settings.default_traversal_depth, "--depth", "-d", min=0),
    relation: Optional[List[str]] = typer.Option(None, "--relation", "-r"),
    min_weight: Optional[float] = typer.Option(None, "--min-weight"),
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """Explore the neighbourhood of a node."""
    service = _service(graph_file, identity_file)
    try:
        result = asyncio.run(
            service.traverse(node_id, depth, _parse_relations(relation), min_weight)
        )
    except CitadelError as e:
        _fail(e)

    table = Table(title=f"Traversal from {node_id}", show_header=True, header_style="bold magenta")
    table.add_column("Depth", style="cyan", width=5)
    table.add_column("Kind", style="green", width=10)
    table.add_column("Title", style="yellow")
    table.add_column("Id", style="dim")
    for node in result.nodes:
        table.add_row(str(result.depths[node.id]), node.kind.value, node.title, node.id)
    console.print(table)
    console.print(
        f"[dim]{len(result.edges)} edges, total effective weight {result.total_weight:.3f}[/dim]"
    )


@app.command()
def path(
    source_id: str = typer.Argument(...),
    target_id: str = typer.Argument(...),
    max_hops: int = typer.Option(settings.default_max_hops, "--max-hops", min=0),
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """Find the shortest path between two nodes."""
    service = _service(graph_file, identity_file)
    try:
        found = asyncio.run(service.shortest_path(source_id, target_id, max_hops))
    except CitadelError as e:
        _fail(e)

    if found is None:
        console.print(f"[yellow]No path within {max_hops} hops[/yellow]")
        return

    steps = [found.nodes[0].title]
    for edge, node in zip(found.edges, found.nodes[1:]):
        steps.append(f"-[{edge.relation.value}]- {node.title}")
    console.print(Panel(
        "\n".join(steps),
        title=f"{found.hops} hops, weight {found.total_weight:.3f}",
        border_style="green",
    ))


@app.command()
def controversial(
    limit: int = typer.Option(10, "--limit", "-n", min=1),
    graph_file: Optional[str] = GraphFileOption,
    identity_file: Optional[str] = IdentityFileOption,
) -> None:
    """List the most contested nodes."""
    service = _service(graph_file, identity_file)
    ranked = asyncio.run(service.controversial(limit))

    if not ranked:
        console.print("[dim]No disputed nodes[/dim]")
        return

    table = Table(title="Most Controversial", show_header=True, header_style="bold magenta")
    table.add_column("Node", style="dim")
    table.add_column("Level", style="cyan")
    table.add_column("Disputed share", justify="right")
    table.add_column("Score", style="green", justify="right")
    for breakdown in ranked:
        table.add_row(
            breakdown.node_id,
            breakdown.controversy.value,
            f"{breakdown.disputed_share:.0%}",
            f"{breakdown.trust_weighted_score:.3f}",
        )
    console.print(table)


@app.command()
def version() -> None:
    """Display version information."""
    console.print("[bold]Citadel Knowledge Graph Engine[/bold]")
    console.print("Version: 0.1.0")


if __name__ == "__main__":
    app()
