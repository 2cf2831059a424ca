"""CLI entrypoints for outliner."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import get_args

import typer

from outliner.config import Settings, load_settings
from outliner.errors import OutlinerError
from outliner.formats import EXPORTERS, ImportOptions, import_file
from outliner.logging import configure_logging, get_logger
from outliner.models.outline import Outline
from outliner.storage.directory import DirectoryBackend, DirectoryHandle
from outliner.storage.host_client import HostBackend
from outliner.storage.manager import (
    ConflictResolution,
    MigrationConflict,
    StorageManager,
    default_manager,
)
from outliner.templates import create_from_template, get_templates
from outliner.tree import check_tree_integrity, filter_nodes_by_tags, get_all_tags, get_tag_usage_counts

app = typer.Typer(add_completion=False, help="Hierarchical outline storage and conversion CLI")
logger = get_logger(__name__)

_RESOLUTIONS: tuple[str, ...] = get_args(ConflictResolution)


def _setup(data_dir: Path | None = None) -> tuple[Settings, StorageManager]:
    settings = load_settings()
    if data_dir is not None:
        settings.data_dir = data_dir
    configure_logging(settings)
    return settings, default_manager(settings)


def _find(outlines: list[Outline], key: str) -> Outline:
    for outline in outlines:
        if key in (outline.id, outline.name):
            return outline
    raise typer.BadParameter(f"No outline with id or name {key!r}")


@app.command("import")
def import_(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown, plain text or OPML file"),
    name: str | None = typer.Option(None, "--name", "-n", help="Outline name (defaults to the file name)"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR"),
) -> None:
    """Import a file as a new outline and save it."""

    _, manager = _setup(data_dir)
    try:
        result = import_file(path, ImportOptions(outline_name=name))
    except OutlinerError as exc:
        raise typer.BadParameter(str(exc)) from exc

    for warning in result.warnings:
        typer.echo(f"warning: {warning}", err=True)
    backend = asyncio.run(manager.save_outline(result.outline))
    logger.info("Imported %s into %s storage", path.name, backend)
    typer.echo(f"{result.outline.id}\t{result.outline.name}\t{result.stats.nodes_imported} nodes")


@app.command()
def new(
    template: str | None = typer.Option(None, "--template", "-t", help="Template id (blank when omitted)"),
    name: str | None = typer.Option(None, "--name", "-n", help="Outline name (defaults to the template's)"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR"),
) -> None:
    """Create a new outline, optionally from a template, and save it."""

    _, manager = _setup(data_dir)
    try:
        outline = create_from_template(template, name)
    except OutlinerError as exc:
        raise typer.BadParameter(str(exc)) from exc
    backend = asyncio.run(manager.save_outline(outline))
    logger.info("Created %s in %s storage", outline.name, backend)
    typer.echo(f"{outline.id}\t{outline.name}\t{len(outline.nodes)} nodes")


@app.command("templates")
def templates_() -> None:
    """List the available outline templates."""

    for template in get_templates():
        typer.echo(f"{template.id}\t{template.icon} {template.name}\t{template.description}")


@app.command()
def tags(
    outline: str = typer.Argument(..., help="Outline id or name"),
    match: list[str] = typer.Option([], "--match", "-m", help="Show nodes carrying all of these tags"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR"),
) -> None:
    """Show tag usage in an outline, or the nodes matching a set of tags."""

    _, manager = _setup(data_dir)

    async def _load() -> Outline:
        data = await manager.load_storage_data()
        return await manager.load_single_outline_on_demand(_find(data.outlines, outline))

    loaded = asyncio.run(_load())
    if match:
        for node_id in filter_nodes_by_tags(loaded.nodes, match):
            node = loaded.nodes[node_id]
            typer.echo(f"{node.prefix or '-'}\t{node.name}")
        return
    counts = get_tag_usage_counts(loaded.nodes)
    for tag in get_all_tags(loaded.nodes):
        typer.echo(f"{tag}\t{counts[tag]}")


@app.command()
def export(
    outline: str = typer.Argument(..., help="Outline id or name"),
    fmt: str = typer.Option("markdown", "--format", "-f", help=f"One of: {', '.join(EXPORTERS)}"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file (stdout when omitted)"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR"),
) -> None:
    """Export an outline as markdown, OPML or indented text."""

    serializer = EXPORTERS.get(fmt)
    if serializer is None:
        raise typer.BadParameter(f"Unknown format {fmt!r}")

    _, manager = _setup(data_dir)

    async def _load() -> Outline:
        data = await manager.load_storage_data()
        return await manager.load_single_outline_on_demand(_find(data.outlines, outline))

    text = serializer(asyncio.run(_load()))
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(str(output))


@app.command("list")
def list_(data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR")) -> None:
    """List stored outlines."""

    _, manager = _setup(data_dir)
    data = asyncio.run(manager.load_storage_data())
    for outline in data.outlines:
        marker = "*" if outline.id == data.current_outline_id else " "
        if outline.is_lazy_loaded:
            size = f"~{outline.estimated_node_count} nodes (lazy)"
        else:
            size = f"{len(outline.nodes)} nodes"
        typer.echo(f"{marker} {outline.id}\t{outline.name}\t{size}")
    typer.echo(f"storage: {data.backend_name}", err=True)


@app.command()
def repair(data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR")) -> None:
    """Run a load cycle, repairing duplicates, and report what changed."""

    _, manager = _setup(data_dir)
    data = asyncio.run(manager.load_storage_data())
    if not data.repair_report:
        typer.echo("Nothing to repair.")
    for line in data.repair_report:
        typer.echo(line)
    for outline in data.outlines:
        if outline.is_lazy_loaded:
            continue
        for problem in check_tree_integrity(outline.nodes, outline.root_node_id):
            typer.echo(f"{outline.name}: {problem}", err=True)


@app.command()
def migrate(
    on_conflict: str | None = typer.Option(
        None,
        "--on-conflict",
        help=f"Resolution for existing files: {', '.join(_RESOLUTIONS)} (prompt when omitted)",
    ),
    directory: Path | None = typer.Option(None, "--directory", help="Directory to migrate into"),
    data_dir: Path | None = typer.Option(None, "--data-dir", help="Overrides OUTLINER_DATA_DIR"),
) -> None:
    """Move outlines from the local store into file-system storage."""

    if on_conflict is not None and on_conflict not in _RESOLUTIONS:
        raise typer.BadParameter(f"--on-conflict must be one of {', '.join(_RESOLUTIONS)}")

    _, manager = _setup(data_dir)

    async def _resolve(conflict: MigrationConflict) -> ConflictResolution:
        if on_conflict is not None:
            return on_conflict  # type: ignore[return-value]
        answer = typer.prompt(
            f"{conflict.file_name} already exists. Resolution",
            type=typer.Choice(list(_RESOLUTIONS)),
            default="keep_existing",
        )
        return answer  # type: ignore[no-any-return]

    async def _run() -> None:
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)
            for backend in manager.backends:
                if isinstance(backend, HostBackend):
                    await backend.select_directory(str(directory))
                    break
                if isinstance(backend, DirectoryBackend):
                    backend.use_directory(DirectoryHandle(directory, granted=("readwrite",)))
                    break
        result = await manager.migrate_to_file_system(_resolve)
        for name in result.migrated:
            typer.echo(f"migrated\t{name}")
        for name in result.skipped:
            typer.echo(f"skipped\t{name}")

    try:
        asyncio.run(_run())
    except OutlinerError as exc:
        typer.echo(f"Migration failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("serve-host")
def serve_host(
    host: str | None = typer.Option(None, help="Bind host (overrides OUTLINER_SERVE_HOST)"),
    port: int | None = typer.Option(None, help="Bind port (overrides OUTLINER_SERVE_PORT)"),
) -> None:
    """Run the host service over HTTP."""

    from outliner.api.serve import main as serve_main

    settings = load_settings()
    serve_main(host=host or settings.serve_host, port=port or settings.serve_port, reload=False)


if __name__ == "__main__":
    app()
