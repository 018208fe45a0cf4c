"""Command-line interface for HighlightKeeper.

Highlights HTML files on disk, restores stored highlights into them, and
manages the highlight store.

Usage:
    highlightkeeper highlight FILE --url URL --text TEXT [--occurrence N] [-o OUT]
    highlightkeeper apply FILE --url URL [--force] [-o OUT]
    highlightkeeper clear --url URL
    highlightkeeper list
    highlightkeeper export OUT
    highlightkeeper import IN
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from highlightkeeper import setup_logging
from highlightkeeper.anchoring.builder import select_text
from highlightkeeper.anchoring.errors import DocumentRootMissing, MalformedAnchor
from highlightkeeper.anchoring.identity import document_identity
from highlightkeeper.config import get_settings
from highlightkeeper.engine import HighlightEngine
from highlightkeeper.storage.json_store import JsonFileStore
from highlightkeeper.storage.memory import ConfigSettingsProvider
from highlightkeeper.storage.transfer import export_anchors, import_anchors

if TYPE_CHECKING:
    from highlightkeeper.config import Settings
    from highlightkeeper.storage.protocol import AnchorStore

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    """Build argparse parser for highlightkeeper subcommands."""
    parser = argparse.ArgumentParser(
        prog="highlightkeeper",
        description="Create, restore and manage persistent HTML highlights.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # highlight
    highlight_p = sub.add_parser("highlight", help="Highlight text in an HTML file")
    highlight_p.add_argument("file", type=Path, help="HTML file")
    highlight_p.add_argument("--url", required=True, help="URL the document lives at")
    highlight_p.add_argument("--text", required=True, help="Text to highlight")
    highlight_p.add_argument(
        "--occurrence",
        type=int,
        default=0,
        help="Which matching text node to use (default: 0, the first)",
    )
    highlight_p.add_argument("-o", "--output", type=Path, help="Write highlighted HTML")

    # apply
    apply_p = sub.add_parser("apply", help="Restore stored highlights into a file")
    apply_p.add_argument("file", type=Path, help="HTML file")
    apply_p.add_argument("--url", required=True, help="URL the document lives at")
    apply_p.add_argument("--force", action="store_true", help="Force a fresh pass")
    apply_p.add_argument("-o", "--output", type=Path, help="Write highlighted HTML")

    # clear
    clear_p = sub.add_parser("clear", help="Delete stored highlights for a URL")
    clear_p.add_argument("--url", required=True, help="URL the document lives at")

    # list
    sub.add_parser("list", help="List documents with stored highlights")

    # export / import
    export_p = sub.add_parser("export", help="Export every stored highlight")
    export_p.add_argument("output", type=Path, help="Destination JSON file")
    import_p = sub.add_parser("import", help="Import highlights from an export")
    import_p.add_argument("input", type=Path, help="Exported JSON file")

    return parser


def _read_html(path: Path, con: Console) -> str:
    """Read an HTML file or exit with error."""
    try:
        return path.read_text("utf-8")
    except OSError as exc:
        con.print(f"[red]Error:[/] cannot read {path}: {exc}")
        sys.exit(1)


async def _activate(
    path: Path, url: str, store: AnchorStore, settings: Settings, con: Console
) -> HighlightEngine:
    """Create an engine for *path* or exit with error."""
    try:
        return HighlightEngine.activate(
            _read_html(path, con),
            url,
            store,
            ConfigSettingsProvider(settings),
            matching=settings.matching,
            enabled=settings.highlight.enabled,
        )
    except DocumentRootMissing as exc:
        con.print(f"[red]Error:[/] {path}: {exc}")
        sys.exit(1)


def _emit(engine: HighlightEngine, output: Path | None, con: Console) -> None:
    if output is None:
        return
    output.write_text(engine.html(), "utf-8")
    con.print(f"Wrote [cyan]{output}[/]")


async def _cmd_highlight(
    path: Path,
    url: str,
    needle: str,
    *,
    store: AnchorStore,
    settings: Settings,
    occurrence: int = 0,
    output: Path | None = None,
    console: Console | None = None,
) -> None:
    """Highlight the *occurrence*-th text node containing *needle*."""
    con = console or globals()["console"]
    engine = await _activate(path, url, store, settings, con)
    await engine.load_highlights()

    selection = select_text(engine.document, needle, occurrence)
    if selection is None:
        con.print(f"[red]Error:[/] text not found: {needle!r}")
        sys.exit(1)

    anchor = await engine.highlight_selection(selection)
    if anchor is None:
        con.print("[yellow]Selection could not be highlighted.[/]")
        sys.exit(1)

    con.print(f"[green]Highlighted[/] {anchor.selected_text!r} ([dim]{anchor.id}[/])")
    _emit(engine, output, con)


async def _cmd_apply(
    path: Path,
    url: str,
    *,
    store: AnchorStore,
    settings: Settings,
    force: bool = False,
    output: Path | None = None,
    console: Console | None = None,
) -> None:
    """Restore stored highlights into *path* and report the outcome."""
    con = console or globals()["console"]
    engine = await _activate(path, url, store, settings, con)
    report = await engine.load_highlights(force=force)

    if report is None or report.total == 0:
        con.print(f"[yellow]No stored highlights for[/] {engine.identity}")
    else:
        colour = "green" if not report.failures else "yellow"
        con.print(
            f"[{colour}]Applied {report.resolved_count} of {report.total}[/] "
            f"highlights to {engine.identity}"
        )
        for anchor_id, reason in report.failures.items():
            con.print(f"  [red]{anchor_id}[/]: {reason}")
    _emit(engine, output, con)


async def _cmd_clear(
    url: str, *, store: AnchorStore, console: Console | None = None
) -> None:
    """Delete stored highlights for *url*."""
    con = console or globals()["console"]
    identity = document_identity(url)
    if await store.delete_anchors(identity):
        con.print(f"[green]Cleared[/] highlights for {identity}")
    else:
        con.print(f"[red]Error:[/] could not clear highlights for {identity}")
        sys.exit(1)


async def _cmd_list(*, store: AnchorStore, console: Console | None = None) -> None:
    """List stored documents as a Rich table."""
    con = console or globals()["console"]
    index = await store.list_documents()

    if not index:
        con.print("[yellow]No stored highlights.[/]")
        return

    table = Table(title="Highlighted documents")
    table.add_column("Document", style="cyan")
    table.add_column("Title")
    table.add_column("Highlights", justify="right")
    table.add_column("Last Updated")

    for identity, entry in sorted(
        index.items(), key=lambda item: item[1].last_updated, reverse=True
    ):
        table.add_row(
            identity,
            entry.title,
            str(entry.count),
            entry.last_updated.strftime("%Y-%m-%d %H:%M"),
        )

    con.print(table)


async def _cmd_export(
    output: Path, *, store: AnchorStore, console: Console | None = None
) -> None:
    con = console or globals()["console"]
    payload = await export_anchors(store)
    output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), "utf-8")
    con.print(f"[green]Exported[/] {len(payload['data'])} documents to {output}")


async def _cmd_import(
    source: Path, *, store: AnchorStore, console: Console | None = None
) -> None:
    con = console or globals()["console"]
    try:
        report = await import_anchors(store, source.read_text("utf-8"))
    except (OSError, MalformedAnchor) as exc:
        con.print(f"[red]Error:[/] {exc}")
        sys.exit(1)

    for identity, count in report.imported.items():
        con.print(f"[green]Imported[/] {count} highlights for {identity}")
    for identity, reason in report.errors.items():
        con.print(f"[red]Skipped[/] {identity}: {reason}")
    if not report.ok:
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the ``highlightkeeper`` console script."""
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    settings = get_settings()
    setup_logging(settings.app.log_dir, console_level=settings.app.console_log_level)
    store = JsonFileStore(settings.storage.data_dir)

    async def _run() -> None:
        match args.command:
            case "highlight":
                await _cmd_highlight(
                    args.file,
                    args.url,
                    args.text,
                    store=store,
                    settings=settings,
                    occurrence=args.occurrence,
                    output=args.output,
                )
            case "apply":
                await _cmd_apply(
                    args.file,
                    args.url,
                    store=store,
                    settings=settings,
                    force=args.force,
                    output=args.output,
                )
            case "clear":
                await _cmd_clear(args.url, store=store)
            case "list":
                await _cmd_list(store=store)
            case "export":
                await _cmd_export(args.output, store=store)
            case "import":
                await _cmd_import(args.input, store=store)

    asyncio.run(_run())
