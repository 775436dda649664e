"""CLI commands: chatexport export / render / scan."""

from __future__ import annotations

import json
import logging
import signal
from pathlib import Path

import click

from chatexport.convert.roles import correct_roles
from chatexport.core.cache import BoundedCache
from chatexport.core.config import resolve_home
from chatexport.core.errors import ExportError, RemoteTargetFailure
from chatexport.core.models import ConversationDocument, ExportOptions
from chatexport.export.delivery import (
    FORMATS,
    deliver_local,
    deliver_remote,
    inline_document_images,
    render_clipboard_text,
    render_document,
)
from chatexport.export.filters import apply_filters
from chatexport.export.scope import CancelToken, ScanSettings, Scope, merge_documents, resolve_scope
from chatexport.providers.registry import registry
from chatexport.render.base import Document

log = logging.getLogger(__name__)

TARGETS = ("local", "notion", "gdrive", "onedrive")
_DATE = click.DateTime(formats=["%Y-%m-%d"])


def _config(ctx: click.Context) -> dict:
    obj = ctx.find_root().obj or {}
    return obj.get("config", {})


def load_documents(path: Path) -> list[ConversationDocument]:
    """Read captured conversations: one document, a list, or {"documents": [...]}."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("documents"), list):
        data = data["documents"]
    items = data if isinstance(data, list) else [data]
    docs = [ConversationDocument.from_dict(item) for item in items if isinstance(item, dict)]
    if not docs:
        raise click.ClickException(f"No conversations found in {path}")
    return docs


def _build_document(paths: tuple[Path, ...], app_name: str, options: ExportOptions,
                    title: str | None) -> Document:
    docs: list[ConversationDocument] = []
    for path in paths:
        docs.extend(load_documents(path))
    docs = [d.with_messages(correct_roles(d.messages)) for d in docs]
    document: Document = docs[0] if len(docs) == 1 else merge_documents(
        docs, app_name, options.label_language,
    )
    if title:
        document.title = title
    return document


def _options(config: dict, **overrides) -> ExportOptions:
    raw = dict(config.get("export", {}))
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return ExportOptions.from_dict(raw)


@click.command("export")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(list(FORMATS)), default=None, help="Output format.")
@click.option("--target", type=click.Choice(TARGETS), default=None, help="Where the export goes.")
@click.option("--output", "output_dir", type=click.Path(path_type=Path), default=None,
              help="Output directory for local exports.")
@click.option("--filter", "message_filter", type=click.Choice(["all", "user", "assistant"]),
              default=None, help="Keep only messages of one role.")
@click.option("--lang", "label_language", type=click.Choice(["tr", "en"]), default=None,
              help="Language of role labels and titles.")
@click.option("--date-stamp", "date_stamp_mode", type=click.Choice(["none", "filename", "content", "both"]),
              default=None, help="Where to put the export date.")
@click.option("--from", "date_from", type=_DATE, default=None, help="Keep messages on or after this day.")
@click.option("--to", "date_to", type=_DATE, default=None, help="Keep messages on or before this day.")
@click.option("--no-highlight", is_flag=True, help="Disable code syntax highlighting.")
@click.option("--inline-images", is_flag=True, help="Embed remote images as data URIs.")
@click.option("--title", default=None, help="Override the document title.")
@click.option("--app-name", default=None, help="Chat application name used in default titles.")
@click.pass_context
def export_cmd(
    ctx: click.Context,
    inputs: tuple[Path, ...],
    fmt: str | None,
    target: str | None,
    output_dir: Path | None,
    message_filter: str | None,
    label_language: str | None,
    date_stamp_mode: str | None,
    date_from,
    date_to,
    no_highlight: bool,
    inline_images: bool,
    title: str | None,
    app_name: str | None,
) -> None:
    """Export captured conversations (JSON) to a file or a remote target.

    Several inputs are merged into one document.
    """
    config = _config(ctx)
    export_cfg = config.get("export", {})
    fmt = fmt or export_cfg.get("format", "markdown")
    target = target or export_cfg.get("target", "local")
    app_name = app_name or config.get("app_name", "AI Chat")
    options = _options(
        config,
        message_filter=message_filter,
        label_language=label_language,
        date_stamp_mode=date_stamp_mode,
        date_range_start=date_from.date() if date_from else None,
        date_range_end=date_to.date() if date_to else None,
        syntax_highlight=False if no_highlight else None,
    )

    try:
        document = _build_document(inputs, app_name, options, title)
        filtered = apply_filters(document, options)
        if filtered.skipped:
            click.echo("Date range filter skipped: messages carry no matching timestamps.", err=True)
        document = filtered.document

        if inline_images:
            capacity = int(config.get("cache", {}).get("image_capacity", 100))
            document = inline_document_images(document, BoundedCache(capacity))

        if target == "local":
            out_dir = output_dir or Path(export_cfg.get("output_dir", "."))
            blob = render_document(fmt, document, options, app_name=app_name)
            path = deliver_local(blob, document.title, options, out_dir)
            click.echo(f"Exported: {path}")
            return

        target_cfg = config.get("targets", {}).get(target, {})
        provider = registry.get("target", target, target_cfg)
        result = deliver_remote(provider, fmt, document, options, app_name=app_name)
    except RemoteTargetFailure as e:
        detail = f" (partially written: {e.batches_written} batch(es) sent)" if e.batches_written else ""
        raise click.ClickException(f"{e}{detail}") from e
    except ExportError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Exported to {result.provider}" + (f": {result.url}" if result.url else ""))


@click.command("render")
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.option("--format", "fmt", type=click.Choice(["markdown", "txt"]), default="markdown",
              help="Text format to print.")
@click.option("--filter", "message_filter", type=click.Choice(["all", "user", "assistant"]), default=None)
@click.option("--lang", "label_language", type=click.Choice(["tr", "en"]), default=None)
@click.pass_context
def render_cmd(
    ctx: click.Context,
    input_path: Path,
    fmt: str,
    message_filter: str | None,
    label_language: str | None,
) -> None:
    """Print a conversation as Markdown or plain text (for copy/paste)."""
    config = _config(ctx)
    app_name = config.get("app_name", "AI Chat")
    options = _options(config, message_filter=message_filter, label_language=label_language)
    try:
        document = _build_document((input_path,), app_name, options, None)
        document = apply_filters(document, options).document
        click.echo(render_clipboard_text(fmt, document, options, app_name))
    except ExportError as e:
        raise click.ClickException(str(e)) from e


@click.command("scan")
@click.argument("url")
@click.option("--scope", type=click.Choice([s.value for s in Scope]), default=Scope.SINGLE.value,
              help="Which conversations to capture.")
@click.option("--select", "selected", type=int, multiple=True,
              help="1-based position in the history list (repeatable, for --scope selected).")
@click.option("--site", type=click.Choice(["chatgpt", "gemini", "deepseek", "claude"]), default=None,
              help="Site hint for recognising conversation links.")
@click.option("--output", "output_path", type=click.Path(path_type=Path), default=Path("captured.json"),
              help="Where to write the captured conversations.")
@click.option("--headless", is_flag=True, help="Run the browser without a window.")
@click.pass_context
def scan_cmd(
    ctx: click.Context,
    url: str,
    scope: str,
    selected: tuple[int, ...],
    site: str | None,
    output_path: Path,
    headless: bool,
) -> None:
    """Open URL in a browser and capture conversations as JSON."""
    from chatexport.providers.navigator.playwright import open_browser

    config = _config(ctx)
    settings = ScanSettings.from_config(config)
    session = resolve_home() / "browser_session.json"
    cancel = CancelToken()

    def progress(index: int, total: int, current: str) -> None:
        click.echo(f"[{index}/{total}] {current}")

    def interrupt(signum, frame) -> None:
        click.echo("Stopping after the current conversation...", err=True)
        cancel.cancel()

    previous = signal.signal(signal.SIGINT, interrupt)
    try:
        with open_browser(
            url, headless=headless, storage_state=session, timeout=settings.load_timeout,
        ) as navigator:
            result = resolve_scope(
                scope, navigator, [i - 1 for i in selected], settings, cancel, site,
                progress=progress,
            )
    except ExportError as e:
        raise click.ClickException(str(e)) from e
    finally:
        signal.signal(signal.SIGINT, previous)

    payload = {"documents": [d.to_dict() for d in result.documents]}
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    click.echo(f"Captured {result.summary()} -> {output_path}")
    for failure in result.failures:
        click.echo(f"  FAILED {failure.url}: {failure.reason}", err=True)
