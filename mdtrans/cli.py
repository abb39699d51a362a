"""
Command-line interface for MDTrans.

Provides commands for:
- Translating Markdown files and directory trees
- Inspecting the segment plan of a document
- Computing heading anchors
- Managing credentials

Usage:
    mdtrans translate docs/ --output output/ --target ja
    mdtrans segments docs/index.md --max-tokens 1024
    mdtrans anchor "Hello World!"
    mdtrans keys list
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from mdtrans import __version__
from mdtrans.anchors import compute_anchor
from mdtrans.config import APP_NAME, DEFAULT_MAX_TOKENS, DEFAULT_SOURCE_LANG, DEFAULT_TARGET_LANG
from mdtrans.errors import ConfigurationError, MDTransError
from mdtrans.io import find_markdown_files, normalize_newlines, read_document, split_front_matter
from mdtrans.pipeline import BatchResult, PipelineConfig, TranslationPipeline
from mdtrans.translate.base import DummyTranslator

app = typer.Typer(
    name="mdtrans",
    help="MDTrans: structure-preserving Markdown translation",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


def version_callback(value: bool):
    if value:
        console.print(f"{APP_NAME} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """MDTrans: translate Markdown documentation, keeping its structure."""
    pass


@app.command()
def translate(
    input_path: Path = typer.Argument(
        ..., exists=True,
        help="Markdown file or directory of Markdown files",
    ),
    output: Path = typer.Option(
        Path("output"), "--output", "-o",
        help="Output directory (the input tree is mirrored below it)",
    ),
    source_lang: str = typer.Option(
        DEFAULT_SOURCE_LANG, "--source", "-s",
        help="Source language code",
    ),
    target_lang: str = typer.Option(
        DEFAULT_TARGET_LANG, "--target", "-t",
        help="Target language code",
    ),
    backend: str = typer.Option(
        "job", "--backend", "-b",
        help="Translation backend (job, openai, anthropic, dummy)",
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m",
        help="Model name for LLM backends",
    ),
    max_tokens: int = typer.Option(
        DEFAULT_MAX_TOKENS, "--max-tokens",
        help="Token budget of one translation call",
    ),
    poll_deadline: Optional[float] = typer.Option(
        None, "--poll-deadline",
        help="Seconds to wait for one job backend translation",
    ),
    workers: int = typer.Option(
        1, "--workers", "-w",
        help="Documents translated at the same time",
    ),
    no_masking: bool = typer.Option(
        False, "--no-masking",
        help="Send links and code spans to the backend unprotected",
    ),
    no_anchors: bool = typer.Option(
        False, "--no-anchors",
        help="Do not suffix headings with {#anchor} ids",
    ),
    self_closing_br: bool = typer.Option(
        False, "--self-closing-br",
        help="Rewrite <br> to <br/> in the output (MDX)",
    ),
    strip_copyable: bool = typer.Option(
        False, "--strip-copyable",
        help="Remove {{< copyable ... >}} shortcode lines",
    ),
    verbose: bool = typer.Option(
        False, "--verbose",
        help="Debug logging",
    ),
):
    """Translate Markdown documents into a mirrored output tree."""
    setup_logging(verbose)

    files = find_markdown_files(input_path)
    if not files:
        console.print(f"[yellow]No Markdown files found in {input_path}[/]")
        raise typer.Exit(1)

    translator_kwargs = {}
    if model:
        translator_kwargs["model"] = model

    config = PipelineConfig(
        source_lang=source_lang,
        target_lang=target_lang,
        translator_backend=backend,
        translator_kwargs=translator_kwargs,
        max_tokens=max_tokens,
        poll_deadline=poll_deadline,
        max_workers=workers,
        enable_masking=not no_masking,
        enable_anchors=not no_anchors,
        self_closing_br=self_closing_br,
        strip_shortcodes=strip_copyable,
    )

    try:
        pipeline = TranslationPipeline(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(2)

    console.print(f"[dim]Translating {len(files)} document(s) {source_lang} → {target_lang} with {backend}[/]")

    async def run() -> BatchResult:
        try:
            return await pipeline.translate_batch(files, input_path, output)
        finally:
            await pipeline.aclose()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Translating...", total=100)

        def update_progress(msg: str, pct: float):
            progress.update(task, description=msg, completed=int(pct * 100))

        pipeline.progress_callback = update_progress
        batch = asyncio.run(run())
        progress.update(task, description="[green]Done", completed=100)

    console.print(f"\n[green]{len(batch.translated)} translated[/] → {output}")

    if batch.failures:
        table = Table(title=f"{len(batch.failures)} document(s) failed")
        table.add_column("Document", style="cyan")
        table.add_column("Reason", style="red")
        for failure in batch.failures:
            table.add_row(str(failure.path), Text(failure.reason))
        console.print(table)
        raise typer.Exit(1)


@app.command()
def segments(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    max_tokens: int = typer.Option(
        DEFAULT_MAX_TOKENS, "--max-tokens",
        help="Token budget of one translation call",
    ),
):
    """Show how a document would be split for translation."""
    pipeline = TranslationPipeline(PipelineConfig(max_tokens=max_tokens), translator=DummyTranslator())
    _, body = split_front_matter(normalize_newlines(read_document(file)))
    try:
        plan = pipeline.plan(body)
    except MDTransError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Segments of {file}")
    table.add_column("#", justify="right")
    table.add_column("Skip", style="yellow")
    table.add_column("Tokens", justify="right", style="cyan")
    table.add_column("Preview", style="dim")
    for index, segment in enumerate(plan):
        preview = segment.content[:60].replace("\n", "⏎")
        table.add_row(
            str(index),
            "yes" if segment.skip else "",
            str(pipeline.estimate(segment.content)),
            Text(preview),
        )
    console.print(table)


@app.command()
def anchor(
    text: str = typer.Argument(..., help="Heading text"),
):
    """Print the anchor id of a heading text."""
    typer.echo(compute_anchor(text))


@app.command()
def keys(
    action: str = typer.Argument(..., help="Action: list, set, delete, status"),
    service: Optional[str] = typer.Argument(None, help="Service name (job_url, job_key, openai, ...)"),
    value: Optional[str] = typer.Argument(None, help="Value to store (prompted when omitted)"),
):
    """Manage credentials and job identifiers.

    Examples:
        mdtrans keys list                    # List all services
        mdtrans keys set job_app my-app-id   # Store an identifier
        mdtrans keys set job_key             # Prompt for a secret
        mdtrans keys status job_key          # Check where a value comes from
        mdtrans keys delete job_key          # Delete a stored value
    """
    from mdtrans.keys import KeyManager, SERVICES, env_var_for

    km = KeyManager()

    if action == "list":
        table = Table(title="Credentials")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Source", style="yellow")
        table.add_column("Value", style="dim")

        for key_info in km.list_keys():
            status = "✓ Set" if key_info.is_set else "✗ Not set"
            status_color = "green" if key_info.is_set else "red"
            table.add_row(
                key_info.service,
                f"[{status_color}]{status}[/]",
                key_info.source,
                key_info.masked_value if key_info.is_set else "-",
            )

        console.print(table)
        console.print("\n[dim]Priority: env > keychain > config file[/]")
        return

    if not service:
        console.print("[red]Error:[/] Service name required")
        console.print(f"Available services: {', '.join(SERVICES)}")
        raise typer.Exit(1)

    if action == "set":
        key = value or typer.prompt(f"Value for {service}", hide_input=True)
        if not key:
            console.print("[red]Error:[/] Value cannot be empty")
            raise typer.Exit(1)

        storage = km.set_key(service, key)
        console.print(f"[green]✓[/] {service} saved to {storage}")
        if storage == "config":
            console.print(f"[yellow]Note:[/] Stored in local file ({km.config_file})")

    elif action == "status":
        key_info = km.get_key_info(service)
        if key_info.is_set:
            console.print(f"[green]✓[/] {service} is set")
            console.print(f"    Source: {key_info.source}")
            console.print(f"    Value: {key_info.masked_value}")
        else:
            console.print(f"[red]✗[/] {service} is not set")
            console.print(f"  Option 1: [cyan]mdtrans keys set {service}[/]")
            console.print(f"  Option 2: [cyan]export {env_var_for(service)}='...'[/]")

    elif action == "delete":
        if km.delete_key(service):
            console.print(f"[green]✓[/] {service} deleted")
        else:
            console.print(f"[yellow]⚠[/] Nothing stored for {service}")

    else:
        console.print(f"[red]Error:[/] Unknown action '{action}'")
        console.print("Available actions: list, set, delete, status")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
