"""
Command-Line Interface

CLI commands for vector-intel operations.

Commands:
    vector-intel download-model  - Fetch and verify the ONNX model + vocabulary
    vector-intel health          - Probe the remote services
    vector-intel similarity      - Cosine similarity of two texts
    vector-intel cache-stats     - Embedding cache statistics
    vector-intel cache-clear     - Clear the local embedding cache

Usage:
    vector-intel download-model
    vector-intel health --config ./vector_intel.toml
    vector-intel similarity "machine learning" "deep learning" --provider hashing
    vector-intel cache-stats --data ./intel

Environment variables (VECINTEL_*) are also read from a .env file in the
working directory.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn
from rich.table import Table

from vector_intel.config import IntelConfig

__all__ = ["main", "app"]

load_dotenv()

app = typer.Typer(
    name="vector-intel",
    help="Embeddings, similarity search and clustering against a remote vector service",
    no_args_is_help=True,
)
console = Console()

DEFAULT_DATA_DIR = Path("./vector_intel_data")


def _load_config(config_path: Optional[Path], provider: Optional[str] = None) -> IntelConfig:
    config = IntelConfig.from_file(config_path) if config_path else IntelConfig()
    if provider:
        config = config.with_overrides(embedding_provider=provider)
    return config


ConfigOption = typer.Option(
    None,
    "--config", "-c",
    help="TOML configuration file",
    exists=True,
)
DataOption = typer.Option(
    DEFAULT_DATA_DIR,
    "--data", "-d",
    help="Data directory (cache + vectors)",
)


@app.command("download-model")
def download_model(
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Download the ONNX model and vocabulary, verifying checksums."""

    async def _run() -> None:
        from vector_intel.errors import ModelLoadError
        from vector_intel.providers import ModelLoader

        config = _load_config(config_path)
        loader = ModelLoader(
            config.embedding_model_dir,
            max_retries=config.model_load_retries,
            retry_delay=config.model_load_retry_delay,
        )
        artifacts = [
            (config.embedding_model_url, f"{config.embedding_model}.onnx", config.embedding_model_sha256),
            (config.embedding_vocab_url, f"{config.embedding_model}.vocab.txt", config.embedding_vocab_sha256),
        ]

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
        ) as progress:
            for url, filename, sha256 in artifacts:
                task = progress.add_task(filename, total=None)

                def on_progress(update, task=task) -> None:
                    progress.update(task, completed=update.loaded, total=update.total)

                try:
                    path = await loader.load(
                        url, filename=filename, sha256=sha256, on_progress=on_progress
                    )
                except ModelLoadError as e:
                    console.print(f"[red]{e}[/]")
                    raise typer.Exit(code=1)
                progress.update(task, description=f"{filename} -> {path}")

        console.print(f"[green]Model ready in {config.embedding_model_dir}[/]")

    asyncio.run(_run())


@app.command()
def health(
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Probe every remote service and print its status."""

    async def _run() -> None:
        from vector_intel.client import RemoteClient

        async with RemoteClient(_load_config(config_path)) as client:
            result = await client.health_check()

        table = Table(title=f"Remote services: {result.status}")
        table.add_column("Service", style="cyan")
        table.add_column("Status", justify="right")
        for service, ok in result.services.items():
            table.add_row(service, "[green]up[/]" if ok else "[red]down[/]")
        console.print(table)
        console.print(f"[dim]Uptime: {result.uptime:.1f}s[/]")

        if result.status == "unhealthy":
            raise typer.Exit(code=1)

    asyncio.run(_run())


@app.command()
def similarity(
    text_a: str = typer.Argument(..., help="First text"),
    text_b: str = typer.Argument(..., help="Second text"),
    config_path: Optional[Path] = ConfigOption,
    data: Path = DataOption,
    provider: Optional[str] = typer.Option(
        None,
        "--provider", "-p",
        help="Embedding provider override: local, remote or hashing",
    ),
) -> None:
    """Print the cosine similarity of two texts."""

    async def _run() -> None:
        from vector_intel.api.intel import VectorIntel
        from vector_intel.utils.similarity import cosine_similarity

        intel = VectorIntel(data, _load_config(config_path, provider))
        try:
            await intel.embeddings.initialize()
            batch = await intel.embeddings.embed_batch([text_a, text_b])
            score = cosine_similarity(batch.embeddings[0].vector, batch.embeddings[1].vector)
            if intel.embeddings.degraded:
                console.print("[yellow]Primary model unavailable; using the hashing fallback[/]")
            console.print(f"{score:.4f}")
        finally:
            await intel.close()

    asyncio.run(_run())


@app.command("cache-stats")
def cache_stats(
    config_path: Optional[Path] = ConfigOption,
    data: Path = DataOption,
) -> None:
    """Show embedding cache statistics."""

    async def _run() -> None:
        from vector_intel.api.intel import VectorIntel

        intel = VectorIntel(data, _load_config(config_path))
        try:
            await intel.cache.initialize()
            stats = await intel.cache.get_stats()

            table = Table(title=f"Embedding cache: {intel.path}")
            table.add_column("Metric", style="cyan")
            table.add_column("Value", justify="right", style="green")
            table.add_row("Memory entries", str(stats.memory_size))
            table.add_row("Local entries", str(stats.local_size))
            table.add_row("Memory hits", str(stats.memory_hits))
            table.add_row("Local hits", str(stats.local_hits))
            table.add_row("Remote hits", str(stats.remote_hits))
            table.add_row("Misses", str(stats.misses))
            table.add_row("Hit rate", f"{stats.hit_rate:.1%}")
            console.print(table)
        finally:
            await intel.close()

    asyncio.run(_run())


@app.command("cache-clear")
def cache_clear(
    config_path: Optional[Path] = ConfigOption,
    data: Path = DataOption,
) -> None:
    """Clear the memory and local embedding cache tiers."""

    async def _run() -> None:
        from vector_intel.api.intel import VectorIntel

        intel = VectorIntel(data, _load_config(config_path))
        try:
            await intel.cache.initialize()
            await intel.cache.clear()
            console.print("[green]Embedding cache cleared[/]")
        finally:
            await intel.close()

    asyncio.run(_run())


def main() -> None:
    """Entry point for the CLI."""
    app()
