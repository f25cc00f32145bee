"""codeatlas CLI - Index a source tree into a vector database."""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from codeatlas.chunking.languages import LanguageRegistry
from codeatlas.config import (
    DEFAULT_EXCLUDE_DIRS,
    DEFAULT_MAX_CHUNK_SIZE,
    EMBEDDER_CHOICES,
    ScanConfig,
    collection_name_for,
    load_settings,
)
from codeatlas.embeddings import create_embedder
from codeatlas.errors import ConfigurationError, ScanCancelled, ScanFailed
from codeatlas.scanner import Scanner
from codeatlas.storage import ChromaChunkStore

console = Console()


def setup_logging(verbose: int) -> None:
    """Route log records through rich; -v switches to DEBUG."""
    level = logging.DEBUG if verbose > 0 else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    for noisy in ("httpx", "httpcore", "chromadb", "transformers"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def cmd_index(args: argparse.Namespace) -> int:
    """Scan a repository and store its chunks."""
    repo_path = Path(args.path).resolve()

    if not repo_path.is_dir():
        console.print(f"[red]Error:[/red] Not a directory: {repo_path}")
        return 1

    try:
        settings = load_settings()
        if args.embedder:
            settings = replace(settings, embedder=args.embedder)
        if args.model:
            settings = replace(settings, model=args.model)
        if args.timeout is not None:
            settings = replace(settings, timeout=args.timeout)

        config = ScanConfig(
            max_chunk_size=None if args.no_limit else args.max_chunk_size,
            workers=args.workers,
            extensions=frozenset(args.extensions) if args.extensions else None,
            exclude_dirs=DEFAULT_EXCLUDE_DIRS | frozenset(args.exclude or ()),
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1

    db_path = args.db_path or settings.db_path
    collection = args.collection or collection_name_for(repo_path)
    # --reset is applied by the store right before it writes, after embedding succeeded
    store = ChromaChunkStore(db_path=db_path, collection_name=collection, reset=args.reset)

    scanner = Scanner(create_embedder(settings), store, config)

    console.print(f"[bold]Indexing repository:[/bold] {repo_path}")
    try:
        with console.status("[bold green]Parsing, embedding and storing code..."):
            result = scanner.scan(repo_path, timeout=settings.timeout)
    except ScanCancelled as e:
        console.print(f"[yellow]Cancelled:[/yellow] {e}")
        return 130
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        return 130
    except ScanFailed as e:
        console.print(f"[red]Scan failed:[/red] {e}")
        if e.__cause__ is not None:
            console.print(f"  caused by: {type(e.__cause__).__name__}: {e.__cause__}")
        return 1

    # Display results
    table = Table(title="Indexing Complete")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Files Processed", str(result.files_processed))
    table.add_row("Chunks Processed", str(result.chunks_processed))
    table.add_row("Embeddings Generated", str(result.embeddings_generated))
    table.add_row("Files Skipped", str(result.files_skipped))
    table.add_row("Files Failed", str(result.files_failed))
    table.add_row("Collection", collection)

    console.print(table)

    if result.failures:
        console.print("\n[yellow]Failures:[/yellow]")
        for path, reason in result.failures[:5]:  # Show first 5
            console.print(f"  • {path}: {reason}")

    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show database statistics."""
    settings = load_settings()
    store = ChromaChunkStore(
        db_path=args.db_path or settings.db_path,
        collection_name=args.collection or collection_name_for(args.path),
    )
    stats = store.get_stats()

    table = Table(title="codeatlas Database Stats")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total Chunks", str(stats["total_chunks"]))
    table.add_row("Collection", stats["collection_name"])
    table.add_row("DB Path", stats["db_path"])

    console.print(table)
    return 0


def cmd_languages(args: argparse.Namespace) -> int:
    """List supported languages and their file extensions."""
    registry = LanguageRegistry()

    table = Table(title="Supported Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Extensions", style="green")

    for language in registry.languages:
        table.add_row(language.tag, ", ".join(language.extensions))

    console.print(table)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeatlas",
        description="Index source code into a vector database for semantic retrieval",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the vector database (default: $CODEATLAS_DB_PATH or ./codeatlas_db)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Index command
    index_parser = subparsers.add_parser("index", help="Index a repository")
    index_parser.add_argument("path", help="Path to the repository")
    size_group = index_parser.add_mutually_exclusive_group()
    size_group.add_argument(
        "-c", "--max-chunk-size",
        type=int,
        default=DEFAULT_MAX_CHUNK_SIZE,
        help=f"Maximum chunk size in bytes (default: {DEFAULT_MAX_CHUNK_SIZE})",
    )
    size_group.add_argument(
        "--no-limit",
        action="store_true",
        help="Only split at top-level definitions; never cut chunks by size",
    )
    index_parser.add_argument(
        "-w", "--workers",
        type=int,
        default=None,
        help="Parallel file workers (default: CPU count)",
    )
    index_parser.add_argument(
        "-e", "--extensions",
        nargs="+",
        help="Only index files with these extensions (e.g. py rs)",
    )
    index_parser.add_argument(
        "--exclude",
        nargs="+",
        help="Extra directory names to skip",
    )
    index_parser.add_argument(
        "--collection",
        help="Collection name (default: derived from the repository directory)",
    )
    index_parser.add_argument(
        "--embedder",
        choices=EMBEDDER_CHOICES,
        help="Embedding backend (default: $CODEATLAS_EMBEDDER or codebert)",
    )
    index_parser.add_argument("-m", "--model", help="Embedding model name")
    index_parser.add_argument(
        "-t", "--timeout",
        type=float,
        default=None,
        help="Abort the run after this many seconds",
    )
    index_parser.add_argument(
        "--reset",
        action="store_true",
        help="Replace the collection's contents (applied only once the new chunks are embedded)",
    )
    index_parser.set_defaults(func=cmd_index)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Repository whose collection to show (default: current directory)",
    )
    stats_parser.add_argument("--collection", help="Collection name")
    stats_parser.set_defaults(func=cmd_stats)

    # Languages command
    languages_parser = subparsers.add_parser("languages", help="List supported languages")
    languages_parser.set_defaults(func=cmd_languages)

    return parser


def main() -> int:
    """Main entry point."""
    args = build_parser().parse_args()
    setup_logging(args.verbose)
    try:
        return args.func(args)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
