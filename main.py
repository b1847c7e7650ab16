"""SPARQL Naturalizer - Main CLI Entry Point

Translate natural-language questions into SPARQL queries for the
datos.gob.es catalog using retrieval-augmented generation.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from naturalizer.config import ConfigLoader, NaturalizerConfig
from naturalizer.exceptions import ConfigError, LLMError
from naturalizer.generator import SparqlGenerator
from naturalizer.llm_client import create_llm
from naturalizer.prompt_builder import PromptBuilder
from sparql_brain.exceptions import RAGError
from sparql_brain.models import SearchFilter
from sparql_brain.rag_system import RAGSystem
from sparql_brain.sanitizer import sanitize

logger = logging.getLogger(__name__)


class NaturalizerCLI:
    """Main naturalizer CLI application."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize CLI application.

        Args:
            config_path: Optional path to configuration file
        """
        self.console = Console()
        self.config_path = config_path or "config/naturalizer-config.yaml"
        self.config: Optional[NaturalizerConfig] = None

    def load_configuration(self) -> bool:
        """Load and validate configuration.

        Returns:
            True if configuration loaded successfully, False otherwise
        """
        try:
            self.config = ConfigLoader.load_config(self.config_path)
            self._setup_logging()
            return True

        except ConfigError as e:
            self.console.print(Panel(
                f"[red]Configuration error: {str(e)}[/red]",
                title="Configuration Error",
                border_style="red"
            ))
            return False

    def _setup_logging(self):
        """Setup logging based on configuration."""
        if not self.config:
            return

        log_config = self.config.logging
        log_level = getattr(logging, log_config.level.upper(), logging.INFO)

        log_path = Path(log_config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_config.file_path),
                logging.StreamHandler() if log_config.console_enabled else logging.NullHandler()
            ]
        )

        logger.info("Logging initialized", extra={
            "level": log_config.level,
            "file": log_config.file_path
        })

    def build_rag_system(self) -> RAGSystem:
        return RAGSystem(self.config.model_dump())

    async def generate(self, question: str, show_raw: bool = False) -> bool:
        """Run the full pipeline for one question."""
        llm = create_llm(self.config.llm)
        prompt_builder = PromptBuilder(self.config.prompts_path)

        try:
            async with self.build_rag_system() as rag:
                generator = SparqlGenerator(
                    rag, llm, prompt_builder, fallback_k=self.config.retrieval.fallback_k
                )
                result = await generator.generate(question)
        finally:
            await llm.close()

        if show_raw:
            self.console.print(Panel(result.raw_response, title="Raw completion", border_style="dim"))

        self.console.print(Panel(
            result.sparql,
            title=f"SPARQL ({result.context_source}, {result.kb_docs} docs)",
            subtitle=f"{result.provider} / {result.model}",
            border_style="green"
        ))
        return True

    async def search(self, query: str, k: int, search_filter: SearchFilter) -> bool:
        """Search the knowledge base and print ranked documents."""
        async with self.build_rag_system() as rag:
            results = await rag.search(query, k=k, filter=search_filter)

        if not results:
            self.console.print("[yellow]No documents found[/yellow]")
            return True

        table = Table(title=f"Knowledge base: {query}", box=box.ROUNDED)
        table.add_column("#", justify="right")
        table.add_column("Document", style="cyan")
        table.add_column("Type")
        table.add_column("Category")
        table.add_column("Score", justify="right")

        for position, item in enumerate(results, start=1):
            metadata = item.document.metadata
            table.add_row(
                str(position),
                item.document.id,
                metadata.type,
                metadata.category or "-",
                f"{item.score:.3f}",
            )

        self.console.print(table)
        return True

    async def examples(self, query: str, k: int) -> bool:
        """Show the examples the keyword rules select for a question."""
        async with self.build_rag_system() as rag:
            selected = rag.keyword_examples(query, k)

        if not selected:
            self.console.print("[yellow]No examples available[/yellow]")
            return True

        for idx, example in enumerate(selected, start=1):
            self.console.print(Panel(example.sparql, title=f"{idx}. {example.query}"))
        return True

    async def stats(self) -> bool:
        """Show index metadata."""
        async with self.build_rag_system() as rag:
            metadata = rag.get_stats()

        table = Table(show_header=False, box=box.SIMPLE, padding=(0, 2))
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Vector store", str(rag.vector_store_path))
        table.add_row("Documents", str(metadata.total_documents))
        table.add_row("Embedding model", metadata.embedding_model)
        table.add_row("Indexed at", str(metadata.indexed_at or "-"))

        self.console.print(Panel(table, title="Knowledge Base", border_style="cyan"))
        return True

    async def health(self) -> bool:
        """Check the configured LLM provider."""
        llm = create_llm(self.config.llm)
        try:
            status = await llm.check_availability()
        finally:
            await llm.close()

        if status.available:
            self.console.print(
                f"[green]✓ {status.provider} available[/green] (model {llm.model})"
            )
            return True

        self.console.print(Panel(
            f"[red]LLM provider {status.provider} is not available: {status.error}[/red]",
            title="Health Check",
            border_style="red"
        ))
        return False

    def display_config(self):
        """Display configuration in an organized format."""
        table = Table(title="Configuration", box=box.ROUNDED)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("LLM provider", self.config.llm.provider)
        table.add_row("LLM model", self.config.llm.model_name)
        table.add_row("Embeddings provider", self.config.embeddings_provider)
        table.add_row("Context dir", self.config.knowledge_base.context_dir)
        table.add_row(
            "Retrieval k (vocabulary/pattern/example)",
            f"{self.config.retrieval.vocabulary_k}/{self.config.retrieval.pattern_k}/"
            f"{self.config.retrieval.example_k}",
        )
        table.add_row("Fallback examples", str(self.config.retrieval.fallback_k))
        table.add_row("Prompts", self.config.prompts_path)
        table.add_row("Log level", self.config.logging.level)

        self.console.print(table)
        self.console.print("[green]✓ Configuration is valid[/green]")


def _run(app: NaturalizerCLI, coro) -> None:
    """Run a CLI coroutine and exit with its status."""
    try:
        success = asyncio.run(coro)
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        app.console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except LLMError as e:
        app.console.print(Panel(f"[red]{str(e)}[/red]", title="LLM Error", border_style="red"))
        sys.exit(1)
    except RAGError as e:
        app.console.print(Panel(f"[red]{str(e)}[/red]", title="Knowledge Base Error", border_style="red"))
        sys.exit(1)
    except ValueError as e:
        app.console.print(f"[red]{str(e)}[/red]")
        sys.exit(1)


@click.group()
@click.option('--config', '-c', default='config/naturalizer-config.yaml', help='Path to configuration file')
@click.pass_context
def cli(ctx, config):
    """SPARQL Naturalizer - ask the datos.gob.es catalog in plain language.

    Retrieves reference material from the indexed knowledge base, prompts the
    configured model and repairs its answer into a well-formed SPARQL query.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config


def _load_app(ctx) -> NaturalizerCLI:
    app = NaturalizerCLI(ctx.obj['config_path'])
    if not app.load_configuration():
        sys.exit(1)
    return app


@cli.command()
@click.argument('question')
@click.option('--show-raw', is_flag=True, help='Also print the unrepaired model output')
@click.pass_context
def generate(ctx, question, show_raw):
    """Generate a SPARQL query for QUESTION."""
    app = _load_app(ctx)
    _run(app, app.generate(question, show_raw))


@cli.command()
@click.argument('query')
@click.option('--type', 'doc_type', type=click.Choice(['vocabulary', 'pattern', 'example', 'documentation']))
@click.option('--category', help='Exact category filter')
@click.option('--difficulty', help='Exact difficulty filter')
@click.option('-k', default=5, show_default=True, help='Number of results')
@click.pass_context
def search(ctx, query, doc_type, category, difficulty, k):
    """Search the knowledge base for QUERY."""
    app = _load_app(ctx)
    search_filter = SearchFilter(type=doc_type, category=category, difficulty=difficulty)
    _run(app, app.search(query, k, search_filter))


@cli.command()
@click.argument('query')
@click.option('-k', default=3, show_default=True, help='Number of examples')
@click.pass_context
def examples(ctx, query, k):
    """Show keyword-selected reference examples for QUERY."""
    app = _load_app(ctx)
    _run(app, app.examples(query, k))


@cli.command(name='sanitize')
@click.argument('source', type=click.File('r', encoding='utf-8'), default='-')
def sanitize_command(source):
    """Repair a raw model completion read from SOURCE (default: stdin)."""
    click.echo(sanitize(source.read()))


@cli.command()
@click.pass_context
def stats(ctx):
    """Show knowledge base index metadata."""
    app = _load_app(ctx)
    _run(app, app.stats())


@cli.command()
@click.pass_context
def health(ctx):
    """Check that the configured LLM provider is reachable."""
    app = _load_app(ctx)
    _run(app, app.health())


@cli.command()
@click.pass_context
def config(ctx):
    """Validate and display configuration."""
    app = _load_app(ctx)
    app.display_config()


if __name__ == '__main__':
    cli(obj={})
