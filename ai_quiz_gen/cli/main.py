"""
CLI interface for AI quiz generation.

Provides command-line access to generation, quota read-out and setup.
"""

import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ai_quiz_gen.config.loader import GeneratorConfig, load_config, load_config_from_env
from ai_quiz_gen.core.errors import QuizGenerationError, QuotaExceededError
from ai_quiz_gen.core.generator import GenerationResult, build_generator
from ai_quiz_gen.core.quota import QuotaService
from ai_quiz_gen.sdk.completion_client import CompletionClient
from ai_quiz_gen.storage.repository import UsageRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML configuration file (defaults to environment variables)"
)


def _load_settings(config_path: Optional[str]) -> GeneratorConfig:
    """Load configuration from a YAML file or the environment."""
    if config_path:
        return load_config(config_path)
    return load_config_from_env()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """AI Quiz Generator CLI."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    if ctx.invoked_subcommand is None:
        console.print("AI Quiz Generator - Use --help to see available commands")


@app.command()
def init(config_path: Optional[str] = CONFIG_OPTION):
    """Initialize the AI usage log database."""
    try:
        settings = _load_settings(config_path)
        initialize_schema(settings.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def quota(
    user_id: str = typer.Argument(..., help="User to report quota for"),
    config_path: Optional[str] = CONFIG_OPTION
):
    """Show a user's AI generation quota."""
    try:
        settings = _load_settings(config_path)
        initialize_schema(settings.db_path)
        service = QuotaService(UsageRepository(settings.db_path), settings.quota_limit)
        current = service.get_quota(user_id)
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    table = Table(title=f"AI Generation Quota: {user_id}")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_row(str(current.used), str(current.limit), str(current.remaining))
    console.print(table)

    if current.has_reached_limit:
        console.print("[yellow]Generation limit reached[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(
    user_id: str = typer.Argument(..., help="User to list usage log rows for"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows to show"),
    config_path: Optional[str] = CONFIG_OPTION
):
    """Show a user's recent AI usage log, newest first."""
    try:
        settings = _load_settings(config_path)
        initialize_schema(settings.db_path)
        entries = UsageRepository(settings.db_path).fetch_for_user(user_id, limit=limit)
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not entries:
        console.print(f"No AI usage recorded for {user_id}")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"AI Usage Log: {user_id}")
    table.add_column("Requested At")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    for entry in entries:
        table.add_row(
            entry.requested_at.strftime("%Y-%m-%d %H:%M:%S"),
            entry.model_used,
            str(entry.tokens_used)
        )
    console.print(table)
    console.print(f"\nTotal tokens: {sum(e.tokens_used for e in entries)}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def generate(
    user_id: str = typer.Argument(..., help="Authenticated caller identity"),
    prompt: str = typer.Argument(..., help="Description of the quiz to generate"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the generated quiz as JSON to this file"
    ),
    config_path: Optional[str] = CONFIG_OPTION
):
    """Generate a quiz with AI for a user."""
    try:
        settings = _load_settings(config_path)
        initialize_schema(settings.db_path)
        generator = build_generator(settings)
        result = generator.generate(user_id, prompt)
    except QuotaExceededError as e:
        console.print(f"[red]{e.user_message}[/] ({e.quota.used}/{e.quota.limit} used)")
        sys.exit(EXIT_CODE_FAIL)
    except QuizGenerationError as e:
        console.print(f"[red]{e.user_message}[/] [dim]({e.code.value})[/]")
        sys.exit(EXIT_CODE_FAIL)
    except (OSError, ValueError, sqlite3.Error) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_generation_result(result)

    if output is not None:
        payload = {
            "quiz": result.content.to_dict(),
            "ai_model": result.model,
            "ai_prompt": result.prompt,
            "ai_temperature": result.temperature,
            "tokens_used": result.tokens_used,
            "prompt_version": result.prompt_version,
        }
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"[green]✓[/] Quiz written to {output}")

    sys.exit(EXIT_CODE_PASS)


@app.command("check-key")
def check_key(config_path: Optional[str] = CONFIG_OPTION):
    """Verify the provider API key with a minimal request."""
    try:
        settings = _load_settings(config_path)
        client = CompletionClient(settings)
        valid = client.validate_api_key()
    except QuizGenerationError as e:
        console.print(f"[red]{e.user_message}[/] [dim]({e.code.value})[/]")
        sys.exit(EXIT_CODE_FAIL)

    if valid:
        console.print("[green]✓[/] API key is valid")
        sys.exit(EXIT_CODE_PASS)
    console.print("[red]API key was rejected by the provider[/]")
    sys.exit(EXIT_CODE_FAIL)


def _display_generation_result(result: GenerationResult):
    """Display the generated quiz with correct answers marked."""
    content = result.content
    console.print(f"\n[bold]{escape(content.title)}[/bold]")
    console.print(escape(content.description))
    console.print("-" * 40)

    for number, question in enumerate(content.questions, start=1):
        console.print(f"\n[bold]{number}. {escape(question.content)}[/bold]")
        for letter, option in zip("ABCD", question.options):
            marker = "[green]✓[/]" if option.is_correct else " "
            console.print(f"  {marker} {letter}) {escape(option.content)}")
        if question.explanation:
            console.print(f"  [dim]{escape(question.explanation)}[/]")

    console.print(
        f"\n[dim]Model: {result.model} | Temperature: {result.temperature} | "
        f"Tokens: {result.tokens_used}[/]"
    )


if __name__ == "__main__":
    app()
