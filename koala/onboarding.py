from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, FloatPrompt, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from .config import CONFIG_PATH, database_path, load_config, save_config
from .models import Config


def run_onboarding(console: Console | None = None) -> Config:
    console = console or Console()

    welcome_text = Text()
    welcome_text.append("🐨 Welcome to koala!\n\n", style="bold cyan")
    welcome_text.append("Counseling voice intake server setup\n", style="dim")

    console.print(Panel(welcome_text, border_style="cyan", expand=False))
    console.print()

    config = load_config()

    console.print("[bold]Google Cloud[/bold]")
    console.print()
    console.print("Path to a service account JSON key with Speech-to-Text and Translation enabled.")
    console.print("Leave empty to run in simulation mode.")
    credentials = Prompt.ask("Credentials file", default=config.google_credentials or "")
    if credentials and not Path(credentials).expanduser().exists():
        console.print(f"[yellow]Warning: {credentials} does not exist yet.[/yellow]")
    config.google_credentials = credentials or None

    if config.google_credentials:
        config.target_language = Prompt.ask("Translate transcripts into", default=config.target_language)
        config.ai_timeout = FloatPrompt.ask("Seconds to wait for each AI call", default=config.ai_timeout)

    console.print()
    console.print("[bold]Server[/bold]")
    console.print()
    config.port = IntPrompt.ask("Port", default=config.port)
    db_path = Prompt.ask("Record database", default=str(database_path(config)))
    config.db_path = db_path or None

    console.print()
    console.print("[bold green]✓ Setup Complete![/bold green]")
    console.print()

    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column(style="cyan")
    summary.add_column()

    summary.add_row("Mode:", "AI" if config.google_credentials else "simulation")
    summary.add_row("Credentials:", config.google_credentials or "-")
    summary.add_row("Target language:", config.target_language)
    summary.add_row("Port:", str(config.port))
    summary.add_row("Database:", str(database_path(config)))

    console.print(Panel(summary, title="Your Configuration", border_style="green"))
    console.print()

    if Confirm.ask("Save this configuration?", default=True):
        save_config(config)
        console.print("[green]Configuration saved to[/green]", CONFIG_PATH)
        console.print()
        console.print("[bold]To start the server, run:[/bold]")
        console.print("  [cyan]koala serve[/cyan]")
        console.print()
        return config
    else:
        console.print("[yellow]Configuration not saved. Run 'koala setup' to try again.[/yellow]")
        return config
