"""
Agent Supervisor CLI.

Usage:
  agent-supervisor validate IMAGE [IMAGE ...]   # Validate agent images
  agent-supervisor validate --strict IMAGE ...  # Stop at the first invalid image
  agent-supervisor images                       # List local agent images
  agent-supervisor running                      # List running containers
  agent-supervisor serve                        # Run the HTTP API
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .config import settings
from .models.agent import ValidationResult, ValidationVerdict
from .models.errors import SupervisorException
from .services.container import DockerClientFactory
from .services.images import ImageService
from .services.validation import ValidationOrchestrator
from .utils.logging import setup_logging

console = Console()

VERDICT_STYLES = {
    ValidationVerdict.VALIDATED: "green",
    ValidationVerdict.REJECTED: "yellow",
    ValidationVerdict.FAILED: "red",
}


# ============================================================================
# Formatting Helpers
# ============================================================================

def format_duration(ms: float) -> str:
    """Format milliseconds to human readable."""
    if ms < 1000:
        return f"{ms:.0f}ms"
    elif ms < 60000:
        return f"{ms/1000:.2f}s"
    else:
        return f"{ms/60000:.1f}m"


def format_verdict(verdict: ValidationVerdict) -> Text:
    return Text(verdict.value, style=VERDICT_STYLES.get(verdict, "white"))


def build_results_table(results: List[ValidationResult]) -> Table:
    """Build the validation results table."""
    table = Table(title="Agent Validation", box=box.ROUNDED)
    table.add_column("Image", style="cyan")
    table.add_column("Verdict", justify="center")
    table.add_column("Owner")
    table.add_column("Attempts", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Reason", style="dim")

    for result in results:
        reason = str(result.error) if result.error else ""
        if result.teardown_error:
            reason = f"{reason} [red](leaked: {result.teardown_error})[/red]".strip()
        table.add_row(
            result.image,
            format_verdict(result.verdict),
            result.identity.owner if result.identity else "",
            str(result.attempts),
            format_duration(result.duration_ms),
            reason,
        )
    return table


# ============================================================================
# Commands
# ============================================================================

async def cmd_validate(args) -> int:
    """Validate every image concurrently and print a summary table."""
    client = DockerClientFactory(settings.docker).create_client()
    try:
        orchestrator = ValidationOrchestrator.from_settings(client, settings)
        if args.strict:
            return await _validate_strict(orchestrator, args.images)
        with console.status(f"Validating {len(args.images)} image(s)..."):
            results = await asyncio.gather(
                *(orchestrator.validate_image(image) for image in args.images)
            )
    finally:
        client.close()

    console.print(build_results_table(results))
    if any(r.teardown_error for r in results):
        console.print("[red]Some containers could not be stopped; clean them up manually.[/red]")
    return 0 if all(r.ok for r in results) else 1


async def _validate_strict(orchestrator: ValidationOrchestrator, images: List[str]) -> int:
    """Validate one image at a time and stop at the first that is not valid."""
    for image in images:
        try:
            result = await orchestrator.validate_image_or_raise(image)
        except (SupervisorException, TimeoutError) as e:
            console.print(f"[red]✗ {image}[/red]: {e}")
            return 1
        console.print(
            f"[green]✓ {image}[/green] owner={result.identity.owner} "
            f"({format_duration(result.duration_ms)})"
        )
    return 0


async def cmd_images(args) -> int:
    """List local images."""
    client = DockerClientFactory(settings.docker).create_client()
    try:
        images = await ImageService(client, settings.docker).list_images()
    finally:
        client.close()

    table = Table(title="Agent Images", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Tags", style="cyan")
    for image in images:
        table.add_row(image.id[:19], ", ".join(image.tags) or "<none>")
    if not images:
        table.add_row("[dim]No images[/dim]", "")
    console.print(table)
    return 0


async def cmd_running(args) -> int:
    """List running containers."""
    client = DockerClientFactory(settings.docker).create_client()
    try:
        containers = await ImageService(client, settings.docker).list_running()
    finally:
        client.close()

    table = Table(title="Running Containers", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Image")
    table.add_column("Status", justify="center")
    for c in containers:
        table.add_row(c.id[:12], c.name, c.image, c.status)
    if not containers:
        table.add_row("[dim]None running[/dim]", "", "", "")
    console.print(table)
    return 0


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Agent Supervisor CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s validate ok-agent                  # Validate one image
  %(prog)s validate agent-a agent-b           # Validate several concurrently
  %(prog)s validate --strict agent-a agent-b  # Stop at the first invalid image
  %(prog)s images                             # List local images
  %(prog)s serve                              # Run the HTTP API
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate
    validate_p = subparsers.add_parser("validate", help="Validate agent images")
    validate_p.add_argument("images", nargs="+", help="Image references")
    validate_p.add_argument(
        "--strict",
        action="store_true",
        help="Validate in order and stop at the first image that is not valid",
    )

    # images
    subparsers.add_parser("images", help="List local agent images")

    # running
    subparsers.add_parser("running", help="List running containers")

    # serve
    subparsers.add_parser("serve", help="Run the HTTP API")

    args = parser.parse_args(argv)
    setup_logging()

    if args.command == "serve":
        from .main import run_server

        run_server()
        return

    handlers = {
        "validate": cmd_validate,
        "images": cmd_images,
        "running": cmd_running,
    }

    try:
        sys.exit(asyncio.run(handlers[args.command](args)))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
