#!/usr/bin/env python3
"""
Admission Portal CLI - Main Entry Point

Usage:
    admission login                 # Login and store the session token
    admission logout                # Clear the session token
    admission status                # Show the stored session
    admission validate form.json    # Validate a saved page-3 form
    admission submit form.json      # Validate and submit page 3
    admission preview               # Fetch and render the application preview
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from admission.api.client import AdmissionAPIClient
from admission.core.config import settings
from admission.core.exceptions import (
    AdmissionError,
    APIError,
    FormInvalidError,
    ValidationError,
    error_response,
)
from admission.core.logging_config import logger
from admission.orchestrator.form_orchestrator import FormOrchestrator
from admission.pages.base import Navigator, Notifier
from admission.pages.preview import PreviewPage
from admission.services.records import FormDocument
from admission.session import SessionContext, load_session


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="admission",
        description="Admission Portal - application form client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  admission login                      Login to your account
  admission validate page3.json        Check a saved form for errors
  admission submit page3.json          Submit educational qualifications
  admission preview                    Show the application preview

Form files:
  A form file is the JSON object returned by GET /api/application/page3/
  (either the whole response or just its "data" object).
""",
    )

    parser.add_argument(
        "--server-url",
        default=settings.API_BASE_URL,
        help=f"Backend API base URL (default: {settings.API_BASE_URL})",
    )
    parser.add_argument(
        "--session-file",
        default=settings.SESSION_FILE,
        help="Session file location",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON output",
    )

    subparsers = parser.add_subparsers(dest="command")

    login_parser = subparsers.add_parser("login", help="Login to the admission portal")
    login_parser.add_argument("--email", "-e", help="Account email")
    login_parser.add_argument("--password", "-p", help="Account password (prompted when omitted)")

    subparsers.add_parser("logout", help="Logout and clear the session token")
    subparsers.add_parser("status", help="Show session status")

    validate_parser = subparsers.add_parser("validate", help="Validate a saved page-3 form")
    validate_parser.add_argument("file", help="Form JSON file")

    submit_parser = subparsers.add_parser("submit", help="Validate and submit a page-3 form")
    submit_parser.add_argument("file", help="Form JSON file")

    subparsers.add_parser("preview", help="Fetch and render the application preview")

    return parser


def load_document(path: str) -> FormDocument:
    """Read a page-3 form file into a Form Document"""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Could not read form file {path}: {e}", field="file")
    if not isinstance(raw, dict):
        raise ValidationError("Form file must contain a JSON object", field="file")
    if isinstance(raw.get("data"), dict):
        raw = raw["data"]
    return FormDocument.from_server(raw)


def print_report(console: Console, errors: Dict[str, List[str]]) -> None:
    if not errors:
        console.print("[green]✓ Form is valid[/green]")
        return
    table = Table(title="Form Errors", border_style="red")
    table.add_column("Field", style="bold")
    table.add_column("Messages")
    for key, messages in errors.items():
        table.add_row(key, "\n".join(messages))
    console.print(table)


def show_status(console: Console, session: SessionContext) -> None:
    if session.is_authenticated():
        profile = session.profile
        console.print(Panel(
            f"[green]Authenticated[/green]\n\n"
            f"[bold]Email:[/bold] {session.user_email or (profile.email if profile else 'Not set')}\n"
            f"[bold]Name:[/bold] {profile.name if profile else 'Not set'}\n"
            f"[bold]Application ID:[/bold] {session.application_id or 'Not submitted'}",
            title="Session Status",
            border_style="green",
        ))
    else:
        console.print(Panel(
            "[red]Not authenticated[/red]\n\n"
            "Please login using: [cyan]admission login[/cyan]",
            title="Session Status",
            border_style="red",
        ))


async def run_login(args, session: SessionContext, console: Console) -> int:
    email = args.email or Prompt.ask("Email")
    password = args.password or Prompt.ask("Password", password=True)
    async with AdmissionAPIClient(args.server_url, session) as api:
        try:
            response = await api.login(email, password)
        except APIError as e:
            console.print(f"[red]✗ {e.message or 'Login error.'}[/red]")
            return 1
    if session.token:
        console.print("[green]✓ Login successful![/green]")
        return 0
    console.print(f"[red]✗ {response.body.get('message') or 'Login failed.'}[/red]")
    return 1


def run_validate(args, console: Console) -> int:
    form = FormOrchestrator(load_document(args.file), debounce_seconds=0)
    report = form.validate_all()
    if args.json:
        print(json.dumps({"valid": report.is_valid, "errors": report.errors}, indent=2))
    else:
        print_report(console, report.errors)
    return 0 if report.is_valid else 1


async def run_submit(args, session: SessionContext, console: Console) -> int:
    notifier = Notifier(None if args.json else console)
    form = FormOrchestrator(load_document(args.file), notifier=notifier, debounce_seconds=0)

    async with AdmissionAPIClient(args.server_url, session) as api:
        result = await form.submit(api, session)

    if args.json:
        if result.success:
            print(json.dumps({"success": True, "next": result.next_route}, indent=2))
        else:
            print(json.dumps(error_response(FormInvalidError(form.errors) if form.errors
                                            else AdmissionError(result.message)), indent=2))
    elif not result.success and form.errors:
        print_report(console, form.errors)
    return 0 if result.success else 1


async def run_preview(args, session: SessionContext, console: Console) -> int:
    async with AdmissionAPIClient(args.server_url, session) as api:
        navigator = Navigator()
        page = PreviewPage(session, api, navigator, Notifier(console))
        mounted = await page.mount()
    if navigator.current == "/login":
        return 1
    page.render(console)
    return 0 if mounted else 1


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)
    console = Console()
    session = load_session(args.session_file)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        if args.command == "login":
            code = asyncio.run(run_login(args, session, console))
        elif args.command == "logout":
            session.clear()
            console.print("[green]Logged out successfully[/green]")
            code = 0
        elif args.command == "status":
            show_status(console, session)
            code = 0
        elif args.command == "validate":
            code = run_validate(args, console)
        elif args.command == "submit":
            code = asyncio.run(run_submit(args, session, console))
        elif args.command == "preview":
            code = asyncio.run(run_preview(args, session, console))
        else:
            parser.print_help()
            code = 1
    except AdmissionError as e:
        logger.log_error_with_context(e, context=f"cli {args.command}")
        if args.json:
            print(json.dumps(error_response(e), indent=2))
        else:
            console.print(f"[red]✗ {e.message}[/red]")
        code = 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
