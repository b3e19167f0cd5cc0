"""credgen: policy-aware credential generation on the command line.

Commands
--------
  password    Generate a random password
  passphrase  Generate a passphrase of dictionary words
  username    Generate a random-word username
  catchall    Generate a catch-all e-mail address
  subaddress  Generate a plus-addressed e-mail address
  forward     Create an alias with an e-mail forwarding service
  generate    Generate with the preferred algorithm of a category
  algorithms  List the algorithms permitted by the current policy
  prefer      Show or set the preferred algorithm of a category
  history     Show or clear recently generated passwords
  logout      Discard a user's unencrypted forwarder settings
  info        Show configuration and state file location

Options given to a generation command are saved as the user's settings and
reused next time. Forwarder settings are encrypted with ``CREDGEN_USER_KEY``;
without a key they wait, unencrypted, until one is supplied.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from . import __version__
from .config import settings
from .crypto import FernetEncryptor
from .errors import CredentialGeneratorError, ForwarderError, UnknownAlgorithmError
from .forwarders import FORWARDERS
from .models import Category, GeneratedCredential, GenerateRequest, Policy
from .providers import FileStateProvider, MemoryAccountService, MemoryKeyService, MemoryPolicyService
from .rx import Subject, first
from .service import CredentialGeneratorService

# ---------------------------------------------------------------------------
# App & consoles
# ---------------------------------------------------------------------------

_THEME = Theme(
    {
        "success": "bold green",
        "warning": "bold yellow",
        "danger": "bold red",
        "muted": "dim",
        "label": "cyan",
        "highlight": "bold white",
    }
)

console = Console(theme=_THEME)
err = Console(stderr=True, theme=_THEME)

app = typer.Typer(
    name="credgen",
    help="[bold cyan]credgen[/bold cyan]: policy-aware credential generation.",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    add_completion=True,
)

DEFAULT_USER = "local"


class Session:
    """Per-invocation options shared by every command."""

    def __init__(self, user_id: str, policies: list[Policy], email: Optional[str]) -> None:
        self.user_id = user_id
        self.policies = policies
        self.email = email


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _load_policies(path: Optional[Path]) -> list[Policy]:
    if path is None:
        return []
    if not path.exists():
        err.print(f"[danger]Policy file not found: {path}[/danger]")
        raise typer.Exit(1)
    try:
        records = json.loads(path.read_text())
        if isinstance(records, dict):
            records = [records]
        return [Policy.model_validate(record) for record in records]
    except json.JSONDecodeError as exc:
        err.print(f"[danger]Invalid JSON in policy file: {exc}[/danger]")
        raise typer.Exit(1) from exc
    except ValidationError as exc:
        err.print(f"[danger]Invalid policy record:[/danger] {exc}")
        raise typer.Exit(1) from exc


def _service(session: Session) -> CredentialGeneratorService:
    state = FileStateProvider(settings.state_path)
    state.set_active_user(session.user_id)

    policies = MemoryPolicyService()
    policies.set_policies(session.user_id, session.policies)

    keys = MemoryKeyService()
    if settings.user_key:
        try:
            encryptor = FernetEncryptor(settings.user_key.encode("ascii"), settings.options_frame_size)
        except ValueError as exc:
            err.print("[danger]CREDGEN_USER_KEY is not a valid Fernet key.[/danger]")
            raise typer.Exit(1) from exc
        keys.unlock(session.user_id, encryptor)

    accounts = MemoryAccountService()
    if session.email:
        accounts.set_email(session.user_id, session.email)

    return CredentialGeneratorService(
        state_provider=state,
        policy_service=policies,
        key_service=keys,
        account_service=accounts,
    )


async def _generate(
    session: Session,
    algorithm: str,
    overrides: dict[str, Any],
    *,
    website: Optional[str] = None,
    count: int = 1,
) -> list[GeneratedCredential]:
    """Save *overrides* into the user's settings, then generate *count* credentials."""
    async with _service(session) as service:
        strategy = service.strategy(algorithm)
        state = service.registry.get(session.user_id, strategy.key, strategy.buffer_key)
        if strategy.key.secret and settings.user_key:
            await state.drain()

        # merged into the stored record as written, so defaults and policy stay out of it
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            stored = await first(state.state()) or {}
            await service.settings(strategy, session.user_id).update({**stored, **overrides})

        request = GenerateRequest(website=website, source="cli")
        triggers = Subject(request)
        stream = service.generate_stream(
            strategy, on=triggers.subscribe(), user_ids=Subject(session.user_id).subscribe()
        )
        results: list[GeneratedCredential] = []
        try:
            for i in range(count):
                if i:
                    triggers.next(request)
                results.append(await stream.__anext__())
        finally:
            await stream.aclose()

        if strategy.category is Category.PASSWORD:
            recorded = service.history(session.user_id)
            for generated in results:
                await recorded.add(generated)
        return results


def _run(session: Session, algorithm: str, overrides: dict[str, Any], **kwargs: Any) -> list[GeneratedCredential]:
    try:
        return asyncio.run(_generate(session, algorithm, overrides, **kwargs))
    except ForwarderError as exc:
        err.print(f"[danger]{exc.message}[/danger]")
        raise typer.Exit(1) from exc
    except (CredentialGeneratorError, ValidationError) as exc:
        err.print(f"[danger]{exc}[/danger]")
        raise typer.Exit(1) from exc


def _render(credentials: list[GeneratedCredential], title: str, copy: bool = False) -> None:
    if not credentials or not credentials[0].credential:
        err.print("[warning]Nothing was generated; check the settings for this algorithm.[/warning]")
        raise typer.Exit(1)

    if len(credentials) == 1:
        generated = credentials[0]
        subtitle = f"[muted]{generated.website}[/muted]" if generated.website else None
        console.print(
            Panel(
                f"[bold green]{generated.credential}[/bold green]",
                title=f"[bold]{title}[/bold]",
                subtitle=subtitle,
                border_style="green",
                expand=False,
            )
        )
    else:
        console.print(f"\n[bold]{title} ({len(credentials)})[/bold]\n")
        for i, generated in enumerate(credentials, 1):
            console.print(f"  [muted]{i:>3}.[/muted]  [bold green]{generated.credential}[/bold green]")
        console.print()

    if copy:
        try:
            import pyperclip  # noqa: PLC0415

            pyperclip.copy(credentials[0].credential)
            console.print("[success]Copied to clipboard.[/success]")
        except Exception:
            console.print("[warning]Clipboard unavailable. Is pyperclip installed and configured?[/warning]")


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    policy: Annotated[
        Optional[Path],
        typer.Option("--policy", "-p", help="JSON file of organisation policy records.", show_default=False),
    ] = None,
    user: Annotated[str, typer.Option("--user", help="User whose settings are read and saved.")] = DEFAULT_USER,
    email: Annotated[
        Optional[str],
        typer.Option("--email", help="Account e-mail used to fill empty catch-all and subaddress settings."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log debug output to stderr.")] = False,
) -> None:
    handler = RichHandler(console=err, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    if verbose:
        settings.log_level = "DEBUG"
    settings.configure_logging(handler)

    ctx.obj = Session(user, _load_policies(policy), email)


# ---------------------------------------------------------------------------
# Generation commands
# ---------------------------------------------------------------------------


@app.command()
def password(
    ctx: typer.Context,
    length: Annotated[Optional[int], typer.Option("--length", "-l", help="Password length (5-128).")] = None,
    uppercase: Annotated[Optional[bool], typer.Option("--uppercase/--no-uppercase", help="Include A-Z.")] = None,
    lowercase: Annotated[Optional[bool], typer.Option("--lowercase/--no-lowercase", help="Include a-z.")] = None,
    number: Annotated[Optional[bool], typer.Option("--numbers/--no-numbers", help="Include 0-9.")] = None,
    special: Annotated[Optional[bool], typer.Option("--special/--no-special", help="Include !@#$%^&*.")] = None,
    min_number: Annotated[Optional[int], typer.Option("--min-numbers", help="Minimum digits (0-9).")] = None,
    min_special: Annotated[Optional[int], typer.Option("--min-special", help="Minimum special characters (0-9).")] = None,
    ambiguous: Annotated[
        Optional[bool], typer.Option("--ambiguous/--no-ambiguous", help="Allow look-alike characters.")
    ] = None,
    count: Annotated[int, typer.Option("--count", "-c", min=1, help="Number of passwords to generate.")] = 1,
    copy: Annotated[bool, typer.Option("--copy", help="Copy the first result to the clipboard.")] = False,
) -> None:
    """Generate a random password."""
    overrides = {
        "length": length,
        "uppercase": uppercase,
        "lowercase": lowercase,
        "number": number,
        "special": special,
        "min_number": min_number,
        "min_special": min_special,
        "ambiguous": ambiguous,
    }
    _render(_run(ctx.obj, "password", overrides, count=count), "Generated password", copy)


@app.command()
def passphrase(
    ctx: typer.Context,
    words: Annotated[Optional[int], typer.Option("--words", "-w", help="Number of words (3-20).")] = None,
    separator: Annotated[Optional[str], typer.Option("--separator", "-s", help="Word separator.")] = None,
    capitalize: Annotated[Optional[bool], typer.Option("--capitalize/--no-capitalize")] = None,
    include_number: Annotated[Optional[bool], typer.Option("--include-number/--no-include-number")] = None,
    count: Annotated[int, typer.Option("--count", "-c", min=1, help="Number of passphrases to generate.")] = 1,
    copy: Annotated[bool, typer.Option("--copy", help="Copy the first result to the clipboard.")] = False,
) -> None:
    """Generate a passphrase of dictionary words."""
    overrides = {
        "num_words": words,
        "word_separator": separator,
        "capitalize": capitalize,
        "include_number": include_number,
    }
    _render(_run(ctx.obj, "passphrase", overrides, count=count), "Generated passphrase", copy)


@app.command()
def username(
    ctx: typer.Context,
    capitalize: Annotated[Optional[bool], typer.Option("--capitalize/--no-capitalize")] = None,
    include_number: Annotated[Optional[bool], typer.Option("--include-number/--no-include-number")] = None,
    copy: Annotated[bool, typer.Option("--copy", help="Copy the result to the clipboard.")] = False,
) -> None:
    """Generate a random-word username."""
    overrides = {"word_capitalize": capitalize, "word_include_number": include_number}
    _render(_run(ctx.obj, "username", overrides), "Generated username", copy)


_EMAIL_TYPES = ("random", "website-name")


def _email_type(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in _EMAIL_TYPES:
        raise typer.BadParameter(f"choose one of: {', '.join(_EMAIL_TYPES)}")
    return value


@app.command()
def catchall(
    ctx: typer.Context,
    domain: Annotated[Optional[str], typer.Option("--domain", "-d", help="Catch-all domain.")] = None,
    kind: Annotated[
        Optional[str],
        typer.Option("--type", "-t", callback=_email_type, help="'random' or 'website-name'."),
    ] = None,
    website: Annotated[Optional[str], typer.Option("--website", help="Website the address is for.")] = None,
) -> None:
    """Generate a catch-all e-mail address."""
    overrides = {"catchall_domain": domain, "catchall_type": kind}
    _render(_run(ctx.obj, "catchall", overrides, website=website), "Generated e-mail")


@app.command()
def subaddress(
    ctx: typer.Context,
    email: Annotated[Optional[str], typer.Option("--email", "-e", help="Address to extend.")] = None,
    kind: Annotated[
        Optional[str],
        typer.Option("--type", "-t", callback=_email_type, help="'random' or 'website-name'."),
    ] = None,
    website: Annotated[Optional[str], typer.Option("--website", help="Website the address is for.")] = None,
) -> None:
    """Generate a plus-addressed e-mail address."""
    overrides = {"subaddress_email": email, "subaddress_type": kind}
    _render(_run(ctx.obj, "subaddress", overrides, website=website), "Generated e-mail")


@app.command()
def forward(
    ctx: typer.Context,
    provider: Annotated[str, typer.Argument(help=f"One of: {', '.join(FORWARDERS)}.")],
    token: Annotated[Optional[str], typer.Option("--token", help="API token (saved encrypted).")] = None,
    domain: Annotated[Optional[str], typer.Option("--domain", help="Alias domain (Addy.io, Forward Email).")] = None,
    base_url: Annotated[Optional[str], typer.Option("--base-url", help="Self-hosted server URL.")] = None,
    prefix: Annotated[Optional[str], typer.Option("--prefix", help="Alias prefix (Fastmail).")] = None,
    website: Annotated[Optional[str], typer.Option("--website", help="Website the alias is for.")] = None,
) -> None:
    """Create an alias with an e-mail forwarding service."""
    if provider not in FORWARDERS:
        err.print(f"[danger]Unknown forwarder '{provider}'.[/danger] Choose one of: {', '.join(FORWARDERS)}")
        raise typer.Exit(1)

    configuration = FORWARDERS[provider]
    given = {"token": token, "domain": domain, "base_url": base_url, "prefix": prefix}
    overrides = {k: v for k, v in given.items() if k in configuration.options.model_fields}
    ignored = sorted(k for k, v in given.items() if v is not None and k not in overrides)
    if ignored:
        err.print(f"[warning]{configuration.name} does not use: {', '.join(ignored)}[/warning]")

    if not settings.user_key and token:
        err.print("[muted]No CREDGEN_USER_KEY set; the token is stored unencrypted until one is.[/muted]")

    _render(_run(ctx.obj, provider, overrides, website=website), f"{configuration.name} alias")


# ---------------------------------------------------------------------------
# Information
# ---------------------------------------------------------------------------


@app.command()
def algorithms(
    ctx: typer.Context,
    category: Annotated[
        Optional[Category], typer.Argument(help="Limit to one category.", show_default=False)
    ] = None,
) -> None:
    """List the algorithms the current policy permits."""
    session: Session = ctx.obj
    categories = [category] if category else list(Category)

    async def load() -> list:
        async with _service(session) as service:
            stream = service.algorithms_stream(categories, user_ids=Subject(session.user_id).subscribe())
            return await first(stream)

    table = Table(box=box.ROUNDED, header_style="bold cyan", title="Algorithms", title_style="bold")
    table.add_column("ID", style="bold white", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category", style="yellow")
    table.add_column("Description", style="muted")
    for info in asyncio.run(load()):
        table.add_row(info.id, info.name, info.category.value, info.description or "")
    console.print(table)


@app.command()
def generate(
    ctx: typer.Context,
    category: Annotated[Category, typer.Argument(help="Credential category.")] = Category.PASSWORD,
    website: Annotated[Optional[str], typer.Option("--website", help="Website the credential is for.")] = None,
    copy: Annotated[bool, typer.Option("--copy", help="Copy the result to the clipboard.")] = False,
) -> None:
    """Generate with the algorithm preferred for CATEGORY and its saved settings."""
    session: Session = ctx.obj

    async def preferred() -> str:
        async with _service(session) as service:
            stream = service.preference_stream(category, user_ids=Subject(session.user_id).subscribe())
            return await first(stream)

    algorithm = asyncio.run(preferred())
    _render(_run(session, algorithm, {}, website=website), f"Generated {algorithm}", copy)


@app.command()
def prefer(
    ctx: typer.Context,
    category: Annotated[Category, typer.Argument(help="Credential category.")],
    algorithm: Annotated[
        Optional[str], typer.Argument(help="Algorithm to prefer; omit to show the current one.", show_default=False)
    ] = None,
) -> None:
    """Show or set the algorithm used for a category."""
    session: Session = ctx.obj

    async def run() -> str:
        async with _service(session) as service:
            if algorithm is not None:
                await service.preferences(session.user_id).update(category, algorithm)
            stream = service.preference_stream(category, user_ids=Subject(session.user_id).subscribe())
            return await first(stream)

    try:
        chosen = asyncio.run(run())
    except UnknownAlgorithmError as exc:
        err.print(f"[danger]'{algorithm}' is not a {category.value} algorithm.[/danger]")
        raise typer.Exit(1) from exc

    console.print(f"[label]{category.value}[/label]: [highlight]{chosen}[/highlight]")
    if algorithm is not None and chosen != algorithm:
        err.print(f"[warning]Policy does not permit {algorithm}; {chosen} is used instead.[/warning]")


@app.command()
def history(
    ctx: typer.Context,
    clear: Annotated[bool, typer.Option("--clear", help="Delete the history.")] = False,
) -> None:
    """Show recently generated passwords and passphrases."""
    session: Session = ctx.obj

    async def run() -> list[GeneratedCredential]:
        async with _service(session) as service:
            entries = service.history(session.user_id)
            if clear:
                await entries.clear()
                return []
            return await entries.entries()

    generated = asyncio.run(run())
    if clear:
        console.print("[success]History cleared.[/success]")
        return
    if not settings.user_key:
        err.print("[warning]History is only kept while CREDGEN_USER_KEY is set.[/warning]")
    if not generated:
        console.print("[muted]No history.[/muted]")
        return

    table = Table(box=box.ROUNDED, header_style="bold cyan", title="History", title_style="bold")
    table.add_column("#", style="muted", justify="right")
    table.add_column("Generated", style="muted", no_wrap=True)
    table.add_column("Type", style="yellow")
    table.add_column("Credential", style="bold green")
    for i, entry in enumerate(generated, 1):
        table.add_row(str(i), entry.generation_date.strftime("%Y-%m-%d %H:%M"), entry.category, entry.credential)
    console.print(table)


@app.command()
def logout(ctx: typer.Context) -> None:
    """Discard unencrypted forwarder settings waiting for a user key."""
    session: Session = ctx.obj

    async def run() -> int:
        async with _service(session) as service:
            discarded = 0
            for provider in FORWARDERS:
                strategy = service.strategy(provider)
                if service.state_provider.peek(session.user_id, strategy.buffer_key) is not None:
                    discarded += 1
                service.registry.get(session.user_id, strategy.key, strategy.buffer_key)
            await service.logout(session.user_id)
            return discarded

    discarded = asyncio.run(run())
    console.print(f"[success]Logged out.[/success] [muted]{discarded} unencrypted setting(s) discarded.[/muted]")


@app.command()
def info() -> None:
    """Show configuration and state file location."""
    path = settings.state_path

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Version", __version__)
    table.add_row("State path", str(path))
    table.add_row("State exists", "[green]yes[/green]" if path.exists() else "[red]no[/red]")
    table.add_row("User key", "[green]set[/green]" if settings.user_key else "[yellow]not set[/yellow]")
    table.add_row("Log level", settings.log_level)
    table.add_row("HTTP timeout", f"{settings.http_timeout_seconds:g}s")
    table.add_row("Forwarders", ", ".join(configuration.name for configuration in FORWARDERS.values()))

    console.print(Panel(table, title="[bold cyan]credgen info[/bold cyan]", border_style="cyan", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    app()


if __name__ == "__main__":
    main()
