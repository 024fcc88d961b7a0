"""tcnauth CLI - manage the persisted member session from the terminal."""

import json
import os
from typing import Annotated, Any

import click
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

import tcnauth
from tcnauth import console as gp_console
from tcnauth.client import TcnAuthClient
from tcnauth.config import get_settings
from tcnauth.exceptions import AppError
from tcnauth.logging import configure_logging, get_logger, redact_token
from tcnauth.models import User

# Configure logging early using env vars directly. get_settings() is avoided
# here because TcnAuthSettings.__init__ creates directories as a side effect.
configure_logging(
    level=os.environ.get("TCNAUTH_LOG_LEVEL", "WARNING"),
    json_output=os.environ.get("TCNAUTH_LOG_FORMAT", "console") == "json",
)

LOG = get_logger(__name__)

app = typer.Typer(
    name="tcnauth",
    help="""
    tcnauth - member session management

    \b
    Quick start:
      tcnauth login -u <email>   Log in and persist the session
      tcnauth status             Show the stored session
      tcnauth refresh            Exchange the bearer token for a new one
      tcnauth lock / unlock      Lock or unlock the stored session
      tcnauth logout             Clear the session and remembered credentials
    """,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def _open_client() -> TcnAuthClient:
    return TcnAuthClient(get_settings())


def _fail(exc: AppError) -> typer.Exit:
    gp_console.app_error(exc)
    LOG.debug("cli_command_failed", code=exc.code, metadata=exc.metadata)
    return typer.Exit(1)


def _user_table(user: User) -> Table:
    table = Table(show_header=False, border_style="dim")
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("ID", str(user.id))
    table.add_row("Name", user.name)
    table.add_row("Email", user.email or "-")
    table.add_row("Account type", str(user.account_type or "-"))
    table.add_row("Account status", str(user.account_status or "-"))
    if user.membership:
        expiry = user.membership.expires_at or "no expiry"
        table.add_row("Membership", f"{user.membership.tier} ({expiry})")
    if user.vendor_tier:
        table.add_row("Vendor tier", f"{user.vendor_tier} ({user.vendor_status or '-'})")
    return table


@app.callback(invoke_without_command=True)
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v for info, -vv for debug)",
        ),
    ] = 0,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            click_type=click.Choice(["console", "json"]),
            help="Log output format: console (human-readable) or json (structured)",
        ),
    ] = None,
) -> None:
    """tcnauth - member session management."""
    settings = get_settings()
    json_output = (log_format or settings.log_format) == "json"

    if verbose >= 2:
        configure_logging(level="DEBUG", json_output=json_output)
    elif verbose >= 1:
        configure_logging(level="INFO", json_output=json_output)
    elif log_format is not None:
        configure_logging(level=settings.log_level, json_output=json_output)


@app.command("version")
def version() -> None:
    """Show tcnauth version and installation info."""
    settings = get_settings()
    console.print(
        Panel(
            f"[bold cyan]tcnauth[/bold cyan] v{tcnauth.__version__}\n\n"
            f"[dim]Config:[/dim]  {settings.config_dir}\n"
            f"[dim]Backend:[/dim] {settings.base_url}",
            title="Member session core",
            border_style="cyan",
        )
    )


@app.command("login")
def login(
    username: Annotated[str, typer.Option("--username", "-u", help="Email or username")],
    password: Annotated[
        str,
        typer.Option("--password", "-p", prompt=True, hide_input=True, help="Account password"),
    ],
    remember: Annotated[
        bool,
        typer.Option("--remember", help="Store credentials (encrypted) for silent re-login"),
    ] = False,
    mode: Annotated[
        str,
        typer.Option(
            "--mode",
            click_type=click.Choice(["cookie", "token"]),
            help="Login mode requested from the backend",
        ),
    ] = "cookie",
) -> None:
    """Log in with a password and persist the session."""
    with _open_client() as client:
        try:
            session = client.auth.login_with_password(
                username, password, mode=mode, remember=remember  # type: ignore[arg-type]
            )
        except AppError as exc:
            raise _fail(exc) from exc

    name = session.user.name if session.user else username
    gp_console.success(f"Logged in as {name}")
    if not session.token:
        gp_console.warn("No bearer token issued; authenticated calls will use cookies")
    if remember and not client.secrets.available:
        gp_console.warn("Remember me is disabled; credentials were not stored")


@app.command("logout")
def logout() -> None:
    """Clear the session, cookies and remembered credentials."""
    with _open_client() as client:
        client.auth.logout()
    gp_console.success("Logged out")


@app.command("lock")
def lock() -> None:
    """Lock the stored session; it is kept but no longer revalidated."""
    with _open_client() as client:
        if client.session is None:
            gp_console.error("No session stored")
            raise typer.Exit(1)
        client.auth.lock_session()
    gp_console.success("Session locked")


@app.command("unlock")
def unlock() -> None:
    """Unlock the stored session."""
    with _open_client() as client:
        try:
            session = client.auth.unlock_session()
        except AppError as exc:
            raise _fail(exc) from exc

    name = session.user.name if session.user else "stored session"
    gp_console.success(f"Unlocked {name}")


@app.command("status")
def status(
    validate: Annotated[
        bool,
        typer.Option("--validate", help="Revalidate the session against the backend"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for scripting"),
    ] = False,
) -> None:
    """Show the stored session."""
    with _open_client() as client:
        session = client.ensure_valid_session() if validate else client.session
        password_authenticated = client.session_store.has_password_authenticated()
        remembered = client.orchestrator.has_remembered_credentials()

    if session is None:
        if json_output:
            console.print(json.dumps({"authenticated": False}))
            return
        console.print(
            Panel(
                "[dim]No session stored.[/dim]\n\n"
                "Log in to create one:\n"
                "[cyan]tcnauth login -u <email>[/cyan]",
                title="Not Logged In",
                border_style="yellow",
            )
        )
        return

    data: dict[str, Any] = {
        "authenticated": True,
        "token": redact_token(session.token),
        "token_expires_at": session.token_expires_at,
        "refresh_token": bool(session.refresh_token),
        "cookie_login_url": bool(session.token_login_url),
        "locked": session.locked,
        "password_authenticated": password_authenticated,
        "remembered_credentials": remembered,
        "user": session.user.to_dict() if session.user else None,
    }
    if json_output:
        console.print(json.dumps(data, indent=2, default=str))
        return

    lock_display = "[yellow]locked[/yellow]" if session.locked else "[green]unlocked[/green]"
    lines = [
        f"[dim]Token:[/dim]            {data['token'] or '-'}",
        f"[dim]Refresh token:[/dim]    {'yes' if session.refresh_token else 'no'}",
        f"[dim]Lock:[/dim]             {lock_display}",
        f"[dim]Password login:[/dim]   {'yes' if password_authenticated else 'no'}",
        f"[dim]Remember me:[/dim]      {'yes' if remembered else 'no'}",
    ]
    console.print(Panel("\n".join(lines), title="Session", border_style="cyan"))
    if session.user:
        console.print(_user_table(session.user))


@app.command("refresh")
def refresh() -> None:
    """Refresh the bearer token (re-authenticating when remembered)."""
    with _open_client() as client:
        if not client.session_store.get_token():
            gp_console.error("No bearer token stored; log in first")
            raise typer.Exit(1)
        token = client.orchestrator.recover(reason="manual")

    if token is None:
        gp_console.error("Session expired; log in again")
        raise typer.Exit(1)
    gp_console.success(f"Token refreshed ({redact_token(token)})")


@app.command("profile")
def profile(
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for scripting"),
    ] = False,
) -> None:
    """Fetch the current user profile and store it."""
    with _open_client() as client:
        user = client.auth.refresh_user_profile()

    if user is None:
        gp_console.error("Unable to load the profile; is the session still valid?")
        raise typer.Exit(1)
    if json_output:
        console.print(json.dumps(user.to_dict(), indent=2))
        return
    console.print(_user_table(user))


@app.command("config")
def config() -> None:
    """Show current tcnauth configuration."""
    settings = get_settings()
    key, _, header = settings.woocommerce_credentials()
    storefront = "configured" if key or header else "[dim]not configured[/dim]"

    info = f"""
[dim]Backend URL:[/dim]        {settings.base_url}
[dim]Config directory:[/dim]   {settings.config_dir}
[dim]Storage backend:[/dim]    {settings.storage_backend}
[dim]Request timeout:[/dim]    {settings.request_timeout}s
[dim]Remember me:[/dim]        {"enabled" if settings.remember_credentials else "disabled"}
[dim]Single-flight:[/dim]      {"on" if settings.single_flight_refresh else "off"}
[dim]Storefront auth:[/dim]    {storefront}
[dim]Log level:[/dim]          {settings.log_level}
[dim]Log format:[/dim]         {settings.log_format}"""

    console.print(Panel(info.strip(), title="⚙ Configuration", border_style="cyan"))


if __name__ == "__main__":
    app()
