"""CLI for the debt tracker API client.

Commands:
- health: Check the backend health endpoint
- ping: Measure round-trip time to the backend
- login: Exchange credentials for a stored session
- logout: End the stored session
- status: Show session and client state
- get: Issue an authenticated GET and print the JSON body
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Protocol

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from .config import ClientConfig
from .config_file import load_client_config_file
from .exceptions import ApiError, AuthError
from .types import AuthState

if TYPE_CHECKING:
    from .composition import ApiServices


class ServicesBuilder(Protocol):
    """Protocol for constructing CLI services."""

    def __call__(self, *, config: ClientConfig) -> ApiServices:
        """Build services for CLI commands."""
        ...


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ClientConfig
    services_builder: ServicesBuilder

    def build_services(self) -> ApiServices:
        """Return started services using the configured builder."""
        services = self.services_builder(config=self.config)
        services.start()
        return services


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the debt-tracker entry point.")


class QueryParameterError(typer.BadParameter):
    """Raised when a --query value is not in key=value form."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Query parameters must look like key=value, got {value!r}.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _parse_query(values: list[str] | None) -> dict[str, object]:
    query: dict[str, object] = {}
    for value in values or []:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise QueryParameterError(value)
        query[key.strip()] = item.strip()
    return query


def _fail(message: str) -> typer.Exit:
    rprint(f"[red]✗ {message}[/red]")
    return typer.Exit(code=1)


def create_app(services_builder: ServicesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided services builder."""
    app = typer.Typer(
        add_completion=False,
        help="Debt tracker API client: health checks, session management and raw requests",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", help="TOML config file (overrides environment values)"),
        ] = None,
        flavor: Annotated[
            str | None,
            typer.Option("--flavor", help="Backend flavor: development, staging or production"),
        ] = None,
        base_url: Annotated[
            str | None,
            typer.Option("--base-url", help="Override the backend base URL"),
        ] = None,
        log_bodies: Annotated[
            bool | None,
            typer.Option("--log-bodies/--no-log-bodies", help="Log request/response bodies"),
        ] = None,
    ) -> None:
        """Initialise CLI context."""
        config = ClientConfig.from_env()
        if config_path is not None:
            config = config.with_file_overrides(load_client_config_file(path=config_path))
        config = config.with_overrides(flavor=flavor, base_url=base_url, log_bodies=log_bodies)
        ctx.obj = CliContext(config=config, services_builder=services_builder)

    @app.command()
    def health(ctx: typer.Context) -> None:
        """Check whether the backend reports itself healthy."""
        state = _get_context(ctx)
        with state.build_services() as services:
            healthy = services.executor.check_health()
        if not healthy:
            raise _fail(f"Backend unhealthy: {state.config.api_root}")
        rprint(f"[green]✓ Healthy:[/green] {state.config.api_root}")

    @app.command()
    def ping(ctx: typer.Context) -> None:
        """Measure the round-trip time to the backend."""
        state = _get_context(ctx)
        with state.build_services() as services:
            elapsed = services.executor.ping()
        if elapsed is None:
            raise _fail(f"Backend unreachable: {state.config.api_root}")
        rprint(f"[green]✓ Pong[/green] in {elapsed * 1000:.0f}ms")

    @app.command()
    def login(
        ctx: typer.Context,
        email: Annotated[str, typer.Option("--email", "-e", help="Account email")],
        password: Annotated[
            str,
            typer.Option("--password", prompt=True, hide_input=True, help="Account password"),
        ],
    ) -> None:
        """Log in and store the session tokens."""
        state = _get_context(ctx)
        with state.build_services() as services:
            try:
                services.auth.login(email, password)
            except AuthError as exc:
                message = exc.failure.user_message if exc.failure is not None else str(exc)
                raise _fail(f"Login failed ({exc.auth_kind.value}): {message}") from exc
        rprint(f"[green]✓ Logged in:[/green] {email}")

    @app.command()
    def logout(ctx: typer.Context) -> None:
        """End the stored session."""
        state = _get_context(ctx)
        with state.build_services() as services:
            was_authenticated = services.auth.is_authenticated
            services.auth.logout()
        if was_authenticated:
            rprint("[green]✓ Logged out[/green]")
        else:
            rprint("[yellow]No active session[/yellow]")

    @app.command()
    def status(ctx: typer.Context) -> None:
        """Show session state and client statistics."""
        state = _get_context(ctx)
        with state.build_services() as services:
            auth_state = services.auth.state
            stats = services.executor.stats()
        table = Table(title="Debt tracker client")
        table.add_column("Setting")
        table.add_column("Value")
        table.add_row("flavor", state.config.flavor)
        table.add_row("auth_state", auth_state.value)
        for key, value in stats.items():
            table.add_row(key, str(value))
        Console().print(table)
        if auth_state is AuthState.UNAUTHENTICATED:
            rprint("[yellow]Not logged in[/yellow]")

    @app.command()
    def get(
        ctx: typer.Context,
        path: Annotated[str, typer.Argument(help="Endpoint path, e.g. /debts/summary")],
        query: Annotated[
            list[str] | None,
            typer.Option("--query", "-q", help="Query parameter as key=value (repeatable)"),
        ] = None,
        no_auth: Annotated[
            bool,
            typer.Option("--no-auth", help="Send without the bearer token"),
        ] = False,
        cached: Annotated[
            bool,
            typer.Option("--cached", help="Read through the response cache"),
        ] = False,
        force_refresh: Annotated[
            bool,
            typer.Option("--force-refresh", help="Bypass cached reads (with --cached)"),
        ] = False,
    ) -> None:
        """Issue a GET request and print the JSON body."""
        state = _get_context(ctx)
        params = _parse_query(query)
        with state.build_services() as services:
            try:
                if cached:
                    body = services.executor.get_cached(
                        path, query=params, use_auth=not no_auth, force_refresh=force_refresh
                    )
                else:
                    body = services.executor.get(path, query=params, use_auth=not no_auth)
            except ApiError as exc:
                raise _fail(f"{exc.failure.user_message} [{exc.kind.value}]") from exc
        Console().print_json(data=body)

    return app
