"""
sayso - CLI Entry Point.

Usage:
    sayso health              Check configuration
    sayso serve               Run the onboarding API
    sayso decide /home        Evaluate the route guard for one visitor
    sayso routes              Show the route table
    sayso --help              Show help
"""

import logging

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="sayso",
    help="sayso - access control and onboarding progression.",
    add_completion=False,
)
console = Console()


@app.command()
def health() -> None:
    """Check system health and configuration."""
    from sayso.config import get_settings

    console.print("\n[bold]sayso Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.sayso_env}")
        console.print(f"   Log level: {settings.log_level}")
        console.print(f"   Login redirect: {settings.login_redirect}")

        if settings.supabase_url.startswith("https://"):
            console.print("✅ Supabase URL configured")
        else:
            console.print("❌ Supabase URL missing or invalid")

        if settings.sayso_log_sessions:
            console.print("ℹ️  Session decision logging enabled")

        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Make sure you have a .env file with required variables.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from sayso import __version__

    console.print(f"sayso version {__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the onboarding API."""
    import uvicorn

    from sayso.config import core_settings

    logging.basicConfig(
        level=core_settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console.print(f"[green]sayso API on http://{host}:{port}[/green]")
    uvicorn.run("sayso.web.app:app", host=host, port=port, reload=reload)


@app.command()
def decide(
    path: str = typer.Argument(..., help="Requested page, e.g. /home"),
    signed_in: bool = typer.Option(True, "--signed-in/--signed-out", help="Visitor has a session"),
    loading: bool = typer.Option(False, "--loading", help="Session still resolving"),
    no_profile: bool = typer.Option(False, "--no-profile", help="Profile not loaded yet"),
    role: str = typer.Option("personal", "--role", "-r", help="personal, business_owner or admin"),
    step: str = typer.Option("interests", "--step", "-s", help="Server onboarding step"),
    complete: bool = typer.Option(False, "--complete", help="Onboarding complete"),
    verified: bool = typer.Option(True, "--verified/--unverified", help="Email verified"),
) -> None:
    """Evaluate the route guard for one visitor and print the decision."""
    from sayso.config import core_settings
    from onboarding.guard import GuardInputs, evaluate
    from onboarding.state import (
        Profile,
        ProfileLoaded,
        ProfileLoading,
        Session,
        parse_role,
        parse_step,
    )

    user_id = "cli-user"
    if loading:
        session = Session.loading()
    elif signed_in:
        session = Session.authenticated(user_id)
    else:
        session = Session.anonymous()

    if no_profile or not signed_in:
        profile_state = ProfileLoading()
    else:
        profile_state = ProfileLoaded(Profile(
            user_id=user_id,
            email_verified=verified,
            account_role=parse_role(role),
            onboarding_step=parse_step(step),
            onboarding_complete=complete,
        ))

    inputs = GuardInputs(
        session=session,
        profile_state=profile_state,
        path=path,
        login_route=core_settings.login_redirect,
    )
    decision = evaluate(inputs)

    color = {"allow": "green", "suspend": "yellow", "redirect": "cyan"}[decision.action.value]
    console.print(f"[bold]{path}[/bold] -> [{color}]{decision}[/{color}]")


@app.command()
def routes() -> None:
    """Show every registered route and what it requires."""
    from onboarding.routes import route_table

    table = Table(title="Route Requirements")
    table.add_column("Path", style="bold")
    table.add_column("Auth")
    table.add_column("Onboarding")
    table.add_column("Allowed steps")

    for path, req in route_table():
        if req.unguarded:
            auth = "any"
        else:
            auth = "required" if req.requires_auth else "public-only"
        steps = ", ".join(sorted(s.value for s in req.allowed_onboarding_steps)) or "-"
        table.add_row(path, auth, "yes" if req.requires_onboarding else "-", steps)

    console.print(table)


if __name__ == "__main__":
    app()
