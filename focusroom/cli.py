"""
FocusRoom CLI - Command line interface for digest and ledger jobs.

Usage:
    focusroom --help              Show all commands
    focusroom digest              Run one digest cycle (no-op inside the window)
    focusroom preview             Render the next digest without sending it
    focusroom reconcile-votes     Repair poll vote counters from vote rows
    focusroom migrate             Run database migrations
    focusroom serve               Start the API server
"""

import asyncio

import typer

app = typer.Typer(
    name="focusroom",
    help="FocusRoom CLI - Engagement ledger and weekly digest jobs",
    no_args_is_help=True,
)


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_skipped(message: str) -> None:
    """Print a skipped step message."""
    typer.echo(f"  ⏭️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@app.command()
def digest(
    sent_by: str = typer.Option("system", "--sent-by", help="Recorded as the digest sender"),
):
    """Run one weekly digest cycle."""
    from focusroom.core.database import AsyncSessionLocal
    from focusroom.core.errors import DigestCycleError
    from focusroom.core.logging import setup_logging
    from focusroom.digest.scheduler import Trigger, run_digest_cycle

    setup_logging()

    async def run():
        async with AsyncSessionLocal() as db:
            return await run_digest_cycle(db, trigger=Trigger.CLI, sent_by=sent_by)

    try:
        result = asyncio.run(run())
    except DigestCycleError as e:
        _print_error(f"Digest cycle aborted: {e.message}")
        raise typer.Exit(1)

    if not result.ran:
        detail = f" (last sent {result.last_sent:%Y-%m-%d %H:%M})" if result.last_sent else ""
        _print_skipped(f"Skipped: {result.reason}{detail}")
        return

    _print_success(f"Digest sent: {result.content_summary}")
    typer.echo(
        f"     recipients={result.recipient_count} "
        f"sent={result.emails_sent} failed={result.emails_failed}"
    )


@app.command()
def preview(
    output: str | None = typer.Option(
        None, "--output", "-o", help="Write the rendered HTML to this file"
    ),
):
    """Render the next digest without sending or recording it."""
    from pathlib import Path

    from focusroom.core.database import AsyncSessionLocal
    from focusroom.core.logging import setup_logging
    from focusroom.digest.scheduler import preview as preview_digest

    setup_logging()

    async def run():
        async with AsyncSessionLocal() as db:
            return await preview_digest(db)

    result = asyncio.run(run())

    typer.echo(f"\n📧 {result.report.subject}")
    typer.echo(f"   Window start: {result.cutoff:%Y-%m-%d %H:%M} UTC")
    typer.echo(f"   Content: {result.report.content_summary}")
    typer.echo(f"   Eligible now: {'yes' if result.eligible else 'no'}")

    if output:
        Path(output).write_text(result.report.html)
        _print_success(f"HTML written to {output}")


@app.command("reconcile-votes")
def reconcile_votes(
    poll_id: int | None = typer.Option(None, "--poll", help="Only reconcile this poll"),
):
    """Recompute poll option vote counters from the vote rows."""
    from focusroom.core.database import AsyncSessionLocal
    from focusroom.core.logging import setup_logging
    from focusroom.services.uniqueness_guard import reconcile_all_polls, reconcile_poll_counts

    setup_logging()

    async def run():
        async with AsyncSessionLocal() as db:
            if poll_id is not None:
                drift = await reconcile_poll_counts(db, poll_id)
                return {poll_id: drift} if drift else {}
            return await reconcile_all_polls(db)

    repaired = asyncio.run(run())

    if not repaired:
        _print_success("All poll counters match their votes")
        return

    for repaired_poll_id, drift in repaired.items():
        for option in drift:
            typer.echo(
                f"  🔧 poll {repaired_poll_id} option {option.option_id}: "
                f"{option.recorded} -> {option.actual}"
            )
    _print_success(f"Repaired {len(repaired)} poll(s)")


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable hot reload"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
):
    """Start the API server."""
    import subprocess

    cmd = ["uvicorn", "focusroom.main:app", "--host", "0.0.0.0", "--port", str(port)]
    if reload:
        cmd.append("--reload")

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
