"""cadence CLI: study sessions, interval previews and configuration."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.config import AppConfig, resolve_config
from cadence.domain.errors import CadenceError, InvalidConfiguration

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: Anki-style spaced-repetition scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_FILE_NAME = "cadence.log"
_file_handler: logging.FileHandler | None = None


def _configure_logging(config: AppConfig) -> None:
    """Apply the resolved verbosity and mirror records into log_dir."""
    global _file_handler

    root = logging.getLogger()
    if config.verbose > 1:
        root.setLevel(logging.DEBUG)
    elif config.verbose == 1:
        root.setLevel(logging.INFO)
    else:
        root.setLevel(logging.WARNING)

    log_file = config.log_dir / LOG_FILE_NAME
    if _file_handler is not None:
        if _file_handler.baseFilename == os.path.abspath(log_file):
            return
        root.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Cannot write logs to {config.log_dir}: {e}")
        return
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))
    root.addHandler(handler)
    _file_handler = handler


DeckArg = Annotated[
    Path | None,
    typer.Argument(help="Path to a YAML deck file. Defaults to 'deck_file' in config."),
]
UserOpt = Annotated[str | None, typer.Option("--user", help="User whose settings apply.")]


def humanize_error(e: Exception) -> str:
    """Turn a domain error into a one-line message for the terminal."""
    if isinstance(e, InvalidConfiguration):
        return f"Configuration error: {e}"
    return str(e)


def _load_config(ctx: typer.Context, **overrides: Any) -> AppConfig:
    overrides["verbose"] = (ctx.obj or {}).get("verbose")
    try:
        config = resolve_config(overrides)
    except InvalidConfiguration as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(2) from e
    _configure_logging(config)
    return config


def _open_store(config: AppConfig, user: str | None):
    from cadence.application.factory import get_deck_store

    try:
        return get_deck_store(config, user_id=user)
    except InvalidConfiguration as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(2) from e
    except CadenceError as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(1) from e


def _load_settings(config: AppConfig, user: str | None):
    from cadence.application.factory import get_settings_provider

    try:
        return get_settings_provider(config).load_settings(user)
    except InvalidConfiguration as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(2) from e


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    # None defers to config.toml and CADENCE_VERBOSE
    ctx.obj["verbose"] = 1 + verbose if verbose else None


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    deck: DeckArg = None,
    user: UserOpt = None,
    learning_mode: Annotated[
        str | None, typer.Option(help="Learning preset: fast, normal, deep.")
    ] = None,
):
    """[bold green]Study[/bold green] the cards that are due today."""
    from cadence.application.factory import build_study_session
    from cadence.application.preview import IntervalPreviewService
    from cadence.application.study_queue import SESSION_COMPLETE
    from cadence.domain.errors import CommitFailure
    from cadence.domain.models import Rating
    from cadence.infrastructure.adapters.memory_store import utc_now

    config = _load_config(ctx, deck_file=deck, learning_mode=learning_mode)
    settings = _load_settings(config, user)
    store = _open_store(config, user)
    previews = IntervalPreviewService()

    def on_complete():
        typer.secho("Congratulations! You have finished this deck for now.", fg="green")

    try:
        session = build_study_session(config, store, utc_now(), on_complete=on_complete)
    except InvalidConfiguration as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(2) from e

    typer.echo(f"{session.remaining} card(s) to study.")

    async def _wait_if_pending(e: CommitFailure):
        if e.pending:
            typer.echo("Waiting for the previous answer to finish saving...")
            await session.settle()

    async def run():
        while True:
            card = session.current()
            if card is SESSION_COMPLETE:
                return

            typer.echo("")
            typer.secho(card.front, bold=True)
            action = typer.prompt(
                "[Enter] show answer, (s)uspend, (q)uit", default="", show_default=False
            ).strip().lower()
            if action == "q":
                return
            if action == "s":
                try:
                    await session.suspend_current()
                    typer.secho("Card suspended.", fg="yellow")
                except CommitFailure as e:
                    typer.secho(e.user_message, fg="red")
                    await _wait_if_pending(e)
                continue

            typer.echo(card.back)
            preview = previews.preview(card.schedule, settings, utc_now())
            typer.echo(
                "  ".join(
                    f"{r.value} {r.name.title()} ({preview.for_rating(r)})" for r in Rating
                )
            )

            answer = typer.prompt("Rating (1-4, q to quit)").strip().lower()
            if answer == "q":
                return
            try:
                rating = Rating.parse(answer)
            except ValueError:
                typer.secho(f"Unknown rating '{answer}'.", fg="yellow")
                continue

            try:
                await session.rate(card.id, rating)
            except CommitFailure as e:
                typer.secho(e.user_message, fg="red")
                await _wait_if_pending(e)

    async def main():
        try:
            await run()
        finally:
            # Never leave a timed-out commit behind for asyncio.run to cancel
            await session.settle()

    asyncio.run(main())
    typer.echo(f"{session.remaining} card(s) left in this session.")


@app.command()
def preview(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to preview.")],
    deck: DeckArg = None,
    user: UserOpt = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show what each rating would schedule for a card."""
    from cadence.application.preview import IntervalPreviewService
    from cadence.infrastructure.adapters.memory_store import utc_now

    config = _load_config(ctx, deck_file=deck)
    settings = _load_settings(config, user)
    store = _open_store(config, user)

    try:
        card = store.get(card_id)
        result = IntervalPreviewService().preview(card.schedule, settings, utc_now())
    except CadenceError as e:
        typer.secho(humanize_error(e), fg="red", err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps(result.as_dict(), indent=2))
        return

    if result.is_empty:
        typer.secho(f"Card {card_id} is suspended.", fg="yellow")
        return
    for label, value in result.as_dict().items():
        typer.echo(f"{label:>6}: {value}")


@app.command("queue")
def queue(
    ctx: typer.Context,
    deck: DeckArg = None,
    new_per_day: Annotated[int | None, typer.Option(help="New cards per day.")] = None,
    max_reviews: Annotated[int | None, typer.Option(help="Maximum reviews per day.")] = None,
    order: Annotated[
        str | None, typer.Option(help="Review order: mixed, old_first, new_first.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show today's session plan without studying."""
    from cadence.application.session_builder import build_session_queue
    from cadence.infrastructure.adapters.memory_store import utc_now

    config = _load_config(ctx, deck_file=deck)
    limit_overrides = {
        "new_cards_per_day": new_per_day,
        "max_reviews_per_day": max_reviews,
        "review_order": order,
    }
    limit_overrides = {k: v for k, v in limit_overrides.items() if v is not None}
    if limit_overrides:
        config = _load_config(
            ctx, deck_file=deck, limits={**config.limits.model_dump(), **limit_overrides}
        )

    store = _open_store(config, None)
    result = build_session_queue(store.cards(), utc_now(), config.limits)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "queue": result.card_ids,
                    "new": len(result.new_ids),
                    "reviews": len(result.review_ids),
                    "suspended": result.skipped_suspended,
                    "not_due": len(result.skipped_not_due),
                    "over_limit": result.skipped_over_limit,
                },
                indent=2,
            )
        )
        return

    typer.echo(f"New: {len(result.new_ids)}  Reviews: {len(result.review_ids)}")
    if result.skipped_over_limit:
        typer.secho(f"Held back by daily limits: {len(result.skipped_over_limit)}", fg="yellow")
    if result.skipped_suspended:
        typer.echo(f"Suspended: {len(result.skipped_suspended)}")
    for i, card_id in enumerate(result.card_ids, start=1):
        card = store.get(card_id)
        typer.echo(f"  [{i}] {card_id}  {card.schedule.state.value:<10} {card.front}")


@app.command()
def suspend(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to suspend.")],
    deck: DeckArg = None,
):
    """Suspend a card so it is no longer scheduled."""
    _toggle_suspension(ctx, card_id, deck, suspend=True)


@app.command()
def unsuspend(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card to restore.")],
    deck: DeckArg = None,
):
    """Restore a suspended card to its previous state."""
    _toggle_suspension(ctx, card_id, deck, suspend=False)


def _toggle_suspension(
    ctx: typer.Context, card_id: str, deck: Path | None, suspend: bool
) -> None:
    config = _load_config(ctx, deck_file=deck)
    store = _open_store(config, None)
    action = store.suspend if suspend else store.unsuspend

    result = asyncio.run(action(card_id))
    if not result.ok:
        typer.secho(f"Failed: {result.reason}", fg="red")
        raise typer.Exit(1)
    typer.secho(f"{card_id} is now {result.new_state.state.value}.", fg="green")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the preview/scheduling HTTP server."""
    import uvicorn

    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)


@app.command()
def logs(ctx: typer.Context):
    """Open the log directory."""
    import subprocess

    config = _load_config(ctx)
    if not config.log_dir.exists():
        config.log_dir.mkdir(parents=True, exist_ok=True)

    if sys.platform == "darwin":
        subprocess.run(["open", str(config.log_dir)])
    elif sys.platform == "win32":
        os.startfile(str(config.log_dir))
    else:
        subprocess.run(["xdg-open", str(config.log_dir)])


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    user: UserOpt = None,
):
    """Display final resolved configuration and effective scheduler settings."""
    config = _load_config(ctx)
    settings = _load_settings(config, user)

    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    d["effective_scheduler"] = settings.model_dump(mode="json")
    typer.echo(json.dumps(d, indent=2))
