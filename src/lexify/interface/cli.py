"""Lexify CLI: word library, reviews, insights and the quiz games."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

from lexify.application.config import AppConfig, resolve_config
from lexify.domain.models import GameMode, Word

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="lexify: vocabulary trainer with FSRS spaced repetition.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage lexify configuration.")
app.add_typer(config_app, name="config")


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
    data_file: Annotated[
        Path | None, typer.Option(help="Word library file. Defaults to config.")
    ] = None,
):
    """Global settings for lexify."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"data_file": data_file}
    if verbose:
        ctx.obj["overrides"]["verbose"] = 1 + verbose
        logging.getLogger("lexify").setLevel(logging.DEBUG)


def _config(ctx: typer.Context) -> AppConfig:
    overrides = (ctx.obj or {}).get("overrides", {})
    return resolve_config(overrides)


def _find_word(words: list[Word], ref: str) -> Word | None:
    """Look a word up by id, falling back to its text (case-insensitive)."""
    by_id = next((w for w in words if w.id == ref), None)
    if by_id is not None:
        return by_id
    key = ref.strip().lower()
    return next((w for w in words if w.key == key), None)


# ---------------------------------------------------------------------------
# Library commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    words: Annotated[list[str], typer.Argument(help="One or more words to add.")],
):
    """[bold green]Add[/bold green] words to the library."""
    from lexify.application.factory import build_store

    config = _config(ctx)

    async def run():
        store = build_store(config)
        if not await store.load():
            typer.secho("Could not read the word library.", fg="red")
            raise typer.Exit(1)
        try:
            if len(words) == 1:
                added = 1 if await store.add_word(words[0]) else 0
            else:
                added = await store.add_words_batch(words)
        finally:
            store.close()
        skipped = len(words) - added
        typer.secho(f"Added {added} word(s).", fg="green" if added else "yellow")
        if skipped:
            typer.echo(f"Skipped {skipped} (empty, too long, or already in the library).")

    asyncio.run(run())


@app.command("list")
def list_words(
    ctx: typer.Context,
    due: Annotated[bool, typer.Option("--due", help="Only words due today.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON.")] = False,
):
    """List the words in the library, newest first, with current recall odds."""
    from lexify.application.factory import build_scheduler, build_store
    from lexify.application.selector import is_due
    from lexify.application.stats import MetricsCalculator
    from lexify.domain.models import local_date

    config = _config(ctx)

    async def run():
        store = build_store(config)
        await store.load()
        store.close()
        words = store.words
        if due:
            words = [w for w in words if is_due(w.fsrs_card.due)]

        if as_json:
            typer.echo(json.dumps([w.to_dict() for w in words], indent=2, ensure_ascii=False))
            return
        if not words:
            typer.secho("No words found.", fg="yellow")
            return
        calc = MetricsCalculator(build_scheduler(config))
        for w in words:
            info = calc.enrich(w)
            line = (
                f"{info.word_id}  {info.text:<24} {info.state.value:<10} "
                f"due {local_date(w.fsrs_card.due).isoformat()}  "
                f"reps={info.reps} lapses={info.lapses}"
            )
            if info.current_retrievability is not None:
                line += f"  recall={info.current_retrievability:.0%}"
            if info.days_overdue is not None and info.days_overdue > 0:
                line += f"  overdue={info.days_overdue}d"
            typer.echo(line)

    asyncio.run(run())


@app.command()
def delete(
    ctx: typer.Context,
    refs: Annotated[list[str], typer.Argument(help="Word ids or texts to delete.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete words from the library."""
    from lexify.application.factory import build_store

    config = _config(ctx)

    async def run():
        store = build_store(config)
        await store.load()
        try:
            targets = [w for w in (_find_word(store.words, r) for r in refs) if w is not None]
            if not targets:
                typer.secho("No matching words.", fg="yellow")
                raise typer.Exit(1)
            names = ", ".join(w.text for w in targets)
            if not force and not typer.confirm(f"Delete {names}?"):
                raise typer.Abort()
            removed = await store.delete_words([w.id for w in targets])
        finally:
            store.close()
        typer.secho(f"Deleted {removed} word(s).", fg="green" if removed else "red")

    asyncio.run(run())


@app.command()
def review(
    ctx: typer.Context,
    ref: Annotated[str, typer.Argument(help="Word id or text.")],
    rating: Annotated[
        int,
        typer.Argument(min=0, max=4, help="1=Again 2=Hard 3=Good 4=Easy (0 counts as Again)."),
    ],
):
    """Record a manual review for a word."""
    from lexify.application.factory import build_store

    config = _config(ctx)

    async def run():
        store = build_store(config)
        await store.load()
        try:
            word = _find_word(store.words, ref)
            if word is None:
                typer.secho(f"Unknown word: {ref}", fg="red")
                raise typer.Exit(1)
            if not await store.update_word_srs(word.id, rating):
                typer.secho("Review was not saved.", fg="red")
                raise typer.Exit(1)
            updated = store.get_by_id(word.id)
        finally:
            store.close()
        card = updated.fsrs_card
        change = updated.review_change.value if updated.review_change else "none"
        typer.echo(
            f"{updated.text}: {card.state.value} ({change}), "
            f"next review {card.due.isoformat()}"
        )

    asyncio.run(run())


@app.command()
def stats(ctx: typer.Context):
    """Show library insights for today."""
    from lexify.application.factory import build_scheduler, build_store
    from lexify.application.stats import MetricsCalculator

    config = _config(ctx)

    async def run():
        store = build_store(config)
        await store.load()
        store.close()
        calc = MetricsCalculator(build_scheduler(config))
        s = calc.word_stats(store.words)

        typer.echo(f"Total words:   {s.total_words}")
        typer.echo(f"Due today:     {s.due_today}")
        typer.echo(f"Added today:   {s.added_today}")
        typer.echo(f"Levelled up:   {s.leveled_up_today}")
        typer.echo(f"Levelled down: {s.leveled_down_today}")
        typer.echo(f"Average stage: {s.avg_state:.2f}")
        for datum in calc.stage_distribution(store.words):
            typer.echo(f"  {datum.name:<10} {datum.value:>5}  {datum.percent:>3}%")

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Games
# ---------------------------------------------------------------------------


def _render_sentence(sentence: str) -> str:
    from lexify.domain.constants import BLANK_MARKER

    return sentence.replace(BLANK_MARKER, " ______ ")


@app.command()
def play(
    ctx: typer.Context,
    mode: Annotated[
        GameMode | None, typer.Option("--mode", "-m", help="Game mode. Defaults to config.")
    ] = None,
    rounds: Annotated[int | None, typer.Option(help="Stop after this many rounds.")] = None,
):
    """Play a quiz game over the library."""
    from lexify.application.factory import build_game, build_store, get_question_service
    from lexify.application.game_engine import EmptyReason
    from lexify.domain.errors import ConfigurationError

    config = _config(ctx)
    try:
        service = get_question_service(config)
    except ConfigurationError as e:
        typer.secho(str(e), fg="red")
        raise typer.Exit(1) from None

    async def ask(text: str) -> str:
        return await asyncio.to_thread(typer.prompt, text, default="", show_default=False)

    async def run():
        store = build_store(config)
        await store.load()
        engine = build_game(config, store, service, mode.value if mode else None)
        played = correct_count = 0
        try:
            while rounds is None or played < rounds:
                if not await engine.advance():
                    if engine.empty_reason == EmptyReason.NOT_ENOUGH_WORDS:
                        typer.secho(
                            f"Add at least {engine.adapter.min_words} word(s) to play.",
                            fg="yellow",
                        )
                        break
                    if engine.service_degraded:
                        typer.secho("The question service keeps failing. Try later.", fg="red")
                        break
                    if not typer.confirm("Could not generate a question. Retry?", default=True):
                        break
                    continue

                question = engine.question
                typer.echo("")
                typer.secho(_render_sentence(question.sentence_with_blank), bold=True)
                if engine.mode == GameMode.MULTIPLE_CHOICE:
                    for i, option in enumerate(question.options, start=1):
                        typer.echo(f"  {i}. {option}")
                    raw = await ask("Answer (1-4, q to quit)")
                    if raw.strip().lower() == "q":
                        break
                    answer = raw.strip()
                    if answer.isdigit() and 1 <= int(answer) <= len(question.options):
                        answer = question.options[int(answer) - 1]
                else:
                    typer.echo(f"Hint: {question.translated_hint}")
                    raw = await ask("Answer (? for a hint, q to quit)")
                    if raw.strip() == "?":
                        revealed = engine.reveal_hint()
                        typer.echo(f"Starts with: {revealed}" if revealed else "No more hints.")
                        raw = await ask("Answer")
                    if raw.strip().lower() == "q":
                        break
                    answer = raw

                result = await engine.submit_answer(answer)
                played += 1
                if result:
                    correct_count += 1
                    typer.secho("Correct!", fg="green")
                else:
                    typer.secho(f"Wrong. The answer was '{question.correct_answer}'.", fg="red")
                if engine.last_update_ok is False:
                    typer.secho("Progress for this word could not be saved.", fg="yellow")
        finally:
            engine.close()
            store.close()
            await service.close()
        if played:
            typer.echo(f"\n{correct_count}/{played} correct.")

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("ai_api_key"):
        d["ai_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))


if __name__ == "__main__":
    app()
