"""Click CLI: wires config, backend, store and orchestrator to run and manage debates."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.rule import Rule

from config.config_loader import AppConfig, load_config
from math_council.errors import CouncilError
from math_council.events import DEBATE_COMPLETE, NEW_MESSAGE, TYPING, Event
from math_council.generator import ResponseGenerator
from math_council.healthcheck import run_health_check
from math_council.inbox import ProblemFile, ProblemFileError, archive_file, ensure_dirs, parse_file, scan_inbox
from math_council.models import Message
from math_council.orchestrator import DebateOrchestrator
from math_council.output import (
    print_message,
    print_personalities,
    print_sessions,
    print_status,
    save_transcript,
)
from math_council.personalities import PERSONALITIES, personality_names
from math_council.providers import PROVIDER_CLASSES, AIProvider
from math_council.store import TranscriptStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def _pick_provider_name(config: AppConfig, preferred: str) -> str | None:
    """Preferred backend when its key is set, else the first configured one that is."""
    if preferred in config.available_providers:
        return preferred
    for name in config.models:
        if name in config.available_providers:
            return name
    return None


def _build_provider(config: AppConfig) -> AIProvider | None:
    """Instantiate the response backend, or None to run on simulated responses."""
    name = _pick_provider_name(config, config.defaults.provider)
    if name is None:
        logger.warning("No API key configured. AI responses will be simulated.")
        return None
    model_cfg = config.models[name]
    provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
    if provider_cls is None:
        logger.warning("Provider '%s' uses unknown sdk '%s', responses will be simulated", name, model_cfg.sdk)
        return None
    try:
        return provider_cls(model_cfg)
    except Exception as exc:
        logger.warning("Failed to instantiate provider '%s': %s", name, exc)
        return None


def _check_provider(provider: AIProvider | None) -> AIProvider | None:
    """Ping the backend; offer to continue on simulated responses if it fails."""
    if provider is None:
        return None

    console.print("\n[bold]Checking provider...[/bold]")
    ok, err = asyncio.run(run_health_check(provider))
    if ok:
        console.print(f"  [green]OK  [/green] {provider.name()} ({provider.model_string()})\n")
        return provider

    short_err = err.splitlines()[0][:120] if err else "unknown error"
    console.print(f"  [red]FAIL[/red] {provider.name()}: {short_err}")
    if not click.confirm("Continue with simulated responses?", default=True):
        sys.exit(0)
    console.print()
    return None


def _build_orchestrator(config: AppConfig, provider: AIProvider | None = None) -> DebateOrchestrator:
    store = TranscriptStore(config.database.url, echo=config.database.echo)
    store.initialize()
    generator = ResponseGenerator(provider, config.prompts)
    return DebateOrchestrator(
        store,
        generator,
        min_members=config.defaults.min_members,
        max_members=config.defaults.max_members,
        max_sessions=config.cache.max_sessions,
        ttl_sec=config.cache.ttl_sec,
    )


def _resolve_settings(
    config: AppConfig,
    difficulty_cli: str | None,
    members_cli: int | None,
    problem_file: ProblemFile | None = None,
) -> tuple[str, int]:
    """Returns (difficulty, members). CLI flag > frontmatter > config default."""
    difficulty = next(
        v for v in (difficulty_cli, problem_file and problem_file.difficulty, config.defaults.difficulty)
        if v is not None
    )
    members = next(
        v for v in (members_cli, problem_file and problem_file.members, config.defaults.members)
        if v is not None
    )
    if difficulty not in config.defaults.difficulties:
        raise click.BadParameter(
            f"{difficulty!r} is not one of {', '.join(config.defaults.difficulties)}",
            param_hint="difficulty",
        )
    return difficulty, members


async def _render_events(queue: asyncio.Queue[Event]) -> None:
    turn = 0
    while True:
        event = await queue.get()
        try:
            if event.kind == TYPING:
                console.print(f"[dim]{event.payload} is thinking...[/dim]")
            elif event.kind == NEW_MESSAGE:
                turn += 1
                print_message(event.payload, turn)
            elif event.kind == DEBATE_COMPLETE:
                console.print(Rule("[bold green]Debate complete[/bold green]"))
        except Exception as exc:
            logger.error("Could not render %s event for session %d: %s", event.kind, event.session_id, exc)
        finally:
            queue.task_done()


async def _debate(orchestrator: DebateOrchestrator, session_id: int, max_turns: int | None) -> list[Message]:
    """Advance a session while streaming its events to the console."""
    queue = orchestrator.bus.subscribe(session_id)
    renderer = asyncio.create_task(_render_events(queue))
    try:
        produced = await orchestrator.run_debate(session_id, max_turns=max_turns)
        await queue.join()
    finally:
        renderer.cancel()
        orchestrator.bus.unsubscribe(session_id, queue)
    return produced


async def _export(orchestrator: DebateOrchestrator, session_id: int, output_dir: Path) -> Path:
    status = await orchestrator.get_status(session_id)
    messages = await orchestrator.get_transcript(session_id)
    return save_transcript(status, messages, output_dir)


async def _run_new(
    orchestrator: DebateOrchestrator,
    problem: str,
    difficulty: str,
    members: int,
    run_now: bool,
    output_dir: Path | None,
) -> int:
    session_id, _ = await orchestrator.create_session(problem, difficulty, members)
    print_status(await orchestrator.get_status(session_id))
    if run_now:
        await _debate(orchestrator, session_id, max_turns=None)
        if output_dir is not None:
            saved = await _export(orchestrator, session_id, output_dir)
            console.print(f"\n[dim]Saved to: {saved}[/dim]")
    return session_id


async def _run_inbox(
    orchestrator: DebateOrchestrator,
    config: AppConfig,
    inbox_dir: Path,
    archive_dir: Path,
    difficulty_cli: str | None,
    members_cli: int | None,
    output_dir: Path,
) -> None:
    """Debate every problem file in the inbox, oldest first."""
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            problem_file = parse_file(file_path)
            difficulty, members = _resolve_settings(config, difficulty_cli, members_cli, problem_file)
            session_id, _ = await orchestrator.create_session(problem_file.problem, difficulty, members)
            await _debate(orchestrator, session_id, max_turns=None)
            saved = await _export(orchestrator, session_id, output_dir)
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} -> session {session_id}, {saved} (archived: {archived.name})")
        except Exception as exc:
            logger.error("Failed: %s -- %s", file_path.name, exc)
            archive_file(file_path, archive_dir, failed=True)


def _run(coro):
    """Run a coroutine, turning engine errors into a clean CLI failure."""
    try:
        return asyncio.run(coro)
    except CouncilError as exc:
        _fail(str(exc))


@click.group()
@click.option("--settings", "settings_path", default=None,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Path to settings.yaml (default: config/settings.yaml)")
@click.option("--database", "database_url", default=None, help="SQLAlchemy database URL override")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, settings_path: Path | None, database_url: str | None, verbose: bool) -> None:
    """The Math Council -- mathematician personalities debate your problem.

    \b
    Examples:
      python -m math_council.cli new "Is 0.999... = 1?" --members 3 --run
      python -m math_council.cli run 4 --turns 2
      python -m math_council.cli kick 4 12
      python -m math_council.cli export 4 --output ./output
      python -m math_council.cli inbox
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so model responses containing
    # Unicode chars don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(settings_path) if settings_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if database_url:
        config.database.url = database_url
    ctx.obj = config


@main.command()
def personalities() -> None:
    """List the mathematicians who can sit on the council."""
    print_personalities(PERSONALITIES)


@main.command()
@click.argument("problem", required=False)
@click.option("--file", "problem_file", type=click.Path(exists=True, dir_okay=False),
              help="Read the problem from a .md file")
@click.option("--difficulty", default=None, help="easy, medium or hard (default: from config)")
@click.option("--members", default=None, type=int, help="Council size (default: from config)")
@click.option("--run/--no-run", "run_now", default=False, help="Debate the problem to completion right away")
@click.option("--output", "output_path", default=None, help="Export the transcript here after --run")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def new(
    config: AppConfig,
    problem: str | None,
    problem_file: str | None,
    difficulty: str | None,
    members: int | None,
    run_now: bool,
    output_path: str | None,
    skip_health_check: bool,
) -> None:
    """Convene a new council on PROBLEM."""
    parsed: ProblemFile | None = None
    if problem_file:
        try:
            parsed = parse_file(Path(problem_file))
        except ProblemFileError as exc:
            raise click.BadParameter(str(exc), param_hint="--file") from exc
        problem = parsed.problem
    if not problem:
        _fail("Provide a PROBLEM argument or --file.")

    effective_difficulty, effective_members = _resolve_settings(config, difficulty, members, parsed)

    provider = None
    if run_now:
        provider = _build_provider(config)
        if not skip_health_check:
            provider = _check_provider(provider)

    output_dir = Path(output_path) if output_path else (config.defaults.output_dir if run_now else None)
    orchestrator = _build_orchestrator(config, provider)
    session_id = _run(
        _run_new(orchestrator, problem, effective_difficulty, effective_members, run_now, output_dir)
    )
    console.print(f"\nSession [bold]{session_id}[/bold] created.")


@main.command()
@click.argument("session_id", type=int)
@click.option("--turns", default=None, type=int, help="Stop after this many turns (default: until complete)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def run(config: AppConfig, session_id: int, turns: int | None, skip_health_check: bool) -> None:
    """Continue the debate in SESSION_ID."""
    provider = _build_provider(config)
    if not skip_health_check:
        provider = _check_provider(provider)
    orchestrator = _build_orchestrator(config, provider)

    produced = _run(_debate(orchestrator, session_id, max_turns=turns))
    if not produced:
        console.print("[yellow]Debate is not active.[/yellow]")
    print_status(_run(orchestrator.get_status(session_id)))


@main.command()
@click.argument("session_id", type=int)
@click.pass_obj
def show(config: AppConfig, session_id: int) -> None:
    """Show the status and transcript of SESSION_ID."""
    orchestrator = _build_orchestrator(config)
    status = _run(orchestrator.get_status(session_id))
    messages = _run(orchestrator.get_transcript(session_id))
    print_status(status)
    for turn, message in enumerate(messages, start=1):
        print_message(message, turn)


@main.command()
@click.pass_obj
def sessions(config: AppConfig) -> None:
    """List past debates."""
    print_sessions(_build_orchestrator(config).list_sessions())


@main.command()
@click.argument("session_id", type=int)
@click.argument("participant_id", type=int)
@click.pass_obj
def kick(config: AppConfig, session_id: int, participant_id: int) -> None:
    """Remove PARTICIPANT_ID from the council of SESSION_ID."""
    orchestrator = _build_orchestrator(config)
    print_status(_run(orchestrator.kick_participant(session_id, participant_id)))


@main.command()
@click.argument("session_id", type=int)
@click.argument("name", type=click.Choice(personality_names()))
@click.pass_obj
def add(config: AppConfig, session_id: int, name: str) -> None:
    """Invite personality NAME to join SESSION_ID."""
    orchestrator = _build_orchestrator(config)
    participant = _run(orchestrator.add_participant(session_id, name))
    console.print(f"{participant.name} joined as participant {participant.id}.")
    print_status(_run(orchestrator.get_status(session_id)))


@main.command("force-vote")
@click.argument("session_id", type=int)
@click.pass_obj
def force_vote(config: AppConfig, session_id: int) -> None:
    """End the debate in SESSION_ID now."""
    orchestrator = _build_orchestrator(config)
    print_status(_run(orchestrator.force_complete(session_id)))


@main.command()
@click.argument("session_id", type=int)
@click.confirmation_option(prompt="Delete this debate and its transcript?")
@click.pass_obj
def delete(config: AppConfig, session_id: int) -> None:
    """Delete SESSION_ID with its participants and messages."""
    orchestrator = _build_orchestrator(config)
    _run(orchestrator.delete_session(session_id))
    console.print(f"Session {session_id} deleted.")


@main.command()
@click.argument("session_id", type=int)
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.pass_obj
def export(config: AppConfig, session_id: int, output_path: str | None) -> None:
    """Export the transcript of SESSION_ID as markdown."""
    orchestrator = _build_orchestrator(config)
    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    saved = _run(_export(orchestrator, session_id, output_dir))
    console.print(f"[dim]Saved to: {saved}[/dim]")


@main.command()
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--difficulty", default=None, help="Override difficulty for every file")
@click.option("--members", default=None, type=int, help="Override council size for every file")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.pass_obj
def inbox(
    config: AppConfig,
    inbox_dir_override: str | None,
    difficulty: str | None,
    members: int | None,
    output_path: str | None,
    skip_health_check: bool,
) -> None:
    """Debate every .md problem file waiting in the inbox folder."""
    provider = _build_provider(config)
    if not skip_health_check:
        provider = _check_provider(provider)
    orchestrator = _build_orchestrator(config, provider)

    inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    _run(
        _run_inbox(
            orchestrator=orchestrator,
            config=config,
            inbox_dir=inbox_dir,
            archive_dir=config.inbox.archive_dir,
            difficulty_cli=difficulty,
            members_cli=members,
            output_dir=output_dir,
        )
    )


if __name__ == "__main__":
    main()
