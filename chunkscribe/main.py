"""Command line entry point for ChunkScribe."""

import sys
import logging
from pathlib import Path

import click
from aiohttp import web
from rich.console import Console
from rich.table import Table

from .config import ChunkScribeConfig
from .errors import ChunkScribeError
from .export import TextExportOptions
from .server import create_app
from .services import SessionService

logger = logging.getLogger(__name__)
console = Console()


def setup_logging(config: ChunkScribeConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path')
    console_output = config.get('logging.console_output', True)

    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - warnings and above only
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("ChunkScribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to configuration YAML file (default: built-in defaults)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]), default=None,
              help="Override the logging level from the config file")
@click.version_option(version="0.1.0", prog_name="ChunkScribe")
@click.pass_context
def cli(ctx: click.Context, config_path, log_level) -> None:
    """ChunkScribe - chunked recording sessions and transcript export."""
    config = ChunkScribeConfig(config_path)
    setup_logging(config, log_level or config.get('logging.level', 'INFO'))
    ctx.obj = SessionService.from_config(config)


@cli.command()
@click.option("--host", default=None, help="Bind address (default from config)")
@click.option("--port", type=int, default=None, help="Port (default from config)")
@click.pass_obj
def serve(service: SessionService, host, port) -> None:
    """Run the HTTP API."""
    host = host or service.config.get('server.host', '127.0.0.1')
    port = port or int(service.config.get('server.port', 8787))
    logger.info(f"Serving on http://{host}:{port}")
    web.run_app(create_app(service), host=host, port=port, print=None)


@cli.command()
@click.option("--owner", default=None, help="Only list sessions of this owner")
@click.pass_obj
def sessions(service: SessionService, owner) -> None:
    """List sessions."""
    table = Table(title="Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Owner")
    table.add_column("Status", style="magenta")
    table.add_column("Chunks", justify="right")
    table.add_column("Started")

    for session in service.list_sessions(owner):
        table.add_row(
            session.session_id,
            session.title,
            session.owner,
            session.status.value,
            str(service.repository.count_chunks(session.session_id)),
            session.started_at.strftime("%Y-%m-%d %H:%M") if session.started_at else "-",
        )
    console.print(table)


@cli.command()
@click.argument("session_id")
@click.pass_obj
def missing(service: SessionService, session_id) -> None:
    """Report missing chunks of a session."""
    report = service.missing_chunks(session_id)
    status = "[green]complete[/green]" if report.complete else "[red]incomplete[/red]"
    console.print(f"Session [cyan]{session_id}[/cyan]: {status}")
    console.print(f"  chunks received: {report.total_chunks} / expected: {report.expected_chunks}")
    if report.missing:
        console.print(f"  missing: {', '.join(str(seq) for seq in report.missing)}")


@cli.command()
@click.argument("session_id")
@click.option("--format", "format_tag", default="txt", show_default=True,
              help="srt, vtt, json, txt or md")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write to this file instead of stdout")
@click.option("--timestamps/--no-timestamps", default=False, help="Plain text: include timestamps")
@click.option("--confidence/--no-confidence", default=False, help="Plain text: include confidence")
@click.option("--speakers/--no-speakers", default=True, help="Plain text: include speaker labels")
@click.pass_obj
def export(service: SessionService, session_id, format_tag, output, timestamps, confidence, speakers) -> None:
    """Export a session transcript."""
    result = service.export(session_id, format_tag, TextExportOptions(
        include_speakers=speakers,
        include_timestamps=timestamps,
        include_confidence=confidence,
    ))
    if output:
        Path(output).write_text(result.content, encoding="utf-8")
        console.print(f"Wrote {result.export_format.value} export to {output}")
    else:
        click.echo(result.content)


@cli.command()
@click.argument("session_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False), required=True,
              help="File to write the combined audio to")
@click.pass_obj
def audio(service: SessionService, session_id, output) -> None:
    """Write the session's combined audio to a file."""
    assembled = service.combined_audio(session_id)
    Path(output).write_bytes(assembled.data)
    console.print(f"Wrote {len(assembled.data)} bytes "
                  f"({assembled.available_chunks}/{assembled.total_chunks} chunks) to {output}")
    if assembled.partial:
        console.print(f"[yellow]Partial audio, skipped chunks: {assembled.skipped}[/yellow]")


@cli.command()
@click.option("--older-than-hours", type=float, default=None, help="Delete sessions started before this")
@click.option("--owner", default=None, help="Delete all sessions of this owner")
@click.option("--all", "all_sessions", is_flag=True, help="Delete every session")
@click.pass_obj
def cleanup(service: SessionService, older_than_hours, owner, all_sessions) -> None:
    """Delete sessions with their chunks, events and payloads."""
    if older_than_hours is None and owner is None and not all_sessions:
        older_than_hours = float(service.config.get('sessions.cleanup_max_age_hours', 1))
    counts = service.cleanup_sessions(older_than_hours=older_than_hours, owner=owner, all_sessions=all_sessions)
    console.print(
        f"Deleted {counts['sessions']} sessions, {counts['chunks']} chunks, "
        f"{counts['events']} events, {counts['usage']} usage records"
    )


@cli.command()
@click.option("--granularity", type=click.Choice(["day", "week", "month"]), default="day", show_default=True)
@click.pass_obj
def costs(service: SessionService, granularity) -> None:
    """Show transcription usage and estimated cost per period."""
    table = Table(title=f"Usage per {granularity}")
    table.add_column("Period")
    table.add_column("Calls", justify="right")
    table.add_column("Audio (s)", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Cost (USD)", justify="right", style="green")

    for bucket in service.cost_report(granularity):
        row = bucket.to_dict()
        table.add_row(
            row["periodStart"],
            str(row["totalCalls"]),
            f"{row['totalAudioSeconds']:.1f}",
            str(row["sessionCount"]),
            f"{row['estimatedCostUSD']:.6f}",
        )
    console.print(table)


def main() -> None:
    """Main entry point for ChunkScribe."""
    try:
        cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.exceptions.Abort:
        sys.exit(1)
    except ChunkScribeError as e:
        console.print(f"[red]Error:[/red] {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
