"""
nlx-replay CLI.

Commands:
- info: Show a CSC file's header and records
- verify: Check eager and streaming reads agree
- replay: Send CSC files as paced raw data packets
- listen: Receive and count raw data packets
- generate: Write synthetic CSC files
"""

import logging
import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..config import NlxReplayConfig, load_config, generate_default_config
from ..core.errors import NlxError
from ..formats.reader import CscFile, CscFileIterator, count_records
from ..demo.csc_generator import CscGenerator
from ..replay.runner import ReplayRunner
from ..replay.sender import UDPSender
from ..collectors.udp_collector import UDPCollector


app = typer.Typer(
    name="nlx-replay",
    help="Replay Neuralynx CSC recordings as live raw data packets",
    add_completion=False,
)
console = Console()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_state = {'verbose': 0}


def _setup_logging(verbose: int, default_level: int = logging.WARNING) -> None:
    """Configure root logging from -v count, falling back to default_level."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = default_level
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _load_config_or_exit(config_path: Optional[Path]) -> NlxReplayConfig:
    try:
        return load_config(config_path)
    except (NlxError, OSError) as e:
        console.print(f"[red]Error loading config:[/] {e}")
        raise typer.Exit(1)


@app.callback()
def _main(
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="-v info, -vv debug"),
):
    """Replay Neuralynx CSC recordings as live raw data packets."""
    _state['verbose'] = verbose
    _setup_logging(verbose)


# === INFO COMMAND ===

@app.command()
def info(
    csc_file: Path = typer.Argument(..., help="CSC file path", exists=True),
    records: int = typer.Option(5, "-n", "--records", min=0, help="Records to list"),
):
    """Show header fields and the first records of a CSC file."""
    try:
        header, iterator = CscFileIterator.open(csc_file, max_records=records)
        with iterator:
            first_records = list(iterator)
        total = count_records(csc_file)
    except (NlxError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Header: {csc_file.name}")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in header.items():
        table.add_row(key, value)
    console.print(table)

    console.print(f"Records: {total:,}")
    if iterator.trailing_bytes:
        console.print(f"[yellow]Trailing bytes:[/] {iterator.trailing_bytes}")

    if first_records:
        rec_table = Table(title="Records")
        rec_table.add_column("#", justify="right")
        rec_table.add_column("Timestamp", justify="right")
        rec_table.add_column("Channel", justify="right")
        rec_table.add_column("Freq (Hz)", justify="right")
        rec_table.add_column("Valid", justify="right")
        rec_table.add_column("First samples")
        for i, rec in enumerate(first_records):
            rec_table.add_row(
                str(i),
                str(rec.timestamp),
                str(rec.channel_number),
                str(rec.sample_frequency),
                str(rec.number_of_valid_samples),
                ", ".join(str(s) for s in rec.samples[:4]),
            )
        console.print(rec_table)


# === VERIFY COMMAND ===

@app.command()
def verify(
    csc_file: Path = typer.Argument(..., help="CSC file path", exists=True),
    max_records: Optional[int] = typer.Option(None, "-n", "--max-records", min=0),
):
    """Read a file eagerly and by streaming and check both agree."""
    start = time.time()
    try:
        eager = CscFile.open(csc_file, max_records=max_records)
        header, iterator = CscFileIterator.open(csc_file, max_records=max_records)
        with iterator:
            streamed = list(iterator)
    except (NlxError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)
    duration = time.time() - start

    problems = []
    if header != eager.header:
        problems.append("headers differ")
    if len(streamed) != len(eager.records):
        problems.append(f"record counts differ: {len(eager.records)} vs {len(streamed)}")
    for i, (a, b) in enumerate(zip(eager.records, streamed)):
        if a != b:
            problems.append(f"record {i} differs")
            break

    if problems:
        console.print("[bold red]━━━ FAILED ━━━[/]")
        for p in problems:
            console.print(f"  [red]✗[/] {p}")
        raise typer.Exit(1)

    console.print(
        f"[bold green]━━━ PASSED ━━━[/] {len(streamed):,} records identical "
        f"({duration:.2f}s)"
    )


# === REPLAY COMMAND ===

@app.command()
def replay(
    csc_files: List[Path] = typer.Argument(..., help="One CSC file per channel", exists=True),
    host: Optional[str] = typer.Option(None, "--host", help="Destination address"),
    port: Optional[int] = typer.Option(None, "-p", "--port", help="Destination port"),
    max_records: Optional[int] = typer.Option(None, "-n", "--max-records"),
    first_id: Optional[int] = typer.Option(None, "--first-id", help="First packet id"),
    speed: Optional[float] = typer.Option(None, "-s", "--speed", help="Playback speed factor"),
    packet_size: Optional[str] = typer.Option(None, "--packet-size", help="Declared size or 'auto'"),
    checksum: Optional[bool] = typer.Option(None, "--checksum/--no-checksum", help="Fill packet crc"),
    strict: Optional[bool] = typer.Option(None, "--strict/--lenient", help="Reject trailing partial records"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config"),
):
    """Send CSC files as raw data packets at the sampling rate."""
    cfg = _load_config_or_exit(config_path)

    if _state['verbose'] == 0:
        logging.getLogger().setLevel(cfg.logging.level_value)

    if host is not None:
        cfg.network.host = host
    if port is not None:
        cfg.network.port = port
    if max_records is not None:
        cfg.replay.max_records = max_records
    if first_id is not None:
        cfg.replay.first_packet_id = first_id
    if speed is not None:
        cfg.replay.speed = speed
    if packet_size is not None:
        cfg.replay.packet_size = packet_size
    if checksum is not None:
        cfg.replay.fill_checksum = checksum
    if strict is not None:
        cfg.reader.strict = strict

    errors = cfg.validate()
    if errors:
        console.print("[red]Invalid options:[/]")
        for e in errors:
            console.print(f"  - {e}")
        raise typer.Exit(1)

    console.print(f"[bold blue]nlx-replay v{__version__}[/]")
    console.print(f"Channels: {len(csc_files)} → {cfg.network.host}:{cfg.network.port}")

    try:
        with UDPSender(cfg.network.host, cfg.network.port, ttl=cfg.network.ttl) as sender:
            runner = ReplayRunner(sender.send, cfg.replay, strict=cfg.reader.strict)
            result = runner.run(csc_files)
    except (NlxError, OSError) as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/]")
        raise typer.Exit(130)

    table = Table(title="Replay Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Channels", str(result.channels))
    table.add_row("Records/channel", f"{result.records_per_channel:,}")
    table.add_row("Sampling rate", f"{result.sampling_frequency:,} Hz")
    table.add_row("Packets sent", f"{result.packets_sent:,}")
    table.add_row("Next packet id", str(result.next_packet_id))
    if result.pacing:
        table.add_row("Duration", f"{result.pacing.elapsed:.2f}s")
        table.add_row("Rate", f"{result.pacing.rate:,.0f}/s")
        table.add_row("Overruns", f"{result.pacing.overruns:,}")
    console.print(table)


# === LISTEN COMMAND ===

@app.command()
def listen(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(26090, "-p", "--port", help="Bind port"),
    duration: Optional[float] = typer.Option(None, "-d", "--duration", help="Stop after seconds"),
    trust_declared_size: bool = typer.Option(False, "--trust-declared-size", help="Size bodies from packet_size"),
):
    """Receive raw data packets and print statistics."""
    collector = UDPCollector(host=host, port=port, trust_declared_size=trust_declared_size)
    try:
        collector.start()
    except OSError as e:
        console.print(f"[red]Cannot listen on {host}:{port}:[/] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Listening on {host}:{port}...[/]")
    deadline = time.monotonic() + duration if duration else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/]")
    finally:
        collector.stop()

    table = Table(title="Collector Statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in collector.stats().items():
        table.add_row(key, str(value))
    console.print(table)


# === GENERATE COMMAND ===

@app.command()
def generate(
    output_dir: Path = typer.Argument(Path("./csc_data"), help="Output directory"),
    channels: int = typer.Option(2, "--channels", min=1),
    records: int = typer.Option(100, "--records", min=0),
    frequency: int = typer.Option(32000, "--frequency", min=1, help="Sampling frequency (Hz)"),
    seed: int = typer.Option(42, "--seed"),
):
    """Write synthetic CSC files, one per channel."""
    paths = CscGenerator(seed=seed).write_files(
        output_dir,
        channels=channels,
        records=records,
        sampling_frequency=frequency,
    )
    for path in paths:
        console.print(f"[green]Written:[/] {path}")


# === CONFIG COMMAND ===

@app.command("config")
def config_cmd(
    action: str = typer.Argument(..., help="Action: init|validate|dump"),
    path: Optional[Path] = typer.Argument(None, help="Config file path"),
):
    """Configuration management."""
    if action == "init":
        console.print(generate_default_config())

    elif action == "validate":
        if not path:
            console.print("[red]Path required for validate[/]")
            raise typer.Exit(1)
        try:
            cfg = NlxReplayConfig.load(path)
        except (NlxError, OSError) as e:
            console.print(f"[red]Error:[/] {e}")
            raise typer.Exit(1)
        errors = cfg.validate()
        if errors:
            console.print("[red]Invalid configuration:[/]")
            for e in errors:
                console.print(f"  - {e}")
            raise typer.Exit(1)
        console.print(f"[green]Valid:[/] {path}")

    elif action == "dump":
        try:
            cfg = NlxReplayConfig.load(path) if path else load_config()
        except (NlxError, OSError) as e:
            console.print(f"[red]Error:[/] {e}")
            raise typer.Exit(1)
        console.print(cfg.to_yaml())

    else:
        console.print(f"[red]Unknown action:[/] {action}")
        console.print("Valid actions: init, validate, dump")
        raise typer.Exit(1)


# === VERSION COMMAND ===

@app.command()
def version():
    """Show version information."""
    console.print(Panel.fit(f"[bold blue]nlx-replay v{__version__}[/]"))


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
