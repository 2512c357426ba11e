"""Command-line host for the GPS track store.

Usage:
    geotrack tracks
    geotrack create "Morning run" --color red
    geotrack mode continuous
    geotrack record --port /dev/ttyUSB0        # kill -USR1 <pid> marks a highlight
    geotrack record --replay drive.nmea
    geotrack point 52.52 13.405
    geotrack render -o scene.geojson
    geotrack export "Morning run" -o ./outbox
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import click

from host.config import AppConfig, load_config
from host.config_store import JsonFileConfigStore
from host.nmea_source import ReplayLocationSource, SerialLocationSource
from host.share import DirectoryShareSink
from tracklog.catalog import TRACK_COLORS
from tracklog.engine import Sample
from tracklog.errors import DecodeSkipped, TrackStoreError, UnknownTrack
from tracklog.projection import scene_to_geojson
from tracklog.session import TrackSession
from tracklog.settings import Settings
from tracklog.stats import analyze_track
from tracklog.store import TrackFileStore

logger = logging.getLogger(__name__)


def parse_color(value: str) -> int:
    """Palette name (red, green, ...) or an ARGB literal like 0xFF00FF00 / #FF00FF00."""
    key = value.strip().lower()
    if key in TRACK_COLORS:
        return TRACK_COLORS[key]
    text = key.removeprefix("#").removeprefix("0x")
    try:
        color = int(text, 16)
    except ValueError:
        raise click.BadParameter(
            f"{value!r} is neither a palette color ({', '.join(TRACK_COLORS)}) nor hex ARGB"
        ) from None
    if len(text) <= 6:
        color |= 0xFF000000  # RRGGBB: opaque
    return color & 0xFFFFFFFF


def _session(cfg: AppConfig) -> TrackSession:
    settings = Settings(JsonFileConfigStore(cfg.settings_path))
    return TrackSession(settings, TrackFileStore(cfg.tracks_dir))


@contextmanager
def _user_errors():
    """Turn track store errors into a one-line CLI error."""
    try:
        yield
    except TrackStoreError as e:
        raise click.ClickException(str(e)) from e
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(path_type=Path),
              help="JSON config file")
@click.option("--data-dir", type=click.Path(path_type=Path), envvar="GEOTRACK_DATA_DIR",
              help="Directory for settings and track files")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None, data_dir: Path | None):
    """geotrack: record named GPS tracks to CSV files."""
    cfg = load_config(config_path)
    if data_dir is not None:
        cfg = cfg.model_copy(update={"data_dir": data_dir})
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    ctx.obj = cfg


@cli.command("tracks")
@click.pass_obj
def list_tracks(cfg: AppConfig):
    """List tracks. * marks the current track, - a hidden one."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
    mode = "continuous" if session.mode.continuous else "manual"
    click.echo(f"Mode: {mode}")
    for entry in session.catalog.entries:
        t = entry.descriptor
        flag = "*" if t.name == session.catalog.current_name else " "
        vis = " " if entry.visible else "-"
        count = len(session.store.read_all(t.filename))
        click.echo(f"{flag}{vis} {t.name:<24} {t.filename:<32} #{t.color:08X} {count:>6} pts")


@cli.command()
@click.argument("name")
@click.option("--color", default="red", help="Palette name or hex ARGB")
@click.pass_obj
def create(cfg: AppConfig, name: str, color: str):
    """Create a track and make it current."""
    argb = parse_color(color)
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        track = session.catalog.create(name, argb)
    click.echo(f"Created {track.name} -> {track.filename}")


@cli.command()
@click.argument("name")
@click.pass_obj
def select(cfg: AppConfig, name: str):
    """Make NAME the current track."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        session.catalog.set_current(name)
    click.echo(f"Current track: {name}")


def _set_visible(cfg: AppConfig, name: str, visible: bool) -> None:
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        session.catalog.set_visibility(session.catalog.index_of(name), visible)


@cli.command()
@click.argument("name")
@click.pass_obj
def show(cfg: AppConfig, name: str):
    """Show track NAME on the map."""
    _set_visible(cfg, name, True)


@cli.command()
@click.argument("name")
@click.pass_obj
def hide(cfg: AppConfig, name: str):
    """Hide track NAME from the map."""
    _set_visible(cfg, name, False)


@cli.command()
@click.argument("name")
@click.confirmation_option(prompt="Delete the track and its CSV file?")
@click.pass_obj
def delete(cfg: AppConfig, name: str):
    """Delete track NAME and its file."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        session.catalog.remove(name)
    click.echo(f"Deleted {name}; current track: {session.catalog.current_name or '-'}")


@cli.command()
@click.argument("mode", type=click.Choice(["manual", "continuous"]), required=False)
@click.pass_obj
def mode(cfg: AppConfig, mode: str | None):
    """Show or set the recording mode."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        if mode is not None:
            session.set_mode(mode == "continuous")
    click.echo("continuous" if session.mode.continuous else "manual")


@cli.command()
@click.argument("lat", type=float)
@click.argument("lon", type=float)
@click.pass_obj
def point(cfg: AppConfig, lat: float, lon: float):
    """Feed one fix at LAT LON and press save.

    Manual mode writes a MANUAL point; continuous mode writes the fix as a
    CONTINUOUS point followed by a HIGHLIGHT.
    """
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        session.engine.on_sample(Sample(lat=lat, lon=lon, timestamp=datetime.now()))
        rec = session.engine.manual_trigger()
    click.echo(f"Saved {rec.kind.value} {rec.lat}, {rec.lon} to {session.catalog.current_name}")


@cli.command()
@click.option("--port", help="Serial port of the GPS receiver (default from config)")
@click.option("--baudrate", type=int, help="Serial baud rate")
@click.option("--replay", type=click.Path(exists=True, path_type=Path),
              help="Replay an NMEA log instead of reading a receiver")
@click.option("--duration", type=float, default=0.0, help="Stop after N seconds (0 = until Ctrl-C)")
@click.pass_obj
def record(cfg: AppConfig, port: str | None, baudrate: int | None, replay: Path | None, duration: float):
    """Record fixes from a GPS receiver or NMEA log.

    Send SIGUSR1 to save the current position (highlight in continuous mode).
    """
    if replay is not None:
        source = ReplayLocationSource(replay)
    else:
        source = SerialLocationSource(
            port or cfg.gps.port, baudrate or cfg.gps.baudrate, cfg.gps.timeout_s,
        )

    state = {"running": True, "trigger": False}

    def _stop(sig, frame):
        logger.info("Shutdown signal received")
        state["running"] = False

    def _trigger(sig, frame):
        state["trigger"] = True

    session = TrackSession(
        Settings(JsonFileConfigStore(cfg.settings_path)), TrackFileStore(cfg.tracks_dir), source,
    )
    with _user_errors():
        session.open(start_location=False)
    try:
        source.open()
    except (OSError, ValueError) as e:
        raise click.ClickException(f"cannot open location source: {e}") from e

    handlers = {signal.SIGINT: _stop, signal.SIGTERM: _stop}
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = _trigger
    previous = {sig: signal.signal(sig, handler) for sig, handler in handlers.items()}

    deadline = time.monotonic() + duration if duration > 0 else None
    session.engine.start()
    click.echo(f"Recording to {session.catalog.current_name} "
               f"({'continuous' if session.mode.continuous else 'manual'} mode)")
    try:
        while state["running"]:
            if deadline is not None and time.monotonic() >= deadline:
                break
            if replay is not None:
                if not source.poll():
                    break
            else:
                source.poll()
            if state["trigger"]:
                state["trigger"] = False
                try:
                    rec = session.engine.manual_trigger()
                    click.echo(f"Saved {rec.kind.value} {rec.lat}, {rec.lon}")
                except TrackStoreError as e:
                    click.echo(f"Error: {e}", err=True)
    finally:
        session.close()
        source.close()
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
    click.echo(f"{source.delivered} fixes received")


@cli.command()
@click.option("--output", "-o", type=click.Path(path_type=Path), help="GeoJSON output file")
@click.pass_obj
def render(cfg: AppConfig, output: Path | None):
    """Project visible tracks into a GeoJSON scene."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
    geojson = scene_to_geojson(session.scene())
    text = json.dumps(geojson, indent=2)
    if output is None:
        click.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    click.echo(f"Scene written to {output}")


@cli.command()
@click.argument("name")
@click.pass_obj
def info(cfg: AppConfig, name: str):
    """Show statistics for track NAME."""
    session = _session(cfg)
    with _user_errors():
        session.open(start_location=False)
        track = session.catalog.get(name)
        if track is None:
            raise UnknownTrack(name)
    recs, skipped = [], 0
    for item in session.store.iter_decoded(track.filename):
        if isinstance(item, DecodeSkipped):
            skipped += 1
        else:
            recs.append(item)
    stats = analyze_track(recs)
    click.echo(f"Track: {track.name} ({track.filename})")
    click.echo(stats.summary())
    if skipped:
        click.echo(f"Skipped lines: {skipped}")


@cli.command("export")
@click.argument("name")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Outbox directory")
@click.pass_obj
def export_cmd(cfg: AppConfig, name: str, output: Path | None):
    """Export track NAME's CSV file (text/csv)."""
    session = _session(cfg)
    sink = DirectoryShareSink(output or cfg.outbox_dir)
    with _user_errors():
        session.open(start_location=False)
        dest = session.share(name, sink)
    click.echo(f"Exported to {dest}")


def main() -> None:
    cli(obj=None)


if __name__ == "__main__":
    sys.exit(main())
