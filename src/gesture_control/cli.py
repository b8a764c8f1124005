"""gesture-control CLI.

Usage:
    gesture-control gestures        List recognized gestures
    gesture-control init-config     Write a sample configuration file
    gesture-control check-config    Validate a configuration file
    gesture-control replay          Replay a landmark recording through the engine
    gesture-control stats           Replay silently and print statistics
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional

import typer

from gesture_control.actions import LoggingActionExecutor, SystemActionExecutor
from gesture_control.config import ConfigError, LoadResult, load_config, write_default_config
from gesture_control.energy import EnergyMode
from gesture_control.gestures import GestureTier, GestureType
from gesture_control.metrics import MetricsCollector
from gesture_control.pipeline import GestureEngine
from gesture_control.recorder import LandmarkPlayer

app = typer.Typer(
    name="gesture-control",
    help="🤚 Hand gesture recognition and gesture-to-action dispatch.",
    add_completion=False,
)


def _configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )


def _load(config: Optional[str]) -> LoadResult:
    if config is None:
        return LoadResult()
    path = Path(config)
    if not path.exists():
        typer.echo(f"❌ Config not found: {config}", err=True)
        raise typer.Exit(1)
    try:
        return load_config(path)
    except ConfigError as e:
        typer.echo(f"❌ Invalid config: {e}", err=True)
        raise typer.Exit(1)


def _load_recording(recording: str) -> LandmarkPlayer:
    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)
    return LandmarkPlayer.load(path)


class _ReplayClock:
    """Engine clock that follows recorded frame timestamps."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _run(
    player: LandmarkPlayer,
    loaded: LoadResult,
    dry_run: bool,
    energy: Optional[str],
    realtime: bool = False,
    speed: float = 1.0,
    on_event=None,
) -> tuple[GestureEngine, MetricsCollector]:
    executor = LoggingActionExecutor() if dry_run else SystemActionExecutor()

    if realtime:
        clock = time.monotonic
        frames = player.play_realtime(speed=speed)
    else:
        clock = _ReplayClock()
        frames = player.play()

    engine = GestureEngine.from_config(loaded, executor=executor, clock=clock)
    if energy:
        engine.set_energy_mode(EnergyMode.parse(energy))
    metrics = MetricsCollector(engine)
    engine.add_observer(metrics)
    if on_event is not None:
        engine.add_observer(on_event)

    with engine:
        for i, frame in enumerate(frames):
            # Energy saver thins the sampling rate the way a camera loop would
            if i % engine.energy.frame_stride:
                continue
            if isinstance(clock, _ReplayClock):
                clock.now = frame.timestamp
            t0 = time.perf_counter()
            engine.process_frame(frame)
            metrics.record_latency(time.perf_counter() - t0)
        engine.dispatcher.wait()
    return engine, metrics


@app.command()
def gestures():
    """List every gesture type with its tier and config identifier."""
    for tier in GestureTier:
        members = [g for g in GestureType if g.tier is tier]
        if not members:
            continue
        typer.echo(f"{tier.value}:")
        for g in members:
            typer.echo(f"   {g.value:28s} {g.display_name}")


@app.command("init-config")
def init_config(
    path: str = typer.Argument("gesture_config.yml", help="Where to write the config"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a sample configuration with every gesture mapped but disabled."""
    target = Path(path)
    if target.exists() and not force:
        typer.echo(f"❌ {path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(1)
    write_default_config(target)
    typer.echo(f"💾 Wrote sample configuration to: {target}")


@app.command("check-config")
def check_config(
    path: str = typer.Argument(..., help="Configuration file to validate"),
):
    """Validate a configuration file and report rejected mappings."""
    loaded = _load(path)
    enabled = sum(1 for m in loaded.mappings if m.enabled)
    typer.echo(f"⚙️  Energy mode: {loaded.engine.energy_mode.value}")
    typer.echo(f"   Mappings: {len(loaded.mappings)} loaded, {enabled} enabled")
    for mapping in loaded.mappings:
        state = "on " if mapping.enabled else "off"
        typer.echo(
            f"   [{state}] {mapping.gesture.value:28s} → {mapping.action.name} "
            f"({mapping.action.type.value}, ≥{mapping.min_confidence:.2f})"
        )
    for index, reason in loaded.rejected:
        typer.echo(f"   ⚠️  record #{index}: {reason}", err=True)
    if loaded.rejected:
        raise typer.Exit(1)
    typer.echo("✅ Configuration OK")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to a .json or .npz landmark recording"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file"),
    dry_run: bool = typer.Option(True, "--dry-run/--execute", help="Log actions instead of running them"),
    energy: Optional[str] = typer.Option(None, help="Energy mode override"),
    realtime: bool = typer.Option(False, help="Play at original timing"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier (with --realtime)"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recorded landmark session through the engine."""
    _configure_logging(log_level)
    if speed <= 0:
        typer.echo(f"❌ Speed must be positive, got {speed}", err=True)
        raise typer.Exit(1)
    loaded = _load(config)
    player = _load_recording(recording)
    typer.echo(f"▶️  Replaying {Path(recording).name} ({player.frame_count} frames, {player.duration:.1f}s)")

    def on_event(event):
        typer.echo(f"   🤚 {event.timestamp:8.3f}s {event.type.display_name} (confidence: {event.confidence:.2f})")

    engine, _ = _run(player, loaded, dry_run, energy, realtime=realtime, speed=speed, on_event=on_event)

    summary = engine.bus.statistics()
    typer.echo(f"\n✅ Replay complete. {summary.total} gestures detected.")
    outcomes = engine.dispatcher.outcomes()
    if outcomes:
        failed = [o for o in outcomes if not o.ok]
        typer.echo(f"   Actions: {len(outcomes) - len(failed)} ok, {len(failed)} failed")
        for o in failed:
            typer.echo(f"   ❌ {o.action_name}: {o.error}", err=True)


@app.command()
def stats(
    recording: str = typer.Argument(..., help="Path to a .json or .npz landmark recording"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Configuration file"),
    energy: Optional[str] = typer.Option(None, help="Energy mode override"),
    output_format: str = typer.Option("json", "--format", help="Output format: json or prometheus"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recording without running actions and print statistics."""
    _configure_logging(log_level)
    if output_format not in ("json", "prometheus"):
        typer.echo(f"❌ Unknown format: {output_format}", err=True)
        raise typer.Exit(1)

    player = _load_recording(recording)
    engine, metrics = _run(player, _load(config), dry_run=True, energy=energy)

    if output_format == "prometheus":
        typer.echo(metrics.render(), nl=False)
        return

    report = {
        "frames": {
            "received": engine.stats.frames_received,
            "processed": engine.stats.frames_processed,
            "dropped": engine.stats.frames_dropped,
        },
        "statistics": engine.bus.statistics().to_dict(),
        "history": [r.to_dict() for r in engine.bus.history(limit=100)],
    }
    typer.echo(json.dumps(report, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
