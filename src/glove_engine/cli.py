"""GloveEngine CLI.

Usage:
    glove-engine serve       — Start the HTTP/WebSocket server
    glove-engine simulate    — Run synthetic glove frames through the pipeline
    glove-engine replay      — Classify frames recorded in a JSON / JSON-lines file
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="glove-engine",
    help="🧤 Real-time gesture classification for sensor gloves.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, help="Port (default from config)"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
):
    """Start the gesture server."""
    import uvicorn
    from glove_engine.config import load_config, set_config

    cfg = load_config(config)
    set_config(cfg)
    level = log_level or cfg.log_level
    _setup_logging(level)

    from glove_engine import server

    server.configure(cfg)
    bind_host = host or cfg.host
    bind_port = port or cfg.port
    typer.echo(f"🚀 Starting GloveEngine server on {bind_host}:{bind_port}")
    typer.echo("   POST /sensor-data · GET /current-state · POST /calibrate · GET /health · WS /ws")
    uvicorn.run(server.app, host=bind_host, port=bind_port, log_level=level)


@app.command()
def simulate(
    frames: int = typer.Option(150, help="Number of frames to generate"),
    device: str = typer.Option("rightHand1", help="Device id"),
    interval: float = typer.Option(100.0, help="Milliseconds between frames"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print the summary"),
):
    """Feed simulated glove frames through the pipeline and print the results."""
    from glove_engine.config import load_config
    from glove_engine.pipeline import GesturePipeline
    from glove_engine.simulator import GloveSimulator, SimulatorSettings

    pipeline = GesturePipeline(load_config(config))
    sim = GloveSimulator(device_id=device, settings=SimulatorSettings(interval_ms=interval), seed=seed)

    matches = 0
    counts: Counter = Counter()
    for i, raw in enumerate(sim.frames(frames)):
        expected = sim.gesture_at(i * interval)
        event = pipeline.process(raw)
        counts[event.gesture] += 1
        matches += event.gesture == expected
        if not quiet:
            typer.echo(
                f"[{event.device_id}] sent {expected:<9} → {event.gesture:<9} "
                f"({event.confidence:.0%}) [{event.transform_mode.value}] "
                f"move={event.movement.movement_magnitude:.3f} scale={event.movement.scale_factor:.2f}"
            )

    typer.echo(f"\n📊 {frames} frames, {matches / max(frames, 1):.1%} matched the simulated gesture")
    for gesture, count in counts.most_common():
        typer.echo(f"   {gesture:<10} {count}")


def _read_frames(path: Path) -> list:
    text = path.read_text()
    stripped = text.lstrip()
    if stripped.startswith("["):
        return json.loads(text)
    return [json.loads(line) for line in text.splitlines() if line.strip()]


@app.command()
def replay(
    input_file: str = typer.Argument(..., help="JSON array or JSON-lines file of raw frames"),
    output: Optional[str] = typer.Option(None, "-o", help="Write classified events as JSON lines"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
):
    """Replay recorded frames through a fresh pipeline."""
    from glove_engine.config import load_config
    from glove_engine.errors import FrameValidationError
    from glove_engine.pipeline import GesturePipeline

    path = Path(input_file)
    if not path.exists():
        typer.echo(f"❌ File not found: {input_file}", err=True)
        raise typer.Exit(1)

    try:
        raw_frames = _read_frames(path)
    except json.JSONDecodeError as e:
        typer.echo(f"❌ Could not parse {input_file}: {e}", err=True)
        raise typer.Exit(1)

    pipeline = GesturePipeline(load_config(config))
    events = []
    rejected = 0
    for raw in raw_frames:
        try:
            event = pipeline.process(raw)
        except FrameValidationError as e:
            rejected += 1
            typer.echo(f"⚠️  Rejected frame: {e}", err=True)
            continue
        events.append(event.to_dict())
        typer.echo(f"[{event.device_id}] {event.gesture} ({event.confidence:.0%}) [{event.transform_mode.value}]")

    if output:
        with open(output, "w") as f:
            for event in events:
                f.write(json.dumps(event) + "\n")
        typer.echo(f"💾 Wrote {len(events)} events to {output}")

    typer.echo(f"✅ {len(events)} classified, {rejected} rejected")


def main():
    app()


if __name__ == "__main__":
    main()
