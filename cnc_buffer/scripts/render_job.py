#!/usr/bin/env python3
"""
Render Job Script.

Feed a YAML job through the buffer offline and print what the executor
would receive.

Usage:
    python -m cnc_buffer.scripts.render_job job.yaml
    python -m cnc_buffer.scripts.render_job job.yaml --drain
    python -m cnc_buffer.scripts.render_job job.yaml --json --output out.json
    python -m cnc_buffer.scripts.render_job job.yaml --config my_device.yaml

Job file format:
    operations:
      - kind: move
        data: {x: 100, y: 0}
        duration: 10        # optional, ms
      - kind: height
        data: {z: 7500, state: down}
      - kind: message
        data: "hello"
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from cnc_buffer.bridge.executor import RecordingExecutorBridge
from cnc_buffer.buffer.controller import BufferController, DequeueStatus
from cnc_buffer.configs.loader import BufferConfig, load_config
from cnc_buffer.observers.notifier import RecordingObserver
from src.utils.fs import atomic_write_text, atomic_yaml_dump, load_yaml
from src.utils.hashing import sha256_file
from src.utils.logging_config import install_excepthook, push_context, setup_logging

logger = logging.getLogger(__name__)


class JobFileError(Exception):
    """Job file is missing or malformed."""

    pass


def load_job(path: str | Path) -> list[dict[str, Any]]:
    """Read the ``operations`` list from a YAML job file.

    Raises
    ------
    JobFileError
        If the file is missing, unparsable or has no operation list.
    """
    try:
        data = load_yaml(path)
    except FileNotFoundError as exc:
        raise JobFileError(f"Job file not found: {path}") from exc
    except Exception as exc:
        raise JobFileError(f"Cannot parse job file {path}: {exc}") from exc

    ops = data.get("operations") if isinstance(data, dict) else None
    if not isinstance(ops, list):
        raise JobFileError(f"{path}: expected an 'operations' list")
    for idx, op in enumerate(ops):
        if not isinstance(op, dict) or "kind" not in op:
            raise JobFileError(f"{path}: operation {idx} needs a 'kind'")
    return ops


def render_job(
    ops: list[dict[str, Any]],
    config: BufferConfig,
    drain: bool = False,
) -> dict[str, Any]:
    """Queue *ops* on a fresh controller and report the outcome.

    Parameters
    ----------
    ops : list[dict]
        Job operations (``kind``, optional ``data`` and ``duration``).
    config : BufferConfig
        Device profile to render with.
    drain : bool
        Dequeue every item afterwards, as if the executor had run them.

    Returns
    -------
    dict
        ``items`` (buffered items), ``rejected`` (indices of refused
        operations), ``intended`` / ``confirmed`` pen, ``events`` (observer
        event names).
    """
    bridge = RecordingExecutorBridge()
    observer = RecordingObserver()
    controller = BufferController(config, bridge=bridge, observers=[observer])

    rejected: list[int] = []
    for idx, op in enumerate(ops):
        if not controller.run(op["kind"], op.get("data"), op.get("duration")):
            logger.warning("Operation %d (%s) rejected", idx, op["kind"])
            rejected.append(idx)

    items = [item.to_dict() for item in controller.items()]

    if drain:
        while len(controller):
            result = controller.dequeue()
            if result.status is not DequeueStatus.OK:
                logger.error("Drain stopped: %s", result.message)
                break

    return {
        "device": config.device.name,
        "items": items,
        "rejected": rejected,
        "intended": controller.intended.to_dict(),
        "confirmed": controller.confirmed.to_dict(),
        "events": observer.names(),
    }


def format_report(report: dict[str, Any]) -> str:
    """Human-readable listing of a :func:`render_job` report."""
    lines = [f"Device: {report['device']}"]
    for item in report["items"]:
        cmd = item["command"]
        lines.append(f"{item['id'][:12]}  {cmd['type']:<12} {item['duration']:>6} ms")
        for line in item["commands"]:
            lines.append(f"    {line}")
    if report["rejected"]:
        lines.append(f"Rejected operations: {report['rejected']}")
    pen = report["intended"]
    lines.append(f"Intended pen: ({pen['x']:g}, {pen['y']:g}) z={pen['z']:g} {pen['state']}")
    pen = report["confirmed"]
    lines.append(f"Confirmed pen: ({pen['x']:g}, {pen['y']:g}) z={pen['z']:g} {pen['state']}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Render a job file through the command buffer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("job", type=str, help="Job file (YAML)")
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Device configuration file path",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override the configured log level",
    )
    parser.add_argument(
        "--drain",
        action="store_true",
        help="Dequeue every item afterwards (simulated executor)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Write the report to a file (.yaml/.yml as YAML, otherwise JSON)",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_level=(args.log_level or config.logging.level).upper(),
        log_file=config.logging.file,
        json=config.logging.json,
        context={"app": "render_job"},
    )
    install_excepthook()
    push_context(device=config.device.name, job=Path(args.job).stem)

    try:
        ops = load_job(args.job)
    except JobFileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = render_job(ops, config, drain=args.drain)
    report["job_sha256"] = sha256_file(args.job)

    if args.output:
        out = Path(args.output)
        if out.suffix in (".yaml", ".yml"):
            atomic_yaml_dump(report, out)
        else:
            atomic_write_text(out, json.dumps(report, indent=2))
        logger.info("Report written to %s", out)

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print(format_report(report))

    return 2 if report["rejected"] else 0


if __name__ == "__main__":
    sys.exit(main())
