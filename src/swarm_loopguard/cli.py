"""
Command-line entry point used by agent hooks.

``swarm-loopguard detect`` reads one JSON request from stdin and writes one
JSON result to stdout. Logs go to stderr. Exit status 0 means the detector
ran (the result may still be "no loop"); any other status means the caller
should assume no loop and carry on.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from typing import IO, Any

from swarm_loopguard import __version__
from swarm_loopguard.core.common.exceptions import InvalidRequestError, LoopGuardError
from swarm_loopguard.core.common.logging_utils import configure_logging
from swarm_loopguard.core.config.app_config import AppConfig, LogLevel, load_config
from swarm_loopguard.core.config.parameter_resolution import ParameterResolution
from swarm_loopguard.embeddings import create_embedding_provider
from swarm_loopguard.loop_detection.engine import LoopDetectionEngine

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1


def build_cli_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the hook process."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", dest="config_file", help="Path to a JSON or YAML config file")
    common.add_argument("--state-dir", help="Directory holding per-agent state")
    common.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Log level (logs are written to stderr)",
    )
    common.add_argument("--log-file", help="Also write logs to this file")
    common.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Render structured detection events as JSON",
    )

    parser = argparse.ArgumentParser(
        prog="swarm-loopguard",
        description="Detect unproductive loops in swarm agent turns",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "detect",
        parents=[common],
        help="Evaluate one turn read as JSON from stdin",
    )
    subparsers.add_parser(
        "stats",
        parents=[common],
        help="Print aggregate intervention statistics",
    )
    reset = subparsers.add_parser(
        "reset",
        parents=[common],
        help="Forget the stored state of an agent",
    )
    reset.add_argument("agent_id")
    subparsers.add_parser(
        "config",
        parents=[common],
        help="Print resolved configuration with the source of each value",
    )
    return parser


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "state_dir": args.state_dir,
        "logging.level": args.log_level,
        "logging.log_file": args.log_file,
        "logging.json_logs": args.json_logs,
    }


def _configure_logging(cfg: AppConfig) -> None:
    configure_logging(
        level=getattr(logging, cfg.logging.level.value),
        log_file=cfg.logging.log_file,
        json_logs=cfg.logging.json_logs,
        api_keys=[cfg.embedding.api_key] if cfg.embedding.api_key else None,
    )


def build_engine(cfg: AppConfig) -> LoopDetectionEngine:
    return LoopDetectionEngine(
        cfg.detection,
        cfg.state_dir,
        embedding_provider=create_embedding_provider(cfg.embedding),
        lock_timeout_seconds=cfg.lock_timeout_seconds,
    )


def parse_request(raw: str) -> dict[str, Any]:
    """Parse and shape-check a detection request.

    Raises:
        InvalidRequestError: The input is not a JSON object with the required fields.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(f"Request is not valid JSON: {e}") from e
    if not isinstance(data, Mapping):
        raise InvalidRequestError("Request must be a JSON object")

    missing = [key for key in ("agent_id", "prompt") if key not in data]
    if missing:
        raise InvalidRequestError(
            "Request is missing required fields", details={"missing": missing}
        )
    return {
        "agent_id": data["agent_id"],
        "prompt": data["prompt"],
        "state_fingerprint": data.get("state_fingerprint"),
        "sequence_number": data.get("sequence_number"),
    }


def _write_json(stream: IO[str], payload: Any) -> None:
    stream.write(json.dumps(payload, ensure_ascii=False))
    stream.write("\n")
    stream.flush()


def _run(
    args: argparse.Namespace,
    cfg: AppConfig,
    resolution: ParameterResolution,
    stdin: IO[str],
    stdout: IO[str],
) -> int:
    if args.command == "config":
        for entry in resolution.build_report(cfg):
            stdout.write(entry.describe() + "\n")
        return EXIT_OK

    engine = build_engine(cfg)
    try:
        if args.command == "stats":
            _write_json(stdout, engine.get_intervention_stats().to_dict())
            return EXIT_OK

        if args.command == "reset":
            existed = engine.reset(args.agent_id)
            _write_json(stdout, {"agent_id": args.agent_id, "reset": existed})
            return EXIT_OK

        request = parse_request(stdin.read())
        result = engine.detect(**request)
        _write_json(stdout, result.to_dict())
        return EXIT_OK
    finally:
        engine.close()


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run the hook process and return its exit status."""
    args = build_cli_parser().parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    resolution = ParameterResolution()
    cfg = load_config(
        args.config_file,
        resolution=resolution,
        environ=environ,
        cli_overrides=_cli_overrides(args),
    )
    _configure_logging(cfg)
    resolution.log(logger, cfg)

    try:
        return _run(args, cfg, resolution, stdin, stdout)
    except LoopGuardError as e:
        logger.error("%s: %s", type(e).__name__, e.message)
        _write_json(sys.stderr, e.to_dict())
        return e.exit_code
    except Exception:
        logger.exception("Unexpected internal error in swarm-loopguard")
        return EXIT_INTERNAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
