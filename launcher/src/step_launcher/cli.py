from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from step_launcher.api import launch
from step_launcher.configuration import load_launch_config
from step_launcher.contracts import ConfigError, LauncherError

_OPTION_FLAGS = (
    "pipeline_name",
    "pipeline_run_id",
    "pipeline_task_id",
    "pipeline_root",
    "task_name",
    "mlmd_server_address",
    "mlmd_server_port",
    "container_image",
    "input_root",
    "output_root",
)

_logger = logging.getLogger("step_launcher.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="step-launcher",
        description="Stage inputs, run a pipeline step command, then upload and record outputs.",
        usage="%(prog)s [options] -- COMMAND [ARGS ...]",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML options file; flags given on the command line take precedence",
    )
    for name in _OPTION_FLAGS:
        parser.add_argument(f"--{name}", default=None)
    parser.add_argument(
        "--runtime_info_json",
        default=None,
        help="JSON runtime descriptor of the step's inputs and outputs",
    )
    parser.add_argument(
        "--unique_output_keys",
        action="store_true",
        default=None,
        help="Include the artifact name in each output artifact's remote key",
    )
    parser.add_argument("--log_level", default="INFO")
    return parser


def split_command(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split `[flags...] -- command args...` into flags and command."""
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def main(argv: Sequence[str] | None = None) -> int:
    flags, command = split_command(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(flags)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not command:
        parser.error("a command to launch is required after '--'")

    overrides: dict[str, Any] = {name: getattr(args, name) for name in _OPTION_FLAGS}
    overrides["unique_output_keys"] = args.unique_output_keys
    overrides["runtime_info"] = args.runtime_info_json

    try:
        config = load_launch_config(args.config, overrides=overrides)
        launch(config, command)
    except ConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 1
    except LauncherError as exc:
        _logger.error("Launch failed in %s: %s", exc.phase, exc)
        return _exit_status(exc)
    return 0


def _exit_status(exc: LauncherError) -> int:
    if exc.exit_code is None or exc.exit_code == 0:
        return 1
    if exc.exit_code < 0:
        # Terminated by a signal.
        return 128 - exc.exit_code
    return exc.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
