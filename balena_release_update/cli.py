# Copyright 2025 balena-release-update contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for balena-release-update.

This module provides the CLI entry point. It parses the release pair and
mode flags, builds a platform client from the settings, runs the update
engine and prints the resulting update document as JSON on stdout.

Modes:

    (default): Describe the update path (read-only)
    --prepare: Also request missing deltas
    --wait: Also wait until the update is ready (implies --prepare)
    --timeout N: Wait at most N seconds (implies --wait)

Example:
    Describe an update:
        ```bash
        $ balena-release-update --from-release 900813 --to-release 900835
        ```

    Prepare and wait, with progress output on stderr:
        ```bash
        $ balena-release-update --from-release 900813 --to-release 900835 \\
            --timeout 600 --verbose
        ```

Exit Codes:

- 0: Success (the update document is printed to stdout)
- 1: Any error, including invalid arguments (a one-line message is
  printed to stderr)

Note:
    Progress, warnings and errors go to stderr so stdout stays valid JSON.
    Debug mode implies verbose mode and shows full tracebacks on errors.

"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import NoReturn

from balena_release_update import __version__
from balena_release_update.config import load_settings
from balena_release_update.core import get_update_info, prepare_update
from balena_release_update.exceptions import ReleaseUpdateError, ValidationError
from balena_release_update.logging import get_logger, set_global_logger
from balena_release_update.platform import ApiClient, PlatformClient
from balena_release_update.update import normalize_release_identifier

EPILOG = """\
Example:

  $ balena-release-update --wait --from-release 900813 --to-release 900835
  {
    "originates_from__release": {
      "id": 900813,
      "commit": "84d3d8f43eddd81b1699552dd39338f8dbf8b11e"
    },
    "produces__release": {
      "id": 900835,
      "commit": "b2cf2db7fece36f10e6a7e815ab169fd30cab05f"
    },
    "is_produced_by__service_update": [
      {
        "service_name": "main",
        "status": "ready",
        "originates_from__image": {...},
        "produces__image": {
          ...,
          "is_produced_by__delta": {
            "id": 1510997,
            "version": 3,
            "is_stored_at__location": "registry2.balena-cloud.com/v2/...:delta-3c90dce25a5f9f2f",
            "size": 484575
          }
        }
      }
    ],
    "overall_status": "ready",
    "estimated_total_payload_size": 484575
  }
"""


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit code 1."""

    def error(self, message: str) -> NoReturn:
        print(f"ERROR: {message}", file=sys.stderr)
        sys.exit(1)


def _release_arg(value: str) -> int | str:
    try:
        return normalize_release_identifier(value)
    except ValidationError as err:
        raise argparse.ArgumentTypeError(str(err)) from err


def _timeout_arg(value: str) -> int:
    if not value.isdigit():
        raise argparse.ArgumentTypeError(f"Invalid value for --timeout: {value}")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = _ArgumentParser(
        prog="balena-release-update",
        description=(
            "Describe, and optionally prepare, the delta update path between "
            "two releases of the same application."
        ),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=__version__,
    )
    parser.add_argument(
        "--from-release",
        type=_release_arg,
        metavar="RELEASE",
        help="The source release ID or commit hash (required)",
    )
    parser.add_argument(
        "--to-release",
        type=_release_arg,
        metavar="RELEASE",
        help="The target release ID or commit hash (required)",
    )
    parser.add_argument(
        "--prepare",
        action="store_true",
        help="Trigger any pending image deltas between service images",
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="Wait until the update is ready. Implies --prepare",
    )
    parser.add_argument(
        "--timeout",
        type=_timeout_arg,
        metavar="N",
        help="The maximum time in seconds to wait. Implies --wait",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Settings file read after ~/.balenarc.yml and ./.balenarc.yml",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates on stderr",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    return parser


def build_client(args: argparse.Namespace) -> PlatformClient:
    """Create the platform client from the effective settings."""
    return ApiClient.from_settings(load_settings(args.config))


def cmd_update(args: argparse.Namespace) -> int:
    """Handler for the update command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success, 1 for failure).

    Note:
        Prints the update document to stdout, errors to stderr.
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    wait = args.wait or args.timeout is not None
    prepare = args.prepare or wait

    try:
        client = build_client(args)
        if prepare:
            update = prepare_update(
                client,
                args.from_release,
                args.to_release,
                wait=wait,
                timeout=args.timeout,
                logger=logger,
            )
        else:
            update = get_update_info(
                client, args.from_release, args.to_release, logger=logger
            )
    except ReleaseUpdateError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        if args.debug:
            import traceback

            traceback.print_exc()
        return 1

    print(json.dumps(update.to_dict(), indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the balena-release-update CLI.

    This function is registered as the 'balena-release-update' console
    script in pyproject.toml.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.from_release is None or args.to_release is None:
        parser.error("Must specify both a source and a target release")

    sys.exit(cmd_update(args))


if __name__ == "__main__":
    main()
