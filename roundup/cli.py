"""
Command-line entrypoint. Run from the directory holding iterations/ and whitelists/:

  roundup run 7 nixos-19.09 nixos-unstable=abcdef0 --ping-maintainers
  roundup count

Prints the run summary or counts as JSON. Exits 1 on a fatal error.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from roundup.core.config import get_settings
from roundup.core.errors import RoundupError
from roundup.services.count import count_open
from roundup.services.roundup import parse_channels, run_roundup

logger = logging.getLogger("roundup")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="roundup",
        description="Turn vulnerability scans of release channels into advisory tickets.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Process one iteration")
    run.add_argument("iteration", type=int, help="Iteration number (directory under --basedir)")
    run.add_argument("channels", nargs="+", metavar="CHANNEL", help="NAME or NAME=REV")
    run.add_argument("--basedir", type=Path, default=None, help="Iterations directory")
    run.add_argument("--whitelist-dir", type=Path, default=None, help="Directory of <release>.toml")
    run.add_argument(
        "--filter",
        type=Path,
        default=None,
        metavar="DIR",
        help="Only consider packages found in at least one Nix store dump in DIR",
    )
    run.add_argument(
        "--ping-maintainers",
        action="store_true",
        default=None,
        help='Write "Cc @handle" lines instead of a plain maintainer list',
    )
    run.add_argument(
        "--validate-handles",
        action="store_true",
        default=None,
        help="Check maintainer handles against the GitHub users API",
    )
    run.add_argument(
        "--export-github",
        action="store_true",
        help="Create GitHub issues for NEW tickets",
    )

    count = sub.add_parser("count", help="Count open tickets per finalized iteration")
    count.add_argument("--basedir", type=Path, default=None, help="Iterations directory")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    if args.command == "run":
        if args.iteration < 0:
            parser.error("iteration must not be negative")
        try:
            channels = parse_channels(args.channels)
        except ValueError as e:
            parser.error(str(e))
        try:
            summary = run_roundup(
                args.iteration,
                channels,
                settings,
                notify=args.ping_maintainers,
                validate=args.validate_handles,
                export=args.export_github,
                basedir=args.basedir,
                whitelist_dir=args.whitelist_dir,
                store_dumps_dir=args.filter,
            )
        except RoundupError as e:
            logger.error("Roundup failed [%s]: %s", e.category, e.message)
            return 1
        print(json.dumps(summary.model_dump(mode="json"), indent=2, sort_keys=True))
        return 0

    try:
        counts = count_open(args.basedir or settings.ITERATIONS_DIR)
    except RoundupError as e:
        logger.error("Count failed [%s]: %s", e.category, e.message)
        return 1
    print(json.dumps(counts.model_dump(mode="json"), indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
