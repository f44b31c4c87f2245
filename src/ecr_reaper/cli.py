"""CLI for ECR Reaper."""

import argparse
import code
import sys
import time
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from .config import Config
from .exceptions import RegistryError
from .factory import Factory


def _version() -> str:
    try:
        return version("ecr-reaper")
    except PackageNotFoundError:
        return "unknown"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reap unused images and empty repositories from ECR."
    )
    parser.add_argument(
        "-c",
        "--config-file",
        type=Path,
        help="reaper config file (YAML)",
        default=None,
    )
    parser.add_argument(
        "-e",
        "--expires-after-pull-days",
        type=int,
        help=(
            "delete images that have not been pulled in this many days;"
            " 0 deletes all images (default 7)"
        ),
        default=None,
    )
    parser.add_argument(
        "-r",
        "--registry-id",
        help="AWS registry ID (default: account ID of the credentials)",
        default=None,
    )
    parser.add_argument(
        "--region",
        help="AWS region of the registry",
        default=None,
    )
    parser.add_argument(
        "-l",
        "--loop-delay",
        type=int,
        help=(
            "run in a loop, sleeping this many seconds between runs"
            " (default 0: run once)"
        ),
        default=None,
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=None,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Dry run only: do not delete any images or repositories",
        default=None,
    )
    parser.add_argument(
        "-f",
        "--input-file",
        type=Path,
        help="use registry contents from this JSON dump instead of ECR",
        default=None,
    )
    parser.add_argument(
        "-o",
        "--dump-file",
        type=Path,
        help="write registry contents to this JSON file and exit",
        default=None,
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Load config and then drop into Python REPL",
        default=False,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=_version(),
    )
    return parser


def _load_config(
    parser: argparse.ArgumentParser, args: argparse.Namespace
) -> Config:
    # Settings given on the command line override the config file
    overrides = {
        "expires_after_pull_days": args.expires_after_pull_days,
        "registry_id": args.registry_id,
        "region": args.region,
        "loop_delay": args.loop_delay,
        "debug": args.debug,
        "dry_run": args.dry_run,
        "input_file": args.input_file,
    }
    try:
        return Config.load(args.config_file, overrides)
    except ValidationError as exc:
        parser.error(str(exc))
    except OSError as exc:
        parser.error(f"cannot read config file: {exc}")
    except yaml.YAMLError as exc:
        parser.error(f"invalid config file: {exc}")


def main() -> None:
    """Reap images that nobody has pulled lately."""
    parser = _build_parser()
    args = parser.parse_args()
    cfg = _load_config(parser, args)

    factory = Factory(cfg)
    logger = structlog.get_logger(__name__)
    logger.info("Starting ECR reaper", version=_version())

    try:
        storage = factory.create_registry_client()
    except (OSError, ValueError):
        logger.exception("Failed to load registry contents")
        sys.exit(1)
    try:
        identity = storage.resolve_identity()
    except RegistryError:
        logger.exception("Failed to get identity")
        sys.exit(1)
    logger.info("Resolved identity", identity=identity)
    logger.info("Registry scope", registry_id=cfg.registry_id)

    if args.dump_file:
        try:
            storage.debug_dump_images(args.dump_file)
        except RegistryError:
            logger.exception("Failed to dump registry contents")
            sys.exit(1)
        return

    reaper = factory.create_reaper(storage)

    if args.interactive:
        print("Reaper application is in variable 'reaper'")
        print("------------------------------------------")
        code.interact(local=locals())
        return

    loop_enabled = cfg.loop_delay > 0
    while True:
        errs = reaper.run_once()
        if errs:
            errstrs = [str(x) for x in errs]
            if not loop_enabled:
                logger.error("Pass failed", errors=errstrs)
                sys.exit(1)
            logger.error("Pass failed, will retry", errors=errstrs)
        if not loop_enabled:
            break
        time.sleep(cfg.loop_delay)
