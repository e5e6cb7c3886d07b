from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from buildbump import __version__ as BUILDBUMP_VERSION
from buildbump.common.config import BumpPaths, PublishConfig
from buildbump.common.logging_utils import configure_logging
from buildbump.publisher.bump_service import VersionBumper


log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildbump",
        description="Increment the build counter and publish the latest.json release manifest.",
    )
    parser.add_argument("--version-file", type=Path, help="Path of the VERSION counter file.")
    parser.add_argument("--manifest", type=Path, help="Path of the manifest to publish.")
    parser.add_argument("--url-template", help="Download URL template containing {version}.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", action="store_true", help="Print the next manifest without writing.")
    mode.add_argument("--check", action="store_true", help="Verify the manifest matches VERSION and exit.")
    parser.add_argument("--log-level", default=None, help="Log level.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {BUILDBUMP_VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = PublishConfig.from_env()
        if args.url_template:
            config = replace(config, url_template=args.url_template)
    except ValueError as exc:
        configure_logging(level=args.log_level or "INFO")
        log.error("Invalid configuration: %s", exc)
        return 1

    configure_logging(config.log_dir, level=args.log_level or config.log_level)
    paths = BumpPaths.default().with_overrides(version_file=args.version_file, manifest_file=args.manifest)
    bumper = VersionBumper(paths, config)

    if args.check:
        report = bumper.check()
        if not report.consistent:
            log.warning("Manifest check failed: %s", report.reason)
            return 2
        log.info("Manifest %s matches VERSION %d.", paths.manifest_file, report.counter)
        return 0

    try:
        if args.dry_run:
            manifest = bumper.preview()
            sys.stdout.write(manifest.to_json() + "\n")
            log.info("Dry run: would publish build %d to %s", manifest.version, paths.manifest_file)
            return 0
        bumper.bump()
    except (OSError, ValueError, RuntimeError) as exc:
        log.debug("Bump failure details", exc_info=True)
        log.error("Bump failed: %s", exc)
        return 1
    return 0
