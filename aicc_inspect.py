#!/usr/bin/env python3
"""Inspect and validate unpacked AICC course packages.

Reads the .crs/.au/.des/.cst (and optional .pre/.ort) files of a course
directory, assembles the manifest and reports the launch entry point, the
enriched assignable units and any validation issues.

Usage
-----
``python aicc_inspect.py inspect path/to/course``
    Print the course summary and a table of units (``--json`` dumps the whole
    manifest instead).
``python aicc_inspect.py validate path/to/course``
    Print coded errors and warnings; exits with status 1 when errors exist.

Configuration comes from ``--config`` or the ``AICC_CONFIG`` variable (YAML);
``AICC_STRICT_ROOT``, ``AICC_ENCODING`` and ``AICC_LOG_LEVEL`` override it.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

import polars as pl

from aicc_common.config import ConfigError, Settings, load_settings
from aicc_common.tables import PackageError, load_course_package, units_frame
from aicc_common.validation import ManifestParseError, validate_manifest

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


def cmd_inspect(args: argparse.Namespace, settings: Settings) -> int:
    try:
        manifest = load_course_package(args.package_dir, settings)
    except ManifestParseError as exc:
        LOGGER.error("%s", exc)
        return EXIT_INVALID

    if args.json:
        print(json.dumps(manifest.to_dict(), indent=2, default=str))
        return EXIT_OK

    print(f"Title:       {manifest.title or '-'}")
    print(f"Identifier:  {manifest.identifier or '-'}")
    print(f"Version:     {manifest.version or '-'}")
    print(f"Launch URL:  {manifest.launch_url or '-'}")
    print(f"Description: {manifest.description or '-'}")
    with pl.Config(tbl_rows=-1, tbl_cols=-1, fmt_str_lengths=60):
        print(units_frame(manifest))

    for issue in manifest.issues.warnings:
        LOGGER.warning("[%s] %s", issue.code, issue.message)
    return EXIT_OK


def cmd_validate(args: argparse.Namespace, settings: Settings) -> int:
    try:
        manifest = load_course_package(args.package_dir, settings)
    except ManifestParseError as exc:
        print(exc.result.format_errors())
        return EXIT_INVALID

    result = manifest.issues.merge(validate_manifest(manifest))
    print(result.format_errors())
    print(result.format_warnings())
    return EXIT_INVALID if result.has_errors else EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AICC course manifest inspector",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config (default: $AICC_CONFIG if set).",
    )
    subparsers = parser.add_subparsers(dest="command")

    inspect = subparsers.add_parser(
        "inspect",
        help="Assemble the manifest and print a summary.",
    )
    inspect.add_argument("package_dir", type=Path, help="Directory holding the AICC files.")
    inspect.add_argument(
        "--json",
        action="store_true",
        help="Dump the full manifest as JSON.",
    )
    inspect.set_defaults(func=cmd_inspect)

    validate = subparsers.add_parser(
        "validate",
        help="Report coded errors and warnings for a course package.",
    )
    validate.add_argument("package_dir", type=Path, help="Directory holding the AICC files.")
    validate.set_defaults(func=cmd_validate)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return EXIT_USAGE

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
        LOGGER.error("Config error: %s", exc)
        return EXIT_USAGE

    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")
    try:
        return args.func(args, settings)
    except PackageError as exc:
        LOGGER.error("%s", exc)
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
