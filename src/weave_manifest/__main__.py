"""CLI entry-point for weave_manifest.

Usage:
    python -m weave_manifest reconcile --classpath <P> [<P> ...] --manifest-dir <DIR> --name <NAME>
        [--base-package PKG] [--boundary-aware] [--ignore PREFIX ...] [--config FILE]
        [--log-level LEVEL] [--json] [--strict]
        [--weave [--source DIR] [--target DIR] [--java JAVA] [--weaver-classpath P ...]]
    python -m weave_manifest scan --classpath <P> [<P> ...] [--ignore PREFIX ...] [--json]
    python -m weave_manifest validate <instance.json> <schema_name>
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import jsonschema

from weave_manifest import __version__
from weave_manifest.api import (
    reconcile_manifest as _api_reconcile_manifest,
    scan_markers as _api_scan_markers,
)
from weave_manifest.contracts.load import validate_instance as _api_validate_instance
from weave_manifest.core.config import (
    LOG_LEVELS,
    PipelineConfig,
    discover_config,
    python_log_level,
)
from weave_manifest.core.runner import PipelineResult
from weave_manifest.core.scanner import MarkerIndex
from weave_manifest.errors import ConfigurationError, WeaveManifestError
from weave_manifest.utils.exit_codes import ExitCode
from weave_manifest.utils.json_norm import stable_json_dump
from weave_manifest.weaving import StaticWeaveCommand

_LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def _split_classpath(items: list[str] | None) -> tuple[Path, ...] | None:
    """Accept both repeated values and ``os.pathsep``-joined classpath strings."""
    if not items:
        return None
    out: list[Path] = []
    for item in items:
        out.extend(Path(part) for part in item.split(os.pathsep) if part)
    return tuple(out)


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=python_log_level(level_name),
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )


def _add_classpath_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--classpath",
        "-cp",
        nargs="+",
        default=None,
        metavar="PATH",
        help=f"Directories and archives to scan (repeatable or '{os.pathsep}'-joined).",
    )
    p.add_argument(
        "--ignore",
        nargs="+",
        default=None,
        metavar="PREFIX",
        help="Type-name prefixes to skip (default: java org.maven).",
    )
    p.add_argument(
        "--max-workers",
        dest="max_workers",
        type=int,
        default=None,
        help="Scan up to N classpath roots concurrently.",
    )
    p.add_argument(
        "--json",
        dest="json_out",
        action="store_true",
        default=False,
        help="Print the result JSON to stdout.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="weave-manifest",
        description="Keep persistence.xml in step with the compiled classpath.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    sub = p.add_subparsers(dest="command")

    # ── reconcile subcommand ────────────────────────────────────────
    rec_p = sub.add_parser(
        "reconcile",
        help="Scan the classpath and merge entities into persistence.xml.",
    )
    _add_classpath_args(rec_p)
    rec_p.add_argument(
        "--manifest-dir",
        dest="manifest_dir",
        type=Path,
        default=None,
        help="Directory holding META-INF/persistence.xml.",
    )
    rec_p.add_argument(
        "--name",
        default=None,
        help="Persistence-unit name used when the manifest is created.",
    )
    rec_p.add_argument(
        "--base-package",
        dest="base_package",
        default=None,
        help="Only include entities whose name starts with this prefix.",
    )
    rec_p.add_argument(
        "--boundary-aware",
        dest="boundary_aware",
        action="store_true",
        default=None,
        help="Match --base-package on package boundaries only.",
    )
    rec_p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: ./.weave-manifest.yaml if present).",
    )
    rec_p.add_argument(
        "--log-level",
        dest="log_level",
        type=str.upper,
        choices=list(LOG_LEVELS),
        default=None,
        help="java.util.logging level name (default: WARNING).",
    )
    rec_p.add_argument(
        "--strict",
        action="store_true",
        default=False,
        help="Exit 1 when stale or undiscovered entries are reported.",
    )

    weave_g = rec_p.add_argument_group("weaving handoff")
    weave_g.add_argument(
        "--weave",
        action="store_true",
        default=None,
        help="Run the static weaver after the manifest is saved.",
    )
    weave_g.add_argument("--source", type=Path, default=None, help="Classes to weave.")
    weave_g.add_argument("--target", type=Path, default=None, help="Output for woven classes.")
    weave_g.add_argument("--java", default="java", help="java executable for the weaver.")
    weave_g.add_argument(
        "--weaver-classpath",
        dest="weaver_classpath",
        nargs="+",
        default=None,
        metavar="PATH",
        help="JVM classpath holding EclipseLink.",
    )

    # ── scan subcommand ─────────────────────────────────────────────
    scan_p = sub.add_parser(
        "scan",
        help="Print the marker index of the classpath.",
    )
    _add_classpath_args(scan_p)

    # ── validate subcommand ─────────────────────────────────────────
    val_p = sub.add_parser(
        "validate",
        help="Validate a JSON instance against a bundled schema.",
    )
    val_p.add_argument("instance", type=Path, help="Path to the JSON file to validate.")
    val_p.add_argument("schema_name", help="Schema filename, e.g. reconcile_result.schema.json")

    return p


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    overrides: dict[str, Any] = {
        "manifest_dir": args.manifest_dir,
        "name": args.name,
        "classpath": _split_classpath(args.classpath),
        "base_package": args.base_package,
        "boundary_aware": args.boundary_aware,
        "ignored_packages": tuple(args.ignore) if args.ignore else None,
        "source": args.source,
        "target": args.target,
        "log_level": args.log_level,
        "weave": args.weave,
        "max_workers": args.max_workers,
    }
    config_path = args.config if args.config is not None else discover_config(Path.cwd())
    if config_path is not None:
        return PipelineConfig.from_yaml(config_path, **overrides)
    if args.manifest_dir is None or args.name is None:
        raise ConfigurationError(
            "--manifest-dir and --name are required when no config file is used"
        )
    return PipelineConfig(**{k: v for k, v in overrides.items() if v is not None})


def _print_human(result: PipelineResult) -> None:
    """Pretty-print a reconciliation summary to stderr."""
    report = result.report
    if result.created:
        state = "created"
    elif result.written:
        state = "updated"
    else:
        state = "unchanged"

    print(f"\n  persistence.xml : {result.manifest_path} ({state})", file=sys.stderr)
    print(
        f"  Entities        : {len(report.discovered)} discovered, "
        f"{len(report.delta)} appended",
        file=sys.stderr,
    )
    if report.stale_entries:
        print(f"  Stale           : {len(report.stale_entries)}", file=sys.stderr)
        for name in report.stale_entries[:10]:
            print(f"      • {name}", file=sys.stderr)
        if len(report.stale_entries) > 10:
            print(f"      … and {len(report.stale_entries) - 10} more", file=sys.stderr)
    print("", file=sys.stderr)


def _print_index(index: MarkerIndex) -> None:
    print(f"\n  Types indexed : {len(index.types)}", file=sys.stderr)
    for marker in index.marker_names():
        print(f"    {len(index[marker]):>5}  {marker}", file=sys.stderr)
    print("", file=sys.stderr)


def _handle_reconcile(args: argparse.Namespace) -> int:
    """Run ``weave-manifest reconcile``."""
    try:
        config = _config_from_args(args)
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR

    _configure_logging(config.log_level)

    weaver = None
    if config.weave:
        weaver = StaticWeaveCommand(
            java=args.java,
            weaver_classpath=_split_classpath(args.weaver_classpath) or (),
        )

    try:
        result, result_dict = _api_reconcile_manifest(
            config.manifest_dir,
            config.name,
            config=config,
            weaver=weaver,
        )
    except WeaveManifestError as e:
        print(f"error: {e}", file=sys.stderr)
        return ExitCode.ERROR

    _print_human(result)
    if args.json_out:
        stable_json_dump(result_dict, sys.stdout)

    if args.strict and result.has_warnings:
        return ExitCode.VIOLATION
    return ExitCode.SUCCESS


def _handle_scan(args: argparse.Namespace) -> int:
    """Run ``weave-manifest scan``."""
    classpath = _split_classpath(args.classpath)
    if not classpath:
        print("error: --classpath is required for scan.", file=sys.stderr)
        return ExitCode.ERROR

    kwargs: dict[str, Any] = {"max_workers": args.max_workers or 1}
    if args.ignore:
        kwargs["ignored_packages"] = tuple(args.ignore)
    index, index_dict = _api_scan_markers(classpath, **kwargs)

    _print_index(index)
    if args.json_out:
        stable_json_dump(index_dict, sys.stdout)
    return ExitCode.SUCCESS


def _handle_validate(args: argparse.Namespace) -> int:
    """Run ``weave-manifest validate``.

    Exit code contract:
      1 = schema violation
      2 = unreadable instance / unknown schema
    """
    try:
        instance = json.loads(Path(args.instance).read_text(encoding="utf-8"))
        _api_validate_instance(instance, args.schema_name)
    except jsonschema.exceptions.ValidationError as e:
        print(f"FAIL: {e.message}", file=sys.stderr)
        return ExitCode.VIOLATION
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.ERROR
    print("OK")
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Entry-point — returns an exit code (see ``utils/exit_codes.py``)."""
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command == "reconcile":
        return _handle_reconcile(args)
    if args.command == "scan":
        return _handle_scan(args)
    if args.command == "validate":
        return _handle_validate(args)

    parser.print_help(sys.stderr)
    return ExitCode.ERROR


if __name__ == "__main__":
    raise SystemExit(main())
