"""memopipe CLI: build a pipeline from a Python callable and run it."""

import argparse
import importlib
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Callable, List, Optional


def _load_builder(spec: str) -> Callable:
    """Resolve ``package.module:callable`` to the callable."""
    module_name, sep, attr_path = spec.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Expected MODULE:CALLABLE, got '{spec}'")
    obj = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr)
    if not callable(obj):
        raise ValueError(f"'{spec}' is not callable")
    return obj


def _configure_logging(quiet: bool, verbose: bool) -> None:
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for memopipe commands."""
    try:
        memopipe_version = get_version("memopipe")
    except PackageNotFoundError:
        memopipe_version = "dev"

    parser = argparse.ArgumentParser(
        prog="memopipe",
        description="memopipe: incremental, cached execution of pipeline steps"
    )
    parser.add_argument("--version", action="version", version=f"memopipe {memopipe_version}")
    parent_parser = argparse.ArgumentParser(add_help=False)
    verbosity = parent_parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    verbosity.add_argument(
        "--verbose",
        action="store_true",
        help="Log cache hits and misses."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser(
        "run",
        help="Build a pipeline with MODULE:CALLABLE and run it",
        parents=[parent_parser]
    )
    run_parser.add_argument(
        "builder",
        help="Callable receiving a ConfiguredPipeline and registering its steps, as MODULE:CALLABLE"
    )
    run_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to pipeline configuration (JSON)"
    )
    run_parser.add_argument(
        "--title",
        default=None,
        help="Run title used to name the summary artifacts (defaults to the callable name)"
    )
    run_parser.add_argument(
        "--output-dir",
        default=None,
        help="Output root path or URL (overrides output.dir)"
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write the summary without computing anything (overrides dryRun)"
    )
    run_parser.add_argument(
        "--run-only",
        default=None,
        help="Comma-separated step names to run (overrides runOnly)"
    )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "run":
        # Lazy import: only import the engine when a command is invoked
        from .config import PipelineConfig, load_config
        from .configured import ConfiguredPipeline
        from .errors import MemopipeError

        _configure_logging(args.quiet, args.verbose)
        try:
            config = load_config(args.config) if args.config else PipelineConfig()
            data = config.model_dump()
            if args.output_dir is not None:
                data["output"]["dir"] = args.output_dir
            if args.dry_run:
                data["dry_run"] = True
            if args.run_only is not None:
                data["run_only"] = args.run_only
            config = PipelineConfig.from_dict(data)

            builder = _load_builder(args.builder)
            pipeline = ConfiguredPipeline(config)
            builder(pipeline)
            title = args.title or args.builder.rpartition(":")[2]
            results = pipeline.run(title)
        except (MemopipeError, ValueError, ImportError, AttributeError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        report = pipeline.last_report
        if not config.dry_run and pipeline.targets and not results:
            print("[FAILED] Pipeline run failed; see log for details", file=sys.stderr)
            if report is not None:
                print(f"  Summary: {report.html_url}", file=sys.stderr)
            sys.exit(1)
        if not args.quiet:
            status = "DRY RUN" if config.dry_run else "OK"
            print(f"[{status}] {title}")
            print(f"  Targets: {len(pipeline.targets)}")
            if report is not None:
                print(f"  Summary: {report.html_url}")
                print(f"  Signatures: {report.signatures_url}")
        return 0
