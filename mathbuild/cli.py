#!/usr/bin/env python3
"""
mathbuild - build math.js

Usage:
    mathbuild                   - Full build (same as 'mathbuild default')
    mathbuild default           - clean, version, entries, cjs, esm, header, bundle, docs
    mathbuild clean             - Remove generated files
    mathbuild bundle            - Build lib/browser/math.js (alias: browser)
    mathbuild docs              - Generate the reference documentation
    mathbuild validate-ascii    - Report non-ascii characters in src/
    mathbuild watch             - Rebuild bundle and cjs on every change
    mathbuild check             - Show which node tools are available
"""

import sys
import asyncio
import logging
import argparse
from pathlib import Path

from .config import load_build_config
from .errors import BuildError
from .collaborators import AsciiValidator
from .compilers.node_tools import check_build_prerequisites
from .pipeline import BuildPipeline
from .terminal import Colors, color_print, format_finding, print_error, print_header, print_success, print_warning
from .watcher import SourceWatcher

logger = logging.getLogger(__name__)


# =============================================================================
# CLI Commands
# =============================================================================


async def _with_pipeline(config, action):
    async with BuildPipeline(config) as pipeline:
        return await action(pipeline)


def cmd_default(config, args):
    """Run the full build."""
    report = asyncio.run(_with_pipeline(config, lambda p: p.run_default()))
    print_success(f"Build complete: {', '.join(report.completed)}")


def cmd_clean(config, args):
    asyncio.run(_with_pipeline(config, lambda p: p.run_stage("clean")))
    print_success("Generated files removed")


def cmd_bundle(config, args):
    asyncio.run(_with_pipeline(config, lambda p: p.run_stage("bundle")))
    print_success(f"Bundled {config.bundle_path}")


def cmd_docs(config, args):
    asyncio.run(_with_pipeline(config, lambda p: p.run_stage("docs")))
    print_success(f"Reference docs written to {config.ref_dest}")


def cmd_validate_ascii(config, args):
    """Check whether any of the source files contains non-ascii characters."""
    total = 0
    for findings in AsciiValidator().scan(config.src_dir):
        for finding in findings:
            print(format_finding(finding))
            total += 1

    if total:
        print_warning(f"{total} non-ascii character(s) found")
    else:
        print_success("No non-ascii characters found")


async def _watch(config):
    async with BuildPipeline(config) as pipeline:
        watcher = SourceWatcher(config, pipeline.rebuild)
        await watcher.run_forever()


def cmd_watch(config, args):
    """Automatically rebuild when the source code changes."""
    print_header("mathbuild - watch")
    try:
        asyncio.run(_watch(config))
    except KeyboardInterrupt:
        color_print("\nWatch stopped.", Colors.CYAN)


def cmd_check(config, args):
    prerequisites = check_build_prerequisites(config.root, config.node_bin)
    for tool, status in prerequisites.items():
        if tool == "all_ready":
            continue
        if status["available"]:
            color_print(f"  ✓ {tool}: {status['path']}", Colors.GREEN)
        else:
            color_print(f"  ✗ {tool}: not found", Colors.RED)
    if not prerequisites["all_ready"]:
        sys.exit(1)


COMMANDS = {
    "default": cmd_default,
    "clean": cmd_clean,
    "bundle": cmd_bundle,
    "browser": cmd_bundle,
    "docs": cmd_docs,
    "validate-ascii": cmd_validate_ascii,
    "watch": cmd_watch,
    "check": cmd_check,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mathbuild", description="Build math.js")
    parser.add_argument("--root", type=Path, default=None, help="Project root (default: cwd)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("command", nargs="?", default="default", choices=sorted(COMMANDS))
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
    )

    try:
        config = load_build_config(args.root)
        COMMANDS[args.command](config, args)
    except (BuildError, OSError) as e:
        logger.debug("Build failed", exc_info=True)
        print_error(f"{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
