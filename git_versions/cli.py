#!/usr/bin/env python3
"""Main CLI entry point for git-release-builds.

This provides the `git-versions` command, which builds and installs
tagged releases of the tracked project.

Usage:
    git-versions --list --since 1.7.0 --no-rc
    git-versions --missing --limit 5
    git-versions 1.7.5 1.8.0.rc0
    git-versions --test --limit -3
"""

import argparse
import shutil
import sys
import tempfile
from pathlib import Path

from relbuild.build import Orchestrator, NORMAL, QUIET, VERBOSE
from relbuild.config import generate_sample_config, get_config
from relbuild.errors import RelbuildError
from relbuild.install_check import is_installed
from relbuild.repos import ensure_checkout, fetch_tags
from relbuild.selector import SelectionCriteria, select_versions
from relbuild.versions import load_catalog


def build_parser():
    """Create the argument parser for git-versions."""
    parser = argparse.ArgumentParser(
        prog='git-versions',
        description='Build and install tagged releases of the tracked project',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show which versions would be built
  git-versions --list --since 1.7.0 --no-rc

  # Build the five newest versions that are not installed yet
  git-versions --missing --limit 5

  # Build specific versions, replacing existing installs
  git-versions --force 1.7.5 v1.8.0-rc0

  # Build, check and remove the three oldest versions
  git-versions --test --limit -3

Configuration:
  ~/.config/git-release-builds/config.toml (user)
  .git-versions.toml (project)

Environment Variables:
  GRB_SOURCE_DIR   Checkout of the tracked project
  GRB_DEST_DIR     Install root
  GRB_MAKE         make executable
  GRB_MAKE_JOBS    Parallel make jobs
"""
    )

    parser.add_argument(
        '--version', '-V',
        action='version',
        version='%(prog)s 0.1.0'
    )
    parser.add_argument(
        "versions",
        nargs="*",
        metavar="VERSION",
        help="Versions to build (default: all known versions)"
    )
    parser.add_argument(
        "--source", "-s",
        type=Path,
        help="Checkout of the tracked project (default: from config)"
    )
    parser.add_argument(
        "--dest", "-d",
        type=Path,
        help="Install root; each version goes into DEST/VERSION (default: from config)"
    )
    parser.add_argument(
        "--since",
        metavar="VERSION",
        help="Oldest version to consider (inclusive)"
    )
    parser.add_argument(
        "--until",
        metavar="VERSION",
        help="Newest version to consider (inclusive)"
    )
    parser.add_argument(
        "--limit", "-n",
        type=int,
        default=0,
        metavar="N",
        help="Keep the N newest versions, or the N oldest if negative"
    )
    parser.add_argument(
        "--missing",
        action="store_true",
        help="Only versions that are not installed"
    )
    parser.add_argument(
        "--installed",
        action="store_true",
        help="Only versions that are already installed"
    )
    parser.add_argument(
        "--rc",
        dest="include_rc",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Include release candidates (default: %(default)s)"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Rebuild versions even if already installed"
    )
    parser.add_argument(
        "--list", "-l",
        action="store_true",
        help="Print the selected versions and exit"
    )
    parser.add_argument(
        "--fetch",
        action="store_true",
        help="Fetch new tags before selecting versions"
    )
    parser.add_argument(
        "--test", "-t",
        action="store_true",
        help="Build, install, check and remove each version in a scratch directory"
    )
    parser.add_argument(
        "--docs",
        action="store_true",
        help="Also install documentation"
    )
    parser.add_argument(
        "--jobs", "-j",
        type=int,
        metavar="N",
        help="Parallel make jobs (default: from config)"
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print a sample configuration file and exit"
    )

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Echo external commands and show their output"
    )
    output_group.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Discard external command output"
    )

    return parser


def get_verbosity(args) -> int:
    if args.quiet:
        return QUIET
    if args.verbose:
        return VERBOSE
    return NORMAL


def run(args) -> int:
    """Select versions and build them according to parsed arguments."""
    verbosity = get_verbosity(args)

    test_root = None
    try:
        config = get_config()
        if args.jobs:
            config.make_jobs = args.jobs

        source_dir = ensure_checkout(args.source or config.source_dir)
        destination = args.dest or config.dest_dir
        if args.fetch:
            fetch_tags(source_dir)

        catalog = load_catalog(source_dir)

        if args.test:
            test_root = Path(tempfile.mkdtemp(prefix='git_versions_test_'))
            destination = test_root
        destination = Path(destination).expanduser()

        criteria = SelectionCriteria(
            since=args.since,
            until=args.until,
            missing=args.missing,
            installed=args.installed,
            include_rc=args.include_rc,
            limit=args.limit,
        )
        versions = select_versions(
            args.versions or None,
            catalog,
            config.aliases,
            criteria,
            is_installed=lambda version: is_installed(version, destination),
        )

        if args.list:
            for version in versions:
                print(version)
            return 0

        if not versions:
            if verbosity > QUIET:
                print("No versions selected.")
            return 0

        if args.test:
            print(f"1..{len(versions)}")

        orchestrator = Orchestrator(
            source_dir=source_dir,
            destination=destination,
            catalog=catalog,
            config=config,
            force=args.force,
            docs=args.docs,
            self_test=args.test,
            verbosity=verbosity,
        )
        report = orchestrator.run(versions)
    except (RelbuildError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if test_root is not None:
            shutil.rmtree(test_root, ignore_errors=True)

    if not report.ok:
        print(f"Failed checks: {' '.join(report.failed_checks)}", file=sys.stderr)
        return 1
    return 0


def main(argv=None):
    """Main entry point for the git-versions command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.print_config:
        print(generate_sample_config(), end="")
        return 0

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
