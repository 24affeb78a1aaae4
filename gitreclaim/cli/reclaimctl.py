#!/usr/bin/env python3
"""
gitreclaim - rebuild a git repository from a website exposing its .git directory.

Usage: gitreclaim https://victim.website/ [-o DIR] [-v] [-c settings.yaml]
"""
import argparse
import logging
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Optional

from gitreclaim.config import ReclaimSettings
from gitreclaim.errors import BootstrapError, NotVulnerableError
from gitreclaim.models import RunSummary, Status, TargetRepository
from gitreclaim.walker import GraphWalker


STATUS_LABELS = {
    Status.SUCCESS: 'Success',
    Status.PARTIAL_SUCCESS: 'Partial Success',
    Status.FAILURE: 'FAILED',
}


def local_git_version() -> Optional[str]:
    """Version of the local git binary, for display only."""
    try:
        result = subprocess.run(
            ['git', '--version'],
            capture_output=True,
            text=True
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip().split(' ')[-1]


def render_summary(summary: RunSummary) -> str:
    """Render a run summary as a human-readable report."""
    config = summary.config
    lines = [
        "",
        f"Status:            {STATUS_LABELS.get(summary.status, 'Unknown')}",
        f"Retrieved Objects: {len(summary.found_objects)}",
        f"Missing Objects:   {len(summary.missing_objects)}",
        f"Pack Data Listed:  {summary.pack_information_available}",
        f"HEAD:              {summary.head_ref} ({summary.head_commit})",
        f"Files Written:     {summary.materialized_files}",
        f"Repository:        {config.repository_name or '-'}",
        "Remotes:",
    ]
    for remote in config.remotes:
        lines.append(f"  - {remote.name}: {remote.url}")

    lines.append("Branches:")
    for branch in config.branches:
        lines.append(f"  - {branch.name} ({branch.remote})")

    user = config.user
    if user.name or user.email or user.username:
        lines.append(f"User:              {user.name} <{user.email}> {user.username}".rstrip())

    if config.token is not None:
        lines.append(f"GitHub Token:      {config.token.username}:{config.token.token}")

    if summary.warnings:
        lines.append("Warnings:")
        for warning in summary.warnings:
            lines.append(f"  - {warning}")

    lines.append("")
    lines.append(f"You can find the retrieved repository data in {summary.output_directory}")
    lines.append("")
    return "\n".join(lines)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description='Rebuild a git repository from a website which mistakenly hosts the contents of its .git directory',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument('url', help='Target URL, e.g. https://victim.website/')
    parser.add_argument(
        '-o', '--output-dir',
        help='Directory to output the retrieved repository (default: a new temporary directory)'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    parser.add_argument('-c', '--config', help='YAML settings file (default: $GITRECLAIM_* environment)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        target = TargetRepository.from_url(args.url)
        if args.config:
            settings = ReclaimSettings.from_yaml(Path(args.config))
        else:
            settings = ReclaimSettings()
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output_dir:
        output_dir = Path(args.output_dir)
    else:
        output_dir = Path(tempfile.mkdtemp(prefix='gitreclaim'))

    print(f"Target:     {target.url}")
    print(f"Local Git:  {local_git_version() or 'not found'}")
    print(f"Output Dir: {output_dir}")

    try:
        summary = GraphWalker(target, output_dir, settings).discover()
    except NotVulnerableError as e:
        print(f"The provided URL does not appear vulnerable.\n\nError: {e}", file=sys.stderr)
        sys.exit(1)
    except BootstrapError as e:
        print(f"Reclaim failed: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(render_summary(summary))


if __name__ == '__main__':
    main()
