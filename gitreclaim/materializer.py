"""
Working tree reconstruction from the local object store.

Walks a commit's tree and writes each blob at its path under the output
directory. Subtrees and blobs that were never recovered are skipped.
"""
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, List, Optional, Tuple

from gitreclaim.errors import DecodeError, MaterializeError, ObjectMissingError
from gitreclaim.models import GIT_DIR_NAME, TreeEntry
from gitreclaim.objects import ObjectStore


logger = logging.getLogger(__name__)

FILE_MODES = {'100644', '100755', '100664', '120000'}
UNSAFE_NAMES = {b'', b'.', b'..'}


@dataclass
class MaterializeReport:
    """Counts of a materialize pass."""
    written: int = 0
    skipped_trees: int = 0
    skipped_blobs: int = 0
    ignored: int = 0


def is_safe_name(name: bytes) -> bool:
    """Reject entry names that could escape the output directory."""
    if name in UNSAFE_NAMES or b'/' in name or b'\x00' in name:
        return False
    if os.sep != '/' and os.sep.encode() in name:
        return False
    return name.lower() != GIT_DIR_NAME.encode()


class Materializer:
    """Writes the working tree of a commit to disk."""

    def __init__(self, store: ObjectStore, output_dir: Path, available: Optional[Collection[str]] = None):
        """
        Args:
            store: Local object store
            output_dir: Directory receiving the working tree
            available: Ids usable for checkout (or None to trust every object on disk)
        """
        self.store = store
        self.output_dir = Path(output_dir)
        self.available = available

    def _usable(self, oid: str) -> bool:
        if self.available is not None and oid not in self.available:
            return False
        return self.store.exists(oid)

    def materialize(self, commit_id: str) -> MaterializeReport:
        """
        Check out a commit's tree under the output directory.

        Args:
            commit_id: Commit to check out

        Returns:
            MaterializeReport

        Raises:
            MaterializeError: If the commit or its root tree is unavailable,
                or a file cannot be written
        """
        if self.available is not None and commit_id not in self.available:
            raise MaterializeError(f"commit {commit_id} was not recovered")
        try:
            commit = self.store.decode_commit(commit_id)
        except (ObjectMissingError, DecodeError) as e:
            raise MaterializeError(f"cannot read commit {commit_id}: {e}")

        if commit.tree is None:
            raise MaterializeError(f"commit {commit_id} has no tree")
        if not self._usable(commit.tree):
            raise MaterializeError(f"root tree {commit.tree} of {commit_id} was not recovered")

        report = MaterializeReport()
        pending: List[Tuple[str, Path]] = [(commit.tree, self.output_dir)]

        while pending:
            tree_id, directory = pending.pop()
            if not self._usable(tree_id):
                logger.debug(f"Skipping unrecovered subtree {tree_id} at {directory}")
                report.skipped_trees += 1
                continue
            try:
                tree = self.store.decode_tree(tree_id)
            except (ObjectMissingError, DecodeError) as e:
                logger.debug(f"Skipping subtree {tree_id} at {directory}: {e}")
                report.skipped_trees += 1
                continue

            for entry in tree.entries:
                if not is_safe_name(entry.name):
                    logger.warning(f"Ignoring unsafe tree entry {entry.name!r} in {tree_id}")
                    report.ignored += 1
                    continue

                path = directory / os.fsdecode(entry.name)
                if entry.is_tree:
                    pending.append((entry.oid, path))
                elif entry.mode in FILE_MODES:
                    self._write_entry(entry, path, report)
                else:
                    # gitlinks (submodules) and unknown modes
                    report.ignored += 1

        logger.info(f"Materialized {report.written} files into {self.output_dir}")
        return report

    def _write_entry(self, entry: TreeEntry, path: Path, report: MaterializeReport):
        if not self._usable(entry.oid):
            logger.debug(f"Skipping unrecovered blob {entry.oid} at {path}")
            report.skipped_blobs += 1
            return
        try:
            data = self.store.read_blob(entry.oid)
        except (ObjectMissingError, DecodeError) as e:
            logger.debug(f"Skipping blob {entry.oid} at {path}: {e}")
            report.skipped_blobs += 1
            return

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            if entry.mode == '100755':
                current = path.stat().st_mode
                path.chmod(current | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            raise MaterializeError(f"failed to write {path}: {e}")

        report.written += 1
