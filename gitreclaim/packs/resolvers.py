"""
Pack resolvers: bytes of a pack archive in, set of object ids out.

The graph walker never sees delta compression; any resolver honouring the
PackResolver contract can be swapped in.
"""
import inspect
import io
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Set

from dulwich.pack import PackData, PackInflater

from gitreclaim.errors import PackResolveError
from gitreclaim.models import is_object_id


logger = logging.getLogger(__name__)


def open_pack_data(pack_data: bytes) -> PackData:
    """
    Wrap raw pack bytes in a dulwich PackData.

    dulwich 1.x takes the repository object format as the second argument of
    from_file; earlier releases take only the file and its size.
    """
    buffer = io.BytesIO(pack_data)
    if 'object_format' in inspect.signature(PackData.from_file).parameters:
        from dulwich.object_format import DEFAULT_OBJECT_FORMAT
        return PackData.from_file(buffer, DEFAULT_OBJECT_FORMAT, len(pack_data))
    return PackData.from_file(buffer, size=len(pack_data))


def list_loose_objects(objects_dir: Path) -> Set[str]:
    """Ids of all loose objects under an objects directory."""
    found = set()
    if not objects_dir.is_dir():
        return found

    for shard in objects_dir.iterdir():
        if len(shard.name) != 2 or not shard.is_dir():
            continue
        for entry in shard.iterdir():
            oid = shard.name + entry.name
            if is_object_id(oid):
                found.add(oid)
    return found


class PackResolver(ABC):
    """
    Abstract pack resolver.

    Resolvers are responsible for:
    1. Decoding the archive, resolving deltas within it
    2. Writing every object as a loose object under git_dir/objects
    3. Returning the ids now available locally
    """

    @abstractmethod
    def resolve(self, pack_data: bytes, git_dir: Path) -> Set[str]:
        """
        Unpack an archive into the loose object store.

        Args:
            pack_data: Raw bytes of a .pack file
            git_dir: The .git directory holding the partial object store

        Returns:
            Set of object ids available after unpacking

        Raises:
            PackResolveError: If the archive is malformed
        """
        pass


class DulwichPackResolver(PackResolver):
    """Resolves packs in-process with dulwich."""

    def resolve(self, pack_data: bytes, git_dir: Path) -> Set[str]:
        objects_dir = Path(git_dir) / "objects"
        resolved = set()

        try:
            data = open_pack_data(pack_data)
            try:
                for obj in PackInflater.for_pack_data(data, None):
                    oid = obj.id.decode('ascii')
                    target = objects_dir / oid[:2] / oid[2:]
                    if not target.exists():
                        target.parent.mkdir(parents=True, exist_ok=True)
                        target.write_bytes(obj.as_legacy_object())
                    resolved.add(oid)
            finally:
                data.close()
        except (OSError, TypeError, AttributeError):
            raise
        except Exception as e:
            raise PackResolveError(f"failed to inflate pack: {e}")

        logger.debug(f"Inflated {len(resolved)} objects from pack")
        return resolved


class GitUnpackResolver(PackResolver):
    """Resolves packs by piping them into "git unpack-objects"."""

    def __init__(self, git_binary: str = 'git'):
        self.git_binary = git_binary

    def resolve(self, pack_data: bytes, git_dir: Path) -> Set[str]:
        git_dir = Path(git_dir)
        objects_dir = git_dir / "objects"
        before = list_loose_objects(objects_dir)

        try:
            result = subprocess.run(
                [self.git_binary, f'--git-dir={git_dir}', 'unpack-objects', '-q'],
                input=pack_data,
                capture_output=True,
                cwd=git_dir.parent
            )
        except FileNotFoundError:
            raise PackResolveError(f"{self.git_binary} executable not found")

        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', errors='replace').strip()
            raise PackResolveError(f"git unpack-objects failed: {stderr}")

        return list_loose_objects(objects_dir) - before


def build_resolver(name: str) -> PackResolver:
    """
    Build a resolver by settings name.

    Raises:
        ValueError: If the name is unknown
    """
    if name == 'dulwich':
        return DulwichPackResolver()
    if name == 'git':
        return GitUnpackResolver()
    raise ValueError(f"Unknown pack resolver: {name}")
