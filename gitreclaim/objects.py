"""
Local content-addressed object store.

Reads loose objects mirrored under <output>/.git/objects, decodes the loose
header and the commit/tree/tag payloads. Objects are sharded by the first
two characters of their id.
"""
import logging
import zlib
from pathlib import Path
from typing import Tuple

from gitreclaim.errors import DecodeError, ObjectMissingError
from gitreclaim.models import (
    Commit,
    ObjectKind,
    Tag,
    Tree,
    TreeEntry,
    is_object_id,
)


logger = logging.getLogger(__name__)

RAW_ID_LENGTH = 20


def parse_loose(raw: bytes) -> Tuple[ObjectKind, bytes]:
    """
    Decode a zlib-compressed loose object into (kind, payload).

    Raises:
        DecodeError: If the data is not a valid loose object
    """
    try:
        data = zlib.decompress(raw)
    except zlib.error as e:
        raise DecodeError(f"not a zlib stream: {e}")

    nul = data.find(b'\x00')
    if nul < 0:
        raise DecodeError("missing header terminator")

    header = data[:nul].decode('ascii', errors='replace')
    parts = header.split(' ')
    if len(parts) != 2 or not parts[1].isdigit():
        raise DecodeError(f"malformed header: {header!r}")

    payload = data[nul + 1:]
    if int(parts[1]) != len(payload):
        raise DecodeError(f"size mismatch: header says {parts[1]}, payload is {len(payload)}")

    return ObjectKind.from_header(parts[0]), payload


def parse_commit(oid: str, payload: bytes) -> Commit:
    """
    Decode a commit payload.

    Only the header block (up to the first blank line) is inspected; the
    message may contain anything.
    """
    commit = Commit(oid=oid)
    header, _, _message = payload.partition(b'\n\n')

    for line in header.split(b'\n'):
        key, _, value = line.partition(b' ')
        if key not in (b'tree', b'parent'):
            continue

        value = value.strip().decode('ascii', errors='replace')
        if not is_object_id(value):
            raise DecodeError(f"commit {oid} has malformed {key.decode()} line")

        if key == b'tree':
            if commit.tree is not None:
                raise DecodeError(f"commit {oid} declares more than one tree")
            commit.tree = value
        else:
            commit.parents.append(value)

    return commit


def parse_tree(oid: str, payload: bytes) -> Tree:
    """
    Decode a raw binary tree payload.

    Each entry is "<mode> <name>\\0<20-byte id>". Names may hold any byte
    except NUL, so the entry is split on the first space and the first NUL
    after it rather than on whitespace.
    """
    tree = Tree(oid=oid)
    i = 0
    size = len(payload)

    while i < size:
        sp = payload.find(b' ', i)
        if sp < 0:
            raise DecodeError(f"tree {oid} entry at offset {i} has no mode separator")
        nul = payload.find(b'\x00', sp + 1)
        if nul < 0:
            raise DecodeError(f"tree {oid} entry at offset {i} has no name terminator")
        end = nul + 1 + RAW_ID_LENGTH
        if end > size:
            raise DecodeError(f"tree {oid} entry at offset {i} is truncated")

        mode = payload[i:sp]
        if not mode or not mode.isdigit():
            raise DecodeError(f"tree {oid} entry at offset {i} has invalid mode {mode!r}")

        tree.entries.append(TreeEntry(
            mode=mode.decode('ascii'),
            name=payload[sp + 1:nul],
            oid=payload[nul + 1:end].hex()
        ))
        i = end

    return tree


def parse_tag(oid: str, payload: bytes) -> Tag:
    """Decode an annotated tag payload."""
    target = None
    target_kind = ObjectKind.UNKNOWN
    header, _, _message = payload.partition(b'\n\n')

    for line in header.split(b'\n'):
        key, _, value = line.partition(b' ')
        if key == b'object':
            target = value.strip().decode('ascii', errors='replace')
        elif key == b'type':
            target_kind = ObjectKind.from_header(value.strip().decode('ascii', errors='replace'))

    if target is None or not is_object_id(target):
        raise DecodeError(f"tag {oid} has no valid object line")

    return Tag(oid=oid, target=target, target_kind=target_kind)


class ObjectStore:
    """Loose object store rooted at a .git directory."""

    def __init__(self, git_dir: Path):
        self.git_dir = Path(git_dir)
        self.objects_dir = self.git_dir / "objects"

    def path_for(self, oid: str) -> Path:
        """Filesystem path of a loose object."""
        return self.objects_dir / oid[:2] / oid[2:]

    def exists(self, oid: str) -> bool:
        return self.path_for(oid).is_file()

    def read(self, oid: str) -> Tuple[ObjectKind, bytes]:
        """
        Read and decode a loose object.

        Raises:
            ObjectMissingError: If the object is not on disk
            DecodeError: If the object is corrupt
        """
        path = self.path_for(oid)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise ObjectMissingError(f"object {oid} is not in the local store")

        try:
            return parse_loose(raw)
        except DecodeError as e:
            raise DecodeError(f"object {oid}: {e}")

    def classify(self, oid: str) -> ObjectKind:
        kind, _payload = self.read(oid)
        return kind

    def decode_commit(self, oid: str) -> Commit:
        return parse_commit(oid, self._read_kind(oid, ObjectKind.COMMIT))

    def decode_tree(self, oid: str) -> Tree:
        return parse_tree(oid, self._read_kind(oid, ObjectKind.TREE))

    def decode_tag(self, oid: str) -> Tag:
        return parse_tag(oid, self._read_kind(oid, ObjectKind.TAG))

    def read_blob(self, oid: str) -> bytes:
        return self._read_kind(oid, ObjectKind.BLOB)

    def discard(self, oid: str):
        """Remove a corrupt object so it is not counted as present later."""
        path = self.path_for(oid)
        try:
            path.unlink()
            logger.debug(f"Discarded corrupt object {oid}")
        except FileNotFoundError:
            pass

    def _read_kind(self, oid: str, expected: ObjectKind) -> bytes:
        kind, payload = self.read(oid)
        if kind != expected:
            raise DecodeError(f"object {oid} is a {kind.value}, expected {expected.value}")
        return payload
