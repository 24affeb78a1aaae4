"""
Data model for a reclaim run.

Holds the target description, the decoded object shapes, the parsed
repository configuration and the run summary handed back to callers.
"""
import re
import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import urljoin, urlparse


OBJECT_ID_PATTERN = re.compile(r'^[0-9a-f]{40}$')

GIT_DIR_NAME = '.git'


def is_object_id(value: str) -> bool:
    """Check whether value is a 40-character lowercase hex object id."""
    return bool(OBJECT_ID_PATTERN.match(value))


def object_path(oid: str) -> str:
    """Relative path of a loose object inside the .git directory."""
    return f"objects/{oid[:2]}/{oid[2:]}"


class Status(IntEnum):
    """
    Outcome of a run.

    Ordered worse-is-higher so a status can only be downgraded with max().
    UNKNOWN is the pre-run default and is never reported.
    """
    UNKNOWN = 0
    SUCCESS = 1
    PARTIAL_SUCCESS = 2
    FAILURE = 3


class ObjectKind(str, Enum):
    """Kind of a git object as declared in its loose header."""
    COMMIT = 'commit'
    TREE = 'tree'
    BLOB = 'blob'
    TAG = 'tag'
    UNKNOWN = 'unknown'

    @classmethod
    def from_header(cls, value: str) -> 'ObjectKind':
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class TargetRepository:
    """An exposed .git directory on a web server."""
    url: str
    base_url: str

    @classmethod
    def from_url(cls, raw_url: str) -> 'TargetRepository':
        """
        Build a target from a user supplied URL.

        A trailing /.git or /.git/ is stripped, then .git/ is resolved
        against the URL as a directory.

        Raises:
            ValueError: If the URL is not an absolute http(s) URL
        """
        url = raw_url.strip()
        for suffix in ('/.git/', '/.git'):
            if url.endswith(suffix):
                url = url[:-len(suffix)]
                break

        parsed = urlparse(url)
        if parsed.scheme.lower() not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"Invalid url: must be absolute e.g. https://victim.website/ (got {raw_url!r})")

        if not url.endswith('/'):
            url += '/'

        return cls(url=url, base_url=urljoin(url, f"{GIT_DIR_NAME}/"))


@dataclass
class Commit:
    """Decoded commit: its tree and ordered parents."""
    oid: str
    tree: Optional[str] = None
    parents: List[str] = field(default_factory=list)


@dataclass
class TreeEntry:
    """Single entry of a tree object."""
    mode: str
    name: bytes
    oid: str

    @property
    def is_tree(self) -> bool:
        return self.mode in ('40000', '040000')

    @property
    def is_gitlink(self) -> bool:
        return self.mode == '160000'


@dataclass
class Tree:
    """Decoded tree: entries in on-disk order."""
    oid: str
    entries: List[TreeEntry] = field(default_factory=list)

    @property
    def children(self) -> List[str]:
        """Ids reachable from this tree; gitlinks point into other repositories."""
        return [entry.oid for entry in self.entries if not entry.is_gitlink]


@dataclass
class Tag:
    """Decoded annotated tag."""
    oid: str
    target: str
    target_kind: ObjectKind = ObjectKind.UNKNOWN


@dataclass
class Remote:
    name: str
    url: str = ''


@dataclass
class Branch:
    name: str
    remote: str = ''


@dataclass
class User:
    name: str = ''
    email: str = ''
    username: str = ''


@dataclass
class TokenCredential:
    """Credential leaked through the exposed configuration."""
    username: str = ''
    token: str = ''


@dataclass
class RepositoryConfig:
    """Structured view of the exposed .git/config file."""
    repository_name: str = ''
    remotes: List[Remote] = field(default_factory=list)
    branches: List[Branch] = field(default_factory=list)
    user: User = field(default_factory=User)
    token: Optional[TokenCredential] = None


@dataclass
class RunSummary:
    """Result of a discovery run."""
    output_directory: Path
    status: Status = Status.UNKNOWN
    pack_information_available: bool = False
    found_objects: Set[str] = None
    missing_objects: Set[str] = None
    config: RepositoryConfig = None
    head_ref: Optional[str] = None
    head_commit: Optional[str] = None
    materialized_files: int = 0
    warnings: List[str] = None

    def __post_init__(self):
        if self.found_objects is None:
            self.found_objects = set()
        if self.missing_objects is None:
            self.missing_objects = set()
        if self.config is None:
            self.config = RepositoryConfig()
        if self.warnings is None:
            self.warnings = []


@dataclass
class RunContext:
    """
    Mutable state of a single discovery run.

    Passed explicitly to every component call. The lock guards the fetch
    record and the found/missing/visited/stored sets. "stored" holds the ids
    whose bytes were written to the local store during this run; anything
    else on disk is left over from an earlier run and is never trusted.
    """
    output_dir: Path
    requested: Dict[str, bool] = field(default_factory=dict)
    found: Set[str] = field(default_factory=set)
    missing: Set[str] = field(default_factory=set)
    visited: Set[str] = field(default_factory=set)
    stored: Set[str] = field(default_factory=set)
    warnings: List[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def git_dir(self) -> Path:
        return self.output_dir / GIT_DIR_NAME

    def claim(self, path: str) -> bool:
        """Mark path as requested; False if it was already requested."""
        with self.lock:
            if self.requested.get(path):
                return False
            self.requested[path] = True
            return True

    def mark_found(self, oid: str):
        with self.lock:
            self.missing.discard(oid)
            self.found.add(oid)

    def mark_missing(self, oid: str):
        with self.lock:
            self.found.discard(oid)
            self.missing.add(oid)
            self.stored.discard(oid)

    def mark_stored(self, oids: Iterable[str]):
        with self.lock:
            self.stored.update(oids)

    def is_stored(self, oid: str) -> bool:
        with self.lock:
            return oid in self.stored

    def warn(self, message: str):
        with self.lock:
            self.warnings.append(message)
