"""
Parsing of git reference files.

Covers HEAD, loose ref files, packed-refs and the dumb-HTTP info/refs listing.
"""
import posixpath
from typing import Dict, Optional

from gitreclaim.models import is_object_id


SYMBOLIC_PREFIX = 'ref: '


def parse_symbolic_ref(content: bytes) -> Optional[str]:
    """
    Return the target of a "ref: <path>" line, or None if content is not one.

    The target must be a relative path below the .git directory.
    """
    text = content.decode('utf-8', errors='replace').strip()
    if not text.startswith(SYMBOLIC_PREFIX):
        return None

    target = text[len(SYMBOLIC_PREFIX):].strip()
    if not target or '\n' in target or target.startswith('/'):
        return None
    if posixpath.normpath(target).startswith('..'):
        return None
    return target


def parse_ref_value(content: bytes) -> Optional[str]:
    """Return the object id stored in a loose ref file, if any."""
    text = content.decode('utf-8', errors='replace').strip()
    first = text.split()[0] if text else ''
    if is_object_id(first):
        return first
    return None


def parse_packed_refs(content: bytes) -> Dict[str, str]:
    """
    Parse a packed-refs file into {ref name: object id}.

    Peeled lines ("^<id>") name the commit behind the preceding annotated
    tag and are stored under "<ref>^{}".
    """
    refs = {}
    last_ref = None

    for raw_line in content.decode('utf-8', errors='replace').splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue

        if line.startswith('^'):
            oid = line[1:].strip()
            if last_ref and is_object_id(oid):
                refs[f"{last_ref}^{{}}"] = oid
            continue

        parts = line.split()
        if len(parts) >= 2 and is_object_id(parts[0]):
            refs[parts[1]] = parts[0]
            last_ref = parts[1]

    return refs


def parse_info_refs(content: bytes) -> Dict[str, str]:
    """Parse info/refs ("<id>\\t<ref>" per line) into {ref name: object id}."""
    refs = {}
    for line in content.decode('utf-8', errors='replace').splitlines():
        parts = line.strip().split()
        if len(parts) >= 2 and is_object_id(parts[0]):
            refs[parts[1]] = parts[0]
    return refs

