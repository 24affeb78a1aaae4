"""
Best-effort discovery and unpacking of pack archives.

Archives are located through the objects/pack/ directory listing and the
objects/info/packs index, downloaded, and handed to a PackResolver.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import List, Set

from gitreclaim.errors import FetchError, PackResolveError
from gitreclaim.fetcher import Fetcher
from gitreclaim.models import RunContext
from gitreclaim.packs.resolvers import PackResolver


logger = logging.getLogger(__name__)

PACK_DIR = 'objects/pack/'
PACK_INDEX = 'objects/info/packs'

# e.g. href="pack-5b89658fae4313c1e25d629bfa95f809c77ff949.pack"
PACK_LINK_PATTERN = re.compile(r'href=["\']?(pack-[0-9a-f]{40}\.pack)', re.IGNORECASE)
PACK_NAME_PATTERN = re.compile(r'^[\w.-]+\.pack$')


def parse_pack_listing(content: bytes) -> List[str]:
    """Pack file names linked from an HTML directory listing, in order."""
    names = []
    for match in PACK_LINK_PATTERN.finditer(content.decode('utf-8', errors='replace')):
        name = match.group(1).lower()
        if name not in names:
            names.append(name)
    return names


def parse_pack_index(content: bytes) -> List[str]:
    """Pack file names from an objects/info/packs file ("P <name>" lines)."""
    names = []
    for line in content.decode('utf-8', errors='replace').splitlines():
        parts = line.strip().split(' ')
        if len(parts) == 2 and parts[0] == 'P' and PACK_NAME_PATTERN.match(parts[1]):
            if parts[1] not in names:
                names.append(parts[1])
    return names


@dataclass
class PackRecoveryResult:
    """Outcome of pack recovery."""
    pack_index_found: bool = False
    packs: List[str] = field(default_factory=list)
    recovered: Set[str] = field(default_factory=set)


class PackRecovery:
    """Locates, downloads and resolves pack archives for a run."""

    def __init__(self, fetcher: Fetcher, resolver: PackResolver):
        self.fetcher = fetcher
        self.resolver = resolver

    def recover(self, ctx: RunContext) -> PackRecoveryResult:
        """
        Recover packed objects.

        Never raises for missing or malformed archives; failures are logged
        and recorded as warnings on the context.

        Returns:
            PackRecoveryResult with the ids the resolver made available
        """
        result = PackRecoveryResult()
        names: List[str] = []

        listing = self._read(ctx, PACK_DIR)
        if listing is not None:
            result.pack_index_found = True
            names.extend(parse_pack_listing(listing))

        index = self._read(ctx, PACK_INDEX)
        if index is not None:
            result.pack_index_found = True
            for name in parse_pack_index(index):
                if name not in names:
                    names.append(name)

        if not result.pack_index_found:
            logger.info("No archive index available - packed objects may be missing")
            return result

        for name in names:
            path = f"{PACK_DIR}{name}"
            try:
                data = self.fetcher.fetch_cached(ctx, path)
            except FetchError as e:
                logger.debug(f"Failed to retrieve pack file {name}: {e}")
                continue
            except OSError as e:
                logger.warning(f"Failed to store pack file {name}: {e}")
                ctx.warn(f"pack {name} could not be stored: {e}")
                continue
            if data is None:
                continue

            try:
                resolved = self.resolver.resolve(data, ctx.git_dir)
            except (PackResolveError, OSError) as e:
                logger.warning(f"Failed to unpack {name}: {e}")
                ctx.warn(f"pack {name} could not be unpacked: {e}")
                continue

            logger.info(f"Unpacked {len(resolved)} objects from {name}")
            result.packs.append(name)
            result.recovered |= resolved

        return result

    def _read(self, ctx: RunContext, path: str):
        try:
            return self.fetcher.fetch_cached(ctx, path)
        except FetchError as e:
            logger.debug(f"Pack source {path} unavailable: {e}")
            return None
        except OSError as e:
            logger.warning(f"Failed to store pack source {path}: {e}")
            ctx.warn(f"{path} could not be stored: {e}")
            return None
