"""
Graph walker: drives a full reclaim run.

Confirms the target exposes a .git directory, loads its config, resolves
HEAD, walks the commit -> tree -> blob graph over HTTP, recovers pack
archives, classifies the outcome and checks out the working tree.

Only NotVulnerableError and BootstrapError escape discover(). Every other
failure is recorded on the summary and degrades its status.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from gitreclaim.config import ReclaimSettings
from gitreclaim.errors import (
    BootstrapError,
    DecodeError,
    FetchError,
    MaterializeError,
    NotVulnerableError,
    ObjectMissingError,
)
from gitreclaim.fetcher import Fetcher
from gitreclaim.gitconfig import parse_config
from gitreclaim.materializer import Materializer
from gitreclaim.models import (
    GIT_DIR_NAME,
    ObjectKind,
    RunContext,
    RunSummary,
    TargetRepository,
    object_path,
)
from gitreclaim.objects import ObjectStore, parse_commit, parse_tag, parse_tree
from gitreclaim.outcome import classify_status, downgrade
from gitreclaim.packs import PackRecovery, PackResolver, build_resolver
from gitreclaim.refs import (
    parse_info_refs,
    parse_packed_refs,
    parse_ref_value,
    parse_symbolic_ref,
)


logger = logging.getLogger(__name__)

MAX_SYMREF_DEPTH = 5

# Scanned paths whose content is a plain object id
ROOT_REF_FILES = ('ORIG_HEAD', 'FETCH_HEAD')


class GraphWalker:
    """
    Reclaims a repository from an exposed .git directory.

    Each discover() call runs with a fresh RunContext, so a walker holds no
    state between runs.
    """

    def __init__(
        self,
        target: TargetRepository,
        output_dir: Path,
        settings: Optional[ReclaimSettings] = None,
        fetcher: Optional[Fetcher] = None,
        resolver: Optional[PackResolver] = None
    ):
        """
        Initialize walker.

        Args:
            target: Target repository
            output_dir: Directory receiving .git/ and the working tree
            settings: Run settings (default: loaded from environment)
            fetcher: Custom fetcher (or None to build one from settings)
            resolver: Pack resolver (or None to build the configured one)
        """
        self.target = target
        self.output_dir = Path(output_dir)
        self.settings = settings or ReclaimSettings()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or Fetcher(target, self.settings)
        self.resolver = resolver or build_resolver(self.settings.pack_resolver)
        self.store = ObjectStore(self.output_dir / GIT_DIR_NAME)

    def discover(self) -> RunSummary:
        """
        Run discovery end to end.

        Returns:
            RunSummary

        Raises:
            NotVulnerableError: Target does not expose a usable .git directory
            BootstrapError: config or the HEAD target cannot be retrieved
        """
        ctx = RunContext(output_dir=self.output_dir)
        summary = RunSummary(output_directory=self.output_dir)

        try:
            head_ref = self._check_vulnerable(ctx)
            logger.info(f"{self.target.base_url} exposes HEAD -> {head_ref}")
            summary.head_ref = head_ref

            summary.config = self._load_config(ctx)
            head_commit = self._resolve_ref(ctx, head_ref)
            summary.head_commit = head_commit
            logger.info(f"Resolved {head_ref} to {head_commit}")

            roots = [head_commit] + self._scan_well_known(ctx)
            self._walk(ctx, roots)
            logger.info(f"Primary walk done: {len(ctx.found)} found, {len(ctx.missing)} missing")

            recovery = PackRecovery(self.fetcher, self.resolver).recover(ctx)
            summary.pack_information_available = recovery.pack_index_found
            if not recovery.pack_index_found:
                ctx.warn("pack information is not available - some objects may be missing")
            ctx.mark_stored(recovery.recovered)
            self._reconcile(ctx)

            status = classify_status(ctx.found, ctx.missing)

            try:
                report = Materializer(self.store, self.output_dir, available=ctx.found).materialize(head_commit)
                summary.materialized_files = report.written
            except MaterializeError as e:
                logger.warning(f"Failed to check out working tree: {e}")
                ctx.warn(f"working tree checkout failed: {e}")
                status = downgrade(status)
        finally:
            if self._owns_fetcher:
                self.fetcher.close()

        summary.status = status
        summary.found_objects = set(ctx.found)
        summary.missing_objects = set(ctx.missing)
        summary.warnings = list(ctx.warnings)
        return summary

    def _check_vulnerable(self, ctx: RunContext) -> str:
        """Fetch HEAD and return its symbolic target; HEAD is persisted only once valid."""
        try:
            content = self.fetcher.fetch(ctx, 'HEAD', persist=False)
        except FetchError as e:
            raise NotVulnerableError(f"no .git directory is available at {self.target.base_url}: {e}")

        ref = parse_symbolic_ref(content or b'')
        if ref is None:
            raise NotVulnerableError(f"{self.target.base_url}HEAD is not a symbolic ref")

        self.fetcher.write_mirror(ctx, 'HEAD', content)
        return ref

    def _load_config(self, ctx: RunContext):
        try:
            content = self.fetcher.fetch_cached(ctx, 'config')
        except (FetchError, OSError) as e:
            raise BootstrapError(f"failed to retrieve config: {e}")
        if content is None:
            raise BootstrapError("config is unavailable")
        return parse_config(content)

    def _resolve_ref(self, ctx: RunContext, ref: str, depth: int = 0) -> str:
        """
        Resolve a ref to an object id.

        Tries the loose ref file (following nested symbolic refs), then
        packed-refs, then info/refs.

        Raises:
            BootstrapError: If no source names the ref
        """
        content = self._read_optional(ctx, ref)
        if content is not None:
            nested = parse_symbolic_ref(content)
            if nested is not None and depth < MAX_SYMREF_DEPTH:
                return self._resolve_ref(ctx, nested, depth + 1)
            oid = parse_ref_value(content)
            if oid:
                return oid
            logger.warning(f"Ref file {ref} holds no object id")

        logger.debug(f"Ref {ref} is not a loose file, probing packed refs")
        for source, parser in (('packed-refs', parse_packed_refs), ('info/refs', parse_info_refs)):
            content = self._read_optional(ctx, source)
            if content is None:
                continue
            oid = parser(content).get(ref)
            if oid:
                logger.debug(f"Resolved {ref} through {source}")
                return oid

        raise BootstrapError(f"failed to resolve {ref}: not available as loose, packed or advertised ref")

    def _scan_well_known(self, ctx: RunContext) -> List[str]:
        """Fetch well-known paths; return object ids named by ref files among them."""
        roots = []
        for path in self.settings.scan_paths:
            content = self._read_optional(ctx, path)
            if content is None:
                continue

            if path == 'packed-refs':
                roots.extend(parse_packed_refs(content).values())
            elif path.startswith('refs/') or path in ROOT_REF_FILES:
                oid = parse_ref_value(content)
                if oid:
                    roots.append(oid)
        return roots

    def _read_optional(self, ctx: RunContext, path: str) -> Optional[bytes]:
        try:
            return self.fetcher.fetch_cached(ctx, path)
        except FetchError as e:
            logger.debug(f"Optional path {path} unavailable: {e}")
            return None
        except OSError as e:
            logger.warning(f"Failed to store {path}: {e}")
            ctx.warn(f"{path} could not be stored: {e}")
            return None

    def _claim(self, ctx: RunContext, oids: Iterable[str]) -> List[str]:
        """Mark ids visited; return those not visited before, in order."""
        fresh = []
        with ctx.lock:
            for oid in oids:
                if oid not in ctx.visited:
                    ctx.visited.add(oid)
                    fresh.append(oid)
        return fresh

    def _walk(self, ctx: RunContext, roots: Iterable[str]):
        """Breadth-first worklist traversal; each frontier is visited in parallel."""
        frontier = self._claim(ctx, roots)
        with ThreadPoolExecutor(max_workers=self.settings.workers) as pool:
            while frontier:
                results = pool.map(lambda oid: self._visit(ctx, oid), frontier)
                children = [child for expanded in results for child in expanded]
                frontier = self._claim(ctx, children)

    def _visit(self, ctx: RunContext, oid: str) -> List[str]:
        """Retrieve and decode one object; return the ids it references."""
        if not ctx.is_stored(oid):
            logger.debug(f"Requesting object {oid}")
            try:
                content = self.fetcher.fetch(ctx, object_path(oid))
            except FetchError as e:
                logger.debug(f"Object {oid} is missing and likely packed: {e}")
                ctx.mark_missing(oid)
                return []
            except OSError as e:
                logger.warning(f"Failed to store object {oid}: {e}")
                ctx.warn(f"object {oid} could not be stored: {e}")
                ctx.mark_missing(oid)
                return []

            if content is None:
                ctx.mark_missing(oid)
                return []
            ctx.mark_stored([oid])

        try:
            kind, payload = self.store.read(oid)
            if kind == ObjectKind.COMMIT:
                commit = parse_commit(oid, payload)
                children = ([commit.tree] if commit.tree else []) + commit.parents
                logger.debug(f"Retrieved commit {oid}")
            elif kind == ObjectKind.TREE:
                children = parse_tree(oid, payload).children
                logger.debug(f"Retrieved tree {oid}")
            elif kind == ObjectKind.TAG:
                children = [parse_tag(oid, payload).target]
                logger.debug(f"Retrieved tag {oid}")
            elif kind == ObjectKind.BLOB:
                children = []
                logger.debug(f"Retrieved blob {oid}")
            else:
                raise DecodeError(f"object {oid} has an unknown type")
        except (DecodeError, ObjectMissingError) as e:
            logger.warning(f"Discarding undecodable object {oid}: {e}")
            ctx.warn(f"object {oid} could not be decoded: {e}")
            self.store.discard(oid)
            ctx.mark_missing(oid)
            return []

        ctx.mark_found(oid)
        return children

    def _reconcile(self, ctx: RunContext):
        """Walk missing ids that pack recovery stored this run, and what they reference."""
        with ctx.lock:
            candidates = [
                oid for oid in sorted(ctx.missing)
                if oid in ctx.stored and self.store.exists(oid)
            ]
            for oid in candidates:
                ctx.missing.discard(oid)
                ctx.visited.discard(oid)

        if candidates:
            logger.info(f"Recovered {len(candidates)} missing objects from packs")
            self._walk(ctx, candidates)
