"""
Deduplicated HTTP retrieval of paths below an exposed .git directory.

Every relative path is requested at most once per run. Successful responses
are mirrored to <output>/.git/<path>, except directory listings.
"""
import logging
import posixpath
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import requests
import urllib3

from gitreclaim.config import ReclaimSettings
from gitreclaim.errors import (
    NotFoundError,
    TransportError,
    UnexpectedStatusError,
)
from gitreclaim.models import RunContext, TargetRepository


logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """
    Clamp a relative path below the .git directory.

    "a/../../b" becomes "b"; a trailing "/" (directory listing) is kept.
    """
    path = path.strip()
    is_listing = path.endswith('/')
    clean = posixpath.normpath('/' + path).lstrip('/')
    if is_listing and clean:
        clean += '/'
    return clean


class Fetcher:
    """Fetches relative paths from a target with at-most-once semantics per run."""

    def __init__(self, target: TargetRepository, settings: Optional[ReclaimSettings] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize fetcher.

        Args:
            target: Target repository
            settings: Run settings (default: loaded from environment)
            session: Custom requests session (or None to build one)
        """
        self.target = target
        self.settings = settings or ReclaimSettings()

        if session is None:
            session = requests.Session()
            session.headers.update({'User-Agent': self.settings.user_agent})
            # proxies come from HTTP(S)_PROXY via trust_env
            session.trust_env = True
        self.session = session

        if not self.settings.verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def url_for(self, path: str) -> str:
        """Absolute URL of a relative path, resolved against the .git base URL."""
        return urljoin(self.target.base_url, normalize_path(path))

    def mirror_path(self, ctx: RunContext, path: str) -> Path:
        """Local path mirroring a relative path under <output>/.git."""
        clean = normalize_path(path).rstrip('/')
        return ctx.git_dir.joinpath(*clean.split('/')) if clean else ctx.git_dir

    def fetch(self, ctx: RunContext, path: str, persist: bool = True) -> Optional[bytes]:
        """
        Fetch a relative path.

        Args:
            ctx: Run context owning the fetch record
            path: Path relative to the .git directory
            persist: Write the body to the local mirror

        Returns:
            Response body on the first request, None if the path was
            already requested this run

        Raises:
            NotFoundError: Target answered 404
            UnexpectedStatusError: Target answered another non-200 status
            TransportError: Connection, TLS or timeout failure
        """
        path = normalize_path(path)
        if not ctx.claim(path):
            return None

        url = self.url_for(path)
        logger.debug(f"GET {url}")

        deadline = time.monotonic() + self.settings.total_timeout
        try:
            response = self.session.get(
                url,
                timeout=self.settings.timeout,
                verify=self.settings.verify_tls,
                allow_redirects=True,
                stream=True
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(path, f"failed to retrieve {url}: {e}")

        try:
            if response.status_code == 404:
                raise NotFoundError(path, f"not found at {url}")
            if response.status_code != 200:
                raise UnexpectedStatusError(path, response.status_code)
            content = self._read_body(path, url, response, deadline)
        finally:
            response.close()

        if persist and not path.endswith('/'):
            self.write_mirror(ctx, path, content)

        return content

    def _read_body(self, path: str, url: str, response, deadline: float) -> bytes:
        """Read a streamed body, giving up once the total timeout has passed."""
        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=65536):
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise TransportError(
                        path, f"{url} exceeded the total timeout of {self.settings.total_timeout}s"
                    )
        except requests.exceptions.RequestException as e:
            raise TransportError(path, f"failed to read {url}: {e}")
        return b''.join(chunks)

    def write_mirror(self, ctx: RunContext, path: str, content: bytes) -> Path:
        """Write content to the local mirror of path, creating parent directories."""
        target = self.mirror_path(ctx, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return target

    def fetch_cached(self, ctx: RunContext, path: str) -> Optional[bytes]:
        """
        Fetch a path, or read its mirror if it was already requested this run.

        Returns None when the earlier request left nothing on disk (failed,
        or a directory listing).

        Raises:
            FetchError: On the first request, as fetch()
        """
        content = self.fetch(ctx, path)
        if content is not None:
            return content

        mirror = self.mirror_path(ctx, path)
        if not normalize_path(path).endswith('/') and mirror.is_file():
            return mirror.read_bytes()
        return None

    def close(self):
        self.session.close()
