"""
Settings for gitreclaim runs.

Loads settings from environment variables, optionally overlaid by a YAML file.
"""
import os
import yaml
from pathlib import Path
from typing import List, Optional


DEFAULT_TIMEOUT = 10.0
DEFAULT_TOTAL_TIMEOUT = 120.0
DEFAULT_WORKERS = 4
DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:109.0) Gecko/20100101 Firefox/115.0"
PACK_RESOLVERS = ('dulwich', 'git')

# Conventional paths scanned opportunistically after bootstrap
WELL_KNOWN_PATHS = [
    'refs/heads/master',
    'refs/heads/main',
    'refs/remotes/origin/HEAD',
    'refs/stash',
    'ORIG_HEAD',
    'FETCH_HEAD',
    'COMMIT_EDITMSG',
    'description',
    'index',
    'packed-refs',
    'logs/HEAD',
    'logs/refs/heads/master',
    'logs/refs/heads/main',
    'logs/refs/remotes/origin/HEAD',
    'logs/refs/stash',
    'info/refs',
    'info/exclude',
    'objects/info/packs',
]


def _parse_bool(value: str) -> bool:
    lowered = str(value).strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off', ''):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


class ReclaimSettings:
    """Settings for a reclaim run."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        total_timeout: Optional[float] = None,
        verify_tls: Optional[bool] = None,
        user_agent: Optional[str] = None,
        workers: Optional[int] = None,
        pack_resolver: Optional[str] = None,
        extra_paths: Optional[List[str]] = None
    ):
        """
        Load settings from environment, explicit arguments take precedence.

        Environment variables:
        - GITRECLAIM_TIMEOUT: connect and per-read timeout in seconds (default: 10)
        - GITRECLAIM_TOTAL_TIMEOUT: ceiling on a whole response in seconds (default: 120)
        - GITRECLAIM_VERIFY_TLS: verify target certificates (default: false)
        - GITRECLAIM_USER_AGENT: User-Agent header sent to the target
        - GITRECLAIM_WORKERS: parallel object fetches per round (default: 4)
        - GITRECLAIM_PACK_RESOLVER: dulwich or git (default: dulwich)
        """
        if timeout is None:
            timeout = float(os.getenv("GITRECLAIM_TIMEOUT", str(DEFAULT_TIMEOUT)))
        if total_timeout is None:
            total_timeout = float(os.getenv("GITRECLAIM_TOTAL_TIMEOUT", str(DEFAULT_TOTAL_TIMEOUT)))
        if verify_tls is None:
            verify_tls = _parse_bool(os.getenv("GITRECLAIM_VERIFY_TLS", "false"))
        if user_agent is None:
            user_agent = os.getenv("GITRECLAIM_USER_AGENT", DEFAULT_USER_AGENT)
        if workers is None:
            workers = int(os.getenv("GITRECLAIM_WORKERS", str(DEFAULT_WORKERS)))
        if pack_resolver is None:
            pack_resolver = os.getenv("GITRECLAIM_PACK_RESOLVER", "dulwich")

        self.timeout = float(timeout)
        self.total_timeout = float(total_timeout)
        self.verify_tls = bool(verify_tls)
        self.user_agent = user_agent
        self.workers = int(workers)
        self.pack_resolver = pack_resolver
        self.extra_paths = list(extra_paths or [])

        self.validate()

    def validate(self):
        """
        Raises:
            ValueError: If any setting is out of range
        """
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.total_timeout <= 0:
            raise ValueError(f"total_timeout must be positive, got {self.total_timeout}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.pack_resolver not in PACK_RESOLVERS:
            raise ValueError(
                f"Unknown pack resolver: {self.pack_resolver} (expected one of {', '.join(PACK_RESOLVERS)})"
            )

    @property
    def scan_paths(self) -> List[str]:
        """Well-known paths followed by configured extras, without duplicates."""
        paths = []
        for path in WELL_KNOWN_PATHS + self.extra_paths:
            if path not in paths:
                paths.append(path)
        return paths

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> 'ReclaimSettings':
        """
        Load settings from a YAML file, falling back to environment for absent keys.

        Args:
            yaml_path: Path to settings YAML file

        Returns:
            ReclaimSettings instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If the file is not a mapping or holds invalid values
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Settings file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a mapping: {yaml_path}")

        verify_tls = data.get('verify_tls')
        if verify_tls is not None and not isinstance(verify_tls, bool):
            verify_tls = _parse_bool(verify_tls)

        extra_paths = data.get('extra_paths') or []
        if not isinstance(extra_paths, list):
            raise ValueError(f"extra_paths must be a list in {yaml_path}")

        return cls(
            timeout=data.get('timeout'),
            total_timeout=data.get('total_timeout'),
            verify_tls=verify_tls,
            user_agent=data.get('user_agent'),
            workers=data.get('workers'),
            pack_resolver=data.get('pack_resolver'),
            extra_paths=[str(p) for p in extra_paths]
        )
