"""
Pytest configuration for unit tests.

Provides a builder for hand-made loose-object repositories and a threaded
HTTP server that exposes a site directory and counts requests per path.
"""
import functools
import hashlib
import os
import struct
import threading
import zlib
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

# Test servers listen on loopback; keep proxies from the environment out of the way
os.environ["NO_PROXY"] = "127.0.0.1,localhost"
os.environ["no_proxy"] = "127.0.0.1,localhost"


def loose_object(kind: str, payload: bytes):
    """Return (oid, compressed bytes) of a loose object."""
    data = f"{kind} {len(payload)}".encode('ascii') + b'\x00' + payload
    return hashlib.sha1(data).hexdigest(), zlib.compress(data)


def tree_payload(entries) -> bytes:
    """Encode (mode, name, oid) entries as a raw tree payload."""
    out = b''
    for mode, name, oid in entries:
        out += mode.encode('ascii') + b' ' + name + b'\x00' + bytes.fromhex(oid)
    return out


def commit_payload(tree: str, parents=(), message: str = "first commit") -> bytes:
    lines = [f"tree {tree}"]
    lines += [f"parent {parent}" for parent in parents]
    lines += [
        "author test <test@test.com> 1700000000 +0000",
        "committer test <test@test.com> 1700000000 +0000",
        "",
        message,
        "",
    ]
    return "\n".join(lines).encode('utf-8')


PACK_TYPES = {'commit': 1, 'tree': 2, 'blob': 3, 'tag': 4}


def pack_archive(objects) -> bytes:
    """Encode (kind, payload) pairs as an undeltified version 2 pack."""
    out = b'PACK' + struct.pack('>II', 2, len(objects))
    for kind, payload in objects:
        size = len(payload)
        byte = (PACK_TYPES[kind] << 4) | (size & 0x0f)
        size >>= 4
        header = b''
        while size:
            header += bytes([byte | 0x80])
            byte = size & 0x7f
            size >>= 7
        header += bytes([byte])
        out += header + zlib.compress(payload)
    return out + hashlib.sha1(out).digest()


class RepoBuilder:
    """Writes loose objects, refs and config into a .git directory."""

    def __init__(self, git_dir: Path):
        self.git_dir = Path(git_dir)
        (self.git_dir / "objects").mkdir(parents=True, exist_ok=True)
        (self.git_dir / "refs" / "heads").mkdir(parents=True, exist_ok=True)

    def object_file(self, oid: str) -> Path:
        return self.git_dir / "objects" / oid[:2] / oid[2:]

    def write_object(self, kind: str, payload: bytes) -> str:
        oid, compressed = loose_object(kind, payload)
        path = self.object_file(oid)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(compressed)
        return oid

    def blob(self, content: bytes) -> str:
        return self.write_object('blob', content)

    def tree(self, entries) -> str:
        return self.write_object('tree', tree_payload(entries))

    def commit(self, tree: str, parents=(), message: str = "first commit") -> str:
        return self.write_object('commit', commit_payload(tree, parents, message))

    def tag(self, target: str, name: str = "v1.0") -> str:
        payload = (
            f"object {target}\ntype commit\ntag {name}\n"
            f"tagger test <test@test.com> 1700000000 +0000\n\nrelease\n"
        )
        return self.write_object('tag', payload.encode('utf-8'))

    def write_file(self, relative: str, content) -> Path:
        if isinstance(content, str):
            content = content.encode('utf-8')
        path = self.git_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    def set_head(self, ref: str = "refs/heads/master", commit: str = None, loose: bool = True):
        self.write_file("HEAD", f"ref: {ref}\n")
        if commit and loose:
            self.write_file(ref, f"{commit}\n")

    def set_config(self, text: str = None):
        if text is None:
            text = (
                "[core]\n"
                "\trepositoryformatversion = 0\n"
                "\tbare = false\n"
                "[remote \"origin\"]\n"
                "\turl = https://github.com/acme/webshop.git\n"
                "\tfetch = +refs/heads/*:refs/remotes/origin/*\n"
                "[branch \"master\"]\n"
                "\tremote = origin\n"
                "\tmerge = refs/heads/master\n"
                "[user]\n"
                "\temail = test@test.com\n"
                "\tname = test\n"
            )
        self.write_file("config", text)


class CountingHandler(SimpleHTTPRequestHandler):
    """Static file handler that records every requested path."""

    def do_GET(self):
        self.server.record(self.path)
        super().do_GET()

    def log_message(self, format, *args):
        pass


class ExposedSiteServer:
    """Serves a site directory over HTTP on a loopback port."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.counts = {}
        self._lock = threading.Lock()
        handler = functools.partial(CountingHandler, directory=str(self.root))
        self.httpd = ThreadingHTTPServer(('127.0.0.1', 0), handler)
        self.httpd.record = self.record
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def record(self, path: str):
        with self._lock:
            self.counts[path] = self.counts.get(path, 0) + 1

    @property
    def url(self) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}/"

    def start(self):
        self.thread.start()
        return self

    def close(self):
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def site_dir(tmp_path):
    """Document root of the exposed website."""
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def output_dir(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def repo(site_dir):
    """Builder for the site's exposed .git directory."""
    return RepoBuilder(site_dir / ".git")


@pytest.fixture
def server(site_dir):
    """Running HTTP server exposing the site directory."""
    srv = ExposedSiteServer(site_dir).start()
    yield srv
    srv.close()


@pytest.fixture
def single_commit_repo(repo):
    """
    Exposed repository holding one commit with hello.php.

    Returns a dict of the objects written.
    """
    content = b"<?php\necho 'hello';\n"
    blob = repo.blob(content)
    tree = repo.tree([('100644', b'hello.php', blob)])
    commit = repo.commit(tree)
    repo.set_head("refs/heads/master", commit)
    repo.set_config()
    repo.write_file("description", "Unnamed repository\n")
    return {'blob': blob, 'tree': tree, 'commit': commit, 'content': content}
