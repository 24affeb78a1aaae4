"""
gitreclaim - rebuild git repositories from exposed .git directories.

Walks the ref/commit/tree graph of a web-exposed .git directory over HTTP,
recovers loose and packed objects, and checks out the working tree locally.
"""

__version__ = "1.0.0"
