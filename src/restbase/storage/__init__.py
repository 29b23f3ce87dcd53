"""Persistent storage layer.

This package provides the durable session store and the binary object
storage client.
"""

from restbase.storage.objects import Bucket, ObjectStorage
from restbase.storage.session_store import InMemorySessionStore, SessionStore

__all__ = ["Bucket", "InMemorySessionStore", "ObjectStorage", "SessionStore"]
