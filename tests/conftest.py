"""
Shared pytest fixtures for the Blog API test suite.

The storage gateway is replaced by an in-memory fake wired in through
`app.dependency_overrides`, so no MongoDB server is needed.
"""

from contextlib import contextmanager
from datetime import datetime, timezone

import pymongo
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError
from pymongo.results import DeleteResult, InsertOneResult

from handlers import get_storage
from main import app


_real_timeout = pymongo.timeout

# Seconds of every pymongo.timeout block currently open, innermost last.
_open_timeouts = []


@contextmanager
def _tracking_timeout(seconds):
    _open_timeouts.append(seconds)
    try:
        with _real_timeout(seconds):
            yield
    finally:
        _open_timeouts.pop()


def _current_timeout():
    return _open_timeouts[-1] if _open_timeouts else None


def _matches(doc, query):
    return all(doc.get(k) == v for k, v in (query or {}).items())


class FakeCollection:
    """In-memory stand-in for the handful of pymongo Collection methods used.

    Every call is appended to the shared `calls` log, and the pymongo timeout
    in force at that moment to `timeouts`. Operation names placed in `fail`
    raise `fail_with` (PyMongoError by default).
    """

    def __init__(self, name, calls, timeouts):
        self.name = name
        self.calls = calls
        self.timeouts = timeouts
        self.docs = []
        self.fail = set()
        self.fail_with = PyMongoError

    def _op(self, op):
        self.calls.append((self.name, op))
        self.timeouts.append((self.name, op, _current_timeout()))
        if op in self.fail:
            raise self.fail_with(f"{self.name}.{op} failed")

    def find(self, query=None, session=None):
        self._op("find")
        return iter([dict(d) for d in self.docs if _matches(d, query)])

    def find_one(self, query=None, session=None):
        self._op("find_one")
        for d in self.docs:
            if _matches(d, query):
                return dict(d)
        return None

    def count_documents(self, query, session=None):
        self._op("count_documents")
        return sum(1 for d in self.docs if _matches(d, query))

    def insert_one(self, doc, session=None):
        self._op("insert_one")
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        return InsertOneResult(doc["_id"], True)

    def delete_one(self, query, session=None):
        self._op("delete_one")
        for i, d in enumerate(self.docs):
            if _matches(d, query):
                del self.docs[i]
                return DeleteResult({"n": 1}, True)
        return DeleteResult({"n": 0}, True)

    def delete_many(self, query, session=None):
        self._op("delete_many")
        kept = [d for d in self.docs if not _matches(d, query)]
        n = len(self.docs) - len(kept)
        self.docs = kept
        return DeleteResult({"n": n}, True)


class FakeStorage:
    """Storage gateway fake with snapshot/rollback transactions."""

    def __init__(self):
        self.calls = []
        self.timeouts = []
        self.posts = FakeCollection("posts", self.calls, self.timeouts)
        self.comments = FakeCollection("comments", self.calls, self.timeouts)
        self.fail_transaction = False
        self.close_count = 0

    @contextmanager
    def transaction(self):
        self.calls.append(("storage", "transaction"))
        self.timeouts.append(("storage", "transaction", _current_timeout()))
        if self.fail_transaction:
            raise PyMongoError("could not start session")
        snapshot = {c: list(c.docs) for c in (self.posts, self.comments)}
        try:
            yield object()
        except BaseException:
            for collection, docs in snapshot.items():
                collection.docs = docs
            raise

    def close(self):
        self.close_count += 1


@pytest.fixture(autouse=True)
def track_timeouts(monkeypatch):
    """Let the fake see which pymongo.timeout block each call runs in"""
    monkeypatch.setattr(pymongo, "timeout", _tracking_timeout)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(storage):
    """Test client whose handlers see the fake storage"""
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_post(storage):
    """Insert a post document directly into the fake store"""

    def _make(title="Hello", content="World", created_at=None):
        doc = {
            "_id": ObjectId(),
            "title": title,
            "content": content,
            "createdAt": created_at or datetime(2025, 7, 7, 16, 0, tzinfo=timezone.utc),
        }
        storage.posts.docs.append(doc)
        return doc

    return _make


@pytest.fixture
def make_comment(storage):
    """Insert a comment document directly into the fake store"""

    def _make(post_id, author="alice", content="Nice post"):
        doc = {
            "_id": ObjectId(),
            "post_id": post_id,
            "author": author,
            "content": content,
            "createdAt": datetime(2025, 7, 7, 17, 0, tzinfo=timezone.utc),
        }
        storage.comments.docs.append(doc)
        return doc

    return _make
