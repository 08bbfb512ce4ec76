"""
MongoDB storage gateway for the Blog API.

Owns the pymongo client and the two collection handles the handlers work
with:
- posts    -> "posts"
- comments -> "comments"
"""

import logging
from contextlib import contextmanager

from pymongo import MongoClient
from pymongo.errors import ConfigurationError, PyMongoError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 10_000

POSTS_COLLECTION = "posts"
COMMENTS_COLLECTION = "comments"


class StorageConnectionError(Exception):
    """The document store could not be reached at startup."""


class Storage:
    """Connected client plus the posts/comments collection handles.

    The client is thread-safe and pooled, so one instance is shared by all
    requests for the lifetime of the process.
    """

    def __init__(self, client: MongoClient, db_name: str):
        self.client = client
        self.db = client[db_name]
        self.posts = self.db[POSTS_COLLECTION]
        self.comments = self.db[COMMENTS_COLLECTION]
        self._closed = False

    @contextmanager
    def transaction(self):
        """Run the enclosed block as one multi-document transaction.

        Yields the session that every operation in the block must be given.
        The transaction commits when the block exits normally and is aborted
        when it raises; it is never retried.
        """
        with self.client.start_session() as session:
            with session.start_transaction():
                yield session

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.client.close()
        logger.info("storage connection closed")


def connect(uri: str, db_name: str) -> Storage:
    """Open a client, verify it with a ping and resolve the collections.

    Raises:
        StorageConnectionError: bad URI, unreachable server or failed ping.
    """
    try:
        client = MongoClient(
            uri,
            tz_aware=True,
            connectTimeoutMS=CONNECT_TIMEOUT_MS,
            serverSelectionTimeoutMS=CONNECT_TIMEOUT_MS,
            timeoutMS=CONNECT_TIMEOUT_MS,
        )
    except (ConfigurationError, ValueError) as e:
        raise StorageConnectionError(f"invalid MongoDB URI: {e}") from e

    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        raise StorageConnectionError(f"MongoDB ping failed: {e}") from e

    logger.info("connected to MongoDB", extra={"operation": "connect"})
    return Storage(client, db_name)
