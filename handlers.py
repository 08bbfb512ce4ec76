"""Endpoint handlers for posts and comments.

Each handler validates its input, talks to the storage gateway and shapes
the response envelope. Failures are raised as `HTTPException` with a short
fixed message; storage error details only go to the log.
"""

import logging

import pymongo
from bson import ObjectId
from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError

from database import Storage
from errors import TransactionAborted
from schemas import (
    APIResponse,
    Comment,
    CommentCreate,
    Post,
    PostCreate,
    PostSummary,
    dump,
    utcnow,
)

logger = logging.getLogger(__name__)

# Upper bound, in seconds, for the storage work of a single request.
DB_TIMEOUT = 10


# ---------- Dependencies ----------

def get_storage(request: Request) -> Storage:
    return request.app.state.storage


async def raw_body(request: Request) -> bytes:
    # Read without parsing so the path id is validated before the body.
    return await request.body()


# ---------- Utilities ----------

def oid(id_str: str, error: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=error)
    return ObjectId(id_str)


def parse_body(model: type[BaseModel], body: bytes) -> BaseModel:
    try:
        return model.model_validate_json(body or b"")
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid JSON")


def ok(data) -> dict:
    return APIResponse(success=True, data=data).model_dump(exclude_none=True)


# ---------- Posts ----------

def list_posts(storage: Storage = Depends(get_storage)):
    """Summaries of every post, each with its comment count."""
    summaries = []
    try:
        with pymongo.timeout(DB_TIMEOUT):
            for doc in storage.posts.find({}):
                try:
                    post = Post.model_validate(doc)
                except ValidationError as e:
                    logger.warning("skipping malformed post: %s", e, extra={"operation": "list_posts", "filter": {"_id": doc.get("_id")}})
                    continue

                query = {"post_id": doc["_id"]}
                try:
                    count = storage.comments.count_documents(query)
                except PyMongoError:
                    logger.exception("failed to count comments", extra={"operation": "count_comments", "filter": query})
                    count = 0

                summaries.append(PostSummary(
                    id=post.id,
                    title=post.title,
                    comment_count=count,
                    created_at=post.created_at,
                ))
    except PyMongoError:
        logger.exception("failed to fetch posts", extra={"operation": "list_posts", "filter": {}})
        raise HTTPException(502, "Failed to fetch posts")

    return ok([dump(s) for s in summaries])


def create_post(body: bytes = Depends(raw_body), storage: Storage = Depends(get_storage)):
    data = parse_body(PostCreate, body)
    if data.title == "" or data.content == "":
        raise HTTPException(400, "Title and content required")

    doc = {
        "title": data.title,
        "content": data.content,
        "createdAt": utcnow(),
    }
    try:
        with pymongo.timeout(DB_TIMEOUT):
            res = storage.posts.insert_one(doc)
    except PyMongoError:
        logger.exception("failed to insert post", extra={"operation": "create_post"})
        raise HTTPException(502, "Failed to create post")

    doc["_id"] = res.inserted_id
    return ok(dump(Post.model_validate(doc)))


def get_post(post_id: str, storage: Storage = Depends(get_storage)):
    """A single post with its comments attached.

    The comments are best effort: if that second query fails the post is
    still returned with whatever comments were read.
    """
    pid = oid(post_id, "Invalid post ID")
    query = {"_id": pid}

    with pymongo.timeout(DB_TIMEOUT):
        try:
            doc = storage.posts.find_one(query)
        except PyMongoError:
            logger.exception("failed to fetch post", extra={"operation": "get_post", "filter": query})
            raise HTTPException(500, "Failed to fetch post")
        if doc is None:
            raise HTTPException(404, "Post not found")

        try:
            post = Post.model_validate(doc)
        except ValidationError:
            logger.exception("malformed post document", extra={"operation": "get_post", "filter": query})
            raise HTTPException(500, "Failed to fetch post")

        comment_query = {"post_id": pid}
        try:
            for c in storage.comments.find(comment_query):
                try:
                    post.comments.append(Comment.model_validate(c))
                except ValidationError:
                    logger.warning("skipping malformed comment", extra={"operation": "get_post", "filter": {"_id": c.get("_id")}})
        except PyMongoError:
            logger.warning("failed to fetch comments", exc_info=True, extra={"operation": "get_post", "filter": comment_query})

    return ok(dump(post))


def delete_post(post_id: str, storage: Storage = Depends(get_storage)):
    """Delete a post and all of its comments in one transaction.

    Nothing is deleted unless the post itself existed: comment deletions
    staged before that check are rolled back together with it.
    """
    pid = oid(post_id, "Invalid post ID")

    try:
        with pymongo.timeout(DB_TIMEOUT), storage.transaction() as session:
            comment_query = {"post_id": pid}
            try:
                storage.comments.delete_many(comment_query, session=session)
            except PyMongoError as e:
                logger.error("failed to delete comments in transaction: %s", e, extra={"operation": "delete_post", "filter": comment_query})
                raise TransactionAborted(502, "Failed to delete comments from post")

            post_query = {"_id": pid}
            try:
                res = storage.posts.delete_one(post_query, session=session)
            except PyMongoError as e:
                logger.error("failed to delete post in transaction: %s", e, extra={"operation": "delete_post", "filter": post_query})
                raise TransactionAborted(502, "Failed to delete post")

            if res.deleted_count == 0:
                raise TransactionAborted(400, "Post not found")
    except TransactionAborted as e:
        raise HTTPException(e.status_code, e.message)
    except PyMongoError:
        # session start or commit
        logger.exception("delete post transaction failed", extra={"operation": "delete_post", "filter": {"_id": pid}})
        raise HTTPException(502, "Failed to delete post")

    return ok(str(pid))


# ---------- Comments ----------

def create_comment(post_id: str, body: bytes = Depends(raw_body), storage: Storage = Depends(get_storage)):
    """Add a comment to an existing post.

    The existence check and the insert are separate operations, so a post
    deleted in between can still receive the comment.
    """
    pid = oid(post_id, "Invalid post ID")
    data = parse_body(CommentCreate, body)
    if data.author == "" or data.content == "":
        raise HTTPException(400, "Author and content required")

    with pymongo.timeout(DB_TIMEOUT):
        query = {"_id": pid}
        try:
            count = storage.posts.count_documents(query)
        except PyMongoError:
            logger.exception("failed to check post", extra={"operation": "create_comment", "filter": query})
            count = 0
        if count == 0:
            raise HTTPException(404, "Post not found")

        doc = {
            "post_id": pid,
            "author": data.author,
            "content": data.content,
            "createdAt": utcnow(),
        }
        try:
            res = storage.comments.insert_one(doc)
        except PyMongoError:
            logger.exception("failed to insert comment", extra={"operation": "create_comment"})
            raise HTTPException(500, "Failed to create comment")

    doc["_id"] = res.inserted_id
    return ok(dump(Comment.model_validate(doc)))


def delete_comment(comment_id: str, storage: Storage = Depends(get_storage)):
    cid = oid(comment_id, "Invalid comment ID")
    query = {"_id": cid}

    try:
        with pymongo.timeout(DB_TIMEOUT):
            res = storage.comments.delete_one(query)
    except PyMongoError:
        logger.exception("failed to delete comment", extra={"operation": "delete_comment", "filter": query})
        raise HTTPException(502, "Failed to delete comment")

    if res.deleted_count == 0:
        raise HTTPException(400, "No comment found to delete")

    return ok(str(cid))
