"""HTTP routes of the Blog API, all under the /api prefix."""

from fastapi import APIRouter

import handlers

router = APIRouter(prefix="/api")

# ---------- Posts ----------
router.add_api_route("/posts", handlers.list_posts, methods=["GET"], tags=["posts"])
router.add_api_route("/posts", handlers.create_post, methods=["POST"], tags=["posts"])
router.add_api_route("/posts/{post_id}", handlers.get_post, methods=["GET"], tags=["posts"])
router.add_api_route("/posts/{post_id}", handlers.delete_post, methods=["DELETE"], tags=["posts"])

# ---------- Comments ----------
router.add_api_route("/posts/{post_id}/comments", handlers.create_comment, methods=["POST"], tags=["comments"])
router.add_api_route("/comments/{comment_id}", handlers.delete_comment, methods=["DELETE"], tags=["comments"])
