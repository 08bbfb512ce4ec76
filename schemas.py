"""
Database and API schemas for the Blog API

Stored documents live in two MongoDB collections:
- Post    -> "posts"     {_id, title, content, createdAt}
- Comment -> "comments"  {_id, post_id, author, content, createdAt}

The same models render the JSON bodies, with ids as hex strings and
timestamps as ISO-8601 UTC.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _object_id_str(value: Any) -> str:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, str) and ObjectId.is_valid(value):
        return value
    raise ValueError("not a valid ObjectId")


ObjectIdStr = Annotated[str, BeforeValidator(_object_id_str)]


def utcnow() -> datetime:
    """Current UTC time truncated to the millisecond precision BSON stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


# ---------- Request bodies ----------
# Missing fields default to "" so that absence and emptiness fail the same check.

class PostCreate(BaseModel):
    title: str = ""
    content: str = ""


class CommentCreate(BaseModel):
    author: str = ""
    content: str = ""


# ---------- Documents ----------

class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: ObjectIdStr = Field(..., validation_alias=AliasChoices("_id", "id"))
    created_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("createdAt", "created_at"),
        serialization_alias="createdAt",
    )

    @field_validator("created_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # clients opened without tz_aware return naive UTC datetimes
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class Comment(_Document):
    post_id: ObjectIdStr = Field(..., description="Owning post id")
    author: str = Field(..., description="Comment author")
    content: str = Field(..., description="Comment text")


class Post(_Document):
    title: str = Field(..., description="Post title")
    content: str = Field(..., description="Post body")
    comments: List[Comment] = Field(default_factory=list, description="Attached on read, never stored")


class PostSummary(BaseModel):
    id: str
    title: str
    comment_count: int = Field(0, ge=0)
    created_at: datetime = Field(..., serialization_alias="createdAt")


# ---------- Envelope ----------

class APIResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


def dump(model: BaseModel) -> dict:
    """JSON-ready dict of a model using its public field names."""
    return model.model_dump(mode="json", by_alias=True)
