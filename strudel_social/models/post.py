"""Feed models: rows of posts and comments."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Post(BaseModel):
    """Core post model. Represents a row in the posts table."""

    id: str
    created_at: datetime | None = None
    content: str
    user_id: str
    author: str


class PostInsert(BaseModel):
    """What the client sends to create a post."""

    model_config = {"extra": "forbid"}

    content: str = Field(min_length=1)
    user_id: str
    author: str


class Comment(BaseModel):
    """Represents a row in the comments table."""

    id: str
    created_at: datetime | None = None
    content: str
    post_id: str
    user_id: str
    author: str


class CommentInsert(BaseModel):
    model_config = {"extra": "forbid"}

    content: str = Field(min_length=1)
    post_id: str
    user_id: str
    author: str


class PostView(Post):
    """A post with its comments attached. show_comments is UI-only state."""

    comments: list[Comment] = Field(default_factory=list)
    show_comments: bool = False
