"""Pattern models: rows of patterns, pattern_likes, pattern_comments."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Pattern(BaseModel):
    """Core pattern model. Represents a row in the patterns table."""

    id: str
    created_at: datetime | None = None
    name: str
    category: str
    code: str
    author: str
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    user_id: str | None = None


class PatternInsert(BaseModel):
    """What the client sends to create a pattern."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1)
    category: str
    code: str = Field(min_length=1)
    author: str
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    user_id: str | None = None


class PatternLike(BaseModel):
    """Represents a row in the pattern_likes table."""

    id: str
    created_at: datetime | None = None
    pattern_id: str
    user_id: str


class PatternLikeInsert(BaseModel):
    model_config = {"extra": "forbid"}

    pattern_id: str
    user_id: str


class PatternComment(BaseModel):
    """Represents a row in the pattern_comments table."""

    id: str
    created_at: datetime | None = None
    content: str
    pattern_id: str
    user_id: str
    author: str


class PatternCommentInsert(BaseModel):
    model_config = {"extra": "forbid"}

    content: str = Field(min_length=1)
    pattern_id: str
    user_id: str
    author: str


class PatternView(Pattern):
    """A pattern as displayed: like count and the viewer's like state attached."""

    likes_count: int = 0
    is_liked: bool = False

    @classmethod
    def from_pattern(cls, pattern: Pattern, likes_count: int = 0, is_liked: bool = False) -> PatternView:
        data = pattern.model_dump(exclude={"likes_count", "is_liked"})
        return cls(**data, likes_count=likes_count, is_liked=is_liked)


class UploadForm(BaseModel):
    """Raw upload form input. Tags are a comma-separated string."""

    name: str = ""
    category: str = ""
    code: str = ""
    author: str = ""
    tags: str = ""
    description: str = ""


class PatternDetail(BaseModel):
    """A single pattern page: the pattern and its comments, oldest first."""

    pattern: PatternView
    comments: list[PatternComment] = Field(default_factory=list)
