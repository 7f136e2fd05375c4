"""Repository for patterns, pattern likes and pattern comments."""

from __future__ import annotations

from strudel_social.models.pattern import (
    Pattern,
    PatternComment,
    PatternCommentInsert,
    PatternInsert,
    PatternLike,
    PatternLikeInsert,
)
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import NEWEST_FIRST, OLDEST_FIRST, Gateway, Row


def _row_to_pattern(row: Row) -> Pattern:
    """Convert a store row to a Pattern model."""
    return Pattern(
        id=str(row["id"]),
        created_at=row.get("created_at"),
        name=row["name"],
        category=row.get("category") or "",
        code=row["code"],
        author=row.get("author") or "anonymous",
        tags=list(row.get("tags") or []),
        description=row.get("description") or "",
        user_id=str(row["user_id"]) if row.get("user_id") else None,
    )


def _row_to_like(row: Row) -> PatternLike:
    return PatternLike(
        id=str(row["id"]),
        created_at=row.get("created_at"),
        pattern_id=str(row["pattern_id"]),
        user_id=str(row["user_id"]),
    )


def _row_to_comment(row: Row) -> PatternComment:
    return PatternComment(
        id=str(row["id"]),
        created_at=row.get("created_at"),
        content=row["content"],
        pattern_id=str(row["pattern_id"]),
        user_id=str(row["user_id"]),
        author=row.get("author") or "Anonymous",
    )


class PatternRepo:
    """All pattern-related store operations. One gateway call per method."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    async def list_all(self, user: SessionUser = ANONYMOUS) -> list[Pattern]:
        """
        List every pattern, newest first.

        Args:
            user: Session user whose token scopes the request

        Returns:
            List of Pattern objects ordered by created_at DESC
        """
        rows = await self.gateway.select("patterns", order=NEWEST_FIRST, user=user)
        return [_row_to_pattern(row) for row in rows]

    async def list_for_owner(self, user: Authenticated) -> list[Pattern]:
        """
        List the patterns a user uploaded, newest first.

        Args:
            user: Signed-in owner

        Returns:
            List of the owner's Pattern objects
        """
        rows = await self.gateway.select("patterns", {"user_id": user.id}, NEWEST_FIRST, user=user)
        return [_row_to_pattern(row) for row in rows]

    async def get(self, pattern_id: str, user: SessionUser = ANONYMOUS) -> Pattern | None:
        """
        Get a pattern by ID.

        Returns:
            Pattern if found, None otherwise
        """
        rows = await self.gateway.select("patterns", {"id": pattern_id}, user=user)
        return _row_to_pattern(rows[0]) if rows else None

    async def create(self, user: Authenticated, req: PatternInsert) -> Pattern:
        """
        Insert a pattern and return the stored row (id and created_at filled in).

        Args:
            user: Signed-in uploader
            req: PatternInsert with parsed tags and resolved author

        Returns:
            Newly created Pattern
        """
        rows = await self.gateway.insert("patterns", [req.model_dump()], user=user)
        return _row_to_pattern(rows[0])

    async def delete(self, user: Authenticated, pattern_id: str) -> None:
        await self.gateway.delete("patterns", {"id": pattern_id}, user=user)

    async def list_likes(self, user: SessionUser = ANONYMOUS) -> list[PatternLike]:
        """All like rows. Counts are computed client-side."""
        rows = await self.gateway.select("pattern_likes", user=user)
        return [_row_to_like(row) for row in rows]

    async def list_likes_for_pattern(self, pattern_id: str, user: SessionUser = ANONYMOUS) -> list[PatternLike]:
        rows = await self.gateway.select("pattern_likes", {"pattern_id": pattern_id}, user=user)
        return [_row_to_like(row) for row in rows]

    async def like(self, user: Authenticated, pattern_id: str) -> PatternLike:
        req = PatternLikeInsert(pattern_id=pattern_id, user_id=user.id)
        rows = await self.gateway.insert("pattern_likes", [req.model_dump()], user=user)
        return _row_to_like(rows[0])

    async def unlike(self, user: Authenticated, pattern_id: str) -> None:
        """Delete the like row scoped to (pattern, current user)."""
        await self.gateway.delete("pattern_likes", {"pattern_id": pattern_id, "user_id": user.id}, user=user)

    async def list_comments(self, pattern_id: str, user: SessionUser = ANONYMOUS) -> list[PatternComment]:
        """Comments on a pattern, oldest first."""
        rows = await self.gateway.select("pattern_comments", {"pattern_id": pattern_id}, OLDEST_FIRST, user=user)
        return [_row_to_comment(row) for row in rows]

    async def add_comment(self, user: Authenticated, req: PatternCommentInsert) -> PatternComment:
        rows = await self.gateway.insert("pattern_comments", [req.model_dump()], user=user)
        return _row_to_comment(rows[0])

    async def delete_comment(self, user: Authenticated, comment_id: str) -> None:
        await self.gateway.delete("pattern_comments", {"id": comment_id}, user=user)
