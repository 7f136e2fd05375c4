"""Repository for feed posts and their comments."""

from __future__ import annotations

from strudel_social.models.post import Comment, CommentInsert, Post, PostInsert
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import NEWEST_FIRST, OLDEST_FIRST, Gateway, Row


def _row_to_post(row: Row) -> Post:
    """Convert a store row to a Post model."""
    return Post(
        id=str(row["id"]),
        created_at=row.get("created_at"),
        content=row["content"],
        user_id=str(row["user_id"]),
        author=row.get("author") or "Anonymous",
    )


def _row_to_comment(row: Row) -> Comment:
    return Comment(
        id=str(row["id"]),
        created_at=row.get("created_at"),
        content=row["content"],
        post_id=str(row["post_id"]),
        user_id=str(row["user_id"]),
        author=row.get("author") or "Anonymous",
    )


class PostRepo:
    """All feed-related store operations."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    async def list_all(self, user: SessionUser = ANONYMOUS) -> list[Post]:
        """Every post, newest first."""
        rows = await self.gateway.select("posts", order=NEWEST_FIRST, user=user)
        return [_row_to_post(row) for row in rows]

    async def list_comments(self, user: SessionUser = ANONYMOUS) -> list[Comment]:
        """Every comment on every post, oldest first. Joined to posts client-side."""
        rows = await self.gateway.select("comments", order=OLDEST_FIRST, user=user)
        return [_row_to_comment(row) for row in rows]

    async def create(self, user: Authenticated, req: PostInsert) -> Post:
        """
        Insert a post.

        Args:
            user: Signed-in author
            req: PostInsert with trimmed content

        Returns:
            The stored Post
        """
        rows = await self.gateway.insert("posts", [req.model_dump()], user=user)
        return _row_to_post(rows[0])

    async def delete(self, user: Authenticated, post_id: str) -> None:
        await self.gateway.delete("posts", {"id": post_id}, user=user)

    async def add_comment(self, user: Authenticated, req: CommentInsert) -> Comment:
        rows = await self.gateway.insert("comments", [req.model_dump()], user=user)
        return _row_to_comment(rows[0])

    async def delete_comment(self, user: Authenticated, comment_id: str) -> None:
        await self.gateway.delete("comments", {"id": comment_id}, user=user)
