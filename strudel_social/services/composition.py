"""
Client-side joins: rows fetched independently are assembled into view models.

Everything here is pure. The fetching lives in data_source.py.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, TypeVar

from strudel_social.models.pattern import Pattern, PatternLike, PatternView
from strudel_social.models.post import Comment, Post, PostView
from strudel_social.services.demo_data import demo_patterns

T = TypeVar("T")


def _created_key(row) -> tuple:
    # Rows without a timestamp sort after timestamped ones, keeping input order.
    created_at = row.created_at
    if created_at is None:
        return (1, 0)
    return (0, created_at)


def compose_posts_with_comments(posts: Sequence[Post], comments: Iterable[Comment]) -> list[PostView]:
    """
    Attach to each post the comments whose post_id matches.

    Comments are ordered by creation time, oldest first; the sort is stable
    so equal timestamps keep their fetched order. Comments pointing at no
    listed post are dropped. Post order is kept as given.
    """
    by_post: dict[str, list[Comment]] = defaultdict(list)
    for comment in comments:
        by_post[comment.post_id].append(comment)

    return [
        PostView(
            **post.model_dump(exclude={"comments", "show_comments"}),
            comments=sorted(by_post.get(post.id, []), key=_created_key),
            show_comments=False,
        )
        for post in posts
    ]


def compose_patterns_with_likes(
    patterns: Sequence[Pattern],
    likes: Iterable[PatternLike],
    current_user_id: str | None = None,
) -> list[PatternView]:
    """
    Attach like counts and the viewer's like state.

    likes_count is the number of like rows for the pattern; duplicate rows
    for one (pattern, user) pair are counted, not rejected. is_liked is True
    iff a row matches the pattern and current_user_id, and always False
    without a current user.
    """
    counts: Counter[str] = Counter()
    liked: set[str] = set()
    for like in likes:
        counts[like.pattern_id] += 1
        if current_user_id is not None and like.user_id == current_user_id:
            liked.add(like.pattern_id)

    return [
        PatternView.from_pattern(pattern, likes_count=counts[pattern.id], is_liked=pattern.id in liked)
        for pattern in patterns
    ]


def liked_by(patterns: Sequence[PatternView], likes: Iterable[PatternLike], user_id: str) -> list[PatternView]:
    """The patterns user_id has liked, in listing order."""
    liked_ids = {like.pattern_id for like in likes if like.user_id == user_id}
    return [pattern for pattern in patterns if pattern.id in liked_ids]


def filter_patterns(patterns: Sequence[PatternView], category: str = "All", query: str = "") -> list[PatternView]:
    """Category match ("All" matches everything) and a case-insensitive search over name and tags."""
    needle = query.strip().lower()
    result = []
    for pattern in patterns:
        if category != "All" and pattern.category != category:
            continue
        if needle and needle not in pattern.name.lower() and not any(needle in tag.lower() for tag in pattern.tags):
            continue
        result.append(pattern)
    return result


@dataclass
class FetchResult(Generic[T]):
    """Outcome of a read: rows, or the error that prevented them."""

    rows: list[T] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, rows: list[T]) -> FetchResult[T]:
        return cls(rows=list(rows))

    @classmethod
    def failure(cls, error: BaseException) -> FetchResult[T]:
        return cls(error=error)


@dataclass
class ResolvedRows:
    rows: list[PatternView]
    is_demo: bool


def resolve_data_source(result: FetchResult[Pattern]) -> ResolvedRows:
    """
    Decide between live rows and the demo dataset.

    A failed fetch or an empty store yields the demo patterns with
    is_demo=True. Live rows come back as PatternViews with zero likes;
    the caller composes likes onto them.
    """
    if not result.ok or not result.rows:
        return ResolvedRows(rows=demo_patterns(), is_demo=True)
    return ResolvedRows(rows=[PatternView.from_pattern(p) for p in result.rows], is_demo=False)


def format_time_ago(timestamp: datetime | None, now: datetime | None = None) -> str:
    """Relative time for listings: "just now", "5m ago", "3h ago", "2d ago", else the date."""
    if timestamp is None:
        return ""
    now = now or datetime.now(UTC)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    seconds = int((now - timestamp).total_seconds())

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 604800:
        return f"{seconds // 86400}d ago"
    return timestamp.date().isoformat()
