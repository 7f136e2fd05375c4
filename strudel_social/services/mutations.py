"""
Mutation coordinator.

Every user action goes through the same steps:

1. a signed-in user is required (else `auth_required`, no write); an
   expired access token is refreshed first
2. demo mode refuses writes (`demo_mode`, with a notice)
3. required fields must be non-empty after trimming (else `invalid`, silent)
4. one write per action/entity at a time (else `in_flight`)
5. deletes are confirmed first (else `cancelled`)
6. exactly one gateway write, issued once more after a session refresh
   if the store rejects the access token
7. success patches local state; GatewayError leaves state untouched,
   notifies "Failed to ..." and returns `failed`. No other retries.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar

from strudel_social import config
from strudel_social.models.pattern import (
    PatternCommentInsert,
    PatternDetail,
    PatternInsert,
    PatternView,
    UploadForm,
)
from strudel_social.models.post import CommentInsert, PostInsert, PostView
from strudel_social.models.user import ANONYMOUS, Authenticated, SessionUser
from strudel_social.repos.gateway import GatewayError
from strudel_social.services.data_source import DataSource, PatternNotFound
from strudel_social.services.local_patch import Insert, Patch, Remove, Update, apply_patch
from strudel_social.session import SessionContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

MutationStatus = Literal[
    "applied",
    "auth_required",
    "demo_mode",
    "invalid",
    "in_flight",
    "cancelled",
    "failed",
]

ConfirmFn = Callable[[str], bool | Awaitable[bool]]
NotifyFn = Callable[[str], None]

PATTERN_LISTS = ("patterns", "uploaded", "liked")


@dataclass(frozen=True)
class MutationResult:
    action: str
    status: MutationStatus
    message: str = ""

    @property
    def applied(self) -> bool:
        return self.status == "applied"


@dataclass
class ViewState:
    """Everything the client is currently showing."""

    patterns: list[PatternView] = field(default_factory=list)
    patterns_is_demo: bool = False
    uploaded: list[PatternView] = field(default_factory=list)
    liked: list[PatternView] = field(default_factory=list)
    posts: list[PostView] = field(default_factory=list)
    detail: PatternDetail | None = None

    def find_pattern(self, pattern_id: str) -> PatternView | None:
        """First view of the pattern in any list, or the open detail."""
        for name in PATTERN_LISTS:
            for pattern in getattr(self, name):
                if pattern.id == pattern_id:
                    return pattern
        if self.detail is not None and self.detail.pattern.id == pattern_id:
            return self.detail.pattern
        return None

    def find_post(self, post_id: str) -> PostView | None:
        return next((post for post in self.posts if post.id == post_id), None)

    def patch_patterns(self, patch: Patch) -> None:
        """Apply one patch to every pattern list and the open detail."""
        for name in PATTERN_LISTS:
            setattr(self, name, apply_patch(getattr(self, name), patch))
        if self.detail is not None and self.detail.pattern.id == getattr(patch, "id", None):
            if isinstance(patch, Remove):
                self.detail = None
            else:
                [pattern] = apply_patch([self.detail.pattern], patch)
                self.detail = self.detail.model_copy(update={"pattern": pattern})


def parse_tags(raw: str) -> list[str]:
    """Split a comma-separated tag string: trimmed, empty entries dropped, order kept."""
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def resolve_category(raw: str) -> str | None:
    """
    Map raw input to one of the fixed upload categories.

    Blank input gives the default category, anything else a case-insensitive
    match. Returns None when nothing matches.
    """
    wanted = raw.strip().lower()
    if not wanted:
        return config.settings.DEFAULT_CATEGORY
    return next((c for c in config.settings.CATEGORIES if c.lower() == wanted), None)


def _session_name(user: Authenticated) -> str | None:
    if user.username:
        return user.username
    if user.email:
        return user.email.split("@")[0]
    return None


class InFlightGuard:
    """Keys of actions whose write has not resolved yet."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def is_in_flight(self, key: str) -> bool:
        return key in self._keys

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)


def like_key(pattern_id: str) -> str:
    # Like and unlike share a key: one outstanding like write per pattern.
    return f"like:{pattern_id}"


def _log_notice(message: str) -> None:
    logger.warning("%s", message)


class MutationCoordinator:
    """Issues writes through the data source's repos and keeps ViewState in step.

    Args:
        data_source: Live or demo source; its can_mutate gates every write
        context: Holds the current session user
        state: View state to patch (a fresh one by default)
        confirm: Asked before deletes; may be sync or async. Without one,
            deletes are cancelled.
        notify: Receives user-facing notices (failures, demo mode)
    """

    def __init__(
        self,
        data_source: DataSource,
        context: SessionContext,
        state: ViewState | None = None,
        confirm: ConfirmFn | None = None,
        notify: NotifyFn | None = None,
    ) -> None:
        self.data_source = data_source
        self.context = context
        self.state = state or ViewState()
        self.guard = InFlightGuard()
        self._confirm = confirm
        self._notify = notify or _log_notice

    # -- loading -------------------------------------------------------------

    async def _read(self, load: Callable[[SessionUser], Awaitable[T]]) -> T:
        """
        Run a read as the current user.

        When the store rejects the access token, refresh the session and read
        again; if it is still rejected, read anonymously.
        """
        user = await self.context.fresh_user()
        try:
            return await load(user)
        except GatewayError as e:
            if e.status_code != 401:
                raise
            logger.info("coordinator: read rejected the access token, refreshing session")
        user = await self.context.fresh_user(force=True)
        try:
            return await load(user)
        except GatewayError as e:
            if e.status_code != 401:
                raise
            logger.warning("coordinator: access token still rejected, reading anonymously")
        return await load(ANONYMOUS)

    async def load_patterns(self) -> None:
        resolved = await self._read(self.data_source.load_patterns)
        self.state.patterns = resolved.rows
        self.state.patterns_is_demo = resolved.is_demo

    async def load_feed(self) -> None:
        self.state.posts = await self._read(self.data_source.load_feed)

    async def open_pattern(self, pattern_id: str) -> PatternDetail:
        """
        Load one pattern page into state.

        Raises:
            PatternNotFound: The caller goes back to the listing
        """
        try:
            self.state.detail = await self._read(
                lambda user: self.data_source.load_pattern_detail(pattern_id, user)
            )
        except PatternNotFound:
            self.state.detail = None
            raise
        return self.state.detail

    async def load_profile(self) -> bool:
        """Fill the uploaded and liked tabs. False when nobody is signed in."""
        if not isinstance(await self.context.fresh_user(), Authenticated):
            return False
        profile = await self._read(self.data_source.load_profile)
        self.state.uploaded = profile.uploaded
        self.state.liked = profile.liked
        return True

    # -- shared pipeline -----------------------------------------------------

    async def _confirmed(self, prompt: str) -> bool:
        if self._confirm is None:
            return False
        answer = self._confirm(prompt)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def _write(self, write: Callable[[Authenticated], Awaitable[T]], user: Authenticated) -> T:
        """Issue the write; on a rejected access token, refresh the session and issue it once more."""
        try:
            return await write(user)
        except GatewayError as e:
            if e.status_code != 401:
                raise
            logger.info("coordinator: write rejected the access token, refreshing session")
            fresh = await self.context.fresh_user(force=True)
            if not isinstance(fresh, Authenticated):
                raise
        return await write(fresh)

    async def _run(
        self,
        action: str,
        key: str,
        write: Callable[[Authenticated], Awaitable[T]],
        apply: Callable[[T], None],
        *,
        failure: str,
        valid: Callable[[Authenticated], bool] | bool = True,
        owner_id: Callable[[], Any] | None = None,
        confirm: str | None = None,
        pattern_action: bool = False,
        demo_notice: str | None = None,
    ) -> MutationResult:
        user = await self.context.fresh_user()
        if not isinstance(user, Authenticated):
            return MutationResult(action, "auth_required")

        if not self.data_source.can_mutate or (pattern_action and self.state.patterns_is_demo):
            notice = demo_notice or "This action is not available in demo mode."
            self._notify(notice)
            return MutationResult(action, "demo_mode", notice)

        if not (valid(user) if callable(valid) else valid):
            return MutationResult(action, "invalid")

        if owner_id is not None and owner_id() != user.id:
            return MutationResult(action, "invalid", "Only the owner can delete this.")

        if self.guard.is_in_flight(key):
            return MutationResult(action, "in_flight")

        with self.guard.hold(key):
            if confirm is not None and not await self._confirmed(confirm):
                return MutationResult(action, "cancelled")
            try:
                outcome = await self._write(write, user)
            except GatewayError as e:
                logger.warning("coordinator: %s failed: %s", action, e)
                self._notify(failure)
                return MutationResult(action, "failed", failure)
            apply(outcome)
        return MutationResult(action, "applied")

    # -- feed ----------------------------------------------------------------

    async def create_post(self, content: str) -> MutationResult:
        """Insert a post and put it at the top of the feed with no comments."""
        text = content.strip()

        async def write(user: Authenticated):
            req = PostInsert(content=text, user_id=user.id, author=user.display_name)
            return await self.data_source.posts.create(user, req)

        def apply(post) -> None:
            self.state.posts = apply_patch(self.state.posts, Insert(PostView(**post.model_dump()), at="front"))

        return await self._run("create_post", "post:create", write, apply, failure="Failed to create post", valid=bool(text))

    async def add_comment(self, post_id: str, content: str) -> MutationResult:
        """Insert a comment and append it to its post's comments."""
        text = content.strip()

        async def write(user: Authenticated):
            req = CommentInsert(content=text, post_id=post_id, user_id=user.id, author=user.display_name)
            return await self.data_source.posts.add_comment(user, req)

        def apply(comment) -> None:
            self.state.posts = apply_patch(
                self.state.posts,
                Update(post_id, lambda post: {"comments": apply_patch(post.comments, Insert(comment, at="back"))}),
            )

        return await self._run(
            "add_comment",
            f"comment:{post_id}",
            write,
            apply,
            failure="Failed to add comment",
            valid=bool(text),
        )

    async def delete_post(self, post_id: str) -> MutationResult:
        post = self.state.find_post(post_id)

        async def write(user: Authenticated):
            await self.data_source.posts.delete(user, post_id)

        def apply(_) -> None:
            self.state.posts = apply_patch(self.state.posts, Remove(post_id))

        return await self._run(
            "delete_post",
            f"delete:post:{post_id}",
            write,
            apply,
            failure="Failed to delete post",
            valid=post is not None,
            owner_id=lambda: post.user_id,
            confirm="Are you sure you want to delete this post?",
        )

    async def delete_comment(self, post_id: str, comment_id: str) -> MutationResult:
        post = self.state.find_post(post_id)
        comment = next((c for c in post.comments if c.id == comment_id), None) if post else None

        async def write(user: Authenticated):
            await self.data_source.posts.delete_comment(user, comment_id)

        def apply(_) -> None:
            self.state.posts = apply_patch(
                self.state.posts,
                Update(post_id, lambda p: {"comments": apply_patch(p.comments, Remove(comment_id))}),
            )

        return await self._run(
            "delete_comment",
            f"delete:comment:{comment_id}",
            write,
            apply,
            failure="Failed to delete comment",
            valid=comment is not None,
            owner_id=lambda: comment.user_id,
            confirm="Are you sure you want to delete this comment?",
        )

    # -- pattern page --------------------------------------------------------

    async def add_pattern_comment(self, content: str) -> MutationResult:
        """Comment on the open pattern."""
        text = content.strip()
        detail = self.state.detail
        pattern_id = detail.pattern.id if detail else ""

        async def write(user: Authenticated):
            req = PatternCommentInsert(content=text, pattern_id=pattern_id, user_id=user.id, author=user.display_name)
            return await self.data_source.patterns.add_comment(user, req)

        def apply(comment) -> None:
            if self.state.detail is not None and self.state.detail.pattern.id == pattern_id:
                comments = apply_patch(self.state.detail.comments, Insert(comment, at="back"))
                self.state.detail = self.state.detail.model_copy(update={"comments": comments})

        return await self._run(
            "add_pattern_comment",
            f"pattern-comment:{pattern_id}",
            write,
            apply,
            failure="Failed to add comment",
            valid=bool(text) and detail is not None,
        )

    async def delete_pattern_comment(self, comment_id: str) -> MutationResult:
        detail = self.state.detail
        comment = next((c for c in detail.comments if c.id == comment_id), None) if detail else None

        async def write(user: Authenticated):
            await self.data_source.patterns.delete_comment(user, comment_id)

        def apply(_) -> None:
            if self.state.detail is not None:
                comments = apply_patch(self.state.detail.comments, Remove(comment_id))
                self.state.detail = self.state.detail.model_copy(update={"comments": comments})

        return await self._run(
            "delete_pattern_comment",
            f"delete:pattern-comment:{comment_id}",
            write,
            apply,
            failure="Failed to delete comment",
            valid=comment is not None,
            owner_id=lambda: comment.user_id,
            confirm="Are you sure you want to delete this comment?",
        )

    # -- likes ---------------------------------------------------------------

    async def like(self, pattern_id: str) -> MutationResult:
        """Insert a like; count +1 and liked everywhere the pattern is shown."""
        pattern = self.state.find_pattern(pattern_id)

        async def write(user: Authenticated):
            return await self.data_source.patterns.like(user, pattern_id)

        def apply(_) -> None:
            self.state.patch_patterns(
                Update(pattern_id, lambda p: {"likes_count": p.likes_count + 1, "is_liked": True})
            )
            if not any(p.id == pattern_id for p in self.state.liked):
                liked = self.state.find_pattern(pattern_id)
                if liked is not None:
                    self.state.liked = apply_patch(self.state.liked, Insert(liked, at="front"))

        return await self._run(
            "like",
            like_key(pattern_id),
            write,
            apply,
            failure="Failed to update like",
            valid=pattern is not None and not pattern.is_liked,
            pattern_action=True,
            demo_notice="Likes are not available in demo mode.",
        )

    async def unlike(self, pattern_id: str) -> MutationResult:
        """Delete the viewer's like; count -1 (never below zero) and unliked everywhere."""
        pattern = self.state.find_pattern(pattern_id)

        async def write(user: Authenticated):
            await self.data_source.patterns.unlike(user, pattern_id)

        def apply(_) -> None:
            self.state.patch_patterns(
                Update(pattern_id, lambda p: {"likes_count": max(p.likes_count - 1, 0), "is_liked": False})
            )
            self.state.liked = apply_patch(self.state.liked, Remove(pattern_id))

        return await self._run(
            "unlike",
            like_key(pattern_id),
            write,
            apply,
            failure="Failed to update like",
            valid=pattern is not None and pattern.is_liked,
            pattern_action=True,
            demo_notice="Likes are not available in demo mode.",
        )

    async def toggle_like(self, pattern_id: str) -> MutationResult:
        pattern = self.state.find_pattern(pattern_id)
        if pattern is not None and pattern.is_liked:
            return await self.unlike(pattern_id)
        return await self.like(pattern_id)

    # -- patterns ------------------------------------------------------------

    async def upload_pattern(self, form: UploadForm) -> MutationResult:
        """
        Insert a pattern from the upload form.

        Tags are parsed from the comma-separated string. The category must be
        one of the fixed categories (blank means the default). The author is
        the form's, else the session's name, else "anonymous". The new pattern
        goes to the top of the listing and the uploaded tab.
        """
        name = form.name.strip()
        category = resolve_category(form.category)

        async def write(user: Authenticated):
            req = PatternInsert(
                name=name,
                category=category,
                code=form.code,
                author=form.author.strip() or _session_name(user) or "anonymous",
                tags=parse_tags(form.tags),
                description=form.description.strip(),
                user_id=user.id,
            )
            return await self.data_source.patterns.create(user, req)

        def apply(pattern) -> None:
            view = PatternView.from_pattern(pattern)
            self.state.patterns = apply_patch(self.state.patterns, Insert(view, at="front"))
            self.state.uploaded = apply_patch(self.state.uploaded, Insert(view, at="front"))

        return await self._run(
            "upload_pattern",
            "pattern:upload",
            write,
            apply,
            failure="Failed to upload pattern",
            valid=bool(name and form.code.strip()) and category is not None,
            pattern_action=True,
            demo_notice="Uploads are not available in demo mode.",
        )

    async def delete_pattern(self, pattern_id: str) -> MutationResult:
        """Owner-only. Removes the pattern from the listing, both profile tabs and the open page."""
        pattern = self.state.find_pattern(pattern_id)

        async def write(user: Authenticated):
            await self.data_source.patterns.delete(user, pattern_id)

        def apply(_) -> None:
            self.state.patch_patterns(Remove(pattern_id))

        return await self._run(
            "delete_pattern",
            f"delete:pattern:{pattern_id}",
            write,
            apply,
            failure="Failed to delete pattern",
            valid=pattern is not None,
            owner_id=lambda: pattern.user_id,
            confirm="Are you sure you want to delete this pattern?",
            pattern_action=True,
        )
