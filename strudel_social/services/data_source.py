"""
Where view data comes from: the live store, or the built-in demo dataset.

Demo-mode branching lives here and nowhere else. Callers ask a DataSource
for views and check `can_mutate` before offering writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from strudel_social import config
from strudel_social.models.pattern import PatternDetail, PatternView
from strudel_social.models.post import PostView
from strudel_social.models.user import Authenticated, SessionUser
from strudel_social.repos.gateway import Gateway, GatewayError
from strudel_social.repos.pattern_repo import PatternRepo
from strudel_social.repos.post_repo import PostRepo
from strudel_social.repos.rest_gateway import RestGateway
from strudel_social.services.composition import (
    FetchResult,
    ResolvedRows,
    compose_patterns_with_likes,
    compose_posts_with_comments,
    liked_by,
    resolve_data_source,
)
from strudel_social.services.demo_data import demo_patterns

logger = logging.getLogger(__name__)


class PatternNotFound(Exception):
    """The requested pattern does not exist (or could not be read)."""

    def __init__(self, pattern_id: str):
        self.pattern_id = pattern_id
        super().__init__(f"Pattern not found: {pattern_id}")


@dataclass
class Profile:
    """A signed-in user's uploads and the patterns they liked."""

    uploaded: list[PatternView] = field(default_factory=list)
    liked: list[PatternView] = field(default_factory=list)


def _user_id(user: SessionUser) -> str | None:
    return user.id if isinstance(user, Authenticated) else None


def _token_rejected(error: GatewayError, user: SessionUser) -> bool:
    """The store refused a signed-in user's access token (expired or revoked)."""
    return error.status_code == 401 and isinstance(user, Authenticated)


class DataSource:
    """Read side shared by the client and the coordinator."""

    can_mutate: bool = False
    patterns: PatternRepo | None = None
    posts: PostRepo | None = None

    async def load_patterns(self, user: SessionUser) -> ResolvedRows:
        raise NotImplementedError

    async def load_feed(self, user: SessionUser) -> list[PostView]:
        raise NotImplementedError

    async def load_pattern_detail(self, pattern_id: str, user: SessionUser) -> PatternDetail:
        raise NotImplementedError

    async def load_profile(self, user: SessionUser) -> Profile:
        raise NotImplementedError


class LiveDataSource(DataSource):
    """Reads through the gateway.

    Read failures degrade, they never raise, with two exceptions: detail
    lookups raise PatternNotFound, and a rejected access token re-raises the
    GatewayError so the caller can refresh the session and read again
    instead of showing demo data.
    """

    can_mutate = True

    def __init__(self, gateway: Gateway):
        self.gateway = gateway
        self.patterns = PatternRepo(gateway)
        self.posts = PostRepo(gateway)

    async def load_patterns(self, user: SessionUser) -> ResolvedRows:
        """
        Patterns newest first, with like counts and the viewer's like state.

        Falls back to the demo dataset when the read fails or the store is empty.
        """
        try:
            result = FetchResult.success(await self.patterns.list_all(user))
        except GatewayError as e:
            if _token_rejected(e, user):
                raise
            logger.warning("data_source: pattern read failed, using demo data: %s", e)
            result = FetchResult.failure(e)

        resolved = resolve_data_source(result)
        if resolved.is_demo:
            if result.ok:
                logger.info("data_source: no patterns in store, using demo data")
            return resolved

        try:
            likes = await self.patterns.list_likes(user)
        except GatewayError as e:
            if _token_rejected(e, user):
                raise
            logger.warning("data_source: like read failed, showing zero likes: %s", e)
            likes = []
        return ResolvedRows(rows=compose_patterns_with_likes(result.rows, likes, _user_id(user)), is_demo=False)

    async def load_feed(self, user: SessionUser) -> list[PostView]:
        """Posts newest first, each with its comments oldest first. Empty on failure."""
        try:
            posts = await self.posts.list_all(user)
            comments = await self.posts.list_comments(user)
        except GatewayError as e:
            if _token_rejected(e, user):
                raise
            logger.warning("data_source: feed read failed: %s", e)
            return []
        return compose_posts_with_comments(posts, comments)

    async def load_pattern_detail(self, pattern_id: str, user: SessionUser) -> PatternDetail:
        """
        One pattern with its likes and comments.

        Raises:
            PatternNotFound: If the pattern is missing or cannot be read
        """
        try:
            pattern = await self.patterns.get(pattern_id, user)
            if pattern is None:
                raise PatternNotFound(pattern_id)
            likes = await self.patterns.list_likes_for_pattern(pattern_id, user)
            comments = await self.patterns.list_comments(pattern_id, user)
        except GatewayError as e:
            if _token_rejected(e, user):
                raise
            logger.warning("data_source: pattern %s read failed: %s", pattern_id, e)
            raise PatternNotFound(pattern_id) from e

        [view] = compose_patterns_with_likes([pattern], likes, _user_id(user))
        return PatternDetail(pattern=view, comments=comments)

    async def load_profile(self, user: SessionUser) -> Profile:
        """The user's uploads plus the liked tab. Empty lists on failure."""
        if not isinstance(user, Authenticated):
            return Profile()
        try:
            uploaded = await self.patterns.list_for_owner(user)
            every_pattern = await self.patterns.list_all(user)
            likes = await self.patterns.list_likes(user)
        except GatewayError as e:
            if _token_rejected(e, user):
                raise
            logger.warning("data_source: profile read failed for %s: %s", user.id, e)
            return Profile()

        return Profile(
            uploaded=compose_patterns_with_likes(uploaded, likes, user.id),
            liked=liked_by(compose_patterns_with_likes(every_pattern, likes, user.id), likes, user.id),
        )


class DemoDataSource(DataSource):
    """No store configured: fixed demo patterns, an empty feed, no writes."""

    can_mutate = False

    async def load_patterns(self, user: SessionUser) -> ResolvedRows:
        return ResolvedRows(rows=demo_patterns(), is_demo=True)

    async def load_feed(self, user: SessionUser) -> list[PostView]:
        return []

    async def load_pattern_detail(self, pattern_id: str, user: SessionUser) -> PatternDetail:
        for pattern in demo_patterns():
            if pattern.id == pattern_id:
                return PatternDetail(pattern=pattern)
        raise PatternNotFound(pattern_id)

    async def load_profile(self, user: SessionUser) -> Profile:
        return Profile()


def build_data_source(settings: config.Settings | None = None, gateway: Gateway | None = None) -> DataSource:
    """
    Pick the data source for this run.

    An explicit gateway always means live. Otherwise missing credentials
    mean demo mode for the whole run.
    """
    settings = settings or config.settings
    if gateway is not None:
        return LiveDataSource(gateway)
    if config.warn_if_demo_mode(settings):
        return DemoDataSource()
    return LiveDataSource(RestGateway(settings))
