"""Tests for MutationCoordinator: guards, writes and local state patches."""

from __future__ import annotations

import asyncio

import pytest

from strudel_social.models.pattern import PatternView, UploadForm
from strudel_social.models.user import ANONYMOUS, Authenticated
from strudel_social.services.data_source import DemoDataSource, LiveDataSource
from strudel_social.services.mutations import MutationCoordinator, ViewState, like_key, parse_tags, resolve_category
from strudel_social.session import SessionContext

pytestmark = pytest.mark.asyncio(loop_scope="session")


async def make_coordinator(gateway, user, confirm=lambda prompt: True, source=None):
    notices: list[str] = []
    coordinator = MutationCoordinator(
        source or LiveDataSource(gateway),
        SessionContext(user),
        confirm=confirm,
        notify=notices.append,
    )
    await coordinator.load_patterns()
    await coordinator.load_feed()
    return coordinator, notices


def pattern_named(patterns: list[PatternView], name: str) -> PatternView:
    return next(p for p in patterns if p.name == name)


class TestParseTags:
    def test_trims_and_drops_empty(self):
        assert parse_tags("kick, bass,  groove") == ["kick", "bass", "groove"]
        assert parse_tags(" , a,,b , ") == ["a", "b"]
        assert parse_tags("") == []


class TestResolveCategory:
    def test_blank_is_default(self):
        assert resolve_category("  ") == "Drums"

    def test_case_insensitive_match(self):
        assert resolve_category(" ambient ") == "Ambient"
        assert resolve_category("FX") == "FX"

    def test_unknown(self):
        assert resolve_category("polka") is None


# -- guards -------------------------------------------------------------------


async def test_anonymous_user_is_rejected_without_write(seeded_gateway):
    coordinator, notices = await make_coordinator(seeded_gateway, ANONYMOUS)

    results = [
        await coordinator.create_post("hello"),
        await coordinator.like("patterns-1"),
        await coordinator.upload_pattern(UploadForm(name="x", code="y")),
        await coordinator.delete_post("posts-4"),
    ]

    assert {r.status for r in results} == {"auth_required"}
    assert seeded_gateway.writes == []
    assert notices == []


async def test_demo_source_refuses_writes(alice):
    coordinator, notices = await make_coordinator(None, alice, source=DemoDataSource())

    result = await coordinator.create_post("hello")

    assert result.status == "demo_mode"
    assert notices == [result.message]


async def test_demo_listing_refuses_likes(gateway, alice):
    coordinator, notices = await make_coordinator(gateway, alice)
    assert coordinator.state.patterns_is_demo is True

    result = await coordinator.like("demo-1")

    assert result.status == "demo_mode"
    assert notices == ["Likes are not available in demo mode."]
    assert gateway.writes == []
    assert coordinator.state.patterns[0].likes_count == 0


async def test_demo_listing_refuses_uploads(gateway, alice):
    coordinator, _ = await make_coordinator(gateway, alice)

    result = await coordinator.upload_pattern(UploadForm(name="Beat", code='sound("bd")'))

    assert result.status == "demo_mode"
    assert gateway.writes == []


async def test_blank_post_is_invalid_and_silent(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    before = list(coordinator.state.posts)

    result = await coordinator.create_post("   \n ")

    assert result.status == "invalid"
    assert seeded_gateway.writes == []
    assert notices == []
    assert coordinator.state.posts == before


async def test_second_like_while_first_in_flight(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    gate = asyncio.Event()
    seeded_gateway.gate = gate

    first = asyncio.create_task(coordinator.like("patterns-2"))
    while not seeded_gateway.writes:
        await asyncio.sleep(0)

    assert coordinator.guard.is_in_flight(like_key("patterns-2"))
    second = await coordinator.toggle_like("patterns-2")
    gate.set()
    first_result = await first

    assert second.status == "in_flight"
    assert first_result.status == "applied"
    assert len(seeded_gateway.writes) == 1
    assert pattern_named(coordinator.state.patterns, "Bob Bass").likes_count == 1
    assert not coordinator.guard.is_in_flight(like_key("patterns-2"))


async def test_in_flight_key_released_after_failure(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("insert")

    assert (await coordinator.create_post("one")).status == "failed"
    seeded_gateway.fail_on.clear()
    assert (await coordinator.create_post("two")).status == "applied"


# -- feed ---------------------------------------------------------------------


async def test_create_post_prepends_with_empty_comments(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    result = await coordinator.create_post("  hello world  ")

    assert result.applied
    assert seeded_gateway.writes == [
        ("insert", "posts", [{"content": "hello world", "user_id": alice.id, "author": "alice"}])
    ]
    top = coordinator.state.posts[0]
    assert top.content == "hello world"
    assert top.author == "alice"
    assert top.comments == []
    assert len(coordinator.state.posts) == 2


async def test_create_post_author_falls_back_to_email(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob)
    await coordinator.create_post("hey")
    assert coordinator.state.posts[0].author == "bob"


async def test_create_post_failure_leaves_state(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("insert:posts")
    before = list(coordinator.state.posts)

    result = await coordinator.create_post("hello")

    assert result.status == "failed"
    assert notices == ["Failed to create post"]
    assert coordinator.state.posts == before
    assert len(seeded_gateway.writes) == 1


async def test_add_comment_appends_to_post(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    result = await coordinator.add_comment("posts-4", "second")

    assert result.applied
    assert [c.content for c in coordinator.state.posts[0].comments] == ["welcome", "second"]


async def test_add_comment_failure(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("insert:comments")

    result = await coordinator.add_comment("posts-4", "second")

    assert result.status == "failed"
    assert notices == ["Failed to add comment"]
    assert len(coordinator.state.posts[0].comments) == 1


async def test_delete_post_confirmed(seeded_gateway, bob):
    prompts: list[str] = []

    def confirm(prompt):
        prompts.append(prompt)
        return True

    coordinator, _ = await make_coordinator(seeded_gateway, bob, confirm=confirm)

    result = await coordinator.delete_post("posts-4")

    assert result.applied
    assert prompts == ["Are you sure you want to delete this post?"]
    assert seeded_gateway.writes == [("delete", "posts", {"id": "posts-4"})]
    assert coordinator.state.posts == []


async def test_delete_post_declined(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob, confirm=lambda prompt: False)

    result = await coordinator.delete_post("posts-4")

    assert result.status == "cancelled"
    assert seeded_gateway.writes == []
    assert len(coordinator.state.posts) == 1


async def test_delete_without_confirm_callback_is_cancelled(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob, confirm=None)
    assert (await coordinator.delete_post("posts-4")).status == "cancelled"
    assert seeded_gateway.writes == []


async def test_async_confirm(seeded_gateway, bob):
    async def confirm(prompt):
        return True

    coordinator, _ = await make_coordinator(seeded_gateway, bob, confirm=confirm)
    assert (await coordinator.delete_post("posts-4")).applied


async def test_delete_post_not_owner(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    result = await coordinator.delete_post("posts-4")

    assert result.status == "invalid"
    assert seeded_gateway.writes == []


async def test_delete_comment(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    result = await coordinator.delete_comment("posts-4", "comments-5")

    assert result.applied
    assert seeded_gateway.writes == [("delete", "comments", {"id": "comments-5"})]
    assert coordinator.state.posts[0].comments == []


async def test_delete_comment_failure(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("delete")

    result = await coordinator.delete_comment("posts-4", "comments-5")

    assert result.status == "failed"
    assert notices == ["Failed to delete comment"]
    assert len(coordinator.state.posts[0].comments) == 1


# -- likes --------------------------------------------------------------------


async def test_like_updates_every_list(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    await coordinator.open_pattern("patterns-2")

    result = await coordinator.like("patterns-2")

    assert result.applied
    assert seeded_gateway.writes == [
        ("insert", "pattern_likes", [{"pattern_id": "patterns-2", "user_id": alice.id}])
    ]
    listed = pattern_named(coordinator.state.patterns, "Bob Bass")
    assert (listed.likes_count, listed.is_liked) == (1, True)
    assert coordinator.state.detail.pattern.likes_count == 1
    assert coordinator.state.detail.pattern.is_liked is True
    assert [p.id for p in coordinator.state.liked] == ["patterns-2"]


async def test_like_already_liked_is_invalid(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob)
    assert (await coordinator.like("patterns-1")).status == "invalid"
    assert seeded_gateway.writes == []


async def test_unlike(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob)
    await coordinator.load_profile()
    assert [p.id for p in coordinator.state.liked] == ["patterns-1"]

    result = await coordinator.unlike("patterns-1")

    assert result.applied
    assert seeded_gateway.writes == [
        ("delete", "pattern_likes", {"pattern_id": "patterns-1", "user_id": bob.id})
    ]
    kick = pattern_named(coordinator.state.patterns, "Alice Kick")
    assert (kick.likes_count, kick.is_liked) == (0, False)
    assert coordinator.state.liked == []


async def test_unlike_count_never_negative(gateway, alice):
    state = ViewState(
        patterns=[
            PatternView(id="p1", name="Odd", category="Drums", code="x", author="a", likes_count=0, is_liked=True)
        ]
    )
    coordinator = MutationCoordinator(LiveDataSource(gateway), SessionContext(alice), state)

    await coordinator.unlike("p1")

    assert state.patterns[0].likes_count == 0
    assert state.patterns[0].is_liked is False


async def test_toggle_like_follows_local_flag(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob)

    first = await coordinator.toggle_like("patterns-1")
    second = await coordinator.toggle_like("patterns-1")

    assert (first.action, second.action) == ("unlike", "like")
    assert pattern_named(coordinator.state.patterns, "Alice Kick").likes_count == 1


async def test_like_failure(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("insert:pattern_likes")

    result = await coordinator.like("patterns-2")

    assert result.status == "failed"
    assert notices == ["Failed to update like"]
    assert pattern_named(coordinator.state.patterns, "Bob Bass").likes_count == 0
    assert coordinator.state.liked == []


# -- patterns -----------------------------------------------------------------


async def test_upload_pattern(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    await coordinator.load_profile()
    form = UploadForm(name=" Groove ", code='sound("bd hh")', tags="kick, bass,  groove", description="d")

    result = await coordinator.upload_pattern(form)

    assert result.applied
    [(op, table, rows)] = seeded_gateway.writes
    assert (op, table) == ("insert", "patterns")
    assert rows[0]["name"] == "Groove"
    assert rows[0]["tags"] == ["kick", "bass", "groove"]
    assert rows[0]["category"] == "Drums"
    assert rows[0]["author"] == "alice"
    assert rows[0]["user_id"] == alice.id
    assert coordinator.state.patterns[0].name == "Groove"
    assert [p.name for p in coordinator.state.uploaded] == ["Groove", "Alice Kick"]


async def test_upload_author_precedence(seeded_gateway):
    nameless = Authenticated(id="user-x")
    coordinator, _ = await make_coordinator(seeded_gateway, nameless)

    await coordinator.upload_pattern(UploadForm(name="A", code="x", author=" DJ "))
    await coordinator.upload_pattern(UploadForm(name="B", code="x", category="Synth"))

    authors = [rows[0]["author"] for _, _, rows in seeded_gateway.writes]
    assert authors == ["DJ", "anonymous"]
    assert seeded_gateway.writes[1][2][0]["category"] == "Synth"


async def test_upload_requires_name_and_code(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    assert (await coordinator.upload_pattern(UploadForm(name="A", code="  "))).status == "invalid"
    assert (await coordinator.upload_pattern(UploadForm(name=" ", code="x"))).status == "invalid"
    assert seeded_gateway.writes == []


async def test_upload_unknown_category_is_invalid(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)

    result = await coordinator.upload_pattern(UploadForm(name="A", code="x", category="polka"))

    assert result.status == "invalid"
    assert seeded_gateway.writes == []


async def test_upload_failure(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("insert:patterns")
    before = list(coordinator.state.patterns)

    result = await coordinator.upload_pattern(UploadForm(name="A", code="x"))

    assert result.status == "failed"
    assert notices == ["Failed to upload pattern"]
    assert coordinator.state.patterns == before


async def test_delete_pattern_removes_everywhere(seeded_gateway, alice):
    seeded_gateway.add("pattern_likes", pattern_id="patterns-1", user_id=alice.id)
    seeded_gateway.writes.clear()
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    await coordinator.load_profile()
    await coordinator.open_pattern("patterns-1")
    assert [p.id for p in coordinator.state.uploaded] == ["patterns-1"]
    assert [p.id for p in coordinator.state.liked] == ["patterns-1"]

    result = await coordinator.delete_pattern("patterns-1")

    assert result.applied
    assert seeded_gateway.writes == [("delete", "patterns", {"id": "patterns-1"})]
    assert [p.id for p in coordinator.state.patterns] == ["patterns-2"]
    assert coordinator.state.uploaded == []
    assert coordinator.state.liked == []
    assert coordinator.state.detail is None


async def test_delete_pattern_not_owner(seeded_gateway, bob):
    coordinator, _ = await make_coordinator(seeded_gateway, bob)

    result = await coordinator.delete_pattern("patterns-1")

    assert result.status == "invalid"
    assert seeded_gateway.writes == []
    assert len(coordinator.state.patterns) == 2


async def test_delete_pattern_failure(seeded_gateway, alice):
    coordinator, notices = await make_coordinator(seeded_gateway, alice)
    seeded_gateway.fail_on.add("delete:patterns")

    result = await coordinator.delete_pattern("patterns-1")

    assert result.status == "failed"
    assert notices == ["Failed to delete pattern"]
    assert len(coordinator.state.patterns) == 2


# -- pattern comments ---------------------------------------------------------


async def test_pattern_comment_requires_open_pattern(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    assert (await coordinator.add_pattern_comment("nice")).status == "invalid"
    assert seeded_gateway.writes == []


async def test_add_and_delete_pattern_comment(seeded_gateway, alice):
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    await coordinator.open_pattern("patterns-2")

    added = await coordinator.add_pattern_comment("  nice bass  ")
    comment = coordinator.state.detail.comments[0]
    deleted = await coordinator.delete_pattern_comment(comment.id)

    assert added.applied
    assert comment.content == "nice bass"
    assert comment.author == "alice"
    assert deleted.applied
    assert coordinator.state.detail.comments == []
    assert [w[:2] for w in seeded_gateway.writes] == [("insert", "pattern_comments"), ("delete", "pattern_comments")]


async def test_delete_pattern_comment_not_owner(seeded_gateway, alice, bob):
    seeded_gateway.add("pattern_comments", content="mine", pattern_id="patterns-2", user_id=bob.id, author="bob")
    coordinator, _ = await make_coordinator(seeded_gateway, alice)
    await coordinator.open_pattern("patterns-2")

    comment_id = coordinator.state.detail.comments[0].id

    assert (await coordinator.delete_pattern_comment(comment_id)).status == "invalid"
    assert seeded_gateway.writes == []


# -- loading ------------------------------------------------------------------


async def test_load_profile_requires_session(seeded_gateway):
    coordinator, _ = await make_coordinator(seeded_gateway, ANONYMOUS)
    assert await coordinator.load_profile() is False
    assert coordinator.state.uploaded == []
