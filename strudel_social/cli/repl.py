"""REPL for the strudel CLI."""

from __future__ import annotations

import asyncio

from strudel_social.config import settings
from strudel_social.models.pattern import PatternView, UploadForm
from strudel_social.models.user import Authenticated
from strudel_social.services.composition import filter_patterns, format_time_ago
from strudel_social.services.data_source import PatternNotFound
from strudel_social.services.demo_data import EXAMPLE_SNIPPETS, LISTING_CATEGORIES
from strudel_social.services.mutations import MutationCoordinator, MutationResult, resolve_category
from strudel_social.services.playback import play

DIM = "\033[90m"
GREEN = "\033[32m"
RESET = "\033[0m"


async def ask(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


async def confirm(prompt: str) -> bool:
    answer = await ask(f"  {prompt} [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def notify(message: str) -> None:
    print(f"  {message}")


class Repl:
    """Interactive REPL over the pattern library and the feed."""

    def __init__(self, coordinator: MutationCoordinator):
        self.coordinator = coordinator
        self.state = coordinator.state
        self.listing: list[PatternView] = []
        self.running = True

    @property
    def user(self):
        return self.coordinator.context.user

    async def start(self):
        """Start the REPL."""
        if not self.coordinator.data_source.can_mutate:
            print(f"{DIM}Demo mode: Supabase is not configured. Browsing only.{RESET}")
        if isinstance(self.user, Authenticated):
            print(f"strudel > signed in as {self.user.display_name}")
        else:
            print("strudel > browsing anonymously. Run 'strudel login' to post and like.")

        await self._list_patterns(None)

        while self.running:
            try:
                line = (await ask("strudel > ")).strip()
                if not line:
                    continue
                if line.startswith("/"):
                    await self._handle_command(line)
                else:
                    print("  Commands start with /. Type /help for the list.")
            except (EOFError, KeyboardInterrupt):
                print()
                break

    async def _handle_command(self, line: str):
        """Handle REPL commands."""
        parts = line.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else None

        if cmd == "/quit":
            self.running = False
            print("Goodbye.")
        elif cmd == "/patterns":
            await self._list_patterns(arg)
        elif cmd == "/search":
            if arg:
                await self._search(arg)
            else:
                print("Usage: /search <text>")
        elif cmd == "/show":
            await self._with_index(arg, "/show <n>", self._show_pattern)
        elif cmd == "/like":
            await self._with_index(arg, "/like <n>", self._toggle_like)
        elif cmd == "/play":
            await self._with_index(arg, "/play <n>", self._play)
        elif cmd == "/delete":
            await self._with_index(arg, "/delete <n>", self._delete_pattern)
        elif cmd == "/upload":
            await self._upload()
        elif cmd == "/comment":
            if arg:
                self._report(await self.coordinator.add_pattern_comment(arg), "Comment added.")
            else:
                print("Usage: /comment <text>")
        elif cmd == "/uncomment":
            await self._delete_pattern_comment(arg)
        elif cmd == "/feed":
            await self._show_feed()
        elif cmd == "/post":
            if arg:
                self._report(await self.coordinator.create_post(arg), "Posted.")
            else:
                print("Usage: /post <text>")
        elif cmd == "/reply":
            await self._reply(arg)
        elif cmd == "/delete-post":
            await self._delete_post(arg)
        elif cmd == "/delete-comment":
            await self._delete_comment(arg)
        elif cmd == "/profile":
            await self._show_profile()
        elif cmd == "/help":
            self._show_help()
        else:
            print(f"Unknown command: {cmd}")
            print("Type /help for available commands.")

    def _report(self, result: MutationResult, success: str):
        """Print the outcome of a write. Failures and demo mode were already notified."""
        if result.status == "applied":
            print(f"  {success}")
        elif result.status == "auth_required":
            print("  Sign in first: run 'strudel login'.")
        elif result.status == "invalid":
            print(f"  {result.message or 'Nothing to do.'}")
        elif result.status == "in_flight":
            print("  Still working on that.")
        elif result.status == "cancelled":
            print("  Cancelled.")

    @staticmethod
    def _parse_index(raw: str, size: int, hint: str) -> int | None:
        """0-based index from a 1-based number, or None after printing why not."""
        try:
            idx = int(raw) - 1
        except ValueError:
            print("  Invalid number.")
            return None
        if not 0 <= idx < size:
            print(f"  Invalid index. {hint}")
            return None
        return idx

    async def _with_index(self, arg: str | None, usage: str, action):
        if not arg:
            print(f"Usage: {usage}")
            return
        idx = self._parse_index(arg, len(self.listing), "Use /patterns to see patterns.")
        if idx is not None:
            await action(self.listing[idx])

    def _print_listing(self, patterns: list[PatternView]):
        self.listing = patterns
        if not patterns:
            print("  No patterns match.")
            return
        for i, pattern in enumerate(patterns, 1):
            heart = "♥" if pattern.is_liked else "♡"
            tags = ", ".join(pattern.tags)
            print(f"  {i}. {pattern.name} {DIM}[{pattern.category}] by {pattern.author}{RESET} {heart} {pattern.likes_count}")
            if tags:
                print(f"     {DIM}{tags}{RESET}")

    async def _list_patterns(self, category: str | None):
        if category:
            matches = [c for c in LISTING_CATEGORIES if c.lower() == category.lower()]
            if not matches:
                print(f"  Unknown category. Try one of: {', '.join(LISTING_CATEGORIES)}")
                return
            category = matches[0]
        await self.coordinator.load_patterns()
        if self.state.patterns_is_demo:
            print(f"{DIM}  Showing demo patterns.{RESET}")
        self._print_listing(filter_patterns(self.state.patterns, category or "All"))

    async def _search(self, query: str):
        if not self.state.patterns:
            await self.coordinator.load_patterns()
        self._print_listing(filter_patterns(self.state.patterns, "All", query))

    async def _show_pattern(self, pattern: PatternView):
        try:
            detail = await self.coordinator.open_pattern(pattern.id)
        except PatternNotFound:
            print("  Pattern not found. Back to the listing.")
            await self._list_patterns(None)
            return

        shown = detail.pattern
        print()
        print(f"  {shown.name} {DIM}[{shown.category}] by {shown.author}, {format_time_ago(shown.created_at)}{RESET}")
        if shown.description:
            print(f"  {shown.description}")
        print(f"  ♥ {shown.likes_count}  {DIM}{', '.join(shown.tags)}{RESET}")
        print()
        for code_line in shown.code.splitlines():
            print(f"    {GREEN}{code_line}{RESET}")
        print()
        if detail.comments:
            print("  Comments:")
            for j, comment in enumerate(detail.comments, 1):
                print(f"    {j}. {DIM}{comment.author}, {format_time_ago(comment.created_at)}:{RESET} {comment.content}")
        else:
            print(f"  {DIM}No comments yet. Add one with /comment <text>.{RESET}")

    async def _toggle_like(self, pattern: PatternView):
        result = await self.coordinator.toggle_like(pattern.id)
        self._report(result, "Unliked." if result.action == "unlike" else "Liked.")
        self.listing = [self.state.find_pattern(p.id) or p for p in self.listing]

    async def _play(self, pattern: PatternView):
        url = play(pattern.code, on_stop=lambda: None)
        print(f"  Opening {pattern.name} in the Strudel REPL: {url}")

    async def _delete_pattern(self, pattern: PatternView):
        result = await self.coordinator.delete_pattern(pattern.id)
        self._report(result, f"Deleted {pattern.name}.")
        if result.applied:
            self.listing = [p for p in self.listing if p.id != pattern.id]

    async def _upload(self):
        try:
            name = await ask("  Name: ")
            category = await self._ask_category()
            print("  Code (finish with an empty line):")
            code_lines = []
            while line := await ask("    "):
                code_lines.append(line)
            code = "\n".join(code_lines) or await self._ask_example()
            tags = await ask("  Tags (comma separated): ")
            description = await ask("  Description: ")
        except (EOFError, KeyboardInterrupt):
            print()
            print("  Cancelled.")
            return

        form = UploadForm(
            name=name,
            category=category,
            code=code,
            tags=tags,
            description=description,
        )
        result = await self.coordinator.upload_pattern(form)
        if result.status == "invalid":
            print("  A name and some code are required.")
            return
        self._report(result, f"Uploaded {form.name.strip()}.")

    async def _ask_category(self) -> str:
        """Ask until the answer is one of the upload categories (blank means the default)."""
        print(f"  {DIM}Categories: {', '.join(settings.CATEGORIES)}{RESET}")
        while True:
            category = resolve_category(await ask(f"  Category [{settings.DEFAULT_CATEGORY}]: "))
            if category is not None:
                return category
            print("  Unknown category.")

    async def _ask_example(self) -> str:
        """Offer the starter snippets when no code was typed. Empty string to skip."""
        print("  No code entered. Start from an example?")
        for i, snippet in enumerate(EXAMPLE_SNIPPETS, 1):
            print(f"    {i}. {GREEN}{snippet}{RESET}")
        choice = (await ask(f"  Example [1-{len(EXAMPLE_SNIPPETS)}, Enter to skip]: ")).strip()
        if choice.isdigit() and 1 <= int(choice) <= len(EXAMPLE_SNIPPETS):
            return EXAMPLE_SNIPPETS[int(choice) - 1]
        return ""

    async def _show_feed(self):
        await self.coordinator.load_feed()
        if not self.state.posts:
            print("  No posts yet. Share something with /post <text>.")
            return
        for i, post in enumerate(self.state.posts, 1):
            print(f"  {i}. {DIM}{post.author}, {format_time_ago(post.created_at)}:{RESET} {post.content}")
            for j, comment in enumerate(post.comments, 1):
                print(f"       {j}. {DIM}{comment.author}:{RESET} {comment.content}")

    async def _reply(self, arg: str | None):
        parts = (arg or "").split(maxsplit=1)
        if len(parts) < 2:
            print("Usage: /reply <n> <text>")
            return
        idx = self._parse_index(parts[0], len(self.state.posts), "Use /feed to see posts.")
        if idx is None:
            return
        result = await self.coordinator.add_comment(self.state.posts[idx].id, parts[1])
        self._report(result, "Reply added.")

    async def _delete_post(self, arg: str | None):
        if not arg:
            print("Usage: /delete-post <n>")
            return
        idx = self._parse_index(arg, len(self.state.posts), "Use /feed to see posts.")
        if idx is None:
            return
        self._report(await self.coordinator.delete_post(self.state.posts[idx].id), "Post deleted.")

    async def _delete_comment(self, arg: str | None):
        parts = (arg or "").split()
        if len(parts) != 2:
            print("Usage: /delete-comment <n> <m>")
            return
        idx = self._parse_index(parts[0], len(self.state.posts), "Use /feed to see posts.")
        if idx is None:
            return
        post = self.state.posts[idx]
        cidx = self._parse_index(parts[1], len(post.comments), "Use /feed to see comments.")
        if cidx is None:
            return
        self._report(await self.coordinator.delete_comment(post.id, post.comments[cidx].id), "Comment deleted.")

    async def _delete_pattern_comment(self, arg: str | None):
        detail = self.state.detail
        if detail is None:
            print("  Open a pattern first with /show <n>.")
            return
        if not arg:
            print("Usage: /uncomment <m>")
            return
        idx = self._parse_index(arg, len(detail.comments), "Use /show <n> to see comments.")
        if idx is None:
            return
        self._report(await self.coordinator.delete_pattern_comment(detail.comments[idx].id), "Comment deleted.")

    async def _show_profile(self):
        if not await self.coordinator.load_profile():
            print("  Sign in first: run 'strudel login'.")
            return
        print(f"  {self.user.display_name} {DIM}{self.user.email}{RESET}")
        print("  Uploaded:")
        self._print_listing(self.state.uploaded)
        print("  Liked:")
        for pattern in self.state.liked:
            print(f"    {pattern.name} {DIM}by {pattern.author}{RESET}")
        if not self.state.liked:
            print(f"    {DIM}Nothing liked yet.{RESET}")

    def _show_help(self):
        """Show help message."""
        print("""
  REPL Commands:
    /patterns [category]     - List patterns (optionally one category)
    /search <text>           - Search names and tags
    /show <n>                - Show pattern <n> with its comments
    /like <n>                - Like or unlike pattern <n>
    /play <n>                - Open pattern <n> in the Strudel REPL
    /upload                  - Upload a new pattern
    /delete <n>              - Delete your pattern <n>
    /comment <text>          - Comment on the pattern last shown
    /uncomment <m>           - Delete your comment <m> on the pattern last shown
    /feed                    - Show the community feed
    /post <text>             - Post to the feed
    /reply <n> <text>        - Reply to post <n>
    /delete-post <n>         - Delete your post <n>
    /delete-comment <n> <m>  - Delete your comment <m> on post <n>
    /profile                 - Your uploads and liked patterns
    /help                    - Show this help
    /quit                    - Exit REPL
""")
