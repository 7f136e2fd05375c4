"""Playback is handed to the hosted Strudel REPL in a browser tab."""

from __future__ import annotations

import base64
import logging
import webbrowser
from collections.abc import Callable

from strudel_social import config

logger = logging.getLogger(__name__)


def build_repl_url(code: str, base_url: str | None = None) -> str:
    """
    REPL URL carrying the pattern code as base64 in the fragment.

    Args:
        code: Pattern source, encoded as UTF-8 before base64
        base_url: REPL address (STRUDEL_REPL_URL by default)

    Returns:
        URL such as https://strudel.cc/#c291bmQoImJkIik=
    """
    base_url = (base_url or config.settings.STRUDEL_REPL_URL).split("#", 1)[0]
    encoded = base64.b64encode(code.encode("utf-8")).decode("ascii")
    return f"{base_url}#{encoded}"


def play(
    code: str,
    on_stop: Callable[[], None],
    opener: Callable[[str], object] = webbrowser.open_new_tab,
    base_url: str | None = None,
) -> str:
    """Open the pattern in the REPL and reset the caller's play state right away."""
    url = build_repl_url(code, base_url)
    logger.debug("playback: opening %s", url)
    opener(url)
    on_stop()
    return url
