"""
Local list patches.

After a successful write the coordinator describes the change as a patch
and applies it to every list it affects, instead of re-fetching. Lists are
never mutated in place; apply_patch returns a new list.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Insert:
    item: BaseModel
    at: Literal["front", "back"] = "front"


@dataclass(frozen=True)
class Remove:
    id: str


@dataclass(frozen=True)
class Update:
    """Change fields of the item with this id.

    fields is either a mapping of new values or a function of the current
    item returning one (for relative changes such as counters).
    """

    id: str
    fields: Mapping[str, Any] | Callable[[Any], Mapping[str, Any]]


Patch = Insert | Remove | Update


def apply_patch(items: Sequence[M], patch: Patch) -> list[M]:
    """Return a new list with the patch applied. Ids that are absent are a no-op."""
    if isinstance(patch, Insert):
        if patch.at == "front":
            return [patch.item, *items]
        return [*items, patch.item]

    if isinstance(patch, Remove):
        return [item for item in items if item.id != patch.id]

    if isinstance(patch, Update):
        result = []
        for item in items:
            if item.id == patch.id:
                changes = patch.fields(item) if callable(patch.fields) else patch.fields
                item = item.model_copy(update=dict(changes))
            result.append(item)
        return result

    raise TypeError(f"Unknown patch: {patch!r}")

