"""
tabwise.validator
-----------------

Turn a model's free-text grouping reply into a complete partition of the tab
ids that were sent to it.

Models wrap JSON in code fences, add prose around it, forget tabs, invent ids
and occasionally put one tab in two groups.  The rules applied here:

• Only the outermost ``{...}`` span (inside an optional fence) is decoded.
• Ids are matched against the input ids by value, so ``"12"`` and ``12`` are
  the same tab; unknown ids are dropped.
• A tab listed in several groups stays in the *first* group that lists it.
• Tabs the model never mentioned are collected into a trailing ``Other``
  group.  Completeness is repaired, never rejected.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import FALLBACK_GROUP_NAME, OTHER_GROUP_NAME
from .errors import MalformedResponse
from .models import TabGroup, TabId

_LOG = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


# --------------------------------------------------------------------------- #
# Pydantic schema for the model reply                                         #
# --------------------------------------------------------------------------- #


class GroupEntry(BaseModel):
    """One group as proposed by the model."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: str | None = None
    tab_ids: list[Any] = Field(default_factory=list, alias="tabIds")

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> Any:
        # "2024" comes back as a number more often than not
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if value is not None and not isinstance(value, str):
            return None
        return value


class GroupingPayload(BaseModel):
    """Top-level ``{"groups": [...]}`` document."""

    groups: list[GroupEntry]


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #


def extract_json_block(raw_text: str) -> str:
    """Return the outermost ``{...}`` span of *raw_text*, fences removed."""
    match = _FENCE_RE.search(raw_text)
    text = (match.group(1).strip() if match else "") or raw_text.strip()

    start = text.find("{")
    end = text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1]
    return text


def _id_key(raw: Any) -> str | None:
    """Normalise a model-supplied id into a lookup key."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, float):
        if not raw.is_integer():
            return None
        raw = int(raw)
    if isinstance(raw, (int, str)):
        key = str(raw).strip()
        return key or None
    return None


def decode_groups(raw_text: str) -> GroupingPayload:
    """Decode the reply or raise ``MalformedResponse``."""
    candidate = extract_json_block(raw_text)
    try:
        return GroupingPayload.model_validate_json(candidate)
    except ValidationError as exc:
        _LOG.debug("Grouping reply failed validation: %s", exc)
        raise MalformedResponse(
            "Failed to parse grouping response from AI", raw_text
        ) from exc


def _assign(
    entries: Iterable[GroupEntry], input_ids: list[TabId]
) -> tuple[list[TabGroup], set[str]]:
    """Resolve entries against *input_ids*; first group wins on repeats."""
    lookup: dict[str, TabId] = {str(tid): tid for tid in input_ids}

    assigned: set[str] = set()
    groups: list[TabGroup] = []
    for entry in entries:
        ids: list[TabId] = []
        for raw in entry.tab_ids:
            key = _id_key(raw)
            if key is None or key not in lookup:
                _LOG.debug("Dropping unknown tab id %r from group %r", raw, entry.name)
                continue
            if key in assigned:
                _LOG.debug(
                    "Tab %s already assigned, ignoring repeat in %r", key, entry.name
                )
                continue
            assigned.add(key)
            ids.append(lookup[key])

        if not ids:
            continue
        groups.append(TabGroup(name=entry.name or FALLBACK_GROUP_NAME, tab_ids=ids))

    return groups, assigned


# --------------------------------------------------------------------------- #
# Public API                                                                  #
# --------------------------------------------------------------------------- #


def parse_grouping_response(
    raw_text: str, all_tab_ids: Iterable[TabId]
) -> list[TabGroup]:
    """
    Parse *raw_text* into groups covering every id in *all_tab_ids* exactly
    once.

    Raises
    ------
    MalformedResponse
        When no ``groups`` list can be decoded.  Nothing should be applied to
        the host in that case.
    """
    payload = decode_groups(raw_text)
    input_ids = list(dict.fromkeys(all_tab_ids))
    groups, assigned = _assign(payload.groups, input_ids)

    missing = [tid for tid in input_ids if str(tid) not in assigned]
    if missing:
        _LOG.warning(
            "AI missed %d tab(s), adding to '%s' group", len(missing), OTHER_GROUP_NAME
        )
        groups.append(TabGroup(name=OTHER_GROUP_NAME, tab_ids=missing))

    return groups


def parse_group_action(payload: Any, all_tab_ids: Iterable[TabId]) -> list[TabGroup]:
    """
    Groups named by a chat ``group`` action.

    Unlike a grouping reply the action may cover only some tabs, so nothing
    is added for the tabs it leaves out.
    """
    try:
        decoded = GroupingPayload.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponse("Invalid group action payload", repr(payload)) from exc
    groups, _ = _assign(decoded.groups, list(dict.fromkeys(all_tab_ids)))
    return groups


def match_tab_ids(raw_ids: Any, all_tab_ids: Iterable[TabId]) -> list[TabId]:
    """Known tab ids from a model-supplied list, in order and de-duplicated."""
    if not isinstance(raw_ids, list):
        return []
    lookup: dict[str, TabId] = {str(tid): tid for tid in all_tab_ids}
    keys = (_id_key(raw) for raw in raw_ids)
    return [lookup[key] for key in dict.fromkeys(keys) if key in lookup]
