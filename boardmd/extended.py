"""Extended editing: verbose key/value blocks for fields the compact format leaves out.

Objects flagged with "!" in the board text get one block each:

    ================================================================================
    # EDITING CARD: Write spec {5f1c0a...}
    ================================================================================
    === DESCRIPTION START ===
    free-form text
    === DESCRIPTION END ===
    Name: Write spec  # card title
    Due Date: 2024-01-15T00:00:00.000Z  # RFC 3339, blank to clear

Both the pristine and the edited block text are parsed, then compared field
by field; every changed field is translated to its API name and folded into a
single BulkUpdate per object.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

from boardmd.actions import BulkUpdate
from boardmd.errors import ExtendedFormatError, InvalidFieldValue
from boardmd.models import Board, BoardList, Card, ExtendedEditMarker, ExtendedSection, ObjectType
from boardmd.providers.base import BoardProvider

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 80
DESCRIPTION_START = "=== DESCRIPTION START ==="
DESCRIPTION_END = "=== DESCRIPTION END ==="

_HEADER = re.compile(r"^# EDITING (BOARD|LIST|CARD): (.*) \{([^{}]+)\}\s*$")
_COMMENT = re.compile(r"\s+#(\s.*)?$")

# User-facing field name → API parameter
BOARD_FIELDS = {
    "Name": "name",
    "Closed": "closed",
    "Description": "desc",
    "Permission Level": "prefs/permissionLevel",
    "Self Join": "prefs/selfJoin",
    "Card Covers": "prefs/cardCovers",
    "Hide Votes": "prefs/hideVotes",
    "Invitations": "prefs/invitations",
    "Voting": "prefs/voting",
    "Comments": "prefs/comments",
    "Card Aging": "prefs/cardAging",
    "Calendar Feed": "prefs/calendarFeedEnabled",
}

LIST_FIELDS = {
    "Name": "name",
    "Closed": "closed",
    "Position": "pos",
    "Subscribed": "subscribed",
}

CARD_FIELDS = {
    "Name": "name",
    "Closed": "closed",
    "Position": "pos",
    "Subscribed": "subscribed",
    "Description": "desc",
    "Start": "start",
    "Due": "due",
    "Due Complete": "dueComplete",
}

FIELD_TABLES = {ObjectType.BOARD: BOARD_FIELDS, ObjectType.LIST: LIST_FIELDS, ObjectType.CARD: CARD_FIELDS}

BOOL_FIELDS = frozenset(
    {
        "closed",
        "prefs/selfJoin",
        "prefs/cardCovers",
        "prefs/hideVotes",
        "prefs/calendarFeedEnabled",
        "subscribed",
        "dueComplete",
    }
)

_FIELD_ALIASES = {"Due Date": "Due", "Start Date": "Start"}


def normalise_field_name(name: str) -> str:
    name = name.strip().removesuffix(":").strip()
    return _FIELD_ALIASES.get(name, name)


def api_field_name(object_type: ObjectType, field_name: str) -> str | None:
    return FIELD_TABLES[object_type].get(normalise_field_name(field_name))


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _value(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float):
        return str(int(raw)) if raw.is_integer() else str(raw)
    return str(raw)


def _field_line(name: str, raw: Any, comment: str) -> str:
    value = _value(raw)
    return f"{name}: {value}  # {comment}" if value else f"{name}:  # {comment}"


def _block(object_type: ObjectType, name: str, object_id: str, desc: str | None, fields: list[str]) -> str:
    lines = [SEPARATOR, f"# EDITING {object_type.value.upper()}: {name} {{{object_id}}}", SEPARATOR]
    if desc is not None:
        lines += [DESCRIPTION_START, desc, DESCRIPTION_END]
    lines += fields
    return "\n".join(lines)


def render_board_block(board: Board) -> str:
    prefs = board.prefs
    fields = [
        _field_line("Name", board.name, "board title"),
        _field_line("Closed", board.closed, "true closes the board"),
        _field_line("Permission Level", prefs.get("permissionLevel"), "private | org | public"),
        _field_line("Self Join", prefs.get("selfJoin"), "true | false"),
        _field_line("Card Covers", prefs.get("cardCovers"), "true | false"),
        _field_line("Hide Votes", prefs.get("hideVotes"), "true | false"),
        _field_line("Invitations", prefs.get("invitations"), "members | admins"),
        _field_line("Voting", prefs.get("voting"), "disabled | members | observers | org | public"),
        _field_line("Comments", prefs.get("comments"), "disabled | members | observers | org | public"),
        _field_line("Card Aging", prefs.get("cardAging"), "regular | pirate"),
        _field_line("Calendar Feed", prefs.get("calendarFeedEnabled"), "true | false"),
    ]
    return _block(ObjectType.BOARD, board.name, board.id, board.desc, fields)


def render_list_block(board_list: BoardList) -> str:
    fields = [
        _field_line("Name", board_list.name, "list title"),
        _field_line("Closed", board_list.closed, "true archives the list"),
        _field_line("Position", board_list.pos, "top | bottom | positive number"),
        _field_line("Subscribed", board_list.subscribed, "true | false"),
    ]
    return _block(ObjectType.LIST, board_list.name, board_list.id, None, fields)


def render_card_block(card: Card) -> str:
    fields = [
        _field_line("Name", card.name, "card title"),
        _field_line("Closed", card.closed, "true archives the card"),
        _field_line("Position", card.pos, "top | bottom | positive number"),
        _field_line("Subscribed", card.subscribed, "true | false"),
        _field_line("Start Date", card.start, "RFC 3339, blank to clear"),
        _field_line("Due Date", card.due, "RFC 3339, blank to clear"),
        _field_line("Due Complete", card.due_complete, "true | false"),
    ]
    return _block(ObjectType.CARD, card.name, card.id, card.desc, fields)


def render_extended(markers: Iterable[ExtendedEditMarker], provider: BoardProvider) -> str:
    """Fetch every flagged object and render its block; duplicate markers render once."""
    blocks = []
    seen: set[tuple[ObjectType, str]] = set()
    for marker in markers:
        key = (marker.object_type, marker.object_id)
        if key in seen:
            continue
        seen.add(key)
        match marker.object_type:
            case ObjectType.BOARD:
                blocks.append(render_board_block(provider.fetch_board(marker.object_id)))
            case ObjectType.LIST:
                blocks.append(render_list_block(provider.fetch_list(marker.object_id)))
            case ObjectType.CARD:
                blocks.append(render_card_block(provider.fetch_card(marker.object_id)))
    return "\n\n".join(blocks) + "\n"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_extended(text: str) -> list[ExtendedSection]:
    sections: list[ExtendedSection] = []
    header: tuple[ObjectType, str, str] | None = None
    fields: dict[str, str | None] = {}
    description: list[str] | None = None
    description_line = 0

    def flush() -> None:
        if header is not None:
            object_type, name, object_id = header
            sections.append(
                ExtendedSection(object_type=object_type, object_id=object_id, object_name=name, fields=dict(fields))
            )

    for number, raw in enumerate(text.splitlines(), start=1):
        if description is not None:
            if raw.strip() == DESCRIPTION_END:
                fields["Description"] = "\n".join(description).strip("\n") or None
                description = None
            else:
                description.append(raw)
            continue

        line = raw.strip()
        if not line or line == SEPARATOR:
            continue

        match = _HEADER.match(line)
        if match:
            flush()
            header = (ObjectType(match.group(1).lower()), match.group(2).strip(), match.group(3).strip())
            fields = {}
            continue

        if header is None:
            raise ExtendedFormatError("expected a '# EDITING <TYPE>: name {id}' header", number, raw)
        if line == DESCRIPTION_START:
            description, description_line = [], number
            continue
        if line.startswith("#"):
            continue
        if ":" not in line:
            raise ExtendedFormatError("expected 'Field: value'", number, raw)

        name, _, value = line.partition(":")
        value = _COMMENT.sub("", value).strip()
        fields[name.strip()] = value or None

    if description is not None:
        raise ExtendedFormatError(f"'{DESCRIPTION_START}' is never closed", description_line)
    flush()
    return sections


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------

_SKIP = object()


def coerce_value(api_field: str, value: str | None) -> Any:
    """Convert a text value to what the API expects for this field."""
    if api_field in BOOL_FIELDS:
        if value is None:
            return _SKIP
        lowered = value.strip().lower()
        if lowered not in ("true", "false"):
            raise InvalidFieldValue(f"{api_field} must be true or false, got '{value}'")
        return lowered == "true"
    if value is None:
        # a blank position means nothing; anything else clears with ""
        return _SKIP if api_field == "pos" else ""
    return value


def _section_update(old: ExtendedSection, new: ExtendedSection) -> BulkUpdate | None:
    changed: dict[str, Any] = {}
    old_values: dict[str, str | None] = {}
    new_values: dict[str, str | None] = {}

    for field_name, new_value in new.fields.items():
        old_value = old.fields.get(field_name)
        if field_name in old.fields and old_value == new_value:
            continue
        normalised = normalise_field_name(field_name)
        api_field = api_field_name(new.object_type, field_name)
        if api_field is None:
            logger.warning("unknown %s field %r, skipping", new.object_type.value, normalised)
            continue
        coerced = coerce_value(api_field, new_value)
        if coerced is _SKIP:
            logger.warning("%s.%s cannot be left blank, skipping", new.object_name, normalised)
            continue
        changed[api_field] = coerced
        old_values[normalised] = old_value
        new_values[normalised] = new_value

    if not changed:
        return None
    return BulkUpdate(
        object_type=new.object_type,
        object_id=new.object_id,
        object_name=new.object_name,
        fields=changed,
        old_values=old_values,
        new_values=new_values,
    )


def diff_extended(before: list[ExtendedSection], after: list[ExtendedSection]) -> list[BulkUpdate]:
    """One BulkUpdate per object whose fields changed."""
    originals = {(section.object_type, section.object_id): section for section in before}
    updates = []
    for section in after:
        original = originals.get((section.object_type, section.object_id))
        if original is None:
            logger.warning("no original block for %s %r, skipping", section.object_type.value, section.object_name)
            continue
        update = _section_update(original, section)
        if update is not None:
            updates.append(update)
    return updates
