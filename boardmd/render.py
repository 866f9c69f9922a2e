"""Remote board → markdown text with embedded short tokens."""

import logging
import re

from boardmd.dates import DateFormat, to_text
from boardmd.ids import IdentityMapper
from boardmd.models import Card, RemoteBoard

logger = logging.getLogger(__name__)

LABEL_FILLER = "~"
NO_COLOUR = "none"


def encode_label_name(name: str) -> str:
    return name.replace(" ", LABEL_FILLER)


def decode_label_name(name: str) -> str:
    return name.replace(LABEL_FILLER, " ")


_CARD_SYNTAX = re.compile(r"([\\@{}])")
_DUE_PREFIX = re.compile(r"(?<!\S)due:")


def escape_card_name(name: str) -> str:
    """Backslash-escape anything in a remote card name that would parse as card syntax.

    "Email @bob {v2} due:soon" renders as "Email \\@bob \\{v2\\} due\\:soon".
    """
    return _DUE_PREFIX.sub(r"due\\:", _CARD_SYNTAX.sub(r"\\\1", name))


def _card_due(card: Card, date_format: DateFormat) -> str:
    if not card.due:
        return ""
    try:
        return to_text(card.due, date_format)
    except ValueError:
        logger.warning("could not parse due date %r on card %r, leaving it out", card.due, card.name)
        return ""


def render_card(card: Card, mapper: IdentityMapper, date_format: DateFormat) -> str:
    checkbox = "[x]" if card.due_complete else "[ ]"
    parts = [f"- {checkbox} {escape_card_name(card.name)}"]
    parts += [f"@{encode_label_name(label.name)}" for label in card.labels if label.name]
    due = _card_due(card, date_format)
    if due:
        parts.append(f"due:{due}")
    parts.append(f"{{{mapper.short_token(card.id)}}}")
    return " ".join(parts)


def render_board(remote: RemoteBoard, mapper: IdentityMapper, date_format: DateFormat = DateFormat.ISO) -> str:
    """Render the canonical text for a board.

    Empty-named labels are dropped everywhere; the parser never sees them, so
    the baseline snapshot stays consistent with what the user edits.
    """
    board = remote.board
    lines = [f"# {board.name} {{{mapper.short_token(board.id)}}}", ""]

    label_lines = [
        f"@{encode_label_name(label.name)}:{label.color or NO_COLOUR} {{{mapper.short_token(label.id)}}}"
        for label in remote.labels
        if label.name
    ]
    if label_lines:
        lines += label_lines
        lines.append("")

    for board_list in remote.lists:
        lines.append(f"## {board_list.name} {{{mapper.short_token(board_list.id)}}}")
        lines += [render_card(card, mapper, date_format) for card in remote.cards_for(board_list.id)]
        lines.append("")

    return "\n".join(lines)
