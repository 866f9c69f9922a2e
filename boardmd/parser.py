"""Markdown text → ParsedBoard snapshot.

A small line classifier decides what each line is; per-field extractors then
pull the pieces out so errors can say exactly which part was wrong.
"""

import re
from collections.abc import Collection
from dataclasses import dataclass, field
from enum import Enum, auto

from boardmd.dates import DateFormat, parse_text
from boardmd.errors import (
    CardBeforeList,
    DuplicateLabelName,
    DuplicateToken,
    InvalidDueDate,
    InvalidLabelFormat,
    MalformedLine,
    MissingBoardHeading,
    ParseError,
    UnexpectedContent,
)
from boardmd.ids import IdentityMapper, is_placeholder
from boardmd.models import ParsedBoard, ParsedCard, ParsedLabel, ParsedList
from boardmd.render import LABEL_FILLER, decode_label_name

# "{token}" optionally followed by the "!" extended-edit marker, at end of a heading
_HEADING_TOKEN = re.compile(r"\s*\{([^{}]*)\}\s*(!)?\s*$")
_CARD_LINE = re.compile(r"^-\s*\[([ xX]?)\]\s*(.*)$")
_CARD_TOKEN = re.compile(r"\{([^{}]*)\}(\s*!)?")
_CARD_DUE = re.compile(r"(?<!\S)due:(\S+(?:\s+\d{1,2}:\d{2}(?!\S))?)")
_CARD_LABEL = re.compile(r"(?<!\S)@([^\s{}]+)")
# the colour is whatever follows the last colon, so label names may contain ":"
_LABEL_LINE = re.compile(r"^@(.*):([^\s:{}]*)\s*(?:\{([^{}]*)\})?\s*$")

# backslash-escaped syntax characters are masked with private-use code points while fields are matched
_ESCAPED = re.compile(r"\\([\\@{}:])")
_MASKS = {char: chr(0xE000 + offset) for offset, char in enumerate("\\@{}:")}
_UNMASK = str.maketrans({mask: char for char, mask in _MASKS.items()})
_GAP = "\0"
_SEPARATOR = f" {_GAP} "


class LineKind(Enum):
    BLANK = auto()
    BOARD = auto()
    LABEL = auto()
    LIST = auto()
    CARD = auto()
    OTHER = auto()


def classify_line(line: str) -> LineKind:
    """Classify a stripped line by its leading marker."""
    if not line:
        return LineKind.BLANK
    if line.startswith("## "):
        return LineKind.LIST
    if line.startswith("# "):
        return LineKind.BOARD
    if line.startswith("@"):
        return LineKind.LABEL
    if line.startswith("-"):
        return LineKind.CARD
    return LineKind.OTHER


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def extract_heading(text: str, what: str) -> tuple[str, str, bool]:
    """Split heading text into (name, token, extended)."""
    match = _HEADING_TOKEN.search(text)
    if match:
        name, token, extended = text[: match.start()].strip(), match.group(1).strip(), bool(match.group(2))
    else:
        name, token, extended = text.strip(), "", False
    if not name:
        raise MalformedLine(f"{what} heading has no name")
    return name, token, extended


def extract_label(line: str) -> tuple[str, str, str]:
    """Parse "@name:colour {token}" into (display name, colour, token)."""
    match = _LABEL_LINE.match(line)
    if not match:
        raise InvalidLabelFormat(f"expected '@name:colour {{token}}', got '{line}'")
    raw_name, colour, token = match.group(1), match.group(2), (match.group(3) or "").strip()
    if not raw_name or any(ch.isspace() for ch in raw_name):
        raise InvalidLabelFormat(
            f"label name '{raw_name}' is empty or contains spaces; use {LABEL_FILLER} for spaces (e.g. @front{LABEL_FILLER}end)"
        )
    if not colour:
        raise InvalidLabelFormat(f"label '{raw_name}' has no colour")
    return decode_label_name(raw_name), colour, token


@dataclass
class CardFields:
    checkbox: str
    name: str
    labels: list[str] = field(default_factory=list)
    due: str = ""
    token: str = ""
    extended: bool = False


def _mask_escapes(text: str) -> str:
    return _ESCAPED.sub(lambda m: _MASKS[m.group(1)], text)


def _unmask(text: str) -> str:
    return text.translate(_UNMASK)


def _check_label_spacing(label_match: re.Match, text: str, known_labels: Collection[str]) -> None:
    """Catch "@front end" written for the label "front end"."""
    name = decode_label_name(_unmask(label_match.group(1)))
    following = text[label_match.end() :].split(None, 1)
    if name in known_labels or not following or following[0].startswith(("@", _GAP)):
        return
    spaced = f"{name} {_unmask(following[0])}"
    if any(known == spaced or known.startswith(spaced + " ") for known in known_labels):
        raw = label_match.group(1)
        raise InvalidLabelFormat(
            f"'@{raw} {following[0]}': label names cannot contain spaces; "
            f"use {LABEL_FILLER} instead (e.g. @{raw}{LABEL_FILLER}{following[0]})"
        )


def extract_card(line: str, known_labels: Collection[str] = ()) -> CardFields:
    """Split a card line into its fields. @labels may sit anywhere in the text."""
    match = _CARD_LINE.match(line)
    if not match:
        raise MalformedLine("card lines look like '- [ ] name', checkbox missing")
    checkbox, text = match.group(1) or " ", _mask_escapes(match.group(2))

    tokens = _CARD_TOKEN.findall(text)
    if len(tokens) > 1:
        raise MalformedLine("card line has more than one {token}")
    token, extended = (tokens[0][0].strip(), bool(tokens[0][1])) if tokens else ("", False)
    text = _CARD_TOKEN.sub(_SEPARATOR, text)

    dues = _CARD_DUE.findall(text)
    if len(dues) > 1:
        raise MalformedLine("card line has more than one due: field")
    due = dues[0] if dues else ""
    text = _CARD_DUE.sub(_SEPARATOR, text)

    label_matches = list(_CARD_LABEL.finditer(text))
    for label_match in label_matches:
        _check_label_spacing(label_match, text, known_labels)
    text = _CARD_LABEL.sub(_SEPARATOR, text)

    name = _unmask(" ".join(piece.strip() for piece in text.split(_GAP) if piece.strip()))
    if not name:
        raise MalformedLine("card has no name")
    return CardFields(
        checkbox=checkbox,
        name=name,
        labels=list(dict.fromkeys(decode_label_name(_unmask(m.group(1))) for m in label_matches)),
        due=due,
        token=token,
        extended=extended,
    )


# ---------------------------------------------------------------------------
# Document parser
# ---------------------------------------------------------------------------


class _State(Enum):
    BEFORE_BOARD = auto()
    LABELS = auto()
    LISTS = auto()


@dataclass
class _ListDraft:
    id: str
    name: str
    render_index: int
    extended: bool
    cards: list[ParsedCard] = field(default_factory=list)


class BoardParser:
    """Single-use parser for one document. Use parse_board() instead of driving it directly."""

    def __init__(self, mapper: IdentityMapper, date_format: DateFormat) -> None:
        self._mapper = mapper
        self._date_format = date_format
        self._state = _State.BEFORE_BOARD
        self._board: tuple[str, str, bool] | None = None
        self._labels: list[ParsedLabel] = []
        self._lists: list[_ListDraft] = []
        self._seen_ids: set[str] = set()

    def _resolve(self, token: str) -> str:
        canonical = self._mapper.resolve(token)
        if not is_placeholder(canonical):
            if canonical in self._seen_ids:
                raise DuplicateToken(f"token {{{token}}} is used on more than one line")
            self._seen_ids.add(canonical)
        return canonical

    def feed(self, line: str) -> None:
        match classify_line(line):
            case LineKind.BLANK:
                return
            case LineKind.BOARD:
                self._board_heading(line)
            case LineKind.LABEL if self._state is _State.LABELS:
                self._label_line(line)
            case LineKind.LIST:
                self._list_heading(line)
            case LineKind.CARD:
                self._card_line(line)
            case _ if self._state is _State.LISTS:
                raise MalformedLine(f"expected a card or list heading, got '{line}'")
            case _:
                raise UnexpectedContent(f"unexpected content before the first list: '{line}'")

    def _board_heading(self, line: str) -> None:
        if self._state is not _State.BEFORE_BOARD:
            raise MalformedLine("only one board heading ('# name') is allowed")
        name, token, extended = extract_heading(line[2:], "board")
        self._board = (self._resolve(token), name, extended)
        self._state = _State.LABELS

    def _label_line(self, line: str) -> None:
        name, colour, token = extract_label(line)
        if any(label.name == name for label in self._labels):
            raise DuplicateLabelName(f"label '{name}' is defined twice; label names must be unique per board")
        self._labels.append(ParsedLabel(id=self._resolve(token), name=name, color=colour))

    def _list_heading(self, line: str) -> None:
        if self._state is _State.BEFORE_BOARD:
            raise UnexpectedContent("list heading appears before the board heading")
        name, token, extended = extract_heading(line[3:], "list")
        self._lists.append(_ListDraft(self._resolve(token), name, len(self._lists), extended))
        self._state = _State.LISTS

    def _card_line(self, line: str) -> None:
        if not self._lists:
            raise CardBeforeList("card appears before any list heading")
        fields = extract_card(line, {label.name for label in self._labels})
        if fields.due:
            try:
                parse_text(fields.due, self._date_format)
            except ValueError as exc:
                raise InvalidDueDate(str(exc)) from None
        current = self._lists[-1]
        current.cards.append(
            ParsedCard(
                id=self._resolve(fields.token),
                list_id=current.id,
                name=fields.name,
                position=len(current.cards),
                checkbox=fields.checkbox,
                labels=fields.labels,
                due=fields.due,
                extended=fields.extended,
            )
        )

    def finish(self) -> ParsedBoard:
        if self._board is None:
            raise MissingBoardHeading("document has no board heading ('# name {token}')")
        board_id, name, extended = self._board
        return ParsedBoard(
            id=board_id,
            name=name,
            extended=extended,
            labels=self._labels,
            lists=[
                ParsedList(id=d.id, name=d.name, render_index=d.render_index, cards=d.cards, extended=d.extended)
                for d in self._lists
            ],
        )


def parse_board(text: str, mapper: IdentityMapper, date_format: DateFormat = DateFormat.ISO) -> ParsedBoard:
    """Parse a whole document. The first bad line aborts with its line number attached."""
    parser = BoardParser(mapper, date_format)
    for number, raw in enumerate(text.splitlines(), start=1):
        try:
            parser.feed(raw.strip())
        except ParseError as exc:
            exc.line_number = number
            exc.line = raw
            raise
    return parser.finish()
