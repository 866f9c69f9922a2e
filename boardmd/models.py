"""Shared pydantic models: remote entities from providers and the parsed board snapshots."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Remote entities (as returned by a BoardProvider)
# ---------------------------------------------------------------------------

_REMOTE_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Label(BaseModel):
    model_config = _REMOTE_CONFIG

    id: str
    name: str = ""  # Trello allows colour-only labels with no name
    color: str | None = None
    id_board: str | None = Field(default=None, alias="idBoard")


class Board(BaseModel):
    model_config = _REMOTE_CONFIG

    id: str
    name: str
    desc: str = ""
    closed: bool = False
    url: str = ""
    prefs: dict[str, Any] = {}
    labels: list[Label] = []


class BoardList(BaseModel):
    model_config = _REMOTE_CONFIG

    id: str
    name: str
    closed: bool = False
    pos: float = 0
    id_board: str | None = Field(default=None, alias="idBoard")
    subscribed: bool = False


class Card(BaseModel):
    model_config = _REMOTE_CONFIG

    id: str
    name: str
    desc: str = ""
    closed: bool = False
    pos: float = 0
    due: str | None = None  # RFC 3339, UTC
    due_complete: bool = Field(default=False, alias="dueComplete")
    start: str | None = None
    id_list: str | None = Field(default=None, alias="idList")
    labels: list[Label] = []
    subscribed: bool = False


class RemoteBoard(BaseModel):
    """Everything fetched for one editing session."""

    model_config = ConfigDict(frozen=True)

    board: Board
    labels: list[Label]
    lists: list[BoardList]  # open lists, in position order
    cards: dict[str, list[Card]]  # list id → cards in position order

    def cards_for(self, list_id: str) -> list[Card]:
        return self.cards.get(list_id, [])


# ---------------------------------------------------------------------------
# Parsed snapshots: produced once by the parser, read-only afterwards
# ---------------------------------------------------------------------------


class ObjectType(str, Enum):
    BOARD = "board"
    LIST = "list"
    CARD = "card"


class ParsedLabel(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str  # display name, filler decoded
    color: str


class ParsedCard(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    list_id: str
    name: str
    position: int  # index within its list
    checkbox: str = " "  # raw checkbox character
    labels: list[str] = []  # display names
    due: str = ""  # text-format date, empty when unset
    extended: bool = False

    @property
    def is_complete(self) -> bool:
        return self.checkbox.lower() == "x"


class ParsedList(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    render_index: int  # only ordering signal for lists
    cards: list[ParsedCard] = []
    extended: bool = False


class ParsedBoard(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lists: list[ParsedList] = []
    labels: list[ParsedLabel] = []
    extended: bool = False


class ExtendedEditMarker(BaseModel):
    """Signals that an object needs the extended-field pass; never applied itself."""

    model_config = ConfigDict(frozen=True)

    object_type: ObjectType
    object_id: str
    object_name: str


class ExtendedSection(BaseModel):
    """One parsed block of the extended-field text."""

    model_config = ConfigDict(frozen=True)

    object_type: ObjectType
    object_id: str
    object_name: str
    fields: dict[str, str | None] = {}  # None = unset
