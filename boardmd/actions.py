"""The closed set of mutations the reconciler can emit.

Every action carries just the IDs and before/after values it needs to apply
itself and to describe itself in one line. IDs may be placeholders
(NEW_ITEM_n); they are swapped for real remote IDs through the ApplyContext
once the matching create action has run.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from boardmd.errors import UnknownEntity, UnresolvedPlaceholder
from boardmd.ids import is_placeholder
from boardmd.models import ObjectType
from boardmd.providers.base import BoardProvider, Position
from boardmd.render import NO_COLOUR


class Phase(IntEnum):
    BOARD = 1  # board rename + all label changes
    LISTS = 2  # list create / rename / archive
    LIST_POSITIONS = 3
    CARDS = 4


@dataclass
class ApplyContext:
    board_id: str
    created: dict[str, str] = field(default_factory=dict)  # placeholder → real id

    def resolve(self, canonical_id: str) -> str:
        if not is_placeholder(canonical_id):
            return canonical_id
        try:
            return self.created[canonical_id]
        except KeyError:
            raise UnresolvedPlaceholder(f"{canonical_id} has not been created yet in this batch") from None

    def record(self, placeholder: str, real_id: str) -> None:
        self.created[placeholder] = real_id

    def resolve_anchor(self, after_id: str | None) -> str | None:
        return None if after_id is None else self.resolve(after_id)


def position_after(siblings: list[tuple[str, float]], after_id: str | None) -> Position:
    """Trello pos that lands an item directly after `after_id`, or first when it is None.

    `siblings` are (id, pos) pairs of the other items in the same list or board,
    as they stand on the remote right now.
    """
    if after_id is None:
        return "top"
    ordered = sorted(siblings, key=lambda sibling: sibling[1])
    ids = [sibling_id for sibling_id, _ in ordered]
    if after_id not in ids:
        raise UnknownEntity(f"cannot place an item after '{after_id}': it is not in the same list")
    index = ids.index(after_id)
    if index == len(ordered) - 1:
        return "bottom"
    return (ordered[index][1] + ordered[index + 1][1]) / 2


def _api_colour(colour: str) -> str | None:
    return None if colour == NO_COLOUR else colour


class Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    PHASE: ClassVar[Phase] = Phase.CARDS

    @property
    def phase(self) -> Phase:
        return self.PHASE

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Board + labels
# ---------------------------------------------------------------------------


class RenameBoard(Action):
    PHASE: ClassVar[Phase] = Phase.BOARD

    board_id: str
    old_name: str
    new_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_board(self.board_id, {"name": self.new_name})

    def describe(self) -> str:
        return f'Board renamed from "{self.old_name}" to "{self.new_name}"'


class CreateLabel(Action):
    PHASE: ClassVar[Phase] = Phase.BOARD

    board_id: str
    label_id: str  # placeholder
    name: str
    color: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        label = provider.create_label(self.board_id, self.name, _api_colour(self.color))
        ctx.record(self.label_id, label.id)

    def describe(self) -> str:
        return f'Created label "{self.name}" with colour "{self.color}"'


class RenameLabel(Action):
    PHASE: ClassVar[Phase] = Phase.BOARD

    label_id: str
    old_name: str
    new_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_label(self.label_id, {"name": self.new_name})

    def describe(self) -> str:
        return f'Label "{self.old_name}" renamed to "{self.new_name}"'


class RecolourLabel(Action):
    PHASE: ClassVar[Phase] = Phase.BOARD

    label_id: str
    name: str
    old_color: str
    new_color: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_label(self.label_id, {"color": _api_colour(self.new_color)})

    def describe(self) -> str:
        return f'Label "{self.name}" colour changed from "{self.old_color}" to "{self.new_color}"'


class DeleteLabel(Action):
    PHASE: ClassVar[Phase] = Phase.BOARD

    label_id: str
    name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.delete_label(self.label_id)

    def describe(self) -> str:
        return f'Label "{self.name}" deleted'


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


class CreateList(Action):
    PHASE: ClassVar[Phase] = Phase.LISTS

    board_id: str
    list_id: str  # placeholder
    name: str
    position: int
    after_id: str | None = None  # list to follow, None for first

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        siblings = [(bl.id, bl.pos) for bl in provider.fetch_lists(self.board_id)]
        pos = position_after(siblings, ctx.resolve_anchor(self.after_id))
        created = provider.create_list(self.board_id, self.name, pos)
        ctx.record(self.list_id, created.id)

    def describe(self) -> str:
        return f'Created list "{self.name}" at position {self.position}'


class RenameList(Action):
    PHASE: ClassVar[Phase] = Phase.LISTS

    list_id: str
    old_name: str
    new_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_list(self.list_id, {"name": self.new_name})

    def describe(self) -> str:
        return f'List "{self.old_name}" renamed to "{self.new_name}"'


class ArchiveList(Action):
    PHASE: ClassVar[Phase] = Phase.LISTS

    list_id: str
    name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.archive_list(self.list_id)

    def describe(self) -> str:
        return f'List "{self.name}" archived'


class RepositionList(Action):
    PHASE: ClassVar[Phase] = Phase.LIST_POSITIONS

    list_id: str
    name: str
    old_position: int
    new_position: int
    after_id: str | None = None

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        siblings = [(bl.id, bl.pos) for bl in provider.fetch_lists(ctx.board_id) if bl.id != self.list_id]
        provider.update_list(self.list_id, {"pos": position_after(siblings, ctx.resolve_anchor(self.after_id))})

    def describe(self) -> str:
        return f'List "{self.name}" moved from position {self.old_position} to {self.new_position}'


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


class CreateCard(Action):
    card_id: str  # placeholder
    list_id: str  # real id, or placeholder of a list created in this batch
    list_name: str
    name: str
    position: int
    complete: bool = False
    after_id: str | None = None  # card to follow, None for first

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        list_id = ctx.resolve(self.list_id)
        siblings = [(card.id, card.pos) for card in provider.fetch_cards(list_id)]
        pos = position_after(siblings, ctx.resolve_anchor(self.after_id))
        card = provider.create_card(list_id, self.name, pos, self.complete)
        ctx.record(self.card_id, card.id)

    def describe(self) -> str:
        return f'Created card "{self.name}" in list "{self.list_name}" at position {self.position}'


class RenameCard(Action):
    card_id: str
    old_name: str
    new_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_card(self.card_id, {"name": self.new_name})

    def describe(self) -> str:
        return f'Card "{self.old_name}" renamed to "{self.new_name}"'


class RepositionCard(Action):
    card_id: str
    list_id: str
    name: str
    old_position: int
    new_position: int
    after_id: str | None = None

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        siblings = [(card.id, card.pos) for card in provider.fetch_cards(self.list_id) if card.id != self.card_id]
        provider.update_card(self.card_id, {"pos": position_after(siblings, ctx.resolve_anchor(self.after_id))})

    def describe(self) -> str:
        return f'Card "{self.name}" moved from position {self.old_position} to {self.new_position}'


class MoveCard(Action):
    card_id: str
    name: str
    from_list_id: str
    from_list_name: str
    to_list_id: str
    to_list_name: str
    position: int
    after_id: str | None = None

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        to_list = ctx.resolve(self.to_list_id)
        siblings = [(card.id, card.pos) for card in provider.fetch_cards(to_list) if card.id != self.card_id]
        pos = position_after(siblings, ctx.resolve_anchor(self.after_id))
        provider.update_card(self.card_id, {"idList": to_list, "pos": pos})

    def describe(self) -> str:
        return f'Card "{self.name}" moved from list "{self.from_list_name}" to "{self.to_list_name}"'


class SetCardComplete(Action):
    card_id: str
    name: str
    complete: bool

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_card(ctx.resolve(self.card_id), {"dueComplete": self.complete})

    def describe(self) -> str:
        state = "complete" if self.complete else "not complete"
        return f'Card "{self.name}" marked {state}'


class AddCardLabel(Action):
    card_id: str
    card_name: str
    label_id: str
    label_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.add_card_label(ctx.resolve(self.card_id), ctx.resolve(self.label_id))

    def describe(self) -> str:
        return f'Added label "{self.label_name}" to card "{self.card_name}"'


class RemoveCardLabel(Action):
    card_id: str
    card_name: str
    label_id: str
    label_name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.remove_card_label(ctx.resolve(self.card_id), ctx.resolve(self.label_id))

    def describe(self) -> str:
        return f'Removed label "{self.label_name}" from card "{self.card_name}"'


class SetCardDue(Action):
    card_id: str
    name: str
    due: str  # remote timestamp
    due_text: str  # as the user typed it

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_card(ctx.resolve(self.card_id), {"due": self.due})

    def describe(self) -> str:
        return f'Card "{self.name}" due date set to "{self.due_text}"'


class ClearCardDue(Action):
    card_id: str
    name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.update_card(self.card_id, {"due": None})

    def describe(self) -> str:
        return f'Card "{self.name}" due date removed'


class DeleteCard(Action):
    card_id: str
    name: str

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        provider.delete_card(self.card_id)

    def describe(self) -> str:
        return f'Card "{self.name}" deleted'


# ---------------------------------------------------------------------------
# Extended edits
# ---------------------------------------------------------------------------

_BULK_PHASE = {ObjectType.BOARD: Phase.BOARD, ObjectType.LIST: Phase.LISTS, ObjectType.CARD: Phase.CARDS}


class BulkUpdate(Action):
    """All changed extended fields of one object, sent in a single update."""

    object_type: ObjectType
    object_id: str
    object_name: str
    fields: dict[str, Any]  # API field name → coerced value
    old_values: dict[str, str | None] = {}
    new_values: dict[str, str | None] = {}

    @property
    def phase(self) -> Phase:
        return _BULK_PHASE[self.object_type]

    def apply(self, provider: BoardProvider, ctx: ApplyContext) -> None:
        match self.object_type:
            case ObjectType.BOARD:
                provider.update_board(self.object_id, self.fields)
            case ObjectType.LIST:
                provider.update_list(self.object_id, self.fields)
            case ObjectType.CARD:
                provider.update_card(self.object_id, self.fields)

    def describe(self) -> str:
        changed = ", ".join(self.new_values) or ", ".join(self.fields)
        return f'[{self.object_type.value}] "{self.object_name}" updated: {changed}'


ALL_ACTIONS: tuple[type[Action], ...] = (
    RenameBoard,
    CreateLabel,
    RenameLabel,
    RecolourLabel,
    DeleteLabel,
    CreateList,
    RenameList,
    ArchiveList,
    RepositionList,
    CreateCard,
    RenameCard,
    RepositionCard,
    MoveCard,
    SetCardComplete,
    AddCardLabel,
    RemoveCardLabel,
    SetCardDue,
    ClearCardDue,
    DeleteCard,
    BulkUpdate,
)
