"""Shared test fixtures."""

from typing import Any

import pytest

from boardmd.errors import RemoteError
from boardmd.ids import IdentityMapper
from boardmd.models import Board, BoardList, Card, Label, RemoteBoard
from boardmd.providers.base import BoardProvider, Position

BUG = Label(id="label-bug", name="bug", color="red", idBoard="board-1")
FRONT_END = Label(id="label-fe", name="front end", color="blue", idBoard="board-1")
NAMELESS = Label(id="label-green", name="", color="green", idBoard="board-1")


@pytest.fixture
def remote_board() -> RemoteBoard:
    board = Board(id="board-1", name="Roadmap", url="https://trello.com/b/abc/roadmap")
    lists = [
        BoardList(id="list-todo", name="To Do", pos=1024, idBoard="board-1"),
        BoardList(id="list-doing", name="Doing", pos=2048, idBoard="board-1"),
        BoardList(id="list-done", name="Done", pos=3072, idBoard="board-1"),
    ]
    cards = {
        "list-todo": [
            Card(
                id="card-a",
                name="Write spec",
                pos=100,
                idList="list-todo",
                labels=[BUG],
                due="2024-01-15T09:30:00.000Z",
            ),
            Card(id="card-b", name="Plan sprint", pos=200, idList="list-todo"),
        ],
        "list-doing": [
            Card(id="card-c", name="Build parser", pos=100, idList="list-doing", labels=[BUG, FRONT_END, NAMELESS]),
        ],
        "list-done": [
            Card(id="card-d", name="Kickoff", pos=100, idList="list-done", dueComplete=True),
        ],
    }
    return RemoteBoard(board=board, labels=[BUG, FRONT_END, NAMELESS], lists=lists, cards=cards)


@pytest.fixture
def mapper(remote_board: RemoteBoard) -> IdentityMapper:
    return IdentityMapper.from_remote(remote_board)


_CARD_FIELDS = {"idList": "id_list", "dueComplete": "due_complete"}


class FakeProvider(BoardProvider):
    """In-memory board that records every mutation as (method, *args)."""

    def __init__(self, remote: RemoteBoard) -> None:
        self.board = remote.board
        self.labels = {label.id: label for label in remote.labels}
        self.lists = {bl.id: bl for bl in remote.lists}
        self.cards = {card.id: card for cards in remote.cards.values() for card in cards}
        self.card_labels = {card.id: [label.id for label in card.labels] for card in self.cards.values()}
        self.calls: list[tuple] = []
        self.fail_on: str | None = None
        self._next_id = 0

    def _record(self, name: str, *args: Any) -> None:
        if name == self.fail_on:
            raise RemoteError(f"{name} refused", 500)
        self.calls.append((name, *args))

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-new-{self._next_id}"

    @staticmethod
    def _pos(value: Position, siblings: list[float]) -> float:
        if value == "top":
            return min(siblings, default=1024) / 2
        if value == "bottom":
            return max(siblings, default=0) + 1024
        return float(value)

    # --- reads ---

    def list_boards(self) -> list[Board]:
        return [self.board]

    def fetch_board(self, board_id: str) -> Board:
        return self.board

    def fetch_labels(self, board_id: str) -> list[Label]:
        return list(self.labels.values())

    def fetch_lists(self, board_id: str) -> list[BoardList]:
        return sorted((bl for bl in self.lists.values() if not bl.closed), key=lambda bl: bl.pos)

    def fetch_cards(self, list_id: str) -> list[Card]:
        cards = [card for card in self.cards.values() if card.id_list == list_id and not card.closed]
        return sorted(
            (card.model_copy(update={"labels": [self.labels[i] for i in self.card_labels[card.id]]}) for card in cards),
            key=lambda card: card.pos,
        )

    def fetch_list(self, list_id: str) -> BoardList:
        return self.lists[list_id]

    def fetch_card(self, card_id: str) -> Card:
        return self.cards[card_id]

    # --- board + labels ---

    def update_board(self, board_id: str, fields: dict[str, Any]) -> Board:
        self._record("update_board", board_id, fields)
        if "name" in fields:
            self.board = self.board.model_copy(update={"name": fields["name"]})
        return self.board

    def create_label(self, board_id: str, name: str, color: str | None) -> Label:
        self._record("create_label", board_id, name, color)
        label = Label(id=self._new_id("label"), name=name, color=color, idBoard=board_id)
        self.labels[label.id] = label
        return label

    def update_label(self, label_id: str, fields: dict[str, Any]) -> Label:
        self._record("update_label", label_id, fields)
        self.labels[label_id] = self.labels[label_id].model_copy(update=fields)
        return self.labels[label_id]

    def delete_label(self, label_id: str) -> None:
        self._record("delete_label", label_id)
        del self.labels[label_id]
        for ids in self.card_labels.values():
            if label_id in ids:
                ids.remove(label_id)

    # --- lists ---

    def create_list(self, board_id: str, name: str, pos: Position) -> BoardList:
        self._record("create_list", board_id, name, pos)
        siblings = [bl.pos for bl in self.fetch_lists(board_id)]
        board_list = BoardList(id=self._new_id("list"), name=name, pos=self._pos(pos, siblings), idBoard=board_id)
        self.lists[board_list.id] = board_list
        return board_list

    def update_list(self, list_id: str, fields: dict[str, Any]) -> BoardList:
        self._record("update_list", list_id, fields)
        update = dict(fields)
        if "pos" in update:
            siblings = [bl.pos for bl in self.fetch_lists(self.board.id) if bl.id != list_id]
            update["pos"] = self._pos(update["pos"], siblings)
        self.lists[list_id] = self.lists[list_id].model_copy(update=update)
        return self.lists[list_id]

    def archive_list(self, list_id: str) -> BoardList:
        self._record("archive_list", list_id)
        self.lists[list_id] = self.lists[list_id].model_copy(update={"closed": True})
        return self.lists[list_id]

    # --- cards ---

    def create_card(self, list_id: str, name: str, pos: Position, due_complete: bool = False) -> Card:
        self._record("create_card", list_id, name, pos, due_complete)
        siblings = [card.pos for card in self.fetch_cards(list_id)]
        card = Card(
            id=self._new_id("card"),
            name=name,
            pos=self._pos(pos, siblings),
            idList=list_id,
            dueComplete=due_complete,
        )
        self.cards[card.id] = card
        self.card_labels[card.id] = []
        return card

    def update_card(self, card_id: str, fields: dict[str, Any]) -> Card:
        self._record("update_card", card_id, fields)
        update = {_CARD_FIELDS.get(key, key): value for key, value in fields.items()}
        if "pos" in update:
            list_id = update.get("id_list", self.cards[card_id].id_list)
            siblings = [card.pos for card in self.fetch_cards(list_id) if card.id != card_id]
            update["pos"] = self._pos(update["pos"], siblings)
        self.cards[card_id] = self.cards[card_id].model_copy(update=update)
        return self.cards[card_id]

    def delete_card(self, card_id: str) -> None:
        self._record("delete_card", card_id)
        del self.cards[card_id]

    def add_card_label(self, card_id: str, label_id: str) -> None:
        self._record("add_card_label", card_id, label_id)
        self.card_labels[card_id].append(label_id)

    def remove_card_label(self, card_id: str, label_id: str) -> None:
        self._record("remove_card_label", card_id, label_id)
        self.card_labels[card_id].remove(label_id)

    # --- helpers for assertions ---

    def method_calls(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def provider(remote_board: RemoteBoard) -> FakeProvider:
    return FakeProvider(remote_board)


@pytest.fixture
def grid_board() -> RemoteBoard:
    """Four lists of four plain cards; every id doubles as the item's name."""
    lists = [BoardList(id=f"L{i}", name=f"L{i}", pos=1024 * (i + 1), idBoard="board-g") for i in range(4)]
    cards = {
        bl.id: [Card(id=f"{bl.id}c{j}", name=f"{bl.id}c{j}", pos=1024 * (j + 1), idList=bl.id) for j in range(4)]
        for bl in lists
    }
    return RemoteBoard(board=Board(id="board-g", name="Grid"), labels=[], lists=lists, cards=cards)


@pytest.fixture
def grid_provider(grid_board: RemoteBoard) -> FakeProvider:
    return FakeProvider(grid_board)
