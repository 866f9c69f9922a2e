"""Abstract base class for board providers, the remote boundary of the pipeline."""

from abc import ABC, abstractmethod
from typing import Any

from boardmd.models import Board, BoardList, Card, Label

Position = float | str  # a float, or "top" / "bottom"


class BoardProvider(ABC):
    # --- reads ---

    @abstractmethod
    def list_boards(self) -> list[Board]: ...

    @abstractmethod
    def fetch_board(self, board_id: str) -> Board: ...

    @abstractmethod
    def fetch_labels(self, board_id: str) -> list[Label]: ...

    @abstractmethod
    def fetch_lists(self, board_id: str) -> list[BoardList]: ...

    @abstractmethod
    def fetch_cards(self, list_id: str) -> list[Card]: ...

    @abstractmethod
    def fetch_list(self, list_id: str) -> BoardList: ...

    @abstractmethod
    def fetch_card(self, card_id: str) -> Card: ...

    # --- board + labels ---

    @abstractmethod
    def update_board(self, board_id: str, fields: dict[str, Any]) -> Board: ...

    @abstractmethod
    def create_label(self, board_id: str, name: str, color: str | None) -> Label: ...

    @abstractmethod
    def update_label(self, label_id: str, fields: dict[str, Any]) -> Label: ...

    @abstractmethod
    def delete_label(self, label_id: str) -> None: ...

    # --- lists ---

    @abstractmethod
    def create_list(self, board_id: str, name: str, pos: Position) -> BoardList: ...

    @abstractmethod
    def update_list(self, list_id: str, fields: dict[str, Any]) -> BoardList: ...

    @abstractmethod
    def archive_list(self, list_id: str) -> BoardList: ...

    # --- cards ---

    @abstractmethod
    def create_card(self, list_id: str, name: str, pos: Position, due_complete: bool = False) -> Card: ...

    @abstractmethod
    def update_card(self, card_id: str, fields: dict[str, Any]) -> Card: ...

    @abstractmethod
    def delete_card(self, card_id: str) -> None: ...

    @abstractmethod
    def add_card_label(self, card_id: str, label_id: str) -> None: ...

    @abstractmethod
    def remove_card_label(self, card_id: str, label_id: str) -> None: ...
