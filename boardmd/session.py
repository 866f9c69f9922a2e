"""One editing session: fetch → render → parse → diff → apply, around a single mapper."""

import logging
from collections.abc import Callable

from boardmd.actions import Action, ApplyContext, BulkUpdate
from boardmd.dates import DateFormat
from boardmd.executor import apply_actions
from boardmd.extended import diff_extended, parse_extended, render_extended
from boardmd.ids import IdentityMapper
from boardmd.models import ExtendedEditMarker, ParsedBoard, RemoteBoard
from boardmd.parser import parse_board
from boardmd.providers.base import BoardProvider
from boardmd.reconcile import DiffResult, diff
from boardmd.render import render_board

logger = logging.getLogger(__name__)

Echo = Callable[[str], None]


def fetch_remote_board(provider: BoardProvider, board_id: str) -> RemoteBoard:
    """Fetch the board with its labels, open lists and open cards, each in position order."""
    board = provider.fetch_board(board_id)
    labels = provider.fetch_labels(board_id)
    lists = sorted((bl for bl in provider.fetch_lists(board_id) if not bl.closed), key=lambda bl: bl.pos)
    cards = {
        bl.id: sorted((card for card in provider.fetch_cards(bl.id) if not card.closed), key=lambda card: card.pos)
        for bl in lists
    }
    logger.debug("fetched board %s: %d labels, %d lists", board.name, len(labels), len(lists))
    return RemoteBoard(board=board, labels=labels, lists=lists, cards=cards)


class BoardSession:
    def __init__(self, provider: BoardProvider, remote: RemoteBoard, date_format: DateFormat = DateFormat.ISO) -> None:
        self.provider = provider
        self.remote = remote
        self.date_format = date_format
        self.mapper = IdentityMapper.from_remote(remote)
        self.baseline = render_board(remote, self.mapper, date_format)

    @classmethod
    def open(cls, provider: BoardProvider, board_id: str, date_format: DateFormat = DateFormat.ISO) -> "BoardSession":
        return cls(provider, fetch_remote_board(provider, board_id), date_format)

    @property
    def board_id(self) -> str:
        return self.remote.board.id

    def parse(self, text: str) -> ParsedBoard:
        return parse_board(text, self.mapper, self.date_format)

    def reconcile(self, edited_text: str) -> DiffResult:
        """Diff the edited text against the baseline this session rendered."""
        if edited_text == self.baseline:
            return DiffResult()
        before = self.parse(self.baseline)
        after = self.parse(edited_text)
        return diff(before, after, self.date_format)

    def apply(self, result: DiffResult, echo: Echo | None = None) -> list[Action]:
        ctx = ApplyContext(board_id=self.board_id)
        return apply_actions(result.actions, self.provider, ctx, echo)

    # --- extended pass ---

    def extended_text(self, markers: list[ExtendedEditMarker]) -> str:
        return render_extended(markers, self.provider)

    def reconcile_extended(self, original: str, edited: str) -> list[BulkUpdate]:
        if original == edited:
            return []
        return diff_extended(parse_extended(original), parse_extended(edited))

    def apply_extended(self, updates: list[BulkUpdate], echo: Echo | None = None) -> list[Action]:
        ctx = ApplyContext(board_id=self.board_id)
        return apply_actions(updates, self.provider, ctx, echo)
