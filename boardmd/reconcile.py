"""Diff two parsed snapshots into an ordered list of actions."""

from pydantic import BaseModel, ConfigDict

from boardmd.actions import (
    Action,
    AddCardLabel,
    ArchiveList,
    ClearCardDue,
    CreateCard,
    CreateLabel,
    CreateList,
    DeleteCard,
    DeleteLabel,
    MoveCard,
    RecolourLabel,
    RemoveCardLabel,
    RenameBoard,
    RenameCard,
    RenameLabel,
    RenameList,
    RepositionCard,
    RepositionList,
    SetCardComplete,
    SetCardDue,
)
from boardmd.dates import DateFormat, parse_text, text_to_remote
from boardmd.errors import UnknownEntity, UnknownLabel
from boardmd.ids import is_placeholder
from boardmd.models import ExtendedEditMarker, ObjectType, ParsedBoard, ParsedCard, ParsedLabel, ParsedList


class DiffResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    actions: list[Action] = []
    extended: list[ExtendedEditMarker] = []

    @property
    def is_empty(self) -> bool:
        return not self.actions and not self.extended


class _Reconciler:
    def __init__(self, before: ParsedBoard, after: ParsedBoard, date_format: DateFormat) -> None:
        self.before = before
        self.after = after
        self.date_format = date_format
        self.actions: list[Action] = []
        self.markers: list[ExtendedEditMarker] = []

        self.before_labels = {label.name: label for label in before.labels}
        self.after_labels = {label.name: label for label in after.labels}
        self.after_label_ids = {label.id for label in after.labels}
        self.before_cards = {card.id: (card, bl) for bl in before.lists for card in bl.cards}
        # every card in `after`, across lists, tells a move apart from a delete
        self.after_cards = {card.id: card for al in after.lists for card in al.cards}

    def run(self) -> DiffResult:
        self._check_identities()
        self._diff_board()
        self._diff_labels()
        self._diff_lists()
        return DiffResult(actions=self.actions, extended=self.markers)

    def _mark(self, object_type: ObjectType, object_id: str, name: str) -> None:
        self.markers.append(ExtendedEditMarker(object_type=object_type, object_id=object_id, object_name=name))

    def _check_identities(self) -> None:
        """Real IDs in `after` must name an entity of the same kind in `before`."""
        known = {
            "label": {label.id for label in self.before.labels},
            "list": {bl.id for bl in self.before.lists},
            "card": set(self.before_cards),
        }
        found = {
            "label": [(label.id, label.name) for label in self.after.labels],
            "list": [(al.id, al.name) for al in self.after.lists],
            "card": [(card.id, card.name) for card in self.after_cards.values()],
        }
        for kind, entries in found.items():
            for entity_id, name in entries:
                if not is_placeholder(entity_id) and entity_id not in known[kind]:
                    raise UnknownEntity(f"{kind} '{name}' carries the token of something that is not a {kind}")

    # --- board + labels ---

    def _diff_board(self) -> None:
        if self.before.name != self.after.name:
            self.actions.append(
                RenameBoard(board_id=self.before.id, old_name=self.before.name, new_name=self.after.name)
            )
        if self.before.extended or self.after.extended:
            self._mark(ObjectType.BOARD, self.before.id, self.after.name)

    def _diff_labels(self) -> None:
        after_by_id = {label.id: label for label in self.after.labels}
        before_ids = set()
        for old in self.before.labels:
            before_ids.add(old.id)
            new = after_by_id.get(old.id)
            if new is None:
                self.actions.append(DeleteLabel(label_id=old.id, name=old.name))
                continue
            if old.name != new.name:
                self.actions.append(RenameLabel(label_id=old.id, old_name=old.name, new_name=new.name))
            if old.color != new.color:
                self.actions.append(
                    RecolourLabel(label_id=old.id, name=new.name, old_color=old.color, new_color=new.color)
                )
        for new in self.after.labels:
            if new.id not in before_ids:
                self.actions.append(
                    CreateLabel(board_id=self.before.id, label_id=new.id, name=new.name, color=new.color)
                )

    # --- lists ---

    def _diff_lists(self) -> None:
        after_by_id = {al.id: al for al in self.after.lists}
        before_by_id = {bl.id: bl for bl in self.before.lists}
        for old in self.before.lists:
            new = after_by_id.get(old.id)
            if new is None:
                # cards still on it go with the list; cards dragged out are placed below
                self.actions.append(ArchiveList(list_id=old.id, name=old.name))
                continue
            if old.name != new.name:
                self.actions.append(RenameList(list_id=old.id, old_name=old.name, new_name=new.name))
            if old.extended or new.extended:
                self._mark(ObjectType.LIST, old.id, new.name)

        # Lists are placed in the edited order, each directly after its predecessor.
        # Creates run a phase before repositions, so a new list anchors on the
        # closest earlier list that is not repositioned itself.
        previous: str | None = None
        anchor: str | None = None
        for new in self.after.lists:
            old = before_by_id.get(new.id)
            if old is None:
                self.actions.append(
                    CreateList(
                        board_id=self.before.id,
                        list_id=new.id,
                        name=new.name,
                        position=new.render_index,
                        after_id=anchor,
                    )
                )
                anchor = new.id
            elif old.render_index != new.render_index:
                self.actions.append(
                    RepositionList(
                        list_id=old.id,
                        name=new.name,
                        old_position=old.render_index,
                        new_position=new.render_index,
                        after_id=previous,
                    )
                )
            else:
                anchor = new.id
            previous = new.id

        for old in self.before.lists:
            if old.id in after_by_id:
                for card in old.cards:
                    if card.id not in self.after_cards:
                        self.actions.append(DeleteCard(card_id=card.id, name=card.name))
        for new in self.after.lists:
            self._place_cards(new)

    # --- cards ---

    def _place_cards(self, new_list: ParsedList) -> None:
        """Walk one edited list top to bottom, placing each card after the one above it."""
        previous: str | None = None
        for card in new_list.cards:
            found = self.before_cards.get(card.id)
            if found is None:
                self._create_card(card, new_list, previous)
            else:
                old, old_list = found
                if old_list.id != new_list.id:
                    self.actions.append(
                        MoveCard(
                            card_id=old.id,
                            name=card.name,
                            from_list_id=old_list.id,
                            from_list_name=old_list.name,
                            to_list_id=new_list.id,
                            to_list_name=new_list.name,
                            position=card.position,
                            after_id=previous,
                        )
                    )
                elif old.position != card.position:
                    self.actions.append(
                        RepositionCard(
                            card_id=card.id,
                            list_id=new_list.id,
                            name=card.name,
                            old_position=old.position,
                            new_position=card.position,
                            after_id=previous,
                        )
                    )
                self._diff_card_fields(old, card)
            previous = card.id

    def _create_card(self, card: ParsedCard, new_list: ParsedList, after_id: str | None) -> None:
        self.actions.append(
            CreateCard(
                card_id=card.id,
                list_id=new_list.id,
                list_name=new_list.name,
                name=card.name,
                position=card.position,
                complete=card.is_complete,
                after_id=after_id,
            )
        )
        # creation carries only name + position; labels and due follow as separate actions
        for name in card.labels:
            label = self._label(self.after_labels, name, card)
            self.actions.append(
                AddCardLabel(card_id=card.id, card_name=card.name, label_id=label.id, label_name=label.name)
            )
        if card.due:
            self.actions.append(self._set_due(card))

    def _diff_card_fields(self, old: ParsedCard, new: ParsedCard) -> None:
        if old.name != new.name:
            self.actions.append(RenameCard(card_id=old.id, old_name=old.name, new_name=new.name))

        if old.is_complete != new.is_complete:
            self.actions.append(SetCardComplete(card_id=old.id, name=new.name, complete=new.is_complete))

        old_labels = [self._label(self.before_labels, name, old) for name in old.labels]
        new_labels = [self._label(self.after_labels, name, new) for name in new.labels]
        old_ids = {label.id for label in old_labels}
        new_ids = {label.id for label in new_labels}
        for label in old_labels:
            # a deleted label disappears from its cards along with the label itself
            if label.id not in new_ids and label.id in self.after_label_ids:
                self.actions.append(
                    RemoveCardLabel(card_id=old.id, card_name=new.name, label_id=label.id, label_name=label.name)
                )
        for label in new_labels:
            if label.id not in old_ids:
                self.actions.append(
                    AddCardLabel(card_id=old.id, card_name=new.name, label_id=label.id, label_name=label.name)
                )

        if self._due_changed(old.due, new.due):
            if new.due:
                self.actions.append(self._set_due(new))
            else:
                self.actions.append(ClearCardDue(card_id=old.id, name=new.name))

        if old.extended or new.extended:
            self._mark(ObjectType.CARD, old.id, new.name)

    def _due_changed(self, old: str, new: str) -> bool:
        if not old or not new:
            return old != new
        # "2024-01-15" and "2024-01-15 00:00" are the same instant
        return parse_text(old, self.date_format) != parse_text(new, self.date_format)

    def _set_due(self, card: ParsedCard) -> SetCardDue:
        return SetCardDue(
            card_id=card.id,
            name=card.name,
            due=text_to_remote(card.due, self.date_format),
            due_text=card.due,
        )

    @staticmethod
    def _label(labels: dict[str, ParsedLabel], name: str, card: ParsedCard) -> ParsedLabel:
        try:
            return labels[name]
        except KeyError:
            raise UnknownLabel(name, card.name) from None


def diff(before: ParsedBoard, after: ParsedBoard, date_format: DateFormat = DateFormat.ISO) -> DiffResult:
    """Compute the actions that turn the remote state matching `before` into `after`.

    Neither snapshot is modified. Label references on cards are resolved by
    display name against each snapshot's own label set; an unknown name raises
    UnknownLabel and no partial result is returned.
    """
    return _Reconciler(before, after, date_format).run()
