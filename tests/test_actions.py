"""Tests for boardmd.actions: applying single actions against the fake provider."""

import pytest

from boardmd.actions import (
    ALL_ACTIONS,
    Action,
    ApplyContext,
    ArchiveList,
    BulkUpdate,
    CreateCard,
    CreateLabel,
    CreateList,
    MoveCard,
    Phase,
    RecolourLabel,
    RepositionList,
    SetCardDue,
    position_after,
)
from boardmd.errors import UnknownEntity, UnresolvedPlaceholder
from boardmd.models import ObjectType


class TestPositionAfter:
    SIBLINGS = [("b", 200.0), ("a", 100.0), ("c", 300.0)]

    def test_no_predecessor_goes_to_top(self) -> None:
        assert position_after(self.SIBLINGS, None) == "top"

    def test_after_last_goes_to_bottom(self) -> None:
        assert position_after(self.SIBLINGS, "c") == "bottom"

    def test_between_predecessor_and_its_current_follower(self) -> None:
        assert position_after(self.SIBLINGS, "a") == 150.0

    def test_empty_list(self) -> None:
        assert position_after([], None) == "top"

    def test_missing_predecessor(self) -> None:
        with pytest.raises(UnknownEntity):
            position_after(self.SIBLINGS, "gone")


class TestApplyContext:
    def test_real_ids_pass_through(self) -> None:
        assert ApplyContext(board_id="b").resolve("card-a") == "card-a"

    def test_recorded_placeholder_resolves(self) -> None:
        ctx = ApplyContext(board_id="b")
        ctx.record("NEW_ITEM_1", "real-1")
        assert ctx.resolve("NEW_ITEM_1") == "real-1"

    def test_unrecorded_placeholder_raises(self) -> None:
        with pytest.raises(UnresolvedPlaceholder):
            ApplyContext(board_id="b").resolve("NEW_ITEM_7")


class TestApply:
    def test_create_list_then_card_in_it(self, provider) -> None:
        ctx = ApplyContext(board_id="board-1")
        CreateList(board_id="board-1", list_id="NEW_ITEM_1", name="Later", position=3, after_id="list-done").apply(
            provider, ctx
        )
        CreateCard(card_id="NEW_ITEM_2", list_id="NEW_ITEM_1", list_name="Later", name="Someday", position=0).apply(
            provider, ctx
        )

        new_list = ctx.resolve("NEW_ITEM_1")
        assert provider.calls[0] == ("create_list", "board-1", "Later", "bottom")
        assert provider.calls[1] == ("create_card", new_list, "Someday", "top", False)
        assert provider.cards[ctx.resolve("NEW_ITEM_2")].id_list == new_list

    def test_card_placed_after_a_card_from_the_same_batch(self, provider) -> None:
        ctx = ApplyContext(board_id="board-1")
        CreateCard(card_id="NEW_ITEM_1", list_id="list-todo", list_name="To Do", name="First", position=0).apply(
            provider, ctx
        )
        CreateCard(
            card_id="NEW_ITEM_2", list_id="list-todo", list_name="To Do", name="Second", position=1, after_id="NEW_ITEM_1"
        ).apply(provider, ctx)

        names = [card.name for card in provider.fetch_cards("list-todo")]
        assert names == ["First", "Second", "Write spec", "Plan sprint"]

    def test_card_in_uncreated_list_fails(self, provider) -> None:
        action = CreateCard(card_id="NEW_ITEM_2", list_id="NEW_ITEM_1", list_name="Later", name="x", position=0)
        with pytest.raises(UnresolvedPlaceholder):
            action.apply(provider, ApplyContext(board_id="board-1"))

    def test_label_colour_none_is_sent_as_null(self, provider) -> None:
        ctx = ApplyContext(board_id="board-1")
        CreateLabel(board_id="board-1", label_id="NEW_ITEM_1", name="misc", color="none").apply(provider, ctx)
        RecolourLabel(label_id="label-bug", name="bug", old_color="red", new_color="none").apply(provider, ctx)

        assert provider.calls[0] == ("create_label", "board-1", "misc", None)
        assert provider.calls[1] == ("update_label", "label-bug", {"color": None})

    def test_reposition_list_lands_between_neighbours(self, provider) -> None:
        RepositionList(list_id="list-done", name="Done", old_position=2, new_position=1, after_id="list-todo").apply(
            provider, ApplyContext(board_id="board-1")
        )
        assert provider.calls == [("update_list", "list-done", {"pos": 1536.0})]
        assert [bl.id for bl in provider.fetch_lists("board-1")] == ["list-todo", "list-done", "list-doing"]

    def test_move_card_sets_list_and_position(self, provider) -> None:
        MoveCard(
            card_id="card-b",
            name="Plan sprint",
            from_list_id="list-todo",
            from_list_name="To Do",
            to_list_id="list-done",
            to_list_name="Done",
            position=1,
            after_id="card-d",
        ).apply(provider, ApplyContext(board_id="board-1"))

        assert provider.calls == [("update_card", "card-b", {"idList": "list-done", "pos": "bottom"})]

    def test_archive_list(self, provider) -> None:
        ArchiveList(list_id="list-doing", name="Doing").apply(provider, ApplyContext(board_id="board-1"))
        assert "list-doing" not in [bl.id for bl in provider.fetch_lists("board-1")]

    def test_set_due_sends_remote_timestamp(self, provider) -> None:
        SetCardDue(card_id="card-b", name="Plan sprint", due="2024-01-15T00:00:00.000Z", due_text="2024-01-15").apply(
            provider, ApplyContext(board_id="board-1")
        )
        assert provider.calls == [("update_card", "card-b", {"due": "2024-01-15T00:00:00.000Z"})]


class TestBulkUpdate:
    @pytest.mark.parametrize(
        ("object_type", "phase", "method"),
        [
            (ObjectType.BOARD, Phase.BOARD, "update_board"),
            (ObjectType.LIST, Phase.LISTS, "update_list"),
            (ObjectType.CARD, Phase.CARDS, "update_card"),
        ],
    )
    def test_routes_by_object_type(self, provider, object_type: ObjectType, phase: Phase, method: str) -> None:
        object_id = {ObjectType.BOARD: "board-1", ObjectType.LIST: "list-todo", ObjectType.CARD: "card-a"}[object_type]
        update = BulkUpdate(
            object_type=object_type,
            object_id=object_id,
            object_name="x",
            fields={"closed": False},
            new_values={"Closed": "false"},
        )
        assert update.phase is phase
        update.apply(provider, ApplyContext(board_id="board-1"))
        assert provider.calls == [(method, object_id, {"closed": False})]

    def test_describe_lists_changed_fields(self) -> None:
        update = BulkUpdate(
            object_type=ObjectType.CARD,
            object_id="card-a",
            object_name="Write spec",
            fields={"desc": "hi", "dueComplete": True},
            new_values={"Description": "hi", "Due Complete": "true"},
        )
        assert update.describe() == '[card] "Write spec" updated: Description, Due Complete'


class TestCatalogue:
    def test_every_action_has_a_phase(self) -> None:
        for action_cls in ALL_ACTIONS:
            assert issubclass(action_cls, Action)
            assert isinstance(action_cls.PHASE, Phase)
