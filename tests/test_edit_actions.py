"""Tests for edit_actions.py: the EditOff/EditOn state machine."""
from __future__ import annotations

import pytest

from edit_actions import EditAction, EditOff, EditOn, EditStateMachine


@pytest.fixture()
def machine():
    return EditStateMachine()


class TestToggle:
    def test_starts_off(self, machine):
        assert machine.state == EditOff()
        assert not machine.is_edit_mode
        assert machine.action == EditAction.IDLE

    def test_toggle_on_and_off(self, machine):
        assert machine.toggle() is True
        assert machine.state == EditOn()
        assert machine.toggle() is False
        assert machine.state == EditOff()

    def test_turning_off_drops_selections(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_DELETE)
        machine.select_for_deletion("h1")
        machine.disable()
        assert machine.pending_deletion_id is None
        assert machine.subject_id is None

    def test_enable_keeps_current_action(self, machine):
        machine.set_action(EditAction.DRAWING)
        machine.enable()
        assert machine.action == EditAction.DRAWING


class TestSetAction:
    def test_set_action_turns_edit_mode_on(self, machine):
        machine.set_action(EditAction.DRAWING)
        assert machine.is_edit_mode
        assert machine.accepts_drawing

    def test_unknown_action(self, machine):
        with pytest.raises(ValueError):
            machine.set_action("painting")

    def test_editing_needs_subject(self, machine):
        with pytest.raises(ValueError):
            machine.set_action(EditAction.EDITING)

    def test_switching_drops_pending_deletion(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_DELETE)
        machine.select_for_deletion("h1")
        machine.set_action(EditAction.DRAWING)
        assert machine.pending_deletion_id is None

    def test_labels_cover_all_actions(self):
        assert set(EditAction.LABELS) == set(EditAction.ALL)


class TestDeletionSelection:
    def test_select_and_toggle_off(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_DELETE)
        assert machine.select_for_deletion("h1") == "h1"
        assert machine.pending_deletion_id == "h1"
        assert machine.select_for_deletion("h1") is None
        assert machine.pending_deletion_id is None

    def test_select_other_replaces(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_DELETE)
        machine.select_for_deletion("h1")
        assert machine.select_for_deletion("h2") == "h2"

    def test_ignored_in_other_actions(self, machine):
        machine.set_action(EditAction.DRAWING)
        assert machine.select_for_deletion("h1") is None
        assert machine.pending_deletion_id is None

    def test_clear_selection(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_DELETE)
        machine.select_for_deletion("h1")
        machine.clear_selection()
        assert machine.pending_deletion_id is None
        assert machine.action == EditAction.SELECTING_FOR_DELETE


class TestEditing:
    def test_begin_from_select_returns_there(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_EDIT)
        machine.begin_editing("h1")
        assert machine.action == EditAction.EDITING
        assert machine.subject_id == "h1"
        machine.finish_editing()
        assert machine.action == EditAction.SELECTING_FOR_EDIT
        assert machine.subject_id is None

    def test_begin_from_idle_returns_to_idle(self, machine):
        machine.enable()
        machine.begin_editing("h1")
        machine.finish_editing()
        assert machine.state == EditOn(EditAction.IDLE)

    def test_switching_subject_keeps_return_action(self, machine):
        machine.set_action(EditAction.SELECTING_FOR_EDIT)
        machine.begin_editing("h1")
        machine.begin_editing("h2")
        assert machine.subject_id == "h2"
        machine.finish_editing()
        assert machine.action == EditAction.SELECTING_FOR_EDIT

    def test_empty_subject(self, machine):
        with pytest.raises(ValueError):
            machine.begin_editing("")

    def test_finish_outside_editing_is_noop(self, machine):
        machine.set_action(EditAction.DRAWING)
        machine.finish_editing()
        assert machine.action == EditAction.DRAWING


class TestListeners:
    def test_notified_on_change_only(self, machine):
        seen = []
        machine.add_listener(seen.append)
        machine.set_action(EditAction.DRAWING)
        machine.set_action(EditAction.DRAWING)
        machine.reset()
        assert seen == [EditOn(EditAction.DRAWING), EditOff()]
