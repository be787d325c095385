"""
edit_actions.py

Edit mode and the active edit action, held as one tagged state.

``EditOff`` means the map is only navigable.  ``EditOn`` carries the active
action plus the selections that only make sense while editing, so a state
such as "edit mode off but a hotspot pending deletion" cannot be built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Union

log = logging.getLogger(__name__)


class EditAction:
    """Edit action names."""
    IDLE = "idle"
    DRAWING = "drawing"
    SELECTING_FOR_DELETE = "selecting-for-delete"
    SELECTING_FOR_EDIT = "selecting-for-edit"
    EDITING = "editing"
    CHANGING_ROOT_IMAGE = "changing-root-image"

    ALL = (IDLE, DRAWING, SELECTING_FOR_DELETE, SELECTING_FOR_EDIT, EDITING, CHANGING_ROOT_IMAGE)

    # Button labels for the edit toolbar
    LABELS = {
        IDLE: "Idle",
        DRAWING: "Add Hotspot",
        SELECTING_FOR_DELETE: "Delete Hotspot",
        SELECTING_FOR_EDIT: "Edit Hotspot",
        EDITING: "Editing",
        CHANGING_ROOT_IMAGE: "Change Root Image",
    }


@dataclass(frozen=True)
class EditOff:
    """Edit mode disabled."""

    @property
    def action(self) -> str:
        return EditAction.IDLE


@dataclass(frozen=True)
class EditOn:
    """Edit mode enabled.

    Attributes:
        action: One of ``EditAction.ALL``.
        subject_id: Hotspot being edited; set only while ``action`` is EDITING.
        pending_deletion_id: Hotspot selected for deletion, awaiting confirmation.
        return_action: Action restored when editing finishes.
    """
    action: str = EditAction.IDLE
    subject_id: Optional[str] = None
    pending_deletion_id: Optional[str] = None
    return_action: str = EditAction.IDLE


EditState = Union[EditOff, EditOn]
EditListener = Callable[[EditState], None]


class EditStateMachine:
    """Owns the current ``EditState`` and notifies listeners on change."""

    def __init__(self):
        self.state: EditState = EditOff()
        self._listeners: List[EditListener] = []

    def add_listener(self, callback: EditListener) -> None:
        self._listeners.append(callback)

    def _set(self, state: EditState) -> None:
        if state == self.state:
            return
        self.state = state
        log.debug("Edit state: %s", state)
        for cb in list(self._listeners):
            cb(state)

    # ---- queries ----

    @property
    def is_edit_mode(self) -> bool:
        return isinstance(self.state, EditOn)

    @property
    def action(self) -> str:
        return self.state.action

    @property
    def accepts_drawing(self) -> bool:
        return self.action == EditAction.DRAWING

    @property
    def subject_id(self) -> Optional[str]:
        return self.state.subject_id if isinstance(self.state, EditOn) else None

    @property
    def pending_deletion_id(self) -> Optional[str]:
        return self.state.pending_deletion_id if isinstance(self.state, EditOn) else None

    # ---- transitions ----

    def set_action(self, action: str) -> None:
        """Switch to ``action``, turning edit mode on if needed.

        Entering EDITING without a subject is not possible here; use
        ``begin_editing``.  Any other switch drops the pending selections.
        """
        if action not in EditAction.ALL:
            raise ValueError(f"Unknown edit action: {action!r}")
        if action == EditAction.EDITING:
            raise ValueError("Use begin_editing() to enter the editing action")
        self._set(EditOn(action=action))

    def enable(self) -> None:
        if not self.is_edit_mode:
            self._set(EditOn())

    def disable(self) -> None:
        self._set(EditOff())

    def toggle(self) -> bool:
        """Flip edit mode; returns the new on/off value."""
        if self.is_edit_mode:
            self.disable()
        else:
            self.enable()
        return self.is_edit_mode

    def begin_editing(self, hotspot_id: str) -> None:
        if not hotspot_id:
            raise ValueError("begin_editing() needs a hotspot id")
        state = self.state
        if isinstance(state, EditOn) and state.action == EditAction.EDITING:
            return_to = state.return_action
        elif state.action == EditAction.SELECTING_FOR_EDIT:
            return_to = EditAction.SELECTING_FOR_EDIT
        else:
            return_to = EditAction.IDLE
        self._set(EditOn(action=EditAction.EDITING, subject_id=hotspot_id, return_action=return_to))

    def finish_editing(self) -> None:
        """Leave EDITING after a commit or cancel."""
        state = self.state
        if not isinstance(state, EditOn) or state.action != EditAction.EDITING:
            return
        self._set(EditOn(action=state.return_action))

    def select_for_deletion(self, hotspot_id: str) -> Optional[str]:
        """Toggle the pending deletion selection; returns the new selection."""
        state = self.state
        if not isinstance(state, EditOn) or state.action != EditAction.SELECTING_FOR_DELETE:
            return None
        new_id = None if state.pending_deletion_id == hotspot_id else hotspot_id
        self._set(replace(state, pending_deletion_id=new_id))
        return new_id

    def clear_selection(self) -> None:
        state = self.state
        if isinstance(state, EditOn) and state.pending_deletion_id is not None:
            self._set(replace(state, pending_deletion_id=None))

    def reset(self) -> None:
        """Back to the initial state; used when a new document is loaded."""
        self._set(EditOff())
