"""Tests for the edit/delete confirmation state machine."""

import pytest

from skoolife.services.edit_flow import (
    INITIAL,
    DialogAction,
    DialogMode,
    DialogState,
    InvalidTransition,
    MutationKind,
    MutationScope,
    confirm_action,
    transition,
)

VALUES = {"title": "Cours de maths", "start_time": "14:00", "end_time": "15:30"}


class TestSubmitFromEdit:
    def test_standalone_edit_mutates_immediately(self):
        state, mutation = transition(INITIAL, DialogAction.SUBMIT_EDIT, recurring=False, values=VALUES)

        assert state == INITIAL
        assert mutation.kind is MutationKind.UPDATE
        assert mutation.scope is MutationScope.THIS
        assert mutation.values == VALUES

    def test_standalone_delete_mutates_immediately(self):
        state, mutation = transition(INITIAL, DialogAction.SUBMIT_DELETE, recurring=False)

        assert state == INITIAL
        assert mutation.kind is MutationKind.DELETE
        assert mutation.scope is MutationScope.THIS

    def test_recurring_edit_asks_for_confirmation(self):
        state, mutation = transition(INITIAL, DialogAction.SUBMIT_EDIT, recurring=True, values=VALUES)

        assert mutation is None
        assert state.mode is DialogMode.CONFIRM_EDIT
        assert state.pending == VALUES

    def test_recurring_delete_asks_for_confirmation(self):
        state, mutation = transition(INITIAL, DialogAction.SUBMIT_DELETE, recurring=True)

        assert mutation is None
        assert state.mode is DialogMode.CONFIRM_DELETE
        assert state.pending is None

    def test_pending_values_are_copied(self):
        values = dict(VALUES)
        state, _ = transition(INITIAL, DialogAction.SUBMIT_EDIT, recurring=True, values=values)
        values["title"] = "changed"

        assert state.pending["title"] == "Cours de maths"


class TestConfirmStates:
    @pytest.mark.parametrize(
        "action,scope",
        [
            (DialogAction.CONFIRM_THIS, MutationScope.THIS),
            (DialogAction.CONFIRM_SERIES, MutationScope.SERIES),
        ],
    )
    def test_confirm_edit_fires_update_with_pending_values(self, action, scope):
        confirm = DialogState(DialogMode.CONFIRM_EDIT, dict(VALUES))
        state, mutation = transition(confirm, action, recurring=True)

        assert state == INITIAL
        assert mutation.kind is MutationKind.UPDATE
        assert mutation.scope is scope
        assert mutation.values == VALUES

    @pytest.mark.parametrize(
        "action,scope",
        [
            (DialogAction.CONFIRM_THIS, MutationScope.THIS),
            (DialogAction.CONFIRM_SERIES, MutationScope.SERIES),
        ],
    )
    def test_confirm_delete_fires_delete(self, action, scope):
        state, mutation = transition(DialogState(DialogMode.CONFIRM_DELETE), action, recurring=True)

        assert state == INITIAL
        assert mutation.kind is MutationKind.DELETE
        assert mutation.scope is scope

    def test_back_discards_pending_edit(self):
        confirm = DialogState(DialogMode.CONFIRM_EDIT, dict(VALUES))
        state, mutation = transition(confirm, DialogAction.BACK, recurring=True)

        assert mutation is None
        assert state == INITIAL
        assert state.pending is None

    def test_back_from_confirm_delete(self):
        state, mutation = transition(
            DialogState(DialogMode.CONFIRM_DELETE), DialogAction.BACK, recurring=True
        )

        assert mutation is None
        assert state.mode is DialogMode.EDIT


class TestInvalidTransitions:
    def test_confirm_from_edit_is_rejected(self):
        with pytest.raises(InvalidTransition):
            transition(INITIAL, DialogAction.CONFIRM_SERIES, recurring=True)

    def test_submit_from_confirm_state_is_rejected(self):
        with pytest.raises(InvalidTransition):
            transition(
                DialogState(DialogMode.CONFIRM_DELETE), DialogAction.SUBMIT_EDIT, recurring=True
            )


def test_confirm_action_maps_scope():
    assert confirm_action(MutationScope.THIS) is DialogAction.CONFIRM_THIS
    assert confirm_action(MutationScope.SERIES) is DialogAction.CONFIRM_SERIES
