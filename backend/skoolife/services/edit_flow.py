"""
Edit / delete confirmation flow for calendar occurrences.

Editing or deleting one occurrence of a recurring series needs a choice
between "this occurrence" and "the whole series". The flow is a small
state machine:

    edit --submit-edit (recurring)--> confirm-edit --confirm-*--> edit + update
    edit --submit-delete (recurring)--> confirm-delete --confirm-*--> edit + delete
    edit --submit-* (standalone)--> edit + mutation on this occurrence
    confirm-* --back--> edit

Every mutation that leaves a confirm state resets the flow to `edit` with
nothing pending.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DialogMode(str, Enum):
    EDIT = "edit"
    CONFIRM_DELETE = "confirm-delete"
    CONFIRM_EDIT = "confirm-edit"


class DialogAction(str, Enum):
    SUBMIT_EDIT = "submit-edit"
    SUBMIT_DELETE = "submit-delete"
    CONFIRM_THIS = "confirm-this"
    CONFIRM_SERIES = "confirm-series"
    BACK = "back"


class MutationScope(str, Enum):
    THIS = "this"
    SERIES = "series"


class MutationKind(str, Enum):
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Mutation:
    """A write the caller must perform once the flow resolves."""

    kind: MutationKind
    scope: MutationScope
    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DialogState:
    mode: DialogMode = DialogMode.EDIT
    pending: dict[str, Any] | None = None


class InvalidTransition(ValueError):
    """Raised for an action that makes no sense in the current mode."""


INITIAL = DialogState()

_CONFIRM_SCOPES = {
    DialogAction.CONFIRM_THIS: MutationScope.THIS,
    DialogAction.CONFIRM_SERIES: MutationScope.SERIES,
}


def confirm_action(scope: MutationScope) -> DialogAction:
    """The confirm action that picks `scope`."""
    if scope is MutationScope.SERIES:
        return DialogAction.CONFIRM_SERIES
    return DialogAction.CONFIRM_THIS


def transition(
    state: DialogState,
    action: DialogAction,
    *,
    recurring: bool,
    values: dict[str, Any] | None = None,
) -> tuple[DialogState, Mutation | None]:
    """Apply `action` to `state`; return the new state and the mutation to run, if any."""
    if action is DialogAction.BACK:
        return INITIAL, None

    if state.mode is DialogMode.EDIT:
        if action is DialogAction.SUBMIT_EDIT:
            if recurring:
                return DialogState(DialogMode.CONFIRM_EDIT, dict(values or {})), None
            return INITIAL, Mutation(MutationKind.UPDATE, MutationScope.THIS, dict(values or {}))
        if action is DialogAction.SUBMIT_DELETE:
            if recurring:
                return DialogState(DialogMode.CONFIRM_DELETE), None
            return INITIAL, Mutation(MutationKind.DELETE, MutationScope.THIS)
        raise InvalidTransition(f"{action.value} is not allowed in {state.mode.value} mode")

    scope = _CONFIRM_SCOPES.get(action)
    if scope is None:
        raise InvalidTransition(f"{action.value} is not allowed in {state.mode.value} mode")

    if state.mode is DialogMode.CONFIRM_EDIT:
        return INITIAL, Mutation(MutationKind.UPDATE, scope, dict(state.pending or {}))
    return INITIAL, Mutation(MutationKind.DELETE, scope)
