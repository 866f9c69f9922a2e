"""Apply actions against a provider in dependency order, failing fast."""

import logging
from collections.abc import Callable, Iterable

from boardmd.actions import Action, ApplyContext
from boardmd.errors import BoardmdError, ExecutionError
from boardmd.providers.base import BoardProvider

logger = logging.getLogger(__name__)


def order_actions(actions: Iterable[Action]) -> list[Action]:
    """Group actions by phase, keeping emitted order inside each phase.

    Labels and lists must exist before cards can reference them, and lists
    are repositioned only once every list create/archive has landed.
    """
    return sorted(actions, key=lambda action: action.phase)


def apply_actions(
    actions: Iterable[Action],
    provider: BoardProvider,
    ctx: ApplyContext,
    echo: Callable[[str], None] | None = None,
) -> list[Action]:
    """Apply actions one at a time and return them in applied order.

    The first failure raises ExecutionError; whatever was applied before it
    stays applied and nothing is retried.
    """
    applied: list[Action] = []
    for action in order_actions(actions):
        try:
            action.apply(provider, ctx)
        except BoardmdError as exc:
            logger.error("stopping after %d change(s): %s", len(applied), exc)
            raise ExecutionError(applied, action, exc) from exc
        applied.append(action)
        description = action.describe()
        logger.info("applied: %s", description)
        if echo is not None:
            echo(description)
    return applied
