# src/core/state_machine.py — v1
"""ManuscriptStateMachine: the only path through which manuscript state changes.

Ingestor, orchestrator and service facade all call ``transition``; the
transition table rejects illegal moves with IllegalTransition.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from manuscript_pipeline.core.errors import IllegalTransition, NotFound

if TYPE_CHECKING:
    from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"queued", "failed"}),
    "queued": frozenset({"analyzing", "analyzed", "draft", "failed"}),
    # analyzing -> queued is the regeneration exception
    "analyzing": frozenset({"analyzed", "queued", "draft", "failed"}),
    "analyzed": frozenset({"queued"}),
    "failed": frozenset({"queued"}),
}


def can_transition(current: str, target: str) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS.get(current, frozenset())


class ManuscriptStateMachine:
    """Validates and persists manuscript state transitions."""

    def __init__(self, manuscripts: ManuscriptRepository) -> None:
        self._manuscripts = manuscripts

    async def transition(
        self,
        manuscript_id: str,
        target: str,
        expected: str | None = None,
    ) -> str:
        """Move a manuscript to ``target``.

        Args:
            manuscript_id: Manuscript to update.
            target: Desired state.
            expected: If given, the current state must equal it.

        Returns:
            The state before the transition.

        Raises:
            NotFound: Manuscript does not exist.
            IllegalTransition: Move not allowed from the current state.
        """
        manuscript = await self._manuscripts.get(manuscript_id)
        if manuscript is None:
            raise NotFound(f"Manuscript {manuscript_id} not found")

        current = manuscript.status
        if expected is not None and current != expected:
            raise IllegalTransition(
                f"Manuscript {manuscript_id} is {current}, expected {expected}"
            )
        if not can_transition(current, target):
            raise IllegalTransition(
                f"Manuscript {manuscript_id} cannot move from {current} to {target}"
            )
        if current != target:
            await self._manuscripts.set_status(manuscript_id, target)
            logger.info("Manuscript %s: %s -> %s", manuscript_id, current, target)
        return current

    def statement(self, current: str, manuscript_id: str, target: str):
        """Prepared UPDATE for use inside a batch, after validating the move."""
        if not can_transition(current, target):
            raise IllegalTransition(
                f"Manuscript {manuscript_id} cannot move from {current} to {target}"
            )
        return self._manuscripts.set_status_statement(manuscript_id, target)
