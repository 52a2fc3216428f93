"""Stage machines for quotations and tickets.

A transition is a check-and-set: the row is expected to be locked by the
caller, and the write is a conditional ``UPDATE ... WHERE stage = :current``
so two racing requests cannot both move the same row out of one stage.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from salesflow.core.errors import IllegalStageTransitionError
from salesflow.metrics import observe_stage_transition

logger = logging.getLogger("salesflow.stages")


@dataclass(frozen=True, slots=True)
class Transition:
    action: str
    sources: frozenset[str]
    target: str


class StageMachine:
    def __init__(
        self,
        entity: str,
        column: str,
        states: Iterable[str],
        initial: str,
        terminal: Iterable[str],
        transitions: Iterable[Transition],
    ) -> None:
        self.entity = entity
        self.column = column
        self.states = frozenset(states)
        self.initial = initial
        self.terminal = frozenset(terminal)
        self.transitions = {transition.action: transition for transition in transitions}

    def can(self, action: str, current: str) -> bool:
        transition = self.transitions.get(action)
        return transition is not None and current in transition.sources

    def target_for(self, entity_id: Any, action: str, current: str) -> str:
        transition = self.transitions.get(action)
        if transition is None:
            raise KeyError(f"unknown {self.entity} action {action}")
        if current not in transition.sources:
            observe_stage_transition(self.entity, action, "rejected")
            raise IllegalStageTransitionError(self.entity, entity_id, action, current, transition.target)
        return transition.target

    def apply(self, session: Session, row: Any, action: str, **values: Any) -> str:
        """Move ``row`` along ``action`` and return the stage it left.

        Extra column values are written in the same statement as the stage.
        """
        model = type(row)
        stage_column = getattr(model, self.column)
        current = getattr(row, self.column)
        target = self.target_for(row.id, action, current)

        changes = {self.column: target, **values}
        if hasattr(model, "updated_at"):
            changes["updated_at"] = datetime.now(timezone.utc)

        result = session.execute(
            update(model)
            .where(model.id == row.id, stage_column == current)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            latest = session.scalar(select(stage_column).where(model.id == row.id))
            observe_stage_transition(self.entity, action, "conflict")
            raise IllegalStageTransitionError(self.entity, row.id, action, str(latest), target)

        for key, value in changes.items():
            set_committed_value(row, key, value)

        observe_stage_transition(self.entity, action, "applied")
        logger.info(
            "stage.transition",
            extra={
                "entity": self.entity,
                "entity_id": str(row.id),
                "action": action,
                "from_stage": current,
                "to_stage": target,
            },
        )
        return current


QUOTATION_STAGES = StageMachine(
    entity="quotation",
    column="stage",
    states=("DRAFT", "SENT", "ACCEPTED", "REJECTED", "CONVERTED"),
    initial="DRAFT",
    terminal=("REJECTED", "CONVERTED"),
    transitions=(
        Transition("send", frozenset({"DRAFT"}), "SENT"),
        Transition("accept", frozenset({"SENT"}), "ACCEPTED"),
        Transition("reject", frozenset({"SENT"}), "REJECTED"),
        Transition("convert", frozenset({"ACCEPTED"}), "CONVERTED"),
    ),
)

# approve closes and deny sends the ticket back to work. Only a fresh
# assignment takes a ticket out of CLOSED.
TICKET_STAGES = StageMachine(
    entity="ticket",
    column="status",
    states=("NEW", "IN_PROGRESS", "RESOLVED", "CLOSED"),
    initial="NEW",
    terminal=("CLOSED",),
    transitions=(
        Transition("assign", frozenset({"NEW", "IN_PROGRESS", "RESOLVED", "CLOSED"}), "IN_PROGRESS"),
        Transition("resolve", frozenset({"IN_PROGRESS"}), "RESOLVED"),
        Transition("approve", frozenset({"NEW", "IN_PROGRESS", "RESOLVED"}), "CLOSED"),
        Transition("deny", frozenset({"NEW", "IN_PROGRESS", "RESOLVED"}), "IN_PROGRESS"),
    ),
)
