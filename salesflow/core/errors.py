from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    code = "pipeline_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(PipelineError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} not found",
            details={"entity": entity, "id": str(entity_id)},
        )
        self.entity = entity
        self.entity_id = entity_id


class IllegalStageTransitionError(PipelineError):
    code = "illegal_stage_transition"
    status_code = 409

    def __init__(
        self,
        entity: str,
        entity_id: Any,
        action: str,
        current_stage: str,
        target_stage: str | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"cannot {action} {entity} in stage {current_stage}",
            details={
                "entity": entity,
                "id": str(entity_id),
                "action": action,
                "current_stage": current_stage,
                "target_stage": target_stage,
            },
        )
        self.entity = entity
        self.action = action
        self.current_stage = current_stage
        self.target_stage = target_stage


class InvalidInputError(PipelineError):
    code = "invalid_input"
    status_code = 422

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, details={"field": field})
        self.field = field


class DuplicateConstraintError(PipelineError):
    code = "duplicate"
    status_code = 409

    def __init__(self, entity: str, field: str, value: Any = None) -> None:
        super().__init__(
            f"{entity} with this {field} already exists",
            details={"entity": entity, "field": field, "value": None if value is None else str(value)},
        )
        self.entity = entity
        self.field = field


class DependentRecordsError(PipelineError):
    code = "dependent_records"
    status_code = 409

    def __init__(self, entity: str, entity_id: Any, dependent: str) -> None:
        super().__init__(
            f"{entity} is still referenced by {dependent}",
            details={"entity": entity, "id": str(entity_id), "dependent": dependent},
        )


class ExhaustedResourceError(PipelineError):
    code = "resource_exhausted"
    status_code = 503


class ExhaustedIdSpaceError(ExhaustedResourceError):
    code = "id_space_exhausted"

    def __init__(self, prefix: str, attempts: int) -> None:
        super().__init__(
            f"could not allocate a unique identifier after {attempts} attempts",
            details={"prefix": prefix, "attempts": attempts},
        )
        self.attempts = attempts


class DependencyUnresolvedError(PipelineError):
    code = "dependency_unresolved"
    status_code = 422

    def __init__(self, entity: str, reference: Any) -> None:
        super().__init__(
            f"{entity} not found: {reference}",
            details={"entity": entity, "reference": str(reference)},
        )
        self.entity = entity
        self.reference = reference


class AmbiguousMatchError(PipelineError):
    code = "ambiguous_match"
    status_code = 422

    def __init__(self, entity: str, reference: str, candidates: list[str]) -> None:
        super().__init__(
            f"{entity} reference '{reference}' matches {len(candidates)} records",
            details={"entity": entity, "reference": reference, "candidates": candidates},
        )
        self.candidates = candidates
