"""Workflow session state machine.

A session keeps one draft payload per workflow kind and tracks which kind the
user has open and which step of it they are on. Drafts of inactive kinds are
kept, so switching back and forth does not lose input.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from virtualroom.models.job import JobKind
from virtualroom.models.payloads import PAYLOAD_TYPES, JobRequest, WorkflowPayload, empty_payload
from virtualroom.services.exceptions import WorkflowValidationError

logger = structlog.get_logger(__name__)

# Steps per workflow, including the final "create" step
TOTAL_STEPS: dict[JobKind, int] = {
    JobKind.CLASSIC_TRY_ON: 3,
    JobKind.PRODUCT_TO_MODEL: 3,
    JobKind.TEXT_TO_FASHION: 2,
    JobKind.AVATAR_CREATION: 4,
}

SNAPSHOT_VERSION = 1


class WorkflowSession:
    """Draft payloads for every workflow kind plus the active kind's step.

    Exactly one kind is active at a time. Operations that take an optional
    ``kind`` default to the active kind.
    """

    def __init__(
        self,
        active_kind: JobKind = JobKind.CLASSIC_TRY_ON,
        payloads: Optional[dict[JobKind, WorkflowPayload]] = None,
        step: int = 1,
    ):
        self._payloads: dict[JobKind, WorkflowPayload] = {
            kind: empty_payload(kind) for kind in JobKind
        }
        for kind, payload in (payloads or {}).items():
            if payload.kind != kind:
                raise ValueError(f"Payload for {kind.value} has kind {payload.kind.value}")
            self._payloads[kind] = payload
        self._active_kind = active_kind
        self._step = min(max(step, 1), TOTAL_STEPS[active_kind])

    @property
    def active_kind(self) -> JobKind:
        return self._active_kind

    @property
    def step(self) -> int:
        return self._step

    @property
    def total_steps(self) -> int:
        return TOTAL_STEPS[self._active_kind]

    def set_active_kind(self, kind: JobKind) -> None:
        """Open a workflow: it becomes active and restarts at step 1.

        The kind's draft payload is left as it was.
        """
        previous = self._active_kind
        self._active_kind = kind
        self._step = 1
        logger.debug("session.kind_changed", from_kind=previous.value, to_kind=kind.value)

    def payload(self, kind: Optional[JobKind] = None) -> WorkflowPayload:
        return self._payloads[kind or self._active_kind]

    def set_field(
        self, group: Optional[str], member: str, value: Any, kind: Optional[JobKind] = None
    ) -> WorkflowPayload:
        """Set one payload field.

        Args:
            group: Exclusive group the member belongs to, or None for a plain field
            member: Payload field name
            value: New value. A non-None value clears the group's other members.
            kind: Workflow to edit (defaults to the active one)

        Returns:
            The updated payload

        Raises:
            UnknownFieldError: Unknown field or group for this workflow
        """
        kind = kind or self._active_kind
        self._payloads[kind] = self._payloads[kind].with_field(group, member, value)
        return self._payloads[kind]

    def next_step(self) -> bool:
        """Advance one step. Returns False (and does nothing) on the last step."""
        if self._step >= self.total_steps:
            return False
        self._step += 1
        return True

    def previous_step(self) -> bool:
        """Go back one step. Returns False (and does nothing) on the first step."""
        if self._step <= 1:
            return False
        self._step -= 1
        return True

    def go_to_step(self, step: int) -> None:
        if not 1 <= step <= self.total_steps:
            raise ValueError(f"Step must be between 1 and {self.total_steps}, got {step}")
        self._step = step

    def progress(self) -> int:
        """Completion percentage of the active workflow, rounded to an integer."""
        return round(self._step / self.total_steps * 100)

    def is_valid(self, kind: Optional[JobKind] = None) -> bool:
        return self.payload(kind).is_valid()

    def missing_requirements(self, kind: Optional[JobKind] = None) -> list[str]:
        return self.payload(kind).missing_requirements()

    def build_request(self, kind: Optional[JobKind] = None) -> JobRequest:
        """Turn a complete draft into a request for the job repository.

        Raises:
            WorkflowValidationError: The draft is incomplete. Nothing is sent.
        """
        kind = kind or self._active_kind
        payload = self._payloads[kind]
        missing = payload.missing_requirements()
        if missing:
            raise WorkflowValidationError(kind, missing)
        return JobRequest(kind=kind, payload=payload)

    def reset(self, kind: Optional[JobKind] = None) -> None:
        """Restore a workflow's empty draft. The active workflow also returns to step 1."""
        kind = kind or self._active_kind
        self._payloads[kind] = empty_payload(kind)
        if kind == self._active_kind:
            self._step = 1
        logger.debug("session.reset", kind=kind.value)

    def snapshot(self) -> dict[str, Any]:
        """Serialize the session to JSON-compatible data."""
        return {
            "version": SNAPSHOT_VERSION,
            "active_kind": self._active_kind.value,
            "step": self._step,
            "payloads": {
                kind.value: payload.model_dump(mode="json", exclude={"kind"})
                for kind, payload in self._payloads.items()
            },
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "WorkflowSession":
        """Rebuild a session from ``snapshot()`` output.

        Unknown kinds are skipped and a draft that no longer validates is
        replaced by an empty one, so an old snapshot never blocks startup.
        """
        payloads: dict[JobKind, WorkflowPayload] = {}
        for raw_kind, fields in (data.get("payloads") or {}).items():
            try:
                kind = JobKind(raw_kind)
                payloads[kind] = PAYLOAD_TYPES[kind].model_validate(fields or {})
            except (ValueError, ValidationError) as e:
                logger.warning(
                    "session.draft_discarded",
                    kind=raw_kind,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )

        try:
            active_kind = JobKind(data.get("active_kind", JobKind.CLASSIC_TRY_ON.value))
        except ValueError:
            active_kind = JobKind.CLASSIC_TRY_ON

        step = data.get("step", 1)
        if not isinstance(step, int):
            step = 1
        return cls(active_kind=active_kind, payloads=payloads, step=step)
