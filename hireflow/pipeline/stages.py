"""
Stage definitions and stage-reference resolution.

Resolution never decides on its own what happens to an unknown stage: it
returns a StageResolution and the caller applies a StagePolicy. FALLBACK
keeps the product's historical behaviour (first-defined stage), REJECT
raises UnknownStageError.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from hireflow.errors import UnknownStageError
from hireflow.models.domain.campaign_domain import Stage

DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(id="sourced", name="Sourced", instructions="Initial candidate sourcing", order=1, color="blue"),
    Stage(id="screening", name="Screening", instructions="Phone/video screening call", order=2, color="yellow"),
    Stage(id="interview", name="Interview", instructions="Technical interview", order=3, color="purple"),
    Stage(id="hired", name="Hired", instructions="Successfully hired", order=4, color="green"),
    Stage(id="rejected", name="Rejected", instructions="Not selected", order=5, color="red"),
)


def default_stages() -> list[Stage]:
    """Fresh copies of the default pipeline, safe to attach to a new campaign."""
    return [stage.model_copy() for stage in DEFAULT_STAGES]


class StagePolicy(str, Enum):
    FALLBACK = "fallback"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class StageResolution:
    """Outcome of looking up a stage reference: exactly one of stage/error is set."""

    reference: str
    stage: Stage | None = None
    error: UnknownStageError | None = None

    @property
    def ok(self) -> bool:
        return self.stage is not None

    def unwrap(self, stages: Sequence[Stage], policy: StagePolicy) -> Stage:
        """Return the resolved stage, or apply the policy for an unknown reference."""
        if self.stage is not None:
            return self.stage
        if policy is StagePolicy.REJECT or not stages:
            raise self.error or UnknownStageError(self.reference)
        return stages[0]


def resolve_stage(stages: Sequence[Stage], stage_id: str | None) -> StageResolution:
    """Look a stage up by id."""
    reference = stage_id or ""
    for stage in stages:
        if stage.id == reference:
            return StageResolution(reference=reference, stage=stage)
    return StageResolution(reference=reference, error=UnknownStageError(reference))


def resolve_stage_by_name(stages: Sequence[Stage], name: str | None) -> StageResolution:
    """Look a stage up by display name, case-insensitively."""
    reference = (name or "").strip()
    lowered = reference.lower()
    for stage in stages:
        if stage.name.lower() == lowered:
            return StageResolution(reference=reference, stage=stage)
    return StageResolution(reference=reference, error=UnknownStageError(reference))
