"""Stage evidence table.

A skill directory moves through a fixed, ordered set of stages. Detectable
stages leave evidence files behind; a stage counts as reached only when all
of its evidence exists and every earlier detectable stage was reached too.

Directory layout (relative to ``{workspace}/{skill_name}/``)::

    context/research-plan.md      stage 0 (research)
    context/clarifications.md     stage 0 (research)
    context/decisions.md          stage 4 (decisions)
    SKILL.md                      stage 5 (build, terminal artifact)
    references/                   stage 5 cleanup
    context/agent-validation-log.md, context/test-skill.md,
    context/companion-skills.md   stage 6 (validation, cleanup only)

Stages 1-3 are review or in-place edit steps without a unique artifact.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

TERMINAL_ARTIFACT = "SKILL.md"


@dataclass(frozen=True)
class StageDefinition:
    """Evidence and cleanup paths of one workflow stage."""

    stage: int
    name: str
    evidence: Tuple[str, ...] = ()
    cleanup: Tuple[str, ...] = ()  # extra paths removed with the stage
    detectable: bool = True

    def owned_paths(self) -> Tuple[str, ...]:
        """Every relative path deleted when this stage is rolled back."""
        return self.evidence + self.cleanup

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageDefinition":
        evidence = tuple(data.get("evidence") or ())
        detectable = bool(data.get("detectable", bool(evidence)))
        if detectable and not evidence:
            raise ValueError(f"Detectable stage {data.get('stage')} needs at least one evidence path")
        return cls(
            stage=int(data["stage"]),
            name=str(data.get("name") or f"stage-{data['stage']}"),
            evidence=evidence,
            cleanup=tuple(data.get("cleanup") or ()),
            detectable=detectable,
        )


SKILL_STAGES: Tuple[StageDefinition, ...] = (
    StageDefinition(
        stage=0,
        name="research",
        evidence=("context/research-plan.md", "context/clarifications.md"),
    ),
    StageDefinition(
        stage=4,
        name="decisions",
        evidence=("context/decisions.md",),
    ),
    StageDefinition(
        stage=5,
        name="build",
        evidence=(TERMINAL_ARTIFACT,),
        cleanup=("references",),
    ),
    StageDefinition(
        stage=6,
        name="validation",
        cleanup=(
            "context/agent-validation-log.md",
            "context/test-skill.md",
            "context/companion-skills.md",
        ),
        detectable=False,
    ),
)


@dataclass
class StageTable:
    """Ordered stage definitions with lookup helpers."""

    stages: Sequence[StageDefinition] = field(default_factory=lambda: SKILL_STAGES)

    def __post_init__(self):
        ordered = sorted(self.stages, key=lambda s: s.stage)
        seen = set()
        for definition in ordered:
            if definition.stage in seen:
                raise ValueError(f"Duplicate stage {definition.stage}")
            seen.add(definition.stage)
        if not any(s.detectable for s in ordered):
            raise ValueError("Stage table needs at least one detectable stage")
        self.stages = tuple(ordered)

    @property
    def detectable(self) -> List[StageDefinition]:
        return [s for s in self.stages if s.detectable]

    @property
    def detectable_ids(self) -> List[int]:
        return [s.stage for s in self.detectable]

    @property
    def terminal_stage(self) -> int:
        """Highest detectable stage; its evidence includes the terminal artifact."""
        return self.detectable[-1].stage

    @property
    def terminal_artifact(self) -> str:
        return self.detectable[-1].evidence[-1]

    def last_detectable_at_or_below(self, stage: Optional[int]) -> Optional[int]:
        """Map a recorded stage onto the detectable stage it implies."""
        if stage is None:
            return None
        candidates = [s for s in self.detectable_ids if s <= stage]
        return max(candidates) if candidates else None

    def beyond(self, stage: Optional[int]) -> List[StageDefinition]:
        """Stages strictly greater than ``stage``; all stages for None."""
        if stage is None:
            return list(self.stages)
        return [s for s in self.stages if s.stage > stage]

    def evidence_paths(self) -> List[str]:
        paths: List[str] = []
        for definition in self.detectable:
            paths.extend(definition.evidence)
        return paths


__all__ = ["StageDefinition", "StageTable", "SKILL_STAGES", "TERMINAL_ARTIFACT"]
