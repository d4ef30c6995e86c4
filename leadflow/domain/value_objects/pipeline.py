"""Pipeline value objects: the ordered stage table of one department."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from leadflow.domain.errors import AlreadyFinalStageError, InvalidStageError
from leadflow.domain.value_objects.enums import Department, StageKind


@dataclass(frozen=True)
class PipelineStage:
    name: str
    description: str
    followup_hours: int
    kind: StageKind = StageKind.OPEN
    next_actions: tuple[str, ...] = ()
    triggers_onboarding: bool = False


@dataclass(frozen=True)
class Pipeline:
    department: Department
    name: str
    stages: tuple[PipelineStage, ...]

    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def stage(self, name: str) -> PipelineStage:
        for s in self.stages:
            if s.name == name:
                return s
        raise InvalidStageError(
            name, self.department.value, f"expected one of {', '.join(self.stage_names())}"
        )

    def first_stage(self) -> PipelineStage:
        return self.stages[0]

    def won_stage(self) -> PipelineStage:
        return self._single(StageKind.WON)

    def lost_stage(self) -> PipelineStage:
        return self._single(StageKind.LOST)

    def track(self, kind: StageKind) -> list[PipelineStage]:
        """Stages reachable by linear advancement from a stage of *kind*.

        The open sales track stops before the closing branches; the won stage
        and post-win stages form a separate onboarding track.
        """
        if kind == StageKind.OPEN:
            return [s for s in self.stages if s.kind == StageKind.OPEN]
        if kind in (StageKind.WON, StageKind.POST_WIN):
            return [s for s in self.stages if s.kind in (StageKind.WON, StageKind.POST_WIN)]
        return []

    def next_stage(self, current: str) -> PipelineStage:
        stage = self.stage(current)
        track = self.track(stage.kind)
        names = [s.name for s in track]
        if stage.name not in names or names.index(stage.name) == len(names) - 1:
            raise AlreadyFinalStageError(stage.name)
        return track[names.index(stage.name) + 1]

    def followup_at(self, stage: str, now: datetime) -> datetime:
        return now + timedelta(hours=self.stage(stage).followup_hours)

    def _single(self, kind: StageKind) -> PipelineStage:
        return next(s for s in self.stages if s.kind == kind)
