"""Owned, ordered sequence of stages with O(1) neighbour lookup."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TypeVar

from stagekit.stage_types import Stage

S = TypeVar("S", bound=Stage)


class StageChain:
    def __init__(self, stages: Iterable[Stage] = ()) -> None:
        self._stages: list[Stage] = []
        self._by_name: dict[str, Stage] = {}
        for stage in stages:
            self.append(stage)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __contains__(self, stage: object) -> bool:
        return isinstance(stage, Stage) and self._owns(stage)

    def _owns(self, stage: Stage) -> bool:
        index = stage._index
        return index is not None and index < len(self._stages) and self._stages[index] is stage

    def _index_of(self, stage: Stage) -> int:
        if not self._owns(stage):
            raise LookupError(f"Stage {stage.name} does not belong to this chain")
        return stage.index

    def append(self, stage: Stage) -> Stage:
        if not isinstance(stage, Stage):
            raise TypeError(f"StageChain accepts Stage instances (type={type(stage).__name__})")
        if stage.name in self._by_name:
            raise ValueError(f"Duplicate stage name: {stage.name}")
        stage._attach(self, len(self._stages))
        self._stages.append(stage)
        self._by_name[stage.name] = stage
        return stage

    def get(self, name: str) -> Stage:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown stage: {name}") from None

    def names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def prev(self, stage: Stage) -> Stage | None:
        index = self._index_of(stage)
        return self._stages[index - 1] if index > 0 else None

    def next(self, stage: Stage) -> Stage | None:
        index = self._index_of(stage)
        return self._stages[index + 1] if index + 1 < len(self._stages) else None

    def prev_of_kind(self, stage: Stage, kind: type[S]) -> S | None:
        index = self._index_of(stage)
        for candidate in reversed(self._stages[:index]):
            if isinstance(candidate, kind):
                return candidate
        return None

    def next_of_kind(self, stage: Stage, kind: type[S]) -> S | None:
        index = self._index_of(stage)
        for candidate in self._stages[index + 1 :]:
            if isinstance(candidate, kind):
                return candidate
        return None
