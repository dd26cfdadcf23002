from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from stagekit.chain import StageChain

S = TypeVar("S", bound="Stage")


class Stage(ABC):
    """One node of an ordered build plan producing one cacheable layer.

    A stage never owns its chain: it keeps a weak reference plus its index,
    which the chain assigns on `StageChain.append`.
    """

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise TypeError("Stage.name must be a non-empty string")
        self.name = name.strip()
        self._chain_ref: weakref.ReferenceType[StageChain] | None = None
        self._index: int | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, index={self._index})"

    def _attach(self, chain: "StageChain", index: int) -> None:
        if self._chain_ref is not None:
            raise ValueError(f"Stage {self.name} already belongs to a chain")
        self._chain_ref = weakref.ref(chain)
        self._index = index

    @property
    def chain(self) -> "StageChain":
        chain = self._chain_ref() if self._chain_ref is not None else None
        if chain is None:
            raise LookupError(f"Stage {self.name} is not attached to a live chain")
        return chain

    @property
    def index(self) -> int:
        if self._index is None:
            raise LookupError(f"Stage {self.name} is not attached to a chain")
        return self._index

    @property
    def prev_stage(self) -> "Stage | None":
        return self.chain.prev(self)

    @property
    def next_stage(self) -> "Stage | None":
        return self.chain.next(self)

    def prev_stage_of(self, kind: type[S]) -> S | None:
        return self.chain.prev_of_kind(self, kind)

    def next_stage_of(self, kind: type[S]) -> S | None:
        return self.chain.next_of_kind(self, kind)

    @abstractmethod
    def signature(self) -> str:
        ...
