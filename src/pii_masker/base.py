"""Detector interface shared by the pattern, user-rule and semantic detectors."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Awaitable, Iterator

from .types import DetectionContext, Match, Trigger


class Detector(ABC):
    """One detection strategy.

    ``detect`` returns either a list of matches or an awaitable of one; only
    the semantic detector suspends.
    """

    id: str = "detector"
    label: str = "Detector"
    description: str = ""

    @abstractmethod
    def detect(
        self,
        text: str,
        context: DetectionContext,
        trigger: Trigger = "auto",
    ) -> list[Match] | Awaitable[list[Match]]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


def find_all(text: str, literal: str) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of every non-overlapping occurrence of literal."""
    if not literal:
        return
    idx = text.find(literal)
    while idx != -1:
        end = idx + len(literal)
        yield idx, end
        idx = text.find(literal, end)
