"""Collaborator interfaces the decision layer reads from.

The decision layer never talks to a database directly; callers inject
objects satisfying these protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class Company:
    name: str


class EntityStore(Protocol):
    async def get_companies(self, product_scope: str) -> Sequence[Company]: ...


class MeetingCountStore(Protocol):
    async def count_meetings(self) -> int: ...


class StaticEntityStore:
    """Fixed company list, used by the CLI and in tests."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = [n for n in names if n.strip()]

    async def get_companies(self, product_scope: str) -> list[Company]:
        return [Company(name=n) for n in self.names]


class StaticMeetingCountStore:
    def __init__(self, count: int = 0) -> None:
        self.count = count

    async def count_meetings(self) -> int:
        return self.count
