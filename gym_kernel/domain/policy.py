"""
Level compatibility policy.

Decides whether a client of one training level may join a plan of another.
The table is external configuration (``KernelSettings.level_policy``); the
default lets a client join plans of its own level or higher.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from gym_kernel.domain.values import TrainingLevel


@dataclass(frozen=True)
class LevelPolicy:
    allowed: Mapping[TrainingLevel, frozenset[TrainingLevel]]

    @classmethod
    def default(cls) -> "LevelPolicy":
        return cls(
            {
                client: frozenset(p for p in TrainingLevel if p.rank >= client.rank)
                for client in TrainingLevel
            }
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, tuple[str, ...] | list[str]]) -> "LevelPolicy":
        """Build from the settings shape ``{"principiante": ["principiante", ...]}``."""
        return cls(
            {
                TrainingLevel(client): frozenset(TrainingLevel(p) for p in plans)
                for client, plans in mapping.items()
            }
        )

    def is_compatible(
        self,
        client_level: TrainingLevel | str | None,
        plan_level: TrainingLevel | str,
    ) -> bool:
        """A missing client level counts as principiante."""
        client = TrainingLevel(client_level or TrainingLevel.PRINCIPIANTE)
        return TrainingLevel(plan_level) in self.allowed.get(client, frozenset())
