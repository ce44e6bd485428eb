"""Guardian relationships: who may act for whom and who pays together."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence, Tuple

from .config import TripConfig, freeze_guardians
from .models import FamilyGroup

FAMILY_LABEL = "family"
JUST_YOU_LABEL = "just you"


def unique_in_order(names: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result


class FamilyResolver:
    """Answer family questions from a static child -> guardians table.

    Children are always enumerated in the declared order of the table, never
    in the order guardians happen to be looked up.  That order shows up in the
    "act for" picker and in the family quick actions.
    """

    __slots__ = ("_guardians",)

    def __init__(self, guardians: Mapping[str, Sequence[str]]) -> None:
        if isinstance(guardians, MappingProxyType):
            self._guardians: Mapping[str, Tuple[str, ...]] = guardians
        else:
            self._guardians = freeze_guardians(guardians)

    @classmethod
    def from_config(cls, config: TripConfig) -> "FamilyResolver":
        return cls(config.guardians)

    @property
    def guardians(self) -> Mapping[str, Tuple[str, ...]]:
        return self._guardians

    def guardians_of(self, child: str) -> Tuple[str, ...]:
        return self._guardians.get(child, ())

    def children_of(self, person: str) -> List[str]:
        if not person:
            return []
        return [child for child, names in self._guardians.items() if person in names]

    def managed_people(self, person: str) -> List[str]:
        """Return ``person`` followed by every child they guard."""

        person = (person or "").strip()
        if not person:
            return []
        return unique_in_order([person, *self.children_of(person)])

    def can_act_for(self, actor: str, person: str) -> bool:
        return bool(person) and person in self.managed_people(actor)

    def family_group_for_costs(self, person: str) -> FamilyGroup:
        """Return the people whose costs are shown together with ``person``'s.

        That is the person, the other guardians of their children and the
        children themselves.  It is a display grouping only.
        """

        person = (person or "").strip()
        if not person:
            return FamilyGroup(label=JUST_YOU_LABEL, people=[])
        children = self.children_of(person)
        co_guardians = unique_in_order(
            name for child in children for name in self.guardians_of(child) if name != person
        )
        people = unique_in_order([person, *co_guardians, *children])
        label = FAMILY_LABEL if children or co_guardians else JUST_YOU_LABEL
        return FamilyGroup(label=label, people=people)


__all__ = ["FAMILY_LABEL", "JUST_YOU_LABEL", "FamilyResolver", "unique_in_order"]
