"""Generic diff of a current source listing against known state.

Every sync engine uses ``diff``; only the item type, the key function and
the signature function differ per source.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterable, Mapping, TypeVar

T = TypeVar("T")


@dataclass
class WorkPlan(Generic[T]):
    """Classification of source items against known state."""

    to_add: list[T] = field(default_factory=list)
    to_update: list[T] = field(default_factory=list)
    to_delete: list[Hashable] = field(default_factory=list)
    unchanged: list[T] = field(default_factory=list)

    @property
    def pending(self) -> list[T]:
        return self.to_add + self.to_update

    def summary(self) -> str:
        return (
            f"{len(self.to_add)} new, {len(self.to_update)} changed, "
            f"{len(self.to_delete)} deleted, {len(self.unchanged)} unchanged"
        )


def diff(
    current: Iterable[T],
    known: Mapping[Hashable, Any],
    key: Callable[[T], Hashable],
    signature: Callable[[T], Any],
) -> WorkPlan[T]:
    """Classify items as new, changed, unchanged; known keys not seen are deletions.

    Args:
        current: Items enumerated from the source right now
        known: Map of key to the last recorded signature
        key: Stable identity of an item within its source
        signature: Source-defined change fingerprint of an item

    Returns:
        WorkPlan: to_add / to_update / unchanged items and to_delete keys
    """
    plan: WorkPlan[T] = WorkPlan()
    seen: set[Hashable] = set()

    for item in current:
        item_key = key(item)
        seen.add(item_key)
        if item_key not in known:
            plan.to_add.append(item)
        elif known[item_key] != signature(item):
            plan.to_update.append(item)
        else:
            plan.unchanged.append(item)

    plan.to_delete = [known_key for known_key in known if known_key not in seen]
    return plan
