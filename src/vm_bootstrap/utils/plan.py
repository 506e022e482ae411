from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from rich.table import Table

REPLACE_ACTIONS = {("delete", "create"), ("create", "delete")}


def _kind(actions: Tuple[str, ...]) -> str:
    if actions in REPLACE_ACTIONS:
        return "replace"
    if len(actions) == 1:
        return actions[0]
    raise ValueError(f"Unexpected action combination: {list(actions)}")


@dataclass
class PlanSummary:
    """Per-address actions of a ``terraform show -json`` plan."""
    actions: Dict[str, str] = field(default_factory=dict)

    def count(self, kind: str) -> int:
        return sum(1 for k in self.actions.values() if k == kind)

    @property
    def changed(self) -> Dict[str, str]:
        return {a: k for a, k in self.actions.items() if k not in ("no-op", "read")}

    @property
    def is_noop(self) -> bool:
        return not self.changed

    @property
    def replaced(self) -> Set[str]:
        return {a for a, k in self.actions.items() if k == "replace"}

    def untouched(self, addresses: Iterable[str]) -> bool:
        """True when none of ``addresses`` is created, updated, replaced or deleted."""
        changed = self.changed
        return not any(a in changed for a in addresses)

    def as_table(self) -> Table:
        table = Table(title="Planned changes")
        table.add_column("Resource")
        table.add_column("Action")
        for address, kind in self.changed.items():
            table.add_row(address, kind)
        return table

    def headline(self) -> str:
        return (
            f"{self.count('create')} to add, {self.count('update')} to change, "
            f"{self.count('replace')} to replace, {self.count('delete')} to destroy"
        )


def summarize_plan(plan_json: dict) -> PlanSummary:
    summary = PlanSummary()
    for rc in plan_json.get("resource_changes", []):
        actions = tuple(rc.get("change", {}).get("actions", ["no-op"]))
        summary.actions[rc["address"]] = _kind(actions)
    return summary


def replacement_scope(graph, address: str) -> List[str]:
    """Resources recreated or re-bound when ``address`` is replaced, in creation order."""
    scope = graph.downstream(address) | {address}
    return [a for a in graph.topological_order() if a in scope]
