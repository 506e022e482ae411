from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from vm_bootstrap.graph.expressions import Block, iter_references


@dataclass
class Resource:
    """One declared resource: ``resource "<type>" "<name>" { ... }``."""
    type: str
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    blocks: List[Block] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def address(self) -> str:
        return f"{self.type}.{self.name}"

    def references(self) -> Set[str]:
        """Addresses read from attributes and nested blocks (implicit edges)."""
        refs = set(iter_references(self.attributes))
        for b in self.blocks:
            refs.update(b.references())
        refs.discard(self.address)
        return refs

    def dependencies(self) -> Set[str]:
        """Explicit ``depends_on`` plus implicit references."""
        return set(self.depends_on) | self.references()


@dataclass
class Output:
    name: str
    value: Any
    description: str = ""

    def references(self) -> Set[str]:
        return set(iter_references(self.value))
