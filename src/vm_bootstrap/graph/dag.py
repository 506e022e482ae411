from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from vm_bootstrap.graph.resources import Output, Resource

log = logging.getLogger(__name__)


class GraphError(ValueError):
    pass


class CycleError(GraphError):
    def __init__(self, addresses: Iterable[str]):
        self.addresses = sorted(addresses)
        super().__init__(f"Dependency cycle between: {', '.join(self.addresses)}")


class ResourceGraph:
    """Directed acyclic graph of resources.

    Edges point from a dependency to its dependent. They come from explicit
    ``depends_on`` lists and from attribute references, the same way the
    engine infers them when it reads the rendered declarations.
    Declaration order is kept and used to break ties, so every ordering query
    is deterministic.
    """

    def __init__(self, variables: Optional[Dict[str, str]] = None):
        self.variables: Dict[str, str] = dict(variables or {})
        self._resources: Dict[str, Resource] = {}
        self._outputs: Dict[str, Output] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def add(self, resource: Resource) -> Resource:
        if resource.address in self._resources:
            raise GraphError(f"Duplicate resource: {resource.address}")
        self._resources[resource.address] = resource
        return resource

    def add_output(self, output: Output) -> Output:
        if output.name in self._outputs:
            raise GraphError(f"Duplicate output: {output.name}")
        self._outputs[output.name] = output
        return output

    def validate(self) -> None:
        """Check that every edge points to a declared resource and there are no cycles."""
        for r in self._resources.values():
            self._known(r.dependencies(), f"resource {r.address}")
        for o in self._outputs.values():
            self._known(o.references(), f"output {o.name}")
        self.topological_order()

    def _known(self, addresses: Iterable[str], where: str) -> None:
        unknown = sorted(a for a in addresses if a not in self._resources)
        if unknown:
            raise GraphError(f"Unknown reference(s) in {where}: {', '.join(unknown)}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def __contains__(self, address: str) -> bool:
        return address in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def __getitem__(self, address: str) -> Resource:
        try:
            return self._resources[address]
        except KeyError:
            raise GraphError(f"Unknown resource: {address}") from None

    @property
    def resources(self) -> List[Resource]:
        return list(self._resources.values())

    @property
    def outputs(self) -> List[Output]:
        return list(self._outputs.values())

    def addresses(self) -> List[str]:
        return list(self._resources)

    def output(self, name: str) -> Output:
        try:
            return self._outputs[name]
        except KeyError:
            raise GraphError(f"Unknown output: {name}") from None

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------
    def dependencies(self, address: str) -> List[str]:
        deps = self[address].dependencies()
        self._known(deps, f"resource {address}")
        return [a for a in self._resources if a in deps]

    def dependents(self, address: str) -> List[str]:
        self[address]
        return [r.address for r in self._resources.values() if address in r.dependencies()]

    def upstream(self, address: str) -> Set[str]:
        """Every resource that must exist before ``address`` can be created."""
        seen: Set[str] = set()
        stack = list(self.dependencies(address))
        while stack:
            a = stack.pop()
            if a in seen:
                continue
            seen.add(a)
            stack.extend(self.dependencies(a))
        return seen

    def downstream(self, address: str) -> Set[str]:
        """Every resource affected when ``address`` is replaced."""
        seen: Set[str] = set()
        stack = list(self.dependents(address))
        while stack:
            a = stack.pop()
            if a in seen:
                continue
            seen.add(a)
            stack.extend(self.dependents(a))
        return seen

    def output_dependencies(self, name: str) -> Set[str]:
        direct = self.output(name).references()
        self._known(direct, f"output {name}")
        closure = set(direct)
        for a in direct:
            closure |= self.upstream(a)
        return closure

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------
    def levels(self) -> List[List[str]]:
        """Creation waves (Kahn's algorithm, one frontier at a time).

        Resources inside one wave only depend on earlier waves and can be
        created in parallel.
        """
        indegree = {a: len(self.dependencies(a)) for a in self._resources}
        children = {a: self.dependents(a) for a in self._resources}
        order = {a: i for i, a in enumerate(self._resources)}
        frontier = [a for a in self._resources if indegree[a] == 0]
        waves: List[List[str]] = []
        placed = 0
        while frontier:
            waves.append(frontier)
            placed += len(frontier)
            nxt: List[str] = []
            for a in frontier:
                for c in children[a]:
                    indegree[c] -= 1
                    if indegree[c] == 0:
                        nxt.append(c)
            frontier = sorted(nxt, key=order.__getitem__)
        if placed != len(self._resources):
            raise CycleError(a for a, d in indegree.items() if d > 0)
        log.debug("Resolved %d resources into %d waves", placed, len(waves))
        return waves

    def topological_order(self) -> List[str]:
        return [a for wave in self.levels() for a in wave]

    def destroy_order(self) -> List[str]:
        return list(reversed(self.topological_order()))
