from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


class Expression:
    """Base for attribute values that are resolved by the engine, not by us."""

    def references(self) -> Iterator[str]:
        """Yield the resource addresses this expression reads from."""
        return iter(())


@dataclass(frozen=True)
class Var(Expression):
    """Input variable, e.g. ``var.instance_name``."""
    name: str


@dataclass(frozen=True)
class Ref(Expression):
    """Attribute of another resource, e.g. ``openstack_networking_network_v2.network.id``."""
    address: str
    attribute: str

    def references(self) -> Iterator[str]:
        yield self.address


@dataclass(frozen=True)
class Interp(Expression):
    """String interpolation: literal strings mixed with expressions."""
    parts: Tuple[Any, ...]

    def __init__(self, *parts: Any):
        object.__setattr__(self, "parts", tuple(parts))

    def references(self) -> Iterator[str]:
        for p in self.parts:
            yield from iter_references(p)


@dataclass(frozen=True)
class Func(Expression):
    """Engine-side function call, e.g. ``file("~/.ssh/id_rsa.pub")``."""
    name: str
    args: Tuple[Any, ...]

    def __init__(self, name: str, *args: Any):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "args", tuple(args))

    def references(self) -> Iterator[str]:
        for a in self.args:
            yield from iter_references(a)


@dataclass
class Block:
    """Nested configuration block (``network {}``, ``connection {}``, provisioners).

    ``labels`` holds block labels, e.g. ``provisioner "remote-exec"``.
    """
    type: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    labels: List[str] = field(default_factory=list)
    blocks: List["Block"] = field(default_factory=list)

    def references(self) -> Iterator[str]:
        for v in self.attributes.values():
            yield from iter_references(v)
        for b in self.blocks:
            yield from b.references()


def iter_references(value: Any) -> Iterator[str]:
    """Walk any attribute value (literal, container, expression) and yield addresses."""
    if isinstance(value, (Expression, Block)):
        yield from value.references()
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_references(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_references(v)


def evaluate(value: Any, variables: Dict[str, Any]) -> Optional[Any]:
    """Evaluate a value that only depends on input variables.

    Returns None when the value needs engine-side knowledge (references to
    other resources or function calls).
    """
    if isinstance(value, Var):
        if value.name not in variables:
            raise KeyError(f"Variable not provided: {value.name}")
        return variables[value.name]
    if isinstance(value, Interp):
        out = []
        for p in value.parts:
            v = evaluate(p, variables)
            if v is None:
                return None
            out.append(str(v))
        return "".join(out)
    if isinstance(value, (Ref, Func, Block)):
        return None
    return value
