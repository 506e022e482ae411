"""Render a ResourceGraph as Terraform HCL, formatted the way ``terraform fmt`` would."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from vm_bootstrap.graph.dag import ResourceGraph
from vm_bootstrap.graph.expressions import Block, Func, Interp, Ref, Var
from vm_bootstrap.graph.resources import Output, Resource
from vm_bootstrap.utils.tf_templates import backend_block, preamble

INDENT = "  "


def _escape(text: str) -> str:
    """Quote-escape a literal and neutralise template sequences."""
    body = json.dumps(text)[1:-1]
    return body.replace("${", "$${").replace("%{", "%%{")


def _expr(value: Any) -> str:
    """Bare expression (the form used inside ``${ }`` and as attribute values)."""
    if isinstance(value, Var):
        return f"var.{value.name}"
    if isinstance(value, Ref):
        return f"{value.address}.{value.attribute}"
    if isinstance(value, Func):
        return f"{value.name}({', '.join(render_value(a) for a in value.args)})"
    raise TypeError(f"Not an expression: {value!r}")


def render_value(value: Any, level: int = 0) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    if value is None:
        return "null"
    if isinstance(value, Interp):
        parts = []
        for p in value.parts:
            if isinstance(p, str):
                parts.append(_escape(p))
            else:
                parts.append("${" + _expr(p) + "}")
        return '"' + "".join(parts) + '"'
    if isinstance(value, (Var, Ref, Func)):
        return _expr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_value(v, level) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        inner = _attributes(value, level + 1)
        return "{\n" + "\n".join(inner) + "\n" + INDENT * level + "}"
    raise TypeError(f"Cannot render value of type {type(value).__name__}: {value!r}")


def _attributes(attrs: Dict[str, Any], level: int) -> List[str]:
    """``key = value`` lines with aligned equals signs."""
    if not attrs:
        return []
    width = max(len(k) for k in attrs)
    pad = INDENT * level
    return [f"{pad}{k.ljust(width)} = {render_value(v, level)}" for k, v in attrs.items()]


def _block(block: Block, level: int) -> List[str]:
    pad = INDENT * level
    labels = "".join(f' "{label}"' for label in block.labels)
    lines = [f"{pad}{block.type}{labels} {{"]
    lines += _attributes(block.attributes, level + 1)
    for b in block.blocks:
        lines.append("")
        lines += _block(b, level + 1)
    lines.append(f"{pad}}}")
    return lines


def render_resource(resource: Resource) -> str:
    lines = []
    if resource.description:
        lines.append(f"# {resource.description}")
    lines.append(f'resource "{resource.type}" "{resource.name}" {{')
    lines += _attributes(resource.attributes, 1)
    for b in resource.blocks:
        lines.append("")
        lines += _block(b, 1)
    if resource.depends_on:
        lines.append("")
        lines.append(f"{INDENT}depends_on = [")
        lines += [f"{INDENT * 2}{a}," for a in resource.depends_on]
        lines.append(f"{INDENT}]")
    lines.append("}")
    return "\n".join(lines)


def render_output(output: Output) -> str:
    attrs: Dict[str, Any] = {"value": output.value}
    if output.description:
        attrs["description"] = output.description
    lines = [f'output "{output.name}" {{'] + _attributes(attrs, 1) + ["}"]
    return "\n".join(lines)


def render_variables(graph: ResourceGraph) -> str:
    """Stack input variables; no defaults, they must come from tfvars or TF_VAR_*."""
    return "\n".join(f'variable "{name}" {{ type = string }}' for name in graph.variables)


def render_main_tf(graph: ResourceGraph, remote_state: bool = False) -> str:
    """Complete main.tf: providers, variables, resources in creation order, outputs."""
    chunks = [preamble(backend_block() if remote_state else None)]
    chunks.append("# --- Stack variables ---\n" + render_variables(graph))
    for address in graph.topological_order():
        chunks.append(render_resource(graph[address]))
    chunks.append("# --- Outputs ---\n" + "\n\n".join(render_output(o) for o in graph.outputs))
    return "\n\n".join(chunks) + "\n"


def render_tfvars(values: Dict[str, Optional[Any]]) -> str:
    """``terraform.tfvars`` body; None values are skipped (provided via environment)."""
    present = {k: v for k, v in values.items() if v is not None}
    return "\n".join(_attributes(present, 0)) + "\n"
