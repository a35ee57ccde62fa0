"""Dot-separated path addressing for step configuration and payloads."""

from typing import Any, List, Mapping, Sequence, Union

from stepflow.exceptions import NotFoundError
from stepflow.workflows.models import Workflow, utc_now

PathLike = Union[str, Sequence[str]]

RESERVED_SEGMENTS = frozenset({"__proto__", "constructor", "prototype"})


def split_path(path: PathLike) -> List[str]:
    """Split ``a.b.c`` into segments; sequences are returned as a list."""
    if isinstance(path, str):
        return [segment for segment in path.split(".") if segment != ""]
    return [str(segment) for segment in path]


def is_reserved_segment(segment: str) -> bool:
    return segment in RESERVED_SEGMENTS or (
        len(segment) > 4 and segment.startswith("__") and segment.endswith("__")
    )


def get_value_at_path(data: Any, path: PathLike) -> Any:
    """Read the value at ``path``.

    Mappings are indexed by key and lists by integer segment. Anything
    that cannot be followed yields ``None`` instead of raising.
    """
    current = data
    for segment in split_path(path):
        if isinstance(current, Mapping):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list) and segment.lstrip("-").isdigit():
            index = int(segment)
            if not -len(current) <= index < len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def set_value_at_path(data: Any, path: PathLike, value: Any) -> Any:
    """Return a copy of ``data`` with ``value`` stored at ``path``.

    Only the containers along the path are copied; siblings are shared
    with the original. Missing or non-container intermediates are
    replaced by new dicts.
    """
    segments = split_path(path)
    if not segments:
        raise ValueError("Path must contain at least one segment")
    for segment in segments:
        if is_reserved_segment(segment):
            raise ValueError(f"Dangerous path detected: {'.'.join(segments)}")
    return _set(data, segments, value)


def _set(current: Any, segments: List[str], value: Any) -> Any:
    head, rest = segments[0], segments[1:]

    if isinstance(current, list) and head.isdigit() and int(head) < len(current):
        updated = list(current)
        index = int(head)
        updated[index] = _set(updated[index], rest, value) if rest else value
        return updated

    updated = dict(current) if isinstance(current, Mapping) else {}
    updated[head] = _set(updated.get(head), rest, value) if rest else value
    return updated


def update_node_config(workflow: Workflow, node_id: str, path: PathLike, value: Any) -> Workflow:
    """Return a new workflow whose node ``node_id`` has ``value`` at ``path`` in its config."""
    node = workflow.get_node(node_id)
    if node is None:
        raise NotFoundError(f"Node not found: {node_id}")

    updated_node = node.model_copy(update={"config": set_value_at_path(node.config, path, value)})
    nodes = [updated_node if n.id == node_id else n for n in workflow.nodes]
    return workflow.model_copy(update={"nodes": nodes, "updated_at": utc_now()})
