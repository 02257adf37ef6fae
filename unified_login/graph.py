from __future__ import annotations

from dataclasses import dataclass

from .config import StackConfig
from .errors import (
    CYCLE_DETECTED,
    DUPLICATE_ID,
    INVALID_REFERENCE,
    MISSING_FIELD,
    UNRESOLVED_REFERENCE,
    ConfigurationError,
)

DIRECTORY = "directory"
CLIENT = "client"
DOMAIN = "domain"
FEDERATION = "federation"
ROLE_BINDING = "roleBinding"


@dataclass(frozen=True)
class Reference:
    field: str
    target: str
    expected_kind: str


@dataclass(frozen=True)
class Node:
    id: str
    kind: str
    refs: tuple[Reference, ...]


def _nodes(config: StackConfig) -> list[Node]:
    nodes: list[Node] = []
    for d in config.directories:
        nodes.append(Node(d.id, DIRECTORY, ()))
    for c in config.clients:
        nodes.append(Node(c.id, CLIENT, (Reference("directory", c.directory, DIRECTORY),)))
    for dom in config.domains:
        nodes.append(Node(dom.id, DOMAIN, (Reference("directory", dom.directory, DIRECTORY),)))
    for f in config.federations:
        refs: list[Reference] = []
        for i, p in enumerate(f.providers):
            refs.append(Reference(f"providers[{i}].client", p.client, CLIENT))
            refs.append(Reference(f"providers[{i}].directory", p.directory, DIRECTORY))
        nodes.append(Node(f.id, FEDERATION, tuple(refs)))
    for b in config.role_bindings:
        nodes.append(Node(b.id, ROLE_BINDING, (Reference("federation", b.federation, FEDERATION),)))
    return nodes


def resolve_order(config: StackConfig) -> tuple[tuple[str, ...], dict[str, str]]:
    """Topologically sort every declared entity by its references.

    Returns the dependency-first order and an id -> kind map. Ties keep
    declaration order, so the result is deterministic. Raises
    ConfigurationError for duplicate ids, dangling references, cycles, and
    references that land on the wrong kind of entity (checked in that order).
    """
    nodes = _nodes(config)
    by_id: dict[str, Node] = {}
    for node in nodes:
        if not node.id:
            raise ConfigurationError(MISSING_FIELD, f"{node.kind} is missing an id")
        if node.id in by_id:
            raise ConfigurationError(
                DUPLICATE_ID,
                f"id is declared by both a {by_id[node.id].kind} and a {node.kind}",
                entity=node.id,
            )
        by_id[node.id] = node

    for node in nodes:
        for ref in node.refs:
            if not ref.target:
                raise ConfigurationError(MISSING_FIELD, f"{ref.field} is empty", entity=node.id)
            if ref.target not in by_id:
                raise ConfigurationError(
                    UNRESOLVED_REFERENCE,
                    f"{ref.field} references undeclared {ref.expected_kind} {ref.target!r}",
                    entity=node.id,
                )

    order: list[str] = []
    state: dict[str, int] = {}  # 1 = on stack, 2 = done

    def visit(node_id: str, path: list[str]) -> None:
        mark = state.get(node_id)
        if mark == 2:
            return
        if mark == 1:
            cycle = path[path.index(node_id):] + [node_id]
            raise ConfigurationError(
                CYCLE_DETECTED,
                "reference cycle: " + " -> ".join(cycle),
                entity=node_id,
            )
        state[node_id] = 1
        path.append(node_id)
        for ref in by_id[node_id].refs:
            visit(ref.target, path)
        path.pop()
        state[node_id] = 2
        order.append(node_id)

    for node in nodes:
        visit(node.id, [])

    for node in nodes:
        for ref in node.refs:
            actual = by_id[ref.target].kind
            if actual != ref.expected_kind:
                raise ConfigurationError(
                    INVALID_REFERENCE,
                    f"{ref.field} must reference a {ref.expected_kind}, {ref.target!r} is a {actual}",
                    entity=node.id,
                )

    return tuple(order), {n.id: n.kind for n in nodes}
