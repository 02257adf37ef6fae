from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .client import define_client
from .config import StackConfig
from .deployed import PreviousDeployment
from .descriptors import (
    ClientDescriptor,
    DescriptorScope,
    DirectoryDescriptor,
    DomainDescriptor,
    FederationDescriptor,
    IdentityGraph,
    RoleAttachment,
    RoleBindingDescriptor,
    StackOutputs,
)
from .directory import define_directory
from .domain import define_domain, plan_domain_change
from .errors import (
    MISSING_FIELD,
    UNACKNOWLEDGED_DISRUPTIVE_CHANGE,
    ConfigurationError,
    ConfigurationWarning,
    DisruptiveChangeWarning,
    InternalInvariantViolation,
)
from .federation import define_federation
from .graph import CLIENT, DIRECTORY, DOMAIN, FEDERATION, ROLE_BINDING, resolve_order
from .outputs import export_outputs
from .role_binding import attach_roles, define_role_binding


class PipelineState(str, Enum):
    DRAFT = "Draft"
    VALIDATED = "Validated"
    COMPOSED = "Composed"
    EXPORTED = "Exported"


@dataclass(frozen=True)
class _Validated:
    order: tuple[str, ...]
    directories: dict[str, DirectoryDescriptor]
    clients: dict[str, ClientDescriptor]
    domains: dict[str, DomainDescriptor]
    federations: dict[str, FederationDescriptor]
    role_bindings: dict[str, RoleBindingDescriptor]
    attachments: tuple[RoleAttachment, ...]


@dataclass(frozen=True)
class PipelineReport:
    state: PipelineState
    graph: IdentityGraph
    outputs: StackOutputs
    warnings: tuple[ConfigurationWarning, ...]

    @property
    def disruptive_changes(self) -> tuple[DisruptiveChangeWarning, ...]:
        return tuple(w for w in self.warnings if isinstance(w, DisruptiveChangeWarning))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "unified-login.report.v1",
            "state": self.state.value,
            "outputs": self.outputs.to_dict(),
            "order": list(self.graph.order),
            "warnings": [w.to_dict() for w in self.warnings],
        }


class IdentityStackPipeline:
    """Draft -> Validated -> Composed -> Exported.

    Each transition runs once, in order. A failed validation raises
    ConfigurationError and leaves the pipeline in Draft with nothing exposed.
    """

    def __init__(self, config: StackConfig, *, previous: PreviousDeployment | None = None) -> None:
        self.config = config
        self.previous = previous
        self.scope = DescriptorScope(
            stack_name=config.stack_name, stage=config.stage, region=config.region
        )
        self.state = PipelineState.DRAFT
        self.graph: IdentityGraph | None = None
        self.outputs: StackOutputs | None = None
        self._validated: _Validated | None = None
        self._warnings: list[ConfigurationWarning] = []

    @property
    def warnings(self) -> tuple[ConfigurationWarning, ...]:
        return tuple(self._warnings)

    def _require(self, expected: PipelineState, transition: str) -> None:
        if self.state is not expected:
            raise InternalInvariantViolation(
                f"{transition} requires state {expected.value}, pipeline is {self.state.value}"
            )

    def validate(self) -> None:
        self._require(PipelineState.DRAFT, "validate")
        cfg = self.config
        for label, items in (
            ("directory", cfg.directories),
            ("client", cfg.clients),
            ("federation", cfg.federations),
        ):
            if not items:
                raise ConfigurationError(MISSING_FIELD, f"at least one {label} must be declared")
        order, kinds = resolve_order(cfg)

        by_id: dict[str, Any] = {}
        for items in (cfg.directories, cfg.clients, cfg.domains, cfg.federations, cfg.role_bindings):
            by_id.update((item.id, item) for item in items)

        directories: dict[str, DirectoryDescriptor] = {}
        clients: dict[str, ClientDescriptor] = {}
        domains: dict[str, DomainDescriptor] = {}
        federations: dict[str, FederationDescriptor] = {}
        role_bindings: dict[str, RoleBindingDescriptor] = {}
        warnings: list[ConfigurationWarning] = []

        for entity_id in order:
            kind = kinds[entity_id]
            item = by_id[entity_id]
            if kind == DIRECTORY:
                directories[entity_id] = define_directory(item, self.scope)
            elif kind == CLIENT:
                descriptor, client_warnings = define_client(item, directories, self.scope)
                clients[entity_id] = descriptor
                warnings.extend(client_warnings)
            elif kind == DOMAIN:
                domains[entity_id] = define_domain(item, directories, self.scope)
            elif kind == FEDERATION:
                federations[entity_id] = define_federation(item, clients, directories, self.scope)
            elif kind == ROLE_BINDING:
                role_bindings[entity_id] = define_role_binding(item, federations)
            else:
                raise InternalInvariantViolation(f"unknown entity kind {kind!r} for {entity_id!r}")

        attachments = attach_roles(
            (federations[f.id] for f in cfg.federations),
            (role_bindings[b.id] for b in cfg.role_bindings),
        )

        # Nothing is committed until every check above has passed.
        self._validated = _Validated(
            order=order,
            directories=directories,
            clients=clients,
            domains=domains,
            federations=federations,
            role_bindings=role_bindings,
            attachments=attachments,
        )
        self._warnings.extend(warnings)
        self.state = PipelineState.VALIDATED

    def compose(self) -> IdentityGraph:
        self._require(PipelineState.VALIDATED, "compose")
        v = self._validated
        if v is None:
            raise InternalInvariantViolation("validated descriptors are missing")
        cfg = self.config

        graph = IdentityGraph(
            scope=self.scope,
            order=v.order,
            directories=tuple(v.directories[d.id] for d in cfg.directories),
            clients=tuple(v.clients[c.id] for c in cfg.clients),
            domains=tuple(v.domains[d.id] for d in cfg.domains),
            federations=tuple(v.federations[f.id] for f in cfg.federations),
            role_bindings=tuple(v.role_bindings[b.id] for b in cfg.role_bindings),
            attachments=v.attachments,
        )

        if self.previous is not None:
            for domain in graph.domains:
                change = plan_domain_change(self.previous.domain_prefix(domain.logical_id), domain)
                if change is not None:
                    self._warnings.append(change)

        self.graph = graph
        self.state = PipelineState.COMPOSED
        return graph

    def export(self) -> StackOutputs:
        self._require(PipelineState.COMPOSED, "export")
        self.outputs = export_outputs(self.graph)
        self.state = PipelineState.EXPORTED
        return self.outputs

    def run(self) -> PipelineReport:
        self.validate()
        graph = self.compose()
        outputs = self.export()
        return PipelineReport(
            state=self.state,
            graph=graph,
            outputs=outputs,
            warnings=self.warnings,
        )


def require_acknowledged(
    warnings: Iterable[ConfigurationWarning],
    acknowledged: Iterable[str],
) -> None:
    """Block an update until every disruptive change is acknowledged.

    An acknowledgment is either the warning code (``DomainPrefixReplacement``)
    or ``<code>:<entity>`` for a single entity.
    """
    acks = set(acknowledged)
    pending = [
        w
        for w in warnings
        if isinstance(w, DisruptiveChangeWarning)
        and w.code not in acks
        and f"{w.code}:{w.entity}" not in acks
    ]
    if pending:
        listed = "; ".join(f"{w.code}:{w.entity} ({w.message})" for w in pending)
        raise ConfigurationError(
            UNACKNOWLEDGED_DISRUPTIVE_CHANGE,
            f"set ACK_DISRUPTIVE_CHANGES to proceed: {listed}",
            entity=pending[0].entity,
        )


def run_pipeline(config: StackConfig, *, previous: PreviousDeployment | None = None) -> PipelineReport:
    return IdentityStackPipeline(config, previous=previous).run()
