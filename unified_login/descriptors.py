from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .config import (
    ClientConfig,
    DirectoryConfig,
    DomainConfig,
    FederationConfig,
    PolicyStatementConfig,
    RoleBindingConfig,
)
from .errors import InternalInvariantViolation
from .id58 import stable_base58_22, stable_uuid

COGNITO_IDENTITY_PRINCIPAL = "cognito-identity.amazonaws.com"
ASSUME_ROLE_WITH_WEB_IDENTITY = "sts:AssumeRoleWithWebIdentity"


@dataclass(frozen=True)
class DescriptorScope:
    """Namespace for generated ids: one stack, one stage, one region."""

    stack_name: str
    stage: str
    region: str

    def directory_id(self, logical_id: str) -> str:
        return f"{self.region}_{stable_base58_22(self.stack_name, self.stage, 'directory', logical_id)}"

    def client_id(self, logical_id: str) -> str:
        # Cognito app client ids are 26 lowercase alphanumerics.
        return stable_uuid(self.stack_name, self.stage, "client", logical_id).hex[:26]

    def federation_id(self, logical_id: str) -> str:
        return f"{self.region}:{stable_uuid(self.stack_name, self.stage, 'federation', logical_id)}"


@dataclass(frozen=True)
class DirectoryDescriptor:
    config: DirectoryConfig
    directory_id: str
    provider_name: str

    @property
    def logical_id(self) -> str:
        return self.config.id


@dataclass(frozen=True)
class ClientDescriptor:
    config: ClientConfig
    client_id: str
    directory_id: str

    @property
    def logical_id(self) -> str:
        return self.config.id

    @property
    def is_public(self) -> bool:
        return not self.config.generate_secret


@dataclass(frozen=True)
class DomainDescriptor:
    config: DomainConfig
    directory_id: str
    hosted_ui_base_url: str

    @property
    def logical_id(self) -> str:
        return self.config.id


@dataclass(frozen=True)
class FederatedProvider:
    client_ref: str
    directory_ref: str
    client_id: str
    provider_name: str


@dataclass(frozen=True)
class FederationDescriptor:
    config: FederationConfig
    federation_id: str
    providers: tuple[FederatedProvider, ...]

    @property
    def logical_id(self) -> str:
        return self.config.id


@dataclass(frozen=True)
class TrustPolicy:
    audience: str
    authentication_state: str
    principal: str = COGNITO_IDENTITY_PRINCIPAL
    action: str = ASSUME_ROLE_WITH_WEB_IDENTITY

    def conditions(self, audience: Any = None) -> dict[str, Any]:
        """IAM conditions; ``audience`` substitutes a deploy-time token for the id."""
        return {
            "StringEquals": {f"{self.principal}:aud": self.audience if audience is None else audience},
            "ForAnyValue:StringLike": {f"{self.principal}:amr": self.authentication_state},
        }


@dataclass(frozen=True)
class RoleBindingDescriptor:
    config: RoleBindingConfig
    federation_id: str
    trust: TrustPolicy
    statements: tuple[PolicyStatementConfig, ...]

    @property
    def logical_id(self) -> str:
        return self.config.id

    @property
    def authentication_state(self) -> str:
        return self.trust.authentication_state


@dataclass(frozen=True)
class RoleAttachment:
    federation_ref: str
    # (authentication state, role binding logical id), authenticated first.
    roles: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class IdentityGraph:
    """The composed, cross-referenced descriptor graph handed to the CDK stack."""

    scope: DescriptorScope
    order: tuple[str, ...]
    directories: tuple[DirectoryDescriptor, ...]
    clients: tuple[ClientDescriptor, ...]
    domains: tuple[DomainDescriptor, ...]
    federations: tuple[FederationDescriptor, ...]
    role_bindings: tuple[RoleBindingDescriptor, ...]
    attachments: tuple[RoleAttachment, ...]

    def _lookup(self, items: tuple[Any, ...], logical_id: str, kind: str) -> Any:
        for item in items:
            if item.logical_id == logical_id:
                return item
        raise InternalInvariantViolation(f"{kind} {logical_id!r} is not part of the composed graph")

    def directory(self, logical_id: str) -> DirectoryDescriptor:
        return self._lookup(self.directories, logical_id, "directory")

    def client(self, logical_id: str) -> ClientDescriptor:
        return self._lookup(self.clients, logical_id, "client")

    def federation(self, logical_id: str) -> FederationDescriptor:
        return self._lookup(self.federations, logical_id, "federation")

    def role_binding(self, logical_id: str) -> RoleBindingDescriptor:
        return self._lookup(self.role_bindings, logical_id, "role binding")


class StackOutputs(Mapping[str, str]):
    """Read-only ``{directoryId, clientId, federationId, region}`` map."""

    KEYS = ("directoryId", "clientId", "federationId", "region")

    def __init__(self, *, directory_id: str, client_id: str, federation_id: str, region: str) -> None:
        self._values = MappingProxyType(
            {
                "directoryId": directory_id,
                "clientId": client_id,
                "federationId": federation_id,
                "region": region,
            }
        )

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self._values) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._values.items()))

    def __repr__(self) -> str:
        return f"StackOutputs({dict(self._values)!r})"

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)
