from __future__ import annotations

import re

from .descriptors import (
    ClientDescriptor,
    DirectoryDescriptor,
    FederationDescriptor,
    IdentityGraph,
    StackOutputs,
)
from .errors import InternalInvariantViolation
from .id58 import is_base58_22

# CloudFormation output keys (see stacks/unified_login_stack.py).
USER_POOL_ID = "UserPoolId"
USER_POOL_CLIENT_ID = "UserPoolClientId"
IDENTITY_POOL_ID = "IdentityPoolId"
REGION = "Region"
HOSTED_UI_BASE_URL = "HostedUiBaseUrl"


def construct_id(logical_id: str) -> str:
    """CDK construct / CloudFormation output ids are alphanumeric."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", logical_id or "")
    if not cleaned:
        raise InternalInvariantViolation(f"logical id {logical_id!r} has no alphanumeric characters")
    return cleaned


def domain_prefix_output_key(domain_logical_id: str) -> str:
    return f"{construct_id(domain_logical_id)}Prefix"


def primary(graph: IdentityGraph) -> tuple[DirectoryDescriptor, ClientDescriptor, FederationDescriptor]:
    """The first declared federation and the client/directory of its first provider pair."""
    if not graph.federations:
        raise InternalInvariantViolation("composed graph has no federation to export")
    federation = graph.federations[0]
    if not federation.providers:
        raise InternalInvariantViolation(f"federation {federation.logical_id!r} has no provider pair")
    provider = federation.providers[0]
    return graph.directory(provider.directory_ref), graph.client(provider.client_ref), federation


def export_outputs(graph: IdentityGraph | None) -> StackOutputs:
    if graph is None:
        raise InternalInvariantViolation("outputs requested before the descriptor graph was composed")
    directory, client, federation = primary(graph)
    values = {
        "directory_id": directory.directory_id,
        "client_id": client.client_id,
        "federation_id": federation.federation_id,
        "region": graph.scope.region,
    }
    empty = sorted(k for k, v in values.items() if not v)
    if empty:
        raise InternalInvariantViolation(f"empty output values: {', '.join(empty)}")
    region_prefix, _, suffix = directory.directory_id.partition("_")
    if region_prefix != graph.scope.region or not is_base58_22(suffix):
        raise InternalInvariantViolation(f"directory id {directory.directory_id!r} is not <region>_<base58-22>")
    return StackOutputs(**values)
