from __future__ import annotations

from typing import Iterable, Mapping

from .config import PolicyStatementConfig, RoleBindingConfig
from .descriptors import (
    FederationDescriptor,
    RoleAttachment,
    RoleBindingDescriptor,
    TrustPolicy,
)
from .errors import (
    DUPLICATE_ROLE_BINDING,
    EMPTY_POLICY_STATEMENT,
    INVALID_AUTHENTICATION_STATE,
    INVALID_POLICY_STATEMENT,
    MISSING_AUTHENTICATED_ROLE,
    MISSING_GUEST_ROLE,
    OVER_BROAD_GRANT,
    TRUST_AUDIENCE_MISMATCH,
    UNEXPECTED_GUEST_ROLE,
    UNRESOLVED_REFERENCE,
    ConfigurationError,
)

AUTHENTICATED = "authenticated"
UNAUTHENTICATED = "unauthenticated"
AUTHENTICATION_STATES = (AUTHENTICATED, UNAUTHENTICATED)

# Services whose actions are scoped by the service to the caller's own identity.
IDENTITY_SCOPED_SERVICES = frozenset({"cognito-sync", "mobileanalytics", "cognito-identity"})
ADMINISTRATIVE_SERVICES = frozenset(
    {
        "account",
        "cloudformation",
        "cognito-idp",
        "dynamodb",
        "ec2",
        "iam",
        "kms",
        "lambda",
        "organizations",
        "s3",
        "secretsmanager",
        "ssm",
        "sts",
    }
)
WRITE_VERB_PREFIXES = (
    "Add",
    "Associate",
    "Attach",
    "Create",
    "Delete",
    "Detach",
    "Disable",
    "Enable",
    "Grant",
    "Modify",
    "Pass",
    "Put",
    "Remove",
    "Reset",
    "Restore",
    "Revoke",
    "Set",
    "Tag",
    "Terminate",
    "Untag",
    "Update",
)


def is_over_broad_action(action: str) -> bool:
    """Whether granting ``action`` on every resource is too broad to accept."""
    if action == "*":
        return True
    service, _, verb = action.partition(":")
    service = service.lower()
    if "*" in service:
        return True
    if service in IDENTITY_SCOPED_SERVICES:
        return False
    if service in ADMINISTRATIVE_SERVICES:
        return True
    if "*" in verb:
        return True
    return verb.startswith(WRITE_VERB_PREFIXES)


def _check_statement(stmt: PolicyStatementConfig, *, index: int, entity: str) -> None:
    if not stmt.actions or not stmt.resources:
        raise ConfigurationError(
            EMPTY_POLICY_STATEMENT,
            f"policyStatements[{index}] needs non-empty actions and resources",
            entity=entity,
        )
    if stmt.effect not in {"Allow", "Deny"}:
        raise ConfigurationError(
            INVALID_POLICY_STATEMENT,
            f"policyStatements[{index}] effect must be Allow or Deny",
            entity=entity,
        )
    if stmt.effect == "Allow" and "*" in stmt.resources:
        broad = [a for a in stmt.actions if is_over_broad_action(a)]
        if broad:
            raise ConfigurationError(
                OVER_BROAD_GRANT,
                f"policyStatements[{index}] grants {', '.join(broad)} on '*'",
                entity=entity,
            )


def define_role_binding(
    config: RoleBindingConfig,
    federations: Mapping[str, FederationDescriptor],
) -> RoleBindingDescriptor:
    entity = config.id
    federation = federations.get(config.federation)
    if federation is None:
        raise ConfigurationError(
            UNRESOLVED_REFERENCE,
            f"federation {config.federation!r} has not been validated",
            entity=entity,
        )
    if config.authentication_state not in AUTHENTICATION_STATES:
        raise ConfigurationError(
            INVALID_AUTHENTICATION_STATE,
            f"authenticationState must be one of {', '.join(AUTHENTICATION_STATES)}",
            entity=entity,
        )
    if not config.policy_statements:
        raise ConfigurationError(
            EMPTY_POLICY_STATEMENT, "at least one policy statement is required", entity=entity
        )
    for i, stmt in enumerate(config.policy_statements):
        _check_statement(stmt, index=i, entity=entity)

    audience = config.audience or federation.federation_id
    descriptor = RoleBindingDescriptor(
        config=config,
        federation_id=federation.federation_id,
        trust=TrustPolicy(audience=audience, authentication_state=config.authentication_state),
        statements=config.policy_statements,
    )
    verify_trust(descriptor, federation)
    return descriptor


def verify_trust(binding: RoleBindingDescriptor, federation: FederationDescriptor) -> None:
    """The token exchange fails at runtime unless aud names the owning identity pool."""
    if binding.trust.audience != federation.federation_id:
        raise ConfigurationError(
            TRUST_AUDIENCE_MISMATCH,
            f"trust audience {binding.trust.audience!r} does not match federation "
            f"{federation.logical_id!r} ({federation.federation_id})",
            entity=binding.logical_id,
        )


def attach_roles(
    federations: Iterable[FederationDescriptor],
    bindings: Iterable[RoleBindingDescriptor],
) -> tuple[RoleAttachment, ...]:
    """One attachment per federation with exactly one role per authentication state."""
    by_federation: dict[str, dict[str, RoleBindingDescriptor]] = {}
    for b in bindings:
        roles = by_federation.setdefault(b.config.federation, {})
        existing = roles.get(b.authentication_state)
        if existing is not None:
            raise ConfigurationError(
                DUPLICATE_ROLE_BINDING,
                f"{b.authentication_state} role for {b.config.federation!r} is already bound by {existing.logical_id!r}",
                entity=b.logical_id,
            )
        roles[b.authentication_state] = b

    attachments: list[RoleAttachment] = []
    for f in federations:
        roles = by_federation.get(f.logical_id, {})
        if AUTHENTICATED not in roles:
            raise ConfigurationError(
                MISSING_AUTHENTICATED_ROLE,
                "no role binding for authenticated identities",
                entity=f.logical_id,
            )
        if f.config.allow_unauthenticated and UNAUTHENTICATED not in roles:
            raise ConfigurationError(
                MISSING_GUEST_ROLE,
                "allowUnauthenticated is set but no unauthenticated role binding is declared",
                entity=f.logical_id,
            )
        if UNAUTHENTICATED in roles and not f.config.allow_unauthenticated:
            raise ConfigurationError(
                UNEXPECTED_GUEST_ROLE,
                "an unauthenticated role binding is declared but allowUnauthenticated is false",
                entity=f.logical_id,
            )
        for state in AUTHENTICATION_STATES:
            if state in roles:
                verify_trust(roles[state], f)
        attachments.append(
            RoleAttachment(
                federation_ref=f.logical_id,
                roles=tuple(
                    (state, roles[state].logical_id) for state in AUTHENTICATION_STATES if state in roles
                ),
            )
        )
    return tuple(attachments)
