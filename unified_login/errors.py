from __future__ import annotations

from dataclasses import dataclass


class UnifiedLoginError(Exception):
    pass


class UsageError(UnifiedLoginError):
    pass


class ConfigurationError(UnifiedLoginError):
    """Fatal: blocks the Draft -> Validated transition."""

    def __init__(self, reason: str, message: str, *, entity: str = "") -> None:
        self.reason = reason
        self.entity = entity
        self.message = message
        where = f" [{entity}]" if entity else ""
        super().__init__(f"{reason}{where}: {message}")

    def to_dict(self) -> dict[str, str]:
        return {"reason": self.reason, "entity": self.entity, "message": self.message}


class InternalInvariantViolation(UnifiedLoginError):
    """A defect in the pipeline itself (e.g. exporting before composition)."""


@dataclass(frozen=True)
class ConfigurationWarning:
    code: str
    entity: str
    message: str

    @property
    def kind(self) -> str:
        return "ConfigurationWarning"

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "code": self.code,
            "entity": self.entity,
            "message": self.message,
        }


@dataclass(frozen=True)
class DisruptiveChangeWarning(ConfigurationWarning):
    """Requires operator acknowledgment before the update is applied."""

    @property
    def kind(self) -> str:
        return "DisruptiveChangeWarning"


# ConfigurationError reasons.
MISSING_FIELD = "MissingField"
MISSING_SIGN_IN_ALIAS = "MissingSignInAlias"
WEAK_PASSWORD_POLICY = "WeakPasswordPolicy"
INVALID_PASSWORD_POLICY = "InvalidPasswordPolicy"
INVALID_RECOVERY = "InvalidRecovery"
UNVERIFIED_RECOVERY_CHANNEL = "UnverifiedRecoveryChannel"
UNVERIFIABLE_REQUIRED_ATTRIBUTE = "UnverifiableRequiredAttribute"
UNKNOWN_ATTRIBUTE = "UnknownAttribute"
INVALID_REMOVAL_BEHAVIOR = "InvalidRemovalBehavior"
UNRESOLVED_REFERENCE = "UnresolvedReference"
INVALID_REFERENCE = "InvalidReference"
DUPLICATE_ID = "DuplicateId"
CYCLE_DETECTED = "CycleDetected"
MISSING_CALLBACK_URLS = "MissingCallbackUrls"
INVALID_URL = "InvalidUrl"
INSECURE_CALLBACK_URL = "InsecureCallbackUrl"
MISSING_SCOPES = "MissingScopes"
INVALID_SCOPE = "InvalidScope"
SECRET_REQUIRED = "SecretRequired"
INVALID_OAUTH_FLOWS = "InvalidOAuthFlows"
INVALID_DOMAIN_PREFIX = "InvalidDomainPrefix"
RESERVED_DOMAIN_PREFIX = "ReservedDomainPrefix"
MISSING_PROVIDERS = "MissingProviders"
DUPLICATE_PROVIDER = "DuplicateProvider"
CLIENT_DIRECTORY_MISMATCH = "ClientDirectoryMismatch"
INVALID_FEDERATION_NAME = "InvalidFederationName"
MISSING_GUEST_ROLE = "MissingGuestRole"
UNEXPECTED_GUEST_ROLE = "UnexpectedGuestRole"
EMPTY_POLICY_STATEMENT = "EmptyPolicyStatement"
INVALID_POLICY_STATEMENT = "InvalidPolicyStatement"
OVER_BROAD_GRANT = "OverBroadGrant"
TRUST_AUDIENCE_MISMATCH = "TrustAudienceMismatch"
INVALID_AUTHENTICATION_STATE = "InvalidAuthenticationState"
DUPLICATE_ROLE_BINDING = "DuplicateRoleBinding"
MISSING_AUTHENTICATED_ROLE = "MissingAuthenticatedRole"
UNACKNOWLEDGED_DISRUPTIVE_CHANGE = "UnacknowledgedDisruptiveChange"

# Warning codes.
INSECURE_GRANT_COMBINATION = "InsecureGrantCombination"
DOMAIN_PREFIX_REPLACEMENT = "DomainPrefixReplacement"
