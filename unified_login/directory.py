from __future__ import annotations

from .config import DirectoryConfig
from .descriptors import DescriptorScope, DirectoryDescriptor
from .errors import (
    INVALID_PASSWORD_POLICY,
    INVALID_RECOVERY,
    INVALID_REMOVAL_BEHAVIOR,
    MISSING_FIELD,
    MISSING_SIGN_IN_ALIAS,
    UNKNOWN_ATTRIBUTE,
    UNVERIFIABLE_REQUIRED_ATTRIBUTE,
    UNVERIFIED_RECOVERY_CHANNEL,
    WEAK_PASSWORD_POLICY,
    ConfigurationError,
)

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 99

# AccountRecovery name -> channels it sends codes through.
RECOVERY_CHANNELS = {
    "EMAIL_ONLY": ("email",),
    "PHONE_ONLY_WITHOUT_MFA": ("phone",),
    "PHONE_AND_EMAIL": ("phone", "email"),
    "EMAIL_AND_PHONE_WITHOUT_MFA": ("email", "phone"),
    "PHONE_WITHOUT_MFA_AND_EMAIL": ("phone", "email"),
}

# camelCase config name -> (CDK StandardAttributes field, verification channel).
STANDARD_ATTRIBUTES: dict[str, tuple[str, str | None]] = {
    "address": ("address", None),
    "birthdate": ("birthdate", None),
    "email": ("email", "email"),
    "familyName": ("family_name", None),
    "fullname": ("fullname", None),
    "gender": ("gender", None),
    "givenName": ("given_name", None),
    "lastUpdateTime": ("last_update_time", None),
    "locale": ("locale", None),
    "middleName": ("middle_name", None),
    "nickname": ("nickname", None),
    "phoneNumber": ("phone_number", "phone"),
    "preferredUsername": ("preferred_username", None),
    "profilePage": ("profile_page", None),
    "profilePicture": ("profile_picture", None),
    "timezone": ("timezone", None),
    "website": ("website", None),
}


def _verifiable_channels(config: DirectoryConfig) -> set[str]:
    aliases = set(config.sign_in_aliases.enabled())
    channels = set(config.auto_verify.channels())
    channels.update(c for c in ("email", "phone") if c in aliases)
    channels.update(RECOVERY_CHANNELS.get(config.account_recovery, ()))
    return channels


def define_directory(config: DirectoryConfig, scope: DescriptorScope) -> DirectoryDescriptor:
    entity = config.id
    if not config.name:
        raise ConfigurationError(MISSING_FIELD, "directory name is required", entity=entity)

    if not config.sign_in_aliases.enabled():
        raise ConfigurationError(
            MISSING_SIGN_IN_ALIAS,
            "at least one of username, email, phone, preferred_username must be a sign-in alias",
            entity=entity,
        )
    if config.sign_in_aliases.preferred_username and not config.sign_in_aliases.username:
        raise ConfigurationError(
            MISSING_SIGN_IN_ALIAS,
            "preferred_username can only be a sign-in alias together with username",
            entity=entity,
        )

    policy = config.password_policy
    if policy.min_length < MIN_PASSWORD_LENGTH:
        raise ConfigurationError(
            WEAK_PASSWORD_POLICY,
            f"passwordPolicy.minLength is {policy.min_length}, minimum is {MIN_PASSWORD_LENGTH}",
            entity=entity,
        )
    if policy.min_length > MAX_PASSWORD_LENGTH:
        raise ConfigurationError(
            INVALID_PASSWORD_POLICY,
            f"passwordPolicy.minLength is {policy.min_length}, maximum is {MAX_PASSWORD_LENGTH}",
            entity=entity,
        )
    if not 1 <= policy.temp_password_validity_days <= 365:
        raise ConfigurationError(
            INVALID_PASSWORD_POLICY,
            "passwordPolicy.tempPasswordValidityDays must be between 1 and 365",
            entity=entity,
        )

    recovery = config.account_recovery
    if recovery == "NONE":
        raise ConfigurationError(
            UNVERIFIED_RECOVERY_CHANNEL,
            "accountRecovery NONE leaves users without a verifiable recovery channel",
            entity=entity,
        )
    if recovery not in RECOVERY_CHANNELS:
        raise ConfigurationError(
            INVALID_RECOVERY,
            f"unknown accountRecovery {recovery!r} (expected one of {', '.join(sorted(RECOVERY_CHANNELS))})",
            entity=entity,
        )
    auto_verified = config.auto_verify.channels()
    for channel in RECOVERY_CHANNELS[recovery]:
        if channel not in auto_verified:
            raise ConfigurationError(
                UNVERIFIED_RECOVERY_CHANNEL,
                f"accountRecovery {recovery} uses {channel}, which is not auto-verified",
                entity=entity,
            )

    verifiable = _verifiable_channels(config)
    for name, attr in config.standard_attributes:
        if name not in STANDARD_ATTRIBUTES:
            raise ConfigurationError(
                UNKNOWN_ATTRIBUTE, f"{name!r} is not a standard attribute", entity=entity
            )
        channel = STANDARD_ATTRIBUTES[name][1]
        if attr.required and channel and channel not in verifiable:
            raise ConfigurationError(
                UNVERIFIABLE_REQUIRED_ATTRIBUTE,
                f"{name} is required but {channel} is not a sign-in alias, auto-verified, or a recovery channel",
                entity=entity,
            )

    if config.removal_behavior not in {"destroy", "retain"}:
        raise ConfigurationError(
            INVALID_REMOVAL_BEHAVIOR,
            "removalBehavior must be 'destroy' or 'retain'",
            entity=entity,
        )

    directory_id = scope.directory_id(config.id)
    return DirectoryDescriptor(
        config=config,
        directory_id=directory_id,
        provider_name=f"cognito-idp.{scope.region}.amazonaws.com/{directory_id}",
    )
