from __future__ import annotations

import re
from typing import Mapping

from .config import DomainConfig
from .descriptors import DescriptorScope, DirectoryDescriptor, DomainDescriptor
from .errors import (
    DOMAIN_PREFIX_REPLACEMENT,
    INVALID_DOMAIN_PREFIX,
    RESERVED_DOMAIN_PREFIX,
    UNRESOLVED_REFERENCE,
    ConfigurationError,
    DisruptiveChangeWarning,
)

DOMAIN_PREFIX_RE = re.compile(r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?")
RESERVED_WORDS = ("aws", "amazon", "cognito")


def define_domain(
    config: DomainConfig,
    directories: Mapping[str, DirectoryDescriptor],
    scope: DescriptorScope,
) -> DomainDescriptor:
    entity = config.id
    directory = directories.get(config.directory)
    if directory is None:
        raise ConfigurationError(
            UNRESOLVED_REFERENCE,
            f"directory {config.directory!r} has not been validated",
            entity=entity,
        )
    prefix = config.domain_prefix
    if not DOMAIN_PREFIX_RE.fullmatch(prefix or ""):
        raise ConfigurationError(
            INVALID_DOMAIN_PREFIX,
            f"domainPrefix {prefix!r} must be 1-63 lowercase letters, digits or hyphens, "
            "not starting or ending with a hyphen",
            entity=entity,
        )
    for word in RESERVED_WORDS:
        if word in prefix:
            raise ConfigurationError(
                RESERVED_DOMAIN_PREFIX,
                f"domainPrefix {prefix!r} contains reserved word {word!r}",
                entity=entity,
            )
    return DomainDescriptor(
        config=config,
        directory_id=directory.directory_id,
        hosted_ui_base_url=f"https://{prefix}.auth.{scope.region}.amazoncognito.com",
    )


def plan_domain_change(previous_prefix: str | None, descriptor: DomainDescriptor) -> DisruptiveChangeWarning | None:
    """Hosted domains cannot be renamed in place; a new prefix replaces the domain."""
    if not previous_prefix or previous_prefix == descriptor.config.domain_prefix:
        return None
    return DisruptiveChangeWarning(
        code=DOMAIN_PREFIX_REPLACEMENT,
        entity=descriptor.logical_id,
        message=(
            f"domainPrefix changes from {previous_prefix!r} to {descriptor.config.domain_prefix!r}; "
            f"the hosted domain {previous_prefix!r} is destroyed and a new one is created"
        ),
    )
