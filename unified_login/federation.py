from __future__ import annotations

import re
from typing import Mapping

from .config import FederationConfig
from .descriptors import (
    ClientDescriptor,
    DescriptorScope,
    DirectoryDescriptor,
    FederatedProvider,
    FederationDescriptor,
)
from .errors import (
    CLIENT_DIRECTORY_MISMATCH,
    DUPLICATE_PROVIDER,
    INVALID_FEDERATION_NAME,
    MISSING_PROVIDERS,
    UNRESOLVED_REFERENCE,
    ConfigurationError,
)

# Identity pool names: word characters and spaces, at most 128.
FEDERATION_NAME_RE = re.compile(r"[\w ]{1,128}")


def define_federation(
    config: FederationConfig,
    clients: Mapping[str, ClientDescriptor],
    directories: Mapping[str, DirectoryDescriptor],
    scope: DescriptorScope,
) -> FederationDescriptor:
    entity = config.id
    if not FEDERATION_NAME_RE.fullmatch(config.name or ""):
        raise ConfigurationError(
            INVALID_FEDERATION_NAME,
            f"federation name {config.name!r} must be 1-128 word characters or spaces",
            entity=entity,
        )
    if not config.providers:
        raise ConfigurationError(
            MISSING_PROVIDERS,
            "at least one (client, directory) provider pair is required",
            entity=entity,
        )

    seen: set[tuple[str, str]] = set()
    providers: list[FederatedProvider] = []
    for pair in config.providers:
        key = (pair.client, pair.directory)
        if key in seen:
            raise ConfigurationError(
                DUPLICATE_PROVIDER,
                f"provider pair ({pair.client}, {pair.directory}) is listed twice",
                entity=entity,
            )
        seen.add(key)

        client = clients.get(pair.client)
        if client is None:
            raise ConfigurationError(
                UNRESOLVED_REFERENCE, f"client {pair.client!r} has not been validated", entity=entity
            )
        directory = directories.get(pair.directory)
        if directory is None:
            raise ConfigurationError(
                UNRESOLVED_REFERENCE,
                f"directory {pair.directory!r} has not been validated",
                entity=entity,
            )
        if client.config.directory != pair.directory:
            raise ConfigurationError(
                CLIENT_DIRECTORY_MISMATCH,
                f"client {pair.client!r} belongs to directory {client.config.directory!r}, "
                f"not {pair.directory!r}",
                entity=entity,
            )
        providers.append(
            FederatedProvider(
                client_ref=pair.client,
                directory_ref=pair.directory,
                client_id=client.client_id,
                provider_name=directory.provider_name,
            )
        )

    return FederationDescriptor(
        config=config,
        federation_id=scope.federation_id(config.id),
        providers=tuple(providers),
    )
