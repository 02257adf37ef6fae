from __future__ import annotations

from typing import Mapping
from urllib.parse import urlparse, urlunparse

from .config import ClientConfig
from .descriptors import ClientDescriptor, DescriptorScope, DirectoryDescriptor
from .errors import (
    INSECURE_CALLBACK_URL,
    INSECURE_GRANT_COMBINATION,
    INVALID_OAUTH_FLOWS,
    INVALID_SCOPE,
    INVALID_URL,
    MISSING_CALLBACK_URLS,
    MISSING_SCOPES,
    SECRET_REQUIRED,
    UNRESOLVED_REFERENCE,
    ConfigurationError,
    ConfigurationWarning,
)

STANDARD_SCOPES = frozenset({"phone", "email", "openid", "profile", "aws.cognito.signin.user.admin"})
USER_FACING_FLOWS = ("authorization_code_grant", "implicit_code_grant")
CONFIDENTIAL_FLOWS = ("client_credentials",)
_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def _check_url(url: str, *, field: str, entity: str) -> None:
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ConfigurationError(INVALID_URL, f"{field} entry {url!r}: {e}", entity=entity) from e
    if not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(
            INVALID_URL, f"{field} entry {url!r} is not an absolute URI", entity=entity
        )
    if urlunparse(parsed) != url:
        raise ConfigurationError(
            INVALID_URL, f"{field} entry {url!r} does not round-trip unchanged", entity=entity
        )
    if parsed.fragment:
        raise ConfigurationError(
            INVALID_URL, f"{field} entry {url!r} must not contain a fragment", entity=entity
        )
    if parsed.scheme == "http" and (parsed.hostname or "") not in _LOOPBACK_HOSTS:
        raise ConfigurationError(
            INSECURE_CALLBACK_URL,
            f"{field} entry {url!r} uses http; only localhost may use plain http",
            entity=entity,
        )


def _check_scope(scope: str, *, entity: str) -> None:
    if scope in STANDARD_SCOPES:
        return
    # Resource-server scopes look like "<identifier>/<scope>".
    server, sep, name = scope.rpartition("/")
    if sep and server and name and " " not in scope:
        return
    raise ConfigurationError(INVALID_SCOPE, f"unknown OAuth scope {scope!r}", entity=entity)


def define_client(
    config: ClientConfig,
    directories: Mapping[str, DirectoryDescriptor],
    scope: DescriptorScope,
) -> tuple[ClientDescriptor, tuple[ConfigurationWarning, ...]]:
    entity = config.id
    directory = directories.get(config.directory)
    if directory is None:
        raise ConfigurationError(
            UNRESOLVED_REFERENCE,
            f"directory {config.directory!r} has not been validated",
            entity=entity,
        )

    oauth = config.oauth
    flows = oauth.flows.enabled()
    user_facing = [f for f in flows if f in USER_FACING_FLOWS]
    confidential = [f for f in flows if f in CONFIDENTIAL_FLOWS]

    if confidential and user_facing:
        raise ConfigurationError(
            INVALID_OAUTH_FLOWS,
            "clientCredentials cannot be combined with authorizationCodeGrant or implicitCodeGrant",
            entity=entity,
        )
    if confidential and not config.generate_secret:
        raise ConfigurationError(
            SECRET_REQUIRED,
            "clientCredentials is a confidential-client flow and requires generateSecret=true",
            entity=entity,
        )

    if user_facing and not oauth.callback_urls:
        raise ConfigurationError(
            MISSING_CALLBACK_URLS,
            "oauth.callbackUrls must be non-empty when an OAuth flow is enabled",
            entity=entity,
        )
    for url in oauth.callback_urls:
        _check_url(url, field="oauth.callbackUrls", entity=entity)
    for url in oauth.logout_urls:
        _check_url(url, field="oauth.logoutUrls", entity=entity)

    if flows and not oauth.scopes:
        raise ConfigurationError(
            MISSING_SCOPES,
            "oauth.scopes must be non-empty when an OAuth flow is enabled",
            entity=entity,
        )
    for s in oauth.scopes:
        _check_scope(s, entity=entity)
    if confidential:
        standard = sorted(s for s in oauth.scopes if s in STANDARD_SCOPES)
        if standard:
            raise ConfigurationError(
                INVALID_SCOPE,
                f"clientCredentials only accepts resource-server scopes, got {', '.join(standard)}",
                entity=entity,
            )

    warnings: list[ConfigurationWarning] = []
    if oauth.flows.implicit_code_grant and oauth.flows.authorization_code_grant:
        warnings.append(
            ConfigurationWarning(
                code=INSECURE_GRANT_COMBINATION,
                entity=entity,
                message=(
                    "implicitCodeGrant is enabled alongside authorizationCodeGrant; "
                    "the implicit grant returns tokens in the URL fragment"
                ),
            )
        )

    descriptor = ClientDescriptor(
        config=config,
        client_id=scope.client_id(config.id),
        directory_id=directory.directory_id,
    )
    return descriptor, tuple(warnings)
