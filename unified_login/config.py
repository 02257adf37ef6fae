from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from .cli_shared import _env_or_none, _load_json_object, _parse_csv
from .errors import MISSING_FIELD, ConfigurationError, UsageError

UNIFIED_LOGIN_CONFIG = "UNIFIED_LOGIN_CONFIG"
DEFAULT_STACK_NAME = "UnifiedLoginStack"
DEFAULT_REGION = "us-east-2"
DEFAULT_STAGE = "prod"


@dataclass(frozen=True)
class SignInAliases:
    username: bool = False
    email: bool = False
    phone: bool = False
    preferred_username: bool = False

    def enabled(self) -> tuple[str, ...]:
        names = ("username", "email", "phone", "preferred_username")
        return tuple(n for n in names if getattr(self, n))


@dataclass(frozen=True)
class AutoVerify:
    email: bool = False
    phone: bool = False

    def channels(self) -> frozenset[str]:
        return frozenset(n for n in ("email", "phone") if getattr(self, n))


@dataclass(frozen=True)
class StandardAttribute:
    required: bool = False
    mutable: bool = True


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 8
    require_lowercase: bool = True
    require_uppercase: bool = True
    require_digits: bool = True
    require_symbols: bool = True
    temp_password_validity_days: int = 7


@dataclass(frozen=True)
class DirectoryConfig:
    id: str
    name: str = ""
    self_sign_up_enabled: bool = False
    sign_in_aliases: SignInAliases = field(default_factory=SignInAliases)
    sign_in_case_sensitive: bool = True
    auto_verify: AutoVerify = field(default_factory=AutoVerify)
    standard_attributes: tuple[tuple[str, StandardAttribute], ...] = ()
    password_policy: PasswordPolicy = field(default_factory=PasswordPolicy)
    account_recovery: str = "EMAIL_ONLY"
    removal_behavior: str = "destroy"


@dataclass(frozen=True)
class AuthFlows:
    user_password: bool = False
    user_srp: bool = False
    admin_user_password: bool = False
    custom: bool = False


@dataclass(frozen=True)
class OAuthFlows:
    authorization_code_grant: bool = False
    implicit_code_grant: bool = False
    client_credentials: bool = False

    def enabled(self) -> tuple[str, ...]:
        names = ("authorization_code_grant", "implicit_code_grant", "client_credentials")
        return tuple(n for n in names if getattr(self, n))


@dataclass(frozen=True)
class OAuthSettings:
    flows: OAuthFlows = field(default_factory=OAuthFlows)
    scopes: tuple[str, ...] = ()
    callback_urls: tuple[str, ...] = ()
    logout_urls: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClientConfig:
    id: str
    directory: str
    name: str = ""
    auth_flows: AuthFlows = field(default_factory=AuthFlows)
    oauth: OAuthSettings = field(default_factory=OAuthSettings)
    generate_secret: bool = False
    prevent_user_existence_errors: bool = True


@dataclass(frozen=True)
class DomainConfig:
    id: str
    directory: str
    domain_prefix: str


@dataclass(frozen=True)
class ProviderRef:
    client: str
    directory: str


@dataclass(frozen=True)
class FederationConfig:
    id: str
    name: str = ""
    providers: tuple[ProviderRef, ...] = ()
    allow_unauthenticated: bool = False
    allow_classic_flow: bool = False


@dataclass(frozen=True)
class PolicyStatementConfig:
    actions: tuple[str, ...]
    resources: tuple[str, ...]
    effect: str = "Allow"


@dataclass(frozen=True)
class RoleBindingConfig:
    id: str
    federation: str
    authentication_state: str = "authenticated"
    policy_statements: tuple[PolicyStatementConfig, ...] = ()
    # Explicit audience override; must still equal the federation id.
    audience: str | None = None


@dataclass(frozen=True)
class StackConfig:
    stack_name: str = DEFAULT_STACK_NAME
    stage: str = DEFAULT_STAGE
    region: str = DEFAULT_REGION
    directories: tuple[DirectoryConfig, ...] = ()
    clients: tuple[ClientConfig, ...] = ()
    domains: tuple[DomainConfig, ...] = ()
    federations: tuple[FederationConfig, ...] = ()
    role_bindings: tuple[RoleBindingConfig, ...] = ()


def default_config(
    *,
    stack_name: str = DEFAULT_STACK_NAME,
    stage: str = DEFAULT_STAGE,
    region: str = DEFAULT_REGION,
) -> StackConfig:
    """The stack as originally deployed: one pool, one web client, one identity pool."""
    return StackConfig(
        stack_name=stack_name,
        stage=stage,
        region=region,
        directories=(
            DirectoryConfig(
                id="UserPool",
                name="MyAppUserPool",
                self_sign_up_enabled=True,
                sign_in_aliases=SignInAliases(email=True),
                auto_verify=AutoVerify(email=True),
                standard_attributes=(
                    ("email", StandardAttribute(required=True, mutable=True)),
                    ("phoneNumber", StandardAttribute(required=False)),
                ),
                password_policy=PasswordPolicy(
                    min_length=8,
                    require_lowercase=True,
                    require_uppercase=True,
                    require_digits=True,
                    require_symbols=False,
                ),
                account_recovery="EMAIL_ONLY",
                # Dev-first default; DATA_RETENTION_MODE=retain for production.
                removal_behavior="destroy",
            ),
        ),
        clients=(
            ClientConfig(
                id="UserPoolClient",
                directory="UserPool",
                auth_flows=AuthFlows(user_password=True, user_srp=True),
                oauth=OAuthSettings(
                    flows=OAuthFlows(
                        authorization_code_grant=True,
                        implicit_code_grant=True,
                    ),
                    scopes=("email",),
                    callback_urls=(
                        "http://localhost:3000/callback",
                        "https://your-production-domain.com/callback",
                    ),
                    logout_urls=(
                        "http://localhost:3000/logout",
                        "https://your-production-domain.com/logout",
                    ),
                ),
                generate_secret=False,
                prevent_user_existence_errors=True,
            ),
        ),
        domains=(DomainConfig(id="Domain", directory="UserPool", domain_prefix="unifiedlogin"),),
        federations=(
            FederationConfig(
                id="IdentityPool",
                name="MyAppIdentityPool",
                providers=(ProviderRef(client="UserPoolClient", directory="UserPool"),),
                allow_unauthenticated=False,
            ),
        ),
        role_bindings=(
            RoleBindingConfig(
                id="AuthenticatedRole",
                federation="IdentityPool",
                authentication_state="authenticated",
                policy_statements=(
                    PolicyStatementConfig(
                        actions=("mobileanalytics:PutEvents", "cognito-sync:*"),
                        resources=("*",),
                    ),
                ),
            ),
        ),
    )


# --- mapping -> config records ------------------------------------------------

_DEFAULT_IDS = {
    "directory": "UserPool",
    "client": "UserPoolClient",
    "domain": "Domain",
    "federation": "IdentityPool",
    "roleBinding": "AuthenticatedRole",
}

_CAMEL_TO_FIELD = {
    "username": "username",
    "email": "email",
    "phone": "phone",
    "preferredUsername": "preferred_username",
    "userPassword": "user_password",
    "userSrp": "user_srp",
    "adminUserPassword": "admin_user_password",
    "custom": "custom",
    "authorizationCodeGrant": "authorization_code_grant",
    "implicitCodeGrant": "implicit_code_grant",
    "clientCredentials": "client_credentials",
}


def _entries(raw: Mapping[str, Any], singular: str, plural: str) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    one = raw.get(singular)
    if one is not None:
        if not isinstance(one, dict):
            raise UsageError(f"{singular} must be an object")
        out.append(one)
    many = raw.get(plural)
    if many is not None:
        if not isinstance(many, list) or not all(isinstance(x, dict) for x in many):
            raise UsageError(f"{plural} must be a list of objects")
        out.extend(many)
    return out


def _object(val: Any, label: str) -> dict[str, Any]:
    if val is None:
        return {}
    if not isinstance(val, dict):
        raise UsageError(f"{label} must be an object")
    return val


def _str(val: Any) -> str:
    return str(val or "").strip()


def _str_tuple(val: Any) -> tuple[str, ...]:
    if val is None:
        return ()
    if isinstance(val, str):
        return tuple(_parse_csv(val))
    return tuple(str(v).strip() for v in val if str(v).strip())


def _flags(cls: type, raw: Any) -> Any:
    """Accept either {"email": true} or ["email"] for boolean flag groups."""
    if raw is None:
        return cls()
    if isinstance(raw, (list, tuple)):
        names = {_CAMEL_TO_FIELD.get(str(n), str(n)) for n in raw}
        kwargs = {n: True for n in names}
    elif isinstance(raw, dict):
        kwargs = {_CAMEL_TO_FIELD.get(str(k), str(k)): bool(v) for k, v in raw.items()}
    else:
        raise UsageError(f"invalid flag set for {cls.__name__}: expected object or list")
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise UsageError(f"invalid flag set for {cls.__name__}: {e}") from e


def _entity_id(raw: Mapping[str, Any], kind: str, index: int) -> str:
    v = _str(raw.get("id"))
    if v:
        return v
    base = _DEFAULT_IDS[kind]
    return base if index == 0 else f"{base}{index + 1}"


def _default_ref(val: Any, candidates: list[str], *, kind: str, entity: str) -> str:
    ref = _str(val)
    if ref:
        return ref
    if len(candidates) == 1:
        return candidates[0]
    raise ConfigurationError(
        MISSING_FIELD,
        f"{kind} reference is required when {len(candidates)} candidates are declared",
        entity=entity,
    )


def _directory_from_dict(raw: Mapping[str, Any], index: int) -> DirectoryConfig:
    entity_id = _entity_id(raw, "directory", index)
    attrs_raw = _object(raw.get("standardAttributes"), f"directory {entity_id}: standardAttributes")
    attrs: list[tuple[str, StandardAttribute]] = []
    for name, attr_raw in attrs_raw.items():
        attr = _object(attr_raw, f"directory {entity_id}: standardAttributes.{name}")
        attrs.append(
            (
                str(name),
                StandardAttribute(
                    required=bool(attr.get("required", False)),
                    mutable=bool(attr.get("mutable", True)),
                ),
            )
        )
    policy_raw = _object(raw.get("passwordPolicy"), f"directory {entity_id}: passwordPolicy")
    defaults = PasswordPolicy()
    try:
        policy = PasswordPolicy(
            min_length=int(policy_raw.get("minLength", defaults.min_length)),
            require_lowercase=bool(policy_raw.get("requireLowercase", defaults.require_lowercase)),
            require_uppercase=bool(policy_raw.get("requireUppercase", defaults.require_uppercase)),
            require_digits=bool(policy_raw.get("requireDigits", defaults.require_digits)),
            require_symbols=bool(policy_raw.get("requireSymbols", defaults.require_symbols)),
            temp_password_validity_days=int(
                policy_raw.get("tempPasswordValidityDays", defaults.temp_password_validity_days)
            ),
        )
    except (TypeError, ValueError) as e:
        raise UsageError(f"directory {entity_id}: invalid passwordPolicy: {e}") from e
    return DirectoryConfig(
        id=entity_id,
        name=_str(raw.get("name")) or entity_id,
        self_sign_up_enabled=bool(raw.get("selfSignUpEnabled", False)),
        sign_in_aliases=_flags(SignInAliases, raw.get("signInAliases")),
        sign_in_case_sensitive=bool(raw.get("signInCaseSensitive", True)),
        auto_verify=_flags(AutoVerify, raw.get("autoVerify")),
        standard_attributes=tuple(attrs),
        password_policy=policy,
        account_recovery=_str(raw.get("accountRecovery")) or "EMAIL_ONLY",
        removal_behavior=(_str(raw.get("removalBehavior")) or "destroy").lower(),
    )


def _client_from_dict(raw: Mapping[str, Any], index: int, directory_ids: list[str]) -> ClientConfig:
    entity_id = _entity_id(raw, "client", index)
    oauth_raw = _object(raw.get("oauth"), f"client {entity_id}: oauth")
    oauth = OAuthSettings(
        flows=_flags(OAuthFlows, oauth_raw.get("flows")),
        scopes=_str_tuple(oauth_raw.get("scopes")),
        callback_urls=_str_tuple(oauth_raw.get("callbackUrls")),
        logout_urls=_str_tuple(oauth_raw.get("logoutUrls")),
    )
    return ClientConfig(
        id=entity_id,
        directory=_default_ref(
            raw.get("directory"), directory_ids, kind="directory", entity=entity_id
        ),
        name=_str(raw.get("name")),
        auth_flows=_flags(AuthFlows, raw.get("authFlows")),
        oauth=oauth,
        generate_secret=bool(raw.get("generateSecret", False)),
        prevent_user_existence_errors=bool(raw.get("preventUserExistenceErrors", True)),
    )


def _provider_refs(raw: Any, clients: tuple[ClientConfig, ...], entity: str) -> tuple[ProviderRef, ...]:
    if raw is None:
        if len(clients) == 1:
            return (ProviderRef(client=clients[0].id, directory=clients[0].directory),)
        return ()
    out: list[ProviderRef] = []
    for item in raw:
        if isinstance(item, dict):
            out.append(ProviderRef(client=_str(item.get("client")), directory=_str(item.get("directory"))))
        elif isinstance(item, (list, tuple)) and len(item) == 2:
            out.append(ProviderRef(client=_str(item[0]), directory=_str(item[1])))
        else:
            raise UsageError(f"federation {entity}: provider entries must be objects or [client, directory] pairs")
    return tuple(out)


def _statements(raw: Mapping[str, Any]) -> tuple[PolicyStatementConfig, ...]:
    stmts_raw = raw.get("policyStatements")
    if stmts_raw is None and ("actions" in raw or "resources" in raw):
        stmts_raw = [{"actions": raw.get("actions"), "resources": raw.get("resources")}]
    out: list[PolicyStatementConfig] = []
    for stmt in stmts_raw or []:
        if not isinstance(stmt, dict):
            raise UsageError("policy statements must be objects")
        out.append(
            PolicyStatementConfig(
                actions=_str_tuple(stmt.get("actions")),
                resources=_str_tuple(stmt.get("resources")),
                effect=_str(stmt.get("effect")) or "Allow",
            )
        )
    return tuple(out)


def config_from_dict(
    raw: Mapping[str, Any],
    *,
    stack_name: str = DEFAULT_STACK_NAME,
    stage: str = DEFAULT_STAGE,
    region: str = DEFAULT_REGION,
) -> StackConfig:
    """Build a StackConfig from a camelCase mapping (as loaded from JSON).

    Singular keys (``directory``) and plural lists (``directories``) are both
    accepted. A reference that is omitted is filled in only when exactly one
    entity of the referenced kind is declared.
    """
    directories = tuple(
        _directory_from_dict(d, i)
        for i, d in enumerate(_entries(raw, "directory", "directories"))
    )
    directory_ids = [d.id for d in directories]
    clients = tuple(
        _client_from_dict(c, i, directory_ids)
        for i, c in enumerate(_entries(raw, "client", "clients"))
    )
    domains: list[DomainConfig] = []
    for i, d in enumerate(_entries(raw, "domain", "domains")):
        entity_id = _entity_id(d, "domain", i)
        domains.append(
            DomainConfig(
                id=entity_id,
                directory=_default_ref(d.get("directory"), directory_ids, kind="directory", entity=entity_id),
                domain_prefix=_str(d.get("domainPrefix")),
            )
        )
    federations: list[FederationConfig] = []
    for i, f in enumerate(_entries(raw, "federation", "federations")):
        entity_id = _entity_id(f, "federation", i)
        federations.append(
            FederationConfig(
                id=entity_id,
                name=_str(f.get("name")) or entity_id,
                providers=_provider_refs(f.get("providers"), clients, entity_id),
                allow_unauthenticated=bool(f.get("allowUnauthenticated", False)),
                allow_classic_flow=bool(f.get("allowClassicFlow", False)),
            )
        )
    federation_ids = [f.id for f in federations]
    bindings: list[RoleBindingConfig] = []
    for i, b in enumerate(_entries(raw, "roleBinding", "roleBindings")):
        entity_id = _entity_id(b, "roleBinding", i)
        bindings.append(
            RoleBindingConfig(
                id=entity_id,
                federation=_default_ref(b.get("federation"), federation_ids, kind="federation", entity=entity_id),
                authentication_state=_str(b.get("authenticationState")) or "authenticated",
                policy_statements=_statements(b),
                audience=_str(b.get("audience")) or None,
            )
        )
    return StackConfig(
        stack_name=_str(raw.get("stackName")) or stack_name,
        stage=_str(raw.get("stage")) or stage,
        region=_str(raw.get("region")) or region,
        directories=directories,
        clients=clients,
        domains=tuple(domains),
        federations=tuple(federations),
        role_bindings=tuple(bindings),
    )


def load_config(path: str | Path, **kwargs: Any) -> StackConfig:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise UsageError(f"cannot read config file {p}: {e}") from e
    return config_from_dict(_load_json_object(raw=text, label=f"config file {p}"), **kwargs)


def config_from_env(environ: Mapping[str, str] | None = None) -> StackConfig:
    """Resolve the stack config from the environment the CDK app runs in."""
    env = os.environ if environ is None else environ

    def _get(name: str) -> str:
        return (env.get(name) or "").strip()

    stack_name = _get("CDK_STACK_NAME") or DEFAULT_STACK_NAME
    stage = _get("STAGE") or DEFAULT_STAGE
    region = _get("CDK_DEFAULT_REGION") or DEFAULT_REGION

    path = _get(UNIFIED_LOGIN_CONFIG)
    if path:
        cfg = load_config(path, stack_name=stack_name, stage=stage, region=region)
    else:
        cfg = default_config(stack_name=stack_name, stage=stage, region=region)

    retention = _get("DATA_RETENTION_MODE").lower()
    if retention:
        if retention not in {"destroy", "retain"}:
            raise ValueError(
                "DATA_RETENTION_MODE must be 'destroy' or 'retain' (case-insensitive)"
            )
        cfg = replace(
            cfg,
            directories=tuple(replace(d, removal_behavior=retention) for d in cfg.directories),
        )

    domain_prefix = _get("DOMAIN_PREFIX")
    if domain_prefix and cfg.domains:
        first, *rest = cfg.domains
        cfg = replace(cfg, domains=(replace(first, domain_prefix=domain_prefix), *rest))

    callback_urls = _parse_csv(_get("CALLBACK_URLS"))
    logout_urls = _parse_csv(_get("LOGOUT_URLS"))
    if (callback_urls or logout_urls) and cfg.clients:
        first, *rest = cfg.clients
        oauth = first.oauth
        if callback_urls:
            oauth = replace(oauth, callback_urls=tuple(callback_urls))
        if logout_urls:
            oauth = replace(oauth, logout_urls=tuple(logout_urls))
        cfg = replace(cfg, clients=(replace(first, oauth=oauth), *rest))
    return cfg


def acknowledged_changes(environ: Mapping[str, str] | None = None) -> frozenset[str]:
    """Disruptive-change codes the operator has acknowledged (``ACK_DISRUPTIVE_CHANGES``)."""
    env = os.environ if environ is None else environ
    raw = _env_or_none("ACK_DISRUPTIVE_CHANGES", environ=env) or ""
    return frozenset(_parse_csv(raw))
