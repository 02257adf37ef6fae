from dataclasses import replace

import pytest

from unified_login.client import define_client
from unified_login.config import (
    AutoVerify,
    ClientConfig,
    DirectoryConfig,
    FederationConfig,
    PolicyStatementConfig,
    ProviderRef,
    RoleBindingConfig,
    SignInAliases,
)
from unified_login.descriptors import DescriptorScope
from unified_login.directory import define_directory
from unified_login.errors import ConfigurationError
from unified_login.federation import define_federation
from unified_login.role_binding import attach_roles, define_role_binding, is_over_broad_action

SCOPE = DescriptorScope(stack_name="UnifiedLoginStack", stage="prod", region="us-east-2")
SYNC = PolicyStatementConfig(actions=("cognito-sync:*",), resources=("*",))


def _directory(logical_id: str):
    return define_directory(
        DirectoryConfig(
            id=logical_id,
            name=logical_id,
            sign_in_aliases=SignInAliases(email=True),
            auto_verify=AutoVerify(email=True),
        ),
        SCOPE,
    )


@pytest.fixture
def world():
    directories = {"PoolA": _directory("PoolA"), "PoolB": _directory("PoolB")}
    clients = {}
    for client_id, directory in (("ClientA", "PoolA"), ("ClientB", "PoolB")):
        descriptor, _ = define_client(ClientConfig(id=client_id, directory=directory), directories, SCOPE)
        clients[client_id] = descriptor
    return directories, clients


def _federation(world, *pairs, **kwargs):
    directories, clients = world
    config = FederationConfig(
        id=kwargs.pop("id", "IdentityPool"),
        name=kwargs.pop("name", "MyAppIdentityPool"),
        providers=tuple(ProviderRef(client=c, directory=d) for c, d in pairs),
        **kwargs,
    )
    return define_federation(config, clients, directories, SCOPE)


def _federation_reason(world, *pairs, **kwargs) -> str:
    with pytest.raises(ConfigurationError) as exc:
        _federation(world, *pairs, **kwargs)
    return exc.value.reason


def _binding(federation, *, state="authenticated", statements=(SYNC,), binding_id="AuthenticatedRole", audience=None):
    config = RoleBindingConfig(
        id=binding_id,
        federation=federation.logical_id,
        authentication_state=state,
        policy_statements=statements,
        audience=audience,
    )
    return define_role_binding(config, {federation.logical_id: federation})


# --- federation ---------------------------------------------------------------


def test_federation_carries_provider_ids(world):
    directories, clients = world
    f = _federation(world, ("ClientA", "PoolA"), ("ClientB", "PoolB"))

    assert f.federation_id.startswith("us-east-2:")
    assert [p.client_id for p in f.providers] == [clients["ClientA"].client_id, clients["ClientB"].client_id]
    assert f.providers[0].provider_name == directories["PoolA"].provider_name


def test_federation_needs_providers(world):
    assert _federation_reason(world) == "MissingProviders"


def test_duplicate_provider_pairs_are_rejected(world):
    assert _federation_reason(world, ("ClientA", "PoolA"), ("ClientA", "PoolA")) == "DuplicateProvider"


def test_client_must_belong_to_paired_directory(world):
    assert _federation_reason(world, ("ClientA", "PoolB")) == "ClientDirectoryMismatch"


def test_unvalidated_client_is_unresolved(world):
    assert _federation_reason(world, ("Ghost", "PoolA")) == "UnresolvedReference"


@pytest.mark.parametrize("name", ["", "bad-name!", "x" * 129])
def test_federation_name_is_checked(world, name):
    assert _federation_reason(world, ("ClientA", "PoolA"), name=name) == "InvalidFederationName"


# --- role bindings --------------------------------------------------------------


def test_trust_policy_is_scoped_to_the_owning_federation(world):
    f = _federation(world, ("ClientA", "PoolA"))
    b = _binding(f)

    assert b.federation_id == f.federation_id
    assert b.trust.conditions() == {
        "StringEquals": {"cognito-identity.amazonaws.com:aud": f.federation_id},
        "ForAnyValue:StringLike": {"cognito-identity.amazonaws.com:amr": "authenticated"},
    }
    assert b.trust.action == "sts:AssumeRoleWithWebIdentity"


def test_audience_override_must_match(world):
    f = _federation(world, ("ClientA", "PoolA"))
    assert _binding(f, audience=f.federation_id).trust.audience == f.federation_id

    with pytest.raises(ConfigurationError) as exc:
        _binding(f, audience="us-east-2:someone-else")
    assert exc.value.reason == "TrustAudienceMismatch"


def test_role_binding_needs_statements(world):
    f = _federation(world, ("ClientA", "PoolA"))
    with pytest.raises(ConfigurationError) as exc:
        _binding(f, statements=())
    assert exc.value.reason == "EmptyPolicyStatement"

    with pytest.raises(ConfigurationError) as exc:
        _binding(f, statements=(PolicyStatementConfig(actions=(), resources=("*",)),))
    assert exc.value.reason == "EmptyPolicyStatement"


def test_unknown_authentication_state_is_rejected(world):
    f = _federation(world, ("ClientA", "PoolA"))
    with pytest.raises(ConfigurationError) as exc:
        _binding(f, state="guest")
    assert exc.value.reason == "InvalidAuthenticationState"


@pytest.mark.parametrize(
    "action",
    ["*", "s3:GetObject", "iam:PassRole", "sqs:*", "sns:Publish*", "execute-api:DeleteThing"],
)
def test_over_broad_actions(action):
    assert is_over_broad_action(action)


@pytest.mark.parametrize(
    "action",
    ["cognito-sync:*", "mobileanalytics:PutEvents", "cognito-identity:GetId", "execute-api:Invoke"],
)
def test_identity_scoped_and_read_actions_are_allowed(action):
    assert not is_over_broad_action(action)


def test_over_broad_grant_on_every_resource_is_rejected(world):
    f = _federation(world, ("ClientA", "PoolA"))
    stmt = PolicyStatementConfig(actions=("s3:*",), resources=("*",))
    with pytest.raises(ConfigurationError) as exc:
        _binding(f, statements=(stmt,))
    assert exc.value.reason == "OverBroadGrant"


def test_scoped_resources_and_deny_statements_are_accepted(world):
    f = _federation(world, ("ClientA", "PoolA"))
    scoped = PolicyStatementConfig(actions=("s3:GetObject",), resources=("arn:aws:s3:::bucket/*",))
    deny = PolicyStatementConfig(actions=("*",), resources=("*",), effect="Deny")
    b = _binding(f, statements=(SYNC, scoped, deny))
    assert b.statements == (SYNC, scoped, deny)


# --- attachments ------------------------------------------------------------------


def test_attachment_lists_authenticated_first(world):
    f = _federation(world, ("ClientA", "PoolA"), allow_unauthenticated=True)
    guest = _binding(f, state="unauthenticated", binding_id="GuestRole")
    authed = _binding(f)

    (attachment,) = attach_roles([f], [guest, authed])
    assert attachment.federation_ref == "IdentityPool"
    assert attachment.roles == (("authenticated", "AuthenticatedRole"), ("unauthenticated", "GuestRole"))


def test_missing_authenticated_role(world):
    f = _federation(world, ("ClientA", "PoolA"))
    with pytest.raises(ConfigurationError) as exc:
        attach_roles([f], [])
    assert exc.value.reason == "MissingAuthenticatedRole"
    assert exc.value.entity == "IdentityPool"


def test_guest_access_needs_a_guest_role(world):
    f = _federation(world, ("ClientA", "PoolA"), allow_unauthenticated=True)
    with pytest.raises(ConfigurationError) as exc:
        attach_roles([f], [_binding(f)])
    assert exc.value.reason == "MissingGuestRole"


def test_guest_role_without_guest_access_is_rejected(world):
    f = _federation(world, ("ClientA", "PoolA"))
    guest = _binding(f, state="unauthenticated", binding_id="GuestRole")
    with pytest.raises(ConfigurationError) as exc:
        attach_roles([f], [_binding(f), guest])
    assert exc.value.reason == "UnexpectedGuestRole"


def test_two_roles_for_one_state_are_rejected(world):
    f = _federation(world, ("ClientA", "PoolA"))
    second = _binding(f, binding_id="AnotherRole")
    with pytest.raises(ConfigurationError) as exc:
        attach_roles([f], [_binding(f), second])
    assert exc.value.reason == "DuplicateRoleBinding"
    assert exc.value.entity == "AnotherRole"


def test_attachment_rechecks_trust_audience(world):
    f = _federation(world, ("ClientA", "PoolA"))
    other = _federation(world, ("ClientB", "PoolB"), id="OtherPool", name="Other")
    # Bound to OtherPool's id but filed under IdentityPool.
    stray = replace(_binding(other), config=replace(_binding(other).config, federation="IdentityPool"))
    with pytest.raises(ConfigurationError) as exc:
        attach_roles([f], [stray])
    assert exc.value.reason == "TrustAudienceMismatch"


def test_federation_name_with_trailing_newline_is_rejected(world):
    assert _federation_reason(world, ("ClientA", "PoolA"), name="MyAppIdentityPool\n") == "InvalidFederationName"


@pytest.mark.parametrize("action", ["iam*:CreateUser", "*:GetObject", "cognito-*:ListUsers"])
def test_service_wildcards_are_over_broad(action):
    assert is_over_broad_action(action)


def test_wildcard_among_several_resources_is_still_checked(world):
    f = _federation(world, ("ClientA", "PoolA"))
    stmt = PolicyStatementConfig(actions=("iam:*",), resources=("*", "arn:aws:s3:::x"))
    with pytest.raises(ConfigurationError) as exc:
        _binding(f, statements=(stmt,))
    assert exc.value.reason == "OverBroadGrant"


def test_unknown_effect_is_an_invalid_statement(world):
    f = _federation(world, ("ClientA", "PoolA"))
    stmt = PolicyStatementConfig(actions=("cognito-sync:*",), resources=("*",), effect="Maybe")
    with pytest.raises(ConfigurationError) as exc:
        _binding(f, statements=(stmt,))
    assert exc.value.reason == "InvalidPolicyStatement"
