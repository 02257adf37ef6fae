import json

import pytest

from unified_login.config import (
    ProviderRef,
    acknowledged_changes,
    config_from_dict,
    config_from_env,
    default_config,
    load_config,
)
from unified_login.errors import ConfigurationError, UsageError


def test_scenario_fills_default_ids_and_references(scenario):
    cfg = config_from_dict(scenario)

    assert [d.id for d in cfg.directories] == ["UserPool"]
    assert cfg.directories[0].name == "UserPool"
    assert cfg.directories[0].sign_in_aliases.email
    assert cfg.clients[0].id == "UserPoolClient"
    assert cfg.clients[0].directory == "UserPool"
    assert cfg.clients[0].oauth.flows.authorization_code_grant
    assert not cfg.clients[0].oauth.flows.implicit_code_grant
    assert cfg.domains[0].directory == "UserPool"
    assert cfg.federations[0].providers == (ProviderRef(client="UserPoolClient", directory="UserPool"),)
    binding = cfg.role_bindings[0]
    assert binding.federation == "IdentityPool"
    assert binding.policy_statements[0].actions == ("cognito-sync:*",)
    assert binding.policy_statements[0].resources == ("*",)


def test_plural_entries_get_numbered_ids(scenario):
    scenario["directories"] = [{"signInAliases": {"username": True}}]
    scenario["client"]["directory"] = "UserPool"
    scenario["domain"]["directory"] = "UserPool"
    cfg = config_from_dict(scenario)

    assert [d.id for d in cfg.directories] == ["UserPool", "UserPool2"]
    assert cfg.directories[1].sign_in_aliases.username


def test_ambiguous_reference_must_be_explicit(scenario):
    scenario["directories"] = [{"id": "Other", "signInAliases": ["email"]}]
    with pytest.raises(ConfigurationError) as exc:
        config_from_dict(scenario)
    assert exc.value.reason == "MissingField"
    assert exc.value.entity == "UserPoolClient"


def test_flag_groups_accept_objects(scenario):
    scenario["client"]["oauth"]["flows"] = {"authorizationCodeGrant": True, "implicitCodeGrant": False}
    scenario["client"]["authFlows"] = {"userSrp": True}
    cfg = config_from_dict(scenario)

    assert cfg.clients[0].oauth.flows.enabled() == ("authorization_code_grant",)
    assert cfg.clients[0].auth_flows.user_srp


def test_unknown_flag_is_a_usage_error(scenario):
    scenario["client"]["oauth"]["flows"] = ["deviceCode"]
    with pytest.raises(UsageError):
        config_from_dict(scenario)


def test_provider_objects_are_accepted(scenario):
    scenario["federation"]["providers"] = [{"client": "UserPoolClient", "directory": "UserPool"}]
    cfg = config_from_dict(scenario)
    assert cfg.federations[0].providers == (ProviderRef(client="UserPoolClient", directory="UserPool"),)


def test_single_client_is_federated_when_providers_omitted(scenario):
    del scenario["federation"]["providers"]
    cfg = config_from_dict(scenario)
    assert cfg.federations[0].providers == (ProviderRef(client="UserPoolClient", directory="UserPool"),)


def test_document_scope_overrides_arguments(scenario):
    scenario["region"] = "eu-central-1"
    cfg = config_from_dict(scenario, region="us-east-2", stage="dev")
    assert cfg.region == "eu-central-1"
    assert cfg.stage == "dev"


def test_load_config_reads_json_file(tmp_path, scenario):
    path = tmp_path / "login.json"
    path.write_text(json.dumps(scenario), encoding="utf-8")

    assert load_config(path) == config_from_dict(scenario)


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "login.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(UsageError, match="expected JSON object"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(UsageError, match="cannot read config file"):
        load_config(tmp_path / "missing.json")


def test_env_defaults_to_built_in_stack():
    assert config_from_env({}) == default_config()


def test_env_scope_and_config_file(tmp_path, scenario):
    path = tmp_path / "login.json"
    path.write_text(json.dumps(scenario), encoding="utf-8")
    cfg = config_from_env(
        {
            "UNIFIED_LOGIN_CONFIG": str(path),
            "STAGE": "dev",
            "CDK_DEFAULT_REGION": "ap-southeast-2",
            "CDK_STACK_NAME": "LoginDev",
        }
    )

    assert (cfg.stack_name, cfg.stage, cfg.region) == ("LoginDev", "dev", "ap-southeast-2")
    assert cfg.clients[0].oauth.callback_urls == ("https://a.com/cb",)


def test_env_overrides_prefix_and_urls():
    cfg = config_from_env(
        {
            "DOMAIN_PREFIX": "acme-login",
            "CALLBACK_URLS": "https://acme.com/cb, https://acme.com/cb ,https://m.acme.com/cb",
            "LOGOUT_URLS": "https://acme.com/bye",
        }
    )

    assert cfg.domains[0].domain_prefix == "acme-login"
    assert cfg.clients[0].oauth.callback_urls == ("https://acme.com/cb", "https://m.acme.com/cb")
    assert cfg.clients[0].oauth.logout_urls == ("https://acme.com/bye",)


def test_env_retention_mode_applies_to_every_directory():
    cfg = config_from_env({"DATA_RETENTION_MODE": "Retain"})
    assert {d.removal_behavior for d in cfg.directories} == {"retain"}


def test_env_rejects_unknown_retention_mode():
    with pytest.raises(ValueError, match="DATA_RETENTION_MODE"):
        config_from_env({"DATA_RETENTION_MODE": "archive"})


def test_acknowledged_changes_parses_csv():
    assert acknowledged_changes({}) == frozenset()
    acks = acknowledged_changes({"ACK_DISRUPTIVE_CHANGES": "DomainPrefixReplacement, DomainPrefixReplacement:Domain"})
    assert acks == frozenset({"DomainPrefixReplacement", "DomainPrefixReplacement:Domain"})


@pytest.mark.parametrize(
    "key, value",
    [
        ("domain", "unifiedlogin"),
        ("clients", ["not-an-object", 42]),
        ("clients", {"id": "WebClient"}),
        ("roleBindings", [{"id": "GuestRole"}, "GuestRole"]),
    ],
)
def test_malformed_entries_are_rejected_not_dropped(scenario, key, value):
    scenario[key] = value
    with pytest.raises(UsageError, match=key):
        config_from_dict(scenario)


@pytest.mark.parametrize(
    "entity, key",
    [
        ("directory", "passwordPolicy"),
        ("directory", "standardAttributes"),
        ("client", "oauth"),
    ],
)
def test_nested_sections_must_be_objects(scenario, entity, key):
    scenario[entity][key] = ["minLength", 8]
    with pytest.raises(UsageError, match=key):
        config_from_dict(scenario)


def test_standard_attribute_entries_must_be_objects(scenario):
    scenario["directory"]["standardAttributes"] = {"email": True}
    with pytest.raises(UsageError, match="standardAttributes.email"):
        config_from_dict(scenario)
