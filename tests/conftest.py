import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def scenario_raw() -> dict:
    """Smallest complete config: one pool, one code-grant client, one identity pool."""
    return {
        "directory": {
            "signInAliases": ["email"],
            "autoVerify": ["email"],
            "passwordPolicy": {"minLength": 8},
        },
        "client": {
            "oauth": {
                "flows": ["authorizationCodeGrant"],
                "callbackUrls": ["https://a.com/cb"],
                "scopes": ["email"],
            }
        },
        "domain": {"domainPrefix": "unifiedlogin"},
        "federation": {"providers": [["UserPoolClient", "UserPool"]]},
        "roleBinding": {"actions": ["cognito-sync:*"], "resources": ["*"]},
    }


@pytest.fixture
def scenario() -> dict:
    return scenario_raw()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "UNIFIED_LOGIN_CONFIG",
        "CDK_STACK_NAME",
        "CDK_DEFAULT_REGION",
        "STAGE",
        "DATA_RETENTION_MODE",
        "DOMAIN_PREFIX",
        "CALLBACK_URLS",
        "LOGOUT_URLS",
        "ACK_DISRUPTIVE_CHANGES",
        "PREVIOUS_OUTPUTS_FILE",
        "COMPARE_DEPLOYED",
    ):
        monkeypatch.delenv(name, raising=False)
