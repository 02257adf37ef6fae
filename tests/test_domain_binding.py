import pytest

from unified_login.config import AutoVerify, DirectoryConfig, DomainConfig, SignInAliases
from unified_login.descriptors import DescriptorScope
from unified_login.directory import define_directory
from unified_login.domain import define_domain, plan_domain_change
from unified_login.errors import ConfigurationError, DisruptiveChangeWarning

SCOPE = DescriptorScope(stack_name="UnifiedLoginStack", stage="prod", region="us-east-2")


@pytest.fixture
def directories():
    d = define_directory(
        DirectoryConfig(
            id="UserPool",
            name="UserPool",
            sign_in_aliases=SignInAliases(email=True),
            auto_verify=AutoVerify(email=True),
        ),
        SCOPE,
    )
    return {"UserPool": d}


def _domain(prefix: str, directory: str = "UserPool") -> DomainConfig:
    return DomainConfig(id="Domain", directory=directory, domain_prefix=prefix)


def test_domain_binds_to_directory_and_region(directories):
    d = define_domain(_domain("unifiedlogin"), directories, SCOPE)

    assert d.directory_id == directories["UserPool"].directory_id
    assert d.hosted_ui_base_url == "https://unifiedlogin.auth.us-east-2.amazoncognito.com"


@pytest.mark.parametrize(
    "prefix",
    ["", "UpperCase", "-leading", "trailing-", "under_score", "a" * 64, "dots.not.allowed"],
)
def test_invalid_prefixes_are_rejected(directories, prefix):
    with pytest.raises(ConfigurationError) as exc:
        define_domain(_domain(prefix), directories, SCOPE)
    assert exc.value.reason == "InvalidDomainPrefix"


@pytest.mark.parametrize("prefix", ["aws-login", "myamazon", "cognito"])
def test_reserved_words_are_rejected(directories, prefix):
    with pytest.raises(ConfigurationError) as exc:
        define_domain(_domain(prefix), directories, SCOPE)
    assert exc.value.reason == "ReservedDomainPrefix"


def test_single_character_and_max_length_prefixes_are_valid(directories):
    define_domain(_domain("a"), directories, SCOPE)
    define_domain(_domain("a" * 63), directories, SCOPE)


def test_unvalidated_directory_is_unresolved(directories):
    with pytest.raises(ConfigurationError) as exc:
        define_domain(_domain("login", directory="Missing"), directories, SCOPE)
    assert exc.value.reason == "UnresolvedReference"
    assert exc.value.entity == "Domain"


def test_prefix_change_is_disruptive(directories):
    d = define_domain(_domain("newlogin"), directories, SCOPE)
    change = plan_domain_change("oldlogin", d)

    assert isinstance(change, DisruptiveChangeWarning)
    assert change.kind == "DisruptiveChangeWarning"
    assert change.entity == "Domain"
    assert "'oldlogin'" in change.message and "'newlogin'" in change.message


def test_first_deploy_and_same_prefix_are_not_disruptive(directories):
    d = define_domain(_domain("login"), directories, SCOPE)
    assert plan_domain_change(None, d) is None
    assert plan_domain_change("", d) is None
    assert plan_domain_change("login", d) is None


def test_prefix_with_trailing_newline_is_rejected(directories):
    with pytest.raises(ConfigurationError) as exc:
        define_domain(_domain("unifiedlogin\n"), directories, SCOPE)
    assert exc.value.reason == "InvalidDomainPrefix"
