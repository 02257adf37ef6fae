from typing import Sequence

from aws_cdk import (
    Annotations,
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_cognito as cognito,
    aws_iam as iam,
)
from constructs import Construct

from unified_login.descriptors import (
    ClientDescriptor,
    DirectoryDescriptor,
    FederationDescriptor,
    IdentityGraph,
    RoleBindingDescriptor,
)
from unified_login.directory import STANDARD_ATTRIBUTES
from unified_login.errors import ConfigurationWarning
from unified_login.outputs import (
    HOSTED_UI_BASE_URL,
    IDENTITY_POOL_ID,
    REGION,
    USER_POOL_CLIENT_ID,
    USER_POOL_ID,
    construct_id as cfn_id,
    domain_prefix_output_key,
    primary,
)

_OAUTH_SCOPES = {
    "email": cognito.OAuthScope.EMAIL,
    "phone": cognito.OAuthScope.PHONE,
    "openid": cognito.OAuthScope.OPENID,
    "profile": cognito.OAuthScope.PROFILE,
    "aws.cognito.signin.user.admin": cognito.OAuthScope.COGNITO_ADMIN,
}


def _oauth_scope(scope: str) -> cognito.OAuthScope:
    return _OAUTH_SCOPES.get(scope) or cognito.OAuthScope.custom(scope)


class UnifiedLoginStack(Stack):
    """
    Renders a composed identity graph as Cognito + IAM resources.

    The graph is validated before it gets here; this stack only translates
    descriptors into constructs and never re-decides configuration.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        graph: IdentityGraph,
        warnings: Sequence[ConfigurationWarning] = (),
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.user_pools: dict[str, cognito.UserPool] = {}
        self.user_pool_clients: dict[str, cognito.UserPoolClient] = {}
        self.user_pool_domains: dict[str, cognito.UserPoolDomain] = {}
        self.identity_pools: dict[str, cognito.CfnIdentityPool] = {}
        self.roles: dict[str, iam.Role] = {}

        for directory in graph.directories:
            self.user_pools[directory.logical_id] = self._user_pool(directory)

        for client in graph.clients:
            self.user_pool_clients[client.logical_id] = self._user_pool_client(client)

        for domain in graph.domains:
            # A new prefix replaces the domain; CloudFormation cannot rename it in place.
            self.user_pool_domains[domain.logical_id] = self.user_pools[
                domain.config.directory
            ].add_domain(
                cfn_id(domain.logical_id),
                cognito_domain=cognito.CognitoDomainOptions(
                    domain_prefix=domain.config.domain_prefix,
                ),
            )

        for federation in graph.federations:
            self.identity_pools[federation.logical_id] = self._identity_pool(federation)

        for binding in graph.role_bindings:
            self.roles[binding.logical_id] = self._role(binding)

        for attachment in graph.attachments:
            cognito.CfnIdentityPoolRoleAttachment(
                self,
                f"{cfn_id(attachment.federation_ref)}RoleAttachment",
                identity_pool_id=self.identity_pools[attachment.federation_ref].ref,
                roles={
                    state: self.roles[binding_ref].role_arn
                    for state, binding_ref in attachment.roles
                },
            )

        for w in warnings:
            Annotations.of(self).add_warning_v2(
                f"unified-login:{w.code}",
                f"{w.kind} [{w.entity}]: {w.message}",
            )

        primary_directory, primary_client, primary_federation = primary(graph)
        self.user_pool = self.user_pools[primary_directory.logical_id]
        self.user_pool_client = self.user_pool_clients[primary_client.logical_id]
        self.identity_pool = self.identity_pools[primary_federation.logical_id]

        CfnOutput(self, USER_POOL_ID, value=self.user_pool.user_pool_id)
        CfnOutput(
            self,
            USER_POOL_CLIENT_ID,
            value=self.user_pool_client.user_pool_client_id,
        )
        CfnOutput(self, IDENTITY_POOL_ID, value=self.identity_pool.ref)
        CfnOutput(self, REGION, value=self.region)

        for domain in graph.domains:
            CfnOutput(
                self,
                domain_prefix_output_key(domain.logical_id),
                value=domain.config.domain_prefix,
                description="Hosted UI domain prefix; compared on the next deploy to flag replacements.",
            )
        if graph.domains:
            CfnOutput(
                self,
                HOSTED_UI_BASE_URL,
                value=self.user_pool_domains[graph.domains[0].logical_id].base_url(),
            )

    def _user_pool(self, directory: DirectoryDescriptor) -> cognito.UserPool:
        cfg = directory.config
        aliases = cfg.sign_in_aliases
        policy = cfg.password_policy
        return cognito.UserPool(
            self,
            cfn_id(cfg.id),
            user_pool_name=cfg.name,
            self_sign_up_enabled=cfg.self_sign_up_enabled,
            sign_in_aliases=cognito.SignInAliases(
                username=aliases.username,
                email=aliases.email,
                phone=aliases.phone,
                preferred_username=aliases.preferred_username,
            ),
            sign_in_case_sensitive=cfg.sign_in_case_sensitive,
            auto_verify=cognito.AutoVerifiedAttrs(
                email=cfg.auto_verify.email,
                phone=cfg.auto_verify.phone,
            ),
            standard_attributes=cognito.StandardAttributes(
                **{
                    STANDARD_ATTRIBUTES[name][0]: cognito.StandardAttribute(
                        required=attr.required,
                        mutable=attr.mutable,
                    )
                    for name, attr in cfg.standard_attributes
                }
            ),
            password_policy=cognito.PasswordPolicy(
                min_length=policy.min_length,
                require_lowercase=policy.require_lowercase,
                require_uppercase=policy.require_uppercase,
                require_digits=policy.require_digits,
                require_symbols=policy.require_symbols,
                temp_password_validity=Duration.days(policy.temp_password_validity_days),
            ),
            account_recovery=getattr(cognito.AccountRecovery, cfg.account_recovery),
            removal_policy=(
                RemovalPolicy.DESTROY
                if cfg.removal_behavior == "destroy"
                else RemovalPolicy.RETAIN
            ),
        )

    def _user_pool_client(self, client: ClientDescriptor) -> cognito.UserPoolClient:
        cfg = client.config
        oauth = cfg.oauth
        extra: dict = {}
        if oauth.flows.enabled():
            extra["o_auth"] = cognito.OAuthSettings(
                flows=cognito.OAuthFlows(
                    authorization_code_grant=oauth.flows.authorization_code_grant,
                    implicit_code_grant=oauth.flows.implicit_code_grant,
                    client_credentials=oauth.flows.client_credentials,
                ),
                scopes=[_oauth_scope(s) for s in oauth.scopes],
                callback_urls=list(oauth.callback_urls) or None,
                logout_urls=list(oauth.logout_urls) or None,
            )
        else:
            extra["disable_o_auth"] = True
        return self.user_pools[cfg.directory].add_client(
            cfn_id(cfg.id),
            user_pool_client_name=cfg.name or None,
            auth_flows=cognito.AuthFlow(
                user_password=cfg.auth_flows.user_password,
                user_srp=cfg.auth_flows.user_srp,
                admin_user_password=cfg.auth_flows.admin_user_password,
                custom=cfg.auth_flows.custom,
            ),
            generate_secret=cfg.generate_secret,
            prevent_user_existence_errors=cfg.prevent_user_existence_errors,
            **extra,
        )

    def _identity_pool(self, federation: FederationDescriptor) -> cognito.CfnIdentityPool:
        cfg = federation.config
        providers = []
        for p in federation.providers:
            user_pool = self.user_pools[p.directory_ref]
            providers.append(
                cognito.CfnIdentityPool.CognitoIdentityProviderProperty(
                    client_id=self.user_pool_clients[p.client_ref].user_pool_client_id,
                    provider_name=user_pool.user_pool_provider_name,
                )
            )
        return cognito.CfnIdentityPool(
            self,
            cfn_id(cfg.id),
            identity_pool_name=cfg.name,
            allow_unauthenticated_identities=cfg.allow_unauthenticated,
            allow_classic_flow=cfg.allow_classic_flow,
            cognito_identity_providers=providers,
        )

    def _role(self, binding: RoleBindingDescriptor) -> iam.Role:
        identity_pool = self.identity_pools[binding.config.federation]
        trust = binding.trust
        role = iam.Role(
            self,
            cfn_id(binding.logical_id),
            # The descriptor's audience is the federation id; at deploy time that is the pool's Ref.
            assumed_by=iam.FederatedPrincipal(
                trust.principal,
                trust.conditions(audience=identity_pool.ref),
                trust.action,
            ),
            description=f"Assumed by {trust.authentication_state} identities of {binding.config.federation}.",
        )
        for stmt in binding.statements:
            role.add_to_policy(
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW if stmt.effect == "Allow" else iam.Effect.DENY,
                    actions=list(stmt.actions),
                    resources=list(stmt.resources),
                )
            )
        return role
