from typing import Iterable

import boto3
from aws_lambda_powertools.utilities.typing import LambdaContext
from mypy_boto3_sts import STSClient

import config
import identity
import inventory
import permission_sets
import resolver
from entities.aws import AccountRecord, AssignmentEntry, IdentityCenterConfiguration, ManualSSOGroup
from errors import handle_errors

logger = config.get_logger(service="main")

session = boto3.Session()
ssm_client = session.client("ssm")
sts_client = session.client("sts")


def get_caller_context(client: STSClient, boto_session: boto3.Session) -> tuple[str, str]:
    """Current account id and region, taken as-is from the ambient AWS context."""
    account_id = client.get_caller_identity()["Account"]
    region = boto_session.region_name or client.meta.region_name
    return account_id, region


def warn_about_undefined_groups(assignments: Iterable[AssignmentEntry], groups: Iterable[ManualSSOGroup]) -> set[str]:
    # Groups may already exist in the identity store, so this is only a hint for the operator
    defined = identity.group_names(groups)
    referenced = {group for entry in assignments for permission in entry.permissions for group in permission.groups}
    undefined = referenced - defined
    if undefined:
        logger.warning(
            "Assignments reference groups that are not in the manual groups file",
            extra={"groups": sorted(undefined)},
        )
    return undefined


def build_identity_center_configuration(
    cfg: config.Config,
    accounts: Iterable[AccountRecord],
    parameters: dict[str, str],
    current_account_id: str,
    current_region: str,
) -> IdentityCenterConfiguration:
    users, groups = identity.load_manual_provisioning(cfg)
    assignments = resolver.resolve(
        accounts,
        cfg.permission_sets,
        cfg.account_roles,
        filters=resolver.decommission_filter(cfg.decommission_tag_key),
    )
    if not cfg.is_automatic_provisioning_enabled:
        warn_about_undefined_groups(assignments, groups)

    return IdentityCenterConfiguration(
        is_automatic_provisioning_enabled=cfg.is_automatic_provisioning_enabled,
        sso_users=tuple(users),
        sso_groups=tuple(groups),
        permission_sets=tuple(permission_sets.render_permission_sets(cfg.permission_sets)),
        account_assignments=tuple(assignments),
        current_account_id=current_account_id,
        current_region=current_region,
        parameters=parameters,
    )


@handle_errors
@logger.inject_lambda_context(log_event=False)
def lambda_handler(event: dict, context: LambdaContext) -> dict:  # noqa: ARG001
    cfg = config.get_config()
    if "account_map" in event:
        accounts = inventory.parse_account_map(event["account_map"])
    else:
        accounts = inventory.load_account_inventory(ssm_client, cfg.account_map_parameter_name)
    parameters = inventory.get_parameters(ssm_client, cfg.parameters_path)
    current_account_id, current_region = get_caller_context(sts_client, session)

    configuration = build_identity_center_configuration(cfg, accounts, parameters, current_account_id, current_region)
    logger.info(
        "Identity Center configuration built",
        extra={"account_assignments": len(configuration.account_assignments), "permission_sets": len(configuration.permission_sets)},
    )
    return configuration.dict()
