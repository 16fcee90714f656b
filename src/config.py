import json
import os
from typing import Any, Optional

from aws_lambda_powertools import Logger
from mypy_boto3_s3 import S3Client
from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import entities
import errors
from entities.aws import PermissionSetDefinition
from rules import GlobalGroupRule, RoleBinding, default_rules


def get_logger(service: Optional[str] = None, level: Optional[str] = None) -> Logger:
    kwargs = {
        "json_default": entities.json_default,
        "level": level or os.environ.get("LOG_LEVEL", "INFO"),
    }
    if service:
        kwargs["service"] = service
    return Logger(**kwargs)


logger = get_logger(service="config")

IDENTITY_CENTER_CONFIG_KEYS = ("permission_sets", "account_roles")


def load_identity_center_config_from_s3(s3_client: S3Client, bucket_name: str, s3_key: str) -> dict:
    """Read the permission sets and role rules kept as one JSON object in S3.

    A document without ``permission_sets`` defines none; one without ``account_roles`` gets the default roles.
    A missing bucket or object is re-raised as is, a document that is not a JSON object is a configuration error.
    """
    location = f"s3://{bucket_name}/{s3_key}"
    logger.info("Reading permission sets and role rules", extra={"location": location})
    try:
        body = s3_client.get_object(Bucket=bucket_name, Key=s3_key)["Body"].read()
    except (s3_client.exceptions.NoSuchBucket, s3_client.exceptions.NoSuchKey):
        logger.error("Identity Center configuration document does not exist", extra={"location": location})
        raise

    try:
        document = json.loads(body)
    except json.JSONDecodeError as e:
        raise errors.ConfigurationError(f"{location} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise errors.ConfigurationError(f"{location} must hold a JSON object with {list(IDENTITY_CENTER_CONFIG_KEYS)}")

    if ignored := sorted(set(document) - set(IDENTITY_CENTER_CONFIG_KEYS)):
        logger.warning("Ignoring unknown keys in Identity Center configuration", extra={"location": location, "keys": ignored})
    return {
        "permission_sets": document.get("permission_sets") or [],
        "account_roles": document.get("account_roles"),
    }


def _pick(_dict: dict, *keys: str, default: Any = None) -> Any:  # noqa: ANN401
    # Configuration documents use either CamelCase or snake_case keys
    return next((_dict[key] for key in keys if key in _dict), default)


def to_tuple_if_list_or_str(v: list | str | None) -> tuple[str, ...]:
    if v is None:
        return ()
    if isinstance(v, str):
        return (v,)
    return tuple(v)


def parse_policy_reference(_dict: dict | None) -> dict | None:
    if not _dict:
        return None
    return {
        "managed_by": _pick(_dict, "ManagedBy", "managed_by"),
        "policy_name": _pick(_dict, "PolicyName", "policy_name"),
        "policy_path": _pick(_dict, "PolicyPath", "policy_path", default="/"),
    }


def parse_permission_set(_dict: dict) -> PermissionSetDefinition:
    if not isinstance(_dict, dict):
        raise errors.InvalidPermissionSetError(f"Permission set must be a mapping, got {_dict!r}")
    try:
        return PermissionSetDefinition.model_validate(
            {
                "name": _pick(_dict, "Name", "name"),
                "description": _pick(_dict, "Description", "description", default=""),
                "session_duration": _pick(_dict, "SessionDuration", "session_duration"),
                "inline_policy_json": _pick(_dict, "InlinePolicy", "inline_policy_json"),
                "managed_policies": [
                    parse_policy_reference(policy) for policy in _pick(_dict, "ManagedPolicies", "managed_policies", default=[]) or []
                ],
                "boundary_policy": parse_policy_reference(_pick(_dict, "BoundaryPolicy", "boundary_policy")),
            }
        )
    except (ValidationError, ValueError, TypeError) as e:
        name = _pick(_dict, "Name", "name")
        raise errors.InvalidPermissionSetError(f"Invalid permission set {name or '<unnamed>'}: {e}") from e


def parse_role_binding(_dict: dict) -> RoleBinding:
    if not isinstance(_dict, dict):
        raise errors.InvalidRoleRuleError(f"Role rule must be a mapping, got {_dict!r}")
    try:
        return RoleBinding.model_validate(
            {
                "role": _pick(_dict, "Role", "role"),
                "permission_set_name": _pick(_dict, "PermissionSet", "permission_set_name"),
                "groups": to_tuple_if_list_or_str(_pick(_dict, "Groups", "groups")),
                "users": to_tuple_if_list_or_str(_pick(_dict, "Users", "users")),
                "account_groups_key": _pick(_dict, "AccountGroupsKey", "account_groups_key"),
                "account_users_key": _pick(_dict, "AccountUsersKey", "account_users_key"),
            }
        )
    except (ValidationError, TypeError) as e:
        role = _pick(_dict, "Role", "role")
        raise errors.InvalidRoleRuleError(f"Invalid role rule {role or '<unnamed>'}: {e}") from e


def parse_account_roles(raw: list | dict | None) -> GlobalGroupRule:
    if raw is None:
        return default_rules()
    try:
        if isinstance(raw, dict):
            # {"admin": ["g-admin"], ...}: global groups for the default roles
            return GlobalGroupRule.from_mapping({role: list(to_tuple_if_list_or_str(groups)) for role, groups in raw.items()})
        return GlobalGroupRule(roles=tuple(parse_role_binding(binding) for binding in raw))
    except (ValidationError, ValueError, TypeError) as e:
        raise errors.InvalidRoleRuleError(f"Invalid account roles: {e}") from e


def _decode_if_json(v: Any) -> Any:  # noqa: ANN401
    if isinstance(v, str):
        return json.loads(v)
    return v


class Config(BaseSettings):
    model_config = SettingsConfigDict(frozen=True)

    log_level: str = "INFO"

    is_automatic_provisioning_enabled: bool = True
    manual_sso_users_file: Optional[str] = None
    manual_sso_groups_file: Optional[str] = None

    account_map_parameter_name: str = "/account-factory/account-map"
    parameters_path: str = "/identity-center/"
    decommission_tag_key: str = "AccountDecommission"

    config_bucket_name: str = "identity-center-config"
    config_s3_key: str = ""

    permission_sets: tuple[PermissionSetDefinition, ...] = ()
    account_roles: GlobalGroupRule = Field(default_factory=default_rules)

    @model_validator(mode="before")
    @classmethod
    def get_permission_sets_and_roles(cls, values: dict) -> dict:  # noqa: ANN101
        import boto3

        config_s3_key = values.get("config_s3_key", "")

        if config_s3_key:
            s3_client = boto3.client("s3")
            config_bucket_name = values.get("config_bucket_name", "identity-center-config")
            config_data = load_identity_center_config_from_s3(s3_client, config_bucket_name, config_s3_key)
            permission_sets_raw = config_data.get("permission_sets")
            account_roles_raw = config_data.get("account_roles")
        else:
            permission_sets_raw = _decode_if_json(values.get("permission_sets"))
            account_roles_raw = _decode_if_json(values.get("account_roles"))

        if permission_sets_raw is not None:
            permission_sets = tuple(
                ps if isinstance(ps, PermissionSetDefinition) else parse_permission_set(ps) for ps in permission_sets_raw
            )
        else:
            permission_sets = ()

        if isinstance(account_roles_raw, GlobalGroupRule):
            account_roles = account_roles_raw
        else:
            account_roles = parse_account_roles(account_roles_raw)

        if not permission_sets:
            logger.warning("No permission sets configured")
        parameters_path = values.get("parameters_path", "/identity-center/")
        return values | {
            "permission_sets": permission_sets,
            "account_roles": account_roles,
            "parameters_path": parameters_path if parameters_path.endswith("/") else f"{parameters_path}/",
        }


_config: Optional[Config] = None


def get_config() -> Config:
    global _config  # noqa: PLW0603
    if _config is None:
        _config = Config()  # type: ignore # noqa: PGH003
    return _config
