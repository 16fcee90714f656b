"""Users and groups for Identity Center instances without SCIM provisioning.

With automatic provisioning enabled the external identity provider owns users
and groups, so nothing is read here. Otherwise they come from YAML files that
hold either a plain list or a mapping with an ``sso_users``/``sso_groups`` key.
"""

from typing import Iterable

import yaml
from pydantic import ValidationError

import config
import errors
from entities.aws import ManualSSOGroup, ManualSSOUser

logger = config.get_logger(service="identity")


def _load_yaml_list(path: str, key: str) -> list[dict]:
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise errors.ConfigurationError(f"{path}: expected a list of {key}")
    return data


def load_manual_users(path: str) -> list[ManualSSOUser]:
    try:
        users = [ManualSSOUser.model_validate(user) for user in _load_yaml_list(path, "sso_users")]
    except ValidationError as e:
        raise errors.ConfigurationError(f"{path}: invalid user definition: {e}") from e
    logger.info(f"Loaded {len(users)} users from {path}")
    return users


def load_manual_groups(path: str) -> list[ManualSSOGroup]:
    try:
        groups = [ManualSSOGroup.model_validate(group) for group in _load_yaml_list(path, "sso_groups")]
    except ValidationError as e:
        raise errors.ConfigurationError(f"{path}: invalid group definition: {e}") from e
    logger.info(f"Loaded {len(groups)} groups from {path}")
    return groups


def validate_group_members(users: Iterable[ManualSSOUser], groups: Iterable[ManualSSOGroup]) -> None:
    problems: list[str] = []
    user_names: set[str] = set()
    for user in users:
        if user.user_name in user_names:
            problems.append(f"user '{user.user_name}' is defined more than once")
        user_names.add(user.user_name)
    seen_groups: set[str] = set()
    for group in groups:
        if group.group_name in seen_groups:
            problems.append(f"group '{group.group_name}' is defined more than once")
        seen_groups.add(group.group_name)
        problems.extend(
            f"group '{group.group_name}' references unknown user '{member}'"
            for member in group.member_usernames
            if member not in user_names
        )
    if problems:
        raise errors.ConfigurationError("Manual provisioning configuration is invalid:\n" + "\n".join(f"  - {p}" for p in problems))


def load_manual_provisioning(
    cfg: config.Config,
) -> tuple[list[ManualSSOUser], list[ManualSSOGroup]]:
    if cfg.is_automatic_provisioning_enabled:
        if cfg.manual_sso_users_file or cfg.manual_sso_groups_file:
            logger.info("Automatic provisioning is enabled, manual users and groups files are ignored")
        return [], []

    users = load_manual_users(cfg.manual_sso_users_file) if cfg.manual_sso_users_file else []
    groups = load_manual_groups(cfg.manual_sso_groups_file) if cfg.manual_sso_groups_file else []
    validate_group_members(users, groups)
    return users, groups


def group_names(groups: Iterable[ManualSSOGroup]) -> frozenset[str]:
    return frozenset(group.group_name for group in groups)
