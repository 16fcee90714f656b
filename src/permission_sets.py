import json
from typing import Iterable

import config
import errors
from entities.aws import PermissionSetDefinition, PolicyReference

logger = config.get_logger(service="permission_sets")


def index_permission_sets(permission_sets: Iterable[PermissionSetDefinition]) -> dict[str, PermissionSetDefinition]:
    """Map permission set names to their definitions.

    Raises:
        errors.DuplicatePermissionSetError: if two definitions share a name.
    """
    index: dict[str, PermissionSetDefinition] = {}
    duplicates: list[str] = []
    for permission_set in permission_sets:
        if permission_set.name in index:
            duplicates.append(permission_set.name)
            continue
        index[permission_set.name] = permission_set
    if duplicates:
        raise errors.DuplicatePermissionSetError(f"Permission sets defined more than once: {sorted(set(duplicates))}")
    return index


def ensure_defined(index: dict[str, PermissionSetDefinition], names: Iterable[str]) -> None:
    if missing := sorted(set(names) - set(index)):
        raise errors.UnknownPermissionSetError(f"Permission sets referenced but not defined: {missing}")


def iso8601_session_duration(hours: int) -> str:
    return f"PT{hours}H"


def _policy_as_dict(policy: PolicyReference) -> dict:
    if policy.managed_by == "aws":
        return {"policy_arn": f"arn:aws:iam::aws:policy{policy.policy_path}{policy.policy_name}"}
    return {"policy_name": policy.policy_name, "policy_path": policy.policy_path}


def render_permission_set(permission_set: PermissionSetDefinition) -> dict:
    """Render a definition in the shape the provisioning module consumes."""
    inline_policy = json.loads(permission_set.inline_policy_json) if permission_set.inline_policy_json else None
    boundary = permission_set.boundary_policy
    return {
        "name": permission_set.name,
        "description": permission_set.description,
        "session_duration": iso8601_session_duration(permission_set.session_duration),
        "inline_policy": json.dumps(inline_policy, sort_keys=True) if inline_policy else "",
        "aws_managed_policies": [_policy_as_dict(p) for p in permission_set.managed_policies if p.managed_by == "aws"],
        "customer_managed_policies": [_policy_as_dict(p) for p in permission_set.managed_policies if p.managed_by == "customer"],
        "permissions_boundary": ({"managed_by": boundary.managed_by} | _policy_as_dict(boundary)) if boundary else {},
    }


def render_permission_sets(permission_sets: Iterable[PermissionSetDefinition]) -> list[dict]:
    index = index_permission_sets(permission_sets)
    logger.debug("Rendering permission sets", extra={"permission_sets": list(index)})
    return [render_permission_set(permission_set) for permission_set in index.values()]
