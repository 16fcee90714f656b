from typing import Optional

from pydantic import model_validator

from entities import BaseModel
from entities.aws import NonEmptyStr, PermissionSetName

# role -> permission set granted on every managed account, in provisioning order
DEFAULT_ROLE_PERMISSION_SETS = {
    "admin": "AdministratorAccess",
    "billing": "Billing",
    "support": "SupportUser",
}


class RoleBinding(BaseModel):
    role: NonEmptyStr
    permission_set_name: PermissionSetName
    groups: tuple[str, ...] = ()
    users: tuple[str, ...] = ()
    account_groups_key: Optional[str] = None
    account_users_key: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def default_account_keys(cls, values: dict) -> dict:  # noqa: ANN101
        if not isinstance(values, dict):
            return values
        role = values.get("role")
        return values | {
            "account_groups_key": values.get("account_groups_key") or f"sso_{role}_groups",
            "account_users_key": values.get("account_users_key") or f"sso_{role}_users",
        }


class GlobalGroupRule(BaseModel):
    roles: tuple[RoleBinding, ...] = ()

    @model_validator(mode="after")
    def unique_roles(self) -> "GlobalGroupRule":  # noqa: ANN101
        seen = set()
        for binding in self.roles:
            if binding.role in seen:
                raise ValueError(f"Role {binding.role} is configured more than once")
            seen.add(binding.role)
        return self

    @staticmethod
    def from_mapping(
        groups_by_role: dict[str, list[str]],
        permission_sets_by_role: dict[str, str] | None = None,
    ) -> "GlobalGroupRule":
        """Build rules from a plain role -> groups mapping.

        Roles keep the order of ``permission_sets_by_role`` (the default roles when omitted);
        a role without groups in ``groups_by_role`` still grants its permission set,
        so account-specific groups can be attached to it.
        """
        permission_sets_by_role = permission_sets_by_role or DEFAULT_ROLE_PERMISSION_SETS
        unknown = set(groups_by_role) - set(permission_sets_by_role)
        if unknown:
            raise ValueError(f"Roles without a permission set: {sorted(unknown)}")
        return GlobalGroupRule(
            roles=tuple(
                RoleBinding(role=role, permission_set_name=permission_set_name, groups=tuple(groups_by_role.get(role, ())))
                for role, permission_set_name in permission_sets_by_role.items()
            )
        )

    def groups_for(self, role: str) -> tuple[str, ...]:  # noqa: ANN101
        return next((binding.groups for binding in self.roles if binding.role == role), ())

    def referenced_permission_sets(self) -> frozenset[str]:  # noqa: ANN101
        return frozenset(binding.permission_set_name for binding in self.roles)


def default_rules() -> GlobalGroupRule:
    return GlobalGroupRule.from_mapping({})
