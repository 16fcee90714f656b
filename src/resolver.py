"""Account assignment resolution.

Turns an account inventory snapshot plus role rules into one assignment
entry per managed account. The transform is pure: no I/O, no mutation of its
inputs, identical output for identical input.
"""

from typing import Any, Callable, Iterable, Mapping, Sequence

import config
import errors
import permission_sets as permission_sets_module
from entities.aws import AccountRecord, AssignmentEntry, PermissionAssignment, PermissionSetDefinition
from inventory import ensure_unique_accounts, parse_account_record
from rules import GlobalGroupRule, RoleBinding

logger = config.get_logger(service="resolver")

DECOMMISSION_TAG = "AccountDecommission"
_TRUTHY_STRINGS = frozenset(["true", "yes", "1"])

AccountFilter = Callable[[AccountRecord], bool]


def _is_truthy(value: Any) -> bool:  # noqa: ANN401
    # Tag values arrive as strings from Organizations and as booleans from account maps
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return bool(value)


def is_decommissioned(account: AccountRecord, tag_key: str = DECOMMISSION_TAG) -> bool:
    """True when the decommission tag is present and truthy. A missing tag means active."""
    return _is_truthy(account.account_tags.get(tag_key, False))


def decommission_filter(tag_key: str = DECOMMISSION_TAG) -> AccountFilter:
    def exclude(account: AccountRecord) -> bool:
        return is_decommissioned(account, tag_key)

    return exclude


def account_specific_values(account: AccountRecord, key: str | None) -> tuple[str, ...]:
    """Look up a list of principal names in the account's customer values.

    A missing key (or an explicit null) yields an empty tuple; a single string is treated as a one-item list.

    Raises:
        errors.MalformedAccountRecordError: if the value is neither a string nor a list of strings.
    """
    if not key:
        return ()
    value = account.customer_values.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise errors.MalformedAccountRecordError(
        f"Account {account.account_name}: customer value {key} must be a string or a list of strings, got {value!r}"
    )


def merge_principals(global_principals: Sequence[str], account_principals: Sequence[str]) -> frozenset[str]:
    return frozenset(global_principals) | frozenset(account_principals)


def _permission_for(binding: RoleBinding, account: AccountRecord) -> PermissionAssignment:
    return PermissionAssignment(
        permission_set_name=binding.permission_set_name,
        groups=merge_principals(binding.groups, account_specific_values(account, binding.account_groups_key)),
        users=merge_principals(binding.users, account_specific_values(account, binding.account_users_key)),
    )


def _as_records(accounts: Iterable[AccountRecord | Mapping[str, Any]]) -> list[AccountRecord]:
    return [account if isinstance(account, AccountRecord) else parse_account_record(dict(account)) for account in accounts]


def resolve(
    accounts: Iterable[AccountRecord | Mapping[str, Any]],
    permission_sets: Iterable[PermissionSetDefinition],
    global_rules: GlobalGroupRule,
    filters: AccountFilter = is_decommissioned,
) -> list[AssignmentEntry]:
    """Resolve which principals get which permission sets on which accounts.

    Args:
        accounts: Account inventory snapshot, as records or raw account map entries.
        permission_sets: Permission set definitions; names must be unique.
        global_rules: Ordered role bindings. Their order is the order of each entry's permissions.
        filters: Exclusion predicate; accounts it returns True for get no entry.

    Returns:
        One AssignmentEntry per non-excluded account, in inventory order.

    Raises:
        errors.ConfigurationError: on duplicate or unknown permission sets and on
            malformed or duplicate account records. Nothing is returned in that case.
    """
    index = permission_sets_module.index_permission_sets(permission_sets)
    permission_sets_module.ensure_defined(index, global_rules.referenced_permission_sets())

    records = _as_records(accounts)
    ensure_unique_accounts(records)

    assignments: list[AssignmentEntry] = []
    for account in records:
        if filters(account):
            logger.debug("Skipping excluded account", extra={"account_name": account.account_name, "account_id": account.account_id})
            continue
        assignments.append(
            AssignmentEntry(
                account_name=account.account_name,
                account_id=account.account_id,
                permissions=tuple(_permission_for(binding, account) for binding in global_rules.roles),
            )
        )

    logger.info(
        "Resolved account assignments",
        extra={"accounts": len(records), "assignments": len(assignments), "excluded": len(records) - len(assignments)},
    )
    return assignments
