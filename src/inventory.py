import json
from typing import Iterable

from mypy_boto3_ssm import SSMClient
from pydantic import ValidationError

import config
import errors
from entities.aws import AccountRecord

logger = config.get_logger(service="inventory")


def parse_account_record(_dict: dict) -> AccountRecord:
    try:
        return AccountRecord.model_validate(_dict)
    except ValidationError as e:
        name = _dict.get("account_name") if isinstance(_dict, dict) else None
        raise errors.MalformedAccountRecordError(f"Invalid account record {name or '<unnamed>'}: {e}") from e


def ensure_unique_accounts(accounts: Iterable[AccountRecord]) -> None:
    seen_ids: set[str] = set()
    seen_names: set[str] = set()
    for account in accounts:
        if account.account_id in seen_ids:
            raise errors.DuplicateAccountError(f"Account id {account.account_id} appears more than once in the inventory")
        if account.account_name in seen_names:
            raise errors.DuplicateAccountError(f"Account name {account.account_name} appears more than once in the inventory")
        seen_ids.add(account.account_id)
        seen_names.add(account.account_name)


def parse_account_map(raw: str | list) -> list[AccountRecord]:
    account_map = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(account_map, list):
        raise errors.ConfigurationError(f"Account map must be a JSON array, got {type(account_map).__name__}")
    accounts = [parse_account_record(account) for account in account_map]
    ensure_unique_accounts(accounts)
    return accounts


def get_parameter_value(client: SSMClient, name: str) -> str:
    try:
        return client.get_parameter(Name=name, WithDecryption=True)["Parameter"]["Value"]  # type: ignore # noqa: PGH003
    except client.exceptions.ParameterNotFound as e:
        raise errors.InventoryNotFound(f"Parameter {name} not found") from e


def load_account_inventory(client: SSMClient, parameter_name: str) -> list[AccountRecord]:
    """Read the account map maintained by the account factory.

    Args:
        client: SSM client
        parameter_name: Name of the parameter holding the account map as a JSON array

    Returns:
        Account records in the order they are stored
    """
    accounts = parse_account_map(get_parameter_value(client, parameter_name))
    logger.info(f"Loaded {len(accounts)} accounts from {parameter_name}")
    return accounts


def get_parameters(client: SSMClient, path: str) -> dict[str, str]:
    """Return every parameter below ``path`` as name -> value, values untouched."""
    parameters: dict[str, str] = {}
    paginator = client.get_paginator("get_parameters_by_path")
    for page in paginator.paginate(Path=path, Recursive=True, WithDecryption=True):
        for parameter in page["Parameters"]:
            parameters[parameter["Name"]] = parameter["Value"]  # type: ignore # noqa: PGH003
    logger.debug("Parameters read", extra={"path": path, "names": sorted(parameters)})
    return parameters
