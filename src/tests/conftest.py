import io
import json
import os
from unittest.mock import MagicMock

import boto3
import pytest

from entities.aws import AccountRecord, PermissionSetDefinition
from rules import GlobalGroupRule


def pytest_sessionstart(session):  # noqa: ANN201, ARG001, ANN001
    mock_env = {
        "AWS_DEFAULT_REGION": "us-east-1",
        "log_level": "DEBUG",
        "is_automatic_provisioning_enabled": "true",
        "account_map_parameter_name": "/account-factory/account-map",
        "parameters_path": "/identity-center/",
        "permission_sets": json.dumps(
            [
                {
                    "Name": "AdministratorAccess",
                    "Description": "Full access",
                    "SessionDuration": 2,
                    "ManagedPolicies": [{"ManagedBy": "aws", "PolicyName": "AdministratorAccess", "PolicyPath": "/"}],
                },
                {
                    "Name": "Billing",
                    "Description": "Billing access",
                    "SessionDuration": 8,
                    "ManagedPolicies": [{"ManagedBy": "aws", "PolicyName": "Billing", "PolicyPath": "/job-function/"}],
                },
                {
                    "Name": "SupportUser",
                    "Description": "Support access",
                    "SessionDuration": 8,
                    "ManagedPolicies": [{"ManagedBy": "aws", "PolicyName": "SupportUser", "PolicyPath": "/job-function/"}],
                },
            ]
        ),
        "account_roles": json.dumps(
            [
                {"Role": "admin", "PermissionSet": "AdministratorAccess", "Groups": ["aws-admins"]},
                {"Role": "billing", "PermissionSet": "Billing", "Groups": ["aws-billing"]},
                {"Role": "support", "PermissionSet": "SupportUser", "Groups": ["aws-support"]},
            ]
        ),
    }
    os.environ |= mock_env

    boto3.setup_default_session(region_name="us-east-1")


@pytest.fixture
def permission_set_definitions():
    return [
        PermissionSetDefinition(name="AdministratorAccess", description="Full access", session_duration=2),
        PermissionSetDefinition(name="Billing", description="Billing access", session_duration=8),
        PermissionSetDefinition(name="SupportUser", description="Support access", session_duration=8),
    ]


@pytest.fixture
def global_rules():
    return GlobalGroupRule.from_mapping(
        {
            "admin": ["g-admin"],
            "billing": ["g-billing"],
            "support": ["g-support"],
        }
    )


@pytest.fixture
def sample_accounts():
    return [
        AccountRecord(account_name="dev", account_id="111111111111", account_tags={}),
        AccountRecord(
            account_name="prod",
            account_id="222222222222",
            account_tags={"Environment": "prod"},
            customer_values={"sso_admin_groups": ["g-prod-admin", "g-admin"]},
        ),
        AccountRecord(account_name="old", account_id="333333333333", account_tags={"AccountDecommission": True}),
    ]


@pytest.fixture
def mock_ssm_client():
    """SSM client whose exceptions behave like botocore's modeled ones."""
    client = MagicMock()
    client.exceptions = MagicMock()
    client.exceptions.ParameterNotFound = type("ParameterNotFound", (Exception,), {})
    return client


@pytest.fixture
def identity_center_document():
    return {
        "permission_sets": [
            {"Name": "ReadOnlyAccess", "Description": "Read only", "SessionDuration": 4},
        ],
        "account_roles": [
            {"Role": "readonly", "PermissionSet": "ReadOnlyAccess", "Groups": "g-readonly"},
        ],
    }


@pytest.fixture
def config_bucket_client(identity_center_document):
    """S3 client stub serving ``identity_center_document`` for any bucket and key."""
    client = MagicMock()
    client.exceptions.NoSuchBucket = type("NoSuchBucket", (Exception,), {})
    client.exceptions.NoSuchKey = type("NoSuchKey", (Exception,), {})
    client.get_object.side_effect = lambda Bucket, Key: {  # noqa: N803, ARG005
        "Body": io.BytesIO(json.dumps(identity_center_document).encode())
    }
    return client
