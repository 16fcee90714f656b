import json
from typing import Annotated, Any, FrozenSet, Literal, Optional

from pydantic import Field, field_validator, model_validator

from .model import BaseModel

NonEmptyStr = Annotated[str, Field(min_length=1)]
# https://docs.aws.amazon.com/singlesignon/latest/APIReference/API_CreatePermissionSet.html#singlesignon-CreatePermissionSet-request-Name
PermissionSetName = Annotated[str, Field(pattern=r"^[\w+=,.@-]{1,32}$")]


def _tags_to_mapping(v: Any) -> Any:  # noqa: ANN401
    # Organizations returns tags as [{"Key": ..., "Value": ...}], account maps usually as a plain mapping
    if not isinstance(v, list):
        return v
    mapping = {}
    for tag in v:
        if not isinstance(tag, dict):
            raise ValueError(f"tag entries must be mappings with Key and Value, got {tag!r}")
        mapping[tag.get("Key", tag.get("key"))] = tag.get("Value", tag.get("value"))
    return mapping


class AccountRecord(BaseModel):
    account_name: NonEmptyStr
    account_id: NonEmptyStr
    account_email: Optional[str] = None
    ou_path: Optional[str] = None
    account_tags: dict[str, Any] = Field(default_factory=dict)
    customer_values: dict[str, Any] = Field(default_factory=dict)
    alternate_contacts: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("account_id", mode="before")
    @classmethod
    def account_id_as_string(cls, v: Any) -> Any:  # noqa: ANN401
        # Account ids survive a round trip through tfvars/JSON as numbers
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("account_tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> Any:  # noqa: ANN401
        if v is None:
            return {}
        return _tags_to_mapping(v)

    @field_validator("customer_values", mode="before")
    @classmethod
    def customer_values_default(cls, v: Any) -> Any:  # noqa: ANN401
        return {} if v is None else v

    @field_validator("alternate_contacts", mode="before")
    @classmethod
    def alternate_contacts_default(cls, v: Any) -> Any:  # noqa: ANN401
        return [] if v is None else v


class PolicyReference(BaseModel):
    managed_by: Literal["aws", "customer"]
    policy_name: NonEmptyStr
    policy_path: str = "/"

    @field_validator("policy_path", mode="before")
    @classmethod
    def path_with_slashes(cls, v: Any) -> Any:  # noqa: ANN401
        # IAM paths start and end with "/"; "job-function" and "/job-function" mean "/job-function/"
        if v is None:
            return "/"
        if not isinstance(v, str):
            return v
        stripped = v.strip("/")
        return f"/{stripped}/" if stripped else "/"


class PermissionSetDefinition(BaseModel):
    name: PermissionSetName
    description: str = ""
    session_duration: int = Field(gt=0)
    inline_policy_json: Optional[str] = None
    managed_policies: tuple[PolicyReference, ...] = ()
    boundary_policy: Optional[PolicyReference] = None

    @field_validator("inline_policy_json", mode="before")
    @classmethod
    def inline_policy_as_json(cls, v: Any) -> Any:  # noqa: ANN401
        if v is None or v in ("", {}):
            return None
        if isinstance(v, dict):
            return json.dumps(v, sort_keys=True)
        if isinstance(v, str):
            try:
                json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"inline policy is not valid JSON: {e}") from e
        return v

    @field_validator("boundary_policy", mode="before")
    @classmethod
    def empty_boundary_is_none(cls, v: Any) -> Any:  # noqa: ANN401
        return None if v in ("", {}, []) else v


class PermissionAssignment(BaseModel):
    permission_set_name: str
    groups: FrozenSet[str] = frozenset()
    users: FrozenSet[str] = frozenset()


class AssignmentEntry(BaseModel):
    account_name: str
    account_id: str
    permissions: tuple[PermissionAssignment, ...] = ()

    def permission(self, permission_set_name: str) -> PermissionAssignment | None:  # noqa: ANN101
        return next((p for p in self.permissions if p.permission_set_name == permission_set_name), None)


class ManualSSOUser(BaseModel):
    user_name: NonEmptyStr
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    email: NonEmptyStr
    display_name: str = ""

    @model_validator(mode="before")
    @classmethod
    def default_display_name(cls, values: Any) -> Any:  # noqa: ANN401
        if isinstance(values, dict) and not values.get("display_name"):
            return values | {"display_name": f"{values.get('first_name', '')} {values.get('last_name', '')}".strip()}
        return values


class ManualSSOGroup(BaseModel):
    group_name: NonEmptyStr
    group_description: str = ""
    member_usernames: tuple[str, ...] = ()

    @field_validator("member_usernames", mode="before")
    @classmethod
    def members_default(cls, v: Any) -> Any:  # noqa: ANN401
        return () if v is None else v


class IdentityCenterConfiguration(BaseModel):
    is_automatic_provisioning_enabled: bool
    sso_users: tuple[ManualSSOUser, ...] = ()
    sso_groups: tuple[ManualSSOGroup, ...] = ()
    permission_sets: tuple[dict, ...] = ()
    account_assignments: tuple[AssignmentEntry, ...] = ()
    current_account_id: str
    current_region: str
    parameters: dict[str, str] = Field(default_factory=dict)
