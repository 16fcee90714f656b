import pytest
import yaml

import config
import errors
import identity

USERS = [
    {"user_name": "jane.doe@example.com", "first_name": "Jane", "last_name": "Doe", "email": "jane.doe@example.com"},
    {
        "user_name": "john.roe@example.com",
        "first_name": "John",
        "last_name": "Roe",
        "email": "john.roe@example.com",
        "display_name": "Johnny",
    },
]
GROUPS = [
    {"group_name": "g-admin", "group_description": "Administrators", "member_usernames": ["jane.doe@example.com"]},
    {"group_name": "g-billing", "member_usernames": ["jane.doe@example.com", "john.roe@example.com"]},
    {"group_name": "g-empty", "member_usernames": None},
]


@pytest.fixture
def users_file(tmp_path):
    path = tmp_path / "sso_users.yaml"
    path.write_text(yaml.safe_dump({"sso_users": USERS}))
    return str(path)


@pytest.fixture
def groups_file(tmp_path):
    path = tmp_path / "sso_groups.yaml"
    path.write_text(yaml.safe_dump(GROUPS))
    return str(path)


def test_load_manual_users(users_file):
    users = identity.load_manual_users(users_file)

    assert [user.user_name for user in users] == ["jane.doe@example.com", "john.roe@example.com"]
    assert users[0].display_name == "Jane Doe"
    assert users[1].display_name == "Johnny"


def test_load_manual_groups(groups_file):
    groups = identity.load_manual_groups(groups_file)

    assert [group.group_name for group in groups] == ["g-admin", "g-billing", "g-empty"]
    assert groups[0].group_description == "Administrators"
    assert groups[2].member_usernames == ()


def test_empty_file_gives_no_users(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert identity.load_manual_users(str(path)) == []


def test_invalid_user_raises(tmp_path):
    path = tmp_path / "users.yaml"
    path.write_text(yaml.safe_dump([{"user_name": "jane"}]))

    with pytest.raises(errors.ConfigurationError, match="invalid user"):
        identity.load_manual_users(str(path))


def test_non_list_file_raises(tmp_path):
    path = tmp_path / "groups.yaml"
    path.write_text(yaml.safe_dump({"sso_groups": "g-admin"}))

    with pytest.raises(errors.ConfigurationError):
        identity.load_manual_groups(str(path))


def test_validate_group_members_reports_unknown_members(users_file, groups_file):
    users = identity.load_manual_users(users_file)
    groups = identity.load_manual_groups(groups_file)
    stranger = groups[0].model_copy(update={"group_name": "g-other", "member_usernames": ("nobody",)})

    identity.validate_group_members(users, groups)
    with pytest.raises(errors.ConfigurationError, match="unknown user 'nobody'"):
        identity.validate_group_members(users, [*groups, stranger])


def test_validate_group_members_reports_duplicates(users_file, groups_file):
    users = identity.load_manual_users(users_file)
    groups = identity.load_manual_groups(groups_file)

    with pytest.raises(errors.ConfigurationError, match="defined more than once"):
        identity.validate_group_members([*users, users[0]], groups)
    with pytest.raises(errors.ConfigurationError, match="defined more than once"):
        identity.validate_group_members(users, [*groups, groups[0]])


def test_manual_provisioning_is_ignored_when_automatic(users_file, groups_file):
    cfg = config.Config.model_validate(
        {"is_automatic_provisioning_enabled": True, "manual_sso_users_file": users_file, "manual_sso_groups_file": groups_file}
    )

    assert identity.load_manual_provisioning(cfg) == ([], [])


def test_manual_provisioning_loads_files(users_file, groups_file):
    cfg = config.Config.model_validate(
        {"is_automatic_provisioning_enabled": False, "manual_sso_users_file": users_file, "manual_sso_groups_file": groups_file}
    )

    users, groups = identity.load_manual_provisioning(cfg)

    assert len(users) == 2
    assert identity.group_names(groups) == {"g-admin", "g-billing", "g-empty"}
