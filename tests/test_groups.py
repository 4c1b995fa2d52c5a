import pytest

from userdesk.groups import (
    Capabilities,
    UserGroup,
    capabilities_for,
    group_name,
    permission_summary,
    role_name,
)


@pytest.mark.parametrize(
    "group_id, expected",
    [
        (1, Capabilities("true", "true", "true", "true")),
        (2, Capabilities("true", "true", "false", "true")),
        (3, Capabilities("false", "self", "false", "true")),
        (4, Capabilities("false", "self", "false", "true")),
        (None, Capabilities("false", "false", "false", "false")),
        (0, Capabilities("false", "false", "false", "false")),
        (99, Capabilities("false", "false", "false", "false")),
        (-1, Capabilities("false", "false", "false", "false")),
    ],
)
def test_capabilities_for_every_group(group_id, expected):
    assert capabilities_for(group_id) == expected


def test_capabilities_as_claims_uses_claim_names():
    claims = capabilities_for(UserGroup.REGULAR_USER).as_claims()
    assert claims == {
        "CanCreate": "false",
        "CanEdit": "self",
        "CanDelete": "false",
        "CanView": "true",
    }


def test_only_edit_can_be_self():
    for group_id in [None, 1, 2, 3, 4]:
        caps = capabilities_for(group_id)
        assert caps.can_create in ("true", "false")
        assert caps.can_delete in ("true", "false")
        assert caps.can_view in ("true", "false")
        assert caps.can_edit in ("true", "false", "self")


def test_names_and_labels():
    assert group_name(1) == "Admin"
    assert group_name(4) == "View Only"
    assert group_name(None) == "Unassigned"
    assert group_name(42) == "Unassigned"
    assert role_name(3) == "User"
    assert role_name(4) == "Viewer"
    assert role_name(None) == "Unassigned"
    assert permission_summary(2) == "Create, Edit, View"
    assert permission_summary(7) == "No Access"
