"""Tests for the PurelyMail tool registry with a mocked API client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from tools import ENDPOINTS, Operation, ToolRegistry, build_registry


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.call = AsyncMock(return_value={})
    return client


@pytest.fixture
def purelymail_tools(mock_client):
    return build_registry(mock_client)


def test_registry_has_one_tool_per_endpoint(purelymail_tools):
    assert len(purelymail_tools) == len(ENDPOINTS)
    assert "list_domains" in purelymail_tools.names
    assert "create_routing_rule" in purelymail_tools.names


def test_describe_exposes_camel_case_schema(purelymail_tools):
    tools = {t["name"]: t for t in purelymail_tools.describe()}

    rule = tools["create_routing_rule"]
    assert rule["inputSchema"]["type"] == "object"
    assert set(rule["inputSchema"]["required"]) == {
        "domainName",
        "prefix",
        "matchUser",
        "targetAddresses",
    }
    assert rule["annotations"]["readOnlyHint"] is False
    assert "execute" not in rule


def test_annotations_mark_destructive_tools(purelymail_tools):
    tools = {t["name"]: t for t in purelymail_tools.describe()}

    assert tools["list_users"]["annotations"]["readOnlyHint"] is True
    assert tools["delete_user"]["annotations"]["destructiveHint"] is True


@pytest.mark.asyncio
async def test_list_domains(purelymail_tools, mock_client):
    mock_client.call.return_value = {
        "domains": [{"name": "example.com", "dnsSummary": {"passesMx": True}}]
    }

    result = await purelymail_tools.get("list_domains").execute({"includeShared": False})

    mock_client.call.assert_awaited_once_with("listDomains", {"includeShared": False})
    assert result["domains"][0]["name"] == "example.com"


@pytest.mark.asyncio
async def test_optional_fields_are_omitted(purelymail_tools, mock_client):
    await purelymail_tools.get("list_domains").execute({})
    mock_client.call.assert_awaited_once_with("listDomains", {})


@pytest.mark.asyncio
async def test_create_user_accepts_snake_case(purelymail_tools, mock_client):
    await purelymail_tools.get("create_user").execute(
        {"user_name": "alice", "domainName": "example.com", "send_welcome_email": True}
    )
    mock_client.call.assert_awaited_once_with(
        "createUser",
        {"userName": "alice", "domainName": "example.com", "sendWelcomeEmail": True},
    )


@pytest.mark.asyncio
async def test_create_routing_rule(purelymail_tools, mock_client):
    await purelymail_tools.get("create_routing_rule").execute(
        {
            "domainName": "example.com",
            "prefix": False,
            "matchUser": "info",
            "targetAddresses": ["alice@example.com"],
        }
    )
    mock_client.call.assert_awaited_once_with(
        "createRoutingRule",
        {
            "domainName": "example.com",
            "prefix": False,
            "matchUser": "info",
            "targetAddresses": ["alice@example.com"],
            "catchall": False,
        },
    )


@pytest.mark.asyncio
async def test_missing_required_argument(purelymail_tools, mock_client):
    with pytest.raises(ValidationError):
        await purelymail_tools.get("delete_user").execute({})
    mock_client.call.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_argument_rejected(purelymail_tools, mock_client):
    with pytest.raises(ValidationError):
        await purelymail_tools.get("check_account_credit").execute({"bogus": 1})
    mock_client.call.assert_not_awaited()


def test_duplicate_names_rejected():
    async def noop(arguments):
        return None

    op = Operation("same", "", {"type": "object"}, noop)
    with pytest.raises(ValueError, match="Duplicate tool name"):
        ToolRegistry([op, op])


def test_unknown_name_returns_none(purelymail_tools):
    assert purelymail_tools.get("nonexistent_tool") is None
