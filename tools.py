"""PurelyMail operations exposed as MCP tools.

Each operation maps one pydantic input model onto one PurelyMail API endpoint.
The model supplies the tool's input schema and validates the arguments before
the upstream call is made.
"""

from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from mcp.types import Tool, ToolAnnotations
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from purelymail_client import PurelymailClient

READ_ONLY = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": False,
}
WRITE = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "idempotentHint": False,
    "openWorldHint": False,
}
DESTRUCTIVE = {
    "readOnlyHint": False,
    "destructiveHint": True,
    "idempotentHint": True,
    "openWorldHint": False,
}


@dataclass(frozen=True)
class Operation:
    name: str
    description: str
    input_schema: dict[str, Any]
    execute: Callable[[dict[str, Any]], Awaitable[Any]] = field(repr=False)
    annotations: dict[str, bool] | None = None

    def describe(self) -> dict[str, Any]:
        tool = Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
            annotations=ToolAnnotations(**self.annotations)
            if self.annotations
            else None,
        )
        return tool.model_dump(by_alias=True, exclude_none=True)


class ToolRegistry:
    """Read-only set of operations, keyed by unique name."""

    def __init__(self, operations: Iterable[Operation]) -> None:
        self._operations: dict[str, Operation] = {}
        for op in operations:
            if op.name in self._operations:
                raise ValueError(f"Duplicate tool name: {op.name}")
            self._operations[op.name] = op

    def get(self, name: str) -> Operation | None:
        return self._operations.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._operations)

    def describe(self) -> list[dict[str, Any]]:
        return [op.describe() for op in self._operations.values()]

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations.values())


class _Args(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class NoArgs(_Args):
    pass


# Domains


class ListDomainsArgs(_Args):
    include_shared: bool | None = Field(
        None, description="Include PurelyMail shared domains in the listing."
    )


class AddDomainArgs(_Args):
    domain_name: str = Field(description="Domain to add, e.g. example.com.")


class DeleteDomainArgs(_Args):
    name: str = Field(description="Domain to delete.")


class UpdateDomainSettingsArgs(_Args):
    name: str = Field(description="Domain to update.")
    recheck_dns: bool | None = None
    allow_account_reset: bool | None = None
    symbolic_subaddressing: bool | None = None
    is_shared: bool | None = None


# Users


class GetUserArgs(_Args):
    user_name: str = Field(description="Full address of the user, e.g. me@example.com.")


class CreateUserArgs(_Args):
    user_name: str = Field(description="Local part of the new address.")
    domain_name: str = Field(description="Domain the user belongs to.")
    password: str | None = None
    enable_password_reset: bool | None = None
    recovery_email: str | None = None
    recovery_email_description: str | None = None
    recovery_phone: str | None = None
    recovery_phone_description: str | None = None
    enable_search_indexing: bool | None = None
    send_welcome_email: bool | None = None


class ModifyUserArgs(_Args):
    user_name: str = Field(description="Full address of the user to modify.")
    new_user_name: str | None = None
    new_password: str | None = None
    enable_search_indexing: bool | None = None
    enable_password_reset: bool | None = None
    require_two_factor_authentication: bool | None = None


class DeleteUserArgs(_Args):
    user_name: str = Field(description="Full address of the user to delete.")


# Routing


class CreateRoutingRuleArgs(_Args):
    domain_name: str
    prefix: bool = Field(
        description="Match every address starting with match_user, not just an exact match."
    )
    match_user: str = Field(description="Local part to match. Empty with catchall.")
    target_addresses: list[str] = Field(description="Addresses to deliver to.")
    catchall: bool = False


class DeleteRoutingRuleArgs(_Args):
    routing_rule_id: int


# App passwords


class CreateAppPasswordArgs(_Args):
    user_handle: str = Field(description="Full address of the user.")
    name: str | None = Field(None, description="Label for the app password.")


class DeleteAppPasswordArgs(_Args):
    user_name: str
    app_password: str


# (tool name, API endpoint, input model, annotations, description)
# fmt: off
ENDPOINTS: list[tuple[str, str, type[_Args], dict[str, bool], str]] = [
    ("list_domains", "listDomains", ListDomainsArgs, READ_ONLY,
     "List the domains on the account with their DNS status."),
    ("add_domain", "addDomain", AddDomainArgs, WRITE,
     "Add a domain to the account. Run get_ownership_code first for the TXT record."),
    ("delete_domain", "deleteDomain", DeleteDomainArgs, DESTRUCTIVE,
     "Remove a domain from the account."),
    ("get_ownership_code", "getOwnershipCode", NoArgs, READ_ONLY,
     "Get the DNS TXT value that proves domain ownership."),
    ("update_domain_settings", "updateDomainSettings", UpdateDomainSettingsArgs, WRITE,
     "Change settings on a domain, or trigger a DNS recheck."),
    ("list_users", "listUser", NoArgs, READ_ONLY,
     "List every mailbox user on the account."),
    ("get_user", "getUser", GetUserArgs, READ_ONLY,
     "Get details for one mailbox user."),
    ("create_user", "createUser", CreateUserArgs, WRITE,
     "Create a mailbox user."),
    ("modify_user", "modifyUser", ModifyUserArgs, WRITE,
     "Rename a user, change their password, or toggle user settings."),
    ("delete_user", "deleteUser", DeleteUserArgs, DESTRUCTIVE,
     "Delete a mailbox user and all of their mail."),
    ("list_routing_rules", "listRoutingRules", NoArgs, READ_ONLY,
     "List mail routing rules (aliases, forwards and catchalls)."),
    ("create_routing_rule", "createRoutingRule", CreateRoutingRuleArgs, WRITE,
     "Create a routing rule that delivers matching addresses elsewhere."),
    ("delete_routing_rule", "deleteRoutingRule", DeleteRoutingRuleArgs, DESTRUCTIVE,
     "Delete a routing rule by id."),
    ("create_app_password", "createAppPassword", CreateAppPasswordArgs, WRITE,
     "Create an app password for a user."),
    ("delete_app_password", "deleteAppPassword", DeleteAppPasswordArgs, DESTRUCTIVE,
     "Revoke an app password."),
    ("check_account_credit", "checkAccountCredit", NoArgs, READ_ONLY,
     "Show the remaining account credit."),
]
# fmt: on


def api_operation(
    client: PurelymailClient,
    name: str,
    endpoint: str,
    model: type[_Args],
    annotations: dict[str, bool],
    description: str,
) -> Operation:
    async def execute(arguments: dict[str, Any]) -> Any:
        args = model.model_validate(arguments)
        return await client.call(
            endpoint, args.model_dump(by_alias=True, exclude_none=True)
        )

    return Operation(
        name=name,
        description=description,
        input_schema=model.model_json_schema(by_alias=True),
        execute=execute,
        annotations=annotations,
    )


def build_registry(client: PurelymailClient) -> ToolRegistry:
    return ToolRegistry(api_operation(client, *entry) for entry in ENDPOINTS)
