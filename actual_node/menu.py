"""The node's resource/operation menu.

``RESOURCES`` is the one table describing what the node can do. The host form
schema (``node_description``) and the dispatch table (``DISPATCH``) are both
derived from it.
"""

from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

from actual_node import handlers as h
from actual_node.credentials import CREDENTIAL_TYPE
from actual_node.errors import OperationError

STRING = "string"
NUMBER = "number"
BOOLEAN = "boolean"
OPTIONS = "options"
JSON = "json"


@dataclass(frozen=True)
class Option:
    name: str
    value: str


@dataclass(frozen=True)
class Field:
    name: str
    display_name: str
    type: str
    default: Any = ""
    description: str = ""
    options: tuple[Option, ...] = ()
    load_options: str | None = None
    required: bool = False

    def to_property(self) -> dict:
        prop = {
            "displayName": self.display_name,
            "name": self.name,
            "type": self.type,
            "default": self.default,
        }
        if self.description:
            prop["description"] = self.description
        if self.options:
            prop["options"] = [{"name": o.name, "value": o.value} for o in self.options]
        if self.load_options:
            prop["typeOptions"] = {"loadOptionsMethod": self.load_options}
        if self.required:
            prop["required"] = True
        return prop


Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class Operation:
    value: str
    name: str
    action: str
    handler: Handler
    fields: tuple[Field, ...] = ()
    # budget.load / budget.download open the budget themselves
    opens_budget: bool = True


@dataclass(frozen=True)
class Resource:
    value: str
    name: str
    operations: tuple[Operation, ...]

    @property
    def default_operation(self) -> str:
        return self.operations[0].value


# =============================================================================
# Fields
# =============================================================================

BUDGET_ID = Field(
    "budgetId",
    "Budget ID",
    STRING,
    description="The ID of the Budget you are working on/with",
    required=True,
)

ACCOUNT_ID = Field(
    "accountId",
    "Account ID",
    OPTIONS,
    description="The ID of the account to operate on.",
    load_options="getAccounts",
)
CATEGORY_ID = Field(
    "categoryId",
    "Category ID",
    OPTIONS,
    description="The ID of the category to operate on.",
    load_options="getCategories",
)
CATEGORY_GROUP_ID = Field(
    "categoryGroupId",
    "Category Group ID",
    OPTIONS,
    description="The ID of the category group to operate on.",
    load_options="getCategoryGroups",
)
PAYEE_ID = Field(
    "payeeId",
    "Payee ID",
    OPTIONS,
    description="The ID of the payee to operate on.",
    load_options="getPayees",
)
RULE_ID = Field(
    "ruleId",
    "Rule ID",
    OPTIONS,
    description="The ID of the rule to operate on.",
    load_options="getRules",
)
SCHEDULE_ID = Field(
    "scheduleId",
    "Schedule ID",
    OPTIONS,
    description="The ID of the schedule to operate on.",
    load_options="getSchedules",
)
TRANSACTION_ID = Field(
    "transactionId",
    "Transaction ID",
    STRING,
    description="The ID of the transaction to operate on.",
)
NAME = Field("name", "Name", STRING)
MONTH = Field(
    "month",
    "Month",
    STRING,
    description="The month to operate on (YYYY-MM, a YYYY-MM-DD date is accepted too).",
)

ACCOUNT_TYPES = (
    Option("Checking", "checking"),
    Option("Savings", "savings"),
    Option("Cash", "cash"),
    Option("Credit Card", "creditCard"),
    Option("Line of Credit", "lineOfCredit"),
    Option("Loan", "loan"),
    Option("Mortgage", "mortgage"),
    Option("Investment", "investment"),
    Option("Other", "other"),
)

ACCOUNT_DETAILS = (
    replace(NAME, description="The name of the account."),
    Field("type", "Type", OPTIONS, "checking", "The type of the account.", options=ACCOUNT_TYPES),
    Field("offbudget", "Off-Budget", BOOLEAN, False, "Whether the account is off-budget."),
    Field("fints", "FinTS", BOOLEAN, False, "Whether the account uses FinTS."),
    Field("closed", "Closed", BOOLEAN, False, "Whether the account is closed."),
)

CATEGORY_DETAILS = (
    replace(NAME, description="The name of the category."),
    replace(CATEGORY_GROUP_ID, description="The ID of the category group the category belongs to."),
)

PAYEE_DETAILS = (
    replace(NAME, description="The name of the payee."),
    Field(
        "transferAccountId",
        "Transfer Account ID",
        OPTIONS,
        description="The ID of the transfer account (only for transfer payees).",
        load_options="getAccounts",
    ),
)

RULE_DETAILS = (
    Field(
        "stage",
        "Stage",
        OPTIONS,
        "",
        "When the rule should be applied.",
        options=(Option("Default", ""), Option("Pre", "pre"), Option("Post", "post")),
    ),
    Field(
        "conditionsOp",
        "Conditions Operator",
        OPTIONS,
        "and",
        "How to combine conditions.",
        options=(Option("And", "and"), Option("Or", "or")),
    ),
    Field("conditions", "Conditions", JSON, "[]", "JSON array of conditions for the rule to apply."),
    Field("actions", "Actions", JSON, "[]", "JSON array of actions of the applied rule."),
)

SCHEDULE_DETAILS = Field(
    "scheduleDetails",
    "Schedule Details",
    JSON,
    "{}",
    "JSON object containing schedule details.",
)

TRANSACTIONS = Field(
    "transactions",
    "Transactions",
    JSON,
    "[]",
    "JSON array of transactions to add or import.",
)

TRANSACTION_FILTERS = (
    ACCOUNT_ID,
    Field("payeeName", "Payee Name", STRING, description="Filter transactions by payee name."),
    Field("categoryName", "Category Name", STRING, description="Filter transactions by category name."),
    Field("startDate", "Start Date", STRING, description="Filter transactions by start date (YYYY-MM-DD)."),
    Field("endDate", "End Date", STRING, description="Filter transactions by end date (YYYY-MM-DD)."),
    Field("minAmount", "Minimum Amount", NUMBER, 0, "Filter transactions by minimum amount (in cents)."),
    Field("maxAmount", "Maximum Amount", NUMBER, 0, "Filter transactions by maximum amount (in cents)."),
    Field("limit", "Limit", NUMBER, 100, "Maximum number of transactions to return."),
)

TRANSACTION_DETAILS = (
    ACCOUNT_ID,
    replace(PAYEE_ID, description="The ID of the payee for the transaction."),
    replace(CATEGORY_ID, description="The ID of the category for the transaction."),
    Field("notes", "Notes", STRING, description="Notes for the transaction."),
    Field("amount", "Amount", NUMBER, 0, "Amount of the transaction (in cents)."),
)

ENTITY_TYPES = (
    Option("Account", "account"),
    Option("Category", "category"),
    Option("Category Group", "categoryGroup"),
    Option("Payee", "payee"),
)


# =============================================================================
# Resources
# =============================================================================

RESOURCES = (
    Resource(
        "account",
        "Account",
        (
            Operation("getAll", "Get All", "Get all accounts", h.account_get_all),
            Operation("create", "Create", "Create an account", h.account_create, ACCOUNT_DETAILS),
            Operation("getBalance", "Get Balance", "Get account balance", h.account_get_balance, (ACCOUNT_ID,)),
            Operation("update", "Update", "Update an account", h.account_update, (ACCOUNT_ID, *ACCOUNT_DETAILS)),
            Operation("close", "Close", "Close an account", h.account_close, (ACCOUNT_ID,)),
            Operation("reopen", "Reopen", "Reopen an account", h.account_reopen, (ACCOUNT_ID,)),
            Operation("delete", "Delete", "Delete an account", h.account_delete, (ACCOUNT_ID,)),
        ),
    ),
    Resource(
        "budget",
        "Budget",
        (
            Operation("getMonths", "Get Months", "Get budget months", h.budget_get_months),
            Operation("getMonth", "Get Month", "Get budget month", h.budget_get_month, (MONTH,)),
            Operation(
                "setAmount",
                "Set Amount",
                "Set budget amount",
                h.budget_set_amount,
                (
                    MONTH,
                    CATEGORY_ID,
                    Field("amount", "Amount", NUMBER, 0, "The amount to set for the category in cents."),
                ),
            ),
            Operation(
                "setCarryover",
                "Set Carryover",
                "Set budget carryover",
                h.budget_set_carryover,
                (MONTH, CATEGORY_ID, Field("carryover", "Carryover", BOOLEAN, False, "Whether to carryover the budget.")),
            ),
            Operation(
                "holdForNextMonth",
                "Hold For Next Month",
                "Hold budget for next month",
                h.budget_hold_for_next_month,
                (MONTH, Field("amount", "Amount", NUMBER, 0, "The amount to hold for next month in cents.")),
            ),
            Operation("resetHold", "Reset Hold", "Reset budget hold", h.budget_reset_hold, (MONTH,)),
            Operation("load", "Load", "Load budget", h.budget_load, opens_budget=False),
            Operation("download", "Download", "Download budget", h.budget_download, opens_budget=False),
            Operation(
                "batchUpdates",
                "Batch Updates",
                "Batch budget updates",
                h.budget_batch_updates,
                (Field("updates", "Updates", JSON, "[]", "JSON array of budget updates."),),
            ),
        ),
    ),
    Resource(
        "category",
        "Category",
        (
            Operation("getAll", "Get All", "Get all categories", h.category_get_all),
            Operation("create", "Create", "Create a category", h.category_create, CATEGORY_DETAILS),
            Operation("update", "Update", "Update a category", h.category_update, (CATEGORY_ID, *CATEGORY_DETAILS)),
            Operation("delete", "Delete", "Delete a category", h.category_delete, (CATEGORY_ID,)),
        ),
    ),
    Resource(
        "categoryGroup",
        "Category Group",
        (
            Operation("getAll", "Get All", "Get all category groups", h.category_group_get_all),
            Operation(
                "create",
                "Create",
                "Create a category group",
                h.category_group_create,
                (replace(NAME, description="The name of the category group."),),
            ),
            Operation(
                "update",
                "Update",
                "Update a category group",
                h.category_group_update,
                (CATEGORY_GROUP_ID, replace(NAME, description="The name of the category group.")),
            ),
            Operation("delete", "Delete", "Delete a category group", h.category_group_delete, (CATEGORY_GROUP_ID,)),
        ),
    ),
    Resource(
        "payee",
        "Payee",
        (
            Operation("getAll", "Get All", "Get all payees", h.payee_get_all),
            Operation("create", "Create", "Create a payee", h.payee_create, PAYEE_DETAILS),
            Operation("update", "Update", "Update a payee", h.payee_update, (PAYEE_ID, *PAYEE_DETAILS)),
            Operation("delete", "Delete", "Delete a payee", h.payee_delete, (PAYEE_ID,)),
            Operation(
                "merge",
                "Merge",
                "Merge payees",
                h.payee_merge,
                (
                    PAYEE_ID,
                    Field(
                        "targetPayeeId",
                        "Target Payee ID",
                        OPTIONS,
                        description="The ID of the target payee to merge into.",
                        load_options="getPayees",
                    ),
                ),
            ),
            Operation("getRules", "Get Rules", "Get payee rules", h.payee_get_rules, (PAYEE_ID,)),
        ),
    ),
    Resource(
        "rule",
        "Rule",
        (
            Operation("getAll", "Get All", "Get all rules", h.rule_get_all),
            Operation("create", "Create", "Create a rule", h.rule_create, RULE_DETAILS),
            Operation("update", "Update", "Update a rule", h.rule_update, (RULE_ID, *RULE_DETAILS)),
            Operation("delete", "Delete", "Delete a rule", h.rule_delete, (RULE_ID,)),
        ),
    ),
    Resource(
        "schedule",
        "Schedule",
        (
            Operation("getAll", "Get All", "Get all schedules", h.schedule_get_all),
            Operation("create", "Create", "Create a schedule", h.schedule_create, (SCHEDULE_DETAILS,)),
            Operation(
                "update", "Update", "Update a schedule", h.schedule_update, (SCHEDULE_ID, SCHEDULE_DETAILS)
            ),
            Operation("delete", "Delete", "Delete a schedule", h.schedule_delete, (SCHEDULE_ID,)),
        ),
    ),
    Resource(
        "transaction",
        "Transaction",
        (
            Operation("getAll", "Get All", "Get all transactions", h.transaction_get_all, TRANSACTION_FILTERS),
            Operation("add", "Add", "Add transactions", h.transaction_add, (ACCOUNT_ID, TRANSACTIONS)),
            Operation("import", "Import", "Import transactions", h.transaction_import, (ACCOUNT_ID, TRANSACTIONS)),
            Operation(
                "update",
                "Update",
                "Update a transaction",
                h.transaction_update,
                (TRANSACTION_ID, *TRANSACTION_DETAILS),
            ),
            Operation("delete", "Delete", "Delete a transaction", h.transaction_delete, (TRANSACTION_ID,)),
        ),
    ),
    Resource(
        "utility",
        "Utility",
        (
            Operation("sync", "Sync", "Sync data", h.utility_sync),
            Operation(
                "runBankSync",
                "Run Bank Sync",
                "Run bank sync",
                h.utility_run_bank_sync,
                (replace(ACCOUNT_ID, description="The ID of the account to run bank sync for."),),
            ),
            Operation(
                "runQuery",
                "Run Query",
                "Run a query",
                h.utility_run_query,
                (Field("query", "Query", STRING, description="The query to run."),),
            ),
            Operation(
                "getIdByName",
                "Get ID By Name",
                "Get ID by name",
                h.utility_get_id_by_name,
                (
                    Field(
                        "type",
                        "Type",
                        OPTIONS,
                        "account",
                        "The type of entity to get ID for.",
                        options=ENTITY_TYPES,
                    ),
                    replace(NAME, description="The name of the entity to get ID for."),
                ),
            ),
        ),
    ),
)

RESOURCES_BY_VALUE = {r.value: r for r in RESOURCES}

DISPATCH: dict[tuple[str, str], Handler] = {
    (resource.value, operation.value): operation.handler
    for resource in RESOURCES
    for operation in resource.operations
}


def get_operation(resource: str, operation: str) -> Operation:
    found = RESOURCES_BY_VALUE.get(resource)
    if found is None:
        raise OperationError(f"The resource '{resource}' is not known")
    for op in found.operations:
        if op.value == operation:
            return op
    raise OperationError(f"The operation '{operation}' is not supported for resource '{resource}'")


def visible_fields(resource: str, operation: str) -> dict[str, Field]:
    """Fields an item may set for the given selection, ``budgetId`` included."""
    op = get_operation(resource, operation)
    return {BUDGET_ID.name: BUDGET_ID, **{f.name: f for f in op.fields}}


# =============================================================================
# Host form schema
# =============================================================================

def _show(resource: str, operations: list[str]) -> dict:
    return {"show": {"resource": [resource], "operation": operations}}


def _resource_properties(resource: Resource) -> list[dict]:
    props = [
        {
            "displayName": "Operation",
            "name": "operation",
            "type": OPTIONS,
            "noDataExpression": True,
            "displayOptions": {"show": {"resource": [resource.value]}},
            "options": [
                {"name": op.name, "value": op.value, "action": op.action}
                for op in resource.operations
            ],
            "default": resource.default_operation,
        }
    ]

    # one property per distinct field definition, shown for every operation using it
    grouped: dict[Field, list[str]] = {}
    for op in resource.operations:
        for field in op.fields:
            grouped.setdefault(field, []).append(op.value)
    for field, operations in grouped.items():
        props.append({**field.to_property(), "displayOptions": _show(resource.value, operations)})
    return props


def node_description() -> dict:
    properties = [
        {
            "displayName": "Resource",
            "name": "resource",
            "type": OPTIONS,
            "options": [{"name": r.name, "value": r.value} for r in RESOURCES],
            "default": RESOURCES[0].value,
            "required": True,
            "noDataExpression": True,
        },
        {
            **BUDGET_ID.to_property(),
            "displayOptions": {"show": {"resource": [r.value for r in RESOURCES]}},
        },
    ]
    for resource in RESOURCES:
        properties.extend(_resource_properties(resource))

    return {
        "displayName": "Actual Budget",
        "name": "actualBudget",
        "icon": "file:actualbudget.svg",
        "group": ["transform"],
        "version": 1,
        "subtitle": '={{$parameter["operation"] + " " + $parameter["resource"]}}',
        "description": "Interact with your Actual Budget instance",
        "defaults": {"name": "Actual Budget"},
        "inputs": ["main"],
        "outputs": ["main"],
        "credentials": [{"name": CREDENTIAL_TYPE["name"], "required": True}],
        "properties": properties,
    }
