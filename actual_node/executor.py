import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from actual_node.client import BudgetClient
from actual_node.credentials import Credentials
from actual_node.errors import OperationError, ValidationError
from actual_node.menu import RESOURCES, RESOURCES_BY_VALUE, get_operation, visible_fields
from actual_node.parameters import NodeParameters
from actual_node.session import BudgetSession

logger = logging.getLogger(__name__)


@dataclass
class NodeItem:
    """One input item: its data and the parameter values resolved for it."""

    json: dict = field(default_factory=dict)
    parameters: dict = field(default_factory=dict)


@dataclass
class NodeOutput:
    json: dict
    paired_item: int
    error: str | None = None

    @classmethod
    def from_result(cls, result: Any, index: int) -> "NodeOutput":
        if isinstance(result, dict):
            return cls(json=result, paired_item=index)
        return cls(json={"result": result}, paired_item=index)

    @classmethod
    def from_error(cls, error: OperationError, index: int) -> "NodeOutput":
        return cls(json={"error": error.message}, paired_item=index, error=error.message)

    def to_dict(self) -> dict:
        data = {"json": self.json, "pairedItem": {"item": self.paired_item}}
        if self.error is not None:
            data["error"] = self.error
        return data


# loadOptionsMethod -> (vendor method, label key)
OPTION_LOADERS = {
    "getBudgets": ("get_budgets", "name"),
    "getAccounts": ("get_accounts", "name"),
    "getCategories": ("get_categories", "name"),
    "getCategoryGroups": ("get_category_groups", "name"),
    "getPayees": ("get_payees", "name"),
    "getRules": ("get_rules", None),
    "getSchedules": ("get_schedules", "name"),
}


class ActualBudgetNode:
    """Executes the Actual Budget node for one run of the host.

    Args:
        client_factory: Builds a fresh vendor client per run
        data_home: Root under which per-server cache directories live
    """

    def __init__(self, client_factory: Callable[[], BudgetClient], data_home: Path):
        self.client_factory = client_factory
        self.data_home = Path(data_home)

    async def execute(
        self,
        items: list[NodeItem],
        credentials: Credentials,
        continue_on_fail: bool = False,
    ) -> list[NodeOutput]:
        outputs: list[NodeOutput] = []

        async with BudgetSession(self.client_factory(), credentials, self.data_home) as session:
            for index, item in enumerate(items):
                try:
                    result = await self._run_item(session, item, index)
                except Exception as e:
                    error = _as_operation_error(e, index)
                    if not continue_on_fail:
                        logger.error(f"Item {index} failed, aborting run: {error.message}")
                        if error is e:
                            raise
                        raise error from e
                    logger.warning(f"Item {index} failed, continuing: {error.message}")
                    outputs.append(NodeOutput.from_error(error, index))
                    continue
                outputs.append(NodeOutput.from_result(result, index))

        logger.info(f"Processed {len(items)} items, {sum(o.error is not None for o in outputs)} failed")
        return outputs

    async def _run_item(self, session: BudgetSession, item: NodeItem, index: int):
        values = item.parameters or {}
        resource = values.get("resource") or RESOURCES[0].value
        default_operation = (
            RESOURCES_BY_VALUE[resource].default_operation if resource in RESOURCES_BY_VALUE else None
        )
        operation = get_operation(resource, values.get("operation") or default_operation)
        params = NodeParameters(values, visible_fields(resource, operation.value), index)

        if operation.opens_budget:
            await session.use_budget(params.get("budgetId"))
        logger.debug(f"Item {index}: {resource}.{operation.value}")
        return await operation.handler(session, params)

    async def load_options(self, method: str, credentials: Credentials, budget_id: str | None = None) -> list[dict]:
        """Answer a dynamic dropdown of the menu with ``[{name, value}]`` entries."""
        if method not in OPTION_LOADERS:
            raise ValidationError(f"Unknown options method '{method}'")
        vendor_method, label = OPTION_LOADERS[method]

        async with BudgetSession(self.client_factory(), credentials, self.data_home) as session:
            if method != "getBudgets":
                await session.use_budget(budget_id)
            entries = await getattr(session.client, vendor_method)()

        options = []
        for entry in entries:
            name = entry.get(label) if label else None
            options.append({"name": str(name or entry["id"]), "value": entry["id"]})
        return options


def _as_operation_error(error: Exception, index: int) -> OperationError:
    if isinstance(error, OperationError):
        error.item_index = index
        return error
    return OperationError(str(error) or error.__class__.__name__, item_index=index)
