import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from actual_node.actualpy_client import ActualPyClient
from actual_node.credentials import CREDENTIAL_TYPE, Credentials, verify_credentials
from actual_node.errors import CredentialError, InitializationError, OperationError, ValidationError
from actual_node.executor import ActualBudgetNode, NodeItem
from actual_node.menu import node_description
from node_api.config import ACTUAL_CERT, ACTUAL_FILE_PASSWORD, NODE_DATA_HOME, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

router = APIRouter(tags=["actual"])


def get_node() -> ActualBudgetNode:
    return ActualBudgetNode(
        client_factory=lambda: ActualPyClient(cert=ACTUAL_CERT, encryption_password=ACTUAL_FILE_PASSWORD),
        data_home=NODE_DATA_HOME,
    )


class ItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: dict = Field(default_factory=dict, alias="json")
    parameters: dict = Field(default_factory=dict)


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credentials: Credentials
    items: list[ItemIn] = Field(default_factory=lambda: [ItemIn()])
    continue_on_fail: bool = Field(default=False, alias="continueOnFail")


class OptionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    credentials: Credentials
    budget_id: str | None = Field(default=None, alias="budgetId")


def _raise_http(e: Exception):
    if isinstance(e, InitializationError):
        raise HTTPException(502, str(e))
    if isinstance(e, ValidationError):
        raise HTTPException(422, {"message": e.message, "item": e.item_index})
    if isinstance(e, OperationError):
        raise HTTPException(400, {"message": e.message, "item": e.item_index})
    raise e


# ---------- DESCRIPTION ----------

@router.get("/nodes/actual-budget/description")
async def description():
    return node_description()


@router.get("/credentials/actual-budget")
async def credential_type():
    return CREDENTIAL_TYPE


# ---------- CREDENTIALS ----------

@router.post("/credentials/actual-budget/test")
async def test_credential(credentials: Credentials):
    try:
        await verify_credentials(credentials, timeout=REQUEST_TIMEOUT)
    except CredentialError as e:
        return {"status": "Error", "message": str(e)}
    return {"status": "OK", "message": "Connection successful!"}


# ---------- EXECUTE ----------

@router.post("/nodes/actual-budget/execute")
async def execute(payload: ExecuteRequest, node: ActualBudgetNode = Depends(get_node)):
    items = [NodeItem(json=i.data, parameters=i.parameters) for i in payload.items]
    try:
        outputs = await node.execute(items, payload.credentials, payload.continue_on_fail)
    except (InitializationError, OperationError) as e:
        _raise_http(e)
    return {"items": [o.to_dict() for o in outputs]}


@router.post("/nodes/actual-budget/options/{method}")
async def load_options(method: str, payload: OptionsRequest, node: ActualBudgetNode = Depends(get_node)):
    try:
        return await node.load_options(method, payload.credentials, payload.budget_id)
    except (InitializationError, OperationError) as e:
        _raise_http(e)
