#!/usr/bin/env python3
"""
Actual Budget node MCP Server

Exposes the Actual Budget node's resource/operation menu as MCP tools. Each
tool call is one node run against the server configured in the environment.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastmcp import FastMCP

from actual_node.actualpy_client import ActualPyClient
from actual_node.credentials import Credentials
from actual_node.executor import ActualBudgetNode, NodeItem
from actual_node.menu import RESOURCES

load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP("actual-budget-node")


def _credentials() -> Credentials:
    return Credentials(
        url=os.getenv("ACTUAL_SERVER_URL", "http://localhost:5006"),
        password=os.getenv("ACTUAL_PASSWORD", ""),
    )


def _node() -> ActualBudgetNode:
    data_home = Path(os.getenv("NODE_DATA_HOME", str(Path.home() / ".actual-node"))).expanduser()
    return ActualBudgetNode(
        client_factory=lambda: ActualPyClient(
            cert=os.getenv("ACTUAL_CERT", "") or False,
            encryption_password=os.getenv("ACTUAL_FILE_PASSWORD") or None,
        ),
        data_home=data_home,
    )


def build_item(resource: str, operation: str, parameters: dict | None, budget_id: str | None) -> NodeItem:
    return NodeItem(
        parameters={
            **(parameters or {}),
            "resource": resource,
            "operation": operation,
            "budgetId": budget_id or os.getenv("ACTUAL_BUDGET_ID", ""),
        }
    )


def operation_catalog() -> dict:
    return {
        resource.value: {
            op.value: {
                "action": op.action,
                "parameters": {
                    f.name: {"type": f.type, "default": f.default, "description": f.description}
                    for f in op.fields
                },
            }
            for op in resource.operations
        }
        for resource in RESOURCES
    }


# =============================================================================
# Tool: List Operations
# =============================================================================

@mcp.tool()
async def list_operations() -> dict:
    """List every resource, its operations and the parameters each accepts.

    Returns:
        Mapping of resource -> operation -> {action, parameters}
    """
    return operation_catalog()


# =============================================================================
# Tool: Run Operation
# =============================================================================

@mcp.tool()
async def run_operation(
    resource: str,
    operation: str,
    parameters: dict | None = None,
    budget_id: str | None = None,
) -> dict:
    """Run one Actual Budget operation.

    Use list_operations() to discover valid resource/operation pairs and
    their parameters. JSON parameters (updates, conditions, actions,
    scheduleDetails, transactions) may be passed as JSON text or as values.
    Amounts are in cents.

    Args:
        resource: e.g. 'account', 'transaction', 'utility'
        operation: e.g. 'getAll', 'create', 'getIdByName'
        parameters: Operation parameters keyed by name (e.g. {"accountId": "..."})
        budget_id: Budget sync id or name; defaults to ACTUAL_BUDGET_ID

    Returns:
        The operation result
    """
    item = build_item(resource, operation, parameters, budget_id)
    outputs = await _node().execute([item], _credentials())
    logger.info(f"Ran {resource}.{operation}")
    return outputs[0].json


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Main entry point for the MCP server"""

    logger.info("Starting Actual Budget node MCP Server...")
    logger.info("Available tools:")
    logger.info("  - list_operations")
    logger.info("  - run_operation")

    # Run the server using STDIO transport
    mcp.run()


if __name__ == "__main__":
    main()
