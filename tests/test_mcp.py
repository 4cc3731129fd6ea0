from node_mcp.server import build_item, operation_catalog


def test_catalog_lists_every_operation():
    catalog = operation_catalog()

    assert list(catalog["budget"])[:2] == ["getMonths", "getMonth"]
    assert catalog["payee"]["merge"]["parameters"]["targetPayeeId"]["type"] == "options"
    assert catalog["transaction"]["getAll"]["parameters"]["limit"]["default"] == 100


def test_build_item_uses_env_budget(monkeypatch):
    monkeypatch.setenv("ACTUAL_BUDGET_ID", "Household")

    item = build_item("account", "getBalance", {"accountId": "acc-1", "resource": "ignored"}, None)

    assert item.parameters == {
        "accountId": "acc-1",
        "resource": "account",
        "operation": "getBalance",
        "budgetId": "Household",
    }


def test_build_item_explicit_budget(monkeypatch):
    monkeypatch.setenv("ACTUAL_BUDGET_ID", "Household")

    assert build_item("utility", "sync", None, "Work").parameters["budgetId"] == "Work"
