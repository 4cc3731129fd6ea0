import json

import pytest

from actual_node.errors import OperationError, ValidationError

from conftest import make_item


async def _run(node, credentials, item):
    outputs = await node.execute([item], credentials)
    return outputs[0].json


@pytest.mark.anyio
class TestAccount:
    async def test_update_sends_only_supplied_fields(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("account", "update", accountId="acc-1", name="Joint", closed=True))

        assert fake_client.called("update_account") == [(("acc-1", {"name": "Joint", "closed": True}), {})]

    async def test_update_without_changes(self, node, credentials):
        with pytest.raises(ValidationError, match="Nothing to update"):
            await _run(node, credentials, make_item("account", "update", accountId="acc-1"))

    async def test_balance(self, node, fake_client, credentials):
        fake_client.responses["get_account_balance"] = 12345

        result = await _run(node, credentials, make_item("account", "getBalance", accountId="acc-1"))

        assert result == {"result": 12345}

    async def test_create_requires_name(self, node, credentials):
        with pytest.raises(ValidationError, match="'name' is required"):
            await _run(node, credentials, make_item("account", "create"))


@pytest.mark.anyio
class TestBudget:
    async def test_set_amount(self, node, fake_client, credentials):
        await _run(
            node,
            credentials,
            make_item("budget", "setAmount", month="2024-03-01", categoryId="cat-1", amount=25000),
        )

        assert fake_client.called("set_budget_amount") == [(("2024-03", "cat-1", 25000), {})]

    async def test_set_amount_accepts_integral_float(self, node, fake_client, credentials):
        await _run(
            node,
            credentials,
            make_item("budget", "setAmount", month="2024-03", categoryId="cat-1", amount=2500.0),
        )

        assert fake_client.called("set_budget_amount") == [(("2024-03", "cat-1", 2500), {})]

    async def test_set_amount_rejects_fractional_cents(self, node, fake_client, credentials):
        with pytest.raises(ValidationError, match="whole number of cents"):
            await _run(
                node,
                credentials,
                make_item("budget", "setAmount", month="2024-03", categoryId="cat-1", amount=12.7),
            )

        assert fake_client.called("set_budget_amount") == []

    async def test_set_carryover(self, node, fake_client, credentials):
        await _run(
            node,
            credentials,
            make_item("budget", "setCarryover", month="2024-03", categoryId="cat-1", carryover=True),
        )

        assert fake_client.called("set_budget_carryover") == [(("2024-03", "cat-1", True), {})]

    async def test_hold_and_reset(self, node, fake_client, credentials):
        await node.execute(
            [
                make_item("budget", "holdForNextMonth", month="2024-03", amount=5000),
                make_item("budget", "resetHold", month="2024-03"),
            ],
            credentials,
        )

        assert fake_client.called("hold_budget_for_next_month") == [(("2024-03", 5000), {})]
        assert fake_client.called("reset_budget_hold") == [(("2024-03",), {})]

    async def test_batch_updates_is_one_vendor_call(self, node, fake_client, credentials):
        updates = [
            {"month": "2024-03", "categoryId": "cat-1", "amount": 100},
            {"month": "2024-03-01", "categoryId": "cat-2", "carryover": True},
        ]

        await _run(node, credentials, make_item("budget", "batchUpdates", updates=json.dumps(updates)))

        assert fake_client.called("batch_budget_updates") == [
            (
                (
                    [
                        {"month": "2024-03", "category_id": "cat-1", "amount": 100},
                        {"month": "2024-03", "category_id": "cat-2", "carryover": True},
                    ],
                ),
                {},
            )
        ]

    async def test_batch_updates_rejected_before_vendor_call(self, node, fake_client, credentials):
        updates = '[{"month": "2024-03", "categoryId": "cat-1"}]'

        with pytest.raises(ValidationError, match="'updates' is invalid"):
            await _run(node, credentials, make_item("budget", "batchUpdates", updates=updates))

        assert fake_client.called("batch_budget_updates") == []

    async def test_download_forces_a_fresh_copy(self, node, fake_client, credentials):
        await node.execute(
            [make_item("account", "getAll", budget_id="Home"), make_item("budget", "download", budget_id="Home")],
            credentials,
        )

        assert fake_client.called("download_budget") == [(("Home",), {}), (("Home",), {})]

    async def test_load_does_not_download(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("budget", "load", budget_id="Home"))

        assert fake_client.called("load_budget") == [(("Home",), {})]
        assert fake_client.called("download_budget") == []


@pytest.mark.anyio
class TestCategoriesAndPayees:
    async def test_create_category(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("category", "create", name="Rent", categoryGroupId="grp-1"))

        assert fake_client.called("create_category") == [(({"name": "Rent", "group_id": "grp-1"},), {})]

    async def test_move_category(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("category", "update", categoryId="cat-1", categoryGroupId="grp-2"))

        assert fake_client.called("update_category") == [(("cat-1", {"group_id": "grp-2"}), {})]

    async def test_rename_group(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("categoryGroup", "update", categoryGroupId="grp-1", name="Bills"))

        assert fake_client.called("update_category_group") == [(("grp-1", {"name": "Bills"}), {})]

    async def test_create_transfer_payee(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("payee", "create", name="Savings", transferAccountId="acc-2"))

        assert fake_client.called("create_payee") == [(({"name": "Savings", "transfer_acct": "acc-2"},), {})]

    async def test_merge(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("payee", "merge", payeeId="p-old", targetPayeeId="p-new"))

        assert fake_client.called("merge_payees") == [(("p-new", ["p-old"]), {})]

    async def test_merge_into_itself(self, node, credentials):
        with pytest.raises(ValidationError, match="into itself"):
            await _run(node, credentials, make_item("payee", "merge", payeeId="p-1", targetPayeeId="p-1"))


@pytest.mark.anyio
class TestRulesAndSchedules:
    async def test_create_rule(self, node, fake_client, credentials):
        conditions = [{"field": "payee", "op": "is", "value": "p-1"}]
        actions = [{"field": "category", "value": "cat-1"}]

        await _run(
            node,
            credentials,
            make_item("rule", "create", stage="pre", conditions=json.dumps(conditions), actions=actions),
        )

        (args, _), = fake_client.called("create_rule")
        assert args[0] == {
            "stage": "pre",
            "conditions_op": "and",
            "conditions": conditions,
            "actions": [{"op": "set", "field": "category", "value": "cat-1"}],
        }

    async def test_rule_default_stage(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("rule", "create", actions='[{"field": "notes", "value": "x"}]'))

        (args, _), = fake_client.called("create_rule")
        assert args[0]["stage"] is None

    async def test_rule_needs_actions(self, node, credentials):
        with pytest.raises(ValidationError, match="at least one action"):
            await _run(node, credentials, make_item("rule", "create"))

    async def test_update_rule_partial(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("rule", "update", ruleId="r-1", conditionsOp="or"))

        assert fake_client.called("update_rule") == [(({"conditions_op": "or", "id": "r-1"},), {})]

    async def test_bad_json(self, node, credentials):
        with pytest.raises(ValidationError, match="'conditions' is not valid JSON"):
            await _run(node, credentials, make_item("rule", "create", conditions="[{"))

    async def test_create_schedule(self, node, fake_client, credentials):
        details = {"name": "Rent", "date": "2024-04-01", "amount": -120000, "amountOp": "is", "account": "acc-1"}

        await _run(node, credentials, make_item("schedule", "create", scheduleDetails=json.dumps(details)))

        assert fake_client.called("create_schedule") == [
            (
                (
                    {
                        "name": "Rent",
                        "date": "2024-04-01",
                        "amount": -120000,
                        "amount_op": "is",
                        "account": "acc-1",
                    },
                ),
                {},
            )
        ]

    async def test_create_schedule_needs_date(self, node, credentials):
        with pytest.raises(ValidationError, match="needs a date"):
            await _run(node, credentials, make_item("schedule", "create", scheduleDetails='{"name": "Rent"}'))

    async def test_unknown_schedule_key(self, node, credentials):
        with pytest.raises(ValidationError, match="scheduleDetails"):
            await _run(
                node,
                credentials,
                make_item("schedule", "update", scheduleId="s-1", scheduleDetails='{"frequency": "weekly"}'),
            )


@pytest.mark.anyio
class TestTransactions:
    async def test_add(self, node, fake_client, credentials):
        transactions = [{"date": "2024-03-05", "amount": -1299, "payee_name": "Cafe", "notes": "lunch"}]

        await _run(node, credentials, make_item("transaction", "add", accountId="acc-1", transactions=transactions))

        assert fake_client.called("add_transactions") == [
            (
                (
                    "acc-1",
                    [
                        {
                            "date": "2024-03-05",
                            "amount": -1299,
                            "payee_name": "Cafe",
                            "notes": "lunch",
                            "cleared": False,
                        }
                    ],
                ),
                {},
            )
        ]

    async def test_import_rejects_bad_date(self, node, fake_client, credentials):
        with pytest.raises(ValidationError, match="'transactions' is invalid"):
            await _run(
                node,
                credentials,
                make_item("transaction", "import", accountId="acc-1", transactions='[{"date": "yesterday"}]'),
            )

        assert fake_client.called("import_transactions") == []

    async def test_empty_transactions(self, node, credentials):
        with pytest.raises(ValidationError, match="must not be empty"):
            await _run(node, credentials, make_item("transaction", "add", accountId="acc-1"))

    async def test_update(self, node, fake_client, credentials):
        await _run(
            node,
            credentials,
            make_item("transaction", "update", transactionId="t-1", categoryId="cat-9", amount=0),
        )

        assert fake_client.called("update_transaction") == [(("t-1", {"category": "cat-9", "amount": 0}), {})]

    async def test_update_rejects_fractional_amount(self, node, fake_client, credentials):
        with pytest.raises(ValidationError, match="whole number of cents"):
            await _run(node, credentials, make_item("transaction", "update", transactionId="t-1", amount=-12.5))

        assert fake_client.called("update_transaction") == []

    async def test_filter_by_names_and_dates(self, node, fake_client, credentials):
        fake_client.responses["get_transactions"] = [
            {"id": "t-1", "amount": -500, "payee_name": "Cafe", "category_name": "Food"},
            {"id": "t-2", "amount": -700, "payee_name": "cafe", "category_name": "Treats"},
            {"id": "t-3", "amount": -900, "payee_name": "Grocer", "category_name": "Food"},
        ]

        result = await _run(
            node,
            credentials,
            make_item(
                "transaction",
                "getAll",
                accountId="acc-1",
                payeeName="CAFE",
                categoryName="food",
                startDate="2024-01-01",
                endDate="2024-01-31",
            ),
        )

        assert fake_client.called("get_transactions") == [(("acc-1", "2024-01-01", "2024-01-31"), {})]
        assert [t["id"] for t in result["result"]] == ["t-1"]

    async def test_bad_start_date(self, node, credentials):
        with pytest.raises(ValidationError, match="startDate"):
            await _run(node, credentials, make_item("transaction", "getAll", accountId="acc-1", startDate="01/02/2024"))


@pytest.mark.anyio
class TestUtility:
    async def test_run_query_passes_text_through(self, node, fake_client, credentials):
        fake_client.responses["run_query"] = [{"n": 3}]

        result = await _run(node, credentials, make_item("utility", "runQuery", query="SELECT count(*) AS n FROM accounts"))

        assert fake_client.called("run_query") == [(("SELECT count(*) AS n FROM accounts",), {})]
        assert result == {"result": [{"n": 3}]}

    async def test_bank_sync_for_all_accounts(self, node, fake_client, credentials):
        await _run(node, credentials, make_item("utility", "runBankSync"))

        assert fake_client.called("run_bank_sync") == [((None,), {})]

    async def test_get_id_by_name(self, node, fake_client, credentials):
        fake_client.responses["get_id_by_name"] = "cat-7"

        result = await _run(node, credentials, make_item("utility", "getIdByName", type="category", name="Rent"))

        assert fake_client.called("get_id_by_name") == [(("category", "Rent"), {})]
        assert result == {"type": "category", "name": "Rent", "id": "cat-7"}

    async def test_get_id_by_name_missing(self, node, credentials):
        with pytest.raises(OperationError, match="No payee named 'Nobody'"):
            await _run(node, credentials, make_item("utility", "getIdByName", type="payee", name="Nobody"))
