"""One coroutine per (resource, operation).

Every handler takes the run's ``BudgetSession`` and the item's
``NodeParameters`` and makes a single vendor call. The menu in
``actual_node.menu`` wires them to their fields.
"""

import logging
from datetime import date

from actual_node.errors import OperationError, ValidationError
from actual_node.payloads import (
    ACTIONS,
    CONDITIONS,
    SCHEDULE,
    TRANSACTIONS,
    UPDATES,
    dump,
    normalize_month,
)

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = {
    "name": "name",
    "type": "type",
    "offbudget": "offbudget",
    "fints": "fints",
    "closed": "closed",
}
CATEGORY_FIELDS = {"name": "name", "categoryGroupId": "group_id"}
PAYEE_FIELDS = {"name": "name", "transferAccountId": "transfer_acct"}
TRANSACTION_FIELDS = {
    "accountId": "account",
    "payeeId": "payee",
    "categoryId": "category",
    "notes": "notes",
    "amount": "amount",
}


def _required(params, name: str) -> str:
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Parameter '{name}' is required")
    return value.strip() if isinstance(value, str) else value


def _changes(params, mapping: dict) -> dict:
    changes = params.provided(mapping)
    if not changes:
        raise ValidationError(f"Nothing to update, set one of: {', '.join(mapping)}")
    return changes


def _amount(params, name: str) -> int:
    value = params.get(name)
    try:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(value)
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Parameter '{name}' must be a whole number of cents") from e


def _iso_date(params, name: str) -> str | None:
    value = (params.get(name) or "").strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError as e:
        raise ValidationError(f"Parameter '{name}' must be a YYYY-MM-DD date") from e


# ---------- ACCOUNT ----------

async def account_get_all(session, params):
    return await session.client.get_accounts()


async def account_create(session, params):
    account = {key: params.get(name) for name, key in ACCOUNT_FIELDS.items()}
    account["name"] = _required(params, "name")
    return await session.client.create_account(account)


async def account_get_balance(session, params):
    return await session.client.get_account_balance(_required(params, "accountId"))


async def account_update(session, params):
    account_id = _required(params, "accountId")
    return await session.client.update_account(account_id, _changes(params, ACCOUNT_FIELDS))


async def account_close(session, params):
    return await session.client.close_account(_required(params, "accountId"))


async def account_reopen(session, params):
    return await session.client.reopen_account(_required(params, "accountId"))


async def account_delete(session, params):
    return await session.client.delete_account(_required(params, "accountId"))


# ---------- BUDGET ----------

async def budget_get_months(session, params):
    return await session.client.get_budget_months()


async def budget_get_month(session, params):
    return await session.client.get_budget_month(normalize_month(params.get("month")))


async def budget_set_amount(session, params):
    return await session.client.set_budget_amount(
        normalize_month(params.get("month")),
        _required(params, "categoryId"),
        _amount(params, "amount"),
    )


async def budget_set_carryover(session, params):
    return await session.client.set_budget_carryover(
        normalize_month(params.get("month")),
        _required(params, "categoryId"),
        bool(params.get("carryover")),
    )


async def budget_hold_for_next_month(session, params):
    return await session.client.hold_budget_for_next_month(
        normalize_month(params.get("month")),
        _amount(params, "amount"),
    )


async def budget_reset_hold(session, params):
    return await session.client.reset_budget_hold(normalize_month(params.get("month")))


async def budget_load(session, params):
    return await session.load_budget(_required(params, "budgetId"))


async def budget_download(session, params):
    return await session.use_budget(_required(params, "budgetId"), refresh=True)


async def budget_batch_updates(session, params):
    updates = params.json("updates", UPDATES)
    return await session.client.batch_budget_updates([dump(u) for u in updates])


# ---------- CATEGORY ----------

async def category_get_all(session, params):
    return await session.client.get_categories()


async def category_create(session, params):
    return await session.client.create_category(
        {
            "name": _required(params, "name"),
            "group_id": _required(params, "categoryGroupId"),
        }
    )


async def category_update(session, params):
    category_id = _required(params, "categoryId")
    return await session.client.update_category(category_id, _changes(params, CATEGORY_FIELDS))


async def category_delete(session, params):
    return await session.client.delete_category(_required(params, "categoryId"))


# ---------- CATEGORY GROUP ----------

async def category_group_get_all(session, params):
    return await session.client.get_category_groups()


async def category_group_create(session, params):
    return await session.client.create_category_group({"name": _required(params, "name")})


async def category_group_update(session, params):
    group_id = _required(params, "categoryGroupId")
    return await session.client.update_category_group(group_id, _changes(params, {"name": "name"}))


async def category_group_delete(session, params):
    return await session.client.delete_category_group(_required(params, "categoryGroupId"))


# ---------- PAYEE ----------

async def payee_get_all(session, params):
    return await session.client.get_payees()


async def payee_create(session, params):
    payee = {"name": _required(params, "name")}
    if params.get("transferAccountId"):
        payee["transfer_acct"] = params.get("transferAccountId")
    return await session.client.create_payee(payee)


async def payee_update(session, params):
    payee_id = _required(params, "payeeId")
    return await session.client.update_payee(payee_id, _changes(params, PAYEE_FIELDS))


async def payee_delete(session, params):
    return await session.client.delete_payee(_required(params, "payeeId"))


async def payee_merge(session, params):
    source_id = _required(params, "payeeId")
    target_id = _required(params, "targetPayeeId")
    if source_id == target_id:
        raise ValidationError("Cannot merge a payee into itself")
    return await session.client.merge_payees(target_id, [source_id])


async def payee_get_rules(session, params):
    return await session.client.get_payee_rules(_required(params, "payeeId"))


# ---------- RULE ----------

def _rule_body(params, partial: bool) -> dict:
    rule = {}
    if not partial or params.has("stage"):
        # "" is the default stage
        rule["stage"] = params.get("stage") or None
    if not partial or params.has("conditionsOp"):
        rule["conditions_op"] = params.get("conditionsOp")
    if not partial or params.has("conditions"):
        rule["conditions"] = [dump(c) for c in params.json("conditions", CONDITIONS)]
    if not partial or params.has("actions"):
        rule["actions"] = [dump(a) for a in params.json("actions", ACTIONS)]
    return rule


async def rule_get_all(session, params):
    return await session.client.get_rules()


async def rule_create(session, params):
    rule = _rule_body(params, partial=False)
    if not rule["actions"]:
        raise ValidationError("A rule needs at least one action")
    return await session.client.create_rule(rule)


async def rule_update(session, params):
    rule = _rule_body(params, partial=True)
    if not rule:
        raise ValidationError("Nothing to update, set one of: stage, conditionsOp, conditions, actions")
    rule["id"] = _required(params, "ruleId")
    return await session.client.update_rule(rule)


async def rule_delete(session, params):
    return await session.client.delete_rule(_required(params, "ruleId"))


# ---------- SCHEDULE ----------

async def schedule_get_all(session, params):
    return await session.client.get_schedules()


async def schedule_create(session, params):
    details = params.json("scheduleDetails", SCHEDULE)
    if details.date is None:
        raise ValidationError("Parameter 'scheduleDetails' needs a date")
    return await session.client.create_schedule(dump(details))


async def schedule_update(session, params):
    schedule_id = _required(params, "scheduleId")
    fields = dump(params.json("scheduleDetails", SCHEDULE))
    if not fields:
        raise ValidationError("Parameter 'scheduleDetails' has nothing to update")
    return await session.client.update_schedule(schedule_id, fields)


async def schedule_delete(session, params):
    return await session.client.delete_schedule(_required(params, "scheduleId"))


# ---------- TRANSACTION ----------

async def transaction_get_all(session, params):
    account_id = _required(params, "accountId")
    transactions = await session.client.get_transactions(
        account_id,
        _iso_date(params, "startDate"),
        _iso_date(params, "endDate"),
    )

    payee_name = (params.get("payeeName") or "").strip().lower()
    category_name = (params.get("categoryName") or "").strip().lower()
    # 0 leaves the bound open
    min_amount = params.get("minAmount") or None
    max_amount = params.get("maxAmount") or None
    limit = int(params.get("limit") or 0)

    matched = []
    for transaction in transactions:
        if payee_name and (transaction.get("payee_name") or "").lower() != payee_name:
            continue
        if category_name and (transaction.get("category_name") or "").lower() != category_name:
            continue
        amount = transaction.get("amount") or 0
        if min_amount is not None and amount < min_amount:
            continue
        if max_amount is not None and amount > max_amount:
            continue
        matched.append(transaction)
        if limit and len(matched) >= limit:
            break
    logger.debug(f"{len(matched)} of {len(transactions)} transactions matched for account {account_id}")
    return matched


def _transactions(params) -> list[dict]:
    transactions = params.json("transactions", TRANSACTIONS)
    if not transactions:
        raise ValidationError("Parameter 'transactions' must not be empty")
    return [dump(t) for t in transactions]


async def transaction_add(session, params):
    return await session.client.add_transactions(_required(params, "accountId"), _transactions(params))


async def transaction_import(session, params):
    return await session.client.import_transactions(_required(params, "accountId"), _transactions(params))


async def transaction_update(session, params):
    transaction_id = _required(params, "transactionId")
    changes = _changes(params, TRANSACTION_FIELDS)
    if "amount" in changes:
        changes["amount"] = _amount(params, "amount")
    return await session.client.update_transaction(transaction_id, changes)


async def transaction_delete(session, params):
    return await session.client.delete_transaction(_required(params, "transactionId"))


# ---------- UTILITY ----------

async def utility_sync(session, params):
    return await session.client.sync()


async def utility_run_bank_sync(session, params):
    return await session.client.run_bank_sync(params.get("accountId") or None)


async def utility_run_query(session, params):
    return await session.client.run_query(_required(params, "query"))


async def utility_get_id_by_name(session, params):
    entity_type = params.get("type")
    name = _required(params, "name")
    entity_id = await session.client.get_id_by_name(entity_type, name)
    if entity_id is None:
        raise OperationError(f"No {entity_type} named '{name}'")
    return {"type": entity_type, "name": name, "id": entity_id}
