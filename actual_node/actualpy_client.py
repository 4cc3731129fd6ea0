"""``BudgetClient`` on top of actualpy.

actualpy is synchronous and keeps an SQLAlchemy session over the budget's local
SQLite file. SQLite connections belong to the thread that opened them, so every
call runs on one dedicated worker thread owned by the client.
"""

import asyncio
import contextlib
import datetime
import decimal
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path

from actual import Actual
from actual import queries
from actual.database import (
    Accounts,
    Categories,
    CategoryGroups,
    Payees,
    Rules,
    Schedules,
    SchedulesNextDate,
    Transactions,
    ZeroBudgetMonths,
)
from actual.rules import BetweenValue, Condition, Rule
from actual.schedules import Schedule
from actual.utils.conversions import current_timestamp, date_to_int
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, text

from actual_node.errors import ValidationError

logger = logging.getLogger(__name__)

# getIdByName type -> model
NAMED_MODELS = {
    "account": Accounts,
    "category": Categories,
    "categoryGroup": CategoryGroups,
    "payee": Payees,
    "schedule": Schedules,
}

# vendor field -> model attribute
ACCOUNT_COLUMNS = {"name": "name", "type": "type", "offbudget": "offbudget", "closed": "closed"}
CATEGORY_COLUMNS = {"name": "name", "group_id": "cat_group", "hidden": "hidden"}
GROUP_COLUMNS = {"name": "name", "hidden": "hidden"}
PAYEE_COLUMNS = {"name": "name", "transfer_acct": "transfer_acct"}
SCHEDULE_COLUMNS = {"name": "name", "posts_transaction": "posts_transaction"}
# schedule fields kept in the conditions of its linked rule
SCHEDULE_CONDITIONS = ("date", "amount", "amount_op", "payee", "account")
TRANSACTION_COLUMNS = {
    "account": "acct",
    "category": "category_id",
    "notes": "notes",
    "amount": "amount",
    "cleared": "cleared",
}


def _cents(value) -> decimal.Decimal:
    return decimal.Decimal(int(value)) / 100


def _month_date(month: str) -> datetime.date:
    return datetime.date.fromisoformat(f"{month}-01")


def _row(model) -> dict:
    return model.model_dump(mode="json")


def _transaction(t: Transactions) -> dict:
    return {
        "id": t.id,
        "account": t.acct,
        "date": t.get_date().isoformat() if t.date else None,
        "amount": t.amount,
        "payee": t.payee_id,
        "payee_name": t.payee.name if t.payee else None,
        "category": t.category_id,
        "category_name": t.category.name if t.category else None,
        "notes": t.notes,
        "imported_id": t.financial_id,
        "cleared": bool(t.cleared),
    }


def _apply(model, fields: dict, columns: dict):
    unknown = [key for key in fields if key not in columns]
    if unknown:
        raise ValidationError(f"{model.__class__.__name__} has no field(s) {', '.join(unknown)} to update")
    logger.debug(f"Updating {model.__class__.__name__} {model.id}: {', '.join(fields)}")
    for key, value in fields.items():
        column = columns[key]
        if isinstance(value, bool):
            value = int(value)
        setattr(model, column, value)


class ActualPyClient:
    """One actualpy connection. Not shared between runs."""

    def __init__(self, cert: str | bool = False, encryption_password: str | None = None):
        self.cert = cert
        self.encryption_password = encryption_password
        self._actual: Actual | None = None
        self._stack = contextlib.ExitStack()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="actualpy")

    async def _call(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(fn, *args, **kwargs))

    @property
    def session(self):
        if self._actual is None:
            raise RuntimeError("Client not initialized. Call init() first.")
        return self._actual.session

    def _get(self, model, entity_id: str):
        entity = self.session.get(model, entity_id)
        if entity is None or getattr(entity, "tombstone", 0):
            raise LookupError(f"{model.__name__} '{entity_id}' not found")
        return entity

    def _commit(self, result=None):
        self._actual.commit()
        return result

    # ---------- LIFECYCLE ----------

    async def init(self, server_url: str, password: str, data_dir: Path):
        def _open():
            actual = Actual(
                base_url=server_url,
                password=password,
                data_dir=data_dir,
                cert=self.cert,
            )
            self._actual = self._stack.enter_context(actual)

        await self._call(_open)

    async def shutdown(self):
        try:
            await self._call(self._stack.close)
        finally:
            self._actual = None
            self._executor.shutdown(wait=False)

    async def download_budget(self, budget_id: str):
        def _download():
            self._actual.set_file(budget_id)
            self._actual.download_budget(self.encryption_password)
            logger.info(f"Opened budget {budget_id}")

        await self._call(_download)

    async def load_budget(self, budget_id: str):
        # actualpy always reconciles the local copy with the server when opening
        await self.download_budget(budget_id)

    async def get_budgets(self):
        def _list():
            files = self._actual.list_user_files().data
            return [
                {"id": f.file_id, "group_id": f.group_id, "name": f.name}
                for f in files
                if not f.deleted
            ]

        return await self._call(_list)

    # ---------- ACCOUNTS ----------

    async def get_accounts(self):
        return await self._call(lambda: [_row(a) for a in queries.get_accounts(self.session)])

    async def create_account(self, account: dict, initial_balance: int = 0):
        def _create():
            created = queries.create_account(
                self.session,
                account["name"],
                initial_balance=_cents(initial_balance),
                off_budget=bool(account.get("offbudget")),
            )
            _apply(created, {k: v for k, v in account.items() if k in ("type", "closed")}, ACCOUNT_COLUMNS)
            return self._commit(created.id)

        return await self._call(_create)

    async def get_account_balance(self, account_id: str):
        def _balance():
            return int(self._get(Accounts, account_id).balance * 100)

        return await self._call(_balance)

    async def update_account(self, account_id: str, fields: dict):
        def _update():
            _apply(self._get(Accounts, account_id), fields, ACCOUNT_COLUMNS)
            self._commit()

        await self._call(_update)

    async def close_account(self, account_id: str):
        await self.update_account(account_id, {"closed": True})

    async def reopen_account(self, account_id: str):
        await self.update_account(account_id, {"closed": False})

    async def delete_account(self, account_id: str):
        await self._delete(Accounts, account_id)

    async def _delete(self, model, entity_id: str):
        def _remove():
            self._get(model, entity_id).delete()
            self._commit()

        await self._call(_remove)

    # ---------- BUDGET MONTHS ----------

    async def get_budget_months(self):
        def _months():
            months = {str(b.month) for b in queries.get_budgets(self.session)}
            return sorted(f"{m[:4]}-{m[4:6]}" for m in months)

        return await self._call(_months)

    async def get_budget_month(self, month: str):
        def _month():
            budgets = queries.get_budgets(self.session, month=_month_date(month))
            return {
                "month": month,
                "categories": [
                    {
                        "category": b.category_id,
                        "budgeted": b.amount,
                        "carryover": bool(b.carryover),
                    }
                    for b in budgets
                ],
            }

        return await self._call(_month)

    def _set_amount(self, month: str, category_id: str, amount: int):
        category = self._get(Categories, category_id)
        queries.create_budget(self.session, _month_date(month), category, _cents(amount))

    def _set_carryover(self, month: str, category_id: str, flag: bool):
        category = self._get(Categories, category_id)
        budget = queries.get_budget(self.session, _month_date(month), category)
        if budget is None:
            budget = queries.create_budget(self.session, _month_date(month), category)
        budget.carryover = int(flag)

    async def set_budget_amount(self, month: str, category_id: str, amount: int):
        def _set():
            self._set_amount(month, category_id, amount)
            self._commit()

        await self._call(_set)

    async def set_budget_carryover(self, month: str, category_id: str, flag: bool):
        def _set():
            self._set_carryover(month, category_id, flag)
            self._commit()

        await self._call(_set)

    def _budget_month(self, month: str) -> ZeroBudgetMonths:
        row = self.session.get(ZeroBudgetMonths, month)
        if row is None:
            row = ZeroBudgetMonths(id=month, buffered=0)
            self.session.add(row)
        return row

    async def hold_budget_for_next_month(self, month: str, amount: int):
        def _hold():
            self._budget_month(month).buffered = int(amount)
            self._commit()

        await self._call(_hold)

    async def reset_budget_hold(self, month: str):
        await self.hold_budget_for_next_month(month, 0)

    async def batch_budget_updates(self, updates: list[dict]):
        def _batch():
            for update in updates:
                if update.get("amount") is not None:
                    self._set_amount(update["month"], update["category_id"], update["amount"])
                if update.get("carryover") is not None:
                    self._set_carryover(update["month"], update["category_id"], update["carryover"])
            self._commit()

        await self._call(_batch)

    # ---------- CATEGORIES ----------

    async def get_categories(self):
        return await self._call(lambda: [_row(c) for c in queries.get_categories(self.session)])

    async def create_category(self, category: dict):
        def _create():
            group = self._get(CategoryGroups, category["group_id"])
            created = queries.create_category(self.session, category["name"], group.name)
            return self._commit(created.id)

        return await self._call(_create)

    async def update_category(self, category_id: str, fields: dict):
        def _update():
            _apply(self._get(Categories, category_id), fields, CATEGORY_COLUMNS)
            self._commit()

        await self._call(_update)

    async def delete_category(self, category_id: str):
        await self._delete(Categories, category_id)

    async def get_category_groups(self):
        return await self._call(lambda: [_row(g) for g in queries.get_category_groups(self.session)])

    async def create_category_group(self, group: dict):
        def _create():
            created = queries.create_category_group(self.session, group["name"])
            return self._commit(created.id)

        return await self._call(_create)

    async def update_category_group(self, group_id: str, fields: dict):
        def _update():
            _apply(self._get(CategoryGroups, group_id), fields, GROUP_COLUMNS)
            self._commit()

        await self._call(_update)

    async def delete_category_group(self, group_id: str):
        await self._delete(CategoryGroups, group_id)

    # ---------- PAYEES ----------

    async def get_payees(self):
        return await self._call(lambda: [_row(p) for p in queries.get_payees(self.session)])

    async def create_payee(self, payee: dict):
        def _create():
            created = queries.create_payee(self.session, payee["name"])
            _apply(created, {k: v for k, v in payee.items() if k != "name"}, PAYEE_COLUMNS)
            return self._commit(created.id)

        return await self._call(_create)

    async def update_payee(self, payee_id: str, fields: dict):
        def _update():
            _apply(self._get(Payees, payee_id), fields, PAYEE_COLUMNS)
            self._commit()

        await self._call(_update)

    async def delete_payee(self, payee_id: str):
        await self._delete(Payees, payee_id)

    async def merge_payees(self, target_id: str, source_ids: list[str]):
        def _merge():
            self._get(Payees, target_id)
            for source_id in source_ids:
                source = self._get(Payees, source_id)
                moved = self.session.scalars(
                    select(Transactions).where(Transactions.payee_id == source_id)
                ).all()
                for t in moved:
                    t.payee_id = target_id
                source.delete()
            self._commit()

        await self._call(_merge)

    async def get_payee_rules(self, payee_id: str):
        def _rules():
            matched = []
            for rule in queries.get_rules(self.session):
                conditions = json.loads(rule.conditions or "[]")
                # the payee column of a transaction is called "description"
                if any(c.get("field") == "description" and payee_id in _values(c.get("value")) for c in conditions):
                    matched.append(_row(rule))
            return matched

        return await self._call(_rules)

    # ---------- RULES ----------

    async def get_rules(self):
        return await self._call(lambda: [_row(r) for r in queries.get_rules(self.session)])

    async def create_rule(self, rule: dict):
        def _create():
            created = queries.create_rule(
                self.session,
                Rule(
                    conditions=rule["conditions"],
                    actions=rule["actions"],
                    operation=rule.get("conditions_op") or "and",
                    stage=rule.get("stage"),
                ),
            )
            return self._commit(_row(created))

        return await self._call(_create)

    async def update_rule(self, rule: dict):
        def _update():
            row = self._get(Rules, rule["id"])
            if "stage" in rule:
                row.stage = rule["stage"]
            if "conditions_op" in rule:
                row.conditions_op = rule["conditions_op"]
            if "conditions" in rule:
                row.conditions = json.dumps(rule["conditions"])
            if "actions" in rule:
                row.actions = json.dumps(rule["actions"])
            return self._commit(_row(row))

        return await self._call(_update)

    async def delete_rule(self, rule_id: str):
        await self._delete(Rules, rule_id)

    # ---------- SCHEDULES ----------

    async def get_schedules(self):
        return await self._call(lambda: [_row(s) for s in queries.get_schedules(self.session)])

    async def create_schedule(self, schedule: dict):
        def _create():
            payee = self._get(Payees, schedule["payee"]) if schedule.get("payee") else None
            account = self._get(Accounts, schedule["account"]) if schedule.get("account") else None
            created = queries.create_schedule(
                self.session,
                date=_schedule_date(schedule["date"]),
                amount=_schedule_amount(schedule.get("amount")),
                amount_operation=schedule.get("amount_op") or "is",
                name=schedule.get("name"),
                payee=payee,
                account=account,
                posts_transaction=bool(schedule.get("posts_transaction")),
            )
            return self._commit(created.id)

        return await self._call(_create)

    def _schedule_conditions(self, schedule: Schedules, fields: dict) -> list[dict]:
        conditions = json.loads(schedule.rule.conditions or "[]")
        replacements = []
        if "payee" in fields:
            payee = self._get(Payees, fields["payee"]) if fields["payee"] else None
            replacements.append(dict(field="description", op="is", value=payee.id if payee else None))
        if "account" in fields:
            account = self._get(Accounts, fields["account"]) if fields["account"] else None
            replacements.append(dict(field="acct", op="is", value=account.id if account else None))
        if "date" in fields:
            replacements.append(dict(field="date", op="isapprox", value=_schedule_date(fields["date"])))
        if "amount" in fields or "amount_op" in fields:
            current = next((c for c in conditions if c.get("field") == "amount"), {})
            op = fields.get("amount_op") or current.get("op") or "is"
            value = fields["amount"] if "amount" in fields else current.get("value")
            if op == "isbetween":
                value = BetweenValue.model_validate(value) if isinstance(value, dict) else value
            replacements.append(dict(field="amount", op=op, value=value))

        for replacement in replacements:
            try:
                condition = Condition(**replacement).model_dump(mode="json", by_alias=True)
            except PydanticValidationError as e:
                raise ValidationError(f"Schedule {replacement['field']} is invalid: {e}") from e
            index = next((i for i, c in enumerate(conditions) if c.get("field") == condition["field"]), None)
            if index is None:
                conditions.append(condition)
            else:
                conditions[index] = condition
        return conditions

    def _schedule_next_date(self, schedule_id: str, value):
        if isinstance(value, dict):
            config = Schedule.model_validate(value)
            upcoming = config.xafter()
            next_date = upcoming[0] if upcoming else config.start
        else:
            next_date = datetime.date.fromisoformat(value)
        row = self.session.scalars(
            select(SchedulesNextDate).where(SchedulesNextDate.schedule_id == schedule_id)
        ).first()
        if row is None:
            return
        now = current_timestamp()
        row.local_next_date = row.base_next_date = date_to_int(next_date)
        row.local_next_date_ts = row.base_next_date_ts = now

    async def update_schedule(self, schedule_id: str, fields: dict):
        def _update():
            schedule = self._get(Schedules, schedule_id)
            columns = {k: v for k, v in fields.items() if k not in SCHEDULE_CONDITIONS}
            _apply(schedule, columns, SCHEDULE_COLUMNS)
            if any(k in fields for k in SCHEDULE_CONDITIONS):
                if schedule.rule is None:
                    raise LookupError(f"Schedule '{schedule_id}' has no rule")
                schedule.rule.conditions = json.dumps(self._schedule_conditions(schedule, fields))
            if fields.get("date"):
                self._schedule_next_date(schedule_id, fields["date"])
            self._commit()

        await self._call(_update)

    async def delete_schedule(self, schedule_id: str):
        await self._delete(Schedules, schedule_id)

    # ---------- TRANSACTIONS ----------

    async def get_transactions(self, account_id: str, start_date: str | None = None, end_date: str | None = None):
        def _list():
            account = self._get(Accounts, account_id)
            found = queries.get_transactions(
                self.session,
                start_date=datetime.date.fromisoformat(start_date) if start_date else None,
                end_date=datetime.date.fromisoformat(end_date) if end_date else None,
                account=account,
            )
            return [_transaction(t) for t in found]

        return await self._call(_list)

    def _create_transaction(self, account, data: dict, reconcile: bool, matched: list):
        payee = self._get(Payees, data["payee"]) if data.get("payee") else data.get("payee_name")
        category = self._get(Categories, data["category"]) if data.get("category") else None
        kwargs = dict(
            date=datetime.date.fromisoformat(data["date"]),
            account=account,
            payee=payee,
            notes=data.get("notes") or "",
            category=category,
            amount=_cents(data.get("amount") or 0),
            imported_id=data.get("imported_id"),
            cleared=bool(data.get("cleared")),
            imported_payee=data.get("imported_payee"),
        )
        if reconcile:
            return queries.reconcile_transaction(self.session, already_matched=matched, **kwargs)
        return queries.create_transaction(self.session, **kwargs)

    async def add_transactions(self, account_id: str, transactions: list[dict]):
        def _add():
            account = self._get(Accounts, account_id)
            ids = [self._create_transaction(account, t, False, []).id for t in transactions]
            return self._commit(ids)

        return await self._call(_add)

    async def import_transactions(self, account_id: str, transactions: list[dict]):
        def _import():
            account = self._get(Accounts, account_id)
            existing = {
                t.id for t in queries.get_transactions(self.session, account=account)
            }
            matched = []
            added, updated = [], []
            for data in transactions:
                t = self._create_transaction(account, data, True, matched)
                matched.append(t)
                (updated if t.id in existing else added).append(t.id)
            return self._commit({"added": added, "updated": updated})

        return await self._call(_import)

    async def update_transaction(self, transaction_id: str, fields: dict):
        def _update():
            t = self._get(Transactions, transaction_id)
            _apply(t, {k: v for k, v in fields.items() if k not in ("date", "payee")}, TRANSACTION_COLUMNS)
            if "payee" in fields:
                # a transfer payee also books the counterpart transaction
                payee = self._get(Payees, fields["payee"]) if fields["payee"] else None
                queries.set_transaction_payee(self.session, t, payee)
            if fields.get("date"):
                t.set_date(datetime.date.fromisoformat(fields["date"]))
            self._commit()

        await self._call(_update)

    async def delete_transaction(self, transaction_id: str):
        await self._delete(Transactions, transaction_id)

    # ---------- UTILITIES ----------

    async def sync(self):
        await self._call(lambda: self._actual.sync())

    async def run_bank_sync(self, account_id: str | None = None):
        def _bank_sync():
            account = self._get(Accounts, account_id) if account_id else None
            imported = self._actual.run_bank_sync(account=account)
            return self._commit([_transaction(t) for t in imported])

        return await self._call(_bank_sync)

    async def run_query(self, query: str):
        def _query():
            rows = self.session.execute(text(query)).mappings().all()
            return [dict(r) for r in rows]

        return await self._call(_query)

    async def get_id_by_name(self, entity_type: str, name: str):
        model = NAMED_MODELS.get(entity_type)
        if model is None:
            raise ValueError(f"Unsupported type '{entity_type}'")

        def _lookup():
            found = self.session.scalars(
                select(model).where(model.name == name, model.tombstone == 0)
            ).first()
            return found.id if found else None

        return await self._call(_lookup)


def _schedule_date(value):
    # a plain date is a one-off, an object is a recurrence config
    if isinstance(value, dict):
        return Schedule.model_validate(value)
    return datetime.date.fromisoformat(value)


def _schedule_amount(value):
    if isinstance(value, dict):
        between = BetweenValue.model_validate(value)
        return _cents(between.num_1), _cents(between.num_2)
    return _cents(value or 0)


def _values(value) -> list:
    return value if isinstance(value, list) else [value]
