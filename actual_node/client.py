"""The vendor client surface the node talks to.

Amounts are integer cents, months are ``YYYY-MM`` strings and dates are
``YYYY-MM-DD`` strings. Mutations return the new id where one exists.
"""

from pathlib import Path
from typing import Any, Protocol


class BudgetClient(Protocol):
    # ---------- LIFECYCLE ----------

    async def init(self, server_url: str, password: str, data_dir: Path) -> None: ...

    async def shutdown(self) -> None: ...

    async def download_budget(self, budget_id: str) -> None:
        """Fetch the budget (sync id or name) from the server and open it."""

    async def load_budget(self, budget_id: str) -> None: ...

    async def get_budgets(self) -> list[dict]: ...

    # ---------- ACCOUNTS ----------

    async def get_accounts(self) -> list[dict]: ...

    async def create_account(self, account: dict, initial_balance: int = 0) -> str: ...

    async def get_account_balance(self, account_id: str) -> int: ...

    async def update_account(self, account_id: str, fields: dict) -> None: ...

    async def close_account(self, account_id: str) -> None: ...

    async def reopen_account(self, account_id: str) -> None: ...

    async def delete_account(self, account_id: str) -> None: ...

    # ---------- BUDGET MONTHS ----------

    async def get_budget_months(self) -> list[str]: ...

    async def get_budget_month(self, month: str) -> dict: ...

    async def set_budget_amount(self, month: str, category_id: str, amount: int) -> None: ...

    async def set_budget_carryover(self, month: str, category_id: str, flag: bool) -> None: ...

    async def hold_budget_for_next_month(self, month: str, amount: int) -> None: ...

    async def reset_budget_hold(self, month: str) -> None: ...

    async def batch_budget_updates(self, updates: list[dict]) -> None:
        """Apply every update and sync them as one change set."""

    # ---------- CATEGORIES ----------

    async def get_categories(self) -> list[dict]: ...

    async def create_category(self, category: dict) -> str: ...

    async def update_category(self, category_id: str, fields: dict) -> None: ...

    async def delete_category(self, category_id: str) -> None: ...

    async def get_category_groups(self) -> list[dict]: ...

    async def create_category_group(self, group: dict) -> str: ...

    async def update_category_group(self, group_id: str, fields: dict) -> None: ...

    async def delete_category_group(self, group_id: str) -> None: ...

    # ---------- PAYEES ----------

    async def get_payees(self) -> list[dict]: ...

    async def create_payee(self, payee: dict) -> str: ...

    async def update_payee(self, payee_id: str, fields: dict) -> None: ...

    async def delete_payee(self, payee_id: str) -> None: ...

    async def merge_payees(self, target_id: str, source_ids: list[str]) -> None: ...

    async def get_payee_rules(self, payee_id: str) -> list[dict]: ...

    # ---------- RULES ----------

    async def get_rules(self) -> list[dict]: ...

    async def create_rule(self, rule: dict) -> dict: ...

    async def update_rule(self, rule: dict) -> dict: ...

    async def delete_rule(self, rule_id: str) -> None: ...

    # ---------- SCHEDULES ----------

    async def get_schedules(self) -> list[dict]: ...

    async def create_schedule(self, schedule: dict) -> str: ...

    async def update_schedule(self, schedule_id: str, fields: dict) -> None: ...

    async def delete_schedule(self, schedule_id: str) -> None: ...

    # ---------- TRANSACTIONS ----------

    async def get_transactions(
        self, account_id: str, start_date: str | None = None, end_date: str | None = None
    ) -> list[dict]:
        """Transactions of one account, each with ``payee_name`` and ``category_name``."""

    async def add_transactions(self, account_id: str, transactions: list[dict]) -> list[str]: ...

    async def import_transactions(self, account_id: str, transactions: list[dict]) -> dict: ...

    async def update_transaction(self, transaction_id: str, fields: dict) -> None: ...

    async def delete_transaction(self, transaction_id: str) -> None: ...

    # ---------- UTILITIES ----------

    async def sync(self) -> None: ...

    async def run_bank_sync(self, account_id: str | None = None) -> list[dict]: ...

    async def run_query(self, query: str) -> Any: ...

    async def get_id_by_name(self, entity_type: str, name: str) -> str | None: ...
