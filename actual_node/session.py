import hashlib
import logging
from pathlib import Path

from actual_node.client import BudgetClient
from actual_node.credentials import Credentials
from actual_node.errors import InitializationError, ShutdownWarning, ValidationError

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = "actual-data"


def cache_dir_for(server_url: str, data_home: Path) -> Path:
    """Local data directory for one server, keyed by the md5 of its URL."""
    digest = hashlib.md5(server_url.encode("utf-8")).hexdigest()
    return Path(data_home) / CACHE_DIR_NAME / digest


def ensure_cache_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _budget_id(value) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("Budget ID is required")
    return value


class BudgetSession:
    """One vendor client connection, held for exactly one execution run.

    Use as an async context manager. The client is shut down once on every
    way out, including a failed ``init``.
    """

    def __init__(self, client: BudgetClient, credentials: Credentials, data_home: Path):
        self.client = client
        self.credentials = credentials
        self.data_dir = cache_dir_for(credentials.url, data_home)
        self.budget_id: str | None = None
        self.shutdown_warning: ShutdownWarning | None = None
        self._released = False

    async def __aenter__(self):
        try:
            ensure_cache_dir(self.data_dir)
            await self.client.init(
                self.credentials.url,
                self.credentials.password.get_secret_value(),
                self.data_dir,
            )
        except Exception as e:
            await self.release()
            raise InitializationError(
                f"Failed to initialize Actual Budget API client: {e}"
            ) from e
        logger.info(f"Opened Actual session for {self.credentials.url} (data dir {self.data_dir})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()

    async def use_budget(self, budget_id: str, refresh: bool = False):
        """Download and open ``budget_id`` unless it is the budget already open.

        ``budget_id`` may be the sync id or the budget name.
        """
        budget_id = _budget_id(budget_id)
        if refresh or budget_id != self.budget_id:
            await self.client.download_budget(budget_id)
            self.budget_id = budget_id
            logger.info(f"Budget {budget_id} ready")

    async def load_budget(self, budget_id: str):
        """Open a budget already present in the data directory."""
        budget_id = _budget_id(budget_id)
        await self.client.load_budget(budget_id)
        self.budget_id = budget_id

    async def release(self):
        if self._released:
            logger.debug("Actual session already released")
            return
        self._released = True
        try:
            await self.client.shutdown()
        except Exception as e:
            self.shutdown_warning = ShutdownWarning(f"Failed to shutdown Actual Budget API client: {e}")
            logger.warning(str(self.shutdown_warning), exc_info=e)
        else:
            logger.info(f"Closed Actual session for {self.credentials.url}")
