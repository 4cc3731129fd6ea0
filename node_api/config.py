import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

NODE_DATA_HOME = Path(
    os.getenv("NODE_DATA_HOME", str(Path.home() / ".actual-node"))
).expanduser()

REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ACTUAL_CERT = os.getenv("ACTUAL_CERT", "") or False

ACTUAL_FILE_PASSWORD = os.getenv("ACTUAL_FILE_PASSWORD") or None
