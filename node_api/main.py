import logging

from fastapi import FastAPI

from node_api.config import LOG_LEVEL
from node_api.routes import router as actual_router

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(
    title="Actual Budget Node",
    version="1.0.0"
)

app.include_router(actual_router)

@app.get("/health")
async def health():
    return {"ok": True}
