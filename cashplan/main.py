import logging

from fastapi import FastAPI

from cashplan import config

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from cashplan.routes.analysis import router as analysis_router
from cashplan.routes.chat import router as chat_router

app = FastAPI(title="Cashflow Advisor Service")

app.include_router(analysis_router, prefix="/api", tags=["analysis"])
app.include_router(chat_router, prefix="/api", tags=["chat"])


@app.get("/health")
def health():
    return {"status": "ok"}
