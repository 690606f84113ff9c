from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from stockpilot.config import Settings, get_settings
from stockpilot.core.logging import setup_logging
from stockpilot.database import Base, SessionLocal, engine
from stockpilot.models import import_all_models
from stockpilot.routers import (
    dashboard_router,
    health_router,
    products_router,
    reorder_router,
    suppliers_router,
    transactions_router,
)
from stockpilot.services.seed_service import seed_demo_data


setup_logging()
settings: Settings = get_settings()

import_all_models()
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            seed_demo_data(db)
        finally:
            db.close()
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(health_router)
app.include_router(dashboard_router)
app.include_router(products_router)
app.include_router(suppliers_router)
app.include_router(transactions_router)
app.include_router(reorder_router)


@app.get("/")
def root():
    return RedirectResponse(url="/docs", status_code=302)


__all__ = ["app", "root"]
