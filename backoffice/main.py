import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backoffice.api import agent_orders, agents, auth, customers, orders, products, reports, stock
from backoffice.config import settings
from backoffice.database import SessionLocal, init_db
from backoffice.services.auth_service import ensure_default_admin

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # Create default admin if no users
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Orders, agent orders, catalog, stock ledger and reporting",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error on %s %s: %s\n%s", request.method, request.url.path, exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


app.include_router(auth.router, prefix="/api/v1")
app.include_router(orders.router, prefix="/api/v1")
app.include_router(agent_orders.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(products.categories_router, prefix="/api/v1")
app.include_router(products.attributes_router, prefix="/api/v1")
app.include_router(stock.router, prefix="/api/v1")
app.include_router(agents.router, prefix="/api/v1")
app.include_router(customers.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


@app.get("/health")
def health():
    return {"status": "ok"}
