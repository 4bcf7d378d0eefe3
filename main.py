import structlog
from fastapi import Depends, FastAPI, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config import settings
from shared.config.database import Base, engine, get_db
from shared.errors import register_exception_handlers
from shared.observability import setup_observability
from shared.security import limiter, set_csrf_token

# IMPORTANT: import models so they register with Base
from services.catalog_service import models as catalog_models
from services.cart_service import models as cart_models
from services.order_service import models as order_models
from services.return_service import models as return_models
from services.refund_service import models as refund_models
from services.replacement_service import models as replacement_models

from services.cart_service.router import router as cart_router
from services.order_service.router import router as order_router
from services.payment_service.router import router as payment_router
from services.return_service.router import router as return_router
from services.refund_service.router import router as refund_router
from services.replacement_service.router import router as replacement_router

logger = structlog.get_logger(__name__)

app = FastAPI(title="Storefront Orders")

setup_observability(app, settings.SERVICE_NAME)

app.state.limiter = limiter
register_exception_handlers(app)

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(return_router)
app.include_router(refund_router)
app.include_router(replacement_router)


@app.on_event("startup")
async def startup_event():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("service_started", service=settings.SERVICE_NAME, environment=settings.ENVIRONMENT)


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "service": settings.SERVICE_NAME}


@app.get("/csrf")
async def issue_csrf_token(response: Response):
    """Hand the browser a CSRF token (cookie + body) before its first mutation."""
    return {"csrfToken": set_csrf_token(response)}
