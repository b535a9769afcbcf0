import logging

from fastapi import FastAPI

from app.core.config import settings
from app.core.errors import register_error_handlers
from app.db.base import Base, engine
from app.db.models import booking, provider, service, user  # noqa: F401  register tables
from app.api.routes import admin as admin_router
from app.api.routes import bookings as bookings_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

register_error_handlers(app)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready (%s)", settings.database_url.split("://", 1)[0])


@app.get("/")
def root():
    return {"success": True, "message": "Service Booking Platform API running"}


app.include_router(bookings_router.router)
app.include_router(admin_router.router)
