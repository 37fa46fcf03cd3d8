import logging
from logging import INFO

from tortoise import Tortoise

from app.core.config import DB_URL

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.idempotency",
    "app.models.outbox",
    "app.models.inbox",
    "app.models.order",
    "app.models.payment",
    "app.models.fulfillment",
]


async def init_db(db_url: str = DB_URL, generate_schemas: bool = True):
    """Initializes the Tortoise ORM connection and generates schemas."""
    try:
        await Tortoise.init(
            db_url=db_url,
            modules={"models": MODELS_MODULES},
            use_tz=True,
            timezone="UTC",
        )
        if generate_schemas:
            # Create tables that do not exist yet
            await Tortoise.generate_schemas(safe=True)
        log.info("Database connection established and schemas generated.")
    except Exception as e:
        log.error(f"FATAL ERROR: Could not connect to database. Error: {e}")
        # Re-raise to prevent the service from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")
