# automart/main.py
import uvicorn

from automart.api import create_app
from automart.data.database import Base, engine
from automart.utils.logging import get_logger

# register all models before create_all
from automart.data.models import OrderModel  # noqa: F401

logger = get_logger(__name__)

logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
try:
    Base.metadata.create_all(bind=engine)
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    raise

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=3000)
