from .models import Base
from .session import engine

from app.utils.logging import get_logger

logger = get_logger()


def create_tables(bind=None):
    """Create every table on bind, defaulting to the configured engine."""
    Base.metadata.create_all(bind or engine)
    logger.info("Created all tables.")


if __name__ == "__main__":
    create_tables()
