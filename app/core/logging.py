import logging
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once at app start. Level defaults to LOG_LEVEL."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is controlled by the engine, keep the library logger quiet
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
