import logging
import sys

from lotto.core.config import settings


def configure_logging(level: str | None = None) -> logging.Logger:
    logging.basicConfig(
        level=logging.WARNING,  # root level
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger("lotto")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    # quiet the engine; SQL echo is only wanted while debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiomysql").setLevel(logging.WARNING)

    # keep payout lines from settlement even when the package level is raised
    logging.getLogger("lotto.services.settlement").setLevel(logging.INFO)
    return logger
