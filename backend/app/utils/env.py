"""Local .env loading for settings read outside pydantic-settings."""

import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env_file() -> bool:
    """Load backend/.env into os.environ without overriding exported values.

    app/database.py reads DATABASE_URL before Settings exists, so it calls
    this when the variable is missing. Returns True if a file was found.
    """
    found = load_dotenv(override=False)
    if found:
        logger.info("[ENV] Loaded .env (exported variables take precedence)")
    else:
        logger.debug("[ENV] No .env file found")
    return found
