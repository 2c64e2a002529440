import logging
from typing import Optional

from lms.config import LOG_LEVEL

_configured = False


def setup_logging(level: Optional[str] = None):
    """Configure root logging once per process.

    Streamlit re-executes every page on each interaction, so this is called
    from init_app() many times; only the first call installs the handler.
    """
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
