import logging
import sys

_configured = False


def setup_logging(level: str = "INFO", fmt: str | None = None) -> logging.Logger:
    """Install a stdout handler on the root logger and set the ``app`` level.

    Safe to call more than once; handlers are only added the first time.
    """
    global _configured
    root = logging.getLogger()
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt or logging.BASIC_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.WARNING)
        _configured = True

    logging.getLogger("app").setLevel(getattr(logging, level.upper(), logging.INFO))
    return root
