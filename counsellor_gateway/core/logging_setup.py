import logging
import sys


def setup_logging(log_file: str = "gateway.log", level: int = logging.INFO):
    """Configures logging to write to the console and, if set, a file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    # Uvicorn bringt eigene Handler mit; wir leiten alles über den Root-Logger.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    logging.getLogger("httpx").setLevel(logging.WARNING)


def truncate(text: str, limit: int = 500) -> str:
    """Kürzt Log-Ausgaben von Bodies auf eine lesbare Länge."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"
