import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the root logger.

    Safe to call more than once (uvicorn reload, tests): an existing handler
    installed here is reused instead of stacking a second one.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for h in root.handlers:
        if getattr(h, "_alignzo", False):
            return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._alignzo = True  # type: ignore[attr-defined]
    root.addHandler(handler)
