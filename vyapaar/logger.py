import logging

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO", name: str = "vyapaar") -> logging.Logger:
    """Attach a console handler to the package logger once.

    Module loggers (``logging.getLogger(__name__)``) propagate here. Calling
    this again only adjusts the level, so Streamlit reruns do not stack
    handlers.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(console_handler)
    logger.propagate = False
    return logger
