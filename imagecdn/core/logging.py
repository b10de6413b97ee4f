import logging

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once (tests build many apps); later calls only
    adjust the level.
    """
    global _configured

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    _configured = True
