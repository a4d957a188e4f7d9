import logging

logger = logging.getLogger("styleprobe")


def setup_logging(level: int = logging.INFO, debug: bool = False):
    """Configure logging for styleprobe."""
    if debug:
        level = logging.DEBUG

    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logger.addHandler(handler)
