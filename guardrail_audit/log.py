"""Process-wide logging setup for guardrail services and scripts."""
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with the standard guardrail format."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
