"""Process-wide logging configuration."""
import logging


def setup_logging(level: str) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=lvl, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    # kafka-python is chatty at INFO (connection churn on every admin call)
    logging.getLogger("kafka").setLevel(max(lvl, logging.WARNING))
