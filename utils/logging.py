import logging
import sys

def configure_logging(level: str = "INFO"):
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_civ13_handler", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
    ))
    handler._civ13_handler = True
    root.addHandler(handler)
    # discord.py and sqlalchemy are chatty at INFO
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
