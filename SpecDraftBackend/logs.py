import os
import logging

LOG_LEVEL = os.getenv("SPECDRAFT_LOG_LEVEL", "INFO").upper()

def get_logger(name: str) -> logging.Logger:
    log = logging.getLogger(name)
    if not log.handlers:  # get_logger may be called once per module
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
        log.addHandler(_h)
    log.setLevel(LOG_LEVEL)
    return log
