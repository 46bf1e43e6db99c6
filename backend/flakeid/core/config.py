import logging
import os
from dotenv import load_dotenv

logger = logging.getLogger("flakeid.config")

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


class AppEnvironmentSetup:
    # Identity is left as raw strings, validation happens in the identity provider
    DATACENTER_ID = os.getenv("FLAKEID_DATACENTER_ID")
    MACHINE_ID = os.getenv("FLAKEID_MACHINE_ID")
    MAX_BACKOFF_MS = _int_env("FLAKEID_MAX_BACKOFF_MS", 5)
    LOG_LEVEL = os.getenv("FLAKEID_LOG_LEVEL")

    def __init__(self):
        self.attrs = [(x, getattr(self, x)) for x in dir(self) if x.isupper()]
        self.index = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self.index == len(self.attrs):
            raise StopIteration
        _next = self.attrs[self.index]
        self.index += 1
        return _next


if AppEnvironmentSetup.LOG_LEVEL:
    _level = logging.getLevelName(AppEnvironmentSetup.LOG_LEVEL.upper())
    if isinstance(_level, int):
        logging.getLogger("flakeid").setLevel(_level)
    else:
        logger.warning("Unknown FLAKEID_LOG_LEVEL %r", AppEnvironmentSetup.LOG_LEVEL)

for name, value in AppEnvironmentSetup():
    logger.debug("Verifying environment settings for %s=%r", name, value)
