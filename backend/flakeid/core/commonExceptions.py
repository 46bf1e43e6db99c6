from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from functools import wraps
import logging

logger = logging.getLogger("flakeid.exceptions")


class FlakeIdError(Exception):
    """Base class for every error raised by the id generators."""


class ConfigurationError(FlakeIdError, ValueError):
    """Raised at construction when the datacenter or machine id is out of range."""


class ClockRegressionError(FlakeIdError):
    """
    The system clock moved backwards past the last issued timestamp.

    Issuing an id now could duplicate or reorder one already handed out, so the
    generator refuses. The caller decides whether to retry, alert or abort.
    """

    def __init__(self, last_timestamp: int, current_timestamp: int):
        self.last_timestamp = last_timestamp
        self.current_timestamp = current_timestamp
        self.drift_ms = last_timestamp - current_timestamp
        super().__init__(
            f"Clock moved backwards by {self.drift_ms}ms. Refusing to generate id "
            f"(last={last_timestamp}, now={current_timestamp})"
        )


class GenerationInterruptedError(FlakeIdError, InterruptedError):
    """The wait for the next millisecond was cancelled."""


class TimestampOverflowError(FlakeIdError, OverflowError):
    """The clock reading does not fit the 41 bit timestamp field."""


class ErrorKind(Enum):
    CLOCK_REGRESSION = "clock_regression"
    INTERRUPTED = "interrupted"
    TIMESTAMP_OVERFLOW = "timestamp_overflow"


_ERROR_KINDS = {
    ClockRegressionError: ErrorKind.CLOCK_REGRESSION,
    GenerationInterruptedError: ErrorKind.INTERRUPTED,
    TimestampOverflowError: ErrorKind.TIMESTAMP_OVERFLOW,
}


@dataclass(frozen=True)
class GenerationResult:
    value: Optional[int] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def resultHandler(func: Callable):
    """
    Turns the per-call generation errors of `func` into a `GenerationResult`.

    Only clock regression, interruption and timestamp overflow are tagged;
    anything else propagates unchanged.
    """
    @wraps(func)
    def routing(*args, **kwargs):
        route_name = f"{func.__module__}.{func.__qualname__}"
        try:
            return GenerationResult(value=func(*args, **kwargs))
        except (ClockRegressionError, GenerationInterruptedError, TimestampOverflowError) as Err:
            # Lightweight source details without formatting entire traceback
            tb = Err.__traceback__
            last_tb = tb
            while last_tb and last_tb.tb_next:
                last_tb = last_tb.tb_next

            if last_tb is not None:
                filename = last_tb.tb_frame.f_code.co_filename
                lineno = last_tb.tb_lineno
                func_name = last_tb.tb_frame.f_code.co_name
            else:
                filename = None
                lineno = None
                func_name = None

            logger.error(
                "Id generation failed in %s at %s:%s in %s: %s: %s",
                route_name,
                filename,
                lineno,
                func_name,
                type(Err).__name__,
                Err,
            )

            if logger.isEnabledFor(logging.DEBUG):
                logger.exception("Stack trace (debug)")

            kind = next(k for cls, k in _ERROR_KINDS.items() if isinstance(Err, cls))
            return GenerationResult(error=kind, message=str(Err))
    return routing
