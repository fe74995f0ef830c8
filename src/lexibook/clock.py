"""Time helpers. Services take a clock callable so tests can pin "now"."""
import time
from datetime import date, datetime
from typing import Callable

Clock = Callable[[], int]


def current_millis() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def local_date(millis: int) -> date:
    """Device-local calendar date of an epoch-millis instant."""
    return datetime.fromtimestamp(millis / 1000).date()


def day_start_millis(day: date) -> int:
    """Epoch millis of local midnight at the start of the given day."""
    return int(datetime(day.year, day.month, day.day).timestamp() * 1000)
