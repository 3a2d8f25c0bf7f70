"""Default event receiver."""

from collections.abc import Mapping
from typing import Final

from sqlbatch.observability._config import SHOW_ALL, SHOW_ERRORS, get_show_sql_level
from sqlbatch.utils.logging import get_logger

__all__ = ("NULL_RECEIVER", "NullEventReceiver")

logger = get_logger("sqlbatch.events")


class NullEventReceiver:
    """Sentinel receiver used when the caller does not supply one.

    Events are dropped unless the process-wide ``show_sql`` level asks for them,
    in which case one line per error (level 1) or per error and timing (level 2)
    is written to the ``sqlbatch.events`` logger.
    """

    __slots__ = ()

    def event(self, event_name: str) -> None:
        pass

    def event_kv(self, event_name: str, kvs: "Mapping[str, str]") -> None:
        pass

    def event_err(self, event_name: str, err: BaseException) -> BaseException:
        return err

    def event_err_kv(self, event_name: str, err: BaseException, kvs: "Mapping[str, str]") -> BaseException:
        if get_show_sql_level() >= SHOW_ERRORS:
            logger.error(
                "[SQLBATCH] [ERR %sms] [%s] %s", kvs.get("time", "-"), err, kvs.get("sql", ""), extra={"event": event_name}
            )
        return err

    def timing(self, event_name: str, nanoseconds: int) -> None:
        pass

    def timing_kv(self, event_name: str, nanoseconds: int, kvs: "Mapping[str, str]") -> None:
        if get_show_sql_level() >= SHOW_ALL:
            logger.info("[SQLBATCH] [OK %dms] %s", nanoseconds // 1_000_000, kvs.get("sql", ""), extra={"event": event_name})


NULL_RECEIVER: Final = NullEventReceiver()
