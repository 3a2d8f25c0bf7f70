from sqlbatch.adapters.aiosqlite.driver import AiosqliteDriver, AiosqliteRows, coerce_parameter

__all__ = ("AiosqliteDriver", "AiosqliteRows", "coerce_parameter")
