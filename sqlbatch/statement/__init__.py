from sqlbatch.statement.buffer import Buffer
from sqlbatch.statement.case_update import DEFAULT_BATCH_SIZE, CaseUpdateBuilder, CaseUpdateRow, case_update
from sqlbatch.statement.expr import I, Identifier, RawExpression, expr
from sqlbatch.statement.interpolate import Interpolator, RenderedQuery, count_wrap, interpolate, render

__all__ = (
    "DEFAULT_BATCH_SIZE",
    "Buffer",
    "CaseUpdateBuilder",
    "CaseUpdateRow",
    "I",
    "Identifier",
    "Interpolator",
    "RawExpression",
    "RenderedQuery",
    "case_update",
    "count_wrap",
    "expr",
    "interpolate",
    "render",
)
