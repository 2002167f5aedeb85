"""
Formula templates for summary columns whose number depends on the data

Expected values, "percent of" denominators, and transaction types are only
known at run time. Each `Formula` pairs an output name pattern with a function
that builds a polars expression from a column name. `exp_form()` applies a
list of formulas to a list of columns.
"""
from typing import Callable, NamedTuple
import polars as pl
from xpstats.tools import _verify_col_names


class Formula(NamedTuple):
    """
    An output name pattern containing `{col}` and a function from a column
    name to a polars expression
    """
    name: str
    expr: Callable[[str], pl.Expr]


def exp_form(forms, cols, available=None) -> dict:
    """
    Build named expressions for every combination of formula and column

    Parameters
    ----------
    forms : Formula | list[Formula]
        One or more formulas
    cols : list
        Column names substituted into each formula
    available : list, default=None
        If provided, the column names that must contain every value in `cols`

    Returns
    ----------
    dict
        Output column names mapped to polars expressions, ordered by column
        and then by formula. An empty dictionary is returned if `cols` is
        empty.
    """
    if isinstance(forms, Formula):
        forms = [forms]
    if available is not None:
        _verify_col_names(available, set(cols))
    return {f.name.format(col=x): f.expr(x) for x in cols for f in forms}


def _expected_mean(col: str) -> pl.Expr:
    # exposure-weighted mean. zero-exposure records contribute nothing, which
    # keeps summaries of summaries consistent with the raw data.
    wtd = (pl.when(pl.col('exposure') != 0).
           then(pl.col(col) * pl.col('exposure')).
           otherwise(0))
    return wtd.sum() / pl.col('exposure').sum()


# experience studies
EXPECTED_MEAN = [Formula("{col}", _expected_mean)]

AE_FORMS = [Formula("ae_{col}", lambda x: pl.col('q_obs') / pl.col(x))]

CRED_FORMS = [
    Formula("adj_{col}",
            lambda x: (pl.col('credibility') * pl.col('q_obs') +
                       (1 - pl.col('credibility')) * pl.col(x)))
]

# transaction studies
PCT_OF_FLAG = [
    Formula("{col}_w_trx", lambda x: pl.col(x) * pl.col('trx_flag'))
]

PCT_OF_SUMS = [
    Formula("{col}", lambda x: pl.col(x).sum()),
    Formula("{col}_w_trx", lambda x: pl.col(x + "_w_trx").sum())
]

PCT_OF_FORMS = [
    Formula("pct_of_{col}_all",
            lambda x: pl.col('trx_amt') / pl.col(x)),
    Formula("pct_of_{col}_w_trx",
            lambda x: pl.col('trx_amt') / pl.col(x + "_w_trx"))
]
