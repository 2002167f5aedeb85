import polars as pl
import polars.selectors as cs
from xpstats.tools import _check_convert_df


def col_starts_with(data: pl.DataFrame, prefix: str) -> list:
    """
    Names of the columns in `data` beginning with `prefix`, in column order.

    See Also
    ----------
    col_matches
    """
    return data.select(cs.starts_with(prefix)).columns


def col_matches(data: pl.DataFrame, pattern: str) -> list:
    """
    Names of the columns in `data` matching the regular expression `pattern`,
    in column order.

    Used to find transaction count and amount columns, for example
    `col_matches(data, "^trx_(n|amt)_")`.

    See Also
    ----------
    col_starts_with
    """
    return data.select(cs.matches(pattern)).columns


def discover_trx_types(data,
                       col_trx_n_: str = "trx_n_",
                       col_trx_amt_: str = "trx_amt_") -> tuple:
    """
    Find the transaction types attached to a data frame.

    Transaction types are identified by pairs of columns named
    `{col_trx_n_}{*}` (transaction counts) and `{col_trx_amt_}{*}`
    (transaction amounts).

    Parameters
    ----------
    data : pl.DataFrame | pd.DataFrame | list
        A data frame or a list of column names
    col_trx_n_ : str, default="trx_n_"
        Prefix of columns containing transaction counts
    col_trx_amt_ : str, default="trx_amt_"
        Prefix of columns containing transaction amounts

    Returns
    ----------
    tuple
        Sorted transaction types

    Notes
    ----------
    Count and amount columns must come in pairs. A `ValueError` is raised if
    a count column has no matching amount column or vice versa.

    Examples
    ----------
    ```{python}
    import xpstats as xp
    xp.discover_trx_types(['pol_num', 'trx_n_Base', 'trx_amt_Base'])
    ```
    """
    if isinstance(data, (list, tuple)):
        # an empty frame is enough for column selection
        data = pl.DataFrame(schema=list(data))
    else:
        data = _check_convert_df(data)

    def suffixes(prefix):
        return {x[len(prefix):] for x in col_starts_with(data, prefix)
                if len(x) > len(prefix)}

    n_types = suffixes(col_trx_n_)
    amt_types = suffixes(col_trx_amt_)

    unpaired = n_types.symmetric_difference(amt_types)
    if len(unpaired) > 0:
        raise ValueError(
            "Transaction count and amount columns must come in pairs. " +
            "The following transaction types are missing a " +
            f"`{col_trx_n_}` or `{col_trx_amt_}` column: " +
            ", ".join(sorted(unpaired)))

    return tuple(sorted(n_types))
