# This module contains helper functions used by other modules
import numpy as np
import pandas as pd
import polars as pl
from datetime import datetime, date
from scipy.stats import norm


def arg_match(name: str, x, allowed):
    """
    Verify that an argument contains one of several allowed values.

    A `ValueError` exception is raised if the argument value `x` is not allowed.

    Parameters
    -----------
    name : str
        Argument name
    x : Any
        Argument value
    allowed : Any
        A list of allowed argument values

    References
    -----------
    This function is inspired by the R language's `arg.match()` and
    `rlang::arg_match()` functions.
    """
    if x not in allowed:
        allowed = ", ".join([f'"{a}"' for a in allowed[:-1]]) + \
            f', or "{allowed[-1]}"'
        raise ValueError(f'`{name}` must be one of {allowed}. '
                         f'"{x}" is not allowed.')


def _verify_exposed_df(expo):
    """
    Internal function to verify that `expo` is an `ExposedDF` carrying the
    study range metadata needed by summary methods.
    """
    from xpstats.expose import ExposedDF
    if not isinstance(expo, ExposedDF):
        raise TypeError("An `ExposedDF` object is required.")
    missing = [x for x in ['start_date', 'end_date']
               if getattr(expo, x, None) is None]
    if len(missing) > 0:
        raise ValueError(
            "`expo` is missing the following exposure attributes: " +
            ", ".join(missing) + ". Hint: create exposure data using " +
            "`ExposedDF.from_DataFrame()`.")


def _verify_col_names(x_names, required: set):
    """
    Internal function to verify that required names exist and to
    send an error if not.
    """
    unmatched = set(required).difference(x_names)
    if len(unmatched) > 0:
        raise ValueError(
            f"The following columns are missing: {', '.join(sorted(unmatched))}. " +
            "Hint: create these columns or use the `col_*` arguments to " +
            "specify existing columns that should be mapped to these elements.")


def _check_convert_df(data) -> pl.DataFrame:
    """
    Internal function to convert pandas data frames to polars. Polars data
    frames are returned as-is.
    """
    if isinstance(data, pd.DataFrame):
        return pl.from_pandas(data)
    if not isinstance(data, pl.DataFrame):
        raise TypeError('`data` must be a DataFrame')
    return data


def _as_list(x) -> list:
    """
    Internal function that coerces `None`, a single value, or an iterable of
    values to a list.
    """
    if x is None:
        return []
    return np.atleast_1d(x).tolist()


def _date_str(x: date | str, x_name: str = "x") -> date:
    """
    Internal function for converting strings to dates if necessary.

    Parameters
    ----------
    x : date | str
        A date object or a string in %Y-%m-%d format.
    x_name : str, default="x"
        An optional variable name to print for error messages.

    Returns
    -------
    date
    """
    if x is None or isinstance(x, date):
        return x
    if isinstance(x, int):
        return date(x, 1, 1)
    if not isinstance(x, str):
        raise TypeError(f"`{x_name}` must be a date or string "
                        "in %Y-%m-%d format.")
    return datetime.strptime(x, '%Y-%m-%d').date()


def _date_fmt(x) -> str:
    """
    Internal function for converting dates to ISO-8601 format. If x is not a
    date object, it is returned as-is.
    """
    if isinstance(x, date):
        return x.strftime('%Y-%m-%d')
    return x


# safe version of normal ppf when standard deviation is zero
def _qnorm(p, mean=0, sd=1):
    """
    Internal function for the inverse cumulative normal distribution
    that returns the mean when the standard deviation is zero.

    Parameters
    ----------
    p : np.ndarray
        A vector of probabilities
    mean : np.ndarray
        A vector of means
    sd : np.ndarray
        A vector of standard deviations

    Returns
    -------
    np.ndarray
        A vector of quantiles
    """
    sd = np.maximum(sd, 1E-16)
    return norm.ppf(p, mean, sd)


def _plot_defaults(groups: list,
                   x: str = None,
                   y: str = None,
                   color: str = None,
                   facets: list = None) -> dict:
    """
    Default aesthetic choices for presentation layers. The first grouping
    variable is used for `x`, the second for `color`, and any others become
    facets. If there are no grouping variables, `x` is set to "All".
    """

    def auto_aes(var, default, if_none):
        if var is None:
            if len(groups) < default:
                return if_none
            else:
                return groups[default - 1]
        else:
            return var

    x = auto_aes(x, 1, "All")
    color = auto_aes(color, 2, None)

    if facets is None:
        facets = groups[2:]

    return {'x': x, 'y': y, 'color': color, 'facets': list(facets)}
