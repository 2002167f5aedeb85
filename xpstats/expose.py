import polars as pl
import pandas as pd
import numpy as np
from datetime import date
from dataclasses import replace
from itertools import product
from xpstats.tools import (
    arg_match,
    _verify_col_names,
    _check_convert_df,
    _as_list,
    _date_str,
    _date_fmt
)
from xpstats.col_select import discover_trx_types, col_matches
from xpstats.params import ExposureMeta


class ExposedDF():
    """
    Exposed data frame class

    Pair a data frame of exposure-level records with the metadata required
    by experience study summaries.

    Parameters
    ----------
    data : pl.DataFrame | pd.DataFrame
        A data frame with exposure-level records
    end_date : date | str
        Experience study end date. If a string is passed, it must be in
        %Y-%m-%d format.
    start_date : date | str, default=date(1900, 1, 1)
        Experience study start date. If a string is passed, it must be in
        %Y-%m-%d format.
    target_status : str | list | np.ndarray, default=None
        Target status values
    cal_expo : bool, default=False
        Set to `True` for calendar year exposures. Otherwise policy year
        exposures are assumed.
    expo_length : {'year', 'quarter', 'month', 'week'}
        Exposure period length
    trx_types : list | str, default=None
        Transaction types attached to `data`. If `None`, transaction types are
        discovered from column names.
    col_pol_num : str, default='pol_num'
        Name of the column in `data` containing the policy number
    col_status : str, default='status'
        Name of the column in `data` containing the policy status
    col_exposure : str, default='exposure'
        Name of the column in `data` containing exposures
    cols_dates : list, default=None
        Names of the columns in `data` containing exposure start and end
        dates. The assumed default is of the form *A*_*B*. *A* is "cal" if
        `cal_expo` is `True` or "pol_date" otherwise. *B* is either "yr",
        "qtr", "mth", or "wk" depending on the value of `expo_length`.
    col_trx_n_ : str, default="trx_n_"
        Prefix to use for columns containing transaction counts.
    col_trx_amt_ : str, default="trx_amt_"
        Prefix to use for columns containing transaction amounts.


    Attributes
    ----------
    data : pl.DataFrame
        A Polars data frame with exposure level records.
    groups : list
        Grouping variables set by `group_by()`
    meta : ExposureMeta
        Immutable study metadata
    end_date, start_date, target_status, cal_expo, expo_length, trx_types :
        Read-only views of `meta`
    exposure_type : str
        A description of the exposure type that combines the `cal_expo` and
        `expo_length` properties
    date_cols : tuple
        Names of the start and end date columns in `data` for each exposure
        period


    Notes
    ----------
    Exposure-level data has one record per policy per observation period.
    Creating those records from census data is outside the scope of this
    class. `data` must contain columns for policy numbers, statuses, and
    exposures.

    Transaction counts and amounts are stored in pairs of columns named
    `trx_n_{*}` and `trx_amt_{*}`. If `trx_types` is not supplied, every
    column pair following this pattern is treated as a transaction type.
    Additional transactions can be attached using `add_transactions()`.

    `ExposedDF.from_DataFrame()` is an alias of the class constructor.

    Examples
    ----------
    ```{python}
    import xpstats as xp
    import polars as pl

    dat = pl.DataFrame({'pol_num': [1, 2, 3],
                        'status': ['Active', 'Surrender', 'Active'],
                        'exposure': [1, 1, 0.5]})
    xp.ExposedDF(dat, "2022-12-31", target_status='Surrender')
    ```
    """

    # helper dictionary for abbreviations
    abbr_period = {
        "year": "yr",
        "quarter": "qtr",
        "month": "mth",
        "week": "wk"
    }

    def __init__(self,
                 data: pl.DataFrame | pd.DataFrame,
                 end_date: date | str,
                 start_date: date | str = date(1900, 1, 1),
                 target_status: str | list | np.ndarray = None,
                 cal_expo: bool = False,
                 expo_length: str = 'year',
                 trx_types: list | str = None,
                 col_pol_num: str = "pol_num",
                 col_status: str = "status",
                 col_exposure: str = "exposure",
                 cols_dates: list = None,
                 col_trx_n_: str = "trx_n_",
                 col_trx_amt_: str = "trx_amt_"):

        if end_date is None:
            raise ValueError("`end_date` is required.")
        end_date = _date_str(end_date, "end_date")
        start_date = _date_str(start_date, "start_date")

        # convert data to polars dataframe if necessary
        data = _check_convert_df(data)

        arg_match('expo_length', expo_length,
                  ["year", "quarter", "month", "week"])

        # column name alignment
        _verify_col_names(data.columns,
                          {col_pol_num, col_status, col_exposure})
        data = data.rename({
            col_pol_num: 'pol_num',
            col_status: 'status',
            col_exposure: 'exposure'
        })

        # column name alignment - period start and end dates
        if cols_dates is not None:
            if len(cols_dates) != 2:
                raise ValueError(
                    "`cols_dates` must be a list containing 2 column names")
            exp_cols_dates = ExposedDF._make_date_col_names(cal_expo,
                                                            expo_length)
            _verify_col_names(data.columns, set(cols_dates))
            data = data.rename({
                cols_dates[0]: exp_cols_dates[0],
                cols_dates[1]: exp_cols_dates[1]
            })

        # column name alignment - transactions
        if col_trx_n_ != 'trx_n_' or col_trx_amt_ != 'trx_amt_':

            def trx_renamer(x):
                if x.startswith(col_trx_n_):
                    return 'trx_n_' + x[len(col_trx_n_):]
                if x.startswith(col_trx_amt_):
                    return 'trx_amt_' + x[len(col_trx_amt_):]
                return x

            data = data.rename(trx_renamer)

        if trx_types is None:
            trx_types = discover_trx_types(data.columns)
        else:
            trx_types = tuple(np.unique(_as_list(trx_types)).tolist())
            _verify_col_names(data.columns,
                              {x + y for x, y in
                               product(["trx_n_", "trx_amt_"], trx_types)})

        if not data.schema['exposure'].is_numeric():
            raise ValueError("The `exposure` column must be numeric.")

        self.data = data
        self.groups = []
        self.meta = ExposureMeta(
            end_date=end_date,
            start_date=start_date,
            target_status=tuple(_as_list(target_status)),
            cal_expo=cal_expo,
            expo_length=expo_length,
            trx_types=trx_types)

    @classmethod
    def from_DataFrame(cls,
                       data: pl.DataFrame | pd.DataFrame,
                       end_date: date | str,
                       **kwargs):
        """
        Coerce a data frame to an `ExposedDF` object

        The input data frame must have columns for policy numbers, statuses,
        and exposures. Optionally, if `data` has transaction counts and
        amounts by type, these are detected automatically or can be
        specified using `trx_types`.

        Parameters
        ----------
        data : pl.DataFrame | pd.DataFrame
            A data frame with exposure-level records
        end_date : date | str
            Experience study end date
        **kwargs
            Additional arguments passed to `ExposedDF()`

        Returns
        ----------
        ExposedDF
            An `ExposedDF` object.
        """
        return cls(data, end_date, **kwargs)

    @property
    def end_date(self) -> date:
        return self.meta.end_date

    @property
    def start_date(self) -> date:
        return self.meta.start_date

    @property
    def target_status(self) -> list:
        return list(self.meta.target_status)

    @property
    def cal_expo(self) -> bool:
        return self.meta.cal_expo

    @property
    def expo_length(self) -> str:
        return self.meta.expo_length

    @property
    def trx_types(self) -> list:
        return list(self.meta.trx_types)

    @property
    def exposure_type(self) -> str:
        return (('calendar' if self.cal_expo else 'policy') + '_' +
                self.expo_length)

    @property
    def date_cols(self) -> tuple:
        return ExposedDF._make_date_col_names(self.cal_expo, self.expo_length)

    @staticmethod
    def _make_date_col_names(cal_expo: bool, expo_length: str):
        abbrev = ExposedDF.abbr_period[expo_length]
        x = ("cal_" if cal_expo else "pol_date_") + abbrev
        return x, x + "_end"

    def __repr__(self) -> str:
        repr = ("Exposure data\n\n" +
                f"Exposure type: {self.exposure_type}\n" +
                f"Target status: {', '.join([str(i) for i in self.target_status])}\n" +
                f"Study range: {_date_fmt(self.start_date)} to {_date_fmt(self.end_date)}\n")

        if len(self.groups) > 0:
            repr += f"Groups: {', '.join([str(i) for i in self.groups])}\n"

        if len(self.trx_types) > 0:
            repr += f"Transaction types: {', '.join(self.trx_types)}\n"

        repr += f"\n{self.data}"

        return repr

    def group_by(self, *by):
        """
        Set grouping variables for summary methods like `exp_stats()` and
        `trx_stats()`.

        Parameters
        ----------
        *by:
            Column names in `data` that will be used as grouping variables

        Notes
        ----------
        This function will not directly apply the `DataFrame.group_by()` method
        to the `data` property. Instead, it will set the `groups` property of
        the `ExposedDF` object. The `groups` property is subsequently used to
        group data within summary methods like `exp_stats()` and `trx_stats()`.
        """

        by = list(by)

        unmatched = set(by).difference(self.data.columns)
        if len(unmatched) > 0:
            raise ValueError(
                "All grouping variables passed to `*by` must be in the " +
                "`data` property. The following are missing: " +
                ", ".join(sorted(unmatched)))

        self.groups = by
        return self

    def ungroup(self):
        """
        Remove all grouping variables for summary methods like `exp_stats()`
        and `trx_stats()`.
        """
        self.groups = []
        return self

    def exp_stats(self,
                  target_status: str | list | np.ndarray = None,
                  expected: str | list | np.ndarray = None,
                  wt: str = None,
                  credibility: bool = False,
                  conf_level: float = 0.95,
                  cred_r: float = 0.05,
                  full_exposures_only: bool = True,
                  col_exposure: str = 'exposure'):
        """
        Summarize experience study records

        Create a summary of termination experience for a given target status
        (an `ExpStats` object).

        Parameters
        ----------
        target_status : str | list | np.ndarray, default=None
            A single string, list, or array of target status values
        expected: str | list | np.ndarray, default=None
            A single string, list, or array of column names in the
            `data` property with expected values
        wt: str, default=None
            Name of the column in the `data` property containing
            weights to use in the calculation of claims, exposures, and
            partial credibility.
        credibility : bool, default=False
            Whether the output should include partial credibility weights and
            credibility-weighted decrement rates.
        conf_level : float, default=0.95
            Confidence level under the Limited Fluctuation credibility method
        cred_r : float, default=0.05
            Error tolerance under the Limited Fluctuation credibility method
        full_exposures_only : bool, default=True
            If `True`, partially exposed records will be ignored in the
            results.
        col_exposure : str, default='exposure'
            Name of the column in `data` containing exposures.

        Returns
        ----------
        `ExpStats`
            See `ExpStats` for a description of the `data` property.
        """
        from xpstats.exp_stats import ExpStats
        return ExpStats(self, target_status, expected, wt, credibility,
                        conf_level, cred_r, full_exposures_only,
                        col_exposure)

    def add_transactions(self,
                         trx_data: pl.DataFrame | pd.DataFrame,
                         col_pol_num: str = "pol_num",
                         col_trx_date: str = "trx_date",
                         col_trx_type: str = "trx_type",
                         col_trx_amt: str = "trx_amt"):
        """
        Add transactions to an experience study

        Parameters
        ----------
        trx_data : pl.DataFrame | pd.DataFrame
            A data frame containing transactions details. This data frame must
            have columns for policy numbers, transaction dates, transaction
            types, and transaction amounts.
        col_pol_num : str, default='pol_num'
            Name of the column in `trx_data` containing the policy number
        col_trx_date : str, default='trx_date'
            Name of the column in `trx_data` containing the transaction date
        col_trx_type :str, default='trx_type'
            Name of the column in `trx_data` containing the transaction type
        col_trx_amt : str, default='trx_amt'
            Name of the column in `trx_data` containing the transaction amount

        Notes
        ----------
        This function attaches transactions to an `ExposedDF` object.
        Transactions are grouped and summarized such that the number of rows in
        the data does not change. Two columns are added to the output
        for each transaction type. These columns have names of the pattern
        `trx_n_{*}` (transaction counts) and `trx_amt_{*}`
        (transaction_amounts). The `trx_types` property is updated to include
        the new transaction types found in `trx_data.`

        Transactions are associated with the data object by matching
        transactions dates with exposure dates ranges found in the `ExposedDF`.
        """

        # convert data to polars dataframe if necessary
        trx_data = _check_convert_df(trx_data)
        date_cols = list(self.date_cols)
        _verify_col_names(self.data.columns, set(['pol_num'] + date_cols))

        # column renames
        _verify_col_names(trx_data.columns,
                          {col_pol_num, col_trx_date, col_trx_type,
                           col_trx_amt})
        trx_data = trx_data.rename({
            col_pol_num: 'pol_num',
            col_trx_date: 'trx_date',
            col_trx_type: 'trx_type',
            col_trx_amt: 'trx_amt'
        }).with_columns(
            pl.col('trx_type').cast(pl.Utf8),
            pl.col('trx_date').cast(self.data.schema[date_cols[0]])
        )

        if trx_data['trx_date'].null_count() > 0:
            raise ValueError(
                "Missing values are not allowed in the `trx_date` column.")

        # check for conflicting transaction types
        new_trx_types = sorted(trx_data['trx_type'].unique().to_list())
        conflict_trx_types = set(
            new_trx_types).intersection(self.trx_types)
        if len(conflict_trx_types) > 0:
            raise ValueError("`trx_data` contains transaction types that " +
                             "have already been attached to `data`: " +
                             ', '.join(sorted(conflict_trx_types)) +
                             ". \nUpdate `trx_data` with unique transaction " +
                             "types.")

        # add dates to transaction data
        date_lookup = self.data.select(['pol_num'] + date_cols).lazy()
        trx_data = (trx_data.
                    lazy().
                    join(date_lookup, how='inner', on='pol_num').
                    filter(pl.col('trx_date') >= pl.col(date_cols[0]),
                           pl.col('trx_date') <= pl.col(date_cols[1])).
                    group_by(['pol_num', date_cols[0], 'trx_type']).
                    agg(trx_n=pl.len(),
                        trx_amt=pl.col('trx_amt').sum()).
                    collect())

        # one count / amount column pair per transaction type
        data = self.data.lazy()
        for x in new_trx_types:
            data = data.join(
                trx_data.lazy().
                filter(pl.col('trx_type') == x).
                select('pol_num', date_cols[0],
                       pl.col('trx_n').alias(f'trx_n_{x}'),
                       pl.col('trx_amt').alias(f'trx_amt_{x}')),
                on=['pol_num', date_cols[0]],
                how='left')

        data = data.collect()
        # replace missing values
        self.data = data.with_columns(
            pl.col(col_matches(data, "^trx_(n|amt)_")).fill_null(0))

        self.meta = replace(
            self.meta,
            trx_types=tuple(self.trx_types + new_trx_types))

        return self

    def trx_stats(self,
                  trx_types: list | str = None,
                  percent_of: list | str = None,
                  combine_trx: bool = False,
                  full_exposures_only: bool = True,
                  col_exposure: str = 'exposure'):
        """
        Summarize transactions and utilization rates

        Create a summary of transaction counts, amounts, and utilization rates
        (a `TrxStats` object).

        Parameters
        ----------
        trx_types : list or str, default=None
            A list of transaction types to include in the output. If `None` is
            provided, all available transaction types in the `trx_types`
            property will be used.
        percent_of : list or str, default=None
            A list containing column names in the `data` property to
            use as denominators in the calculation of utilization rates or
            actual-to-expected ratios.
        combine_trx : bool, default=False
            If `False` (default), the results will contain output rows for each
            transaction type. If `True`, the results will contains aggregated
            results across all transaction types.
        full_exposures_only : bool, default=True
            If `True` (default), partially exposed records will be ignored
            in the results.
        col_exposure : str, default='exposure'
            Name of the column in the `data` property containing exposures.

        Returns
        ----------
        `TrxStats`
            See `TrxStats` for a description of the `data` property.
        """
        from xpstats.trx_stats import TrxStats
        return TrxStats(self, trx_types, percent_of, combine_trx,
                        full_exposures_only, col_exposure)
