import polars as pl
import pandas as pd
import numpy as np
from datetime import date
from warnings import warn
from functools import singledispatchmethod
from xpstats.expose import ExposedDF
from xpstats.tools import (
    _verify_exposed_df,
    _verify_col_names,
    _check_convert_df,
    _as_list,
    _date_str,
    _date_fmt,
    _plot_defaults
)
from xpstats.formulas import (
    exp_form,
    PCT_OF_FLAG,
    PCT_OF_SUMS,
    PCT_OF_FORMS
)
from xpstats.grouping import group_agg
from xpstats.params import TrxParams, TrxMeta, _regroup


class TrxStats():
    """
    Transactions study summary class

    Create a summary of transaction counts, amounts, and utilization rates
    (a `TrxStats` object).

    Typically, the `TrxStats` class constructor should not be called directly.
    The preferred method for creating a `TrxStats` object is to call the
    `trx_stats()` method on an `ExposedDF` object.

    Parameters
    ----------
    expo : ExposedDF
        An exposed data frame class
    trx_types : list or str, default=None
        A list of transaction types to include in the output. If `None` is
        provided, all available transaction types in the `trx_types`
        property of `expo` will be used.
    percent_of : list | str, default=None
        A optional list containing column names in the `data` property of `expo`
        to use as denominators in the calculation of utilization rates or
        actual-to-expected ratios.
    combine_trx : bool, default=False
        If `False`, the results will contain output rows for each
        transaction type. If `True`, the results will contain aggregated
        experience across all transaction types.
    full_exposures_only : bool, default=True
        If `True`, partially exposed records will be ignored
        in the results.
    col_exposure : str, default='exposure'
        Name of the column in the `data` property of `expo` containing exposures


    Attributes
    ----------

    data : pl.DataFrame
        A data frame that includes columns for any grouping variables and
        transaction types, plus the following: `trx_n` (the number of unique
        transactions), `trx_flag` (the number of observation periods with
        non-zero transaction counts), `trx_amt` (total transaction amount),
        `exposure` (total exposures), `avg_trx` (mean transaction amount
        {`trx_amt / trx_flag`}), `avg_all` (mean transaction amount over all
        records {`trx_amt / exposure`}), `trx_freq` (transaction frequency when
        a transaction occurs {`trx_n / trx_flag`}), `trx_util` (transaction
        utilization per observation period {`trx_flag / exposure`}). If
        `percent_of` is provided, the results will also include the sum of any
        columns passed to `percent_of`, the sum of those columns over records
        with transactions (suffix `_w_trx`), `pct_of_{*}_all` (total
        transactions as a percentage of column `{*}`), and `pct_of_{*}_w_trx`
        (total transactions as a percentage of column `{*}_w_trx`).

    xp_params : TrxParams
        Settings used to calculate results

    groups, trx_types, percent_of, start_date, end_date
        Metadata about the transaction study


    Notes
    ----------
    If the `ExposedDF` object is grouped (see the `group_by()` method), the
    returned `TrxStats` object's data will contain one row per group per
    transaction type.

    Any number of transaction types can be passed to the `trx_types`
    argument, however each transaction type **must** appear in the
    `trx_types` property of the `ExposedDF` object. In addition,
    `trx_stats()` expects to see columns named `trx_n_{*}`
    (for transaction counts) and `trx_amt_{*}` for (transaction amounts)
    for each transaction type. To ensure `.data` is in the appropriate
    format, use the class method `ExposedDF.from_DataFrame()` to convert
    an existing data frame with transactions or use `add_transactions()`
    to attach transactions to an existing `ExposedDF` object.

    **"Percentage of" calculations**

    The `percent_of` argument is optional. If provided, this argument must
    be list with values corresponding to columns in the `data` property of
    `expo` containing values to use as denominators in the calculation of
    utilization rates or actual-to-expected ratios. Example usage:

    - In a study of partial withdrawal transactions, if `percent_of` refers
    to account values, observed withdrawal rates can be determined.
    - In a study of recurring claims, if `percent_of` refers to a column
    containing a maximum benefit amount, utilization rates can be
    determined.

    **Default removal of partial exposures**

    As a default, partial exposures are removed from `data` before
    summarizing results. This is done to avoid complexity associated with a
    lopsided skew in the timing of transactions. For example, if
    transactions can occur on a monthly basis or annually at the beginning
    of each policy year, partial exposures may not be appropriate. If a
    policy had an exposure of 0.5 years and was taking withdrawals annually
    at the beginning of the year, an argument could be made that the
    exposure should instead be 1 complete year. If the same policy was
    expected to take withdrawals 9 months into the year, it's not clear if
    the exposure should be 0.5 years or 0.5 / 0.75 years. To override this
    treatment, set `full_exposures_only` to `False`.

    **Alternative class constructor**

    `TrxStats.from_DataFrame()` can be used to coerce a data frame containing
    pre-aggregated experience into a `TrxStats` object. This is most useful
    for working with industry study data where individual exposure records are
    not available.
    """

    default_y = "trx_util"

    @singledispatchmethod
    def __init__(self,
                 expo: ExposedDF,
                 trx_types: list | str = None,
                 percent_of: list | str = None,
                 combine_trx: bool = False,
                 full_exposures_only: bool = True,
                 col_exposure: str = 'exposure'):

        _verify_exposed_df(expo)
        self.data = None

        if len(expo.trx_types) == 0:
            raise ValueError(
                "No transactions have been attached. Add transaction data " +
                "using `add_transactions()` before calling `trx_stats()`.")

        if trx_types is None:
            trx_types = expo.trx_types
        else:
            trx_types = list(dict.fromkeys(_as_list(trx_types)))
            unmatched = set(trx_types).difference(expo.trx_types)
            if len(unmatched) > 0:
                raise ValueError(
                    "The following transactions do not exist in `expo`: " +
                    ", ".join(sorted(unmatched)))

        percent_of = list(dict.fromkeys(_as_list(percent_of)))
        groups = [x for x in expo.groups if x != 'trx_type']

        xp_params = TrxParams(combine_trx=combine_trx,
                              full_exposures_only=full_exposures_only,
                              col_exposure=col_exposure)

        trx_n_cols = [f'trx_n_{x}' for x in trx_types]
        trx_amt_cols = [f'trx_amt_{x}' for x in trx_types]
        _verify_col_names(expo.data.columns,
                          {col_exposure}.union(percent_of, trx_n_cols,
                                               trx_amt_cols))

        data = expo.data.with_columns(exposure=pl.col(col_exposure))

        # remove partial exposures
        if full_exposures_only:
            n = len(data)
            data = data.filter((pl.col('exposure') - 1).abs() <=
                               np.finfo(float).eps ** 0.5)
            if n > 0 and len(data) == 0:
                warn("All records were removed because they were partially " +
                     "exposed. Hint: pass `full_exposures_only=False` to " +
                     "include partial exposures.")

        if combine_trx:
            data = data.with_columns(
                trx_n_All=pl.sum_horizontal(trx_n_cols),
                trx_amt_All=pl.sum_horizontal(trx_amt_cols)
            )
            trx_types = ['All']

        # pivot longer - one block of rows per transaction type
        id_vars = list(dict.fromkeys(['exposure'] + groups + percent_of))
        data = pl.concat(
            [data.select(id_vars,
                         trx_type=pl.lit(x, dtype=pl.Utf8),
                         trx_n=pl.col(f'trx_n_{x}'),
                         trx_amt=pl.col(f'trx_amt_{x}'))
             for x in trx_types],
            how='vertical_relaxed'
        ).with_columns(
            pl.col('trx_n', 'trx_amt').fill_null(0)
        ).with_columns(
            trx_flag=pl.col('trx_n').abs() > 0
        )

        data = data.with_columns(**exp_form(PCT_OF_FLAG, percent_of))

        meta = TrxMeta(groups=tuple(groups),
                       trx_types=tuple(trx_types),
                       percent_of=tuple(percent_of),
                       start_date=expo.start_date,
                       end_date=expo.end_date)

        self._finalize(data, meta, xp_params)

    def _finalize(self,
                  data: pl.DataFrame,
                  meta: TrxMeta,
                  xp_params: TrxParams,
                  agg: bool = True):
        """
        Internal method for finalizing transaction study summary objects
        """

        # set up properties
        self.meta = meta
        self.xp_params = xp_params

        # finish trx stats
        if agg:
            self.data = self._calc(data)
        else:
            self.data = data

        return None

    def _calc(self, data: pl.DataFrame):
        """
        Support function for summarizing data. This function works on both
        exposure-level records and previously summarized records.
        """

        percent_of = self.percent_of
        groups = self.groups + ['trx_type']

        # dictionary of summarized values
        fields = {'trx_n': pl.col('trx_n').sum(),
                  'trx_flag': pl.col('trx_flag').sum(),
                  'trx_amt': pl.col('trx_amt').sum(),
                  'exposure': pl.col('exposure').sum()}

        fields.update(exp_form(PCT_OF_SUMS, percent_of))

        # apply summary fields
        data = (group_agg(data, groups, fields).
                with_columns(
                    avg_trx=pl.col('trx_amt') / pl.col('trx_flag'),
                    avg_all=pl.col('trx_amt') / pl.col('exposure'),
                    trx_freq=pl.col('trx_n') / pl.col('trx_flag'),
                    trx_util=pl.col('trx_flag') / pl.col('exposure')).
                with_columns(**exp_form(PCT_OF_FORMS, percent_of)))

        # rearrange columns
        cols = ['trx_n', 'trx_flag', 'trx_amt', 'exposure',
                'avg_trx', 'avg_all', 'trx_freq', 'trx_util']
        for x in percent_of:
            cols.extend([x, f'{x}_w_trx', f'pct_of_{x}_all',
                         f'pct_of_{x}_w_trx'])

        return data.select(groups + cols)

    @classmethod
    def from_DataFrame(cls,
                       data: pl.DataFrame | pd.DataFrame,
                       col_trx_amt: str = 'trx_amt',
                       col_trx_n: str = 'trx_n',
                       col_trx_flag: str = 'trx_flag',
                       col_exposure: str = "exposure",
                       col_percent_of: str = None,
                       col_percent_of_w_trx: str = None,
                       start_date: date | int | str = date(1900, 1, 1),
                       end_date: date | int | str = None):
        """
        Convert a data frame containing aggregate transaction experience study
        results to the `TrxStats` class.

        `from_DataFrame()` is most useful for working with aggregate summaries
        of experience that were not created by xpstats where individual policy
        information is not available. After converting the data to the
        `TrxStats` class, `summary()` can be used to summarize data by any
        grouping variables.

        Parameters
        ----------
        data : pl.DataFrame | pd.DataFrame
            A DataFrame containing aggregate transaction study results. See the
            Notes section for required columns that must be present.
        col_trx_amt : str, default='trx_amt'
            Name of the column in `data` containing transaction amounts.
        col_trx_n : str, default='trx_n'
            Name of the column in `data` containing transaction counts.
        col_trx_flag : str, default='trx_flag'
            Name of the column in `data` containing the number of exposure
            records with transactions.
        col_exposure : str, default='exposure'
            Name of the column in `data` containing exposures.
        col_percent_of : str, default=None
            Name of the column in `data` containing a numeric variable to use
            in "percent of" calculations.
        col_percent_of_w_trx : str, default=None
            Name of the column in `data` containing a numeric variable to use
            in "percent of" calculations with transactions.
        start_date : date | int | str, default=date(1900, 1, 1)
            Transaction study start date
        end_date : date | int | str, optional
            Transaction study end date

        Returns
        -------
        TrxStats
            A `TrxStats` object


        Notes
        ----------
        At a minimum, the following columns are required:

        - Transaction amounts (`trx_amt`)
        - Transaction counts (`trx_n`)
        - The number of exposure records with transactions (`trx_flag`).
        This number is not necessarily equal to transaction counts. If multiple
        transactions are allowed per exposure period, `trx_flag` will be less
        than `trx_n`.
        - Exposures (`exposure`)

        If transaction amounts should be expressed as a percentage of another
        variable (i.e. to calculate utilization rates or actual-to-expected
        ratios), additional columns are required:

        - A denominator "percent of" column. For example, the sum of account
        values.
        - A denominator "percent of" column for exposure records with
        transactions. For example, the sum of account values across all records
        with non-zero transaction amounts. Unless `col_percent_of_w_trx` is
        passed, this column is assumed to be named `{col_percent_of}_w_trx`.

        The names in parentheses above are expected column names. If the data
        frame passed to `from_DataFrame()` uses different column names, these
        can be specified using the `col_*` arguments.

        If `data` has a `trx_type` column, its values are used as transaction
        types. Otherwise, a single transaction type named after `col_trx_amt`
        is assumed.

        `start_date`, and `end_date` are optional arguments that are
        only used for printing the resulting `TrxStats` object.

        Unlike `ExposedDF.trx_stats()`, `from_DataFrame()` only permits a
        single `percent_of` column.

        Examples
        ----------
        ```{python}
        import xpstats as xp
        import polars as pl

        agg_dat = pl.DataFrame({'pol_yr': [1, 2],
                                'n': [100, 90],
                                'wd': [2500., 1800.],
                                'wd_n': [30, 25],
                                'wd_flag': [25, 20]})
        dat = xp.TrxStats.from_DataFrame(
            agg_dat,
            col_exposure="n",
            col_trx_amt="wd",
            col_trx_n="wd_n",
            col_trx_flag="wd_flag",
            start_date=2005, end_date=2019)

        dat.summary()
        ```

        See Also
        ----------
        `ExposedDF.trx_stats()` for information on how `TrxStats` objects are
        typically created from individual exposure records.
        """

        # convert data to polars dataframe if necessary
        data = _check_convert_df(data)

        # column name alignment
        rename_dict = {col_trx_amt: 'trx_amt',
                       col_trx_n: 'trx_n',
                       col_trx_flag: 'trx_flag',
                       col_exposure: "exposure"}

        req_names = {"exposure", "trx_amt", "trx_n", "trx_flag"}

        if col_percent_of_w_trx is not None:
            if col_percent_of is None:
                raise ValueError(
                    "`col_percent_of_w_trx` was supplied without passing " +
                    "anything to `col_percent_of`")
            rename_dict.update(
                {col_percent_of_w_trx: col_percent_of + "_w_trx"})

        if col_percent_of is not None:
            req_names.update([col_percent_of, col_percent_of + "_w_trx"])

        # check required columns
        _verify_col_names(data.columns, set(rename_dict.keys()))
        data = data.rename(rename_dict)
        _verify_col_names(data.columns, req_names)

        if 'trx_type' in data.columns:
            data = data.with_columns(pl.col('trx_type').cast(pl.Utf8))
        else:
            data = data.with_columns(trx_type=pl.lit(col_trx_amt))

        trx_types = tuple(sorted(data['trx_type'].unique().to_list()))

        meta = TrxMeta(groups=(),
                       trx_types=trx_types,
                       percent_of=tuple(_as_list(col_percent_of)),
                       start_date=_date_str(start_date, 'start_date'),
                       end_date=_date_str(end_date, 'end_date'))

        return cls(data,
                   meta=meta,
                   xp_params=TrxParams(),
                   agg=False)

    @__init__.register(pl.DataFrame)
    def _special_init(self, data: pl.DataFrame, **kwargs):
        """
        Special constructor for the TrxStats class. This constructor is used
        by the `from_DataFrame()` class method to create new TrxStats objects
        from pre-aggregated data frames.
        """
        self._finalize(data, **kwargs)

    def summary(self, *by):
        """
        Re-summarize transaction experience data

        Re-summarize the data while retaining any grouping variables passed to
        the `*by` argument.

        Parameters
        ----------
        *by :
            Column names in `data` that will be used as grouping variables in
            the re-summarized object. Passing nothing is acceptable and will
            produce a 1-row experience summary per transaction type.

        Returns
        ----------
        TrxStats
            A new `TrxStats` object with rows for all the unique groups in `*by`

        Notes
        ----------
        Transaction types are always retained as the last grouping variable.
        Passing `'trx_type'` to `*by` has no additional effect.

        Examples
        ----------
        ```{python}
        trx_res = (expo.group_by('inc_guar', 'pol_yr').
                   trx_stats(percent_of='premium'))
        trx_res.summary('inc_guar')
        ```
        """
        return TrxStats(by, self)

    @__init__.register(tuple)
    def _special_init(self, by: tuple, old_self):
        """
        Special constructor for the TrxStats class. This constructor is used
        by the `summary()` class method to create new summarized instances.
        """

        by = [x for x in dict.fromkeys(by) if x != 'trx_type']

        unmatched = set(by).difference(old_self.data.columns)
        if len(unmatched) > 0:
            raise ValueError(
                "All grouping variables passed to `*by` must be in the " +
                "`data` property. The following are missing: " +
                ", ".join(sorted(unmatched)))

        self._finalize(old_self.data,
                       _regroup(old_self.meta, by),
                       old_self.xp_params)

    @property
    def groups(self) -> list:
        return list(self.meta.groups)

    @property
    def trx_types(self) -> list:
        return list(self.meta.trx_types)

    @property
    def percent_of(self) -> list:
        return list(self.meta.percent_of)

    @property
    def start_date(self):
        return self.meta.start_date

    @property
    def end_date(self):
        return self.meta.end_date

    @property
    def metric_cols(self) -> list:
        """
        Derived rate and ratio columns available in `data`
        """
        cols = ['avg_trx', 'avg_all', 'trx_freq', 'trx_util']
        for x in self.percent_of:
            cols.extend([f'pct_of_{x}_all', f'pct_of_{x}_w_trx'])
        return [x for x in cols if x in self.data.columns]

    def plot_mapping(self,
                     x: str = None,
                     y: str = None,
                     color: str = None,
                     facets: list | str = None) -> dict:
        """
        Default aesthetic choices for plotting transaction study results

        Parameters
        ----------
        x : str, default=None
            A column name in `data` to use as the `x` variable. If `None`,
            `x` will default to the first grouping variable. If there are no
            grouping variables, `x` will be set to "All".
        y : str, default=None
            A column name in `data` to use as the `y` variable. If `None`,
            `trx_util` is used.
        color : str, default=None
            A column name in `data` to use as the `color` and `fill` variables.
            If `None`, `color` will default to the second grouping variable.
        facets : list | str, default=None
            Faceting variables. If `None`, grouping variables 3+ will be used.
            Transaction types are always the first facet.

        Returns
        ----------
        dict
            A dictionary with the keys `x`, `y`, `color`, and `facets`.
        """
        if facets is None:
            facets = self.groups[2:]
        facets = ['trx_type'] + [x for x in _as_list(facets)
                                 if x != 'trx_type']
        return _plot_defaults(self.groups, x, y or self.default_y,
                              color, facets)

    def __repr__(self):
        repr = "Transaction study results\n\n"

        if len(self.groups) > 0:
            repr += f"Groups: {', '.join([str(i) for i in self.groups])}\n"

        repr += f"Study range: {_date_fmt(self.start_date)} to {_date_fmt(self.end_date)}\n"

        repr += f"Transaction types: {', '.join([str(i) for i in self.trx_types])}\n"

        if len(self.percent_of) > 0:
            repr += f"Transactions as % of: {', '.join([str(i) for i in self.percent_of])}\n"

        if self.data is not None:
            repr = repr + f'\n{self.data}'

        return repr
