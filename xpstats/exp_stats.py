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
    EXPECTED_MEAN,
    AE_FORMS,
    CRED_FORMS
)
from xpstats.grouping import group_agg
from xpstats.params import ExpParams, ExpMeta, _regroup


class ExpStats():
    """
    Experience study summary class

    Create a summary of termination experience for a given target status
    (an `ExpStats` object).

    Typically, the `ExpStats` class constructor should not be called directly.
    The preferred method for creating an `ExpStats` object is to call the
    `exp_stats()` method on an `ExposedDF` object.

    Parameters
    ----------

    expo : ExposedDF
        An exposed data frame class
    target_status : str | list | np.ndarray, default=None
        A single string, list, or array of target status values
    expected : str | list | np.ndarray, default=None
        Single string, list, or array of column names in the `data` property of
        `expo` with expected values
    wt : str, default=None
        Name of the column in the `data` property of `expo` containing
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
        If `True`, partially exposed records will be ignored in the results.
    col_exposure : str, default='exposure'
        Name of the column in `data` containing exposures.

    Attributes
    ----------
    data : pl.DataFrame
        A data frame containing experience study summary results that includes
        columns for any grouping variables, claims, exposures, and observed
        decrement rates (`q_obs`). If any values are passed to `expected`,
        additional columns will be added for expected decrements and
        actual-to-expected ratios. If `credibility` is set to `True`, additional
        columns are added for partial credibility and credibility-weighted
        decrement rates (assuming values are passed to `expected`). If a
        value is passed to `wt`, additional columns are created containing the
        sum of weights (`weight`), the sum of squared weights (`weight_sq`),
        and the number of records (`weight_n`).

    xp_params : ExpParams
        Settings used to calculate results

    groups, target_status, start_date, end_date, expected, wt
        Metadata about the experience study inferred from the `ExposedDF`
        object (`expo`) or passed directly to `ExpStats`.


    Notes
    ----------
    If `expo` is grouped (see the `ExposedDF.group_by()` method),
    the returned `ExpStats` object's data will contain one row per group.

    If nothing is passed to `target_status`, the `target_status` property
    of `expo` will be used. If that property is empty, an error is raised.

    **Expected values**

    The `expected` argument is optional. If provided, this argument must
    be a string, list, or array with values corresponding to columns in
    `expo.data` containing expected experience. More than one expected basis
    can be provided. Expected values are summarized using exposure-weighted
    averages.

    **Credibility**

    If `credibility` is set to `True`, the output will contain a
    `credibility` column equal to the partial credibility estimate under
    the Limited Fluctuation credibility method (also known as Classical
    Credibility):

    `Z = min(1, (n_claims / (y * (1 + cv ** 2))) ** 0.5)`

    Where `y = (qnorm(conf_level) / cred_r) ** 2` is the number of
    claims required for full credibility and `cv` is the coefficient of
    variation of weights. If no weighting variable is passed to `wt`, `cv`
    is zero. Credibility-weighted termination rates (`adj_*`) blend observed
    and expected termination rates using `Z`.

    **Default removal of partial exposures**

    As a default, partial exposures are removed from `data` before
    summarizing results. To override this treatment, set
    `full_exposures_only` to `False`.

    **Alternative class constructor**

    `ExpStats.from_DataFrame()` can be used to coerce a data frame containing
    pre-aggregated experience into an `ExpStats` object. This is most useful
    for working with industry study data where individual exposure records are
    not available.

    See Also
    ----------
    Herzog, Thomas (1999). Introduction to Credibility Theory
    """

    default_y = "q_obs"

    @singledispatchmethod
    def __init__(self,
                 expo: ExposedDF,
                 target_status: str | list | np.ndarray = None,
                 expected: str | list | np.ndarray = None,
                 wt: str = None,
                 credibility: bool = False,
                 conf_level: float = 0.95,
                 cred_r: float = 0.05,
                 full_exposures_only: bool = True,
                 col_exposure: str = 'exposure'):

        _verify_exposed_df(expo)
        self.data = None

        # set up target statuses. First, attempt to use the statuses that
        # were passed. If none, then use the target_status property from the
        # ExposedDF.
        if target_status is None:
            target_status = expo.target_status
        target_status = _as_list(target_status)
        if len(target_status) == 0:
            raise ValueError(
                "No target status was provided. Hint: pass values to " +
                "`target_status` in `exp_stats()` or `ExposedDF()`.")

        expected = _as_list(expected)

        xp_params = ExpParams(credibility=credibility,
                              conf_level=conf_level,
                              cred_r=cred_r,
                              full_exposures_only=full_exposures_only,
                              col_exposure=col_exposure)

        req_names = {col_exposure, 'status'}.union(expected)
        if wt is not None:
            if not isinstance(wt, str):
                raise TypeError("`wt` must have type `str`")
            req_names.add(wt)
        _verify_col_names(expo.data.columns, req_names)

        groups = expo.groups
        _check_expected_groups(groups, expected)
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

        data = data.with_columns(
            n_claims=pl.col('status').is_in(target_status).cast(pl.Int64)
        )

        # set up weights
        if wt is not None:
            data = (data.
                    with_columns(weight=pl.col(wt).cast(pl.Float64)).
                    with_columns(
                        claims=pl.col('n_claims') * pl.col('weight'),
                        exposure=pl.col('exposure') * pl.col('weight'),
                        weight_sq=pl.col('weight') ** 2,
                        weight_n=pl.lit(1, dtype=pl.Int64)))
            wt_cols = ['weight', 'weight_sq', 'weight_n']
        else:
            data = data.with_columns(claims=pl.col('n_claims'))
            wt_cols = []

        data = data.select(groups + ['n_claims', 'claims', 'exposure'] +
                           expected + wt_cols)

        meta = ExpMeta(groups=tuple(groups),
                       target_status=tuple(target_status),
                       start_date=expo.start_date,
                       end_date=expo.end_date,
                       expected=tuple(expected),
                       wt=wt)

        # set up properties and summarize data
        self._finalize(data, meta, xp_params)

        return None

    def _finalize(self,
                  data: pl.DataFrame,
                  meta: ExpMeta,
                  xp_params: ExpParams,
                  agg: bool = True):
        """
        Internal method for finalizing experience study summary objects
        """

        # set up properties
        self.meta = meta
        self.xp_params = xp_params

        # finish exp stats
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

        expected = self.expected
        wt = self.wt
        credibility = self.xp_params.credibility

        # dictionary of summarized values
        fields = {'n_claims': pl.col('n_claims').sum(),
                  'claims': pl.col('claims').sum(),
                  'exposure': pl.col('exposure').sum()}

        fields.update(exp_form(EXPECTED_MEAN, expected, data.columns))

        # additional columns for weighted studies
        if wt is not None:
            fields.update({
                'weight': pl.col('weight').sum(),
                'weight_sq': pl.col('weight_sq').sum(),
                'weight_n': pl.col('weight_n').sum()})

        data = (group_agg(data, self.groups, fields).
                with_columns(q_obs=pl.col('claims') / pl.col('exposure')))

        # credibility formulas - varying by weights
        if credibility:
            y = self.xp_params.cred_y

            if wt is None:
                cv2 = pl.lit(0.0)
            else:
                ex_wt = pl.col('weight') / pl.col('weight_n')
                ex2_wt = pl.col('weight_sq') / pl.col('weight_n')
                # sample variance of weights. undefined for a single record.
                cv2 = (pl.when((pl.col('weight_n') > 1) & (ex_wt != 0)).
                       then((ex2_wt - ex_wt ** 2) * pl.col('weight_n') /
                            (pl.col('weight_n') - 1) / ex_wt ** 2).
                       otherwise(0.0))

            data = data.with_columns(
                credibility=(pl.col('n_claims') / (y * (1 + cv2))).
                sqrt().clip(0, 1)
            )

        # add A/E's and adjusted q's
        data = data.with_columns(**exp_form(AE_FORMS, expected))

        if credibility:
            data = data.with_columns(**exp_form(CRED_FORMS, expected))

        # rearrange columns
        cols = ['n_claims', 'claims', 'exposure', 'q_obs']
        cols.extend(expected + ['ae_' + k for k in expected])

        if credibility:
            cols.extend(['credibility'] + ['adj_' + k for k in expected])

        if wt is not None:
            cols.extend(['weight', 'weight_sq', 'weight_n'])

        return data.select(self.groups + cols)

    @classmethod
    def from_DataFrame(cls,
                       data: pl.DataFrame | pd.DataFrame,
                       target_status: str | list | np.ndarray = None,
                       expected: str | list | np.ndarray = None,
                       wt: str = None,
                       credibility: bool = False,
                       conf_level: float = 0.95,
                       cred_r: float = 0.05,
                       col_claims: str = 'claims',
                       col_exposure: str = 'exposure',
                       col_n_claims: str = 'n_claims',
                       col_weight_sq: str = 'weight_sq',
                       col_weight_n: str = 'weight_n',
                       start_date: date | int | str = date(1900, 1, 1),
                       end_date: date | int | str = None):
        """
        Convert a data frame containing aggregate termination experience study
        results to the `ExpStats` class.

        `from_DataFrame()` is most useful for working with aggregate summaries
        of experience that were not created by xpstats where individual policy
        information is not available. After converting the data to the
        `ExpStats` class, `summary()` can be used to summarize data by any
        grouping variables.

        Parameters
        ----------

        data : pl.DataFrame | pd.DataFrame
            A DataFrame containing aggregate experience study results. See the
            Notes section for required columns that must be present.
        target_status : str | list | np.ndarray, default=None
            Target status values
        expected : str | list | np.ndarray, default=None
            Column names in `data` with expected values.
        wt : str, default=None
            Name of the column in `data` containing weights to use in the
            calculation of claims, exposures, and partial credibility.
        credibility : bool, default=False
            If `True`, future calls to `summary()` will include partial
            credibility weights and credibility-weighted termination rates.
        conf_level : float, default=0.95
            Confidence level used for the Limited Fluctuation credibility
            method.
        cred_r : float, default=0.05
            Error tolerance under the Limited Fluctuation credibility method.
        col_claims : str, default='claims'
            Name of the column in `data` containing claims.
        col_exposure : str, default='exposure'
            Name of the column in `data` containing exposures.
        col_n_claims : str, default='n_claims'
            Only used used when `wt` is passed. Name of the column in `data`
            containing the number of claims.
        col_weight_sq : default='weight_sq
            Only used used when `wt` is passed. Name of the column in `data`
            containing the sum of squared weights.
        col_weight_n : str, default='weight_n'
            Only used used when `wt` is passed. Name of the column in `data`
            containing exposure record counts.
        start_date : date | int | str, default='1900-01-01'
            Experience study start date
        end_date : date | int | str: default=None
            Experience study end date

        Returns
        -------
        ExpStats
            An `ExpStats` object

        Notes
        ----------
        If nothing is passed to `wt`, the data frame `data` must include columns
        containing:

        - Exposures (`exposure`)
        - Claim counts (`claims`)

        If `wt` is passed, the data must include columns containing:

        - Weighted exposures (`exposure`)
        - Weighted claims (`claims`)
        - Claim counts (`n_claims`)
        - The raw sum of weights **NOT** multiplied by exposures
        - Exposure record counts (`weight_n`)
        - The raw sum of squared weights (`weight_sq`)

        The names in parentheses above are expected column names. If the data
        frame passed to `from_DataFrame()` uses different column names, these
        can be specified using the `col_*` arguments.

        Expected values are assumed to be exposure-weighted averages.

        `target_status`, `start_date`, and `end_date` are optional arguments
        that are only used for printing the resulting `ExpStats` object.

        See Also
        ----------
        `ExposedDF.exp_stats()` for information on how `ExpStats` objects are
        typically created from individual exposure records.
        """

        # convert data to polars dataframe if necessary
        data = _check_convert_df(data)
        expected = _as_list(expected)

        # column name alignment
        rename_dict = {col_claims: 'claims',
                       col_exposure: 'exposure'}

        req_names = {"exposure", "claims"}
        if wt is not None:
            req_names.update(["n_claims", "weight", "weight_sq", "weight_n"])
            rename_dict.update({col_n_claims: 'n_claims',
                                wt: 'weight',
                                col_weight_sq: 'weight_sq',
                                col_weight_n: 'weight_n'})

        # check required columns
        _verify_col_names(data.columns, set(rename_dict.keys()))
        data = data.rename(rename_dict)
        _verify_col_names(data.columns, req_names.union(expected))

        if wt is None:
            data = data.with_columns(n_claims=pl.col('claims'))

        meta = ExpMeta(groups=(),
                       target_status=tuple(_as_list(target_status)),
                       start_date=_date_str(start_date, 'start_date'),
                       end_date=_date_str(end_date, 'end_date'),
                       expected=tuple(expected),
                       wt=wt)

        return cls(data,
                   meta=meta,
                   xp_params=ExpParams(credibility=credibility,
                                       conf_level=conf_level,
                                       cred_r=cred_r),
                   agg=False)

    @__init__.register(pl.DataFrame)
    def _special_init(self, data: pl.DataFrame, **kwargs):
        """
        Special constructor for the ExpStats class. This constructor is used
        by the `from_DataFrame()` class method to create new ExpStats objects
        from pre-aggregated data frames.
        """
        self._finalize(data, **kwargs)

    def summary(self, *by):
        """
        Re-summarize termination experience data

        Re-summarize the data while retaining any grouping variables passed to
        the `*by` argument.

        Parameters
        ----------
        *by : tuple, optional
            Quoted column names in `data` that will be used as grouping
            variables in the re-summarized object. Passing nothing is acceptable
            and will produce a 1-row experience summary.

        Returns
        ----------
        ExpStats
            A new `ExpStats` object with rows for all the unique groups in `*by`

        Notes
        ----------
        Additive columns (claims, exposures, and weights) are re-summed and
        every ratio is recalculated. Results are equal to those obtained by
        summarizing the original exposure records by `*by`.

        Examples
        ----------
        ```{python}
        exp_res = expo.group_by('pol_yr', 'inc_guar').exp_stats()
        exp_res.summary('inc_guar')
        ```
        """
        return ExpStats(by, self)

    @__init__.register(tuple)
    def _special_init(self, by: tuple, old_self):
        """
        Special constructor for the ExpStats class. This constructor is used
        by the `summary()` class method to create new summarized instances.
        """

        by = list(dict.fromkeys(by))

        unmatched = set(by).difference(old_self.data.columns)
        if len(unmatched) > 0:
            raise ValueError(
                "All grouping variables passed to `*by` must be in the " +
                "`data` property. The following are missing: " +
                ", ".join(sorted(unmatched)))

        _check_expected_groups(by, old_self.expected)

        self._finalize(old_self.data,
                       _regroup(old_self.meta, by),
                       old_self.xp_params)

    @property
    def groups(self) -> list:
        return list(self.meta.groups)

    @property
    def target_status(self) -> list:
        return list(self.meta.target_status)

    @property
    def start_date(self):
        return self.meta.start_date

    @property
    def end_date(self):
        return self.meta.end_date

    @property
    def expected(self) -> list:
        return list(self.meta.expected)

    @property
    def wt(self) -> str:
        return self.meta.wt

    @property
    def metric_cols(self) -> list:
        """
        Derived rate and ratio columns available in `data`
        """
        expected = self.expected
        cols = ['q_obs'] + ['ae_' + k for k in expected] + \
            ['credibility'] + ['adj_' + k for k in expected]
        return [x for x in cols if x in self.data.columns]

    def plot_mapping(self,
                     x: str = None,
                     y: str = None,
                     color: str = None,
                     facets: list | str = None) -> dict:
        """
        Default aesthetic choices for plotting experience study results

        Parameters
        ----------
        x : str, default=None
            A column name in `data` to use as the `x` variable. If `None`,
            `x` will default to the first grouping variable. If there are no
            grouping variables, `x` will be set to "All".
        y : str, default=None
            A column name in `data` to use as the `y` variable. If `None`,
            `q_obs` is used.
        color : str, default=None
            A column name in `data` to use as the `color` and `fill` variables.
            If `None`, `color` will default to the second grouping variable.
        facets : list | str, default=None
            Faceting variables. If `None`, grouping variables 3+ will be used.

        Returns
        ----------
        dict
            A dictionary with the keys `x`, `y`, `color`, and `facets`.
        """
        if facets is not None:
            facets = _as_list(facets)
        return _plot_defaults(self.groups, x, y or self.default_y,
                              color, facets)

    def __repr__(self):
        repr = "Experience study results\n\n"

        if len(self.groups) > 0:
            repr += f"Groups: {', '.join([str(i) for i in self.groups])}\n"

        repr += f"Target status: {', '.join([str(i) for i in self.target_status])}\n"
        repr += f"Study range: {_date_fmt(self.start_date)} to {_date_fmt(self.end_date)}\n"

        if len(self.expected) > 0:
            repr += f"Expected values: {', '.join([str(i) for i in self.expected])}\n"

        if self.wt is not None:
            repr += f"Weighted by: {self.wt}\n"

        if self.data is not None:
            repr = repr + f'\n{self.data}'

        return repr


def _check_expected_groups(groups: list, expected: list):
    """
    Internal function that prevents a column from being used as both a
    grouping variable and an expected value.
    """
    overlap = set(groups).intersection(expected)
    if len(overlap) > 0:
        raise ValueError(
            "Columns cannot be used as both grouping variables and expected " +
            "values: " + ", ".join(sorted(overlap)))
