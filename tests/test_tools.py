import pytest
import pandas as pd
import polars as pl
from datetime import date
from xpstats.tools import (
    arg_match,
    _verify_exposed_df,
    _verify_col_names,
    _check_convert_df,
    _as_list,
    _date_str,
    _date_fmt,
    _qnorm,
    _plot_defaults
)

l = ['guac', 'cheese', 'beans', 'rice']


class TestArgMatch():

    def test_allowed(self):
        assert arg_match('toppings', 'guac', l) is None

    def test_not_allowed(self):
        with pytest.raises(ValueError, match='`toppings` must be one of'):
            arg_match('toppings', 'bananas', l)


class TestVerifyColNames():

    def test_ok(self):
        assert _verify_col_names(['a', 'b', 'c'], {'a', 'c'}) is None

    def test_missing(self):
        with pytest.raises(ValueError,
                           match='The following columns are missing: x, y'):
            _verify_col_names(['a', 'b'], {'y', 'x', 'a'})


class TestVerifyExposedDF():

    def test_wrong_type(self):
        with pytest.raises(TypeError, match='An `ExposedDF` object is required'):
            _verify_exposed_df(pl.DataFrame({'a': [1]}))


class TestCheckConvertDF():

    def test_pandas(self):
        res = _check_convert_df(pd.DataFrame({'a': [1, 2]}))
        assert isinstance(res, pl.DataFrame)

    def test_polars(self):
        dat = pl.DataFrame({'a': [1, 2]})
        assert _check_convert_df(dat) is dat

    def test_not_df(self):
        with pytest.raises(TypeError, match='must be a DataFrame'):
            _check_convert_df([1, 2])


class TestAsList():

    def test_none(self):
        assert _as_list(None) == []

    def test_str(self):
        assert _as_list('a') == ['a']

    def test_list(self):
        assert _as_list(['a', 'b']) == ['a', 'b']


class TestDates():

    def test_str(self):
        assert _date_str('2019-12-31') == date(2019, 12, 31)

    def test_year(self):
        assert _date_str(2005) == date(2005, 1, 1)

    def test_passthrough(self):
        assert _date_str(None) is None
        assert _date_str(date(2020, 2, 29)) == date(2020, 2, 29)

    def test_bad_type(self):
        with pytest.raises(TypeError, match='`end_date` must be a date'):
            _date_str(1.5, 'end_date')

    def test_fmt(self):
        assert _date_fmt(date(2019, 1, 5)) == '2019-01-05'
        assert _date_fmt(None) is None


class TestQnorm():

    def test_standard(self):
        assert _qnorm(0.975) == pytest.approx(1.959964, abs=1e-6)

    def test_zero_sd(self):
        assert _qnorm(0.9, 5, 0) == pytest.approx(5)


class TestPlotDefaults():

    def test_no_groups(self):
        assert _plot_defaults([], y='q_obs') == \
            {'x': 'All', 'y': 'q_obs', 'color': None, 'facets': []}

    def test_groups(self):
        res = _plot_defaults(['a', 'b', 'c', 'd'], y='q_obs')
        assert res['x'] == 'a'
        assert res['color'] == 'b'
        assert res['facets'] == ['c', 'd']

    def test_override(self):
        res = _plot_defaults(['a', 'b'], x='b', color='a', facets=['z'])
        assert (res['x'], res['color'], res['facets']) == ('b', 'a', ['z'])
