import xpstats as xp
import polars as pl
import pytest
from sim_data import sim_exposures

dat = sim_exposures()
fields = {'exposure': pl.col('exposure').sum(),
          'n': pl.len()}


class TestGroupAgg():

    def test_no_groups(self):
        res = xp.group_agg(dat, [], fields)
        assert res.shape == (1, 2)
        assert res['exposure'][0] == pytest.approx(dat['exposure'].sum())

    def test_cardinality(self):
        res = xp.group_agg(dat, ['pol_yr', 'inc_guar', 'product'], fields)
        assert len(res) == \
            len(dat.select('pol_yr', 'inc_guar', 'product').unique())

    def test_sorted(self):
        res = xp.group_agg(dat, ['product', 'pol_yr'], fields)
        assert res.equals(res.sort(['product', 'pol_yr']))

    def test_columns(self):
        res = xp.group_agg(dat, ['pol_yr'], fields)
        assert res.columns == ['pol_yr', 'exposure', 'n']

    def test_totals(self):
        res = xp.group_agg(dat, ['pol_yr', 'inc_guar'], fields)
        assert res['n'].sum() == len(dat)

    def test_matches_group_by(self):
        a = xp.group_agg(dat, ['pol_yr'], fields)
        b = dat.group_by('pol_yr').agg(**fields).sort('pol_yr')
        assert a.equals(b)

    def test_lazy(self):
        assert xp.group_agg(dat.lazy(), ['pol_yr'], fields).equals(
            xp.group_agg(dat, ['pol_yr'], fields))

    def test_empty(self):
        res = xp.group_agg(dat.clear(), ['pol_yr'], fields)
        assert len(res) == 0
        assert res.columns == ['pol_yr', 'exposure', 'n']
