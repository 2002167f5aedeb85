from xpstats.expose import ExposedDF
import xpstats as xp
import numpy as np
import polars as pl
import pytest
from polars.testing import assert_frame_equal
from sim_data import sim_exposures

sim_dat = sim_exposures()

no_trx = ExposedDF(sim_dat.drop('trx_n_Base', 'trx_amt_Base',
                                'trx_n_Rider', 'trx_amt_Rider'),
                   "2014-12-31", target_status="Surrender")
expo = ExposedDF(sim_dat, "2014-12-31", start_date="2010-01-01",
                 target_status="Surrender")

res = (expo.
       group_by('pol_yr', 'inc_guar').
       trx_stats(percent_of=["av", "premium"]))
expo.ungroup()
# results with non-zero transactions only
dat_nz = res.data.filter(pl.col('trx_n') > 0)

# two transaction types, A and B
ab_dat = sim_dat.rename({'trx_n_Base': 'trx_n_A', 'trx_amt_Base': 'trx_amt_A',
                         'trx_n_Rider': 'trx_n_B',
                         'trx_amt_Rider': 'trx_amt_B'})
expo_ab = ExposedDF(ab_dat, "2014-12-31")


class TestErrorChecks():

    def test_no_trx_error(self):
        with pytest.raises(ValueError,
                           match="No transactions have been attached"):
            no_trx.trx_stats()

    def test_bad_trx_types(self):
        with pytest.raises(ValueError,
                           match="The following transactions do not exist"):
            expo.trx_stats(trx_types=['abc', 'def'])

    def test_unmatched_type_named(self):
        with pytest.raises(ValueError,
                           match="do not exist in `expo`: C$"):
            expo_ab.trx_stats(trx_types=['A', 'C'])

    def test_missing_percent_of(self):
        with pytest.raises(ValueError,
                           match="The following columns are missing: abc"):
            expo.trx_stats(percent_of='abc')

    def test_not_exposed_df(self):
        with pytest.raises(TypeError, match='An `ExposedDF` object is required'):
            xp.TrxStats(1)

    def test_no_error(self):
        assert isinstance(expo.trx_stats(), xp.TrxStats)

    def test_bad_summary_group(self):
        with pytest.raises(ValueError, match='missing: abc'):
            res.summary('abc')


class TestTrxSummaryMethod():

    def test_regroup(self):
        assert_frame_equal(res.data, res.summary('pol_yr', 'inc_guar').data)

    def test_nogroup(self):
        a = expo.trx_stats(percent_of=['av', 'premium']).data
        b = res.summary().data
        assert_frame_equal(a, b, check_exact=False)

    def test_coarser(self):
        a = (expo.group_by('inc_guar').
             trx_stats(percent_of=['av', 'premium']).data)
        expo.ungroup()
        assert_frame_equal(a, res.summary('inc_guar').data,
                           check_exact=False)

    def test_trx_type_by(self):
        assert res.summary('trx_type').data.equals(res.summary().data)
        assert res.summary('trx_type').groups == []

    def test_repeatable(self):
        assert res.summary('inc_guar').data.equals(
            res.summary('inc_guar').data)
        a = expo.group_by('pol_yr', 'inc_guar').trx_stats().data
        b = expo.trx_stats().data
        expo.ungroup()
        assert a.equals(b)

    def test_metadata_carried(self):
        b = res.summary('pol_yr')
        assert b.groups == ['pol_yr']
        assert b.trx_types == ['Base', 'Rider']
        assert b.percent_of == ['av', 'premium']
        assert b.start_date == res.start_date
        assert b.xp_params == res.xp_params


expo2 = ExposedDF(sim_dat.head(6), "2014-12-31")
expo2.data = expo2.data.rename({'exposure': 'ex'})


class TestTrxRenaming():

    def test_bad_name(self):
        with pytest.raises(ValueError,
                           match="The following columns are missing: exposure"):
            expo2.trx_stats()

    def test_rename(self):
        assert isinstance(expo2.trx_stats(col_exposure='ex'), xp.TrxStats)


class TestTrxStats():

    def test_columns(self):
        assert res.data.columns == [
            'pol_yr', 'inc_guar', 'trx_type',
            'trx_n', 'trx_flag', 'trx_amt', 'exposure',
            'avg_trx', 'avg_all', 'trx_freq', 'trx_util',
            'av', 'av_w_trx', 'pct_of_av_all', 'pct_of_av_w_trx',
            'premium', 'premium_w_trx', 'pct_of_premium_all',
            'pct_of_premium_w_trx']

    def test_shape(self):
        assert (expo.
                trx_stats(trx_types="Base",
                          percent_of=["av", "premium"]).
                data.shape[1] == res.data.shape[1] - 2)

    def test_expo_gte_trx_flag(self):
        assert all(res.data['exposure'] >= res.data['trx_flag'])

    def test_trx_n_gte_trx_flag(self):
        assert all(res.data['trx_n'] >= res.data['trx_flag'])

    def test_avg_trx_gte_avg_all(self):
        assert all(dat_nz['avg_trx'] >= dat_nz['avg_all'])

    def test_trx_freq_gte_trx_util(self):
        assert all(dat_nz['trx_freq'] >= dat_nz['trx_util'])

    def test_pct_trx_gte_pct_all(self):
        assert all(dat_nz['pct_of_av_w_trx'] >=
                   dat_nz['pct_of_av_all'])

    def test_part_expo_lte_full_expo(self):
        a = expo.group_by('pol_yr', 'inc_guar').trx_stats()
        b = expo.group_by('pol_yr', 'inc_guar').trx_stats(
            full_exposures_only=False)
        expo.ungroup()
        assert all(a.data['exposure'] <= b.data['exposure'])

    def test_no_flagged_records(self):
        dat = pl.DataFrame({'pol_num': [1, 2, 3],
                            'status': ['Active'] * 3,
                            'exposure': [1.] * 3,
                            'grp': ['a', 'a', 'b'],
                            'trx_n_A': [0, 0, 2],
                            'trx_amt_A': [0., 0., 5.]})
        res = ExposedDF(dat, "2020-12-31").group_by('grp').trx_stats().data
        assert res['grp'].to_list() == ['a', 'b']
        assert res['trx_flag'][0] == 0
        assert np.isnan(res['avg_trx'][0])
        assert np.isnan(res['trx_freq'][0])
        assert res['avg_all'][0] == 0
        assert res['avg_trx'][1] == pytest.approx(5)

    def test_util_definition(self):
        dat = expo.data.filter(pl.col('exposure') == 1)
        b = expo.trx_stats(trx_types='Base').data
        assert b['trx_flag'][0] == (dat['trx_n_Base'] > 0).sum()
        assert b['trx_util'][0] == \
            pytest.approx((dat['trx_n_Base'] > 0).sum() / len(dat))
        assert b['trx_amt'][0] == pytest.approx(dat['trx_amt_Base'].sum())


class TestPercentOf():

    def test_partition(self):
        assert all(res.data['av'] >= res.data['av_w_trx'])

    def test_all_flagged(self):
        dat = sim_dat.with_columns(trx_n_Base=pl.lit(1, dtype=pl.Int64))
        b = ExposedDF(dat, "2014-12-31").trx_stats(
            trx_types='Base', percent_of='av').data
        assert b['av'][0] == pytest.approx(b['av_w_trx'][0])
        assert b['trx_util'][0] == pytest.approx(1)

    def test_w_trx_sum(self):
        dat = expo.data.filter(pl.col('exposure') == 1,
                               pl.col('trx_n_Rider') > 0)
        b = expo.trx_stats(trx_types='Rider', percent_of='av').data
        assert b['av_w_trx'][0] == pytest.approx(dat['av'].sum())


class TestTypeSelection():

    def test_single_type(self):
        a = expo_ab.group_by('pol_yr', 'inc_guar').trx_stats(trx_types='A')
        expo_ab.ungroup()
        n_groups = len(expo_ab.data.filter(pl.col('exposure') == 1).
                       select('pol_yr', 'inc_guar').unique())
        assert a.data['trx_type'].unique().to_list() == ['A']
        assert len(a.data) == n_groups
        assert a.trx_types == ['A']
        assert not any('B' in x for x in a.data.columns)

    def test_all_types(self):
        assert expo_ab.trx_stats().data['trx_type'].to_list() == ['A', 'B']


class TestCombineTrx():

    def test_combine_single_trx(self):
        a = (expo.
             trx_stats(combine_trx=True, trx_types="Rider").
             data.drop('trx_type'))
        b = (expo.
             trx_stats(trx_types="Rider").
             data.drop('trx_type'))
        assert a.equals(b)

    def test_combine_types(self):
        assert expo.trx_stats(combine_trx=True).trx_types == ['All']

    def test_combine_sums(self):
        by_type = (expo.group_by('pol_yr').trx_stats().data.
                   group_by('pol_yr').
                   agg(pl.col('trx_n', 'trx_amt').sum()).
                   sort('pol_yr'))
        comb = expo.group_by('pol_yr').trx_stats(combine_trx=True).data
        expo.ungroup()
        assert comb['trx_type'].unique().to_list() == ['All']
        assert comb['trx_n'].to_list() == by_type['trx_n'].to_list()
        assert comb['trx_amt'].to_list() == \
            pytest.approx(by_type['trx_amt'].to_list())

    def test_combine_flag_lte_sum(self):
        comb = expo.trx_stats(combine_trx=True).data
        by_type = expo.trx_stats().data
        assert comb['trx_flag'][0] <= by_type['trx_flag'].sum()
        assert comb['trx_flag'][0] >= by_type['trx_flag'].max()


class TestConsumerInterface():

    def test_default_y(self):
        assert res.default_y == 'trx_util'

    def test_metric_cols(self):
        assert res.metric_cols == ['avg_trx', 'avg_all', 'trx_freq',
                                   'trx_util', 'pct_of_av_all',
                                   'pct_of_av_w_trx', 'pct_of_premium_all',
                                   'pct_of_premium_w_trx']

    def test_plot_mapping(self):
        assert res.plot_mapping() == {'x': 'pol_yr', 'y': 'trx_util',
                                      'color': 'inc_guar',
                                      'facets': ['trx_type']}

    def test_plot_mapping_facets(self):
        assert res.plot_mapping(facets='abc')['facets'] == ['trx_type', 'abc']
        assert res.summary().plot_mapping()['x'] == 'All'

    def test_repr(self):
        r = repr(res)
        assert 'Transaction study results' in r
        assert 'Groups: pol_yr, inc_guar' in r
        assert 'Study range: 2010-01-01 to 2014-12-31' in r
        assert 'Transaction types: Base, Rider' in r
        assert 'Transactions as % of: av, premium' in r


# Test that from_DataFrame works
agg_dat = (res.summary('pol_yr').data.
           filter(pl.col('trx_type') == 'Base').
           drop('trx_type').
           select('pol_yr',
                  n='exposure',
                  wd='trx_amt',
                  wd_n='trx_n',
                  wd_flag='trx_flag',
                  av='av',
                  av_w_wd='av_w_trx'))

trx_res = xp.TrxStats.from_DataFrame(
    agg_dat.to_pandas(),
    col_exposure="n",
    col_trx_amt="wd",
    col_trx_n="wd_n",
    col_trx_flag="wd_flag",
    col_percent_of="av",
    col_percent_of_w_trx="av_w_wd",
    start_date=2005, end_date=2019)


class TestFromDataFrame():

    def test_class(self):
        assert isinstance(trx_res, xp.TrxStats)

    def test_missing_column_error(self):
        with pytest.raises(ValueError,
                           match='The following columns are missing'):
            xp.TrxStats.from_DataFrame(agg_dat)

    def test_w_trx_without_percent_of(self):
        with pytest.raises(ValueError, match='`col_percent_of_w_trx` was'):
            xp.TrxStats.from_DataFrame(agg_dat,
                                       col_exposure="n",
                                       col_trx_amt="wd",
                                       col_trx_n="wd_n",
                                       col_trx_flag="wd_flag",
                                       col_percent_of_w_trx="av_w_wd")

    def test_non_data_frame(self):
        with pytest.raises(TypeError, match='must be a DataFrame'):
            xp.TrxStats.from_DataFrame(1)

    def test_trx_type(self):
        assert trx_res.trx_types == ['wd']
        assert trx_res.summary().data['trx_type'].to_list() == ['wd']

    def test_summary(self):
        a = trx_res.summary('pol_yr').data.drop('trx_type')
        b = (res.summary('pol_yr').data.
             filter(pl.col('trx_type') == 'Base').
             drop('trx_type', 'premium', 'premium_w_trx',
                  'pct_of_premium_all', 'pct_of_premium_w_trx'))
        assert_frame_equal(a, b, check_exact=False, check_dtypes=False)

    def test_repr(self):
        assert 'Study range: 2005-01-01 to 2019-01-01' in repr(trx_res)
