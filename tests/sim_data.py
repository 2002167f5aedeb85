# Deterministic simulated exposure records shared by the test modules
from datetime import date
import numpy as np
import polars as pl


def sim_exposures(n_pol: int = 400, n_yr: int = 5,
                  seed: int = 123) -> pl.DataFrame:
    """
    Policy year exposure records with expected rates, weights, account values
    and two transaction types (Base and Rider).
    """
    rng = np.random.default_rng(seed)
    n = n_pol * n_yr

    pol_num = np.repeat(np.arange(1, n_pol + 1), n_yr)
    pol_yr = np.tile(np.arange(1, n_yr + 1), n_pol)
    inc_guar = np.repeat(rng.random(n_pol) < 0.4, n_yr)
    product = np.repeat(rng.choice(['a', 'b', 'c'], n_pol), n_yr)

    status = rng.choice(['Active', 'Surrender', 'Death'], n,
                        p=[0.85, 0.1, 0.05])
    exposure = np.where(rng.random(n) < 0.1, 0.5, 1.0)

    expected_table = np.linspace(0.02, 0.1, n_yr)

    trx_n_Base = rng.poisson(0.4, n)
    trx_n_Rider = rng.poisson(0.2, n)

    return pl.DataFrame({
        'pol_num': pol_num,
        'status': status,
        'exposure': exposure,
        'pol_yr': pol_yr,
        'inc_guar': inc_guar,
        'product': product,
        'pol_date_yr': [date(2009 + int(y), 1, 1) for y in pol_yr],
        'pol_date_yr_end': [date(2009 + int(y), 12, 31) for y in pol_yr],
        'expected_1': expected_table[pol_yr - 1],
        'expected_2': np.where(inc_guar, 0.015, 0.03),
        'weights': np.abs(rng.normal(100, 50, n)),
        'av': rng.uniform(1000, 5000, n).round(2),
        'premium': rng.uniform(100, 500, n).round(2),
        'trx_n_Base': trx_n_Base,
        'trx_amt_Base': (trx_n_Base * rng.uniform(50, 150, n)).round(2),
        'trx_n_Rider': trx_n_Rider,
        'trx_amt_Rider': (trx_n_Rider * rng.uniform(20, 80, n)).round(2)
    })
