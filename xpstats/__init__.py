from xpstats.expose import ExposedDF
from xpstats.exp_stats import ExpStats
from xpstats.trx_stats import TrxStats
from xpstats.col_select import (
    col_starts_with,
    col_matches,
    discover_trx_types
)
from xpstats.formulas import Formula, exp_form
from xpstats.grouping import group_agg
from xpstats.params import ExpParams, TrxParams
from xpstats.tools import arg_match

__all__ = [
    "ExposedDF",
    "ExpStats",
    "TrxStats",
    "col_starts_with",
    "col_matches",
    "discover_trx_types",
    "Formula",
    "exp_form",
    "group_agg",
    "ExpParams",
    "TrxParams",
    "arg_match"
]
