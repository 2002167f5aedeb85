"""
Configuration and metadata records

Summary objects keep their settings in frozen dataclasses. Parameters
(`ExpParams`, `TrxParams`) describe how results were calculated. Metadata
records (`ExposureMeta`, `ExpMeta`, `TrxMeta`) describe the study and the
layout of the summarized data. Both travel with the data through `summary()`.
"""
from dataclasses import dataclass, replace
from datetime import date
from xpstats.tools import _qnorm


@dataclass(frozen=True)
class ExpParams:
    """
    Settings for termination experience studies

    Parameters
    ----------
    credibility : bool, default=False
        Whether to calculate partial credibility and credibility-weighted
        termination rates
    conf_level : float, default=0.95
        Confidence level under the Limited Fluctuation credibility method
    cred_r : float, default=0.05
        Error tolerance under the Limited Fluctuation credibility method
    full_exposures_only : bool, default=True
        If `True`, partially exposed records are ignored
    col_exposure : str, default='exposure'
        Name of the column containing exposures
    """
    credibility: bool = False
    conf_level: float = 0.95
    cred_r: float = 0.05
    full_exposures_only: bool = True
    col_exposure: str = 'exposure'

    def __post_init__(self):
        if not 0.5 < self.conf_level < 1:
            raise ValueError("`conf_level` must be between 0.5 and 1.")
        if self.cred_r <= 0:
            raise ValueError("`cred_r` must be greater than 0.")

    @property
    def cred_y(self) -> float:
        """
        Expected number of claims required for full credibility. The
        probability that observed claims fall within `cred_r` of expected
        claims is `conf_level` (1082.4 claims at 95% and 5%).
        """
        return float((_qnorm(self.conf_level) / self.cred_r) ** 2)


@dataclass(frozen=True)
class TrxParams:
    """
    Settings for transaction studies

    Parameters
    ----------
    combine_trx : bool, default=False
        If `True`, results are aggregated across all transaction types
    full_exposures_only : bool, default=True
        If `True`, partially exposed records are ignored
    col_exposure : str, default='exposure'
        Name of the column containing exposures
    """
    combine_trx: bool = False
    full_exposures_only: bool = True
    col_exposure: str = 'exposure'


@dataclass(frozen=True)
class ExposureMeta:
    """
    Metadata attached to exposure-level records
    """
    end_date: date
    start_date: date = date(1900, 1, 1)
    target_status: tuple = ()
    cal_expo: bool = False
    expo_length: str = 'year'
    trx_types: tuple = ()


@dataclass(frozen=True)
class ExpMeta:
    """
    Metadata attached to termination experience summaries
    """
    groups: tuple = ()
    target_status: tuple = ()
    start_date: date = None
    end_date: date = None
    expected: tuple = ()
    wt: str = None


@dataclass(frozen=True)
class TrxMeta:
    """
    Metadata attached to transaction summaries
    """
    groups: tuple = ()
    trx_types: tuple = ()
    percent_of: tuple = ()
    start_date: date = None
    end_date: date = None


def _regroup(meta, by):
    """
    Internal function returning a copy of a metadata record with new groups
    """
    return replace(meta, groups=tuple(by))
