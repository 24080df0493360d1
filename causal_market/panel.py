from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np
import pandas as pd

Array = np.ndarray

SECTORS: Tuple[str, ...] = ("Technology", "Healthcare", "Financials", "Energy", "Consumer")

SECTOR_PREFIX = {
    "Technology": "TEC",
    "Healthcare": "HLT",
    "Financials": "FIN",
    "Energy": "ENR",
    "Consumer": "CON",
}

@dataclass
class PanelConfig:
    n_tickers: int = 50
    n_months: int = 36
    start_date: str = "2021-01-01"
    sectors: Tuple[str, ...] = SECTORS
    rate_start: float = 0.005   # policy rate in the first month
    rate_end: float = 0.055     # policy rate in the last month
    regime_threshold: float = 0.5
    seed: int = 42

    def __post_init__(self):
        self.sectors = tuple(self.sectors)
        if self.n_tickers < 1:
            raise ValueError("n_tickers must be >= 1.")
        if self.n_months < 2:
            raise ValueError("n_months must be >= 2.")
        if len(self.sectors) == 0:
            raise ValueError("sectors must not be empty.")
        if len(set(self.sectors)) != len(self.sectors):
            raise ValueError("sectors must be unique.")
        prefixes = [sector_prefix(s) for s in self.sectors]
        if len(set(prefixes)) != len(prefixes):
            raise ValueError(f"sector ticker prefixes must be unique, got {prefixes}.")
        if not (0.0 <= self.rate_start <= 1.0 and 0.0 <= self.rate_end <= 1.0):
            raise ValueError("rate_start and rate_end must be in [0,1].")
        if self.regime_threshold <= 0:
            raise ValueError("regime_threshold must be > 0.")
        start = pd.Timestamp(self.start_date)
        if start.day != 1:
            raise ValueError("start_date must be the first day of a month.")

    @property
    def n_rows(self) -> int:
        return self.n_tickers * self.n_months

    @property
    def n_sectors(self) -> int:
        return len(self.sectors)

    def dates(self) -> pd.DatetimeIndex:
        return pd.date_range(self.start_date, periods=self.n_months, freq="MS")

    @property
    def end_date(self) -> str:
        return self.dates()[-1].strftime("%Y-%m-%d")

def sector_prefix(sector: str) -> str:
    return SECTOR_PREFIX.get(sector, sector[:3].upper())

def ticker_universe(cfg: PanelConfig) -> Tuple[list[str], list[str]]:
    """Tickers are assigned to sectors round robin and numbered within their sector."""
    tickers, sectors = [], []
    counts = {s: 0 for s in cfg.sectors}
    for k in range(cfg.n_tickers):
        s = cfg.sectors[k % cfg.n_sectors]
        counts[s] += 1
        tickers.append(f"{sector_prefix(s)}{counts[s]:02d}")
        sectors.append(s)
    return tickers, sectors

@dataclass
class PanelIndex:
    """Row layout of the panel, sorted by ticker position then date."""
    ticker: Array        # (n,) str
    sector: Array        # (n,) str
    date: Array          # (n,) datetime64
    ticker_idx: Array    # (n,) int, position in the ticker universe
    sector_idx: Array    # (n,) int
    month_idx: Array     # (n,) int

    @property
    def n(self) -> int:
        return len(self.ticker)

def build_panel_index(cfg: PanelConfig) -> PanelIndex:
    tickers, sectors = ticker_universe(cfg)
    dates = cfg.dates().values
    t_idx = np.repeat(np.arange(cfg.n_tickers), cfg.n_months)
    m_idx = np.tile(np.arange(cfg.n_months), cfg.n_tickers)
    s_lookup = {s: k for k, s in enumerate(cfg.sectors)}
    s_idx = np.array([s_lookup[sectors[t]] for t in t_idx], dtype=int)
    return PanelIndex(
        ticker=np.array(tickers, dtype=object)[t_idx],
        sector=np.array(sectors, dtype=object)[t_idx],
        date=dates[m_idx],
        ticker_idx=t_idx,
        sector_idx=s_idx,
        month_idx=m_idx,
    )

def regime_labels(market_factor: Array, threshold: float) -> Array:
    """Monthly regime from the standardized market factor."""
    out = np.full(len(market_factor), "neutral", dtype=object)
    out[market_factor > threshold] = "bull"
    out[market_factor < -threshold] = "bear"
    return out
