"""
Stationarity diagnostics for monthly airport passenger series.

For each airport the series (and its seasonal / first differences) is
characterised with an Augmented Dickey-Fuller test, ACF/PACF sequences with
a 95% significance band and an additive seasonal decomposition. Nothing here
picks the differencing orders: the output is evidence for the analyst who
sets d and D.
"""

from __future__ import annotations

import argparse
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import DecomposeResult, seasonal_decompose
from statsmodels.tsa.stattools import acf, adfuller, pacf

from analysis_utils import (
    available_airports,
    build_series,
    missing_months,
    read_clean_dataset,
    to_regular_months,
)
from config import AirportTrafficConfig
from errors import DegenerateSeriesError, InsufficientDataError


@dataclass
class Correlogram:
    """ACF/PACF values at lags 1..k with the +/- z/sqrt(n) band."""

    acf_lags: np.ndarray
    acf_values: np.ndarray
    pacf_lags: np.ndarray
    pacf_values: np.ndarray
    band: float
    n_obs: int

    def significant_acf_lags(self) -> List[int]:
        return [int(lag) for lag, value in zip(self.acf_lags, self.acf_values) if abs(value) > self.band]

    def significant_pacf_lags(self) -> List[int]:
        return [int(lag) for lag, value in zip(self.pacf_lags, self.pacf_values) if abs(value) > self.band]

    def acf_at(self, lag: int) -> float:
        return float(self.acf_values[int(lag) - 1])

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({"lag": self.acf_lags, "acf": self.acf_values})
        pacf_frame = pd.DataFrame({"lag": self.pacf_lags, "pacf": self.pacf_values})
        frame = frame.merge(pacf_frame, on="lag", how="left")
        frame["band"] = self.band
        return frame


@dataclass
class StationarityReport:
    """Evidence bundle for one (possibly differenced) series."""

    n_obs: int
    adf_stat: float
    adf_pvalue: float
    adf_lags: int
    adf_nobs: int
    critical_values: Dict[str, float]
    correlogram: Correlogram
    seasonal_strength: Optional[float] = None
    decomposition: Optional[DecomposeResult] = None
    airport: Optional[str] = None
    d: int = 0
    D: int = 0
    notes: List[str] = field(default_factory=list)

    def rejects_unit_root(self, alpha: float = 0.05) -> bool:
        """True when the ADF null of a unit root is rejected at level alpha."""
        return bool(self.adf_pvalue < alpha)

    def to_dict(self, alpha: float = 0.05) -> Dict[str, Any]:
        return {
            "airport": self.airport or "",
            "d": self.d,
            "D": self.D,
            "n_obs": self.n_obs,
            "adf_stat": self.adf_stat,
            "adf_pvalue": self.adf_pvalue,
            "adf_lags": self.adf_lags,
            "adf_nobs": self.adf_nobs,
            "adf_crit_5pct": self.critical_values.get("5%", np.nan),
            "rejects_unit_root": self.rejects_unit_root(alpha),
            "seasonal_strength": self.seasonal_strength,
            "acf_band": self.correlogram.band,
            "acf_lag1": self.correlogram.acf_at(1),
            "acf_lag12": self.correlogram.acf_at(12) if len(self.correlogram.acf_values) >= 12 else np.nan,
            "significant_acf_lags": " ".join(map(str, self.correlogram.significant_acf_lags())),
            "significant_pacf_lags": " ".join(map(str, self.correlogram.significant_pacf_lags())),
            "notes": " | ".join(self.notes),
        }


def difference(series: pd.Series, lag: int = 1) -> pd.Series:
    """
    Lag-`lag` difference; the first `lag` undefined values are dropped.

    Month-stamped series are differenced on the calendar grid, so a gap
    left by the "drop" policy removes the months it touches instead of
    pairing values that are not `lag` months apart.
    """
    if lag < 1:
        raise ValueError(f"lag must be >= 1, got {lag}")
    if len(series) <= lag:
        raise InsufficientDataError(
            f"cannot take a lag-{lag} difference of {len(series)} observations",
            airport=series.name if isinstance(series.name, str) else None,
            operation="difference",
        )
    regular = to_regular_months(series)
    differenced = (regular - regular.shift(lag)).iloc[lag:]
    if differenced.isna().any():
        differenced = differenced.dropna()
    if differenced.empty:
        raise InsufficientDataError(
            f"no pair of observations {lag} month(s) apart",
            airport=series.name if isinstance(series.name, str) else None,
            operation="difference",
        )
    return differenced


def seasonal_difference(series: pd.Series, period: int = 12) -> pd.Series:
    return difference(series, lag=period)


def difference_series(series: pd.Series, d: int = 0, D: int = 0, period: int = 12) -> pd.Series:
    """Apply D seasonal differences followed by d first differences."""
    result = series
    for _ in range(D):
        result = seasonal_difference(result, period)
    for _ in range(d):
        result = difference(result, 1)
    return result


def undifference(differenced: pd.Series, seed: Union[pd.Series, Sequence[float], float], lag: int = 1) -> pd.Series:
    """
    Invert a single lag-`lag` difference.

    `seed` holds the first `lag` values of the original series; with lag=1 this
    is a cumulative sum started from the seed value.
    """
    if isinstance(seed, pd.Series):
        seed_values = seed.to_numpy(dtype=float)
        seed_index = seed.index
    else:
        seed_values = np.atleast_1d(np.asarray(seed, dtype=float))
        seed_index = None

    if len(seed_values) != lag:
        raise ValueError(f"seed must contain exactly {lag} value(s), got {len(seed_values)}")

    diffs = differenced.to_numpy(dtype=float)
    if lag == 1:
        restored = np.concatenate([seed_values, seed_values[0] + np.cumsum(diffs)])
    else:
        restored = np.concatenate([seed_values, np.empty(len(diffs))])
        for position, step in enumerate(diffs):
            restored[lag + position] = restored[position] + step

    if seed_index is not None:
        index = seed_index.append(differenced.index)
    else:
        index = None
    return pd.Series(restored, index=index, name=differenced.name)


def _check_not_degenerate(values: pd.Series, airport: Optional[str]) -> None:
    if values.nunique() <= 1 or not np.isfinite(values.var()) or values.var() == 0:
        raise DegenerateSeriesError(
            "series is constant; autocorrelation is undefined",
            airport=airport,
            operation="stationarity",
        )


def run_adf(series: pd.Series, airport: Optional[str] = None) -> Dict[str, Any]:
    """Execute the Augmented Dickey-Fuller test (null: unit root)."""
    cleaned = series.dropna()
    _check_not_degenerate(cleaned, airport)
    try:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore")
            stat, pvalue, used_lag, n_obs, crit_values, _ = adfuller(cleaned, autolag="AIC")
    except ValueError as exc:  # statsmodels raises ValueError for small samples
        raise InsufficientDataError(
            f"ADF test failed on {len(cleaned)} observations: {exc}",
            airport=airport,
            operation="adf",
        ) from exc
    return {
        "adf_stat": float(stat),
        "adf_pvalue": float(pvalue),
        "adf_lags": int(used_lag),
        "adf_nobs": int(n_obs),
        "critical_values": {key: float(value) for key, value in crit_values.items()},
    }


def compute_correlogram(
    series: pd.Series,
    nlags: int = 36,
    z: float = 1.96,
    airport: Optional[str] = None,
) -> Correlogram:
    """ACF at lags 1..min(nlags, n-1) and PACF at lags 1..min(nlags, n//2 - 1)."""
    cleaned = series.dropna()
    _check_not_degenerate(cleaned, airport)

    n_obs = len(cleaned)
    acf_nlags = min(nlags, n_obs - 1)
    # statsmodels only estimates partial autocorrelations below half the sample
    pacf_nlags = min(nlags, n_obs // 2 - 1)
    if acf_nlags < 1 or pacf_nlags < 1:
        raise InsufficientDataError(
            f"{n_obs} observations are too few for autocorrelation diagnostics",
            airport=airport,
            operation="correlogram",
        )

    values = cleaned.to_numpy(dtype=float)
    if missing_months(cleaned):
        # Autocorrelations on the calendar grid; absent months are skipped pairwise
        regular = to_regular_months(cleaned).to_numpy(dtype=float)
        acf_values = acf(regular, nlags=acf_nlags, fft=False, missing="conservative")[1:]
    else:
        acf_values = acf(values, nlags=acf_nlags, fft=True)[1:]
    pacf_values = pacf(values, nlags=pacf_nlags)[1:]

    return Correlogram(
        acf_lags=np.arange(1, acf_nlags + 1),
        acf_values=np.asarray(acf_values, dtype=float),
        pacf_lags=np.arange(1, pacf_nlags + 1),
        pacf_values=np.asarray(pacf_values, dtype=float),
        band=float(z / np.sqrt(n_obs)),
        n_obs=n_obs,
    )


def decompose(
    series: pd.Series,
    period: int = 12,
    model: str = "additive",
    airport: Optional[str] = None,
) -> Tuple[DecomposeResult, Optional[float]]:
    """Trend/seasonal/residual split plus seasonal strength var(S) / (var(S) + var(R))."""
    cleaned = series.dropna()
    if len(cleaned) < 2 * period:
        raise InsufficientDataError(
            f"seasonal decomposition needs {2 * period} observations, got {len(cleaned)}",
            airport=airport,
            operation="decompose",
        )
    gaps = missing_months(cleaned)
    if gaps:
        raise InsufficientDataError(
            f"seasonal decomposition needs a gap-free series; {gaps} month(s) missing",
            airport=airport,
            operation="decompose",
        )
    decomposition = seasonal_decompose(cleaned, model=model, period=period)

    seasonal_var = np.var(decomposition.seasonal.dropna())
    residual_var = np.var(decomposition.resid.dropna())
    seasonal_strength = None
    if seasonal_var + residual_var > 0:
        seasonal_strength = float(seasonal_var / (seasonal_var + residual_var))
    return decomposition, seasonal_strength


class StationarityAnalyzer:
    """Characterise a monthly series for manual choice of d and D."""

    def __init__(
        self,
        *,
        period: int = 12,
        nlags: int = 36,
        z: float = 1.96,
        alpha: float = 0.05,
    ) -> None:
        self.period = period
        self.nlags = nlags
        self.z = z
        self.alpha = alpha

    def analyze(
        self,
        series: pd.Series,
        *,
        airport: Optional[str] = None,
        d: int = 0,
        D: int = 0,
        include_decomposition: bool = True,
    ) -> StationarityReport:
        """Difference by (d, D) then collect ADF, ACF/PACF and decomposition evidence."""
        label = airport or (series.name if isinstance(series.name, str) else None)
        working = difference_series(series.dropna(), d=d, D=D, period=self.period)

        adf_metrics = run_adf(working, airport=label)
        correlogram = compute_correlogram(working, nlags=self.nlags, z=self.z, airport=label)

        notes: List[str] = []
        decomposition = None
        seasonal_strength = None
        gaps = missing_months(working)
        if gaps:
            notes.append(f"{gaps} missing month(s); PACF uses observed months only")
        if include_decomposition:
            if gaps:
                notes.append("decomposition skipped (series has missing months)")
            elif len(working) >= 2 * self.period:
                decomposition, seasonal_strength = decompose(working, period=self.period, airport=label)
            else:
                notes.append(f"decomposition skipped (<{2 * self.period} observations)")

        return StationarityReport(
            n_obs=len(working),
            adf_stat=adf_metrics["adf_stat"],
            adf_pvalue=adf_metrics["adf_pvalue"],
            adf_lags=adf_metrics["adf_lags"],
            adf_nobs=adf_metrics["adf_nobs"],
            critical_values=adf_metrics["critical_values"],
            correlogram=correlogram,
            seasonal_strength=seasonal_strength,
            decomposition=decomposition,
            airport=label,
            d=d,
            D=D,
            notes=notes,
        )

    def differencing_table(
        self,
        series: pd.Series,
        *,
        airport: Optional[str] = None,
        max_d: int = 1,
        max_D: int = 1,
    ) -> List[StationarityReport]:
        """Reports for every (d, D) combination up to the given maxima."""
        reports: List[StationarityReport] = []
        for D in range(max_D + 1):
            for d in range(max_d + 1):
                reports.append(
                    self.analyze(series, airport=airport, d=d, D=D, include_decomposition=False)
                )
        return reports


def run_stationarity_checks(
    table: pd.DataFrame,
    airports: Iterable[str],
    *,
    start: str,
    end: str,
    analyzer: Optional[StationarityAnalyzer] = None,
    missing_policy: str = "interpolate",
    max_d: int = 1,
    max_D: int = 1,
) -> pd.DataFrame:
    """Generate a long-form DataFrame with diagnostics per airport and differencing pair."""
    analyzer = analyzer or StationarityAnalyzer()
    records: List[Dict[str, Any]] = []

    for airport in airports:
        series = build_series(
            table,
            airport,
            start,
            end,
            missing_policy=missing_policy,
            period=analyzer.period,
        )
        for report in analyzer.differencing_table(series, airport=airport, max_d=max_d, max_D=max_D):
            records.append(report.to_dict(alpha=analyzer.alpha))

    return pd.DataFrame.from_records(records)


def parse_args() -> argparse.Namespace:
    config = AirportTrafficConfig
    parser = argparse.ArgumentParser(description="Run stationarity diagnostics on airport passenger series.")
    parser.add_argument(
        "--clean-path",
        type=Path,
        default=Path(config.RESULTS_DIR) / config.CLEAN_DATA_FILE,
        help="Path to the cleaned Airport/Country/Date/Passengers CSV.",
    )
    parser.add_argument(
        "--output-path",
        type=Path,
        default=Path(config.RESULTS_DIR) / "stationarity_diagnostics.csv",
        help="Where to write the aggregated diagnostics.",
    )
    parser.add_argument("--airports", type=str, default="", help="Comma separated airport codes (default: all).")
    parser.add_argument("--start", type=str, default=config.WINDOW_START)
    parser.add_argument("--end", type=str, default=config.WINDOW_END)
    parser.add_argument("--nlags", type=int, default=config.ACF_LAGS)
    parser.add_argument(
        "--missing-policy",
        choices=config.MISSING_VALUE_POLICIES,
        default=config.MISSING_VALUE_POLICY,
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    table = read_clean_dataset(args.clean_path)
    requested = [item for item in args.airports.split(",") if item.strip()] or None
    airports = available_airports(table, requested)

    analyzer = StationarityAnalyzer(
        period=AirportTrafficConfig.SEASONAL_PERIOD,
        nlags=args.nlags,
        z=AirportTrafficConfig.SIGNIFICANCE_Z,
        alpha=AirportTrafficConfig.ADF_ALPHA,
    )
    results = run_stationarity_checks(
        table,
        airports,
        start=args.start,
        end=args.end,
        analyzer=analyzer,
        missing_policy=args.missing_policy,
        max_d=AirportTrafficConfig.I_MAX,
        max_D=AirportTrafficConfig.I_MAX,
    )

    output_path: Path = args.output_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results.to_csv(output_path, index=False)

    print(f"Saved stationarity diagnostics to {output_path.resolve()}")
    print(f"Processed {results['airport'].nunique()} airports.")


if __name__ == "__main__":
    main()
