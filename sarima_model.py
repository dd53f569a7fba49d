"""
SARIMA fitting and forecasting for monthly airport passenger series.
Fits one (p,d,q)x(P,D,Q)s order, forecasts h months ahead with
prediction intervals and runs Ljung-Box residual diagnostics.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.statespace.sarimax import SARIMAX

from analysis_utils import to_regular_months
from errors import FitConvergenceError, InsufficientDataError, TrafficAnalysisError


@dataclass(frozen=True)
class OrderCandidate:
    """One point (p, d, q, P, D, Q, s) of the SARIMA hyperparameter space."""

    p: int
    d: int
    q: int
    P: int
    D: int
    Q: int
    s: int = 12

    def __post_init__(self) -> None:
        for name in ("p", "d", "q", "P", "D", "Q", "s"):
            value = getattr(self, name)
            if int(value) != value or value < 0:
                raise ValueError(f"SARIMA order component {name} must be a non-negative integer, got {value!r}")

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self) -> Tuple[int, int, int, int]:
        return (self.P, self.D, self.Q, self.s)

    @property
    def complexity(self) -> int:
        return self.p + self.q + self.P + self.Q + self.d + self.D

    def as_tuple(self) -> Tuple[int, int, int, int, int, int, int]:
        return (self.p, self.d, self.q, self.P, self.D, self.Q, self.s)

    def label(self) -> str:
        return f"SARIMA({self.p},{self.d},{self.q})x({self.P},{self.D},{self.Q},{self.s})"

    @classmethod
    def from_tuple(cls, values: Sequence[int], period: int = 12) -> "OrderCandidate":
        """Accept (p,d,q,P,D,Q) or (p,d,q,P,D,Q,s)."""
        values = tuple(int(v) for v in values)
        if len(values) == 6:
            return cls(*values, s=period)
        if len(values) == 7:
            return cls(*values)
        raise ValueError(f"expected 6 or 7 order values, got {len(values)}")


def as_candidate(value: Union[OrderCandidate, Sequence[int]], period: int = 12) -> OrderCandidate:
    if isinstance(value, OrderCandidate):
        return value
    return OrderCandidate.from_tuple(value, period=period)


def fit_sarima(
    series: pd.Series,
    candidate: Union[OrderCandidate, Sequence[int]],
    *,
    trend: Optional[str] = None,
    maxiter: int = 200,
    max_retries: int = 2,
    enforce_stationarity: bool = True,
    enforce_invertibility: bool = True,
    airport: Optional[str] = None,
) -> Tuple[Any, List[str]]:
    """
    Fit SARIMAX with retries and capture warnings.

    Month-stamped series are fitted on the calendar grid: months absent
    from the index enter the state-space model as missing observations,
    keeping seasonal lags aligned. A constant is included only for
    undifferenced orders. Returns
    (SARIMAXResults, warning messages); raises FitConvergenceError when no
    attempt converges.
    """
    candidate = as_candidate(candidate)
    if trend is None:
        trend = "c" if candidate.d + candidate.D == 0 else "n"

    seasonal_order = candidate.seasonal_order
    if candidate.P == candidate.D == candidate.Q == 0:
        seasonal_order = (0, 0, 0, 0)

    endog = to_regular_months(series)
    warnings_accumulator: List[str] = []

    for attempt in range(1, max_retries + 1):
        fit_result = None
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                model = SARIMAX(
                    endog,
                    order=candidate.order,
                    seasonal_order=seasonal_order,
                    trend=trend,
                    enforce_stationarity=enforce_stationarity,
                    enforce_invertibility=enforce_invertibility,
                )
                # Later attempts get a larger iteration budget
                fit_result = model.fit(disp=False, maxiter=maxiter * attempt)
            except (ValueError, np.linalg.LinAlgError) as exc:
                warnings_accumulator.append(f"fit_error: {exc}")

        for warning in caught:
            warnings_accumulator.append(str(warning.message))

        if fit_result is not None and (fit_result.mle_retvals or {}).get("converged", False):
            return fit_result, list(dict.fromkeys(warnings_accumulator))

    raise FitConvergenceError(
        f"{candidate.label()} did not converge after {max_retries} attempt(s)",
        order=candidate,
        warnings_list=list(dict.fromkeys(warnings_accumulator)),
        airport=airport,
        operation="fit",
    )


@dataclass
class ResidualDiagnostics:
    """Ljung-Box portmanteau test plus the residual sequence."""

    lags: int
    lb_stat: float
    lb_pvalue: float
    residuals: pd.Series
    residual_mean: float
    residual_std: float

    def residuals_look_white(self, alpha: float = 0.05) -> bool:
        return bool(self.lb_pvalue >= alpha)


@dataclass
class ForecastOutput:
    """Fitted model reference, h-step forecast table and residual diagnostics."""

    candidate: OrderCandidate
    fit: Any  # statsmodels SARIMAXResults
    forecast: pd.DataFrame
    diagnostics: ResidualDiagnostics
    aic: float
    bic: float
    confidence_level: float
    airport: Optional[str] = None
    warning_messages: List[str] = field(default_factory=list)

    def forecast_records(self) -> List[Dict[str, Any]]:
        records = []
        for date, row in self.forecast.iterrows():
            records.append({
                "Airport": self.airport or "",
                "Date": date.strftime("%Y-%m-%d"),
                "Forecast": float(row["forecast"]),
                "Lower_PI": float(row["lower"]),
                "Upper_PI": float(row["upper"]),
                "Model": self.candidate.label(),
            })
        return records

    def diagnostics_record(self) -> Dict[str, Any]:
        return {
            "Airport": self.airport or "",
            "Model": self.candidate.label(),
            "AIC": self.aic,
            "BIC": self.bic,
            "LjungBox_lags": self.diagnostics.lags,
            "LjungBox_stat": self.diagnostics.lb_stat,
            "LjungBox_pvalue": self.diagnostics.lb_pvalue,
            "Residual_mean": self.diagnostics.residual_mean,
            "Residual_std": self.diagnostics.residual_std,
            "Warnings": " | ".join(self.warning_messages),
        }


class ForecastRunner:
    """Fit a chosen SARIMA order once and forecast with residual diagnostics."""

    def __init__(
        self,
        *,
        confidence_level: float = 0.95,
        ljung_box_lags: int = 24,
        enforce_non_negative: bool = True,
        maxiter: int = 200,
        max_retries: int = 2,
        period: int = 12,
        fit_fn=None,
    ) -> None:
        if not 0 < confidence_level < 1:
            raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")
        self.confidence_level = confidence_level
        self.ljung_box_lags = ljung_box_lags
        self.enforce_non_negative = enforce_non_negative
        self.maxiter = maxiter
        self.max_retries = max_retries
        self.period = period
        self.fit_fn = fit_fn or fit_sarima

    def run(
        self,
        series: pd.Series,
        candidate: Union[OrderCandidate, Sequence[int]],
        horizon: int = 12,
        *,
        airport: Optional[str] = None,
    ) -> ForecastOutput:
        """Fit, forecast `horizon` months after the last observation and test residuals."""
        if horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {horizon}")
        if not isinstance(series.index, pd.DatetimeIndex):
            raise ValueError("series must be indexed by month timestamps")

        candidate = as_candidate(candidate, period=self.period)
        label = airport or (series.name if isinstance(series.name, str) else None)
        print(f"Fitting {candidate.label()} for {label or 'series'}...")

        fit, warnings_list = self.fit_fn(
            series,
            candidate,
            maxiter=self.maxiter,
            max_retries=self.max_retries,
            airport=label,
        )

        forecast = self._forecast_table(fit, series.index[-1], horizon, airport=label)
        diagnostics = self.residual_diagnostics(fit, airport=label)

        return ForecastOutput(
            candidate=candidate,
            fit=fit,
            forecast=forecast,
            diagnostics=diagnostics,
            aic=float(fit.aic),
            bic=float(fit.bic),
            confidence_level=self.confidence_level,
            airport=label,
            warning_messages=list(warnings_list),
        )

    def _forecast_table(
        self,
        fit: Any,
        last_observation: pd.Timestamp,
        horizon: int,
        airport: Optional[str] = None,
    ) -> pd.DataFrame:
        try:
            forecast_result = fit.get_forecast(steps=horizon)
            forecast_mean = np.asarray(forecast_result.predicted_mean, dtype=float)
            conf_int = np.asarray(forecast_result.conf_int(alpha=1 - self.confidence_level), dtype=float)
        except (ValueError, np.linalg.LinAlgError) as exc:
            raise TrafficAnalysisError(
                f"{horizon}-step forecast failed: {exc}",
                airport=airport,
                operation="forecast",
            ) from exc

        start = last_observation.to_period("M").to_timestamp() + pd.DateOffset(months=1)
        index = pd.date_range(start=start, periods=horizon, freq="MS")

        table = pd.DataFrame(
            {
                "forecast": forecast_mean,
                "lower": conf_int[:, 0],
                "upper": conf_int[:, 1],
            },
            index=index,
        )
        if self.enforce_non_negative:
            table = table.clip(lower=0)
        table.index.name = "Date"
        return table

    def residual_diagnostics(self, fit: Any, airport: Optional[str] = None) -> ResidualDiagnostics:
        """Ljung-Box test on residuals after the diffuse burn-in period."""
        residuals = pd.Series(np.asarray(fit.resid, dtype=float))
        if hasattr(fit.resid, "index"):
            residuals.index = fit.resid.index
        burn = int(getattr(fit, "loglikelihood_burn", 0) or 0)
        residuals = residuals.iloc[burn:]
        residuals = residuals[np.isfinite(residuals)]

        if len(residuals) < 3:
            raise InsufficientDataError(
                f"{len(residuals)} residuals are too few for a Ljung-Box test",
                airport=airport,
                operation="residual_diagnostics",
            )

        lags = max(1, min(self.ljung_box_lags, len(residuals) - 1))
        lb = acorr_ljungbox(residuals, lags=[lags], return_df=True)

        return ResidualDiagnostics(
            lags=lags,
            lb_stat=float(lb["lb_stat"].iloc[-1]),
            lb_pvalue=float(lb["lb_pvalue"].iloc[-1]),
            residuals=residuals,
            residual_mean=float(residuals.mean()),
            residual_std=float(residuals.std()),
        )
