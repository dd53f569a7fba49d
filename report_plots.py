"""
Report figures for the airport passenger-traffic analysis.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

from analysis_utils import missing_months, to_regular_months
from check_stationarity import StationarityReport
from sarima_model import ForecastOutput


def _sanitize_label(label: str) -> str:
    """Sanitize label for filesystem use."""
    allowed = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_")
    return "".join(c if c in allowed else "_" for c in label)


def _save(fig, out_dir: Union[str, Path], airport: str, suffix: str) -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{_sanitize_label(airport)}_{suffix}.png"
    fig.tight_layout()
    fig.savefig(path, dpi=120)
    plt.close(fig)
    return path


def plot_series(series: pd.Series, airport: str, out_dir: Union[str, Path]) -> Path:
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(series.index, series.values, color="tab:blue")
    ax.set_title(f"Monthly passengers: {airport}")
    ax.set_ylabel("Passengers")
    ax.grid(alpha=0.3)
    return _save(fig, out_dir, airport, "series")


def plot_decomposition(report: StationarityReport, airport: str, out_dir: Union[str, Path]) -> Optional[Path]:
    if report.decomposition is None:
        return None
    decomposition = report.decomposition
    fig, axes = plt.subplots(4, 1, figsize=(10, 8), sharex=True)
    for ax, (name, values) in zip(
        axes,
        (
            ("Observed", decomposition.observed),
            ("Trend", decomposition.trend),
            ("Seasonal", decomposition.seasonal),
            ("Residual", decomposition.resid),
        ),
    ):
        ax.plot(values.index, values.values)
        ax.set_ylabel(name)
    axes[0].set_title(f"Additive decomposition: {airport}")
    return _save(fig, out_dir, airport, "decomposition")


def plot_correlogram(
    series: pd.Series,
    airport: str,
    out_dir: Union[str, Path],
    *,
    nlags: int = 36,
    suffix: str = "acf_pacf",
) -> Path:
    """ACF/PACF with 95% bands via statsmodels.graphics."""
    cleaned = series.dropna()
    fig, axes = plt.subplots(2, 1, figsize=(10, 6))
    acf_lags = min(nlags, len(cleaned) - 1)
    if missing_months(cleaned):
        plot_acf(to_regular_months(cleaned), lags=acf_lags, ax=axes[0], zero=False, missing="conservative")
    else:
        plot_acf(cleaned, lags=acf_lags, ax=axes[0], zero=False)
    plot_pacf(cleaned, lags=min(nlags, len(cleaned) // 2 - 1), ax=axes[1], zero=False, method="ywm")
    axes[0].set_title(f"ACF: {airport}")
    axes[1].set_title(f"PACF: {airport}")
    return _save(fig, out_dir, airport, suffix)


def plot_forecast(
    series: pd.Series,
    output: ForecastOutput,
    airport: str,
    out_dir: Union[str, Path],
    history_months: int = 60,
) -> Path:
    history = series.iloc[-history_months:]
    forecast = output.forecast
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(history.index, history.values, label="Observed", color="tab:blue")
    ax.plot(forecast.index, forecast["forecast"], label="Forecast", color="tab:orange")
    ax.fill_between(
        forecast.index,
        forecast["lower"],
        forecast["upper"],
        color="tab:orange",
        alpha=0.2,
        label=f"{output.confidence_level:.0%} interval",
    )
    ax.set_title(f"{output.candidate.label()} forecast: {airport}")
    ax.legend(loc="upper left")
    ax.grid(alpha=0.3)
    return _save(fig, out_dir, airport, "forecast")


def plot_residuals(output: ForecastOutput, airport: str, out_dir: Union[str, Path]) -> Path:
    residuals = output.diagnostics.residuals
    fig, axes = plt.subplots(1, 2, figsize=(11, 4))
    axes[0].plot(residuals.index, residuals.values, color="tab:gray")
    axes[0].axhline(0, color="black", linewidth=0.8)
    axes[0].set_title("Residuals")
    axes[1].hist(residuals.values, bins=30, color="tab:gray", edgecolor="white")
    axes[1].set_title(
        f"Ljung-Box({output.diagnostics.lags}) p = {output.diagnostics.lb_pvalue:.3f}"
    )
    fig.suptitle(airport)
    return _save(fig, out_dir, airport, "residuals")
