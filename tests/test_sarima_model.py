"""
Tests for SARIMA fitting, forecasting and residual diagnostics.
"""

import pandas as pd
import pytest

from analysis_utils import build_series
from errors import FitConvergenceError, TrafficAnalysisError
from sarima_auto_selector import OrderSearch
from sarima_model import ForecastRunner, OrderCandidate, as_candidate, fit_sarima


def test_order_candidate_validation_and_label():
    candidate = OrderCandidate.from_tuple((1, 1, 0, 0, 1, 1))

    assert candidate.order == (1, 1, 0)
    assert candidate.seasonal_order == (0, 1, 1, 12)
    assert candidate.label() == "SARIMA(1,1,0)x(0,1,1,12)"
    assert as_candidate(candidate) is candidate

    with pytest.raises(ValueError):
        OrderCandidate(1, -1, 0, 0, 0, 0)
    with pytest.raises(ValueError):
        OrderCandidate.from_tuple((1, 2, 3))


def test_fit_sarima_adds_constant_only_without_differencing(passenger_series):
    level_fit, _ = fit_sarima(passenger_series, (0, 0, 0, 0, 0, 0))
    differenced_fit, _ = fit_sarima(passenger_series, (0, 1, 0, 0, 0, 0))

    assert level_fit.model.k_trend == 1
    assert differenced_fit.model.k_trend == 0


def test_fit_sarima_raises_when_not_converged(passenger_series):
    with pytest.raises(FitConvergenceError) as excinfo:
        fit_sarima(passenger_series, (1, 1, 1, 0, 1, 1), maxiter=1, max_retries=1, airport="LHR")

    assert excinfo.value.order == OrderCandidate(1, 1, 1, 0, 1, 1)
    assert excinfo.value.operation == "fit"
    assert "did not converge" in str(excinfo.value)


def test_forecast_covers_next_twelve_months(passenger_series):
    runner = ForecastRunner(confidence_level=0.95, ljung_box_lags=24)

    output = runner.run(passenger_series, (1, 1, 0, 0, 1, 0), horizon=12, airport="LHR")

    forecast = output.forecast
    assert len(forecast) == 12
    assert forecast.index[0] == pd.Timestamp("2020-01-01")
    assert forecast.index[-1] == pd.Timestamp("2020-12-01")
    assert pd.infer_freq(forecast.index) == "MS"
    assert (forecast["lower"] <= forecast["forecast"]).all()
    assert (forecast["forecast"] <= forecast["upper"]).all()

    diagnostics = output.diagnostics
    assert diagnostics.lags == 24
    assert 0.0 <= diagnostics.lb_pvalue <= 1.0
    assert diagnostics.lb_stat >= 0.0
    assert len(diagnostics.residuals) <= len(passenger_series)

    records = output.forecast_records()
    assert records[0]["Date"] == "2020-01-01"
    assert records[0]["Model"] == "SARIMA(1,1,0)x(0,1,0,12)"
    assert output.diagnostics_record()["Airport"] == "LHR"


def test_forecast_propagates_convergence_failure(passenger_series, make_fit_fn):
    fit_fn = make_fit_fn({}, failing={(2, 1, 2, 0, 1, 1, 12)})
    runner = ForecastRunner(fit_fn=fit_fn)

    with pytest.raises(FitConvergenceError) as excinfo:
        runner.run(passenger_series, (2, 1, 2, 0, 1, 1), airport="LHR")

    assert excinfo.value.airport == "LHR"


def test_forecast_rejects_bad_arguments(passenger_series):
    with pytest.raises(ValueError):
        ForecastRunner(confidence_level=1.5)
    with pytest.raises(ValueError):
        ForecastRunner().run(passenger_series, (0, 1, 0, 0, 0, 0), horizon=0)
    with pytest.raises(ValueError):
        ForecastRunner().run(passenger_series.reset_index(drop=True), (0, 1, 0, 0, 0, 0))


def test_dropped_months_search_and_forecast(gapped_table):
    series = build_series(gapped_table, "LHR", "2002-01", "2019-12", missing_policy="drop")
    assert len(series) == 213

    result = OrderSearch(pq_max=0, i_max=1).run(series, airport="LHR")
    assert result.n_candidates == 4
    assert result.n_obs == 213

    output = ForecastRunner().run(series, (0, 1, 0, 0, 1, 0), horizon=12, airport="LHR")

    forecast = output.forecast
    assert len(forecast) == 12
    assert forecast.index[0] == pd.Timestamp("2020-01-01")
    assert forecast.index[-1] == pd.Timestamp("2020-12-01")
    assert forecast["forecast"].notna().all()
    assert 0.0 <= output.diagnostics.lb_pvalue <= 1.0


class _UnforecastableFit:
    aic = 100.0
    bic = 110.0

    def get_forecast(self, steps):
        raise ValueError("unable to extend the index")


def test_forecast_failure_names_airport(passenger_series):
    def fit_fn(series, candidate, **kwargs):
        return _UnforecastableFit(), []

    with pytest.raises(TrafficAnalysisError) as excinfo:
        ForecastRunner(fit_fn=fit_fn).run(passenger_series, (0, 1, 0, 0, 1, 0), airport="LHR")

    assert excinfo.value.airport == "LHR"
    assert excinfo.value.operation == "forecast"
    assert "unable to extend the index" in str(excinfo.value)
