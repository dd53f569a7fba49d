"""
Shared fixtures for the airport traffic tests.
"""
import numpy as np
import pandas as pd
import pytest


def make_passenger_series(airport="LHR", start="2002-01-01", periods=216, seed=7, trend=250.0):
    """Trend plus a 12-month cycle plus noise, the rough shape of airport traffic."""
    rng = np.random.default_rng(seed)
    index = pd.date_range(start, periods=periods, freq="MS")
    t = np.arange(periods)
    values = 80_000 + trend * t + 15_000 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 1_500, periods)
    return pd.Series(values, index=index, name=airport)


def series_to_table(series, country="UK"):
    return pd.DataFrame({
        "Airport": series.name,
        "Country": country,
        "Date": series.index,
        "Passengers": series.values,
    })


@pytest.fixture
def passenger_series():
    return make_passenger_series()


@pytest.fixture
def seasonal_sine_series():
    """Pure 12-month cycle with small noise and no trend."""
    rng = np.random.default_rng(3)
    index = pd.date_range("2002-01-01", periods=216, freq="MS")
    t = np.arange(216)
    values = 1_000 + 200 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 20, 216)
    return pd.Series(values, index=index, name="SINE")


@pytest.fixture
def passenger_table():
    lhr = series_to_table(make_passenger_series("LHR", seed=7), country="UK")
    cdg = series_to_table(make_passenger_series("CDG", seed=11, trend=180.0), country="FR")
    return pd.concat([lhr, cdg], ignore_index=True)


@pytest.fixture
def gapped_table(passenger_table):
    """LHR with March to May 2005 absent from the table."""
    gap = pd.date_range("2005-03-01", "2005-05-01", freq="MS")
    mask = (passenger_table["Airport"] == "LHR") & passenger_table["Date"].isin(gap)
    return passenger_table.loc[~mask].reset_index(drop=True)


@pytest.fixture
def catalog_csv(tmp_path):
    path = tmp_path / "airport_catalog.csv"
    path.write_text(
        "airport,country,eu_member,sarima_p,sarima_d,sarima_q,sarima_P,sarima_D,sarima_Q,sarima_s\n"
        "LHR,UK,0,,,,,,,\n"
        "CDG,FR,1,1,1,1,0,1,1,12\n",
        encoding="utf-8",
    )
    return path


class FakeFit:
    """Stands in for a SARIMAXResults object during order searches."""

    def __init__(self, aic, bic):
        self.aic = aic
        self.bic = bic


def fake_fit_fn(scores, failing=()):
    """Build a fit function returning canned (aic, bic) per order tuple."""
    from errors import FitConvergenceError

    calls = []

    def fit_fn(series, candidate, **kwargs):
        calls.append(candidate)
        if candidate.as_tuple() in failing:
            raise FitConvergenceError(
                f"{candidate.label()} did not converge",
                order=candidate,
                warnings_list=["ConvergenceWarning: Maximum Likelihood optimization failed to converge."],
                airport=kwargs.get("airport"),
                operation="fit",
            )
        aic, bic = scores.get(candidate.as_tuple(), (1_000.0 + candidate.complexity, 1_100.0 + candidate.complexity))
        return FakeFit(aic, bic), []

    fit_fn.calls = calls
    return fit_fn


@pytest.fixture
def make_fit_fn():
    return fake_fit_fn
