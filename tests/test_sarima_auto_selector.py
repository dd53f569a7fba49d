"""
Tests for the exhaustive AIC/BIC order search.
"""

import numpy as np
import pytest
from joblib import parallel_backend

from errors import FitConvergenceError, InsufficientDataError
from sarima_auto_selector import (
    OrderSearch,
    enumerate_candidates,
    grid_to_dataframe,
    reduce_scored_fits,
    results_to_dataframe,
    select_orders,
)
from sarima_model import OrderCandidate


def test_enumeration_count_and_order():
    candidates = enumerate_candidates(2, 1)

    assert len(candidates) == 3 * 3 * 3 * 2 * 2
    assert candidates[0].as_tuple() == (0, 0, 0, 0, 0, 0, 12)
    assert candidates[1].as_tuple() == (0, 0, 0, 0, 1, 0, 12)
    assert candidates[2].as_tuple() == (0, 1, 0, 0, 0, 0, 12)
    assert all(candidate.P == 0 for candidate in candidates)
    assert len(set(candidates)) == len(candidates)


def test_enumeration_with_seasonal_ar():
    candidates = enumerate_candidates(1, 0, search_seasonal_ar=True)

    assert len(candidates) == 2 ** 4
    assert {candidate.P for candidate in candidates} == {0, 1}


def test_enumeration_rejects_negative_bounds():
    with pytest.raises(ValueError):
        enumerate_candidates(-1, 1)


def test_single_candidate_is_both_minima(passenger_series):
    result = OrderSearch(pq_max=0, i_max=0).run(passenger_series, airport="LHR")

    expected = OrderCandidate(0, 0, 0, 0, 0, 0, 12)
    assert result.n_candidates == 1
    assert result.best_aic.candidate == expected
    assert result.best_bic.candidate == expected
    assert np.isfinite(result.best_aic.value)
    assert result.best_bic.value >= result.best_aic.value


def test_ties_keep_earliest_candidate(passenger_series, make_fit_fn):
    scores = {
        (1, 0, 0, 0, 0, 0, 12): (500.0, 580.0),
        (0, 0, 1, 0, 0, 0, 12): (500.0, 590.0),
    }
    search = OrderSearch(pq_max=1, i_max=1, fit_fn=make_fit_fn(scores))

    result = search.run(passenger_series, airport="LHR")

    assert result.best_aic.candidate.as_tuple() == (0, 0, 1, 0, 0, 0, 12)
    assert result.best_bic.candidate.as_tuple() == (1, 0, 0, 0, 0, 0, 12)
    assert result.best_aic.value == 500.0
    assert result.best_bic.value == 580.0


def test_parallel_search_matches_sequential(passenger_series, make_fit_fn):
    scores = {
        (1, 1, 0, 0, 1, 1, 12): (400.0, 450.0),
        (0, 1, 1, 0, 1, 1, 12): (400.0, 449.0),
        (1, 0, 1, 0, 0, 1, 12): (401.0, 440.0),
    }
    sequential = OrderSearch(pq_max=1, i_max=1, fit_fn=make_fit_fn(scores)).run(passenger_series)
    with parallel_backend("threading"):
        parallel = OrderSearch(pq_max=1, i_max=1, n_jobs=4, fit_fn=make_fit_fn(scores)).run(passenger_series)

    assert parallel.best_aic == sequential.best_aic
    assert parallel.best_bic == sequential.best_bic
    assert [fit.candidate for fit in parallel.scored] == [fit.candidate for fit in sequential.scored]
    assert sequential.best_aic.candidate.as_tuple() == (0, 1, 1, 0, 1, 1, 12)
    assert sequential.best_bic.candidate.as_tuple() == (1, 0, 1, 0, 0, 1, 12)


def test_failed_candidate_is_excluded(passenger_series, make_fit_fn, capsys):
    failing = {(0, 0, 0, 0, 0, 0, 12)}
    fit_fn = make_fit_fn({(0, 0, 0, 0, 0, 0, 12): (1.0, 1.0)}, failing=failing)

    result = OrderSearch(pq_max=1, i_max=0, fit_fn=fit_fn).run(passenger_series, airport="LHR")

    assert result.n_candidates == 8
    assert len(fit_fn.calls) == 8
    assert [failure.candidate.as_tuple() for failure in result.failures] == [(0, 0, 0, 0, 0, 0, 12)]
    assert result.failures[0].warnings
    assert result.best_aic.candidate.as_tuple() != (0, 0, 0, 0, 0, 0, 12)

    grid = result.grid_frame()
    assert len(grid) == 8
    assert grid.loc[0, "status"] == "failed"
    assert "LHR: 1 of 8 candidate orders excluded" in capsys.readouterr().out


def test_non_finite_criteria_are_excluded(passenger_series, make_fit_fn):
    fit_fn = make_fit_fn({(0, 0, 0, 0, 0, 0, 12): (float("nan"), 10.0)})

    result = OrderSearch(pq_max=0, i_max=1, fit_fn=fit_fn).run(passenger_series)

    assert len(result.failures) == 1
    assert "non-finite" in result.failures[0].reason


def test_all_candidates_failing_raises(passenger_series, make_fit_fn):
    candidates = enumerate_candidates(0, 1)
    fit_fn = make_fit_fn({}, failing={candidate.as_tuple() for candidate in candidates})

    with pytest.raises(FitConvergenceError) as excinfo:
        OrderSearch(pq_max=0, i_max=1, fit_fn=fit_fn).run(passenger_series, airport="LHR")

    assert excinfo.value.airport == "LHR"
    assert len(excinfo.value.warnings) == 4


def test_search_rejects_undefined_values(passenger_series, make_fit_fn):
    gapped = passenger_series.copy()
    gapped.iloc[10] = np.nan

    with pytest.raises(ValueError):
        OrderSearch(fit_fn=make_fit_fn({})).run(gapped)


def test_search_rejects_short_series(passenger_series, make_fit_fn):
    with pytest.raises(InsufficientDataError):
        OrderSearch(fit_fn=make_fit_fn({})).run(passenger_series.iloc[:20], airport="LHR")


def test_reduce_scored_fits_empty():
    assert reduce_scored_fits([]) == (None, None)


def test_select_orders_tables(passenger_series, make_fit_fn, capsys):
    search = OrderSearch(pq_max=0, i_max=1, fit_fn=make_fit_fn({}))
    other = passenger_series.rename("CDG")

    results = select_orders({"LHR": passenger_series, "CDG": other}, search)

    assert [result.airport for result in results] == ["LHR", "CDG"]
    summary = results_to_dataframe(results)
    assert list(summary["airport"]) == ["LHR", "CDG"]
    assert summary["same_order"].all()
    assert len(grid_to_dataframe(results)) == 8
    assert "Searching 4 SARIMA orders for LHR" in capsys.readouterr().out


def test_repeated_search_is_identical(passenger_series):
    search = OrderSearch(pq_max=0, i_max=1)

    first = search.run(passenger_series, airport="LHR")
    second = search.run(passenger_series, airport="LHR")

    assert first.best_aic == second.best_aic
    assert first.best_bic == second.best_bic
