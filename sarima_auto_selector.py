"""
Automatic SARIMA order selection across airport passenger series.

The selector:
  * Enumerates every (p, d, q, P, D, Q, s) candidate up to PQ_MAX / I_MAX in a
    fixed nested order (p, q, P, Q, d, D)
  * Fits each candidate once and records both AIC and BIC
  * Excludes and records candidates whose fit does not converge
  * Folds the scored fits in enumeration order, so ties go to the candidate
    enumerated first, whether fits ran sequentially or on a worker pool
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial, reduce
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from errors import FitConvergenceError, InsufficientDataError
from sarima_model import OrderCandidate, fit_sarima

CRITERIA: Tuple[str, ...] = ("aic", "bic")


@dataclass(frozen=True)
class ScoredFit:
    """Information criteria of one converged candidate fit."""

    candidate: OrderCandidate
    aic: float
    bic: float
    warnings: Tuple[str, ...] = ()

    def criterion(self, name: str) -> float:
        if name not in CRITERIA:
            raise ValueError(f"criterion must be one of {CRITERIA}, got {name!r}")
        return self.aic if name == "aic" else self.bic


@dataclass(frozen=True)
class CandidateFailure:
    """A candidate excluded from the minimum search, with the reason."""

    candidate: OrderCandidate
    reason: str
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchResult:
    """Minimal candidate under one criterion."""

    criterion: str
    candidate: OrderCandidate
    value: float


@dataclass
class OrderSearchResult:
    """Selection payload per airport series."""

    airport: Optional[str]
    best_aic: SearchResult
    best_bic: SearchResult
    scored: List[ScoredFit] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)
    n_obs: int = 0

    @property
    def n_candidates(self) -> int:
        return len(self.scored) + len(self.failures)

    def best(self, criterion: str = "aic") -> SearchResult:
        if criterion == "aic":
            return self.best_aic
        if criterion == "bic":
            return self.best_bic
        raise ValueError(f"criterion must be one of {CRITERIA}, got {criterion!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Compact dict for DataFrame export."""
        return {
            "airport": self.airport or "",
            "n_obs": self.n_obs,
            "n_candidates": self.n_candidates,
            "n_failed": len(self.failures),
            "aic_order": self.best_aic.candidate.as_tuple(),
            "aic": self.best_aic.value,
            "bic_order": self.best_bic.candidate.as_tuple(),
            "bic": self.best_bic.value,
            "same_order": self.best_aic.candidate == self.best_bic.candidate,
        }

    def grid_frame(self) -> pd.DataFrame:
        """Every evaluated candidate, converged or not, in enumeration order."""
        rows = []
        for fit in self.scored:
            rows.append({
                "airport": self.airport or "",
                **dict(zip(("p", "d", "q", "P", "D", "Q", "s"), fit.candidate.as_tuple())),
                "aic": fit.aic,
                "bic": fit.bic,
                "status": "ok",
                "reason": "",
            })
        for failure in self.failures:
            rows.append({
                "airport": self.airport or "",
                **dict(zip(("p", "d", "q", "P", "D", "Q", "s"), failure.candidate.as_tuple())),
                "aic": np.nan,
                "bic": np.nan,
                "status": "failed",
                "reason": failure.reason,
            })
        frame = pd.DataFrame(rows)
        if frame.empty:
            return frame
        return frame.sort_values(["p", "q", "P", "Q", "d", "D"], kind="stable").reset_index(drop=True)


def enumerate_candidates(
    pq_max: int,
    i_max: int,
    *,
    period: int = 12,
    search_seasonal_ar: bool = False,
) -> List[OrderCandidate]:
    """
    Candidates in nested ascending order p, q, P, Q, d, D.

    The seasonal AR order P stays at 0 unless search_seasonal_ar is set.
    """
    if pq_max < 0 or i_max < 0:
        raise ValueError(f"pq_max and i_max must be >= 0, got {pq_max}, {i_max}")

    seasonal_ar_orders = range(pq_max + 1) if search_seasonal_ar else (0,)
    candidates: List[OrderCandidate] = []
    for p in range(pq_max + 1):
        for q in range(pq_max + 1):
            for P in seasonal_ar_orders:
                for Q in range(pq_max + 1):
                    for d in range(i_max + 1):
                        for D in range(i_max + 1):
                            candidates.append(OrderCandidate(p, d, q, P, D, Q, period))
    return candidates


def score_candidate(
    series: pd.Series,
    candidate: OrderCandidate,
    fit_fn: Callable[..., Tuple[Any, List[str]]],
    airport: Optional[str] = None,
) -> Union[ScoredFit, CandidateFailure]:
    """Fit one candidate; convergence failures come back as CandidateFailure."""
    try:
        fit, warnings_list = fit_fn(series, candidate, airport=airport)
    except FitConvergenceError as exc:
        return CandidateFailure(candidate=candidate, reason=exc.detail, warnings=tuple(exc.warnings))

    aic = float(fit.aic)
    bic = float(fit.bic)
    if not (np.isfinite(aic) and np.isfinite(bic)):
        return CandidateFailure(
            candidate=candidate,
            reason=f"non-finite information criterion (aic={aic}, bic={bic})",
            warnings=tuple(warnings_list),
        )
    return ScoredFit(candidate=candidate, aic=aic, bic=bic, warnings=tuple(warnings_list))


def _keep_lower(best: Optional[ScoredFit], challenger: ScoredFit, criterion: str) -> ScoredFit:
    # Strict comparison: on ties the earlier candidate is kept
    if best is None or challenger.criterion(criterion) < best.criterion(criterion):
        return challenger
    return best


def reduce_scored_fits(scored: Iterable[ScoredFit]) -> Tuple[Optional[ScoredFit], Optional[ScoredFit]]:
    """Fold scored fits in order into the (best-by-AIC, best-by-BIC) pair."""
    return reduce(
        lambda pair, fit: (_keep_lower(pair[0], fit, "aic"), _keep_lower(pair[1], fit, "bic")),
        scored,
        (None, None),
    )


class OrderSearch:
    """Exhaustive AIC/BIC grid search over SARIMA orders for one series."""

    def __init__(
        self,
        *,
        pq_max: int = 2,
        i_max: int = 1,
        period: int = 12,
        search_seasonal_ar: bool = False,
        n_jobs: int = 1,
        maxiter: int = 200,
        max_retries: int = 2,
        fit_fn: Optional[Callable[..., Tuple[Any, List[str]]]] = None,
        verbose: bool = False,
    ) -> None:
        self.pq_max = pq_max
        self.i_max = i_max
        self.period = period
        self.search_seasonal_ar = search_seasonal_ar
        self.n_jobs = n_jobs
        self.verbose = verbose
        self.fit_fn = fit_fn or partial(fit_sarima, maxiter=maxiter, max_retries=max_retries)

    def candidates(self) -> List[OrderCandidate]:
        return enumerate_candidates(
            self.pq_max,
            self.i_max,
            period=self.period,
            search_seasonal_ar=self.search_seasonal_ar,
        )

    def run(self, series: pd.Series, airport: Optional[str] = None) -> OrderSearchResult:
        """Score every candidate against the series and pick the AIC and BIC minima."""
        label = airport or (series.name if isinstance(series.name, str) else None)
        if series.isna().any():
            raise ValueError(f"series for {label or 'order search'} contains undefined values")
        if len(series) < 2 * self.period:
            raise InsufficientDataError(
                f"order search needs {2 * self.period} observations, got {len(series)}",
                airport=label,
                operation="order_search",
            )

        candidates = self.candidates()
        if self.n_jobs == 1:
            outcomes = [score_candidate(series, candidate, self.fit_fn, label) for candidate in candidates]
        else:
            # Parallel preserves input order, keeping the fold deterministic
            outcomes = Parallel(n_jobs=self.n_jobs)(
                delayed(score_candidate)(series, candidate, self.fit_fn, label)
                for candidate in candidates
            )

        scored = [outcome for outcome in outcomes if isinstance(outcome, ScoredFit)]
        failures = [outcome for outcome in outcomes if isinstance(outcome, CandidateFailure)]

        if failures:
            print(
                f"Warning: {label or 'series'}: {len(failures)} of {len(candidates)} "
                "candidate orders excluded from the minimum search"
            )
        if self.verbose:
            for failure in failures:
                print(f"  - {failure.candidate.label()}: {failure.reason}")

        best_aic, best_bic = reduce_scored_fits(scored)
        if best_aic is None or best_bic is None:
            raise FitConvergenceError(
                f"none of {len(candidates)} candidate orders converged",
                warnings_list=[failure.reason for failure in failures],
                airport=label,
                operation="order_search",
            )

        return OrderSearchResult(
            airport=label,
            best_aic=SearchResult("aic", best_aic.candidate, best_aic.aic),
            best_bic=SearchResult("bic", best_bic.candidate, best_bic.bic),
            scored=scored,
            failures=failures,
            n_obs=len(series),
        )


def _run_single(search: OrderSearch, airport: str, series: pd.Series) -> OrderSearchResult:
    print(f"Searching {len(search.candidates())} SARIMA orders for {airport}...")
    result = search.run(series, airport=airport)
    print(
        f"  -> {airport}: AIC {result.best_aic.candidate.label()} ({result.best_aic.value:.2f}), "
        f"BIC {result.best_bic.candidate.label()} ({result.best_bic.value:.2f}), "
        f"{len(result.failures)} excluded"
    )
    return result


def select_orders(
    series_by_airport: Mapping[str, pd.Series],
    search: Optional[OrderSearch] = None,
    *,
    n_jobs: int = 1,
) -> List[OrderSearchResult]:
    """Run the same search independently for each airport, optionally across workers."""
    search = search or OrderSearch()
    items = list(series_by_airport.items())
    if n_jobs == 1:
        return [_run_single(search, airport, series) for airport, series in items]
    return list(
        Parallel(n_jobs=n_jobs)(delayed(_run_single)(search, airport, series) for airport, series in items)
    )


def results_to_dataframe(results: Iterable[OrderSearchResult]) -> pd.DataFrame:
    """Flatten selection results into a tabular DataFrame."""
    return pd.DataFrame([res.to_dict() for res in results])


def grid_to_dataframe(results: Iterable[OrderSearchResult]) -> pd.DataFrame:
    frames = [res.grid_frame() for res in results]
    frames = [frame for frame in frames if not frame.empty]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


__all__ = [
    "CandidateFailure",
    "OrderSearch",
    "OrderSearchResult",
    "ScoredFit",
    "SearchResult",
    "enumerate_candidates",
    "grid_to_dataframe",
    "reduce_scored_fits",
    "results_to_dataframe",
    "score_candidate",
    "select_orders",
]
