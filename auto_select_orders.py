"""
Command-line helper to run SARIMA order selection across all airport series.
"""

import argparse
import json
import time
from pathlib import Path

from analysis_utils import available_airports, iter_airport_series, read_clean_dataset
from config import AirportTrafficConfig
from sarima_auto_selector import OrderSearch, grid_to_dataframe, results_to_dataframe, select_orders


def parse_args() -> argparse.Namespace:
    config = AirportTrafficConfig
    parser = argparse.ArgumentParser(description="Grid-search SARIMA orders by AIC and BIC per airport.")
    parser.add_argument(
        "--clean-path",
        type=Path,
        default=Path(config.RESULTS_DIR) / config.CLEAN_DATA_FILE,
        help="Path to the cleaned Airport/Country/Date/Passengers CSV.",
    )
    parser.add_argument(
        "--output-path",
        type=Path,
        default=Path(config.RESULTS_DIR) / "order_selection.csv",
        help="Where to write the per-airport selection summary.",
    )
    parser.add_argument("--airports", type=str, default="", help="Comma separated airport codes (default: all).")
    parser.add_argument("--start", type=str, default=config.WINDOW_START)
    parser.add_argument("--end", type=str, default=config.WINDOW_END)
    parser.add_argument("--pq-max", type=int, default=config.PQ_MAX)
    parser.add_argument("--i-max", type=int, default=config.I_MAX)
    parser.add_argument("--seasonal-ar", action="store_true", help="Also search the seasonal AR order P.")
    parser.add_argument("--criterion", choices=("aic", "bic"), default=config.SELECTION_CRITERION)
    parser.add_argument(
        "--missing-policy",
        choices=config.MISSING_VALUE_POLICIES,
        default=config.MISSING_VALUE_POLICY,
    )
    parser.add_argument("--n-jobs", type=int, default=config.N_JOBS, help="Workers for candidate fits.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = AirportTrafficConfig

    table = read_clean_dataset(args.clean_path)
    requested = [item.strip() for item in args.airports.split(",") if item.strip()] or None
    airports = available_airports(table, requested)

    print("Airports selected:")
    for name in airports:
        print(f"  - {name}")

    search = OrderSearch(
        pq_max=args.pq_max,
        i_max=args.i_max,
        period=config.SEASONAL_PERIOD,
        search_seasonal_ar=args.seasonal_ar or config.SEARCH_SEASONAL_AR,
        n_jobs=args.n_jobs,
        maxiter=config.MAXITER,
        max_retries=config.MAX_RETRIES,
        verbose=True,
    )

    print("\nRunning SARIMA order selection...")
    start_time = time.perf_counter()

    series_by_airport = dict(
        iter_airport_series(
            table,
            airports,
            args.start,
            args.end,
            missing_policy=args.missing_policy,
            period=config.SEASONAL_PERIOD,
        )
    )
    results = select_orders(series_by_airport, search)
    elapsed = time.perf_counter() - start_time

    args.output_path.parent.mkdir(parents=True, exist_ok=True)
    results_to_dataframe(results).to_csv(args.output_path, index=False)
    grid_path = args.output_path.with_name("order_search_grid.csv")
    grid_to_dataframe(results).to_csv(grid_path, index=False)

    print(f"\nSelection results written to {args.output_path.resolve()}")
    print(f"Candidate grid written to {grid_path.resolve()}")

    recommended_orders = {
        result.airport: result.best(args.criterion).candidate.as_tuple() for result in results
    }
    print(f"\nRecommended SARIMA orders by {args.criterion.upper()} (p, d, q, P, D, Q, s):")
    print(json.dumps(recommended_orders, indent=2))

    print(f"\nOrder selection runtime: {elapsed:0.1f} seconds (~{elapsed/60:0.1f} minutes)")


if __name__ == "__main__":
    main()
