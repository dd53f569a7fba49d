"""
Main script to run the airport passenger-traffic SARIMA report
Execute this file to clean the data, diagnose, select orders and forecast every airport
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from analysis_utils import (
    available_airports,
    build_series,
    clean_passenger_data,
    load_passenger_table,
    write_clean_dataset,
)
from check_stationarity import StationarityAnalyzer
from config import AirportTrafficConfig
from errors import TrafficAnalysisError
from policy_indicators import annotate_with_policies, load_policy_indicators, policy_summary
from sarima_auto_selector import (
    OrderSearch,
    OrderSearchResult,
    grid_to_dataframe,
    results_to_dataframe,
)
from sarima_model import ForecastOutput, ForecastRunner, OrderCandidate


class AirportTrafficReport:
    """Runs the cleaning -> diagnostics -> order search -> forecast pipeline per airport."""

    def __init__(self, config: Optional[AirportTrafficConfig] = None, airports: Optional[List[str]] = None):
        self.config = config or AirportTrafficConfig()
        self.requested_airports = airports
        self.clean_data: Optional[pd.DataFrame] = None
        self.series: Dict[str, pd.Series] = {}
        self.stationarity_rows: List[Dict[str, Any]] = []
        self.search_results: Dict[str, OrderSearchResult] = {}
        self.forecasts: Dict[str, ForecastOutput] = {}
        self.order_source: Dict[str, str] = {}

        self.analyzer = StationarityAnalyzer(
            period=self.config.SEASONAL_PERIOD,
            nlags=self.config.ACF_LAGS,
            z=self.config.SIGNIFICANCE_Z,
            alpha=self.config.ADF_ALPHA,
        )
        self.search = OrderSearch(
            pq_max=self.config.PQ_MAX,
            i_max=self.config.I_MAX,
            period=self.config.SEASONAL_PERIOD,
            search_seasonal_ar=self.config.SEARCH_SEASONAL_AR,
            n_jobs=self.config.N_JOBS,
            maxiter=self.config.MAXITER,
            max_retries=self.config.MAX_RETRIES,
            verbose=True,
        )
        self.runner = ForecastRunner(
            confidence_level=self.config.CONFIDENCE_LEVEL,
            ljung_box_lags=self.config.LJUNG_BOX_LAGS,
            enforce_non_negative=self.config.ENFORCE_NON_NEGATIVE_FORECASTS,
            maxiter=self.config.MAXITER,
            max_retries=self.config.MAX_RETRIES,
            period=self.config.SEASONAL_PERIOD,
        )

    @property
    def results_dir(self) -> Path:
        return Path(self.config.RESULTS_DIR)

    def load_and_clean(self) -> pd.DataFrame:
        """Load raw passenger statistics, attach countries and persist the cleaned CSV."""
        print("Loading and cleaning passenger data...")
        raw = load_passenger_table(self.config.DATA_FILE)
        cleaned = clean_passenger_data(
            raw,
            self.config.country_catalog(),
            missing_marker=self.config.MISSING_MARKER,
            policy=self.config.MISSING_VALUE_POLICY,
        )
        print(
            f"  -> {len(cleaned.data)} rows, {cleaned.missing_values} missing values "
            f"({self.config.MISSING_VALUE_POLICY}), {cleaned.rejected_rows} rejected"
        )
        self.clean_data = cleaned.data

        if self.config.SAVE_RESULTS:
            path = write_clean_dataset(cleaned.data, self.results_dir / self.config.CLEAN_DATA_FILE)
            print(f"  -> Cleaned data written to {path}")

        if self.config.USE_POLICY_INDICATORS:
            indicators = load_policy_indicators(self.config.POLICY_FILE)
            annotated = annotate_with_policies(cleaned.data, indicators)
            if self.config.SAVE_RESULTS:
                annotated_path = self.results_dir / "policy_annotated.csv"
                annotated.to_csv(annotated_path, index=False)
                policy_summary(annotated).to_csv(self.results_dir / "policy_summary.csv", index=False)
                print(f"  -> Policy-annotated data written to {annotated_path}")

        return self.clean_data

    def resolve_order(self, airport: str, result: OrderSearchResult) -> OrderCandidate:
        """Manual catalog order wins; otherwise the configured criterion's minimum."""
        manual = self.config.SARIMA_PARAMS.get(airport)
        if manual:
            self.order_source[airport] = "catalog"
            return OrderCandidate.from_tuple(manual, period=self.config.SEASONAL_PERIOD)
        self.order_source[airport] = self.config.SELECTION_CRITERION
        return result.best(self.config.SELECTION_CRITERION).candidate

    def process_airport(self, airport: str) -> None:
        print(f"\nProcessing {airport}...")
        print("-" * 30)

        series = build_series(
            self.clean_data,
            airport,
            self.config.WINDOW_START,
            self.config.WINDOW_END,
            missing_policy=self.config.MISSING_VALUE_POLICY,
            period=self.config.SEASONAL_PERIOD,
        )
        self.series[airport] = series
        print(f"Series {series.index[0]:%Y-%m}..{series.index[-1]:%Y-%m} ({len(series)} months)")

        level_report = self.analyzer.analyze(series, airport=airport)
        print(
            f"ADF p-value = {level_report.adf_pvalue:.4f} "
            f"({'unit root rejected' if level_report.rejects_unit_root(self.config.ADF_ALPHA) else 'unit root not rejected'})"
        )
        for report in self.analyzer.differencing_table(
            series, airport=airport, max_d=self.config.I_MAX, max_D=self.config.I_MAX
        ):
            self.stationarity_rows.append(report.to_dict(alpha=self.config.ADF_ALPHA))

        result = self.search.run(series, airport=airport)
        self.search_results[airport] = result
        print(
            f"Best by AIC: {result.best_aic.candidate.label()} ({result.best_aic.value:.2f}); "
            f"best by BIC: {result.best_bic.candidate.label()} ({result.best_bic.value:.2f}); "
            f"{len(result.failures)}/{result.n_candidates} candidates excluded"
        )

        candidate = self.resolve_order(airport, result)
        output = self.runner.run(series, candidate, self.config.FORECAST_MONTHS, airport=airport)
        self.forecasts[airport] = output
        print(
            f"Ljung-Box({output.diagnostics.lags}) p-value = {output.diagnostics.lb_pvalue:.4f}"
        )

        if self.config.OUTPUT_PLOTS:
            self.plot_airport(airport, series, level_report, output)

    def plot_airport(self, airport, series, level_report, output) -> None:
        from report_plots import (
            plot_correlogram,
            plot_decomposition,
            plot_forecast,
            plot_residuals,
            plot_series,
        )

        plots_dir = Path(self.config.PLOTS_DIR)
        plot_series(series, airport, plots_dir)
        plot_decomposition(level_report, airport, plots_dir)
        plot_correlogram(series, airport, plots_dir, nlags=self.config.ACF_LAGS)
        plot_forecast(series, output, airport, plots_dir)
        plot_residuals(output, airport, plots_dir)

    def run(self) -> List[Dict[str, Any]]:
        """Main method to run the complete report pipeline"""
        print("Starting airport passenger SARIMA report...")
        print("=" * 50)

        self.load_and_clean()
        airports = available_airports(self.clean_data, self.requested_airports)

        for airport in airports:
            self.process_airport(airport)

        if self.config.SAVE_RESULTS:
            self.save_results()

        records: List[Dict[str, Any]] = []
        for output in self.forecasts.values():
            records.extend(output.forecast_records())
        return records

    def save_results(self) -> None:
        out = self.results_dir
        out.mkdir(parents=True, exist_ok=True)

        pd.DataFrame(self.stationarity_rows).to_csv(out / "stationarity_diagnostics.csv", index=False)

        selection = results_to_dataframe(self.search_results.values())
        if not selection.empty:
            selection["forecast_order"] = selection["airport"].map(
                lambda airport: self.forecasts[airport].candidate.as_tuple() if airport in self.forecasts else ()
            )
            selection["order_source"] = selection["airport"].map(self.order_source)
        selection.to_csv(out / "order_selection.csv", index=False)
        grid_to_dataframe(self.search_results.values()).to_csv(out / "order_search_grid.csv", index=False)

        forecast_rows = [row for output in self.forecasts.values() for row in output.forecast_records()]
        pd.DataFrame(forecast_rows).to_csv(out / "forecasts.csv", index=False)
        pd.DataFrame([output.diagnostics_record() for output in self.forecasts.values()]).to_csv(
            out / "residual_diagnostics.csv", index=False
        )
        print(f"\nResults saved to {out.resolve()}")

    def print_summary(self) -> None:
        print("\n" + "=" * 50)
        print("REPORT SUMMARY")
        print("=" * 50)
        print(f"Airports analysed: {len(self.series)}")
        print(f"Forecasts generated: {len(self.forecasts)}")
        for airport, output in self.forecasts.items():
            print(
                f"  - {airport}: {output.candidate.label()} [{self.order_source.get(airport, '')}] "
                f"AIC={output.aic:.1f} BIC={output.bic:.1f} LB p={output.diagnostics.lb_pvalue:.3f}"
            )
        print("=" * 50)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    defaults = AirportTrafficConfig
    parser = argparse.ArgumentParser(description="Airport passenger-traffic SARIMA report.")
    parser.add_argument("--data", type=str, default=defaults.DATA_FILE, help="Raw passenger spreadsheet or CSV.")
    parser.add_argument("--catalog", type=str, default=str(defaults.AIRPORT_CATALOG_FILE), help="Airport catalog CSV.")
    parser.add_argument("--policies", type=str, default="", help="Optional policy indicator table.")
    parser.add_argument("--airports", type=str, default="", help="Comma separated airport codes (default: all).")
    parser.add_argument("--start", type=str, default=defaults.WINDOW_START)
    parser.add_argument("--end", type=str, default=defaults.WINDOW_END)
    parser.add_argument("--pq-max", type=int, default=defaults.PQ_MAX)
    parser.add_argument("--i-max", type=int, default=defaults.I_MAX)
    parser.add_argument("--criterion", choices=("aic", "bic"), default=defaults.SELECTION_CRITERION)
    parser.add_argument("--seasonal-ar", action="store_true", help="Also search the seasonal AR order P.")
    parser.add_argument("--missing-policy", choices=defaults.MISSING_VALUE_POLICIES, default=defaults.MISSING_VALUE_POLICY)
    parser.add_argument("--horizon", type=int, default=defaults.FORECAST_MONTHS)
    parser.add_argument("--n-jobs", type=int, default=defaults.N_JOBS)
    parser.add_argument("--results-dir", type=str, default=defaults.RESULTS_DIR)
    parser.add_argument("--plots", action="store_true", help="Write per-airport PNG figures.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AirportTrafficConfig:
    config = AirportTrafficConfig(catalog_path=args.catalog)
    config.DATA_FILE = args.data
    config.WINDOW_START = args.start
    config.WINDOW_END = args.end
    config.PQ_MAX = args.pq_max
    config.I_MAX = args.i_max
    config.SELECTION_CRITERION = args.criterion
    config.MISSING_VALUE_POLICY = args.missing_policy
    config.FORECAST_MONTHS = args.horizon
    config.N_JOBS = args.n_jobs
    config.SEARCH_SEASONAL_AR = args.seasonal_ar or config.SEARCH_SEASONAL_AR
    config.RESULTS_DIR = args.results_dir
    config.OUTPUT_PLOTS = args.plots or config.OUTPUT_PLOTS
    if args.policies:
        config.POLICY_FILE = args.policies
        config.USE_POLICY_INDICATORS = True
    return config


def main(argv: Optional[List[str]] = None):
    """
    Main function to execute the airport traffic report
    """
    print("Airport Passenger Traffic SARIMA Report")
    print("=" * 40)

    args = parse_args(argv)
    config = build_config(args)
    requested = [item.strip() for item in args.airports.split(",") if item.strip()] or None

    print("\nCurrent Configuration:")
    print(f"  • Data file: {config.DATA_FILE}")
    print(f"  • Window: {config.WINDOW_START} .. {config.WINDOW_END}")
    print(f"  • Missing values: marker {config.MISSING_MARKER!r}, policy {config.MISSING_VALUE_POLICY}")
    print(
        f"  • Search: PQmax={config.PQ_MAX}, Imax={config.I_MAX}, s={config.SEASONAL_PERIOD}, "
        f"seasonal AR {'on' if config.SEARCH_SEASONAL_AR else 'off'}"
    )
    print(f"  • Forecast months: {config.FORECAST_MONTHS} ({config.CONFIDENCE_LEVEL*100:.0f}% intervals)")

    report = AirportTrafficReport(config, airports=requested)
    try:
        results = report.run()
    except TrafficAnalysisError as exc:
        print(f"\n[ERROR] {exc}")
        sys.exit(1)

    report.print_summary()
    print(f"\n[SUCCESS] Report completed for {len(report.forecasts)} airport(s).")
    return results


if __name__ == "__main__":
    main()
