"""
Airport Traffic SARIMA Configuration
Easily adjustable parameters for the passenger-traffic report
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union


class AirportTrafficConfig:
    """Configuration for the airport SARIMA pipeline backed by a managed airport catalog."""

    BASE_DIR = Path(__file__).resolve().parent
    MANAGED_DATA_DIR = BASE_DIR / "managed_data"
    AIRPORT_CATALOG_FILE = MANAGED_DATA_DIR / "airport_catalog.csv"
    ORDER_COLUMN_NAMES: Tuple[str, ...] = (
        "sarima_p",
        "sarima_d",
        "sarima_q",
        "sarima_P",
        "sarima_D",
        "sarima_Q",
        "sarima_s",
    )
    REQUIRED_CATALOG_COLUMNS: Tuple[str, ...] = (
        "airport",
        "country",
        "eu_member",
    )
    MISSING_VALUE_POLICIES: Tuple[str, ...] = ("drop", "interpolate", "zero")

    # Data configuration
    DATA_FILE = str(MANAGED_DATA_DIR / "airport_passengers.xlsx")
    POLICY_FILE = str(MANAGED_DATA_DIR / "policy_indicators.csv")
    USE_POLICY_INDICATORS = False
    CLEAN_DATA_FILE = "clean_passengers.csv"
    WINDOW_START = "2002-01"
    WINDOW_END = "2019-12"

    # Eurostat-style spreadsheets mark unavailable months with ":"
    MISSING_MARKER = ":"
    MISSING_VALUE_POLICY = "interpolate"

    # Managed metadata containers populated at runtime
    AIRPORTS: Sequence[str] = ()
    AIRPORT_TO_COUNTRY: Dict[str, str] = {}
    AIRPORT_IS_EU: Dict[str, bool] = {}
    SARIMA_PARAMS: Dict[str, Tuple[int, int, int, int, int, int, int]] = {}

    # Order search
    SEASONAL_PERIOD = 12
    PQ_MAX = 2
    I_MAX = 1
    SEARCH_SEASONAL_AR = False
    SELECTION_CRITERION = "aic"
    N_JOBS = 1
    MAXITER = 200
    MAX_RETRIES = 2

    # Stationarity diagnostics
    ACF_LAGS = 36
    SIGNIFICANCE_Z = 1.96
    ADF_ALPHA = 0.05

    # Forecast and residual diagnostics
    FORECAST_MONTHS = 12
    CONFIDENCE_LEVEL = 0.95
    LJUNG_BOX_LAGS = 24
    ENFORCE_NON_NEGATIVE_FORECASTS = True

    # Output configuration
    OUTPUT_PLOTS = False
    SAVE_RESULTS = True
    RESULTS_DIR = "results"
    PLOTS_DIR = "plots"

    def __init__(self, catalog_path: Optional[Union[str, Path]] = None) -> None:
        self.AIRPORTS = ()
        self.AIRPORT_TO_COUNTRY = {}
        self.AIRPORT_IS_EU = {}
        self.SARIMA_PARAMS = {}
        self._skipped_airports: List[str] = []
        self.managed_catalog_path = Path(catalog_path or self.AIRPORT_CATALOG_FILE)

        if self.MISSING_VALUE_POLICY not in self.MISSING_VALUE_POLICIES:
            raise ValueError(
                f"MISSING_VALUE_POLICY must be one of {self.MISSING_VALUE_POLICIES}, "
                f"got {self.MISSING_VALUE_POLICY!r}"
            )

        self._load_managed_catalog()

        if self._skipped_airports:
            print("Skipping incomplete airport catalog entries:")
            for message in self._skipped_airports:
                print(f"  - {message}")

        if not self.AIRPORTS:
            print(
                f"Warning: No airports loaded from {self.managed_catalog_path}. "
                "Country lookups will fail for every airport."
            )

    @property
    def skipped_airports(self) -> List[str]:
        return list(self._skipped_airports)

    def _load_managed_catalog(self) -> None:
        """Populate airport -> country / EU metadata and manual orders from CSV if available."""
        path = self.managed_catalog_path
        if not path.exists():
            print(f"Warning: Airport catalog file not found at {path}")
            return

        with path.open(newline="", encoding="utf-8-sig") as handle:
            reader = csv.DictReader(handle)
            if not reader.fieldnames:
                print(f"Warning: Airport catalog at {path} is missing a header row")
                return

            missing_headers = [
                column for column in self.REQUIRED_CATALOG_COLUMNS if column not in reader.fieldnames
            ]
            if missing_headers:
                raise ValueError(
                    f"Airport catalog missing required column(s): {', '.join(missing_headers)}"
                )
            has_order_columns = all(column in reader.fieldnames for column in self.ORDER_COLUMN_NAMES)

            airports: List[str] = []
            countries: Dict[str, str] = {}
            eu_flags: Dict[str, bool] = {}
            sarima_params: Dict[str, Tuple[int, int, int, int, int, int, int]] = {}

            for line_number, row in enumerate(reader, start=2):
                airport = (row.get("airport") or "").strip()
                label = airport or f"row {line_number}"

                missing_values = [
                    column
                    for column in self.REQUIRED_CATALOG_COLUMNS
                    if not self._has_value(row.get(column))
                ]
                if missing_values:
                    self._skipped_airports.append(
                        f"{label} (blank columns: {', '.join(missing_values)})"
                    )
                    continue

                if airport in countries:
                    self._skipped_airports.append(f"{label} (duplicate row {line_number})")
                    continue

                try:
                    eu_member = self._parse_flag(row.get("eu_member"))
                except ValueError as exc:
                    self._skipped_airports.append(f"{label} ({exc})")
                    continue

                airports.append(airport)
                countries[airport] = str(row.get("country")).strip()
                eu_flags[airport] = eu_member

                # Manual orders are optional; all seven columns must be filled to count
                if has_order_columns and all(
                    self._has_value(row.get(column)) for column in self.ORDER_COLUMN_NAMES
                ):
                    try:
                        sarima_params[airport] = self._parse_sarima_order(row)
                    except ValueError as exc:
                        self._skipped_airports.append(f"{label} (manual order ignored: {exc})")

            self.AIRPORTS = tuple(airports)
            self.AIRPORT_TO_COUNTRY = countries
            self.AIRPORT_IS_EU = eu_flags
            self.SARIMA_PARAMS = sarima_params

    @staticmethod
    def _has_value(value: Optional[Union[str, int, float]]) -> bool:
        """Return True when a catalog entry has a non-blank value."""
        if value is None:
            return False
        if isinstance(value, str):
            return bool(value.strip())
        return True

    @staticmethod
    def _parse_flag(raw_value: Optional[str]) -> bool:
        text = str(raw_value).strip().lower()
        if text in ("1", "true", "yes", "y", "eu"):
            return True
        if text in ("0", "false", "no", "n", "non-eu"):
            return False
        raise ValueError(f"invalid eu_member value '{raw_value}'")

    def _parse_sarima_order(
        self, row: Dict[str, Optional[str]]
    ) -> Tuple[int, int, int, int, int, int, int]:
        """Extract SARIMA order tuple from a catalog row."""
        order_values: List[int] = []
        for column in self.ORDER_COLUMN_NAMES:
            raw = row.get(column) if row else None
            try:
                value = int(float(raw))
            except (TypeError, ValueError) as exc:
                raise ValueError(f"invalid SARIMA order value '{raw}' in column '{column}'") from exc
            if value < 0:
                raise ValueError(f"negative SARIMA order value '{raw}' in column '{column}'")
            order_values.append(value)

        return tuple(order_values)

    def country_catalog(self) -> Dict[str, Tuple[str, bool]]:
        """Airport -> (country, eu_member) lookup used during cleaning."""
        return {
            airport: (self.AIRPORT_TO_COUNTRY[airport], self.AIRPORT_IS_EU.get(airport, False))
            for airport in self.AIRPORTS
        }
