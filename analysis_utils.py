"""
Shared utilities for loading and cleaning airport passenger statistics.

These helpers read the raw spreadsheets (long or Eurostat-style wide
layout), coerce passenger counts under an explicit missing-value policy,
attach country / EU lookups from the airport catalog, persist the cleaned
long-format table and slice it into one monthly series per airport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from errors import InsufficientDataError, MissingMappingError

CLEAN_COLUMNS: Tuple[str, ...] = ("Airport", "Country", "Date", "Passengers")
MISSING_VALUE_POLICIES: Tuple[str, ...] = ("drop", "interpolate", "zero")

# Header spellings seen across the source spreadsheets.
COLUMN_ALIASES: Dict[str, str] = {
    "airport": "Airport",
    "airport_code": "Airport",
    "rep_airp": "Airport",
    "airp_pr": "Airport",
    "icao": "Airport",
    "country": "Country",
    "date": "Date",
    "month": "Date",
    "period": "Date",
    "time": "Date",
    "passengers": "Passengers",
    "passenger_count": "Passengers",
    "pas": "Passengers",
    "value": "Passengers",
    "obs_value": "Passengers",
}

_YEAR_MONTH_PATTERN = r"^(\d{4})[-/Mm](\d{1,2})(?!\d)"


@dataclass
class CleanDataset:
    """Cleaned long-format passenger table plus coercion bookkeeping."""

    data: pd.DataFrame
    rejected_rows: int = 0
    missing_values: int = 0
    rejected_examples: List[str] = field(default_factory=list)


def _normalize_header(column: object) -> str:
    text = str(column).strip()
    # Eurostat exports label the first column "rep_airp\time"
    if "\\" in text:
        text = text.split("\\", 1)[0]
    return COLUMN_ALIASES.get(text.lower(), text)


def normalize_month_index(month_series: pd.Series) -> pd.Series:
    """Convert a heterogeneous month column into month-start timestamps."""
    if month_series.empty:
        return pd.to_datetime(month_series)

    if pd.api.types.is_datetime64_any_dtype(month_series):
        parsed = month_series
    else:
        text = month_series.astype(str).str.strip()
        parts = text.str.extract(_YEAR_MONTH_PATTERN)
        year_month = parts[0] + "-" + parts[1].str.zfill(2)
        parsed = pd.to_datetime(year_month, format="%Y-%m", errors="coerce")

        unresolved_mask = parsed.isna() & month_series.notna()
        if unresolved_mask.any():
            numeric_candidates = pd.to_numeric(text[unresolved_mask], errors="coerce")
            excel_mask = numeric_candidates.notna()
            if excel_mask.any():
                excel_dates = pd.to_datetime("1899-12-30") + pd.to_timedelta(
                    numeric_candidates[excel_mask].astype(int),
                    unit="D",
                )
                parsed.loc[numeric_candidates[excel_mask].index] = excel_dates.values

        remaining = parsed.isna() & month_series.notna()
        if remaining.any():
            samples = month_series[remaining].astype(str).unique().tolist()
            preview = ", ".join(samples[:5])
            raise ValueError(f"Unable to parse Date values: {preview}")

    return parsed.dt.to_period("M").dt.to_timestamp()


def _is_month_header(column: object) -> bool:
    return bool(pd.Series([str(column).strip()]).str.match(_YEAR_MONTH_PATTERN).iloc[0])


def _read_table(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if path.suffix.lower() in (".xlsx", ".xls", ".xlsm"):
        return pd.read_excel(path, dtype=object)
    return pd.read_csv(path, dtype=object)


def load_passenger_table(path_or_data: Union[str, Path, pd.DataFrame]) -> pd.DataFrame:
    """
    Load raw passenger statistics into long format (Airport, Date, Passengers).

    Wide spreadsheets (one row per airport, one column per month) are melted;
    passenger values are left untouched for coerce_passenger_values.
    """
    if isinstance(path_or_data, pd.DataFrame):
        data = path_or_data.copy()
    else:
        data = _read_table(path_or_data)

    data = data.rename(columns={column: _normalize_header(column) for column in data.columns})

    if "Airport" not in data.columns:
        raise ValueError("Passenger data missing required column: Airport")

    if "Date" not in data.columns:
        month_columns = [column for column in data.columns if _is_month_header(column)]
        if not month_columns:
            raise ValueError(
                "Passenger data has no Date column and no month-named columns to melt"
            )
        id_columns = [column for column in ("Airport", "Country") if column in data.columns]
        data = data.melt(
            id_vars=id_columns,
            value_vars=month_columns,
            var_name="Date",
            value_name="Passengers",
        )

    missing = {"Airport", "Date", "Passengers"} - set(data.columns)
    if missing:
        raise ValueError(f"Passenger data missing required columns: {sorted(missing)}")

    data["Airport"] = data["Airport"].astype(str).str.strip()
    data = data[~data["Airport"].isin(["", "nan", "None"])].copy()
    data["Date"] = normalize_month_index(data["Date"])

    keep = [column for column in ("Airport", "Country", "Date", "Passengers") if column in data.columns]
    return data[keep].sort_values(["Airport", "Date"]).reset_index(drop=True)


def coerce_passenger_values(
    data: pd.DataFrame,
    *,
    missing_marker: str = ":",
    policy: str = "interpolate",
    value_col: str = "Passengers",
) -> Tuple[pd.DataFrame, int, int, List[str]]:
    """
    Coerce passenger counts to floats.

    The missing marker and blanks become NaN (0.0 under the "zero" policy).
    Any other non-numeric or negative entry is rejected and its row dropped.
    Returns (coerced, rejected_rows, missing_values, rejected_examples).
    """
    if policy not in MISSING_VALUE_POLICIES:
        raise ValueError(f"policy must be one of {MISSING_VALUE_POLICIES}, got {policy!r}")

    values = data[value_col].astype("string").str.strip().fillna("").astype(str)
    missing_mask = (
        values.eq("")
        | values.eq(missing_marker)
        | values.str.lower().isin(["nan", "none", "<na>", "nat"])
    )
    cleaned = values.str.replace(r"[,\s]", "", regex=True).where(~missing_mask, np.nan)
    numeric = pd.to_numeric(cleaned, errors="coerce")

    rejected_mask = ~missing_mask & (numeric.isna() | (numeric < 0))
    rejected_examples = values[rejected_mask].unique().tolist()[:5]

    coerced = data.loc[~rejected_mask].copy()
    coerced[value_col] = numeric[~rejected_mask].astype(float)
    if policy == "zero":
        coerced[value_col] = coerced[value_col].fillna(0.0)

    return coerced, int(rejected_mask.sum()), int(missing_mask.sum()), rejected_examples


def attach_countries(
    data: pd.DataFrame,
    catalog: Mapping[str, Union[str, Tuple[str, bool]]],
) -> pd.DataFrame:
    """Attach the Country column from an airport catalog; unmatched airports are fatal."""
    country_lookup: Dict[str, str] = {}
    for airport, entry in catalog.items():
        country = entry[0] if isinstance(entry, tuple) else entry
        country_lookup[str(airport).strip()] = str(country).strip()

    mapped = data.copy()
    mapped["Country"] = mapped["Airport"].map(country_lookup)

    unmatched = sorted(mapped.loc[mapped["Country"].isna(), "Airport"].unique().tolist())
    if unmatched:
        raise MissingMappingError(
            f"{len(unmatched)} airport(s) have no country association: {', '.join(unmatched[:10])}",
            missing_keys=unmatched,
            operation="attach_countries",
        )
    return mapped


def clean_passenger_data(
    raw: pd.DataFrame,
    catalog: Mapping[str, Union[str, Tuple[str, bool]]],
    *,
    missing_marker: str = ":",
    policy: str = "interpolate",
) -> CleanDataset:
    """Coerce values, attach countries and collapse duplicate (Airport, Date) rows."""
    coerced, rejected, missing, examples = coerce_passenger_values(
        raw,
        missing_marker=missing_marker,
        policy=policy,
    )
    if rejected:
        print(
            f"Warning: rejected {rejected} passenger row(s) with non-numeric values; "
            f"examples: {', '.join(map(str, examples))}"
        )

    if "Country" in coerced.columns:
        coerced = coerced.drop(columns=["Country"])
    with_country = attach_countries(coerced, catalog)

    combined = (
        with_country.groupby(["Airport", "Country", "Date"], as_index=False)["Passengers"]
        .sum(min_count=1)
        .sort_values(["Airport", "Date"])
        .reset_index(drop=True)
    )

    return CleanDataset(
        data=combined[list(CLEAN_COLUMNS)],
        rejected_rows=rejected,
        missing_values=missing,
        rejected_examples=[str(example) for example in examples],
    )


def write_clean_dataset(data: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Persist the cleaned table with exactly the Airport, Country, Date, Passengers columns."""
    missing = set(CLEAN_COLUMNS) - set(data.columns)
    if missing:
        raise ValueError(f"Clean dataset missing required columns: {sorted(missing)}")

    output = data[list(CLEAN_COLUMNS)].copy()
    output["Date"] = pd.to_datetime(output["Date"]).dt.strftime("%Y-%m-%d")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    output.to_csv(path, index=False)
    return path


def read_clean_dataset(path: Union[str, Path]) -> pd.DataFrame:
    data = pd.read_csv(path, dtype={"Airport": str, "Country": str})
    data["Date"] = normalize_month_index(data["Date"])
    data["Passengers"] = pd.to_numeric(data["Passengers"], errors="coerce")
    return data


def build_series(
    table: pd.DataFrame,
    airport: str,
    start: Union[str, pd.Timestamp],
    end: Union[str, pd.Timestamp],
    *,
    missing_policy: str = "interpolate",
    period: int = 12,
    airport_col: str = "Airport",
    date_col: str = "Date",
    value_col: str = "Passengers",
) -> pd.Series:
    """
    Slice one airport's monthly passenger series over [start, end].

    Months without a usable value are undefined. "drop" removes them,
    "interpolate" removes them then fills internal gaps linearly (leading and
    trailing gaps are trimmed), "zero" fills them with 0. At least
    2 * period observed values are required.
    """
    if missing_policy not in MISSING_VALUE_POLICIES:
        raise ValueError(
            f"missing_policy must be one of {MISSING_VALUE_POLICIES}, got {missing_policy!r}"
        )

    start_ts = pd.Timestamp(start).to_period("M").to_timestamp()
    end_ts = pd.Timestamp(end).to_period("M").to_timestamp()
    if end_ts < start_ts:
        raise ValueError(f"Window end {end_ts.date()} precedes start {start_ts.date()}")

    rows = table.loc[table[airport_col].astype(str).str.strip() == airport]
    if rows.empty:
        raise MissingMappingError(
            "No passenger rows found",
            missing_keys=[airport],
            airport=airport,
            operation="build_series",
        )

    dates = rows[date_col]
    if not pd.api.types.is_datetime64_any_dtype(dates):
        dates = normalize_month_index(dates)
    else:
        dates = dates.dt.to_period("M").dt.to_timestamp()

    monthly = (
        pd.Series(pd.to_numeric(rows[value_col], errors="coerce").to_numpy(), index=dates.to_numpy())
        .groupby(level=0)
        .sum(min_count=1)
    )
    full_index = pd.date_range(start=start_ts, end=end_ts, freq="MS")
    series = monthly.reindex(full_index).astype(float)
    series.name = airport

    minimum = 2 * period
    if missing_policy == "zero":
        series = series.fillna(0.0)
        observed = len(series)
    else:
        observed = int(series.notna().sum())

    if observed < minimum:
        raise InsufficientDataError(
            f"{observed} observed months in {start_ts:%Y-%m}..{end_ts:%Y-%m}; need at least {minimum}",
            airport=airport,
            operation="build_series",
        )

    if missing_policy == "drop" and series.isna().any():
        series = series.dropna()
    elif missing_policy == "interpolate" and series.isna().any():
        series = series.loc[series.first_valid_index() : series.last_valid_index()]
        series = series.interpolate(method="linear")

    return series


def to_regular_months(series: pd.Series) -> pd.Series:
    """
    Reindex a month-stamped series onto a gap-free month-start grid.

    Months absent from the index (e.g. removed by the "drop" policy) come
    back as NaN, so positional lags line up with calendar months again.
    Series without a DatetimeIndex are returned unchanged.
    """
    if not isinstance(series.index, pd.DatetimeIndex) or series.empty:
        return series
    months = series.index.to_period("M").to_timestamp()
    regular = pd.Series(series.to_numpy(dtype=float), index=months, name=series.name)
    return regular.reindex(pd.date_range(months.min(), months.max(), freq="MS"))


def missing_months(series: pd.Series) -> int:
    """Calendar months between the first and last observation that have no value."""
    if not isinstance(series.index, pd.DatetimeIndex) or series.empty:
        return 0
    return int(to_regular_months(series).isna().sum())


def iter_airport_series(
    table: pd.DataFrame,
    airports: Iterable[str],
    start: Union[str, pd.Timestamp],
    end: Union[str, pd.Timestamp],
    *,
    missing_policy: str = "interpolate",
    period: int = 12,
) -> Iterable[Tuple[str, pd.Series]]:
    """Yield (airport, series) pairs for each requested airport."""
    for airport in airports:
        yield airport, build_series(
            table,
            airport,
            start,
            end,
            missing_policy=missing_policy,
            period=period,
        )


def available_airports(table: pd.DataFrame, requested: Optional[Iterable[str]] = None) -> List[str]:
    """Airports present in the cleaned table, optionally restricted to a requested subset."""
    present = sorted(table["Airport"].astype(str).str.strip().unique().tolist())
    if requested is None:
        return present
    requested_list = [str(item).strip() for item in requested if str(item).strip()]
    unknown = [item for item in requested_list if item not in present]
    if unknown:
        raise MissingMappingError(
            f"Requested airport(s) not in passenger data: {', '.join(unknown)}",
            missing_keys=unknown,
            operation="select_airports",
        )
    return requested_list


__all__ = [
    "CLEAN_COLUMNS",
    "MISSING_VALUE_POLICIES",
    "CleanDataset",
    "attach_countries",
    "available_airports",
    "build_series",
    "clean_passenger_data",
    "coerce_passenger_values",
    "iter_airport_series",
    "load_passenger_table",
    "missing_months",
    "read_clean_dataset",
    "to_regular_months",
    "write_clean_dataset",
]
