"""
Travel-policy indicator annotations for the airport passenger table.
Loads the per-airport, per-month dummy table and aligns it with the cleaned data.
"""

from pathlib import Path
from typing import Union

import pandas as pd

from analysis_utils import normalize_month_index

POLICY_COLUMNS = ("BordersMainEUPeriod", "BordersNonEUPeriod", "NegativeTestsPeriod")


def load_policy_indicators(path_or_data: Union[str, Path, pd.DataFrame]) -> pd.DataFrame:
    """Load policy dummies from CSV/Excel or a provided DataFrame."""
    if isinstance(path_or_data, pd.DataFrame):
        data = path_or_data.copy()
    elif Path(path_or_data).suffix.lower() in (".xlsx", ".xls"):
        data = pd.read_excel(path_or_data)
    else:
        data = pd.read_csv(path_or_data)

    lookup = {column.lower(): column for column in POLICY_COLUMNS}
    rename_map = {}
    for col in data.columns:
        normalized = str(col).strip().lower()
        if normalized in ("airport", "airport_code", "rep_airp"):
            rename_map[col] = "Airport"
        elif normalized in ("month", "date"):
            rename_map[col] = "Date"
        elif normalized in lookup:
            rename_map[col] = lookup[normalized]

    data = data.rename(columns=rename_map)

    required = {"Airport", "Date", *POLICY_COLUMNS}
    missing = required - set(data.columns)
    if missing:
        raise ValueError(f"Policy indicator data missing required columns: {sorted(missing)}")

    data["Airport"] = data["Airport"].astype(str).str.strip()
    data["Date"] = normalize_month_index(data["Date"])

    for column in POLICY_COLUMNS:
        values = pd.to_numeric(data[column], errors="coerce")
        invalid = (values.isna() & data[column].notna()) | (values.notna() & ~values.isin([0, 1]))
        if invalid.any():
            examples = data.loc[invalid, column].astype(str).unique().tolist()[:5]
            raise ValueError(
                f"Policy indicator {column} must be 0/1; found: {', '.join(examples)}"
            )
        data[column] = values.fillna(0).astype(int)

    # One row per (Airport, Date); any active flag wins
    data = (
        data.groupby(["Airport", "Date"], as_index=False)[list(POLICY_COLUMNS)]
        .max()
        .sort_values(["Airport", "Date"])
        .reset_index(drop=True)
    )
    return data


def annotate_with_policies(table: pd.DataFrame, indicators: pd.DataFrame) -> pd.DataFrame:
    """
    Left-join policy dummies onto the cleaned passenger table by (Airport, Date).

    Months absent from the indicator table carry no active policy (0).
    """
    annotated = table.merge(
        indicators[["Airport", "Date", *POLICY_COLUMNS]],
        on=["Airport", "Date"],
        how="left",
    )
    for column in POLICY_COLUMNS:
        annotated[column] = annotated[column].fillna(0).astype(int)

    unmatched = sorted(set(indicators["Airport"]) - set(table["Airport"]))
    if unmatched:
        print(
            f"Warning: policy indicators reference {len(unmatched)} airport(s) "
            f"absent from passenger data: {', '.join(unmatched[:10])}"
        )
    return annotated


def policy_summary(annotated: pd.DataFrame) -> pd.DataFrame:
    """Months under each policy per airport, for the report tables."""
    return (
        annotated.groupby("Airport", as_index=False)[list(POLICY_COLUMNS)]
        .sum()
        .sort_values("Airport")
        .reset_index(drop=True)
    )
