"""
Tests for travel-policy indicator loading and annotation.
"""

import pandas as pd
import pytest

from policy_indicators import POLICY_COLUMNS, annotate_with_policies, load_policy_indicators, policy_summary


@pytest.fixture
def indicator_frame():
    return pd.DataFrame({
        "airport": ["LHR", "LHR", "LHR"],
        "month": ["2002M01", "2002M02", "2002M02"],
        "bordersmaineuperiod": [1, 0, 1],
        "BordersNonEUPeriod": [0, 0, 0],
        "NegativeTestsPeriod": [0, 1, None],
    })


def test_load_policy_indicators_normalises_headers(indicator_frame):
    indicators = load_policy_indicators(indicator_frame)

    assert list(indicators.columns) == ["Airport", "Date", *POLICY_COLUMNS]
    assert len(indicators) == 2
    february = indicators[indicators["Date"] == pd.Timestamp("2002-02-01")].iloc[0]
    assert february["BordersMainEUPeriod"] == 1
    assert february["NegativeTestsPeriod"] == 1


def test_load_policy_indicators_rejects_non_binary(indicator_frame):
    indicator_frame.loc[0, "BordersNonEUPeriod"] = 2

    with pytest.raises(ValueError, match="BordersNonEUPeriod"):
        load_policy_indicators(indicator_frame)


def test_annotate_with_policies_defaults_to_inactive(passenger_table, indicator_frame, capsys):
    indicators = load_policy_indicators(indicator_frame)
    indicators = pd.concat(
        [indicators, pd.DataFrame([{"Airport": "AMS", "Date": pd.Timestamp("2002-01-01"),
                                    "BordersMainEUPeriod": 1, "BordersNonEUPeriod": 0,
                                    "NegativeTestsPeriod": 0}])],
        ignore_index=True,
    )

    annotated = annotate_with_policies(passenger_table, indicators)

    assert len(annotated) == len(passenger_table)
    lhr_jan = annotated[(annotated["Airport"] == "LHR") & (annotated["Date"] == pd.Timestamp("2002-01-01"))]
    assert lhr_jan["BordersMainEUPeriod"].iloc[0] == 1
    assert annotated.loc[annotated["Airport"] == "CDG", list(POLICY_COLUMNS)].to_numpy().sum() == 0
    assert "AMS" in capsys.readouterr().out

    summary = policy_summary(annotated)
    assert summary.set_index("Airport").loc["LHR", "BordersMainEUPeriod"] == 2
