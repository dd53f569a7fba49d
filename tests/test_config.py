"""
Tests for the managed airport catalog.
"""

import pytest

from config import AirportTrafficConfig


def test_catalog_loads_countries_and_manual_orders(catalog_csv):
    config = AirportTrafficConfig(catalog_path=catalog_csv)

    assert config.AIRPORTS == ("LHR", "CDG")
    assert config.AIRPORT_TO_COUNTRY == {"LHR": "UK", "CDG": "FR"}
    assert config.AIRPORT_IS_EU == {"LHR": False, "CDG": True}
    assert config.SARIMA_PARAMS == {"CDG": (1, 1, 1, 0, 1, 1, 12)}
    assert config.country_catalog()["CDG"] == ("FR", True)


def test_catalog_skips_incomplete_and_duplicate_rows(tmp_path, capsys):
    path = tmp_path / "catalog.csv"
    path.write_text(
        "airport,country,eu_member\n"
        "LHR,UK,no\n"
        "AMS,,yes\n"
        "LHR,UK,no\n"
        "FRA,DE,maybe\n",
        encoding="utf-8",
    )

    config = AirportTrafficConfig(catalog_path=path)

    assert config.AIRPORTS == ("LHR",)
    assert len(config.skipped_airports) == 3
    assert "Skipping incomplete airport catalog entries" in capsys.readouterr().out


def test_catalog_missing_required_column(tmp_path):
    path = tmp_path / "catalog.csv"
    path.write_text("airport,country\nLHR,UK\n", encoding="utf-8")

    with pytest.raises(ValueError, match="eu_member"):
        AirportTrafficConfig(catalog_path=path)


def test_catalog_ignores_negative_manual_order(tmp_path, capsys):
    path = tmp_path / "catalog.csv"
    path.write_text(
        "airport,country,eu_member,sarima_p,sarima_d,sarima_q,sarima_P,sarima_D,sarima_Q,sarima_s\n"
        "LHR,UK,0,1,-1,1,0,1,1,12\n",
        encoding="utf-8",
    )

    config = AirportTrafficConfig(catalog_path=path)

    assert config.AIRPORTS == ("LHR",)
    assert config.SARIMA_PARAMS == {}
    assert len(config.skipped_airports) == 1
    assert "manual order ignored" in config.skipped_airports[0]
    assert "negative" in config.skipped_airports[0]
    assert "manual order ignored" in capsys.readouterr().out


def test_missing_catalog_file_warns(tmp_path, capsys):
    config = AirportTrafficConfig(catalog_path=tmp_path / "absent.csv")

    assert config.AIRPORTS == ()
    assert "not found" in capsys.readouterr().out
