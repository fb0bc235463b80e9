import pytest

from finance_tracker.services.rates import RateSource, RateTable, build_fallback_table


def test_rate_table_normalizes_codes_and_is_read_only() -> None:
    table = RateTable(rates={" usd ": 1, "inr": "85.5"}, base="usd")

    assert table.base == "USD"
    assert table.to_dict() == {"USD": 1.0, "INR": 85.5}
    assert "INR" in table
    assert "ZZZ" not in table
    with pytest.raises(TypeError):
        table.rates["INR"] = 90.0  # type: ignore[index]


def test_zero_rate_counts_as_missing() -> None:
    table = RateTable(rates={"USD": 1, "XXX": 0})

    assert table.get("XXX") is None
    assert "XXX" not in table
    assert len(table) == 2


def test_fallback_table_is_tagged() -> None:
    table = build_fallback_table({"USD": 1, "EUR": 0.92})

    assert table.is_fallback
    assert table.source == RateSource.fallback
    assert table.get("EUR") == 0.92
