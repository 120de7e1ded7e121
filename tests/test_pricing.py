import pytest

from freshstock_admin.calculator import coerce_number, compute_ledger_values
from freshstock_admin.pricing import (
    QuantityLimits,
    format_currency,
    line_total,
    normalize_quantity,
    round_currency,
    validate_quantity,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(0.74, 0.5), (0.76, 1.0), (3.2, 3.0), (250, 200.0), (-4, 0.5), ("7.5", 7.5), ("abc", 0.5), (None, 0.5)],
)
def test_normalize_quantity_clamps_and_snaps(raw, expected) -> None:
    assert normalize_quantity(raw) == expected


def test_validate_quantity_messages() -> None:
    assert validate_quantity("").message == "Please enter a quantity."
    assert validate_quantity("two").message == "Please enter a valid number."

    out_of_range = validate_quantity(250)
    assert not out_of_range.valid
    assert out_of_range.blocking
    assert out_of_range.normalized == 200.0

    off_step = validate_quantity(1.3)
    assert not off_step.valid
    assert not off_step.blocking
    assert off_step.normalized == 1.5
    assert "multiple of 0.5" in off_step.message

    assert validate_quantity(2.5).valid


def test_custom_limits() -> None:
    limits = QuantityLimits(minimum=1, maximum=10, step=1)
    assert normalize_quantity(0.2, limits) == 1
    assert validate_quantity(11, limits).blocking


def test_currency_rounds_half_up() -> None:
    assert round_currency(2.675) == 2.68
    assert line_total(19.99, 3) == 59.97
    assert line_total(33.335, 1) == 33.34
    assert format_currency(1234.5) == "₹1,234.50"


@pytest.mark.parametrize(
    "values",
    [
        (0, 0, 0, 0, 0),
        (20, 10, 25, 0, 0),
        (12.5, 7.5, 3.25, 1.0, -0.75),
        (5, 0, 40, 0, 0),
    ],
)
def test_ledger_arithmetic(values) -> None:
    yesterday_net, quantity, sale, returned, adjust = values
    result = compute_ledger_values(*values)
    assert result.total == yesterday_net + quantity
    assert result.net_amount == result.total - sale - returned + adjust


def test_oversell_goes_negative() -> None:
    assert compute_ledger_values(5, 0, 40).net_amount == -35


@pytest.mark.parametrize("raw", [None, "", "  ", "n/a", float("nan"), float("inf"), True, object()])
def test_non_numeric_input_counts_as_zero(raw) -> None:
    assert coerce_number(raw) == 0.0
    assert compute_ledger_values(raw, 10, raw, raw, raw).net_amount == 10


def test_numeric_strings_are_accepted() -> None:
    assert coerce_number(" 4.5 ") == 4.5
    assert compute_ledger_values("20", "10", "25").net_amount == 5
