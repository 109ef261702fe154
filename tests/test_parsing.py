import pytest

from gastos.backend.parsing import collapse_spaces
from gastos.backend.parsing import fold_text
from gastos.backend.parsing import normalize_amount


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("150k", 150000),
        ("150K", 150000),
        ("45.5k", 45500),
        ("45,5k", 45500),
        ("150 k", 150000),
        ("45.000", 45000),
        ("45,000", 45000),
        ("45000", 45000),
        ("$ 1.250.000", 1250000),
        ("-45.000", 45000),
        ("20000 pesos", 20000),
    ],
)
def test_normalize_amount(raw, expected):
    assert normalize_amount(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", None, "-", "$", "4-5"])
def test_normalize_amount_rejects_non_numbers(raw):
    assert normalize_amount(raw) is None


def test_separators_are_grouping_only():
    assert normalize_amount("45.000") == normalize_amount("45,000") == normalize_amount("45000")
    assert normalize_amount("12.50") == 1250


def test_zero_is_returned_as_zero():
    assert normalize_amount("0") == 0


def test_fold_text_keeps_length():
    original = "Miércoles Ñame CAFÉ"
    folded = fold_text(original)
    assert folded == "miercoles name cafe"
    assert len(folded) == len(original)


def test_collapse_spaces():
    assert collapse_spaces("  almuerzo \t en   casa \n") == "almuerzo en casa"


def test_overflowing_amounts_are_rejected():
    assert normalize_amount("9" * 400 + "k") is None
    assert normalize_amount("9" * 400) is None
    assert normalize_amount("1" + "0" * 15) is None
    assert normalize_amount("999.999.999.999.999") == 999_999_999_999_999
