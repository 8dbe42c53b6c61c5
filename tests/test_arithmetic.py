import pytest

from obbyscript.runtime.arithmetic import apply_operator, evaluate_arithmetic, to_int


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1 + 2", 3),
        ("2 + 3 * 4", 20),
        ("10 - 4 - 3", 3),
        ("-5 + 2", -3),
        ("7 / 2", 3),
        ("-7 / 2", -3),
        ("9 / 0", 9),
        ("abc + 4", 4),
        ("", 0),
    ],
)
def test_evaluate_arithmetic_left_to_right(text, expected):
    assert evaluate_arithmetic(text) == expected


def test_to_int_defaults_to_zero():
    assert to_int(" 42 ") == 42
    assert to_int("nope") == 0


def test_division_truncates_toward_zero():
    assert apply_operator(-9, "/", 4) == -2
    assert apply_operator(9, "/", -4) == -2
    assert apply_operator(5, "/", 0) == 5
