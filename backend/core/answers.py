import re
from typing import Optional

NUMERIC_TOLERANCE = 1e-6

# Longest leading decimal literal, the same prefix a browser's parseFloat accepts
_LEADING_NUMBER = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_WHITESPACE = re.compile(r"\s+")
_PARENS = re.compile(r"[()]")


def normalize_answer(text: str) -> str:
    return _WHITESPACE.sub("", text.strip().lower())


def parse_leading_float(text: str) -> Optional[float]:
    """
    Parse the numeric prefix of a string.

    "3.5" -> 3.5, "2x+5" -> 2.0, "x=3" -> None. Unlike float(), "inf" and "nan" are not numbers here.
    """
    match = _LEADING_NUMBER.match(text.lstrip())
    if not match:
        return None
    return float(match.group())


def simplify_expression(text: str) -> str:
    return _WHITESPACE.sub("", _PARENS.sub("", text))


def answers_equivalent(user_answer: Optional[str], correct_answer: Optional[str]) -> bool:
    """
    Approximate answer comparison used for grading and for checking generated options.

    In order, stopping at the first match:
    1. equal after trimming, lowercasing and removing whitespace
    2. both start with a number and the numbers differ by less than 1e-6
    3. equal once parentheses are removed
    Not a symbolic engine: "2x+5" and "5+2x" compare unequal.
    """
    if user_answer is None or correct_answer is None:
        return False

    norm_user = normalize_answer(user_answer)
    norm_correct = normalize_answer(correct_answer)
    if norm_user == norm_correct:
        return True

    user_num = parse_leading_float(norm_user)
    correct_num = parse_leading_float(norm_correct)
    if user_num is not None and correct_num is not None:
        if abs(user_num - correct_num) < NUMERIC_TOLERANCE:
            return True

    return simplify_expression(norm_user) == simplify_expression(norm_correct)
