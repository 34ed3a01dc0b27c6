"""
Risk scoring helpers.

Severity and both probability estimates are ranked 1 (lowest) to 5 (highest).
P total is the higher of the two probabilities and the residual risk score
concatenates severity and P total, so severity 3 with P total 5 scores "35".
"""

MIN_LEVEL = 1
MAX_LEVEL = 5


def _check_level(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer between {MIN_LEVEL} and {MAX_LEVEL}")
    if not MIN_LEVEL <= value <= MAX_LEVEL:
        raise ValueError(f"{name} must be between {MIN_LEVEL} and {MAX_LEVEL}")
    return value


def calculate_p_total(probability_p1: int, probability_p2: int) -> int:
    _check_level("Probability P1", probability_p1)
    _check_level("Probability P2", probability_p2)
    return max(probability_p1, probability_p2)


def calculate_risk_score(severity: int, p_total: int) -> str:
    _check_level("Severity", severity)
    _check_level("P total", p_total)
    return f"{severity}{p_total}"
