from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence, Tuple, Union

Number = Union[int, float, Decimal]

DEFAULT_GRADE_SCALE: Sequence[Tuple[str, int, int]] = (
    ("A1", 91, 100),
    ("A2", 81, 90),
    ("B1", 71, 80),
    ("B2", 61, 70),
    ("C1", 51, 60),
    ("C2", 41, 50),
    ("D", 33, 40),
    ("E", 0, 32),
)

NO_GRADE = "-"


def percentage(obtained: Optional[Number], maximum: Optional[Number]) -> Optional[Decimal]:
    if obtained is None or not maximum:
        return None
    value = Decimal(str(obtained)) * 100 / Decimal(str(maximum))
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def as_number(value: Optional[Number]) -> Optional[float]:
    return None if value is None else float(value)


def grade_for_percentage(
    pct: Optional[Number],
    scales: Optional[Iterable] = None
) -> str:
    """
    First band whose inclusive [min, max] range contains pct.

    `scales` may be GradeScale rows (grade/min_percentage/max_percentage) or
    (grade, min, max) tuples; the default scale is used when none are given.
    """
    if pct is None:
        return NO_GRADE
    value = Decimal(str(pct))

    bands = []
    for scale in scales or ():
        if isinstance(scale, (tuple, list)):
            bands.append((scale[0], Decimal(str(scale[1])), Decimal(str(scale[2]))))
        else:
            bands.append((scale.grade, Decimal(str(scale.min_percentage)), Decimal(str(scale.max_percentage))))
    if not bands:
        bands = [(g, Decimal(lo), Decimal(hi)) for g, lo, hi in DEFAULT_GRADE_SCALE]

    # Whole-number bands leave gaps (90.5 sits between A2 and A1); round into them
    rounded = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    for candidate in (value, rounded):
        for grade, low, high in bands:
            if low <= candidate <= high:
                return grade
    return NO_GRADE
