"""SM-2 spaced repetition algorithm."""
import math

MIN_EASE_FACTOR = 1.3
DEFAULT_EASE_FACTOR = 2.5
PASSING_QUALITY = 3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def sm2_update(
    quality: int,
    repetitions: int,
    ease_factor: float,
    interval: int,
) -> dict:
    """Calculate next review parameters using SM-2.

    Args:
        quality: Rating 0-5 (0=complete blackout, 5=perfect), clamped
        repetitions: Number of consecutive correct reviews
        ease_factor: Current ease factor (minimum 1.3)
        interval: Current interval in days

    Returns:
        Dict with updated interval, repetitions, ease_factor.
    """
    quality = max(0, min(5, int(quality)))

    if quality >= PASSING_QUALITY:
        new_repetitions = repetitions + 1
        if new_repetitions == 1:
            new_interval = 1
        elif new_repetitions == 2:
            new_interval = 6
        else:
            # Grows with the ease factor held before this review
            new_interval = round_half_up(interval * ease_factor)
    else:
        # Incorrect: reset
        new_repetitions = 0
        new_interval = 1

    new_ef = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    new_ef = max(MIN_EASE_FACTOR, new_ef)

    return {
        "interval": max(1, new_interval),
        "repetitions": new_repetitions,
        "ease_factor": new_ef,
        "quality": quality,
    }


def calculate_quality(is_correct: bool, time_factor: float = 1.0) -> int:
    """Map correctness and answer speed onto an SM-2 quality score.

    Wrong answers land in 0-2 and correct ones in 3-5; ``time_factor``
    (0 = slow, 1 = fast) only picks the position inside that band.
    """
    time_factor = max(0.0, min(1.0, time_factor))
    if not is_correct:
        return round_half_up(time_factor * 2)
    return 3 + round_half_up(time_factor * 2)
