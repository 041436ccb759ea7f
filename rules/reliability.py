MIN_RELIABILITY_SCORE = 0
MAX_RELIABILITY_SCORE = 100

ATTENDANCE_REWARD = 2
NO_SHOW_PENALTY = 10


def _clamp(score: int) -> int:
    return max(MIN_RELIABILITY_SCORE, min(MAX_RELIABILITY_SCORE, score))


def next_reliability_score(current_score: int, attended: bool) -> int:
    if attended:
        return _clamp(current_score + ATTENDANCE_REWARD)
    return _clamp(current_score - NO_SHOW_PENALTY)


def apply_attendance_outcome(user, attended: bool) -> None:
    """No-shows always bump the counter; the counter never goes back down."""
    user.reliability_score = next_reliability_score(user.reliability_score, attended)
    if not attended:
        user.no_show_count = (user.no_show_count or 0) + 1
