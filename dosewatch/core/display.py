"""
Display helpers shared by the API payload and the dashboard:
countdown formatting and the labels of the dose button and dialogs.
"""

from dosewatch.core.risk import RiskLevel


def format_countdown(ms: int) -> str:
    """Format milliseconds as H:MM:SS, or MM:SS under one hour. Rounds up to whole seconds."""
    if ms <= 0:
        return "00:00"
    total_sec = -(-int(ms) // 1000)
    hours, rest = divmod(total_sec, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def button_label(session_active: bool, time_remaining_ms: int) -> str:
    if not session_active:
        return "Start Session"
    if time_remaining_ms <= 0:
        return "Safe to Dose"
    return format_countdown(time_remaining_ms)


def button_hint(session_active: bool) -> str:
    return "Tap to log a new intake" if session_active else "Tap to start tracking"


def risk_label(level: RiskLevel) -> str:
    if level == RiskLevel.SAFE:
        return "Safe to dose"
    if level == RiskLevel.WARNING:
        return "Caution Period"
    return "Unsafe Period"


def warning_title(level: RiskLevel) -> str:
    if level == RiskLevel.WARNING:
        return "Caution: Approaching Safe Window"
    return "Warning: Unsafe Timing"


def warning_message(level: RiskLevel, time_remaining_ms: int) -> str:
    countdown = format_countdown(time_remaining_ms)
    if level == RiskLevel.WARNING:
        return f"It's recommended to wait {countdown} longer before your next dose."
    return f"It's unsafe to dose now. Please wait {countdown} for a safe window."


def interval_progress(time_remaining_ms: int, safe_interval_ms: float) -> float:
    """Fraction (0-1) of the safe interval already elapsed."""
    if safe_interval_ms <= 0:
        return 0.0
    return max(0.0, min(1.0, 1.0 - time_remaining_ms / safe_interval_ms))
