from models import CountdownDisplay, TrialStatus, Urgency


def format_time_left(status: TrialStatus) -> str:
    if status.days_remaining > 1:
        return f"{status.days_remaining} days left"
    if status.hours_remaining > 1:
        return f"{status.hours_remaining} hours left"
    if status.hours_remaining == 1:
        return "1 hour left"
    return "Less than 1 hour left"


def urgency(status: TrialStatus) -> Urgency:
    if status.hours_remaining <= 2:
        return Urgency.CRITICAL
    if status.hours_remaining <= 24:
        return Urgency.URGENT
    return Urgency.NORMAL


def headline(status: TrialStatus) -> str:
    level = urgency(status)
    if level == Urgency.CRITICAL:
        return "Trial Ending Soon!"
    if level == Urgency.URGENT:
        return "Trial Ending Tomorrow"
    return "Free Trial Active"


def countdown_display(status: TrialStatus) -> CountdownDisplay:
    """Countdown banner text for an active trial."""
    return CountdownDisplay(
        time_left=format_time_left(status),
        headline=headline(status),
        urgency=urgency(status),
    )
