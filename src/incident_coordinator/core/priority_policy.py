"""Priority rules: the initial priority of a new incident and the escalation ladder."""

from incident_coordinator.models.incidents import Priority, Severity

CRITICAL_SYSTEMS_THRESHOLD = 10
HIGH_SYSTEMS_THRESHOLD = 5

ESCALATION_LADDER = {
    Priority.LOW: Priority.MEDIUM,
    Priority.MEDIUM: Priority.HIGH,
    Priority.HIGH: Priority.CRITICAL,
    Priority.CRITICAL: Priority.CRITICAL,
}


def calculate_initial_priority(severity: Severity, affected_systems_count: int) -> Priority:
    """
    Derive the priority a new incident starts with.

    Rules are evaluated in order and the first match wins:
    - CRITICAL severity or more than 10 affected systems -> CRITICAL
    - HIGH severity or more than 5 affected systems -> HIGH
    - MEDIUM severity -> MEDIUM
    - otherwise -> LOW

    Args:
        severity: Reported severity of the incident
        affected_systems_count: Number of impacted systems (>= 1)

    Returns:
        Priority: The starting priority
    """
    if severity == Severity.CRITICAL or affected_systems_count > CRITICAL_SYSTEMS_THRESHOLD:
        return Priority.CRITICAL
    if severity == Severity.HIGH or affected_systems_count > HIGH_SYSTEMS_THRESHOLD:
        return Priority.HIGH
    if severity == Severity.MEDIUM:
        return Priority.MEDIUM
    return Priority.LOW


def next_priority(priority: Priority) -> Priority:
    """One rung up the escalation ladder; CRITICAL stays CRITICAL."""
    return ESCALATION_LADDER[priority]
