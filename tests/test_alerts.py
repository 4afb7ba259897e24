from __future__ import annotations

import pytest

from tunnelwatch.core.alerts import AlertLog
from tunnelwatch.core.models import Alert, Severity


def _alert(name: str, sequence: int) -> Alert:
    return Alert(
        id=name,
        timestamp="12:00:00",
        severity=Severity.INFO,
        message=f"alert {name}",
        sequence=sequence,
    )


def test_sixth_alert_evicts_the_oldest():
    log = AlertLog()
    for sequence, name in enumerate("ABCDEF"):
        log.append(_alert(name, sequence))

    assert [alert.id for alert in log.all()] == ["F", "E", "D", "C", "B"]
    assert len(log) == 5


def test_entries_are_most_recent_first():
    log = AlertLog(capacity=3)
    log.append(_alert("first", 1))
    log.append(_alert("second", 2))

    assert [alert.id for alert in log.all()] == ["second", "first"]


def test_duplicates_are_kept():
    log = AlertLog()
    alert = _alert("same", 1)
    log.append(alert)
    log.append(alert)

    assert log.all() == (alert, alert)


def test_clear_empties_the_log():
    log = AlertLog()
    log.append(_alert("A", 1))
    log.clear()

    assert log.all() == ()
    assert len(log) == 0


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        AlertLog(capacity=0)
