import logging

import pytest

from accesslog.observability.severity import Severity, default_severity, status_message


@pytest.mark.parametrize("status,expected", [
    (100, Severity.INFO),
    (101, Severity.INFO),
    (200, Severity.INFO),
    (201, Severity.INFO),
    (300, Severity.INFO),
    (301, Severity.INFO),
    (400, Severity.WARN),
    (401, Severity.WARN),
    (500, Severity.ERROR),
    (501, Severity.ERROR),
])
def test_default_severity(status, expected):
    assert default_severity(status) == expected


@pytest.mark.parametrize("status,expected", [
    (199, "Success"),
    (200, "Success"),
    (299, "Success"),
    (300, "Redirection"),
    (399, "Redirection"),
    (400, "Client error"),
    (499, "Client error"),
    (500, "Server error"),
    (599, "Server error"),
])
def test_status_message(status, expected):
    assert status_message(status) == expected


def test_severities_are_ordered_like_stdlib_levels():
    assert Severity.DEBUG < Severity.INFO < Severity.WARN < Severity.ERROR < Severity.CRITICAL
    assert Severity.WARN == logging.WARNING
    assert Severity.CRITICAL == logging.CRITICAL
