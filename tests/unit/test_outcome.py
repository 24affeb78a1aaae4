"""
Unit tests for outcome classification.
"""
import pytest

from gitreclaim.models import Status
from gitreclaim.outcome import classify_status, downgrade


class TestClassifyStatus:

    def test_nothing_found_is_failure(self):
        assert classify_status(set(), set()) == Status.FAILURE
        assert classify_status(set(), {'a' * 40}) == Status.FAILURE

    def test_missing_is_partial(self):
        assert classify_status({'a' * 40}, {'b' * 40}) == Status.PARTIAL_SUCCESS

    def test_complete_is_success(self):
        assert classify_status({'a' * 40}, set()) == Status.SUCCESS


class TestDowngrade:

    @pytest.mark.parametrize('status,expected', [
        (Status.SUCCESS, Status.PARTIAL_SUCCESS),
        (Status.PARTIAL_SUCCESS, Status.PARTIAL_SUCCESS),
        (Status.FAILURE, Status.FAILURE),
    ])
    def test_only_downgrades(self, status, expected):
        assert downgrade(status) == expected

    def test_ordering_is_worse_is_higher(self):
        assert Status.SUCCESS < Status.PARTIAL_SUCCESS < Status.FAILURE
