"""Unit tests for helper functions."""

import pytest
from pvpool.utils.helpers import percent, deep_compare_dict, canonicalize_dict
from pvpool.utils.errors import already_exists_error, not_found_error
from kubernetes_asyncio.client import ApiException


class TestPercent:
    """Tests for percent()."""

    def test_truncates(self):
        assert percent(1, 3) == 33
        assert percent(2, 3) == 66

    def test_zero_whole(self):
        assert percent(10, 0) == 0

    def test_negative_whole(self):
        assert percent(10, -5) == 0

    def test_clamped_above(self):
        assert percent(150, 100) == 100

    def test_clamped_below(self):
        assert percent(-1, 100) == 0

    def test_full(self):
        assert percent(7, 7) == 100


class TestDeepCompareDict:
    """Tests for deep_compare_dict()."""

    def test_key_order_ignored(self):
        assert deep_compare_dict({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"d": 3, "c": 2}, "a": 1})

    def test_list_order_matters(self):
        assert not deep_compare_dict({"a": [1, 2]}, {"a": [2, 1]})

    def test_none(self):
        assert deep_compare_dict(None, None)
        assert not deep_compare_dict({}, None)

    def test_value_change(self):
        assert not deep_compare_dict({"phase": "Ready"}, {"phase": "Scaling"})

    def test_canonical_form_is_stable(self):
        assert canonicalize_dict({"b": 1, "a": 2}) == canonicalize_dict({"a": 2, "b": 1})


class TestApiErrors:
    """Tests for Kubernetes API error classification."""

    def make_exception(self, status, body):
        ex = ApiException(status=status, reason="reason")
        ex.body = body
        return ex

    def test_already_exists(self):
        ex = self.make_exception(409, '{"reason": "AlreadyExists"}')
        assert already_exists_error(ex)
        assert not not_found_error(ex)

    def test_conflict_is_not_already_exists(self):
        ex = self.make_exception(409, '{"reason": "Conflict"}')
        assert not already_exists_error(ex)

    def test_not_found(self):
        assert not_found_error(self.make_exception(404, None))

    def test_malformed_body(self):
        ex = self.make_exception(409, "not json")
        assert not already_exists_error(ex)

    @pytest.mark.parametrize("error", [ValueError("x"), None])
    def test_other_errors(self, error):
        assert not already_exists_error(error)
        assert not not_found_error(error)
