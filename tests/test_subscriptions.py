"""
Tests for plan assignment, feature gates and usage quotas.
"""

import pytest

from saasbase.core.errors import ForbiddenError, NotFoundError, QuotaExceededError, ValidationError
from saasbase.core.subscriptions import new_subscription


@pytest.fixture
def subscriptions(context):
    return context.subscriptions


def _subscribe(accounts, user_id, plan_id):
    accounts.replace_subscription(new_subscription(user_id, plan_id))


class TestPlanAssignment:

    def test_free_plan_can_be_chosen(self, subscriptions, accounts):
        subscription = subscriptions.update_user_subscription("alice", "free")
        assert subscription.plan_id == "free"
        assert subscription.plan.is_free
        assert accounts.get_subscription("alice").plan_id == "free"

    def test_paid_plan_requires_payment(self, subscriptions, accounts):
        with pytest.raises(ValidationError) as exc_info:
            subscriptions.update_user_subscription("alice", "pro")
        assert "requires a verified payment" in exc_info.value.message
        assert accounts.get_subscription("alice") is None

    def test_paid_action_assigns_paid_plan(self, subscriptions):
        subscription = subscriptions.update_user_subscription("alice", "pro", is_paid_action=True)
        assert subscription.plan_id == "pro"
        assert subscription.current_period_end > subscription.updated_at

    def test_paid_subscription_is_not_downgraded(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "pro")
        with pytest.raises(ValidationError):
            subscriptions.update_user_subscription("alice", "free")
        assert accounts.get_subscription("alice").plan_id == "pro"

    def test_unknown_plan(self, subscriptions):
        with pytest.raises(NotFoundError):
            subscriptions.update_user_subscription("alice", "enterprise")

    def test_subscription_embeds_plan(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "pro")
        subscription = subscriptions.get_user_subscription("alice")
        assert subscription.plan.get_quota("daily_requests") == 1000

    def test_subscription_with_retired_plan_reads_as_none(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "legacy")
        assert subscriptions.get_user_subscription("alice") is None


class TestFeatures:

    def test_feature_follows_plan(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        _subscribe(accounts, "bob", "pro")
        assert subscriptions.check_feature_permission("alice", "api_access") is False
        assert subscriptions.check_feature_permission("bob", "api_access") is True

    def test_no_subscription_has_no_features(self, subscriptions):
        assert subscriptions.check_feature_permission("carol", "api_access") is False


class TestQuotas:

    def test_under_limit_is_allowed(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        check = subscriptions.check_quota("alice", "api_request", "daily_requests")
        assert check.allowed is True
        assert check.limit == 10
        assert check.using_credits is False

    def test_over_limit_without_credits_is_denied(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        for _ in range(10):
            accounts.increment_usage("alice", "api_request")
        check = subscriptions.check_quota("alice", "api_request", "daily_requests")
        assert check.allowed is False
        assert check.current_usage == 10
        assert check.error == "Quota exceeded for api_request"

    def test_over_limit_falls_back_to_credits(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        accounts.add_credits("alice", 2)
        for _ in range(10):
            accounts.increment_usage("alice", "api_request")
        check = subscriptions.check_quota("alice", "api_request", "daily_requests")
        assert check.allowed is True
        assert check.using_credits is True
        assert check.credit_balance == 2

    def test_no_subscription_is_denied(self, subscriptions):
        check = subscriptions.check_quota("carol", "api_request", "daily_requests")
        assert check.allowed is False
        assert check.error == "No subscription found"

    def test_increment_within_quota_counts_usage(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        result = subscriptions.increment_usage("alice", "api_request")
        assert result.current_usage == 1
        assert accounts.get_usage("alice", "api_request") == 1

    def test_increment_over_quota_consumes_credit(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        accounts.add_credits("alice", 1)
        for _ in range(10):
            accounts.increment_usage("alice", "api_request")

        result = subscriptions.increment_usage("alice", "api_request")
        assert result.using_credits is True
        assert result.credit_balance == 0
        assert accounts.get_usage("alice", "api_request") == 10

        with pytest.raises(QuotaExceededError):
            subscriptions.increment_usage("alice", "api_request")

    def test_increment_without_subscription(self, subscriptions):
        with pytest.raises(ForbiddenError):
            subscriptions.increment_usage("carol", "api_request")

    def test_usage_history(self, subscriptions, accounts):
        _subscribe(accounts, "alice", "free")
        subscriptions.increment_usage("alice", "api_request")
        (record,) = subscriptions.get_user_usage("alice")
        assert record.feature_name == "api_request"
        assert record.usage_count == 1
        assert subscriptions.get_user_credits("alice") == 0
