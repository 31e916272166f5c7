from __future__ import annotations

import allure
import pytest

from bgi_panel.tasks.retry import MAX_RETRIES, RetryPolicy

pytestmark = [
    allure.epic("Daily Tasks"),
    allure.feature("Completion Protocol"),
]


def test_failures_count_up_to_the_ceiling() -> None:
    policy = RetryPolicy()

    decisions = [policy.register_failure(count) for count in range(MAX_RETRIES)]

    assert [decision.retry_count for decision in decisions] == [1, 2, 3]
    assert [decision.exhausted for decision in decisions] == [False, False, True]


def test_counter_never_exceeds_ceiling() -> None:
    decision = RetryPolicy(max_retries=2).register_failure(5)

    assert decision.retry_count == 2
    assert decision.exhausted is True


def test_single_attempt_policy_fails_immediately() -> None:
    assert RetryPolicy(max_retries=1).register_failure(0).exhausted is True


def test_invalid_inputs_are_rejected() -> None:
    with pytest.raises(ValueError, match="max_retries"):
        RetryPolicy(max_retries=0)
    with pytest.raises(ValueError, match="retry_count"):
        RetryPolicy().register_failure(-1)
