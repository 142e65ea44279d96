"""Tests for the retry policy engine."""

import pytest

from rxpubnub import RETRY_ALL, RETRY_NONE, PNResult, RetryPolicy, mask_without
from rxpubnub.retry import RetryDecision, is_recoverable


def test_recoverable_codes():
    assert is_recoverable(PNResult.TIMEOUT)
    assert is_recoverable(PNResult.IO_ERROR)
    assert is_recoverable(PNResult.SERVICE_ERROR)
    for code in (PNResult.OK, PNResult.OCCUPIED, PNResult.HTTP_ERROR, PNResult.FORMAT_ERROR,
                 PNResult.PUBLISH_FAILED, PNResult.DECRYPTION_ERROR, PNResult.CANCELLED):
        assert not is_recoverable(code)


def test_default_policy_retries_recoverable_only():
    policy = RetryPolicy()
    assert policy.retry_mask == RETRY_ALL
    assert policy.print_errors is True
    assert policy.decide(PNResult.TIMEOUT, 1) is RetryDecision.RETRY
    assert policy.decide(PNResult.SERVICE_ERROR, 1) is RetryDecision.RETRY
    assert policy.decide(PNResult.HTTP_ERROR, 1) is RetryDecision.DELIVER
    assert policy.decide(PNResult.FORMAT_ERROR, 1) is RetryDecision.DELIVER


def test_ok_and_occupied_always_delivered():
    policy = RetryPolicy(retry_mask=RETRY_ALL)
    assert policy.decide(PNResult.OK, 1) is RetryDecision.DELIVER
    assert policy.decide(PNResult.OCCUPIED, 1) is RetryDecision.DELIVER


def test_mask_without_clears_one_code():
    mask = mask_without(PNResult.TIMEOUT)
    policy = RetryPolicy(retry_mask=mask)
    assert policy.decide(PNResult.TIMEOUT, 1) is RetryDecision.DELIVER
    assert policy.decide(PNResult.IO_ERROR, 1) is RetryDecision.RETRY
    assert mask == ~PNResult.TIMEOUT.bit


def test_retry_none_delivers_everything():
    policy = RetryPolicy(retry_mask=RETRY_NONE)
    for code in PNResult:
        assert policy.decide(code, 1) is RetryDecision.DELIVER


def test_retries_are_bounded():
    policy = RetryPolicy(max_retries=2)
    assert policy.decide(PNResult.TIMEOUT, 1) is RetryDecision.RETRY
    assert policy.decide(PNResult.TIMEOUT, 2) is RetryDecision.RETRY
    assert policy.decide(PNResult.TIMEOUT, 3) is RetryDecision.DELIVER


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=None)
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=-1)
    with pytest.raises(ValueError):
        RetryPolicy(jitter=1.5)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-0.1)


def test_get_delay_exponential_and_capped():
    policy = RetryPolicy(base_delay=0.5, max_delay=3.0, backoff_factor=2.0, jitter=0.0)
    assert policy.get_delay(0) == 0.5
    assert policy.get_delay(1) == 1.0
    assert policy.get_delay(2) == 2.0
    assert policy.get_delay(5) == 3.0


def test_get_delay_jitter_within_range():
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.1)
    for _ in range(50):
        assert 0.9 <= policy.get_delay(0) <= 1.1
