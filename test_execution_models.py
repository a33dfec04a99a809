#!/usr/bin/env python3
"""
Tests for the execution data model and staleness policy
"""

from datetime import datetime, timedelta

import pytest

from execution_models import Execution, StalenessPolicy, Status, TimestampField


def test_default_policy_windows():
    policy = StalenessPolicy.default()

    assert policy.rule_for(Status.DISPATCHING).max_age == timedelta(minutes=10)
    assert policy.rule_for(Status.DISPATCHING).timestamp_field == TimestampField.SUBMIT
    assert policy.rule_for(Status.PREPARING).max_age == timedelta(minutes=15)
    assert policy.rule_for(Status.KILLING).timestamp_field == TimestampField.UPDATE
    assert policy.rule_for(Status.EXECUTION_STOPPED).max_age == timedelta(minutes=15)
    assert policy.rule_for(Status.RUNNING).is_exempt
    assert policy.rule_for(Status.SUCCEEDED) is None


def test_running_window_gets_one_hour_buffer():
    policy = StalenessPolicy.default(max_flow_running_minutes=600)

    for status in (Status.RUNNING, Status.PAUSED, Status.FAILED_FINISHING):
        rule = policy.rule_for(status)
        assert rule.max_age == timedelta(minutes=660)
        assert rule.timestamp_field == TimestampField.START


def test_zero_running_limit_means_unbounded():
    policy = StalenessPolicy.default(max_flow_running_minutes=0)
    assert Status.RUNNING not in policy.monitored_statuses()


def test_monitored_statuses_in_lifecycle_order():
    policy = StalenessPolicy.default(max_flow_running_minutes=60)
    assert policy.monitored_statuses() == [
        Status.DISPATCHING, Status.PREPARING, Status.RUNNING, Status.PAUSED,
        Status.KILLING, Status.EXECUTION_STOPPED, Status.FAILED_FINISHING,
    ]


def test_overrides_replace_window_and_can_exempt():
    policy = StalenessPolicy.default(overrides={"dispatching": 30, "KILLING": -1, "SUCCEEDED": 5, "BOGUS": 1})

    assert policy.rule_for(Status.DISPATCHING).max_age == timedelta(minutes=30)
    assert policy.rule_for(Status.DISPATCHING).timestamp_field == TimestampField.SUBMIT
    assert Status.KILLING not in policy.monitored_statuses()
    assert policy.rule_for(Status.SUCCEEDED) is None


def test_policy_is_read_only():
    policy = StalenessPolicy.default()
    with pytest.raises(TypeError):
        policy.rules[Status.DISPATCHING] = None


def test_policy_as_dict():
    data = StalenessPolicy.default().as_dict()
    assert data["DISPATCHING"] == {"max_age_minutes": 10.0, "timestamp_field": "submit_time"}


def test_execution_helpers():
    submitted = datetime(2024, 1, 1, 8, 0)
    execution = Execution(1, "flow", Status.PREPARING, submitted, "alice",
                          parameters={"enable.dev.pod": "TRUE"})

    assert execution.is_dev_pod
    assert execution.timestamp_for(TimestampField.SUBMIT) == submitted
    assert execution.timestamp_for(TimestampField.START) is None

    execution.parameters["enable.dev.pod"] = "yes"
    assert not execution.is_dev_pod
