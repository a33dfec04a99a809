#!/usr/bin/env python3
"""
Tests for VPA response parsing helpers
"""

import pytest

from vpa_response_parser import (
    RecommendationNotReadyError,
    find_container_recommendation,
    parse_cpu_recommendation,
    parse_memory_recommendation,
)

VPA = {
    "metadata": {"name": "flow-vpa"},
    "status": {
        "recommendation": {
            "containerRecommendations": [
                {"containerName": "sidecar", "target": {"cpu": "10m", "memory": "32Mi"}},
                {"containerName": "flow-container", "target": {"cpu": "250m", "memory": "512Mi"}},
            ]
        }
    },
}


def test_parse_targets_for_named_container():
    assert parse_cpu_recommendation(VPA, "flow-container") == "250m"
    assert parse_memory_recommendation(VPA, "flow-container") == "512Mi"
    assert find_container_recommendation(VPA, "sidecar")["target"]["cpu"] == "10m"


@pytest.mark.parametrize("vpa", [
    {"metadata": {"name": "flow-vpa"}},
    {"metadata": {"name": "flow-vpa"}, "status": None},
    {"status": {"recommendation": {}}},
    {"status": {"recommendation": {"containerRecommendations": []}}},
])
def test_missing_recommendation_is_not_ready(vpa):
    with pytest.raises(RecommendationNotReadyError):
        parse_cpu_recommendation(vpa, "flow-container")


def test_unknown_container_is_not_ready():
    with pytest.raises(RecommendationNotReadyError) as excinfo:
        parse_memory_recommendation(VPA, "other")
    assert excinfo.value.vpa_name == "flow-vpa"
    assert "other" in excinfo.value.reason


def test_missing_target_key_is_not_ready():
    vpa = {"status": {"recommendation": {"containerRecommendations": [
        {"containerName": "flow-container", "target": {"cpu": "100m"}}
    ]}}}
    assert parse_cpu_recommendation(vpa, "flow-container") == "100m"
    with pytest.raises(RecommendationNotReadyError):
        parse_memory_recommendation(vpa, "flow-container")
