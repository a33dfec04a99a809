#!/usr/bin/env python3
"""
Helpers for pulling the target recommendation out of a VPA object.
"""

from typing import Any, Dict


class RecommendationNotReadyError(Exception):
    """The VPA object exists but holds no usable recommendation yet"""

    def __init__(self, vpa_name: str, reason: str):
        super().__init__(f"Recommendation for VPA {vpa_name} not ready: {reason}")
        self.vpa_name = vpa_name
        self.reason = reason


def find_container_recommendation(vpa_object: Dict[str, Any], container_name: str) -> Dict[str, Any]:
    """Return the containerRecommendations entry for `container_name`."""
    name = (vpa_object.get("metadata") or {}).get("name", "")
    recommendation = (vpa_object.get("status") or {}).get("recommendation") or {}
    container_recommendations = recommendation.get("containerRecommendations") or []
    if not container_recommendations:
        raise RecommendationNotReadyError(name, "no container recommendations")

    for container_rec in container_recommendations:
        if container_rec.get("containerName") == container_name:
            return container_rec

    found = [r.get("containerName") for r in container_recommendations]
    raise RecommendationNotReadyError(
        name, f"no recommendation for container {container_name} (found {found})"
    )


def _parse_target(vpa_object: Dict[str, Any], container_name: str, key: str) -> str:
    container_rec = find_container_recommendation(vpa_object, container_name)
    value = (container_rec.get("target") or {}).get(key)
    if value is None or str(value).strip() == "":
        name = (vpa_object.get("metadata") or {}).get("name", "")
        raise RecommendationNotReadyError(name, f"missing target {key} for container {container_name}")
    return str(value)


def parse_cpu_recommendation(vpa_object: Dict[str, Any], container_name: str) -> str:
    return _parse_target(vpa_object, container_name, "cpu")


def parse_memory_recommendation(vpa_object: Dict[str, Any], container_name: str) -> str:
    return _parse_target(vpa_object, container_name, "memory")
