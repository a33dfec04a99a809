#!/usr/bin/env python3
"""
VPA Resource Recommender
========================

Derives CPU/Memory requests for a flow container from the Vertical Pod
Autoscaler (VPA) recommender. The VPA object runs in "Off" mode: it only
observes usage and computes recommendations, the launcher applies them.

First launch of a workload creates the VPA object and gets the configured
maximums. Once the VPA has observed enough usage, its target is scaled by the
operator's headroom multipliers and capped at the same maximums.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

import yaml

from collaborators import VPAAlreadyExistsError, VPAClient
from config import KUBECONFIG, LOG_LEVEL
from kubernetes_clients import KubernetesVPAClient
from logging_utils import configure_logging
from quantity_utils import (
    MILLI_PER_CORE,
    format_cpu,
    format_memory,
    parse_quantity,
    scale_cpu_millicores,
    scale_memory_bytes,
)
from vpa_response_parser import (
    RecommendationNotReadyError,
    parse_cpu_recommendation,
    parse_memory_recommendation,
)

logger = logging.getLogger(__name__)

VPA_API_VERSION = "autoscaling.k8s.io/v1"
VPA_KIND = "VerticalPodAutoscaler"
VPA_UPDATE_MODE_OFF = "Off"

SOURCE_RECOMMENDER = "vpa_recommender"
SOURCE_MAX_ALLOWED = "max_allowed"


class ResourceAdjustmentError(Exception):
    """Recommendation could not be fetched, created or converted"""


class NotReadyPolicy(Enum):
    """What to do when the VPA exists but has no recommendation yet"""
    RAISE = "raise"
    FALLBACK_TO_MAX = "fallback_to_max"


@dataclass
class Recommendation:
    cpu: str
    memory: str
    source: str = SOURCE_RECOMMENDER

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cpu": self.cpu,
            "memory": self.memory,
            "source": self.source,
        }


def build_vpa_manifest(label_name: str, vpa_name: str, container_name: str,
                       max_cpu: str, max_memory: str) -> Dict[str, Any]:
    """
    Build the VPA object for a flow workload.

    Pods of the flow are selected by the label `label_name=vpa_name`. The
    update mode is "Off" so the autoscaler never evicts or patches a running
    flow container.
    """
    return {
        'apiVersion': VPA_API_VERSION,
        'kind': VPA_KIND,
        'metadata': {
            'name': vpa_name,
            'labels': {
                'managed-by': 'flow-container-reaper',
                'created-at': datetime.now().strftime('%Y-%m-%d-%H-%M-%S')
            }
        },
        'spec': {
            'selector': {
                'matchLabels': {label_name: vpa_name}
            },
            'updatePolicy': {
                'updateMode': VPA_UPDATE_MODE_OFF
            },
            'resourcePolicy': {
                'containerPolicies': [
                    {
                        'containerName': container_name,
                        'maxAllowed': {
                            'cpu': max_cpu,
                            'memory': max_memory
                        }
                    }
                ]
            }
        }
    }


class ResourceRecommendationAdjuster:
    """Fetch, scale and clamp VPA recommendations for flow containers"""

    def __init__(self, vpa_client: VPAClient,
                 not_ready_policy: NotReadyPolicy = NotReadyPolicy.RAISE):
        self.vpa_client = vpa_client
        self.not_ready_policy = not_ready_policy

    def get_recommended_resources(self, namespace: str, label_name: str, vpa_name: str,
                                  container_name: str, cpu_multiplier: float,
                                  memory_multiplier: float, max_cpu: str, max_memory: str,
                                  not_ready_policy: Optional[NotReadyPolicy] = None) -> Recommendation:
        """
        Get recommended resource requests for a flow container.

        Args:
            namespace: Kubernetes namespace of the VPA object
            label_name: Pod label the VPA selects on (value is `vpa_name`)
            vpa_name: Name of the VPA object for the flow
            container_name: Flow container to read the recommendation for
            cpu_multiplier: Headroom factor applied to the CPU target
            memory_multiplier: Headroom factor applied to the memory target
            max_cpu: Maximum allowed CPU (e.g., "2000m")
            max_memory: Maximum allowed memory (e.g., "2Gi")
            not_ready_policy: Overrides the adjuster's policy for this call

        Raises:
            RecommendationNotReadyError: VPA exists without a recommendation
                and the policy is RAISE.
            ResourceAdjustmentError: any other failure.
        """
        policy = not_ready_policy or self.not_ready_policy
        max_allowed = Recommendation(max_cpu, max_memory, SOURCE_MAX_ALLOWED)

        try:
            max_cpu_cores = parse_quantity(max_cpu)
            max_memory_bytes = parse_quantity(max_memory)
        except ValueError as e:
            raise ResourceAdjustmentError(f"Invalid maximum quantities {max_cpu}/{max_memory}: {e}") from e

        try:
            vpa_object = self.vpa_client.get_vpa(namespace, vpa_name)
        except Exception as e:
            raise ResourceAdjustmentError(f"Failed to read VPA {namespace}/{vpa_name}: {e}") from e

        if vpa_object is None:
            # Top-down: start from maxAllowed, let the VPA find the optimum
            manifest = build_vpa_manifest(label_name, vpa_name, container_name, max_cpu, max_memory)
            try:
                self.vpa_client.create_vpa(namespace, manifest)
            except VPAAlreadyExistsError:
                # Concurrent first launch won the create; it has no recommendation yet either
                logger.info(f"VPA {namespace}/{vpa_name} was created concurrently, using max allowed {max_cpu}/{max_memory}")
                return max_allowed
            except Exception as e:
                raise ResourceAdjustmentError(f"Failed to create VPA {namespace}/{vpa_name}: {e}") from e
            logger.info(f"VPA {namespace}/{vpa_name} created, using max allowed {max_cpu}/{max_memory}")
            return max_allowed

        try:
            raw_cpu = parse_cpu_recommendation(vpa_object, container_name)
            raw_memory = parse_memory_recommendation(vpa_object, container_name)
        except RecommendationNotReadyError as e:
            # Short flows often finish before the VPA has sampled them.
            logger.warning(f"⚠️ {e}")
            if policy == NotReadyPolicy.FALLBACK_TO_MAX:
                return max_allowed
            raise

        try:
            cpu_millicores = scale_cpu_millicores(raw_cpu, cpu_multiplier)
            memory_bytes = scale_memory_bytes(raw_memory, memory_multiplier)
        except ValueError as e:
            raise ResourceAdjustmentError(f"Invalid recommendation from VPA {vpa_name}: {e}") from e

        logger.info(f"Raw recommendation quantities: {raw_cpu}, {raw_memory}")
        logger.info(
            f"Converted recommendation quantities: {format_cpu(cpu_millicores)}, {format_memory(memory_bytes)}"
        )

        if cpu_millicores < max_cpu_cores * MILLI_PER_CORE:
            cpu = format_cpu(cpu_millicores)
        else:
            cpu = max_cpu
        if memory_bytes < max_memory_bytes:
            memory = format_memory(memory_bytes)
        else:
            memory = max_memory

        return Recommendation(cpu, memory, SOURCE_RECOMMENDER)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Show the VPA-based resource requests for a flow container")
    parser.add_argument("vpa_name", help="VPA object name for the flow")
    parser.add_argument("--namespace", default="default")
    parser.add_argument("--label-name", default="flow-vpa")
    parser.add_argument("--container-name", default="az-platform-image")
    parser.add_argument("--cpu-multiplier", type=float, default=1.0)
    parser.add_argument("--memory-multiplier", type=float, default=1.0)
    parser.add_argument("--max-cpu", required=True, help='e.g. "2000m"')
    parser.add_argument("--max-memory", required=True, help='e.g. "2Gi"')
    parser.add_argument("--fallback-to-max", action="store_true",
                        help="Use the maximums when no recommendation is ready yet")
    parser.add_argument("--kubeconfig", default=KUBECONFIG)
    parser.add_argument("-o", "--output", choices=["yaml", "json"], default="yaml")
    args = parser.parse_args(argv)

    configure_logging(LOG_LEVEL)

    adjuster = ResourceRecommendationAdjuster(
        KubernetesVPAClient(kubeconfig_path=args.kubeconfig),
        NotReadyPolicy.FALLBACK_TO_MAX if args.fallback_to_max else NotReadyPolicy.RAISE,
    )
    try:
        recommendation = adjuster.get_recommended_resources(
            args.namespace, args.label_name, args.vpa_name, args.container_name,
            args.cpu_multiplier, args.memory_multiplier, args.max_cpu, args.max_memory,
        )
    except RecommendationNotReadyError as e:
        print(f"Recommendation not ready: {e.reason}", file=sys.stderr)
        return 2
    except ResourceAdjustmentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output == "json":
        print(json.dumps(recommendation.to_dict(), indent=2))
    else:
        print(yaml.safe_dump(recommendation.to_dict(), default_flow_style=False), end="")
    return 0


if __name__ == "__main__":
    sys.exit(main())
