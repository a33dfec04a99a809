#!/usr/bin/env python3
"""
Kubernetes Adapters
===================

Orchestrator-facing implementations of the container and VPA clients used by
the stale execution reaper and the VPA recommender.
"""

import logging
from typing import Any, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from collaborators import ContainerClient, VPAAlreadyExistsError, VPAClient

logger = logging.getLogger(__name__)

VPA_GROUP = "autoscaling.k8s.io"
VPA_VERSION = "v1"
VPA_PLURAL = "verticalpodautoscalers"

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def load_api_client(kubeconfig_path: Optional[str] = None) -> client.ApiClient:
    """Load cluster credentials and return an API client"""
    if kubeconfig_path:
        logger.info(f"Loading kubeconfig from: {kubeconfig_path}")
        config.load_kube_config(config_file=kubeconfig_path)
    else:
        # Try in-cluster config first (for pods running in cluster)
        try:
            config.load_incluster_config()
            logger.info("Using in-cluster config")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Using default kubeconfig")
    return client.ApiClient()


class KubernetesContainerClient(ContainerClient):
    """Deletes the pod (and optionally service) backing a flow execution"""

    def __init__(self, namespace: str = "default", pod_prefix: str = "fc-dep",
                 core_api: Optional[client.CoreV1Api] = None,
                 kubeconfig_path: Optional[str] = None,
                 delete_service: bool = False):
        self.namespace = namespace
        self.pod_prefix = pod_prefix
        self.delete_service = delete_service
        if core_api is None:
            core_api = client.CoreV1Api(load_api_client(kubeconfig_path))
        self.core_api = core_api

    def resource_name(self, execution_id: int) -> str:
        return f"{self.pod_prefix}-{execution_id}"

    def delete_container(self, execution_id: int) -> None:
        # Kubernetes only records the deletion request here; termination
        # happens asynchronously.
        name = self.resource_name(execution_id)
        try:
            self.core_api.delete_namespaced_pod(name, self.namespace)
            logger.info(f"Requested deletion of pod {self.namespace}/{name}")
        except ApiException as e:
            if e.status != HTTP_NOT_FOUND:
                raise
            logger.info(f"Pod {self.namespace}/{name} already deleted")

        if not self.delete_service:
            return
        try:
            self.core_api.delete_namespaced_service(name, self.namespace)
            logger.info(f"Requested deletion of service {self.namespace}/{name}")
        except ApiException as e:
            if e.status != HTTP_NOT_FOUND:
                raise
            logger.info(f"Service {self.namespace}/{name} already deleted")


class KubernetesVPAClient(VPAClient):
    """Reads and creates VerticalPodAutoscaler custom objects"""

    def __init__(self, custom_api: Optional[client.CustomObjectsApi] = None,
                 kubeconfig_path: Optional[str] = None):
        if custom_api is None:
            custom_api = client.CustomObjectsApi(load_api_client(kubeconfig_path))
        self.custom_api = custom_api

    def get_vpa(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.custom_api.get_namespaced_custom_object(
                VPA_GROUP, VPA_VERSION, namespace, VPA_PLURAL, name
            )
        except ApiException as e:
            if e.status == HTTP_NOT_FOUND:
                logger.debug(f"VPA {namespace}/{name} not found")
                return None
            raise

    def create_vpa(self, namespace: str, body: Dict[str, Any]) -> Dict[str, Any]:
        name = body.get("metadata", {}).get("name", "")
        try:
            created = self.custom_api.create_namespaced_custom_object(
                VPA_GROUP, VPA_VERSION, namespace, VPA_PLURAL, body
            )
        except ApiException as e:
            if e.status == HTTP_CONFLICT:
                raise VPAAlreadyExistsError(f"VPA {namespace}/{name} already exists") from e
            raise
        logger.info(f"✅ Created VPA {namespace}/{name}")
        return created
