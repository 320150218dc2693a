import mmh3
import hashlib
from typing import Any, Dict, Optional, Union
from pvpool.utils.helpers import canonicalize_dict
from pvpool.common.models.labels import Labels
from pvpool.utils.errors import not_found_error
from kubernetes_asyncio.client import (
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1PodList,
    V1Service,
    V1StatefulSet,
)


class BaseResource:
    """Base resource model."""

    PVPOOL_OPERATOR_NAME = "pvpool-operator"
    RESOURCE_HASH_ANNOTATION = "pvpool.noobaa.com/resource-hash"

    _name: str
    _namespace: str
    _labels: Labels

    def __init__(self, name: str, namespace: str, labels: Labels):
        self._name = name
        self._namespace = namespace
        self._labels = labels

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def labels(self) -> Labels:
        return self._labels

    def compute_hash(self, data: Any) -> str:
        """Compute a murmur3 hash."""
        if isinstance(data, dict):
            _data = canonicalize_dict(data)
        elif isinstance(data, str):
            _data = data
        else:
            raise ValueError(f"Hash of {type(data)} is not supported.")
        mumur_str = str(mmh3.hash128(_data))

        # Keep the first 16 characters so the value fits annotations comfortably
        return hashlib.sha256(mumur_str.encode("utf-8")).hexdigest()[:16]

    def prepare_hash_annotation(self, hash: Union[str, int]) -> Dict[str, str]:
        """Prepare hash annotation for k8s resources."""
        return {self.RESOURCE_HASH_ANNOTATION: str(hash)}

    def read_hash_annotation(self, obj: Union[V1Service, V1StatefulSet]) -> Optional[str]:
        annotations = (obj.metadata.annotations if obj.metadata else None) or {}
        return annotations.get(self.RESOURCE_HASH_ANNOTATION)

    async def fetch_service(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> Optional[V1Service]:
        """Retrieve the latest state of a service"""
        try:
            return await core_v1_api.read_namespaced_service(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_service(
        self, core_v1_api: CoreV1Api, namespace: str, service: V1Service
    ) -> V1Service:
        return await core_v1_api.create_namespaced_service(namespace=namespace, body=service)

    async def fetch_stateful_set(
        self, apps_v1_api: AppsV1Api, name: str, namespace: str
    ) -> Optional[V1StatefulSet]:
        try:
            return await apps_v1_api.read_namespaced_stateful_set(name=name, namespace=namespace)
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def create_stateful_set(
        self,
        apps_v1_api: AppsV1Api,
        namespace: str,
        stateful_set: V1StatefulSet,
    ) -> V1StatefulSet:
        return await apps_v1_api.create_namespaced_stateful_set(
            namespace=namespace, body=stateful_set
        )

    async def patch_stateful_set(
        self,
        apps_v1_api: AppsV1Api,
        name: str,
        namespace: str,
        stateful_set: Union[V1StatefulSet, Dict],
    ):
        await apps_v1_api.patch_namespaced_stateful_set(
            name=name, namespace=namespace, body=stateful_set
        )

    async def list_pods(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: dict = None
    ) -> V1PodList:
        """List pods in namespace, optionally filtered by label selector.

        Args:
            core_v1_api: CoreV1Api instance
            namespace: Namespace to list pods in
            label_selector: Dictionary of label key-value pairs to filter pods

        Returns:
            V1PodList object containing matching pods
        """
        label_selector_str = None
        if label_selector:
            label_selector_str = ",".join([f"{k}={v}" for k, v in label_selector.items()])

        return await core_v1_api.list_namespaced_pod(
            namespace=namespace,
            label_selector=label_selector_str
        )

    async def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict]:
        try:
            return await custom_objects_api.get_namespaced_custom_object(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except ApiException as ex:
            if not_found_error(ex):
                return None
            raise

    async def replace_custom_object_status(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: str,
        group: str,
        version: str,
        plural: str,
        name: str,
        body: Dict,
    ) -> Dict:
        """Replace the status subresource; `body` carries the resourceVersion it was read at."""
        return await custom_objects_api.replace_namespaced_custom_object_status(
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
            body=body,
        )
