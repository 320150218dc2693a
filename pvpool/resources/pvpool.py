import logging
from enum import Enum
from logging import Logger
from typing import Awaitable, Callable, Dict, List, Optional, Union
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    AppsV1Api,
    CoreV1Api,
    CustomObjectsApi,
    V1Container,
    V1ContainerPort,
    V1EnvVar,
    V1LabelSelector,
    V1ObjectMeta,
    V1OwnerReference,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1Pod,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1VolumeMount,
)
from pvpool.common.models.labels import Labels
from pvpool.resources.base import BaseResource
from pvpool.sensors import OperatorSensor, SensorDelegate
from pvpool.types.models import (
    PodState,
    PoolPhase,
    PvPoolResources,
    PvPoolSpec,
    PvPoolStatus,
)
from pvpool.types.settings import Settings
from pvpool.utils.errors import MalformedPodIdentity, already_exists_error
from pvpool.utils.helpers import percent
from pvpool.web import StorageAgentClient


class ScalingAction(Enum):
    SCALE_UP = "ScaleUp"
    SCALE_DOWN = "ScaleDown"
    CONVERGED = "Converged"
    PENDING = "Pending"


def decide_scaling_action(desired: int, replicas: int, ready_count: int) -> ScalingAction:
    """Pick what to do with the statefulset, first matching rule wins.

    - SCALE_UP: the pool is not shrinking and not every desired pod is Ready.
    - SCALE_DOWN: the statefulset runs more replicas than desired.
    - CONVERGED: replicas and Ready pods both match the desired size.
    - PENDING: anything else, wait for the next pass.
    """
    if desired >= replicas and ready_count != desired:
        return ScalingAction.SCALE_UP
    if desired < replicas:
        return ScalingAction.SCALE_DOWN
    if replicas == desired and ready_count == desired:
        return ScalingAction.CONVERGED
    return ScalingAction.PENDING


class PvPool(BaseResource):
    """PvPool kubernetes resource."""

    logger: Logger
    conf: Settings = Settings()
    web_client: StorageAgentClient = None
    sensor: OperatorSensor = SensorDelegate()
    shared_api_client: ApiClient = None

    KIND = "PvPool"
    GROUP_NAME = "pvpool.noobaa.com"
    GROUP_VERSION = "v1"
    PLURAL_NAME = "pvpools"
    COMPONENT_TYPE = "storage-agent"
    STORAGE_AGENT_CONTAINER_NAME = "storage-agent"
    STORAGE_AGENT_PORT_NAME = "storage-agent-api"
    # container port names are limited to 15 characters
    STORAGE_AGENT_CONTAINER_PORT_NAME = "agent-api"
    STORAGE_AGENT_COMMAND = ["node", "storage-agent.js"]
    DATA_PATH_ENV = "PV_PATH"
    DATA_VOLUME_NAME = "vol"
    DATA_MOUNT_PATH = "/data"
    DATA_ACCESS_MODE = "ReadWriteOnce"

    service_name: str
    stateful_set_name: str
    image: str
    num_pvs: int
    pv_size_gb: int
    storage_class: Optional[str] = None
    uid: Optional[str] = None
    api_version: str = f"{GROUP_NAME}/{GROUP_VERSION}"

    # derived from spec
    _api_client: ApiClient = None
    _apps_v1_api: AppsV1Api = None
    _core_v1_api: CoreV1Api = None
    _custom_objects_api: CustomObjectsApi = None
    _service: V1Service = None
    _service_hash: str = None
    _stateful_set: V1StatefulSet = None
    _stateful_set_hash: str = None

    def __init__(
        self,
        name: str,
        kind: str,
        namespace: str,
        component_type: str,
        labels: Optional[Dict[str, str]] = None,
    ):
        _labels = Labels.generate_default_labels(
            name,
            kind,
            component_type,
            self.PVPOOL_OPERATOR_NAME,
        )
        _labels.update(labels or {})
        super().__init__(name=name, namespace=namespace, labels=_labels)

    @classmethod
    def from_spec(
        self,
        name: str,
        kind: str,
        namespace: str,
        spec: PvPoolSpec,
        uid: Optional[str] = None,
        api_version: Optional[str] = None,
        logger: Logger = None,
        conf: Settings = None,
        api_client: ApiClient = None,
        web_client: StorageAgentClient = None,
        sensor: OperatorSensor = None,
    ) -> "PvPool":
        pool = PvPool(name, kind, namespace, self.COMPONENT_TYPE)
        pool.logger = logger or logging.getLogger(__name__)
        pool.uid = uid
        if api_version:
            pool.api_version = api_version
        pool.service_name = PvPoolResources.service_name(name)
        pool.stateful_set_name = PvPoolResources.stateful_set_name(name)
        pool.image = spec.image
        pool.num_pvs = spec.num_pvs
        pool.pv_size_gb = spec.pv_size_gb
        pool.storage_class = spec.storage_class
        if conf is not None:
            pool.conf = conf
        if api_client is not None:
            pool._api_client = api_client
        if web_client is not None:
            pool.web_client = web_client
        if sensor is not None:
            pool.sensor = sensor
        return pool

    @classmethod
    def default(self, logger: Logger = None) -> "PvPool":
        """Create a default PvPool resource, used to look up pools by name."""
        pool = PvPool(
            name="default",
            kind=self.KIND,
            namespace=None,
            component_type=self.COMPONENT_TYPE,
        )
        pool.logger = logger or logging.getLogger(__name__)
        return pool

    async def fetch(self, name: str, namespace: str) -> Optional[Dict]:
        """Fetch actual PvPool in kubernetes, None if it no longer exists."""
        return await self.get_custom_object(
            self.custom_objects_api,
            namespace=namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=name,
        )

    async def replace_status(self, body: Dict, status: Dict) -> Dict:
        """Replace the status subresource of the pool `body` was read from.

        The resourceVersion in `body` makes the write fail with a conflict
        when the pool changed since it was fetched.
        """
        _body = dict(body)
        _body["status"] = {**(body.get("status") or {}), **status}
        return await self.replace_custom_object_status(
            self.custom_objects_api,
            namespace=self.namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=self.name,
            body=_body,
        )

    async def synchronize(self) -> PvPoolStatus:
        """Run one pass over the pool's owned resources and pods.

        Returns the freshly computed pool status. Any failure propagates and
        leaves the stored status untouched.
        """
        await self.ensure_service()
        stateful_set = await self.ensure_stateful_set()
        pods = await self.list_pool_pods()
        status = await self.collect_pods_status(pods)
        await self.reconcile_stateful_set(stateful_set, pods, status)
        self.report_pool_state(status)
        return status

    # ------------------------------------------------------------------
    # Resource ensurer
    # ------------------------------------------------------------------

    async def ensure_service(self) -> V1Service:
        """Return the pool's service, creating it when missing."""
        return await self._ensure(
            "service",
            self.service_name,
            lambda: self.fetch_service(self.core_v1_api, self.service_name, self.namespace),
            lambda: self.create_service(self.core_v1_api, self.namespace, self.service),
            self.service_hash,
        )

    async def ensure_stateful_set(self) -> V1StatefulSet:
        """Return the pool's statefulset, creating it when missing."""
        return await self._ensure(
            "statefulset",
            self.stateful_set_name,
            lambda: self.fetch_stateful_set(
                self.apps_v1_api, self.stateful_set_name, self.namespace
            ),
            lambda: self.create_stateful_set(
                self.apps_v1_api, self.namespace, self.stateful_set
            ),
            self.stateful_set_hash,
        )

    async def _ensure(
        self,
        resource_type: str,
        resource_name: str,
        fetch: Callable[[], Awaitable],
        create: Callable[[], Awaitable],
        desired_hash: str,
    ) -> Union[V1Service, V1StatefulSet]:
        actual = await fetch()
        if actual is not None:
            self.detect_drift(resource_type, resource_name, actual, desired_hash)
            return actual

        self.logger.info(f"Creating {resource_type} `{resource_name}`.")
        sensor_state = self.sensor.on_resource_sync_start(
            self.name, resource_name, self.namespace, resource_type
        )
        success = True
        try:
            return await create()
        except ApiException as ex:
            if already_exists_error(ex):
                # created concurrently, use whatever is there now
                self.logger.info(f"{resource_type} `{resource_name}` already exists.")
                return await fetch()
            success = False
            raise
        except Exception:
            success = False
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.name,
                resource_name,
                self.namespace,
                resource_type,
                sensor_state,
                "create",
                success,
            )

    def detect_drift(
        self,
        resource_type: str,
        resource_name: str,
        actual: Union[V1Service, V1StatefulSet],
        desired_hash: str,
    ) -> bool:
        """Report an existing resource built from a different pool spec.

        Existing resources are never modified, only reported.
        """
        actual_hash = self.read_hash_annotation(actual)
        if actual_hash is None or actual_hash == desired_hash:
            return False
        self.logger.warning(
            f"{resource_type} `{resource_name}` does not match the pool spec and will not be updated."
        )
        self.sensor.on_resource_drift_detected(
            self.name, resource_name, self.namespace, resource_type
        )
        return True

    # ------------------------------------------------------------------
    # Pod status collector
    # ------------------------------------------------------------------

    async def list_pool_pods(self) -> List[V1Pod]:
        """List the pool's pods ordered by statefulset ordinal."""
        pods = await self.list_pods(
            self.core_v1_api,
            self.namespace,
            label_selector=self.labels.selector().as_dict(),
        )

        def ordinal_key(pod: V1Pod):
            try:
                return (0, PvPoolResources.pod_ordinal(pod.metadata.name, self.stateful_set_name))
            except MalformedPodIdentity:
                return (1, pod.metadata.name)

        return sorted(pods.items or [], key=ordinal_key)

    async def collect_pods_status(self, pods: List[V1Pod]) -> PvPoolStatus:
        """Query the storage agent of every pod and build the pool status.

        Utilization is the used share of the capacity reported by Ready pods.
        """
        status = PvPoolStatus.initial()
        total, used = 0, 0
        for pod in pods:
            pod_name = pod.metadata.name
            agent_status = await self.web_client.get_status(self.prepare_pod_url(pod))
            if agent_status.state == PodState.UNKNOWN:
                self.logger.info(f"Storage agent of pod `{pod_name}` reported an unknown state.")
            status.add_pod(pod_name, agent_status.state)
            if agent_status.state == PodState.READY:
                total += agent_status.total
                used += agent_status.used
        status.used = percent(used, total)
        return status

    def report_pool_state(self, status: PvPoolStatus):
        self.sensor.on_pool_state(
            self.name,
            self.namespace,
            {state.value: count for state, count in status.count_by_state.items()},
            status.used,
        )

    # ------------------------------------------------------------------
    # Scaling and decommission engine
    # ------------------------------------------------------------------

    async def reconcile_stateful_set(
        self, stateful_set: V1StatefulSet, pods: List[V1Pod], status: PvPoolStatus
    ) -> ScalingAction:
        """Move the statefulset toward the desired pool size and set the phase."""
        desired = self.num_pvs
        replicas = stateful_set.spec.replicas or 0
        action = decide_scaling_action(desired, replicas, status.ready_count)
        self.logger.debug(
            f"Pool has {replicas} replicas, {status.ready_count} ready, {desired} desired: {action.value}"
        )
        self.sensor.on_scaling_action(
            self.name, self.namespace, action.value, desired, replicas
        )

        if action == ScalingAction.SCALE_UP:
            status.phase = PoolPhase.SCALING
            if replicas != desired:
                await self.scale_stateful_set(desired)
        elif action == ScalingAction.SCALE_DOWN:
            status.phase = PoolPhase.SCALING
            await self.decommission_required_pods(pods, status)
        elif action == ScalingAction.CONVERGED:
            status.phase = PoolPhase.READY
        else:
            status.phase = PoolPhase.SCALING
        return action

    async def scale_stateful_set(self, replicas: int):
        self.logger.info(f"Scaling statefulset `{self.stateful_set_name}` to {replicas} replicas.")
        sensor_state = self.sensor.on_resource_sync_start(
            self.name, self.stateful_set_name, self.namespace, "statefulset"
        )
        success = True
        try:
            await self.patch_stateful_set(
                self.apps_v1_api,
                self.stateful_set_name,
                self.namespace,
                {"spec": {"replicas": replicas}},
            )
        except Exception:
            success = False
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                self.name,
                self.stateful_set_name,
                self.namespace,
                "statefulset",
                sensor_state,
                "scale",
                success,
            )

    async def decommission_required_pods(
        self, pods: List[V1Pod], status: PvPoolStatus
    ) -> List[str]:
        """Signal the agents of pods beyond the desired size to decommission.

        Signalled pods are marked Decommissioned right away. Pods already
        decommissioning are left alone. Returns the names of signalled pods.
        """
        signalled = []
        for pod in pods:
            pod_name = pod.metadata.name
            try:
                ordinal = PvPoolResources.pod_ordinal(pod_name, self.stateful_set_name)
            except MalformedPodIdentity as ex:
                self.logger.warning(f"Skipping pod: {ex}")
                continue
            if ordinal < self.num_pvs:
                continue
            index = status.index_of(pod_name)
            if index is None:
                continue
            if status.pods_info[index].pod_state == PodState.DECOMMISSIONING:
                continue

            self.logger.info(f"Decommissioning storage agent of pod `{pod_name}`.")
            success = False
            try:
                await self.web_client.decommission(self.prepare_pod_url(pod))
                success = True
            finally:
                self.sensor.on_decommission(self.name, self.namespace, pod_name, success)
            status.set_pod_state(index, PodState.DECOMMISSIONED)
            signalled.append(pod_name)
        return signalled

    # ------------------------------------------------------------------
    # Desired resources
    # ------------------------------------------------------------------

    def prepare_pod_url(self, pod: V1Pod) -> str:
        subdomain = pod.spec.subdomain if pod.spec else None
        return PvPoolResources.pod_url(
            pod.metadata.name,
            subdomain or self.service_name,
            self.namespace,
            self.conf.storage_agent_port,
        )

    def prepare_owner_references(self) -> Optional[List[V1OwnerReference]]:
        """Reference the pool as controller so owned resources are garbage collected with it."""
        if not self.uid:
            return None
        return [
            V1OwnerReference(
                api_version=self.api_version,
                kind=self.KIND,
                name=self.name,
                uid=self.uid,
                controller=True,
                block_owner_deletion=True,
            )
        ]

    def prepare_service(self) -> V1Service:
        """Build the headless service addressing the pool's pods."""
        annotations = {}
        service = V1Service(
            api_version="v1",
            kind="Service",
            metadata=V1ObjectMeta(
                name=self.service_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations=annotations,
                owner_references=self.prepare_owner_references(),
            ),
            spec=V1ServiceSpec(
                cluster_ip="None",
                selector=self.labels.selector().as_dict(),
                publish_not_ready_addresses=True,
                ports=[
                    V1ServicePort(
                        name=self.STORAGE_AGENT_PORT_NAME,
                        protocol="TCP",
                        port=self.conf.storage_agent_port,
                        target_port=self.conf.storage_agent_port,
                    )
                ],
            ),
        )
        annotations.update(
            self.prepare_hash_annotation(self.prepare_service_hash(service))
        )
        return service

    def prepare_service_hash(self, service: V1Service) -> str:
        return self.compute_hash(self.prepare_service_watch_fields(service))

    def prepare_service_watch_fields(self, service: V1Service) -> Dict:
        return {"spec": service.spec.to_dict()}

    def prepare_container_resource_requirements(self) -> V1ResourceRequirements:
        resources = {
            "cpu": self.conf.storage_agent_cpu,
            "memory": self.conf.storage_agent_memory,
        }
        return V1ResourceRequirements(limits=dict(resources), requests=dict(resources))

    def prepare_storage_agent_container(self) -> V1Container:
        return V1Container(
            name=self.STORAGE_AGENT_CONTAINER_NAME,
            image=self.image,
            command=list(self.STORAGE_AGENT_COMMAND),
            env=[V1EnvVar(name=self.DATA_PATH_ENV, value=self.DATA_MOUNT_PATH)],
            ports=[
                V1ContainerPort(
                    name=self.STORAGE_AGENT_CONTAINER_PORT_NAME,
                    container_port=self.conf.storage_agent_port,
                    protocol="TCP",
                )
            ],
            resources=self.prepare_container_resource_requirements(),
            volume_mounts=[
                V1VolumeMount(name=self.DATA_VOLUME_NAME, mount_path=self.DATA_MOUNT_PATH)
            ],
        )

    def prepare_pod_template(self) -> V1PodTemplateSpec:
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(labels=self.labels.as_dict()),
            spec=V1PodSpec(containers=[self.prepare_storage_agent_container()]),
        )

    def prepare_volume_claim_template(self) -> V1PersistentVolumeClaim:
        """Build the per-pod data volume claim, sized in bytes."""
        return V1PersistentVolumeClaim(
            metadata=V1ObjectMeta(name=self.DATA_VOLUME_NAME),
            spec=V1PersistentVolumeClaimSpec(
                access_modes=[self.DATA_ACCESS_MODE],
                resources=V1ResourceRequirements(
                    requests={"storage": str(self.pv_size_gb * 1024**3)}
                ),
                storage_class_name=self.storage_class,
            ),
        )

    def prepare_stateful_set(self) -> V1StatefulSet:
        """Build the statefulset running one storage agent per volume."""
        annotations = {}
        stateful_set = V1StatefulSet(
            api_version="apps/v1",
            kind="StatefulSet",
            metadata=V1ObjectMeta(
                name=self.stateful_set_name,
                namespace=self.namespace,
                labels=self.labels.as_dict(),
                annotations=annotations,
                owner_references=self.prepare_owner_references(),
            ),
            spec=V1StatefulSetSpec(
                replicas=self.num_pvs,
                service_name=self.service_name,
                selector=V1LabelSelector(match_labels=self.labels.selector().as_dict()),
                template=self.prepare_pod_template(),
                volume_claim_templates=[self.prepare_volume_claim_template()],
            ),
        )
        annotations.update(
            self.prepare_hash_annotation(self.prepare_stateful_set_hash(stateful_set))
        )
        return stateful_set

    def prepare_stateful_set_hash(self, stateful_set: V1StatefulSet) -> str:
        return self.compute_hash(self.prepare_stateful_set_watch_fields(stateful_set))

    def prepare_stateful_set_watch_fields(self, stateful_set: V1StatefulSet) -> Dict:
        """Fields owned by the pool spec. Replicas are left out, the engine manages them."""
        return {
            "template": stateful_set.spec.template.to_dict(),
            "volume_claim_templates": [
                claim.to_dict() for claim in stateful_set.spec.volume_claim_templates
            ],
        }

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            # Use the shared API client if available, otherwise create a new one
            if self.shared_api_client is not None:
                self._api_client = self.shared_api_client
            else:
                self._api_client = ApiClient()
        return self._api_client

    @property
    def apps_v1_api(self) -> AppsV1Api:
        if self._apps_v1_api is None:
            self._apps_v1_api = AppsV1Api(self.api_client)
        return self._apps_v1_api

    @property
    def core_v1_api(self) -> CoreV1Api:
        if self._core_v1_api is None:
            self._core_v1_api = CoreV1Api(self.api_client)
        return self._core_v1_api

    @property
    def custom_objects_api(self) -> CustomObjectsApi:
        if self._custom_objects_api is None:
            self._custom_objects_api = CustomObjectsApi(self.api_client)
        return self._custom_objects_api

    @property
    def service(self) -> V1Service:
        if self._service is None:
            self._service = self.prepare_service()
        return self._service

    @property
    def service_hash(self) -> str:
        if self._service_hash is None:
            self._service_hash = self.prepare_service_hash(self.service)
        return self._service_hash

    @property
    def stateful_set(self) -> V1StatefulSet:
        if self._stateful_set is None:
            self._stateful_set = self.prepare_stateful_set()
        return self._stateful_set

    @property
    def stateful_set_hash(self) -> str:
        if self._stateful_set_hash is None:
            self._stateful_set_hash = self.prepare_stateful_set_hash(self.stateful_set)
        return self._stateful_set_hash
