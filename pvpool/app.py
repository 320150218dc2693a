import kopf
import logging
import pvpool.handlers.probes as probes
import pvpool.handlers.pvpool as pvpool
from pvpool.types.settings import Settings
from pvpool.resources import PvPool
from pvpool.web import StorageAgentClient
from pvpool.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient

ANNOTATIONS_PREFIX = "pvpool.noobaa.com"


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    PvPool.conf = memo.conf
    PvPool.web_client = StorageAgentClient(timeout=memo.conf.agent_request_timeout_seconds)

    # One ApiClient shared by every pool to prevent connection leaks
    PvPool.shared_api_client = ApiClient()
    logger.info("Shared Kubernetes API client initialized")

    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    PvPool.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    try:
        init_metrics_server()
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logger.warning("Continuing without metrics server")

    # Limit the number of concurrent workers to prevent flooding the API
    settings.batching.worker_limit = memo.conf.worker_limit

    # Post only warnings and errors as Kubernetes events
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    # Keep kopf bookkeeping out of the status subresource, the reconciler owns it
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=ANNOTATIONS_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=ANNOTATIONS_PREFIX
    )


@kopf.on.cleanup()
async def cleanup(logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    if PvPool.shared_api_client is not None:
        await PvPool.shared_api_client.close()
        logger.info("Shared API client closed")

    if PvPool.web_client is not None:
        await PvPool.web_client.close()
        logger.info("Storage agent client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "probes",
    "pvpool",
]
