import asyncio
import time
import kopf
from logging import Logger
from collections import defaultdict
from typing import Dict, NamedTuple, Optional
from kubernetes_asyncio.client import ApiException
from pvpool.resources import PvPool
from pvpool.types.models import PoolPhase, PvPoolSpec, PvPoolStatus
from pvpool.types.schemas import PvPoolSpecSchema, PvPoolStatusSchema
from pvpool.utils.helpers import deep_compare_dict

POOL_KIND = "PvPool"

# Serializes passes over the same pool
reconciliation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
# Wakes a pool's daemon before its requeue delay ran out
reconcile_triggers: Dict[str, asyncio.Event] = defaultdict(asyncio.Event)


class ReconcileResult(NamedTuple):
    """Outcome of one pass: when to run again (None to stop) and the error, if any."""

    requeue_after: Optional[float]
    error: Optional[Exception]


def pool_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


def request_reconciliation(namespace: str, name: str):
    """Wake the pool's daemon for an immediate pass."""
    reconcile_triggers[pool_key(namespace, name)].set()


def status_changed(stored: Optional[Dict], desired: Dict) -> bool:
    """Compare only the status keys this operator owns."""
    _stored = stored or {}
    return not deep_compare_dict({k: _stored.get(k) for k in desired}, desired)


async def reconcile(
    name: str, namespace: str, logger: Logger, trigger_source: str = "manual"
) -> ReconcileResult:
    """Run one reconciliation pass over a PvPool."""
    async with reconciliation_locks[pool_key(namespace, name)]:
        sensor = PvPool.sensor
        sensor_state = sensor.on_reconcile_start(name, namespace, trigger_source)
        success, error = True, None
        try:
            result = await _reconcile(name, namespace, logger)
            success = result.error is None
            error = result.error
            return result
        except Exception as e:
            success, error = False, e
            raise
        finally:
            sensor.on_reconcile_complete(name, namespace, sensor_state, success, error)


async def _reconcile(name: str, namespace: str, logger: Logger) -> ReconcileResult:
    conf = PvPool.conf
    try:
        body = await PvPool.default(logger=logger).fetch(name, namespace)
    except Exception as e:
        logger.error(f"Failed to fetch {POOL_KIND}/{name}: {e!r}")
        return ReconcileResult(conf.requeue_delay_seconds, e)
    if body is None:
        logger.info(f"{POOL_KIND}/{name} not found, stopping reconciliation.")
        return ReconcileResult(None, None)

    meta = body.get("metadata", {})
    try:
        spec_model: PvPoolSpec = PvPoolSpecSchema().load(body.get("spec") or {})
        pool = PvPool.from_spec(
            name,
            POOL_KIND,
            namespace,
            spec_model,
            uid=meta.get("uid"),
            api_version=body.get("apiVersion"),
            logger=logger,
        )
        logger.debug(f"Reconciling {POOL_KIND}/{name} in {namespace} namespace.")
        status: PvPoolStatus = await pool.synchronize()
    except Exception as e:
        logger.error(f"Unexpected error during reconciliation: {e}")
        logger.exception(e)
        return ReconcileResult(conf.requeue_delay_seconds, e)

    desired = PvPoolStatusSchema().dump(status)
    if status_changed(body.get("status"), desired):
        try:
            await pool.replace_status(body, desired)
        except ApiException as e:
            # conflicts land here when the pool changed since it was fetched
            logger.warning(f"Failed to update status of {POOL_KIND}/{name}: {e.reason}")
            return ReconcileResult(conf.requeue_delay_seconds, e)
        except Exception as e:
            logger.error(f"Failed to update status of {POOL_KIND}/{name}: {e!r}")
            return ReconcileResult(conf.requeue_delay_seconds, e)
        logger.info(f"{POOL_KIND}/{name} is {status.phase.value}.")
        pool.sensor.on_status_update(name, namespace, status.phase.value)

    if status.phase != PoolPhase.READY:
        return ReconcileResult(conf.requeue_delay_seconds, None)
    return ReconcileResult(conf.ready_requeue_delay_seconds, None)


@kopf.daemon(kind=POOL_KIND)
async def run_reconciliation(stopped, name, namespace, logger: Logger, **kwargs):
    """Drive passes over a pool until it is gone.

    Each pass decides when the next one runs; spec changes cut the wait short.
    """
    key = pool_key(namespace, name)
    trigger_source = "event"
    try:
        while not stopped:
            try:
                reconcile_triggers[key].clear()
                start_time = time.time()
                result = await reconcile(
                    name, namespace, logger, trigger_source=trigger_source
                )
                logger.debug(
                    f"Reconciliation for {name} completed in {time.time() - start_time:.2f} seconds"
                )
                if result.requeue_after is None:
                    break
                try:
                    await asyncio.wait_for(
                        reconcile_triggers[key].wait(), timeout=result.requeue_after
                    )
                    trigger_source = "event"
                except asyncio.TimeoutError:
                    trigger_source = "timer"
            except asyncio.CancelledError:
                logger.info("Stopping reconciliation...")
                break
            except Exception as e:
                logger.error(f"Unexpected error during reconciliation: {e}")
                logger.exception(e)
                await asyncio.sleep(PvPool.conf.requeue_delay_seconds)
                trigger_source = "timer"
    finally:
        # drop per-pool entries once the daemon exits
        reconcile_triggers.pop(key, None)
        reconciliation_locks.pop(key, None)


@kopf.on.resume(kind=POOL_KIND)
@kopf.on.create(kind=POOL_KIND)
async def on_create(name, namespace, logger: Logger, **kwargs):
    """Request a pass for a new or resumed pool."""
    logger.debug(f"Requesting reconciliation of {POOL_KIND}/{name}.")
    request_reconciliation(namespace, name)


@kopf.on.update(kind=POOL_KIND, field="spec")
async def on_spec_update(name, namespace, diff, logger: Logger, **kwargs):
    """Request a pass after the pool spec changed."""
    logger.info(f"Spec of {POOL_KIND}/{name} changed: {list(diff)}")
    request_reconciliation(namespace, name)


@kopf.on.delete(kind=POOL_KIND, optional=True)
async def on_delete(name, namespace, **kwargs):
    """Drop bookkeeping for a deleted pool, owned resources are garbage collected."""
    key = pool_key(namespace, name)
    reconciliation_locks.pop(key, None)
    trigger = reconcile_triggers.pop(key, None)
    if trigger is not None:
        trigger.set()
