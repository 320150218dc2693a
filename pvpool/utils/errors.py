import json
import kubernetes_asyncio

_ALREADY_EXISTS = "alreadyexists"
_NOT_FOUND = "notfound"


class MalformedPodIdentity(ValueError):
    """Pod name does not follow the `<statefulset>-<ordinal>` convention."""
    pass


def _reason(ex: kubernetes_asyncio.client.ApiException) -> str:
    try:
        err = json.loads(ex.body or "{}")
    except (json.JSONDecodeError, TypeError):
        return ""
    return err.get("reason", "").lower()


def already_exists_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    else:
        return ex.status == 409 and _reason(ex) == _ALREADY_EXISTS


def not_found_error(ex: kubernetes_asyncio.client.ApiException) -> bool:
    if not isinstance(ex, kubernetes_asyncio.client.ApiException):
        return False
    else:
        return ex.status == 404 or _reason(ex) == _NOT_FOUND
