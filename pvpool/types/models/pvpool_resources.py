from pvpool.utils.errors import MalformedPodIdentity


class PvPoolResources:
    """Encapsulates the naming scheme used for the resources which the PvPool Operator manages
    for a pool."""

    @classmethod
    def service_name(self, pool_name: str):
        """Returns the name of the headless service addressing the pool's pods."""
        return f"{pool_name}-srv"

    @classmethod
    def stateful_set_name(self, pool_name: str):
        """Returns the name of the statefulset running the pool's storage agents."""
        return f"{pool_name}-sts"

    @classmethod
    def pod_name(self, pool_name: str, ordinal: int):
        return f"{self.stateful_set_name(pool_name)}-{ordinal}"

    @classmethod
    def pod_ordinal(self, pod_name: str, stateful_set_name: str) -> int:
        """Returns the zero-based ordinal embedded in a statefulset pod name.

        Raises:
            MalformedPodIdentity: If the name is not `<stateful_set_name>-<ordinal>`.
        """
        prefix = f"{stateful_set_name}-"
        suffix = pod_name[len(prefix):] if pod_name.startswith(prefix) else ""
        if not suffix.isdecimal():
            raise MalformedPodIdentity(
                f"Pod `{pod_name}` is not an ordinal of statefulset `{stateful_set_name}`."
            )
        return int(suffix)

    @classmethod
    def pod_url(self, pod_name: str, subdomain: str, namespace: str, port: int):
        """Returns the URL of the storage agent running in the given pod."""
        return f"http://{pod_name}.{subdomain}.{namespace}.svc:{port}"
