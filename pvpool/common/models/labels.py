from typing import Dict


class ResourceLabels:
    PVPOOL_DOMAIN: str = "pvpool.noobaa.com/"

    PVPOOL_KIND_LABEL = PVPOOL_DOMAIN + "kind"

    PVPOOL_COMPONENT_TYPE_LABEL = PVPOOL_DOMAIN + "component-type"

    #: Selector label shared by the service, the statefulset and its pods
    POOL_SELECTOR_LABEL = "pv-pool"


class Labels(ResourceLabels):
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_INSTANCE_LABEL = KUBERNETES_DOMAIN + "instance"

    KUBERNETES_PART_OF_LABEL = KUBERNETES_DOMAIN + "part-of"

    APPLICATION_NAME = "pvpool"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_pool(self, pool_name: str) -> "Labels":
        return self.include(self.POOL_SELECTOR_LABEL, pool_name)

    def include_pvpool_kind(self, kind: str) -> "Labels":
        return self.include(self.PVPOOL_KIND_LABEL, kind)

    def include_pvpool_component_type(self, type: str) -> "Labels":
        return self.include(self.PVPOOL_COMPONENT_TYPE_LABEL, type)

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_instance(self, instance_name: str) -> "Labels":
        return self.include(self.KUBERNETES_INSTANCE_LABEL, instance_name)

    def include_kubernetes_part_of(self, instance_name: str) -> "Labels":
        return self.include(
            self.KUBERNETES_PART_OF_LABEL,
            self.get_or_valid_label_value(f"{self.APPLICATION_NAME}-{instance_name}"),
        )

    def include_kubernetes_managed_by(self, operator_name: str) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, operator_name)

    def get_or_valid_label_value(self, value: str) -> str:
        """Trim a value to a valid label value: at most 63 characters,
        not ending with `.`, `-` or `_`.
        """
        if not value:
            return ""
        return value[:63].rstrip(".-_")

    def selector(self) -> "Labels":
        """Labels used to select the pool's pods."""
        return Labels(
            {
                key: self._labels[key]
                for key in [self.POOL_SELECTOR_LABEL]
                if key in self._labels
            }
        )

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(
        cls,
        pool_name: str,
        kind: str,
        component_type: str,
        managed_by: str,
    ) -> "Labels":
        labels = Labels()
        return (
            labels.include_pool(pool_name)
            .include_pvpool_kind(kind)
            .include_pvpool_component_type(component_type)
            .include_kubernetes_name(component_type)
            .include_kubernetes_instance(pool_name)
            .include_kubernetes_part_of(pool_name)
            .include_kubernetes_managed_by(managed_by)
        )
