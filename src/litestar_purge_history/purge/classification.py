"""Classification of failed and terminated instances into remediation buckets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from litestar_purge_history.core.models import OrchestrationInstance

__all__ = ["ClassifiedInstances", "classify_instances", "is_primary_workflow"]


@dataclass(frozen=True)
class ClassifiedInstances:
    """Instance IDs partitioned by how they are remediated.

    Attributes:
        requeue: Instances of the primary workflow, refreshed before they are purged.
        delete: All other instances, purged directly.
    """

    requeue: tuple[str, ...] = ()
    delete: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.requeue) + len(self.delete)


def is_primary_workflow(name: str | None, primary_workflow_name: str) -> bool:
    """Case-insensitive comparison of a workflow type name with the primary workflow."""
    return name is not None and name.lower() == primary_workflow_name.lower()


async def classify_instances(
    instances: AsyncIterable[OrchestrationInstance],
    primary_workflow_name: str,
) -> ClassifiedInstances:
    """Partition instances into the re-queue and delete buckets in one pass.

    Every instance lands in exactly one bucket. The order of the source is
    preserved inside each bucket.

    Args:
        instances: The queried instances, consumed once.
        primary_workflow_name: Workflow type routed to the re-queue bucket.

    Returns:
        The classified instance IDs.
    """
    requeue: list[str] = []
    delete: list[str] = []

    async for instance in instances:
        if is_primary_workflow(instance.name, primary_workflow_name):
            requeue.append(instance.instance_id)
        else:
            delete.append(instance.instance_id)

    return ClassifiedInstances(requeue=tuple(requeue), delete=tuple(delete))
