"""Container lifecycle control across registered hosts."""

import logging
from typing import Awaitable, Callable, Dict

from dockmetrics.exceptions import InvalidControlAction
from dockmetrics.models.container import ControlOutcome, ControlResult
from dockmetrics.services import metrics
from dockmetrics.services.docker_pool import DockerClientPool
from dockmetrics.services.docker_stats import DockerStatsService
from dockmetrics.services.host_registry import HostRegistry

logger = logging.getLogger(__name__)

CONTROL_ACTIONS = ("start", "stop", "restart", "pause", "unpause")


def _action_method(
    service: DockerStatsService, action: str
) -> Callable[[str], Awaitable[ControlOutcome]]:
    methods: Dict[str, Callable[[str], Awaitable[ControlOutcome]]] = {
        "start": service.start_container,
        "stop": service.stop_container,
        "restart": service.restart_container,
        "pause": service.pause_container,
        "unpause": service.unpause_container,
    }
    return methods[action]


class ContainerControlService:
    """Resolves a host and runs a lifecycle action on one of its containers."""

    def __init__(self, registry: HostRegistry, pool: DockerClientPool) -> None:
        self.registry = registry
        self.pool = pool

    async def execute(self, host_id: str, container_id: str, action: str) -> ControlResult:
        """Run ``action`` against ``container_id`` on ``host_id``.

        A failure the runtime reports (container already stopped, not
        paused, ...) is an expected outcome, not an error: it comes back as
        ``success=False`` with the runtime's message and is never raised.

        Raises:
            InvalidControlAction: If the action is not supported
            HostNotFound: If the host is not registered
            ContainerNotFound: If the container does not exist on the host
            RuntimeUnavailable: If the host's runtime cannot be reached
        """
        action = action.lower()
        if action not in CONTROL_ACTIONS:
            raise InvalidControlAction(action)

        host = self.registry.get(host_id)
        service = self.pool.get(host)

        outcome = await _action_method(service, action)(container_id)
        if outcome.success:
            metrics.control_actions_total.labels(action=action, result="success").inc()
            return ControlResult(success=True, action=action, container_id=container_id)

        error = outcome.error or "unknown error"
        logger.warning(f"Failed to {action} container {container_id} on host {host_id}: {error}")
        metrics.control_actions_total.labels(action=action, result="failure").inc()
        return ControlResult(
            success=False,
            action=action,
            container_id=container_id,
            error=error,
        )
