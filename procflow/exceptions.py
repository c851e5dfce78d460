"""procflow exception hierarchy.

Two families matter to callers:

- ``ConfigurationError``: the process definition itself is broken
  (missing start event, ambiguous outgoing flows, unknown condition
  strategy, ...). These are authoring defects and are never retried.
- ``WorkflowStateError`` / ``NotFoundError``: the caller asked for
  something the current instance state does not allow. They carry the
  instance/task/executor identifiers for diagnosis.

Usage:
    from procflow.exceptions import WorkflowCompletedError, WorkflowStateError

    try:
        await instance.complete_user_task(user="u1")
    except WorkflowStateError as e:
        logger.warning("Rejected: %s (instance=%s)", e, e.instance_id)
"""

import uuid


class ProcflowError(Exception):
    """Base exception for all procflow errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class ConfigurationError(ProcflowError):
    """Errors from a malformed workflow definition or engine configuration."""

    def __init__(
        self,
        message: str,
        *,
        workflow_id: str | None = None,
        flow_node_id: str | None = None,
        **kwargs,
    ):
        self.workflow_id = workflow_id
        self.flow_node_id = flow_node_id
        super().__init__(message, **kwargs)


class WorkflowStateError(ProcflowError):
    """An operation is not allowed in the instance's current state."""

    def __init__(
        self,
        message: str,
        *,
        instance_id: str | None = None,
        task_id: str | None = None,
        executor: str | None = None,
        **kwargs,
    ):
        self.instance_id = instance_id
        self.task_id = task_id
        self.executor = executor
        super().__init__(message, **kwargs)


class WorkflowCompletedError(WorkflowStateError):
    """The instance has already reached a terminate event."""

    def __init__(self, instance_id: str, **kwargs):
        super().__init__(
            f"Workflow is already completed. instance id = [{instance_id}]",
            instance_id=instance_id,
            **kwargs,
        )


class AssignmentError(WorkflowStateError):
    """Invalid participant assignment (e.g. several users on a single task)."""

    pass


class UnsupportedOperationError(ProcflowError):
    """The operation has no meaning for this kind of instance."""

    pass


class NotFoundError(ProcflowError):
    """A requested definition element does not exist."""

    pass


class DefinitionNotFoundError(NotFoundError):
    """No workflow definition matches the requested id (and version)."""

    def __init__(self, workflow_id: str, version: int | None = None, **kwargs):
        self.workflow_id = workflow_id
        self.version = version
        if version is None:
            message = f"Workflow definition was not found. workflow id = [{workflow_id}]"
        else:
            message = (
                f"Workflow definition was not found. workflow id = [{workflow_id}], "
                f"version = [{version}]"
            )
        super().__init__(message, **kwargs)


class FlowNodeNotFoundError(NotFoundError):
    """No flow node with the given id exists in the definition."""

    def __init__(self, workflow_id: str, version: int, flow_node_id: str, **kwargs):
        self.workflow_id = workflow_id
        self.version = version
        self.flow_node_id = flow_node_id
        super().__init__(
            f"Flow node definition was not found. workflow id = [{workflow_id}], "
            f"version = [{version}], flow node id = [{flow_node_id}]",
            **kwargs,
        )


class TaskNotFoundError(FlowNodeNotFoundError):
    """No task with the given id exists in the definition."""

    pass
