"""API request/response schemas."""

from actionflow.api.schemas.common import (
    ErrorDetail,
    PagedResponse,
    PageMeta,
    ProblemDetail,
    SuccessResponse,
)
from actionflow.api.schemas.workflows import (
    ActionBody,
    CreateWorkflowBody,
    ExecuteBody,
    HealthSchema,
    RunLogSchema,
    RunSchema,
    TriggerBody,
    TriggerPatch,
    UpdateWorkflowBody,
    WorkflowSchema,
)

__all__ = [
    "ActionBody",
    "CreateWorkflowBody",
    "ErrorDetail",
    "ExecuteBody",
    "HealthSchema",
    "PageMeta",
    "PagedResponse",
    "ProblemDetail",
    "RunLogSchema",
    "RunSchema",
    "SuccessResponse",
    "TriggerBody",
    "TriggerPatch",
    "UpdateWorkflowBody",
    "WorkflowSchema",
]
