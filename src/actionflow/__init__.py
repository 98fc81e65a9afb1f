"""actionflow - workflow automation engine.

Workflows bind a trigger (manual, cron schedule or application event) to an
ordered pipeline of actions: notification, email, task, webhook, condition
and wait. See ``actionflow.orchestration.service.WorkflowService`` for the
application-facing entry points.
"""

__version__ = "0.1.0"
