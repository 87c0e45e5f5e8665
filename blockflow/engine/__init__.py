from blockflow.engine.continuation import ContinuationScheduler
from blockflow.engine.executor import WorkflowExecutor, build_executor
from blockflow.engine.template import interpolate_template, resolve_parameters
from blockflow.engine.triggers import TriggerDispatcher

__all__ = [
    "ContinuationScheduler",
    "TriggerDispatcher",
    "WorkflowExecutor",
    "build_executor",
    "interpolate_template",
    "resolve_parameters",
]
