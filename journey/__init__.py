from .config import JourneyConfig, StepDefinition, Substep, default_journey, load_config
from .errors import JourneyConfigError, JourneyError, StepFailed
from .runner import FailureKind, JourneyRunner, Outcome, StepResult
from .trace import TraceContext

__all__ = [
    "JourneyConfig", "StepDefinition", "Substep", "default_journey", "load_config",
    "JourneyConfigError", "JourneyError", "StepFailed",
    "FailureKind", "JourneyRunner", "Outcome", "StepResult",
    "TraceContext",
]
