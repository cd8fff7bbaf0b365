"""
aiorch - AI Orchestration Engine
Context assembly, bounded tool-calling loop and response persistence for chat turns
"""

# Setup rich logging and tracebacks globally
from .utils.rich_logging import setup_rich_logging
setup_rich_logging()

from .core.config import OrchestratorConfig, Settings, get_settings
from .core.orchestrator import Orchestrator
from .models.result import Result, ServiceError
from .models.schemas import OrchestratorInput, OrchestratorResult

__version__ = "0.1.0"

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "OrchestratorInput",
    "OrchestratorResult",
    "Result",
    "ServiceError",
    "Settings",
    "get_settings",
]
