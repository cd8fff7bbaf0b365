"""
Core components of the orchestration engine.

Import components from their modules, e.g.
``from aiorch.core.orchestrator import Orchestrator``.
"""
