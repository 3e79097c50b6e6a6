"""Bridge a registry of abilities to a function-calling model."""

from .pipeline import Orchestrator, build_orchestrator
from .registry import AbilityRegistry
from .schemas import AbilityDefinition, AbilityFailure, ChatResult

__all__ = [
    "AbilityDefinition",
    "AbilityFailure",
    "AbilityRegistry",
    "ChatResult",
    "Orchestrator",
    "build_orchestrator",
]
