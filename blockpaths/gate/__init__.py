"""Path gate: rule compilation, client address extraction, decision, middleware.

Public API:
    PathGate             — compiled gate; evaluate() per request
    BlockPathsMiddleware — Starlette middleware wrapping a PathGate
    ConfigurationError   — raised when a gate cannot be constructed
"""
from blockpaths.gate.decision import Action, GateDecision, PathGate
from blockpaths.gate.middleware import BlockPathsMiddleware
from blockpaths.gate.rules import ConfigurationError

__all__ = ["Action", "BlockPathsMiddleware", "ConfigurationError", "GateDecision", "PathGate"]
