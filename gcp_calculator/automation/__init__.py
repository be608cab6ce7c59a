"""Playwright automation of the GCP Pricing Calculator."""

from .browser import BrowserConfig, BrowserSessionManager
from .controller import EstimateSessionController, SessionState
from .diagnostics import DiagnosticsCollector, NullDiagnostics, create_diagnostics
from .field_setter import FieldResult, FormFieldSetter
from .runner import run_estimate
from .selector import OptionQuery, ResilientSelector, SelectionOutcome
from .sequencer import ConfigStage, InstanceSequencer

__all__ = [
    "BrowserConfig",
    "BrowserSessionManager",
    "EstimateSessionController",
    "SessionState",
    "DiagnosticsCollector",
    "NullDiagnostics",
    "create_diagnostics",
    "FieldResult",
    "FormFieldSetter",
    "run_estimate",
    "OptionQuery",
    "ResilientSelector",
    "SelectionOutcome",
    "ConfigStage",
    "InstanceSequencer",
]
