"""Model-backed agents: slip reader and ledger assistant."""

from .assistant import AssistantValidationError, LedgerAssistant
from .slip_reader import ScanParseError, SlipReader, normalize_scan

__all__ = [
    "AssistantValidationError",
    "LedgerAssistant",
    "ScanParseError",
    "SlipReader",
    "normalize_scan",
]
