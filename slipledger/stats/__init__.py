"""Ledger statistics."""

from .ledger import CapperLine, LedgerSummary, by_capper, ledger_facts, summarize

__all__ = ["CapperLine", "LedgerSummary", "by_capper", "ledger_facts", "summarize"]
