"""Slip Ledger: sports bet ledger with AI-assisted slip scanning and grading."""
