"""
Sheets Ledger Bot - Source Package

A private Telegram bot that records personal finance entries as rows
in a Google Sheets ledger, driven by reply-keyboard conversations.

DESIGN PRINCIPLES:
1. Nothing is written until a flow reaches its final step
2. Fail visibly: a failed ledger call is reported, never retried silently
3. Every change to the ledger is auditable
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Sheets Ledger Team"
