"""
SpendWise Core - Source Package

Local-first persistence and session lifecycle for a personal finance
tracker: users log incomes and expenses, data lives on-device and (for
signed-in users) in a hosted backend, and a heuristic engine turns the
records into spending recommendations.

DESIGN PRINCIPLES:
1. Records are partitioned strictly by storage key
2. The Local Store is always available and immediately consistent
3. The Remote Store is best-effort; its failures never undo local changes
4. Guest data is ephemeral
5. Nothing is exposed until the security gate is satisfied
"""

__version__ = "1.0.0"
__author__ = "SpendWise Team"
