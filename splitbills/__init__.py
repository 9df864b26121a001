"""
splitbills - Source Package

Split a restaurant bill: a receipt photo becomes a list of priced items,
people are assigned to items by hand or by chatting with an assistant, and
everybody's share of items, tax and tip is recomputed on every change.

DESIGN PRINCIPLES:
1. AI proposes → Engine validates → Snapshot changes
2. One gate for every change, whoever made it
3. Derived numbers are recomputed, never stored
4. Every step is auditable
"""

__version__ = "1.0.0"
__author__ = "splitbills Team"
