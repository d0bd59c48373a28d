"""
PAI Record Core - Source Package

The data layer of the PAI personal-productivity app: recurrence expansion
for financial entries and dual-mode record stores that keep each domain
(finance, tasks, notes, calendar, relationships, time clock) in local
storage for guests and in the cloud for subscribers.

DESIGN PRINCIPLES:
1. One in-memory collection per domain is what the UI renders
2. The remote service is authoritative whenever access is granted
3. Losing access never loses a user's input (local fallback)
4. Mutations report outcomes; they never raise
5. Every step must be auditable
"""

__version__ = "1.0.0"
__author__ = "PAI Team"
