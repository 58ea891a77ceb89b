"""
CampusDesk - campus complaint routing, SLA escalation and AI enrichment
"""

__version__ = "1.0.0"
