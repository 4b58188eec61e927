"""Vapi GitOps — declarative resource reconciliation for the Vapi platform."""

__version__ = "0.1.0"
