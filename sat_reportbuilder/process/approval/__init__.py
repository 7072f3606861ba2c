"""
Report approval workflow: submission, Technical Manager and Project
Manager approval, rejection and revision.
"""

from .workflow import ReportApprovalWorkflow  # noqa: F401
