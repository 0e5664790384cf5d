from .gate import ApprovalDecision, ApprovalRequest, ApprovalRequester, ApprovalGate

__all__ = ["ApprovalDecision", "ApprovalRequest", "ApprovalRequester", "ApprovalGate"]
