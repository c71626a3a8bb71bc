from .gate import ALLOW, DENY, AuthDecision, AuthGate

__all__ = ["ALLOW", "DENY", "AuthDecision", "AuthGate"]
