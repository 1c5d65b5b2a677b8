"""AgentRelay exception classes."""

from typing import Optional


class AgentRelayError(Exception):
    """Base exception for all AgentRelay errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(AgentRelayError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AdmissionError(AgentRelayError):
    """Raised when a payment does not admit the request."""

    def __init__(self, reason: str) -> None:
        super().__init__("PAYMENT_REJECTED", reason)
        self.reason = reason


class SelectionError(AgentRelayError):
    """Raised when no agent matches a capability."""

    def __init__(self, capability: str) -> None:
        super().__init__("NO_AGENT", f"No agent found for capability: {capability}")
        self.capability = capability


class TransportError(AgentRelayError):
    """Raised when a remote agent is unreachable or answers non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = "TRANSPORT_ERROR") -> None:
        super().__init__(code, message)
        self.status_code = status_code


class DeserializationError(TransportError):
    """Raised when a remote agent's response body is not valid JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, status_code, code="DESERIALIZATION_ERROR")


class ExplorerError(AgentRelayError):
    """Raised when the transaction explorer cannot be queried."""

    def __init__(self, message: str) -> None:
        super().__init__("EXPLORER_ERROR", message)


class StoreError(AgentRelayError):
    """Raised when the capability store fails. Fatal for the current operation."""

    def __init__(self, message: str) -> None:
        super().__init__("STORE_ERROR", message)
