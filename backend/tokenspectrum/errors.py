"""Failure taxonomy shared by the grant builder, relayer client and lifecycle controller."""


class SpectrumError(Exception):
    """Base class for every failure surfaced at an action boundary."""

    kind = "error"
    retryable = False
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SpectrumError):
    """Contract address or ABI not provisioned."""

    kind = "configuration_error"
    http_status = 503


class WalletUnavailable(SpectrumError):
    kind = "wallet_unavailable"
    retryable = True
    http_status = 409


class WrongNetwork(SpectrumError):
    """Connected chain differs from the configured target network."""

    kind = "wrong_network"
    http_status = 409


class AuthorizationDenied(SpectrumError):
    """Grant signing rejected, timed out, expired or not valid for the request."""

    kind = "authorization_denied"
    retryable = True
    http_status = 401


class AccessDenied(SpectrumError):
    """Decryption service refused a handle for the caller (ACL mismatch)."""

    kind = "access_denied"
    http_status = 403


class ChainRejected(SpectrumError):
    """Contract-level revert, e.g. double claim or claim by a non-owner."""

    kind = "chain_rejected"
    http_status = 409


class ServiceUnavailable(SpectrumError):
    kind = "service_unavailable"
    retryable = True
    http_status = 503


class NetworkError(SpectrumError):
    kind = "network_error"
    retryable = True
    http_status = 502


class InvalidRequest(SpectrumError):
    """Action called without anything to act on."""

    kind = "invalid_request"
    http_status = 422
