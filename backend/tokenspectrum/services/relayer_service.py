"""Decryption relayer client: submits signed grants and unseals the returned cleartexts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import httpx
import structlog

from tokenspectrum.config import Settings
from tokenspectrum.errors import (
    AccessDenied,
    AuthorizationDenied,
    ServiceUnavailable,
    SpectrumError,
)
from tokenspectrum.models.asset import normalize_handle
from tokenspectrum.models.grant import AuthorizationGrant, HandleContractPair
from tokenspectrum.services.crypto_utils import unseal_cleartext

logger = structlog.get_logger()

USER_DECRYPT_PATH = "/v1/user-decrypt"
EXTRA_DATA_HEX = "0x00"

AUTHORIZATION_CODES = {"invalid_signature", "expired_request", "invalid_request"}
ACCESS_CODES = {"acl_denied", "not_allowed"}


@dataclass
class DecryptionResult:
    """Per-handle outcome of one relayer round trip."""

    values: dict[str, int] = field(default_factory=dict)
    errors: dict[str, SpectrumError] = field(default_factory=dict)

    def value_for(self, handle: str) -> int:
        """Return the cleartext for a handle or raise the error recorded for it."""
        if handle in self.values:
            return self.values[handle]
        raise self.errors.get(handle) or AccessDenied(f"No result for handle {handle}")


def build_request_payload(
    grant: AuthorizationGrant,
    pairs: list[HandleContractPair],
    contracts_chain_id: int,
) -> dict:
    return {
        "handleContractPairs": [pair.to_wire() for pair in pairs],
        "requestValidity": {
            "startTimestamp": str(grant.start_timestamp),
            "durationDays": str(grant.duration_days),
        },
        "contractsChainId": str(contracts_chain_id),
        "contractAddresses": list(grant.contract_addresses),
        "userAddress": grant.owner_address,
        "signature": grant.wire_signature,
        "publicKey": grant.public_key.hex(),
        "extraData": EXTRA_DATA_HEX,
    }


def _error_code(response: httpx.Response) -> tuple[str, str]:
    try:
        body = response.json()
    except ValueError:
        return "", response.text[:200]
    if not isinstance(body, dict):
        return "", str(body)[:200]
    error = body.get("error", body)
    if isinstance(error, dict):
        return str(error.get("code", "")), str(error.get("message", ""))
    return "", str(error)[:200]


def error_for_response(response: httpx.Response) -> SpectrumError:
    code, message = _error_code(response)
    detail = message or code or f"HTTP {response.status_code}"
    if response.status_code in (400, 401) and (code in AUTHORIZATION_CODES or response.status_code == 401):
        return AuthorizationDenied(f"Decryption request not authorized: {detail}")
    if response.status_code == 403 or code in ACCESS_CODES:
        return AccessDenied(f"Decryption refused: {detail}")
    return ServiceUnavailable(f"Decryption service error ({response.status_code}): {detail}")


def _entry_handle(entry) -> str | None:
    if not isinstance(entry, dict):
        return None
    try:
        return normalize_handle(str(entry.get("handle", "")))
    except ValueError:
        return None


def _entry_error(error) -> tuple[str, str]:
    """Return (code, message) for an entry error given as an object or a bare string."""
    if isinstance(error, dict):
        return str(error.get("code", "")), str(error.get("message", ""))
    if isinstance(error, str):
        # Bare strings such as "acl denied" carry the code in prose form
        return error.strip().lower().replace(" ", "_"), error
    return "", str(error or "")


def error_for_entry(code: str, message: str) -> SpectrumError:
    if code in ACCESS_CODES:
        return AccessDenied(message or "Handle is not decryptable by this account")
    if code in AUTHORIZATION_CODES:
        return AuthorizationDenied(message or "Decryption request not authorized")
    return ServiceUnavailable(message or f"Decryption failed ({code or 'unknown'})")


class RelayerClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self._base_url = settings.relayer_url.rstrip("/")
        self._timeout = settings.relayer_timeout_seconds
        self._contracts_chain_id = settings.chain_id
        self._transport = transport

    async def decrypt(
        self,
        grant: AuthorizationGrant,
        handle_contract_pairs: Iterable[HandleContractPair],
    ) -> DecryptionResult:
        """
        Decrypt a batch of handles under one grant.

        The grant is consumed whatever the outcome. Request-level failures
        raise; per-handle failures are reported in the result so one denied
        handle never hides the others.
        """
        pairs = list(dict.fromkeys(handle_contract_pairs))
        if not pairs:
            raise ValueError("At least one handle/contract pair is required")
        if not grant.covers(pairs):
            raise AuthorizationDenied("Grant does not cover the requested handles")

        private_key = grant.consume()
        payload = build_request_payload(grant, pairs, self._contracts_chain_id)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}{USER_DECRYPT_PATH}",
                    json=payload,
                    timeout=self._timeout,
                )
        except httpx.RequestError as e:
            logger.error("relayer_request_error", error=str(e))
            raise ServiceUnavailable(f"Decryption service unreachable: {e}")

        if response.status_code != 200:
            error = error_for_response(response)
            logger.warning(
                "relayer_request_rejected",
                status_code=response.status_code,
                error_kind=error.kind,
            )
            raise error

        try:
            entries = response.json()["response"]
            if not isinstance(entries, list):
                raise TypeError("response is not a list")
        except (ValueError, KeyError, TypeError) as e:
            raise ServiceUnavailable(f"Malformed decryption service response: {e}")

        requested = {pair.handle for pair in pairs}
        result = DecryptionResult()
        for entry in entries:
            handle = _entry_handle(entry)
            if handle not in requested:
                continue
            if "error" in entry:
                result.errors[handle] = error_for_entry(*_entry_error(entry["error"]))
                continue
            try:
                result.values[handle] = unseal_cleartext(private_key, handle, entry.get("sealed") or {})
            except ValueError as e:
                result.errors[handle] = ServiceUnavailable(str(e))

        for handle in requested - result.values.keys() - result.errors.keys():
            result.errors[handle] = AccessDenied(f"Decryption service returned no value for {handle}")

        logger.info(
            "relayer_decrypt_completed",
            requested=len(requested),
            decrypted=len(result.values),
            failed=len(result.errors),
        )
        return result
