"""Discount and vendor catalog endpoints.

Thin wrappers that route through the orchestrator (so they get refresh and
re-authentication for free) and hand back the decoded JSON payloads.
"""

from __future__ import annotations

from typing import Any, Literal

import requests

from tcnauth.endpoints import ENDPOINTS, Endpoints
from tcnauth.error_catalog import get_error_descriptor
from tcnauth.exceptions import AppError, ensure_app_error
from tcnauth.logging import get_logger
from tcnauth.orchestrator import TokenRefreshOrchestrator
from tcnauth.text import extract_response_message, extract_success_flag, parse_json_body
from tcnauth.transport import RequestSpec

LOG = get_logger(__name__)

HistoryScope = Literal["member", "vendor"]

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class FeatureApi:
    """Discount lookup/record/history and vendor tier calls."""

    def __init__(
        self,
        orchestrator: TokenRefreshOrchestrator,
        endpoints: Endpoints = ENDPOINTS,
    ) -> None:
        self.orchestrator = orchestrator
        self.endpoints = endpoints

    def _call(
        self,
        path: str,
        spec: RequestSpec,
        error_id: str,
        *,
        require_token: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        meta = {"endpoint": path, **(metadata or {})}
        try:
            response = self.orchestrator.request(path, spec, require_token=require_token)
        except requests.RequestException as exc:
            raise ensure_app_error(exc, "NETWORK_UNREACHABLE", metadata=meta) from exc

        payload = parse_json_body(response)
        if not response.ok or extract_success_flag(payload) is False:
            descriptor_message = get_error_descriptor(error_id).default_message
            raise AppError(
                error_id,
                message=extract_response_message(response, descriptor_message),
                metadata={"status": response.status_code, **meta},
            )
        if payload is None:
            raise AppError(error_id, metadata={"status": response.status_code, **meta})
        return payload

    def lookup_member(self, qr_token: str, vendor_id: int | None = None) -> Any:
        """Resolve a scanned member QR token for a discount.

        Falls back to QR validation when the lookup endpoint fails; if that
        fails too, the original lookup error is raised.
        """
        body: dict[str, Any] = {"qr_token": qr_token}
        if vendor_id is not None:
            body["vendor_id"] = vendor_id
        spec = RequestSpec(method="POST", headers=dict(_JSON_HEADERS), json=body)
        try:
            return self._call(self.endpoints.discount_lookup, spec, "TRANSACTION_MEMBER_LOOKUP_FAILED")
        except AppError as lookup_error:
            if lookup_error.error_id in ("SESSION_TOKEN_UNAVAILABLE", "SESSION_EXPIRED"):
                raise
            LOG.warning("member_lookup_failed", code=lookup_error.code)
            fallback = RequestSpec(
                method="POST",
                headers=dict(_JSON_HEADERS),
                json={"qr_token": qr_token, "payload": qr_token},
            )
            try:
                return self._call(
                    self.endpoints.member_qr_validate, fallback, "AUTH_MEMBER_QR_VALIDATE_FAILED"
                )
            except AppError as fallback_error:
                LOG.warning("member_lookup_fallback_failed", code=fallback_error.code)
                raise lookup_error from fallback_error

    def record_transaction(self, transaction: dict[str, Any]) -> Any:
        """Record a discount transaction; *transaction* is sent as-is."""
        spec = RequestSpec(method="POST", headers=dict(_JSON_HEADERS), json=transaction)
        payload = self._call(
            self.endpoints.discount_transactions, spec, "TRANSACTION_RECORD_FAILED"
        )
        LOG.info("transaction_recorded")
        return payload

    def fetch_history(self, scope: HistoryScope = "member") -> Any:
        """Transaction history as seen by a member or a vendor."""
        if scope not in ("member", "vendor"):
            raise ValueError(f"Unsupported history scope: {scope}")
        spec = RequestSpec(method="GET", headers={"Accept": "application/json"}, params={"scope": scope})
        return self._call(
            self.endpoints.discount_history,
            spec,
            "TRANSACTION_HISTORY_FETCH_FAILED",
            metadata={"scope": scope},
        )

    def fetch_vendor_tiers(self) -> Any:
        """Vendor tier catalog; available without a session (registration)."""
        spec = RequestSpec(method="GET", headers={"Accept": "application/json"})
        return self._call(
            self.endpoints.vendor_tiers,
            spec,
            "VENDOR_TIERS_FETCH_FAILED",
            require_token=False,
        )
