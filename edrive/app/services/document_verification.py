"""
Driver document verification.

Uploaded documents are checked by an external image-classification service.
The service is optional and unreliable, so it sits behind a circuit breaker;
whenever it cannot give an answer the document is let through and flagged
for manual review instead of blocking onboarding.
"""

import logging
from typing import Optional

import httpx

from edrive.app.core.config import settings
from edrive.app.core.reliability import CircuitBreaker, CircuitOpenError
from edrive.app.models.ride_enums import DocumentType
from edrive.app.schemas.driver import DocumentVerdict

logger = logging.getLogger(__name__)

MANUAL_REVIEW_REASON = "Manual Review Required"


def manual_review_verdict() -> DocumentVerdict:
    return DocumentVerdict(valid=True, reason=MANUAL_REVIEW_REASON, manual_review=True)


def invalid_document_reason(expected_type: DocumentType) -> str:
    return f"This is not a valid {DocumentType(expected_type).value} picture, please upload a correct picture."


class DocumentVerifier:
    """Capability interface: is `image_ref` a picture of `expected_type`?"""

    async def verify_document(self, image_ref: str, expected_type: DocumentType) -> DocumentVerdict:
        raise NotImplementedError


class ManualReviewVerifier(DocumentVerifier):
    """Used when no verification service is configured."""

    async def verify_document(self, image_ref: str, expected_type: DocumentType) -> DocumentVerdict:
        return manual_review_verdict()


class HttpDocumentVerifier(DocumentVerifier):
    """
    Calls the verification service over HTTP.

    Request:  POST {url} {"image_url": ..., "expected_type": ...}
    Response: {"valid": bool, "reason": str}
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=settings.verifier_failure_threshold,
            reset_timeout=settings.verifier_reset_timeout
        )
        self._transport = transport

    async def _post(self, image_ref: str, expected_type: DocumentType) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.url,
                json={"image_url": image_ref, "expected_type": DocumentType(expected_type).value},
                headers=headers
            )
            response.raise_for_status()
            return response.json()

    async def verify_document(self, image_ref: str, expected_type: DocumentType) -> DocumentVerdict:
        try:
            body = await self.breaker.call(self._post, image_ref, expected_type)
        except CircuitOpenError:
            logger.warning("Document verifier circuit open, flagging %s for manual review", expected_type)
            return manual_review_verdict()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Document verifier failed for %s: %s", expected_type, exc)
            return manual_review_verdict()

        if not isinstance(body, dict) or not isinstance(body.get("valid"), bool):
            logger.warning("Document verifier returned an unexpected body: %r", body)
            return manual_review_verdict()

        if body["valid"]:
            return DocumentVerdict(valid=True, reason=body.get("reason") or "")
        return DocumentVerdict(valid=False, reason=body.get("reason") or invalid_document_reason(expected_type))


def build_document_verifier() -> DocumentVerifier:
    if not settings.document_verifier_url:
        return ManualReviewVerifier()
    return HttpDocumentVerifier(
        settings.document_verifier_url,
        api_key=settings.document_verifier_api_key,
        timeout=settings.document_verifier_timeout_seconds
    )


# Global instance
document_verifier = build_document_verifier()


def get_document_verifier() -> DocumentVerifier:
    """FastAPI dependency (overridden in tests)."""
    return document_verifier
