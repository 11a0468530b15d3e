"""
NeverBounce API client for single email verification
"""
from typing import Dict, Optional, Union

import httpx
from loguru import logger

from config import get_settings
from models import EmailVerification, EmailVerificationStatus

# Single-check result codes; catch-all domains are accepted as valid
RESULT_CODES: Dict[Union[int, str], EmailVerificationStatus] = {
    0: EmailVerificationStatus.VALID,
    1: EmailVerificationStatus.INVALID,
    2: EmailVerificationStatus.DISPOSABLE,
    3: EmailVerificationStatus.VALID,
    4: EmailVerificationStatus.UNKNOWN,
    "valid": EmailVerificationStatus.VALID,
    "invalid": EmailVerificationStatus.INVALID,
    "disposable": EmailVerificationStatus.DISPOSABLE,
    "catchall": EmailVerificationStatus.VALID,
    "unknown": EmailVerificationStatus.UNKNOWN,
}


class NeverBounceClient:
    """NeverBounce client; every failure degrades to an 'unknown' verification"""

    BASE_URL = "https://api.neverbounce.com/v4"

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.neverbounce_api_key
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": "Lead-Management-Service/1.0"
                }
            )
        return self._client

    async def verify_email(self, email: str) -> EmailVerification:
        """
        Verify an email address

        Args:
            email: The email address to verify

        Returns:
            EmailVerification whose reason tells a real check apart from a skipped one
        """
        if not self.api_key:
            logger.debug("NeverBounce API key not configured, skipping verification")
            return EmailVerification(email=email, reason="missing_credential")

        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.BASE_URL}/single/check",
                json={"key": self.api_key, "email": email}
            )
            if not response.is_success:
                logger.warning(f"NeverBounce returned {response.status_code} for {email}")
                return EmailVerification(email=email, reason="request_failed")
            data = response.json()
            if not isinstance(data, dict):
                logger.warning(f"Unexpected NeverBounce response body for {email}: {type(data).__name__}")
                return EmailVerification(email=email, reason="request_failed")
        except Exception as e:
            logger.warning(f"Email verification failed for {email}: {e}")
            return EmailVerification(email=email, reason="request_failed")

        code = data.get("result")
        if not isinstance(code, (int, str)):
            code = None
        result = RESULT_CODES.get(code)
        if result is None:
            logger.warning(f"Unrecognized NeverBounce result {code!r} for {email}")
            return EmailVerification(email=email, result_code=code, reason="unrecognized_result")

        logger.debug(f"Email verification result for {email}: {result.value} (code: {code})")
        return EmailVerification(email=email, result=result, result_code=code)

    async def close(self):
        """Close HTTP client connections"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("NeverBounce client closed")
