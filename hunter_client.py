"""
Hunter.io API client for email discovery
"""
from typing import Optional
from urllib.parse import urlparse

import httpx
from loguru import logger

from config import get_settings
from models import EmailCandidate


class HunterAPIError(Exception):
    """Custom exception for Hunter.io API errors"""
    pass


class HunterRateLimitError(HunterAPIError):
    """Exception for rate limit errors"""
    pass


class HunterClient:
    """Hunter.io Email Finder client; failures degrade to None"""

    BASE_URL = "https://api.hunter.io/v2"

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.hunter_api_key
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                headers={
                    "User-Agent": "Lead-Management-Service/1.0"
                }
            )
        return self._client

    def _handle_api_error(self, response: httpx.Response) -> None:
        """Handle API errors and raise appropriate exceptions"""
        if response.status_code == 401:
            raise HunterAPIError("Invalid API key")
        elif response.status_code == 403:
            raise HunterAPIError("API access forbidden - check your plan")
        elif response.status_code == 429:
            raise HunterRateLimitError("Rate limit exceeded")
        elif response.status_code >= 500:
            raise HunterAPIError(f"Server error: {response.status_code}")
        elif not response.is_success:
            raise HunterAPIError(f"API error: {response.status_code} - {response.text}")

    async def find_email(self, domain: str, first_name: str, last_name: str) -> Optional[EmailCandidate]:
        """
        Find the most likely email of a person at a domain

        Args:
            domain: Bare company domain (e.g. "example.com")
            first_name: Person's first name
            last_name: Person's last name

        Returns:
            EmailCandidate or None if Hunter has nothing usable
        """
        if not self.api_key:
            logger.debug("Hunter API key not configured, skipping email finder")
            return None

        try:
            client = await self._get_client()
            params = {
                "domain": domain,
                "first_name": first_name,
                "last_name": last_name,
                "api_key": self.api_key
            }

            logger.debug(f"Making email finder request for {first_name} {last_name} @ {domain}")
            response = await client.get(f"{self.BASE_URL}/email-finder", params=params)
            self._handle_api_error(response)
            payload = response.json()
            data = (payload.get("data") or {}) if isinstance(payload, dict) else payload
            if not isinstance(data, dict):
                raise HunterAPIError(f"Unexpected response body: {type(data).__name__}")

        except HunterRateLimitError:
            logger.warning(f"Hunter rate limit reached, skipping {domain}")
            return None
        except Exception as e:
            logger.warning(f"Email finder failed for {domain}: {e}")
            return None

        if not data.get("email"):
            logger.info(f"No email found for {first_name} {last_name} @ {domain}")
            return None

        logger.info(f"Email finder successful for {domain}: {data['email']} (score: {data.get('score')})")
        return EmailCandidate(
            email=data["email"],
            score=data.get("score"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            position=data.get("position"),
            domain=data.get("domain", domain),
            raw=data,
        )

    async def close(self):
        """Close HTTP client connections"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Hunter.io client closed")


def extract_domain(website: str) -> str:
    """Extract the bare domain from a URL, dropping the scheme and a leading www."""
    candidate = website.strip()
    if not candidate.startswith("http"):
        candidate = f"https://{candidate}"

    try:
        hostname = urlparse(candidate).hostname
    except ValueError:
        hostname = None

    if not hostname:
        hostname = website.strip()
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return hostname
