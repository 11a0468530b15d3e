"""
Pappers API client for French company registry lookups
"""
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from config import get_settings
from models import CompanyProfile


class PappersAPIError(Exception):
    """Custom exception for Pappers API errors"""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PappersClient:
    """
    Pappers API client

    Lookups never raise: a missing API key, a non-2xx response, a transport
    error or an empty result all come back as None.
    """

    BASE_URL = "https://api.pappers.fr/v2"

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self.api_key = api_key if api_key is not None else self.settings.pappers_api_key
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                headers={"User-Agent": "Lead-Management-Service/1.0"}
            )
        return self._client

    def _handle_api_error(self, response: httpx.Response) -> None:
        if response.status_code == 401:
            raise PappersAPIError("Invalid API token", 401)
        elif response.status_code == 404:
            raise PappersAPIError("Company not found", 404)
        elif not response.is_success:
            raise PappersAPIError(f"API error: {response.status_code}", response.status_code)

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        response = await client.get(
            f"{self.BASE_URL}/{path}",
            params={"api_token": self.api_key, **params}
        )
        self._handle_api_error(response)
        data = response.json()
        if not isinstance(data, dict):
            raise PappersAPIError(f"Unexpected response body: {type(data).__name__}", response.status_code)
        return data

    async def search_company_by_siren(self, siren: str) -> Optional[CompanyProfile]:
        """
        Fetch a company by its SIREN number

        Args:
            siren: Nine-digit registry identifier

        Returns:
            CompanyProfile or None if unavailable
        """
        if not self.api_key:
            logger.debug("Pappers API key not configured, skipping SIREN lookup")
            return None

        try:
            data = await self._get("entreprise", {"siren": siren})
        except PappersAPIError as e:
            if e.status_code == 404:
                logger.info(f"No Pappers company for SIREN {siren}")
            else:
                logger.warning(f"Pappers lookup failed for SIREN {siren}: {e}")
            return None
        except Exception as e:
            logger.warning(f"Pappers lookup failed for SIREN {siren}: {e}")
            return None

        if not data:
            return None

        logger.info(f"Pappers lookup successful for SIREN {siren}")
        return map_pappers_company(data)

    async def search_company_by_name(self, name: str) -> Optional[CompanyProfile]:
        """
        Search a company by free-text name and keep the first hit

        Args:
            name: Company name as typed by the user

        Returns:
            CompanyProfile or None if no match
        """
        if not self.api_key:
            logger.debug("Pappers API key not configured, skipping name search")
            return None

        try:
            data = await self._get("recherche", {"q": name, "page": 1, "par_page": 1})
            results = data.get("resultats") or []
        except Exception as e:
            logger.warning(f"Pappers search failed for '{name}': {e}")
            return None

        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            logger.info(f"No Pappers match for '{name}'")
            return None

        return map_pappers_company(results[0])

    async def close(self):
        """Close HTTP client connections"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Pappers client closed")


def map_pappers_company(data: Dict[str, Any]) -> CompanyProfile:
    """Normalize a Pappers company payload"""
    # Search results carry the head office address in a nested object
    siege = data.get("siege") or {}

    def pick(key: str) -> Optional[str]:
        value = data.get(key) or siege.get(key)
        return str(value) if value else None

    revenue = data.get("chiffre_affaires")
    return CompanyProfile(
        siren=pick("siren"),
        siret=data.get("siret_siege") or siege.get("siret"),
        denomination=data.get("denomination") or data.get("nom_entreprise"),
        sector=data.get("libelle_code_naf"),
        company_size=data.get("tranche_effectif") or data.get("effectifs"),
        revenue=str(revenue) if revenue else None,
        address=pick("adresse_ligne_1"),
        postal_code=pick("code_postal"),
        city=pick("ville"),
        website=data.get("site_web"),
        raw=data,
    )
