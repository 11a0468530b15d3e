"""
Lead enrichment pipeline: company data -> email discovery -> email verification -> rescore
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from database import LeadStore
from hunter_client import HunterClient, extract_domain
from models import (
    BatchItemResult,
    EmailVerificationStatus,
    EnrichmentLogEntry,
    EnrichmentOutcome,
    EnrichmentStatus,
    Lead,
    ProviderResult,
)
from neverbounce_client import NeverBounceClient
from pappers_client import PappersClient
from scoring import calculate_score


class EnrichmentDraft:
    """
    Working copy of a lead while providers run

    Staged updates shadow the stored values, so a website found by the
    company step is what the email step sees.
    """

    def __init__(self, lead: Lead):
        self.original: Dict[str, Any] = lead.dict()
        self.updates: Dict[str, Any] = {}

    def get(self, field: str) -> Any:
        return self.updates.get(field) or self.original.get(field)

    def stage(self, fields: Dict[str, Any]) -> None:
        self.updates.update(fields)

    def merged(self) -> Dict[str, Any]:
        return {**self.original, **self.updates}


class LeadEnricher:
    """Runs the provider chain for one lead at a time"""

    def __init__(
        self,
        db: LeadStore,
        pappers: Optional[PappersClient] = None,
        hunter: Optional[HunterClient] = None,
        neverbounce: Optional[NeverBounceClient] = None,
    ):
        self.db = db
        self.pappers = pappers or PappersClient()
        self.hunter = hunter or HunterClient()
        self.neverbounce = neverbounce or NeverBounceClient()

    async def _log(self, lead_id: str, provider: str, data: Any, status: EnrichmentStatus) -> None:
        """Write an audit row; a failed write never stops the pipeline"""
        try:
            await self.db.insert_enrichment_log(
                EnrichmentLogEntry(lead_id=lead_id, provider=provider, data=data, status=status)
            )
        except Exception as e:
            logger.warning(f"Could not record {provider} log for lead {lead_id}: {e}")

    async def _enrich_company(self, lead_id: str, draft: EnrichmentDraft) -> Optional[ProviderResult]:
        siren = draft.get("siren")
        siret = draft.get("siret")
        company_name = draft.get("company_name")
        if not (siren or siret or company_name):
            return None

        if siren or siret:
            # The first nine digits of a SIRET are the SIREN
            profile = await self.pappers.search_company_by_siren(siren or siret[:9])
        else:
            profile = await self.pappers.search_company_by_name(company_name)

        if profile is None:
            await self._log(lead_id, "pappers", None, EnrichmentStatus.SKIPPED)
            return ProviderResult(provider="pappers", status=EnrichmentStatus.SKIPPED)

        fields = profile.lead_fields()
        draft.stage(fields)
        await self._log(lead_id, "pappers", profile.raw, EnrichmentStatus.SUCCESS)
        return ProviderResult(provider="pappers", status=EnrichmentStatus.SUCCESS, data=fields)

    async def _discover_email(self, lead_id: str, draft: EnrichmentDraft) -> Optional[ProviderResult]:
        website = draft.get("website")
        first_name = draft.get("first_name")
        last_name = draft.get("last_name")
        if not (website and first_name and last_name) or draft.original.get("email"):
            return None

        domain = extract_domain(website)
        candidate = await self.hunter.find_email(domain, first_name, last_name)

        if candidate is None:
            await self._log(lead_id, "hunter", None, EnrichmentStatus.SKIPPED)
            return ProviderResult(provider="hunter", status=EnrichmentStatus.SKIPPED)

        draft.stage({"email": candidate.email})
        await self._log(lead_id, "hunter", candidate.raw, EnrichmentStatus.SUCCESS)
        return ProviderResult(provider="hunter", status=EnrichmentStatus.SUCCESS, data={"email": candidate.email})

    async def _verify_email(self, lead_id: str, draft: EnrichmentDraft) -> Optional[ProviderResult]:
        email = draft.get("email")
        if not email:
            return None

        verification = await self.neverbounce.verify_email(email)
        # A check that never happened leaves a stored outcome for the same address alone
        if (
            verification.checked
            or "email" in draft.updates
            or draft.original.get("email_verified") is None
        ):
            draft.stage({"email_verified": verification.result.value})

        # TODO: decide whether an 'unknown' outcome should also be reported as skipped to callers
        log_status = (
            EnrichmentStatus.SKIPPED
            if verification.result == EmailVerificationStatus.UNKNOWN
            else EnrichmentStatus.SUCCESS
        )
        await self._log(
            lead_id,
            "neverbounce",
            {"email": email, "result": verification.result.value, "reason": verification.reason},
            log_status,
        )
        return ProviderResult(
            provider="neverbounce",
            status=EnrichmentStatus.SUCCESS,
            data={"result": verification.result.value, "reason": verification.reason},
        )

    async def enrich_lead(self, lead_id: str) -> EnrichmentOutcome:
        """
        Enrich one lead and persist the merged result

        Provider failures only skip their own step; the outcome is an error
        only when the lead does not exist or the final write fails.

        Args:
            lead_id: ID of the lead to enrich

        Returns:
            EnrichmentOutcome listing each attempted provider
        """
        try:
            lead = await self.db.get_lead(lead_id)
        except Exception as e:
            logger.error(f"Failed to load lead {lead_id}: {e}")
            return EnrichmentOutcome(lead_id=lead_id, success=False, error=f"Lead lookup failed: {e}")

        if lead is None:
            logger.warning(f"Lead {lead_id} not found, nothing to enrich")
            return EnrichmentOutcome(lead_id=lead_id, success=False, error="Lead not found")

        logger.info(f"Enriching lead {lead_id} ({lead.display_name()})")
        draft = EnrichmentDraft(lead)
        results: List[ProviderResult] = []

        for step in (self._enrich_company, self._discover_email, self._verify_email):
            result = await step(lead_id, draft)
            if result is not None:
                results.append(result)

        draft.stage({"enriched_at": datetime.now(timezone.utc).isoformat()})
        score = calculate_score(draft.merged()).total
        draft.stage({"score": score})

        try:
            await self.db.update_lead(lead_id, draft.updates)
        except Exception as e:
            logger.error(f"Failed to save enrichment for lead {lead_id}: {e}")
            return EnrichmentOutcome(lead_id=lead_id, success=False, error=str(e), results=results)

        logger.info(
            f"Lead {lead_id} enriched: score {score}, "
            f"providers {[f'{r.provider}={r.status.value}' for r in results]}"
        )
        return EnrichmentOutcome(
            lead_id=lead_id,
            success=True,
            results=results,
            updates=draft.updates,
            score=score,
        )

    async def enrich_leads_batch(self, lead_ids: List[str]) -> List[BatchItemResult]:
        """
        Enrich leads one after another, never stopping on a failure

        Args:
            lead_ids: Leads to enrich, in order

        Returns:
            One BatchItemResult per requested ID
        """
        logger.info(f"Enriching batch of {len(lead_ids)} leads sequentially")
        batch_results: List[BatchItemResult] = []

        for lead_id in lead_ids:
            try:
                outcome = await self.enrich_lead(lead_id)
            except Exception as e:
                logger.error(f"Unexpected error enriching lead {lead_id}: {e}")
                batch_results.append(BatchItemResult(lead_id=lead_id, success=False, error=str(e)))
                continue
            batch_results.append(
                BatchItemResult(lead_id=lead_id, success=outcome.success, error=outcome.error)
            )

        succeeded = sum(1 for item in batch_results if item.success)
        logger.info(f"Batch enrichment complete: {succeeded}/{len(lead_ids)} leads enriched")
        return batch_results

    async def close(self):
        """Close provider HTTP clients"""
        await self.pappers.close()
        await self.hunter.close()
        await self.neverbounce.close()


async def get_enrichment_logs(db: LeadStore, lead_id: Optional[str] = None, limit: int = 100) -> List[EnrichmentLogEntry]:
    """Latest enrichment log rows, optionally for a single lead"""
    return await db.fetch_enrichment_logs(lead_id=lead_id, limit=limit)
