"""
Owner-name to registry-company matching.

Only literal and substring matching are supported. The substring strategy
has an unvalidated false-positive rate, so its threshold is configurable
and the strategy itself is swappable through `get_matcher`.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import dialect_insert
from core.exceptions import ValidationError
from models.base import MatchType
from models.property import Company, PropertyCompanyLink, PropertyEvaluation
import logging

logger = logging.getLogger(__name__)

CORPORATE_INDICATORS = (
    "inc", "ltée", "limitée", "corp", "corporation", "s.e.c.", "s.e.n.c.",
    "s.e.n.c.r.l.", "enr", "cie", "compagnie", "société", "entreprise",
    "gestion", "immobilier", "immeuble", "immeubles", "holdings",
    "investissement", "placement",
)

NEQ_PATTERN = re.compile(r"\b(\d{10})\b")
SPACED_NEQ_PATTERN = re.compile(r"\b(\d{3})\s+(\d{3})\s+(\d{4})\b")
NEQ_MATCHER = "neq"


def normalize_name(name: str) -> str:
    """Lowercase, drop periods and commas, collapse whitespace."""
    return " ".join(re.sub(r"[.,]", "", name.lower()).split())


def is_corporate_name(name: Optional[str]) -> bool:
    if not name:
        return False
    lowered = name.lower()
    words = set(re.findall(r"[\w.]+", lowered))
    bare_words = {w.strip(".") for w in words}
    for indicator in CORPORATE_INDICATORS:
        if "." in indicator[:-1]:
            if indicator in lowered:
                return True
        elif indicator in bare_words:
            return True
    return False


def extract_neq(name: Optional[str]) -> Optional[str]:
    """Return a 10-digit Quebec enterprise number embedded in a name."""
    if not name:
        return None
    match = NEQ_PATTERN.search(name)
    if match:
        return match.group(1)
    match = SPACED_NEQ_PATTERN.search(name)
    if match:
        return "".join(match.groups())
    return None


# ============================================================================
# Strategies
# ============================================================================

@dataclass(frozen=True)
class MatchResult:
    match_type: MatchType
    confidence: float


class NameMatcher:
    """Strategy interface: compare a company name with an owner name."""

    name = "base"

    def match(self, company_name: str, owner_name: str) -> Optional[MatchResult]:
        raise NotImplementedError


class ExactNameMatcher(NameMatcher):
    name = "exact"

    def match(self, company_name: str, owner_name: str) -> Optional[MatchResult]:
        left, right = normalize_name(company_name), normalize_name(owner_name)
        if left and left == right:
            return MatchResult(MatchType.EXACT, 1.0)
        return None


class SubstringRatioMatcher(ExactNameMatcher):
    """
    Exact match, else containment in either direction where the shorter
    normalized name is at least `threshold` of the longer one's length.
    """

    name = "substring_ratio"

    def __init__(self, threshold: float = 0.8):
        if not 0 < threshold <= 1:
            raise ValidationError("threshold must be in (0, 1]", context={"threshold": threshold})
        self.threshold = threshold

    def match(self, company_name: str, owner_name: str) -> Optional[MatchResult]:
        exact = super().match(company_name, owner_name)
        if exact is not None:
            return exact

        left, right = normalize_name(company_name), normalize_name(owner_name)
        if not left or not right:
            return None
        if left in right or right in left:
            ratio = min(len(left), len(right)) / max(len(left), len(right))
            if ratio >= self.threshold:
                return MatchResult(MatchType.FUZZY, round(ratio, 4))
        return None


def get_matcher(strategy: Optional[str] = None, threshold: Optional[float] = None) -> NameMatcher:
    strategy = strategy or settings.NAME_MATCH_STRATEGY
    if strategy == ExactNameMatcher.name:
        return ExactNameMatcher()
    if strategy == SubstringRatioMatcher.name:
        return SubstringRatioMatcher(settings.NAME_MATCH_THRESHOLD if threshold is None else threshold)
    raise ValidationError(f"Unknown name matching strategy: {strategy}", context={"strategy": strategy})


# ============================================================================
# Linker
# ============================================================================

class CompanyLinker:
    """Link evaluation-roll owners to registry companies."""

    def __init__(self, db_session: AsyncSession, matcher: Optional[NameMatcher] = None):
        self.db = db_session
        self.matcher = matcher or get_matcher()

    async def link_all(self) -> Dict[str, int]:
        """
        Compare every company against every corporate owner and insert
        missing links. Owners that look like individuals are counted as
        `non_corporate` and skipped. Existing links are left untouched.
        """
        companies: List[Company] = list((await self.db.execute(select(Company).order_by(Company.id))).scalars())
        properties: List[PropertyEvaluation] = list(
            (
                await self.db.execute(
                    select(PropertyEvaluation)
                    .where(PropertyEvaluation.owner_name.is_not(None))
                    .order_by(PropertyEvaluation.id)
                )
            ).scalars()
        )
        # Individuals are never linked to registry companies
        owners = [p for p in properties if is_corporate_name(p.owner_name) or extract_neq(p.owner_name)]
        logger.info(
            f"Linking {len(companies)} companies against {len(owners)} corporate owners "
            f"(strategy={self.matcher.name})"
        )

        stats = {"created": 0, "exact": 0, "fuzzy": 0, "existing": 0, "non_corporate": len(properties) - len(owners)}
        insert = dialect_insert(self.db)

        for company in companies:
            for prop in owners:
                result, matcher_name = self._match(company, prop)
                if result is None:
                    continue

                stmt = (
                    insert(PropertyCompanyLink)
                    .values(
                        property_id=prop.id,
                        company_id=company.id,
                        match_type=result.match_type,
                        confidence=result.confidence,
                        matcher=matcher_name,
                    )
                    .on_conflict_do_nothing(index_elements=["property_id", "company_id"])
                    .returning(PropertyCompanyLink.id)
                )
                created = (await self.db.execute(stmt)).scalar_one_or_none()
                if created is None:
                    stats["existing"] += 1
                    continue

                stats["created"] += 1
                stats[result.match_type.value] += 1
                logger.debug(f"Linked {prop.matricule} to company {company.id} ({result.match_type.value})")

        await self.db.commit()
        logger.info(
            f"Company linking done: {stats['created']} created "
            f"({stats['exact']} exact, {stats['fuzzy']} fuzzy), {stats['existing']} existing"
        )
        return stats

    def _match(self, company: Company, prop: PropertyEvaluation) -> Tuple[Optional[MatchResult], str]:
        """A registry number quoted in the owner name wins over name matching."""
        owner_neq = extract_neq(prop.owner_name)
        if owner_neq and company.neq and owner_neq == company.neq:
            return MatchResult(MatchType.EXACT, 1.0), NEQ_MATCHER
        return self.matcher.match(company.name, prop.owner_name), self.matcher.name
