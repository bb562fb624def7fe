"""
Scheme Selector.

Picks which candidate schemes apply and explains every other outcome.

Selection (no include list):
1. Group schemes by mutualExclusionGroup; ungrouped schemes with an invoice
   condition share the implicit invoice group.
2. Keep the best applicable member of each group (lowest priority first).
3. Rank the survivors by (priority asc, total reward desc); exactly one wins.

With an include list every eligible included scheme applies and mutual
exclusion is not enforced.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from scheme_engine.config import Settings
from scheme_engine.core.logging import EngineLogger
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.reward import (
    CalculatedReward,
    CalculationContext,
    SchemeApplicability,
)
from scheme_engine.schemas.scheme import Scheme, SchemeAppliedStatus
from scheme_engine.services.scheme_processor import SchemeProcessor, SchemeRewards

REASON_NOT_APPLICABLE_CONTEXT = "Scheme not applicable to current context (warehouse, outlet, or products)"
REASON_CONDITIONS_NOT_MET = "Scheme conditions not met"
REASON_EXCLUDED = "Scheme explicitly excluded from calculation"
REASON_MUTUALLY_EXCLUSIVE = "Blocked by mutually exclusive rules"
REASON_PRIORITY = "Eligible but not applied due to priority rules"


@dataclass
class SelectionResult:
    applied_rewards: List[CalculatedReward] = field(default_factory=list)
    applied_scheme_ids: List[str] = field(default_factory=list)
    not_applied: List[SchemeApplicability] = field(default_factory=list)
    blocked: List[SchemeApplicability] = field(default_factory=list)


@dataclass
class _RankedScheme:
    scheme: Scheme
    evaluation: SchemeRewards


class SchemeSelector:
    """Mutual-exclusion grouping, ranking and the applicability report."""

    def __init__(self, logger: EngineLogger, processor: SchemeProcessor, settings: Settings):
        self.logger = logger
        self.processor = processor
        self.settings = settings

    # ==================== SELECTION ====================

    async def select(
        self,
        candidates: Sequence[Scheme],
        items: Sequence[ProductItem],
        context: CalculationContext,
        include_scheme_ids: Optional[Sequence[str]] = None,
    ) -> SelectionResult:
        if include_scheme_ids:
            return await self._apply_included(candidates, items, context, include_scheme_ids)

        result = SelectionResult()

        groups: Dict[str, List[Scheme]] = {}
        shortlisted: List[Scheme] = []
        for scheme in candidates:
            group_key = scheme.mutual_exclusion_group
            if not group_key and scheme.has_invoice_condition:
                group_key = self.settings.INVOICE_GROUP_KEY
            if group_key:
                groups.setdefault(group_key, []).append(scheme)
            else:
                shortlisted.append(scheme)

        for group_key, members in groups.items():
            best = await self.find_best_in_group(members, items, context)
            if best is not None:
                self.logger.debug(f"[SchemeSelector] Group {group_key}: best scheme {best.scheme_id}")
                shortlisted.append(best)

        ranked: List[_RankedScheme] = []
        for scheme in shortlisted:
            if not self.processor.is_applicable(scheme, items, context):
                result.not_applied.append(self._entry(scheme, reason=REASON_NOT_APPLICABLE_CONTEXT))
                continue

            evaluation = await self.processor.process(scheme, items, context)
            if evaluation.rewards:
                ranked.append(_RankedScheme(scheme, evaluation))
            else:
                result.not_applied.append(self._entry(scheme, reason=REASON_CONDITIONS_NOT_MET))

        if not ranked:
            return result

        ranked.sort(key=lambda r: (r.scheme.priority, -r.evaluation.total_reward))
        winner = ranked[0]
        result.applied_rewards.extend(winner.evaluation.rewards)
        result.applied_scheme_ids.append(winner.scheme.scheme_id)
        self.logger.log(
            f"[SchemeSelector] Applied scheme {winner.scheme.scheme_id} ({winner.scheme.scheme_name}) "
            f"with total reward ₹{winner.evaluation.total_reward}"
        )

        for runner_up in ranked[1:]:
            result.blocked.append(
                self._entry(
                    runner_up.scheme,
                    reason=f"Blocked by higher priority scheme: {winner.scheme.scheme_name}",
                    blocking_schemes=[winner.scheme.scheme_id],
                )
            )
        return result

    async def _apply_included(
        self,
        candidates: Sequence[Scheme],
        items: Sequence[ProductItem],
        context: CalculationContext,
        include_scheme_ids: Sequence[str],
    ) -> SelectionResult:
        result = SelectionResult()
        included = [s for s in candidates if s.scheme_id in include_scheme_ids]
        self.logger.log(
            f"[SchemeSelector] includeSchemes provided: {', '.join(include_scheme_ids)} - "
            f"applying ALL eligible schemes ({len(included)} found)"
        )

        for scheme in included:
            if not self.processor.is_applicable(scheme, items, context):
                result.not_applied.append(self._entry(scheme, reason=REASON_NOT_APPLICABLE_CONTEXT))
                continue

            evaluation = await self.processor.process(scheme, items, context)
            if evaluation.rewards:
                result.applied_rewards.extend(evaluation.rewards)
                result.applied_scheme_ids.append(scheme.scheme_id)
                self.logger.log(f"[SchemeSelector] Applied included scheme: {scheme.scheme_id} ({scheme.scheme_name})")
            else:
                result.not_applied.append(self._entry(scheme, reason=REASON_CONDITIONS_NOT_MET))

        return result

    async def find_best_in_group(
        self,
        members: Sequence[Scheme],
        items: Sequence[ProductItem],
        context: CalculationContext,
    ) -> Optional[Scheme]:
        """First member, by ascending priority, that applies and yields a reward."""
        if not members:
            return None
        if len(members) == 1:
            return members[0]

        for scheme in sorted(members, key=lambda s: s.priority):
            if not self.processor.is_applicable(scheme, items, context):
                continue
            evaluation = await self.processor.process(scheme, items, context)
            if evaluation.rewards:
                return scheme
        return None

    # ==================== REPORT ====================

    async def build_report(
        self,
        schemes: Sequence[Scheme],
        items: Sequence[ProductItem],
        context: CalculationContext,
        applied_scheme_ids: Sequence[str],
        exclude_scheme_ids: Optional[Sequence[str]] = None,
    ) -> List[SchemeApplicability]:
        """Status and reason for every scheme available to the warehouse."""
        exclude_scheme_ids = exclude_scheme_ids or []
        report: List[SchemeApplicability] = []

        for scheme in schemes:
            if scheme.scheme_id in exclude_scheme_ids:
                report.append(self._entry(scheme, SchemeAppliedStatus.EXCLUDED, REASON_EXCLUDED))
                continue

            if not self.processor.is_applicable(scheme, items, context):
                report.append(
                    self._entry(scheme, SchemeAppliedStatus.NOT_APPLICABLE, REASON_NOT_APPLICABLE_CONTEXT)
                )
                continue

            if scheme.scheme_id in applied_scheme_ids:
                report.append(self._entry(scheme, SchemeAppliedStatus.APPLIED))
                continue

            blocking = self.blocking_schemes(scheme, applied_scheme_ids)
            if blocking:
                report.append(
                    self._entry(scheme, SchemeAppliedStatus.BLOCKED, REASON_MUTUALLY_EXCLUSIVE, blocking)
                )
                continue

            evaluation = await self.processor.process(scheme, items, context)
            if evaluation.rewards:
                self.logger.log(
                    f"Scheme {scheme.scheme_id} ({scheme.scheme_name}) is eligible but not applied - marking as BLOCKED"
                )
                report.append(
                    self._entry(
                        scheme,
                        SchemeAppliedStatus.BLOCKED,
                        REASON_PRIORITY,
                        list(applied_scheme_ids) or None,
                    )
                )
            else:
                report.append(
                    self._entry(scheme, SchemeAppliedStatus.NOT_APPLICABLE, REASON_CONDITIONS_NOT_MET)
                )

        return report

    @staticmethod
    def blocking_schemes(scheme: Scheme, applied_scheme_ids: Sequence[str]) -> List[str]:
        """Applied schemes that block a grouped scheme. Ungrouped schemes are never blocked here."""
        if not scheme.mutual_exclusion_group:
            return []
        return [sid for sid in applied_scheme_ids if sid != scheme.scheme_id]

    @staticmethod
    def _entry(
        scheme: Scheme,
        status: Optional[SchemeAppliedStatus] = None,
        reason: Optional[str] = None,
        blocking_schemes: Optional[List[str]] = None,
    ) -> SchemeApplicability:
        return SchemeApplicability(
            scheme_id=scheme.scheme_id,
            scheme_name=scheme.scheme_name,
            status=status,
            reason=reason,
            blocking_schemes=blocking_schemes,
        )
