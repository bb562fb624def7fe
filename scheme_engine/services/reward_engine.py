"""
Reward Engine.

Entry point of the package. One calculation:
1. Validate the request
2. Fetch candidate schemes, splitting out explicitly excluded ones
3. Select the applied scheme(s)
4. Fetch every scheme available to the warehouse and build the status report
5. Assemble totals and the summary

Scheme lookups are caller-supplied coroutines; the engine never stores data.
"""
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Union

from scheme_engine.config import Settings, get_settings
from scheme_engine.core.enum_utils import status_in
from scheme_engine.core.exceptions import InvalidCalculationInputError, RewardCalculationError
from scheme_engine.core.logging import EngineLogger, LogSink
from scheme_engine.core.money import ZERO, round_money
from scheme_engine.schemas.product import ProductItem
from scheme_engine.schemas.reward import (
    CalculationContext,
    DiscountedProductResult,
    FetchAllAvailableSchemesParams,
    FetchCandidateSchemesParams,
    FetchMissingExcludedSchemesParams,
    RewardCalculationResult,
    RewardSummary,
    SchemeFilters,
)
from scheme_engine.schemas.scheme import FreeProductReward, Scheme, SchemeAppliedStatus
from scheme_engine.services.aggregation_service import AggregationService
from scheme_engine.services.condition_evaluator import ConditionEvaluator
from scheme_engine.services.product_data_service import ProductDataProvider, ProductDataService
from scheme_engine.services.prorating import ProratingStrategy
from scheme_engine.services.reward_calculator import RewardCalculator
from scheme_engine.services.scheme_processor import SchemeProcessor
from scheme_engine.services.scheme_selector import SchemeSelector
from scheme_engine.services.usage_tracker import UsageTracker
from scheme_engine.services.uom_service import UomService

SchemeLike = Union[Scheme, Dict[str, Any]]
FetchCandidateSchemes = Callable[[FetchCandidateSchemesParams], Awaitable[List[SchemeLike]]]
FetchMissingExcludedSchemes = Callable[[FetchMissingExcludedSchemesParams], Awaitable[List[SchemeLike]]]
FetchAllAvailableSchemes = Callable[[FetchAllAvailableSchemesParams], Awaitable[List[SchemeLike]]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RewardEngine:
    """
    Calculates scheme rewards for a cart.

    Example:
        engine = RewardEngine(
            fetch_candidate_schemes=repo.candidate_schemes,
            fetch_all_available_schemes=repo.available_schemes,
        )
        result = await engine.calculate(products, {"warehouseId": "WH-1"})
    """

    def __init__(
        self,
        fetch_candidate_schemes: Optional[FetchCandidateSchemes],
        fetch_all_available_schemes: Optional[FetchAllAvailableSchemes],
        fetch_missing_excluded_schemes: Optional[FetchMissingExcludedSchemes] = None,
        product_data_provider: Optional[ProductDataProvider] = None,
        logger: Optional[LogSink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.fetch_candidate_schemes = fetch_candidate_schemes
        self.fetch_all_available_schemes = fetch_all_available_schemes
        self.fetch_missing_excluded_schemes = fetch_missing_excluded_schemes
        self.settings = settings or get_settings()
        self.clock = clock

        self.logger = EngineLogger(logger)
        uom_service = UomService(self.logger)
        product_data = ProductDataService(self.logger, product_data_provider)
        aggregation = AggregationService(self.logger, uom_service, product_data, self.settings)
        calculator = RewardCalculator(self.logger, self.settings)
        prorating = ProratingStrategy(self.logger, aggregation, calculator, self.settings)
        evaluator = ConditionEvaluator(self.logger, aggregation, calculator, product_data, prorating)
        processor = SchemeProcessor(self.logger, evaluator, UsageTracker(), self.settings)
        self.selector = SchemeSelector(self.logger, processor, self.settings)

    async def calculate(
        self,
        products: Optional[Sequence[Union[ProductItem, Dict[str, Any]]]],
        context: Optional[Union[CalculationContext, Dict[str, Any]]],
        scheme_filters: Optional[Union[SchemeFilters, Dict[str, Any]]] = None,
        now: Optional[datetime] = None,
    ) -> RewardCalculationResult:
        """Run one calculation. Every failure surfaces as RewardCalculationError."""
        try:
            return await self._calculate(products, context, scheme_filters, now)
        except RewardCalculationError:
            raise
        except Exception as e:
            raise RewardCalculationError(
                f"Reward calculation failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    async def _calculate(self, products, context, scheme_filters, now) -> RewardCalculationResult:
        items = self._validate_products(products)
        context = self._validate_context(context)
        if self.fetch_candidate_schemes is None or self.fetch_all_available_schemes is None:
            raise InvalidCalculationInputError(
                "fetchCandidateSchemes and fetchAllAvailableSchemes callbacks are required"
            )
        filters = self._validate_filters(scheme_filters)
        now = now or self.clock()

        include_ids = filters.include_scheme_ids
        exclude_ids = filters.exclude_scheme_ids

        # Step 1: candidate set
        candidates, excluded = await self._build_candidate_set(context, include_ids, exclude_ids, now)
        self.logger.log(f"Found {len(candidates)} candidate schemes for warehouse {context.warehouse_id}")

        # Step 2: selection
        selection = await self.selector.select(candidates, items, context, include_ids)
        applied_ids = selection.applied_scheme_ids

        # Step 3: report over every scheme the warehouse can see
        available = await self._fetch_warehouse_schemes(context, now)
        merged: Dict[str, Scheme] = {s.scheme_id: s for s in available}
        for scheme in excluded:
            merged[scheme.scheme_id] = scheme

        report = await self.selector.build_report(
            list(merged.values()), items, context, applied_ids, exclude_ids
        )
        for entry in report:
            self.logger.log(
                f"  - schemeId: {entry.scheme_id}, name: {entry.scheme_name or 'N/A'}, status: {entry.status.value}"
                + (f", reason: {entry.reason}" if entry.reason else "")
            )

        available_schemes = [
            entry for entry in report
            if entry.scheme_id not in applied_ids
            and entry.scheme_id not in include_ids
            and status_in(entry.status, SchemeAppliedStatus.EXCLUDED, SchemeAppliedStatus.BLOCKED)
        ]

        # Step 4: totals
        quantum = self.settings.MONEY_QUANTUM
        rewards = selection.applied_rewards
        total_value = sum((item.line_value for item in items), ZERO)
        total_quantity = sum((item.quantity for item in items), ZERO)
        total_discount = sum((r.total_discount for r in rewards), ZERO)
        total_reward_amount = sum((r.reward_amount for r in rewards), ZERO)

        free_products: List[FreeProductReward] = []
        discounted_products: List[DiscountedProductResult] = []
        for reward in rewards:
            free_products.extend(reward.free_products)
            discounted_products.extend(reward.discounted_products or [])

        total_value_after_discount = max(ZERO, total_value - total_discount)
        self.logger.log(
            f"Applied {len(rewards)} rewards with total discount: {total_discount}. "
            f"Total value: {total_value}, after discount: {total_value_after_discount}, "
            f"free products: {len(free_products)}"
        )

        return RewardCalculationResult(
            total_discount=round_money(total_discount, quantum),
            total_reward_amount=round_money(total_reward_amount, quantum),
            applied_schemes=rewards,
            available_schemes=available_schemes,
            summary=RewardSummary(
                total_products=len(items),
                total_quantity=total_quantity,
                total_value=round_money(total_value, quantum),
                total_value_after_discount=round_money(total_value_after_discount, quantum),
                schemes_applied=len(rewards),
                free_products=free_products,
                discounted_products=discounted_products or None,
                discount_value=round_money(total_discount, quantum),
            ),
        )

    # ==================== SCHEME LOOKUPS ====================

    async def _build_candidate_set(self, context, include_ids, exclude_ids, now):
        fetched = self._to_schemes(
            await self.fetch_candidate_schemes(
                FetchCandidateSchemesParams(
                    warehouse_id=context.warehouse_id,
                    channel_id=context.channel_id,
                    business_type_id=context.business_type_id,
                    include_schemes=include_ids or None,
                    exclude_schemes=exclude_ids or None,
                    now=now,
                )
            )
        )

        candidates = [s for s in fetched if s.scheme_id not in exclude_ids]
        excluded = [s for s in fetched if s.scheme_id in exclude_ids]

        # Included-only fetches never return the excluded ids, so look them up directly
        if include_ids and exclude_ids:
            fetched_ids = {s.scheme_id for s in fetched}
            missing = [sid for sid in exclude_ids if sid not in fetched_ids]
            if missing and self.fetch_missing_excluded_schemes is not None:
                self.logger.log(
                    f"Fetching {len(missing)} explicitly excluded schemes that were not in includeSchemes"
                )
                extra = self._to_schemes(
                    await self.fetch_missing_excluded_schemes(
                        FetchMissingExcludedSchemesParams(scheme_ids=missing, now=now)
                    )
                )
                excluded.extend(extra)
                self.logger.log(f"Added {len(extra)} missing excluded schemes")

        self.logger.log(
            f"Built candidate set with {len(candidates)} schemes and {len(excluded)} excluded schemes"
        )
        return candidates, excluded

    async def _fetch_warehouse_schemes(self, context: CalculationContext, now: datetime) -> List[Scheme]:
        fetched = self._to_schemes(
            await self.fetch_all_available_schemes(
                FetchAllAvailableSchemesParams(
                    warehouse_id=context.warehouse_id,
                    channel_id=context.channel_id,
                    business_type_id=context.business_type_id,
                    outlet_id=context.outlet_id,
                    now=now,
                )
            )
        )

        # Global schemes (no warehouse list) apply everywhere
        applicable = [
            s for s in fetched
            if s.applicable_to is not None
            and (not s.applicable_to.warehouse_ids or context.warehouse_id in s.applicable_to.warehouse_ids)
        ]
        self.logger.log(
            f"Filtered {len(applicable)} warehouse-applicable schemes from {len(fetched)} total schemes"
        )
        return applicable

    # ==================== INPUT VALIDATION ====================

    @staticmethod
    def _to_schemes(raw: Optional[Iterable[SchemeLike]]) -> List[Scheme]:
        return [s if isinstance(s, Scheme) else Scheme.model_validate(s) for s in raw or []]

    @staticmethod
    def _validate_products(products) -> List[ProductItem]:
        if not products:
            raise InvalidCalculationInputError("Products array is required and cannot be empty")
        return [p if isinstance(p, ProductItem) else ProductItem.model_validate(p) for p in products]

    @staticmethod
    def _validate_context(context) -> CalculationContext:
        if isinstance(context, dict):
            if not (context.get("warehouseId") or context.get("warehouse_id")):
                raise InvalidCalculationInputError("warehouseId is required")
            return CalculationContext.model_validate(context)
        if context is None or not context.warehouse_id:
            raise InvalidCalculationInputError("warehouseId is required")
        return context

    @staticmethod
    def _validate_filters(scheme_filters) -> SchemeFilters:
        if scheme_filters is None:
            return SchemeFilters()
        if isinstance(scheme_filters, SchemeFilters):
            return scheme_filters
        return SchemeFilters.model_validate(scheme_filters)


async def calculate_reward(
    products: Sequence[Union[ProductItem, Dict[str, Any]]],
    context: Union[CalculationContext, Dict[str, Any]],
    scheme_filters: Optional[Union[SchemeFilters, Dict[str, Any]]] = None,
    *,
    fetch_candidate_schemes: Optional[FetchCandidateSchemes] = None,
    fetch_all_available_schemes: Optional[FetchAllAvailableSchemes] = None,
    fetch_missing_excluded_schemes: Optional[FetchMissingExcludedSchemes] = None,
    product_data_provider: Optional[ProductDataProvider] = None,
    logger: Optional[LogSink] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> RewardCalculationResult:
    """Calculate rewards for ``products`` using the supplied scheme lookups."""
    engine = RewardEngine(
        fetch_candidate_schemes=fetch_candidate_schemes,
        fetch_all_available_schemes=fetch_all_available_schemes,
        fetch_missing_excluded_schemes=fetch_missing_excluded_schemes,
        product_data_provider=product_data_provider,
        logger=logger,
        settings=settings,
    )
    return await engine.calculate(products, context, scheme_filters, now=now)
