from scheme_engine.schemas.product import (
    PricingGroup,
    PricingGroupProduct,
    PricingGroupWarehouse,
    ProductItem,
    UnitPerCase,
    UomDetails,
)
from scheme_engine.schemas.scheme import (
    ANY_PRODUCT,
    AggregationBasis,
    ApplicableTo,
    AssortedCondition,
    AssortedCriteria,
    ComboCondition,
    ComboCriteria,
    Condition,
    ConditionBasis,
    ConditionType,
    FlexibleProductCondition,
    FlexibleProductCriteria,
    FreeProductReward,
    InvoiceCondition,
    InvoiceCriteria,
    LineItemCondition,
    LineItemCriteria,
    LineItemFilter,
    MatchType,
    ProductDiscountReward,
    Reward,
    RewardType,
    Scheme,
    SchemeAppliedStatus,
    SchemeStatus,
    SubCriterion,
)
from scheme_engine.schemas.reward import (
    CalculatedReward,
    CalculationContext,
    DiscountedProductResult,
    FetchAllAvailableSchemesParams,
    FetchCandidateSchemesParams,
    FetchMissingExcludedSchemesParams,
    RewardCalculationResult,
    RewardOutcome,
    RewardSummary,
    SchemeApplicability,
    SchemeFilters,
)
