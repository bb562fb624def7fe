# Services module
from scheme_engine.services.uom_service import UomService
from scheme_engine.services.product_data_service import ProductDataProvider, ProductDataService
from scheme_engine.services.aggregation_service import AggregationService
from scheme_engine.services.reward_calculator import RewardCalculator
from scheme_engine.services.usage_tracker import UsageTracker
from scheme_engine.services.prorating import ProratingStrategy
from scheme_engine.services.condition_evaluator import ConditionEvaluator
from scheme_engine.services.scheme_processor import SchemeProcessor
from scheme_engine.services.scheme_selector import SchemeSelector
from scheme_engine.services.reward_engine import RewardEngine, calculate_reward

__all__ = [
    "UomService",
    "ProductDataProvider",
    "ProductDataService",
    "AggregationService",
    "RewardCalculator",
    "UsageTracker",
    "ProratingStrategy",
    "ConditionEvaluator",
    "SchemeProcessor",
    "SchemeSelector",
    "RewardEngine",
    "calculate_reward",
]
