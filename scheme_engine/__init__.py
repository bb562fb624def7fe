"""Scheme reward calculation engine."""
from scheme_engine.config import Settings, get_settings
from scheme_engine.core.exceptions import (
    InvalidCalculationInputError,
    RewardCalculationError,
    SchemeEngineError,
)
from scheme_engine.schemas import *  # noqa: F401,F403
from scheme_engine.services.product_data_service import ProductDataProvider
from scheme_engine.services.reward_engine import RewardEngine, calculate_reward

__version__ = "1.0.0"
