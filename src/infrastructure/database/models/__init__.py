from .base import Base, BaseModel
from .portfolio_position_model import PortfolioPositionModel
from .trade_model import TradeModel
from .allocation_target_model import AllocationTargetModel, AllocationStrategyModel
from .journal_models import AgentExplanationModel, AgentStrategyModel


__all__ = [
    "Base",
    "BaseModel",
    "PortfolioPositionModel",
    "TradeModel",
    "AllocationTargetModel",
    "AllocationStrategyModel",
    "AgentExplanationModel",
    "AgentStrategyModel",
]
