"""
Journal Database Models

Explicaciones del agente (últimas 3) y texto de estrategia (último 1).
"""

from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime

from src.infrastructure.database.models.base import BaseModel, utc_now


class AgentExplanationModel(BaseModel):
    __tablename__ = "agent_explanations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    explanation = Column(Text, nullable=False)
    market = Column(String(100), nullable=True)
    reason = Column(Text, nullable=True)
    price = Column(Numeric(36, 18, asdecimal=False), nullable=True)
    volume = Column(Numeric(36, 18, asdecimal=False), nullable=True)
    volatility = Column(Numeric(36, 18, asdecimal=False), nullable=True)
    trend = Column(String(50), nullable=True)
    decision_type = Column(String(50), nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)


class AgentStrategyModel(BaseModel):
    __tablename__ = "agent_strategies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    strategy_text = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
