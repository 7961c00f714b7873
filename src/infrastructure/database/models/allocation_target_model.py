# src/infrastructure/database/models/allocation_target_model.py

from sqlalchemy import Column, Integer, String, Numeric, Text

from src.infrastructure.database.models.base import BaseModel


class AllocationTargetModel(BaseModel):
    """
    Porcentaje objetivo por token.

    - El set completo se reemplaza en cada update (delete-all / insert-all).
    - La suma de los targets debería dar 100; se valida al escribir, no se guarda.
    """

    __tablename__ = "portfolio_allocation_targets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_symbol = Column(String(50), nullable=False, unique=True)
    target_percentage = Column(Numeric(8, 4, asdecimal=False), nullable=False)
    notes = Column(Text, nullable=True)


class AllocationStrategyModel(BaseModel):
    """Historial del razonamiento detrás de cada cambio de targets."""

    __tablename__ = "allocation_strategy"

    id = Column(Integer, primary_key=True, autoincrement=True)
    explanation = Column(Text, nullable=False)
