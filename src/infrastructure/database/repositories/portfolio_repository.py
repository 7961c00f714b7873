import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.commons.errors import InsufficientBalanceError, PositionNotFoundError
from src.domain.portfolio.dtos.portfolio_dto import PositionDTO
from src.domain.portfolio.valuation import weighted_entry_price
from src.infrastructure.database.models.base import utc_now
from src.infrastructure.database.models.portfolio_position_model import (
    PortfolioPositionModel,
)

logger = logging.getLogger(__name__)


class PortfolioRepository:
    """
    Ledger de balances por token (una fila por símbolo).

    Ningún método hace commit: el que llama es dueño de la transacción
    (ver PostgresClient.transaction), así un debit + credit + trade record
    se confirman o se descartan juntos.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------ QUERIES ------------------

    async def _get_model(
        self,
        symbol: str,
        for_update: bool = False,
    ) -> Optional[PortfolioPositionModel]:
        stmt = select(PortfolioPositionModel).where(
            PortfolioPositionModel.token_symbol == symbol
        )
        if for_update:
            stmt = stmt.with_for_update()
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def get_position(
        self,
        symbol: str,
        for_update: bool = False,
    ) -> Optional[PositionDTO]:
        model = await self._get_model(symbol, for_update=for_update)
        if model is None:
            return None
        return self._model_to_dto(model)

    async def list_positions(self) -> List[PositionDTO]:
        stmt = select(PortfolioPositionModel).order_by(
            PortfolioPositionModel.token_symbol
        )
        res = await self.session.execute(stmt)
        return [self._model_to_dto(m) for m in res.scalars().all()]

    # ------------------ COMMANDS ------------------

    async def debit(self, symbol: str, amount: float) -> PositionDTO:
        """
        Resta `amount` del balance. Nunca deja un balance negativo:
        si no alcanza lanza InsufficientBalanceError antes de tocar la fila.
        """
        model = await self._get_model(symbol, for_update=True)
        if model is None:
            raise PositionNotFoundError(symbol)

        current = float(model.balance or 0.0)
        if current < amount:
            raise InsufficientBalanceError(symbol, current, amount)

        model.balance = max(0.0, current - amount)
        await self.session.flush()

        logger.debug(f"Debited {amount} {symbol}: {current} -> {model.balance}")
        return self._model_to_dto(model)

    async def credit(
        self,
        symbol: str,
        amount: float,
        price: float,
        now: Optional[datetime] = None,
    ) -> PositionDTO:
        """
        Suma `amount` unidades compradas a `price` y recalcula el entry price
        promedio ponderado. El entry_timestamp solo se setea si era NULL.
        """
        now = now or utc_now()
        model = await self._get_model(symbol, for_update=True)

        if model is None:
            model = PortfolioPositionModel(
                token_symbol=symbol,
                balance=amount,
                entry_price=price,
                entry_timestamp=now,
                unrealized_pnl=0.0,
                pnl_percentage=0.0,
            )
            self.session.add(model)
            logger.info(f"➕ New position {symbol}: {amount:.8f} @ {price:.8f}")
        else:
            old_balance = float(model.balance or 0.0)
            new_entry = weighted_entry_price(
                old_balance, model.entry_price, amount, price
            )
            model.balance = old_balance + amount
            model.entry_price = new_entry
            if model.entry_timestamp is None:
                model.entry_timestamp = now
            logger.info(
                f"🔄 Updated position {symbol}: balance {old_balance:.8f} -> {model.balance:.8f}, "
                f"entry price -> {new_entry:.8f}"
            )

        await self.session.flush()
        return self._model_to_dto(model)

    async def update_pnl(
        self,
        symbol: str,
        unrealized_pnl: float,
        pnl_percentage: float,
    ) -> None:
        model = await self._get_model(symbol)
        if model is None:
            return
        model.unrealized_pnl = unrealized_pnl
        model.pnl_percentage = pnl_percentage
        await self.session.flush()

    async def ensure_base(
        self,
        base_symbol: str,
        initial_balance: float,
    ) -> Tuple[PositionDTO, bool]:
        """
        Si no existe la fila del stablecoin base la crea con el balance inicial.
        Devuelve (posición, creada).
        """
        model = await self._get_model(base_symbol)
        if model is not None:
            return self._model_to_dto(model), False

        model = self._base_model(base_symbol, initial_balance, utc_now())
        self.session.add(model)
        await self.session.flush()
        return self._model_to_dto(model), True

    async def reset(
        self,
        base_symbol: str,
        base_balance: float,
        now: Optional[datetime] = None,
    ) -> PositionDTO:
        """Borra todas las filas y vuelve a sembrar solo el stablecoin base."""
        await self.session.execute(delete(PortfolioPositionModel))

        model = self._base_model(base_symbol, base_balance, now or utc_now())
        self.session.add(model)
        await self.session.flush()
        return self._model_to_dto(model)

    # ------------------ HELPERS ------------------

    @staticmethod
    def _base_model(
        base_symbol: str,
        balance: float,
        now: datetime,
    ) -> PortfolioPositionModel:
        return PortfolioPositionModel(
            token_symbol=base_symbol,
            balance=balance,
            entry_price=1.0,
            entry_timestamp=now,
            unrealized_pnl=0.0,
            pnl_percentage=0.0,
        )

    @staticmethod
    def _model_to_dto(model: PortfolioPositionModel) -> PositionDTO:
        return PositionDTO(
            token_symbol=model.token_symbol,
            balance=float(model.balance or 0.0),
            entry_price=(
                float(model.entry_price)
                if model.entry_price is not None
                else None
            ),
            entry_timestamp=model.entry_timestamp,
            unrealized_pnl=float(model.unrealized_pnl or 0.0),
            pnl_percentage=float(model.pnl_percentage or 0.0),
        )
