from typing import Optional


class LeftCurveError(Exception):
    """Base exception for portfolio / trading errors."""
    pass


class UnresolvedPriceError(LeftCurveError):
    """No plausible price could be found after every fallback."""

    def __init__(self, symbol: str):
        super().__init__(
            f"Could not get a valid price for {symbol}. "
            f"Trading is not possible without pricing data."
        )
        self.symbol = symbol


class InsufficientBalanceError(LeftCurveError):
    def __init__(self, symbol: str, current: float, requested: float):
        super().__init__(
            f"Not enough {symbol}. Current balance = {current}, requested = {requested}"
        )
        self.symbol = symbol
        self.current = current
        self.requested = requested


class PositionNotFoundError(LeftCurveError):
    def __init__(self, symbol: str):
        super().__init__(f"No {symbol} found in portfolio. Did you add it or init?")
        self.symbol = symbol


class UnsupportedTokenError(LeftCurveError):
    def __init__(self, symbol: str, message: Optional[str] = None):
        super().__init__(message or f"Token {symbol} is not supported for trading")
        self.symbol = symbol


class InvalidAllocationError(LeftCurveError):
    pass


class TransactionFailureError(LeftCurveError):
    """Ledger transaction failed and was rolled back."""
    pass
