from enum import Enum


class TradeSideEnum(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SWAP = "SWAP"


class TradeOrderTypeEnum(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class TradeStatusEnum(str, Enum):
    FILLED = "FILLED"
    REJECTED = "REJECTED"


class RebalanceActionEnum(str, Enum):
    REDUCE = "REDUCE"
    INCREASE = "INCREASE"
