# coin_simulator/models.py

from datetime import datetime
from typing import Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator
from pydantic.alias_generators import to_camel

from .utils import generate_id, utcnow

Side = Literal['buy', 'sell']
OrderType = Literal['market', 'limit']
OrderStatus = Literal['pending', 'filled', 'cancelled']
Timeframe = Literal['1m', '5m', '15m', '30m', '1h', '4h', '1d', '1w']
EventType = Literal[
    'flash_crash', 'pump', 'rug_pull', 'whale_dump',
    'news_spike', 'correlation_break', 'liquidity_crisis',
]
Severity = Literal['minor', 'moderate', 'major', 'extreme']
Sentiment = Literal['extreme_fear', 'fear', 'neutral', 'greed', 'extreme_greed']
CampaignType = Literal['altseason', 'crash', 'pump']


class CamelModel(BaseModel):
    """Base for every record that crosses the store or the broadcast channel."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json_dict(self) -> Dict:
        return self.model_dump(mode="json", by_alias=True)


class CoinRecord(CamelModel):
    id: str
    name: str
    price: float
    base_vol: float
    liquidity: float
    last_updated: datetime = Field(default_factory=utcnow)


class Holding(CamelModel):
    amount: float
    average_cost: float


class Portfolio(CamelModel):
    cash: float
    holdings: Dict[str, Holding] = Field(default_factory=dict)


class ScalpPosition(CamelModel):
    side: Side
    entry: float
    timestamp: datetime


class BotParameters(CamelModel):
    """Per-bot rolling state. Unknown keys from older records are ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )

    market_history: Dict[str, List[float]] = Field(default_factory=dict)
    price_window: List[float] = Field(default_factory=list)
    entry_price: Optional[float] = None
    fomo_entry: Optional[float] = None
    avg_buy_price: Optional[float] = None
    mm_last_side: Optional[Side] = None
    campaign_type: Optional[CampaignType] = None
    campaign_active: int = 0
    pumped_coin: Optional[str] = None
    scalp_positions: Dict[str, ScalpPosition] = Field(default_factory=dict)


class BotRecord(CamelModel):
    id: str
    personality: Optional[str] = None
    target_coin: str
    watched_coins: Optional[List[str]] = None
    parameters: BotParameters = Field(default_factory=BotParameters)
    last_action: datetime = Field(default_factory=utcnow)
    enabled: bool = True
    portfolio: Portfolio


class Order(CamelModel):
    id: str = Field(default_factory=generate_id)
    user_id: str
    coin_id: str
    side: Side
    type: OrderType = 'market'
    price: Optional[float] = Field(default=None, gt=0, description="Limit price (must be positive)")
    amount: float = Field(gt=0, description="Order amount (must be positive)")
    created_at: datetime = Field(default_factory=utcnow)
    status: OrderStatus = 'pending'

    @model_validator(mode='after')
    def check_limit_price(self) -> 'Order':
        if self.type == 'limit' and self.price is None:
            raise ValueError("limit orders require a price")
        return self


class Trade(CamelModel):
    id: str
    coin_id: str
    price: float
    amount: float
    buyer_id: str
    seller_id: str
    timestamp: datetime = Field(default_factory=utcnow)


class MarketEvent(CamelModel):
    id: str
    type: EventType
    target_coin: Optional[str] = None
    severity: Severity
    duration: float
    price_multiplier: float
    volatility_multiplier: float
    message: str
    timestamp: datetime
    active: bool = True

    _shocked_coins: Set[str] = PrivateAttr(default_factory=set)

    def summary(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
            "targetCoin": self.target_coin,
            "timestamp": self.timestamp.isoformat(),
        }


class Candle(CamelModel):
    coin_id: str
    timeframe: Timeframe
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float


class CoinMover(CamelModel):
    coin_id: str
    change24h: float
    price: float


class ActiveCoin(CamelModel):
    coin_id: str
    volume24h: float
    trades: int


class MarketAnalytics(CamelModel):
    total_market_cap: float = 0.0
    total_volume24h: float = 0.0
    market_sentiment: Sentiment = 'neutral'
    top_gainers: List[CoinMover] = Field(default_factory=list)
    top_losers: List[CoinMover] = Field(default_factory=list)
    most_active: List[ActiveCoin] = Field(default_factory=list)
    volatility_index: float = 0.0
    correlation_matrix: Dict[str, Dict[str, float]] = Field(default_factory=dict)


class HoldingWithGains(CamelModel):
    amount: float
    average_cost: float
    current_price: float
    total_value: float
    total_cost: float
    unrealized_gain: float
    unrealized_gain_percent: float


class PortfolioWithGains(CamelModel):
    cash: float
    holdings: Dict[str, HoldingWithGains] = Field(default_factory=dict)
    total_value: float
    total_cost: float
    total_unrealized_gain: float = 0.0
    total_unrealized_gain_percent: float = 0.0


class LeaderboardEntry(CamelModel):
    user_id: str
    cash: float
    total_value: float
    total_gains: float
    gain_percentage: float
    holdings: int
