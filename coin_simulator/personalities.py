# coin_simulator/personalities.py

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class PersonalityTraits(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    trading_style: str
    strategy: str
    aggressiveness: float = Field(ge=0, le=10)
    frequency: float = Field(gt=0, description="Expected actions per minute")
    volatility_love: float = Field(ge=0, le=10)
    herd_mentality: float = Field(ge=0, le=10)
    announcement: bool = False


def _traits(name, description, trading_style, strategy, aggressiveness, frequency,
            volatility_love, herd_mentality, announcement=False) -> PersonalityTraits:
    return PersonalityTraits(
        name=name, description=description, trading_style=trading_style, strategy=strategy,
        aggressiveness=aggressiveness, frequency=frequency, volatility_love=volatility_love,
        herd_mentality=herd_mentality, announcement=announcement,
    )


PERSONALITY_TRAITS: Dict[str, PersonalityTraits] = {
    'momentum-maxine': _traits(
        'Momentum Maxine', "it went up yesterday so it'll go up forever, right?", 'momentum-chaser',
        'Momentum Trading - Following price trends', 7, 3, 9, 8),
    'mean-revertor-marvin': _traits(
        'Mean Revertor Marvin', 'everything returns to average… except my portfolio.', 'contrarian',
        'Mean Reversion - Betting on price corrections', 8, 2, 4, 2),
    'whale-wendy': _traits(
        'Whale Wendy', 'i woke up and chose financial destruction.', 'whale',
        'Whale Trading - Large position manipulation', 10, 0.5, 10, 1),
    'pattern-prophet': _traits(
        'Pattern Prophet', 'i see triangles in the candles.', 'technical',
        'Pattern Recognition - Technical analysis', 4, 5, 6, 3),
    'stoploss-steve': _traits(
        'Stoploss Steve', 'i panic instantly.', 'panic',
        'Risk Management - Stop-loss focused', 6, 4, 2, 7),
    'copycat-carla': _traits(
        'Copycat Carla', "if everyone's buying, so am i!", 'follower',
        'Copy Trading - Following other successful trades', 5, 4, 5, 10),
    'contrarian-carl': _traits(
        'Contrarian Carl', "if everyone's buying, i'm selling.", 'contrarian',
        'Contrarian - Going against the crowd', 6, 3, 7, 1),
    'fomo-fiona': _traits(
        'FOMO Fiona', "it's pumping, I can't miss out!", 'fomo',
        'FOMO Trading - Chasing hot trends', 9, 2, 10, 9),
    'longterm-larry': _traits(
        'Long-Term Larry', 'i believe in fundamentals. (there are none.)', 'hodler',
        'Long-term Holding - Buy and hold strategy', 3, 0.2, 3, 2),
    'ape-alex': _traits(
        'Ape Alex', 'ape strong together.', 'herd',
        'Ape Trading - High-risk, high-reward plays', 8, 3, 8, 10),
    'quant-quinn': _traits(
        'Quant Quinn', 'trust the math, not emotions.', 'quant',
        'Quantitative Analysis - Multi-coin statistical arbitrage', 4, 1, 3, 1),
    'doom-daniel': _traits(
        'Doom Daniel', 'the crash is *always* coming.', 'bear',
        'Doom Trading - Betting on market crashes', 5, 2, 8, 2),
    'lazy-lisa': _traits(
        'Lazy Lisa', "i'll trade later…", 'lazy',
        'Lazy Trading - The occasional coin flip', 2, 0.3, 1, 3),
    'arbitrage-arnie': _traits(
        'Arbitrage Arnie', 'spot inefficiencies, badly.', 'arbitrage',
        'Cross-coin Arbitrage - Price differential exploitation', 6, 4, 5, 1),
    'influencer-izzy': _traits(
        'Influencer Izzy', "this coin's going to the moon! (because I said so)", 'influencer',
        'Market Influence - Coordinated campaign trading', 8, 1, 9, 5, announcement=True),
    'scalper-sally': _traits(
        'Scalper Sally', 'tiny profits, massive frequency. death by a thousand cuts.', 'scalping',
        'Scalping - Tiny moves, tight exits', 3, 10, 8, 2),
    'daytrader-danny': _traits(
        'Day Trader Danny', 'in at 9am, out by 5pm. no overnight risk!', 'daytrading',
        'Day Trading - Riding intraday swings', 6, 5, 7, 4),
    'swingtrader-sam': _traits(
        'Swing Trader Sam', 'hold for days, not minutes. patience is virtue.', 'swing',
        'Swing Trading - Buying deep pullbacks', 4, 0.5, 5, 3),
    'news-nancy': _traits(
        'News Nancy', 'trades on every headline and rumor.', 'news',
        'News Trading - Reacting to headlines', 7, 1, 9, 6),
    'technical-ted': _traits(
        'Technical Ted', 'RSI, MACD, Bollinger Bands... has indicators for days.', 'technical',
        'Technical Analysis - RSI overbought/oversold', 5, 3, 6, 2),
    'fundamental-frank': _traits(
        'Fundamental Frank', 'analyzing tokenomics of meme coins. good luck.', 'fundamental',
        'Fundamental Analysis - Deep liquidity, low volatility', 3, 0.3, 2, 1),
    'random-rick': _traits(
        'Random Rick', 'coin flips and dice rolls. surprisingly effective.', 'random',
        'Random Trading - Coin flips', 5, 2, 10, 5),
    'correlation-cora': _traits(
        'Correlation Cora', 'if PIZZA goes up, TACO must follow... right?', 'correlation',
        'Pairs Trading - Betting on divergence closing', 4, 2, 4, 3),
    'volatility-victor': _traits(
        'Volatility Victor', 'loves chaos, hates boring sideways action.', 'volatility',
        'Volatility Trading - Only trades wild coins', 8, 4, 10, 3),
    'liquidity-lucy': _traits(
        'Liquidity Lucy', "only trades where there's volume. avoids thin markets.", 'liquidity',
        'Liquidity Seeking - Deep markets only', 3, 1, 3, 4),
    'breakout-bob': _traits(
        'Breakout Bob', 'waiting for that explosive move above resistance.', 'breakout',
        'Breakout Trading - Buying new highs', 7, 1, 9, 5),
    'support-sarah': _traits(
        'Support Sarah', 'buys the dip at every support level.', 'support',
        'Support Buying - Buying recent lows', 6, 2, 4, 2),
    'marketmaker-mike': _traits(
        'Market Maker Mike', 'provides liquidity for tiny spreads. the real MVP.', 'market-making',
        'Market Making - Alternating small buys and sells', 2, 8, 1, 1),
    'sniper-steve': _traits(
        'Sniper Steve', 'waits for the perfect setup. then strikes hard.', 'sniper',
        'Sniping - Huge trades on sharp moves', 9, 0.1, 6, 1),
    'panic-pete': _traits(
        'Panic Pete', 'sells at the first sign of trouble. paper hands incarnate.', 'panic',
        'Panic Selling - Dumping on any dip', 8, 6, 2, 9),
    'patient-paul': _traits(
        'Patient Paul', 'waits months for the right opportunity.', 'patient',
        'Patient Investing - Buying only deep crashes', 2, 0.05, 1, 1),
    'trendfollower-tim': _traits(
        'Trend Follower Tim', 'the trend is your friend... until it ends.', 'trend',
        'Trend Following - Short and long trend agreement', 6, 2, 7, 7),
    'meanreversionmary': _traits(
        'Mean Reversion Mary', 'everything that goes up must come down.', 'mean-reversion',
        'Mean Reversion - Fading moves away from average', 5, 3, 5, 2),
    'fibonacci-fran': _traits(
        'Fibonacci Fran', 'sees golden ratios in every price movement.', 'fibonacci',
        'Fibonacci Retracement - Buying the 61.8% level', 4, 1, 6, 2),
    'volume-vince': _traits(
        'Volume Vince', 'price follows volume. volume never lies.', 'volume',
        'Volume Trading - Following strong moves', 5, 4, 8, 4),
}

PERSONALITIES: List[str] = list(PERSONALITY_TRAITS)


def get_traits(personality: str) -> PersonalityTraits:
    try:
        return PERSONALITY_TRAITS[personality]
    except KeyError:
        raise ValueError(f"Unknown personality '{personality}'") from None
