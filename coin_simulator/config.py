# coin_simulator/config.py

import os

from .utils import safe_float

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STORE_KEY_PREFIX = os.getenv("STORE_KEY_PREFIX", "coinsim")
MARKET_BROADCAST_CHANNEL = os.getenv("MARKET_BROADCAST_CHANNEL", "market:broadcast")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

TICK_INTERVAL_SECONDS = safe_float(os.getenv("TICK_INTERVAL_SECONDS"), 1.0)
BATCH_SAVE_INTERVAL_SECONDS = safe_float(os.getenv("BATCH_SAVE_INTERVAL_SECONDS"), 5.0)
MONITOR_INTERVAL_SECONDS = 30.0
ANALYTICS_EVERY_N_TICKS = 10
PRICE_BROADCAST_EVERY_N_TICKS = 2

# Coin dynamics
BASE_PRICE_IMPACT = 0.05
LIQUIDITY_RECOVERY_DELAY_SECONDS = 5.0
LIQUIDITY_RECOVERY_FRACTION = 0.1
VOLATILITY_DT = 0.001
VOLATILITY_DRIFT = -0.0001
JUMP_PROBABILITY = 0.002
LONG_TERM_PRICE = 1.0
MEAN_REVERSION_STRENGTH = 0.0001
MIN_PRICE = 1e-5
MAX_PRICE = 1e12
MAX_VOLATILITY_PRICE = 1e6

# Price history
PRICE_HISTORY_MAX_POINTS = 14400
MAX_CANDLES = 100
DEFAULT_CANDLES = 60
TIMEFRAME_MINUTES = {
    "1m": 1, "5m": 5, "15m": 15, "30m": 30,
    "1h": 60, "4h": 240, "1d": 1440, "1w": 10080,
}
SEED_HISTORY_SECONDS = 2 * 60 * 60
SEED_HISTORY_STALE_SECONDS = 60.0

# Bots
DEFAULT_BOT_COUNT = int(os.getenv("DEFAULT_BOT_COUNT", "150"))
BOT_HISTORY_WINDOW = 100
MIN_TRADE_AMOUNT = 1e-6
FOCUS_SWITCH_PROBABILITY = 0.1
FOCUS_SWITCH_MIN_EDGE = 0.05
TRADE_SIZE_MULTIPLIERS = {
    "tiny": 0.1, "small": 0.3, "moderate": 1.0,
    "aggressive": 2.0, "huge": 5.0, "whale": 10.0,
}
BOT_USER_PREFIX = "bot-"

# Market events
EVENT_PROBABILITY = 0.0008
EVENT_SHOCK_WINDOW_SECONDS = 2.0
CORRELATION_BREAK_INTENSITY = 0.3

# Fast-forward bootstrap
FAST_FORWARD_ENABLED = os.getenv("FAST_FORWARD_ENABLED", "true").lower() in ("1", "true", "yes")
FAST_FORWARD_DURATION_SECONDS = int(os.getenv("FAST_FORWARD_DURATION_SECONDS", str(2 * 60 * 60)))
FAST_FORWARD_TICKS_PER_SECOND = int(os.getenv("FAST_FORWARD_TICKS_PER_SECOND", "100"))
FAST_FORWARD_EVENT_GATE = 0.02
FAST_FORWARD_MIN_FREQUENCY = 2.0

# Trading
RECENT_TRADES_CAPACITY = 100
DEFAULT_USER_CASH = 10000.0
TRADE_WINDOW_SECONDS = 24 * 60 * 60

DEFAULT_COINS = [
    {"id": "RCOIN", "name": "RealCoin", "price": 1.0, "base_vol": 0.015, "liquidity": 5000},
    {"id": "WHALE", "name": "WhaleCoin", "price": 50.0, "base_vol": 0.008, "liquidity": 500},
    {"id": "STABLE", "name": "StableMatic", "price": 1.001, "base_vol": 0.005, "liquidity": 10000},
    {"id": "TOAST", "name": "ToastCoin", "price": 0.25, "base_vol": 0.025, "liquidity": 2000},
    {"id": "DOGE2", "name": "DogeButBetter", "price": 0.08, "base_vol": 0.03, "liquidity": 3000},
    {"id": "PIZZA", "name": "PizzaCoin", "price": 3.14, "base_vol": 0.022, "liquidity": 1800},
    {"id": "COFFEE", "name": "CoffeeBeans", "price": 4.20, "base_vol": 0.018, "liquidity": 1500},
    {"id": "GAME", "name": "GameToken", "price": 12.34, "base_vol": 0.028, "liquidity": 1200},
    {"id": "MEME", "name": "MemeCoin", "price": 0.01, "base_vol": 0.04, "liquidity": 1000},
    {"id": "MOON", "name": "MoonShot", "price": 0.15, "base_vol": 0.06, "liquidity": 800},
    {"id": "YOLO", "name": "YoloSwag", "price": 0.69, "base_vol": 0.08, "liquidity": 600},
    {"id": "PUMP", "name": "PumpCoin", "price": 0.001, "base_vol": 0.12, "liquidity": 400},
    {"id": "SHIB2", "name": "ShibKiller", "price": 0.0001, "base_vol": 0.15, "liquidity": 2500},
    {"id": "CHAOS", "name": "ChaosCoin", "price": 0.00001, "base_vol": 0.25, "liquidity": 200},
    {"id": "RUGME", "name": "RugPullCoin", "price": 0.0042, "base_vol": 0.18, "liquidity": 300},
    {"id": "SCAM", "name": "TotallyLegit", "price": 0.13, "base_vol": 0.22, "liquidity": 150},
    {"id": "GOLD", "name": "DigitalGold", "price": 1337.0, "base_vol": 0.012, "liquidity": 100},
    {"id": "DIAMOND", "name": "DiamondHands", "price": 420.69, "base_vol": 0.016, "liquidity": 250},
    {"id": "UTIL", "name": "UtilityCoin", "price": 2.5, "base_vol": 0.02, "liquidity": 1600},
    {"id": "WORK", "name": "WorkToken", "price": 8.0, "base_vol": 0.024, "liquidity": 1100},
    {"id": "ROBOT", "name": "RobotCoin", "price": 25.0, "base_vol": 0.035, "liquidity": 900},
    {"id": "BRAIN", "name": "BrainChain", "price": 7.77, "base_vol": 0.045, "liquidity": 700},
    {"id": "TACO", "name": "TacoCoin", "price": 1.99, "base_vol": 0.032, "liquidity": 1300},
    {"id": "BURGER", "name": "BurgerToken", "price": 5.99, "base_vol": 0.027, "liquidity": 1000},
]

# Personalities that watch every coin / most coins
WATCH_ALL_PERSONALITIES = ("quant-quinn", "arbitrage-arnie", "influencer-izzy")
WATCH_MOST_PERSONALITIES = ("copycat-carla", "doom-daniel")
