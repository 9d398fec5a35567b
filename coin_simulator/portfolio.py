# coin_simulator/portfolio.py

import logging
from typing import TYPE_CHECKING, Mapping

from .config import MIN_TRADE_AMOUNT
from .models import Holding, HoldingWithGains, Portfolio, PortfolioWithGains
from .utils import is_finite

if TYPE_CHECKING:
    from .coin import Coin

log = logging.getLogger(__name__)

MAX_CASH = 1e12
MAX_COST = 1e15


def apply_buy(portfolio: Portfolio, coin_id: str, amount: float, price: float) -> bool:
    """Debit amount*price and add the holding at a weighted average cost.

    Returns False (portfolio untouched) when the request is invalid or unaffordable.
    """
    if not is_finite(amount) or amount <= 0 or amount > MAX_CASH or not is_finite(price) or price <= 0:
        return False
    cost = amount * price
    if not is_finite(cost) or cost > MAX_COST or portfolio.cash < cost:
        return False

    portfolio.cash -= cost
    current = portfolio.holdings.get(coin_id)
    if current:
        total_amount = current.amount + amount
        total_value = current.amount * current.average_cost + cost
        portfolio.holdings[coin_id] = Holding(amount=total_amount, average_cost=total_value / total_amount)
    else:
        portfolio.holdings[coin_id] = Holding(amount=amount, average_cost=price)
    return True


def apply_sell(portfolio: Portfolio, coin_id: str, amount: float, price: float) -> bool:
    """Credit amount*price and reduce the holding; dust below the trade floor is dropped."""
    if not is_finite(amount) or amount <= 0 or not is_finite(price) or price <= 0:
        return False
    current = portfolio.holdings.get(coin_id)
    if not current or current.amount < amount:
        return False
    proceeds = amount * price
    if not is_finite(proceeds) or proceeds > MAX_COST:
        return False

    portfolio.cash += proceeds
    remaining = current.amount - amount
    if remaining <= MIN_TRADE_AMOUNT:
        del portfolio.holdings[coin_id]
    else:
        portfolio.holdings[coin_id] = Holding(amount=remaining, average_cost=current.average_cost)
    return True


def validate_portfolio(portfolio: Portfolio) -> Portfolio:
    """Copy with corrupted cash zeroed and unusable holdings dropped."""
    cash = portfolio.cash if is_finite(portfolio.cash) and 0 <= portfolio.cash < MAX_CASH else 0.0
    holdings = {
        coin_id: Holding(amount=h.amount, average_cost=h.average_cost)
        for coin_id, h in portfolio.holdings.items()
        if is_finite(h.amount) and 0 < h.amount < MAX_CASH and is_finite(h.average_cost) and h.average_cost > 0
    }
    dropped = len(portfolio.holdings) - len(holdings)
    if dropped:
        log.warning(f"Dropped {dropped} invalid holding(s) while validating portfolio")
    return Portfolio(cash=cash, holdings=holdings)


def get_portfolio_with_gains(portfolio: Portfolio, coins: Mapping[str, 'Coin']) -> PortfolioWithGains:
    """Value every holding at the live coin price. Holdings of unknown coins are skipped."""
    holdings = {}
    total_value = portfolio.cash
    total_cost = portfolio.cash

    for coin_id, holding in portfolio.holdings.items():
        coin = coins.get(coin_id)
        if coin is None or holding.amount <= 0:
            continue
        value = holding.amount * coin.price
        cost = holding.amount * holding.average_cost
        gain = value - cost
        holdings[coin_id] = HoldingWithGains(
            amount=holding.amount,
            average_cost=holding.average_cost,
            current_price=coin.price,
            total_value=value,
            total_cost=cost,
            unrealized_gain=gain,
            unrealized_gain_percent=(gain / cost) * 100 if cost > 0 else 0.0,
        )
        total_value += value
        total_cost += cost

    total_gain = total_value - total_cost
    return PortfolioWithGains(
        cash=portfolio.cash,
        holdings=holdings,
        total_value=total_value,
        total_cost=total_cost,
        total_unrealized_gain=total_gain,
        total_unrealized_gain_percent=(total_gain / total_cost) * 100 if total_cost > 0 else 0.0,
    )
