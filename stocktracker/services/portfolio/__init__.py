# stocktracker/services/portfolio/__init__.py
"""
Portfolio Service Package.

This package turns stored transactions into portfolio performance:
- Open positions (get_holdings)
- Cost, value, gain/loss and ARR (calculate_portfolio_stats)
- Summaries, FX backfill and price refresh

Usage:
    from stocktracker.services.portfolio import PortfolioService

    service = PortfolioService(store, fx_service, price_service)
    stats = await service.calculate_portfolio_stats()

Architecture:
    portfolio/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Result data classes
    ├── calculators.py           # Holdings, cost basis, value, returns, summaries
    └── service.py               # PortfolioService (orchestrator)

Data Flow:
    Transactions → HoldingsCalculator → Holdings
    Holdings + historical FX → CostBasisCalculator → CostBasisResult
    Holdings + Prices + live FX → ValueCalculator → ValueResult
    CostBasis + Value → ReturnCalculator → gain/loss %, ARR
    All Above → HoldingPerformance → PortfolioStats
"""

# Calculators (for testing / direct usage)
from stocktracker.services.portfolio.calculators import (
    CostBasisCalculator,
    HoldingsCalculator,
    ReturnCalculator,
    SummaryCalculator,
    ValueCalculator,
)
# Main service
from stocktracker.services.portfolio.service import PortfolioService
# Result types
from stocktracker.services.portfolio.types import (
    AccountSummary,
    BackfillResult,
    CostBasisResult,
    CurrencyBreakdownEntry,
    DiversificationEntry,
    Holding,
    HoldingPerformance,
    MonthlyActivity,
    PortfolioStats,
    RefreshResult,
    TransactionSummary,
    ValueResult,
)

__all__ = [
    # Service
    "PortfolioService",
    # Calculators
    "HoldingsCalculator",
    "CostBasisCalculator",
    "ValueCalculator",
    "ReturnCalculator",
    "SummaryCalculator",
    # Types
    "Holding",
    "CostBasisResult",
    "ValueResult",
    "HoldingPerformance",
    "PortfolioStats",
    "TransactionSummary",
    "AccountSummary",
    "DiversificationEntry",
    "MonthlyActivity",
    "CurrencyBreakdownEntry",
    "BackfillResult",
    "RefreshResult",
]
