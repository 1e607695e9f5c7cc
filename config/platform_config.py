# coding: utf-8
"""
Platform defaults

- Settings row defaults (fees and feature toggles)
- KYC levels required per action
- Default bot catalog (used by scripts/seed_platform.py)
"""

# =======================
# SETTINGS DEFAULTS
# =======================

SETTINGS_SINGLETON_ID = 1

DEFAULT_SETTINGS = {
    "withdrawal_fee": 0.20,
    "bronze_fee": 0.01,
    "silver_fee": 0.02,
    "gold_fee": 0.05,
    "maintenance_mode": False,
    "bots_enabled": True,
}

FEE_FIELDS = ("withdrawal_fee", "bronze_fee", "silver_fee", "gold_fee")
TOGGLE_FIELDS = ("maintenance_mode", "bots_enabled")


# =======================
# KYC
# =======================

MAX_KYC_LEVEL = 3

# Minimum verified KYC level per gated action
KYC_REQUIRED_LEVELS = {
    "launch_bot": 1,
    "withdraw": 1,
}


# =======================
# PROFIT SIMULATION
# =======================

# Profit ranges are quoted per month
PROFIT_PERIOD_DAYS = 30


# =======================
# DEFAULT BOT CATALOG
# =======================

DEFAULT_BOTS = [
    {
        "name": "DCA Bot",
        "description": "Dollar-cost averaging bot that buys at regular intervals to lower the average entry price.",
        "profit_range": "8-15% monthly",
        "risk_level": "Medium",
        "icon": "ri-funds-line",
    },
    {
        "name": "Grid Trading",
        "description": "Places a grid of buy and sell orders to profit from sideways markets.",
        "profit_range": "10-20% monthly",
        "risk_level": "Medium-High",
        "icon": "ri-layout-grid-line",
    },
    {
        "name": "MACD Scalper",
        "description": "Short-term trades on MACD crossovers with tight exits.",
        "profit_range": "15-25% monthly",
        "risk_level": "High",
        "icon": "ri-line-chart-line",
    },
    {
        "name": "Rebalancing",
        "description": "Keeps a portfolio at its target allocation by periodic rebalancing.",
        "profit_range": "5-10% monthly",
        "risk_level": "Low",
        "icon": "ri-scales-3-line",
    },
    {
        "name": "Futures Bot",
        "description": "Leveraged futures strategy for experienced traders.",
        "profit_range": "20-40% monthly",
        "risk_level": "Very High",
        "icon": "ri-rocket-line",
    },
    {
        "name": "BTC/USDT Scalper",
        "description": "High-frequency scalping on the BTC/USDT pair.",
        "profit_range": "12-18% monthly",
        "risk_level": "Medium-High",
        "icon": "ri-bit-coin-line",
    },
    {
        "name": "ETH Long-Term",
        "description": "Accumulates ETH on dips and holds for long-term growth.",
        "profit_range": "10-25% monthly",
        "risk_level": "Medium",
        "icon": "ri-currency-line",
    },
    {
        "name": "USDT/BUSD Arbitrage",
        "description": "Captures small spreads between stablecoin pairs.",
        "profit_range": "3-8% monthly",
        "risk_level": "Low",
        "icon": "ri-exchange-line",
    },
]
