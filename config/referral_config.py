# coding: utf-8
"""
Referral System Configuration

Tier thresholds for the referral commission program.
A referral counts as active while it has at least one running bot.
The commission rate of each tier is stored in the Settings row
(admin-editable), this file only maps tiers to their settings field.
"""

from typing import Any, Dict

# =======================
# REFERRAL TIER SETTINGS
# =======================

REFERRAL_TIERS = {
    "bronze": {
        "min_referrals": 0,
        "max_referrals": 4,
        "settings_field": "bronze_fee",
        "display_emoji": "🥉",
        "display_name": "Bronze",
    },
    "silver": {
        "min_referrals": 5,
        "max_referrals": 14,
        "settings_field": "silver_fee",
        "display_emoji": "🥈",
        "display_name": "Silver",
    },
    "gold": {
        "min_referrals": 15,
        "max_referrals": None,  # unlimited
        "settings_field": "gold_fee",
        "display_emoji": "🥇",
        "display_name": "Gold",
    },
}

# Tier used when nothing else matches
DEFAULT_TIER = "bronze"

# Length of generated referral codes (A-Z, 0-9)
REFERRAL_CODE_LENGTH = 8


def get_tier_config(tier: str) -> Dict[str, Any]:
    """Get configuration for a tier, falling back to bronze"""
    return REFERRAL_TIERS.get(tier, REFERRAL_TIERS[DEFAULT_TIER])


def get_tier_by_referrals(active_referrals: int) -> str:
    """
    Determine tier from the number of active referrals

    Args:
        active_referrals: Number of referred users with a running bot

    Returns:
        Tier name: bronze (< 5), silver (5-14), gold (15+)
    """
    for tier_name in ("gold", "silver", "bronze"):
        if active_referrals >= REFERRAL_TIERS[tier_name]["min_referrals"]:
            return tier_name
    return DEFAULT_TIER
