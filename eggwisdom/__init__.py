"""
EggWisdom rewards - payout split and burn-to-boost rules for EggWisdom.

Provides:
- Supply-tiered platform/uploader split of reward payments
- Burn-for-boost registry with lazily expiring multipliers
- Reward engine applying both to pet/mint/reveal events
"""

__version__ = "0.1.0"
