"""
Rewards Module
==============

Exports:
- RewardClaimService: Pays a completed quest's reward into the wallet, once
"""

from .claim_service import ClaimResult, RewardClaimService

__all__ = ["ClaimResult", "RewardClaimService"]
