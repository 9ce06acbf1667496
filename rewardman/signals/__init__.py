"""
Rewardman signals — public event API.

Emitted after the surrounding transaction commits:
- progress_updated: sender=TrackProgress, progress=TrackProgress, booking_id=str
- reward_granted: sender=RewardGrant, grant=RewardGrant
- reward_redeemed: sender=RewardGrant, grant=RewardGrant, booking_id=str, discount=Decimal
- reward_revoked: sender=RewardGrant, grant=RewardGrant
- referral_rewarded: sender=Referral, referral=Referral, grant=RewardGrant

Hook these for "you just unlocked X" messages, emails, or timelines.
"""

from django.dispatch import Signal

# Progress ledger
progress_updated = Signal()

# Grant lifecycle
reward_granted = Signal()
reward_redeemed = Signal()
reward_revoked = Signal()

# Referrals
referral_rewarded = Signal()
