"""
Daily token budget per user.

Usage is not a counter: it's the sum of tokens_used over the user's
response rows since UTC midnight, read fresh on every check.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Mapping, Optional

from config import Settings, has_user_credentials
from errors import InvalidRequestError, RateLimitExceededError
from models import RateBudget, UserAccount, UNLIMITED
from repositories import Repository


def window_start(now: datetime) -> datetime:
    """UTC midnight at or before now."""
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def next_reset(now: datetime) -> datetime:
    return window_start(now) + timedelta(days=1)


class RateLimiter:
    """
    Computes a RateBudget for a user.

    Limit precedence: per-user override > tier default. Users bringing
    their own keys for every provider in the run, or flagged unrestricted,
    are not metered at all. Without a run (a plain budget query) only the
    unrestricted flag bypasses.
    """

    def __init__(self, repo: Repository, settings: Settings,
                 clock: Optional[Callable[[], datetime]] = None):
        self.repo = repo
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def account_for(self, user_id: str) -> UserAccount:
        account = self.repo.accounts.get(user_id)
        if account is None:
            account = UserAccount(user_id=user_id, tier=self.settings.default_user_tier)
        return account

    def limit_for(self, account: UserAccount) -> int:
        if account.daily_token_limit is not None:
            return account.daily_token_limit
        return self.settings.daily_limit_for(account.tier)

    def check(self, user_id: str,
              supplied_credentials: Optional[Mapping[str, str]] = None,
              providers: Optional[Iterable[str]] = None) -> RateBudget:
        now = self.clock()
        reset_at = next_reset(now)

        try:
            account = self.account_for(user_id)

            byok = has_user_credentials(providers, account.stored_credentials, supplied_credentials)
            if account.unrestricted or byok:
                return RateBudget(
                    allowed=True,
                    remaining=UNLIMITED,
                    daily_limit=UNLIMITED,
                    used_today=0,
                    reset_at=reset_at,
                    bypassed=True,
                )

            limit = self.limit_for(account)
            used = self.repo.tokens_used_since(user_id, window_start(now))
        except InvalidRequestError:
            raise
        except Exception as e:
            # Accounting outage must not lock users out
            print(f"[RATE] Usage lookup failed for {user_id}, allowing request: {e}")
            return RateBudget(
                allowed=True,
                remaining=UNLIMITED,
                daily_limit=UNLIMITED,
                used_today=0,
                reset_at=reset_at,
                degraded=True,
            )

        return RateBudget(
            allowed=used < limit,
            remaining=max(0, limit - used),
            daily_limit=limit,
            used_today=used,
            reset_at=reset_at,
        )

    def admit(self, user_id: str,
              supplied_credentials: Optional[Mapping[str, str]] = None,
              providers: Optional[Iterable[str]] = None) -> RateBudget:
        """check() that raises RateLimitExceededError when the budget is spent."""
        budget = self.check(user_id, supplied_credentials, providers)
        if not budget.allowed:
            print(f"[RATE] Denied {user_id}: {budget.used_today}/{budget.daily_limit} tokens used today")
            raise RateLimitExceededError(budget)
        return budget
