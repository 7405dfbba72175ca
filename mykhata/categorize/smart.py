"""Category prediction from merchant names, learning from user choices."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import Counter
from typing import Any, Awaitable, Protocol

from ..models import (
    Category,
    CategoryPrediction,
    CategoryScore,
    CategorySuggestion,
    Transaction,
    UserProfile,
)
from .patterns import ARCHETYPE_NAMES, MERCHANT_PATTERNS, category_keywords, keyword_score

logger = logging.getLogger(__name__)

_ALTERNATIVES = 3


class CategoryStore(Protocol):
    """Read access to persisted history; methods may be sync or async.

    A store may also provide ``category_decisions(user_id, limit)``
    returning ``(merchant, category_id)`` pairs recorded without a
    transaction; they are folded into the user's profile.
    """

    def recent_transactions(
        self, user_id: str, limit: int
    ) -> list[Transaction] | Awaitable[list[Transaction]]: ...

    def list_categories(
        self, user_id: str
    ) -> list[Category] | Awaitable[list[Category]]: ...

    def get_category(
        self, category_id: str
    ) -> Category | None | Awaitable[Category | None]: ...


async def _call(fn, *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class SmartCategorizer:
    """Predicts spending categories for merchant names.

    Three signals are combined: the built-in keyword patterns, the user's
    merchant → category history, and keywords from the user's own category
    names. Predictions never raise; a failure yields a zero-confidence
    prediction so transaction creation is never blocked.

    User profiles are built once per user from recent history and then kept
    in memory. They are not refreshed when history changes elsewhere; call
    :meth:`clear_user_cache` to force a rebuild.
    """

    def __init__(
        self,
        store: CategoryStore,
        *,
        confidence_threshold: float = 0.7,
        history_limit: int = 100,
        similar_limit: int = 10,
        patterns: dict[str, list[str]] | None = None,
    ) -> None:
        self._store = store
        self._confidence_threshold = confidence_threshold
        self._history_limit = history_limit
        self._similar_limit = similar_limit
        self._patterns = patterns if patterns is not None else MERCHANT_PATTERNS
        self._profiles: dict[str, UserProfile] = {}
        self._profile_locks: dict[str, asyncio.Lock] = {}

    @property
    def confidence_threshold(self) -> float:
        return self._confidence_threshold

    async def predict_category(
        self, merchant: str, user_id: str
    ) -> CategoryPrediction:
        """Return the best category for ``merchant`` plus up to 3 alternatives."""
        try:
            return await self._predict(merchant, user_id)
        except Exception:
            logger.exception("Error predicting category for %r", merchant)
            return CategoryPrediction.empty()

    async def get_category_suggestions(
        self, merchant: str, user_id: str, limit: int = 5
    ) -> list[CategorySuggestion]:
        """Return up to ``limit`` ranked, named category suggestions.

        The confident prediction comes first, then alternatives, then the
        user's most frequently used categories.
        """
        try:
            return await self._suggest(merchant, user_id, limit)
        except Exception:
            logger.exception("Error getting category suggestions for %r", merchant)
            return []

    async def learn_from_user_decision(
        self, merchant: str, category_id: str, user_id: str
    ) -> None:
        """Record that the user filed ``merchant`` under ``category_id``."""
        try:
            profile = await self.get_user_profile(user_id)
            profile.record(merchant, category_id)
        except Exception:
            logger.exception(
                "Error learning category %s for %r", category_id, merchant
            )

    async def get_user_profile(self, user_id: str) -> UserProfile:
        profile = self._profiles.get(user_id)
        if profile is not None:
            return profile

        lock = self._profile_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                profile = await self._build_profile(user_id)
                self._profiles[user_id] = profile
        return profile

    def clear_user_cache(self, user_id: str) -> None:
        self._profiles.pop(user_id, None)

    def clear_all_caches(self) -> None:
        self._profiles.clear()

    async def _predict(self, merchant: str, user_id: str) -> CategoryPrediction:
        merchant_lower = (merchant or "").lower().strip()
        if not merchant_lower:
            return CategoryPrediction.empty()

        scores: dict[str, float] = {}

        for archetype, keywords in self._patterns.items():
            _merge(scores, archetype, keyword_score(merchant_lower, keywords))

        profile = await self.get_user_profile(user_id)
        historical = self._historical_score(merchant_lower, profile)
        if historical is not None:
            _merge(scores, *historical)

        for category in await _call(self._store.list_categories, user_id):
            keywords = category_keywords(category.name, category.description)
            _merge(scores, category.id, keyword_score(merchant_lower, keywords))

        if not scores:
            return CategoryPrediction.empty()

        # sorted() is stable, so ties keep the first source's order
        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        best_id, best_score = ranked[0]
        return CategoryPrediction(
            category_id=best_id,
            confidence=best_score,
            is_confident=best_score >= self._confidence_threshold,
            alternatives=[
                CategoryScore(category_id=cid, confidence=score)
                for cid, score in ranked[1 : 1 + _ALTERNATIVES]
            ],
        )

    def _historical_score(
        self, merchant_lower: str, profile: UserProfile
    ) -> tuple[str, float] | None:
        """Most frequent category among past merchants sharing the first word.

        The exact merchant is counted first; at most ``similar_limit``
        transactions are considered.
        """
        token = merchant_lower.split()[0]
        keys = [k for k in profile.merchant_categories if token in k]
        keys.sort(key=lambda k: k != merchant_lower)

        tally: Counter[str] = Counter()
        observed = 0
        for key in keys:
            for category_id, count in profile.merchant_categories[key].items():
                take = min(count, self._similar_limit - observed)
                tally[category_id] += take
                observed += take
                if observed >= self._similar_limit:
                    break
            if observed >= self._similar_limit:
                break

        if not observed:
            return None
        category_id, top = tally.most_common(1)[0]
        return category_id, min(top / observed, 1.0)

    async def _suggest(
        self, merchant: str, user_id: str, limit: int
    ) -> list[CategorySuggestion]:
        if limit <= 0:
            return []

        prediction = await self.predict_category(merchant, user_id)
        suggestions: list[CategorySuggestion] = []
        seen: set[str] = set()

        async def add(category_id: str, confidence: float, reason: str) -> None:
            if category_id in seen:
                return
            name = await self._category_name(category_id)
            if name is None:
                return
            seen.add(category_id)
            suggestions.append(
                CategorySuggestion(
                    category_id=category_id,
                    name=name,
                    confidence=confidence,
                    reason=reason,
                )
            )

        if prediction.category_id and prediction.is_confident:
            await add(prediction.category_id, prediction.confidence, "Pattern match")

        for alt in prediction.alternatives:
            await add(alt.category_id, alt.confidence, "Alternative match")

        if len(suggestions) < limit:
            profile = await self.get_user_profile(user_id)
            for category_id, count in profile.frequent_categories.most_common():
                if len(suggestions) >= limit:
                    break
                await add(category_id, min(count / 10, 1.0), "Frequently used")

        return suggestions[:limit]

    async def _category_name(self, category_id: str) -> str | None:
        category = await _call(self._store.get_category, category_id)
        if category is not None:
            return category.name
        return ARCHETYPE_NAMES.get(category_id)

    async def _build_profile(self, user_id: str) -> UserProfile:
        transactions = await _call(
            self._store.recent_transactions, user_id, self._history_limit
        )
        profile = UserProfile()
        for txn in transactions:
            if txn.category_id:
                profile.record(txn.merchant, txn.category_id)

        decisions: list[tuple[str, str]] = []
        list_decisions = getattr(self._store, "category_decisions", None)
        if list_decisions is not None:
            decisions = await _call(list_decisions, user_id, self._history_limit)
            for merchant, category_id in decisions:
                profile.record(merchant, category_id)

        logger.debug(
            "Built category profile for user %s from %d transactions and %d decisions",
            user_id,
            len(transactions),
            len(decisions),
        )
        return profile


def _merge(scores: dict[str, float], category_id: str, score: float) -> None:
    if score > 0:
        scores[category_id] = max(scores.get(category_id, 0.0), score)
