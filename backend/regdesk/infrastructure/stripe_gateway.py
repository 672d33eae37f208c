"""Stripe Gateway — resolves thin webhook payloads to full provider objects.

Invariants:
    - Rate limits and connection errors: exponential backoff with jitter, bounded retries
    - Any other provider error fails immediately as PaymentProviderError
    - Returned objects are plain dicts (StripeObject.to_dict()), never SDK types

Design Decisions:
    - The stripe SDK is synchronous; calls run in a worker thread so the event
      loop is never blocked
    - Retriever chosen from the object's own "object" field first, then from
      the event type prefix: a thin payload keeps at least id and object
"""

import asyncio
import logging
import random
from typing import Any, Callable

import stripe

from regdesk.core.errors import ErrorContext, PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)

_RETRIEVERS_BY_OBJECT: dict[str, Callable[..., Any]] = {
    "checkout.session": stripe.checkout.Session.retrieve,
    "charge": stripe.Charge.retrieve,
    "payment_intent": stripe.PaymentIntent.retrieve,
    "account": stripe.Account.retrieve,
}

_RETRIEVERS_BY_EVENT_PREFIX: dict[str, Callable[..., Any]] = {
    "checkout.session.": stripe.checkout.Session.retrieve,
    "charge.": stripe.Charge.retrieve,
    "payment_intent.": stripe.PaymentIntent.retrieve,
    "account.": stripe.Account.retrieve,
}


def _retriever_for(
    event_type: str, partial: dict[str, Any],
) -> Callable[..., Any] | None:
    by_object = _RETRIEVERS_BY_OBJECT.get(partial.get("object") or "")
    if by_object:
        return by_object
    for prefix, retriever in _RETRIEVERS_BY_EVENT_PREFIX.items():
        if event_type.startswith(prefix):
            return retriever
    return None


class StripeGateway:
    """PaymentGateway implementation over the stripe SDK."""

    def __init__(
        self,
        api_key: str,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 8_000,
    ):
        self.api_key = api_key
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def resolve_full(
        self, event_type: str, partial: dict[str, Any],
    ) -> dict[str, Any]:
        object_id = partial.get("id")
        if not object_id:
            raise ValidationError(
                "Thin payload carries no object id", "data.object.id",
            )
        retriever = _retriever_for(event_type, partial)
        if retriever is None:
            logger.warning(
                f"No resolver for {event_type}; using payload as-is",
                extra={"event_type": event_type},
            )
            return partial
        context = ErrorContext(debug_info={"event_type": event_type})

        for attempt in range(self.max_retries + 1):
            try:
                resolved = await asyncio.to_thread(
                    retriever, object_id, api_key=self.api_key,
                )
                logger.info(
                    f"Resolved thin payload {object_id}",
                    extra={"event_type": event_type, "attempt": attempt + 1},
                )
                return resolved.to_dict()
            except (stripe.RateLimitError, stripe.APIConnectionError) as e:
                await self._handle_transient_error(e, attempt, context)
            except stripe.StripeError as e:
                raise PaymentProviderError(
                    str(e), type(e).__name__, context=context,
                )
        raise PaymentProviderError(
            "Retries exhausted", "connection_error", context=context,
        )

    async def _handle_transient_error(
        self, e: Exception, attempt: int, context: ErrorContext,
    ) -> None:
        """Retry with backoff, or raise once the budget is spent."""
        if attempt >= self.max_retries:
            raise PaymentProviderError(
                f"Transient failure after {self.max_retries} retries: {e}",
                "connection_error",
                context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(f"Stripe transient error, retry after {delay}ms: {e}")
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
