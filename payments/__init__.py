"""Payment processing with Stripe Connect."""

from .stripe import create_payment_intent, create_refund, get_payment_intent, handle_webhook

__all__ = ["create_payment_intent", "create_refund", "get_payment_intent", "handle_webhook"]
