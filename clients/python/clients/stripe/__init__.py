from .webhook import (
    PAYMENT_SUCCEEDED,
    PaymentSucceeded,
    WebhookSignatureError,
    parse_payment_succeeded,
    verify_signature,
)
from .payment_intents import (
    PaymentIntent,
    StripeNotConfiguredError,
    amount_to_cents,
    create_payment_intent,
)
