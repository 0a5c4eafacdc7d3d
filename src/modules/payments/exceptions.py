"""Payment domain exceptions.

Raised by the signing helpers, the gateways and the payment services.
Provider endpoints translate them into provider-specific acknowledgements;
shopper endpoints into HTTP errors.
"""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for payment failures."""


class SignatureInvalid(PaymentError):
    """A provider message's signature is missing or does not match."""


class AmountMismatch(PaymentError):
    """An amount cannot be converted exactly, or differs from the attempt."""


class StaleTransition(PaymentError):
    """The order or attempt already reached a terminal state.

    Callbacks raising this are logged and still acknowledged to the provider.
    """


class TransactionFailure(PaymentError):
    """The database transaction applying a payment outcome failed."""


class ProviderUnreachable(PaymentError):
    """The provider could not be reached or timed out."""


class ProviderRejected(PaymentError):
    """The provider answered but refused to create the payment."""


class PaymentNotFound(PaymentError):
    """No payment attempt matches the transaction reference."""


class PaymentNotAllowed(PaymentError):
    """The order cannot be paid online right now (state or window)."""


class UnsupportedPaymentMethod(PaymentError):
    """The order's payment method has no online gateway."""
