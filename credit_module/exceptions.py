"""Domain exception hierarchy for the credit module."""

from decimal import Decimal
from datetime import datetime
from typing import Optional


class CreditModuleError(Exception):
    """Base exception for all credit module errors."""


class InvalidLoanRequestError(CreditModuleError, ValueError):
    """Raised when loan terms fall outside the lending policy."""


class InvalidPaymentError(CreditModuleError, ValueError):
    """Raised when a payment amount is not a positive value."""


class EntityNotFoundError(CreditModuleError):
    """Raised when a referenced entity does not exist."""


class CustomerNotFoundError(EntityNotFoundError):
    """Raised when a customer id cannot be resolved."""

    def __init__(self, customer_id: Optional[str]):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")


class LoanNotFoundError(EntityNotFoundError):
    """Raised when a loan does not exist or belongs to another customer."""

    def __init__(self, loan_id: Optional[str], customer_id: Optional[str] = None):
        self.loan_id = loan_id
        self.customer_id = customer_id
        if customer_id is None:
            message = f"Loan {loan_id} not found"
        else:
            message = f"Loan {loan_id} not found for customer {customer_id}"
        super().__init__(message)


class InsufficientCreditError(CreditModuleError):
    """Raised when the loan total exceeds the customer's available credit."""

    def __init__(self, customer_id: Optional[str], requested: Decimal, available: Decimal):
        self.customer_id = customer_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient credit limit for customer {customer_id}: "
            f"requested {requested}, available {available}"
        )


class LoanAlreadyPaidError(CreditModuleError):
    """Raised when a payment targets a loan that is already fully paid."""

    def __init__(self, loan_id: Optional[str]):
        self.loan_id = loan_id
        super().__init__(f"Loan {loan_id} is already fully paid")


class NoPayableInstallmentsError(CreditModuleError):
    """Raised when no unpaid installment falls due before the payment horizon."""

    def __init__(self, loan_id: Optional[str], horizon: datetime):
        self.loan_id = loan_id
        self.horizon = horizon
        super().__init__(
            f"No payable installments found for loan {loan_id} before {horizon.date().isoformat()}"
        )


class InsufficientPaymentError(CreditModuleError):
    """Raised when a payment does not cover even the earliest payable installment."""

    def __init__(self, loan_id: Optional[str], payment_amount: Decimal, required: Decimal):
        self.loan_id = loan_id
        self.payment_amount = payment_amount
        self.required = required
        super().__init__(
            f"Payment amount {payment_amount} is insufficient for any installment "
            f"of loan {loan_id} (earliest requires {required})"
        )
