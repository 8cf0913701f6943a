"""
Credit Module

Installment loans issued against a customer's credit limit, with payment
allocation under an early-payment discount and late-payment penalty policy.
All financial math uses Decimal.
"""

__version__ = "1.0.0"
