"""
Pydantic schemas for API requests and response serializers
"""

from decimal import Decimal
from typing import Any, Dict
from pydantic import BaseModel, Field

from ..customers import Customer
from ..loans import Loan, LoanInstallment


# Customer schemas
class CreateCustomerRequest(BaseModel):
    name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    credit_limit: Decimal = Field(..., ge=Decimal("0"), description="Credit ceiling")
    used_credit_limit: Decimal = Field(Decimal("0"), ge=Decimal("0"))


# Loan schemas
class CreateLoanRequest(BaseModel):
    amount: Decimal = Field(..., ge=Decimal("0.01"), description="Principal before interest")
    # Bounds and allowed counts come from the configured lending policy
    interest_rate: Decimal = Field(..., description="Flat markup rate, e.g. 0.2")
    number_of_installment: int = Field(..., description="Number of monthly installments")


class LoanPaymentRequest(BaseModel):
    payment_amount: Decimal = Field(..., ge=Decimal("0.01"))


def customer_to_response(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "surname": customer.surname,
        "credit_limit": str(customer.credit_limit),
        "used_credit_limit": str(customer.used_credit_limit),
        "available_credit": str(customer.available_credit),
        "created_at": customer.created_at.isoformat()
    }


def installment_to_response(installment: LoanInstallment) -> Dict[str, Any]:
    return {
        "id": installment.id,
        "loan_id": installment.loan_id,
        "amount": str(installment.amount),
        "paid_amount": str(installment.paid_amount),
        "due_date": installment.due_date.isoformat(),
        "payment_date": installment.payment_date.isoformat() if installment.payment_date else None,
        "is_paid": installment.is_paid
    }


def loan_to_response(loan: Loan, include_installments: bool = True) -> Dict[str, Any]:
    response = {
        "id": loan.id,
        "customer_id": loan.customer_id,
        "loan_amount": str(loan.loan_amount),
        "number_of_installment": loan.number_of_installment,
        "interest_rate": str(loan.interest_rate),
        "create_date": loan.create_date.isoformat(),
        "is_paid": loan.is_paid
    }
    if include_installments:
        response["installments"] = [installment_to_response(i) for i in loan.installments]
    return response

