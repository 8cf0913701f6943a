"""
Loan endpoints, nested under a customer
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import CreditSystem, get_credit_system
from .schemas import (
    CreateLoanRequest,
    LoanPaymentRequest,
    installment_to_response,
    loan_to_response
)
from ..exceptions import CreditModuleError, EntityNotFoundError
from ..loans import LoanFilter


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    customer_id: str,
    request: CreateLoanRequest,
    system: CreditSystem = Depends(get_credit_system)
):
    """Originate a new loan"""
    try:
        loan = system.loan_manager.create_loan(
            customer_id=customer_id,
            amount=request.amount,
            number_of_installment=request.number_of_installment,
            interest_rate=request.interest_rate
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CreditModuleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return loan_to_response(loan)


@router.get("")
async def list_loans(
    customer_id: str,
    is_paid: Optional[bool] = None,
    number_of_installment: Optional[int] = None,
    is_overdue: Optional[bool] = None,
    system: CreditSystem = Depends(get_credit_system)
):
    """List a customer's loans"""
    loan_filter = LoanFilter(
        is_paid=is_paid,
        number_of_installment=number_of_installment,
        is_overdue=is_overdue
    )
    try:
        loans = system.loan_manager.get_loans(customer_id, loan_filter)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "loans": [loan_to_response(loan, include_installments=False) for loan in loans],
        "count": len(loans)
    }


@router.get("/{loan_id}/installments")
async def get_installments(
    customer_id: str,
    loan_id: str,
    system: CreditSystem = Depends(get_credit_system)
):
    """Get loan installments ordered by due date"""
    try:
        installments = system.loan_manager.get_installments(customer_id, loan_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "loan_id": loan_id,
        "installments": [installment_to_response(i) for i in installments]
    }


@router.post("/{loan_id}/pay")
async def pay_loan(
    customer_id: str,
    loan_id: str,
    request: LoanPaymentRequest,
    system: CreditSystem = Depends(get_credit_system)
):
    """Pay loan installments"""
    try:
        result = system.loan_manager.pay_loan(
            customer_id=customer_id,
            loan_id=loan_id,
            amount=request.payment_amount
        )
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CreditModuleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return result.to_dict()
