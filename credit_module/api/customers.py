"""
Customer management endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import CreditSystem, get_credit_system
from .schemas import CreateCustomerRequest, customer_to_response


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CreateCustomerRequest,
    system: CreditSystem = Depends(get_credit_system)
):
    """Create a new customer"""
    try:
        customer = system.customer_manager.create_customer(
            name=request.name,
            surname=request.surname,
            credit_limit=request.credit_limit,
            used_credit_limit=request.used_credit_limit
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return customer_to_response(customer)


@router.get("")
async def list_customers(system: CreditSystem = Depends(get_credit_system)):
    """List all customers"""
    customers = system.customer_manager.list_customers()
    return {
        "customers": [customer_to_response(c) for c in customers],
        "count": len(customers)
    }


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    system: CreditSystem = Depends(get_credit_system)
):
    """Get customer by ID"""
    customer = system.customer_manager.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    return customer_to_response(customer)
