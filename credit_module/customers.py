"""
Customer Management Module

Manages customer profiles and the credit ceiling each customer borrows against.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import uuid

from .money import ZERO, round_money, to_decimal
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .logging_config import get_logger, log_action


@dataclass(eq=False)
class Customer(StorageRecord):
    """
    Customer profile with credit limit tracking

    ``used_credit_limit`` is the part of ``credit_limit`` committed to unpaid
    loans and always stays within ``[0, credit_limit]``.
    """
    name: str
    surname: str
    credit_limit: Decimal
    used_credit_limit: Decimal = ZERO

    def __post_init__(self):
        self.credit_limit = to_decimal(self.credit_limit)
        self.used_credit_limit = to_decimal(self.used_credit_limit)

        if not self.name or not self.surname:
            raise ValueError("Customer name and surname are required")
        if self.credit_limit < Decimal('0'):
            raise ValueError("Credit limit cannot be negative")
        if self.used_credit_limit < Decimal('0'):
            raise ValueError("Used credit limit cannot be negative")
        if self.used_credit_limit > self.credit_limit:
            raise ValueError(
                f"Used credit limit {self.used_credit_limit} exceeds credit limit {self.credit_limit}"
            )

    @property
    def full_name(self) -> str:
        """Get customer's full name"""
        return f"{self.name} {self.surname}"

    @property
    def available_credit(self) -> Decimal:
        """Credit still available for new loans"""
        return self.credit_limit - self.used_credit_limit

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        data['credit_limit'] = Decimal(data['credit_limit'])
        data['used_credit_limit'] = Decimal(data['used_credit_limit'])
        return super().from_dict(data)


class CustomerManager:
    """
    Manages customer lifecycle and persistence
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "customers"
        self.logger = get_logger("credit_module.customers")

    def create_customer(
        self,
        name: str,
        surname: str,
        credit_limit: Decimal,
        used_credit_limit: Decimal = ZERO
    ) -> Customer:
        """
        Create a new customer

        Args:
            name: Customer's first name
            surname: Customer's last name
            credit_limit: Ceiling for the total of unpaid loans
            used_credit_limit: Portion of the limit already committed

        Returns:
            Created Customer object
        """
        now = datetime.now(timezone.utc)

        customer = Customer(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            surname=surname,
            credit_limit=round_money(to_decimal(credit_limit)),
            used_credit_limit=round_money(to_decimal(used_credit_limit))
        )

        self.save_customer(customer)

        self.audit_trail.log_event(
            event_type=AuditEventType.CUSTOMER_CREATED,
            entity_type="customer",
            entity_id=customer.id,
            metadata={
                "full_name": customer.full_name,
                "credit_limit": customer.credit_limit,
                "used_credit_limit": customer.used_credit_limit
            }
        )

        log_action(
            self.logger, "info", "Customer created",
            customer_id=customer.id, action="create_customer", resource="customer"
        )

        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        customer_dict = self.storage.load(self.table_name, customer_id)
        if customer_dict:
            return Customer.from_dict(customer_dict)
        return None

    def list_customers(self) -> List[Customer]:
        """Get all customers ordered by creation time"""
        customers = [Customer.from_dict(data) for data in self.storage.load_all(self.table_name)]
        customers.sort(key=lambda c: c.created_at)
        return customers

    def save_customer(self, customer: Customer) -> None:
        """Persist a customer snapshot"""
        if customer.id is None:
            raise ValueError("Cannot save a customer without an id")
        self.storage.save(self.table_name, customer.id, customer.to_dict())
