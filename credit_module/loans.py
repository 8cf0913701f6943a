"""
Loan Module

Handles installment loan origination against a customer's credit limit,
installment schedule generation, and allocation of payments across the
outstanding installments with early-payment discount and late-payment penalty.

``LoanEngine`` is a pure computation over the entities it is given: it never
touches storage. ``LoanManager`` loads entities, runs the engine inside one
storage transaction, persists the results and writes the audit trail.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import IntEnum
import uuid
import calendar

from .money import ZERO, round_money, to_decimal
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import Customer, CustomerManager
from .config import CreditModuleConfig, get_config
from .logging_config import get_logger, log_action
from .exceptions import (
    CreditModuleError, CustomerNotFoundError, InsufficientCreditError,
    InsufficientPaymentError, InvalidLoanRequestError, InvalidPaymentError,
    LoanAlreadyPaidError, LoanNotFoundError, NoPayableInstallmentsError
)


class InstallmentOption(IntEnum):
    """Allowed number of monthly installments"""
    SIX = 6
    NINE = 9
    TWELVE = 12
    TWENTY_FOUR = 24


@dataclass(frozen=True)
class LoanPolicy:
    """Economic policy applied by the loan engine"""
    daily_adjustment_rate: Decimal = Decimal('0.001')  # Discount/penalty per day
    max_months_ahead: int = 3                           # Forward payment window
    installment_options: Tuple[int, ...] = tuple(option.value for option in InstallmentOption)
    min_interest_rate: Decimal = Decimal('0.1')
    max_interest_rate: Decimal = Decimal('0.5')

    @classmethod
    def from_config(cls, config: CreditModuleConfig) -> 'LoanPolicy':
        return cls(
            daily_adjustment_rate=config.daily_adjustment_rate,
            max_months_ahead=config.max_months_ahead,
            installment_options=tuple(config.installment_options),
            min_interest_rate=config.min_interest_rate,
            max_interest_rate=config.max_interest_rate
        )


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length"""
    month = value.month - 1 + months
    year = value.year + month // 12
    month = month % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def first_day_of_next_month(value: datetime) -> datetime:
    """Midnight on the first day of the month after ``value``"""
    return add_months(value, 1).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(eq=False)
class LoanInstallment(StorageRecord):
    """Single scheduled installment of a loan"""
    loan_id: Optional[str]
    amount: Decimal                          # Scheduled payable, fixed at creation
    due_date: datetime                       # First day of a month, midnight
    paid_amount: Decimal = ZERO              # Adjusted amount actually collected
    payment_date: Optional[datetime] = None
    is_paid: bool = False

    def mark_paid(self, paid_amount: Decimal, payment_date: datetime) -> None:
        """Record the installment as paid; a paid installment never reverts"""
        if self.is_paid:
            raise ValueError(f"Installment {self.id} is already paid")
        self.is_paid = True
        self.paid_amount = paid_amount
        self.payment_date = payment_date
        self.updated_at = payment_date

    def is_overdue(self, now: datetime) -> bool:
        """Check if the installment is unpaid past its due date"""
        return not self.is_paid and self.due_date < now

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['due_date'] = self.due_date.isoformat()
        result['payment_date'] = self.payment_date.isoformat() if self.payment_date else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanInstallment':
        data['amount'] = Decimal(data['amount'])
        data['paid_amount'] = Decimal(data['paid_amount'])
        data['due_date'] = datetime.fromisoformat(data['due_date'])
        data['payment_date'] = _parse_datetime(data.get('payment_date'))
        return super().from_dict(data)


@dataclass(eq=False)
class Loan(StorageRecord):
    """Installment loan with its schedule"""
    customer_id: Optional[str]
    loan_amount: Decimal                     # Total payable, markup included
    number_of_installment: int
    interest_rate: Decimal
    create_date: datetime
    is_paid: bool = False
    installments: List[LoanInstallment] = field(default_factory=list)

    @property
    def scheduled_total(self) -> Decimal:
        """Sum of the scheduled installment amounts"""
        return sum((i.amount for i in self.installments), ZERO)

    def installments_by_due_date(self) -> List[LoanInstallment]:
        """Installments in due-date order (stable for equal dates)"""
        return sorted(self.installments, key=lambda i: i.due_date)

    def has_overdue_installments(self, now: datetime) -> bool:
        return any(i.is_overdue(now) for i in self.installments)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['create_date'] = self.create_date.isoformat()
        result['installments'] = [i.to_dict() for i in self.installments_by_due_date()]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data['loan_amount'] = Decimal(data['loan_amount'])
        data['interest_rate'] = Decimal(data['interest_rate'])
        data['create_date'] = datetime.fromisoformat(data['create_date'])
        data['installments'] = [
            LoanInstallment.from_dict(item) for item in data.get('installments', [])
        ]
        return super().from_dict(data)


@dataclass
class PaymentResult:
    """Summary of one payment allocation"""
    number_of_installments_paid: int
    total_amount_paid: Decimal
    is_loan_fully_paid: bool
    total_discount: Decimal
    total_penalty: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number_of_installments_paid': self.number_of_installments_paid,
            'total_amount_paid': str(self.total_amount_paid),
            'is_loan_fully_paid': self.is_loan_fully_paid,
            'total_discount': str(self.total_discount),
            'total_penalty': str(self.total_penalty)
        }


@dataclass
class LoanFilter:
    """Optional criteria for listing a customer's loans"""
    is_paid: Optional[bool] = None
    number_of_installment: Optional[int] = None
    is_overdue: Optional[bool] = None

    def matches(self, loan: Loan, now: datetime) -> bool:
        if self.is_paid is not None and loan.is_paid != self.is_paid:
            return False
        if self.number_of_installment is not None and loan.number_of_installment != int(self.number_of_installment):
            return False
        if self.is_overdue is not None and loan.has_overdue_installments(now) != self.is_overdue:
            return False
        return True


class LoanEngine:
    """
    Loan lifecycle engine: origination and payment allocation

    Operates on in-memory Customer and Loan snapshots supplied by the caller.
    Every check runs before the first mutation, so a raised error leaves both
    entities untouched. Callers serialize operations per customer and loan.
    """

    def __init__(self, policy: Optional[LoanPolicy] = None):
        self.policy = policy or LoanPolicy()

    def originate(
        self,
        customer: Customer,
        principal: Decimal,
        number_of_installment: int,
        interest_rate: Decimal,
        now: datetime
    ) -> Loan:
        """
        Originate a new loan against the customer's available credit

        Args:
            customer: Borrower snapshot; its used credit limit is debited
            principal: Borrowed amount before markup
            number_of_installment: One of the policy's installment options
            interest_rate: Flat markup rate, e.g. 0.2 for 20%
            now: Origination time

        Returns:
            Transient Loan (no ids assigned) with its full schedule

        Raises:
            InvalidLoanRequestError: Terms outside the lending policy
            InsufficientCreditError: Total payable exceeds available credit
        """
        principal = to_decimal(principal)
        interest_rate = to_decimal(interest_rate)
        number_of_installment = int(number_of_installment)
        self._validate_request(principal, number_of_installment, interest_rate)

        total = round_money(principal * (Decimal('1') + interest_rate))

        available = customer.available_credit
        if available < total:
            raise InsufficientCreditError(customer.id, total, available)

        loan = Loan(
            id=None,
            created_at=now,
            updated_at=now,
            customer_id=customer.id,
            loan_amount=total,
            number_of_installment=number_of_installment,
            interest_rate=interest_rate,
            create_date=now,
            is_paid=False
        )
        loan.installments = self.build_schedule(total, number_of_installment, now)

        customer.used_credit_limit += total
        customer.updated_at = now

        return loan

    def build_schedule(self, total: Decimal, number_of_installment: int, now: datetime) -> List[LoanInstallment]:
        """
        Equal installments due on the first of each month after ``now``

        Each amount is rounded independently, so the schedule may differ from
        ``total`` by a few cents; the difference is not reconciled.
        """
        installment_amount = round_money(total / Decimal(number_of_installment))
        first_due_date = first_day_of_next_month(now)

        return [
            LoanInstallment(
                id=None,
                created_at=now,
                updated_at=now,
                loan_id=None,
                amount=installment_amount,
                due_date=add_months(first_due_date, i)
            )
            for i in range(number_of_installment)
        ]

    def payment_horizon(self, now: datetime) -> datetime:
        """Installments due on or after this moment cannot be paid yet"""
        return add_months(now, self.policy.max_months_ahead)

    def payable_installments(self, loan: Loan, now: datetime) -> List[LoanInstallment]:
        """Unpaid installments inside the payment window, earliest due first"""
        horizon = self.payment_horizon(now)
        return [
            installment for installment in loan.installments_by_due_date()
            if not installment.is_paid and installment.due_date < horizon
        ]

    def adjusted_amount(self, installment: LoanInstallment, now: datetime) -> Decimal:
        """
        Payable amount after the daily discount or penalty

        Days are counted between calendar dates, ignoring time of day. Paying
        before the due date subtracts ``amount * rate * days``; paying after
        adds it.
        """
        days = (now.date() - installment.due_date.date()).days
        if days == 0:
            return installment.amount

        adjustment = installment.amount * (self.policy.daily_adjustment_rate * abs(days))
        if days < 0:
            return installment.amount - adjustment
        return installment.amount + adjustment

    def pay(
        self,
        loan: Loan,
        customer: Customer,
        payment_amount: Decimal,
        now: datetime
    ) -> PaymentResult:
        """
        Allocate a payment to whole installments in due-date order

        Args:
            loan: Loan snapshot; paid installments are updated in place
            customer: Owner snapshot; credited back on full payoff
            payment_amount: Funds available for this payment
            now: Payment time

        Returns:
            PaymentResult summary

        Raises:
            LoanAlreadyPaidError: Loan is already fully paid
            InvalidPaymentError: Payment amount is not positive
            LoanNotFoundError: Loan does not belong to the customer
            NoPayableInstallmentsError: Nothing unpaid inside the payment window
            InsufficientPaymentError: Funds do not cover the earliest installment
        """
        payment_amount = to_decimal(payment_amount)

        if loan.is_paid:
            raise LoanAlreadyPaidError(loan.id)
        if payment_amount <= Decimal('0'):
            raise InvalidPaymentError(f"Payment amount must be greater than 0, got {payment_amount}")
        if loan.customer_id != customer.id:
            raise LoanNotFoundError(loan.id, customer.id)

        candidates = self.payable_installments(loan, now)
        if not candidates:
            raise NoPayableInstallmentsError(loan.id, self.payment_horizon(now))

        # Price installments first; nothing is mutated unless at least one is covered
        remaining = payment_amount
        allocations = []
        for installment in candidates:
            adjusted = self.adjusted_amount(installment, now)
            if remaining < adjusted:
                break
            allocations.append((installment, adjusted))
            remaining -= adjusted

        if not allocations:
            raise InsufficientPaymentError(
                loan.id, payment_amount, self.adjusted_amount(candidates[0], now)
            )

        total_paid = ZERO
        total_discount = ZERO
        total_penalty = ZERO
        for installment, adjusted in allocations:
            installment.mark_paid(adjusted, now)
            total_paid += adjusted

            adjustment = adjusted - installment.amount
            if adjustment < 0:
                total_discount += -adjustment
            else:
                total_penalty += adjustment

        loan.updated_at = now
        fully_paid = all(i.is_paid for i in loan.installments)
        if fully_paid:
            loan.is_paid = True
            # Release the scheduled total, not the amount actually collected
            customer.used_credit_limit -= loan.loan_amount
            customer.updated_at = now

        return PaymentResult(
            number_of_installments_paid=len(allocations),
            total_amount_paid=total_paid,
            is_loan_fully_paid=fully_paid,
            total_discount=total_discount,
            total_penalty=total_penalty
        )

    def _validate_request(self, principal: Decimal, number_of_installment: int, interest_rate: Decimal) -> None:
        if principal <= Decimal('0'):
            raise InvalidLoanRequestError(f"Loan amount must be greater than 0, got {principal}")
        if not self.policy.min_interest_rate <= interest_rate <= self.policy.max_interest_rate:
            raise InvalidLoanRequestError(
                f"Interest rate must be between {self.policy.min_interest_rate} "
                f"and {self.policy.max_interest_rate}, got {interest_rate}"
            )
        if number_of_installment not in self.policy.installment_options:
            raise InvalidLoanRequestError(f"Invalid installment option: {number_of_installment}")


class LoanManager:
    """
    Manages loans for customers: origination, lookup and payments
    """

    def __init__(
        self,
        storage: StorageInterface,
        customer_manager: CustomerManager,
        audit_trail: AuditTrail,
        engine: Optional[LoanEngine] = None
    ):
        self.storage = storage
        self.customer_manager = customer_manager
        self.audit_trail = audit_trail
        self.engine = engine or LoanEngine(LoanPolicy.from_config(get_config()))

        self.loans_table = "loans"
        self.logger = get_logger("credit_module.loans")

    def create_loan(
        self,
        customer_id: str,
        amount: Decimal,
        number_of_installment: int,
        interest_rate: Decimal,
        now: Optional[datetime] = None
    ) -> Loan:
        """
        Create a loan for a customer and debit their credit limit

        Args:
            customer_id: Borrower customer ID
            amount: Principal before markup
            number_of_installment: Number of monthly installments
            interest_rate: Flat markup rate
            now: Origination time (defaults to current UTC time)

        Returns:
            Persisted Loan with installments
        """
        now = now or datetime.now(timezone.utc)

        try:
            with self.storage.atomic():
                customer = self._require_customer(customer_id)
                loan = self.engine.originate(customer, amount, number_of_installment, interest_rate, now)
                self._assign_ids(loan)

                self.customer_manager.save_customer(customer)
                self._save_loan(loan)

                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_ORIGINATED,
                    entity_type="loan",
                    entity_id=loan.id,
                    metadata={
                        "customer_id": customer_id,
                        "loan_amount": loan.loan_amount,
                        "interest_rate": loan.interest_rate,
                        "number_of_installment": loan.number_of_installment,
                        "used_credit_limit": customer.used_credit_limit
                    }
                )
        except CreditModuleError as e:
            log_action(
                self.logger, "warning", f"Loan rejected: {e}",
                customer_id=customer_id, action="create_loan", resource="loan"
            )
            raise

        log_action(
            self.logger, "info", "Loan created",
            customer_id=customer_id, action="create_loan", resource="loan",
            extra={"loan_id": loan.id, "loan_amount": str(loan.loan_amount)}
        )

        return loan

    def get_loans(
        self,
        customer_id: str,
        loan_filter: Optional[LoanFilter] = None,
        now: Optional[datetime] = None
    ) -> List[Loan]:
        """Get a customer's loans, optionally filtered, oldest first"""
        if not self.storage.exists(self.customer_manager.table_name, customer_id):
            raise CustomerNotFoundError(customer_id)

        now = now or datetime.now(timezone.utc)
        loans = [
            Loan.from_dict(data)
            for data in self.storage.find(self.loans_table, {"customer_id": customer_id})
        ]
        if loan_filter:
            loans = [loan for loan in loans if loan_filter.matches(loan, now)]

        loans.sort(key=lambda loan: loan.create_date)
        return loans

    def get_loan(self, customer_id: str, loan_id: str) -> Loan:
        """Get a customer's loan with installments in due-date order"""
        loan_dict = self.storage.load(self.loans_table, loan_id)
        if not loan_dict or loan_dict.get('customer_id') != customer_id:
            raise LoanNotFoundError(loan_id, customer_id)

        loan = Loan.from_dict(loan_dict)
        loan.installments = loan.installments_by_due_date()
        return loan

    def get_installments(self, customer_id: str, loan_id: str) -> List[LoanInstallment]:
        """Get the installment schedule of a customer's loan"""
        return self.get_loan(customer_id, loan_id).installments

    def pay_loan(
        self,
        customer_id: str,
        loan_id: str,
        amount: Decimal,
        now: Optional[datetime] = None
    ) -> PaymentResult:
        """
        Pay installments of a customer's loan

        Args:
            customer_id: Loan owner
            loan_id: Loan to pay
            amount: Payment amount
            now: Payment time (defaults to current UTC time)

        Returns:
            PaymentResult summary
        """
        now = now or datetime.now(timezone.utc)

        try:
            with self.storage.atomic():
                loan = self.get_loan(customer_id, loan_id)
                customer = self._require_customer(customer_id)

                result = self.engine.pay(loan, customer, amount, now)

                self._save_loan(loan)
                if result.is_loan_fully_paid:
                    self.customer_manager.save_customer(customer)

                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_PAYMENT_MADE,
                    entity_type="loan",
                    entity_id=loan.id,
                    metadata={"customer_id": customer_id, **result.to_dict()}
                )
                if result.is_loan_fully_paid:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.LOAN_PAID_OFF,
                        entity_type="loan",
                        entity_id=loan.id,
                        metadata={
                            "customer_id": customer_id,
                            "released_credit": loan.loan_amount,
                            "used_credit_limit": customer.used_credit_limit
                        }
                    )
        except CreditModuleError as e:
            log_action(
                self.logger, "warning", f"Loan payment rejected: {e}",
                customer_id=customer_id, action="pay_loan", resource="loan",
                extra={"loan_id": loan_id, "amount": str(amount)}
            )
            raise

        log_action(
            self.logger, "info", "Loan payment processed",
            customer_id=customer_id, action="pay_loan", resource="loan",
            extra={"loan_id": loan_id, **result.to_dict()}
        )

        return result

    def _require_customer(self, customer_id: str) -> Customer:
        customer = self.customer_manager.get_customer(customer_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def _assign_ids(self, loan: Loan) -> None:
        """Give a freshly originated loan and its installments their ids"""
        loan.id = str(uuid.uuid4())
        for installment in loan.installments:
            installment.id = str(uuid.uuid4())
            installment.loan_id = loan.id

    def _save_loan(self, loan: Loan) -> None:
        """Save loan with its embedded installments"""
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
