"""
Credit system wiring and FastAPI dependency
"""

from typing import Optional

from ..config import CreditModuleConfig, get_config
from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..customers import CustomerManager
from ..loans import LoanEngine, LoanManager, LoanPolicy


class CreditSystem:
    """Credit module with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[CreditModuleConfig] = None
    ):
        self.config = config or get_config()

        # Initialize storage
        self.storage = storage or create_storage(self.config.database_url)

        # Initialize core components
        self.audit_trail = AuditTrail(self.storage)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(
            self.storage, self.customer_manager, self.audit_trail,
            engine=LoanEngine(LoanPolicy.from_config(self.config))
        )


# Global credit system instance, built on first request
_credit_system: Optional[CreditSystem] = None


def get_credit_system() -> CreditSystem:
    global _credit_system
    if _credit_system is None:
        _credit_system = CreditSystem()
    return _credit_system
