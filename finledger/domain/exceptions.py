"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain_error"


class NotFound(DomainException):
    """Referenced entity does not exist or belongs to another user"""

    kind = "not_found"


class AccountNotFound(NotFound):
    pass


class TransactionNotFound(NotFound):
    pass


class PositionNotFound(NotFound):
    """No open position for the asset"""

    pass


class FinancingNotFound(NotFound):
    pass


class FinancingPaymentNotFound(NotFound):
    pass


class InvalidOperation(DomainException):
    """Non-positive amount, quantity or price, or an unsupported method"""

    kind = "invalid_operation"


class InstallmentAlreadyPaid(InvalidOperation):
    """A payment is already registered for this installment number"""

    kind = "installment_already_paid"


class InsufficientFunds(InvalidOperation):
    """Source account balance is lower than the expense amount"""

    kind = "insufficient_funds"


class InsufficientQuantity(DomainException):
    """Sell quantity exceeds the quantity held"""

    kind = "insufficient_quantity"

    def __init__(self, asset_name: str, requested, available):
        self.asset_name = asset_name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient quantity of {asset_name}: requested {requested}, "
            f"held {available}, shortfall {self.shortfall}"
        )


class OverPayment(DomainException):
    """Payment would retire more principal than is outstanding"""

    kind = "over_payment"

    def __init__(self, amount, outstanding):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(f"Payment of {amount} exceeds outstanding balance {outstanding}")


class InvariantViolation(DomainException):
    """Internal consistency check failed; indicates a defect, not user error"""

    kind = "invariant_violation"
