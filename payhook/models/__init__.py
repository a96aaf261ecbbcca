from .user import User
from .user_plan import UserPlan
from .payment_transaction import PaymentTransaction

__all__ = ["User", "UserPlan", "PaymentTransaction"]
