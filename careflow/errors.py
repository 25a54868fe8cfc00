"""
Error taxonomy for the care-flow services.

Mutation paths raise these (or return them as a failed result at flow level).
Read helpers never raise them past the service boundary: a store failure on a
lookup degrades to "nothing found".
"""


class CareFlowError(Exception):
    """Base class for all care-flow errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(CareFlowError):
    """Actor lacks access to the patient or encounter"""


class NotFoundError(CareFlowError):
    """Referenced order, appointment or encounter does not exist"""


class NotFoundOrDeniedError(NotFoundError, AuthorizationError):
    """Ownership check failed; callers cannot tell missing from forbidden"""


class InvalidOrderType(CareFlowError):
    """Order type is absent from the registry"""

    def __init__(self, order_type: str):
        super().__init__("Invalid order type")
        self.order_type = order_type


class InvalidStatusTransition(CareFlowError):
    """Encounter status change is not allowed"""


class ProtectedEncounterError(CareFlowError):
    """Encounter is owned by a flow and cannot be removed through manual CRUD"""


class StoreError(CareFlowError):
    """Underlying store failure"""
