from django.core.exceptions import ValidationError


class InvalidLineItem(ValidationError):
    """Raised when a line item has a non-positive quantity, a negative price
    or a discount the line cannot absorb."""
    pass


class BusinessRuleError(Exception):
    """Raised when a well-formed request breaks a billing rule."""
    pass


class PaymentExceedsBalance(BusinessRuleError):
    """Raised when a payment is larger than the document's pending amount."""
    pass


class DocumentLocked(BusinessRuleError):
    """Raised when editing a converted or cancelled document."""
    pass


class InvalidStatusTransition(BusinessRuleError):
    pass


class ConflictError(Exception):
    """Raised when a write collides with existing state."""
    pass


class AlreadyCancelled(ConflictError):
    pass


class PartyResolutionConflict(ConflictError):
    """Raised when a party create hit a uniqueness violation and the
    follow-up search could not find the row that caused it."""

    def __init__(self, message, tried=None):
        super().__init__(message)
        self.tried = tried or {}
