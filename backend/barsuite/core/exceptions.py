"""Domain-specific exceptions.

All business-rule failures inherit from BarSuiteError. Each carries a
machine-readable ``code`` and a human-readable message, and the error kind
determines the HTTP status used by the handler registered in ``main.py``.
"""
from fastapi import status


class BarSuiteError(Exception):
    """Base exception for all BarSuite errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(BarSuiteError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(BarSuiteError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class ForbiddenError(BarSuiteError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class UnauthorizedError(BarSuiteError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class BadRequestError(BarSuiteError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"


class ServiceUnavailableError(BarSuiteError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"


# Users

class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id):
        super().__init__(f"User with ID \"{user_id}\" not found")


class EmailAlreadyExistsError(ConflictError):
    code = "EMAIL_ALREADY_EXISTS"

    def __init__(self, email: str):
        super().__init__(f"A user with email \"{email}\" already exists")


class AuthProviderConflictError(ConflictError):
    """Account is already bound to a different sign-in provider."""
    code = "AUTH_PROVIDER_CONFLICT"

    def __init__(self, email: str, provider: str):
        super().__init__(
            f"An account with email \"{email}\" already exists and uses {provider} sign-in"
        )


class UserDeletionConflictError(ConflictError):
    code = "USER_DELETION_CONFLICT"


class InvalidCredentialsError(UnauthorizedError):
    code = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidTokenError(UnauthorizedError):
    code = "INVALID_TOKEN"


# Organizations and memberships

class OrganizationNotFoundError(NotFoundError):
    code = "ORGANIZATION_NOT_FOUND"

    def __init__(self, org_id):
        super().__init__(f"Organization with ID \"{org_id}\" not found")


class OrganizationNameExistsError(ConflictError):
    code = "ORGANIZATION_NAME_EXISTS"

    def __init__(self, name: str):
        super().__init__(f"You already own an organization named \"{name}\"")


class MembershipNotFoundError(NotFoundError):
    code = "MEMBERSHIP_NOT_FOUND"

    def __init__(self, org_id, user_id):
        super().__init__(f"User \"{user_id}\" is not a member of organization \"{org_id}\"")


class AlreadyMemberError(ConflictError):
    code = "ALREADY_MEMBER"

    def __init__(self, org_id, who):
        super().__init__(f"{who} is already a member of organization \"{org_id}\"")


class NotOrganizationMemberError(ForbiddenError):
    code = "NOT_ORGANIZATION_MEMBER"

    def __init__(self):
        super().__init__("You are not a member of this organization")


class InsufficientOrganizationRoleError(ForbiddenError):
    code = "INSUFFICIENT_ORGANIZATION_ROLE"

    def __init__(self, allowed_roles):
        super().__init__(
            f"Access denied. Required organization roles: {', '.join(allowed_roles)}"
        )


class OwnerRoleAssignmentError(BadRequestError):
    code = "OWNER_ROLE_ASSIGNMENT"

    def __init__(self):
        super().__init__("The owner role cannot be assigned directly; transfer ownership instead")


class OwnerRoleModificationError(BadRequestError):
    code = "OWNER_ROLE_MODIFICATION"

    def __init__(self):
        super().__init__("The organization owner cannot be modified or removed")


# Invitations

class InvitationNotFoundError(NotFoundError):
    code = "INVITATION_NOT_FOUND"

    def __init__(self):
        super().__init__("Invitation not found, already used or expired")


class InvitationAlreadyExistsError(ConflictError):
    code = "INVITATION_ALREADY_EXISTS"

    def __init__(self, email: str):
        super().__init__(f"A pending invitation for \"{email}\" already exists")


# Subscriptions and billing

class SubscriptionNotFoundError(NotFoundError):
    code = "SUBSCRIPTION_NOT_FOUND"

    def __init__(self):
        super().__init__("Subscription not found")


class SubscriptionAlreadyExistsError(ConflictError):
    code = "SUBSCRIPTION_ALREADY_EXISTS"

    def __init__(self):
        super().__init__("User already has a live subscription")


class SubscriptionNotEligibleError(ConflictError):
    """Subscription cannot back a new organization."""
    code = "SUBSCRIPTION_NOT_ELIGIBLE"


class NotEligibleForTrialError(ConflictError):
    code = "NOT_ELIGIBLE_FOR_TRIAL"

    def __init__(self):
        super().__init__("User is not eligible for a trial subscription")


class InvalidSubscriptionOperationError(BadRequestError):
    code = "INVALID_SUBSCRIPTION_OPERATION"

    def __init__(self, operation: str, current_status: str):
        super().__init__(f"Cannot {operation} subscription with status: {current_status}")


class PaymentProviderRequestError(BadRequestError):
    code = "PAYMENT_PROVIDER_REQUEST_ERROR"


class PaymentProviderUnavailableError(ServiceUnavailableError):
    code = "PAYMENT_PROVIDER_UNAVAILABLE"
