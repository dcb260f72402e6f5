"""Authorization and account errors."""

from collections.abc import Iterable


class AuthenticationRequired(Exception):
    """No authenticated caller could be resolved for the request."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NoRoleAssigned(Exception):
    """The caller is authenticated but holds no recognised role."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("No role assigned")


class AccessDenied(Exception):
    """The caller's role lacks the required role or permission."""

    def __init__(
        self,
        role: str,
        allowed_roles: Iterable[str] = (),
        required_permissions: Iterable[str] = (),
    ):
        self.role = role
        self.allowed_roles = list(allowed_roles)
        self.required_permissions = list(required_permissions)
        if self.required_permissions:
            message = (
                f"Required permission: {' or '.join(self.required_permissions)}. "
                f"Your role: {role}"
            )
        else:
            message = f"Required role: {' or '.join(self.allowed_roles)}. Your role: {role}"
        super().__init__(message)


class PermissionNotFound(LookupError):
    """A permission slug is not in the catalog (a seeding/configuration error)."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Permission '{slug}' not found")


class UserNotFound(LookupError):
    """No user exists with the given id."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User '{user_id}' not found")
