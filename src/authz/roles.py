"""Server-side roles and their ordering."""

import enum


class Role(str, enum.Enum):
    """Coarse access level of an account."""

    CLIENT = "client"
    AGENT = "agent"
    TAX_OFFICE = "tax_office"
    ADMIN = "admin"


ALL_ROLES: tuple[Role, ...] = tuple(Role)

ROLE_HIERARCHY: dict[Role, int] = {
    Role.CLIENT: 1,
    Role.AGENT: 2,
    Role.TAX_OFFICE: 3,
    Role.ADMIN: 4,
}

ROLE_DISPLAY_NAMES: dict[Role, str] = {
    Role.CLIENT: "Client",
    Role.AGENT: "Agent",
    Role.TAX_OFFICE: "Tax Office",
    Role.ADMIN: "Administrator",
}

ROLE_DESCRIPTIONS: dict[Role, str] = {
    Role.CLIENT: "Can view their own documents, sign forms, and track refund status",
    Role.AGENT: "Can manage assigned clients, upload documents, and track tasks",
    Role.TAX_OFFICE: "Full access to all clients, financials, and analytics",
    Role.ADMIN: "Complete system access including user management and settings",
}


def parse_role(value: str | Role | None) -> Role | None:
    """Map a stored role string to a Role.

    Returns None for empty or unrecognised values (including the UI-only
    ``super_admin``), which callers treat as "no role assigned".
    """
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def get_role_level(role: str | Role | None) -> int:
    """Numeric rank of a role; 0 for anything unrecognised."""
    parsed = parse_role(role)
    if parsed is None:
        return 0
    return ROLE_HIERARCHY[parsed]


def has_minimum_role(role: str | Role | None, required_role: str | Role) -> bool:
    """Return True when ``role`` ranks at or above ``required_role``."""
    return get_role_level(role) >= get_role_level(required_role)
