"""Role and permission authorization."""

from src.authz.cache import PermissionCache, permission_cache
from src.authz.errors import (
    AccessDenied,
    AuthenticationRequired,
    NoRoleAssigned,
    PermissionNotFound,
    UserNotFound,
)
from src.authz.guards import (
    check_min_role,
    check_own_resource_or_staff,
    check_permission,
    check_role,
    resolve_role,
)
from src.authz.permissions import (
    PermissionMatrix,
    clear_permission_cache,
    get_role_permission_matrix,
    get_role_permissions,
    has_permission,
    load_user_permissions,
    seed_default_permissions,
    set_role_permission,
    update_role_permissions,
)
from src.authz.roles import Role, get_role_level, has_minimum_role, parse_role

__all__ = [
    # Roles
    "Role",
    "get_role_level",
    "has_minimum_role",
    "parse_role",
    # Guards
    "check_min_role",
    "check_own_resource_or_staff",
    "check_permission",
    "check_role",
    "resolve_role",
    # Permissions
    "PermissionCache",
    "PermissionMatrix",
    "clear_permission_cache",
    "get_role_permission_matrix",
    "get_role_permissions",
    "has_permission",
    "load_user_permissions",
    "permission_cache",
    "seed_default_permissions",
    "set_role_permission",
    "update_role_permissions",
    # Errors
    "AccessDenied",
    "AuthenticationRequired",
    "NoRoleAssigned",
    "PermissionNotFound",
    "UserNotFound",
]
