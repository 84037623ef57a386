"""
auth/permissions.py -- Static role allow-lists.

Every gated endpoint names one of these sets. There is no role hierarchy
arithmetic: a role is either in the list or it is not.
"""

from __future__ import annotations

from auth.models import ROLE_ADMIN, ROLE_MANAGER, ROLE_SUPERADMIN, ROLE_USER

# Admin area (question bank browsing)
STAFF: frozenset[str] = frozenset({ROLE_MANAGER, ROLE_ADMIN, ROLE_SUPERADMIN})

# Question bank writes
CAN_CREATE: frozenset[str] = frozenset({ROLE_MANAGER, ROLE_ADMIN, ROLE_SUPERADMIN})
CAN_EDIT: frozenset[str] = frozenset({ROLE_MANAGER, ROLE_ADMIN, ROLE_SUPERADMIN})
CAN_DELETE: frozenset[str] = frozenset({ROLE_MANAGER, ROLE_ADMIN, ROLE_SUPERADMIN})

# User management, including deleting accounts. Managers are excluded.
CAN_MANAGE_USERS: frozenset[str] = frozenset({ROLE_ADMIN, ROLE_SUPERADMIN})

# Roles an admin may assign through PUT /users/{id} and PUT /users/{id}/role.
# superadmin can only be granted at creation time or from the CLI.
ASSIGNABLE_ROLES: frozenset[str] = frozenset({ROLE_USER, ROLE_MANAGER, ROLE_ADMIN})
