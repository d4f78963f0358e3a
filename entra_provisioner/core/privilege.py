"""Pre-flight check that the acting principal may register applications."""
from __future__ import annotations
import logging

from .graph.directory import DirectoryService

logger = logging.getLogger(__name__)

ADMIN_ROLE_NAMES = frozenset({
    "Global Administrator",
    "Application Administrator",
    "Cloud Application Administrator",
})


class PrivilegeGate:
    """Read-only gate over directory role memberships.

    A failed membership lookup for one role counts as "not a member of that
    role" and the check carries on with the remaining roles.
    """

    def __init__(self, directory: DirectoryService, allowed_roles=ADMIN_ROLE_NAMES):
        self.directory = directory
        self.allowed_roles = frozenset(allowed_roles)

    def check(self, acting_principal_id: str) -> bool:
        """Return True iff the principal holds one of the allowed roles.

        Raises:
            GraphAPIError: If the directory roles themselves cannot be listed
        """
        for role in self.directory.list_directory_roles():
            name = role.get("displayName")
            if name not in self.allowed_roles:
                continue
            try:
                members = self.directory.list_role_members(role["id"])
            except Exception as e:
                logger.warning("Could not read members of '%s', treating as non-member: %s", name, e)
                continue
            if any(member.get("id") == acting_principal_id for member in members):
                logger.info("Principal %s holds '%s'", acting_principal_id, name)
                return True
        logger.warning("Principal %s holds none of: %s", acting_principal_id, ", ".join(sorted(self.allowed_roles)))
        return False
