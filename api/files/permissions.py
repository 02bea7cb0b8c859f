"""
Ownership guard for file operations
"""
from core.exceptions import Forbidden


def authorize(principal_id, resource_owner_id) -> bool:
    """
    Return True iff the principal owns the resource.

    Ids are compared as strings so a UUID and its string form match.
    There is no sharing, group or admin relation.
    """
    if principal_id is None or resource_owner_id is None:
        return False
    return str(principal_id) == str(resource_owner_id)


def require_owner(principal_id, resource_owner_id) -> None:
    """
    Raises:
        Forbidden: If the principal does not own the resource
    """
    if not authorize(principal_id, resource_owner_id):
        raise Forbidden()
