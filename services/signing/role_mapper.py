"""
Role Mapper

Holds the assignment of template signer roles to contacts
extracted from the work item.

Duplicate policy: a contact may end up assigned to more than one
role. `assign` does not block it; `available_contacts` keeps an
email already used by another role out of the selection list, and
`duplicate_emails` reports any that slipped through.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import NotFoundError, ValidationError
from .types import Contact, SignerRole

logger = logging.getLogger(__name__)


class RoleMapper:
    """
    In-memory role → contact assignment for one template.

    No I/O; every method is a plain state transition triggered by the user.
    Rebuilt whenever the item or the template changes.
    """

    def __init__(self, roles: Iterable[SignerRole], contacts: Iterable[Contact] = ()):
        self.roles: Tuple[SignerRole, ...] = tuple(roles)
        self.contacts: Tuple[Contact, ...] = tuple(contacts)
        self._assignment: Dict[str, Contact] = {}

    @property
    def assignment(self) -> Dict[str, Contact]:
        """Copy of the current role_id → contact mapping."""
        return dict(self._assignment)

    @property
    def assigned_count(self) -> int:
        return len(self._assignment)

    def _require_role(self, role_id: str) -> SignerRole:
        role = next((r for r in self.roles if r.role_id == role_id), None)
        if role is None:
            raise ValidationError(f"Unknown signer role '{role_id}'", role_id=role_id)
        return role

    def assign(self, role_id: str, contact: Contact) -> None:
        """Assign a contact to a role, replacing any previous assignment."""
        role = self._require_role(role_id)
        previous = self._assignment.get(role_id)
        self._assignment[role_id] = contact

        if previous and previous.email != contact.email:
            logger.debug(f"Role '{role.label}' reassigned from {previous.email} to {contact.email}")
        else:
            logger.debug(f"Role '{role.label}' assigned to {contact.email}")

    def assign_email(self, role_id: str, email: Optional[str]) -> Optional[Contact]:
        """
        Assign by email, the way the selection control does.

        An empty email clears the role.

        Returns:
            The assigned contact, or None when the role was cleared

        Raises:
            NotFoundError: if no known contact has that email
        """
        if not email:
            self.clear(role_id)
            return None

        contact = next((c for c in self.contacts if c.email == email), None)
        if contact is None:
            raise NotFoundError(f"No contact with email {email} on this item", resource='contact')

        self.assign(role_id, contact)
        return contact

    def clear(self, role_id: str) -> None:
        """Remove the assignment of a role, if any."""
        if self._assignment.pop(role_id, None) is not None:
            logger.debug(f"Cleared assignment for role '{role_id}'")

    def is_complete(self) -> bool:
        """True when every role of the template has a contact."""
        return all(self._assignment.get(role.role_id) for role in self.roles)

    def missing_roles(self) -> List[SignerRole]:
        return [role for role in self.roles if not self._assignment.get(role.role_id)]

    def available_contacts(self, excluding_role_id: Optional[str] = None) -> List[Contact]:
        """
        Contacts selectable for a role.

        Excludes every email assigned to a role other than `excluding_role_id`,
        so the contact already held by that role stays selectable.
        """
        taken = {
            contact.email
            for role_id, contact in self._assignment.items()
            if role_id != excluding_role_id
        }
        return [c for c in self.contacts if c.email not in taken]

    def duplicate_emails(self) -> Dict[str, List[str]]:
        """Emails held by more than one role, with the role ids holding them."""
        holders: Dict[str, List[str]] = {}
        for role_id, contact in self._assignment.items():
            holders.setdefault(contact.email, []).append(role_id)
        return {email: role_ids for email, role_ids in holders.items() if len(role_ids) > 1}

    def summary(self) -> List[Dict[str, Optional[str]]]:
        """One row per role, in template order, for display."""
        rows = []
        for role in self.roles:
            contact = self._assignment.get(role.role_id)
            rows.append({
                'role_id': role.role_id,
                'role': role.label,
                'name': contact.display_name if contact else None,
                'email': contact.email if contact else None
            })
        return rows

    def to_dict(self) -> Dict[str, object]:
        return {
            'assignments': self.summary(),
            'assigned': self.assigned_count,
            'total': len(self.roles),
            'complete': self.is_complete(),
            'duplicates': self.duplicate_emails(),
            'available': {
                role.role_id: [c.to_dict() for c in self.available_contacts(role.role_id)]
                for role in self.roles
            }
        }


def mapping_from(assignment: Mapping[str, Contact]) -> Dict[str, Contact]:
    """Drop empty entries from a caller-supplied assignment."""
    return {role_id: contact for role_id, contact in assignment.items() if contact}
