"""
Submission Builder

Turns a selected template and a complete role assignment into
a SubmissionRequest ready for DocuSeal.

Pure construction: sending the request is the caller's job.
"""

import logging
from typing import List, Mapping, Optional

from .column_extractor import is_usable_email, local_part
from .exceptions import ValidationError
from .role_mapper import mapping_from
from .types import Contact, SubmissionMetadata, SubmissionRequest, Submitter, Template

logger = logging.getLogger(__name__)


class SubmissionBuilder:
    """
    Builds DocuSeal submission requests from role assignments.

    Takes:
        - Template with its signer roles
        - Assignment (role_id → Contact), total for the template
        - Context metadata (item, board, names)

    Returns:
        - SubmissionRequest with one submitter per role, in template order
    """

    @classmethod
    def build(
        cls,
        template: Template,
        assignment: Mapping[str, Contact],
        metadata: Optional[SubmissionMetadata] = None,
        send_email: bool = True
    ) -> SubmissionRequest:
        """
        Build the submission request.

        Raises:
            ValidationError: if the template has no roles, a role has no
                contact, or an assigned contact has no usable email
        """
        if not template.roles:
            raise ValidationError(
                f"Template '{template.name}' has no signer roles defined",
                field='template'
            )

        assignment = mapping_from(assignment)
        missing = [role for role in template.roles if role.role_id not in assignment]
        if missing:
            labels = ', '.join(role.label for role in missing)
            raise ValidationError(
                f"Missing assignments for {len(missing)} role(s): {labels}. "
                f"Assign every role before sending.",
                role_id=missing[0].role_id,
                field='assignment'
            )

        submitters: List[Submitter] = []
        for role in template.roles:
            contact = assignment[role.role_id]
            submitters.append(cls._build_submitter(role.role_id, role.label, contact))

        metadata = metadata or SubmissionMetadata(template_name=template.name)
        request = SubmissionRequest(
            template_id=template.template_id,
            submitters=tuple(submitters),
            metadata=metadata,
            send_email=send_email
        )

        logger.debug(f"Built {len(submitters)} submitter(s) for template {template.template_id}")
        return request

    @classmethod
    def _build_submitter(cls, role_id: str, role_label: str, contact: Contact) -> Submitter:
        email = (contact.email or '').strip()
        if not is_usable_email(email):
            raise ValidationError(
                f"Contact assigned to '{role_label}' has no usable email ({contact.email!r})",
                role_id=role_id,
                field='email'
            )

        return Submitter(
            role=role_label,
            email=email,
            name=contact.display_name or local_part(email),
            role_id=role_id
        )
