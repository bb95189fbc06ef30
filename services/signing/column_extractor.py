"""
Column Extractor

Turns the semi-structured column data of a work item into
contact and PDF file records.

Detection:
    - email columns: title contains an email keyword ("email", "correo")
      or the type tag is the email type; every email-looking substring
      of the text value becomes one contact
    - person columns: the structured value lists people; each one with
      an email becomes a contact
    - file columns: title contains a file keyword ("pdf") or the type tag
      is the file type; each listed file ending in .pdf becomes a reference

Malformed structured values never abort extraction. The column is
logged, recorded as a ParseError and contributes nothing.

Email pattern limitations: the domain is not checked for existence,
consecutive dots are accepted, and trailing punctuation is cut off.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .exceptions import ParseError
from .rules import ColumnRules
from .types import ColumnEntry, ColumnKind, Contact, ContactSource, FileReference, RawItem

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'[\w.%+-]+@[\w.-]+\.\w+')

URL_KEYS = ('url', 'public_url', 'asset_url')
ASSET_ID_KEYS = ('assetId', 'asset_id')


def find_emails(text: Optional[str]) -> List[str]:
    """Return every email-looking substring of `text`, in order."""
    if not text:
        return []
    return EMAIL_PATTERN.findall(text)


def is_usable_email(email: Optional[str]) -> bool:
    """True when the whole string is one email-looking token."""
    return bool(email) and EMAIL_PATTERN.fullmatch(email.strip()) is not None


def local_part(email: str) -> str:
    return email.split('@', 1)[0]


@dataclass(frozen=True)
class ParsedColumn:
    """Result of parsing one structured column: entries, or the error that emptied it."""
    entries: Tuple[Any, ...] = ()
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _load_payload(column: ColumnEntry) -> Optional[Dict[str, Any]]:
    """
    Decode a column's structured value.

    Returns None for an empty value.

    Raises:
        ParseError: invalid serialization or a payload that is not an object
    """
    value = column.value
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ParseError(
                f"Invalid JSON in column '{column.title}': {e}",
                column_id=column.column_id,
                column_title=column.title
            )

    if value is None:
        return None

    if not isinstance(value, dict):
        raise ParseError(
            f"Unexpected value in column '{column.title}': expected an object, got {type(value).__name__}",
            column_id=column.column_id,
            column_title=column.title
        )
    return value


def _list_field(column: ColumnEntry, payload: Dict[str, Any], key: str) -> List[Any]:
    entries = payload.get(key)
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ParseError(
            f"Unexpected '{key}' in column '{column.title}': expected a list",
            column_id=column.column_id,
            column_title=column.title
        )
    return entries


def parse_person_payload(column: ColumnEntry) -> ParsedColumn:
    """Parse a person / multi-person column into contacts."""
    try:
        payload = _load_payload(column)
        if payload is None:
            return ParsedColumn()
        people = _list_field(column, payload, 'personsAndTeams')
    except ParseError as e:
        return ParsedColumn(error=e)

    contacts = []
    for person in people:
        if not isinstance(person, dict):
            continue
        email = (person.get('email') or '').strip()
        if not email:
            continue
        contacts.append(Contact(
            email=email,
            display_name=person.get('name') or local_part(email),
            source_column_id=column.column_id,
            source_column_title=column.title,
            source=ContactSource.PERSON_COLUMN
        ))
    return ParsedColumn(entries=tuple(contacts))


def parse_file_payload(column: ColumnEntry, rules: ColumnRules) -> ParsedColumn:
    """
    Parse a file column into PDF references.

    Entries with a direct URL are stored resolved; entries with only
    an asset id are left for the asset resolver.
    """
    try:
        payload = _load_payload(column)
        if payload is None:
            return ParsedColumn()
        if 'files' in payload:
            files = _list_field(column, payload, 'files')
        elif any(payload.get(k) for k in URL_KEYS + ASSET_ID_KEYS):
            # a single file object instead of a list
            files = [payload]
        else:
            files = []
    except ParseError as e:
        return ParsedColumn(error=e)

    references = []
    for entry in files:
        if not isinstance(entry, dict):
            continue
        name = entry.get('name') or ''
        if not rules.accepts_file_name(name):
            continue

        url = next((entry[k] for k in URL_KEYS if entry.get(k)), None)
        asset_id = next((entry[k] for k in ASSET_ID_KEYS if entry.get(k)), None)
        if not url and not asset_id:
            logger.debug(f"Skipping '{name}' in column '{column.title}': no URL or asset id")
            continue

        references.append(FileReference(
            file_name=name,
            source_column_id=column.column_id,
            source_column_title=column.title,
            remote_asset_id=str(asset_id) if asset_id is not None else None,
            resolved_url=url
        ))
    return ParsedColumn(entries=tuple(references))


def scan_email_text(column: ColumnEntry) -> Tuple[Contact, ...]:
    """One contact per email found in the column text, named by its local part."""
    return tuple(
        Contact(
            email=email,
            display_name=local_part(email),
            source_column_id=column.column_id,
            source_column_title=column.title,
            source=ContactSource.EMAIL_COLUMN
        )
        for email in find_emails(column.text)
    )


class LazySequence:
    """
    A restartable lazy sequence.

    Each iteration calls the factory again, so iterating twice over
    the same raw item yields the same ordered result.
    """

    def __init__(self, factory: Callable[[], Iterator[Any]]):
        self._factory = factory

    def __iter__(self) -> Iterator[Any]:
        return iter(self._factory())

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return any(True for _ in self)

    def to_list(self) -> List[Any]:
        return list(self)


class ExtractedItem:
    """Contacts, files and parse errors derived from one raw item."""

    def __init__(self, item: RawItem, extractor: 'ColumnExtractor'):
        self.item = item
        self.contacts = LazySequence(lambda: extractor.iter_contacts(item))
        self.files = LazySequence(lambda: extractor.iter_files(item))
        self._extractor = extractor

    @property
    def errors(self) -> List[ParseError]:
        return list(self._extractor.iter_errors(self.item))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.item.item_id,
            'name': self.item.name,
            'contacts': [c.to_dict() for c in self.contacts],
            'files': [f.to_dict() for f in self.files],
            'errors': [e.to_dict() for e in self.errors]
        }


class ColumnExtractor:
    """
    Extracts contacts and PDF references from work items.

    Holds only the detection rules; extraction itself is a pure
    function of the raw item.

    Usage:
        extractor = ColumnExtractor(load_column_rules())
        extracted = extractor.extract(raw_item)
        for contact in extracted.contacts:
            ...
    """

    def __init__(self, rules: Optional[ColumnRules] = None):
        self.rules = rules or ColumnRules()

    def classify(self, column: ColumnEntry) -> Tuple[ColumnKind, ...]:
        """
        Kinds a column qualifies as.

        A person-typed column is parsed as people and never text-scanned.
        A column can be both a contact source and a file source.
        """
        kinds = []
        if self.rules.is_person_type(column.type):
            kinds.append(ColumnKind.PERSON)
        elif self.rules.is_email_type(column.type) or self.rules.title_matches_email(column.title):
            kinds.append(ColumnKind.EMAIL)

        if self.rules.is_file_type(column.type) or self.rules.title_matches_file(column.title):
            kinds.append(ColumnKind.FILE)

        return tuple(kinds) or (ColumnKind.OTHER,)

    def extract(self, item: RawItem) -> ExtractedItem:
        return ExtractedItem(item, self)

    def iter_contacts(self, item: RawItem) -> Iterator[Contact]:
        """Contacts in column order, then match order within a column."""
        for column in item.columns:
            kinds = self.classify(column)
            if ColumnKind.PERSON in kinds:
                parsed = parse_person_payload(column)
                if not parsed.ok:
                    logger.warning(f"Skipping person column '{column.title}' on item {item.item_id}: {parsed.error}")
                    continue
                yield from parsed.entries
            elif ColumnKind.EMAIL in kinds:
                yield from scan_email_text(column)

    def iter_files(self, item: RawItem) -> Iterator[FileReference]:
        """PDF references in column order, then entry order within a column."""
        for column in item.columns:
            if ColumnKind.FILE not in self.classify(column):
                continue
            parsed = parse_file_payload(column, self.rules)
            if not parsed.ok:
                logger.warning(f"Skipping file column '{column.title}' on item {item.item_id}: {parsed.error}")
                continue
            yield from parsed.entries

    def iter_errors(self, item: RawItem) -> Iterator[ParseError]:
        """Parse errors of every structured column on the item."""
        for column in item.columns:
            kinds = self.classify(column)
            if ColumnKind.PERSON in kinds:
                parsed = parse_person_payload(column)
                if parsed.error:
                    yield parsed.error
            if ColumnKind.FILE in kinds:
                parsed = parse_file_payload(column, self.rules)
                if parsed.error:
                    yield parsed.error

    def suggested_columns(self, item: RawItem) -> List[ColumnEntry]:
        """
        Columns worth showing for the item.

        Known titles always; otherwise email-keyword columns with text
        and file-keyword columns with a structured value.
        """
        suggested = []
        for column in item.columns:
            if column.title in self.rules.suggested_titles:
                suggested.append(column)
            elif self.rules.title_matches_email(column.title) and (column.text or '').strip():
                suggested.append(column)
            elif self.rules.title_matches_file(column.title) and _has_value(column.value):
                suggested.append(column)

        logger.debug(f"Suggested {len(suggested)} of {len(item.columns)} columns for item {item.item_id}")
        return suggested


def _has_value(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None
