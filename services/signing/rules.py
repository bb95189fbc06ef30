"""
Column Rules

Which work-item columns count as contact or file sources.
Rules live in signing_rules/columns.yml and are loaded once on startup;
the file is checked against signing_rules/columns.schema.json and an
invalid rules file fails fast.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import jsonschema
import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent.parent.parent / 'signing_rules'
DEFAULT_RULES_PATH = SCHEMA_DIR / 'columns.yml'
SCHEMA_PATH = SCHEMA_DIR / 'columns.schema.json'


@dataclass(frozen=True)
class ColumnRules:
    """
    Detection rules for extraction.

    Attributes:
        email_keywords: Title substrings marking a column as an email source
        email_types: Type tags marking a column as an email source
        person_types: Type tags whose structured value lists people
        file_keywords: Title substrings marking a column as a file source
        file_types: Type tags marking a column as a file source
        file_extensions: Accepted file name suffixes
        suggested_titles: Column titles always shown in the column summary
    """
    email_keywords: Tuple[str, ...] = ('email', 'correo')
    email_types: Tuple[str, ...] = ('email',)
    person_types: Tuple[str, ...] = ('person', 'multiple-person', 'people')
    file_keywords: Tuple[str, ...] = ('pdf',)
    file_types: Tuple[str, ...] = ('file',)
    file_extensions: Tuple[str, ...] = ('.pdf',)
    suggested_titles: Tuple[str, ...] = ()

    def title_matches_email(self, title: str) -> bool:
        return _contains_any(title, self.email_keywords)

    def title_matches_file(self, title: str) -> bool:
        return _contains_any(title, self.file_keywords)

    def is_email_type(self, type_tag: str) -> bool:
        return (type_tag or '').lower() in self.email_types

    def is_person_type(self, type_tag: str) -> bool:
        return (type_tag or '').lower() in self.person_types

    def is_file_type(self, type_tag: str) -> bool:
        return (type_tag or '').lower() in self.file_types

    def accepts_file_name(self, file_name: str) -> bool:
        name = (file_name or '').lower()
        return any(name.endswith(ext) for ext in self.file_extensions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ColumnRules':
        """
        Create rules from a parsed YAML dict.

        Missing sections keep their defaults. Expects a dict that already
        passed schema validation.
        """
        defaults = cls()
        email = data.get('email') or {}
        person = data.get('person') or {}
        files = data.get('file') or {}

        return cls(
            email_keywords=_strings(email, 'keywords', defaults.email_keywords),
            email_types=_strings(email, 'types', defaults.email_types),
            person_types=_strings(person, 'types', defaults.person_types),
            file_keywords=_strings(files, 'keywords', defaults.file_keywords),
            file_types=_strings(files, 'types', defaults.file_types),
            file_extensions=_strings(files, 'extensions', defaults.file_extensions),
            suggested_titles=tuple(data.get('suggested_titles') or ())
        )


def _contains_any(title: str, keywords: Tuple[str, ...]) -> bool:
    lowered = (title or '').lower()
    return any(keyword in lowered for keyword in keywords)


def _strings(section: Dict[str, Any], key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    values = section.get(key)
    if values is None:
        return default
    return tuple(v.lower() for v in values)


def load_column_rules(path: Optional[Path] = None) -> ColumnRules:
    """
    Load column rules from YAML.

    A missing file falls back to the built-in defaults.

    Raises:
        ConfigurationError: if the file is not valid YAML or fails the schema
    """
    path = Path(path) if path else DEFAULT_RULES_PATH

    if not path.exists():
        logger.warning(f"Column rules not found at {path}, using defaults")
        return ColumnRules()

    try:
        raw = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path.name}: invalid YAML - {e}")

    if raw is None:
        logger.warning(f"Column rules file {path} is empty, using defaults")
        return ColumnRules()

    try:
        jsonschema.validate(raw, _load_schema())
    except jsonschema.ValidationError as e:
        location = '.'.join(str(p) for p in e.absolute_path) or 'top level'
        raise ConfigurationError(f"{path.name}: schema validation failed at {location} - {e.message}")

    rules = ColumnRules.from_dict(raw)
    logger.info(
        f"Loaded column rules: email keywords {list(rules.email_keywords)}, "
        f"file keywords {list(rules.file_keywords)}"
    )
    return rules


def _load_schema():
    return json.loads(SCHEMA_PATH.read_text(encoding='utf-8'))
