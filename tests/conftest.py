"""
Shared fixtures for the signing integration tests.

Run with: python -m pytest tests/ -v
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from services.signing import ColumnExtractor, Contact, ContactSource, RawItem, SignerRole, Template


def column(column_id, title, type_tag='text', text=None, value=None):
    """Column value in the work-item GraphQL shape."""
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    return {
        'id': column_id,
        'type': type_tag,
        'text': text,
        'value': value,
        'column': {'id': column_id, 'title': title, 'type': type_tag}
    }


def make_item(*columns, item_id='1001', name='Convenio Proveedor XYZ', board_id='55'):
    return RawItem.from_dict({
        'id': item_id,
        'name': name,
        'board': {'id': board_id},
        'column_values': list(columns)
    })


def make_contact(email, name=None, column_id='email1'):
    return Contact(
        email=email,
        display_name=name or email.split('@')[0],
        source_column_id=column_id,
        source_column_title='Solicitado Por-correo',
        source=ContactSource.EMAIL_COLUMN
    )


@pytest.fixture
def extractor():
    return ColumnExtractor()


@pytest.fixture
def two_role_template():
    return Template(
        template_id='42',
        name='Convenio de Voluntariado',
        roles=(
            SignerRole('r1', 'Representante Fundación'),
            SignerRole('r2', 'Voluntario'),
        )
    )


@pytest.fixture
def contacts():
    return [
        make_contact('ana@fundacion.org', 'Ana'),
        make_contact('luis@fundacion.org', 'Luis', column_id='email2'),
        make_contact('marta@fundacion.org', 'Marta', column_id='email3'),
    ]
