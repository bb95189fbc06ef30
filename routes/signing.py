# routes/signing.py
"""
Signing session routes.

JSON endpoints driving one user's signing session through its steps:
context → item → template → mapping → submission. The session lives in
process memory and is keyed by an id kept in the Flask session cookie.
"""

import logging
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request, send_file, session

from services.signing import (
    AuthenticationError,
    ConfigurationError,
    ConnectivityError,
    NotFoundError,
    SigningError,
    ValidationError,
    workflow
)

logger = logging.getLogger(__name__)

signing_bp = Blueprint('signing', __name__, url_prefix='/signing')

SESSION_KEY = 'signing_session_id'

ERROR_STATUS = (
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (ValidationError, 400),
    (ConnectivityError, 503),
    (ConfigurationError, 500),
)


def _services():
    return current_app.extensions['item_sign']


def _signing_session():
    store = _services()['sessions']
    signing_session = store.get_or_create(session.get(SESSION_KEY))
    session[SESSION_KEY] = signing_session.session_id
    return signing_session


def _status_for(error):
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 502


@signing_bp.errorhandler(SigningError)
def handle_signing_error(e):
    status = _status_for(e)
    logger.warning(f"{type(e).__name__} on {request.path}: {e}")

    signing_session = _services()['sessions'].get(session.get(SESSION_KEY, ''))
    if signing_session is not None:
        signing_session.record_error(e)

    return jsonify({
        'success': False,
        'error': e.user_message,
        'error_type': type(e).__name__,
        'retryable': e.retryable
    }), status


# =============================================================================
# CONTEXT AND ITEMS
# =============================================================================

@signing_bp.route('/context', methods=['POST'])
def resolve_context():
    """Resolve the context, then load its item. A context error is reported, not raised."""
    data = request.get_json(silent=True) or {}
    services = _services()
    signing_session = _signing_session()

    context = workflow.start_session(signing_session, services['resolver'], data.get('host_context'))
    workflow.load_item(signing_session, services['monday'], services['extractor'])

    return jsonify({
        'success': True,
        'context': context.to_dict(),
        'session': signing_session.to_dict()
    })


@signing_bp.route('/items')
def list_items():
    """Items selectable in test mode; empty when embedded."""
    signing_session = _signing_session()
    if signing_session.context is None:
        raise ValidationError('Resolve the context before listing items', field='context')

    items = _services()['resolver'].list_test_items(
        signing_session.context,
        limit=request.args.get('limit', 10, type=int)
    )
    return jsonify({'success': True, 'items': items})


@signing_bp.route('/items/search')
def search_items():
    """Find an item on the context board by id or name."""
    item = workflow.search_item(_signing_session(), _services()['monday'], request.args.get('q', ''))
    return jsonify({'success': True, 'item': {'id': item.item_id, 'name': item.name}})


@signing_bp.route('/item', methods=['POST'])
def load_item():
    """Load (or switch to) an item; a superseded load reports stale=True."""
    data = request.get_json(silent=True) or {}
    services = _services()
    signing_session = _signing_session()

    applied = workflow.load_item(
        signing_session,
        services['monday'],
        services['extractor'],
        item_id=str(data['item_id']) if data.get('item_id') else None
    )
    suggested = []
    if applied and signing_session.item is not None:
        suggested = [
            {'id': c.column_id, 'title': c.title, 'type': c.type, 'text': c.text}
            for c in services['extractor'].suggested_columns(signing_session.item)
        ]

    return jsonify({
        'success': True,
        'stale': not applied,
        'session': signing_session.to_dict(),
        'suggested_columns': suggested
    })


# =============================================================================
# FILES AND PREVIEWS
# =============================================================================

@signing_bp.route('/files/<int:index>/resolve', methods=['POST'])
def resolve_file(index):
    file_ref = workflow.resolve_file(_signing_session(), index)
    return jsonify({'success': True, 'file': file_ref.to_dict()})


@signing_bp.route('/files/<int:index>/preview', methods=['POST'])
def open_preview(index):
    """Download the file into a temporary preview and return its handle."""
    services = _services()
    handle = workflow.open_preview(_signing_session(), services['monday'], services['previews'], index)
    return jsonify({'success': True, 'preview': handle.to_dict()})


@signing_bp.route('/files/<int:index>/docuseal-url', methods=['POST'])
def docuseal_url(index):
    """Link opening DocuSeal's template editor with the file and contacts prefilled."""
    url = workflow.docuseal_template_url(_signing_session(), _services()['docuseal'], index)
    return jsonify({'success': True, 'docuseal_url': url})


@signing_bp.route('/previews/<handle_id>')
def get_preview(handle_id):
    handle = _services()['previews'].get(handle_id)
    return send_file(
        Path(handle.path),
        mimetype=handle.mime_type,
        download_name=handle.file_name
    )


@signing_bp.route('/previews/<handle_id>', methods=['DELETE'])
def release_preview(handle_id):
    released = _services()['previews'].release(handle_id)
    return jsonify({'success': True, 'released': released})


# =============================================================================
# TEMPLATES AND MAPPING
# =============================================================================

@signing_bp.route('/templates')
def list_templates():
    templates = workflow.list_templates(_signing_session(), _services()['docuseal'])
    return jsonify({
        'success': True,
        'templates': [t.to_dict() for t in templates],
        'mock_mode': _services()['docuseal'].is_mock_mode()
    })


@signing_bp.route('/templates/<template_id>/preview')
def template_preview(template_id):
    url = _services()['docuseal'].get_preview_url(template_id)
    return jsonify({'success': True, 'preview_url': url})


@signing_bp.route('/template', methods=['POST'])
def select_template():
    """Select a template; an empty template_id clears the selection."""
    data = request.get_json(silent=True) or {}
    signing_session = _signing_session()
    template_id = data.get('template_id')

    template = workflow.select_template(
        signing_session,
        _services()['docuseal'],
        str(template_id) if template_id else None
    )
    return jsonify({
        'success': True,
        'template': template.to_dict() if template else None,
        'mapping': signing_session.mapper.to_dict() if signing_session.mapper else None
    })


@signing_bp.route('/mapping')
def get_mapping():
    signing_session = _signing_session()
    if signing_session.mapper is None:
        raise ValidationError('Select a template before assigning signers', field='template')
    return jsonify({'success': True, 'mapping': signing_session.mapper.to_dict()})


@signing_bp.route('/mapping', methods=['POST'])
def assign_role():
    """Assign a contact to a role by email; an empty email clears the role."""
    data = request.get_json(silent=True) or {}
    role_id = data.get('role_id')
    if not role_id:
        raise ValidationError('role_id is required', field='role_id')

    signing_session = _signing_session()
    workflow.assign_role(signing_session, str(role_id), data.get('email'))
    return jsonify({'success': True, 'mapping': signing_session.mapper.to_dict()})


@signing_bp.route('/mapping/<role_id>', methods=['DELETE'])
def clear_role(role_id):
    signing_session = _signing_session()
    workflow.clear_role(signing_session, role_id)
    return jsonify({'success': True, 'mapping': signing_session.mapper.to_dict()})


# =============================================================================
# SUBMISSION
# =============================================================================

@signing_bp.route('/submit', methods=['POST'])
def submit():
    """Send the signature request built from the current mapping."""
    data = request.get_json(silent=True) or {}
    send_email = data.get('send_email', current_app.config.get('DOCUSEAL_SEND_EMAIL', True))

    result = workflow.submit(_signing_session(), _services()['docuseal'], send_email=bool(send_email))
    return jsonify({
        'success': True,
        'submission': result.to_dict(),
        'mock_mode': _services()['docuseal'].is_mock_mode()
    })


@signing_bp.route('/submissions/<submission_id>')
def submission_status(submission_id):
    result = _services()['docuseal'].get_submission(submission_id)
    return jsonify({'success': True, 'submission': result.to_dict()})


@signing_bp.route('/session')
def get_session():
    return jsonify({'success': True, 'session': _signing_session().to_dict()})


@signing_bp.route('/error', methods=['DELETE'])
def dismiss_error():
    signing_session = _signing_session()
    signing_session.dismiss_error()
    return jsonify({'success': True})
