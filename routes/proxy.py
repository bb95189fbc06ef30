# routes/proxy.py
"""
Local development proxy.

- /api/proxy-download relays a monday.com file download so the browser
  can fetch protected assets without CORS problems
- /api/<path> forwards to the DocuSeal instance with the /api prefix removed

Registered only when DEV_PROXY_ENABLED is on.
"""

import logging

import requests
from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

logger = logging.getLogger(__name__)

proxy_bp = Blueprint('proxy', __name__, url_prefix='/api')

USER_AGENT = 'Item-Sign-App/1.0'
CHUNK_SIZE = 64 * 1024

# Not forwarded in either direction
HOP_BY_HOP_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade', 'host', 'content-length',
    'content-encoding'
}


@proxy_bp.route('/proxy-download')
def proxy_download():
    """Stream a remote file back with its original content type and length."""
    url = request.args.get('url')
    token = request.args.get('token')

    if not url or not token:
        return jsonify({'success': False, 'error': 'URL and token are required'}), 400

    logger.info(f"Proxying download from: {url}")
    upstream = None
    try:
        upstream = requests.get(
            url,
            headers={'Authorization': f'Bearer {token}', 'User-Agent': USER_AGENT},
            stream=True,
            timeout=current_app.config.get('REQUEST_TIMEOUT', 30)
        )
        upstream.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Proxy download error: {e}")
        if upstream is not None:
            upstream.close()
        return jsonify({'success': False, 'error': 'Failed to download file'}), 500

    headers = {}
    if upstream.headers.get('Content-Length'):
        headers['Content-Length'] = upstream.headers['Content-Length']

    return Response(
        stream_with_context(upstream.iter_content(chunk_size=CHUNK_SIZE)),
        status=upstream.status_code,
        content_type=upstream.headers.get('Content-Type', 'application/octet-stream'),
        headers=headers
    )


@proxy_bp.route('/<path:path>', methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'])
def proxy_docuseal(path):
    """Forward the request to DocuSeal with the /api prefix stripped."""
    target = f"{current_app.config['DOCUSEAL_API_URL'].rstrip('/')}/{path}"
    headers = {k: v for k, v in request.headers if k.lower() not in HOP_BY_HOP_HEADERS}

    try:
        upstream = requests.request(
            request.method,
            target,
            params=request.args,
            data=request.get_data(),
            headers=headers,
            timeout=current_app.config.get('REQUEST_TIMEOUT', 30)
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"DocuSeal proxy error for {target}: {e}")
        return jsonify({'success': False, 'error': 'Could not reach DocuSeal'}), 502

    response_headers = [
        (k, v) for k, v in upstream.headers.items() if k.lower() not in HOP_BY_HOP_HEADERS
    ]
    return Response(upstream.content, status=upstream.status_code, headers=response_headers)
