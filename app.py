import atexit
import logging

from flask import Flask, jsonify

from routes import register_blueprints
from services.signing import (
    ColumnExtractor,
    ContextResolver,
    DocuSealClient,
    MondayClient,
    PreviewFileManager,
    SessionStore,
    load_column_rules
)


def create_app(config_object='config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Initialize services
    monday = MondayClient.from_config(app.config)
    docuseal = DocuSealClient.from_config(app.config)
    previews = PreviewFileManager(
        directory=app.config['PREVIEW_DIR'],
        ttl_seconds=app.config['PREVIEW_TTL_SECONDS'],
        sweep_interval=app.config['PREVIEW_SWEEP_INTERVAL']
    )
    sessions = SessionStore(idle_seconds=app.config.get('SESSION_IDLE_SECONDS', 3600))
    previews.add_sweep_task(sessions.expire_idle)

    app.extensions['item_sign'] = {
        'monday': monday,
        'docuseal': docuseal,
        'extractor': ColumnExtractor(load_column_rules(app.config['COLUMN_RULES_PATH'])),
        'resolver': ContextResolver.from_config(app.config, monday),
        'previews': previews,
        'sessions': sessions
    }

    if app.config.get('PREVIEW_SWEEPER_ENABLED'):
        previews.start_sweeper()
    atexit.register(previews.shutdown)

    if monday.is_mock_mode():
        app.logger.warning('MONDAY_API_TOKEN not set: monday.com calls use mock data')
    if docuseal.is_mock_mode():
        app.logger.warning('DocuSeal API key not set: templates and submissions are simulated')

    register_blueprints(app)

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'ok',
            'monday_mock_mode': monday.is_mock_mode(),
            'docuseal_mock_mode': docuseal.is_mock_mode()
        })

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5005, debug=True)
