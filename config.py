import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / '.env')


def _flag(name, default='false'):
    return os.getenv(name, default).lower() == 'true'


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', 30))

    # monday.com configuration
    MONDAY_API_URL = os.getenv('MONDAY_API_URL', 'https://api.monday.com/v2')
    MONDAY_API_TOKEN = os.getenv('MONDAY_API_TOKEN', '')
    MONDAY_USE_REAL = _flag('MONDAY_USE_REAL')
    MONDAY_TEST_BOARD_ID = os.getenv('MONDAY_TEST_BOARD_ID')

    # DocuSeal configuration - supports test and production keys
    DOCUSEAL_MODE = os.getenv('DOCUSEAL_MODE', 'test').lower()
    DOCUSEAL_API_KEY_TEST = os.getenv('DOCUSEAL_API_KEY_TEST', '')
    DOCUSEAL_API_KEY_PROD = os.getenv('DOCUSEAL_API_KEY_PROD', '')
    DOCUSEAL_API_KEY = DOCUSEAL_API_KEY_PROD if DOCUSEAL_MODE == 'prod' else DOCUSEAL_API_KEY_TEST
    DOCUSEAL_API_URL = os.getenv('DOCUSEAL_API_URL', 'http://localhost:3000')
    DOCUSEAL_BASE_URL = os.getenv('DOCUSEAL_BASE_URL', DOCUSEAL_API_URL)
    DOCUSEAL_SEND_EMAIL = _flag('DOCUSEAL_SEND_EMAIL', 'true')

    # Column detection rules
    COLUMN_RULES_PATH = os.getenv(
        'COLUMN_RULES_PATH',
        str(Path(__file__).parent / 'signing_rules' / 'columns.yml')
    )

    # Temporary preview files
    PREVIEW_DIR = os.getenv('PREVIEW_DIR', str(Path(tempfile.gettempdir()) / 'item_sign_previews'))
    PREVIEW_TTL_SECONDS = int(os.getenv('PREVIEW_TTL_SECONDS', 300))
    PREVIEW_SWEEP_INTERVAL = int(os.getenv('PREVIEW_SWEEP_INTERVAL', 300))
    PREVIEW_SWEEPER_ENABLED = _flag('PREVIEW_SWEEPER_ENABLED', 'true')

    # Signing sessions idle longer than this are dropped on the sweep interval
    SESSION_IDLE_SECONDS = int(os.getenv('SESSION_IDLE_SECONDS', 3600))

    # Local development proxy to DocuSeal and the download relay
    DEV_PROXY_ENABLED = _flag('DEV_PROXY_ENABLED', 'true' if FLASK_ENV == 'development' else 'false')
