import os

# Production defaults; set before config is imported
os.environ.setdefault('FLASK_ENV', 'production')

from app import create_app

application = create_app()
