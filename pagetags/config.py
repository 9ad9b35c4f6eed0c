import os
from dotenv import load_dotenv

load_dotenv()


def env_flag(name, default=False):
    """Read a boolean environment variable ('1', 'true', 'yes', 'on')."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Security
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    # Fernet key for encrypt_number/decrypt_number; derived from SECRET_KEY when unset
    ENCRYPTION_KEY = os.getenv('ENCRYPTION_KEY', '')

    # Flask
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = os.getenv('FLASK_ENV') == 'development'

    # Templates
    # Development mode recompiles templates on every render so edits show up immediately
    TEMPLATE_DEV_MODE = env_flag('TEMPLATE_DEV_MODE', DEBUG)
    TEMPLATE_ROOT = os.getenv('TEMPLATE_ROOT', '')

    # Static snippets
    TURBO_URL = os.getenv('TURBO_URL', 'https://cdn.jsdelivr.net/npm/@hotwired/turbo@8/dist/turbo.es2017-esm.min.js')
