import os
import secrets

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY') or secrets.token_urlsafe(24)
    DEBUG = False
    TESTING = False

    DATABASE_PATH = os.getenv('DATABASE_PATH', os.path.join(BASE_DIR, 'rehab.db'))

    # Model endpoint
    GROQ_API_KEY = os.getenv('GROQ_API_KEY')
    CHAT_MODEL = os.getenv('CHAT_MODEL', 'llama-3.3-70b-versatile')
    CHAT_MAX_TOKENS = int(os.getenv('CHAT_MAX_TOKENS', '512'))
    CHAT_TEMPERATURE = float(os.getenv('CHAT_TEMPERATURE', '0.7'))
    CHAT_HISTORY_LIMIT = int(os.getenv('CHAT_HISTORY_LIMIT', '10'))
    FORMAT_MIN_LENGTH = int(os.getenv('FORMAT_MIN_LENGTH', '100'))

    # Object storage
    STORAGE_ROOT = os.getenv('STORAGE_ROOT', os.path.join(BASE_DIR, 'storage'))
    PUBLIC_STORAGE_URL = os.getenv('PUBLIC_STORAGE_URL', 'http://localhost:5000/storage')
    MAX_RECORD_BYTES = 10 * 1024 * 1024
    # Request bodies past this are rejected with 413 before they are read
    MAX_CONTENT_LENGTH = MAX_RECORD_BYTES + 1024 * 1024

    # UI settings, loaded once and handed to the settings surface
    DEFAULT_THEME = os.getenv('DEFAULT_THEME', 'system')
    THEMES = ('light', 'dark', 'system')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', 'app.log')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    pass


class TestingConfig(Config):
    TESTING = True
    GROQ_API_KEY = 'test-key'
    LOG_FILE = None


config = {
    'default': Config,
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}
