import pytest
from unittest.mock import MagicMock

from app_factory import create_app
from utils import database


@pytest.fixture
def test_db(tmp_path):
    """Point the data store at a fresh temporary database"""
    original_path = database.DB_PATH
    database.DB_PATH = str(tmp_path / 'test.db')
    database.init_db()

    yield database.DB_PATH

    database.DB_PATH = original_path


@pytest.fixture
def app(tmp_path):
    """Application configured for testing with a temporary database and storage root"""
    original_path = database.DB_PATH
    app = create_app('testing', {
        'DATABASE_PATH': str(tmp_path / 'app.db'),
        'STORAGE_ROOT': str(tmp_path / 'storage'),
        'PUBLIC_STORAGE_URL': 'http://testserver/storage',
    })

    yield app

    database.DB_PATH = original_path


@pytest.fixture
def client(app):
    """Create a test client"""
    with app.test_client() as client:
        yield client


@pytest.fixture
def doctor(app):
    """A doctor present in the store"""
    doctor_id = database.create_doctor(
        name='Dr. Sarah Chen',
        specialty='Physical Therapist',
        years_experience=15,
        rating=4.9
    )
    return database.get_doctor(doctor_id)


@pytest.fixture
def user_id(app):
    return database.create_user('patient@example.com', name='Alex Patient')


@pytest.fixture
def auth_headers(user_id):
    return {'X-User-Id': user_id}


@pytest.fixture
def mock_groq_client():
    """Mock Groq client for testing"""
    mock = MagicMock()
    mock.chat.completions.create.return_value = MagicMock(
        choices=[MagicMock(message=MagicMock(content="Test response"))]
    )
    return mock


@pytest.fixture
def mock_conversation_history():
    """Sample conversation history for testing"""
    return [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Hi, how can I help you today?"}
    ]


@pytest.fixture
def chat_settings():
    """Model and history settings as the chat proxy reads them"""
    return {
        'GROQ_API_KEY': 'test-key',
        'CHAT_MODEL': 'llama-3.3-70b-versatile',
        'CHAT_MAX_TOKENS': 512,
        'CHAT_TEMPERATURE': 0.7,
        'CHAT_HISTORY_LIMIT': 10,
        'FORMAT_MIN_LENGTH': 100,
    }
