import groq
import httpx
import pytest
from unittest.mock import patch, MagicMock

from utils.groq_integration import get_chat_completion, ModelUnavailableError

MESSAGES = [
    {"role": "system", "content": "You are a physiotherapist."},
    {"role": "user", "content": "Hello"},
]


def test_get_chat_completion_success(mock_groq_client):
    """Test successful completion with the configured sampling settings"""
    with patch('utils.groq_integration.Groq', return_value=mock_groq_client) as mock_groq:
        result = get_chat_completion(MESSAGES, api_key="key", model="llama-3.3-70b-versatile",
                                     max_tokens=512, temperature=0.7)

    assert result == "Test response"
    mock_groq.assert_called_once_with(api_key="key", max_retries=0)
    mock_groq_client.chat.completions.create.assert_called_once_with(
        messages=MESSAGES,
        model="llama-3.3-70b-versatile",
        max_tokens=512,
        temperature=0.7,
        stream=False,
    )


def test_get_chat_completion_without_key():
    """A missing key never reaches the client"""
    with patch('utils.groq_integration.Groq') as mock_groq:
        with pytest.raises(ModelUnavailableError):
            get_chat_completion(MESSAGES, api_key=None)

    mock_groq.assert_not_called()


def test_get_chat_completion_status_error(mock_groq_client):
    """Non-success status from the endpoint is reported as unavailable"""
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    mock_groq_client.chat.completions.create.side_effect = groq.APIStatusError(
        "Service unavailable",
        response=httpx.Response(503, request=request),
        body=None,
    )

    with patch('utils.groq_integration.Groq', return_value=mock_groq_client):
        with pytest.raises(ModelUnavailableError):
            get_chat_completion(MESSAGES, api_key="key")

    mock_groq_client.chat.completions.create.assert_called_once()


def test_get_chat_completion_connection_error(mock_groq_client):
    request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
    mock_groq_client.chat.completions.create.side_effect = groq.APIConnectionError(request=request)

    with patch('utils.groq_integration.Groq', return_value=mock_groq_client):
        with pytest.raises(ModelUnavailableError):
            get_chat_completion(MESSAGES, api_key="key")


def test_get_chat_completion_empty_choices(mock_groq_client):
    mock_groq_client.chat.completions.create.return_value = MagicMock(choices=[])

    with patch('utils.groq_integration.Groq', return_value=mock_groq_client):
        assert get_chat_completion(MESSAGES, api_key="key") == ''
