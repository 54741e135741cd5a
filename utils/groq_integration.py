import logging

import groq
from groq import Groq

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.3-70b-versatile"


class ModelUnavailableError(Exception):
    """Raised when the chat-completion endpoint cannot produce a reply"""


def get_chat_completion(messages, api_key, model=DEFAULT_MODEL, max_tokens=512, temperature=0.7):
    """
    Send one chat-completion request to Groq.

    The request is made exactly once: the client is built with retries
    disabled and nothing here loops.

    Args:
        messages (list): ``{"role", "content"}`` dicts, system message first
        api_key (str): Groq API key
        model (str): The Groq model to use
        max_tokens (int): Upper bound on generated tokens
        temperature (float): Sampling temperature

    Returns:
        str: The reply text, possibly empty

    Raises:
        ModelUnavailableError: Missing key, transport failure or non-success status
    """
    if not api_key:
        raise ModelUnavailableError("GROQ_API_KEY is not configured")

    logger.debug(f"Requesting completion from {model} with {len(messages)} messages")

    try:
        client = Groq(api_key=api_key, max_retries=0)
        chat_completion = client.chat.completions.create(
            messages=messages,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            stream=False,
        )
    except groq.APIError as api_error:
        logger.error(f"Groq API error: {api_error}")
        raise ModelUnavailableError(str(api_error)) from api_error

    if not chat_completion.choices:
        return ''
    return chat_completion.choices[0].message.content or ''
