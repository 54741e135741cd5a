"""
Chat proxy: one patient message in, one doctor-persona reply out.

Every path returns a body the chat view can render directly. Only structural
problems (bad input, unknown doctor) are reported as client errors; model
failures are masked behind a fixed safety checklist.
"""

import logging
from typing import Any, Dict, List, Tuple

from utils import database
from utils.formatting import ensure_numbered_list
from utils.groq_integration import get_chat_completion, ModelUnavailableError, DEFAULT_MODEL

logger = logging.getLogger(__name__)

UNAVAILABLE_FALLBACK = """I apologize, but I'm having trouble connecting right now. Here's what I recommend in the meantime:

1. Continue with your prescribed exercise routine as directed
2. Apply ice or heat therapy as previously recommended
3. Take any prescribed medications as scheduled
4. Monitor your symptoms and note any changes
5. Contact me again if symptoms worsen or if you have urgent concerns

Please try reaching out again in a few moments, and I'll be happy to provide more specific guidance."""

ERROR_FALLBACK = """I apologize for the technical difficulty. Here's some general guidance:

1. Continue with your current treatment plan as prescribed
2. Monitor your symptoms and keep a daily log
3. Maintain regular exercise within your comfort zone
4. Apply appropriate rest and recovery techniques
5. Contact your healthcare provider if you experience any concerning symptoms

Please try again shortly, and I'll provide more personalized assistance."""

EMPTY_REPLY = "I apologize, but I was unable to process your request. Please try again."

SYSTEM_PROMPT_TEMPLATE = """You are {name}, a {specialty} with {years_experience} years of experience.

IMPORTANT FORMATTING INSTRUCTIONS:
- ALWAYS format your response with clear, actionable bullet points
- Use numbered lists (1., 2., 3., etc.) for step-by-step instructions
- Keep each point concise and specific
- Focus on practical, actionable advice
- Maintain a professional but empathetic tone

Respond professionally and empathetically to this patient's message. Provide helpful, medically-informed guidance while maintaining a caring tone. Always format your responses with clear bullet points or numbered lists for easy reading.

Example format:
I understand your concern about [issue]. Here's what I recommend:

1. [First specific action/advice]
2. [Second specific action/advice]
3. [Third specific action/advice]

Remember to always advise seeking immediate medical attention for serious symptoms."""


def build_system_prompt(doctor: Dict[str, Any]) -> str:
    """Persona and output-shape instruction for the given doctor"""
    return SYSTEM_PROMPT_TEMPLATE.format(
        name=doctor['name'],
        specialty=doctor.get('specialty') or 'rehabilitation specialist',
        years_experience=doctor.get('years_experience') or 0,
    )


def load_history(conversation_id, limit=10, exclude_message_id=None) -> List[Dict[str, str]]:
    """The most recent ``limit`` messages as chat roles, oldest first.

    ``exclude_message_id`` leaves out one stored message, normally the
    utterance being answered.
    """
    if exclude_message_id:
        messages = database.get_recent_messages(conversation_id, limit + 1)
        messages = [m for m in messages if m['id'] != exclude_message_id][-limit:]
    else:
        messages = database.get_recent_messages(conversation_id, limit)
    return [
        {
            'role': 'user' if message['sender_type'] == 'user' else 'assistant',
            'content': message['content'],
        }
        for message in messages
    ]


def build_messages(doctor, history, message) -> List[Dict[str, str]]:
    messages = [{'role': 'system', 'content': build_system_prompt(doctor)}]
    messages.extend(history)
    messages.append({'role': 'user', 'content': message})
    return messages


def handle_chat_request(payload, settings, exclude_message_id=None) -> Tuple[Dict[str, Any], int]:
    """
    Turn one chat request into a reply body and an HTTP status.

    Args:
        payload (dict): ``{"message", "doctorId", "conversationId"?}``; may be None
        settings (Mapping): Application configuration
        exclude_message_id (str): Stored message to leave out of the history

    Returns:
        Tuple[Dict, int]: Response body and status code
    """
    payload = payload if isinstance(payload, dict) else {}
    message = payload.get('message')
    doctor_id = payload.get('doctorId')
    conversation_id = payload.get('conversationId')

    if not isinstance(message, str) or not message.strip() or not doctor_id:
        logger.warning("Chat request rejected: message and doctorId are required")
        return {
            'error': 'Message and doctorId are required',
            'response': 'Please enter a message and choose a doctor to chat with.',
        }, 400

    try:
        doctor = database.get_doctor(doctor_id)
        if not doctor:
            logger.warning(f"Chat request for unknown doctor {doctor_id}")
            return {
                'error': 'Doctor not found',
                'response': 'The selected doctor is not available. Please choose another professional.',
            }, 404

        history = []
        if conversation_id:
            history = load_history(conversation_id, settings.get('CHAT_HISTORY_LIMIT', 10),
                                   exclude_message_id=exclude_message_id)
        logger.info(f"Chat request for doctor {doctor_id} with {len(history)} history messages")

        messages = build_messages(doctor, history, message)

        try:
            reply = get_chat_completion(
                messages,
                api_key=settings.get('GROQ_API_KEY'),
                model=settings.get('CHAT_MODEL', DEFAULT_MODEL),
                max_tokens=settings.get('CHAT_MAX_TOKENS', 512),
                temperature=settings.get('CHAT_TEMPERATURE', 0.7),
            )
        except ModelUnavailableError as e:
            logger.error(f"Model unavailable, returning fallback reply: {e}")
            return {
                'response': UNAVAILABLE_FALLBACK,
                'doctorName': doctor['name'],
                'specialty': doctor.get('specialty'),
            }, 200

        if reply.strip():
            reply = ensure_numbered_list(reply, settings.get('FORMAT_MIN_LENGTH', 100))
        else:
            reply = EMPTY_REPLY

        return {
            'response': reply,
            'doctorName': doctor['name'],
            'specialty': doctor.get('specialty'),
        }, 200

    except Exception as e:
        logger.error(f"Error in chat function: {e}", exc_info=True)
        return {
            'response': ERROR_FALLBACK,
            'error': 'Internal server error',
        }, 500
