import logging
from typing import Any, Dict, Tuple

from utils import database
from utils.formatting import split_numbered_points

logger = logging.getLogger(__name__)


class DoctorNotFoundError(Exception):
    """Raised when a doctor id does not resolve to a known doctor"""


def find_or_create_conversation(user_id, doctor_id) -> Tuple[str, bool]:
    """Conversation id for the pair and whether this call created it"""
    return database.find_or_create_conversation(user_id, doctor_id)


def greeting_message(doctor: Dict[str, Any], conversation_id=None) -> Dict[str, Any]:
    """Opening line shown for an empty conversation. Never stored."""
    specialty = doctor.get('specialty') or 'rehabilitation'
    content = (
        f"Hello! I'm {doctor['name']}, your AI-enhanced {specialty} specialist. "
        "I'm here to help guide your rehabilitation journey. How are you feeling today?"
    )
    return {
        'id': None,
        'conversation_id': conversation_id,
        'sender_type': 'ai',
        'content': content,
        'message_type': 'text',
        'metadata': {'greeting': True},
        'created_at': None,
        'persisted': False,
    }


def present_message(message: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the numbered-list split to assistant messages"""
    message = dict(message)
    message.setdefault('persisted', True)
    if message['sender_type'] == 'ai':
        message['formatted'] = split_numbered_points(message['content'])
    return message


def load_conversation(user_id, doctor_id) -> Dict[str, Any]:
    """
    Ensure the (user, doctor) conversation exists and load its history.

    Raises:
        DoctorNotFoundError: If the doctor does not exist
    """
    doctor = database.get_doctor(doctor_id)
    if not doctor:
        raise DoctorNotFoundError(f"Doctor {doctor_id} not found")

    conversation_id, created = find_or_create_conversation(user_id, doctor_id)
    messages = database.get_messages(conversation_id)
    if not messages:
        messages = [greeting_message(doctor, conversation_id)]

    logger.debug(f"Loaded conversation {conversation_id} with {len(messages)} messages")
    return {
        'conversation_id': conversation_id,
        'created': created,
        'doctor': doctor,
        'messages': [present_message(message) for message in messages],
    }
