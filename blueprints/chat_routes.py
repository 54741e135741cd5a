from flask import Blueprint, request, jsonify, current_app, g
import logging

from utils.auth import require_user
from utils.chat_proxy import handle_chat_request
from utils.conversation_loader import (
    load_conversation, find_or_create_conversation, present_message, DoctorNotFoundError
)
from utils.database import add_message, get_doctor

logger = logging.getLogger(__name__)

chat_bp = Blueprint('chat', __name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type, x-user-id',
}


@chat_bp.after_request
def add_cors_headers(response):
    for header, value in CORS_HEADERS.items():
        response.headers[header] = value
    return response


@chat_bp.route('/functions/chat', methods=['POST', 'OPTIONS'])
def chat_function():
    """Chat proxy: one message in, one doctor reply out"""
    if request.method == 'OPTIONS':
        return '', 204

    body, status = handle_chat_request(request.get_json(silent=True), current_app.config)
    return jsonify(body), status


@chat_bp.route('/api/chat/<doctor_id>', methods=['GET'])
@require_user
def open_chat(doctor_id):
    """Find or create the conversation with a doctor and load its history"""
    try:
        conversation = load_conversation(g.user['id'], doctor_id)
    except DoctorNotFoundError:
        return jsonify({
            'status': 'error',
            'message': f'Doctor with ID {doctor_id} not found'
        }), 404
    except Exception as e:
        logger.error(f'Error loading conversation: {str(e)}', exc_info=True)
        return jsonify({
            'status': 'error',
            'message': f'Error loading conversation: {str(e)}'
        }), 500

    return jsonify({
        'status': 'success',
        **conversation
    })


@chat_bp.route('/api/chat/<doctor_id>/messages', methods=['POST'])
@require_user
def send_chat_message(doctor_id):
    """
    Persist a patient message, ask the chat proxy for a reply and persist it.

    The three steps are independent writes; a failure after the first leaves
    the patient message stored without a reply.
    """
    data = request.get_json(silent=True) or {}
    content = data.get('message')
    if not isinstance(content, str) or not content.strip():
        return jsonify({
            'status': 'error',
            'message': 'No message specified'
        }), 400

    if not get_doctor(doctor_id):
        return jsonify({
            'status': 'error',
            'message': f'Doctor with ID {doctor_id} not found'
        }), 404

    try:
        conversation_id, _ = find_or_create_conversation(g.user['id'], doctor_id)
        user_message = add_message(conversation_id, 'user', content)
    except Exception as e:
        logger.error(f'Error storing chat message: {str(e)}', exc_info=True)
        return jsonify({
            'status': 'error',
            'message': f'Error storing chat message: {str(e)}'
        }), 500

    body, proxy_status = handle_chat_request(
        {'message': content, 'doctorId': doctor_id, 'conversationId': conversation_id},
        current_app.config,
        exclude_message_id=user_message['id']
    )

    reply = None
    if body.get('response'):
        try:
            reply = add_message(conversation_id, 'ai', body['response'],
                                metadata={'proxy_status': proxy_status})
        except Exception as e:
            logger.error(f'Error storing assistant reply: {str(e)}', exc_info=True)
            reply = {
                'id': None,
                'conversation_id': conversation_id,
                'sender_type': 'ai',
                'content': body['response'],
                'message_type': 'text',
                'metadata': {'proxy_status': proxy_status},
                'created_at': None,
                'persisted': False,
            }

    return jsonify({
        'status': 'success' if proxy_status == 200 else 'error',
        'conversation_id': conversation_id,
        'user_message': present_message(user_message),
        'assistant_message': present_message(reply) if reply else None,
        'doctorName': body.get('doctorName'),
        'specialty': body.get('specialty'),
        'proxy_status': proxy_status
    }), 200
