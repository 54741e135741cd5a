from flask import Blueprint, request, jsonify, current_app, g
import logging
import os
import time

from werkzeug.utils import secure_filename

from utils import database
from utils.auth import require_user
from utils.formatting import split_numbered_points
from utils.storage import (
    get_storage, StorageError, PROFILE_PICTURES_BUCKET, HEALTH_RECORDS_BUCKET
)

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)

EXERCISE_TAGS = ('exercise', 'rehabilitation')


# ---- Professionals directory ----

@api_bp.route('/doctors', methods=['GET'])
def list_doctors():
    """List all doctors ordered by name"""
    try:
        return jsonify({
            'status': 'success',
            'doctors': database.list_doctors()
        })
    except Exception as e:
        logger.error(f'Error listing doctors: {str(e)}', exc_info=True)
        return jsonify({
            'status': 'error',
            'message': f'Error listing doctors: {str(e)}'
        }), 500


@api_bp.route('/doctors/<doctor_id>', methods=['GET'])
def get_doctor(doctor_id):
    doctor = database.get_doctor(doctor_id)
    if not doctor:
        return jsonify({
            'status': 'error',
            'message': f'Doctor with ID {doctor_id} not found'
        }), 404
    return jsonify({
        'status': 'success',
        'doctor': doctor
    })


# ---- Profile ----

@api_bp.route('/profile', methods=['GET'])
@require_user
def get_profile():
    profile = database.get_profile(g.user['id'])
    if not profile:
        return jsonify({
            'status': 'error',
            'message': 'Profile not found'
        }), 404
    return jsonify({
        'status': 'success',
        'profile': profile
    })


@api_bp.route('/profile', methods=['PUT'])
@require_user
def save_profile():
    """Create or update the caller's profile"""
    data = request.get_json(silent=True)
    if not data or not str(data.get('name') or '').strip():
        return jsonify({
            'status': 'error',
            'message': 'Profile name is required'
        }), 400

    goals = data.get('recovery_goals')
    if goals is not None and not isinstance(goals, list):
        return jsonify({
            'status': 'error',
            'message': 'recovery_goals must be a list'
        }), 400

    preferred = data.get('preferred_doctor')
    if preferred and not database.get_doctor(preferred):
        return jsonify({
            'status': 'error',
            'message': f'Doctor with ID {preferred} not found'
        }), 404

    try:
        profile = database.upsert_profile(g.user['id'], data)
        logger.info(f"Profile saved for user {g.user['id']}")
        return jsonify({
            'status': 'success',
            'message': 'Profile updated successfully',
            'profile': profile
        })
    except Exception as e:
        logger.error(f'Error updating profile: {str(e)}', exc_info=True)
        return jsonify({
            'status': 'error',
            'message': f'Error updating profile: {str(e)}'
        }), 500


@api_bp.route('/profile/preferred-doctor', methods=['PUT'])
@require_user
def set_preferred_doctor():
    data = request.get_json(silent=True)
    if not data or 'doctor_id' not in data:
        return jsonify({
            'status': 'error',
            'message': 'No doctor specified'
        }), 400

    doctor_id = data['doctor_id']
    if not database.get_doctor(doctor_id):
        return jsonify({
            'status': 'error',
            'message': f'Doctor with ID {doctor_id} not found'
        }), 404

    if not database.update_profile_fields(g.user['id'], preferred_doctor=doctor_id):
        return jsonify({
            'status': 'error',
            'message': 'Profile not found'
        }), 404

    return jsonify({
        'status': 'success',
        'message': 'Preferred doctor updated',
        'preferred_doctor': doctor_id
    })


@api_bp.route('/profile/avatar', methods=['POST'])
@require_user
def upload_avatar():
    """Store a profile picture and point the profile at its public URL"""
    upload = request.files.get('file')
    if not upload or not upload.filename:
        return jsonify({
            'status': 'error',
            'message': 'No file provided'
        }), 400

    if not database.get_profile(g.user['id']):
        return jsonify({
            'status': 'error',
            'message': 'Profile not found'
        }), 404

    extension = os.path.splitext(upload.filename)[1].lstrip('.') or 'bin'
    object_path = f"{g.user['id']}-{int(time.time() * 1000)}.{extension}"
    try:
        public_url = get_storage(current_app.config).upload(
            PROFILE_PICTURES_BUCKET, object_path, upload.read()
        )
        database.update_profile_fields(g.user['id'], avatar_url=public_url)
    except StorageError as e:
        logger.error(f'Error uploading avatar: {str(e)}')
        return jsonify({
            'status': 'error',
            'message': f'Failed to upload profile picture: {str(e)}'
        }), 500

    return jsonify({
        'status': 'success',
        'message': 'Profile picture updated successfully',
        'avatar_url': public_url
    })


# ---- Doctor reviews ----

@api_bp.route('/reviews', methods=['GET'])
@require_user
def list_reviews():
    return jsonify({
        'status': 'success',
        'reviews': database.list_reviews(g.user['id'])
    })


@api_bp.route('/reviews', methods=['POST'])
@require_user
def add_review():
    """Review the caller's preferred doctor"""
    data = request.get_json(silent=True) or {}
    text = str(data.get('text') or '').strip()
    if not text:
        return jsonify({
            'status': 'error',
            'message': 'Review text is required'
        }), 400

    rating = data.get('rating', 5)
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        return jsonify({
            'status': 'error',
            'message': 'Rating must be an integer between 1 and 5'
        }), 400

    profile = database.get_profile(g.user['id'])
    if not profile or not profile.get('preferred_doctor'):
        return jsonify({
            'status': 'error',
            'message': 'Choose a preferred doctor before writing a review'
        }), 400

    review = database.add_review(g.user['id'], profile['preferred_doctor'], rating, text)
    return jsonify({
        'status': 'success',
        'message': 'Review added successfully',
        'review': review
    }), 201


# ---- Feed ----

def filter_posts_by_category(posts, category, preferred_doctor=None):
    """Apply the feed tabs: all, my-doctor and exercise-tips"""
    if category == 'my-doctor':
        if not preferred_doctor:
            return posts
        return [post for post in posts if post['author_name'] == preferred_doctor['name']]
    if category == 'exercise-tips':
        return [
            post for post in posts
            if post.get('category') in ('exercise-tips', 'exercise_tips')
            or any(tag in (post.get('tags') or []) for tag in EXERCISE_TAGS)
        ]
    return posts


@api_bp.route('/posts', methods=['GET'])
@require_user
def list_posts():
    category = request.args.get('category', 'all')
    try:
        preferred_doctor = None
        profile = database.get_profile(g.user['id'])
        if profile and profile.get('preferred_doctor'):
            preferred_doctor = database.get_doctor(profile['preferred_doctor'])

        posts = filter_posts_by_category(database.list_posts(), category, preferred_doctor)
        for post in posts:
            post['formatted'] = split_numbered_points(post['content'])

        return jsonify({
            'status': 'success',
            'category': category,
            'posts': posts
        })
    except Exception as e:
        logger.error(f'Error fetching posts: {str(e)}', exc_info=True)
        return jsonify({
            'status': 'error',
            'message': 'Failed to load feed posts'
        }), 500


@api_bp.route('/posts', methods=['POST'])
@require_user
def create_post():
    data = request.get_json(silent=True) or {}
    content = str(data.get('content') or '').strip()
    if not content:
        return jsonify({
            'status': 'error',
            'message': 'Post content is required'
        }), 400

    user = g.user
    name = user.get('name') or user['email']
    try:
        post = database.create_post(
            author_id=user['id'],
            author_name=name,
            author_title=data.get('author_title') or 'Patient',
            author_avatar=user.get('profile_picture') or name[:2].upper(),
            content=content,
            category=data.get('category', 'all'),
            tags=data.get('tags') or [],
            image_url=data.get('image_url'),
        )
    except ValueError as e:
        return jsonify({
            'status': 'error',
            'message': str(e)
        }), 400

    return jsonify({
        'status': 'success',
        'post': post
    }), 201


@api_bp.route('/posts/<post_id>/like', methods=['POST'])
@require_user
def like_post(post_id):
    likes = database.like_post(post_id)
    if likes is None:
        return jsonify({
            'status': 'error',
            'message': f'Post with ID {post_id} not found'
        }), 404
    return jsonify({
        'status': 'success',
        'likes': likes
    })


# ---- Settings ----

@api_bp.route('/settings', methods=['GET'])
@require_user
def get_settings():
    return jsonify({
        'status': 'success',
        'theme': current_app.config['DEFAULT_THEME'],
        'themes': list(current_app.config['THEMES'])
    })


@api_bp.route('/health-records', methods=['GET'])
@require_user
def list_health_records():
    return jsonify({
        'status': 'success',
        'records': database.list_health_records(g.user['id'])
    })


@api_bp.route('/health-records', methods=['POST'])
@require_user
def upload_health_record():
    """Store a health record file and register it"""
    upload = request.files.get('file')
    if not upload or not upload.filename:
        return jsonify({
            'status': 'error',
            'message': 'No file provided'
        }), 400

    safe_name = secure_filename(upload.filename)
    if not safe_name:
        return jsonify({
            'status': 'error',
            'message': 'Invalid file name'
        }), 400

    data = upload.read()
    if len(data) > current_app.config['MAX_RECORD_BYTES']:
        return jsonify({
            'status': 'error',
            'message': 'File size must be less than 10MB'
        }), 400

    object_path = f"{g.user['id']}/{int(time.time() * 1000)}-{safe_name}"
    try:
        public_url = get_storage(current_app.config).upload(HEALTH_RECORDS_BUCKET, object_path, data)
    except StorageError as e:
        logger.error(f'Error uploading health record: {str(e)}')
        return jsonify({
            'status': 'error',
            'message': 'Failed to upload health record'
        }), 500

    record = database.add_health_record(g.user['id'], upload.filename, public_url, upload.mimetype)
    return jsonify({
        'status': 'success',
        'message': 'Health record uploaded successfully',
        'record': record
    }), 201


@api_bp.route('/health-records/<record_id>', methods=['DELETE'])
@require_user
def delete_health_record(record_id):
    record = database.get_health_record(record_id)
    if not record or record['user_id'] != g.user['id']:
        return jsonify({
            'status': 'error',
            'message': f'Health record with ID {record_id} not found'
        }), 404

    storage = get_storage(current_app.config)
    object_path = storage.path_from_url(HEALTH_RECORDS_BUCKET, record['file_url'])
    if object_path:
        try:
            storage.remove(HEALTH_RECORDS_BUCKET, [object_path])
        except StorageError as e:
            logger.warning(f'Storage deletion warning: {str(e)}')

    database.delete_health_record(record_id)
    return jsonify({
        'status': 'success',
        'message': 'Health record deleted successfully'
    })


@api_bp.route('/account', methods=['DELETE'])
@require_user
def delete_account():
    """Remove the caller's profile and health records"""
    user_id = g.user['id']
    try:
        database.delete_profile(user_id)
    except Exception as e:
        logger.warning(f'Profile deletion warning: {str(e)}')
    try:
        database.delete_health_records_for_user(user_id)
    except Exception as e:
        logger.warning(f'Records deletion warning: {str(e)}')

    logger.info(f'Account deletion processed for user {user_id}')
    return jsonify({
        'status': 'success',
        'message': 'Your account deletion request has been processed.'
    })


# ---- Notifications ----

@api_bp.route('/notifications', methods=['GET'])
@require_user
def list_notifications():
    unread_only = request.args.get('unread') == 'true'
    return jsonify({
        'status': 'success',
        'notifications': database.list_notifications(g.user['id'], unread_only=unread_only)
    })


@api_bp.route('/notifications/<notification_id>/read', methods=['POST'])
@require_user
def mark_notification_read(notification_id):
    if not database.mark_notification_read(notification_id, g.user['id']):
        return jsonify({
            'status': 'error',
            'message': f'Notification with ID {notification_id} not found'
        }), 404
    return jsonify({
        'status': 'success',
        'message': 'Notification marked as read'
    })
