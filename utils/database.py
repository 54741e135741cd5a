import sqlite3
import os
import json
import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Tuple

logger = logging.getLogger(__name__)

# Database file path, replaced by the app factory from configuration
DB_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'rehab.db')

DATABASE_VERSION = 2

SENDER_TYPES = ('user', 'ai')
MESSAGE_TYPES = ('text', 'exercise', 'image')
POST_CATEGORIES = ('all', 'my-doctor', 'exercise-tips', 'inspiration')
NOTIFICATION_TYPES = ('chat', 'exercise', 'achievement', 'doctor')
PROFILE_FIELDS = ('name', 'age', 'location', 'injury_type', 'recovery_goals',
                  'preferred_doctor', 'avatar_url')

# Columns stored as JSON text
_JSON_COLUMNS = ('metadata', 'tags', 'recovery_goals')
_BOOL_COLUMNS = ('read', 'author_verified')


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    """Convert a row to a plain dict, decoding JSON and boolean columns"""
    if row is None:
        return None
    result = dict(row)
    for key in _JSON_COLUMNS:
        if key in result and result[key] is not None:
            try:
                result[key] = json.loads(result[key])
            except (TypeError, ValueError):
                logger.warning(f"Could not decode {key} column, returning raw value")
    for key in _BOOL_COLUMNS:
        if key in result and result[key] is not None:
            result[key] = bool(result[key])
    return result


def _encode_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


@contextmanager
def get_db_connection():
    """
    Context manager for database connections.
    Commits on success, rolls back and re-raises on failure.
    """
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')
    try:
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Database error: {e}")
        raise
    finally:
        conn.close()


def init_db():
    """Initialize the database by creating necessary tables if they don't exist"""
    with get_db_connection() as conn:
        cursor = conn.cursor()

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS doctors (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            specialty TEXT,
            years_experience INTEGER,
            rating REAL,
            profile_picture TEXT,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            bio TEXT,
            profile_picture TEXT,
            doctor_id TEXT REFERENCES doctors(id),
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            age INTEGER,
            location TEXT,
            injury_type TEXT,
            recovery_goals TEXT,
            preferred_doctor TEXT REFERENCES doctors(id),
            avatar_url TEXT,
            created_at TEXT,
            updated_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS chat_conversations (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            doctor_id TEXT NOT NULL REFERENCES doctors(id),
            created_at TEXT,
            updated_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS chat_messages (
            id TEXT PRIMARY KEY,
            conversation_id TEXT NOT NULL REFERENCES chat_conversations(id) ON DELETE CASCADE,
            sender_type TEXT NOT NULL,
            content TEXT NOT NULL,
            message_type TEXT DEFAULT 'text',
            metadata TEXT,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS posts (
            id TEXT PRIMARY KEY,
            author_id TEXT NOT NULL,
            author_name TEXT NOT NULL,
            author_title TEXT NOT NULL,
            author_avatar TEXT NOT NULL,
            author_verified INTEGER DEFAULT 0,
            category TEXT DEFAULT 'all',
            content TEXT NOT NULL,
            image_url TEXT,
            likes INTEGER DEFAULT 0,
            comments INTEGER DEFAULT 0,
            tags TEXT,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS doctor_reviews (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            doctor_id TEXT NOT NULL REFERENCES doctors(id),
            rating INTEGER NOT NULL,
            review_text TEXT NOT NULL,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS health_records (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            file_name TEXT NOT NULL,
            file_url TEXT NOT NULL,
            file_type TEXT,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS notifications (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            read INTEGER DEFAULT 0,
            metadata TEXT,
            created_at TEXT
        )
        ''')

        cursor.execute('''
        CREATE TABLE IF NOT EXISTS database_version (
            version INTEGER PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            description TEXT
        )
        ''')

        _check_and_apply_migrations(cursor)

    logger.info("Database initialized successfully")


def _check_and_apply_migrations(cursor):
    """Check database version and apply necessary migrations"""
    cursor.execute('SELECT MAX(version) FROM database_version')
    result = cursor.fetchone()
    current_version = result[0] if result[0] is not None else 0

    logger.info(f"Current database version: {current_version}, Target version: {DATABASE_VERSION}")

    if current_version < 1:
        _migrate_to_version_1(cursor)

    if current_version < 2:
        _migrate_to_version_2(cursor)


def _migrate_to_version_1(cursor):
    """Migration to version 1: lookup indexes"""
    logger.info("Applying migration to database version 1...")

    cursor.execute('''
    CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON chat_messages(conversation_id, created_at)
    ''')
    cursor.execute('''
    CREATE INDEX IF NOT EXISTS idx_posts_created
    ON posts(created_at)
    ''')
    cursor.execute('''
    CREATE INDEX IF NOT EXISTS idx_notifications_user
    ON notifications(user_id, created_at)
    ''')

    cursor.execute(
        'INSERT INTO database_version (version, description) VALUES (?, ?)',
        (1, 'Lookup indexes for messages, posts and notifications')
    )
    logger.info("Migration to version 1 completed successfully")


def _migrate_to_version_2(cursor):
    """Migration to version 2: one conversation per (user, doctor) pair"""
    logger.info("Applying migration to database version 2...")

    # Keep the oldest conversation of any duplicated pair and move its siblings' messages over
    cursor.execute('''
    SELECT user_id, doctor_id FROM chat_conversations
    GROUP BY user_id, doctor_id HAVING COUNT(*) > 1
    ''')
    duplicated_pairs = cursor.fetchall()

    merged_count = 0
    for user_id, doctor_id in duplicated_pairs:
        cursor.execute(
            'SELECT id FROM chat_conversations WHERE user_id = ? AND doctor_id = ? ORDER BY created_at, rowid',
            (user_id, doctor_id)
        )
        ids = [row[0] for row in cursor.fetchall()]
        keeper, extras = ids[0], ids[1:]
        for extra in extras:
            cursor.execute('UPDATE chat_messages SET conversation_id = ? WHERE conversation_id = ?',
                           (keeper, extra))
            cursor.execute('DELETE FROM chat_conversations WHERE id = ?', (extra,))
            merged_count += 1

    cursor.execute('''
    CREATE UNIQUE INDEX IF NOT EXISTS idx_conversations_pair
    ON chat_conversations(user_id, doctor_id)
    ''')

    cursor.execute(
        'INSERT INTO database_version (version, description) VALUES (?, ?)',
        (2, f'Unique conversation per user and doctor - merged {merged_count} duplicates')
    )
    logger.info(f"Migration to version 2 completed successfully - merged {merged_count} conversations")


# ---- Doctors ----

def create_doctor(name, specialty=None, years_experience=None, rating=None,
                  profile_picture=None, doctor_id=None):
    """Insert a doctor and return its ID"""
    doctor_id = doctor_id or _new_id()
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO doctors (id, name, specialty, years_experience, rating, profile_picture, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (doctor_id, name, specialty, years_experience, rating, profile_picture, _now())
        )
    logger.debug(f"Created doctor {doctor_id}: {name}")
    return doctor_id


def get_doctor(doctor_id) -> Optional[Dict[str, Any]]:
    """Get a doctor by ID, or None"""
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM doctors WHERE id = ?', (doctor_id,)).fetchone()
    return _to_dict(row)


def list_doctors() -> List[Dict[str, Any]]:
    """Get all doctors ordered by name"""
    with get_db_connection() as conn:
        rows = conn.execute('SELECT * FROM doctors ORDER BY name').fetchall()
    return [_to_dict(row) for row in rows]


# ---- Users ----

def create_user(email, name=None, bio=None, doctor_id=None, user_id=None):
    """Insert a user and return its ID"""
    user_id = user_id or _new_id()
    with get_db_connection() as conn:
        conn.execute(
            'INSERT INTO users (id, email, name, bio, doctor_id, created_at) VALUES (?, ?, ?, ?, ?, ?)',
            (user_id, email, name, bio, doctor_id, _now())
        )
    logger.debug(f"Created user {user_id}")
    return user_id


def get_user(user_id) -> Optional[Dict[str, Any]]:
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()
    return _to_dict(row)


# ---- Conversations and messages ----

def find_or_create_conversation(user_id, doctor_id) -> Tuple[str, bool]:
    """
    Return the conversation for a (user, doctor) pair, creating it on a miss.

    The insert is ignored when the pair already exists, so concurrent callers
    always converge on the single surviving row.

    Returns:
        Tuple[str, bool]: (conversation_id, created)
    """
    now = _now()
    with get_db_connection() as conn:
        cursor = conn.execute(
            '''INSERT OR IGNORE INTO chat_conversations (id, user_id, doctor_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?)''',
            (_new_id(), user_id, doctor_id, now, now)
        )
        created = cursor.rowcount > 0
        row = conn.execute(
            'SELECT id FROM chat_conversations WHERE user_id = ? AND doctor_id = ?',
            (user_id, doctor_id)
        ).fetchone()

    if created:
        logger.info(f"Created conversation {row['id']} for user {user_id} and doctor {doctor_id}")
    return row['id'], created


def get_conversation(conversation_id) -> Optional[Dict[str, Any]]:
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM chat_conversations WHERE id = ?', (conversation_id,)).fetchone()
    return _to_dict(row)


def add_message(conversation_id, sender_type, content, message_type='text', metadata=None):
    """
    Append a message to a conversation.

    Returns:
        Dict: The stored message
    """
    if sender_type not in SENDER_TYPES:
        raise ValueError(f"Invalid sender_type: {sender_type}. Must be one of: {SENDER_TYPES}")
    if message_type not in MESSAGE_TYPES:
        raise ValueError(f"Invalid message_type: {message_type}. Must be one of: {MESSAGE_TYPES}")

    message = {
        'id': _new_id(),
        'conversation_id': conversation_id,
        'sender_type': sender_type,
        'content': content,
        'message_type': message_type,
        'metadata': metadata,
        'created_at': _now(),
    }
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO chat_messages (id, conversation_id, sender_type, content, message_type, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)''',
            (message['id'], conversation_id, sender_type, content, message_type,
             _encode_json(metadata), message['created_at'])
        )
        conn.execute(
            'UPDATE chat_conversations SET updated_at = ? WHERE id = ?',
            (message['created_at'], conversation_id)
        )
    return message


def get_messages(conversation_id) -> List[Dict[str, Any]]:
    """Get all messages of a conversation, oldest first"""
    with get_db_connection() as conn:
        rows = conn.execute(
            'SELECT * FROM chat_messages WHERE conversation_id = ? ORDER BY created_at, rowid',
            (conversation_id,)
        ).fetchall()
    return [_to_dict(row) for row in rows]


def get_recent_messages(conversation_id, limit=10) -> List[Dict[str, Any]]:
    """Get the ``limit`` most recent messages of a conversation, oldest first"""
    with get_db_connection() as conn:
        rows = conn.execute(
            '''SELECT * FROM chat_messages WHERE conversation_id = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?''',
            (conversation_id, limit)
        ).fetchall()
    return [_to_dict(row) for row in reversed(rows)]


# ---- Profiles ----

def get_profile(user_id) -> Optional[Dict[str, Any]]:
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM profiles WHERE id = ?', (user_id,)).fetchone()
    return _to_dict(row)


def upsert_profile(user_id, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a profile or update it in place.

    Only the profile columns present in ``fields`` are written; columns left
    out keep their stored value. ``name`` is required.
    """
    if not fields.get('name'):
        raise ValueError("Profile name is required")

    keys = [key for key in PROFILE_FIELDS if key in fields]
    values = {key: fields[key] for key in keys}
    if 'recovery_goals' in values:
        values['recovery_goals'] = _encode_json(values['recovery_goals'])
    now = _now()

    columns = ', '.join(keys)
    placeholders = ', '.join('?' for _ in keys)
    updates = ', '.join(f'{key} = excluded.{key}' for key in keys)
    with get_db_connection() as conn:
        conn.execute(
            f'''INSERT INTO profiles (id, {columns}, created_at, updated_at)
                VALUES (?, {placeholders}, ?, ?)
                ON CONFLICT(id) DO UPDATE SET {updates}, updated_at = excluded.updated_at''',
            (user_id, *[values[key] for key in keys], now, now)
        )
    return get_profile(user_id)


def update_profile_fields(user_id, **fields) -> bool:
    """Update individual profile columns. Returns True if a profile was updated"""
    unknown = set(fields) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
    if not fields:
        return False

    if 'recovery_goals' in fields:
        fields['recovery_goals'] = _encode_json(fields['recovery_goals'])
    assignments = ', '.join(f'{key} = ?' for key in fields)
    with get_db_connection() as conn:
        cursor = conn.execute(
            f'UPDATE profiles SET {assignments}, updated_at = ? WHERE id = ?',
            (*fields.values(), _now(), user_id)
        )
        return cursor.rowcount > 0


def delete_profile(user_id) -> bool:
    with get_db_connection() as conn:
        cursor = conn.execute('DELETE FROM profiles WHERE id = ?', (user_id,))
        return cursor.rowcount > 0


# ---- Posts ----

def create_post(author_id, author_name, author_title, author_avatar, content,
                category='all', tags=None, image_url=None, author_verified=False):
    """Insert a feed post and return it"""
    if category not in POST_CATEGORIES:
        raise ValueError(f"Invalid category: {category}. Must be one of: {POST_CATEGORIES}")
    post_id = _new_id()
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO posts (id, author_id, author_name, author_title, author_avatar, author_verified,
                                  category, content, image_url, tags, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
            (post_id, author_id, author_name, author_title, author_avatar, int(bool(author_verified)),
             category, content, image_url, _encode_json(tags or []), _now())
        )
    return get_post(post_id)


def get_post(post_id) -> Optional[Dict[str, Any]]:
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM posts WHERE id = ?', (post_id,)).fetchone()
    return _to_dict(row)


def list_posts() -> List[Dict[str, Any]]:
    """Get all posts, newest first"""
    with get_db_connection() as conn:
        rows = conn.execute('SELECT * FROM posts ORDER BY created_at DESC, rowid DESC').fetchall()
    return [_to_dict(row) for row in rows]


def like_post(post_id) -> Optional[int]:
    """Increment a post's like counter. Returns the new count, or None if the post is missing"""
    with get_db_connection() as conn:
        cursor = conn.execute(
            'UPDATE posts SET likes = COALESCE(likes, 0) + 1 WHERE id = ?', (post_id,)
        )
        if cursor.rowcount == 0:
            return None
        row = conn.execute('SELECT likes FROM posts WHERE id = ?', (post_id,)).fetchone()
    return row['likes']


# ---- Reviews ----

def add_review(user_id, doctor_id, rating, review_text) -> Dict[str, Any]:
    review = {
        'id': _new_id(),
        'user_id': user_id,
        'doctor_id': doctor_id,
        'rating': rating,
        'review_text': review_text,
        'created_at': _now(),
    }
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO doctor_reviews (id, user_id, doctor_id, rating, review_text, created_at)
               VALUES (:id, :user_id, :doctor_id, :rating, :review_text, :created_at)''',
            review
        )
    return review


def list_reviews(user_id) -> List[Dict[str, Any]]:
    with get_db_connection() as conn:
        rows = conn.execute(
            'SELECT * FROM doctor_reviews WHERE user_id = ? ORDER BY created_at DESC, rowid DESC',
            (user_id,)
        ).fetchall()
    return [_to_dict(row) for row in rows]


# ---- Health records ----

def add_health_record(user_id, file_name, file_url, file_type=None) -> Dict[str, Any]:
    record = {
        'id': _new_id(),
        'user_id': user_id,
        'file_name': file_name,
        'file_url': file_url,
        'file_type': file_type,
        'created_at': _now(),
    }
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO health_records (id, user_id, file_name, file_url, file_type, created_at)
               VALUES (:id, :user_id, :file_name, :file_url, :file_type, :created_at)''',
            record
        )
    return record


def get_health_record(record_id) -> Optional[Dict[str, Any]]:
    with get_db_connection() as conn:
        row = conn.execute('SELECT * FROM health_records WHERE id = ?', (record_id,)).fetchone()
    return _to_dict(row)


def list_health_records(user_id) -> List[Dict[str, Any]]:
    with get_db_connection() as conn:
        rows = conn.execute(
            'SELECT * FROM health_records WHERE user_id = ? ORDER BY created_at DESC, rowid DESC',
            (user_id,)
        ).fetchall()
    return [_to_dict(row) for row in rows]


def delete_health_record(record_id) -> bool:
    with get_db_connection() as conn:
        cursor = conn.execute('DELETE FROM health_records WHERE id = ?', (record_id,))
        return cursor.rowcount > 0


def delete_health_records_for_user(user_id) -> int:
    with get_db_connection() as conn:
        cursor = conn.execute('DELETE FROM health_records WHERE user_id = ?', (user_id,))
        return cursor.rowcount


# ---- Notifications ----

def create_notification(user_id, notification_type, title, message, metadata=None) -> Dict[str, Any]:
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Invalid notification type: {notification_type}. Must be one of: {NOTIFICATION_TYPES}")
    notification = {
        'id': _new_id(),
        'user_id': user_id,
        'type': notification_type,
        'title': title,
        'message': message,
        'read': False,
        'metadata': metadata,
        'created_at': _now(),
    }
    with get_db_connection() as conn:
        conn.execute(
            '''INSERT INTO notifications (id, user_id, type, title, message, read, metadata, created_at)
               VALUES (?, ?, ?, ?, ?, 0, ?, ?)''',
            (notification['id'], user_id, notification_type, title, message,
             _encode_json(metadata), notification['created_at'])
        )
    return notification


def list_notifications(user_id, unread_only=False) -> List[Dict[str, Any]]:
    query = 'SELECT * FROM notifications WHERE user_id = ?'
    if unread_only:
        query += ' AND read = 0'
    query += ' ORDER BY created_at DESC, rowid DESC'
    with get_db_connection() as conn:
        rows = conn.execute(query, (user_id,)).fetchall()
    return [_to_dict(row) for row in rows]


def mark_notification_read(notification_id, user_id) -> bool:
    with get_db_connection() as conn:
        cursor = conn.execute(
            'UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?',
            (notification_id, user_id)
        )
        return cursor.rowcount > 0
