# database.py - Portal database setup and management
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import config
from config import logger

# Thread-local storage for database connections
local_storage = threading.local()

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_db_connection():
    """Get database connection with thread safety"""
    if not hasattr(local_storage, 'conn'):
        local_storage.conn = sqlite3.connect(config.DATABASE)
        local_storage.conn.row_factory = sqlite3.Row
        local_storage.conn.execute('PRAGMA foreign_keys = ON')
    return local_storage.conn


def close_db_connection():
    """Close database connection for current thread"""
    if hasattr(local_storage, 'conn'):
        local_storage.conn.close()
        delattr(local_storage, 'conn')


@contextmanager
def transaction(immediate=False):
    """Run several statements as one unit, rolling back on any error

    With immediate=True the write lock is taken up front so read-then-insert
    sequences cannot interleave with another connection.
    """
    conn = get_db_connection()
    if immediate and not conn.in_transaction:
        conn.execute('BEGIN IMMEDIATE')
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def row_to_dict(row):
    if row is None:
        return None
    return {key: row[key] for key in row.keys()}


def rows_to_dicts(rows):
    return [row_to_dict(row) for row in rows]


def format_timestamp(value):
    return value.strftime(TIMESTAMP_FORMAT)


def init_db():
    """Initialize database tables"""
    try:
        conn = get_db_connection()
        cursor = conn.cursor()

        # Portal users (one per Discord login)
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                name TEXT,
                email TEXT,
                image TEXT,
                email_verified BOOLEAN DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        # Linked OAuth accounts; account_id holds the Discord user ID
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                provider_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(provider_id, account_id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                ip_address TEXT,
                user_agent TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS whitelist_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                serial_number TEXT UNIQUE,
                user_id TEXT NOT NULL,
                form_data TEXT NOT NULL,
                status TEXT DEFAULT 'pending',
                notes TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS whitelist_questions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                question TEXT NOT NULL,
                field_name TEXT UNIQUE NOT NULL,
                field_type TEXT NOT NULL,
                placeholder TEXT,
                required BOOLEAN DEFAULT 1,
                category TEXT DEFAULT 'general',
                options TEXT,
                min_value INTEGER,
                max_value INTEGER,
                min_length INTEGER,
                max_length INTEGER,
                order_index INTEGER DEFAULT 0,
                is_active BOOLEAN DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS rule_sections (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                icon TEXT,
                order_index INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS rule_subcategories (
                id TEXT PRIMARY KEY,
                section_id TEXT NOT NULL,
                title TEXT NOT NULL,
                icon TEXT,
                order_index INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS rules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                section_id TEXT NOT NULL,
                subcategory_id TEXT,
                content TEXT NOT NULL,
                order_index INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                nazev TEXT NOT NULL,
                popis TEXT NOT NULL,
                obrazek TEXT,
                icon TEXT,
                odmena TEXT,
                vzdalenost TEXT,
                cas TEXT,
                riziko TEXT NOT NULL,
                riziko_level TEXT NOT NULL,
                category TEXT NOT NULL,
                span INTEGER DEFAULT 1,
                gradient TEXT,
                border_color TEXT,
                glow_color TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS photo_contests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                start_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                end_date TIMESTAMP,
                status TEXT DEFAULT 'open',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS photo_submissions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                contest_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                image_url TEXT NOT NULL,
                caption TEXT,
                status TEXT DEFAULT 'pending',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS photo_likes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                submission_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(submission_id, user_id)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS backup_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                filename TEXT NOT NULL,
                file_size REAL DEFAULT 0,
                status TEXT NOT NULL,
                error_message TEXT,
                created_by TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        conn.commit()
        logger.info("Database initialized successfully")
        return True

    except Exception as e:
        logger.error(f"Database initialization error: {e}")
        return False

# =============================================================================
# USERS + ACCOUNTS
# =============================================================================

def discord_avatar_url(discord_id, avatar_hash):
    if not avatar_hash:
        return None
    return f"https://cdn.discordapp.com/avatars/{discord_id}/{avatar_hash}.png"


def upsert_discord_user(profile):
    """Create or refresh the portal user behind a Discord profile, return its ID"""
    discord_id = str(profile['id'])
    name = profile.get('global_name') or profile.get('username')
    email = profile.get('email')
    image = discord_avatar_url(discord_id, profile.get('avatar'))

    with transaction() as conn:
        account = conn.execute(
            "SELECT user_id FROM accounts WHERE provider_id = 'discord' AND account_id = ?",
            (discord_id,)
        ).fetchone()

        if account:
            user_id = account['user_id']
            conn.execute(
                '''UPDATE users SET name = ?, email = ?, image = ?, email_verified = ?,
                   updated_at = CURRENT_TIMESTAMP WHERE id = ?''',
                (name, email, image, bool(profile.get('verified')), user_id)
            )
            conn.execute(
                "UPDATE accounts SET updated_at = CURRENT_TIMESTAMP WHERE provider_id = 'discord' AND account_id = ?",
                (discord_id,)
            )
        else:
            user_id = uuid.uuid4().hex
            conn.execute(
                'INSERT INTO users (id, name, email, image, email_verified) VALUES (?, ?, ?, ?, ?)',
                (user_id, name, email, image, bool(profile.get('verified')))
            )
            conn.execute(
                "INSERT INTO accounts (id, user_id, provider_id, account_id) VALUES (?, ?, 'discord', ?)",
                (uuid.uuid4().hex, user_id, discord_id)
            )
            logger.info(f"Registered new portal user {name} ({discord_id})")

    return user_id


def get_discord_id(user_id):
    """Discord user ID linked to a portal user, or None"""
    row = get_db_connection().execute(
        "SELECT account_id FROM accounts WHERE user_id = ? AND provider_id = 'discord' LIMIT 1",
        (user_id,)
    ).fetchone()
    return row['account_id'] if row else None


def get_user_with_account(user_id):
    row = get_db_connection().execute('''
        SELECT a.account_id, u.id, u.name, u.email, u.image, a.created_at, a.updated_at
        FROM accounts a JOIN users u ON a.user_id = u.id
        WHERE a.user_id = ? AND a.provider_id = 'discord'
        LIMIT 1
    ''', (user_id,)).fetchone()
    return row_to_dict(row)


def list_users_with_accounts():
    rows = get_db_connection().execute('''
        SELECT
            u.id, u.name, u.email, u.image, u.email_verified, u.created_at, u.updated_at,
            a.account_id AS discord_id,
            (SELECT COUNT(DISTINCT s.id) FROM sessions s
             WHERE s.user_id = u.id AND s.expires_at > ?) AS active_sessions
        FROM users u
        LEFT JOIN accounts a ON u.id = a.user_id AND a.provider_id = 'discord'
        ORDER BY u.created_at DESC, u.rowid DESC
    ''', (format_timestamp(datetime.now(timezone.utc)),)).fetchall()
    return rows_to_dicts(rows)


def delete_user_cascade(user_id):
    """Delete a user with requests, photos, sessions and accounts; False if no such user"""
    with transaction() as conn:
        conn.execute('DELETE FROM whitelist_requests WHERE user_id = ?', (user_id,))
        conn.execute('''
            DELETE FROM photo_likes
            WHERE user_id = ? OR submission_id IN (SELECT id FROM photo_submissions WHERE user_id = ?)
        ''', (user_id, user_id))
        conn.execute('DELETE FROM photo_submissions WHERE user_id = ?', (user_id,))
        conn.execute('DELETE FROM sessions WHERE user_id = ?', (user_id,))
        conn.execute('DELETE FROM accounts WHERE user_id = ?', (user_id,))
        deleted = conn.execute('DELETE FROM users WHERE id = ?', (user_id,)).rowcount
    return deleted > 0


def count_registered_users():
    return get_db_connection().execute('SELECT COUNT(*) AS count FROM users').fetchone()['count']

# =============================================================================
# SESSIONS
# =============================================================================

def create_session(user_id, ip_address=None, user_agent=None):
    session_id = uuid.uuid4().hex
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=config.SESSION_LIFETIME)
    conn = get_db_connection()
    conn.execute(
        'INSERT INTO sessions (id, user_id, expires_at, ip_address, user_agent) VALUES (?, ?, ?, ?, ?)',
        (session_id, user_id, format_timestamp(expires_at), ip_address, user_agent)
    )
    conn.commit()
    return {'id': session_id, 'user_id': user_id, 'expires_at': format_timestamp(expires_at)}


def get_session(session_id):
    """Unexpired session row, or None"""
    if not session_id:
        return None
    row = get_db_connection().execute(
        'SELECT id, user_id, expires_at FROM sessions WHERE id = ? AND expires_at > ?',
        (session_id, format_timestamp(datetime.now(timezone.utc)))
    ).fetchone()
    return row_to_dict(row)


def delete_session(session_id):
    conn = get_db_connection()
    conn.execute('DELETE FROM sessions WHERE id = ?', (session_id,))
    conn.commit()
