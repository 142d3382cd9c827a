# whitelist.py - Whitelist applications, review workflow and form questions
import json
import re
from datetime import datetime, timezone

import config
import discord_api
from auth import is_blacklisted
from config import logger
from database import get_db_connection, row_to_dict, transaction
from errors import BadRequest, Conflict, Forbidden, NotFound

REQUEST_COLUMNS = 'id, user_id, form_data, status, serial_number, notes, created_at, updated_at'

URL_PATTERN = re.compile(r'^https?://\S+$')

# =============================================================================
# HELPERS
# =============================================================================

def _parse_json(value, default=None):
    if value is None or value == '':
        return default
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Could not parse stored JSON value: {value!r}")
        return default


def _request_to_dict(row):
    request_dict = row_to_dict(row)
    if request_dict is not None:
        request_dict['form_data'] = _parse_json(request_dict.get('form_data'), {})
    return request_dict


def next_serial_number(conn, year=None):
    """WL-<year>-<NNNN>, one past the highest number issued that year"""
    year = year or datetime.now(timezone.utc).year
    prefix = f"WL-{year}-"
    last = conn.execute(
        '''SELECT MAX(CAST(substr(serial_number, ?) AS INTEGER)) AS last
           FROM whitelist_requests WHERE serial_number LIKE ?''',
        (len(prefix) + 1, prefix + '%')
    ).fetchone()['last']
    return f"{prefix}{(last or 0) + 1:04d}"


def status_message(status):
    return config.WHITELIST_STATUS_MESSAGES.get(status, 'Neznámý status žádosti')


def _insert_request(conn, user_id, form_data, status):
    serial_number = next_serial_number(conn)
    cursor = conn.execute(
        '''INSERT INTO whitelist_requests (user_id, form_data, status, serial_number)
           VALUES (?, ?, ?, ?)''',
        (user_id, json.dumps(form_data, ensure_ascii=False), status, serial_number)
    )
    return cursor.lastrowid, serial_number

# =============================================================================
# FORM VALIDATION
# =============================================================================

def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def validate_answers(form_data, questions):
    """List of problems with form_data measured against the active questions"""
    problems = []
    for question in questions:
        field = question['field_name']
        field_type = question['field_type']
        value = form_data.get(field)

        if field_type == 'checkbox':
            if question['required'] and value is not True:
                problems.append(f"{field} must be confirmed")
            continue

        if _is_blank(value):
            if question['required']:
                problems.append(f"{field} is required")
            continue

        if field_type == 'number':
            try:
                number = float(value)
            except (TypeError, ValueError):
                problems.append(f"{field} must be a number")
                continue
            if question.get('min_value') is not None and number < question['min_value']:
                problems.append(f"{field} must be at least {question['min_value']}")
            if question.get('max_value') is not None and number > question['max_value']:
                problems.append(f"{field} must be at most {question['max_value']}")
            continue

        text = str(value).strip()
        if question.get('min_length') is not None and len(text) < question['min_length']:
            problems.append(f"{field} must have at least {question['min_length']} characters")
        if question.get('max_length') is not None and len(text) > question['max_length']:
            problems.append(f"{field} must have at most {question['max_length']} characters")
        if field_type == 'url' and not URL_PATTERN.match(text):
            problems.append(f"{field} must be a valid URL")
        if field_type == 'select' and question.get('options') and text not in question['options']:
            problems.append(f"{field} must be one of the offered options")

    return problems

# =============================================================================
# REQUESTS
# =============================================================================

def submit_request(user_id, form_data, roles=()):
    if not form_data or not isinstance(form_data, dict):
        raise BadRequest("Form data is required")

    if is_blacklisted(roles):
        raise Forbidden("Blacklisted users cannot apply for whitelist")

    with transaction(immediate=True) as conn:
        existing = conn.execute(
            'SELECT id, status FROM whitelist_requests WHERE user_id = ?', (user_id,)
        ).fetchall()
        total_attempts = len(existing)

        if total_attempts >= config.MAX_WHITELIST_ATTEMPTS:
            raise BadRequest(
                f"Dosáhli jste maximálního počtu pokusů ({config.MAX_WHITELIST_ATTEMPTS}). "
                "Nemůžete podat další žádost."
            )

        if any(row['status'] == 'pending' for row in existing):
            raise BadRequest("Již máte aktivní žádost o whitelist")

        problems = validate_answers(form_data, list_active_questions()['questions'])
        if problems:
            raise BadRequest("; ".join(problems))

        request_id, serial_number = _insert_request(conn, user_id, form_data, 'pending')

    logger.info(f"Whitelist request {serial_number} submitted by {user_id}")
    return {
        "message": "Whitelist žádost byla úspěšně odeslána",
        "id": request_id,
        "serialNumber": serial_number,
        "totalAttempts": total_attempts + 1,
        "remainingAttempts": config.MAX_WHITELIST_ATTEMPTS - total_attempts - 1,
        "maxAttempts": config.MAX_WHITELIST_ATTEMPTS,
    }


def list_requests():
    rows = get_db_connection().execute(
        f'SELECT {REQUEST_COLUMNS} FROM whitelist_requests ORDER BY created_at DESC, id DESC'
    ).fetchall()
    return [_request_to_dict(row) for row in rows]


def get_request(request_id):
    row = get_db_connection().execute(
        f'SELECT {REQUEST_COLUMNS} FROM whitelist_requests WHERE id = ?', (request_id,)
    ).fetchone()
    if row is None:
        raise NotFound("Whitelist žádost nenalezena")
    return _request_to_dict(row)


def get_status(user_id):
    row = get_db_connection().execute('''
        SELECT id, status, created_at, updated_at FROM whitelist_requests
        WHERE user_id = ?
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ''', (user_id,)).fetchone()

    if row is None:
        return {
            "hasRequest": False,
            "status": None,
            "message": "Žádná whitelist žádost nenalezena"
        }

    return {
        "hasRequest": True,
        "status": row['status'],
        "requestId": row['id'],
        "createdAt": row['created_at'],
        "updatedAt": row['updated_at'],
        "message": status_message(row['status'])
    }


def _user_requests(conn, user_id):
    rows = conn.execute('''
        SELECT id, form_data, status, serial_number, created_at, updated_at
        FROM whitelist_requests
        WHERE user_id = ?
        ORDER BY created_at DESC, id DESC
    ''', (user_id,)).fetchall()
    return [_request_to_dict(row) for row in rows]


def get_user_requests(user_id, discord_id):
    """The user's own requests plus attempt bookkeeping.

    A user who already holds the whitelist role but never applied gets an
    automatically approved request so the attempt counters stay truthful.
    """
    has_whitelist = False
    if discord_id and config.DISCORD_WHITELIST_ROLE_ID:
        has_whitelist = config.DISCORD_WHITELIST_ROLE_ID in discord_api.get_member_roles(discord_id)

    with transaction(immediate=has_whitelist) as conn:
        requests = _user_requests(conn, user_id)

        if has_whitelist and not requests:
            automatic = "Automaticky schváleno"
            form_data = {
                "discordName": discord_id,
                "age": automatic,
                "fivemHours": automatic,
                "experience": f"{automatic} - uživatel již má whitelist",
                "reason": f"{automatic} - uživatel již má whitelist roli na Discord serveru",
            }
            _, serial_number = _insert_request(conn, user_id, form_data, 'approved')
            logger.info(f"Created automatic approved request {serial_number} for {discord_id}")
            requests = _user_requests(conn, user_id)

    total_attempts = len(requests)
    remaining_attempts = max(0, config.MAX_WHITELIST_ATTEMPTS - total_attempts)
    active_request = next((r for r in requests if r['status'] == 'pending'), None)

    return {
        "requests": requests,
        "totalAttempts": total_attempts,
        "remainingAttempts": remaining_attempts,
        "maxAttempts": config.MAX_WHITELIST_ATTEMPTS,
        "activeRequest": active_request,
        "canSubmitNew": remaining_attempts > 0 and active_request is None,
        "hasWhitelist": has_whitelist,
    }


def _sync_roles(discord_id, status):
    if status == 'approved':
        return discord_api.add_whitelist_role(discord_id)
    if status == 'rejected':
        removed_whitelist = discord_api.remove_whitelist_role(discord_id)
        removed_waiting = discord_api.remove_waiting_role(discord_id)
        return removed_whitelist or removed_waiting
    removed_whitelist = discord_api.remove_whitelist_role(discord_id)
    added_waiting = discord_api.add_waiting_role(discord_id)
    return removed_whitelist or added_waiting


def update_status(request_id, status, reviewer=None):
    """Move a request to status and mirror it onto the applicant's Discord roles"""
    if status not in config.WHITELIST_STATUSES:
        raise BadRequest("Invalid status. Must be 'pending', 'approved' or 'rejected'")

    conn = get_db_connection()
    row = conn.execute(
        'SELECT id, user_id, serial_number FROM whitelist_requests WHERE id = ?', (request_id,)
    ).fetchone()
    if row is None:
        raise NotFound("Whitelist žádost nenalezena")

    # Applicant's Discord ID always comes from the linked account, never from the form
    account = conn.execute(
        "SELECT account_id FROM accounts WHERE user_id = ? AND provider_id = 'discord' LIMIT 1",
        (row['user_id'],)
    ).fetchone()
    applicant_discord_id = account['account_id'] if account else None

    conn.execute(
        'UPDATE whitelist_requests SET status = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
        (status, request_id)
    )
    conn.commit()
    logger.info(f"Whitelist request {row['serial_number']} set to {status} by {reviewer or 'unknown'}")

    role_updated = False
    discord_error = None
    if applicant_discord_id:
        try:
            role_updated = _sync_roles(applicant_discord_id, status)
        except Exception as e:
            logger.error(f"Discord role sync failed for request {request_id}: {e}")
            discord_error = str(e)
        if not role_updated and discord_error is None:
            logger.warning(f"Roles were not updated for {applicant_discord_id} ({status})")
    else:
        logger.error(f"No Discord account for whitelist request {request_id} (user {row['user_id']})")
        discord_error = "Nepodařilo se získat Discord ID uživatele"

    return {
        "message": config.WHITELIST_UPDATE_MESSAGES[status],
        "discordNotified": False,
        "roleUpdated": role_updated,
        "discordError": discord_error,
        "discordId": applicant_discord_id,
    }


def get_request_detail(request_id, user_id, can_manage_notes):
    row = get_db_connection().execute(
        f'SELECT {REQUEST_COLUMNS} FROM whitelist_requests WHERE id = ?', (request_id,)
    ).fetchone()
    if row is None:
        raise NotFound("Request not found")

    request_dict = _request_to_dict(row)
    if request_dict['user_id'] != user_id and not can_manage_notes:
        raise Forbidden("Forbidden - insufficient permissions")

    return {"request": request_dict, "canManageNotes": can_manage_notes}


def update_notes(request_id, notes):
    if not isinstance(notes, str):
        raise BadRequest("Notes must be a string")

    conn = get_db_connection()
    updated = conn.execute(
        'UPDATE whitelist_requests SET notes = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
        (notes, request_id)
    ).rowcount
    conn.commit()
    if not updated:
        raise NotFound("Request not found")


def migrate_serial_numbers():
    """Add serial numbers to a whitelist table created before they existed"""
    conn = get_db_connection()
    columns = [row['name'] for row in conn.execute('PRAGMA table_info(whitelist_requests)').fetchall()]
    if 'serial_number' in columns:
        return {"message": "Migration already completed", "alreadyMigrated": True}

    with transaction() as conn:
        conn.execute('ALTER TABLE whitelist_requests ADD COLUMN serial_number TEXT')
        conn.execute(
            'CREATE UNIQUE INDEX IF NOT EXISTS idx_whitelist_serial_number '
            'ON whitelist_requests(serial_number)'
        )
        records = conn.execute('''
            SELECT id, created_at FROM whitelist_requests
            WHERE serial_number IS NULL
            ORDER BY created_at ASC, id ASC
        ''').fetchall()

        counters = {}
        for record in records:
            year = str(record['created_at'])[:4]
            counters[year] = counters.get(year, 0) + 1
            conn.execute(
                'UPDATE whitelist_requests SET serial_number = ? WHERE id = ? AND serial_number IS NULL',
                (f"WL-{year}-{counters[year]:04d}", record['id'])
            )

    logger.info(f"Serial number migration updated {len(records)} requests")
    return {"message": "Migration completed successfully", "recordsUpdated": len(records)}

# =============================================================================
# QUESTIONS
# =============================================================================

def _question_to_dict(row):
    question = row_to_dict(row)
    options = _parse_json(question.get('options'))
    question['options'] = options if isinstance(options, list) else None
    question['required'] = bool(question.get('required'))
    if 'is_active' in question:
        question['is_active'] = bool(question['is_active'])
    question['category'] = question.get('category') or 'general'
    question['order_index'] = int(question.get('order_index') or 0)
    return question


def list_active_questions():
    rows = get_db_connection().execute('''
        SELECT id, question, field_name, field_type, placeholder, required, category, options,
               min_value, max_value, min_length, max_length, order_index
        FROM whitelist_questions
        WHERE is_active = 1
        ORDER BY order_index ASC, id ASC
    ''').fetchall()
    questions = [_question_to_dict(row) for row in rows]

    categories = {}
    for question in questions:
        categories.setdefault(question['category'], []).append(question)

    return {"questions": questions, "categories": categories, "totalQuestions": len(questions)}


def list_all_questions():
    rows = get_db_connection().execute(
        'SELECT * FROM whitelist_questions ORDER BY order_index ASC, id ASC'
    ).fetchall()
    return [_question_to_dict(row) for row in rows]


def _validate_question(data):
    if not data.get('question') or not data.get('field_name') or not data.get('field_type'):
        raise BadRequest("Missing required fields: question, field_name, field_type")
    if data['field_type'] not in config.QUESTION_FIELD_TYPES:
        raise BadRequest("Invalid field_type")


def _question_values(data):
    options = data.get('options')
    return (
        data['question'],
        data['field_name'],
        data['field_type'],
        data.get('placeholder') or None,
        bool(data['required']) if data.get('required') is not None else True,
        data.get('category') or 'general',
        json.dumps(options, ensure_ascii=False) if options else None,
        data.get('min_value'),
        data.get('max_value'),
        data.get('min_length'),
        data.get('max_length'),
        data.get('order_index') or 0,
        bool(data['is_active']) if data.get('is_active') is not None else True,
    )


def create_question(data):
    _validate_question(data)
    conn = get_db_connection()
    existing = conn.execute(
        'SELECT id FROM whitelist_questions WHERE field_name = ?', (data['field_name'],)
    ).fetchone()
    if existing:
        raise Conflict("Field name already exists")

    cursor = conn.execute('''
        INSERT INTO whitelist_questions (
            question, field_name, field_type, placeholder, required, category, options,
            min_value, max_value, min_length, max_length, order_index, is_active
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ''', _question_values(data))
    conn.commit()
    return cursor.lastrowid


def update_question(question_id, data):
    _validate_question(data)
    conn = get_db_connection()
    if conn.execute('SELECT id FROM whitelist_questions WHERE id = ?', (question_id,)).fetchone() is None:
        raise NotFound("Question not found")

    duplicate = conn.execute(
        'SELECT id FROM whitelist_questions WHERE field_name = ? AND id != ?',
        (data['field_name'], question_id)
    ).fetchone()
    if duplicate:
        raise BadRequest("Field name already exists")

    conn.execute('''
        UPDATE whitelist_questions SET
            question = ?, field_name = ?, field_type = ?, placeholder = ?, required = ?,
            category = ?, options = ?, min_value = ?, max_value = ?, min_length = ?,
            max_length = ?, order_index = ?, is_active = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', _question_values(data) + (question_id,))
    conn.commit()


def delete_question(question_id):
    conn = get_db_connection()
    row = conn.execute(
        'SELECT id, field_name FROM whitelist_questions WHERE id = ?', (question_id,)
    ).fetchone()
    if row is None:
        raise NotFound("Question not found")

    if row['field_name'] in config.CRITICAL_QUESTION_FIELDS:
        raise BadRequest("Cannot delete critical system fields (discordName, age, rules)")

    conn.execute('DELETE FROM whitelist_questions WHERE id = ?', (question_id,))
    conn.commit()


def reorder_questions(updates):
    if not isinstance(updates, list) or not updates:
        raise BadRequest('Invalid payload, expected "updates" array')

    for update in updates:
        if not isinstance(update, dict) or update.get('id') is None or update.get('order_index') is None:
            raise BadRequest("Invalid update object. Missing id or order_index.")

    with transaction() as conn:
        for update in updates:
            conn.execute(
                'UPDATE whitelist_questions SET order_index = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
                (update['order_index'], update['id'])
            )
