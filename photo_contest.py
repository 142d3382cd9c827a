# photo_contest.py - Photo contests, submissions, likes and image uploads
import uuid

import requests

import config
from config import logger
from database import get_db_connection, row_to_dict, rows_to_dicts, transaction
from errors import BadRequest, NotFound, PortalError

SUBMISSION_REVIEW_STATUSES = ('approved', 'rejected')

# =============================================================================
# PUBLIC
# =============================================================================

def list_public_contests(user_id=None):
    """Open and judging contests with their approved submissions"""
    conn = get_db_connection()
    contests = conn.execute('''
        SELECT * FROM photo_contests
        WHERE status IN ('open', 'judging')
        ORDER BY start_date DESC, id DESC
    ''').fetchall()

    results = []
    for contest in contests:
        submissions = conn.execute('''
            SELECT
                ps.id, ps.user_id, ps.image_url, ps.caption, ps.created_at,
                u.name AS user_name,
                u.image AS user_image,
                (SELECT COUNT(*) FROM photo_likes pl WHERE pl.submission_id = ps.id) AS like_count,
                (SELECT COUNT(*) FROM photo_likes pl
                 WHERE pl.submission_id = ps.id AND pl.user_id = ?) > 0 AS has_liked
            FROM photo_submissions ps
            JOIN users u ON ps.user_id = u.id
            WHERE ps.contest_id = ? AND ps.status = 'approved'
            ORDER BY ps.created_at DESC, ps.id DESC
        ''', (user_id, contest['id'])).fetchall()

        entries = rows_to_dicts(submissions)
        for entry in entries:
            entry['has_liked'] = bool(entry['has_liked'])

        results.append({
            "id": contest['id'],
            "title": contest['title'],
            "description": contest['description'],
            "start_date": contest['start_date'],
            "end_date": contest['end_date'],
            "status": contest['status'],
            "submissions": entries,
        })

    return results


def create_submission(user_id, contest_id, image_url, caption=None):
    if not image_url or not contest_id:
        raise BadRequest("Missing required fields")

    conn = get_db_connection()
    contest = conn.execute('SELECT id, status FROM photo_contests WHERE id = ?', (contest_id,)).fetchone()
    if contest is None:
        raise NotFound("Contest not found")
    if contest['status'] != 'open':
        raise BadRequest("Contest is not accepting submissions")

    cursor = conn.execute(
        "INSERT INTO photo_submissions (contest_id, user_id, image_url, caption, status) VALUES (?, ?, ?, ?, 'pending')",
        (contest_id, user_id, image_url, caption)
    )
    conn.commit()
    logger.info(f"Photo submission {cursor.lastrowid} created for contest {contest_id}")
    return cursor.lastrowid


def toggle_like(user_id, submission_id):
    """Like or unlike a submission; returns the new count and state"""
    if not submission_id:
        raise BadRequest("Missing submissionId")

    with transaction() as conn:
        existing = conn.execute(
            'SELECT id FROM photo_likes WHERE submission_id = ? AND user_id = ?',
            (submission_id, user_id)
        ).fetchone()

        if existing:
            conn.execute('DELETE FROM photo_likes WHERE id = ?', (existing['id'],))
            has_liked = False
        else:
            if conn.execute('SELECT id FROM photo_submissions WHERE id = ?', (submission_id,)).fetchone() is None:
                raise NotFound("Submission not found")
            conn.execute(
                'INSERT INTO photo_likes (submission_id, user_id) VALUES (?, ?)',
                (submission_id, user_id)
            )
            has_liked = True

        like_count = conn.execute(
            'SELECT COUNT(*) AS like_count FROM photo_likes WHERE submission_id = ?', (submission_id,)
        ).fetchone()['like_count']

    return {"likeCount": like_count, "hasLiked": has_liked}


def prepare_upload(content_type):
    """Ask Fivemanage for a presigned upload URL for one contest image"""
    if not config.FIVEMANAGE_API_KEY:
        logger.error("FIVEMANAGE_API_KEY is not configured.")
        raise PortalError("File upload service is not configured.", 500)

    if not content_type or not content_type.startswith('image/'):
        raise BadRequest("Invalid content type. Only images are allowed.")

    extension = content_type.split('/', 1)[1]
    file_name = f"{uuid.uuid4()}.{extension}"

    try:
        response = requests.post(
            config.FIVEMANAGE_UPLOAD_URL,
            json={"path": f"fotosoutez/{file_name}", "contentType": content_type},
            headers={"Authorization": f"Bearer {config.FIVEMANAGE_API_KEY}"},
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Error getting presigned URL from Fivemanage: {e}")
        raise PortalError("Failed to prepare file upload.", 500)

    if response.status_code not in [200, 201]:
        logger.error(f"Error getting presigned URL from Fivemanage: {response.text}")
        raise PortalError("Failed to prepare file upload.", 500)

    return response.json()

# =============================================================================
# ADMIN
# =============================================================================

def list_contests():
    rows = get_db_connection().execute('''
        SELECT c.*, COUNT(s.id) AS submission_count
        FROM photo_contests c
        LEFT JOIN photo_submissions s ON c.id = s.contest_id
        GROUP BY c.id
        ORDER BY c.created_at DESC, c.id DESC
    ''').fetchall()
    return rows_to_dicts(rows)


def create_contest(title, description=None, end_date=None):
    if not title:
        raise BadRequest("Title is required")

    conn = get_db_connection()
    cursor = conn.execute(
        'INSERT INTO photo_contests (title, description, end_date) VALUES (?, ?, ?)',
        (title, description, end_date or None)
    )
    conn.commit()
    logger.info(f"Photo contest '{title}' created")
    return row_to_dict(conn.execute('SELECT * FROM photo_contests WHERE id = ?', (cursor.lastrowid,)).fetchone())


def update_contest_status(contest_id, status):
    if status not in config.CONTEST_STATUSES:
        raise BadRequest("Invalid status provided")

    conn = get_db_connection()
    updated = conn.execute(
        'UPDATE photo_contests SET status = ? WHERE id = ?', (status, contest_id)
    ).rowcount
    conn.commit()
    if not updated:
        raise NotFound("Contest not found")


def list_submissions(contest_id):
    if not contest_id:
        raise BadRequest("contestId is required")

    rows = get_db_connection().execute('''
        SELECT s.*, u.name AS user_name, u.image AS user_image
        FROM photo_submissions s
        JOIN users u ON s.user_id = u.id
        WHERE s.contest_id = ?
        ORDER BY s.created_at DESC, s.id DESC
    ''', (contest_id,)).fetchall()
    return rows_to_dicts(rows)


def set_submission_status(submission_id, status):
    if status not in SUBMISSION_REVIEW_STATUSES:
        raise BadRequest("Invalid status provided")

    conn = get_db_connection()
    updated = conn.execute(
        'UPDATE photo_submissions SET status = ? WHERE id = ?', (status, submission_id)
    ).rowcount
    conn.commit()
    if not updated:
        raise NotFound("Submission not found")
