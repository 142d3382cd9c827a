# activities.py - In-game activities shown on the home page
from database import get_db_connection, rows_to_dicts
from errors import BadRequest, NotFound

REQUIRED_FIELDS = ('nazev', 'popis', 'riziko', 'rizikoLevel', 'category')


def list_activities():
    rows = get_db_connection().execute(
        'SELECT * FROM activities ORDER BY created_at DESC, id DESC'
    ).fetchall()
    return rows_to_dicts(rows)


def _activity_values(data):
    """Validate an activity payload (camelCase keys) and return the column values"""
    if any(not data.get(field) for field in REQUIRED_FIELDS):
        raise BadRequest("Missing required fields")
    return (
        data['nazev'],
        data['popis'],
        data.get('obrazek') or None,
        data.get('icon') or None,
        data.get('odmena') or None,
        data.get('vzdalenost') or None,
        data.get('cas') or None,
        data['riziko'],
        data['rizikoLevel'],
        data['category'],
        data.get('span') or 1,
        data.get('gradient') or None,
        data.get('borderColor') or None,
        data.get('glowColor') or None,
    )


def create_activity(data):
    conn = get_db_connection()
    cursor = conn.execute('''
        INSERT INTO activities (
            nazev, popis, obrazek, icon, odmena, vzdalenost, cas,
            riziko, riziko_level, category, span, gradient, border_color, glow_color
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ''', _activity_values(data or {}))
    conn.commit()
    return cursor.lastrowid


def update_activity(activity_id, data):
    values = _activity_values(data or {})
    conn = get_db_connection()
    updated = conn.execute('''
        UPDATE activities SET
            nazev = ?, popis = ?, obrazek = ?, icon = ?, odmena = ?, vzdalenost = ?, cas = ?,
            riziko = ?, riziko_level = ?, category = ?, span = ?, gradient = ?,
            border_color = ?, glow_color = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', values + (activity_id,)).rowcount
    conn.commit()
    if not updated:
        raise NotFound("Activity not found")


def delete_activity(activity_id):
    conn = get_db_connection()
    if conn.execute('SELECT id FROM activities WHERE id = ?', (activity_id,)).fetchone() is None:
        raise NotFound("Activity not found")
    conn.execute('DELETE FROM activities WHERE id = ?', (activity_id,))
    conn.commit()
