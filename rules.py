# rules.py - Server rules: sections, subcategories and individual rules
from config import logger
from database import get_db_connection, rows_to_dicts, transaction
from errors import BadRequest, PortalError

ORDER_TABLES = {
    'rules': 'rules',
    'sections': 'rule_sections',
    'subcategories': 'rule_subcategories',
}


def get_public_rules():
    conn = get_db_connection()
    sections = conn.execute(
        'SELECT id, title, icon, order_index FROM rule_sections ORDER BY order_index ASC'
    ).fetchall()
    rules = conn.execute(
        'SELECT id, section_id, subcategory_id, content, order_index FROM rules ORDER BY order_index ASC'
    ).fetchall()
    subcategories = conn.execute(
        'SELECT id, section_id, title, icon, order_index FROM rule_subcategories ORDER BY order_index ASC'
    ).fetchall()
    return {
        "sections": rows_to_dicts(sections),
        "rules": rows_to_dicts(rules),
        "subcategories": rows_to_dicts(subcategories),
    }


def get_admin_rules():
    conn = get_db_connection()
    sections = conn.execute('SELECT * FROM rule_sections ORDER BY order_index ASC').fetchall()
    rules = conn.execute('SELECT * FROM rules ORDER BY section_id ASC, order_index ASC').fetchall()
    subcategories = conn.execute(
        'SELECT * FROM rule_subcategories ORDER BY section_id ASC, order_index ASC'
    ).fetchall()
    return {
        "sections": rows_to_dicts(sections),
        "rules": rows_to_dicts(rules),
        "subcategories": rows_to_dicts(subcategories),
    }


def save_rule_item(item_type, data):
    """Upsert a section or subcategory, create or update a rule"""
    data = data or {}
    conn = get_db_connection()

    if item_type == 'section':
        if not data.get('id') or not data.get('title'):
            raise BadRequest("Missing required fields for section")
        conn.execute('''
            INSERT INTO rule_sections (id, title, icon, order_index) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                icon = excluded.icon,
                order_index = excluded.order_index,
                updated_at = CURRENT_TIMESTAMP
        ''', (data['id'], data['title'], data.get('icon') or None, data.get('order_index') or 0))
        conn.commit()
        return {"message": "Section saved successfully"}

    if item_type == 'rule':
        if not data.get('section_id') or not data.get('content'):
            raise BadRequest("Missing required fields for rule")
        values = (data['section_id'], data.get('subcategory_id') or None, data['content'],
                  data.get('order_index') or 0)
        if data.get('id'):
            conn.execute('''
                UPDATE rules
                SET section_id = ?, subcategory_id = ?, content = ?, order_index = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', values + (data['id'],))
            conn.commit()
            return {"message": "Rule updated successfully"}

        cursor = conn.execute(
            'INSERT INTO rules (section_id, subcategory_id, content, order_index) VALUES (?, ?, ?, ?)',
            values
        )
        conn.commit()
        return {"message": "Rule created successfully", "id": cursor.lastrowid}

    if item_type == 'subcategory':
        if not data.get('section_id') or not data.get('id') or not data.get('title'):
            raise BadRequest("Missing required fields for subcategory")
        conn.execute('''
            INSERT INTO rule_subcategories (id, section_id, title, icon, order_index)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                icon = excluded.icon,
                order_index = excluded.order_index,
                updated_at = CURRENT_TIMESTAMP
        ''', (data['id'], data['section_id'], data['title'], data.get('icon') or None,
              data.get('order_index') or 0))
        conn.commit()
        return {"message": "Subcategory saved successfully"}

    raise BadRequest("Invalid type")


def reorder(item_type, items):
    """Apply new order_index values in one transaction"""
    if not item_type or not isinstance(items, list):
        raise BadRequest("Invalid payload")

    table = ORDER_TABLES.get(item_type)
    if not table:
        raise BadRequest("Invalid type specified")

    try:
        with transaction() as conn:
            for item in items:
                order_index = item.get('order_index') if isinstance(item, dict) else None
                if item.get('id') is None or isinstance(order_index, bool) or not isinstance(order_index, int):
                    raise ValueError("Invalid item structure in payload")
                conn.execute(f'UPDATE {table} SET order_index = ? WHERE id = ?', (order_index, item['id']))
    except (ValueError, AttributeError) as e:
        logger.error(f"Error updating order: {e}")
        raise PortalError("Failed to update order", 500)

    return {"message": "Order updated successfully"}


def delete_rule_item(item_type, item_id):
    """Delete a rule, or a section/subcategory together with everything under it"""
    if not item_type or not item_id:
        raise BadRequest("Missing type or id")

    if item_type == 'section':
        with transaction() as conn:
            conn.execute('DELETE FROM rule_sections WHERE id = ?', (item_id,))
            conn.execute('DELETE FROM rule_subcategories WHERE section_id = ?', (item_id,))
            conn.execute('DELETE FROM rules WHERE section_id = ?', (item_id,))
        return {"message": "Section and its contents deleted successfully"}

    if item_type == 'rule':
        with transaction() as conn:
            conn.execute('DELETE FROM rules WHERE id = ?', (item_id,))
        return {"message": "Rule deleted successfully"}

    if item_type == 'subcategory':
        with transaction() as conn:
            conn.execute('DELETE FROM rule_subcategories WHERE id = ?', (item_id,))
            conn.execute('DELETE FROM rules WHERE subcategory_id = ?', (item_id,))
        return {"message": "Subcategory and its rules deleted successfully"}

    raise BadRequest("Invalid type")
