# backup.py - SQL dumps of the portal database
import os
import re
import sqlite3
from datetime import datetime

import config
from config import logger
from database import get_db_connection, rows_to_dicts
from errors import BadRequest, PortalError

BACKUP_TYPES = ('full', 'structure', 'data')

DATA_EXCLUDED_TABLES = ('sessions', 'backup_logs')

INSERT_PATTERN = re.compile(r'^INSERT INTO "?([^"\s(]+)"?')


def _dump_lines(conn, kind):
    for line in conn.iterdump():
        if kind == 'full':
            yield line
            continue

        insert = INSERT_PATTERN.match(line)
        if kind == 'structure':
            if insert is None and line.startswith('CREATE'):
                yield line
        elif insert is not None and insert.group(1) not in DATA_EXCLUDED_TABLES:
            yield line


def _log_backup(conn, kind, filename, size_mb, status, user_id, error_message=None):
    conn.execute('''
        INSERT INTO backup_logs (type, filename, file_size, status, error_message, created_by)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (kind, filename, size_mb, status, error_message, user_id))
    conn.commit()


def _remove_partial(path):
    if not os.path.exists(path):
        return
    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Could not remove partial backup {path}: {e}")


def create_backup(kind, user_id=None):
    """Write a full, structure-only or data-only dump to BACKUP_DIR"""
    if kind not in BACKUP_TYPES:
        raise BadRequest("Invalid backup type")

    timestamp = datetime.now().strftime('%Y-%m-%dT%H-%M-%S')
    filename = f"portal_{kind}_backup_{timestamp}.sql"
    path = os.path.join(config.BACKUP_DIR, filename)
    conn = get_db_connection()

    try:
        os.makedirs(config.BACKUP_DIR, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(f"-- {kind} backup of the portal database\n")
            f.write(f"-- Created: {datetime.now().isoformat()}\n\n")
            for line in _dump_lines(conn, kind):
                f.write(f"{line}\n")
    except (OSError, sqlite3.Error) as e:
        logger.error(f"Backup {filename} failed: {e}")
        _remove_partial(path)
        _log_backup(conn, kind, filename, 0, 'failed', user_id, str(e))
        raise PortalError("Backup failed", 500)

    size_mb = round(os.path.getsize(path) / (1024 * 1024), 2)
    _log_backup(conn, kind, filename, size_mb, 'success', user_id)
    logger.info(f"Backup {filename} created ({size_mb} MB)")

    return {"message": "Backup created successfully", "filename": filename, "size": size_mb}


def backup_overview():
    """Recent backup log rows and totals over the files in BACKUP_DIR"""
    logs = get_db_connection().execute(
        'SELECT * FROM backup_logs ORDER BY created_at DESC, id DESC LIMIT 50'
    ).fetchall()

    total_backups = 0
    total_size = 0
    last_backup = None
    if os.path.isdir(config.BACKUP_DIR):
        for name in os.listdir(config.BACKUP_DIR):
            if not name.endswith('.sql'):
                continue
            stat = os.stat(os.path.join(config.BACKUP_DIR, name))
            total_backups += 1
            total_size += stat.st_size
            if last_backup is None or stat.st_mtime > last_backup:
                last_backup = stat.st_mtime

    return {
        "logs": rows_to_dicts(logs),
        "stats": {
            "totalBackups": total_backups,
            "totalSize": round(total_size / (1024 * 1024), 2),
            "lastBackup": datetime.fromtimestamp(last_backup).isoformat() if last_backup else None,
        },
    }
