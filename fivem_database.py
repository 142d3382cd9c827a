# fivem_database.py - Read-mostly access to the game server database
import json
import threading

from sqlalchemy import create_engine, text

import config
from config import logger

_engine = None
_engine_lock = threading.Lock()

CHARACTER_COLUMNS = (
    'id, name, identifier, firstname, lastname, dateofbirth, sex, job, job_grade, '
    'phone_number, created_at, last_seen, steam_id, discord_id'
)

# =============================================================================
# ENGINE
# =============================================================================

def get_engine():
    """Shared engine for FIVEM_DATABASE_URL, created on first use"""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = create_engine(config.FIVEM_DATABASE_URL, pool_pre_ping=True, pool_recycle=3600)
            logger.info("FiveM database engine created")
        return _engine


def set_engine(engine):
    """Replace the shared engine (used by tests and alternate deployments)"""
    global _engine
    with _engine_lock:
        _engine = engine


def _fetch_all(sql, **params):
    with get_engine().connect() as conn:
        return [dict(row) for row in conn.execute(text(sql), params).mappings().all()]


def _scalar(sql, **params):
    with get_engine().connect() as conn:
        return conn.execute(text(sql), params).scalar() or 0

# =============================================================================
# CHARACTERS
# =============================================================================

def list_characters():
    return _fetch_all(f'SELECT {CHARACTER_COLUMNS} FROM users ORDER BY id DESC')


def characters_for_discord(discord_id):
    return _fetch_all(
        'SELECT firstname, lastname, identifier, name, accounts, dateofbirth, sex, height, '
        'created_at, last_seen, iban, steam_id FROM users WHERE discord_id = :discord_id',
        discord_id=f'discord:{discord_id}'
    )


def rename_character(character_id, firstname, lastname):
    """Returns False when no character has that id"""
    with get_engine().begin() as conn:
        result = conn.execute(
            text('UPDATE users SET firstname = :firstname, lastname = :lastname WHERE id = :id'),
            {"firstname": firstname, "lastname": lastname, "id": character_id}
        )
        return result.rowcount > 0


def count_characters():
    return _scalar('SELECT COUNT(*) FROM users')


def count_online(since):
    """Characters seen after since (a datetime)"""
    return _scalar(
        'SELECT COUNT(*) FROM users WHERE last_seen > :since',
        since=since.strftime('%Y-%m-%d %H:%M:%S')
    )


def economy_totals():
    """Sum money, bank and black_money across every character's accounts JSON"""
    totals = {"money": 0, "bank": 0, "black_money": 0}
    for row in _fetch_all('SELECT accounts FROM users'):
        try:
            accounts = json.loads(row['accounts'] or '{}')
        except (TypeError, ValueError):
            logger.warning("Skipping character with unreadable accounts column")
            continue
        if not isinstance(accounts, dict):
            continue
        for key in totals:
            try:
                totals[key] += int(accounts.get(key) or 0)
            except (TypeError, ValueError):
                pass
    return totals

# =============================================================================
# VEHICLES
# =============================================================================

def list_vehicles():
    return _fetch_all(
        'SELECT plate, owner, garage_id, type, job, stored, nickname, fuel, mileage, vehicle '
        'FROM owned_vehicles'
    )


def delete_vehicle(plate):
    """Returns False when no vehicle has that plate"""
    with get_engine().begin() as conn:
        result = conn.execute(text('DELETE FROM owned_vehicles WHERE plate = :plate'), {"plate": plate})
        return result.rowcount > 0


def count_vehicles():
    return _scalar('SELECT COUNT(*) FROM owned_vehicles')

# =============================================================================
# BANKING
# =============================================================================

def bank_transactions(identifier, limit=100):
    return _fetch_all(
        'SELECT * FROM okokbanking_transactions '
        'WHERE receiver_identifier = :identifier OR sender_identifier = :identifier '
        'ORDER BY id DESC LIMIT :limit',
        identifier=identifier, limit=limit
    )
