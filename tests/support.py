"""Shared fixtures: a throwaway portal database, fixed role IDs and a FiveM engine."""

import os
import shutil
import tempfile
import unittest
from unittest import mock

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

import config
import database
import discord_api
import fivem_database

ROLE_IDS = {
    'DISCORD_WHITELIST_ROLE_ID': 'role-whitelist',
    'DISCORD_WAITING_ROLE_ID': 'role-waiting',
    'DISCORD_BLACKLISTED_ROLE_ID': 'role-blacklisted',
    'DISCORD_VEDENI_ROLE_ID': 'role-vedeni',
    'DISCORD_STAFF_ROLE_ID': 'role-staff',
    'DISCORD_DEVELOPER_ROLE_ID': 'role-developer',
    'DISCORD_WHITELIST_ADDER_ROLE_ID': 'role-adder',
    'DISCORD_HEAD_WHITELIST_ADDER_ROLE_ID': 'role-head-adder',
    'DISCORD_TRIAL_WHITELIST_ADDER_ROLE_ID': 'role-trial-adder',
    'DISCORD_CHARACTER_EDITOR_ROLE_ID': 'role-character-editor',
}

FIVEM_SCHEMA = (
    '''CREATE TABLE users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        identifier TEXT, name TEXT, firstname TEXT, lastname TEXT, dateofbirth TEXT,
        sex TEXT, height INTEGER, job TEXT, job_grade INTEGER, phone_number TEXT,
        accounts TEXT, iban TEXT, steam_id TEXT, discord_id TEXT,
        created_at TEXT, last_seen TEXT
    )''',
    '''CREATE TABLE owned_vehicles (
        plate TEXT PRIMARY KEY, owner TEXT, garage_id TEXT, type TEXT, job TEXT,
        stored INTEGER, nickname TEXT, fuel INTEGER, mileage INTEGER, vehicle TEXT
    )''',
    '''CREATE TABLE okokbanking_transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        receiver_identifier TEXT, receiver_name TEXT,
        sender_identifier TEXT, sender_name TEXT,
        date TEXT, value INTEGER, type TEXT
    )''',
)


class PortalTestCase(unittest.TestCase):
    """Each test runs against a fresh sqlite portal database in a temp dir."""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        overrides = dict(ROLE_IDS)
        overrides.update({
            'DATABASE': os.path.join(self.tmpdir, 'portal.db'),
            'BACKUP_DIR': os.path.join(self.tmpdir, 'backups'),
            'DISCORD_BOT_TOKEN': 'test-token',
            'DISCORD_GUILD_ID': 'guild-1',
            'DISCORD_TEAM_GUILD_ID': 'guild-team',
            'DISCORD_LOG_WEBHOOK_URL': '',
            'FIVEMANAGE_API_KEY': '',
        })
        for name, value in overrides.items():
            patcher = mock.patch.object(config, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        database.close_db_connection()
        database.init_db()
        discord_api.invalidate_role_cache()

        self.addCleanup(shutil.rmtree, self.tmpdir, True)
        self.addCleanup(database.close_db_connection)
        self.addCleanup(discord_api.invalidate_role_cache)

    def create_user(self, discord_id='100', name='Tester'):
        return database.upsert_discord_user({'id': discord_id, 'username': name, 'email': f'{name}@example.com'})

    def patch_roles(self, roles):
        """Make both cached and fresh role lookups return roles"""
        for name in ('fetch_member_roles', 'get_member_roles'):
            patcher = mock.patch.object(discord_api, name, return_value=list(roles))
            patcher.start()
            self.addCleanup(patcher.stop)

    def use_fivem_database(self):
        engine = create_engine(
            'sqlite://',
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
        with engine.begin() as conn:
            for statement in FIVEM_SCHEMA:
                conn.execute(text(statement))
        fivem_database.set_engine(engine)
        self.addCleanup(fivem_database.set_engine, None)
        self.addCleanup(engine.dispose)
        return engine


class ClientTestCase(PortalTestCase):
    """PortalTestCase with a Flask test client and session helpers."""

    def setUp(self):
        super().setUp()
        import app as portal_app
        portal_app.app.config['TESTING'] = True
        self.client = portal_app.app.test_client()

    def login(self, discord_id='100', name='Tester'):
        user_id = self.create_user(discord_id, name)
        user_session = database.create_session(user_id)
        with self.client.session_transaction() as sess:
            sess['session_id'] = user_session['id']
        return user_id
