import sqlite3
import unittest
from datetime import datetime, timedelta, timezone

import config
import database
from tests.support import PortalTestCase


class UserAccountTests(PortalTestCase):
    def test_upsert_creates_user_and_discord_account(self):
        user_id = database.upsert_discord_user({
            'id': '555', 'username': 'pilot', 'global_name': 'Pilot', 'avatar': 'abc', 'email': 'p@example.com',
        })

        self.assertEqual(database.get_discord_id(user_id), '555')
        account = database.get_user_with_account(user_id)
        self.assertEqual(account['name'], 'Pilot')
        self.assertEqual(account['image'], 'https://cdn.discordapp.com/avatars/555/abc.png')

    def test_upsert_same_discord_id_refreshes_existing_user(self):
        first = database.upsert_discord_user({'id': '555', 'username': 'old'})
        second = database.upsert_discord_user({'id': '555', 'username': 'new'})

        self.assertEqual(first, second)
        self.assertEqual(database.count_registered_users(), 1)
        self.assertEqual(database.get_user_with_account(first)['name'], 'new')

    def test_delete_user_cascade_removes_related_rows(self):
        user_id = self.create_user('200')
        database.create_session(user_id)
        conn = database.get_db_connection()
        conn.execute(
            "INSERT INTO whitelist_requests (user_id, form_data, serial_number) VALUES (?, '{}', 'WL-2025-0001')",
            (user_id,)
        )
        conn.execute(
            "INSERT INTO photo_submissions (contest_id, user_id, image_url) VALUES (1, ?, 'https://x/a.png')",
            (user_id,)
        )
        conn.execute("INSERT INTO photo_likes (submission_id, user_id) VALUES (1, 'someone-else')")
        conn.commit()

        self.assertTrue(database.delete_user_cascade(user_id))
        self.assertIsNone(database.get_discord_id(user_id))
        for table in ('whitelist_requests', 'sessions', 'photo_submissions', 'photo_likes'):
            self.assertEqual(conn.execute(f'SELECT COUNT(*) FROM {table}').fetchone()[0], 0)

    def test_delete_unknown_user_returns_false(self):
        self.assertFalse(database.delete_user_cascade('missing'))

    def test_list_users_counts_only_active_sessions(self):
        user_id = self.create_user('300')
        database.create_session(user_id)
        conn = database.get_db_connection()
        expired = database.format_timestamp(datetime.now(timezone.utc) - timedelta(days=1))
        conn.execute("INSERT INTO sessions (id, user_id, expires_at) VALUES ('old', ?, ?)", (user_id, expired))
        conn.commit()

        users = database.list_users_with_accounts()
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0]['discord_id'], '300')
        self.assertEqual(users[0]['active_sessions'], 1)


class SessionTests(PortalTestCase):
    def test_session_round_trip_and_delete(self):
        user_id = self.create_user()
        created = database.create_session(user_id, '127.0.0.1', 'tests')

        self.assertEqual(database.get_session(created['id'])['user_id'], user_id)
        database.delete_session(created['id'])
        self.assertIsNone(database.get_session(created['id']))

    def test_expired_session_is_ignored(self):
        user_id = self.create_user()
        conn = database.get_db_connection()
        expired = database.format_timestamp(datetime.now(timezone.utc) - timedelta(minutes=1))
        conn.execute("INSERT INTO sessions (id, user_id, expires_at) VALUES ('s1', ?, ?)", (user_id, expired))
        conn.commit()

        self.assertIsNone(database.get_session('s1'))
        self.assertIsNone(database.get_session(None))


class TransactionTests(PortalTestCase):
    def test_transaction_rolls_back_on_error(self):
        with self.assertRaises(RuntimeError):
            with database.transaction() as conn:
                conn.execute("INSERT INTO rule_sections (id, title) VALUES ('a', 'A')")
                raise RuntimeError("boom")

        count = database.get_db_connection().execute('SELECT COUNT(*) FROM rule_sections').fetchone()[0]
        self.assertEqual(count, 0)

    def test_immediate_transaction_holds_write_lock(self):
        with database.transaction(immediate=True) as conn:
            self.assertTrue(conn.in_transaction)
            other = sqlite3.connect(config.DATABASE, timeout=0)
            try:
                with self.assertRaises(sqlite3.OperationalError):
                    other.execute("INSERT INTO rule_sections (id, title) VALUES ('b', 'B')")
            finally:
                other.close()
        self.assertFalse(conn.in_transaction)


if __name__ == '__main__':
    unittest.main()
