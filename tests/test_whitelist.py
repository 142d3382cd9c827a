import unittest
from datetime import datetime, timezone
from unittest import mock

import config
import database
import discord_api
import whitelist
from errors import BadRequest, Conflict, Forbidden, NotFound
from tests.support import PortalTestCase

FORM = {"discordName": "tester", "age": "21", "reason": "Chci hrát"}


def add_question(field_name, field_type='text', **extra):
    data = {'question': field_name.title(), 'field_name': field_name, 'field_type': field_type}
    data.update(extra)
    return whitelist.create_question(data)


class SubmitRequestTests(PortalTestCase):
    def test_first_request_gets_serial_and_attempt_counters(self):
        user_id = self.create_user()
        result = whitelist.submit_request(user_id, FORM)

        year = datetime.now(timezone.utc).year
        self.assertEqual(result['serialNumber'], f"WL-{year}-0001")
        self.assertEqual(result['totalAttempts'], 1)
        self.assertEqual(result['remainingAttempts'], 2)
        self.assertEqual(result['maxAttempts'], 3)

    def test_serial_numbers_increase_within_the_year(self):
        first = self.create_user('1')
        second = self.create_user('2')
        whitelist.submit_request(first, FORM)
        result = whitelist.submit_request(second, FORM)

        self.assertTrue(result['serialNumber'].endswith('-0002'))

    def test_serial_after_deleted_user_continues_from_highest(self):
        first = self.create_user('1')
        second = self.create_user('2')
        whitelist.submit_request(first, FORM)
        whitelist.submit_request(second, FORM)
        database.delete_user_cascade(first)

        result = whitelist.submit_request(self.create_user('3'), FORM)

        self.assertTrue(result['serialNumber'].endswith('-0003'))

    def test_serial_ignores_other_years(self):
        conn = database.get_db_connection()
        conn.execute(
            "INSERT INTO whitelist_requests (user_id, form_data, serial_number) VALUES ('x', '{}', 'WL-1999-0042')"
        )
        conn.commit()

        self.assertEqual(whitelist.next_serial_number(conn, 1999), 'WL-1999-0043')
        self.assertEqual(whitelist.next_serial_number(conn, 2000), 'WL-2000-0001')

    def test_pending_request_blocks_another(self):
        user_id = self.create_user()
        whitelist.submit_request(user_id, FORM)

        with self.assertRaises(BadRequest) as ctx:
            whitelist.submit_request(user_id, FORM)
        self.assertIn("aktivní žádost", ctx.exception.message)

    def test_attempt_limit(self):
        user_id = self.create_user()
        for _ in range(config.MAX_WHITELIST_ATTEMPTS):
            request_id = whitelist.submit_request(user_id, FORM)['id']
            database.get_db_connection().execute(
                "UPDATE whitelist_requests SET status = 'rejected' WHERE id = ?", (request_id,)
            )

        with self.assertRaises(BadRequest) as ctx:
            whitelist.submit_request(user_id, FORM)
        self.assertIn("maximálního počtu pokusů", ctx.exception.message)

    def test_blacklisted_user_cannot_apply(self):
        user_id = self.create_user()
        with self.assertRaises(Forbidden):
            whitelist.submit_request(user_id, FORM, roles=['role-blacklisted'])

    def test_missing_form_data(self):
        with self.assertRaises(BadRequest):
            whitelist.submit_request(self.create_user(), None)

    def test_answers_checked_against_active_questions(self):
        add_question('age', 'number', min_value=15)
        add_question('rules', 'checkbox')
        user_id = self.create_user()

        with self.assertRaises(BadRequest) as ctx:
            whitelist.submit_request(user_id, {"age": "12", "rules": False})
        self.assertIn("age must be at least 15", ctx.exception.message)
        self.assertIn("rules must be confirmed", ctx.exception.message)

        result = whitelist.submit_request(user_id, {"age": "18", "rules": True})
        self.assertEqual(result['totalAttempts'], 1)


class StatusTests(PortalTestCase):
    def test_status_without_request(self):
        status = whitelist.get_status(self.create_user())
        self.assertFalse(status['hasRequest'])
        self.assertIsNone(status['status'])

    def test_status_of_latest_request(self):
        user_id = self.create_user()
        request_id = whitelist.submit_request(user_id, FORM)['id']

        status = whitelist.get_status(user_id)
        self.assertTrue(status['hasRequest'])
        self.assertEqual(status['requestId'], request_id)
        self.assertEqual(status['message'], config.WHITELIST_STATUS_MESSAGES['pending'])


class UpdateStatusTests(PortalTestCase):
    def setUp(self):
        super().setUp()
        self.user_id = self.create_user('777')
        self.request_id = whitelist.submit_request(self.user_id, FORM)['id']

    def test_approve_adds_whitelist_role(self):
        with mock.patch.object(discord_api, 'add_whitelist_role', return_value=True) as add_role:
            result = whitelist.update_status(self.request_id, 'approved', reviewer='999')

        add_role.assert_called_once_with('777')
        self.assertTrue(result['roleUpdated'])
        self.assertFalse(result['discordNotified'])
        self.assertIsNone(result['discordError'])
        self.assertEqual(result['discordId'], '777')
        self.assertEqual(whitelist.get_request(self.request_id)['status'], 'approved')

    def test_reject_succeeds_when_either_role_removed(self):
        with mock.patch.object(discord_api, 'remove_whitelist_role', return_value=False), \
                mock.patch.object(discord_api, 'remove_waiting_role', return_value=True):
            result = whitelist.update_status(self.request_id, 'rejected')

        self.assertTrue(result['roleUpdated'])
        self.assertEqual(result['message'], config.WHITELIST_UPDATE_MESSAGES['rejected'])

    def test_return_to_pending_restores_waiting_role(self):
        with mock.patch.object(discord_api, 'remove_whitelist_role', return_value=False) as remove_role, \
                mock.patch.object(discord_api, 'add_waiting_role', return_value=False) as add_waiting:
            result = whitelist.update_status(self.request_id, 'pending')

        remove_role.assert_called_once_with('777')
        add_waiting.assert_called_once_with('777')
        self.assertFalse(result['roleUpdated'])
        self.assertEqual(whitelist.get_request(self.request_id)['status'], 'pending')

    def test_discord_failure_keeps_new_status(self):
        with mock.patch.object(discord_api, 'add_whitelist_role', side_effect=RuntimeError("down")):
            result = whitelist.update_status(self.request_id, 'approved')

        self.assertFalse(result['roleUpdated'])
        self.assertEqual(result['discordError'], 'down')
        self.assertEqual(whitelist.get_request(self.request_id)['status'], 'approved')

    def test_invalid_status(self):
        with self.assertRaises(BadRequest):
            whitelist.update_status(self.request_id, 'archived')

    def test_unknown_request(self):
        with self.assertRaises(NotFound):
            whitelist.update_status(9999, 'approved')


class UserRequestsTests(PortalTestCase):
    def test_whitelisted_user_without_requests_gets_automatic_approval(self):
        user_id = self.create_user('42')
        with mock.patch.object(discord_api, 'get_member_roles', return_value=['role-whitelist']):
            result = whitelist.get_user_requests(user_id, '42')

        self.assertTrue(result['hasWhitelist'])
        self.assertEqual(result['totalAttempts'], 1)
        self.assertEqual(result['requests'][0]['status'], 'approved')
        self.assertIsNone(result['activeRequest'])

    def test_automatic_approval_after_deleted_user_gets_fresh_serial(self):
        first = self.create_user('1')
        whitelist.submit_request(first, FORM)
        whitelist.submit_request(self.create_user('2'), FORM)
        database.delete_user_cascade(first)

        user_id = self.create_user('44')
        with mock.patch.object(discord_api, 'get_member_roles', return_value=['role-whitelist']):
            result = whitelist.get_user_requests(user_id, '44')

        self.assertTrue(result['requests'][0]['serial_number'].endswith('-0003'))

    def test_pending_request_is_active(self):
        user_id = self.create_user('43')
        whitelist.submit_request(user_id, FORM)
        with mock.patch.object(discord_api, 'get_member_roles', return_value=[]):
            result = whitelist.get_user_requests(user_id, '43')

        self.assertFalse(result['canSubmitNew'])
        self.assertEqual(result['activeRequest']['status'], 'pending')
        self.assertEqual(result['remainingAttempts'], 2)


class DetailAndNotesTests(PortalTestCase):
    def test_owner_can_view_but_not_manage(self):
        user_id = self.create_user()
        request_id = whitelist.submit_request(user_id, FORM)['id']

        detail = whitelist.get_request_detail(request_id, user_id, False)
        self.assertEqual(detail['request']['form_data'], FORM)
        self.assertFalse(detail['canManageNotes'])

    def test_other_user_is_forbidden(self):
        request_id = whitelist.submit_request(self.create_user('1'), FORM)['id']
        with self.assertRaises(Forbidden):
            whitelist.get_request_detail(request_id, 'someone-else', False)

    def test_update_notes(self):
        request_id = whitelist.submit_request(self.create_user(), FORM)['id']
        whitelist.update_notes(request_id, "OK")
        self.assertEqual(whitelist.get_request(request_id)['notes'], "OK")

        with self.assertRaises(BadRequest):
            whitelist.update_notes(request_id, 5)
        with self.assertRaises(NotFound):
            whitelist.update_notes(9999, "x")


class MigrationTests(PortalTestCase):
    def test_already_migrated(self):
        self.assertTrue(whitelist.migrate_serial_numbers()['alreadyMigrated'])

    def test_backfill_numbers_per_year(self):
        conn = database.get_db_connection()
        conn.execute('DROP TABLE whitelist_requests')
        conn.execute('''
            CREATE TABLE whitelist_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT, user_id TEXT, form_data TEXT,
                status TEXT, notes TEXT, created_at TIMESTAMP, updated_at TIMESTAMP
            )
        ''')
        for created_at in ('2024-05-01 10:00:00', '2025-01-02 10:00:00', '2024-06-01 10:00:00'):
            conn.execute(
                "INSERT INTO whitelist_requests (user_id, form_data, status, created_at) VALUES ('u', '{}', 'pending', ?)",
                (created_at,)
            )
        conn.commit()

        result = whitelist.migrate_serial_numbers()
        self.assertEqual(result['recordsUpdated'], 3)
        serials = [row[0] for row in conn.execute('SELECT serial_number FROM whitelist_requests ORDER BY id')]
        self.assertEqual(serials, ['WL-2024-0001', 'WL-2025-0001', 'WL-2024-0002'])


class QuestionTests(PortalTestCase):
    def test_active_questions_grouped_by_category(self):
        add_question('discordName', category='identity')
        add_question('story', 'textarea')
        add_question('hidden', is_active=False)

        result = whitelist.list_active_questions()
        self.assertEqual(result['totalQuestions'], 2)
        self.assertEqual(set(result['categories']), {'identity', 'general'})
        self.assertEqual(len(whitelist.list_all_questions()), 3)

    def test_duplicate_field_name_conflicts(self):
        add_question('story')
        with self.assertRaises(Conflict):
            add_question('story')

    def test_update_to_taken_field_name(self):
        add_question('story')
        question_id = add_question('reason')
        with self.assertRaises(BadRequest):
            whitelist.update_question(question_id, {'question': 'Q', 'field_name': 'story', 'field_type': 'text'})

    def test_invalid_field_type(self):
        with self.assertRaises(BadRequest):
            add_question('color', 'colour-picker')

    def test_critical_question_cannot_be_deleted(self):
        question_id = add_question('rules', 'checkbox')
        with self.assertRaises(BadRequest):
            whitelist.delete_question(question_id)

    def test_reorder_questions(self):
        first = add_question('a', order_index=0)
        second = add_question('b', order_index=1)
        whitelist.reorder_questions([{'id': first, 'order_index': 1}, {'id': second, 'order_index': 0}])

        names = [q['field_name'] for q in whitelist.list_all_questions()]
        self.assertEqual(names, ['b', 'a'])

    def test_reorder_rejects_bad_payload(self):
        with self.assertRaises(BadRequest):
            whitelist.reorder_questions([{'id': 1}])
        with self.assertRaises(BadRequest):
            whitelist.reorder_questions([])


if __name__ == '__main__':
    unittest.main()
