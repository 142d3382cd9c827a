import json
import unittest
from datetime import datetime, timedelta
from unittest import mock

from sqlalchemy import text

import config
import discord_api
import fivem_database
import portal_stats
from discord_api import DiscordAPIError
from tests.support import PortalTestCase


def seen(minutes_ago):
    return (datetime.now() - timedelta(minutes=minutes_ago)).strftime('%Y-%m-%d %H:%M:%S')


class GameDataTestCase(PortalTestCase):
    def setUp(self):
        super().setUp()
        self.engine = self.use_fivem_database()
        with self.engine.begin() as conn:
            conn.execute(text('''
                INSERT INTO users (identifier, firstname, lastname, accounts, discord_id, last_seen) VALUES
                ('char:1', 'Jan', 'Novák', :a1, 'discord:100', :recent),
                ('char:2', 'Eva', 'Dvořák', :a2, 'discord:200', :old),
                ('char:3', 'Petr', 'Malý', 'not json', 'discord:100', :old)
            '''), {
                "a1": json.dumps({"money": 100, "bank": 1000, "black_money": 5}),
                "a2": json.dumps({"money": "50", "bank": 250}),
                "recent": seen(1),
                "old": seen(60),
            })
            conn.execute(text('''
                INSERT INTO owned_vehicles (plate, owner, type, stored) VALUES
                ('ABC 123', 'char:1', 'car', 1),
                ('XYZ 999', 'char:2', 'boat', 0)
            '''))


class FivemDatabaseTests(GameDataTestCase):
    def test_characters(self):
        characters = fivem_database.list_characters()
        self.assertEqual([c['firstname'] for c in characters], ['Petr', 'Eva', 'Jan'])

        mine = fivem_database.characters_for_discord('100')
        self.assertEqual({c['identifier'] for c in mine}, {'char:1', 'char:3'})

    def test_rename_character(self):
        self.assertTrue(fivem_database.rename_character(1, 'Honza', 'Nový'))
        self.assertFalse(fivem_database.rename_character(99, 'A', 'B'))
        self.assertEqual(fivem_database.list_characters()[-1]['firstname'], 'Honza')

    def test_vehicles(self):
        self.assertEqual(fivem_database.count_vehicles(), 2)
        self.assertTrue(fivem_database.delete_vehicle('ABC 123'))
        self.assertFalse(fivem_database.delete_vehicle('ABC 123'))
        self.assertEqual([v['plate'] for v in fivem_database.list_vehicles()], ['XYZ 999'])

    def test_economy_totals_skip_unreadable_accounts(self):
        self.assertEqual(fivem_database.economy_totals(), {"money": 150, "bank": 1250, "black_money": 5})

    def test_online_count(self):
        self.assertEqual(fivem_database.count_online(datetime.now() - timedelta(minutes=5)), 1)


class StatisticsTests(GameDataTestCase):
    def test_dashboard_statistics(self):
        self.create_user('1')
        stats = portal_stats.dashboard_statistics()

        self.assertEqual(stats['server']['onlinePlayers'], 1)
        self.assertEqual(stats['server']['status'], 'online')
        self.assertEqual(stats['server']['maxPlayers'], config.FIVEM_MAX_PLAYERS)
        self.assertLessEqual(stats['server']['uptime'], 99.9)
        self.assertEqual(stats['statistics']['totalCharacters'], 3)
        self.assertEqual(stats['statistics']['registeredUsers'], 1)
        self.assertEqual(stats['statistics']['economy']['totalBank'], 1250)

    def test_dashboard_maintenance_when_nobody_online(self):
        with self.engine.begin() as conn:
            conn.execute(text('UPDATE users SET last_seen = :old'), {"old": seen(30)})
        self.assertEqual(portal_stats.dashboard_statistics()['server']['status'], 'maintenance')

    def test_public_statistics(self):
        members = [{'roles': ['role-whitelist']}, {'roles': []}, {'roles': ['role-whitelist', 'x']}]
        with mock.patch.object(discord_api, 'get_guild_info', return_value={'approximate_member_count': 40}), \
                mock.patch.object(discord_api, 'list_guild_members', return_value=members):
            stats = portal_stats.public_statistics()

        self.assertEqual(stats['totalDiscordMembers'], 40)
        self.assertEqual(stats['totalWhitelisted'], 2)
        self.assertEqual(stats['totalMoney'], 150)
        self.assertEqual(stats['totalVehicles'], 2)
        self.assertEqual(stats['totalWhitelistRequests'], 0)
        self.assertGreaterEqual(stats['daysRunning'], 0)

    def test_public_statistics_survive_discord_errors(self):
        error = DiscordAPIError(500, 'down')
        with mock.patch.object(discord_api, 'get_guild_info', side_effect=error), \
                mock.patch.object(discord_api, 'list_guild_members', side_effect=error):
            stats = portal_stats.public_statistics()

        self.assertEqual(stats['totalDiscordMembers'], 0)
        self.assertEqual(stats['totalWhitelisted'], 0)


class TransactionSummaryTests(unittest.TestCase):
    def test_summary_by_type_and_day(self):
        transactions = [
            {'value': 500, 'type': 'deposit', 'date': '2025-03-01 10:00:00', 'receiver_identifier': 'me'},
            {'value': 200, 'type': 'withdraw', 'date': '2025-03-01 12:00:00', 'sender_identifier': 'me'},
            {'value': 300, 'type': 'transfer', 'date': '2025-03-02 09:00:00',
             'receiver_identifier': 'me', 'sender_identifier': 'other'},
            {'value': 50, 'type': 'transfer', 'date': '2025-03-02 18:00:00',
             'receiver_identifier': 'other', 'sender_identifier': 'me'},
        ]
        stats = portal_stats.summarize_transactions(transactions, 'me')

        self.assertEqual(stats['totalIncome'], 800)
        self.assertEqual(stats['totalExpense'], 250)
        self.assertEqual(stats['totalTransactions'], 4)
        self.assertEqual(stats['transactionsByType'], {'deposit': 1, 'withdraw': 1, 'transfer': 2})
        self.assertEqual(stats['transactionsByMonth'], {'2025-03-01': 300, '2025-03-02': 250})

    def test_bad_dates_are_skipped(self):
        stats = portal_stats.summarize_transactions(
            [{'value': 10, 'type': 'vklad', 'date': 'yesterday'}], 'me'
        )
        self.assertEqual(stats['totalIncome'], 10)
        self.assertEqual(stats['transactionsByMonth'], {})


class ServerStatusTests(unittest.TestCase):
    def test_offline_fallback(self):
        with mock.patch.object(config, 'FIVEM_SERVER_IP', '127.0.0.1'), \
                mock.patch.object(config, 'FIVEM_CFX_ID', 'abc123'), \
                mock.patch.object(portal_stats, '_get_json', return_value=None):
            status = portal_stats.server_status()

        self.assertEqual(status['status'], 'offline')
        self.assertEqual(status['online'], 0)

    def test_direct_query(self):
        responses = {
            'info.json': {'vars': {'sv_projectName': 'Test RP', 'sv_maxClients': '64'}},
            'players.json': [{'ping': 40}, {'ping': 60}],
            'dynamic.json': {'clients': 2, 'sv_maxclients': 64, 'mapname': 'San Andreas', 'gametype': 'RP'},
        }

        def fake_get_json(url):
            return responses[url.rsplit('/', 1)[1]]

        with mock.patch.object(config, 'FIVEM_SERVER_IP', '127.0.0.1'), \
                mock.patch.object(portal_stats, '_get_json', side_effect=fake_get_json):
            status = portal_stats.server_status()

        self.assertEqual(status['status'], 'online')
        self.assertEqual(status['online'], 2)
        self.assertEqual(status['maxPlayers'], 64)
        self.assertEqual(status['serverName'], 'Test RP')
        self.assertEqual(status['ping'], 50)

    def test_cfx_listing_used_when_direct_query_fails(self):
        listing = {'Data': {
            'clients': 3,
            'sv_maxclients': 48,
            'hostname': 'CFX RP',
            'mapname': 'Cayo',
            'gametype': 'Roleplay',
            'players': [{'ping': 20}, {'ping': 30}, {'ping': 40}],
        }}
        requested = []

        def fake_get_json(url):
            requested.append(url)
            if url.startswith('https://servers-live.fivem.net/'):
                return listing
            return None

        with mock.patch.object(config, 'FIVEM_SERVER_IP', '127.0.0.1'), \
                mock.patch.object(config, 'FIVEM_SERVER_PORT', 30120), \
                mock.patch.object(config, 'FIVEM_CFX_ID', 'abc123'), \
                mock.patch.object(portal_stats, '_get_json', side_effect=fake_get_json):
            status = portal_stats.server_status()

        self.assertEqual(status['status'], 'online')
        self.assertEqual(status['online'], 3)
        self.assertEqual(status['maxPlayers'], 48)
        self.assertEqual(status['serverName'], 'CFX RP')
        self.assertEqual(status['ping'], 30)
        self.assertIn('https://servers-frontend.fivem.net/api/servers/single/abc123', requested)
        self.assertEqual(requested[:3], [
            'http://127.0.0.1:30120/info.json',
            'http://127.0.0.1:30120/players.json',
            'http://127.0.0.1:30120/dynamic.json',
        ])


if __name__ == '__main__':
    unittest.main()
