# portal_stats.py - Public statistics, dashboard numbers, banking summaries, server status
from datetime import datetime, timedelta

import requests

import config
import database
import discord_api
import fivem_database
from config import logger
from discord_api import DiscordAPIError

DEPOSIT_TYPES = ('deposit', 'vklad')
WITHDRAW_TYPES = ('withdraw', 'vyber', 'výběr')

CFX_ENDPOINTS = (
    'https://servers-frontend.fivem.net/api/servers/single/{cfx_id}',
    'https://servers-live.fivem.net/api/servers/single/{cfx_id}',
    'https://servers.fivem.net/api/servers/single/{cfx_id}',
)

# =============================================================================
# PUBLIC STATISTICS
# =============================================================================

def _discord_counts():
    total_members = 0
    total_whitelisted = 0

    try:
        total_members = (discord_api.get_guild_info(with_counts=True) or {}).get('approximate_member_count') or 0
    except DiscordAPIError as e:
        logger.warning(f"Could not load guild member count: {e}")

    try:
        members = discord_api.list_guild_members(limit=1000) or []
        total_whitelisted = sum(
            1 for member in members if config.DISCORD_WHITELIST_ROLE_ID in member.get('roles', [])
        )
    except DiscordAPIError as e:
        logger.warning(f"Could not load whitelisted members: {e}")

    return total_members, total_whitelisted


def _whitelist_counts():
    row = database.get_db_connection().execute('''
        SELECT COUNT(*) AS total,
               COALESCE(SUM(CASE WHEN status = 'approved' THEN 1 ELSE 0 END), 0) AS approved
        FROM whitelist_requests
    ''').fetchone()
    return row['total'], row['approved']


def days_running(now=None):
    now = now or datetime.now()
    return max(0, (now - config.LAUNCH_DATE).days)


def public_statistics():
    economy = fivem_database.economy_totals()
    total_members, total_whitelisted = _discord_counts()
    total_requests, approved_requests = _whitelist_counts()

    return {
        "totalBank": economy['bank'],
        "totalMoney": economy['money'],
        "totalBlack": economy['black_money'],
        "totalVehicles": fivem_database.count_vehicles(),
        "totalCharacters": fivem_database.count_characters(),
        "totalDiscordMembers": total_members,
        "totalWhitelisted": total_whitelisted,
        "totalWhitelistRequests": total_requests,
        "approvedWhitelistRequests": approved_requests,
        "daysRunning": days_running(),
    }

# =============================================================================
# DASHBOARD
# =============================================================================

def uptime_percentage(now=None, downtime=0):
    """Share of time since SERVER_START_DATE the server was up, capped at 99.9"""
    now = now or datetime.now()
    total = (now - config.SERVER_START_DATE).total_seconds()
    if total <= 0:
        return 0
    percentage = round((total - downtime) / total * 100, 1)
    return min(99.9, max(0, percentage))


def dashboard_statistics():
    now = datetime.now()
    online_players = fivem_database.count_online(now - timedelta(minutes=config.ONLINE_WINDOW_MINUTES))
    economy = fivem_database.economy_totals()

    return {
        "server": {
            "onlinePlayers": online_players,
            "maxPlayers": config.FIVEM_MAX_PLAYERS,
            "uptime": uptime_percentage(now),
            "status": "online" if online_players > 0 else "maintenance",
        },
        "statistics": {
            "totalCharacters": fivem_database.count_characters(),
            "registeredUsers": database.count_registered_users(),
            "totalVehicles": fivem_database.count_vehicles(),
            "economy": {
                "totalBank": economy['bank'],
                "totalMoney": economy['money'],
                "totalBlackMoney": economy['black_money'],
            },
        },
        "lastUpdate": now.isoformat(),
    }

# =============================================================================
# BANKING
# =============================================================================

def _day_key(value):
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d')
    if isinstance(value, (int, float)):
        # epoch seconds or milliseconds
        return datetime.fromtimestamp(value / 1000 if value > 1e11 else value).strftime('%Y-%m-%d')
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace('Z', '')).strftime('%Y-%m-%d')
    return None


def summarize_transactions(transactions, identifier):
    """Income/expense totals, counts per type and net value per day for one character"""
    stats = {
        "totalIncome": 0,
        "totalExpense": 0,
        "totalTransactions": len(transactions),
        "transactionsByType": {},
        "transactionsByMonth": {},
    }

    for transaction in transactions:
        try:
            value = int(transaction.get('value') or 0)
        except (TypeError, ValueError):
            value = 0
        raw_type = transaction.get('type')
        kind = (raw_type or '').lower()

        if kind in DEPOSIT_TYPES:
            signed = value
        elif kind in WITHDRAW_TYPES:
            signed = -value
        elif transaction.get('receiver_identifier') == identifier:
            signed = value
        else:
            signed = -value

        if signed >= 0:
            stats['totalIncome'] += value
        else:
            stats['totalExpense'] += value

        stats['transactionsByType'][raw_type] = stats['transactionsByType'].get(raw_type, 0) + 1

        try:
            day = _day_key(transaction.get('date'))
        except (ValueError, OverflowError, OSError):
            day = None
        if day:
            stats['transactionsByMonth'][day] = stats['transactionsByMonth'].get(day, 0) + signed

    return stats

# =============================================================================
# SERVER STATUS
# =============================================================================

def _get_json(url):
    try:
        response = requests.get(url, headers={"Accept": "application/json"}, timeout=5)
    except requests.RequestException as e:
        logger.debug(f"Server status query failed for {url}: {e}")
        return None
    if response.status_code != 200:
        logger.debug(f"{url} returned status {response.status_code}")
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _query_direct():
    base = f"http://{config.FIVEM_SERVER_IP}:{config.FIVEM_SERVER_PORT}"

    info = _get_json(f"{base}/info.json")
    players = _get_json(f"{base}/players.json")
    dynamic = _get_json(f"{base}/dynamic.json")

    if not isinstance(players, list) and not isinstance(dynamic, dict) and not isinstance(info, dict):
        return None

    info = info if isinstance(info, dict) else {}
    dynamic = dynamic if isinstance(dynamic, dict) else {}
    variables = info.get('vars') or {}
    players = players if isinstance(players, list) else []

    return {
        "clients": dynamic.get('clients', len(players)),
        "sv_maxclients": dynamic.get('sv_maxclients') or variables.get('sv_maxClients'),
        "hostname": dynamic.get('hostname') or variables.get('sv_projectName'),
        "mapname": dynamic.get('mapname') or variables.get('mapname'),
        "gametype": dynamic.get('gametype') or variables.get('gametype'),
        "players": players,
    }


def _query_cfx():
    for template in CFX_ENDPOINTS:
        data = _get_json(template.format(cfx_id=config.FIVEM_CFX_ID))
        if isinstance(data, dict) and isinstance(data.get('Data'), dict):
            server = data['Data']
            return {
                "clients": server.get('clients'),
                "sv_maxclients": server.get('sv_maxclients'),
                "hostname": server.get('hostname'),
                "mapname": server.get('mapname'),
                "gametype": server.get('gametype'),
                "players": server.get('players') or data.get('Players') or [],
            }
    return None


def _average_ping(players):
    pings = [player.get('ping') for player in players if isinstance(player, dict)
             and isinstance(player.get('ping'), (int, float))]
    return round(sum(pings) / len(pings)) if pings else 0


def server_status():
    """Live game server status; status 'offline' with zeroed numbers when unreachable"""
    now = datetime.now()
    data = None

    if config.FIVEM_SERVER_IP:
        data = _query_direct()
    if data is None and config.FIVEM_CFX_ID:
        data = _query_cfx()

    if data is None:
        logger.warning("Server status unavailable from every endpoint")
        return {
            "online": 0,
            "maxPlayers": config.FIVEM_MAX_PLAYERS,
            "status": "offline",
            "serverName": config.SERVER_NAME,
            "mapName": "",
            "gamemode": "",
            "ping": 0,
            "uptime": 0,
            "lastUpdate": now.isoformat(),
        }

    return {
        "online": data.get('clients') or 0,
        "maxPlayers": data.get('sv_maxclients') or config.FIVEM_MAX_PLAYERS,
        "status": "online",
        "serverName": data.get('hostname') or config.SERVER_NAME,
        "mapName": data.get('mapname') or "Los Santos",
        "gamemode": data.get('gametype') or "Roleplay",
        "ping": _average_ping(data.get('players') or []),
        "uptime": uptime_percentage(now),
        "lastUpdate": now.isoformat(),
    }
