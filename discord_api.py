# discord_api.py - Discord REST client: guild members, role sync, OAuth, audit webhook
import time
import threading
from datetime import datetime, timezone
from urllib.parse import urlencode

import requests

import config
from config import logger

# =============================================================================
# DISCORD API HELPERS
# =============================================================================

class DiscordAPIError(Exception):
    """A Discord REST call failed (status_code is None for network errors)"""

    def __init__(self, status_code, detail):
        super().__init__(f"Discord API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def discord_api_request(endpoint, method="GET", data=None, params=None, reason=None):
    """Make Discord API request as the bot, return parsed JSON (True for empty bodies)"""
    headers = {
        "Authorization": f"Bot {config.DISCORD_BOT_TOKEN}",
        "Content-Type": "application/json"
    }
    if reason:
        headers["X-Audit-Log-Reason"] = reason

    url = f"{config.DISCORD_API_BASE}{endpoint}"

    try:
        response = requests.request(method, url, headers=headers, json=data, params=params, timeout=5)
    except requests.RequestException as e:
        logger.error(f"Discord API request failed: {e}")
        raise DiscordAPIError(None, str(e))

    if response.status_code in [200, 201, 204]:
        return response.json() if response.content else True

    raise DiscordAPIError(response.status_code, response.text)


def get_guild_member(discord_id, guild_id=None):
    """Get guild member, None when the user is not on the server"""
    guild_id = guild_id or config.DISCORD_GUILD_ID
    try:
        return discord_api_request(f"/guilds/{guild_id}/members/{discord_id}")
    except DiscordAPIError as e:
        if e.status_code == 404:
            return None
        raise


def get_guild_info(with_counts=False):
    params = {"with_counts": "true"} if with_counts else None
    return discord_api_request(f"/guilds/{config.DISCORD_GUILD_ID}", params=params)


def list_guild_members(guild_id=None, limit=1000):
    guild_id = guild_id or config.DISCORD_GUILD_ID
    return discord_api_request(f"/guilds/{guild_id}/members", params={"limit": limit})


def members_with_role(role_id, guild_id=None):
    """Members of a guild holding role_id, shaped for the team page"""
    members = []
    for member in list_guild_members(guild_id) or []:
        if role_id not in member.get('roles', []):
            continue
        user = member.get('user', {})
        avatar = user.get('avatar')
        members.append({
            "id": user.get('id'),
            "username": user.get('username'),
            "avatar": f"https://cdn.discordapp.com/avatars/{user.get('id')}/{avatar}" if avatar else None
        })
    return members

# =============================================================================
# MEMBER ROLES
# =============================================================================

_role_cache = {}
_role_cache_lock = threading.Lock()


def fetch_member_roles(discord_id):
    """Current roles straight from Discord; [] for non-members, raises on API failure"""
    member = get_guild_member(discord_id)
    roles = (member or {}).get('roles', []) or []
    with _role_cache_lock:
        _role_cache[discord_id] = (roles, time.time())
    return roles


def get_member_roles(discord_id):
    """Roles with a short cache; never raises, [] when unknown"""
    if not config.DISCORD_BOT_TOKEN or not config.DISCORD_GUILD_ID:
        logger.error("Missing Discord configuration (DISCORD_BOT_TOKEN or DISCORD_GUILD_ID)")
        return []
    if not discord_id:
        return []

    with _role_cache_lock:
        cached = _role_cache.get(discord_id)
    if cached and time.time() - cached[1] < config.ROLE_CACHE_TTL:
        return cached[0]

    try:
        return fetch_member_roles(discord_id)
    except DiscordAPIError as e:
        logger.error(f"Error fetching Discord roles for {discord_id}: {e}")
        return []


def invalidate_role_cache(discord_id=None):
    with _role_cache_lock:
        if discord_id is None:
            _role_cache.clear()
        else:
            _role_cache.pop(discord_id, None)


def _log_role_failure(action, discord_id, error):
    logger.error(f"Failed to {action} for {discord_id}: {error}")
    if error.status_code == 403:
        logger.error("Bot lacks 'Manage Roles' or its role is below the target role")
    elif error.status_code == 404:
        logger.error("User or role not found")


def _put_role(discord_id, role_id, reason):
    discord_api_request(
        f"/guilds/{config.DISCORD_GUILD_ID}/members/{discord_id}/roles/{role_id}",
        "PUT", reason=reason
    )


def _delete_role(discord_id, role_id, reason):
    discord_api_request(
        f"/guilds/{config.DISCORD_GUILD_ID}/members/{discord_id}/roles/{role_id}",
        "DELETE", reason=reason
    )


def remove_waiting_role(discord_id):
    try:
        _delete_role(discord_id, config.DISCORD_WAITING_ROLE_ID,
                     "Waiting role removed after whitelist review")
    except DiscordAPIError as e:
        _log_role_failure("remove waiting role", discord_id, e)
        return False
    invalidate_role_cache(discord_id)
    logger.info(f"Waiting role removed from {discord_id}")
    return True


def add_waiting_role(discord_id):
    try:
        if get_guild_member(discord_id) is None:
            logger.error(f"User {discord_id} is not a member of the guild")
            return False
        _put_role(discord_id, config.DISCORD_WAITING_ROLE_ID,
                  "Waiting role added when whitelist request returned to pending")
    except DiscordAPIError as e:
        _log_role_failure("add waiting role", discord_id, e)
        return False
    invalidate_role_cache(discord_id)
    logger.info(f"Waiting role added to {discord_id}")
    return True


def add_whitelist_role(discord_id):
    """Grant the whitelist role, then drop the waiting role"""
    try:
        if get_guild_member(discord_id) is None:
            logger.error(f"User {discord_id} is not a member of the guild")
            return False
        _put_role(discord_id, config.DISCORD_WHITELIST_ROLE_ID,
                  "Whitelist role added after approved request")
    except DiscordAPIError as e:
        _log_role_failure("add whitelist role", discord_id, e)
        return False

    invalidate_role_cache(discord_id)
    logger.info(f"Whitelist role added to {discord_id}")
    waiting_removed = remove_waiting_role(discord_id)
    logger.info(f"Waiting role removed: {waiting_removed}")
    return True


def remove_whitelist_role(discord_id):
    try:
        _delete_role(discord_id, config.DISCORD_WHITELIST_ROLE_ID,
                     "Whitelist role removed after rejected request")
    except DiscordAPIError as e:
        _log_role_failure("remove whitelist role", discord_id, e)
        return False
    invalidate_role_cache(discord_id)
    logger.info(f"Whitelist role removed from {discord_id}")
    return True

# =============================================================================
# OAUTH
# =============================================================================

def build_authorize_url(state):
    params = {
        "client_id": config.DISCORD_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": config.DISCORD_REDIRECT_URI,
        "scope": "identify email guilds",
        "state": state,
        "prompt": "none",
    }
    return f"https://discord.com/oauth2/authorize?{urlencode(params)}"


def exchange_code(code):
    """Trade an authorization code for an access token, None on failure"""
    try:
        response = requests.post(
            f"{config.DISCORD_API_BASE}/oauth2/token",
            data={
                "client_id": config.DISCORD_CLIENT_ID,
                "client_secret": config.DISCORD_CLIENT_SECRET,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.DISCORD_REDIRECT_URI,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Discord token exchange failed: {e}")
        return None

    if response.status_code != 200:
        logger.error(f"Discord token exchange error {response.status_code}: {response.text}")
        return None
    return response.json().get("access_token")


def get_oauth_user(access_token):
    try:
        response = requests.get(
            f"{config.DISCORD_API_BASE}/users/@me",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Discord user lookup failed: {e}")
        return None

    if response.status_code != 200:
        logger.error(f"Discord user lookup error {response.status_code}: {response.text}")
        return None
    return response.json()

# =============================================================================
# WEBHOOK FUNCTIONS
# =============================================================================

def send_discord_log(title, description=None, fields=None):
    """Post an audit embed to the log webhook"""
    if not config.DISCORD_LOG_WEBHOOK_URL:
        return

    try:
        embed = {
            "title": title,
            "description": description,
            "color": 0x3498db,
            "fields": fields or [],
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        response = requests.post(config.DISCORD_LOG_WEBHOOK_URL, json={"embeds": [embed]}, timeout=5)
        if response.status_code not in [200, 204]:
            logger.error(f"Log webhook failed: {response.status_code}")

    except Exception as e:
        logger.error(f"Log webhook error: {e}")
