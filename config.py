# config.py - Shared configuration and utilities
import os
import logging
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# GLOBAL CONFIGURATION
# =============================================================================

# Web app
SECRET_KEY = os.environ.get('SECRET_KEY', '')
PORT = int(os.environ.get('PORT', 10000))
BASE_URL = os.environ.get('BASE_URL', 'http://localhost:10000')
SESSION_LIFETIME = int(os.environ.get('SESSION_LIFETIME', 7 * 86400))
AUTO_INIT = os.environ.get('PORTAL_AUTO_INIT', '1') == '1'

# Portal database (users, sessions, whitelist, rules, contests)
DATABASE = os.environ.get('PORTAL_DATABASE', 'portal.db')

# Game server database (characters, vehicles, banking)
FIVEM_DATABASE_URL = os.environ.get('FIVEM_DATABASE_URL', 'sqlite:///fivem.db')

# Discord bot + OAuth
DISCORD_API_BASE = 'https://discord.com/api/v10'
DISCORD_BOT_TOKEN = os.environ.get('DISCORD_BOT_TOKEN', '')
DISCORD_GUILD_ID = os.environ.get('DISCORD_GUILD_ID', '')
DISCORD_TEAM_GUILD_ID = os.environ.get('DISCORD_TEAM_GUILD_ID', '') or DISCORD_GUILD_ID
DISCORD_CLIENT_ID = os.environ.get('DISCORD_CLIENT_ID', '')
DISCORD_CLIENT_SECRET = os.environ.get('DISCORD_CLIENT_SECRET', '')
DISCORD_REDIRECT_URI = os.environ.get('DISCORD_REDIRECT_URI', f'{BASE_URL}/auth/discord/callback')
DISCORD_LOG_WEBHOOK_URL = os.environ.get('DISCORD_LOG_WEBHOOK_URL', '')
ROLE_CACHE_TTL = int(os.environ.get('ROLE_CACHE_TTL', 300))

# Discord role IDs
DISCORD_WHITELIST_ROLE_ID = os.environ.get('DISCORD_WHITELIST_ROLE_ID', '')
DISCORD_WAITING_ROLE_ID = os.environ.get('DISCORD_WAITING_ROLE_ID', '')
DISCORD_BLACKLISTED_ROLE_ID = os.environ.get('DISCORD_BLACKLISTED_ROLE_ID', '')
DISCORD_VEDENI_ROLE_ID = os.environ.get('DISCORD_VEDENI_ROLE_ID', '')
DISCORD_STAFF_ROLE_ID = os.environ.get('DISCORD_STAFF_ROLE_ID', '')
DISCORD_DEVELOPER_ROLE_ID = os.environ.get('DISCORD_DEVELOPER_ROLE_ID', '')
DISCORD_WHITELIST_ADDER_ROLE_ID = os.environ.get('DISCORD_WHITELIST_ADDER_ROLE_ID', '')
DISCORD_HEAD_WHITELIST_ADDER_ROLE_ID = os.environ.get('DISCORD_HEAD_WHITELIST_ADDER_ROLE_ID', '')
DISCORD_TRIAL_WHITELIST_ADDER_ROLE_ID = os.environ.get('DISCORD_TRIAL_WHITELIST_ADDER_ROLE_ID', '')
DISCORD_CHARACTER_EDITOR_ROLE_ID = os.environ.get('DISCORD_CHARACTER_EDITOR_ROLE_ID', '1333440253381316660')

# Fivemanage (file uploads + remote logs)
FIVEMANAGE_API_KEY = os.environ.get('FIVEMANAGE_API_KEY', '')
FIVEMANAGE_UPLOAD_URL = os.environ.get('FIVEMANAGE_UPLOAD_URL', 'https://api.fivemanage.com/v1/files/upload')
FIVEMANAGE_LOGS_URL = os.environ.get('FIVEMANAGE_API_URL', 'https://api.fivemanage.com/api/logs')
FIVEMANAGE_LOGS_KEY = os.environ.get('FIVEMANAGE_API_KEY_LOGS', '') or FIVEMANAGE_API_KEY
FIVEMANAGE_DATASET = os.environ.get('FIVEMANAGE_DATASET', 'default')
FIVEMANAGE_SECURITY_DATASET = os.environ.get('FIVEMANAGE_SECURITY_DATASET', 'security')
FIVEMANAGE_APP = os.environ.get('FIVEMANAGE_APP', 'roleplay-portal')

# Game server
FIVEM_SERVER_IP = os.environ.get('FIVEM_SERVER_IP', '')
FIVEM_SERVER_PORT = int(os.environ.get('FIVEM_SERVER_PORT', 30120))
FIVEM_CFX_ID = os.environ.get('FIVEM_CFX_ID', '')
FIVEM_MAX_PLAYERS = int(os.environ.get('FIVEM_MAX_PLAYERS', 128))
SERVER_NAME = os.environ.get('SERVER_NAME', 'Roleplay Server')
LAUNCH_DATE = datetime.fromisoformat(os.environ.get('LAUNCH_DATE', '2025-02-05'))
SERVER_START_DATE = datetime.fromisoformat(os.environ.get('SERVER_START_DATE', '2025-01-01'))

# Backups
BACKUP_DIR = os.environ.get('BACKUP_DIR', 'backups')

# =============================================================================
# CONSTANTS
# =============================================================================

MAX_WHITELIST_ATTEMPTS = 3

WHITELIST_STATUSES = ('pending', 'approved', 'rejected')

WHITELIST_STATUS_MESSAGES = {
    'pending': 'Žádost čeká na vyhodnocení',
    'approved': 'Schválená žádost',
    'rejected': 'Zamítnutá žádost',
}

WHITELIST_UPDATE_MESSAGES = {
    'approved': 'Whitelist žádost byla schválena',
    'rejected': 'Whitelist žádost byla odmítnuta',
    'pending': 'Whitelist žádost byla vrácena na vyhodnocení',
}

QUESTION_FIELD_TYPES = ('text', 'textarea', 'number', 'checkbox', 'url', 'select')

# Questions the application form cannot work without
CRITICAL_QUESTION_FIELDS = ('discordName', 'age', 'rules')

CONTEST_STATUSES = ('open', 'judging', 'closed')

ONLINE_WINDOW_MINUTES = 5

# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def setup_logging():
    """Setup logging configuration"""
    logging.basicConfig(
        level=os.environ.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    return logging.getLogger('portal')

# Initialize logger
logger = setup_logging()
