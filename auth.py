# auth.py - Portal sessions, Discord role groups and route guards
from functools import wraps

from flask import g, redirect, request, session, url_for

import config
import database
import discord_api
from config import logger
from discord_api import DiscordAPIError
from errors import Forbidden, NotFound, PermissionCheckFailed, Unauthorized

# =============================================================================
# ROLE GROUPS
# =============================================================================

def _has_any(roles, *role_ids):
    wanted = {role_id for role_id in role_ids if role_id}
    return any(role in wanted for role in roles)


def is_leadership(roles):
    return _has_any(roles, config.DISCORD_VEDENI_ROLE_ID)


def is_developer(roles):
    return _has_any(roles, config.DISCORD_DEVELOPER_ROLE_ID)


def is_admin(roles):
    return _has_any(roles, config.DISCORD_VEDENI_ROLE_ID, config.DISCORD_DEVELOPER_ROLE_ID)


def is_rules_admin(roles):
    return _has_any(roles, config.DISCORD_VEDENI_ROLE_ID, config.DISCORD_STAFF_ROLE_ID,
                    config.DISCORD_DEVELOPER_ROLE_ID)


def is_blacklisted(roles):
    return _has_any(roles, config.DISCORD_BLACKLISTED_ROLE_ID)


def is_character_editor(roles):
    return _has_any(roles, config.DISCORD_CHARACTER_EDITOR_ROLE_ID)


def has_whitelist_permissions(roles):
    """Whitelist reviewers: the three adder ranks, leadership and staff (not developers)"""
    return _has_any(
        roles,
        config.DISCORD_WHITELIST_ADDER_ROLE_ID,
        config.DISCORD_HEAD_WHITELIST_ADDER_ROLE_ID,
        config.DISCORD_TRIAL_WHITELIST_ADDER_ROLE_ID,
        config.DISCORD_VEDENI_ROLE_ID,
        config.DISCORD_STAFF_ROLE_ID,
    )


def build_permissions(roles):
    has_vedeni = is_leadership(roles)
    has_staff = _has_any(roles, config.DISCORD_STAFF_ROLE_ID)
    return {
        "hasVedeniRole": has_vedeni,
        "hasStaffRole": has_staff,
        "hasDeveloperRole": is_developer(roles),
        "hasWaitingRole": _has_any(roles, config.DISCORD_WAITING_ROLE_ID),
        "isBlacklisted": is_blacklisted(roles),
        "hasWhitelistPermissions": has_whitelist_permissions(roles),
        "hasVedeniOrStaffPermissions": has_vedeni or has_staff,
        "hasWhitelistAdderPermissions": _has_any(
            roles,
            config.DISCORD_WHITELIST_ADDER_ROLE_ID,
            config.DISCORD_HEAD_WHITELIST_ADDER_ROLE_ID,
            config.DISCORD_TRIAL_WHITELIST_ADDER_ROLE_ID,
        ),
        "isAdmin": is_admin(roles),
    }

# =============================================================================
# SESSIONS
# =============================================================================

def login_user(user_id):
    user_session = database.create_session(
        user_id, request.remote_addr, request.headers.get('User-Agent')
    )
    session.clear()
    session['session_id'] = user_session['id']
    session.permanent = True
    return user_session


def logout_user():
    session_id = session.get('session_id')
    if session_id:
        database.delete_session(session_id)
    session.clear()


def current_session():
    """Portal session for this request, or None when missing or expired"""
    if 'portal_session' not in g:
        g.portal_session = database.get_session(session.get('session_id'))
    return g.portal_session


def current_user_id():
    user_session = current_session()
    return user_session['user_id'] if user_session else None


def resolve_roles(user_id, fresh):
    """Discord ID and roles for a portal user; fresh lookups bypass the role cache"""
    discord_id = database.get_discord_id(user_id)
    if not discord_id:
        raise NotFound("No Discord account linked")

    if not fresh:
        return discord_id, discord_api.get_member_roles(discord_id)

    try:
        return discord_id, discord_api.fetch_member_roles(discord_id)
    except DiscordAPIError as e:
        logger.error(f"Error fetching Discord roles: {e}")
        raise PermissionCheckFailed()

# =============================================================================
# DECORATORS
# =============================================================================

def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user_session = current_session()
        if not user_session:
            raise Unauthorized()
        g.user_id = user_session['user_id']
        return view(*args, **kwargs)
    return wrapper


def role_required(check, message='Admin permissions required', fresh=True):
    """Require a signed-in user whose Discord roles pass check(roles)"""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            discord_id, roles = resolve_roles(g.user_id, fresh)
            if not check(roles):
                logger.warning(
                    f"Denied {request.method} {request.path} for {discord_id}",
                    extra={"security": True, "discord_id": discord_id}
                )
                raise Forbidden(message)
            g.discord_id = discord_id
            g.roles = roles
            return view(*args, **kwargs)
        return wrapper
    return decorator

# =============================================================================
# PAGE GATE
# =============================================================================

SIGNED_IN_PAGES = ('/dashboard', '/admin')
LEADERSHIP_PAGES = ('/dashboard/database-characters', '/dashboard/vehicles')


def gate_pages():
    """Redirect page requests lacking a session or the role the page needs"""
    path = request.path
    if not path.startswith(SIGNED_IN_PAGES):
        return None

    user_id = current_user_id()
    if not user_id:
        return redirect(url_for('sign_in', next=path))

    needs_leadership = path.startswith(LEADERSHIP_PAGES)
    needs_admin = path.startswith('/admin')
    if not needs_leadership and not needs_admin:
        return None

    roles = discord_api.get_member_roles(database.get_discord_id(user_id))
    if needs_leadership and not is_leadership(roles):
        return redirect(url_for('dashboard'))
    if needs_admin and not is_admin(roles):
        return redirect(url_for('dashboard'))
    return None
