# app.py - Roleplay community portal (Discord login, whitelist, admin panel, game dashboards)
import secrets
import threading
import time
from datetime import datetime, timedelta, timezone

from flask import Flask, request, jsonify, session, redirect, url_for, render_template_string, g
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

import activities
import auth
import backup
import config
import database
import discord_api
import fivem_database
import photo_contest
import portal_stats
import remote_logging
import rules
import whitelist
from auth import login_required, role_required
from config import logger
from discord_api import DiscordAPIError
from errors import BadRequest, Forbidden, NotFound, PortalError

app = Flask(__name__)
app.secret_key = config.SECRET_KEY or secrets.token_hex(32)
app.config['SESSION_PERMANENT'] = True
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(seconds=config.SESSION_LIFETIME)
app.config['SESSION_COOKIE_SECURE'] = config.BASE_URL.startswith('https://')
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
CORS(app, supports_credentials=True)

# =============================================================================
# REQUEST HOOKS + ERRORS
# =============================================================================

@app.before_request
def before_request():
    """Redirect protected pages before the view runs"""
    return auth.gate_pages()


@app.teardown_appcontext
def teardown(exception):
    database.close_db_connection()


@app.errorhandler(PortalError)
def handle_portal_error(e):
    return jsonify({"error": e.message}), e.status_code


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    logger.error(f"Unhandled error on {request.method} {request.path}: {e}", exc_info=True)
    return jsonify({"error": "Internal server error"}), 500


def get_json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def safe_next(target):
    """Only allow redirects back into this site"""
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('dashboard')

# =============================================================================
# AUTH
# =============================================================================

@app.route('/auth/discord/login')
def discord_login():
    """Start the Discord OAuth flow"""
    state = secrets.token_urlsafe(16)
    session['oauth_state'] = state
    session['next'] = safe_next(request.args.get('next'))
    return redirect(discord_api.build_authorize_url(state))


@app.route('/auth/discord/callback')
def discord_callback():
    """Finish the OAuth flow: verify state, upsert the user, open a session"""
    expected_state = session.pop('oauth_state', None)
    next_url = safe_next(session.pop('next', None))

    if request.args.get('error'):
        logger.warning(f"Discord OAuth denied: {request.args.get('error')}")
        return redirect(url_for('sign_in', error='denied'))

    if not expected_state or request.args.get('state') != expected_state:
        logger.warning("Discord OAuth state mismatch", extra={"security": True})
        return redirect(url_for('sign_in', error='state'))

    code = request.args.get('code')
    if not code:
        return redirect(url_for('sign_in', error='code'))

    access_token = discord_api.exchange_code(code)
    profile = discord_api.get_oauth_user(access_token) if access_token else None
    if not profile or not profile.get('id'):
        return redirect(url_for('sign_in', error='discord'))

    user_id = database.upsert_discord_user(profile)
    auth.login_user(user_id)
    logger.info(f"User {profile.get('username')} ({profile['id']}) signed in")
    return redirect(next_url)


@app.route('/logout', methods=['GET', 'POST'])
def logout():
    auth.logout_user()
    return redirect(url_for('home'))

# =============================================================================
# USER
# =============================================================================

@app.route('/api/user/me')
@login_required
def api_user_me():
    """Signed-in user's profile, Discord roles and derived permissions"""
    account = database.get_user_with_account(g.user_id)
    if not account or not account.get('account_id'):
        raise NotFound("No Discord account linked")

    _, roles = auth.resolve_roles(g.user_id, fresh=True)
    user_session = auth.current_session()

    return jsonify({
        "userId": g.user_id,
        "discordId": account['account_id'],
        "username": account['name'],
        "email": account['email'],
        "image": account['image'],
        "roles": roles,
        "hasWhitelist": bool(config.DISCORD_WHITELIST_ROLE_ID) and config.DISCORD_WHITELIST_ROLE_ID in roles,
        "createdAt": account['created_at'],
        "updatedAt": account['updated_at'],
        "sessionId": user_session['id'],
        "sessionExpiresAt": user_session['expires_at'],
        "permissions": auth.build_permissions(roles),
    })


@app.route('/api/account-id')
@login_required
def api_account_id():
    account_id = database.get_discord_id(g.user_id)
    if not account_id:
        discord_api.send_discord_log("API ERROR /api/account-id", f"Account ID not found for user {g.user_id}")
        raise NotFound("Account ID not found")
    return jsonify({"accountId": account_id})

# =============================================================================
# WHITELIST
# =============================================================================

@app.route('/api/whitelist', methods=['GET'])
@role_required(auth.has_whitelist_permissions, 'Insufficient permissions')
def api_whitelist_list():
    return jsonify({"requests": whitelist.list_requests()})


@app.route('/api/whitelist', methods=['POST'])
@login_required
def api_whitelist_submit():
    form_data = get_json_body().get('formData')
    roles = discord_api.get_member_roles(database.get_discord_id(g.user_id))
    result = whitelist.submit_request(g.user_id, form_data, roles)
    return jsonify(result), 201


@app.route('/api/whitelist/<int:request_id>', methods=['GET'])
@role_required(auth.has_whitelist_permissions, 'Insufficient permissions')
def api_whitelist_get(request_id):
    return jsonify({"request": whitelist.get_request(request_id)})


@app.route('/api/whitelist/<int:request_id>', methods=['PATCH'])
@role_required(auth.has_whitelist_permissions, 'Insufficient permissions')
def api_whitelist_update(request_id):
    status = get_json_body().get('status')
    return jsonify(whitelist.update_status(request_id, status, reviewer=g.discord_id))


@app.route('/api/whitelist/status')
@login_required
def api_whitelist_status():
    return jsonify(whitelist.get_status(g.user_id))


@app.route('/api/user/whitelist-requests')
@login_required
def api_user_whitelist_requests():
    return jsonify(whitelist.get_user_requests(g.user_id, database.get_discord_id(g.user_id)))


@app.route('/api/whitelist-detail/<int:request_id>')
@login_required
def api_whitelist_detail(request_id):
    _, roles = auth.resolve_roles(g.user_id, fresh=False)
    detail = whitelist.get_request_detail(request_id, g.user_id, auth.has_whitelist_permissions(roles))
    return jsonify(detail)


@app.route('/api/whitelist-detail/<int:request_id>/notes', methods=['PATCH'])
@role_required(auth.has_whitelist_permissions, 'Forbidden - insufficient permissions')
def api_whitelist_notes(request_id):
    whitelist.update_notes(request_id, get_json_body().get('notes'))
    return jsonify({"message": "Notes updated successfully"})


@app.route('/api/whitelist-questions')
def api_whitelist_questions():
    return jsonify(whitelist.list_active_questions())

# =============================================================================
# RULES + ACTIVITIES (PUBLIC)
# =============================================================================

@app.route('/api/rules')
def api_rules():
    return jsonify(rules.get_public_rules())


@app.route('/api/activities')
def api_activities():
    return jsonify({"activities": activities.list_activities()})

# =============================================================================
# PHOTO CONTEST
# =============================================================================

@app.route('/api/fotosoutez')
def api_fotosoutez():
    return jsonify(photo_contest.list_public_contests(auth.current_user_id()))


@app.route('/api/fotosoutez/submissions', methods=['POST'])
@login_required
def api_fotosoutez_submit():
    data = get_json_body()
    photo_contest.create_submission(g.user_id, data.get('contestId'), data.get('imageUrl'), data.get('caption'))
    return jsonify({"message": "Submission created successfully"}), 201


@app.route('/api/fotosoutez/likes', methods=['POST'])
@login_required
def api_fotosoutez_like():
    return jsonify(photo_contest.toggle_like(g.user_id, get_json_body().get('submissionId')))


@app.route('/api/fotosoutez/upload', methods=['POST'])
@login_required
def api_fotosoutez_upload():
    return jsonify(photo_contest.prepare_upload(get_json_body().get('contentType')))

# =============================================================================
# STATISTICS + SERVER
# =============================================================================

@app.route('/api/statistics')
def api_statistics():
    try:
        return jsonify(portal_stats.public_statistics())
    except SQLAlchemyError as e:
        logger.error(f"Statistics error: {e}")
        return jsonify({"error": "Server Error"}), 500


@app.route('/api/dashboard-stats')
def api_dashboard_stats():
    try:
        return jsonify(portal_stats.dashboard_statistics())
    except SQLAlchemyError as e:
        logger.error(f"Dashboard stats error: {e}")
        return jsonify({"error": "Nepodařilo se načíst statistiky"}), 500


@app.route('/api/server-status')
def api_server_status():
    return jsonify(portal_stats.server_status())


@app.route('/api/members-by-role')
def api_members_by_role():
    role_id = request.args.get('roleId')
    if not role_id:
        raise BadRequest("Missing roleId")

    try:
        members = discord_api.members_with_role(role_id, config.DISCORD_TEAM_GUILD_ID)
    except DiscordAPIError as e:
        logger.error(f"Members by role error: {e}")
        discord_api.send_discord_log("API ERROR /api/members-by-role", "Chyba při načítání členů.",
                                     [{"name": "Error", "value": str(e)[:1000]}])
        return jsonify({"error": "Failed to fetch members"}), 500
    return jsonify({"members": members})

# =============================================================================
# GAME DATA
# =============================================================================

@app.route('/api/postavy')
@login_required
def api_postavy():
    """Characters owned by the signed-in user's Discord account"""
    discord_id = database.get_discord_id(g.user_id)
    if not discord_id:
        raise NotFound("No Discord account linked")
    try:
        characters = fivem_database.characters_for_discord(discord_id)
    except SQLAlchemyError as e:
        logger.error(f"Characters lookup error: {e}")
        return jsonify({"error": "Database error"}), 500
    return jsonify({"postavy": characters})


@app.route('/api/banking-transactions')
@login_required
def api_banking_transactions():
    identifier = request.args.get('character')
    if not identifier:
        raise BadRequest("Character identifier required")

    discord_id, roles = auth.resolve_roles(g.user_id, fresh=False)
    try:
        owned = {c['identifier'] for c in fivem_database.characters_for_discord(discord_id)}
        if identifier not in owned and not auth.is_leadership(roles):
            raise Forbidden("Character does not belong to this account")
        transactions = fivem_database.bank_transactions(identifier)
    except SQLAlchemyError as e:
        logger.error(f"Banking transactions error: {e}")
        return jsonify({"error": "Internal Server Error"}), 500

    return jsonify({
        "transactions": transactions,
        "stats": portal_stats.summarize_transactions(transactions, identifier),
    })


@app.route('/api/database-characters')
@role_required(auth.is_leadership, 'Leadership role required')
def api_database_characters():
    return jsonify(fivem_database.list_characters())


@app.route('/api/database-characters/<int:character_id>', methods=['PATCH'])
@role_required(auth.is_character_editor, 'Nemáte oprávnění upravovat jména postav')
def api_rename_character(character_id):
    data = get_json_body()
    firstname = (data.get('firstname') or '').strip()
    lastname = (data.get('lastname') or '').strip()
    if not firstname or not lastname:
        raise BadRequest("Jméno a příjmení jsou povinné")

    if not fivem_database.rename_character(character_id, firstname, lastname):
        raise NotFound("Postava nenalezena")

    discord_api.send_discord_log(
        "API PATCH /api/database-characters/[id]",
        "Jméno postavy bylo úspěšně změněno.",
        [
            {"name": "ID postavy", "value": str(character_id), "inline": True},
            {"name": "Nové jméno", "value": f"{firstname} {lastname}", "inline": True},
            {"name": "Upravil", "value": f"<@{g.discord_id}>", "inline": True},
        ]
    )
    logger.info(f"Character {character_id} renamed to {firstname} {lastname} by {g.discord_id}")
    return jsonify({"success": True})


@app.route('/api/vehicles')
@role_required(auth.is_leadership, 'Leadership role required')
def api_vehicles():
    return jsonify(fivem_database.list_vehicles())


@app.route('/api/vehicles/<plate>', methods=['DELETE'])
@role_required(auth.is_leadership, 'Leadership role required')
def api_delete_vehicle(plate):
    if not fivem_database.delete_vehicle(plate):
        discord_api.send_discord_log("API ERROR /api/vehicles/[plate] DELETE", f"Vozidlo nenalezeno: {plate}")
        raise NotFound("Vozidlo nenalezeno.")

    discord_api.send_discord_log("API DELETE /api/vehicles/[plate]", f"Vozidlo smazáno: {plate}",
                                 [{"name": "Smazal", "value": f"<@{g.discord_id}>"}])
    logger.info(f"Vehicle {plate} deleted by {g.discord_id}")
    return jsonify({"success": True})

# =============================================================================
# ADMIN API
# =============================================================================

@app.route('/api/admin/rules', methods=['GET'])
@role_required(auth.is_rules_admin)
def api_admin_rules():
    return jsonify(rules.get_admin_rules())


@app.route('/api/admin/rules', methods=['POST'])
@role_required(auth.is_rules_admin)
def api_admin_rules_save():
    data = get_json_body()
    return jsonify(rules.save_rule_item(data.get('type'), data.get('data')))


@app.route('/api/admin/rules', methods=['PATCH'])
@role_required(auth.is_rules_admin)
def api_admin_rules_reorder():
    data = get_json_body()
    return jsonify(rules.reorder(data.get('type'), data.get('items')))


@app.route('/api/admin/rules', methods=['DELETE'])
@role_required(auth.is_rules_admin)
def api_admin_rules_delete():
    data = get_json_body()
    return jsonify(rules.delete_rule_item(data.get('type'), data.get('id')))


@app.route('/api/admin/activities', methods=['GET'])
@role_required(auth.is_admin)
def api_admin_activities():
    return jsonify({"activities": activities.list_activities()})


@app.route('/api/admin/activities', methods=['POST'])
@role_required(auth.is_admin)
def api_admin_activities_create():
    activity_id = activities.create_activity(get_json_body())
    return jsonify({"message": "Activity created successfully", "id": activity_id})


@app.route('/api/admin/activities/<int:activity_id>', methods=['PUT'])
@role_required(auth.is_admin)
def api_admin_activities_update(activity_id):
    activities.update_activity(activity_id, get_json_body())
    return jsonify({"message": "Activity updated successfully"})


@app.route('/api/admin/activities/<int:activity_id>', methods=['DELETE'])
@role_required(auth.is_admin)
def api_admin_activities_delete(activity_id):
    activities.delete_activity(activity_id)
    return jsonify({"message": "Activity deleted successfully"})


@app.route('/api/admin/whitelist-questions', methods=['GET'])
@role_required(auth.is_admin)
def api_admin_questions():
    return jsonify({"questions": whitelist.list_all_questions()})


@app.route('/api/admin/whitelist-questions', methods=['POST'])
@role_required(auth.is_admin)
def api_admin_questions_create():
    question_id = whitelist.create_question(get_json_body())
    return jsonify({"message": "Question created", "id": question_id}), 201


@app.route('/api/admin/whitelist-questions', methods=['PATCH'])
@role_required(auth.is_admin)
def api_admin_questions_reorder():
    whitelist.reorder_questions(get_json_body().get('updates'))
    return jsonify({"message": "Questions order updated successfully"})


@app.route('/api/admin/whitelist-questions/<int:question_id>', methods=['PUT'])
@role_required(auth.is_admin)
def api_admin_questions_update(question_id):
    whitelist.update_question(question_id, get_json_body())
    return jsonify({"message": "Question updated successfully"})


@app.route('/api/admin/whitelist-questions/<int:question_id>', methods=['DELETE'])
@role_required(auth.is_admin)
def api_admin_questions_delete(question_id):
    whitelist.delete_question(question_id)
    return jsonify({"message": "Question deleted successfully"})


@app.route('/api/admin/users', methods=['GET'])
@role_required(auth.is_admin, 'Admin access required')
def api_admin_users():
    """Every portal user with their Discord roles and permissions"""
    users = []
    for user in database.list_users_with_accounts():
        roles = discord_api.get_member_roles(user['discord_id']) if user['discord_id'] else []
        user['activeSessions'] = int(user.pop('active_sessions') or 0)
        user['roles'] = roles
        user['permissions'] = auth.build_permissions(roles)
        users.append(user)

    return jsonify({
        "users": users,
        "totalUsers": len(users),
        "activeUsers": sum(1 for u in users if u['activeSessions'] > 0),
        "adminUsers": sum(1 for u in users if u['permissions']['isAdmin']),
        "blacklistedUsers": sum(1 for u in users if u['permissions']['isBlacklisted']),
    })


@app.route('/api/admin/users', methods=['DELETE'])
@role_required(auth.is_admin, 'Admin access required')
def api_admin_users_delete():
    user_id = get_json_body().get('userId')
    if not user_id:
        raise BadRequest("User ID is required")
    if user_id == g.user_id:
        raise BadRequest("Cannot delete your own account")

    if not database.delete_user_cascade(user_id):
        raise NotFound("User not found")

    logger.warning(f"User {user_id} deleted by {g.discord_id}", extra={"security": True})
    return jsonify({"message": "User deleted successfully"})


@app.route('/api/admin/backup', methods=['GET'])
@role_required(auth.is_admin)
def api_admin_backup_overview():
    return jsonify(backup.backup_overview())


@app.route('/api/admin/backup', methods=['POST'])
@role_required(auth.is_admin)
def api_admin_backup_create():
    kind = get_json_body().get('type') or 'full'
    return jsonify(backup.create_backup(kind, g.user_id))


@app.route('/api/admin/fotosoutez/contests', methods=['GET'])
@role_required(auth.is_admin)
def api_admin_contests():
    return jsonify(photo_contest.list_contests())


@app.route('/api/admin/fotosoutez/contests', methods=['POST'])
@role_required(auth.is_admin)
def api_admin_contests_create():
    data = get_json_body()
    contest = photo_contest.create_contest(data.get('title'), data.get('description'), data.get('endDate'))
    return jsonify({"message": "Contest created", "result": contest}), 201


@app.route('/api/admin/fotosoutez/contests', methods=['PATCH'])
@role_required(auth.is_admin)
def api_admin_contests_status():
    data = get_json_body()
    photo_contest.update_contest_status(data.get('id'), data.get('status'))
    return jsonify({"message": "Contest status updated"})


@app.route('/api/admin/fotosoutez/submissions')
@role_required(auth.is_admin)
def api_admin_submissions():
    return jsonify(photo_contest.list_submissions(request.args.get('contestId')))


@app.route('/api/admin/fotosoutez/submissions/<int:submission_id>', methods=['PATCH'])
@role_required(auth.is_admin)
def api_admin_submission_status(submission_id):
    photo_contest.set_submission_status(submission_id, get_json_body().get('status'))
    return jsonify({"message": "Submission status updated"})


@app.route('/api/admin/migrate-whitelist', methods=['POST'])
@role_required(auth.is_developer, 'Developer role required')
def api_admin_migrate_whitelist():
    return jsonify(whitelist.migrate_serial_numbers())

# =============================================================================
# PAGES
# =============================================================================

PAGE_LAYOUT = '''
<!DOCTYPE html>
<html lang="cs">
<head>
    <title>{{ title }} - {{ server_name }}</title>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
            background: #0a0a0a;
            color: #fff;
            min-height: 100vh;
        }
        nav {
            display: flex;
            gap: 20px;
            align-items: center;
            padding: 16px 32px;
            background: rgba(20,20,20,0.85);
            border-bottom: 1px solid rgba(255,255,255,0.1);
        }
        nav a { color: #aaa; text-decoration: none; font-size: 14px; }
        nav a:hover { color: #fff; }
        nav .spacer { flex: 1; }
        main { max-width: 1100px; margin: 40px auto; padding: 0 20px; }
        h1 { font-size: 28px; margin-bottom: 24px; }
        h3 { margin-bottom: 10px; }
        .card {
            background: rgba(20,20,20,0.85);
            border: 1px solid rgba(255,255,255,0.1);
            border-radius: 12px;
            padding: 20px;
            margin-bottom: 16px;
        }
        .grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 16px; }
        .stat .value { font-size: 26px; font-weight: 700; }
        .stat .label { color: #888; font-size: 13px; text-transform: uppercase; }
        table { width: 100%; border-collapse: collapse; font-size: 14px; }
        th, td { text-align: left; padding: 10px; border-bottom: 1px solid rgba(255,255,255,0.08); }
        th { color: #888; font-weight: 500; }
        input, textarea, select {
            width: 100%;
            padding: 10px;
            margin: 6px 0 14px;
            background: #111;
            color: #fff;
            border: 1px solid #333;
            border-radius: 6px;
        }
        input[type=checkbox] { width: auto; }
        button, .button {
            display: inline-block;
            padding: 10px 18px;
            background: #5865F2;
            color: #fff;
            border: none;
            border-radius: 6px;
            cursor: pointer;
            text-decoration: none;
        }
        button.small, .button.small { padding: 6px 10px; font-size: 13px; }
        button.danger { background: #c0392b; }
        button.ok { background: #27ae60; }
        .muted { color: #888; }
        .error { color: #ff6b6b; }
        .success { color: #2ecc71; }
        img.photo { width: 100%; border-radius: 8px; }
        #flash { min-height: 20px; margin-bottom: 12px; }
    </style>
</head>
<body>
    <nav>
        <a href="{{ url_for('home') }}"><strong>{{ server_name }}</strong></a>
        <a href="{{ url_for('rules_page') }}">Pravidla</a>
        <a href="{{ url_for('whitelist_page') }}">Whitelist</a>
        <a href="{{ url_for('photo_contest_page') }}">Fotosoutěž</a>
        <a href="{{ url_for('statistics_page') }}">Statistiky</a>
        <a href="{{ url_for('team_page') }}">Tým</a>
        <span class="spacer"></span>
        {% if signed_in %}
        <a href="{{ url_for('dashboard') }}">Dashboard</a>
        <a href="{{ url_for('logout') }}">Odhlásit</a>
        {% else %}
        <a href="{{ url_for('sign_in') }}">Přihlásit</a>
        {% endif %}
    </nav>
    <main>
        <h1>{{ title }}</h1>
        <p id="flash"></p>
        <div id="content" class="muted">Načítání...</div>
    </main>
    <script>
        const sources = {{ sources|tojson }};
        const links = {{ links|tojson }};
        const signedIn = {{ signed_in|tojson }};
        const content = document.getElementById('content');
        const flashBox = document.getElementById('flash');
        let state = {};

        const esc = (v) => String(v ?? '').replace(/[&<>"']/g, c => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[c]));
        const arg = (v) => esc(JSON.stringify(v));
        const table = (rows, cols, extra) => rows.length
            ? '<table><tr>' + cols.map(c => `<th>${esc(c)}</th>`).join('') + (extra ? '<th></th>' : '') + '</tr>' +
              rows.map(r => '<tr>' + cols.map(c => `<td>${esc(r[c])}</td>`).join('') +
                  (extra ? `<td>${extra(r)}</td>` : '') + '</tr>').join('') + '</table>'
            : '<p class="muted">Žádná data</p>';
        const stats = (obj) => '<div class="grid">' + Object.entries(obj)
            .filter(([, v]) => typeof v !== 'object')
            .map(([k, v]) => `<div class="card stat"><div class="value">${esc(v)}</div><div class="label">${esc(k)}</div></div>`)
            .join('') + '</div>';
        const linkCards = (items) => '<div class="grid">' + items.map(([href, label]) =>
            `<a class="card" style="color:#fff;text-decoration:none" href="${esc(href)}">${esc(label)}</a>`).join('') + '</div>';

        const flash = (message, isError) => {
            flashBox.className = isError ? 'error' : 'success';
            flashBox.textContent = message || '';
        };
        const api = (method, url, body) => fetch(url, {
            method, credentials: 'include',
            headers: { 'Content-Type': 'application/json' },
            body: body === undefined ? undefined : JSON.stringify(body),
        }).then(r => r.json().then(d => {
            if (!r.ok) throw new Error(d.error || 'Požadavek selhal');
            return d;
        }));
        const run = (promise) => promise
            .then(res => { flash(res.message || 'Uloženo'); load(); })
            .catch(e => flash(e.message, true));
        const formValues = (form) => {
            const values = {};
            for (const el of form.elements) {
                if (!el.name) continue;
                values[el.name] = el.type === 'checkbox' ? el.checked : el.value;
            }
            return values;
        };
        const field = (name, label, type, placeholder) => `<label>${esc(label)}</label>` + (type === 'textarea'
            ? `<textarea name="${esc(name)}" placeholder="${esc(placeholder)}"></textarea>`
            : `<input name="${esc(name)}" type="${esc(type || 'text')}" placeholder="${esc(placeholder)}">`);

        const actions = {
            submitWhitelist(form) {
                api('POST', '/api/whitelist', { formData: formValues(form) })
                    .then(res => { flash(res.message); form.reset(); })
                    .catch(e => flash(e.message, true));
                return false;
            },
            review(id, status) {
                run(api('PATCH', `/api/whitelist/${id}`, { status }));
            },
            saveNotes(form, id) {
                run(api('PATCH', `/api/whitelist-detail/${id}/notes`, { notes: form.elements.notes.value }));
                return false;
            },
            like(id) {
                if (!signedIn) { window.location = links.signIn; return; }
                run(api('POST', '/api/fotosoutez/likes', { submissionId: id }));
            },
            uploadPhoto(form, contestId) {
                const file = form.elements.photo.files[0];
                if (!file) { flash('Vyberte obrázek', true); return false; }
                if (file.size > 10 * 1024 * 1024) { flash('Soubor je příliš velký. Maximální velikost je 10 MB.', true); return false; }
                flash('Nahrávání...');
                api('POST', '/api/fotosoutez/upload', { contentType: file.type })
                    .then(({ url, publicUrl }) => fetch(url, { method: 'PUT', body: file, headers: { 'Content-Type': file.type } })
                        .then(r => {
                            if (!r.ok) throw new Error('Nahrávání souboru na cloud selhalo.');
                            return api('POST', '/api/fotosoutez/submissions',
                                { contestId, imageUrl: publicUrl, caption: form.elements.caption.value });
                        }))
                    .then(() => { flash('Tvá fotka byla odeslána a čeká na schválení administrátorem.'); form.reset(); })
                    .catch(e => flash(e.message, true));
                return false;
            },
            saveRuleItem(form, type) {
                run(api('POST', '/api/admin/rules', { type, data: formValues(form) }));
                return false;
            },
            deleteRuleItem(type, id) {
                if (confirm('Opravdu smazat?')) run(api('DELETE', '/api/admin/rules', { type, id }));
            },
            createActivity(form) {
                run(api('POST', '/api/admin/activities', formValues(form)));
                return false;
            },
            deleteActivity(id) {
                if (confirm('Opravdu smazat aktivitu?')) run(api('DELETE', `/api/admin/activities/${id}`));
            },
            createQuestion(form) {
                const data = formValues(form);
                data.options = data.options ? data.options.split(',').map(o => o.trim()).filter(Boolean) : null;
                run(api('POST', '/api/admin/whitelist-questions', data));
                return false;
            },
            toggleQuestion(id) {
                const question = state.questions.questions.find(q => q.id === id);
                run(api('PUT', `/api/admin/whitelist-questions/${id}`, { ...question, is_active: !question.is_active }));
            },
            deleteQuestion(id) {
                if (confirm('Opravdu smazat otázku?')) run(api('DELETE', `/api/admin/whitelist-questions/${id}`));
            },
            deleteUser(id) {
                if (confirm('Opravdu smazat uživatele včetně jeho žádostí?')) run(api('DELETE', '/api/admin/users', { userId: id }));
            },
            createContest(form) {
                run(api('POST', '/api/admin/fotosoutez/contests', formValues(form)));
                return false;
            },
            contestStatus(id, status) {
                run(api('PATCH', '/api/admin/fotosoutez/contests', { id, status }));
            },
            showSubmissions(contestId) {
                api('GET', `/api/admin/fotosoutez/submissions?contestId=${contestId}`)
                    .then(rows => {
                        document.getElementById(`submissions-${contestId}`).innerHTML = rows.length ? '<div class="grid">' +
                            rows.map(s => `<div><img class="photo" src="${esc(s.image_url)}"><p>${esc(s.caption)}</p>` +
                                `<p class="muted">${esc(s.user_name)} - ${esc(s.status)}</p>` +
                                `<button class="small ok" onclick="actions.moderate(${s.id}, 'approved', ${contestId})">Schválit</button> ` +
                                `<button class="small danger" onclick="actions.moderate(${s.id}, 'rejected', ${contestId})">Zamítnout</button></div>`
                            ).join('') + '</div>' : '<p class="muted">Žádné příspěvky</p>';
                    })
                    .catch(e => flash(e.message, true));
            },
            moderate(id, status, contestId) {
                api('PATCH', `/api/admin/fotosoutez/submissions/${id}`, { status })
                    .then(res => { flash(res.message); actions.showSubmissions(contestId); })
                    .catch(e => flash(e.message, true));
            },
            createBackup(type) {
                run(api('POST', '/api/admin/backup', { type }));
            },
        };

        const reviewButtons = (r) =>
            `<button class="small ok" onclick="actions.review(${r.id}, 'approved')">Schválit</button> ` +
            `<button class="small danger" onclick="actions.review(${r.id}, 'rejected')">Zamítnout</button> ` +
            `<button class="small" onclick="actions.review(${r.id}, 'pending')">Vrátit</button>`;

        const views = {
            home: ({ status, activities }) => stats(status) + '<h3 style="margin-top:24px">Aktivity</h3>' +
                (activities.activities.length ? '<div class="grid">' + activities.activities.map(a =>
                    `<div class="card"><h3>${esc(a.nazev)}</h3><p class="muted">${esc(a.popis)}</p>` +
                    `<p>Odměna: ${esc(a.odmena)}</p><p>Riziko: ${esc(a.riziko)}</p></div>`).join('') + '</div>'
                    : '<p class="muted">Žádné aktivity</p>'),
            rules: ({ data }) => data.sections.map(s => `<div class="card"><h3>${esc(s.title)}</h3><ol>` +
                data.rules.filter(r => r.section_id === s.id).map(r => `<li>${esc(r.content)}</li>`).join('') +
                '</ol></div>').join('') || '<p class="muted">Žádná pravidla</p>',
            stats: ({ data }) => stats(data),
            dashboard: ({ data }) => linkCards(links.dashboard) +
                stats(data.server) + stats(data.statistics) + stats(data.statistics.economy),
            team: ({ data }) => table(data.members, ['username']),
            contests: ({ data }) => data.map(c => `<div class="card"><h3>${esc(c.title)}</h3><p class="muted">${esc(c.description)}</p>` +
                '<div class="grid">' + c.submissions.map(s =>
                    `<div><img class="photo" src="${esc(s.image_url)}"><p>${esc(s.caption)}</p>` +
                    `<p class="muted">${esc(s.user_name)}</p>` +
                    `<button class="small" onclick="actions.like(${s.id})">${s.has_liked ? '♥' : '♡'} ${esc(s.like_count)}</button></div>`
                ).join('') + '</div>' +
                (signedIn && c.status === 'open'
                    ? `<form onsubmit="return actions.uploadPhoto(this, ${c.id})" style="margin-top:16px">` +
                      '<input name="photo" type="file" accept="image/*">' + field('caption', 'Popisek') +
                      '<button type="submit">Nahrát fotku</button></form>'
                    : '') + '</div>').join('') || '<p class="muted">Žádná aktivní soutěž</p>',
            whitelistForm: ({ data }) => '<form onsubmit="return actions.submitWhitelist(this)">' + data.questions.map(q =>
                `<label>${esc(q.question)}</label>` + (q.field_type === 'textarea'
                    ? `<textarea name="${esc(q.field_name)}" placeholder="${esc(q.placeholder)}"></textarea>`
                    : q.field_type === 'select'
                        ? `<select name="${esc(q.field_name)}">` + (q.options || []).map(o => `<option>${esc(o)}</option>`).join('') + '</select>'
                        : `<input name="${esc(q.field_name)}" type="${q.field_type === 'checkbox' ? 'checkbox' : 'text'}" placeholder="${esc(q.placeholder)}">`)
            ).join('') + '<button type="submit">Odeslat žádost</button></form>',
            myWhitelist: ({ data }) => `<p class="muted">Pokusy: ${data.totalAttempts}/${data.maxAttempts}</p>` +
                table(data.requests, ['serial_number', 'status', 'created_at'],
                    r => `<a class="button small" href="${links.detail}${r.id}">Detail</a>`),
            reviewQueue: ({ data }) => table(data.requests, ['serial_number', 'status', 'created_at'],
                r => `<a class="button small" href="${links.detail}${r.id}">Detail</a> ` + reviewButtons(r)),
            requestDetail: ({ data }) => {
                const r = data.request;
                return `<div class="card"><h3>${esc(r.serial_number)}</h3><p>Status: ${esc(r.status)}</p>` +
                    `<p class="muted">Podáno: ${esc(r.created_at)}</p></div>` +
                    '<div class="card">' + table(Object.entries(r.form_data).map(([k, v]) => ({ otázka: k, odpověď: v })), ['otázka', 'odpověď']) + '</div>' +
                    (data.canManageNotes
                        ? `<div class="card">${reviewButtons(r)}<form onsubmit="return actions.saveNotes(this, ${r.id})" style="margin-top:16px">` +
                          `<label>Poznámky</label><textarea name="notes">${esc(r.notes)}</textarea>` +
                          '<button type="submit">Uložit poznámky</button></form></div>'
                        : '');
            },
            myCharacters: ({ data }) => table(data.postavy, ['firstname', 'lastname', 'dateofbirth', 'iban', 'last_seen'],
                c => `<a class="button small" href="${links.bank}?character=${encodeURIComponent(c.identifier)}">Banka</a>`),
            bank: ({ data }) => stats(data.stats) + table(data.transactions, ['date', 'type', 'value', 'sender_name', 'receiver_name']),
            characters: ({ data }) => table(data, ['id', 'firstname', 'lastname', 'job', 'phone_number', 'last_seen']),
            vehicles: ({ data }) => table(data, ['plate', 'owner', 'type', 'garage_id', 'stored']),
            admin: ({ data }) => linkCards(links.admin) + stats({ totalUsers: data.totalUsers, activeUsers: data.activeUsers,
                adminUsers: data.adminUsers, blacklistedUsers: data.blacklistedUsers }),
            adminUsers: ({ data }) => table(data.users, ['name', 'discord_id', 'activeSessions', 'created_at'],
                u => `<button class="small danger" onclick="actions.deleteUser(${arg(u.id)})">Smazat</button>`),
            adminRules: ({ data }) =>
                '<div class="card"><h3>Sekce</h3>' + table(data.sections, ['id', 'title', 'order_index'],
                    s => `<button class="small danger" onclick="actions.deleteRuleItem('section', ${arg(s.id)})">Smazat</button>`) +
                '<form onsubmit="return actions.saveRuleItem(this, \\'section\\')" style="margin-top:16px">' +
                field('id', 'ID (slug)') + field('title', 'Název') + field('icon', 'Ikona') + field('order_index', 'Pořadí', 'number') +
                '<button type="submit">Uložit sekci</button></form></div>' +
                '<div class="card"><h3>Podkategorie</h3>' + table(data.subcategories, ['id', 'section_id', 'title'],
                    s => `<button class="small danger" onclick="actions.deleteRuleItem('subcategory', ${arg(s.id)})">Smazat</button>`) +
                '<form onsubmit="return actions.saveRuleItem(this, \\'subcategory\\')" style="margin-top:16px">' +
                field('id', 'ID (slug)') + field('section_id', 'Sekce') + field('title', 'Název') +
                '<button type="submit">Uložit podkategorii</button></form></div>' +
                '<div class="card"><h3>Pravidla</h3>' + table(data.rules, ['id', 'section_id', 'subcategory_id', 'content'],
                    r => `<button class="small danger" onclick="actions.deleteRuleItem('rule', ${r.id})">Smazat</button>`) +
                '<form onsubmit="return actions.saveRuleItem(this, \\'rule\\')" style="margin-top:16px">' +
                field('section_id', 'Sekce') + field('subcategory_id', 'Podkategorie') + field('content', 'Text pravidla', 'textarea') +
                '<button type="submit">Přidat pravidlo</button></form></div>',
            adminActivities: ({ data }) =>
                table(data.activities, ['nazev', 'category', 'riziko', 'riziko_level', 'odmena'],
                    a => `<button class="small danger" onclick="actions.deleteActivity(${a.id})">Smazat</button>`) +
                '<div class="card" style="margin-top:16px"><h3>Nová aktivita</h3><form onsubmit="return actions.createActivity(this)">' +
                field('nazev', 'Název') + field('popis', 'Popis', 'textarea') + field('category', 'Kategorie') +
                field('riziko', 'Riziko') + field('rizikoLevel', 'Úroveň rizika') + field('odmena', 'Odměna') +
                field('vzdalenost', 'Vzdálenost') + field('cas', 'Čas') + field('obrazek', 'Obrázek (URL)') +
                '<button type="submit">Vytvořit</button></form></div>',
            adminQuestions: ({ questions }) =>
                table(questions.questions, ['order_index', 'question', 'field_name', 'field_type', 'category', 'is_active'],
                    q => `<button class="small" onclick="actions.toggleQuestion(${q.id})">${q.is_active ? 'Skrýt' : 'Zobrazit'}</button> ` +
                         `<button class="small danger" onclick="actions.deleteQuestion(${q.id})">Smazat</button>`) +
                '<div class="card" style="margin-top:16px"><h3>Nová otázka</h3><form onsubmit="return actions.createQuestion(this)">' +
                field('question', 'Otázka') + field('field_name', 'Název pole') +
                '<label>Typ</label><select name="field_type">' +
                ['text', 'textarea', 'number', 'checkbox', 'url', 'select'].map(t => `<option>${t}</option>`).join('') + '</select>' +
                field('category', 'Kategorie') + field('placeholder', 'Placeholder') +
                field('options', 'Možnosti (oddělené čárkou)') + field('order_index', 'Pořadí', 'number') +
                '<label><input name="required" type="checkbox" checked> Povinná</label><br><br>' +
                '<button type="submit">Přidat otázku</button></form></div>',
            adminContests: ({ data }) =>
                data.map(c => `<div class="card"><h3>${esc(c.title)}</h3><p class="muted">${esc(c.description)}</p>` +
                    `<p>Status: ${esc(c.status)} | Příspěvků: ${esc(c.submission_count)} | Konec: ${esc(c.end_date)}</p><p>` +
                    ['open', 'judging', 'closed'].map(s =>
                        `<button class="small" onclick="actions.contestStatus(${c.id}, '${s}')">${s}</button>`).join(' ') +
                    ` <button class="small ok" onclick="actions.showSubmissions(${c.id})">Příspěvky</button></p>` +
                    `<div id="submissions-${c.id}" style="margin-top:16px"></div></div>`).join('') +
                '<div class="card"><h3>Nová soutěž</h3><form onsubmit="return actions.createContest(this)">' +
                field('title', 'Název') + field('description', 'Popis', 'textarea') + field('endDate', 'Konec', 'date') +
                '<button type="submit">Vytvořit soutěž</button></form></div>',
            adminBackup: ({ data }) => stats(data.stats) + '<p style="margin:16px 0">' +
                ['full', 'structure', 'data'].map(t => `<button onclick="actions.createBackup('${t}')">Záloha: ${t}</button>`).join(' ') +
                '</p>' + table(data.logs, ['created_at', 'type', 'filename', 'file_size', 'status', 'error_message']),
        };

        function load() {
            const names = Object.keys(sources);
            Promise.all(names.map(name => fetch(sources[name], { credentials: 'include' })
                .then(r => r.json().then(d => ({ ok: r.ok, d })))))
                .then(results => {
                    content.className = '';
                    const failed = results.find(result => !result.ok);
                    if (failed) {
                        content.innerHTML = `<p class="error">${esc(failed.d.error)}</p>`;
                        return;
                    }
                    state = {};
                    names.forEach((name, i) => { state[name] = results[i].d; });
                    content.innerHTML = views['{{ view }}'](state);
                })
                .catch(() => { content.innerHTML = '<p class="error">Nepodařilo se načíst data</p>'; });
        }

        load();
    </script>
</body>
</html>
'''


def page_links():
    return {
        "signIn": url_for('sign_in'),
        "detail": url_for('whitelist_detail_page', request_id=0).rsplit('/', 1)[0] + '/',
        "bank": url_for('character_bank_page'),
        "dashboard": [
            [url_for('my_whitelist_page'), 'Moje žádosti'],
            [url_for('my_characters_page'), 'Moje postavy'],
            [url_for('whitelist_review_page'), 'Whitelist žádosti'],
            [url_for('database_characters_page'), 'Databáze postav'],
            [url_for('vehicles_page'), 'Vozidla'],
            [url_for('admin_dashboard'), 'Administrace'],
        ],
        "admin": [
            [url_for('admin_users_page'), 'Uživatelé'],
            [url_for('admin_rules_page'), 'Pravidla'],
            [url_for('admin_activities_page'), 'Aktivity'],
            [url_for('admin_questions_page'), 'Whitelist otázky'],
            [url_for('admin_contests_page'), 'Fotosoutěž'],
            [url_for('admin_backup_page'), 'Zálohy'],
        ],
    }


def render_page(title, view, **sources):
    """Render PAGE_LAYOUT; each source URL is fetched and handed to the view under its name"""
    return render_template_string(
        PAGE_LAYOUT,
        title=title,
        view=view,
        sources=sources,
        links=page_links(),
        server_name=config.SERVER_NAME,
        signed_in=auth.current_user_id() is not None,
    )


@app.route('/')
def home():
    return render_page('Vítejte', 'home', status=url_for('api_server_status'), activities=url_for('api_activities'))


@app.route('/sign-in')
def sign_in():
    """Login Page"""
    if auth.current_user_id():
        return redirect(safe_next(request.args.get('next')))

    return render_template_string('''
    <!DOCTYPE html>
    <html lang="cs">
    <head>
        <title>Přihlášení - {{ server_name }}</title>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <style>
            * { margin: 0; padding: 0; box-sizing: border-box; }
            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
                background: #0a0a0a;
                color: #fff;
                min-height: 100vh;
                display: flex;
                justify-content: center;
                align-items: center;
            }
            .login-container {
                width: 100%;
                max-width: 400px;
                padding: 40px;
                background: rgba(20,20,20,0.85);
                border-radius: 12px;
                border: 1px solid rgba(255,255,255,0.1);
                box-shadow: 0 8px 32px rgba(0,0,0,0.3);
                text-align: center;
            }
            h1 { font-size: 24px; margin-bottom: 12px; }
            p { color: #888; margin-bottom: 24px; }
            .error { color: #ff6b6b; }
            a.discord {
                display: block;
                padding: 14px;
                background: #5865F2;
                color: #fff;
                border-radius: 8px;
                text-decoration: none;
                font-weight: 600;
            }
        </style>
    </head>
    <body>
        <div class="login-container">
            <h1>{{ server_name }}</h1>
            <p>Přihlaste se pomocí svého Discord účtu</p>
            {% if error %}<p class="error">Přihlášení se nezdařilo, zkuste to znovu.</p>{% endif %}
            <a class="discord" href="{{ url_for('discord_login', next=next_url) }}">Přihlásit přes Discord</a>
        </div>
    </body>
    </html>
    ''', server_name=config.SERVER_NAME, error=request.args.get('error'),
        next_url=safe_next(request.args.get('next')))


@app.route('/pravidla')
def rules_page():
    return render_page('Pravidla', 'rules', data=url_for('api_rules'))


@app.route('/whitelist')
def whitelist_page():
    return render_page('Whitelist žádost', 'whitelistForm', data=url_for('api_whitelist_questions'))


@app.route('/fotosoutez')
def photo_contest_page():
    return render_page('Fotosoutěž', 'contests', data=url_for('api_fotosoutez'))


@app.route('/statistics')
def statistics_page():
    return render_page('Statistiky', 'stats', data=url_for('api_statistics'))


@app.route('/team')
def team_page():
    role_id = request.args.get('roleId') or config.DISCORD_STAFF_ROLE_ID
    return render_page('Tým', 'team', data=url_for('api_members_by_role', roleId=role_id))

# Dashboard pages sit behind auth.gate_pages; the APIs they call enforce roles.

@app.route('/dashboard')
def dashboard():
    return render_page('Dashboard', 'dashboard', data=url_for('api_dashboard_stats'))


@app.route('/dashboard/my-whitelist')
def my_whitelist_page():
    return render_page('Moje žádosti', 'myWhitelist', data=url_for('api_user_whitelist_requests'))


@app.route('/dashboard/whitelist')
def whitelist_review_page():
    return render_page('Whitelist žádosti', 'reviewQueue', data=url_for('api_whitelist_list'))


@app.route('/dashboard/whitelist-detail/<int:request_id>')
def whitelist_detail_page(request_id):
    return render_page('Detail žádosti', 'requestDetail', data=url_for('api_whitelist_detail', request_id=request_id))


@app.route('/dashboard/characters')
def my_characters_page():
    return render_page('Moje postavy', 'myCharacters', data=url_for('api_postavy'))


@app.route('/dashboard/characters/bank')
def character_bank_page():
    character = request.args.get('character', '')
    return render_page('Bankovní účet', 'bank', data=url_for('api_banking_transactions', character=character))


@app.route('/dashboard/database-characters')
def database_characters_page():
    return render_page('Postavy', 'characters', data=url_for('api_database_characters'))


@app.route('/dashboard/vehicles')
def vehicles_page():
    return render_page('Vozidla', 'vehicles', data=url_for('api_vehicles'))


@app.route('/admin')
def admin_dashboard():
    return render_page('Administrace', 'admin', data=url_for('api_admin_users'))


@app.route('/admin/users')
def admin_users_page():
    return render_page('Uživatelé', 'adminUsers', data=url_for('api_admin_users'))


@app.route('/admin/rules')
def admin_rules_page():
    return render_page('Správa pravidel', 'adminRules', data=url_for('api_admin_rules'))


@app.route('/admin/activities')
def admin_activities_page():
    return render_page('Správa aktivit', 'adminActivities', data=url_for('api_admin_activities'))


@app.route('/admin/whitelist-questions')
def admin_questions_page():
    return render_page('Whitelist otázky', 'adminQuestions', questions=url_for('api_admin_questions'))


@app.route('/admin/fotosoutez')
def admin_contests_page():
    return render_page('Správa fotosoutěže', 'adminContests', data=url_for('api_admin_contests'))


@app.route('/admin/settings')
def admin_backup_page():
    return render_page('Zálohy', 'adminBackup', data=url_for('api_admin_backup_overview'))

# =============================================================================
# HEALTH
# =============================================================================

@app.route('/health')
def health():
    """Health check endpoint"""
    try:
        conn = database.get_db_connection()
        conn.execute('SELECT 1')

        return jsonify({
            "status": "healthy",
            "service": config.SERVER_NAME,
            "database": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
    except Exception as e:
        logger.error(f"Health check error: {e}")
        return jsonify({
            "status": "unhealthy",
            "service": config.SERVER_NAME,
            "error": str(e),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }), 500

# =============================================================================
# STARTUP - DELAYED INITIALIZATION
# =============================================================================

def run_startup_checks():
    """Prepare the schema, remote logging and the Discord bot; never raises"""
    try:
        logger.info("Initializing database...")
        init_ok = database.init_db()
        database.close_db_connection()
        if not init_ok:
            logger.warning("Database initialization failed")

        remote_logging.install(logger)

        if config.DISCORD_BOT_TOKEN and config.DISCORD_GUILD_ID:
            guild = discord_api.get_guild_info()
            guild_name = guild.get('name') if isinstance(guild, dict) else None
            logger.info(f"Discord bot connected to {guild_name or config.DISCORD_GUILD_ID}")
        else:
            logger.warning("Discord bot not configured - role checks will deny access")

        logger.info(f"Portal initialized on port {config.PORT}")
        return True

    except Exception as e:
        logger.error(f"Startup error: {e}")
        logger.info("System started with reduced functionality")
        return False


def initialize_system():
    """Initialize system components after app is ready"""

    def startup_task():
        """Run startup tasks in background"""
        time.sleep(2)
        run_startup_checks()

    threading.Thread(target=startup_task, daemon=True).start()


if config.AUTO_INIT:
    initialize_system()

# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=config.PORT, debug=False)
