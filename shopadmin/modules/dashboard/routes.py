"""
Admin Dashboard Routes
======================

Login, dashboard counts, pending registrations and shop account management.
"""

from datetime import datetime

from flask import (
    abort, current_app, flash, jsonify, redirect, render_template, request, url_for,
)

from shopadmin.core.exceptions import AuthError, InvalidAdminCredentials, ShopAdminError
from shopadmin.core.logging_service import LoggingService
from shopadmin.modules.admin_session import admin_required, get_admin_session
from shopadmin.modules.shops import ShopStatus
from . import dashboard_bp


def _shops():
    """Shop repository bound to this request's admin session"""
    return current_app.extensions['shopadmin'].build_shop_repository(get_admin_session())


def _safe_next(target):
    # Only follow relative paths inside the console
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


@dashboard_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Admin login route"""
    admin_session = get_admin_session()

    if request.method == 'GET' and admin_session.is_admin:
        return redirect(url_for('admin.dashboard'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        if not email or not password:
            flash('Please enter both email and password', 'error')
            return render_template('dashboard/login.html'), 400

        try:
            admin_session.login(email, password)
            flash('Login successful', 'success')
            return redirect(_safe_next(request.args.get('next')) or url_for('admin.dashboard'))
        except InvalidAdminCredentials as e:
            flash(str(e), 'error')
        except AuthError as e:
            LoggingService.log_security_event('Failed admin login', {'email': email, 'code': e.code})
            flash(str(e), 'error')
        except ShopAdminError as e:
            flash(f'Login error: {e}', 'error')

        return render_template('dashboard/login.html'), 401

    return render_template('dashboard/login.html')


@dashboard_bp.route('/logout')
def logout():
    """Admin logout route"""
    get_admin_session().logout()
    flash('You have been logged out', 'info')
    return redirect(url_for('admin.login'))


@dashboard_bp.route('/')
@dashboard_bp.route('/dashboard')
@admin_required
def dashboard():
    """Admin dashboard with shop counts"""
    return render_template('dashboard/dashboard.html', stats=_shops().stats())


@dashboard_bp.route('/pending')
@admin_required
def pending_users():
    """Pending shop registrations"""
    return render_template(
        'dashboard/pending.html',
        shops=_shops().list_pending(),
        debug_tools=current_app.config.get('SHOPADMIN_DEBUG_TOOLS', False),
    )


@dashboard_bp.route('/pending/<shop_id>/approve', methods=['POST'])
@admin_required
def approve_user(shop_id):
    try:
        _shops().approve(shop_id)
        flash('User approved successfully', 'success')
    except Exception as e:
        flash(f'Failed to approve user: {e}', 'error')
    return redirect(url_for('admin.pending_users'))


@dashboard_bp.route('/pending/<shop_id>/reject', methods=['POST'])
@admin_required
def reject_user(shop_id):
    try:
        _shops().reject(shop_id)
        flash('User rejected successfully', 'success')
    except Exception as e:
        flash(f'Failed to reject user: {e}', 'error')
    return redirect(url_for('admin.pending_users'))


@dashboard_bp.route('/pending/test-registration', methods=['POST'])
@admin_required
def add_test_registration():
    """Debug tool: add a fake pending registration"""
    if not current_app.config.get('SHOPADMIN_DEBUG_TOOLS'):
        abort(404)
    try:
        _shops().add_test_registration()
        flash('Test registration added successfully!', 'success')
    except Exception as e:
        flash(f'Failed to add test registration: {e}', 'error')
    return redirect(url_for('admin.pending_users'))


@dashboard_bp.route('/users')
@admin_required
def manage_users():
    """All shop accounts"""
    return render_template(
        'dashboard/users.html',
        shops=_shops().list_all(),
        statuses=[status.value for status in ShopStatus],
    )


@dashboard_bp.route('/users/<shop_id>/freeze', methods=['POST'])
@admin_required
def toggle_freeze(shop_id):
    freeze = request.form.get('freeze', '1') in ('1', 'true', 'on')
    try:
        _shops().toggle_freeze(shop_id, freeze)
        flash(f"User {'frozen' if freeze else 'unfrozen'} successfully", 'success')
    except Exception as e:
        flash(f"Failed to {'freeze' if freeze else 'unfreeze'} user. Please try again. ({e})", 'error')
    return redirect(url_for('admin.manage_users'))


@dashboard_bp.route('/users/create', methods=['POST'])
@admin_required
def create_user():
    """Create a shop account directly from the admin panel"""
    form = request.form
    if form.get('password', '') != form.get('confirm_password', ''):
        flash('Passwords do not match', 'error')
        return redirect(url_for('admin.manage_users'))

    email = form.get('email', '').strip().lower()
    try:
        _shops().create(
            shop_name=form.get('shop_name', '').strip(),
            email=email,
            password=form.get('password', ''),
            phone_number=form.get('phone_number', '').strip(),
            address=form.get('address', '').strip(),
            status=form.get('status', ShopStatus.APPROVED.value),
        )
        flash(f'Shop account for {email} created successfully', 'success')
    except ShopAdminError as e:
        flash(str(e), 'error')
    except Exception as e:
        flash(f'Failed to create shop account: {e}', 'error')
    return redirect(url_for('admin.manage_users'))


@dashboard_bp.route('/status')
def status():
    """Check admin login status (API endpoint)"""
    admin_session = get_admin_session()
    if admin_session.is_admin:
        return jsonify({
            'logged_in': True,
            'admin_email': admin_session.admin_user.email,
        })
    return jsonify({'logged_in': False, 'error': admin_session.error or None}), 401


@dashboard_bp.route('/api/stats')
@admin_required
def api_stats():
    """API endpoint for dashboard statistics"""
    return jsonify(_shops().stats())


@dashboard_bp.route('/api/shops')
@admin_required
def api_shops():
    """Shop listing as JSON; ?status=pending restricts to pending registrations"""
    if request.args.get('status') == ShopStatus.PENDING.value:
        shops = _shops().list_pending()
    else:
        shops = _shops().list_all()
    return jsonify({'shops': shops, 'count': len(shops)})


@dashboard_bp.context_processor
def utility_processor():
    """Add utility values to template context"""
    def current_year():
        return datetime.now().year

    return dict(
        admin_user=get_admin_session().admin_user,
        current_year=current_year,
    )
