"""Authentication blueprint: session login, registration, onboarding, password reset."""
from flask import Blueprint, current_app, g, jsonify, session
from flask_wtf.csrf import generate_csrf

from invoicing.database import get_session
from invoicing.middleware import require_login
from invoicing.schemas.auth import (
    ForgotPasswordRequest, LoginRequest, OnboardingRequest, RegisterRequest, ResetPasswordRequest,
)
from invoicing.schemas.base import parse_payload
from invoicing.services import account_service, password_reset_service

auth_bp = Blueprint('auth', __name__, url_prefix='/api')


def _start_session(user):
    session.clear()
    session['user_id'] = user.id
    session.permanent = True


@auth_bp.route('/auth/csrf-token', methods=['GET'])
def csrf_token():
    """Token for the X-CSRFToken header on state-changing requests."""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route('/auth/register', methods=['POST'])
def register():
    data = parse_payload(RegisterRequest)
    user = account_service.register_user(get_session(), data.email, data.password, data.full_name)
    _start_session(user)
    return jsonify({'user': user.to_dict(), 'onboarding_required': True}), 201


@auth_bp.route('/auth/login', methods=['POST'])
def login():
    data = parse_payload(LoginRequest)
    user = account_service.authenticate(get_session(), data.email, data.password)
    _start_session(user)
    current_app.logger.info(f"User {user.id} logged in")
    return jsonify({
        'user': user.to_dict(),
        'onboarding_required': user.tenant_id is None and not user.is_super_admin,
    })


@auth_bp.route('/auth/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/auth/me', methods=['GET'])
@require_login
def me():
    return jsonify({
        'user': g.user.to_dict(),
        'tenant': g.tenant.to_dict() if g.tenant else None,
    })


@auth_bp.route('/onboarding', methods=['POST'])
@require_login
def onboarding():
    data = parse_payload(OnboardingRequest)
    tenant = account_service.complete_onboarding(
        get_session(), g.user, data.model_dump(),
        default_currency=current_app.config.get('DEFAULT_CURRENCY', 'NGN')
    )
    return jsonify({'tenant': tenant.to_dict()}), 201


@auth_bp.route('/auth/forgot-password', methods=['POST'])
def forgot_password():
    """Same body and status whether or not the email has an account."""
    data = parse_payload(ForgotPasswordRequest)
    ack = password_reset_service.request_password_reset(get_session(), data.email)
    return jsonify(ack), 200


@auth_bp.route('/auth/reset-password', methods=['POST'])
def reset_password():
    data = parse_payload(ResetPasswordRequest)
    password_reset_service.perform_password_reset(get_session(), data.token, data.password)
    return jsonify({'message': 'Password has been reset successfully'}), 200
