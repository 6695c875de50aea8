from flask import Blueprint, request, jsonify, current_app, g
from datetime import timezone
from utils.auth_utils import jwt_required, admin_required
from utils.mining_errors import MiningError

mining_bp = Blueprint('mining', __name__, url_prefix='/api/mining')


def get_service():
    return current_app.extensions['mining_service']


def to_iso(value):
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


@mining_bp.errorhandler(MiningError)
def handle_mining_error(e):
    return jsonify(e.to_dict()), e.status_code


@mining_bp.route('/create-account', methods=['POST'])
@jwt_required
def create_mining_account():
    result = get_service().create_account(g.current_user.user_id)
    if not result.created:
        return jsonify({'success': True, 'created': False, 'message': 'Account Already Created'})

    return jsonify({'success': True, 'created': True, 'message': 'Mining account created successfully'})


@mining_bp.route('/claim', methods=['POST'])
@jwt_required
def claim_mining_balance():
    result = get_service().settle_claim(g.current_user.user_id)
    return jsonify({
        'success': True,
        'message': 'Claimed successfully',
        'claimedPoints': str(result.awarded_points),
        'claimsToday': result.claims_today,
        'nextClaimPossible': to_iso(result.next_claim_possible),
    })


@mining_bp.route('/balance', methods=['GET'])
@jwt_required
def get_mining_balance():
    balance = get_service().get_balance(g.current_user.user_id)
    data = {
        'balance': str(balance.accrued_amount),
        'floatRatio': float(balance.fraction_of_one_unit),
        'fullBalanceBox': balance.is_full_unit,
    }
    if balance.message:
        data['message'] = balance.message
    return jsonify(data)


@mining_bp.route('/account', methods=['GET'])
@jwt_required
def get_mining_account_details():
    details = get_service().get_account_details(g.current_user.user_id)
    return jsonify({
        'mining_rate': str(details['mining_rate']),
        'last_claim': to_iso(details['last_claim']),
        'next_claim_possible': to_iso(details['next_claim_possible']),
        'created_at': to_iso(details['created_at']),
        'claims_today': details['claims_today'],
    })


@mining_bp.route('/boost', methods=['POST'])
@admin_required
def boost_mining_rate():
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id', '')).strip()
    if not user_id:
        return jsonify({'success': False, 'message': 'user_id is required'}), 400

    new_rate = get_service().boost_mining_rate(user_id)
    return jsonify({'success': True, 'message': 'Mining rate updated successfully', 'miningRate': str(new_rate)})
