from flask import Blueprint, jsonify
from truthroom import db
from truthroom.models import Room

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the truthroom server!'})

@main.route('/api/health')
def health():
    return jsonify({'ok': True, 'rooms': db.session.query(Room.room_id).count()})
