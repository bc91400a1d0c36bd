from truthroom import db
from truthroom.codes import random_room_code, ROOM_CODE_LENGTH, PARTICIPANT_ID_LENGTH
from truthroom.rules import MIN_PLAYERS, MIN_QUESTIONS, WAITING
from flask import current_app
import time


def generate_room_code(length=ROOM_CODE_LENGTH):
    """Generate a room code not used by any live room."""
    while True:
        code = random_room_code(length)
        if not Room.query.filter_by(room_id=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    room_id = db.Column(db.String(ROOM_CODE_LENGTH), primary_key=True)
    host_id = db.Column(db.String(PARTICIPANT_ID_LENGTH * 2), nullable=False, default='')
    player_count = db.Column(db.Integer, nullable=False, default=1)
    current_question = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=WAITING)  # waiting, playing, ended
    # Bumped by one on every committed mutation; compare-and-swap token and snapshot order
    version = db.Column(db.Integer, nullable=False, default=1)
    draw_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    updated_at = db.Column(db.Float, nullable=False, default=time.time, index=True)
    questions = db.relationship('Question', back_populates='room', lazy='dynamic', cascade='all, delete-orphan')

    def to_dict(self):
        pool = (
            Question.query.filter_by(room_id=self.room_id, drawn_seq=None)
            .order_by(Question.id)
            .all()
        )
        used = (
            Question.query.filter(Question.room_id == self.room_id, Question.drawn_seq.isnot(None))
            .order_by(Question.drawn_seq)
            .all()
        )
        return {
            'room_id': self.room_id,
            'host_id': self.host_id,
            'player_count': self.player_count,
            'questions': [q.text for q in pool],
            'used_questions': [q.text for q in used],
            'current_question': self.current_question,
            'status': self.status,
            'version': self.version,
            # The floor start_game enforces, so clients can check it locally
            'min_players': int(current_app.config.get('MIN_PLAYERS', MIN_PLAYERS)),
            'min_questions': int(current_app.config.get('MIN_QUESTIONS', MIN_QUESTIONS)),
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.String(ROOM_CODE_LENGTH), db.ForeignKey('room.room_id', ondelete='CASCADE'), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    # Position in draw order; NULL while the question is still in the pool
    drawn_seq = db.Column(db.Integer, nullable=True)
    room = db.relationship('Room', back_populates='questions')
