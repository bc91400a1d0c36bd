import time
from typing import List

from truthroom import db, notifier, socketio
from truthroom.models import Question, Room


def reap_expired_rooms(ttl_sec: int, now: float | None = None) -> List[str]:
    """Delete rooms whose last mutation is older than ``ttl_sec``.

    Leave-on-exit is best effort, so player counts drift; this is what
    eventually clears abandoned rooms. Returns the deleted room codes.
    """
    if ttl_sec <= 0:
        return []
    cutoff = (now if now is not None else time.time()) - ttl_sec
    expired = [r.room_id for r in Room.query.filter(Room.updated_at < cutoff).all()]
    if not expired:
        return []
    try:
        Question.query.filter(Question.room_id.in_(expired)).delete(synchronize_session=False)
        Room.query.filter(Room.room_id.in_(expired), Room.updated_at < cutoff).delete(synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    for room_id in expired:
        notifier.discard_room(room_id, notify=True)
    return expired


def schedule_reaper(app) -> None:
    """Run the reaper every REAPER_INTERVAL_SEC as a Socket.IO background task.

    - No-ops in TESTING mode or when ROOM_TTL_SEC / REAPER_INTERVAL_SEC is 0
    """
    if app.config.get('TESTING'):
        return
    ttl = int(app.config.get('ROOM_TTL_SEC', 0))
    interval = int(app.config.get('REAPER_INTERVAL_SEC', 0))
    if ttl <= 0 or interval <= 0:
        return

    def _worker():
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    removed = reap_expired_rooms(ttl)
                except Exception as exc:
                    app.logger.warning(f"[reaper-error] {exc.__class__.__name__}: {exc}")
                    continue
                finally:
                    db.session.remove()
                if removed:
                    app.logger.info(f"[reaper] removed={len(removed)} rooms={','.join(removed)}")

    app.logger.info(f"[reaper-set] ttl={ttl}s interval={interval}s")
    socketio.start_background_task(_worker)
