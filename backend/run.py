from truthroom import create_app, check_store_connection, socketio
from truthroom.services.rooms.reaper import schedule_reaper

app = create_app()
check_store_connection(app)
schedule_reaper(app)

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
