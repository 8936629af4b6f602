from wordduel import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Socket.IO server so the /ws event stream works in dev
    socketio.run(app, debug=True)
