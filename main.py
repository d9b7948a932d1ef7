import os

from gevent.pywsgi import WSGIServer

from stackgame import create_app

app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3000))
    http_server = WSGIServer(('0.0.0.0', port), app)
    app.logger.info(f"STACK server listening on http://0.0.0.0:{port}")
    http_server.serve_forever()
