from functools import wraps
from flask import request, current_app

from ..schemas import PlayerAuthSchema

def player_session_required(schema_class=PlayerAuthSchema):
    """
    Decorator to protect game routes with the per-player session token.
    Loads the request payload (JSON body, or the query string for GET) with
    `schema_class`, checks playerId/token against the table and passes the
    loaded payload to the view as its first argument. Any authenticated
    request also counts as a presence ping.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if request.method == 'GET':
                raw = request.args.to_dict()
            else:
                raw = request.get_json(silent=True) or {}
            # marshmallow ValidationError is rendered as 422 by the app error handler.
            payload = schema_class().load(raw)

            coordinator = current_app.table_coordinator
            coordinator.authenticate(payload['player_id'], payload['token'])
            current_app.lobby_presence.ping(payload['player_id'])
            return f(payload, *args, **kwargs)
        return decorated_function
    return decorator
