"""
HTTP client for the lobby server.

Clients never hold game state of their own: they send intents and render the
snapshot the server returns, and follow other players' moves by polling.
"""
import logging
import time

import requests

logger = logging.getLogger(__name__)

DEFAULT_SERVER = "http://localhost:5000"
DEFAULT_TIMEOUT = 5.0
DEFAULT_POLL_INTERVAL = 0.5


class TransportFailure(Exception):
    """A request did not reach the server or was rejected with a non-2xx status."""

    def __init__(self, message, status_code=None, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}

    def __str__(self):
        if self.status_code is None:
            return self.message
        if self.error_code:
            return f"{self.status_code} {self.error_code}: {self.message}"
        return f"{self.status_code}: {self.message}"


class LobbyClient:
    def __init__(self, server_url=DEFAULT_SERVER, session=None, timeout=DEFAULT_TIMEOUT):
        self.server_url = server_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.player_id = None
        self.token = None
        self.last_version = None

    def _request(self, method, path, json=None, params=None):
        url = self.server_url + path
        try:
            response = self.session.request(method, url, json=json, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportFailure(f"Could not reach {url}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            raise TransportFailure(
                data.get('status_message') or response.reason or 'Request failed',
                status_code=response.status_code,
                error_code=data.get('error_code'),
                details=data.get('details'),
            )
        return data

    def _credentials(self, **extra):
        if not self.player_id or not self.token:
            raise TransportFailure("Not seated: join the lobby first.")
        payload = {'playerId': self.player_id, 'token': self.token}
        payload.update(extra)
        return payload

    def _game_post(self, path, **extra):
        data = self._request('POST', path, json=self._credentials(**extra))
        state = data['state']
        self.last_version = state['version']
        return state

    # --- Lobby ---

    def lobby(self):
        return self._request('GET', '/api/lobby')

    def join(self, name, device_id):
        data = self._request('POST', '/api/lobby/join', json={'name': name, 'deviceId': device_id})
        self.player_id = data['player']['id']
        self.token = data['token']
        logger.info(f"Seated as {self.player_id} in lobby {data['lobby']}")
        return data

    def leave(self):
        data = self._request('POST', '/api/lobby/leave', json=self._credentials())
        self.player_id = None
        self.token = None
        return data

    def ping(self):
        return self._request('POST', '/api/lobby/ping', json=self._credentials())

    # --- Game ---

    def state(self):
        data = self._request('GET', '/api/game/state', params=self._credentials())
        state = data['state']
        self.last_version = state['version']
        return state

    def place_chip(self, chip):
        return self._game_post('/api/game/bet/chip', chip=chip)

    def undo_chip(self):
        return self._game_post('/api/game/bet/undo')

    def all_in(self):
        return self._game_post('/api/game/bet/allin')

    def toggle_ready(self):
        return self._game_post('/api/game/ready')

    def action(self, action, hand_index=None):
        extra = {'action': action}
        if hand_index is not None:
            extra['handIndex'] = hand_index
        return self._game_post('/api/game/action', **extra)

    def next_round(self):
        return self._game_post('/api/game/next-round')

    def poll(self, on_state, interval=DEFAULT_POLL_INTERVAL, max_polls=None, on_error=None, sleep=time.sleep):
        """
        Fetches the state every `interval` seconds and calls `on_state` whenever
        the version changes. Transport failures go to `on_error` and polling
        keeps its cadence. `on_state` may return True to stop.
        """
        polls = 0
        while max_polls is None or polls < max_polls:
            polls += 1
            previous_version = self.last_version
            try:
                state = self.state()
            except TransportFailure as e:
                logger.warning(f"Poll failed: {e}")
                if on_error is not None:
                    on_error(e)
            else:
                if state['version'] != previous_version and on_state(state):
                    return state
            sleep(interval)
        return None
