import unittest
from unittest.mock import MagicMock

import requests

from blackjack_be.client import LobbyClient, TransportFailure


def make_response(status_code=200, payload=None, reason='OK'):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    return response


def state_payload(version, phase='betting'):
    return {'status': True, 'state': {'version': version, 'phase': phase, 'players': []}}


class TestLobbyClient(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.client = LobbyClient('http://table.local/', session=self.session, timeout=2)

    def _seat(self):
        self.client.player_id = 'p_abc'
        self.client.token = 'tok'

    def test_join_stores_credentials(self):
        self.session.request.return_value = make_response(payload={
            'status': True, 'lobby': 'main', 'token': 'tok',
            'player': {'id': 'p_abc', 'name': 'Alice', 'bank': 1000}, 'players': [],
        })
        self.client.join('Alice', 'device-a')

        self.session.request.assert_called_once_with(
            'POST', 'http://table.local/api/lobby/join',
            json={'name': 'Alice', 'deviceId': 'device-a'}, params=None, timeout=2,
        )
        self.assertEqual(self.client.player_id, 'p_abc')
        self.assertEqual(self.client.token, 'tok')

    def test_game_calls_require_seat(self):
        with self.assertRaises(TransportFailure):
            self.client.place_chip(5)
        self.session.request.assert_not_called()

    def test_state_sends_credentials_as_query(self):
        self._seat()
        self.session.request.return_value = make_response(payload=state_payload(7))
        state = self.client.state()

        self.assertEqual(state['version'], 7)
        self.assertEqual(self.client.last_version, 7)
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('GET', 'http://table.local/api/game/state'))
        self.assertEqual(kwargs['params'], {'playerId': 'p_abc', 'token': 'tok'})

    def test_action_includes_hand_index_only_when_given(self):
        self._seat()
        self.session.request.return_value = make_response(payload=state_payload(3, 'playerTurn'))

        self.client.action('hit')
        self.assertNotIn('handIndex', self.session.request.call_args.kwargs['json'])

        self.client.action('stand', hand_index=1)
        self.assertEqual(self.session.request.call_args.kwargs['json']['handIndex'], 1)

    def test_error_envelope_becomes_transport_failure(self):
        self._seat()
        self.session.request.return_value = make_response(409, {
            'status': False, 'error_code': 'BJ_2001', 'status_message': 'It is not your turn.',
            'details': {'phase': 'playerTurn'},
        }, reason='CONFLICT')

        with self.assertRaises(TransportFailure) as ctx:
            self.client.action('hit')
        failure = ctx.exception
        self.assertEqual(failure.status_code, 409)
        self.assertEqual(failure.error_code, 'BJ_2001')
        self.assertEqual(failure.details, {'phase': 'playerTurn'})
        self.assertEqual(str(failure), '409 BJ_2001: It is not your turn.')

    def test_non_json_error_uses_reason(self):
        self.session.request.return_value = make_response(502, None, reason='Bad Gateway')
        with self.assertRaises(TransportFailure) as ctx:
            self.client.lobby()
        self.assertEqual(str(ctx.exception), '502: Bad Gateway')

    def test_connection_error_becomes_transport_failure(self):
        self.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(TransportFailure) as ctx:
            self.client.lobby()
        self.assertIsNone(ctx.exception.status_code)
        self.assertIn('Could not reach http://table.local/api/lobby', str(ctx.exception))

    def test_leave_clears_credentials(self):
        self._seat()
        self.session.request.return_value = make_response(payload={'status': True, 'players': []})
        self.client.leave()
        self.assertIsNone(self.client.player_id)
        self.assertIsNone(self.client.token)

    def test_poll_reports_only_version_changes(self):
        self._seat()
        self.session.request.side_effect = [
            make_response(payload=state_payload(1)),
            make_response(payload=state_payload(1)),
            make_response(payload=state_payload(2)),
        ]
        on_state = MagicMock(return_value=False)
        sleep = MagicMock()

        result = self.client.poll(on_state, interval=0.5, max_polls=3, sleep=sleep)

        self.assertIsNone(result)
        self.assertEqual([c.args[0]['version'] for c in on_state.call_args_list], [1, 2])
        self.assertEqual(sleep.call_count, 3)
        sleep.assert_called_with(0.5)

    def test_poll_keeps_going_after_failures(self):
        self._seat()
        self.session.request.side_effect = [
            requests.Timeout("slow"),
            make_response(payload=state_payload(4, 'roundOver')),
        ]
        on_error = MagicMock()
        on_state = MagicMock(return_value=True)

        result = self.client.poll(on_state, max_polls=5, on_error=on_error, sleep=MagicMock())

        on_error.assert_called_once()
        self.assertIsInstance(on_error.call_args.args[0], TransportFailure)
        self.assertEqual(result['phase'], 'roundOver')


if __name__ == '__main__':
    unittest.main()
