import unittest
from unittest.mock import MagicMock

from blackjack_be.services.lobby import LobbyPresence
from blackjack_be.services.table_coordinator import TableCoordinator
from blackjack_be.exceptions import NotFoundException


class TestLobbyPresence(unittest.TestCase):

    def setUp(self):
        self.presence = LobbyPresence(timeout_seconds=30)

    def test_ping_records_last_seen(self):
        self.presence.ping('p_1', now=100.0)
        self.assertEqual(self.presence.last_seen('p_1'), 100.0)
        self.presence.ping('p_1', now=110.0)
        self.assertEqual(self.presence.last_seen('p_1'), 110.0)

    def test_expired_after_timeout(self):
        self.presence.ping('p_1', now=100.0)
        self.presence.ping('p_2', now=120.0)
        self.assertEqual(self.presence.expired(now=130.0), [])
        self.assertEqual(self.presence.expired(now=131.0), ['p_1'])

    def test_uses_clock_when_now_omitted(self):
        clock = MagicMock(side_effect=[0.0, 45.0])
        presence = LobbyPresence(timeout_seconds=30, clock=clock)
        presence.ping('p_1')
        self.assertEqual(presence.expired(), ['p_1'])

    def test_sweep_removes_players_from_table(self):
        coordinator = TableCoordinator()
        stale = coordinator.join('Stale', 'device-a')
        fresh = coordinator.join('Fresh', 'device-b')
        self.presence.ping(stale['id'], now=0.0)
        self.presence.ping(fresh['id'], now=50.0)

        removed = self.presence.sweep(coordinator, now=60.0)

        self.assertEqual(removed, [stale['id']])
        self.assertNotIn(stale['id'], coordinator.players)
        self.assertIn(fresh['id'], coordinator.players)
        self.assertIsNone(self.presence.last_seen(stale['id']))

    def test_sweep_ignores_players_who_already_left(self):
        coordinator = MagicMock()
        coordinator.leave.side_effect = NotFoundException("gone")
        self.presence.ping('p_1', now=0.0)
        self.assertEqual(self.presence.sweep(coordinator, now=100.0), [])
        self.assertIsNone(self.presence.last_seen('p_1'))


if __name__ == '__main__':
    unittest.main()
