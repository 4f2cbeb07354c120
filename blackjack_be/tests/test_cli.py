import unittest
from unittest.mock import patch

from click.testing import CliRunner

from blackjack_be.cli import cli, format_card, format_hand
from blackjack_be.client import TransportFailure


def rigged_shoe(*ranks):
    ranks = list(ranks) + ['K'] * max(0, 60 - len(ranks))
    return [{"id": f"cli-{i}", "rank": rank, "suit": "hearts"} for i, rank in enumerate(ranks)]


class TestFormatting(unittest.TestCase):

    def test_format_card(self):
        self.assertEqual(format_card({'rank': 'A', 'suit': 'spades'}), 'A♠')
        self.assertEqual(format_card(None), '??')

    def test_format_soft_hand(self):
        cards = [{'rank': 'A', 'suit': 'hearts'}, {'rank': '6', 'suit': 'clubs'}]
        self.assertEqual(format_hand(cards), 'A♥ 6♣ (17 soft)')


class TestPlayCommand(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_quit_from_betting(self):
        result = self.runner.invoke(cli, ['play', '--fast'], input='50\nundo\nquit\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Chips: [100, 50]', result.output)
        self.assertIn('Final bank: 1000', result.output)

    def test_unknown_chip_is_reported(self):
        result = self.runner.invoke(cli, ['play', '--fast'], input='25\nquit\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('❌', result.output)

    @patch('blackjack_be.utils.blackjack_helper.build_shoe')
    def test_full_round(self, mock_build_shoe):
        # Player 10+K, dealer 9+7 then draws K and busts.
        mock_build_shoe.return_value = rigged_shoe('10', '9', 'K', '7', 'K')
        result = self.runner.invoke(cli, ['play', '--fast'], input='deal\nstand\nn\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Dealer draws K♥', result.output)
        self.assertIn('Final bank: 1100', result.output)


class TestPollCommand(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    @patch('blackjack_be.cli.LobbyClient')
    def test_poll_joins_follows_and_leaves(self, mock_client_class):
        client = mock_client_class.return_value
        client.join.return_value = {'lobby': 'main', 'player': {'id': 'p_1', 'name': 'Alice'}}

        result = self.runner.invoke(cli, ['poll', '--name', 'Alice', '--device-id', 'dev', '--max-polls', '2'])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Seated as Alice (p_1) in lobby 'main'", result.output)
        client.join.assert_called_once_with('Alice', 'dev')
        self.assertEqual(client.poll.call_args.kwargs['max_polls'], 2)
        client.leave.assert_called_once()

    @patch('blackjack_be.cli.LobbyClient')
    def test_poll_exits_when_join_fails(self, mock_client_class):
        mock_client_class.return_value.join.side_effect = TransportFailure("Could not reach server")

        result = self.runner.invoke(cli, ['poll', '--device-id', 'dev'])

        self.assertEqual(result.exit_code, 1)
        self.assertIn('Could not join', result.output)


if __name__ == '__main__':
    unittest.main()
