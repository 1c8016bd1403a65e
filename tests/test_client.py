import unittest
import sys
import os
from unittest.mock import MagicMock, patch
import requests
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import WeeklyGrindClient


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = WeeklyGrindClient(base_url='http://testserver/')

    @patch('client.requests.request')
    def test_login_stores_token(self, request) -> None:
        request.return_value = _response({'token': 'abc', 'expires_at': 'later'})
        self.assertEqual(self.client.login('alice', 'pw'), 'abc')
        request.assert_called_once_with(
            'POST',
            'http://testserver/token',
            headers={},
            json={'username': 'alice', 'password': 'pw'},
        )

        request.reset_mock()
        request.return_value = _response([])
        self.client.list_plans()
        request.assert_called_once_with(
            'GET', 'http://testserver/plans', headers={'Authorization': 'Bearer abc'}
        )

    @patch('client.requests.request')
    def test_complete_day(self, request) -> None:
        self.client.token = 'tok'
        request.return_value = _response({'current_day_index': 5})
        data = self.client.complete_day(3, 4)
        self.assertEqual(data['current_day_index'], 5)
        request.assert_called_once_with(
            'POST',
            'http://testserver/user-plans/3/complete',
            headers={'Authorization': 'Bearer tok'},
            json={'day_number': 4},
        )

    @patch('client.requests.request')
    def test_exercise_library_joins_equipment(self, request) -> None:
        request.return_value = _response([])
        self.client.exercise_library('upper', ['TRX', 'Kettlebell'])
        self.assertEqual(
            request.call_args.kwargs['params'],
            {'category': 'upper', 'equipment': 'TRX,Kettlebell'},
        )

    @patch('client.requests.request')
    def test_swap_exercise_body(self, request) -> None:
        request.return_value = _response({'id': 9})
        self.client.swap_exercise(9, library_exercise_id=4, sets_reps='3 × 8')
        self.assertEqual(
            request.call_args.kwargs['json'],
            {'library_exercise_id': 4, 'sets_reps': '3 × 8'},
        )

    @patch('client.requests.request')
    def test_accept_share_returns_plan_id(self, request) -> None:
        request.return_value = _response({'plan_id': 12})
        self.assertEqual(self.client.accept_share('deadbeef'), 12)

    @patch('client.requests.request')
    def test_http_errors_raise(self, request) -> None:
        resp = _response({'error': 'Plan not found'})
        resp.raise_for_status.side_effect = requests.HTTPError('404')
        request.return_value = resp
        with self.assertRaises(requests.HTTPError):
            self.client.get_plan(1)

if __name__ == '__main__':
    unittest.main()
