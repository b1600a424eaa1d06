"""
Integration tests for the public blueprint
Tests the read-only leaderboard, result and statistics routes
"""
from models import db, UserStats
from services import results


class TestLeaderboardRoute:
    def test_leaderboard_lists_members(self, client, pool):
        response = client.get(f'/public/pools/{pool.id}/leaderboard')
        assert response.status_code == 200
        data = response.get_json()
        assert data['pool'] == 'Office Pool'
        assert [row['display_name'] for row in data['members']] == ['Alice', 'Bob', 'Carol']
        assert data['members'][0]['points'] == 0

    def test_unknown_pool_is_404(self, client):
        assert client.get('/public/pools/42/leaderboard').status_code == 404


class TestResultRoute:
    def test_draft_result(self, client, tournament):
        data = client.get(f'/public/tournaments/{tournament.id}/result').get_json()
        assert data == {
            'tournament_id': tournament.id,
            'tournament_status': 'active',
            'result_status': 'draft',
            'winner': None,
            'finalist': None,
            'groups': {},
        }

    def test_result_with_groups(self, client, tournament, admin_user):
        results.set_tournament_result(tournament, 'Brazil', 'France', actor=admin_user)
        results.set_group_standing(tournament, 'B', ['Spain', 'Netherlands', 'Mexico', 'Ghana'], actor=admin_user)
        results.set_group_standing(tournament, 'A', ['Brazil', 'France', 'Spain', 'Japan'], actor=admin_user)

        data = client.get(f'/public/tournaments/{tournament.id}/result').get_json()
        assert data['winner'] == 'Brazil'
        assert list(data['groups']) == ['A', 'B']
        assert data['groups']['B'][0] == 'Spain'


class TestUserStatsRoute:
    def test_user_without_history(self, client, members):
        data = client.get(f'/public/users/{members[0].id}/stats').get_json()
        assert data['tournaments_played'] == 0
        assert data['best_rank'] is None
        assert data['display_name'] == 'Alice'

    def test_user_with_history(self, client, members):
        db.session.add(UserStats(
            user_id=members[1].id, total_points=120, tournaments_played=3, wins=1, podiums=2, best_rank=1
        ))
        db.session.commit()

        data = client.get(f'/public/users/{members[1].id}/stats').get_json()
        assert data['total_points'] == 120
        assert data['wins'] == 1
        assert data['display_name'] == 'Bob'
