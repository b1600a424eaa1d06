"""Point-award rules, exercised without a database."""

import pytest

from services.errors import ScoringError
from services.scoring import (
    DEFAULT_RULES,
    ScoringRules,
    classify_outcome,
    score_group_standing,
    score_match,
    score_topscorer,
    score_winner,
    top_scorers_from_goals,
)


class TestClassifyOutcome:
    @pytest.mark.parametrize('home, away, expected', [
        (2, 1, 'home'),
        (0, 3, 'away'),
        (1, 1, 'draw'),
        (0, 0, 'draw'),
    ])
    def test_outcomes(self, home, away, expected):
        assert classify_outcome(home, away) == expected


class TestMatchScoring:
    @pytest.mark.parametrize('predicted, points, kind', [
        ((2, 1), 5, 'exact'),
        ((3, 2), 2, 'result'),
        ((1, 0), 2, 'result'),
        ((0, 1), 0, 'miss'),
        ((1, 1), 0, 'miss'),
    ])
    def test_actual_two_one(self, predicted, points, kind):
        result = score_match(predicted[0], predicted[1], 2, 1)
        assert result.points == points
        assert result.kind == kind

    def test_draw_predicted_for_draw(self):
        assert score_match(0, 0, 2, 2).points == 2
        assert score_match(2, 2, 2, 2).kind == 'exact'

    def test_penalty_winner_on_knockout(self):
        result = score_match(
            0, 0, 1, 1, is_knockout=True, predicted_penalty_winner='away', actual_penalty_winner='away'
        )
        assert result.points == 3
        assert result.kind == 'penalty'

    def test_wrong_penalty_winner_falls_back_to_outcome(self):
        result = score_match(
            0, 0, 1, 1, is_knockout=True, predicted_penalty_winner='home', actual_penalty_winner='away'
        )
        assert result.points == 2
        assert result.kind == 'result'

    def test_exact_score_beats_penalty_award(self):
        result = score_match(
            1, 1, 1, 1, is_knockout=True, predicted_penalty_winner='away', actual_penalty_winner='away'
        )
        assert result.points == 5

    def test_penalty_ignored_for_group_matches(self):
        result = score_match(
            2, 0, 1, 1, is_knockout=False, predicted_penalty_winner='away', actual_penalty_winner='away'
        )
        assert result.points == 0

    def test_awards_stay_within_the_table(self):
        seen = set()
        for ph in range(4):
            for pa in range(4):
                for penalty in (None, 'home', 'away'):
                    seen.add(score_match(
                        ph, pa, 1, 1, is_knockout=True,
                        predicted_penalty_winner=penalty, actual_penalty_winner='home',
                    ).points)
        assert seen <= {0, 2, 3, 5}

    @pytest.mark.parametrize('bad', [-1, None, 1.5, '2', True])
    def test_malformed_scores_raise(self, bad):
        with pytest.raises(ScoringError):
            score_match(bad, 0, 1, 0)

    def test_custom_rules(self):
        rules = ScoringRules.from_overrides({'exact_score': 10, 'correct_result': 4})
        assert score_match(2, 1, 2, 1, rules=rules).points == 10
        assert score_match(3, 1, 2, 1, rules=rules).points == 4


class TestGroupStandingScoring:
    def test_two_teams_swapped(self):
        assert score_group_standing(['A', 'B', 'D', 'C'], ['A', 'B', 'C', 'D']) == 6

    def test_all_correct_earns_bonus(self):
        assert score_group_standing(['A', 'B', 'C', 'D'], ['A', 'B', 'C', 'D']) == 22

    def test_nothing_correct(self):
        assert score_group_standing(['D', 'C', 'B', 'A'], ['A', 'B', 'C', 'D']) == 0

    def test_comparison_ignores_case_and_whitespace(self):
        assert score_group_standing([' brazil', 'FRANCE', 'Spain', 'japan'], ['Brazil', 'France', 'Spain', 'Japan']) == 22

    def test_three_correct_is_impossible_but_formula_holds(self):
        # Only one team out of place cannot happen, so check one correct team
        assert score_group_standing(['A', 'C', 'D', 'B'], ['A', 'B', 'C', 'D']) == 3

    @pytest.mark.parametrize('predicted', [
        ['A', 'B', 'C'],
        ['A', 'B', 'C', 'D', 'E'],
        ['A', 'A', 'C', 'D'],
        ['A', '', 'C', 'D'],
    ])
    def test_malformed_prediction_raises(self, predicted):
        with pytest.raises(ScoringError):
            score_group_standing(predicted, ['A', 'B', 'C', 'D'])


class TestTopScorer:
    def test_leaders_and_top_three(self):
        result = top_scorers_from_goals([(1, 7), (2, 5), (3, 5), (4, 3), (5, 1)])
        assert result.leaders == {1}
        assert result.top_three == {1, 2, 3, 4}
        assert result.max_goals == 7

    def test_tied_leaders_share_the_award(self):
        result = top_scorers_from_goals([(1, 6), (2, 6), (3, 2)])
        assert score_topscorer(1, result) == 15
        assert score_topscorer(2, result) == 15
        assert score_topscorer(3, result) == 3

    def test_outside_top_three(self):
        result = top_scorers_from_goals([(1, 6), (2, 5), (3, 4), (4, 3)])
        assert score_topscorer(4, result) == 0
        assert score_topscorer(99, result) == 0

    def test_no_goals_yet(self):
        assert top_scorers_from_goals([(1, 0), (2, 0)]) is None
        assert top_scorers_from_goals([]) is None


class TestWinnerScoring:
    def test_winner_finalist_and_others(self):
        assert score_winner('Brazil', 'Brazil', 'France') == 25
        assert score_winner('France', 'Brazil', 'France') == 5
        assert score_winner('Spain', 'Brazil', 'France') == 0

    def test_case_insensitive(self):
        assert score_winner('brazil', 'Brazil', 'France') == 25

    def test_finalist_unknown(self):
        assert score_winner('France', 'Brazil', None) == 0

    def test_blank_prediction_raises(self):
        with pytest.raises(ScoringError):
            score_winner('  ', 'Brazil', 'France')


class TestScoringRules:
    def test_defaults_match_policy_table(self):
        assert DEFAULT_RULES.exact_score == 5
        assert DEFAULT_RULES.correct_result == 2
        assert DEFAULT_RULES.penalty_winner == 3
        assert DEFAULT_RULES.group_position_correct == 3
        assert DEFAULT_RULES.group_all_correct == 10
        assert DEFAULT_RULES.topscorer_correct == 15
        assert DEFAULT_RULES.topscorer_in_top3 == 3
        assert DEFAULT_RULES.winner_correct == 25
        assert DEFAULT_RULES.winner_finalist == 5

    def test_unknown_keys_ignored(self):
        rules = ScoringRules.from_overrides({'not_a_rule': 99, 'winner_correct': 30})
        assert rules.winner_correct == 30
        assert rules.exact_score == 5

    def test_empty_overrides_return_defaults(self):
        assert ScoringRules.from_overrides(None) is DEFAULT_RULES

    def test_negative_override_rejected(self):
        with pytest.raises(ScoringError):
            ScoringRules.from_overrides({'exact_score': -1})
