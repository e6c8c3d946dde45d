"""Tests for the credit pair classifier."""

import pytest

from movie_collaborations.domain.models.collaboration import CollaborationType
from movie_collaborations.services.classifier_service import CAST, CREW, classify


class TestClassify:
    """Tests for classify()."""

    def test_two_cast_members(self):
        """Should label cast + cast as actor-actor."""
        assert classify(CAST, None, CAST, None) == CollaborationType.ACTOR_ACTOR

    @pytest.mark.parametrize("first,second", [
        ((CAST, None), (CREW, "Director")),
        ((CREW, "Director"), (CAST, None)),
    ])
    def test_cast_and_director_in_either_order(self, first, second):
        """Should label cast + Director as actor-director regardless of order."""
        assert classify(*first, *second) == CollaborationType.ACTOR_DIRECTOR

    def test_two_directors(self):
        """Should label co-directors as director-director."""
        assert classify(CREW, "Director", CREW, "Director") == CollaborationType.DIRECTOR_DIRECTOR

    def test_director_and_key_crew(self):
        """Should label Director + key crew as director-crew."""
        assert classify(CREW, "Director", CREW, "Editor") == CollaborationType.DIRECTOR_CREW
        assert classify(CREW, "Screenplay", CREW, "Director") == CollaborationType.DIRECTOR_CREW

    def test_two_key_crew(self):
        """Should label key crew + key crew as crew-crew."""
        assert classify(CREW, "Producer", CREW, "Director of Photography") == CollaborationType.CREW_CREW

    def test_everything_else_is_other(self):
        """Should fall through to other for non-key crew."""
        assert classify(CREW, "Gaffer", CREW, "Director") == CollaborationType.OTHER
        assert classify(CAST, None, CREW, "Editor") == CollaborationType.OTHER
        assert classify(CREW, "Gaffer", CREW, "Grip") == CollaborationType.OTHER

    def test_cast_rule_wins_over_director_job(self):
        """A cast row outranks the job carried by the other credit."""
        assert classify(CAST, "Director", CAST, None) == CollaborationType.ACTOR_ACTOR

    def test_custom_key_crew_jobs(self):
        """Should use the injected key crew list."""
        assert classify(CREW, "Gaffer", CREW, "Director", key_crew_jobs={"Gaffer"}) == CollaborationType.DIRECTOR_CREW
        assert classify(CREW, "Editor", CREW, "Director", key_crew_jobs={"Gaffer"}) == CollaborationType.OTHER


class TestCollaborationTypePrecedence:
    """Tests for CollaborationType.precedence."""

    def test_declaration_order(self):
        """Precedence follows the classification rule order."""
        ordered = sorted(CollaborationType, key=lambda t: t.precedence)
        assert ordered == [
            CollaborationType.ACTOR_ACTOR,
            CollaborationType.ACTOR_DIRECTOR,
            CollaborationType.DIRECTOR_DIRECTOR,
            CollaborationType.DIRECTOR_CREW,
            CollaborationType.CREW_CREW,
            CollaborationType.OTHER,
        ]
