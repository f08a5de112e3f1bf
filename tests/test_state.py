"""Tests for the prospect status lifecycle."""

import pytest

from src.models.errors import InvalidTransitionError, ProspectNotFoundError
from src.models.prospect import ProspectStatus
from src.pipeline.state import ProspectStateMachine, can_enrich

S = ProspectStatus


@pytest.fixture
def state(repository, events):
    return ProspectStateMachine(repository, events)


def status_changes(repository):
    return [
        (e.payload.from_status, e.payload.to_status, e.payload.external)
        for e in repository.events
        if e.type == "status_changed"
    ]


class TestCanEnrich:
    @pytest.mark.parametrize("status", [S.NEW, S.ENRICHING, S.READY_TO_CONTACT])
    def test_enrichable(self, status):
        assert can_enrich(status)

    @pytest.mark.parametrize("status", [S.CONTACTED_EMAIL, S.REPLIED, S.WON, S.LOST, S.DO_NOT_CONTACT])
    def test_not_enrichable(self, status):
        assert not can_enrich(status)


class TestEnrichmentTransitions:
    async def test_new_prospect_goes_through_enriching_to_ready(self, repository, state):
        prospect = await repository.create_prospect("example.fr")

        await state.start_enrichment(prospect.id)
        ready = await state.finish_enrichment(prospect.id, score=66, tier=2)

        assert ready.status == S.READY_TO_CONTACT
        assert (ready.score, ready.tier) == (66, 2)
        assert status_changes(repository) == [
            (S.NEW, S.ENRICHING, False),
            (S.ENRICHING, S.READY_TO_CONTACT, False),
        ]

    async def test_outreach_statuses_cannot_be_re_enriched(self, repository, state):
        prospect = await repository.create_prospect("example.fr", status=S.CONTACTED_EMAIL)

        with pytest.raises(InvalidTransitionError):
            await state.start_enrichment(prospect.id)
        assert (await repository.get_prospect(prospect.id)).status == S.CONTACTED_EMAIL

    async def test_external_change_during_enrichment_wins(self, repository, state):
        prospect = await repository.create_prospect("example.fr")
        await state.start_enrichment(prospect.id)
        await state.apply_external(prospect.id, S.DO_NOT_CONTACT)

        result = await state.finish_enrichment(prospect.id, score=40, tier=2)

        assert result.status == S.DO_NOT_CONTACT
        assert result.score == 40

    async def test_unknown_prospect(self, state):
        with pytest.raises(ProspectNotFoundError):
            await state.start_enrichment(404)


class TestExternalTransitions:
    async def test_recorded_as_external(self, repository, state):
        prospect = await repository.create_prospect("example.fr", status=S.READY_TO_CONTACT)

        await state.apply_external(prospect.id, S.CONTACTED_MANUAL)

        assert status_changes(repository) == [(S.READY_TO_CONTACT, S.CONTACTED_MANUAL, True)]

    async def test_do_not_contact_is_absorbing(self, repository, state):
        prospect = await repository.create_prospect("example.fr", status=S.DO_NOT_CONTACT)

        with pytest.raises(InvalidTransitionError):
            await state.apply_external(prospect.id, S.READY_TO_CONTACT)
        with pytest.raises(InvalidTransitionError):
            await state.start_enrichment(prospect.id)

        await state.apply_external(prospect.id, S.DO_NOT_CONTACT)
        assert status_changes(repository) == []
