"""Drafting pipeline tests."""

import pytest

from quillflow.constants import (
    DIRECTIVE_DRAFT,
    DIRECTIVE_RESEARCH,
    DIRECTIVE_REVIEW,
    DIRECTIVE_STRATEGY,
    DRAFTING_STEPS,
    OUTLINE,
    RESEARCH,
    REVIEW,
    STRATEGY,
)
from quillflow.exceptions import CollaboratorError
from quillflow.pipelines import build_drafting_pipeline, review_decision
from tests.fixtures.collaborators import (
    DRAFT_TEXT,
    REVISED_TEXT,
    TENANT_ID,
    FakeSearch,
    ScriptedGenerator,
    make_services,
)


async def _run(services, tenant_id=TENANT_ID):
    record = await services.repository.create_request(tenant_id, "Remote Work")
    result = await build_drafting_pipeline(services).run(
        {"request_id": record.id, "tenant_id": tenant_id, "title": record.title}
    )
    return record.id, result


@pytest.mark.asyncio
async def test_drafting_pipeline_produces_reviewed_draft(services):
    request_id, result = await _run(services)

    assert result.success, result.error
    review = result.context[REVIEW]
    assert review.final_draft == DRAFT_TEXT
    assert review.overall_score == 91
    assert not review.revision_performed
    assert result.context[STRATEGY].research_questions[0] == "remote work productivity"
    assert result.context[OUTLINE].title == "Remote Work Playbook"

    repository = services.repository
    assert (await repository.get_request(request_id)).current_step == 5
    logs = await repository.list_execution_logs(request_id)
    assert [entry.step_name for entry in logs] == list(DRAFTING_STEPS)
    assert all(entry.success for entry in logs)
    artifact = await repository.latest_artifact(request_id, REVIEW)
    assert artifact.data["step"] == "review"
    assert artifact.data["final_draft"] == DRAFT_TEXT


@pytest.mark.asyncio
async def test_strategy_prompt_uses_tenant_profile(services):
    await _run(services)

    directive, context = services.generator.calls[0]
    assert directive == DIRECTIVE_STRATEGY
    assert context["business_name"] == "Acme"
    assert context["brand_voice"] == "Friendly"
    assert context["icp"] == {"role": "CTO"}
    assert context["title"] == "Remote Work"


@pytest.mark.asyncio
async def test_research_queries_every_role(repository):
    search = FakeSearch()
    services = make_services(repository, search=search)
    _, result = await _run(services)

    research = result.context[RESEARCH]
    assert set(research.raw_research) == {"deep_search", "web_search", "competitors", "statistics"}
    assert [item["query"] for item in research.raw_research["deep_search"]] == [
        "remote work productivity",
        "async communication tools",
    ]
    assert research.raw_research["statistics"]["statistical_sources"]
    assert research.fact_sheet["key_facts"][0]["fact"] == "Remote work is growing"
    queries = [query for query, _ in search.queries]
    assert '"remote work productivity" site:*.com OR site:*.org' in queries
    assert "remote work productivity statistics" in queries


@pytest.mark.asyncio
async def test_failed_research_roles_degrade_to_empty_results(repository):
    services = make_services(repository, search=FakeSearch(fail=True))

    _, result = await _run(services)

    assert result.success
    raw = result.context[RESEARCH].raw_research
    assert raw["deep_search"] == []
    assert raw["web_search"] == {"results": []}
    assert raw["competitors"] == []
    assert raw["statistics"] == {"statistical_sources": []}


@pytest.mark.asyncio
async def test_unparseable_research_keeps_raw_text(repository):
    services = make_services(
        repository,
        generator=ScriptedGenerator({DIRECTIVE_RESEARCH: "Plain prose findings"}),
    )

    _, result = await _run(services)

    assert result.context[RESEARCH].fact_sheet == {"raw_research": "Plain prose findings"}


@pytest.mark.asyncio
async def test_low_review_score_triggers_one_revision(repository):
    generator = ScriptedGenerator(
        {
            DIRECTIVE_REVIEW: '{"overall_score": 60, "revision_requirements": ["cite sources"]}',
            DIRECTIVE_DRAFT: [DRAFT_TEXT, REVISED_TEXT],
        }
    )
    services = make_services(repository, generator=generator)

    _, result = await _run(services)

    review = result.context[REVIEW]
    assert review.revision_performed
    assert review.overall_score == 60
    assert review.final_draft == REVISED_TEXT
    directive, context = generator.calls[-1]
    assert directive == DIRECTIVE_DRAFT
    assert context["revision_required"] is True
    assert context["original_draft"] == DRAFT_TEXT
    assert context["editor_feedback"]["revision_requirements"] == ["cite sources"]


@pytest.mark.asyncio
async def test_unparseable_review_passes_at_threshold(repository):
    generator = ScriptedGenerator({DIRECTIVE_REVIEW: "Looks fine to me"})
    services = make_services(repository, generator=generator)

    _, result = await _run(services)

    review = result.context[REVIEW]
    assert review.overall_score == 85
    assert not review.revision_performed
    assert generator.directives().count(DIRECTIVE_DRAFT) == 1


@pytest.mark.asyncio
async def test_research_failing_every_attempt_halts_pipeline(repository):
    generator = ScriptedGenerator({DIRECTIVE_RESEARCH: CollaboratorError("model overloaded")})
    services = make_services(repository, generator=generator)

    request_id, result = await _run(services)

    assert not result.success
    assert result.failed_step == RESEARCH
    assert (await repository.get_request(request_id)).current_step == 2
    logs = await repository.list_execution_logs(request_id)
    assert [(e.step_name, e.attempt, e.success) for e in logs] == [
        (STRATEGY, 1, True),
        (RESEARCH, 1, False),
        (RESEARCH, 2, False),
    ]
    artifacts = await repository.list_artifacts(request_id, RESEARCH)
    assert [a.data for a in artifacts] == [{"error": "CollaboratorError: model overloaded"}] * 2
    assert OUTLINE not in result.context


@pytest.mark.asyncio
async def test_unparseable_strategy_fails_step(repository):
    services = make_services(
        repository, generator=ScriptedGenerator({DIRECTIVE_STRATEGY: "not json"})
    )

    request_id, result = await _run(services)

    assert result.failed_step == STRATEGY
    assert "StepOutputError" in result.error
    assert (await repository.get_request(request_id)).current_step == 1


@pytest.mark.asyncio
async def test_unknown_tenant_fails_strategy(services):
    _, result = await _run(services, tenant_id=404)

    assert result.failed_step == STRATEGY
    assert "Tenant not found: 404" in result.error


@pytest.mark.asyncio
async def test_empty_draft_fails_step(repository):
    services = make_services(repository, generator=ScriptedGenerator({DIRECTIVE_DRAFT: "   "}))

    _, result = await _run(services)

    assert result.failed_step == "draft"


@pytest.mark.asyncio
async def test_review_decision_is_repeatable(repository):
    outcomes = []
    for _ in range(2):
        services = make_services(
            repository, generator=ScriptedGenerator({DIRECTIVE_REVIEW: '{"overall_score": 70}'})
        )
        _, result = await _run(services)
        review = result.context[REVIEW]
        outcomes.append((review.overall_score, review.revision_performed))

    assert outcomes[0] == outcomes[1] == (70.0, True)


@pytest.mark.parametrize(
    "review,expected",
    [
        ({"overall_score": 84.9}, (84.9, True)),
        ({"overall_score": 85}, (85.0, False)),
        ({"overall_score": "92"}, (92.0, False)),
        ({"overall_score": "great"}, (85.0, False)),
        ({}, (85.0, False)),
    ],
)
def test_review_decision(review, expected):
    assert review_decision(review, 85.0) == expected
