import asyncio

import pytest

from mini_server.exceptions import (
    GenerationError,
    InvalidDocumentError,
    InvalidOperationError,
    NotFoundError,
    VersionNotFoundError,
)
from mini_server.models.generation import AppMetadata
from mini_server.models.projects import ProjectStatus
from mini_server.services.project_service import ProjectRegistry


class FakeMetadataGenerator:
    """Stands in for the LLM-backed generator"""

    def __init__(self, metadata=None, error=None):
        self.metadata = metadata or AppMetadata(name="Todo Board", description="Tracks tasks", icon="✅")
        self.error = error
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.metadata


async def _project_with_versions(projects, count):
    project = await projects.create_project("todo app", model="model-x")
    for n in range(1, count + 1):
        project = await projects.append_version(project.id, f"prompt {n}", f"code {n}", "model-x")
    return project


@pytest.mark.asyncio
async def test_create_project_starts_empty_draft(projects):
    project = await projects.create_project("todo app", model="model-x")

    assert project.current_version == 0
    assert project.versions == []
    assert project.status == ProjectStatus.draft
    assert project.initial_prompt == "todo app"
    assert project.initial_model == "model-x"
    assert project.name == "Untitled Project"
    assert project.description == ""
    assert project.icon == "📋"

    stored = await projects.get_project(project.id)
    assert stored == project


@pytest.mark.asyncio
async def test_create_project_prefers_caller_metadata(store):
    generator = FakeMetadataGenerator()
    projects = ProjectRegistry(store, generator)

    project = await projects.create_project("todo app", name="My Todos")

    assert project.name == "My Todos"
    assert project.description == "Tracks tasks"
    assert project.icon == "✅"
    assert generator.prompts == ["todo app"]


@pytest.mark.asyncio
async def test_create_project_skips_generator_when_fully_described(store):
    generator = FakeMetadataGenerator()
    projects = ProjectRegistry(store, generator)

    project = await projects.create_project("todo app", name="A", description="B", icon="C")

    assert (project.name, project.description, project.icon) == ("A", "B", "C")
    assert generator.prompts == []


@pytest.mark.asyncio
async def test_create_project_surfaces_generator_failure(store):
    projects = ProjectRegistry(store, FakeMetadataGenerator(error=GenerationError("model down")))

    with pytest.raises(GenerationError):
        await projects.create_project("todo app")
    assert (await projects.list_projects())[1] == 0


@pytest.mark.asyncio
async def test_append_version_numbers_monotonically(projects):
    project = await _project_with_versions(projects, 3)

    assert [v.version_number for v in project.versions] == [1, 2, 3]
    assert project.current_version == 3
    assert project.versions[0].project_id == project.id
    assert project.versions[2].source_code == "code 3"
    assert project.versions[2].model == "model-x"
    assert project.updated_at >= project.created_at


@pytest.mark.asyncio
async def test_append_version_to_missing_project(projects):
    with pytest.raises(NotFoundError):
        await projects.append_version("missing", "p", "code")


@pytest.mark.asyncio
async def test_concurrent_appends_keep_every_version(projects):
    project = await projects.create_project("race")

    await asyncio.gather(*(projects.append_version(project.id, f"p{i}", f"code {i}") for i in range(10)))

    stored = await projects.get_project(project.id)
    assert sorted(v.version_number for v in stored.versions) == list(range(1, 11))
    assert stored.current_version == 10
    assert len({v.source_code for v in stored.versions}) == 10


@pytest.mark.asyncio
async def test_switch_version(projects):
    project = await _project_with_versions(projects, 3)

    switched = await projects.switch_version(project.id, 1)

    assert switched.current_version == 1
    assert [v.version_number for v in switched.versions] == [1, 2, 3]


@pytest.mark.asyncio
async def test_switch_to_unknown_version_fails(projects):
    project = await _project_with_versions(projects, 2)

    with pytest.raises(VersionNotFoundError):
        await projects.switch_version(project.id, 7)
    assert (await projects.get_project(project.id)).current_version == 2


@pytest.mark.asyncio
async def test_delete_current_version_is_rejected(projects):
    project = await _project_with_versions(projects, 2)

    with pytest.raises(InvalidOperationError):
        await projects.delete_version(project.id, project.current_version)


@pytest.mark.asyncio
async def test_delete_only_version_is_rejected(projects):
    project = await _project_with_versions(projects, 1)

    with pytest.raises(InvalidOperationError):
        await projects.delete_version(project.id, 1)
    assert len((await projects.get_project(project.id)).versions) == 1


@pytest.mark.asyncio
async def test_delete_version_leaves_gap_and_numbering_continues(projects):
    project = await _project_with_versions(projects, 3)

    project = await projects.delete_version(project.id, 2)
    assert [v.version_number for v in project.versions] == [1, 3]
    assert project.current_version == 3

    project = await projects.append_version(project.id, "p4", "code 4")
    assert [v.version_number for v in project.versions] == [1, 3, 4]
    assert project.current_version == 4


@pytest.mark.asyncio
async def test_delete_unknown_version_fails(projects):
    project = await _project_with_versions(projects, 2)

    with pytest.raises(VersionNotFoundError):
        await projects.delete_version(project.id, 9)


@pytest.mark.asyncio
async def test_update_metadata_only_touches_presentation_fields(projects):
    project = await _project_with_versions(projects, 2)

    updated = await projects.update_metadata(
        project.id,
        {"name": "Renamed", "icon": "🚀", "current_version": 99, "versions": [], "initial_prompt": "x"},
    )

    assert updated.name == "Renamed"
    assert updated.icon == "🚀"
    assert updated.current_version == 2
    assert len(updated.versions) == 2
    assert updated.initial_prompt == "todo app"


@pytest.mark.asyncio
async def test_update_metadata_rejects_unknown_status(projects):
    project = await projects.create_project("todo app")

    with pytest.raises(InvalidOperationError):
        await projects.update_metadata(project.id, {"status": "archived"})


@pytest.mark.asyncio
async def test_publish_and_unpublish(projects):
    project = await projects.create_project("todo app")
    other = await projects.create_project("notes app")

    published = await projects.publish(project.id)
    assert published.status == ProjectStatus.published
    assert [p.id for p in await projects.list_published()] == [project.id]

    # Going back to draft is allowed
    draft = await projects.update_metadata(project.id, {"status": "draft"})
    assert draft.status == ProjectStatus.draft
    assert await projects.list_published() == []
    assert (await projects.get_project(other.id)).status == ProjectStatus.draft


@pytest.mark.asyncio
async def test_list_versions_and_get_version(projects):
    project = await _project_with_versions(projects, 2)

    versions = await projects.list_versions(project.id)
    assert [v.version_number for v in versions] == [1, 2]
    assert (await projects.get_version(project.id, 2)).prompt == "prompt 2"

    with pytest.raises(VersionNotFoundError):
        await projects.get_version(project.id, 3)


@pytest.mark.asyncio
async def test_list_and_delete_projects(projects):
    first = await projects.create_project("one")
    second = await projects.create_project("two")

    items, count = await projects.list_projects(limit=1)
    assert count == 2
    assert [p.id for p in items] == [first.id]

    await projects.delete_project(first.id)
    with pytest.raises(NotFoundError):
        await projects.get_project(first.id)
    with pytest.raises(NotFoundError):
        await projects.delete_project(first.id)

    items, count = await projects.list_projects()
    assert count == 1
    assert items[0].id == second.id


@pytest.mark.asyncio
async def test_malformed_project_documents_are_skipped_by_listings(store, projects):
    await store.create("projects", {"id": "hand", "versions": "not-a-list"})
    await store.create("projects", {"id": "bad-published", "status": "published", "current_version": -1})
    good = await projects.create_project("todo app")
    await projects.publish(good.id)

    items, count = await projects.list_projects()
    assert [p.id for p in items] == [good.id]
    assert count == 3
    assert [p.id for p in await projects.list_published()] == [good.id]


@pytest.mark.asyncio
async def test_malformed_project_raises_typed_error_on_direct_access(store, projects):
    await store.create("projects", {"id": "hand", "versions": "not-a-list"})

    with pytest.raises(InvalidDocumentError) as excinfo:
        await projects.get_project("hand")
    assert excinfo.value.collection == "projects"
    assert excinfo.value.details["errors"]

    with pytest.raises(InvalidDocumentError):
        await projects.append_version("hand", "prompt", "code")
    assert (await store.find_one("projects", "id", "hand")).data["versions"] == "not-a-list"


@pytest.mark.asyncio
async def test_project_without_payload_id_is_addressable_by_document_id(store, projects):
    doc = await store.create("projects", {"name": "manual"})

    items, _ = await projects.list_projects()
    assert [p.id for p in items] == [doc.id]

    assert (await projects.get_project(doc.id)).name == "manual"
    project = await projects.append_version(doc.id, "prompt", "code")
    assert project.id == doc.id
    assert project.current_version == 1

    # The first mutation writes the id into the payload
    assert (await store.get("projects", doc.id)).data["id"] == doc.id
    await projects.delete_project(doc.id)
    with pytest.raises(NotFoundError):
        await projects.get_project(doc.id)


@pytest.mark.asyncio
async def test_document_id_does_not_shadow_payload_id(store, projects):
    doc = await store.create("projects", {"id": "p-1", "name": "keyed"})

    assert (await projects.get_project("p-1")).name == "keyed"
    with pytest.raises(NotFoundError):
        await projects.get_project(doc.id)


GENERATED = """function App() { return null; }
---METADATA---
{"name": "Todo Board", "description": "Tracks tasks", "icon": "✅", "version": 2}
---END-METADATA---"""


@pytest.mark.asyncio
async def test_generated_version_names_an_untitled_project(projects):
    project = await projects.create_project("todo app")

    project = await projects.append_generated_version(project.id, "todo app", output=GENERATED, model="model-x")

    assert project.current_version == 1
    assert project.versions[0].source_code == "function App() { return null; }"
    assert project.versions[0].model == "model-x"
    assert (project.name, project.description, project.icon) == ("Todo Board", "Tracks tasks", "✅")


@pytest.mark.asyncio
async def test_generated_metadata_never_overrides_chosen_fields(projects):
    project = await projects.create_project("todo app", name="My Todos", icon="🗒️")

    project = await projects.append_generated_version(project.id, "todo app", output=GENERATED)

    assert project.name == "My Todos"
    assert project.icon == "🗒️"
    assert project.description == "Tracks tasks"


@pytest.mark.asyncio
async def test_generated_version_without_metadata_keeps_defaults(projects):
    project = await projects.create_project("todo app")

    project = await projects.append_generated_version(project.id, "todo app", output="plain code")

    assert project.versions[0].source_code == "plain code"
    assert project.name == "Untitled Project"


@pytest.mark.asyncio
async def test_generated_version_from_stream_lines(projects):
    project = await projects.create_project("todo app")
    lines = [
        'data: {"type": "status", "message": "thinking"}',
        'data: {"type": "token", "text": "const a = 1;"}',
        'data: {"type": "token", "text": " const b = 2;"}',
        'data: {"type": "usage", "input_tokens": 10, "output_tokens": 20}',
        "data: [DONE]",
    ]

    project = await projects.append_generated_version(project.id, "todo app", stream_lines=lines)

    assert project.versions[0].source_code == "const a = 1; const b = 2;"


@pytest.mark.asyncio
async def test_failed_generation_adds_no_version(projects):
    project = await projects.create_project("todo app")

    with pytest.raises(GenerationError):
        await projects.append_generated_version(
            project.id, "todo app", stream_lines=['data: {"type": "error", "data": "overloaded"}']
        )
    with pytest.raises(GenerationError):
        await projects.append_generated_version(project.id, "todo app", output="---METADATA---{}---END-METADATA---")

    assert (await projects.get_project(project.id)).versions == []
