import os

import pytest

# Tests run against in-memory backends with rate limiting and auth off
os.environ["TAXONOMY_NO_RATE_LIMIT"] = "true"
os.environ["TAXONOMY_DB_PATH"] = ":memory:"
os.environ["TAXONOMY_CACHE"] = "memory"
os.environ["TAXONOMY_SEARCH"] = "memory"
os.environ.pop("TAXONOMY_API_TOKEN", None)

from taxonomy_api.config import Settings  # noqa: E402
from taxonomy_api.models.concept_models import ConceptCreate  # noqa: E402
from taxonomy_api.services.taxonomy import build_taxonomy, set_taxonomy  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def taxonomy():
    """A fresh in-memory taxonomy installed as the app singleton."""
    t = build_taxonomy(Settings(db_path=":memory:"))
    set_taxonomy(t)
    yield t
    set_taxonomy(None)
    await t.close()


@pytest.fixture
def seed(taxonomy):
    """Insert concepts and edges through the mutation service.

    `concepts` maps id -> label (level 0) or id -> (label, level).
    """

    async def _seed(concepts: dict, edges: list[tuple[str, str]] = ()):
        for concept_id, spec in concepts.items():
            label, level = spec if isinstance(spec, tuple) else (spec, 0)
            await taxonomy.mutations.create_concept(
                ConceptCreate(id=concept_id, label=label, level=level)
            )
        for parent_id, child_id in edges:
            await taxonomy.mutations.create_edge(parent_id, child_id)
        return taxonomy

    return _seed


@pytest.fixture
async def diamond(seed):
    """R -> A -> D, R -> B -> D, D -> E."""
    return await seed(
        {
            "R": ("Root", 0),
            "A": ("Alpha", 1),
            "B": ("Beta", 1),
            "D": ("Delta", 2),
            "E": ("Epsilon", 3),
        },
        [("R", "A"), ("R", "B"), ("A", "D"), ("B", "D"), ("D", "E")],
    )
