import json
from contextlib import aclosing

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from taxonomy_api.models.concept_models import (
    ConceptCreate,
    ConceptDetail,
    ConceptResponse,
    ConceptStats,
    ConceptUpdate,
    ReindexResponse,
)
from taxonomy_api.models.pagination_models import (
    ConceptPage,
    ListingSource,
    PageDirection,
    RelationPage,
)
from taxonomy_api.models.traversal_models import (
    ConceptSet,
    PathEvent,
    PathSource,
    PathsToRootResult,
)
from taxonomy_api.rate_limit import MUTATION_LIMIT, STREAM_LIMIT, TRAVERSAL_LIMIT, limiter
from taxonomy_api.services.taxonomy import Taxonomy, get_taxonomy
from taxonomy_api.services.traversal import DEFAULT_MAX_DEPTH, DEFAULT_MAX_PATHS, DEFAULT_MAX_RESULTS

router = APIRouter(prefix="/api/concepts", tags=["concepts"])

# Hard ceilings for caller-supplied traversal bounds
MAX_DEPTH_CEILING = 100
MAX_PATHS_CEILING = 10_000
MAX_RESULTS_CEILING = 100_000


def _format_sse(event: PathEvent, event_id: int) -> str:
    data = json.dumps(event.model_dump(mode="json", exclude_none=True))
    return f"id: {event_id}\nevent: {event.type.value}\ndata: {data}\n\n"


@router.get("", response_model=ConceptPage)
async def list_concepts(
    level: int | None = None,
    cursor: str | None = None,
    direction: PageDirection = PageDirection.NEXT,
    page_size: int | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ConceptPage:
    """Cursor-paginated concepts ordered by (level, label, id)."""
    return await taxonomy.concepts.list_concepts(level, cursor, direction, page_size)


@router.post("", response_model=ConceptResponse, status_code=201)
@limiter.limit(MUTATION_LIMIT)
async def create_concept(
    request: Request,
    body: ConceptCreate,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ConceptResponse:
    return await taxonomy.mutations.create_concept(body)


@router.get("/admin/stats", response_model=ConceptStats)
async def concept_stats(taxonomy: Taxonomy = Depends(get_taxonomy)) -> ConceptStats:
    """Node count, edge count and deepest level."""
    return await taxonomy.concepts.stats()


@router.post("/admin/reindex", response_model=ReindexResponse)
@limiter.limit("2/minute")
async def reindex(request: Request, taxonomy: Taxonomy = Depends(get_taxonomy)) -> ReindexResponse:
    """Rebuild the search index from the graph store."""
    return await taxonomy.search.reindex_all()


@router.get("/{concept_id}", response_model=ConceptDetail)
async def get_concept(concept_id: str, taxonomy: Taxonomy = Depends(get_taxonomy)) -> ConceptDetail:
    return await taxonomy.concepts.get_detail(concept_id)


@router.put("/{concept_id}", response_model=ConceptResponse)
@limiter.limit(MUTATION_LIMIT)
async def update_concept(
    request: Request,
    concept_id: str,
    body: ConceptUpdate,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ConceptResponse:
    return await taxonomy.mutations.update_concept(concept_id, body)


@router.delete("/{concept_id}", status_code=204)
@limiter.limit(MUTATION_LIMIT)
async def delete_concept(
    request: Request,
    concept_id: str,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> Response:
    await taxonomy.mutations.delete_concept(concept_id)
    return Response(status_code=204)


@router.get("/{concept_id}/children", response_model=RelationPage)
async def list_children(
    concept_id: str,
    cursor: str | None = None,
    direction: PageDirection = PageDirection.NEXT,
    page_size: int | None = None,
    source: ListingSource = ListingSource.SEARCH,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> RelationPage:
    return await taxonomy.concepts.list_children(concept_id, cursor, direction, page_size, source)


@router.get("/{concept_id}/parents", response_model=RelationPage)
async def list_parents(
    concept_id: str,
    cursor: str | None = None,
    direction: PageDirection = PageDirection.NEXT,
    page_size: int | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> RelationPage:
    return await taxonomy.concepts.list_parents(concept_id, cursor, direction, page_size)


@router.get("/{concept_id}/ancestors", response_model=ConceptSet)
@limiter.limit(TRAVERSAL_LIMIT)
async def get_ancestors(
    request: Request,
    concept_id: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    budget_seconds: float | None = None,
    fresh: bool = False,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ConceptSet:
    """Every concept above this one. `fresh` bypasses the parent cache."""
    return await taxonomy.concepts.ancestors(
        concept_id,
        max_results=max(1, min(max_results, MAX_RESULTS_CEILING)),
        budget_seconds=budget_seconds,
        fresh=fresh,
    )


@router.get("/{concept_id}/descendants", response_model=ConceptSet)
@limiter.limit(TRAVERSAL_LIMIT)
async def get_descendants(
    request: Request,
    concept_id: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    budget_seconds: float | None = None,
    fresh: bool = False,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> ConceptSet:
    return await taxonomy.concepts.descendants(
        concept_id,
        max_results=max(1, min(max_results, MAX_RESULTS_CEILING)),
        budget_seconds=budget_seconds,
        fresh=fresh,
    )


@router.get("/{concept_id}/paths", response_model=PathsToRootResult)
@limiter.limit(TRAVERSAL_LIMIT)
async def get_paths_to_root(
    request: Request,
    concept_id: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_paths: int = DEFAULT_MAX_PATHS,
    source: PathSource = PathSource.ENGINE,
    budget_seconds: float | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> PathsToRootResult:
    """All root paths (root first), bounded by depth and path count."""
    return await taxonomy.concepts.paths_to_root(
        concept_id,
        max_depth=max(0, min(max_depth, MAX_DEPTH_CEILING)),
        max_paths=max(1, min(max_paths, MAX_PATHS_CEILING)),
        source=source,
        budget_seconds=budget_seconds,
    )


@router.get("/{concept_id}/paths/stream")
@limiter.limit(STREAM_LIMIT)
async def stream_paths_to_root(
    request: Request,
    concept_id: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_paths: int = DEFAULT_MAX_PATHS,
    verbose: bool = False,
    budget_seconds: float | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> StreamingResponse:
    """Server-sent events: path, progress, then one done or error event."""
    events = taxonomy.streams.stream(
        concept_id,
        max_depth=max(0, min(max_depth, MAX_DEPTH_CEILING)),
        max_paths=max(1, min(max_paths, MAX_PATHS_CEILING)),
        verbose=verbose,
        budget_seconds=budget_seconds,
    )

    async def event_generator():
        # aclosing: a client disconnect cancels the DFS producer too
        async with aclosing(events) as stream:
            event_id = 0
            async for event in stream:
                yield _format_sse(event, event_id)
                event_id += 1

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
