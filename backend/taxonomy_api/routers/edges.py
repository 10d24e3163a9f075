from fastapi import APIRouter, Depends, Request, Response

from taxonomy_api.models.concept_models import Edge, EdgeCreate
from taxonomy_api.rate_limit import MUTATION_LIMIT, limiter
from taxonomy_api.services.taxonomy import Taxonomy, get_taxonomy

router = APIRouter(prefix="/api/edges", tags=["edges"])


@router.post("", response_model=Edge, status_code=201)
@limiter.limit(MUTATION_LIMIT)
async def create_edge(
    request: Request,
    body: EdgeCreate,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> Edge:
    """Add a parent -> child edge. Rejected with 400 if it would close a cycle."""
    return await taxonomy.mutations.create_edge(body.parent_id, body.child_id)


@router.get("/{parent_id}/{child_id}", response_model=Edge)
async def get_edge(
    parent_id: str,
    child_id: str,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> Edge:
    return await taxonomy.mutations.get_edge(parent_id, child_id)


@router.delete("/{parent_id}/{child_id}", status_code=204)
@limiter.limit(MUTATION_LIMIT)
async def delete_edge(
    request: Request,
    parent_id: str,
    child_id: str,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> Response:
    await taxonomy.mutations.delete_edge(parent_id, child_id)
    return Response(status_code=204)
