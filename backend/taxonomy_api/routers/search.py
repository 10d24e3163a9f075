from fastapi import APIRouter, Depends, HTTPException, Query

from taxonomy_api.models.pagination_models import PageDirection, SearchPage
from taxonomy_api.services.search.cursor import parse_sort
from taxonomy_api.services.taxonomy import Taxonomy, get_taxonomy

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("", response_model=SearchPage)
async def search_concepts(
    q: str | None = None,
    level: int | None = None,
    sort: list[str] = Query(default=[]),
    cursor: str | None = None,
    direction: PageDirection = PageDirection.NEXT,
    page_size: int | None = None,
    taxonomy: Taxonomy = Depends(get_taxonomy),
) -> SearchPage:
    """Full-text search over label, variants and definition.

    `sort` takes `field:order` pairs (label, level, id, _score); relevance
    when omitted.
    """
    try:
        sort_keys = parse_sort(sort)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unsupported sort: {sort}")
    return await taxonomy.search.search(
        q or None,
        level=level,
        sort=sort_keys,
        cursor=cursor,
        direction=direction,
        page_size=page_size,
    )
