# listingsync/entrypoints/api/routers/options.py
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ....domain.errors import ConfigurationError, StoreError
from ....schemas import OptionsResponse
from ....service_layer.sources import OPTION_FIELDS, SOURCES

router = APIRouter(tags=["options"])


@router.get("/options/{source}", response_model=OptionsResponse)
async def options(source: str, request: Request) -> OptionsResponse:
    """Distinct single-select values already present in the source's table."""
    if source not in SOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown source {source!r}")

    try:
        store = request.app.state.store_factory(source)
        values = await store.distinct_values(OPTION_FIELDS[source])
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return OptionsResponse(
        source=source,
        options={k: [str(v) for v in vals] for k, vals in values.items()},
    )
