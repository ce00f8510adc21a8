"""CSV export of a result grid the client already holds."""
from typing import Any, Union

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from querydesk.models import UserAccount
from querydesk.routers.deps import current_user
from querydesk.utils.formatting import rows_to_csv

router = APIRouter(prefix="/export", tags=["export"])


class ExportColumn(BaseModel):
    name: str


class ExportCsvRequest(BaseModel):
    data: list[dict[str, Any]]
    columns: list[Union[ExportColumn, str]]


@router.post("/csv")
async def export_csv(
    body: ExportCsvRequest,
    _: UserAccount = Depends(current_user),
):
    names = [c if isinstance(c, str) else c.name for c in body.columns]
    return Response(
        content=rows_to_csv(body.data, names),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="query_results.csv"'},
    )
