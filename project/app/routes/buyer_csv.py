# app/routes/buyer_csv.py

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from fastapi.responses import Response

from app.models.user import User
from app.routes.auth import get_current_user
from app.routes.buyer import buyer_filters
from app.schemas.buyer import ImportResult
from app.services.buyer import BuyerFilters, read_all_buyers_service
from app.services.csv_io import export_buyers_csv, import_buyers_service
from app.utils.errors import ApiError, ValidationFailed, as_api_error

router = APIRouter()


# ────────────── EXPORT ──────────────
@router.get(
    "/csv",
    status_code=status.HTTP_200_OK,
    summary="Экспорт покупателей в CSV",
    response_description="CSV-вложение со всеми покупателями по фильтрам",
    responses={
        200: {"description": "CSV файл", "content": {"text/csv": {}}},
        400: {"description": "Неверные параметры фильтра или сортировки"},
        401: {"description": "Токен отсутствует или некорректен"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def export_buyers(
    request: Request,
    filters: BuyerFilters = Depends(buyer_filters),
    current_user: User = Depends(get_current_user),
):
    """
    Те же фильтры и сортировка, что у списка, но без пагинации.
    """
    try:
        buyers = await read_all_buyers_service(request, filters)
        content = export_buyers_csv(buyers)
        filename = f"buyers-export-{datetime.now(timezone.utc):%Y-%m-%d}.csv"
        await request.app.state.log.log_info("buyer_csv", "Покупатели выгружены", {"count": len(buyers), "user_id": current_user.id})
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer_csv", f"Ошибка при экспорте покупателей: {e}")
        raise as_api_error(e) from e


# ────────────── IMPORT ──────────────
@router.post(
    "/csv",
    response_model=ImportResult,
    status_code=status.HTTP_200_OK,
    summary="Импорт покупателей из CSV",
    response_description="Количество импортированных покупателей",
    responses={
        200: {"description": "Все строки импортированы"},
        400: {"description": "Нет файла, битый CSV, слишком много строк или невалидные строки (ничего не импортировано)"},
        401: {"description": "Токен отсутствует или некорректен"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def import_buyers(
    request: Request,
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
):
    """
    **Вход (multipart/form-data):**
    - `file`: CSV с заголовком из колонок экспорта, не более 200 строк данных

    Невалидные строки возвращаются как `invalidRows: [{row, errors}]`, нумерация с 1.
    """
    if file is None:
        raise ValidationFailed(error="CSV file is required")

    try:
        content = await file.read()
        count = await import_buyers_service(content, current_user, request)
        return {"success": True, "message": f"Successfully imported {count} buyers", "count": count}
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer_csv", f"Ошибка при импорте покупателей: {e}", {"filename": file.filename})
        raise as_api_error(e) from e
