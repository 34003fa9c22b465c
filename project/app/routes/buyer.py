# app/routes/buyer.py

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from app.config import settings
from app.models.enums import City, PropertyType, Status, Timeline
from app.models.user import User
from app.routes.auth import get_current_user
from app.schemas.buyer import (
    BuyerDetail,
    BuyerListItem,
    BuyerListResponse,
    BuyerOut,
    DeleteResult,
    HistoryOut,
    Pagination,
    UserSummary,
)
from app.services.buyer import (
    BuyerFilters,
    create_buyer_service,
    delete_buyer_service,
    read_buyer_detail_service,
    read_buyers_service,
    update_buyer_service,
)
from app.utils.errors import ApiError, as_api_error

router = APIRouter()


def buyer_filters(
    search: Optional[str] = Query(None),
    city: Optional[City] = Query(None),
    property_type: Optional[PropertyType] = Query(None, alias="propertyType"),
    lead_status: Optional[Status] = Query(None, alias="status"),
    timeline: Optional[Timeline] = Query(None),
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
) -> BuyerFilters:
    """Параметры фильтрации и сортировки, общие для списка и экспорта CSV."""
    return BuyerFilters(
        search=search,
        city=city,
        property_type=property_type,
        status=lead_status,
        timeline=timeline,
        sort_by=sort_by,
        sort_order=sort_order,
    )


# ────────────── READ ALL ──────────────
@router.get(
    "",
    response_model=BuyerListResponse,
    status_code=status.HTTP_200_OK,
    summary="Получить список покупателей",
    response_description="Страница покупателей с данными пагинации",
    responses={
        200: {"description": "Страница покупателей"},
        400: {"description": "Неверные параметры фильтра, сортировки или страницы"},
        401: {"description": "Токен отсутствует или некорректен"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def read_buyers(
    request: Request,
    filters: BuyerFilters = Depends(buyer_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    _: User = Depends(get_current_user),
):
    """
    Поиск без учёта регистра по подстроке в fullName, email и phone.
    city, propertyType, status и timeline фильтруют по точному совпадению.
    """
    limit = min(limit, settings.PAGE_SIZE_MAX)
    try:
        result = await read_buyers_service(request, filters, page, limit)
        return BuyerListResponse(
            buyers=[BuyerListItem.model_validate(b) for b in result["buyers"]],
            pagination=Pagination(**result["pagination"]),
        )
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer", f"Ошибка при получении списка покупателей: {e}")
        raise as_api_error(e) from e


# ────────────── CREATE ──────────────
@router.post(
    "",
    response_model=BuyerOut,
    status_code=status.HTTP_201_CREATED,
    summary="Создать покупателя",
    response_description="Созданный покупатель",
    responses={
        201: {"description": "Покупатель успешно создан"},
        400: {"description": "Ошибка валидации с сообщениями по полям"},
        401: {"description": "Токен отсутствует или некорректен"},
        429: {"description": "Слишком много запросов"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def create_buyer(
    request: Request,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
):
    try:
        buyer = await create_buyer_service(payload, current_user, request)
        return BuyerOut.model_validate(buyer)
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer", f"Ошибка при создании покупателя: {e}", {"user_id": current_user.id})
        raise as_api_error(e) from e


# ────────────── READ ONE ──────────────
@router.get(
    "/{id}",
    response_model=BuyerDetail,
    status_code=status.HTTP_200_OK,
    summary="Получить покупателя по ID",
    response_description="Покупатель с владельцем и последней историей",
    responses={
        200: {"description": "Покупатель найден и возвращён"},
        401: {"description": "Токен отсутствует или некорректен"},
        404: {"description": "Покупатель не найден"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def read_buyer(
    id: str,
    request: Request,
    _: User = Depends(get_current_user),
):
    try:
        buyer, history = await read_buyer_detail_service(id, request)
        return BuyerDetail(
            **BuyerOut.model_validate(buyer).model_dump(),
            owner=UserSummary.model_validate(buyer.owner),
            history=[HistoryOut.model_validate(h) for h in history],
        )
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer", f"Ошибка при получении покупателя: {e}", {"id": id})
        raise as_api_error(e) from e


# ────────────── UPDATE ──────────────
@router.put(
    "/{id}",
    response_model=BuyerOut,
    status_code=status.HTTP_200_OK,
    summary="Обновить покупателя",
    response_description="Обновлённый покупатель",
    responses={
        200: {"description": "Покупатель обновлён"},
        400: {"description": "Ошибка валидации с сообщениями по полям"},
        401: {"description": "Токен отсутствует или некорректен"},
        403: {"description": "Не владелец и не администратор"},
        404: {"description": "Покупатель не найден"},
        409: {"description": "Запись изменилась после чтения"},
        429: {"description": "Слишком много запросов"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def update_buyer(
    id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
):
    """
    Полная замена редактируемых полей. Передайте прочитанный `updatedAt`,
    чтобы обновление отклонялось, если запись за это время изменили.
    """
    try:
        buyer = await update_buyer_service(id, payload, current_user, request)
        return BuyerOut.model_validate(buyer)
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer", f"Ошибка при обновлении покупателя: {e}", {"id": id})
        raise as_api_error(e) from e


# ────────────── DELETE ──────────────
@router.delete(
    "/{id}",
    response_model=DeleteResult,
    status_code=status.HTTP_200_OK,
    summary="Удалить покупателя",
    response_description="Покупатель и его история удалены",
    responses={
        200: {"description": "Покупатель удалён"},
        401: {"description": "Токен отсутствует или некорректен"},
        403: {"description": "Не владелец и не администратор"},
        404: {"description": "Покупатель не найден"},
        500: {"description": "Внутренняя ошибка сервера"},
    },
)
async def delete_buyer(
    id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    try:
        await delete_buyer_service(id, current_user, request)
        return {"success": True}
    except ApiError:
        raise
    except Exception as e:
        await request.app.state.log.log_error("buyer", f"Ошибка при удалении покупателя: {e}", {"id": id})
        raise as_api_error(e) from e
