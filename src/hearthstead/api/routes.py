"""HTTP routes for the Hearthstead API."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hearthstead.api.runtime import ApiState
from hearthstead.database import check_database_health
from hearthstead.domain import catalog
from hearthstead.domain.enums import ClassAction
from hearthstead.domain.errors import (
    ConflictFailure,
    HearthsteadError,
    IneligibleAction,
    NotFound,
    ValidationFailure,
)
from hearthstead.models import Player
from hearthstead.schemas import (
    BusinessRead,
    CharterRead,
    EligibilityRead,
    GuildRead,
    HouseRead,
    ModifierSourceRead,
    PlayerCreate,
    PlayerRead,
    ReligionRead,
    SnapshotRead,
)

router = APIRouter()

ERROR_STATUS: dict[type[HearthsteadError], int] = {
    ValidationFailure: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFound: status.HTTP_404_NOT_FOUND,
    IneligibleAction: status.HTTP_400_BAD_REQUEST,
    ConflictFailure: status.HTTP_409_CONFLICT,
}


def get_state(request: Request) -> ApiState:
    state = getattr(request.app.state, "api_state", None)
    if state is None:  # pragma: no cover - FastAPI should always initialise state
        raise RuntimeError("API state not initialised")
    return state


ApiStateDep = Annotated[ApiState, Depends(get_state)]


def get_session(state: ApiStateDep) -> Iterator[Session]:
    with state.session_factory() as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]


def http_error(exc: HearthsteadError) -> HTTPException:
    """Translate a rule failure into the matching HTTP error."""
    code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            code = mapped
            break
    return HTTPException(status_code=code, detail=exc.to_dict())


class ActionRequest(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)


class ActionSummary(BaseModel):
    kind: str
    action: str


class MaintenanceRunRequest(BaseModel):
    now: datetime | None = None


class MaintenanceRunResponse(BaseModel):
    ran_at: datetime
    results: dict[str, Any]


class MaintenanceScheduleRequest(BaseModel):
    enabled: bool
    interval_seconds: float | None = Field(default=None, gt=0.0)
    debug_multiplier: float | None = Field(default=None, gt=0.0)


class MaintenanceStatusResponse(BaseModel):
    enabled: bool
    interval_seconds: float
    debug_multiplier: float
    effective_interval_seconds: float
    last_run_at: datetime | None


def _schedule_status(state: ApiState) -> MaintenanceStatusResponse:
    scheduler = state.maintenance
    return MaintenanceStatusResponse(
        enabled=scheduler.running,
        interval_seconds=scheduler.base_interval_seconds,
        debug_multiplier=scheduler.debug_multiplier,
        effective_interval_seconds=scheduler.interval_seconds,
        last_run_at=scheduler.last_run_at,
    )


@router.get("/health")
def health(state: ApiStateDep) -> dict[str, object]:
    return {
        "status": "ok" if check_database_health(state.engine) else "degraded",
        "rules_version": state.settings.rules_version,
        "catalog_version": catalog.CATALOG_VERSION,
        "maintenance_interval_seconds": state.maintenance.interval_seconds,
    }


# ---- Catalog ----------------------------------------------------------------


@router.get("/catalog")
def list_catalog() -> dict[str, object]:
    tables = catalog.catalog_tables()
    return {
        "version": catalog.CATALOG_VERSION,
        "tables": {name: sorted(table) for name, table in tables.items()},
    }


@router.get("/catalog/{table}")
def read_catalog_table(table: str) -> dict[str, Any]:
    tables = catalog.catalog_tables()
    if table not in tables:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Catalog table '{table}' not found"
        )
    return jsonable_encoder(dict(tables[table]))


# ---- Players ----------------------------------------------------------------


@router.post("/players", response_model=PlayerRead, status_code=status.HTTP_201_CREATED)
def create_player(payload: PlayerCreate, session: SessionDep) -> PlayerRead:
    player = Player(**payload.model_dump())
    session.add(player)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Player '{payload.username}' could not be created",
        ) from exc
    return PlayerRead.model_validate(player)


@router.get("/players", response_model=list[PlayerRead])
def list_players(session: SessionDep) -> list[PlayerRead]:
    players = session.execute(select(Player).order_by(Player.id)).scalars().all()
    return [PlayerRead.model_validate(player) for player in players]


@router.get("/players/{player_id}", response_model=PlayerRead)
def read_player(player_id: int, session: SessionDep) -> PlayerRead:
    player = session.get(Player, player_id)
    if player is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Player {player_id} not found"
        )
    return PlayerRead.model_validate(player)


@router.get("/players/{player_id}/permissions")
def read_permissions(player_id: int, state: ApiStateDep, session: SessionDep) -> dict[str, bool]:
    social = state.executor(session).social
    try:
        return {
            action.value: social.can_perform_action(player_id, action.value)
            for action in ClassAction
        }
    except HearthsteadError as exc:
        raise http_error(exc) from exc


# ---- Subjects ---------------------------------------------------------------


@router.get("/players/{player_id}/house", response_model=HouseRead)
def read_house(player_id: int, state: ApiStateDep, session: SessionDep) -> HouseRead:
    try:
        house = state.executor(session).houses.get_house(player_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return HouseRead.model_validate(house)


@router.get("/players/{player_id}/house/modifiers")
def read_house_modifiers(
    player_id: int, state: ApiStateDep, session: SessionDep
) -> dict[str, float]:
    try:
        return state.executor(session).houses.get_modifiers(player_id).as_dict()
    except HearthsteadError as exc:
        raise http_error(exc) from exc


@router.get("/players/{player_id}/house/sources", response_model=list[ModifierSourceRead])
def read_house_sources(
    player_id: int, state: ApiStateDep, session: SessionDep
) -> list[ModifierSourceRead]:
    try:
        sources = state.executor(session).houses.get_modifier_sources(player_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return [ModifierSourceRead.model_validate(source) for source in sources]


@router.get("/players/{player_id}/businesses", response_model=list[BusinessRead])
def list_player_businesses(
    player_id: int, state: ApiStateDep, session: SessionDep
) -> list[BusinessRead]:
    businesses = state.executor(session).businesses.businesses_of(player_id)
    return [BusinessRead.model_validate(business) for business in businesses]


@router.get("/guilds/{guild_id}", response_model=GuildRead)
def read_guild(guild_id: int, state: ApiStateDep, session: SessionDep) -> GuildRead:
    try:
        guild = state.executor(session).guilds.get_guild(guild_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return GuildRead.model_validate(guild)


@router.get("/businesses/{business_id}", response_model=BusinessRead)
def read_business(business_id: int, state: ApiStateDep, session: SessionDep) -> BusinessRead:
    try:
        business = state.executor(session).businesses.get_business(business_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return BusinessRead.model_validate(business)


@router.get("/religions/{religion_id}", response_model=ReligionRead)
def read_religion(religion_id: int, state: ApiStateDep, session: SessionDep) -> ReligionRead:
    try:
        religion = state.executor(session).religions.get_religion(religion_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return ReligionRead.model_validate(religion)


@router.get("/charters/{charter_id}", response_model=CharterRead)
def read_charter(charter_id: int, state: ApiStateDep, session: SessionDep) -> CharterRead:
    try:
        charter = state.executor(session).charters.get_charter(charter_id)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return CharterRead.model_validate(charter)


# ---- Transitions ------------------------------------------------------------


@router.get("/actions", response_model=list[ActionSummary])
def list_actions(state: ApiStateDep, session: SessionDep) -> list[ActionSummary]:
    return [
        ActionSummary(kind=kind, action=action)
        for kind, action in state.executor(session).actions
    ]


@router.post("/actions/{kind}/{action}", response_model=SnapshotRead)
def apply_action(
    kind: str, action: str, payload: ActionRequest, state: ApiStateDep, session: SessionDep
) -> SnapshotRead:
    try:
        snapshot = state.executor(session).apply(kind, action, **payload.params)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return SnapshotRead.model_validate(snapshot)


@router.post("/checks/{kind}/{action}", response_model=EligibilityRead)
def check_action(
    kind: str, action: str, payload: ActionRequest, state: ApiStateDep, session: SessionDep
) -> EligibilityRead:
    try:
        result = state.executor(session).check(kind, action, **payload.params)
    except HearthsteadError as exc:
        raise http_error(exc) from exc
    return EligibilityRead.model_validate(result)


# ---- Maintenance ------------------------------------------------------------


@router.post("/maintenance/run", response_model=MaintenanceRunResponse)
async def run_maintenance(
    payload: MaintenanceRunRequest, state: ApiStateDep
) -> MaintenanceRunResponse:
    results = await state.maintenance.run_now(payload.now)
    return MaintenanceRunResponse(ran_at=state.maintenance.last_run_at, results=results)


@router.get("/maintenance/schedule", response_model=MaintenanceStatusResponse)
async def get_maintenance_schedule(state: ApiStateDep) -> MaintenanceStatusResponse:
    return _schedule_status(state)


@router.post("/maintenance/schedule", response_model=MaintenanceStatusResponse)
async def update_maintenance_schedule(
    payload: MaintenanceScheduleRequest, state: ApiStateDep
) -> MaintenanceStatusResponse:
    scheduler = state.maintenance
    if payload.interval_seconds is not None:
        scheduler.set_base_interval(payload.interval_seconds)
    if payload.debug_multiplier is not None:
        scheduler.set_debug_multiplier(payload.debug_multiplier)
    if payload.enabled:
        scheduler.start()
    else:
        await scheduler.stop()
    return _schedule_status(state)
