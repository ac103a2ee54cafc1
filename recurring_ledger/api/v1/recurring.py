"""
Recurring series API endpoints
"""
from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from recurring_ledger.api.deps import get_db, get_current_user
from recurring_ledger.application.effective_view import EffectiveViewBuilder
from recurring_ledger.application.generation import GenerationEngine
from recurring_ledger.application.recurring_series import (
    CreateRecurringSeriesUseCase,
    get_series,
    list_due_series,
    list_series,
)
from recurring_ledger.application.series_deleter import DeleteSeriesUseCase
from recurring_ledger.application.series_editor import EditSeriesUseCase
from recurring_ledger.domain.errors import SeriesNotFoundError, SeriesValidationError
from recurring_ledger.infrastructure.db.models import User, RecurringSeriesModel, LedgerEntryModel
from recurring_ledger.utils.dates import parse_calendar_date, today


router = APIRouter(prefix="/api/v1/recurring", tags=["recurring"])


# === Request models ===

class CreateSeriesRequest(BaseModel):
    category_id: int
    amount: str  # Decimal as string
    kind: str  # income/expense
    frequency: str  # daily/weekly/monthly/yearly
    start_date: str  # YYYY-MM-DD
    end_date: str | None = None
    description: str | None = None
    is_active: bool = True


class GenerateRequest(BaseModel):
    target_date: str | None = None  # default: today
    max_catch_up_days: int | None = Field(default=None, ge=1)


class EditSeriesRequest(BaseModel):
    effective_date: str
    scope: str  # single/future/all
    category_id: int | None = None
    amount: str | None = None
    kind: str | None = None
    description: str | None = None
    frequency: str | None = None
    end_date: str | None = None
    is_active: bool | None = None


# === Response models ===

class SeriesResponse(BaseModel):
    id: int
    account_id: int
    category_id: int
    amount: str
    kind: str
    description: str | None = None
    frequency: str
    start_date: date
    end_date: date | None = None
    next_occurrence: date | None = None
    is_active: bool

    @classmethod
    def from_model(cls, series: RecurringSeriesModel) -> "SeriesResponse":
        return cls(
            id=series.id,
            account_id=series.account_id,
            category_id=series.category_id,
            amount=str(series.amount),
            kind=series.kind,
            description=series.description,
            frequency=series.frequency,
            start_date=series.start_date,
            end_date=series.end_date,
            next_occurrence=series.next_occurrence,
            is_active=series.is_active,
        )


class EntryResponse(BaseModel):
    id: int | str
    account_id: int
    category_id: int
    amount: str
    kind: str
    description: str | None = None
    entry_date: date
    series_id: int | None = None
    is_override: bool
    is_virtual: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, entry: LedgerEntryModel) -> "EntryResponse":
        return cls(
            id=entry.id,
            account_id=entry.account_id,
            category_id=entry.category_id,
            amount=str(entry.amount),
            kind=entry.kind,
            description=entry.description,
            entry_date=entry.entry_date,
            series_id=entry.series_id,
            is_override=entry.is_override,
            created_at=entry.created_at,
        )


class GenerateResponse(BaseModel):
    created: int
    skipped: int


class EditSeriesResponse(BaseModel):
    message: str
    series: SeriesResponse
    new_series: SeriesResponse | None = None
    override_entry: EntryResponse | None = None


class DeleteSeriesResponse(BaseModel):
    deleted: bool
    entry_deleted: bool = False
    detached_entries: int = 0


# === Helper function ===

def _get_owned_series(db: Session, series_id: int, user: User) -> RecurringSeriesModel:
    try:
        series = get_series(db, series_id)
    except SeriesNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if series.account_id != user.id:
        raise HTTPException(status_code=403, detail="You can only access your own recurring series")
    return series


# === Endpoints ===

@router.post("/", response_model=SeriesResponse, status_code=201)
def create_series(
    req: CreateSeriesRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Create a recurring series"""
    try:
        series = CreateRecurringSeriesUseCase(db).execute(
            account_id=user.id,
            category_id=req.category_id,
            amount=req.amount,
            kind=req.kind,
            frequency=req.frequency,
            start_date=req.start_date,
            end_date=req.end_date,
            description=req.description,
            is_active=req.is_active,
        )
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SeriesResponse.from_model(series)


@router.get("/", response_model=list[SeriesResponse])
def list_own_series(
    is_active: bool | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Series of the current user"""
    return [SeriesResponse.from_model(s) for s in list_series(db, user.id, is_active=is_active)]


@router.get("/due", response_model=list[SeriesResponse])
def list_due(
    on_date: str | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Active series of the current user that are due on or before the date (default today)"""
    try:
        target = today() if on_date is None else parse_calendar_date(on_date, "date")
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [
        SeriesResponse.from_model(s)
        for s in list_due_series(db, target)
        if s.account_id == user.id
    ]


@router.get("/effective", response_model=list[EntryResponse])
def get_effective_view(
    start_date: str | None = None,
    end_date: str | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Persisted entries merged with not-yet-generated occurrences (date descending)"""
    try:
        entries = EffectiveViewBuilder(db).build(user.id, start_date=start_date, end_date=end_date)
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [EntryResponse(**{**vars(e), "amount": str(e.amount)}) for e in entries]


@router.post("/generate", response_model=GenerateResponse)
def generate(
    req: GenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Materialize due occurrences of all series up to target_date"""
    try:
        result = GenerationEngine(db).generate(req.target_date, req.max_catch_up_days)
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return GenerateResponse(**result.as_dict())


@router.get("/{series_id}", response_model=SeriesResponse)
def get_one(
    series_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return SeriesResponse.from_model(_get_owned_series(db, series_id, user))


@router.patch("/{series_id}", response_model=EditSeriesResponse)
def edit_series(
    series_id: int,
    req: EditSeriesRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Edit one occurrence, this and future occurrences, or the whole series"""
    _get_owned_series(db, series_id, user)
    updates = req.model_dump(exclude_unset=True, exclude={"effective_date", "scope"})

    try:
        result = EditSeriesUseCase(db).execute(series_id, req.effective_date, req.scope, updates)
    except SeriesNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result.override_entry is not None:
        message = "Override entry created/updated for this occurrence. Series unchanged."
    elif result.new_series is not None:
        message = "Series split into two."
    else:
        message = "Entire series updated."

    return EditSeriesResponse(
        message=message,
        series=SeriesResponse.from_model(result.series),
        new_series=SeriesResponse.from_model(result.new_series) if result.new_series else None,
        override_entry=EntryResponse.from_model(result.override_entry) if result.override_entry else None,
    )


@router.delete("/{series_id}", response_model=DeleteSeriesResponse)
def delete_series(
    series_id: int,
    effective_date: str,
    scope: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete one occurrence, stop the series from a date, or delete the whole series"""
    _get_owned_series(db, series_id, user)

    try:
        result = DeleteSeriesUseCase(db).execute(series_id, effective_date, scope)
    except SeriesNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SeriesValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return DeleteSeriesResponse(
        deleted=result.deleted,
        entry_deleted=result.entry_deleted,
        detached_entries=result.detached_entries,
    )
