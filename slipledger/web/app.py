"""FastAPI JSON API for the Slip Ledger."""

import logging
from typing import Any, AsyncIterator, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import get_settings
from slipledger.agents import AssistantValidationError, LedgerAssistant, ScanParseError, SlipReader
from slipledger.ai import (
    ProviderRouter,
    RouterError,
    UploadRejected,
    VisionError,
    VisionReader,
    build_providers,
    check_upload,
    to_data_url,
)
from slipledger.api import EspnClient, MlbStatsClient, NhlClient
from slipledger.db import BetRecord, Database, LedgerValidationError, UserRecord, get_db
from slipledger.grading import GradeSuggester, grade_slip
from slipledger.leagues import LeagueResolver, get_index_cache, resolve_offline
from slipledger.models.schemas import (
    AssistantRequest,
    BetIn,
    BetPatch,
    GradeSuggestRequest,
    LeagueRegisterRequest,
    LeagueResolveItem,
)
from slipledger.stats import ledger_facts, summarize
from slipledger.utils import setup_logging
from slipledger.utils.export import bets_to_csv

logger = logging.getLogger(__name__)

# App setup
app = FastAPI(
    title="Slip Ledger",
    description="Sports bet ledger with AI-assisted slip scanning and grading",
    version="0.3.0",
)

security = HTTPBearer(auto_error=False)


# ============== DEPENDENCIES ==============

def get_database() -> Database:
    return get_db(get_settings().db_path)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_database),
) -> UserRecord:
    """Resolve the bearer token to a ledger owner."""
    if credentials is None or not credentials.credentials.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization Bearer token")
    user = db.user_for_token(credentials.credentials.strip())
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


async def get_router() -> AsyncIterator[ProviderRouter]:
    """Provider router built from settings for this request."""
    settings = get_settings()
    router = ProviderRouter(build_providers(settings), timeout=settings.provider_timeout)
    try:
        yield router
    finally:
        await router.close()


async def get_vision_reader() -> AsyncIterator[VisionReader]:
    settings = get_settings()
    reader = VisionReader(
        api_key=settings.openrouter_api_key,
        models=settings.vision_models,
        base_url=settings.openrouter_base_url,
        app_url=settings.app_url,
        timeout=settings.vision_timeout,
    )
    try:
        yield reader
    finally:
        await reader.close()


async def get_espn() -> AsyncIterator[EspnClient]:
    espn = EspnClient(base_url=get_settings().espn_base_url)
    try:
        yield espn
    finally:
        await espn.close()


async def get_suggester(
    espn: EspnClient = Depends(get_espn),
    router: ProviderRouter = Depends(get_router),
) -> AsyncIterator[GradeSuggester]:
    mlb = MlbStatsClient()
    nhl = NhlClient()
    try:
        yield GradeSuggester(espn=espn, mlb=mlb, nhl=nhl, router=router)
    finally:
        await mlb.close()
        await nhl.close()


def get_league_resolver(espn: EspnClient = Depends(get_espn)) -> LeagueResolver:
    return LeagueResolver(espn, cache=get_index_cache(get_settings().league_index_ttl_hours))


# ============== ERROR HANDLERS ==============

@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(LedgerValidationError)
async def ledger_validation_error(request: Request, exc: LedgerValidationError):
    return JSONResponse({"error": str(exc)}, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


@app.exception_handler(UploadRejected)
async def upload_rejected(request: Request, exc: UploadRejected):
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


@app.exception_handler(RouterError)
async def router_error(request: Request, exc: RouterError):
    logger.error("Text providers failed: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)


@app.exception_handler(VisionError)
async def vision_error(request: Request, exc: VisionError):
    logger.error("Vision providers failed: %s", exc)
    return JSONResponse({"error": str(exc), "failures": exc.failures}, status_code=status.HTTP_502_BAD_GATEWAY)


@app.exception_handler(ScanParseError)
async def scan_parse_error(request: Request, exc: ScanParseError):
    return JSONResponse({
        "error": str(exc),
        "model": exc.model,
        "raw_preview": exc.raw_preview,
        "failures": exc.failures,
    }, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


@app.exception_handler(AssistantValidationError)
async def assistant_validation_error(request: Request, exc: AssistantValidationError):
    return JSONResponse({
        "error": str(exc),
        "details": {"ok": False, "reason": exc.details.reason},
    }, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


# ============== HELPERS ==============

def _classify_league(db: Database, user_id: int, league: str) -> dict:
    """sport/league keys for a league label; unknown labels block the write."""
    resolved = resolve_offline(league, db.list_leagues(user_id))
    if resolved is None:
        raise LedgerValidationError(
            f'Unknown league "{league}". Register it with /api/leagues/register first.'
        )
    return {"sport_key": resolved.sport_key, "league_key": resolved.league_key}


def _get_owned_bet(db: Database, user: UserRecord, bet_id: str) -> BetRecord:
    bet = db.get_bet(user.id, bet_id)
    if bet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bet not found")
    return bet


async def _read_upload(file: Optional[UploadFile]) -> str:
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing image file")
    data = await file.read()
    check_upload(file.content_type, data, get_settings().max_upload_bytes)
    return to_data_url(file.content_type, data)


# ============== ROUTES ==============

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/bets")
async def list_bets(
    status_filter: Optional[str] = Query(None, alias="status"),
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """List the user's bets, newest first."""
    bets = db.list_bets(user.id, status=status_filter)
    return {"bets": [b.to_dict() for b in bets]}


@app.post("/api/bets", status_code=status.HTTP_201_CREATED)
async def create_bet(
    payload: BetIn,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Create a ledger row after validating fields and league."""
    fields = payload.model_dump(mode="json")
    fields["ai_meta"] = fields.get("ai_meta") or {}
    fields.update(_classify_league(db, user.id, payload.league))
    bet = db.insert_bet(user.id, BetRecord(**fields))
    return {"bet": bet.to_dict()}


@app.get("/api/bets/export")
async def export_bets(
    status_filter: Optional[str] = Query(None, alias="status"),
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """CSV export of the user's bets."""
    csv_text = bets_to_csv(db.list_bets(user.id, status=status_filter))
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ledger.csv"'},
    )


@app.get("/api/bets/{bet_id}")
async def get_bet(
    bet_id: str,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return {"bet": _get_owned_bet(db, user, bet_id).to_dict()}


@app.patch("/api/bets/{bet_id}")
async def update_bet(
    bet_id: str,
    payload: BetPatch,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Edit a ledger row; the merged row must still satisfy every invariant."""
    _get_owned_bet(db, user, bet_id)
    changes: dict[str, Any] = payload.model_dump(mode="json", exclude_unset=True)
    if changes.get("league"):
        changes.update(_classify_league(db, user.id, changes["league"]))
    if "ai_meta" in changes and changes["ai_meta"] is None:
        changes["ai_meta"] = {}

    bet = db.update_bet(user.id, bet_id, changes)
    if bet is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bet not found")
    return {"bet": bet.to_dict()}


@app.delete("/api/bets/{bet_id}")
async def delete_bet(
    bet_id: str,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    if not db.delete_bet(user.id, bet_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bet not found")
    return {"ok": True}


@app.get("/api/metrics")
async def api_metrics(
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Get performance metrics as JSON."""
    bets = db.list_bets(user.id)
    summary = summarize(bets, unit_size=get_settings().unit_size)
    return {"summary": summary.to_dict(), "facts": ledger_facts(bets)}


@app.post("/api/ai")
async def ask_assistant(
    payload: AssistantRequest,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
    router: ProviderRouter = Depends(get_router),
):
    """Answer a ledger question from verified ledger facts."""
    prompt = payload.prompt.strip()
    if not prompt:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing prompt")

    assistant = LedgerAssistant(router)
    answer = await assistant.answer(prompt, db.list_bets(user.id), strategy=payload.strategy)
    return answer.model_dump()


@app.post("/api/slips/scan")
async def scan_slip(
    file: Optional[UploadFile] = File(None),
    book: str = Form(""),
    slip_ref: str = Form(""),
    user: UserRecord = Depends(get_current_user),
    vision: VisionReader = Depends(get_vision_reader),
):
    """Extract candidate rows from a slip image for review (nothing is written)."""
    data_url = await _read_upload(file)
    result = await SlipReader(vision).scan(
        data_url,
        book=book.strip(),
        slip_ref=slip_ref.strip(),
        filename=file.filename or "",
    )
    return {
        "issues": result.issues,
        "extracted": {
            "bets": [b.model_dump() for b in result.bets],
            "meta": result.meta,
        },
    }


@app.post("/api/grade")
async def grade_settled_slip(
    file: Optional[UploadFile] = File(None),
    commit: str = Form("false"),
    book: str = Form(""),
    slip_ref: str = Form(""),
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
    vision: VisionReader = Depends(get_vision_reader),
):
    """Grade open rows from a settled slip image (preview, or gated commit)."""
    settings = get_settings()
    data_url = await _read_upload(file)
    report = await grade_slip(
        db, user.id, SlipReader(vision), data_url,
        commit=commit.strip().lower() == "true",
        book=book,
        slip_ref=slip_ref,
        leg_floor=settings.leg_match_floor,
        commit_floor=settings.commit_confidence_floor,
    )
    return report.to_dict()


@app.post("/api/grade/suggest")
async def suggest_grade(
    payload: GradeSuggestRequest,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
    suggester: GradeSuggester = Depends(get_suggester),
):
    """Suggest a grade for one bet from public final scores."""
    bet = _get_owned_bet(db, user, payload.bet_id.strip())
    return await suggester.suggest(bet)


@app.post("/api/leagues/resolve")
async def resolve_leagues(
    body: dict = Body(...),
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
    resolver: LeagueResolver = Depends(get_league_resolver),
):
    """Resolve one item, or ``{"items": [...]}``, to canonical league keys."""
    raw_items = body.get("items") if isinstance(body.get("items"), list) else [body]
    items = [LeagueResolveItem.model_validate(i) for i in raw_items if isinstance(i, dict)]
    results = await resolver.resolve(items, db.list_leagues(user.id))
    return {"results": [r.model_dump() for r in results]}


@app.post("/api/leagues/register")
async def register_league(
    payload: LeagueRegisterRequest,
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
    resolver: LeagueResolver = Depends(get_league_resolver),
):
    """Add a league and its aliases to the user's registry."""
    record = await resolver.register(db, user.id, payload)
    return {
        "ok": True,
        "league": record.to_dict(),
        "scoreboard_url": resolver.espn.scoreboard_url(record.sport_key, record.league_key),
    }


@app.get("/api/leagues/list")
async def list_leagues(
    user: UserRecord = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    return {"leagues": [lg.to_dict() for lg in db.list_leagues(user.id)]}


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the web server."""
    import uvicorn
    setup_logging(get_settings().log_level)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
