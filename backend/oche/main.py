from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from oche.config import configure_logging
from oche.scoring.achievements import ACHIEVEMENTS, Achievement
from oche.scoring.checkout import checkout_advice, checkout_routes, dart_label, suggest_checkout
from oche.scoring.darts import Dart, Multiplier, parse_dart
from oche.scoring.errors import (
    InvalidDartError,
    MatchOverError,
    NoActiveMatchError,
    RoundInProgressError,
    SnapshotMismatchError,
)
from oche.scoring.game import MatchState, PlayerState, VisitResult
from oche.scoring.host import get_host
from oche.scoring.modes import GameMode, RuleSet
from oche.scoring.stats import MatchStats, PlayerStats, compute_match_stats

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Oche")
host = get_host()


@app.get("/", include_in_schema=False)
def root(request: Request):
    # If a browser hits the root, take them to Swagger UI.
    # Keep the JSON response for API clients (e.g. curl, fetch).
    accept = (request.headers.get("accept") or "").lower()
    if "text/html" in accept:
        return RedirectResponse(url="/docs")
    return {
        "name": "Oche",
        "docs": "/docs",
        "health": "/health",
        "modes": [m.value for m in GameMode],
        "endpoints": [
            "GET /game",
            "POST /game/new",
            "POST /game/exit",
            "POST /game/dart",
            "POST /game/undo",
            "POST /game/complete",
            "POST /game/visit",
            "POST /game/winner",
            "GET /game/checkout?remaining=<int>",
            "GET /game/stats",
            "GET /achievements",
        ],
    }


@app.get("/health")
def health():
    return {"status": "ok"}


class DartDTO(BaseModel):
    multiplier: Multiplier = Field(..., description="S=single, D=double, T=triple")
    segment: int = Field(..., ge=0, le=25, description="0=miss, 1-20, 25=bull")


class DartViewDTO(DartDTO):
    score: int
    display: str


class NewGameRequest(BaseModel):
    mode: GameMode = Field(default=GameMode.X01_501)
    players: list[str] = Field(..., min_length=1, max_length=16)
    aliases: list[str] | None = Field(default=None)
    strict_double_out: bool | None = Field(default=None, description="Default comes from settings")
    resume: bool = Field(default=False, description="Restore the persisted match if there is one")


class DartRequest(BaseModel):
    dart: DartDTO | None = None
    text: str | None = Field(default=None, max_length=64, description='e.g. "treble 20", "D16", "bull"')


class VisitRequest(BaseModel):
    darts: list[DartDTO] = Field(default_factory=list, description="Up to 3 darts in a visit")


class WinnerRequest(BaseModel):
    player_index: int = Field(..., ge=0)


class RoundDTO(BaseModel):
    darts: list[DartViewDTO]
    total: int
    timestamp: float


class PlayerStateDTO(BaseModel):
    index: int
    name: str
    alias: str
    score: int
    target: str
    rounds: list[RoundDTO]
    darts_thrown: int
    highest_round: int


class VisitResultDTO(BaseModel):
    player_index: int
    darts: list[DartViewDTO]
    total: int
    outcome: str
    score_before: int
    score_after: int


class CheckoutSuggestionDTO(BaseModel):
    score: int
    path: list[str]
    description: str
    difficulty: str


class AchievementDTO(BaseModel):
    id: str
    name: str
    description: str
    rarity: str
    celebration_message: str
    unlocked: bool = False


class ToastDTO(BaseModel):
    player_index: int
    achievement: AchievementDTO


class GameStateDTO(BaseModel):
    mode: GameMode
    mode_label: str
    strict_double_out: bool
    players: list[PlayerStateDTO]
    current_player_index: int
    current_darts: list[DartViewDTO]
    current_round_total: int
    winner: int | None
    last_message: str | None
    history: list[VisitResultDTO]
    checkout: CheckoutSuggestionDTO | None
    narration: list[str]
    turn_ready_in: float
    toast: ToastDTO | None
    notice: str | None


class CheckoutResponseDTO(BaseModel):
    remaining: int
    suggestion: CheckoutSuggestionDTO | None
    advice: str
    alternatives: list[list[str]]


class PlayerStatsDTO(BaseModel):
    player_index: int
    name: str
    visits: int
    darts_thrown: int
    scored_points: int
    busts: int
    checkouts: int
    checkout_attempts: int
    checkout_percentage: float
    best_checkout: int
    highest_visit: int
    count_180: int
    count_140_plus: int
    count_100_plus: int
    three_dart_average: float
    first_nine_average: float


class MatchStatsDTO(BaseModel):
    players: list[PlayerStatsDTO]
    leader_index: int | None


def _dart_to_dto(d: Dart) -> DartViewDTO:
    return DartViewDTO(multiplier=d.multiplier, segment=d.segment, score=d.score, display=d.display)


def _dto_to_dart(d: DartDTO) -> Dart:
    return Dart(d.multiplier, d.segment)


def _player_to_dto(index: int, p: PlayerState, rules: RuleSet) -> PlayerStateDTO:
    return PlayerStateDTO(
        index=index,
        name=p.name,
        alias=p.alias,
        score=p.score,
        target=rules.target_label(p.score),
        rounds=[
            RoundDTO(darts=[_dart_to_dto(d) for d in r.darts], total=r.total, timestamp=r.timestamp)
            for r in p.rounds
        ],
        darts_thrown=p.stats.darts_thrown,
        highest_round=p.stats.highest_round,
    )


def _visit_to_dto(v: VisitResult) -> VisitResultDTO:
    return VisitResultDTO(
        player_index=v.player_index,
        darts=[_dart_to_dto(d) for d in v.round.darts],
        total=v.total,
        outcome=v.outcome.value,
        score_before=v.score_before,
        score_after=v.score_after,
    )


def _checkout_for(state: MatchState, rules: RuleSet) -> CheckoutSuggestionDTO | None:
    if state.is_over or not rules.is_double_out:
        return None
    suggestion = suggest_checkout(state.current_player.score)
    if suggestion is None:
        return None
    return CheckoutSuggestionDTO(
        score=suggestion.score,
        path=list(suggestion.path),
        description=suggestion.description,
        difficulty=suggestion.difficulty,
    )


def _achievement_to_dto(a: Achievement, unlocked: frozenset[str]) -> AchievementDTO:
    return AchievementDTO(
        id=a.id,
        name=a.name,
        description=a.description,
        rarity=a.rarity.value,
        celebration_message=a.celebration_message,
        unlocked=a.id in unlocked,
    )


def _state_to_dto(s: MatchState) -> GameStateDTO:
    rules = host.match().rules
    toast = host.toast()
    return GameStateDTO(
        mode=s.mode,
        mode_label=s.mode.label,
        strict_double_out=s.strict_double_out,
        players=[_player_to_dto(i, p, rules) for i, p in enumerate(s.players)],
        current_player_index=s.current_player_index,
        current_darts=[_dart_to_dto(d) for d in s.current_darts],
        current_round_total=s.current_round_total,
        winner=s.winner,
        last_message=s.last_result.message if s.last_result is not None else None,
        history=[_visit_to_dto(v) for v in s.history],
        checkout=_checkout_for(s, rules),
        narration=list(host.narrations)[-5:],
        turn_ready_in=host.turn_ready_in(),
        toast=(
            ToastDTO(player_index=toast.player_index, achievement=_achievement_to_dto(toast.achievement, host.unlocked))
            if toast is not None
            else None
        ),
        notice=host.notice(),
    )


def _current_state() -> MatchState:
    try:
        return host.match().state()
    except NoActiveMatchError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


def _apply(action) -> GameStateDTO:
    """
    Run a host action and map engine errors onto HTTP status codes.
    """
    try:
        action()
    except NoActiveMatchError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (MatchOverError, RoundInProgressError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (InvalidDartError, ValueError, IndexError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _state_to_dto(_current_state())


@app.get("/game", response_model=GameStateDTO)
def get_game_state() -> GameStateDTO:
    return _state_to_dto(_current_state())


@app.post("/game/new", response_model=GameStateDTO)
def new_game(req: NewGameRequest) -> GameStateDTO:
    try:
        match = host.start_match(
            req.mode,
            req.players,
            aliases=req.aliases,
            strict_double_out=req.strict_double_out,
            resume=req.resume,
        )
    except SnapshotMismatchError as e:
        logger.warning("refusing to resume: %s", e)
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _state_to_dto(match.state())


@app.post("/game/exit")
def exit_game() -> dict:
    host.exit_match()
    return {"ok": True}


@app.post("/game/dart", response_model=GameStateDTO)
def add_dart(req: DartRequest) -> GameStateDTO:
    if req.dart is not None:
        try:
            dart = _dto_to_dart(req.dart)
        except InvalidDartError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
    elif req.text is not None:
        parsed = parse_dart(req.text)
        if parsed is None:
            raise HTTPException(status_code=422, detail=f"could not understand {req.text!r}")
        dart = parsed
    else:
        raise HTTPException(status_code=422, detail="provide either dart or text")
    return _apply(lambda: host.add_dart(dart))


@app.post("/game/undo", response_model=GameStateDTO)
def undo_last_dart() -> GameStateDTO:
    return _apply(host.undo_last_dart)


@app.post("/game/complete", response_model=GameStateDTO)
def complete_round() -> GameStateDTO:
    return _apply(host.complete_round_early)


@app.post("/game/visit", response_model=GameStateDTO)
def submit_visit(req: VisitRequest) -> GameStateDTO:
    if len(req.darts) > 3:
        raise HTTPException(status_code=422, detail="a visit may include at most 3 darts")
    try:
        darts = [_dto_to_dart(d) for d in req.darts]
    except InvalidDartError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _apply(lambda: host.submit_visit(darts))


@app.post("/game/winner", response_model=GameStateDTO)
def declare_winner(req: WinnerRequest) -> GameStateDTO:
    return _apply(lambda: host.declare_winner(req.player_index))


@app.get("/game/checkout", response_model=CheckoutResponseDTO)
def checkout_suggestions(remaining: int) -> CheckoutResponseDTO:
    suggestion = suggest_checkout(remaining)
    return CheckoutResponseDTO(
        remaining=remaining,
        suggestion=(
            CheckoutSuggestionDTO(
                score=suggestion.score,
                path=list(suggestion.path),
                description=suggestion.description,
                difficulty=suggestion.difficulty,
            )
            if suggestion is not None
            else None
        ),
        advice=checkout_advice(remaining),
        alternatives=[[dart_label(d) for d in route] for route in checkout_routes(remaining, limit=6)],
    )


def _player_stats_to_dto(p: PlayerStats) -> PlayerStatsDTO:
    return PlayerStatsDTO(
        player_index=p.player_index,
        name=p.name,
        visits=p.visits,
        darts_thrown=p.darts_thrown,
        scored_points=p.scored_points,
        busts=p.busts,
        checkouts=p.checkouts,
        checkout_attempts=p.checkout_attempts,
        checkout_percentage=p.checkout_percentage,
        best_checkout=p.best_checkout,
        highest_visit=p.highest_visit,
        count_180=p.count_180,
        count_140_plus=p.count_140_plus,
        count_100_plus=p.count_100_plus,
        three_dart_average=p.three_dart_average,
        first_nine_average=p.first_nine_average,
    )


@app.get("/game/stats", response_model=MatchStatsDTO)
def match_stats() -> MatchStatsDTO:
    stats: MatchStats = compute_match_stats(_current_state())
    leader = stats.leader()
    return MatchStatsDTO(
        players=[_player_stats_to_dto(p) for p in stats.players],
        leader_index=leader.player_index if leader is not None else None,
    )


@app.get("/achievements", response_model=list[AchievementDTO])
def list_achievements() -> list[AchievementDTO]:
    unlocked = host.unlocked
    return [_achievement_to_dto(a, unlocked) for a in ACHIEVEMENTS]
