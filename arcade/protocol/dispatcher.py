"""
Protocol Dispatcher
===================

Purpose
-------
Session boundary between game clients and the game services. Takes one raw
request envelope, routes it by message type to the service that owns it and
returns one raw response envelope.

Responsibilities
----------------
- Decode the envelope and the request payload
- Call the matching service operation inside a `LogContext`
- Convert domain exceptions to `ErrorResp{code=status_code}`
- Track request metrics per message type

Non-Responsibilities
--------------------
- Socket handling and framing (the transport hands over whole envelopes)
- Business rules (owned by the services)

Error Mapping
-------------
- unknown message type          -> ErrorResp(400, "Unknown message type")
- empty or undecodable payload  -> ErrorResp(400, ...)
- ArcadeDomainException         -> ErrorResp(exc.status_code, exc.message)
- anything else                 -> ErrorResp(500, "Internal server error"),
                                   logged with traceback

Services are optional: a process that serves only the gacha machine passes
`gacha_service` alone and every other request type is answered as unknown.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Type

from arcade.core.logging.logger import LogContext, get_logger
from arcade.modules.shared.exceptions import (
    ArcadeDomainException,
    ErrorSeverity,
    NotFoundError,
)
from arcade.protocol.envelope import (
    AddTouchedItemRecordReq,
    AddTouchedItemRecordResp,
    ClawResult,
    ErrorResp,
    GetLeaderboardReq,
    GetLeaderboardResp,
    GetMachineInfoWsReq,
    GetMachineInfoWsResp,
    GetMoleWeightReq,
    GetMoleWeightResp,
    GetPlayerInfoWsReq,
    GetPlayerInfoWsResp,
    GetPullResultWsReq,
    GetPullResultWsResp,
    LeaderboardPlayer,
    MachineItem,
    Message,
    MessageType,
    MoleWeightEntry,
    ProtocolError,
    SpawnItemReq,
    SpawnItemResp,
    StartClawGameReq,
    StartClawGameResp,
    decode_envelope,
)

if TYPE_CHECKING:
    from arcade.modules.leaderboard.service import LeaderboardService
    from arcade.modules.session.claw_service import ClawSessionService
    from arcade.modules.session.gacha_service import GachaSessionService
    from arcade.modules.whackamole.service import WhackAMoleService

logger = get_logger(__name__)

Handler = Callable[[Any], Awaitable[Message]]

DEFAULT_LEADERBOARD_LIMIT = 100


class ProtocolDispatcher:
    """
    Routes request envelopes to the game services.

    Usage:
        dispatcher = ProtocolDispatcher(claw_service=claw, gacha_service=gacha)
        response = await dispatcher.handle(raw_request)
    """

    def __init__(
        self,
        claw_service: Optional[ClawSessionService] = None,
        gacha_service: Optional[GachaSessionService] = None,
        leaderboard_service: Optional[LeaderboardService] = None,
        whackamole_service: Optional[WhackAMoleService] = None,
    ) -> None:
        self._claw = claw_service
        self._gacha = gacha_service
        self._leaderboard = leaderboard_service
        self._whackamole = whackamole_service

        self._routes: Dict[MessageType, tuple[Type[Message], Handler]] = {}
        # Player snapshots are served by whichever session service is present.
        self._player_source = claw_service or gacha_service

        if claw_service is not None:
            self._register(StartClawGameReq, self._start_claw_game)
            self._register(AddTouchedItemRecordReq, self._add_touched_item_record)
            self._register(SpawnItemReq, self._spawn_item)
        if gacha_service is not None:
            self._register(GetPullResultWsReq, self._get_pull_result)
            self._register(GetMachineInfoWsReq, self._get_machine_info)
        if self._player_source is not None:
            self._register(GetPlayerInfoWsReq, self._get_player_info)
        if whackamole_service is not None:
            self._register(GetMoleWeightReq, self._get_mole_weight)
        if leaderboard_service is not None:
            self._register(GetLeaderboardReq, self._get_leaderboard)

        self._metrics: Dict[str, int] = {
            "requests": 0,
            "unknown_type": 0,
            "bad_payload": 0,
            "domain_errors": 0,
            "internal_errors": 0,
        }
        self._by_type: Dict[str, int] = {}

    def _register(self, request: Type[Message], handler: Handler) -> None:
        self._routes[request.MESSAGE_TYPE] = (request, handler)

    @property
    def supported_types(self) -> tuple[MessageType, ...]:
        return tuple(sorted(self._routes))

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    async def handle(self, data: bytes) -> bytes:
        """Handle one raw request envelope and return the response envelope."""
        return (await self.dispatch(data)).to_envelope()

    async def dispatch(self, data: bytes) -> Message:
        """Like `handle`, returning the response record instead of bytes."""
        self._metrics["requests"] += 1

        try:
            raw_type, payload = decode_envelope(data)
        except ProtocolError as exc:
            self._metrics["bad_payload"] += 1
            logger.info("Malformed request envelope", extra={"error": str(exc)})
            return ErrorResp(code=400, message="Malformed envelope")

        route = self._route_for(raw_type)
        if route is None:
            self._metrics["unknown_type"] += 1
            logger.info("Unknown message type", extra={"message_type": raw_type})
            return ErrorResp(code=400, message="Unknown message type")

        request_cls, handler = route
        type_name = request_cls.__name__
        self._by_type[type_name] = self._by_type.get(type_name, 0) + 1

        if not payload and request_cls.FIELDS:
            self._metrics["bad_payload"] += 1
            return ErrorResp(code=400, message="Empty payload")

        try:
            request = request_cls.decode(payload)
        except ProtocolError as exc:
            self._metrics["bad_payload"] += 1
            logger.info(
                "Undecodable request payload",
                extra={"message_type": type_name, "error": str(exc)},
            )
            return ErrorResp(code=400, message=f"Invalid payload: {exc}")

        start_time = time.perf_counter()
        async with LogContext(operation=type_name):
            try:
                response = await handler(request)
            except ArcadeDomainException as exc:
                self._metrics["domain_errors"] += 1
                self._log_domain_error(type_name, exc)
                return ErrorResp(code=exc.status_code, message=exc.message)
            except Exception as exc:
                self._metrics["internal_errors"] += 1
                logger.error(
                    "Unhandled error in request handler",
                    extra={
                        "message_type": type_name,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                    exc_info=True,
                )
                return ErrorResp(code=500, message="Internal server error")

            logger.debug(
                "Request handled",
                extra={
                    "message_type": type_name,
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                },
            )
            return response

    def _route_for(self, raw_type: int) -> Optional[tuple[Type[Message], Handler]]:
        try:
            return self._routes.get(MessageType(raw_type))
        except ValueError:
            return None

    @staticmethod
    def _log_domain_error(type_name: str, exc: ArcadeDomainException) -> None:
        extra = {
            "message_type": type_name,
            "error_code": exc.error_code,
            "error": exc.message,
            "details": exc.details,
            "status_code": exc.status_code,
        }
        if exc.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
            logger.error("Domain error in request handler", extra=extra)
        elif exc.severity is ErrorSeverity.WARNING:
            logger.warning("Domain error in request handler", extra=extra)
        else:
            logger.info("Request rejected", extra=extra)

    def get_metrics(self) -> Dict[str, Any]:
        return {**self._metrics, "by_type": dict(self._by_type)}

    # ========================================================================
    # CLAW
    # ========================================================================

    async def _start_claw_game(self, req: StartClawGameReq) -> Message:
        assert self._claw is not None
        started = await self._claw.start_game(req.player_id, req.machine_id)
        return StartClawGameResp(
            game_id=started.game_id,
            results=tuple(
                ClawResult(item_id=v.item_id, catched=v.success) for v in started.verdicts
            ),
        )

    async def _add_touched_item_record(self, req: AddTouchedItemRecordReq) -> Message:
        assert self._claw is not None
        record = await self._claw.add_touched_item_record(
            req.game_id, req.item_id, req.catched
        )
        return AddTouchedItemRecordResp(
            game_id=record.game_id, item_id=record.item_id, catched=record.catched
        )

    async def _spawn_item(self, req: SpawnItemReq) -> Message:
        assert self._claw is not None
        items = await self._claw.spawn_items(req.machine_id)
        return SpawnItemResp(items=tuple(items))

    # ========================================================================
    # PLAYER / GACHA
    # ========================================================================

    async def _get_player_info(self, req: GetPlayerInfoWsReq) -> Message:
        assert self._player_source is not None
        snapshot = await self._player_source.get_player_info(req.player_id)
        return GetPlayerInfoWsResp(
            player_id=snapshot.player_id,
            username=snapshot.player.username,
            coin=snapshot.coin,
            diamond=snapshot.diamond,
        )

    async def _get_pull_result(self, req: GetPullResultWsReq) -> Message:
        assert self._gacha is not None
        result = await self._gacha.pull(req.player_id, req.machine_id, req.pull_count)
        return GetPullResultWsResp(item_ids=result.item_ids)

    async def _get_machine_info(self, req: GetMachineInfoWsReq) -> Message:
        assert self._gacha is not None
        machine = await self._gacha.get_machine_info(req.machine_id)
        return GetMachineInfoWsResp(
            machine_id=machine.id,
            name=machine.name,
            price=machine.price_single,
            price_times_ten=machine.price_times_ten,
            super_rare_pity=machine.super_rare_pity,
            ultra_rare_pity=machine.ultra_rare_pity,
            items=tuple(
                MachineItem(
                    item_id=item.id,
                    name=item.name,
                    rarity=item.rarity.value,
                    pull_weight=item.pull_weight,
                )
                for item in machine.items
            ),
        )

    # ========================================================================
    # WHACK-A-MOLE
    # ========================================================================

    async def _get_mole_weight(self, req: GetMoleWeightReq) -> Message:
        assert self._whackamole is not None
        weights = await self._whackamole.get_mole_weights()
        return GetMoleWeightResp(
            moles=tuple(
                MoleWeightEntry(mole_type=w.mole_type, weight=w.weight) for w in weights
            )
        )

    async def _get_leaderboard(self, req: GetLeaderboardReq) -> Message:
        assert self._leaderboard is not None
        rows = await self._leaderboard.get_leaderboard(
            req.limit or DEFAULT_LEADERBOARD_LIMIT
        )

        your_rank, your_score = 0, 0
        if req.player_id:
            try:
                mine = await self._leaderboard.get_player_rank(req.player_id)
            except NotFoundError:
                logger.debug(
                    "Player has no leaderboard row",
                    extra={"player_id": req.player_id},
                )
            else:
                your_rank, your_score = mine.rank, mine.score

        return GetLeaderboardResp(
            top_players=tuple(
                LeaderboardPlayer(
                    rank=row.rank,
                    player_id=row.player_id,
                    username=row.username,
                    score=row.score,
                )
                for row in rows
            ),
            your_rank=your_rank,
            your_score=your_score,
        )
