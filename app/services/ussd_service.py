# app/services/ussd_service.py
"""
USSD callback dispatcher.

One call to process() per gateway callback:
  1. serialize on the session id
  2. load the session (or start a fresh one for unknown, expired or ended ids)
  3. replay the stored response for duplicate or out-of-order deliveries,
     including a retry of the callback that ended the session
  4. decode the newest keystroke and run the menu handler on a working copy
  5. persist the result with compare-and-swap, end the session on END
Whatever goes wrong, the caller gets a CON/END string back.
"""
from __future__ import annotations

import logging
from typing import Optional

from app.core.config import Settings, settings as default_settings
from app.core.errors import ErrorSeverity, SessionConflict, log_error
from app.core.logging import mask_phone
from app.schemas.ussd import UssdRequest
from app.services.input_decoder import DELIMITER, HOME_KEY, current_input
from app.services.menus import account, auth, bet_placement, betting, main
from app.services.menus.router import MenuRouter
from app.services.navigation import Turn
from app.services.platform import PlatformServices
from app.services.response_encoder import apology, encode
from app.services.session_store import KeyedLock, SessionStore, UssdSession

logger = logging.getLogger(__name__)

MAX_CONFLICT_RETRIES = 1


def build_menu_router() -> MenuRouter:
    root = MenuRouter()
    for module in (main, auth, account, betting, bet_placement):
        root.include_router(module.router)
    return root


def is_replay(text: str, last_text: Optional[str]) -> bool:
    """Same cumulative text as last time, or an older turn's text."""
    if last_text is None:
        return False
    if text == last_text:
        return True
    if text == "":
        return last_text != ""
    return last_text.startswith(text + DELIMITER) and not text.endswith(DELIMITER)


class UssdService:
    def __init__(self, store: SessionStore, services: PlatformServices,
                 settings: Optional[Settings] = None, router: Optional[MenuRouter] = None):
        self.store = store
        self.services = services
        self.settings = settings or default_settings
        self.router = router or build_menu_router()
        self._locks = KeyedLock()

    async def process(self, request: UssdRequest) -> str:
        """Handle one gateway callback; never raises."""
        try:
            async with self._locks.hold(request.session_id):
                return await self._process_with_retry(request)
        except Exception as e:
            log_error(e, {
                "component": "ussd_dispatch",
                "session_id": request.session_id[:8],
                "phone": mask_phone(request.phone_number),
                "text_length": len(request.text or ""),
            }, ErrorSeverity.HIGH)
            return apology()

    async def _process_with_retry(self, request: UssdRequest) -> str:
        attempt = 0
        while True:
            try:
                return await self._apply(request)
            except SessionConflict as e:
                if attempt >= MAX_CONFLICT_RETRIES:
                    raise
                attempt += 1
                logger.info("Session %s changed underneath us, reloading (%s)", request.session_id[:8], e)

    async def _load(self, request: UssdRequest) -> tuple[UssdSession, bool]:
        session = await self.store.get(request.session_id, include_inactive=True)
        if session is not None and session.is_active:
            return session, False
        if session is not None and session.last_text == (request.text or ""):
            # Retry of the callback that ended this session
            return session, False
        session = await self.store.create(
            request.session_id,
            request.phone_number,
            service_code=request.service_code,
            network_code=request.network_code,
        )
        return session, True

    async def _apply(self, request: UssdRequest) -> str:
        text = request.text or ""
        session, fresh = await self._load(request)

        if not fresh and is_replay(text, session.last_text):
            logger.info("Replaying turn %d for session %s", session.turn, request.session_id[:8])
            return session.last_response or apology()

        # A fresh session starts at the main menu whatever was typed
        user_input = "" if fresh else current_input(text)
        turn = Turn(session, user_input, self.services, self.settings, text=text)

        if user_input == HOME_KEY:
            turn.go_home()
            reply = await self.router.render(turn)
        else:
            reply = await self.router.dispatch(turn)

        turn.clear_abandoned_flows()
        response = encode(reply)

        patch = turn.to_patch()
        patch.update(turn=session.turn + 1, last_text=text, last_response=response)
        saved = await self.store.update(request.session_id, patch, expected_version=session.version)
        if saved is None:
            logger.warning("Session %s expired mid-callback", request.session_id[:8])

        if reply.end:
            await self.store.end(request.session_id)
        logger.debug("Session %s turn %d -> %s/%s", request.session_id[:8], session.turn + 1,
                     turn.menu, turn.step)
        return response

    async def close(self) -> None:
        await self.services.close()
        await self.store.close()
