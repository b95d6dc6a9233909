"""
Anchor Service - best-effort on-chain anchoring of content hashes

The anchoring gateway is an external HTTP service exposing
`POST {ANCHOR_SERVICE_URL}/anchor` with `{fileId, version, fileHash}` and
answering `{txHash}`. Anchoring runs as a background task after the ledger
commit; its outcome never changes the result of an ingestion.
"""
import asyncio
from typing import Awaitable, Callable, Optional

import httpx
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logging import get_logger
from app.services.file_ledger_service import FileLedgerService

logger = get_logger("services.anchor")


class AnchorClient:
    """HTTP client for the anchoring gateway with bounded timeout and retries"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def anchor(self, file_id: str, version: str, content_hash: str) -> Optional[str]:
        """
        Anchor a content hash. Returns the transaction hash, or None once all
        attempts have failed.
        """
        if not self.enabled:
            return None

        payload = {"fileId": file_id, "version": version, "fileHash": content_hash}
        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(f"{self.base_url}/anchor", json=payload)
                    response.raise_for_status()
                    tx_hash = response.json().get("txHash")
                if not tx_hash:
                    raise ValueError("Anchoring response has no txHash")
                logger.info(f"File {file_id} anchored on-chain, tx {tx_hash}")
                return tx_hash
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Anchoring attempt {attempt}/{self.max_retries} for {file_id} failed: {str(e)}")
                if attempt < self.max_retries:
                    await self._sleep(self.backoff_seconds * (2 ** (attempt - 1)))

        logger.error(f"Anchoring gave up for {file_id}; file stays stored and retrievable")
        return None


async def anchor_and_record(
    client: AnchorClient,
    session_factory: sessionmaker,
    file_id: str,
    version: str,
    content_hash: str,
) -> Optional[str]:
    """Background task: anchor, then store the tx hash on the ledger record."""
    tx_hash = await client.anchor(file_id, version, content_hash)
    if not tx_hash:
        return None

    await run_in_threadpool(record_anchor_tx, session_factory, file_id, tx_hash)
    return tx_hash


def record_anchor_tx(session_factory: sessionmaker, file_id: str, tx_hash: str) -> None:
    """Blocking ledger write of an anchoring result, in its own session."""
    db: Session = session_factory()
    try:
        FileLedgerService(db).record_anchor(file_id, tx_hash)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record anchor tx for {file_id}: {str(e)}")
    finally:
        db.close()


_anchor_client: Optional[AnchorClient] = None


def get_anchor_client() -> AnchorClient:
    """FastAPI dependency returning the configured anchoring client"""
    global _anchor_client
    if _anchor_client is None:
        _anchor_client = AnchorClient(
            settings.ANCHOR_SERVICE_URL,
            timeout=settings.ANCHOR_TIMEOUT_SECONDS,
            max_retries=settings.ANCHOR_MAX_RETRIES,
            backoff_seconds=settings.ANCHOR_BACKOFF_SECONDS,
        )
    return _anchor_client


def get_session_factory() -> sessionmaker:
    """Session factory for work that outlives the request session"""
    return SessionLocal
