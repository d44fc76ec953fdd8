"""Swap webhook ingest feeding the volume cache."""

from typing import Any, Dict, Optional, Set, Union
import logging

from ..cache.dedup import DedupCache
from ..cache.volume import VolumeCache
from ..events.extractor import TokenExtractor, decode_payload, get_field

logger = logging.getLogger(__name__)


class SwapIngestor:
    """Records the USD value of each new swap transaction against its token."""

    def __init__(
        self,
        volume_cache: VolumeCache,
        signature_dedup: Optional[DedupCache] = None,
        extractor: Optional[TokenExtractor] = None,
    ):
        self.volume_cache = volume_cache
        self.signature_dedup = signature_dedup or DedupCache(name="swap_signatures")
        self.extractor = extractor or TokenExtractor()

    async def handle_payload(self, raw: Union[bytes, str, list, dict]) -> Dict[str, int]:
        """Ingest a swap webhook body and return per-outcome counts."""
        transactions = decode_payload(raw)
        summary = {"processed": 0, "skipped_seen": 0, "skipped_missing": 0, "skipped_no_mint": 0}
        batch_seen: Set[str] = set()

        for tx in transactions:
            signature = get_field(tx, "signature", str)
            if not signature.present or not signature.value:
                logger.warning("Transaction missing signature, skipping")
                summary["skipped_missing"] += 1
                continue
            sig = signature.value

            if sig in batch_seen or not await self.signature_dedup.try_claim(sig):
                summary["skipped_seen"] += 1
                continue
            batch_seen.add(sig)

            if not await self._ingest(sig, tx):
                await self.signature_dedup.release(sig)
                summary["skipped_no_mint"] += 1
                continue

            summary["processed"] += 1

        logger.info(
            f"Swap batch complete: processed={summary['processed']} seen={summary['skipped_seen']} "
            f"missing={summary['skipped_missing']} no_mint={summary['skipped_no_mint']}"
        )
        return summary

    async def _ingest(self, signature: str, tx: Dict[str, Any]) -> bool:
        mint, found = self.extractor.extract(tx)
        if not found:
            logger.warning(f"Transaction {signature} has no relevant non-native mint, not cached")
            return False

        usd = get_field(tx, "usdValue", (int, float))
        usd_value = float(usd.value) if usd.present else 0.0
        if not usd.present:
            logger.debug(f"Transaction {signature} has no USD value, caching 0")

        total = await self.volume_cache.record_trade(mint, usd_value)
        logger.debug(f"Cached swap {signature} for {mint}: ${usd_value:.2f} (total ${total:.2f})")
        return True
