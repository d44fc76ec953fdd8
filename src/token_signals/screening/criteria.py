"""Screening rules applied to a token's market-data snapshot."""

from typing import Any, Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class CriteriaEngine:
    """
    Pass/fail screening for a single pair record.

    Evaluation order:
    1. Hard disqualifiers (zero liquidity, extreme buy/sell imbalance) stop evaluation.
    2. Range filters are all evaluated so every failing reason is reported.
    3. Optional activity filters run only when the range filters passed.

    Metadata (socials, images, links) never affects the outcome.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        defaults = self._default_config()
        if config:
            defaults.update(config)
        self.config = defaults
        logger.info(
            f"Criteria engine initialized (liquidity>={self.config['min_liquidity']:.0f}, "
            f"mc {self.config['min_market_cap']:.0f}-{self.config['max_market_cap']:.0f}, "
            f"advanced={self.config['advanced_filters']})"
        )

    def _default_config(self) -> Dict[str, Any]:
        return {
            # Range filters
            "min_liquidity": 30000.0,
            "min_market_cap": 50000.0,
            "max_market_cap": 300000.0,
            "min_volume_5m": 1000.0,
            "min_volume_1h": 10000.0,
            "min_txns_5m": 100,
            "min_txns_1h": 500,

            # Buy/sell imbalance
            "imbalance_threshold": 0.90,
            "imbalance_min_txns": 20,

            # Activity filters
            "advanced_filters": False,
            "stagnation_growth_factor": 1.1,
            "high_txn_threshold": 2000,
            "high_txn_growth_factor": 1.25,
            "moderate_txn_lower": 700,
            "moderate_txn_upper": 1999,
            "moderate_txn_growth_factor": 1.35,
            "vol_liq_ratio_threshold": 6.0,
            "vol_liq_mc_factor": 1.5,
        }

    def evaluate(self, metrics: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Screen a metrics mapping.

        Expected keys: liquidity_usd, market_cap, volume_5m, volume_1h, txns_5m,
        txns_1h, txns_5m_buys, txns_5m_sells, txns_1h_buys, txns_1h_sells.
        Missing keys count as zero.

        Returns:
            Tuple of (is_valid, fail_reasons)
        """
        liquidity = float(metrics.get("liquidity_usd") or 0.0)
        market_cap = float(metrics.get("market_cap") or 0.0)
        volume_5m = float(metrics.get("volume_5m") or 0.0)
        volume_1h = float(metrics.get("volume_1h") or 0.0)
        txns_5m = int(metrics.get("txns_5m") or 0)
        txns_1h = int(metrics.get("txns_1h") or 0)

        reasons: List[str] = []

        if liquidity <= 0:
            reasons.append("Liquidity is zero or negative")
            return False, reasons

        for window in ("5m", "1h"):
            imbalance = self._check_imbalance(
                window,
                int(metrics.get(f"txns_{window}_buys") or 0),
                int(metrics.get(f"txns_{window}_sells") or 0),
            )
            if imbalance:
                reasons.append(imbalance)
                return False, reasons

        cfg = self.config
        if liquidity < cfg["min_liquidity"]:
            reasons.append(f"Liquidity {liquidity:.0f} < {cfg['min_liquidity']:.0f}")
        if market_cap < cfg["min_market_cap"]:
            reasons.append(f"MarketCap {market_cap:.0f} < {cfg['min_market_cap']:.0f}")
        if market_cap > cfg["max_market_cap"]:
            reasons.append(f"MarketCap {market_cap:.0f} > {cfg['max_market_cap']:.0f}")
        if volume_5m < cfg["min_volume_5m"]:
            reasons.append(f"Vol(5m) {volume_5m:.0f} < {cfg['min_volume_5m']:.0f}")
        if volume_1h < cfg["min_volume_1h"]:
            reasons.append(f"Vol(1h) {volume_1h:.0f} < {cfg['min_volume_1h']:.0f}")
        if txns_5m < cfg["min_txns_5m"]:
            reasons.append(f"Tx(5m) {txns_5m} < {cfg['min_txns_5m']}")
        if txns_1h < cfg["min_txns_1h"]:
            reasons.append(f"Tx(1h) {txns_1h} < {cfg['min_txns_1h']}")

        if reasons:
            return False, reasons

        if cfg["advanced_filters"]:
            reason = self._check_activity(liquidity, market_cap, volume_5m, volume_1h, txns_5m, txns_1h)
            if reason:
                reasons.append(reason)
                return False, reasons

        return True, reasons

    def _check_imbalance(self, window: str, buys: int, sells: int) -> Optional[str]:
        total = buys + sells
        if total < self.config["imbalance_min_txns"] or total <= 0:
            return None
        dominant = max(buys, sells)
        share = dominant / total
        if share > self.config["imbalance_threshold"]:
            side = "buys" if buys >= sells else "sells"
            return f"Buy/sell imbalance ({window}): {share:.0%} {side} of {total} txns"
        return None

    def _check_activity(
        self,
        liquidity: float,
        market_cap: float,
        volume_5m: float,
        volume_1h: float,
        txns_5m: int,
        txns_1h: int,
    ) -> Optional[str]:
        """Activity-shape filters; returns the first failing reason."""
        cfg = self.config

        if txns_5m > 0 and txns_5m == txns_1h:
            return "5m TXNs and 1h TXNs are identical and > 0"
        if volume_5m > 0 and volume_5m == volume_1h:
            return "5m Volume and 1h Volume are identical and > 0"

        growth = cfg["stagnation_growth_factor"]
        if volume_1h < volume_5m * growth and txns_1h < txns_5m * growth:
            if not (volume_5m == 0 and txns_5m == 0):
                return f"Stagnation: Vol(1h)<Vol(5m)*{growth:.1f} AND Tx(1h)<Tx(5m)*{growth:.1f}"

        if txns_5m > cfg["high_txn_threshold"] and txns_1h < txns_5m * cfg["high_txn_growth_factor"]:
            return (
                f"High initial TXN with low growth: Tx(5m)>{cfg['high_txn_threshold']} "
                f"AND Tx(1h)<Tx(5m)*{cfg['high_txn_growth_factor']:.2f}"
            )

        if (
            cfg["moderate_txn_lower"] <= txns_5m <= cfg["moderate_txn_upper"]
            and txns_1h < txns_5m * cfg["moderate_txn_growth_factor"]
        ):
            return (
                f"Moderate initial TXN with very low growth: Tx(5m) in "
                f"[{cfg['moderate_txn_lower']},{cfg['moderate_txn_upper']}] "
                f"AND Tx(1h)<Tx(5m)*{cfg['moderate_txn_growth_factor']:.2f}"
            )

        ratio = volume_5m / liquidity
        mc_ceiling = cfg["min_market_cap"] * cfg["vol_liq_mc_factor"]
        if ratio > cfg["vol_liq_ratio_threshold"] and market_cap < mc_ceiling:
            return f"High 5m Vol/Liq ratio ({ratio:.2f}x) with low MC ({market_cap:.0f}, threshold < {mc_ceiling:.0f})"

        return None
