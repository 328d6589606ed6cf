"""Sizing engine: the single owner of sizing state.

The engine holds the configuration, streak state, compound state and the
last regime signal. Trade outcomes, regime signals and configuration
edits go through it; observers subscribe and receive immutable
snapshots. Given the same state tuple every observer sees the same
recommendation.
"""

import logging
import sqlite3
import threading
from collections import deque
from dataclasses import replace
from typing import Callable, Deque, Iterable, List, Optional, Set

from .config import Configuration, DEFAULT_CONFIG
from .fees import compute_profit_breakdown
from .models import (
    CompoundState,
    EngineSnapshot,
    ProfitBreakdown,
    ProfitParams,
    RegimeSignal,
    RiskAdjustedRecommendation,
    RiskMetrics,
    SizingMode,
    SizingRecommendation,
    StreakState,
    TradeOutcome,
)
from .persistence import ConfigStore
from .sizing import streak as streak_rules
from .sizing.combined import CombinedSizer
from .sizing.compounder import apply_profit
from .sizing.risk_adjusted import RiskAdjustedSizer

logger = logging.getLogger(__name__)

Observer = Callable[[EngineSnapshot], None]

# Number of most recent trade ids remembered for duplicate detection.
TRADE_ID_WINDOW = 10_000


class SizingEngine:
    """Authoritative state owner for adaptive position sizing.

    on_trade_closed() is the only entry point that mutates streak and
    compound state. Outcomes carrying a trade_id are applied once even if
    delivered again, as long as the id is among the last trade_id_window
    ids seen.
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        store: Optional[ConfigStore] = None,
        user_id: Optional[str] = None,
        streak: Optional[StreakState] = None,
        compound: Optional[CompoundState] = None,
        trade_id_window: int = TRADE_ID_WINDOW,
    ):
        """Initialize sizing engine.

        Args:
            config: Sizing configuration. Uses defaults if None.
            store: Persistence for configuration and compound state
            user_id: Owner of the persisted records
            streak: Starting streak state
            compound: Starting compound state
            trade_id_window: How many recent trade ids to remember for
                duplicate detection
        """
        config = config or DEFAULT_CONFIG
        config.validate()

        self._lock = threading.RLock()
        self._config = config
        self._store = store
        self._user_id = user_id
        self._streak = streak or StreakState()
        self._compound = compound or CompoundState.initial(config.base_position_size)
        self._regime: Optional[RegimeSignal] = None
        self._seen_trade_ids: Set[str] = set()
        self._trade_id_order: Deque[str] = deque()
        self._trade_id_window = max(1, trade_id_window)
        self._trades_applied = 0
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> Configuration:
        return self._config

    def update_config(self, config: Configuration) -> Configuration:
        """Atomically replace the configuration.

        Raises:
            ConfigValidationError: If the new record is invalid. The old
                configuration stays in place.
        """
        config.validate()
        with self._lock:
            previous = self._config
            self._config = config
            if config.base_position_size != previous.base_position_size:
                self._rebase_compound(config.base_position_size)
            snapshot = self.snapshot()
        logger.info("Sizing configuration replaced")
        self._publish(snapshot)
        return config

    def _rebase_compound(self, base_size: float) -> None:
        if self._compound.total_compounded == 0 and self._compound.total_profit_seen == 0:
            self._compound = CompoundState.initial(base_size)
        else:
            logger.warning(
                f"Base size changed to ${base_size:.2f} with compounding in progress; "
                f"keeping compounded size ${self._compound.current_size:.2f} until reset"
            )

    def load_config(self, user_id: str) -> Configuration:
        """Load a user's configuration and compound state from the store.

        Missing records or store failures fall back to the current
        configuration.
        """
        if self._store is None:
            return self._config

        try:
            config = self._store.load_config(user_id)
            compound = self._store.load_compound_state(user_id)
        except sqlite3.Error as e:
            logger.error(f"❌ Failed to load sizing state for {user_id}: {e}")
            return self._config

        with self._lock:
            self._user_id = user_id
            if compound is not None:
                self._compound = compound
        if config is None:
            logger.info(f"No stored configuration for {user_id}, using current")
            return self._config
        return self.update_config(config)

    def save_config(self, user_id: str, config: Configuration | dict) -> Configuration:
        """Persist a full configuration record and make it current.

        Raises:
            ConfigValidationError: If the record is partial or invalid
        """
        if self._store is None:
            if isinstance(config, dict):
                config = Configuration.from_dict(config, strict=True)
            return self.update_config(config)
        stored = self._store.save_config(user_id, config)
        return self.update_config(stored)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_trade_closed(self, outcome: TradeOutcome) -> Optional[EngineSnapshot]:
        """Apply a closed trade to streak and compound state.

        Returns:
            The published snapshot, or None if the outcome was a duplicate
        """
        with self._lock:
            if outcome.trade_id is not None:
                if outcome.trade_id in self._seen_trade_ids:
                    logger.debug(f"Ignoring duplicate trade outcome {outcome.trade_id}")
                    return None
                self._remember_trade_id(outcome.trade_id)

            self._streak = streak_rules.record_outcome(self._streak, outcome.is_win, self._config)
            compound = apply_profit(self._compound, outcome.profit, self._config.compound)
            compounded = compound is not self._compound
            self._compound = compound
            self._trades_applied += 1
            snapshot = self.snapshot()

        if compounded:
            self._persist_compound()
        return self._publish(snapshot)

    def _remember_trade_id(self, trade_id: str) -> None:
        self._seen_trade_ids.add(trade_id)
        self._trade_id_order.append(trade_id)
        if len(self._trade_id_order) > self._trade_id_window:
            self._seen_trade_ids.discard(self._trade_id_order.popleft())

    def on_regime_signal(self, signal: Optional[RegimeSignal]) -> EngineSnapshot:
        """Record the latest regime signal. None keeps the last known one."""
        with self._lock:
            if signal is not None:
                self._regime = signal
            snapshot = self.snapshot()
        return self._publish(snapshot)

    def tick(self) -> EngineSnapshot:
        """Evaluation tick: decay the streak multiplier when no streak runs."""
        with self._lock:
            self._streak = streak_rules.decay(self._streak)
            snapshot = self.snapshot()
        return self._publish(snapshot)

    def on_streak_break(self) -> EngineSnapshot:
        """Clear streak counters (e.g. after a trading pause)."""
        with self._lock:
            self._streak = streak_rules.break_streak(self._streak)
            snapshot = self.snapshot()
        return self._publish(snapshot)

    def set_compounding(self, enabled: bool) -> Configuration:
        """Toggle compounding. Disabling keeps the compounded size."""
        config = replace(self._config, compound=replace(self._config.compound, enabled=enabled))
        return self.update_config(config)

    def reset_compound(self) -> EngineSnapshot:
        """Restore the compounded size to the configured base size."""
        with self._lock:
            self._compound = CompoundState.initial(self._config.base_position_size)
            snapshot = self.snapshot()
        logger.info(f"Compounding reset to ${self._config.base_position_size:.2f}")
        self._persist_compound()
        return self._publish(snapshot)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_recommended_size(self) -> SizingRecommendation:
        """Recommended size for the next trade (streak x regime path)."""
        with self._lock:
            config, streak, compound, regime = self._config, self._streak, self._compound, self._regime
        return CombinedSizer(config).recommend(streak, regime, base_size=compound.current_size)

    def get_risk_adjusted_size(
        self,
        metrics: RiskMetrics,
        mode: SizingMode = SizingMode.SPOT,
    ) -> RiskAdjustedRecommendation:
        """Recommended size on the risk-adjusted path.

        Size bounds are scaled by the compound multiplier.
        """
        with self._lock:
            config, compound = self._config, self._compound
        multiplier = compound.current_multiplier
        return RiskAdjustedSizer(config).recommend(
            metrics,
            mode=mode,
            min_size=config.risk.min_size * multiplier,
            max_size=config.risk.max_size * multiplier,
        )

    def compute_profit_breakdown(self, params: ProfitParams) -> ProfitBreakdown:
        """Expected profit after fees using the configured fee schedule."""
        return compute_profit_breakdown(
            size=params.size,
            entry_price=params.entry_price,
            expected_move=params.expected_move,
            direction=params.direction,
            fee_schedule=self._config.fee_schedule,
            leverage=params.leverage,
        )

    @property
    def streak(self) -> StreakState:
        return self._streak

    @property
    def compound(self) -> CompoundState:
        return self._compound

    @property
    def regime(self) -> Optional[RegimeSignal]:
        return self._regime

    def snapshot(self) -> EngineSnapshot:
        """Immutable view of the current state and recommendation."""
        with self._lock:
            return EngineSnapshot(
                recommendation=self.get_recommended_size(),
                streak=self._streak,
                compound=self._compound,
                regime=self._regime,
                trades_applied=self._trades_applied,
            )

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer for published snapshots.

        Returns:
            Function that removes the observer
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _publish(self, snapshot: EngineSnapshot) -> EngineSnapshot:
        """Deliver a snapshot taken inside the mutating lock section."""
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snapshot)
            except Exception as e:
                logger.error(f"Sizing observer {observer!r} failed: {e}")
        return snapshot

    def _persist_compound(self) -> None:
        if self._store is None or self._user_id is None:
            return
        try:
            self._store.save_compound_state(self._user_id, self._compound)
        except sqlite3.Error as e:
            logger.error(f"❌ Failed to persist compound state for {self._user_id}: {e}")

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    @classmethod
    def replay(
        cls,
        outcomes: Iterable[TradeOutcome],
        config: Optional[Configuration] = None,
        regime: Optional[RegimeSignal] = None,
    ) -> "SizingEngine":
        """Rebuild an engine by folding a trade-outcome stream.

        Args:
            outcomes: Closed trades in the order they happened
            config: Sizing configuration. Uses defaults if None.
            regime: Regime signal to apply after the replay

        Returns:
            Engine whose streak and compound state match the stream
        """
        engine = cls(config=config)
        for outcome in outcomes:
            engine.on_trade_closed(outcome)
        if regime is not None:
            engine.on_regime_signal(regime)
        return engine
