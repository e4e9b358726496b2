from typing import Dict, Set

from ledgerlink.schemas.counterparties import BalanceState


class BalanceTracker:
    """
    Per-screen bookkeeping of which counterparty balances are loading/loaded.

    idle -> loading -> loaded on success, back to idle on failure. A loaded
    id stays loaded until `invalidate()` (company or date range change,
    pull-to-refresh) puts everything back to idle.
    """

    def __init__(self):
        self._loading: Set[str] = set()
        self._loaded: Set[str] = set()

    def state(self, counterparty_id: str) -> BalanceState:
        if counterparty_id in self._loaded:
            return BalanceState.LOADED
        if counterparty_id in self._loading:
            return BalanceState.LOADING
        return BalanceState.IDLE

    def has(self, counterparty_id: str) -> bool:
        return counterparty_id in self._loaded

    def is_loading(self, counterparty_id: str) -> bool:
        return counterparty_id in self._loading

    def mark_loading(self, counterparty_id: str) -> bool:
        """Claim the fetch for an id. False when it is already loading or loaded."""
        if counterparty_id in self._loading or counterparty_id in self._loaded:
            return False
        self._loading.add(counterparty_id)
        return True

    def mark_loaded(self, counterparty_id: str) -> None:
        self._loading.discard(counterparty_id)
        self._loaded.add(counterparty_id)

    def mark_failed(self, counterparty_id: str) -> None:
        self._loading.discard(counterparty_id)

    def invalidate(self) -> None:
        self._loading.clear()
        self._loaded.clear()

    def snapshot(self) -> Dict[str, BalanceState]:
        states = {cid: BalanceState.LOADING for cid in self._loading}
        states.update({cid: BalanceState.LOADED for cid in self._loaded})
        return states
