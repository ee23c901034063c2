from typing import Callable, List, Optional

from beldexlib.utils.console import print_error


def _noop(*args):
    pass


class EngineCallbacks:
    """
    Notifications from the engine to the host wallet.

    Each hook is a plain callable; pass only the ones the host cares about.
    Exceptions raised by a hook are logged and swallowed so a faulty UI
    handler cannot stall synchronization.
    """

    def __init__(self,
                 on_block_height_changed: Optional[Callable[[int], None]] = None,
                 on_balance_changed: Optional[Callable[[str, str], None]] = None,
                 on_addresses_checked: Optional[Callable[[float], None]] = None,
                 on_transactions_changed: Optional[Callable[[List], None]] = None):
        self.on_block_height_changed = on_block_height_changed or _noop
        self.on_balance_changed = on_balance_changed or _noop
        self.on_addresses_checked = on_addresses_checked or _noop
        self.on_transactions_changed = on_transactions_changed or _noop

    def emit(self, name: str, *args) -> None:
        callback = getattr(self, name)
        try:
            callback(*args)
        except Exception as e:
            print_error(f"⚠️  {name} callback error: {e}")
