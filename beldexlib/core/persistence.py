"""Write-behind persistence of the wallet snapshot."""

from beldexlib.core.local_data import BeldexLocalData, WALLET_DATA_FILE
from beldexlib.utils.console import print_debug, print_error, print_info, print_warn


class PersistenceGate:
    """
    Flushes BeldexLocalData to a DataStore.

    ``flush_if_dirty`` is what the save loop calls; a failed write leaves the
    snapshot dirty so the next tick retries. ``force_flush`` ignores the flag.
    """

    def __init__(self, data_store, file_name: str = WALLET_DATA_FILE):
        self.data_store = data_store
        self.file_name = file_name

    def flush_if_dirty(self, local_data: BeldexLocalData) -> bool:
        if not local_data.dirty:
            return False
        return self.force_flush(local_data)

    def force_flush(self, local_data: BeldexLocalData) -> bool:
        try:
            print_debug("DEBUG: wallet local data dirty. Saving...")
            self.data_store.set_text(self.file_name, local_data.to_json())
        except Exception as e:
            print_error(f"❌ saveWalletLoop: {e}")
            return False
        local_data.dirty = False
        return True

    def load(self, address: str, view_key: str) -> BeldexLocalData:
        """Read the stored snapshot, or start from a fresh one."""
        try:
            text = self.data_store.get_text(self.file_name)
            local_data = BeldexLocalData.from_json(text)
            print_info(f"Loaded wallet data at height {local_data.block_height}")
            return local_data
        except Exception as e:
            print_warn(f"⚠️  No wallet local data yet ({e}); starting fresh")

        local_data = BeldexLocalData.fresh(address, view_key)
        try:
            self.data_store.set_text(self.file_name, local_data.to_json())
        except Exception as e:
            print_error(f"❌ Error writing wallet local data: {e}")
            local_data.dirty = True
        return local_data
