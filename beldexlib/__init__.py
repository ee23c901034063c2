"""
Beldex Library - lightwallet synchronization engine for Beldex wallets
"""
from .config import apply_profile

apply_profile()

from .core.engine import BeldexEngine, make_currency_engine
from .core.callbacks import EngineCallbacks
from .core.lightwallet import LightwalletClient, RemoteClient, TransactionBuilder
from .core.local_data import BeldexLocalData, TransactionRecord
from .storage.database import FileDataStore, SQLiteDataStore, EncryptedDataStore

__version__ = "1.0.0"
__all__ = [
    'BeldexEngine',
    'make_currency_engine',
    'EngineCallbacks',
    'LightwalletClient',
    'RemoteClient',
    'TransactionBuilder',
    'BeldexLocalData',
    'TransactionRecord',
    'FileDataStore',
    'SQLiteDataStore',
    'EncryptedDataStore',
]
