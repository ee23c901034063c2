from .database import (
    DataStore,
    EncryptedDataStore,
    FileDataStore,
    SQLiteDataStore,
    get_default_wallet_dir,
)

__all__ = [
    'DataStore',
    'EncryptedDataStore',
    'FileDataStore',
    'SQLiteDataStore',
    'get_default_wallet_dir',
]
