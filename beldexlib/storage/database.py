import base64
import hashlib
import os
import sqlite3
import sys
import tempfile
import time
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from beldexlib.utils.console import print_debug


def _safe_home_dir() -> str:
    home = os.path.expanduser("~")
    if home and home != "~":
        return home
    env_home = os.getenv("HOME") or os.getenv("USERPROFILE")
    if env_home:
        return env_home
    return os.getcwd()


def get_default_wallet_dir() -> str:
    """Resolve a writable default wallet directory across platforms."""
    override = os.getenv("BELDEXLIB_DATA_DIR")
    if override:
        return override

    home = _safe_home_dir()

    if os.name == "nt":
        base = os.getenv("APPDATA") or os.getenv("LOCALAPPDATA") or home
        return os.path.join(base, "BeldexLib")

    if sys.platform == "darwin":
        return os.path.join(home, "Library", "Application Support", "BeldexLib")

    xdg_base = os.getenv("XDG_DATA_HOME") or os.path.join(home, ".local", "share")
    return os.path.join(xdg_base, "BeldexLib")


class DataStore:
    """Named text blobs scoped to one wallet. Missing blobs raise FileNotFoundError."""

    def get_text(self, name: str) -> str:
        raise NotImplementedError

    def set_text(self, name: str, text: str) -> None:
        raise NotImplementedError


class FileDataStore(DataStore):
    """One file per blob under a wallet directory"""

    def __init__(self, directory: Optional[str] = None, wallet_id: Optional[str] = None):
        base = directory or get_default_wallet_dir()
        self.directory = os.path.join(base, wallet_id) if wallet_id else base
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, name: str) -> str:
        path = os.path.normpath(os.path.join(self.directory, name))
        if not path.startswith(os.path.normpath(self.directory) + os.sep):
            raise ValueError(f"Invalid blob name: {name}")
        return path

    def get_text(self, name: str) -> str:
        with open(self._path(name), "r", encoding="utf-8") as fh:
            return fh.read()

    def set_text(self, name: str, text: str) -> None:
        path = self._path(name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        # Write beside the target and swap so readers never see half a file
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class SQLiteDataStore(DataStore):
    """Blobs in a shared SQLite file, one row per (scope, name)"""

    def __init__(self, db_path: Optional[str] = None, scope: str = "default"):
        self.db_path = db_path or os.path.join(get_default_wallet_dir(), "wallets.db")
        self.scope = scope
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        self._init_database()

    def _init_database(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS wallet_blobs (
                    scope TEXT NOT NULL,
                    name TEXT NOT NULL,
                    body TEXT NOT NULL,
                    updated REAL,
                    PRIMARY KEY (scope, name)
                )
            ''')
            conn.commit()
        finally:
            conn.close()

    def get_text(self, name: str) -> str:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                'SELECT body FROM wallet_blobs WHERE scope = ? AND name = ?',
                (self.scope, name),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise FileNotFoundError(f"{self.scope}/{name}")
        return row[0]

    def set_text(self, name: str, text: str) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute('''
                INSERT OR REPLACE INTO wallet_blobs (scope, name, body, updated)
                VALUES (?, ?, ?, ?)
            ''', (self.scope, name, text, time.time()))
            conn.commit()
        finally:
            conn.close()
        print_debug(f"DEBUG: stored {self.scope}/{name} ({len(text)} bytes)")


class EncryptedDataStore(DataStore):
    """Wraps another store and keeps its blobs Fernet-encrypted at rest."""

    def __init__(self, inner: DataStore, password: str):
        self.inner = inner
        key = base64.urlsafe_b64encode(hashlib.sha256(password.encode()).digest())
        self._fernet = Fernet(key)

    def get_text(self, name: str) -> str:
        token = self.inner.get_text(name)
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            raise ValueError(f"Cannot decrypt {name}: wrong password or corrupt data")

    def set_text(self, name: str, text: str) -> None:
        self.inner.set_text(name, self._fernet.encrypt(text.encode()).decode())
