"""Persistent store for users, public keys, repositories, and collaborators.

The protocols mirror the store contract sessions can reach through their
context; SqliteStore is the implementation the server runs with.

Error kinds: StoreNotFoundError, AlreadyExistsError, StorageIOError.

// [LAW:single-enforcer] Every statement goes through SqliteStore._execute or
//   SqliteStore._insert, which own locking and sqlite3 → StoreError translation.

This module is a STABLE BOUNDARY. Import as: import repo_shell.io.store
"""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from repo_shell.errors import AlreadyExistsError, StorageIOError, StoreNotFoundError

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 120_000


@dataclass(frozen=True)
class User:
    id: int
    name: str
    login: str
    email: str
    password: str  # pbkdf2 hash, never the plain password
    is_admin: bool


@dataclass(frozen=True)
class PublicKey:
    id: int
    user_id: int
    public_key: str


@dataclass(frozen=True)
class RepoRecord:
    id: int
    name: str
    project_name: str
    description: str
    is_private: bool


class UserStore(Protocol):
    def add_user(self, name: str, login: str, email: str, password: str, is_admin: bool) -> User: ...
    def delete_user(self, user_id: int) -> None: ...
    def get_user(self, user_id: int) -> User: ...
    def get_user_by_login(self, login: str) -> User: ...
    def get_user_by_email(self, email: str) -> User: ...
    def get_user_by_public_key(self, public_key: str) -> User: ...
    def set_user_name(self, user: User, name: str) -> User: ...
    def set_user_login(self, user: User, login: str) -> User: ...
    def set_user_email(self, user: User, email: str) -> User: ...
    def set_user_password(self, user: User, password: str) -> User: ...
    def set_user_admin(self, user: User, is_admin: bool) -> User: ...
    def count_users(self) -> int: ...


class PublicKeyStore(Protocol):
    def add_user_public_key(self, user: User, public_key: str) -> PublicKey: ...
    def delete_user_public_key(self, key_id: int) -> None: ...
    def get_user_public_keys(self, user: User) -> list[PublicKey]: ...


class RepoStore(Protocol):
    def add_repo(self, name: str, project_name: str, description: str, is_private: bool) -> RepoRecord: ...
    def delete_repo(self, name: str) -> None: ...
    def get_repo(self, name: str) -> RepoRecord: ...
    def set_repo_name(self, name: str, new_name: str) -> RepoRecord: ...
    def set_repo_project_name(self, name: str, project_name: str) -> RepoRecord: ...
    def set_repo_description(self, name: str, description: str) -> RepoRecord: ...
    def set_repo_private(self, name: str, is_private: bool) -> RepoRecord: ...


class CollabStore(Protocol):
    def add_repo_collab(self, repo: str, user: User) -> None: ...
    def delete_repo_collab(self, repo_id: int, user_id: int) -> None: ...
    def list_repo_collabs(self, repo: str) -> list[User]: ...
    def list_repo_public_keys(self, repo: str) -> list[PublicKey]: ...
    def is_repo_public_key_collab(self, repo: str, public_key: str) -> bool: ...


class Store(UserStore, PublicKeyStore, RepoStore, CollabStore, Protocol):
    def create_db(self) -> None: ...
    def close(self) -> None: ...


# ─── SQLite implementation ───────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    login TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    is_admin INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS public_keys (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    public_key TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS repos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    project_name TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    is_private INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS collabs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repo_id INTEGER NOT NULL REFERENCES repos(id) ON DELETE CASCADE,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    UNIQUE (repo_id, user_id)
);
"""

_USER_COLUMNS = "id, name, login, email, password, is_admin"
_KEY_COLUMNS = "id, user_id, public_key"
_REPO_COLUMNS = "id, name, project_name, description, is_private"


def hash_password(password: str, salt: bytes | None = None) -> str:
    """Return 'salt$hash' (hex) for password."""
    salt = salt if salt is not None else os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ROUNDS)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt_hex, _, _ = stored.partition("$")
    try:
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    return hash_password(password, salt) == stored


def _user(row) -> User:
    return User(row[0], row[1], row[2], row[3], row[4], bool(row[5]))


def _key(row) -> PublicKey:
    return PublicKey(row[0], row[1], row[2])


def _repo(row) -> RepoRecord:
    return RepoRecord(row[0], row[1], row[2], row[3], bool(row[4]))


class SqliteStore:
    """Store backed by one sqlite3 database file (":memory:" for tests)."""

    def __init__(self, path: str | os.PathLike = ":memory:"):
        self._path = str(path)
        self._lock = threading.Lock()
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            # Sessions read from worker threads; _lock serializes access.
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.execute("PRAGMA foreign_keys = ON")
        except (OSError, sqlite3.Error) as e:
            raise StorageIOError(f"cannot open store at {self._path}: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(sql, params)
                    return cursor.fetchall()
            except sqlite3.IntegrityError as e:
                raise AlreadyExistsError(str(e)) from e
            except sqlite3.Error as e:
                raise StorageIOError(str(e)) from e

    def _insert(self, sql: str, params: tuple) -> int:
        """Run an INSERT and return the new row id."""
        with self._lock:
            try:
                with self._conn:
                    return self._conn.execute(sql, params).lastrowid
            except sqlite3.IntegrityError as e:
                raise AlreadyExistsError(str(e)) from e
            except sqlite3.Error as e:
                raise StorageIOError(str(e)) from e

    def _one(self, sql: str, params: tuple, what: str) -> tuple:
        rows = self._execute(sql, params)
        if not rows:
            raise StoreNotFoundError(f"{what} not found")
        return rows[0]

    def create_db(self) -> None:
        with self._lock:
            try:
                self._conn.executescript(_SCHEMA)
            except sqlite3.Error as e:
                raise StorageIOError(f"cannot create schema: {e}") from e
        logger.debug("Store schema ready at %s", self._path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Users ──────────────────────────────────────────────────────────

    def add_user(self, name: str, login: str, email: str, password: str, is_admin: bool) -> User:
        user_id = self._insert(
            "INSERT INTO users (name, login, email, password, is_admin) VALUES (?, ?, ?, ?, ?)",
            (name, login, email, hash_password(password), int(is_admin)),
        )
        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> None:
        self.get_user(user_id)
        self._execute("DELETE FROM users WHERE id = ?", (user_id,))

    def get_user(self, user_id: int) -> User:
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,), f"user {user_id}"))

    def get_user_by_login(self, login: str) -> User:
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE login = ?", (login,), f"user {login!r}"))

    def get_user_by_email(self, email: str) -> User:
        return _user(self._one(f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email,), f"user {email!r}"))

    def get_user_by_public_key(self, public_key: str) -> User:
        row = self._one(
            "SELECT u.id, u.name, u.login, u.email, u.password, u.is_admin "
            "FROM users u JOIN public_keys k ON k.user_id = u.id WHERE k.public_key = ?",
            (public_key,),
            "user for public key",
        )
        return _user(row)

    def _set_user_field(self, user: User, column: str, value) -> User:
        self.get_user(user.id)
        self._execute(f"UPDATE users SET {column} = ? WHERE id = ?", (value, user.id))
        return self.get_user(user.id)

    def set_user_name(self, user: User, name: str) -> User:
        return self._set_user_field(user, "name", name)

    def set_user_login(self, user: User, login: str) -> User:
        return self._set_user_field(user, "login", login)

    def set_user_email(self, user: User, email: str) -> User:
        return self._set_user_field(user, "email", email)

    def set_user_password(self, user: User, password: str) -> User:
        return self._set_user_field(user, "password", hash_password(password))

    def set_user_admin(self, user: User, is_admin: bool) -> User:
        return self._set_user_field(user, "is_admin", int(is_admin))

    def count_users(self) -> int:
        return self._execute("SELECT COUNT(*) FROM users")[0][0]

    # ── Public keys ────────────────────────────────────────────────────

    def add_user_public_key(self, user: User, public_key: str) -> PublicKey:
        self.get_user(user.id)
        key_id = self._insert(
            "INSERT INTO public_keys (user_id, public_key) VALUES (?, ?)",
            (user.id, public_key.strip()),
        )
        return _key(self._one(f"SELECT {_KEY_COLUMNS} FROM public_keys WHERE id = ?", (key_id,), "public key"))

    def delete_user_public_key(self, key_id: int) -> None:
        self._one("SELECT id FROM public_keys WHERE id = ?", (key_id,), f"public key {key_id}")
        self._execute("DELETE FROM public_keys WHERE id = ?", (key_id,))

    def get_user_public_keys(self, user: User) -> list[PublicKey]:
        rows = self._execute(
            f"SELECT {_KEY_COLUMNS} FROM public_keys WHERE user_id = ? ORDER BY id", (user.id,)
        )
        return [_key(row) for row in rows]

    # ── Repos ──────────────────────────────────────────────────────────

    def add_repo(self, name: str, project_name: str, description: str, is_private: bool) -> RepoRecord:
        self._insert(
            "INSERT INTO repos (name, project_name, description, is_private) VALUES (?, ?, ?, ?)",
            (name, project_name, description, int(is_private)),
        )
        return self.get_repo(name)

    def delete_repo(self, name: str) -> None:
        self.get_repo(name)
        self._execute("DELETE FROM repos WHERE name = ?", (name,))

    def get_repo(self, name: str) -> RepoRecord:
        return _repo(self._one(f"SELECT {_REPO_COLUMNS} FROM repos WHERE name = ?", (name,), f"repo {name!r}"))

    def _set_repo_field(self, name: str, column: str, value) -> RepoRecord:
        record = self.get_repo(name)
        self._execute(f"UPDATE repos SET {column} = ? WHERE id = ?", (value, record.id))
        return _repo(self._one(f"SELECT {_REPO_COLUMNS} FROM repos WHERE id = ?", (record.id,), f"repo {name!r}"))

    def set_repo_name(self, name: str, new_name: str) -> RepoRecord:
        return self._set_repo_field(name, "name", new_name)

    def set_repo_project_name(self, name: str, project_name: str) -> RepoRecord:
        return self._set_repo_field(name, "project_name", project_name)

    def set_repo_description(self, name: str, description: str) -> RepoRecord:
        return self._set_repo_field(name, "description", description)

    def set_repo_private(self, name: str, is_private: bool) -> RepoRecord:
        return self._set_repo_field(name, "is_private", int(is_private))

    # ── Collaborators ──────────────────────────────────────────────────

    def add_repo_collab(self, repo: str, user: User) -> None:
        record = self.get_repo(repo)
        self.get_user(user.id)
        self._execute("INSERT INTO collabs (repo_id, user_id) VALUES (?, ?)", (record.id, user.id))

    def delete_repo_collab(self, repo_id: int, user_id: int) -> None:
        self._one(
            "SELECT id FROM collabs WHERE repo_id = ? AND user_id = ?",
            (repo_id, user_id),
            f"collaborator {user_id} on repo {repo_id}",
        )
        self._execute("DELETE FROM collabs WHERE repo_id = ? AND user_id = ?", (repo_id, user_id))

    def list_repo_collabs(self, repo: str) -> list[User]:
        record = self.get_repo(repo)
        rows = self._execute(
            "SELECT u.id, u.name, u.login, u.email, u.password, u.is_admin "
            "FROM users u JOIN collabs c ON c.user_id = u.id WHERE c.repo_id = ? ORDER BY u.id",
            (record.id,),
        )
        return [_user(row) for row in rows]

    def list_repo_public_keys(self, repo: str) -> list[PublicKey]:
        record = self.get_repo(repo)
        rows = self._execute(
            "SELECT k.id, k.user_id, k.public_key "
            "FROM public_keys k JOIN collabs c ON c.user_id = k.user_id WHERE c.repo_id = ? ORDER BY k.id",
            (record.id,),
        )
        return [_key(row) for row in rows]

    def is_repo_public_key_collab(self, repo: str, public_key: str) -> bool:
        record = self.get_repo(repo)
        rows = self._execute(
            "SELECT 1 FROM public_keys k JOIN collabs c ON c.user_id = k.user_id "
            "WHERE c.repo_id = ? AND k.public_key = ? LIMIT 1",
            (record.id, public_key.strip()),
        )
        return bool(rows)
