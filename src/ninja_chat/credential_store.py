"""
Credential Store for the Chat Server

Keeps every registered account (username and bcrypt password hash) in
memory and mirrors it to an append-only file, one record per line:

    alice<TAB>$2b$12$...

Usernames are unique under case-insensitive comparison.
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

import bcrypt

from .errors import AlreadyExistsError, AuthError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_USERS_DB_PATH = "./data/users/user.db"
DEFAULT_BCRYPT_ROUNDS = 12


@dataclass
class User:
    """
    A registered account.

    Attributes:
        username: Username as it was typed at account creation
        password_hash: bcrypt digest of the password
    """

    username: str
    password_hash: str

    @property
    def key(self) -> str:
        """Case-insensitive lookup key."""
        return self.username.lower()

    def to_record(self) -> str:
        """Serialize to a line of the credential file."""
        return f"{self.username}\t{self.password_hash}\n"


class CredentialStore:
    """
    Durable mapping of username -> password hash.

    The whole file is loaded when the store is constructed. New accounts
    are appended to the file before they become visible in memory, so a
    failed write never leaves a half-created account behind.
    """

    def __init__(
        self,
        path: str = DEFAULT_USERS_DB_PATH,
        rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ):
        """
        Open (or create) the credential store.

        Args:
            path: Location of the credential file
            rounds: bcrypt work factor used for new hashes

        Raises:
            StorageError: If the file cannot be created or read
        """
        self.path = path
        self.rounds = rounds
        self.corrupted = False
        self._users: Dict[str, User] = {}
        self._lock = threading.Lock()

        if self._create_file_and_path():
            logger.info(f"Created credential store at {self.path}")
        else:
            self.load()
            logger.info(
                f"Loaded {len(self._users)} users from {self.path}"
            )

    def _create_file_and_path(self) -> bool:
        """
        Create the credential file and its parent directories.

        Returns:
            True if a new empty file was created, False if it already existed
        """
        parent = os.path.dirname(self.path)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create directory for credential store {self.path}: {e}"
            ) from e

        try:
            with open(self.path, "x", encoding="utf-8"):
                pass
            return True
        except FileExistsError:
            return False
        except OSError as e:
            raise StorageError(
                f"Cannot create credential store {self.path}: {e}"
            ) from e

    def load(self):
        """
        (Re)load every record from the credential file.

        Blank lines are ignored and lines that do not hold exactly two
        fields are skipped with a warning. Calling this more than once
        yields the same in-memory state.

        Raises:
            StorageError: If the file cannot be read
        """
        users: Dict[str, User] = {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    fields = line.split()
                    if not fields:
                        continue
                    if len(fields) != 2:
                        logger.warning(
                            f"Skipping malformed record on line {line_no} "
                            f"of {self.path}"
                        )
                        continue
                    user = User(fields[0], fields[1])
                    users.setdefault(user.key, user)
        except OSError as e:
            raise StorageError(
                f"Cannot read credential store {self.path}: {e}"
            ) from e

        with self._lock:
            self._users = users

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh random salt.

        Args:
            password: Plain-text password

        Returns:
            The bcrypt digest as text
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    def exists(self, username: str) -> bool:
        """Return True if an account with this username exists (any casing)."""
        with self._lock:
            return username.lower() in self._users

    def get_user(self, username: str) -> Optional[User]:
        with self._lock:
            return self._users.get(username.lower())

    def create(self, username: str, password: str) -> User:
        """
        Create a new account.

        Args:
            username: Desired username
            password: Plain-text password

        Returns:
            The newly stored User

        Raises:
            AlreadyExistsError: If the username is taken (any casing)
            StorageError: If the record could not be appended to the file
        """
        # bcrypt is slow on purpose, keep it outside the lock
        user = User(username, self.hash(password))

        with self._lock:
            if self.corrupted:
                raise StorageError(
                    f"Credential store {self.path} is corrupted; refusing writes"
                )
            if user.key in self._users:
                raise AlreadyExistsError(username)

            offset = None
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    offset = f.seek(0, os.SEEK_END)
                    f.write(user.to_record())
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                logger.error(f"Failed to append user {username}: {e}")
                if offset is not None:
                    self._rollback(offset)
                raise StorageError(
                    f"Cannot write credential store {self.path}: {e}"
                ) from e

            self._users[user.key] = user

        logger.info(f"Created account for {username}")
        return user

    def _rollback(self, offset: int):
        """
        Cut the file back to ``offset`` after a failed append.

        If that fails too, the file may hold a record the in-memory
        state does not, so the store stops accepting new accounts.
        """
        try:
            os.truncate(self.path, offset)
        except OSError as e:
            self.corrupted = True
            logger.error(
                f"Could not roll back {self.path} to {offset} bytes, "
                f"marking store as corrupted: {e}"
            )

    def authenticate(self, username: str, password: str) -> bool:
        """
        Check a username/password pair.

        Returns:
            True if the account exists and the password matches
        """
        user = self.get_user(username)
        if user is None:
            return False
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"), user.password_hash.encode("ascii")
            )
        except ValueError:
            logger.warning(f"Stored hash for {user.username} is not valid bcrypt")
            return False

    def login(self, username: str, password: str) -> User:
        """
        Authenticate and return the stored account.

        Raises:
            AuthError: If the username is unknown or the password is wrong
        """
        if not self.authenticate(username, password):
            raise AuthError(f"Invalid credentials for {username}")
        return self.get_user(username)

    def usernames(self) -> List[str]:
        """All known usernames, in creation order."""
        with self._lock:
            return [user.username for user in self._users.values()]

    def delete(self) -> bool:
        """
        Remove the credential file and forget every account.

        Returns:
            True if the file was deleted, False if it did not exist
        """
        with self._lock:
            self._users = {}
            try:
                os.remove(self.path)
                return True
            except FileNotFoundError:
                return False
