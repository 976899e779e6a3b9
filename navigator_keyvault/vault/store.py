"""
Vault Store — Key file paths and atomic file I/O.

One key file per identity under a configured vault directory:
    {vault_dir}/{identity}-key.json     named record
    {vault_dir}/key.json                single-tenant record (identity None)

Writes go to a temp file in the same directory first. A new record is
published with a hard link, which fails if the target already exists, so
the existence check and the write are one atomic step. Existing records
are only ever replaced through ``replace()``.
"""
import os
import logging
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..exceptions import AlreadyExistsError, InvalidIdentityError, NotFoundError

logger = logging.getLogger("navigator.keyvault")

KEY_FILE_SUFFIX = "-key.json"
SINGLE_KEY_FILE_NAME = "key.json"
DIR_MODE = 0o700
FILE_MODE = 0o600


class VaultStore:
    """Filesystem storage for serialized key files.

    Args:
        vault_dir: Directory holding the key files. Created on demand by
            ``ensure_directory()``, never implicitly.
    """

    def __init__(self, vault_dir: Union[str, Path]):
        self.vault_dir = Path(vault_dir)

    def __repr__(self) -> str:
        return f"<VaultStore dir={str(self.vault_dir)!r}>"

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _validate_identity(self, identity: str) -> None:
        """Validate an identity before it becomes part of a file name.

        Raises:
            InvalidIdentityError: If identity is empty, too long, or could
                escape the vault directory.
        """
        if not isinstance(identity, str) or not identity:
            raise InvalidIdentityError("Identity cannot be empty")
        if len(identity) > 255:
            raise InvalidIdentityError("Identity cannot exceed 255 characters")
        if identity.startswith("."):
            raise InvalidIdentityError("Identity cannot start with '.'")
        if any(ch in identity for ch in ("/", "\\", "\0")):
            raise InvalidIdentityError(
                "Identity cannot contain path separators or NUL"
            )

    def path_for(self, identity: Optional[str] = None) -> Path:
        """Return the key file path for an identity.

        ``None`` maps to the single-tenant key file.
        """
        if identity is None:
            return self.vault_dir / SINGLE_KEY_FILE_NAME
        self._validate_identity(identity)
        return self.vault_dir / f"{identity}{KEY_FILE_SUFFIX}"

    def identities(self) -> list[Optional[str]]:
        """List identities that have a key file (``None`` for single-tenant)."""
        if not self.vault_dir.is_dir():
            return []
        found: list[Optional[str]] = []
        for path in sorted(self.vault_dir.iterdir()):
            if not path.is_file():
                continue
            if path.name == SINGLE_KEY_FILE_NAME:
                found.append(None)
            elif path.name.endswith(KEY_FILE_SUFFIX) and not path.name.startswith("."):
                identity = path.name[:-len(KEY_FILE_SUFFIX)]
                if identity:
                    found.append(identity)
        return found

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def ensure_directory(self) -> Path:
        """Create the vault directory if required. Idempotent.

        Raises:
            OSError: If the directory cannot be created.
        """
        if not self.vault_dir.is_dir():
            self.vault_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            logger.info("Vault directory created at %s", self.vault_dir)
        return self.vault_dir

    def _require_directory(self) -> None:
        if not self.vault_dir.is_dir():
            raise FileNotFoundError(
                f"Vault directory does not exist: {self.vault_dir}"
            )

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def read(self, path: Path) -> bytes:
        """Read a key file.

        Raises:
            NotFoundError: If the file does not exist.
        """
        path = Path(path)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"Key file not found: {path}") from None

    def _write_temp(self, path: Path, data: bytes) -> Path:
        """Write data to a synced temp file next to ``path``."""
        fd, temp_name = tempfile.mkstemp(
            suffix=".tmp", prefix=f".{path.name}.", dir=str(path.parent),
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_name, FILE_MODE)
        except BaseException:
            os.unlink(temp_name)
            raise
        return Path(temp_name)

    def write(self, path: Path, data: bytes) -> None:
        """Create a new key file; never overwrites.

        Raises:
            AlreadyExistsError: If a file already exists at ``path``; the
                existing file is left untouched.
            FileNotFoundError: If the vault directory does not exist.
            OSError: On any other disk failure.
        """
        path = Path(path)
        self._require_directory()
        temp_path = self._write_temp(path, data)
        try:
            os.link(temp_path, path)
        except FileExistsError:
            raise AlreadyExistsError(f"Key file already exists: {path}") from None
        finally:
            temp_path.unlink()
        logger.debug("Key file written to %s", path)

    def replace(self, path: Path, data: bytes) -> None:
        """Atomically replace an existing key file.

        Raises:
            NotFoundError: If there is no file to replace.
            OSError: On any other disk failure.
        """
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"Key file not found: {path}")
        temp_path = self._write_temp(path, data)
        try:
            os.replace(temp_path, path)
        except BaseException:
            temp_path.unlink()
            raise
        logger.debug("Key file replaced at %s", path)

    def delete(self, path: Path) -> None:
        """Remove a key file. Only ever called on explicit operator request.

        Raises:
            NotFoundError: If the file does not exist.
        """
        path = Path(path)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFoundError(f"Key file not found: {path}") from None
        logger.debug("Key file deleted at %s", path)
