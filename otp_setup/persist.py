"""
persist.py — Atomic replacement of the secret file.

The new contents go to "<target>~", created exclusively with mode 0600, and
are renamed over the target in one step so nobody ever reads a half-written
secret file. A leftover "<target>~" from an interrupted run is an error, not
something to overwrite.

Two concurrent runs on the same target are not coordinated beyond the final
rename: whichever rename lands last wins.
"""

from typing import Mapping, Optional
import errno
import logging
import os

from otp_setup.errors import FileConflict, OTPSetupError, WriteFailure

logger = logging.getLogger(__name__)

SECRET_FILENAME = ".google_authenticator"
TEMP_SUFFIX = "~"
SECRET_FILE_MODE = 0o600


def default_secret_path(environ: Optional[Mapping[str, str]] = None) -> str:
    """$HOME/.google_authenticator; HOME must be an absolute path."""
    if environ is None:
        environ = os.environ
    home = environ.get("HOME", "")
    if not home.startswith("/"):
        raise OTPSetupError("Cannot determine home directory")
    return os.path.join(home, SECRET_FILENAME)


def temp_path_for(target_path: str) -> str:
    return target_path + TEMP_SUFFIX


def _unlink_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)


def persist(document, target_path: str) -> None:
    """
    Write `document` (str or ConfigDocument) to `target_path` atomically.

    Raises:
        FileConflict: the temporary file already exists; target untouched.
        WriteFailure: create, write or rename failed. The temporary file is
            removed; on rename failure the target is removed too rather than
            left with content that may not match the new secret.
    """
    data = str(document).encode("utf-8")
    tmp_path = temp_path_for(target_path)
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_TRUNC | getattr(os, "O_NOFOLLOW", 0)
    try:
        fd = os.open(tmp_path, flags, SECRET_FILE_MODE)
    except FileExistsError as e:
        raise FileConflict(tmp_path) from e
    except OSError as e:
        if e.errno == errno.ELOOP:
            raise FileConflict(tmp_path) from e
        raise WriteFailure(f"Failed to create {tmp_path!r} ({e.strerror})") from e
    logger.debug("Created %s", tmp_path)

    try:
        try:
            written = os.write(fd, data)
        finally:
            os.close(fd)
    except OSError as e:
        _unlink_quietly(tmp_path)
        raise WriteFailure(f"Failed to write new secret ({e.strerror})") from e
    if written != len(data):
        _unlink_quietly(tmp_path)
        raise WriteFailure(
            f"Failed to write new secret (short write: {written} of {len(data)} bytes)"
        )

    try:
        os.replace(tmp_path, target_path)
    except OSError as e:
        _unlink_quietly(tmp_path)
        _unlink_quietly(target_path)
        raise WriteFailure(f"Failed to write new secret ({e.strerror})") from e
    logger.debug("Renamed %s to %s", tmp_path, target_path)
