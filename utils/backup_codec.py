"""
Backup files for moving a gradebook between devices.

A backup is plain JSON: {version, exportDate, students, settings}. When a
password is given, the same JSON is encrypted with AES-256-GCM using a key
derived from the password (PBKDF2-HMAC-SHA256, 100k iterations). Data kept on
the device itself stays unencrypted; only exported files are protected.
"""

import base64
import binascii
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from utils.errors import BackupError, InvalidBackupFileError, WrongPasswordError

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
ENCRYPTION_VERSION = "v1"
PBKDF2_ITERATIONS = 100000
SALT_LENGTH = 16  # 128 bits
IV_LENGTH = 12  # 96 bits, GCM standard
KEY_LENGTH = 32  # AES-256


def _derive_key(password: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(text: str, field: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidBackupFileError(
            "Invalid encrypted file format", detail=f"Field '{field}' is not valid base64"
        ) from e


def is_encrypted_file(data: Any) -> bool:
    """Structural check for an encrypted backup; never raises."""
    if not isinstance(data, dict):
        return False
    return (
        data.get("encrypted") is True
        and isinstance(data.get("version"), str)
        and isinstance(data.get("salt"), str)
        and isinstance(data.get("iv"), str)
        and isinstance(data.get("data"), str)
    )


def encrypt_backup_file(data: Any, password: str, hint: Optional[str] = None) -> dict:
    """Encrypt any JSON-serialisable value with a password.

    A fresh random salt and IV are generated for every call.
    """
    if not password:
        raise BackupError("A password is required to encrypt a backup")

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = _derive_key(password, salt)
    plaintext = json.dumps(data, ensure_ascii=False).encode("utf-8")
    # ciphertext with the 16-byte auth tag appended
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)

    encrypted = {
        "version": ENCRYPTION_VERSION,
        "encrypted": True,
        "salt": _b64encode(salt),
        "iv": _b64encode(iv),
        "data": _b64encode(ciphertext),
    }
    if hint:
        encrypted["hint"] = hint
    return encrypted


def decrypt_backup_file(encrypted_file: Any, password: str) -> Any:
    """Reverse encrypt_backup_file.

    Raises InvalidBackupFileError for anything structurally wrong with the
    file and WrongPasswordError when the GCM tag does not verify.
    """
    if not is_encrypted_file(encrypted_file):
        raise InvalidBackupFileError(
            "Invalid encrypted file format", detail="Missing encryption fields"
        )
    if encrypted_file["version"] != ENCRYPTION_VERSION:
        raise InvalidBackupFileError(
            "Unsupported encrypted file version",
            detail=f"Version '{encrypted_file['version']}' is not supported",
        )

    salt = _b64decode(encrypted_file["salt"], "salt")
    iv = _b64decode(encrypted_file["iv"], "iv")
    ciphertext = _b64decode(encrypted_file["data"], "data")
    if len(iv) != IV_LENGTH or not salt or len(ciphertext) < 16:
        raise InvalidBackupFileError(
            "Invalid encrypted file format", detail="Salt, IV or data has the wrong length"
        )

    key = _derive_key(password or "", salt)
    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        raise WrongPasswordError() from e

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidBackupFileError(
            "Decrypted content is not valid JSON", detail=str(e)
        ) from e


def get_encryption_info(encrypted_file: dict) -> str:
    parts = ["This file is password-protected"]
    if encrypted_file.get("hint"):
        parts.append(f"Hint: {encrypted_file['hint']}")
    return "\n".join(parts)


# -----------------------------
# Plain backup documents
# -----------------------------
def build_backup(students: list, settings: dict, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    return {
        "version": BACKUP_VERSION,
        "exportDate": now.isoformat().replace("+00:00", "Z"),
        "students": students,
        "settings": settings,
    }


def validate_backup(backup: Any) -> None:
    if not isinstance(backup, dict):
        raise InvalidBackupFileError(detail="Backup must be a JSON object")
    if not backup.get("version"):
        raise InvalidBackupFileError(detail="Backup has no version")
    if backup["version"] != BACKUP_VERSION:
        raise InvalidBackupFileError(detail=f"Unsupported backup version: {backup['version']}")
    if not isinstance(backup.get("students"), list):
        raise InvalidBackupFileError(detail="Backup has no student list")
    if not isinstance(backup.get("settings"), dict):
        raise InvalidBackupFileError(detail="Backup has no settings")


def backup_filename(settings: Optional[dict], now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    name = (settings or {}).get("schoolName") or "School"
    safe = re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "School"
    return f"{safe}_Backup_{now.date().isoformat()}.json"


@dataclass
class BackupParseResult:
    success: bool
    backup: Optional[dict] = None
    error: Optional[str] = None
    message: Optional[str] = None
    hint: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.error:
            data.update({"error": self.error, "message": self.message})
        if self.hint:
            data["hint"] = self.hint
        return data


def parse_backup(content: Any, password: Optional[str] = None) -> BackupParseResult:
    """Turn uploaded backup content into a validated backup dict.

    content may be raw text/bytes or an already-parsed object. Errors come
    back as tagged results: password_required, wrong_password, invalid_file.
    """
    try:
        if isinstance(content, (bytes, bytearray)):
            content = content.decode("utf-8")
        data = json.loads(content) if isinstance(content, str) else content
    except (UnicodeDecodeError, ValueError) as e:
        logger.error(f"Import error: {e}")
        return BackupParseResult(
            False, error=InvalidBackupFileError.kind, message="Backup file is not valid JSON"
        )

    hint = data.get("hint") if isinstance(data, dict) else None
    try:
        if is_encrypted_file(data):
            if not password:
                return BackupParseResult(
                    False,
                    error="password_required",
                    message=get_encryption_info(data),
                    hint=hint,
                )
            data = decrypt_backup_file(data, password)
        validate_backup(data)
    except BackupError as e:
        logger.warning(f"Backup rejected ({e.kind}): {e.message}")
        return BackupParseResult(
            False, error=e.kind, message=f"{e.message}. {e.detail}", hint=hint
        )
    return BackupParseResult(True, backup=data)
