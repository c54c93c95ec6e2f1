"""Google Drive v3 REST client built on google-auth credentials.

Authentication uses either a service account key (optionally impersonating
a user through domain-wide delegation) or a previously authorised user
token file. Requests go through ``AuthorizedSession``, google-auth's
``requests`` transport, so tokens are refreshed transparently.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from vecsync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, modifiedTime)"
PAGE_SIZE = 1000
REQUEST_TIMEOUT = 60

# Files downloaded as-is, mapped to the extension used for extraction
SUPPORTED_MIME_TYPES: dict[str, str] = {
    "application/pdf": ".pdf",
    "text/plain": ".txt",
    "text/markdown": ".md",
    "text/csv": ".csv",
    "application/json": ".json",
    "text/html": ".html",
}

# Google-native files are exported first: (export mime type, extension)
EXPORT_FORMATS: dict[str, tuple[str, str]] = {
    "application/vnd.google-apps.document": ("application/pdf", ".pdf"),
    "application/vnd.google-apps.presentation": ("application/pdf", ".pdf"),
    "application/vnd.google-apps.spreadsheet": ("text/csv", ".csv"),
}


@dataclass(frozen=True)
class DriveFile:
    id: str
    name: str
    mime_type: str
    modified_time: str
    size: int | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DriveFile":
        size = data.get("size")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            mime_type=data.get("mimeType", ""),
            modified_time=data.get("modifiedTime", ""),
            size=int(size) if size is not None else None,
        )

    @property
    def extension(self) -> str | None:
        if self.mime_type in EXPORT_FORMATS:
            return EXPORT_FORMATS[self.mime_type][1]
        return SUPPORTED_MIME_TYPES.get(self.mime_type)

    @property
    def web_url(self) -> str:
        return f"https://drive.google.com/file/d/{self.id}/view"


class DriveClient(Protocol):
    """The small slice of the Drive API the sync engine needs."""

    def list_page(
        self, folder_id: str, page_token: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]: ...

    def fetch_content(self, file: DriveFile) -> bytes: ...


def load_credentials(
    service_account_path: str | None = None,
    token_path: str | None = None,
    impersonate: str | None = None,
):
    """Load Drive credentials from a service account key or a user token file.

    Raises:
        ConfigurationError: If neither file is given or the file is missing
    """
    if service_account_path:
        if not Path(service_account_path).exists():
            raise ConfigurationError(
                f"Service account file not found: {service_account_path}",
                "Pass --service-account with the path to a JSON key file.",
            )
        creds = service_account.Credentials.from_service_account_file(
            service_account_path, scopes=DRIVE_SCOPES
        )
        return creds.with_subject(impersonate) if impersonate else creds

    if token_path:
        if not Path(token_path).exists():
            raise ConfigurationError(
                f"Token file not found: {token_path}",
                "Authorise once with Google and save the user token JSON to this path.",
            )
        return user_credentials.Credentials.from_authorized_user_file(token_path, DRIVE_SCOPES)

    raise ConfigurationError(
        "No Google Drive credentials configured",
        "Pass --service-account (optionally with --impersonate) or --token.",
    )


class GoogleDriveClient:
    """Drive v3 over HTTPS with an authorised requests session."""

    def __init__(self, credentials) -> None:
        self.session = AuthorizedSession(credentials)

    def list_page(
        self, folder_id: str, page_token: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        params = {
            "q": f"'{folder_id}' in parents and trashed = false",
            "fields": LIST_FIELDS,
            "pageSize": PAGE_SIZE,
        }
        if page_token:
            params["pageToken"] = page_token
        response = self.session.get(f"{DRIVE_API}/files", params=params, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        data = response.json()
        return data.get("files", []), data.get("nextPageToken")

    def fetch_content(self, file: DriveFile) -> bytes:
        if file.mime_type in EXPORT_FORMATS:
            export_mime, _ = EXPORT_FORMATS[file.mime_type]
            response = self.session.get(
                f"{DRIVE_API}/files/{file.id}/export",
                params={"mimeType": export_mime},
                timeout=REQUEST_TIMEOUT,
            )
        else:
            response = self.session.get(
                f"{DRIVE_API}/files/{file.id}", params={"alt": "media"}, timeout=REQUEST_TIMEOUT
            )
        response.raise_for_status()
        return response.content


def list_all_files(client: DriveClient, folder_id: str = "root") -> list[DriveFile]:
    """Recursively enumerate supported files under a folder, following page tokens."""
    files: list[DriveFile] = []
    folders = [folder_id]
    while folders:
        current = folders.pop()
        page_token = None
        while True:
            entries, page_token = client.list_page(current, page_token)
            for entry in entries:
                if entry.get("mimeType") == FOLDER_MIME_TYPE:
                    folders.append(entry["id"])
                    continue
                drive_file = DriveFile.from_api(entry)
                if drive_file.extension:
                    files.append(drive_file)
            if not page_token:
                break
    logger.debug(f"Listed {len(files)} supported files under {folder_id}")
    return files
