# src/drive_relay/accounts.py

"""
Account file: which Drive folders feed which Paperless endpoint.

The file is JSON with three lists (drive_accounts, paperless_endpoints,
accounts) cross-referenced by id. The pydantic models below mirror that
document; references are resolved at load time so the rest of the service
can rely on them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigError

logger = logging.getLogger(__name__)

MIN_CHANNEL_EXPIRATION_SEC = 60
DEFAULT_CHANNEL_EXPIRATION_SEC = 5 * 60

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ServiceAccountKey(_Frozen):
    """The JSON key downloaded from Google Cloud. Unlisted keys are kept as-is."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: Literal["service_account"]
    project_id: NonEmptyStr
    private_key: NonEmptyStr
    client_email: NonEmptyStr
    token_uri: NonEmptyStr


class DriveAccountProps(_Frozen):
    channel_expiration_sec: StrictInt = Field(
        default=DEFAULT_CHANNEL_EXPIRATION_SEC, ge=MIN_CHANNEL_EXPIRATION_SEC
    )
    credentials: ServiceAccountKey


class DriveAccount(_Frozen):
    id: NonEmptyStr
    name: NonEmptyStr
    props: DriveAccountProps

    @property
    def channel_expiration_sec(self) -> int:
        return self.props.channel_expiration_sec

    @property
    def credentials(self) -> dict[str, Any]:
        return self.props.credentials.model_dump()


class BasicCredentials(_Frozen):
    username: NonEmptyStr
    password: NonEmptyStr


class PaperlessEndpointProps(_Frozen):
    server_url: NonEmptyStr
    credentials: BasicCredentials

    @field_validator("server_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("expected an http(s) URL")
        return v.rstrip("/")


class PaperlessEndpoint(_Frozen):
    id: NonEmptyStr
    name: NonEmptyStr
    props: PaperlessEndpointProps

    @property
    def server_url(self) -> str:
        return self.props.server_url

    @property
    def username(self) -> str:
        return self.props.credentials.username

    @property
    def password(self) -> str:
        return self.props.credentials.password


class AccountProps(_Frozen):
    paperless_endpoint_id: NonEmptyStr
    drive_account_id: NonEmptyStr
    drive_src_folder_id: NonEmptyStr
    drive_dst_folder_id: NonEmptyStr


class Account(_Frozen):
    id: NonEmptyStr
    name: NonEmptyStr
    props: AccountProps

    @property
    def paperless_endpoint_id(self) -> str:
        return self.props.paperless_endpoint_id

    @property
    def drive_account_id(self) -> str:
        return self.props.drive_account_id

    @property
    def drive_src_folder_id(self) -> str:
        return self.props.drive_src_folder_id

    @property
    def drive_dst_folder_id(self) -> str:
        return self.props.drive_dst_folder_id


class AppConfig(_Frozen):
    drive_accounts: tuple[DriveAccount, ...]
    paperless_endpoints: tuple[PaperlessEndpoint, ...]
    accounts: tuple[Account, ...]

    @model_validator(mode="after")
    def _check_references(self) -> AppConfig:
        drive_ids = {d.id for d in self.drive_accounts}
        endpoint_ids = {e.id for e in self.paperless_endpoints}
        seen: set[str] = set()
        for account in self.accounts:
            if account.id in seen:
                raise ValueError(f"duplicate account id {account.id}")
            seen.add(account.id)
            if account.drive_account_id not in drive_ids:
                raise ValueError(f"{account.name}: drive account {account.drive_account_id} not found")
            if account.paperless_endpoint_id not in endpoint_ids:
                raise ValueError(
                    f"{account.name}: paperless endpoint {account.paperless_endpoint_id} not found"
                )
        return self

    def find_account(self, account_id: str) -> Account | None:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def drive_account_for(self, account: Account) -> DriveAccount:
        for drive in self.drive_accounts:
            if drive.id == account.drive_account_id:
                return drive
        raise ConfigError(f"{account.name}: drive account {account.drive_account_id} not found")

    def endpoint_for(self, account: Account) -> PaperlessEndpoint:
        for endpoint in self.paperless_endpoints:
            if endpoint.id == account.paperless_endpoint_id:
                return endpoint
        raise ConfigError(f"{account.name}: paperless endpoint {account.paperless_endpoint_id} not found")


def _describe(exc: ValidationError) -> str:
    """One `$.path: message` entry per problem, e.g. `$.accounts[0].props.drive_account_id`."""
    parts = []
    for err in exc.errors():
        path = "$" + "".join(f"[{p}]" if isinstance(p, int) else f".{p}" for p in err["loc"])
        parts.append(f"{path}: {err['msg']}")
    return "; ".join(parts)


def parse_app_config(data: Any) -> AppConfig:
    """Validate a decoded account document. Raises ConfigError listing every problem."""
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid account file: {_describe(e)}") from e


def load_app_config(path: str | Path) -> AppConfig:
    path = Path(path)
    logger.debug("Reading account file %s", path)
    try:
        raw = path.read_text("utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read account file {path}: {e}") from e

    try:
        config = AppConfig.model_validate_json(raw)
    except ValidationError as e:
        if any(err["type"] == "json_invalid" for err in e.errors()):
            raise ConfigError(f"Account file {path} is not valid JSON: {_describe(e)}") from e
        raise ConfigError(f"Invalid account file {path}: {_describe(e)}") from e

    logger.info(
        "Account file loaded path=%s accounts=%d drive_accounts=%d endpoints=%d",
        path,
        len(config.accounts),
        len(config.drive_accounts),
        len(config.paperless_endpoints),
    )
    return config
