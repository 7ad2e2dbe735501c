# tests/test_accounts.py

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from drive_relay.accounts import DEFAULT_CHANNEL_EXPIRATION_SEC, load_app_config, parse_app_config
from drive_relay.errors import ConfigError

from .fakes import account_document


def test_parse_valid_document() -> None:
    config = parse_app_config(account_document())

    account = config.accounts[0]
    assert account.name == "Account One"
    assert config.find_account("acc-1") == account
    assert config.find_account("missing") is None

    drive = config.drive_account_for(account)
    assert drive.channel_expiration_sec == 300
    assert drive.credentials["type"] == "service_account"

    endpoint = config.endpoint_for(account)
    assert endpoint.server_url == "https://paperless.example.org"
    assert endpoint.username == "relay"


def test_channel_expiration_defaults_when_absent() -> None:
    doc = account_document()
    del doc["drive_accounts"][0]["props"]["channel_expiration_sec"]

    config = parse_app_config(doc)
    assert config.drive_accounts[0].channel_expiration_sec == DEFAULT_CHANNEL_EXPIRATION_SEC


@pytest.mark.parametrize("value", [30, "300", True, 12.5])
def test_channel_expiration_must_be_an_integer_of_at_least_a_minute(value) -> None:
    doc = account_document()
    doc["drive_accounts"][0]["props"]["channel_expiration_sec"] = value

    with pytest.raises(ConfigError, match="channel_expiration_sec"):
        parse_app_config(doc)


def test_credentials_must_be_a_service_account() -> None:
    doc = account_document()
    doc["drive_accounts"][0]["props"]["credentials"]["type"] = "authorized_user"

    with pytest.raises(ConfigError, match="service_account"):
        parse_app_config(doc)


def test_missing_credential_key_names_its_path() -> None:
    doc = account_document()
    del doc["drive_accounts"][0]["props"]["credentials"]["client_email"]

    with pytest.raises(ConfigError, match=r"\$\.drive_accounts\[0\]\.props\.credentials\.client_email"):
        parse_app_config(doc)


def test_server_url_must_be_http() -> None:
    doc = account_document()
    doc["paperless_endpoints"][0]["props"]["server_url"] = "ftp://paperless"

    with pytest.raises(ConfigError, match="server_url"):
        parse_app_config(doc)


def test_dangling_references_are_rejected() -> None:
    doc = account_document()
    doc["accounts"][0]["props"]["drive_account_id"] = "drive-404"

    with pytest.raises(ConfigError, match="drive-404"):
        parse_app_config(doc)


def test_duplicate_account_ids_are_rejected() -> None:
    doc = account_document()
    doc["accounts"].append(copy.deepcopy(doc["accounts"][0]))

    with pytest.raises(ConfigError, match="duplicate"):
        parse_app_config(doc)


def test_top_level_lists_are_required() -> None:
    with pytest.raises(ConfigError, match=r"\$\.accounts"):
        parse_app_config({"drive_accounts": [], "paperless_endpoints": []})
    with pytest.raises(ConfigError):
        parse_app_config([])


def test_load_app_config_from_file(tmp_path: Path) -> None:
    path = tmp_path / "accounts.json"
    path.write_text(json.dumps(account_document()), "utf-8")

    config = load_app_config(path)
    assert [a.id for a in config.accounts] == ["acc-1"]


def test_load_app_config_reports_unreadable_and_malformed_files(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Failed to read"):
        load_app_config(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", "utf-8")
    with pytest.raises(ConfigError, match="not valid JSON"):
        load_app_config(bad)


def test_extra_service_account_keys_are_passed_through() -> None:
    doc = account_document()
    doc["drive_accounts"][0]["props"]["credentials"]["client_id"] = "1234"

    drive = parse_app_config(doc).drive_accounts[0]
    assert drive.credentials["client_id"] == "1234"
    assert drive.credentials["client_email"] == "relay@relay-test.iam.gserviceaccount.com"


def test_every_problem_is_reported_at_once() -> None:
    doc = account_document()
    doc["drive_accounts"][0]["props"]["channel_expiration_sec"] = 10
    doc["paperless_endpoints"][0]["props"]["credentials"]["password"] = "  "

    with pytest.raises(ConfigError) as info:
        parse_app_config(doc)

    message = str(info.value)
    assert "$.drive_accounts[0].props.channel_expiration_sec" in message
    assert "$.paperless_endpoints[0].props.credentials.password" in message


def test_loaded_config_is_immutable() -> None:
    config = parse_app_config(account_document())

    with pytest.raises(ValidationError):
        config.accounts[0].props.drive_src_folder_id = "elsewhere"  # type: ignore[misc]


def test_invalid_document_on_disk_names_the_file(tmp_path: Path) -> None:
    doc = account_document()
    doc["accounts"][0]["props"]["paperless_endpoint_id"] = "paperless-404"
    path = tmp_path / "accounts.json"
    path.write_text(json.dumps(doc), "utf-8")

    with pytest.raises(ConfigError, match="paperless-404") as info:
        load_app_config(path)
    assert str(path) in str(info.value)
