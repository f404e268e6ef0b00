from __future__ import annotations

import json
import os
import pathlib
from typing import Optional

from google.oauth2.credentials import Credentials
from google.oauth2.service_account import Credentials as SACreds
from google_auth_oauthlib.flow import InstalledAppFlow

from .config import Config

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _token_path(path: str) -> pathlib.Path:
    token_path = pathlib.Path(path)
    token_path.parent.mkdir(parents=True, exist_ok=True)
    return token_path


def creds_from_service_account(json_str: str, scopes: list[str]) -> Credentials:
    # accepts either the key JSON itself or a path to the key file
    if os.path.isfile(json_str):
        return SACreds.from_service_account_file(json_str, scopes=scopes)
    info = json.loads(json_str)
    return SACreds.from_service_account_info(info, scopes=scopes)


def creds_from_oauth(
    client_secrets_path: str, token_store: str, scopes: list[str]
) -> Credentials:
    token_path = _token_path(token_store)
    if token_path.exists():
        return Credentials.from_authorized_user_file(str(token_path), scopes)
    flow = InstalledAppFlow.from_client_secrets_file(
        client_secrets_path,
        scopes=scopes,
    )
    creds = flow.run_local_server(port=0)
    token_path.write_text(creds.to_json())
    return creds


def resolve_credentials(config: Config) -> Optional[Credentials]:
    if config.google_service_account_json:
        return creds_from_service_account(config.google_service_account_json, SCOPES)
    if config.google_oauth_client_secrets:
        if not os.path.exists(config.google_oauth_client_secrets):
            return None
        return creds_from_oauth(
            config.google_oauth_client_secrets, config.token_store, SCOPES
        )
    return None
