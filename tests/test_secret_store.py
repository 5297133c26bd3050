from __future__ import annotations

from pathlib import Path

import pytest

from work_pipeline.errors import CredentialParseError, SecretRetrievalError
from work_pipeline.secret_store import FileSecretStore


@pytest.mark.asyncio
async def test_reads_token_from_json_secret(tmp_path: Path) -> None:
    (tmp_path / "metrics-credentials").write_text('{"token": "s3cr3t", "note": "ignored"}', encoding="utf-8")

    credentials = await FileSecretStore(str(tmp_path)).get_secret("metrics-credentials")

    assert credentials.token.get_secret_value() == "s3cr3t"
    assert "s3cr3t" not in repr(credentials)


@pytest.mark.asyncio
async def test_missing_secret_is_a_retrieval_error(tmp_path: Path) -> None:
    with pytest.raises(SecretRetrievalError) as exc_info:
        await FileSecretStore(str(tmp_path)).get_secret("absent")

    assert str(exc_info.value).startswith("failed to retrieve secret absent: ")


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["not json", '{"user": "x"}', '{"token": ""}'])
async def test_unusable_secret_content_is_a_parse_error(tmp_path: Path, content: str) -> None:
    (tmp_path / "metrics-credentials").write_text(content, encoding="utf-8")

    with pytest.raises(CredentialParseError) as exc_info:
        await FileSecretStore(str(tmp_path)).get_secret("metrics-credentials")

    assert str(exc_info.value).startswith("failed to parse credentials in secret metrics-credentials: ")


@pytest.mark.asyncio
async def test_non_utf8_secret_is_a_parse_error(tmp_path: Path) -> None:
    (tmp_path / "metrics-credentials").write_bytes(b'{"token": "\xff\xfe"}')

    with pytest.raises(CredentialParseError) as exc_info:
        await FileSecretStore(str(tmp_path)).get_secret("metrics-credentials")

    assert str(exc_info.value) == "failed to parse credentials in secret metrics-credentials: not valid UTF-8"
