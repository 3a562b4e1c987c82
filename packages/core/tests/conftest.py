"""Shared fixtures for core tests."""

import pytest

from contractlens_core.config import Credentials, Settings
from contractlens_core.models import DocumentKind, Language, LoadedDocument


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def english_settings():
    return Settings(language=Language.ENGLISH)


@pytest.fixture
def credentials():
    return Credentials(api_key="sk-test")


@pytest.fixture
def document():
    text = "甲方向乙方采购设备一台，总价十万元，乙方应于合同签订后三十日内交付。"
    return LoadedDocument(kind=DocumentKind.PLAIN_TEXT, text=text, character_count=len(text), estimated_token_count=9)
