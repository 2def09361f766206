"""
Shared fixtures.
"""

import pytest

from voicestream import config


@pytest.fixture(autouse=True)
def reset_settings_store():
    yield
    config.reset()


@pytest.fixture
def settings():
    return config.Settings(
        api_key="test-api-key",
        user_id="user-1",
        v2_stream_url="https://tts.test/api/v2/tts/stream",
        fal_stream_url="https://fal.test/playht-tts/stream",
        fal_speech_url="https://fal.test/playht-tts",
        fal_authorize_url="https://auth.test/authorize",
    )
