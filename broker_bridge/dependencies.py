"""Process-wide collaborators, built once and injected into routes with Depends."""

from functools import lru_cache

from broker_bridge.config import settings
from broker_bridge.database import get_session_factory
from broker_bridge.services.bridge_service import SessionBridge
from broker_bridge.services.broker_service import BrokerClient
from broker_bridge.services.credential_service import CredentialManager
from broker_bridge.services.dispatch_service import EventDispatcher
from broker_bridge.services.line_service import LineService
from broker_bridge.services.session_service import SessionStore
from broker_bridge.services.transcription_service import TranscriptionService


@lru_cache
def get_credential_manager() -> CredentialManager:
    return CredentialManager(
        token_url=settings.token_url,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        timeout_seconds=settings.broker_timeout_seconds,
    )


@lru_cache
def get_broker_client() -> BrokerClient:
    return BrokerClient(
        base_url=settings.broker_url,
        org_uuid=settings.broker_org_uuid,
        env_uuid=settings.broker_env_uuid,
        bot_key=settings.broker_bot_key,
        api_key=settings.broker_api_key,
        channel=settings.broker_channel,
        locale=settings.broker_locale,
        os_name=settings.broker_os,
        os_version=settings.broker_os_version,
        business_key=settings.broker_business_key,
        timeout_seconds=settings.broker_timeout_seconds,
    )


@lru_cache
def get_line_service() -> LineService:
    return LineService(settings.line_channel_access_token)


@lru_cache
def get_dispatcher() -> EventDispatcher:
    bridge = SessionBridge(
        store=SessionStore(get_session_factory()),
        credentials=get_credential_manager(),
        broker=get_broker_client(),
        reply_channel=get_line_service(),
    )
    return EventDispatcher(
        bridge=bridge,
        line=get_line_service(),
        transcriber=TranscriptionService(settings.openai_api_key, settings.transcription_model),
        audio_max_bytes=settings.audio_max_bytes,
    )
