from broker_bridge.schemas.broker import BrokerConversationResponse, ConversationExchange
from broker_bridge.schemas.line import EventResult, LineEvent, LineTextMessage, LineWebhookRequest

__all__ = [
    "BrokerConversationResponse",
    "ConversationExchange",
    "EventResult",
    "LineEvent",
    "LineTextMessage",
    "LineWebhookRequest",
]
