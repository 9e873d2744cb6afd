from broker_bridge.models.session_mapping import SessionMapping

__all__ = ["SessionMapping"]
