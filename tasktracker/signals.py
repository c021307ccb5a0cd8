import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

# Sent by NetworkStatus when the backend becomes reachable or unreachable.
# Payload: online (bool)
connectivity_changed = Signal()


def emit(signal, sender, **payload):
    """
    Send a signal to every receiver, logging receivers that raise.

    A broken subscriber must never break the store that sent the event.
    """
    for receiver, response in signal.send_robust(sender=sender, **payload):
        if isinstance(response, Exception):
            logger.error(
                "Error in receiver %r for %s: %s",
                receiver, type(sender).__name__, response,
                exc_info=(type(response), response, response.__traceback__),
            )
