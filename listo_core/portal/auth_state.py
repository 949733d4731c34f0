"""Explicit sign-in state for a request.

Pages read ``request.listo`` instead of sharing module-level globals. The
state machine starts ``unknown`` and resolves once per request to either
``signed_out`` or ``signed_in`` with the user attached.
"""
import logging

logger = logging.getLogger(__name__)

STATE_UNKNOWN = "unknown"
STATE_SIGNED_OUT = "signed_out"
STATE_SIGNED_IN = "signed_in"


class SessionState:
    """Per-request view of who is signed in, their language and page caches."""

    def __init__(self, user_id=None, language="en"):
        self.user_id = user_id
        self.language = language
        self.caches = {}

    def cache(self, key, loader):
        if key not in self.caches:
            self.caches[key] = loader()
        return self.caches[key]

    def reset(self):
        self.user_id = None
        self.caches.clear()


class AuthStateMachine:
    def __init__(self, session_state=None):
        self.state = STATE_UNKNOWN
        self.user = None
        self.session = session_state or SessionState()
        self._signed_in_handlers = []
        self._signed_out_handlers = []

    @property
    def is_signed_in(self):
        return self.state == STATE_SIGNED_IN

    def on_signed_in(self, handler):
        self._signed_in_handlers.append(handler)
        return handler

    def on_signed_out(self, handler):
        self._signed_out_handlers.append(handler)
        return handler

    def resolve(self, user):
        """Move to ``signed_in`` or ``signed_out`` for ``user`` and run the handlers.

        Resolving to the current state again is a no-op.
        """
        if user is not None and getattr(user, "is_authenticated", False):
            if self.state == STATE_SIGNED_IN and self.user == user:
                return self.state
            self.state = STATE_SIGNED_IN
            self.user = user
            self.session.user_id = user.pk
            for handler in self._signed_in_handlers:
                handler(user)
        else:
            if self.state == STATE_SIGNED_OUT:
                return self.state
            self.state = STATE_SIGNED_OUT
            self.user = None
            self.session.reset()
            for handler in self._signed_out_handlers:
                handler()
        logger.debug("Auth state resolved to %s", self.state)
        return self.state
