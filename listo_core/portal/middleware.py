from django.utils import translation
from django.utils.deprecation import MiddlewareMixin

from .auth_state import AuthStateMachine, SessionState
from .i18n import language_cookie_name, normalize_language
from .models import LANGUAGE_ENGLISH

SESSION_LANGUAGE_KEY = "listo_lang"


class AuthStateMiddleware(MiddlewareMixin):
    """Attach a resolved ``AuthStateMachine`` as ``request.listo``."""

    def process_request(self, request):
        machine = AuthStateMachine(SessionState())
        machine.resolve(getattr(request, "user", None))
        request.listo = machine
        return None


def _profile_language(user):
    if not user or not user.is_authenticated:
        return None
    profile = getattr(user, "profile", None)
    return normalize_language(getattr(profile, "language", None))


class LanguagePreferenceMiddleware(MiddlewareMixin):
    """Pick the UI language from the cookie, then the session, then the profile."""

    def process_request(self, request):
        session = getattr(request, "session", None)
        lang = (
            normalize_language(request.COOKIES.get(language_cookie_name()))
            or normalize_language(session.get(SESSION_LANGUAGE_KEY) if session is not None else None)
            or _profile_language(getattr(request, "user", None))
            or LANGUAGE_ENGLISH
        )
        request.listo_language = lang
        state = getattr(request, "listo", None)
        if state is not None:
            state.session.language = lang
        translation.activate(lang)
        request.LANGUAGE_CODE = lang
        return None

    def process_response(self, request, response):
        translation.deactivate()
        return response
