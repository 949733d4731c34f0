from django.conf import settings

from .formatting import initials
from .prequal import coi_reminder_state


def branding_defaults(request):
    """Expose default branding values for templates."""
    return {
        "default_business_name": getattr(settings, "DEFAULT_BUSINESS_NAME", "Listo"),
        "support_email": getattr(settings, "SUPPORT_EMAIL", ""),
    }


def listo_session(request):
    state = getattr(request, "listo", None)
    language = getattr(request, "listo_language", "en")
    context = {"listo_language": language, "listo_signed_in": bool(state and state.is_signed_in)}
    if not (state and state.is_signed_in):
        return context

    user = state.user
    profile = getattr(user, "profile", None)
    prequal = getattr(user, "prequal", None)
    context.update(
        {
            "current_profile": profile,
            "avatar_logo_url": profile.logo_url if profile is not None and profile.has_logo else "",
            "avatar_initials": profile.initials if profile is not None else _fallback_initials(user),
            "coi_reminder": state.session.cache("coi_reminder", lambda: coi_reminder_state(prequal)),
        }
    )
    return context


def _fallback_initials(user):
    return initials(user.get_full_name(), user.email)
