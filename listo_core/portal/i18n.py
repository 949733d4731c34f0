"""English/Spanish strings for navigation, landing and sign-in copy."""
from django.conf import settings

from .models import LANGUAGE_ENGLISH, LANGUAGE_SPANISH

SUPPORTED_LANGUAGES = (LANGUAGE_ENGLISH, LANGUAGE_SPANISH)

CATALOG = {
    LANGUAGE_ENGLISH: {
        "nav.menu": "Menu",
        "nav.home": "Home",
        "nav.dashboard": "Home",
        "nav.prequal": "Pre-Qualification",
        "nav.contracts": "Contracts",
        "nav.payroll": "Payroll",
        "nav.employees": "Employees",
        "nav.tools": "Tools",
        "nav.audit": "Audit Help",
        "nav.documentTranslator": "Document Translator",
        "nav.invoiceBuilder": "Invoice Builder",
        "nav.jobEstimator": "Job Cost Estimator",
        "nav.1099": "1099-NEC Generator",
        "nav.account": "My Account",
        "nav.settings": "Settings",
        "nav.logout": "Log Out",
        "tools.pageTitle": "Tools",
        "tools.pageSubtitle": "Access all available tools to help manage your business.",
        "hero.title": "Focus on your work. We'll handle the paperwork.",
        "hero.subtitle": (
            "Stop wasting time on business tasks. Listo automates payroll tracking, document management, "
            "invoicing, and compliance so you can get back to what you do best."
        ),
        "hero.ctaPrimary": "Log In",
        "hero.ctaSecondary": "Get Started with Listo",
        "auth.loginTitle": "Welcome back",
        "auth.loginSubtitle": "Log in to access your Listo workspace.",
        "auth.signupTitle": "Create your account",
        "auth.signupSubtitle": "Use email + password to get started.",
        "auth.email": "Email",
        "auth.password": "Password",
        "auth.loginBtn": "Log In",
        "auth.createBtn": "Create Account",
        "auth.haveAccount": "Already have an account?",
        "auth.goLogin": "Log in",
        "auth.forgotTitle": "Reset password",
        "auth.forgotSubtitle": "Enter your email and we'll send you a reset link.",
        "auth.sendReset": "Send reset link",
        "auth.backToLogin": "Back to login",
        "auth.createAccountLink": "Create account",
        "account.languageTitle": "Language Preference",
        "account.languageDesc": "Choose your preferred language for the application interface.",
        "account.languageLabel": "Language",
    },
    LANGUAGE_SPANISH: {
        "nav.menu": "Menú",
        "nav.home": "Inicio",
        "nav.dashboard": "Inicio",
        "nav.prequal": "Precalificación",
        "nav.contracts": "Contratos",
        "nav.payroll": "Nómina",
        "nav.employees": "Empleados",
        "nav.tools": "Herramientas",
        "nav.audit": "Ayuda de Auditoría",
        "nav.documentTranslator": "Traductor de Documentos",
        "nav.invoiceBuilder": "Generador de Facturas",
        "nav.jobEstimator": "Estimador de Costos de Trabajo",
        "nav.1099": "Generador 1099-NEC",
        "nav.account": "Mi Cuenta",
        "nav.settings": "Configuración",
        "nav.logout": "Cerrar Sesión",
        "tools.pageTitle": "Herramientas",
        "tools.pageSubtitle": "Accede a todas las herramientas disponibles para ayudar a administrar tu negocio.",
        "hero.title": "Precalifícate. Cobra. Sé elegido.",
        "hero.subtitle": (
            "Listo ayuda a subcontratistas a completar requisitos de incorporación, estar listos para "
            "auditorías y crear un perfil confiable para contratistas generales."
        ),
        "hero.ctaPrimary": "Iniciar Sesión",
        "hero.ctaSecondary": "Comenzar con Listo",
        "auth.loginTitle": "Bienvenido de nuevo",
        "auth.loginSubtitle": "Inicia sesión para acceder a tu espacio de Listo.",
        "auth.signupTitle": "Crea tu cuenta",
        "auth.signupSubtitle": "Usa correo + contraseña para comenzar.",
        "auth.email": "Correo",
        "auth.password": "Contraseña",
        "auth.loginBtn": "Iniciar sesión",
        "auth.createBtn": "Crear cuenta",
        "auth.haveAccount": "¿Ya tienes cuenta?",
        "auth.goLogin": "Inicia sesión",
        "auth.forgotTitle": "Restablecer contraseña",
        "auth.forgotSubtitle": "Ingresa tu correo y te enviaremos un enlace para restablecer.",
        "auth.sendReset": "Enviar enlace de restablecimiento",
        "auth.backToLogin": "Volver al inicio de sesión",
        "auth.createAccountLink": "Crear cuenta",
        "account.languageTitle": "Preferencia de Idioma",
        "account.languageDesc": "Elige tu idioma preferido para la interfaz de la aplicación.",
        "account.languageLabel": "Idioma",
    },
}


def language_cookie_name():
    return getattr(settings, "LISTO_LANGUAGE_COOKIE", "listo_lang")


def normalize_language(value):
    value = (value or "").strip().lower()[:2]
    return value if value in SUPPORTED_LANGUAGES else None


def translate(key, lang=LANGUAGE_ENGLISH):
    """Look ``key`` up for ``lang``, falling back to English and then the key."""
    table = CATALOG.get(normalize_language(lang) or LANGUAGE_ENGLISH, {})
    return table.get(key) or CATALOG[LANGUAGE_ENGLISH].get(key) or key
