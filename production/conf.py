"""
Engine settings, read from settings.APPAREL_ERP_SETTINGS with defaults
"""
from django.conf import settings

DEFAULTS = {
    'STAGE_STORE': 'production.store.DjangoStageStore',
    'DOCUMENT_ISSUER': 'challans.issuers.ChallanDocumentIssuer',
    'DOCUMENT_ISSUER_TIMEOUT_SECONDS': 10,
    'PRODUCTION_ROLES': ['admin', 'manufacturing'],
}


def get(name):
    return getattr(settings, 'APPAREL_ERP_SETTINGS', {}).get(name, DEFAULTS[name])
