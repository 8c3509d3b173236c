"""HSDP Clinical Data Repository (FHIR store) client."""
from .client import CDR, FHIR_STORE_PATH, CDRClient

__all__ = ["CDR", "FHIR_STORE_PATH", "CDRClient"]
