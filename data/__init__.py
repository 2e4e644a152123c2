# Data layer for the agency game

from .credential_store import CredentialStore, InMemoryCredentialStore

__all__ = ['CredentialStore', 'InMemoryCredentialStore']
