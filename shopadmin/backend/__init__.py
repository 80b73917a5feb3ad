"""
Backend clients for the remote services the console is built on:
Firebase Authentication (identity) and Cloud Firestore (documents).
"""

from .identity import IdentityClient
from .firestore import FirestoreClient

__all__ = ['IdentityClient', 'FirestoreClient']
