"""
Document Store Client
=====================

Minimal Cloud Firestore client over the REST API. Covers what the console
needs: get, list, equality query, count, update, set and add.

Documents are returned as plain dicts of decoded field values. Every
transport or HTTP failure raises BackendError; callers decide whether to
swallow it.
"""

import base64
import logging
from datetime import datetime, timezone

import requests

from shopadmin.core.exceptions import BackendError

logger = logging.getLogger(__name__)

PAGE_SIZE = 300


# ----------------------------------------------------------------------
# Value codec
# ----------------------------------------------------------------------

def encode_value(value):
    """Encode a Python value as a Firestore typed value"""
    if value is None:
        return {'nullValue': None}
    if isinstance(value, bool):
        return {'booleanValue': value}
    if isinstance(value, int):
        return {'integerValue': str(value)}
    if isinstance(value, float):
        return {'doubleValue': value}
    if isinstance(value, str):
        return {'stringValue': value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return {'timestampValue': value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')}
    if isinstance(value, bytes):
        return {'bytesValue': base64.b64encode(value).decode()}
    if isinstance(value, dict):
        return {'mapValue': {'fields': encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {'arrayValue': {'values': [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__} in Firestore")


def encode_fields(data):
    return {key: encode_value(val) for key, val in data.items()}


def decode_value(value):
    """Decode a Firestore typed value. Timestamps stay ISO strings."""
    if 'nullValue' in value:
        return None
    if 'booleanValue' in value:
        return value['booleanValue']
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return float(value['doubleValue'])
    if 'stringValue' in value:
        return value['stringValue']
    if 'timestampValue' in value:
        return value['timestampValue']
    if 'referenceValue' in value:
        return value['referenceValue']
    if 'bytesValue' in value:
        return base64.b64decode(value['bytesValue'])
    if 'geoPointValue' in value:
        return dict(value['geoPointValue'])
    if 'mapValue' in value:
        return decode_fields(value['mapValue'].get('fields', {}))
    if 'arrayValue' in value:
        return [decode_value(v) for v in value['arrayValue'].get('values', [])]
    raise ValueError(f"Unknown Firestore value: {value!r}")


def decode_fields(fields):
    return {key: decode_value(val) for key, val in (fields or {}).items()}


def decode_document(document):
    """Turn a REST document resource into (id, data)"""
    doc_id = document['name'].rsplit('/', 1)[-1]
    return doc_id, decode_fields(document.get('fields'))


# ----------------------------------------------------------------------
# Client
# ----------------------------------------------------------------------

class FirestoreClient:
    """Firestore REST client bound to one project and one auth context"""

    def __init__(self, project_id, base_url='https://firestore.googleapis.com/v1',
                 token_provider=None, timeout=15):
        self.project_id = project_id
        self.base_url = base_url.rstrip('/')
        self.token_provider = token_provider
        self.timeout = timeout

    @property
    def documents_path(self):
        return f"projects/{self.project_id}/databases/(default)/documents"

    @property
    def documents_url(self):
        return f"{self.base_url}/{self.documents_path}"

    def _headers(self):
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers['Authorization'] = f"Bearer {token}"
        return headers

    def _request(self, method, url, allow_404=False, **kwargs):
        try:
            resp = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"Document store unreachable: {e}")

        if allow_404 and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            try:
                message = resp.json().get('error', {}).get('message') or resp.text
            except ValueError:
                message = resp.text
            raise BackendError(f"Document store error {resp.status_code}: {message}",
                               status_code=resp.status_code)
        return resp.json()

    def get(self, collection, doc_id):
        """Fetch one document's data, or None if it does not exist"""
        document = self._request('GET', f"{self.documents_url}/{collection}/{doc_id}", allow_404=True)
        if document is None:
            return None
        return decode_document(document)[1]

    def list(self, collection):
        """Every document in a collection as (id, data) pairs"""
        results = []
        page_token = None
        while True:
            params = {'pageSize': PAGE_SIZE}
            if page_token:
                params['pageToken'] = page_token
            data = self._request('GET', f"{self.documents_url}/{collection}", params=params)
            for document in data.get('documents', []):
                results.append(decode_document(document))
            page_token = data.get('nextPageToken')
            if not page_token:
                return results

    def _structured_query(self, collection, field=None, value=None):
        query = {'from': [{'collectionId': collection}]}
        if field is not None:
            query['where'] = {
                'fieldFilter': {
                    'field': {'fieldPath': field},
                    'op': 'EQUAL',
                    'value': encode_value(value),
                }
            }
        return query

    def query(self, collection, field, value):
        """Documents whose ``field`` equals ``value`` as (id, data) pairs"""
        rows = self._request('POST', f"{self.documents_url}:runQuery",
                             json={'structuredQuery': self._structured_query(collection, field, value)})
        return [decode_document(row['document']) for row in rows if 'document' in row]

    def count(self, collection, field=None, value=None):
        """Server-side count of a collection, optionally filtered by equality"""
        body = {
            'structuredAggregationQuery': {
                'structuredQuery': self._structured_query(collection, field, value),
                'aggregations': [{'alias': 'count', 'count': {}}],
            }
        }
        rows = self._request('POST', f"{self.documents_url}:runAggregationQuery", json=body)
        for row in rows:
            fields = row.get('result', {}).get('aggregateFields', {})
            if 'count' in fields:
                return decode_value(fields['count'])
        return 0

    def update(self, collection, doc_id, fields):
        """Merge ``fields`` into an existing document (fails if it does not exist)"""
        params = [('updateMask.fieldPaths', key) for key in fields]
        params.append(('currentDocument.exists', 'true'))
        self._request('PATCH', f"{self.documents_url}/{collection}/{doc_id}",
                      params=params, json={'fields': encode_fields(fields)})

    def set(self, collection, doc_id, fields):
        """Create or overwrite a document"""
        self._request('PATCH', f"{self.documents_url}/{collection}/{doc_id}",
                      json={'fields': encode_fields(fields)})

    def add(self, collection, fields):
        """Create a document with a generated id and return the id"""
        document = self._request('POST', f"{self.documents_url}/{collection}",
                                 json={'fields': encode_fields(fields)})
        return decode_document(document)[0]
